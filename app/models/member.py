from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from app.models.base import MongoModel, utcnow


class ChatUser(BaseModel):
    user_id: str
    display_name: Optional[str] = None


class ChatGroup(BaseModel):
    group_id: str
    group_name: Optional[str] = None


class GroupMember(BaseModel):
    group_id: str
    user_id: str
    joined_at: datetime = Field(default_factory=utcnow)


class BillDraft(MongoModel):
    """Short-lived marker that a user started creating a bill from the chat."""
    group_id: str
    user_id: str
    expires_at: datetime
