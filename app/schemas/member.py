"""Group member schemas."""
from typing import Optional, List
from pydantic import BaseModel


class MemberResponse(BaseModel):
    """Registered member of a chat group."""
    user_id: str
    display_name: Optional[str] = None

    model_config = {"from_attributes": True}


class GroupMembersResponse(BaseModel):
    success: bool = True
    members: List[MemberResponse]
