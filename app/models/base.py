"""Shared base for documents stored in MongoDB."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Type, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import core_schema

DocumentModel = TypeVar("DocumentModel", bound="MongoModel")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PyObjectId(ObjectId):
    """ObjectId field that also accepts its 24-char hex form."""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any):
        return core_schema.no_info_plain_validator_function(cls.validate)

    @classmethod
    def validate(cls, value: Any) -> ObjectId:
        if isinstance(value, str) and ObjectId.is_valid(value):
            value = ObjectId(value)
        if not isinstance(value, ObjectId):
            raise ValueError(f"Not a valid ObjectId: {value!r}")
        return value


class MongoModel(BaseModel):
    id: PyObjectId = Field(default_factory=PyObjectId, alias="_id")
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        from_attributes=True
    )

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive datetimes come back from clients without tz_aware
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @classmethod
    def from_document(cls: Type[DocumentModel], doc: Optional[dict]) -> Optional[DocumentModel]:
        return cls(**doc) if doc else None

    def to_document(self) -> dict:
        """Dump for insertion, keeping ObjectId and datetime values native."""
        doc = self.model_dump(by_alias=True)
        return {k: v.value if isinstance(v, Enum) else v for k, v in doc.items()}
