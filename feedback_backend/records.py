"""
Record types shared by the API server and the maintenance scripts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from bson import ObjectId
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
)

from feedback_backend.errors import BadRequest

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class House(str, Enum):
    BHAIRAV = "Bhairav"
    BHAGESHREE = "Bhageshree"
    MEGH = "Megh"


class FeedbackFields(BaseModel):
    """Mutable fields of a feedback record."""

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    studentName: RequiredText = "Anonymous"
    house: House
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""

    @field_validator("studentName", "comment", mode="before")
    @classmethod
    def _default_when_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class ImprovementFields(BaseModel):
    """Mutable fields of an improvement suggestion."""

    model_config = ConfigDict(extra="ignore")

    problem: RequiredText
    solution: RequiredText
    submittedBy: RequiredText


class StoredRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    timestamp: datetime

    def document(self) -> dict:
        """Mutable fields only, as plain JSON-compatible values."""
        return self.model_dump(exclude={"id", "timestamp"})


class Feedback(StoredRecord, FeedbackFields):
    pass


class Improvement(StoredRecord, ImprovementFields):
    pass


@dataclass(frozen=True)
class RecordKind:
    """Everything the stores and routes need to know about one record type."""

    name: str
    label: str
    collection: str
    fields_model: type[BaseModel]
    record_model: type[StoredRecord]

    def build(
        self, record_id: str, timestamp: datetime, fields: BaseModel | dict
    ) -> StoredRecord:
        values = fields.model_dump() if isinstance(fields, BaseModel) else dict(fields)
        return self.record_model(id=record_id, timestamp=timestamp, **values)

    def parse_id(self, raw_id: str) -> str:
        if not ObjectId.is_valid(raw_id):
            raise BadRequest(f"Invalid {self.name} id: {raw_id}")
        return str(raw_id).lower()


FEEDBACK = RecordKind(
    name="feedback",
    label="Feedback",
    collection="feedbacks",
    fields_model=FeedbackFields,
    record_model=Feedback,
)

IMPROVEMENT = RecordKind(
    name="improvement",
    label="Improvement",
    collection="improvements",
    fields_model=ImprovementFields,
    record_model=Improvement,
)


def new_record_id() -> str:
    return str(ObjectId())


def utcnow() -> datetime:
    """Current UTC time, truncated to the millisecond precision BSON keeps."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)
