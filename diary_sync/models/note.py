import math
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from typing import List, Optional

# latest instant every time zone can still render as a datetime
MAX_TIMESTAMP_MS = int(datetime(9999, 12, 30, tzinfo=timezone.utc).timestamp() * 1000)


def number_or(value, default: int) -> int:
    # bool is an int subclass but never a valid count or timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return int(value)


def millis_or(value, default: int = 0) -> int:
    """Epoch millis, or ``default`` when the value cannot be shown as a date."""
    millis = number_or(value, default)
    return millis if 0 <= millis <= MAX_TIMESTAMP_MS else default


class Note(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: StrictStr = Field(alias="_id")
    title: str = ""
    description: str = ""
    imageId: Optional[str] = None
    medicalProfileId: Optional[str] = None
    createdAt: int = 0  # epoch millis
    updatedAt: int = 0
    imageUrl: Optional[str] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def _text_or_empty(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("imageId", "medicalProfileId", "imageUrl", mode="before")
    @classmethod
    def _text_or_none(cls, value):
        return value if isinstance(value, str) else None

    @field_validator("createdAt", "updatedAt", mode="before")
    @classmethod
    def _millis_or_zero(cls, value):
        return millis_or(value)

    def preview(self, max_length: int = 50) -> str:
        """Truncated description for list rows."""
        if len(self.description) > max_length:
            return f"{self.description[:max_length]}..."
        return self.description


class NotePayload(BaseModel):
    """Body of create and update requests."""
    title: str
    description: str
    imageId: str = ""  # always sent as a string, never null


class PageCursor(BaseModel):
    model_config = ConfigDict(frozen=True)

    limit: int = 20
    start: int = 0
    total: int = 0
    size: int = 0

    @property
    def has_more(self) -> bool:
        return (self.start + self.size) < self.total

    @classmethod
    def empty(cls) -> "PageCursor":
        return cls(limit=0, start=0, total=0, size=0)


class NotesPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    notes: List[Note] = []
    cursor: PageCursor = PageCursor.empty()

    @classmethod
    def empty(cls) -> "NotesPage":
        return cls(notes=[], cursor=PageCursor.empty())
