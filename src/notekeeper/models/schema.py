"""Data models for the notekeeper storage core."""

import datetime
from datetime import timezone
from typing import Optional

from pydantic import BaseModel, Field

from notekeeper.config import MAX_ID_LENGTH
from notekeeper.exceptions import ErrorCode, ValidationError


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Get current UTC time as an ISO-8601 string.

    All server-assigned timestamps use this format, so lexical ordering of
    the stored strings matches chronological ordering.
    """
    return utc_now().isoformat()


def parse_timestamp(value: str) -> datetime.datetime:
    """Parse a stored ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_identifier(value: Optional[str], field_name: str = "id") -> str:
    """Validate a note or folder identifier.

    Args:
        value: The identifier supplied by the caller
        field_name: Name of the field for error messages

    Returns:
        The validated identifier (unchanged)

    Raises:
        ValidationError: If the identifier is empty or longer than
            MAX_ID_LENGTH characters
    """
    if not value:
        raise ValidationError(
            f"{field_name} cannot be empty", field=field_name, code=ErrorCode.ID_EMPTY
        )
    if len(value) > MAX_ID_LENGTH:
        raise ValidationError(
            f"{field_name} cannot exceed {MAX_ID_LENGTH} characters",
            field=field_name,
            value=value,
            code=ErrorCode.ID_TOO_LONG,
        )
    return value


class Note(BaseModel):
    """A note as exchanged with the host application.

    Identifiers are generated by the caller. Validation of ``id`` happens in
    the repository so that a bad identifier is reported as a
    ``ValidationError`` from the operation rather than at construction.
    """

    id: str = Field(..., description="Caller-generated unique ID")
    title: str = Field(default="", description="Title of the note")
    content: str = Field(default="", description="Body of the note")
    folder_id: Optional[str] = Field(
        default=None, description="Folder the note is filed in; None when unfiled"
    )
    is_pinned: bool = Field(default=False, description="Whether the note is pinned")
    pinned_at: Optional[str] = Field(
        default=None, description="When the note was pinned (set iff is_pinned)"
    )
    font: Optional[str] = Field(default=None, description="Display font")
    updated_at: str = Field(
        default="", description="Last edit time; empty lets the server assign it"
    )
    created_at: str = Field(
        default_factory=utc_now_iso, description="Creation time, immutable once stored"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @property
    def is_unfiled(self) -> bool:
        """True when the note does not belong to any folder."""
        return self.folder_id is None


class Folder(BaseModel):
    """A folder grouping notes."""

    id: str = Field(..., description="Caller-generated unique ID")
    name: str = Field(default="", description="Display name")
    created_at: str = Field(
        default_factory=utc_now_iso, description="Creation time, immutable once stored"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}
