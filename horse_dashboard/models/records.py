"""
Record Models — interaction rows as stored in the records table.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Always selected so every projected row still has identity and a timestamp
REQUIRED_COLUMNS: tuple[str, ...] = ("id", "created_at")


class InteractionRecord(BaseModel):
    """One tracked conversation/customer.

    Field aliases are the backend column names; anything other than ``id`` and
    ``created_at`` may be missing and means "unknown".
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: int
    name: str | None = None
    contact: str | None = Field(None, alias="whatsapp")
    message_text: str | None = Field(None, alias="messages")
    message_count: int | None = Field(None, alias="message_id")
    created_at: datetime
    is_talking: bool | None = Field(None, alias="talking")
    stage: str | None = None
    previous_message: str | None = Field(None, alias="prev_msg")
    is_finished: bool | None = Field(None, alias="finish")

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps from the backend are UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
