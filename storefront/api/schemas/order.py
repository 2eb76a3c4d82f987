from typing import Optional
from pydantic import BaseModel, Field, field_validator


class StatusUpdate(BaseModel):
    status: str = Field(..., description="pending | processing | shipped | delivered | cancelled")
    comment: Optional[str] = Field(None, description="Shown to the customer in the status email and history")
    tracking_number: Optional[str] = Field(None, description="Carrier tracking number, kept on the order")
    notify_customer: bool = Field(True, description="Send the status-update email")

    @field_validator("comment", "tracking_number", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class NotesUpdate(BaseModel):
    notes: Optional[str] = Field(None, description="Internal admin notes; empty clears them")
