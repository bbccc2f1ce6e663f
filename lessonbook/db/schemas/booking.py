from datetime import date as date_type, datetime, time
from typing import Any

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus


class BookingCreate(BaseModel):
    resource_id: str = Field(min_length=1, description="Instructor whose calendar is booked")
    provider_id: str = Field(min_length=1, description="Studio that owns the instructor")
    date: date_type
    start_time: time
    end_time: time | None = Field(
        default=None,
        description="Defaults to start_time plus the configured slot duration",
    )
    notes: str | None = None
    contact_info: dict[str, Any] | None = None


class Booking(BaseModel):
    id: int
    resource_id: str
    owner_id: str
    provider_id: str
    date: date_type
    start_time: time
    end_time: time
    status: BookingStatus
    notes: str | None = None
    contact_info: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
