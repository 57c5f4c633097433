"""
Pydantic schemas for booking-related request/response validation.

Seat count and contact fields are deliberately loose here: the booking
service owns those rules and reports them as validation_error (400).
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from returnvehicle.schemas.common import RESPONSE_CONFIG, Page
from returnvehicle.schemas.ride import RideSummary


class BookingCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    seats: int = Field(1, validation_alias=AliasChoices("seats", "passengers"))
    contact_name: str = Field(
        "", validation_alias=AliasChoices("contactName", "contact_name", "passengerName", "name")
    )
    contact_phone: str = Field("", validation_alias=AliasChoices("contactPhone", "contact_phone", "phone"))
    note: Optional[str] = Field(None, max_length=500)


class BookingResponse(BaseModel):
    model_config = RESPONSE_CONFIG

    id: UUID
    code: str
    ride_id: Optional[UUID]
    rider_id: str
    driver_id: str
    seats: int
    price_per_seat: int
    total_price: int
    contact_name: str
    contact_phone: str
    note: str
    status: str
    seats_released: bool
    created_at: datetime
    updated_at: datetime
    ride: Optional[RideSummary] = None


class BookingListResponse(Page[BookingResponse]):
    pass
