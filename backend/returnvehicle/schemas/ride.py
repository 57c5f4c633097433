"""
Pydantic schemas for ride-related request/response validation.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from returnvehicle.models.status import RideCategory, RideStatus
from returnvehicle.schemas.common import REQUEST_CONFIG, RESPONSE_CONFIG, Page

# Per-seat price ceiling; price_per_seat * 100 seats must fit a 32-bit total_price
MAX_PRICE = 1_000_000


class RideCreate(BaseModel):
    model_config = REQUEST_CONFIG

    origin: str = Field(..., alias="from", min_length=1, max_length=120)
    destination: str = Field(..., alias="to", min_length=1, max_length=120)
    journey_date: date
    return_date: Optional[date] = None
    category: RideCategory
    price: int = Field(..., gt=0, le=MAX_PRICE)
    vehicle_model: str = Field(..., min_length=1, max_length=255)
    total_seats: int = Field(4, ge=1, le=100)
    # Lower starting value than total_seats, e.g. seats already sold offline
    available_seats: Optional[int] = Field(None, ge=0)
    image_url: str = Field("", max_length=1024)
    image_file_id: str = Field("", max_length=255)


class RideUpdate(BaseModel):
    model_config = REQUEST_CONFIG

    price: Optional[int] = Field(None, gt=0, le=MAX_PRICE)
    vehicle_model: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[RideCategory] = None
    journey_date: Optional[date] = None
    return_date: Optional[date] = None
    total_seats: Optional[int] = Field(None, ge=1, le=100)
    available_seats: Optional[int] = Field(None, ge=0)
    status: Optional[RideStatus] = None
    image_url: Optional[str] = Field(None, max_length=1024)
    image_file_id: Optional[str] = Field(None, max_length=255)


class RideResponse(BaseModel):
    model_config = RESPONSE_CONFIG

    id: UUID
    driver_id: str
    origin: str = Field(serialization_alias="from")
    destination: str = Field(serialization_alias="to")
    journey_date: date
    return_date: Optional[date]
    category: str
    price: int
    vehicle_model: str
    total_seats: int
    available_seats: int
    status: str
    image_url: str
    image_file_id: str
    created_at: datetime
    updated_at: datetime


class RideSummary(BaseModel):
    """Ride fields joined onto booking listings."""

    model_config = RESPONSE_CONFIG

    id: UUID
    origin: str = Field(serialization_alias="from")
    destination: str = Field(serialization_alias="to")
    journey_date: date
    return_date: Optional[date]
    category: str


class RideListResponse(Page[RideResponse]):
    cached: bool = False


class RideDeleteResponse(BaseModel):
    ok: bool = True
    id: UUID
