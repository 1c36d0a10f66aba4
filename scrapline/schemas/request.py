from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from scrapline.models import WasteType


class ListingCreate(BaseModel):
    title: str
    description: Optional[str] = None
    waste_type: WasteType = WasteType.MIXED
    estimated_weight: float
    latitude: float
    longitude: float
    address: str
    image_url: Optional[str] = None


class ListingUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    waste_type: Optional[WasteType] = None
    estimated_weight: Optional[float] = None
    address: Optional[str] = None
    image_url: Optional[str] = None


class ClaimRequest(BaseModel):
    pickup_time: datetime


class FinalizeRequest(BaseModel):
    unit_price: float
    actual_weight: float


class UserProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
