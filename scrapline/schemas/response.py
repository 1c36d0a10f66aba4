from datetime import datetime
from typing import Optional

from pydantic import BaseModel, computed_field

from scrapline.api.utils import format_amount
from scrapline.models import ListingStatus, WasteType


class Contact(BaseModel):
    user_id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class ListingView(BaseModel):
    listing_id: str
    title: str
    description: Optional[str] = None
    waste_type: WasteType
    estimated_weight: float
    latitude: float
    longitude: float
    address: str
    image_url: Optional[str] = None
    status: ListingStatus
    created_at: datetime
    pickup_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    actual_weight: Optional[float] = None
    unit_price: Optional[float] = None
    total_amount: Optional[float] = None

    seller: Optional[Contact] = None
    collector: Optional[Contact] = None

    @computed_field
    @property
    def total_amount_display(self) -> Optional[str]:
        return format_amount(self.total_amount)


class ListingsResponse(BaseModel):
    listings: list[ListingView]
    total: int


class ListingsSummary(BaseModel):
    active: int
    reserved: int
    collected: int
    total_settled: float

    @computed_field
    @property
    def total_settled_display(self) -> str:
        return format_amount(self.total_settled)


class WasteTypeOption(BaseModel):
    value: WasteType
    label: str


class UserProfile(BaseModel):
    user_id: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
