import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import Column, Enum, Field, SQLModel


class WasteType(str, enum.Enum):
    MIXED = "MIXED"
    METAL = "METAL"
    PLASTIC = "PLASTIC"
    PAPER = "PAPER"
    E_WASTE = "E_WASTE"


WASTE_TYPE_LABELS = {
    WasteType.MIXED: "Mixed",
    WasteType.METAL: "Metal",
    WasteType.PLASTIC: "Plastic",
    WasteType.PAPER: "Paper",
    WasteType.E_WASTE: "E-Waste",
}


class ListingStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    RESERVED = "RESERVED"
    COLLECTED = "COLLECTED"


def new_listing_id() -> str:
    return str(uuid.uuid4())


class Listing(SQLModel, table=True):
    __tablename__ = "listings"

    listing_id: str = Field(default_factory=new_listing_id, primary_key=True)
    title: str
    description: Optional[str] = None
    waste_type: WasteType = Field(
        default=WasteType.MIXED,
        sa_column=Column(Enum(WasteType), nullable=False),
    )
    estimated_weight: float
    latitude: float
    longitude: float
    address: str
    image_url: Optional[str] = None
    status: ListingStatus = Field(
        default=ListingStatus.ACTIVE,
        sa_column=Column(Enum(ListingStatus), nullable=False, index=True),
    )
    created_at: datetime

    seller_id: str = Field(index=True)
    collector_id: Optional[str] = Field(default=None, index=True)
    pickup_time: Optional[datetime] = None

    completed_at: Optional[datetime] = None
    actual_weight: Optional[float] = None
    unit_price: Optional[float] = None
    total_amount: Optional[float] = None

    # Bumped on every write; conditional updates compare against it.
    version: int = Field(default=1)


class User(SQLModel, table=True):
    __tablename__ = "users"

    user_id: str = Field(primary_key=True)
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
