# altosync/schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime


class MappedProperty(BaseModel):
    """Destination field values for one upstream property, before any id lookup."""
    alto_id: str = Field(..., max_length=255)
    title: str = ""
    alias: str = ""
    type_name: str = "Other"
    category_id: int = 5
    category_name: str = ""
    category_rule: str = ""
    is_sold: int = 0
    status_label: str = "Available"
    display_address: str = ""
    full_address: str = ""
    postcode: str = ""
    town: str = ""
    county: str = ""
    country: str = ""
    small_desc: str = ""
    full_desc: str = ""
    price: float = 0
    price_text: str = ""
    currency_code: str = "GBP"
    bedrooms: int = 0
    bathrooms: float = 0
    receptions: int = 0
    latitude: str = ""
    longitude: str = ""
    square_feet: float = 0
    lot_size: float = 0
    built_on: int = 0
    tenure: str = ""
    energy_rating: str = ""
    environmental_impact: str = ""
    documents: List[str] = Field(default_factory=list)


class PropertyOut(BaseModel):
    id: int
    alto_id: str
    ref: Optional[str] = None
    pro_name: Optional[str] = None
    address: Optional[str] = None
    postcode: Optional[str] = None
    price: Optional[float] = None
    price_text: Optional[str] = None
    bed_room: Optional[int] = None
    bath_room: Optional[float] = None
    category_id: Optional[int] = None
    pro_type: Optional[int] = None
    company_id: Optional[int] = None
    isSold: Optional[int] = None
    status_label: Optional[str] = None
    created: Optional[date] = None
    modified: Optional[date] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True


class PhotoOut(BaseModel):
    image: str
    image_desc: Optional[str] = None
    ordering: int
    is_default: int
    class Config:
        from_attributes = True


class PropertyDetail(PropertyOut):
    full_address: Optional[str] = None
    pro_small_desc: Optional[str] = None
    lat_add: Optional[str] = None
    long_add: Optional[str] = None
    photos: List[PhotoOut] = []
    documents: List[str] = []


class StagingStats(BaseModel):
    branches_total: int = 0
    branches_pending: int = 0
    properties_total: int = 0
    properties_pending: int = 0


class PropertyFilter(BaseModel):
    category_id: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_beds: Optional[int] = None
    postcode: Optional[str] = None
