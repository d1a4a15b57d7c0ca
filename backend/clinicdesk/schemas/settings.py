from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal


class ShopSettings(BaseModel):
    shop_name: str = ""
    address: str = ""
    contact: str = ""
    email: str = ""
    gst: str = ""  # GST registration number printed on invoices
    website: str = ""
    logo: str = ""
    signature: str = ""
    default_low_stock_threshold: int = 10
    gst_rate: Decimal = Field(default=Decimal("18"), ge=0, le=100)
    username: str = "admin"
    password: str = "0000"


class SettingsUpdate(BaseModel):
    shop_name: Optional[str] = None
    address: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    gst: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None
    signature: Optional[str] = None
    default_low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    gst_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    username: Optional[str] = None
    password: Optional[str] = None


class OptionCreate(BaseModel):
    """A category or unit name."""
    name: str
