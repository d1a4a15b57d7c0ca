from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from datetime import date, datetime
from decimal import Decimal

from clinicdesk.core.money import to_money


class InventoryItem(BaseModel):
    id: str
    name: str
    category: str = ""
    buy_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    sell_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    stock: int = Field(default=0, ge=0)
    unit: str = "Pieces"
    low_stock_threshold: int = 10
    batch_no: str = ""
    supplier: str = ""
    mfg_date: Optional[date] = None
    exp_date: Optional[date] = None
    note: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("buy_price", "sell_price", mode="before")
    @classmethod
    def quantize_price(cls, v):
        return to_money(v)

    @field_validator("mfg_date", "exp_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, v):
        # Missing dates may be stored as ""
        return v or None


class InventoryCreate(BaseModel):
    name: str
    category: str = ""
    buy_price: Decimal = Field(ge=0)
    sell_price: Decimal = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    unit: str = "Pieces"
    low_stock_threshold: Optional[int] = None  # falls back to the shop default
    batch_no: str = ""
    supplier: str = ""
    mfg_date: Optional[date] = None
    exp_date: Optional[date] = None
    note: str = ""

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Item name cannot be empty")
        return v.strip()

    @field_validator("buy_price", "sell_price", mode="before")
    @classmethod
    def quantize_price(cls, v):
        return to_money(v)


class InventoryUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    buy_price: Optional[Decimal] = Field(default=None, ge=0)
    sell_price: Optional[Decimal] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    unit: Optional[str] = None
    low_stock_threshold: Optional[int] = None
    batch_no: Optional[str] = None
    supplier: Optional[str] = None
    mfg_date: Optional[date] = None
    exp_date: Optional[date] = None
    note: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Item name cannot be empty")
        return v.strip() if v is not None else v

    @field_validator("buy_price", "sell_price", mode="before")
    @classmethod
    def quantize_price(cls, v):
        return to_money(v) if v is not None else v


class StockAdjustment(BaseModel):
    quantity: int = Field(gt=0)
    operation: Literal["subtract", "add"] = "subtract"
