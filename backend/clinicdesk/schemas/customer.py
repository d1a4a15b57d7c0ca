from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

from clinicdesk.core.money import to_money

CustomerType = Literal["regular", "vip", "new"]


class Customer(BaseModel):
    id: str
    name: str
    mobile: str
    email: str = ""
    address: str = ""
    type: CustomerType = "regular"
    medical_summary: str = ""
    last_visit: Optional[datetime] = None
    next_visit: Optional[datetime] = None
    total_visits: int = 0
    total_spent: Decimal = Decimal("0.00")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("total_spent", mode="before")
    @classmethod
    def quantize_spent(cls, v):
        return to_money(v)


class CustomerCreate(BaseModel):
    name: str
    mobile: str
    email: str = ""
    address: str = ""
    type: CustomerType = "regular"
    medical_summary: str = ""

    @field_validator("name", "mobile")
    @classmethod
    def required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field is required")
        return v.strip()


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    type: Optional[CustomerType] = None
    medical_summary: Optional[str] = None

    @field_validator("name", "mobile")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip() if v is not None else v


class Visit(BaseModel):
    id: str
    customer_id: str
    date: datetime
    type: str = "consultation"
    notes: str = ""
    next_visit_date: Optional[datetime] = None
    status: str = "completed"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VisitCreate(BaseModel):
    customer_id: str
    date: Optional[datetime] = None  # defaults to now
    type: str = "consultation"
    notes: str = ""
    next_visit_date: Optional[datetime] = None
    status: str = "completed"
