"""Remote document store shapes. Field aliases follow the remote camelCase format."""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class FirebaseConfig(BaseModel):
    api_key: str = Field(default="", alias="apiKey")
    auth_domain: str = Field(default="", alias="authDomain")
    database_url: str = Field(default="", alias="databaseURL")
    project_id: str = Field(default="", alias="projectId")
    storage_bucket: str = Field(default="", alias="storageBucket")
    messaging_sender_id: str = Field(default="", alias="messagingSenderId")
    app_id: str = Field(default="", alias="appId")

    class Config:
        populate_by_name = True


class SubscriptionRecord(BaseModel):
    name: str = ""
    email: str = ""
    subscription_active: bool = Field(default=False, alias="subscriptionActive")
    plan: str = ""
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: datetime = Field(alias="endDate")

    class Config:
        populate_by_name = True


class SubscriptionStatus(BaseModel):
    clinic_id: str
    valid: bool
    reason: str = ""
    subscription: Optional[SubscriptionRecord] = None


class ConnectionStatus(BaseModel):
    clinic_id: str
    admin_configured: bool
    clinic_configured: bool
    subscription_valid: bool
