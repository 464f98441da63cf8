"""Time-boxed organization subscriptions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from acetrack.models.timestamps import naive_utc


class SubscriptionDuration(str, Enum):
    SIX_MONTHS = "6months"
    ONE_YEAR = "1year"
    TWO_YEARS = "2years"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PENDING = "pending"


class Subscription(Document):
    organization_id: Indexed(str)
    duration: SubscriptionDuration
    start_date: datetime
    end_date: datetime
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    payment_amount: float = Field(ge=0)
    payment_method: Optional[str] = Field(default=None, max_length=100)
    receipt_file: Optional[str] = None
    auto_renewal: bool = False
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "subscriptions"
        use_state_management = True


def _check_date_order(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start and end and end <= start:
        raise ValueError("End date must be after start date")


class SubscriptionCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    organization_id: str
    duration: SubscriptionDuration
    start_date: datetime
    end_date: Optional[datetime] = None  # derived from duration when omitted
    payment_amount: float = Field(ge=0)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    auto_renewal: bool = False
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("start_date", "end_date")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)

    @model_validator(mode="after")
    def _dates(self):
        _check_date_order(self.start_date, self.end_date)
        return self


class SubscriptionUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    duration: Optional[SubscriptionDuration] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[SubscriptionStatus] = None
    payment_amount: Optional[float] = Field(default=None, ge=0)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    auto_renewal: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("start_date", "end_date")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)

    @model_validator(mode="after")
    def _dates(self):
        _check_date_order(self.start_date, self.end_date)
        return self


class SubscriptionVerify(BaseModel):
    verified: bool
    notes: Optional[str] = Field(default=None, max_length=500)
