"""Events owned by an organization."""
from datetime import datetime
from enum import Enum
from typing import Optional

import pymongo
from beanie import Document
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pymongo import IndexModel

from acetrack.models.timestamps import naive_utc


class EventStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Event(Document):
    organization_id: str
    name: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: EventStatus = EventStatus.DRAFT
    start_datetime: datetime
    end_datetime: datetime
    location: Optional[str] = Field(default=None, max_length=255)
    banner: Optional[str] = None
    is_mandatory: bool = False
    created_by: str
    deleted_at: Optional[datetime] = None  # soft delete marker
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    class Settings:
        name = "events"
        use_state_management = True
        indexes = [
            IndexModel([("organization_id", pymongo.ASCENDING), ("status", pymongo.ASCENDING)]),
            IndexModel([("start_datetime", pymongo.ASCENDING)]),
        ]


class EventCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    organization_id: str
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: EventStatus = EventStatus.DRAFT
    start_datetime: datetime
    end_datetime: datetime
    location: Optional[str] = Field(default=None, max_length=255)
    banner: Optional[str] = None
    is_mandatory: bool = False

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)

    @model_validator(mode="after")
    def _window(self):
        if self.end_datetime <= self.start_datetime:
            raise ValueError("End time must be after start time")
        return self


class EventUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[EventStatus] = None
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    location: Optional[str] = Field(default=None, max_length=255)
    banner: Optional[str] = None
    is_mandatory: Optional[bool] = None

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)
