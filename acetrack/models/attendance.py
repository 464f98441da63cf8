"""Per-student attendance at an event, plus the scanned identity snapshot."""
import unicodedata
from datetime import datetime
from enum import Enum
from typing import Optional

import pymongo
from beanie import Document
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pymongo import IndexModel

# Sized so an encoded identity fits a version 40 QR code (medium error
# correction) even when every character takes four UTF-8 bytes.
MAX_FIELD_INT = 2**31 - 1
MAX_STUDENT_ID_LENGTH = 64
MAX_NAME_LENGTH = 64
MAX_AVATAR_LENGTH = 255


def _reject_control_chars(value: str) -> str:
    if any(unicodedata.category(ch) in ("Cc", "Cs") for ch in value):
        raise ValueError("must not contain control characters")
    return value


class CheckInMethod(str, Enum):
    QR_CODE = "qr_code"
    MANUAL = "manual"


class StudentIdentity(BaseModel):
    """What a student's QR code carries. Frozen: a payload is a snapshot."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    student_id: str = Field(min_length=1, max_length=MAX_STUDENT_ID_LENGTH)
    first_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    last_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    middle_name: Optional[str] = Field(default=None, max_length=MAX_NAME_LENGTH)
    course_id: int = Field(ge=1, le=MAX_FIELD_INT)
    year_level: int = Field(ge=1, le=MAX_FIELD_INT)
    avatar: Optional[str] = Field(default=None, max_length=MAX_AVATAR_LENGTH)

    @field_validator("student_id", "first_name", "last_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = _reject_control_chars(value).strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("middle_name", "avatar")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _reject_control_chars(value).strip() or None


class AttendanceRecord(Document):
    """At most one record per (event_id, student_id); enforced by a unique index."""

    event_id: str
    student_id: str
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    course_id: Optional[int] = None
    year_level: Optional[int] = None
    avatar: Optional[str] = None
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    check_in_method: CheckInMethod = CheckInMethod.QR_CODE
    scanned_by: Optional[str] = None  # user id of the scanning staff
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def duration_minutes(self) -> Optional[int]:
        if not self.time_in or not self.time_out:
            return None
        return round((self.time_out - self.time_in).total_seconds() / 60)

    class Settings:
        name = "attendance_records"
        indexes = [
            IndexModel(
                [("event_id", pymongo.ASCENDING), ("student_id", pymongo.ASCENDING)],
                unique=True,
                name="event_student_unique",
            ),
            IndexModel([("event_id", pymongo.ASCENDING), ("updated_at", pymongo.DESCENDING)]),
        ]


class CheckInRequest(StudentIdentity):
    method: CheckInMethod = CheckInMethod.QR_CODE


class CheckOutRequest(BaseModel):
    student_id: str = Field(min_length=1, max_length=MAX_STUDENT_ID_LENGTH)


class ScanMode(str, Enum):
    TIME_IN = "time_in"
    TIME_OUT = "time_out"


class ScanRequest(BaseModel):
    payload: str
    mode: ScanMode = ScanMode.TIME_IN
