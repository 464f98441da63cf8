"""Accounts: platform super admins and students with their QR profile."""
from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, EmailStr, Field

from acetrack.models.attendance import MAX_FIELD_INT, MAX_NAME_LENGTH, MAX_STUDENT_ID_LENGTH


class User(Document):
    """User document. Student profile fields feed the attendance QR payload."""

    email: Indexed(EmailStr, unique=True)
    hashed_password: str
    is_super_admin: bool = False
    is_active: bool = True

    # Student profile (snapshot source for QR codes)
    student_id: Optional[str] = None
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    course_id: Optional[int] = None
    year_level: Optional[int] = None
    avatar: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        use_state_management = True


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    last_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    middle_name: Optional[str] = Field(default=None, max_length=MAX_NAME_LENGTH)
    student_id: Optional[str] = Field(default=None, max_length=MAX_STUDENT_ID_LENGTH)
    course_id: Optional[int] = Field(default=None, ge=1, le=MAX_FIELD_INT)
    year_level: Optional[int] = Field(default=None, ge=1, le=MAX_FIELD_INT)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    middle_name: Optional[str] = Field(default=None, max_length=MAX_NAME_LENGTH)
    student_id: Optional[str] = Field(default=None, max_length=MAX_STUDENT_ID_LENGTH)
    course_id: Optional[int] = Field(default=None, ge=1, le=MAX_FIELD_INT)
    year_level: Optional[int] = Field(default=None, ge=1, le=MAX_FIELD_INT)
