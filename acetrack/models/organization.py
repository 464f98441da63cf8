"""Tenants and their memberships."""
from datetime import datetime
from enum import Enum
from typing import Optional

import pymongo
from beanie import Document, Indexed
from pydantic import BaseModel, EmailStr, Field
from pymongo import IndexModel


class OrganizationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    SUSPENDED = "suspended"


class MemberRole(str, Enum):
    ADMIN = "admin"
    OFFICER = "officer"
    MEMBER = "member"


class MemberStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class JoinPolicy(BaseModel):
    allow_public_join: bool = False
    require_approval: bool = True
    max_members: Optional[int] = Field(default=None, ge=1)


class Organization(Document):
    name: Indexed(str)
    description: Optional[str] = None
    logo: Optional[str] = None
    banner: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    admin_user_id: str
    status: OrganizationStatus = OrganizationStatus.PENDING
    join_policy: JoinPolicy = Field(default_factory=JoinPolicy)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "organizations"
        use_state_management = True


class OrganizationMember(Document):
    """One row per (organization, user); enforced by a unique index."""

    organization_id: str
    user_id: str
    role: MemberRole = MemberRole.MEMBER
    status: MemberStatus = MemberStatus.PENDING
    join_date: datetime = Field(default_factory=datetime.utcnow)
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "organization_members"
        use_state_management = True
        indexes = [
            IndexModel(
                [("organization_id", pymongo.ASCENDING), ("user_id", pymongo.ASCENDING)],
                unique=True,
                name="organization_user_unique",
            ),
            IndexModel([("user_id", pymongo.ASCENDING), ("status", pymongo.ASCENDING)]),
        ]


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    logo: Optional[str] = None
    banner: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    join_policy: JoinPolicy = Field(default_factory=JoinPolicy)


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    logo: Optional[str] = None
    banner: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    status: Optional[OrganizationStatus] = None
    join_policy: Optional[JoinPolicy] = None


class MemberCreate(BaseModel):
    user_id: str
    role: MemberRole = MemberRole.MEMBER
    status: MemberStatus = MemberStatus.ACTIVE
    notes: Optional[str] = Field(default=None, max_length=1000)


class MemberUpdate(BaseModel):
    role: Optional[MemberRole] = None
    status: Optional[MemberStatus] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
