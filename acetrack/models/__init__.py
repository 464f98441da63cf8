"""Beanie document models and Pydantic schemas."""
from acetrack.models.user import User, UserCreate, ProfileUpdate
from acetrack.models.organization import (
    Organization,
    OrganizationMember,
    OrganizationStatus,
    OrganizationCreate,
    OrganizationUpdate,
    JoinPolicy,
    MemberRole,
    MemberStatus,
    MemberCreate,
    MemberUpdate,
)
from acetrack.models.subscription import (
    Subscription,
    SubscriptionDuration,
    SubscriptionStatus,
    SubscriptionCreate,
    SubscriptionUpdate,
    SubscriptionVerify,
)
from acetrack.models.event import Event, EventStatus, EventCreate, EventUpdate
from acetrack.models.attendance import (
    AttendanceRecord,
    CheckInMethod,
    StudentIdentity,
    CheckInRequest,
    CheckOutRequest,
    ScanMode,
    ScanRequest,
)
from acetrack.models.scan_log import ScanLog
from acetrack.models.news import NewsItem, NewsOut, NewsResponse

__all__ = [
    "User",
    "UserCreate",
    "ProfileUpdate",
    "Organization",
    "OrganizationMember",
    "OrganizationStatus",
    "OrganizationCreate",
    "OrganizationUpdate",
    "JoinPolicy",
    "MemberRole",
    "MemberStatus",
    "MemberCreate",
    "MemberUpdate",
    "Subscription",
    "SubscriptionDuration",
    "SubscriptionStatus",
    "SubscriptionCreate",
    "SubscriptionUpdate",
    "SubscriptionVerify",
    "Event",
    "EventStatus",
    "EventCreate",
    "EventUpdate",
    "AttendanceRecord",
    "CheckInMethod",
    "StudentIdentity",
    "CheckInRequest",
    "CheckOutRequest",
    "ScanMode",
    "ScanRequest",
    "ScanLog",
    "NewsItem",
    "NewsOut",
    "NewsResponse",
]
