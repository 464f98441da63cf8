import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta

import httpx
import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from acetrack.api.deps import create_access_token, get_password_hash
from acetrack.db import DOCUMENT_MODELS
from acetrack.main import app
from acetrack.models.attendance import StudentIdentity
from acetrack.models.event import Event, EventStatus
from acetrack.models.organization import (
    MemberRole,
    MemberStatus,
    Organization,
    OrganizationMember,
    OrganizationStatus,
)
from acetrack.models.user import User

T0 = datetime(2025, 3, 14, 9, 0, 0)


@pytest.fixture(autouse=True)
async def db():
    client = AsyncMongoMockClient()
    await init_beanie(database=client["acetrack_test"], document_models=DOCUMENT_MODELS)
    yield client["acetrack_test"]


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def make_user(email: str, *, super_admin: bool = False, **profile) -> User:
    fields = {"first_name": "Test", "last_name": "User"}
    fields.update(profile)
    user = User(
        email=email,
        hashed_password=get_password_hash("password123"),
        is_super_admin=super_admin,
        **fields,
    )
    await user.insert()
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


async def add_member(org: Organization, user: User, role: MemberRole, status: MemberStatus = MemberStatus.ACTIVE):
    member = OrganizationMember(organization_id=str(org.id), user_id=str(user.id), role=role, status=status)
    await member.insert()
    return member


@pytest.fixture
async def super_admin() -> User:
    return await make_user("root@acetrack.app", super_admin=True)


@pytest.fixture
async def org_admin() -> User:
    return await make_user("admin@cs.acetrack.app", first_name="Ada", last_name="Admin")


@pytest.fixture
async def officer() -> User:
    return await make_user("officer@cs.acetrack.app", first_name="Otto", last_name="Officer")


@pytest.fixture
async def student() -> User:
    return await make_user(
        "student@cs.acetrack.app",
        student_id="S-001",
        first_name="Maria",
        middle_name="Santos",
        last_name="Cruz",
        course_id=3,
        year_level=2,
    )


@pytest.fixture
async def organization(org_admin, officer, student) -> Organization:
    org = Organization(name="Computing Society", admin_user_id=str(org_admin.id), status=OrganizationStatus.ACTIVE)
    await org.insert()
    await add_member(org, org_admin, MemberRole.ADMIN)
    await add_member(org, officer, MemberRole.OFFICER)
    await add_member(org, student, MemberRole.MEMBER)
    return org


async def make_event(org: Organization, creator: User, status: EventStatus = EventStatus.ACTIVE, **fields) -> Event:
    event = Event(
        organization_id=str(org.id),
        name=fields.pop("name", "General Assembly"),
        status=status,
        start_datetime=fields.pop("start_datetime", T0),
        end_datetime=fields.pop("end_datetime", T0 + timedelta(hours=3)),
        created_by=str(creator.id),
        **fields,
    )
    await event.insert()
    return event


@pytest.fixture
async def event(organization, org_admin) -> Event:
    return await make_event(organization, org_admin)


@pytest.fixture
def identity() -> StudentIdentity:
    return StudentIdentity(
        student_id="S-001",
        first_name="Maria",
        middle_name="Santos",
        last_name="Cruz",
        course_id=3,
        year_level=2,
    )
