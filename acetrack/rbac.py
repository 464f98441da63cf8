"""Organization role policy table, per-request session context and dashboard routing."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from acetrack.models.organization import MemberRole, MemberStatus, OrganizationMember
from acetrack.models.user import User

PermissionAction = Literal["view", "add", "edit", "delete"]

ACTION_BY_METHOD: dict[str, PermissionAction] = {
    "GET": "view",
    "HEAD": "view",
    "OPTIONS": "view",
    "POST": "add",
    "PUT": "edit",
    "PATCH": "edit",
    "DELETE": "delete",
}

SYSTEM_MODULES: list[dict[str, str]] = [
    {"key": "organizations", "name": "Organization Profile"},
    {"key": "members", "name": "Members"},
    {"key": "subscriptions", "name": "Subscriptions"},
    {"key": "events", "name": "Events"},
    {"key": "attendance", "name": "Attendance"},
]


def _full_permissions() -> dict[str, bool]:
    return {"view": True, "add": True, "edit": True, "delete": True}


def _view_only() -> dict[str, bool]:
    return {"view": True, "add": False, "edit": False, "delete": False}


def _module_defaults(fill: dict[str, bool]) -> dict[str, dict[str, bool]]:
    return {module["key"]: dict(fill) for module in SYSTEM_MODULES}


# role x module -> action -> allowed. Only active memberships are consulted.
ORG_ROLE_PERMISSIONS: dict[MemberRole, dict[str, dict[str, bool]]] = {
    MemberRole.ADMIN: _module_defaults(_full_permissions()),
    MemberRole.OFFICER: {
        **_module_defaults({"view": False, "add": False, "edit": False, "delete": False}),
        "organizations": _view_only(),
        "members": _view_only(),
        "events": {"view": True, "add": True, "edit": True, "delete": False},
        "attendance": {"view": True, "add": True, "edit": True, "delete": False},
    },
    MemberRole.MEMBER: {
        **_module_defaults({"view": False, "add": False, "edit": False, "delete": False}),
        "organizations": _view_only(),
        "events": _view_only(),
    },
}


def role_allows(role: MemberRole, module: str, action: str) -> bool:
    return bool(ORG_ROLE_PERMISSIONS.get(role, {}).get(module, {}).get(action, False))


@dataclass
class SessionContext:
    """Who is calling, resolved once per request."""

    user: User
    memberships: list[OrganizationMember] = field(default_factory=list)

    @property
    def user_id(self) -> str:
        return str(self.user.id)

    @property
    def is_super_admin(self) -> bool:
        return self.user.is_super_admin

    def active_memberships(self) -> list[OrganizationMember]:
        return [m for m in self.memberships if m.status == MemberStatus.ACTIVE]

    def membership_for(self, organization_id: str) -> Optional[OrganizationMember]:
        for m in self.active_memberships():
            if m.organization_id == organization_id:
                return m
        return None

    def organization_ids(self) -> list[str]:
        return [m.organization_id for m in self.active_memberships()]

    def can(self, module: str, action: str, organization_id: Optional[str]) -> bool:
        if self.is_super_admin:
            return True
        if not organization_id:
            return False
        membership = self.membership_for(organization_id)
        if membership is None:
            return False
        return role_allows(membership.role, module, action)


DASHBOARD_URLS = {
    "super-admin": "/dashboard",
    "org-admin": "/organization-dashboard",
    "member": "/my-dashboard",
    "no-access": "/no-access",
}


def dashboard_type(session: SessionContext) -> str:
    if session.is_super_admin:
        return "super-admin"
    active = session.active_memberships()
    if not active:
        return "no-access"
    if any(m.role == MemberRole.ADMIN for m in active):
        return "org-admin"
    return "member"


def dashboard_for(session: SessionContext) -> dict[str, str]:
    kind = dashboard_type(session)
    return {"type": kind, "url": DASHBOARD_URLS[kind]}


def primary_organization_id(session: SessionContext) -> Optional[str]:
    """Prefer an organization the user administers, else the first active one."""
    active = session.active_memberships()
    for m in active:
        if m.role == MemberRole.ADMIN:
            return m.organization_id
    return active[0].organization_id if active else None
