"""Organizations and their memberships."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pymongo.errors import DuplicateKeyError

from acetrack.api.deps import Session, ensure_permission
from acetrack.models.organization import (
    MemberCreate,
    MemberRole,
    MemberStatus,
    MemberUpdate,
    Organization,
    OrganizationCreate,
    OrganizationMember,
    OrganizationStatus,
    OrganizationUpdate,
)
from acetrack.models.user import User
from acetrack.services.ids import safe_object_id

router = APIRouter()


def serialize_organization(o: Organization) -> dict:
    return {
        "id": str(o.id),
        "name": o.name,
        "description": o.description,
        "logo": o.logo,
        "banner": o.banner,
        "contact_email": o.contact_email,
        "contact_phone": o.contact_phone,
        "website": o.website,
        "admin_user_id": o.admin_user_id,
        "status": o.status.value,
        "join_policy": o.join_policy.model_dump(),
        "created_at": o.created_at.isoformat(),
        "updated_at": o.updated_at.isoformat(),
    }


def serialize_member(m: OrganizationMember, user: Optional[User] = None) -> dict:
    return {
        "id": str(m.id),
        "organization_id": m.organization_id,
        "user_id": m.user_id,
        "role": m.role.value,
        "status": m.status.value,
        "join_date": m.join_date.isoformat(),
        "notes": m.notes,
        "email": user.email if user else None,
        "first_name": user.first_name if user else None,
        "last_name": user.last_name if user else None,
    }


async def get_organization(org_id: str) -> Organization:
    oid = safe_object_id(org_id)
    org = await Organization.get(oid) if oid else None
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


async def get_member(org_id: str, member_id: str) -> OrganizationMember:
    oid = safe_object_id(member_id)
    member = await OrganizationMember.get(oid) if oid else None
    if not member or member.organization_id != org_id:
        raise HTTPException(status_code=404, detail="Member not found")
    return member


async def _ensure_other_admin(member: OrganizationMember) -> None:
    """An organization keeps at least one active admin."""
    if member.role != MemberRole.ADMIN or member.status != MemberStatus.ACTIVE:
        return
    others = await OrganizationMember.find(
        {
            "organization_id": member.organization_id,
            "role": MemberRole.ADMIN.value,
            "status": MemberStatus.ACTIVE.value,
            "_id": {"$ne": member.id},
        }
    ).count()
    if others == 0:
        raise HTTPException(status_code=400, detail="Organization must keep at least one active admin")


@router.get("")
async def list_organizations(session: Session, discover: bool = Query(False)):
    """Organizations the caller belongs to; ``discover`` lists those open to public join."""
    if discover:
        query = {"status": OrganizationStatus.ACTIVE.value, "join_policy.allow_public_join": True}
    elif session.is_super_admin:
        query = {}
    else:
        oids = [safe_object_id(i) for i in session.organization_ids()]
        query = {"_id": {"$in": [o for o in oids if o]}}
    orgs = await Organization.find(query).sort("name").to_list()
    return [serialize_organization(o) for o in orgs]


@router.post("", status_code=201)
async def create_organization(data: OrganizationCreate, session: Session):
    now = datetime.utcnow()
    org = Organization(
        **data.model_dump(),
        admin_user_id=session.user_id,
        status=OrganizationStatus.ACTIVE if session.is_super_admin else OrganizationStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    await org.insert()
    await OrganizationMember(
        organization_id=str(org.id),
        user_id=session.user_id,
        role=MemberRole.ADMIN,
        status=MemberStatus.ACTIVE,
        join_date=now,
    ).insert()
    return serialize_organization(org)


@router.get("/{org_id}")
async def get_organization_detail(org_id: str, session: Session):
    org = await get_organization(org_id)
    ensure_permission(session, "organizations", "view", str(org.id))
    return serialize_organization(org)


@router.patch("/{org_id}")
async def update_organization(org_id: str, data: OrganizationUpdate, session: Session):
    org = await get_organization(org_id)
    ensure_permission(session, "organizations", "edit", str(org.id))
    updates = data.model_dump(exclude_unset=True)
    if "status" in updates and not session.is_super_admin:
        raise HTTPException(status_code=403, detail="Only a super admin can change organization status")
    if "join_policy" in updates:
        updates["join_policy"] = data.join_policy
    for field, value in updates.items():
        setattr(org, field, value)
    org.updated_at = datetime.utcnow()
    await org.save()
    return serialize_organization(org)


@router.delete("/{org_id}")
async def delete_organization(org_id: str, session: Session):
    org = await get_organization(org_id)
    ensure_permission(session, "organizations", "delete", str(org.id))
    await OrganizationMember.find(OrganizationMember.organization_id == str(org.id)).delete()
    await org.delete()
    return {"ok": True}


@router.get("/{org_id}/members")
async def list_members(org_id: str, session: Session):
    org = await get_organization(org_id)
    ensure_permission(session, "members", "view", str(org.id))
    members = await OrganizationMember.find(OrganizationMember.organization_id == str(org.id)).sort("join_date").to_list()
    oids = [o for o in (safe_object_id(m.user_id) for m in members) if o]
    users = {str(u.id): u for u in await User.find({"_id": {"$in": oids}}).to_list()}
    return [serialize_member(m, users.get(m.user_id)) for m in members]


@router.post("/{org_id}/members", status_code=201)
async def add_member(org_id: str, data: MemberCreate, session: Session):
    org = await get_organization(org_id)
    ensure_permission(session, "members", "add", str(org.id))
    oid = safe_object_id(data.user_id)
    user = await User.get(oid) if oid else None
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    member = OrganizationMember(
        organization_id=str(org.id),
        user_id=str(user.id),
        role=data.role,
        status=data.status,
        notes=data.notes,
    )
    try:
        await member.insert()
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User is already a member of this organization")
    return serialize_member(member, user)


@router.patch("/{org_id}/members/{member_id}")
async def update_member(org_id: str, member_id: str, data: MemberUpdate, session: Session):
    org = await get_organization(org_id)
    ensure_permission(session, "members", "edit", str(org.id))
    member = await get_member(str(org.id), member_id)
    updates = data.model_dump(exclude_unset=True)
    demoting = updates.get("role", member.role) != MemberRole.ADMIN or updates.get("status", member.status) != MemberStatus.ACTIVE
    if demoting:
        await _ensure_other_admin(member)
    for field, value in updates.items():
        setattr(member, field, value)
    member.updated_at = datetime.utcnow()
    await member.save()
    return serialize_member(member)


@router.delete("/{org_id}/members/{member_id}")
async def remove_member(org_id: str, member_id: str, session: Session):
    org = await get_organization(org_id)
    ensure_permission(session, "members", "delete", str(org.id))
    member = await get_member(str(org.id), member_id)
    await _ensure_other_admin(member)
    await member.delete()
    return {"ok": True}


@router.post("/{org_id}/join", status_code=201)
async def join_organization(org_id: str, session: Session):
    org = await get_organization(org_id)
    policy = org.join_policy
    if org.status != OrganizationStatus.ACTIVE or not policy.allow_public_join:
        raise HTTPException(status_code=403, detail="This organization does not accept join requests")
    if policy.max_members is not None:
        active = await OrganizationMember.find(
            {"organization_id": str(org.id), "status": MemberStatus.ACTIVE.value}
        ).count()
        if active >= policy.max_members:
            raise HTTPException(status_code=400, detail="Organization has reached its member limit")
    member = OrganizationMember(
        organization_id=str(org.id),
        user_id=session.user_id,
        role=MemberRole.MEMBER,
        status=MemberStatus.PENDING if policy.require_approval else MemberStatus.ACTIVE,
    )
    try:
        await member.insert()
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="You are already a member of this organization")
    return serialize_member(member, session.user)
