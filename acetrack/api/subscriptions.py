"""Organization subscriptions and their verification."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from acetrack.api.deps import Session, SuperAdmin, ensure_permission
from acetrack.api.organizations import get_organization
from acetrack.models.subscription import (
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
    SubscriptionUpdate,
    SubscriptionVerify,
)
from acetrack.services.ids import safe_object_id
from acetrack.services.subscriptions import (
    calculate_end_date,
    expiring_filter,
    get_open_subscription,
    serialize_subscription,
    verify_subscription,
)

router = APIRouter()


async def get_subscription(subscription_id: str) -> Subscription:
    oid = safe_object_id(subscription_id)
    sub = await Subscription.get(oid) if oid else None
    if not sub:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return sub


@router.get("")
async def list_subscriptions(
    session: Session,
    organization_id: Optional[str] = Query(None),
    status: Optional[SubscriptionStatus] = Query(None),
    expiring: bool = Query(False),
):
    query: dict = expiring_filter() if expiring else {}
    if status and not expiring:
        query["status"] = status.value
    if organization_id:
        ensure_permission(session, "subscriptions", "view", organization_id)
        query["organization_id"] = organization_id
    elif not session.is_super_admin:
        visible = [o for o in session.organization_ids() if session.can("subscriptions", "view", o)]
        query["organization_id"] = {"$in": visible}
    subs = await Subscription.find(query).sort("-created_at").to_list()
    return [serialize_subscription(s) for s in subs]


@router.post("", status_code=201)
async def create_subscription(data: SubscriptionCreate, session: Session):
    ensure_permission(session, "subscriptions", "add", data.organization_id)
    org = await get_organization(data.organization_id)
    org_id = str(org.id)
    if await get_open_subscription(org_id):
        raise HTTPException(
            status_code=400,
            detail="Organization already has an active or pending subscription",
        )
    now = datetime.utcnow()
    sub = Subscription(
        **data.model_dump(exclude={"organization_id", "end_date"}),
        organization_id=org_id,
        end_date=data.end_date or calculate_end_date(data.start_date, data.duration),
        status=SubscriptionStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    await sub.insert()
    return serialize_subscription(sub)


@router.get("/{subscription_id}")
async def get_subscription_detail(subscription_id: str, session: Session):
    sub = await get_subscription(subscription_id)
    ensure_permission(session, "subscriptions", "view", sub.organization_id)
    return serialize_subscription(sub)


@router.patch("/{subscription_id}")
async def update_subscription(subscription_id: str, data: SubscriptionUpdate, session: Session):
    sub = await get_subscription(subscription_id)
    ensure_permission(session, "subscriptions", "edit", sub.organization_id)
    # null clears only the optional fields
    updates = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in ("payment_method", "notes")
    }
    if "status" in updates and not session.is_super_admin:
        raise HTTPException(status_code=403, detail="Only a super admin can change subscription status")
    for field, value in updates.items():
        setattr(sub, field, value)
    if ("duration" in updates or "start_date" in updates) and "end_date" not in updates:
        sub.end_date = calculate_end_date(sub.start_date, sub.duration)
    if sub.end_date <= sub.start_date:
        raise HTTPException(status_code=400, detail="End date must be after start date")
    sub.updated_at = datetime.utcnow()
    await sub.save()
    return serialize_subscription(sub)


@router.post("/{subscription_id}/verify")
async def verify(subscription_id: str, data: SubscriptionVerify, session: SuperAdmin):
    sub = await get_subscription(subscription_id)
    if sub.status != SubscriptionStatus.PENDING:
        raise HTTPException(status_code=400, detail="Only pending subscriptions can be verified")
    sub = await verify_subscription(sub, verified=data.verified, verified_by=session.user_id, notes=data.notes)
    return serialize_subscription(sub)
