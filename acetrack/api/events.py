"""Events: CRUD with soft delete, restore and banner upload."""
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from acetrack.api.deps import Session, ensure_permission, read_image_upload, require_event_permission
from acetrack.api.organizations import get_organization
from acetrack.models.event import Event, EventCreate, EventStatus, EventUpdate
from acetrack.rbac import SessionContext
from acetrack.services.ids import safe_object_id
from acetrack.services.s3 import upload_image_to_s3

router = APIRouter()

# Members without event management rights only see these.
PUBLIC_EVENT_STATUSES = [EventStatus.ACTIVE.value, EventStatus.COMPLETED.value]

EventAccess = Annotated[Event, Depends(require_event_permission("events"))]


def serialize_event(e: Event) -> dict:
    return {
        "id": str(e.id),
        "organization_id": e.organization_id,
        "name": e.name,
        "description": e.description,
        "status": e.status.value,
        "start_datetime": e.start_datetime.isoformat(),
        "end_datetime": e.end_datetime.isoformat(),
        "location": e.location,
        "banner": e.banner,
        "is_mandatory": e.is_mandatory,
        "created_by": e.created_by,
        "deleted_at": e.deleted_at.isoformat() if e.deleted_at else None,
        "created_at": e.created_at.isoformat(),
        "updated_at": e.updated_at.isoformat(),
    }


def _visibility_query(session: SessionContext, organization_ids: list[str]) -> dict:
    """Managers see every status; plain members only active and completed events."""
    managed = [o for o in organization_ids if session.can("events", "add", o)]
    plain = [o for o in organization_ids if o not in managed]
    clauses: list[dict] = []
    if managed:
        clauses.append({"organization_id": {"$in": managed}})
    if plain:
        clauses.append({"organization_id": {"$in": plain}, "status": {"$in": PUBLIC_EVENT_STATUSES}})
    if not clauses:
        return {"_id": None}  # matches nothing
    return clauses[0] if len(clauses) == 1 else {"$or": clauses}


def _check_visible(session: SessionContext, event: Event) -> None:
    if session.can("events", "add", event.organization_id):
        return
    if event.status.value not in PUBLIC_EVENT_STATUSES:
        raise HTTPException(status_code=404, detail="Event not found")


@router.get("")
async def list_events(
    session: Session,
    organization_id: Optional[str] = Query(None),
    status: Optional[EventStatus] = Query(None),
    include_deleted: bool = Query(False),
):
    if include_deleted and not session.is_super_admin:
        raise HTTPException(status_code=403, detail="Only a super admin can list deleted events")

    if session.is_super_admin:
        query: dict = {"organization_id": organization_id} if organization_id else {}
    else:
        org_ids = session.organization_ids()
        if organization_id:
            if organization_id not in org_ids:
                raise HTTPException(status_code=403, detail="Missing events.view permission")
            org_ids = [organization_id]
        query = _visibility_query(session, org_ids)

    conditions = [query] if query else []
    if status:
        conditions.append({"status": status.value})
    if not include_deleted:
        conditions.append({"deleted_at": None})
    events = await Event.find({"$and": conditions} if conditions else {}).sort("-start_datetime").to_list()
    return [serialize_event(e) for e in events]


@router.post("", status_code=201)
async def create_event(data: EventCreate, session: Session):
    ensure_permission(session, "events", "add", data.organization_id)
    org = await get_organization(data.organization_id)
    now = datetime.utcnow()
    event = Event(
        **data.model_dump(exclude={"organization_id"}),
        organization_id=str(org.id),
        created_by=session.user_id,
        created_at=now,
        updated_at=now,
    )
    await event.insert()
    return serialize_event(event)


@router.get("/{event_id}")
async def get_event_detail(event: EventAccess, session: Session):
    _check_visible(session, event)
    return serialize_event(event)


@router.patch("/{event_id}")
async def update_event(data: EventUpdate, event: EventAccess):
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "status", "start_datetime", "end_datetime", "is_mandatory"):
            continue
        setattr(event, field, value)
    if event.end_datetime <= event.start_datetime:
        raise HTTPException(status_code=400, detail="End time must be after start time")
    event.updated_at = datetime.utcnow()
    await event.save()
    return serialize_event(event)


@router.delete("/{event_id}")
async def delete_event(event: EventAccess):
    """Soft delete; attendance records are kept."""
    now = datetime.utcnow()
    event.deleted_at = now
    event.updated_at = now
    await event.save()
    return {"ok": True}


@router.post("/{event_id}/restore")
async def restore_event(event_id: str, session: Session):
    oid = safe_object_id(event_id)
    event = await Event.get(oid) if oid else None
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    ensure_permission(session, "events", "delete", event.organization_id)
    if not event.is_deleted:
        raise HTTPException(status_code=400, detail="Event is not deleted")
    event.deleted_at = None
    event.updated_at = datetime.utcnow()
    await event.save()
    return serialize_event(event)


@router.post("/{event_id}/banner")
async def upload_banner(event: EventAccess, session: Session, file: UploadFile = File(...)):
    ensure_permission(session, "events", "edit", event.organization_id)
    body = await read_image_upload(file)
    url, _ = await upload_image_to_s3(body, file.filename, file.content_type, folder=f"banners/{event.id}")
    event.banner = url
    event.updated_at = datetime.utcnow()
    await event.save()
    return serialize_event(event)
