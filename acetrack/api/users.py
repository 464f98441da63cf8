"""Student profile, avatar upload and QR codes."""
from datetime import datetime

from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import ValidationError

from acetrack.api.deps import CurrentUser, Session, read_image_upload
from acetrack.models.attendance import StudentIdentity
from acetrack.models.user import ProfileUpdate, User
from acetrack.rbac import role_allows
from acetrack.services.qr_payload import encode_payload, render_qr_data_uri
from acetrack.services.s3 import upload_image_to_s3

router = APIRouter()


def serialize_user(u: User) -> dict:
    return {
        "id": str(u.id),
        "email": u.email,
        "is_super_admin": u.is_super_admin,
        "student_id": u.student_id,
        "first_name": u.first_name,
        "middle_name": u.middle_name,
        "last_name": u.last_name,
        "course_id": u.course_id,
        "year_level": u.year_level,
        "avatar": u.avatar,
    }


def identity_from_user(u: User) -> StudentIdentity:
    """Snapshot the user's profile as it would be printed on their QR code."""
    missing = [f for f in ("student_id", "course_id", "year_level") if getattr(u, f) is None]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Complete your student profile first (missing: {', '.join(missing)})",
        )
    try:
        return StudentIdentity(
            student_id=u.student_id,
            first_name=u.first_name,
            last_name=u.last_name,
            middle_name=u.middle_name,
            course_id=u.course_id,
            year_level=u.year_level,
            avatar=u.avatar,
        )
    except ValidationError:
        raise HTTPException(status_code=400, detail="Student profile is incomplete or invalid")


def _qr_response(identity: StudentIdentity) -> dict:
    payload = encode_payload(identity)
    return {"payload": payload, "qr_code": render_qr_data_uri(payload)}


@router.get("/users/me")
async def get_profile(user: CurrentUser):
    return serialize_user(user)


@router.patch("/users/me")
async def update_profile(data: ProfileUpdate, user: CurrentUser):
    for field, value in data.model_dump(exclude_unset=True).items():
        if isinstance(value, str):
            value = value.strip() or None
        if field in ("first_name", "last_name") and value is None:
            raise HTTPException(status_code=400, detail=f"{field} cannot be blank")
        setattr(user, field, value)
    user.updated_at = datetime.utcnow()
    await user.save()
    return serialize_user(user)


@router.get("/users/me/qr")
async def my_qr_code(user: CurrentUser):
    return _qr_response(identity_from_user(user))


@router.post("/users/me/avatar")
async def upload_avatar(user: CurrentUser, file: UploadFile = File(...)):
    body = await read_image_upload(file)
    url, _ = await upload_image_to_s3(body, file.filename, file.content_type, folder=f"avatars/{user.id}")
    user.avatar = url
    user.updated_at = datetime.utcnow()
    await user.save()
    return serialize_user(user)


@router.post("/qr/render")
async def render_qr(identity: StudentIdentity, session: Session):
    """QR generator for organization staff: identity in, payload and PNG out."""
    allowed = session.is_super_admin or any(
        role_allows(m.role, "attendance", "add") for m in session.active_memberships()
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="Missing attendance.add permission")
    return _qr_response(identity)
