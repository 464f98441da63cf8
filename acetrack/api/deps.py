"""Shared dependencies: JWT auth, session context and policy checks."""
from datetime import datetime, timedelta
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, HTTPException, Request, UploadFile, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from acetrack.config import settings
from acetrack.models.organization import OrganizationMember
from acetrack.models.user import User
from acetrack.models.event import Event
from acetrack.rbac import ACTION_BY_METHOD, PermissionAction, SessionContext
from acetrack.services.attendance import get_event
from acetrack.services.ids import safe_object_id
from acetrack.services.s3 import ALLOWED_IMAGE_TYPES, MAX_IMAGE_BYTES

security = HTTPBearer(auto_error=False)


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(subject: str) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    to_encode = {"sub": subject, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(subject: str) -> str:
    expire = datetime.utcnow() + timedelta(days=settings.jwt_refresh_token_expire_days)
    to_encode = {"sub": subject, "exp": expire, "type": "refresh"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str) -> str:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if payload.get("type") != expected_type:
        raise HTTPException(status_code=401, detail="Invalid token type")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> User:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = decode_token(credentials.credentials, "access")
    oid = safe_object_id(user_id)
    user = await User.get(oid) if oid else None
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user


async def get_session(user: Annotated[User, Depends(get_current_user)]) -> SessionContext:
    memberships = await OrganizationMember.find(OrganizationMember.user_id == str(user.id)).to_list()
    return SessionContext(user=user, memberships=memberships)


def require_super_admin(session: Annotated[SessionContext, Depends(get_session)]) -> SessionContext:
    if not session.is_super_admin:
        raise HTTPException(status_code=403, detail="Super admin access required")
    return session


def ensure_permission(
    session: SessionContext,
    module: str,
    action: PermissionAction,
    organization_id: Optional[str],
) -> None:
    if not session.can(module, action, organization_id):
        raise HTTPException(status_code=403, detail=f"Missing {module}.{action} permission")


# Type aliases for route injection
CurrentUser = Annotated[User, Depends(get_current_user)]
Session = Annotated[SessionContext, Depends(get_session)]
SuperAdmin = Annotated[SessionContext, Depends(require_super_admin)]


def require_event_permission(module: str):
    """Resolve ``{event_id}`` and check the caller's role in the owning organization."""

    async def checker(
        event_id: str,
        request: Request,
        session: Annotated[SessionContext, Depends(get_session)],
    ) -> Event:
        method = request.method.upper()
        action = ACTION_BY_METHOD.get(method)
        if not action:
            raise HTTPException(status_code=405, detail=f"Unsupported method for permission check: {method}")
        event = await get_event(event_id)
        ensure_permission(session, module, action, event.organization_id)
        return event

    return checker


async def read_image_upload(file: UploadFile) -> bytes:
    """Read an uploaded image, rejecting non-images and oversized files."""
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="File must be a JPEG, PNG, WebP or GIF image")
    body = await file.read()
    if not body:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(body) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Image must be 5 MB or smaller")
    return body
