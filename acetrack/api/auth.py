"""JWT-based stateless authentication."""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from acetrack.api.deps import (
    Session,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from acetrack.api.users import serialize_user
from acetrack.models.user import User, UserCreate
from acetrack.rbac import dashboard_for, primary_organization_id
from acetrack.services.ids import safe_object_id

router = APIRouter()


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


def _tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(str(user.id)),
        refresh_token=create_refresh_token(str(user.id)),
    )


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest):
    user = await User.find_one(User.email == req.email.strip().lower())
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(req.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _tokens(user)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: UserCreate):
    email = data.email.lower()
    existing = await User.find_one(User.email == email)
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(
        email=email,
        hashed_password=get_password_hash(data.password),
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        middle_name=data.middle_name,
        student_id=data.student_id,
        course_id=data.course_id,
        year_level=data.year_level,
    )
    await user.insert()
    return _tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(req: RefreshRequest):
    user_id = decode_token(req.refresh_token, "refresh")
    oid = safe_object_id(user_id)
    user = await User.get(oid) if oid else None
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return _tokens(user)


@router.get("/me")
async def me(session: Session):
    return {
        **serialize_user(session.user),
        "memberships": [
            {
                "organization_id": m.organization_id,
                "role": m.role.value,
                "status": m.status.value,
            }
            for m in session.memberships
        ],
        "primary_organization_id": primary_organization_id(session),
        "dashboard": dashboard_for(session),
    }
