"""
Users Router — account management for staff.

Admins may manage accounts but cannot create or promote Super Admins;
only Super Admins may delete accounts, and nobody may delete themselves.
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, require
from core.errors import ConflictError, NotFoundError, PermissionDenied
from core.policy import Capability, Role, assert_can_grant
from core.security import hash_password
from db.models import User

router = APIRouter(prefix="/api/v1/users", tags=["users"])
logger = structlog.get_logger()

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ─── Schemas ────────────────────────────────────────────────────────────────


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    fullname: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8)
    role: Role = Role.USER


class UserUpdate(BaseModel):
    username: str | None = Field(None, min_length=1, max_length=100)
    fullname: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    password: str | None = Field(None, min_length=8)
    role: Role | None = None


class UserResponse(BaseModel):
    user_id: UUID
    username: str
    fullname: str
    email: str
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


async def _get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


async def _check_unique(db: AsyncSession, username: str | None, email: str | None, exclude_id: UUID | None = None):
    clauses = []
    if username:
        clauses.append(User.username == username)
    if email:
        clauses.append(User.email == email.strip().lower())
    if not clauses:
        return
    query = select(User).where(or_(*clauses))
    if exclude_id is not None:
        query = query.where(User.user_id != exclude_id)
    clash = (await db.execute(query.limit(1))).scalar_one_or_none()
    if clash is None:
        return
    if username and clash.username == username:
        raise ConflictError(f"Username {username} is already taken.", field="username")
    raise ConflictError(f"Email {email} is already registered.", field="email")


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[UserResponse])
async def list_users(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.MANAGE_USERS)),
):
    result = await db.execute(select(User).order_by(User.username))
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.MANAGE_USERS)),
):
    return await _get_user(db, user_id)


@router.post("/", response_model=UserResponse, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.MANAGE_USERS)),
):
    assert_can_grant(user, body.role)
    await _check_unique(db, body.username, body.email)

    account = User(
        username=body.username,
        fullname=body.fullname,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role.value,
    )
    db.add(account)
    await db.commit()
    await db.refresh(account)
    logger.info("user.created", username=account.username, role=account.role, by=user.get("username"))
    return account


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    update: UserUpdate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.MANAGE_USERS)),
):
    """Update profile fields; a password is only re-hashed when supplied."""
    account = await _get_user(db, user_id)
    changes = update.model_dump(exclude_unset=True, exclude_none=True)

    # Editing a Super Admin account counts as assigning that role.
    if "role" in changes:
        assert_can_grant(user, changes["role"])
    elif account.role == Role.SUPER_ADMIN.value:
        assert_can_grant(user, Role.SUPER_ADMIN)

    await _check_unique(db, changes.get("username"), changes.get("email"), exclude_id=user_id)

    password = changes.pop("password", None)
    if password:
        account.password_hash = hash_password(password)
    if "role" in changes:
        changes["role"] = changes["role"].value
    for field, value in changes.items():
        setattr(account, field, value)

    await db.commit()
    await db.refresh(account)
    logger.info("user.updated", username=account.username, by=user.get("username"))
    return account


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.DELETE_USERS)),
):
    if str(user_id) == str(user.get("sub")):
        raise PermissionDenied("You cannot delete your own account.")
    account = await _get_user(db, user_id)
    await db.delete(account)
    await db.commit()
    logger.info("user.deleted", username=account.username, by=user.get("username"))
