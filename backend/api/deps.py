"""
Waybill Tracker API Dependencies

Dependency injection for DB sessions, auth, the authorization gate and the
receiving services.
"""

from collections.abc import AsyncGenerator, Callable
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.policy import Capability, authorize
from core.security import decode_access_token
from db.models import User
from db.session import AsyncSessionLocal
from integrations.webhook import WebhookNotifier
from receiving.directory import ProductDirectory
from receiving.ledger import CountLedger
from receiving.lifecycle import WaybillLifecycle
from receiving.reconciliation import CountReconciler

settings = get_settings()
security = HTTPBearer(auto_error=not settings.debug)

DEV_USER_ID = "00000000-0000-0000-0000-000000000001"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Decode JWT and return user payload. Bypassed in debug mode.

    The role comes from the live ``users`` row, so a demotion or deletion
    takes effect before the token expires.
    """
    if settings.debug:
        return {
            "sub": DEV_USER_ID,
            "username": "dev",
            "role": "Super Admin",
        }

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        user_id = None
    account = await db.get(User, user_id) if user_id else None
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
        )
    return {**payload, "username": account.username, "role": account.role}


def require(capability: Capability) -> Callable:
    """Route dependency: the current user, after passing the policy gate."""

    async def _gate(user: dict = Depends(get_current_user)) -> dict:
        authorize(user, capability)
        return user

    return _gate


# ─── Services ───────────────────────────────────────────────────────────────


def get_notifier() -> WebhookNotifier:
    return WebhookNotifier.from_settings(get_settings())


def get_directory(db: AsyncSession = Depends(get_db)) -> ProductDirectory:
    return ProductDirectory(db)


def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    directory: ProductDirectory = Depends(get_directory),
    notifier: WebhookNotifier = Depends(get_notifier),
) -> WaybillLifecycle:
    return WaybillLifecycle(db, directory, notifier)


def get_reconciler(
    db: AsyncSession = Depends(get_db),
    directory: ProductDirectory = Depends(get_directory),
    notifier: WebhookNotifier = Depends(get_notifier),
) -> CountReconciler:
    return CountReconciler(db, directory, CountLedger(db), notifier)
