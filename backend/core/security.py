"""
Waybill Tracker Security Utilities

bcrypt password hashes for staff accounts and the HS256 bearer tokens the
API issues at login. A token's claims are the request principal used by
``core.policy``: ``sub`` (user id), ``username`` and ``role``.
"""

from datetime import datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from core.config import get_settings

PRINCIPAL_CLAIMS = ("sub", "username", "role")

_passwords = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return _passwords.hash(password)


def verify_password(candidate: str, password_hash: str) -> bool:
    return _passwords.verify(candidate, password_hash)


def create_access_token(principal: dict, expires_delta: timedelta | None = None) -> str:
    """Sign the principal claims, valid for ``access_token_hours`` by default."""
    settings = get_settings()
    lifetime = expires_delta or timedelta(hours=settings.access_token_hours)
    claims = {key: principal[key] for key in PRINCIPAL_CLAIMS}
    claims["exp"] = datetime.utcnow() + lifetime
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Return the principal for a valid token; None if bad, expired or incomplete."""
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if any(not claims.get(key) for key in PRINCIPAL_CLAIMS):
        return None
    return {key: claims[key] for key in PRINCIPAL_CLAIMS}
