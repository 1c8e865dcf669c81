"""Access tokens identifying the caller of team operations."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from .config import AppConfig, get_app_config


def create_access_token(
    *,
    subject: str,
    expires_delta: Optional[timedelta] = None,
    config: Optional[AppConfig] = None,
) -> str:
    settings = config or get_app_config()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_exp_minutes)
    payload = {"sub": subject, "exp": datetime.now(timezone.utc) + expires_delta}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def resolve_subject(token: str, *, config: Optional[AppConfig] = None) -> Optional[str]:
    """Return the ``sub`` claim of a valid token, ``None`` for anything else."""

    settings = config or get_app_config()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    subject = payload.get("sub")
    if subject is None or not str(subject).strip():
        return None
    return str(subject)
