"""Shared dependencies for team-scoped routers."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Cookie, Header, HTTPException, status

from ...auth import resolve_subject
from ..errors import DomainError
from ..subscriptions import BillingSourceError

logger = logging.getLogger(__name__)

_SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


def get_caller_id(
    authorization: Optional[str] = Header(None),
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
) -> Optional[str]:
    """Resolve the caller from a bearer token, falling back to the session cookie.

    Returns ``None`` for anonymous or invalid credentials; the coordinator
    rejects those with ``AuthenticationRequired``.
    """

    token = None
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            token = credentials.strip()
    if token is None:
        token = session_token
    if not token:
        return None
    return resolve_subject(token)


@contextmanager
def domain_errors() -> Iterator[None]:
    """Translate domain and billing failures into HTTP responses."""

    try:
        yield
    except DomainError as exc:
        raise exc.to_http_exception() from exc
    except BillingSourceError as exc:
        logger.warning("Billing source unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Subscription service unavailable",
        ) from exc
