"""
Authentication dependencies for FastAPI.

Supports two auth modes:
1. Cookie-based session: httpOnly cookie contains the access token
2. Bearer token: Authorization header with Bearer token

Tokens are issued by the identity service; this module only verifies them and
resolves the user (with roles) from the store.
"""

import logging
import uuid
from typing import Any

from fastapi import Cookie, Depends, Header, HTTPException
from pydantic import BaseModel

from .. import repo
from ..config import DEV_MODE
from ..deps import get_db
from .security import decode_access_token

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "wavelength_session"


class AuthErrorDetail(BaseModel):
    message: str = "unauthorized"
    reason: str
    trace_id: str


class AuthError(Exception):
    """Raised when authentication fails with detailed reason."""

    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _unauthorized(message: str, reason: str, trace_id: str, status_code: int = 401) -> HTTPException:
    if DEV_MODE:
        detail: dict[str, Any] = AuthErrorDetail(message=message, reason=reason, trace_id=trace_id).model_dump()
    else:
        detail = {"message": message, "trace_id": trace_id}
    return HTTPException(status_code=status_code, detail=detail)


def _log_auth_failure(reason: str, trace_id: str, auth_source: str | None = None, user_id: str | None = None) -> None:
    logger.warning(f"[AUTH_FAILURE] trace_id={trace_id} reason={reason} auth_source={auth_source} user_id={user_id}")


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def _validate_token_and_get_user(db, token: str, trace_id: str, auth_source: str) -> dict[str, Any]:
    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        if e.status_code >= 500:
            raise
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        _log_auth_failure(reason, trace_id, auth_source)
        raise _unauthorized("unauthorized", reason, trace_id)

    user_id = str(payload.get("sub") or "")
    if not user_id:
        _log_auth_failure("token_missing_subject", trace_id, auth_source)
        raise _unauthorized("unauthorized", "token_missing_subject", trace_id)

    user = repo.get_user(db, user_id)
    if not user:
        _log_auth_failure("token_user_not_found", trace_id, auth_source, user_id)
        raise _unauthorized("unauthorized", "token_user_not_found", trace_id)

    logger.debug(f"[auth] SUCCESS user_id={user_id} roles={user.get('roles')}")
    return user


def get_current_user(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
    db=Depends(get_db),
) -> dict[str, Any]:
    """Resolve the caller from the session cookie, falling back to a bearer token."""
    trace_id = str(uuid.uuid4())

    if session_token:
        return _validate_token_and_get_user(db, session_token, trace_id, "cookie")

    if authorization:
        try:
            token = _extract_bearer(authorization)
        except AuthError as e:
            _log_auth_failure(e.reason, e.trace_id, auth_source="bearer")
            raise _unauthorized(e.detail, e.reason, e.trace_id)
        return _validate_token_and_get_user(db, token, trace_id, "bearer")

    _log_auth_failure("missing_token", trace_id, auth_source="none")
    raise _unauthorized("Authentication required", "missing_token", trace_id)


def require_admin(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    if not repo.is_admin(current_user):
        logger.warning(f"[auth] admin route refused for user_id={current_user.get('id')}")
        raise HTTPException(status_code=403, detail="Admin role required")
    return current_user
