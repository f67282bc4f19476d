"""Request identity — resolves the authenticated user behind a bearer JWT.

Only the metrics middleware needs identity, and only to track active users, so
anything unexpected (no header, bad signature, missing ``sub``) resolves to an
anonymous request rather than an error.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from pizza_telemetry.config import Settings, settings as default_settings


def _safe_str(value: object) -> str:
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value).strip()
    return ""


def decode_user_id(token: str, config: Settings = default_settings) -> Optional[str]:
    """Return the ``sub`` claim of a valid token, or None."""
    try:
        payload = jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except JWTError:
        return None
    return _safe_str(payload.get("sub")) or None


def resolve_user_id(request: Request, config: Settings = default_settings) -> Optional[str]:
    """Extract the user id from the request's ``Authorization: Bearer`` header."""
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return decode_user_id(token.strip(), config)
