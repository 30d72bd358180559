"""JWT token creation and decoding.

Token claims:
  - sub:                 user ID
  - role:                user role string
  - permissions:         list of "module:action" strings (authoritative when non-empty)
  - custom_permissions:  optional {module: {actions, fields, notifications}} overrides
  - package:             optional subscription package id
  - owner_package:       optional package id of the owning OWNER (STAFF tokens)
  - type:                "access"
  - exp:                 expiry timestamp
"""

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from bizdesk.auth.permissions import Permission, parse_permissions
from bizdesk.auth.roles import Role
from bizdesk.config import settings

logger = logging.getLogger(__name__)

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: str,
    role: str,
    permissions: list[str],
    custom_permissions: dict | None = None,
    package: str | None = None,
    owner_package: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "role": role,
        "permissions": permissions,
        "type": "access",
        "exp": expire,
    }
    if custom_permissions:
        payload["custom_permissions"] = custom_permissions
    if package:
        payload["package"] = package
    if owner_package:
        payload["owner_package"] = owner_package
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str | None) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    if not token:
        return {}
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Token decode failed: {e}")
        return {}


def extract_permissions(token: str | None) -> frozenset[Permission]:
    """Permissions claim of a token; empty on decode failure or missing claim."""
    claims = decode_token(token).get("permissions")
    if not isinstance(claims, list):
        return frozenset()
    return parse_permissions(claims)


def extract_role(token: str | None) -> Role | None:
    role = decode_token(token).get("role")
    if not role:
        return None
    return Role.coerce(role)


def extract_user_id(token: str | None) -> str | None:
    sub = decode_token(token).get("sub")
    return str(sub) if sub is not None else None
