"""
Role-Based Access Control

Resolves the caller from an HS256 bearer token issued by the auth service
and gates endpoints by permission.
"""

import logging
from enum import Enum
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel, Field

from backend.config import get_settings

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """System roles."""
    ADMIN = "admin"
    PROCESSOR = "processor"
    SCHEDULER = "scheduler"


class Permission(str, Enum):
    """Granular permissions."""
    # Own shifts and earnings
    SHIFT_SELF = "shift:self"
    EARNINGS_SELF = "earnings:self"

    # Other processors
    SHIFT_READ_ALL = "shift:read_all"
    EARNINGS_READ_ALL = "earnings:read_all"

    # Deposits
    DEPOSIT_APPROVE = "deposit:approve"

    # Sweeps
    SWEEP_RUN = "sweep:run"

    # Admin
    ADMIN_RULES = "admin:rules"
    ADMIN_SHIFTS = "admin:shifts"


# Role-permission mapping
ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    Role.ADMIN: set(Permission),  # All permissions
    Role.PROCESSOR: {
        Permission.SHIFT_SELF,
        Permission.EARNINGS_SELF,
    },
    Role.SCHEDULER: {
        Permission.SWEEP_RUN,
        Permission.DEPOSIT_APPROVE,
    },
}


class CurrentUser(BaseModel):
    """Authenticated caller context."""
    id: UUID
    role: Role
    permissions: set[Permission] = Field(default_factory=set)

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions


async def get_current_user(request: Request) -> CurrentUser:
    """Extract and validate the caller from the Bearer token."""
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")

    token = auth_header.split(" ", 1)[1]
    user = _validate_token(token)

    # Picked up by the audit log middleware
    request.state.user_id = user.id
    request.state.user_role = user.role.value
    return user


def require_permission(*permissions: Permission):
    """Dependency that checks for specific permissions."""

    async def check(user: CurrentUser = Depends(get_current_user)):
        for perm in permissions:
            if not user.has_permission(perm):
                raise HTTPException(
                    status_code=403,
                    detail=f"Missing permission: {perm.value}",
                )
        return user

    return check


def resolve_processor(user: CurrentUser, processor_id: UUID | None, read_all: Permission) -> UUID:
    """
    The processor a request acts on.

    Callers act on themselves unless they hold ``read_all`` and name
    another processor.
    """
    if processor_id is None or processor_id == user.id:
        return user.id
    if not user.has_permission(read_all):
        raise HTTPException(status_code=403, detail=f"Missing permission: {read_all.value}")
    return processor_id


def create_access_token(sub: str, role: str, expires_in_minutes: int = 60) -> str:
    """Mint a token the way the auth service does; used by tests and tooling."""
    from datetime import datetime, timedelta, timezone

    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=expires_in_minutes),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def _validate_token(token: str) -> CurrentUser:
    """Validate JWT token and return caller context."""
    settings = get_settings()

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")

    try:
        role = Role(payload.get("role", Role.PROCESSOR.value))
        user_id = UUID(payload["sub"])
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail=f"Invalid token claims: {e}")

    return CurrentUser(
        id=user_id,
        role=role,
        permissions=ROLE_PERMISSIONS.get(role, set()),
    )
