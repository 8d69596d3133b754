"""
Pydantic models for user profiles and roles.

Profiles are 1:1 with auth.users and live in the `users` table.

Roles have one canonical representation, the `roles` collection. Legacy rows
may still carry a singular `role` column; it is migrated when the row is
read (see coerce_roles) and can be backfilled once with
scripts/migrate_legacy_roles.py.
"""

import logging
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


class Role(str, Enum):
    SUBMITTER = "submitter"
    APPROVER = "approver"
    REJECTOR = "rejector"
    DELETER = "deleter"
    ADMIN = "admin"
    USER = "user"


DEFAULT_ROLES: List[Role] = [Role.USER]


def coerce_roles(raw_roles: Any, legacy_role: Any = None) -> List[Role]:
    """
    Reconcile the roles collection with the legacy singular role.

    - collection present (even empty) wins; a bare string is wrapped
    - otherwise the singular role is wrapped into a one-element list
    - otherwise the default ["user"]

    Unknown role labels are dropped with a warning. A stored collection made
    only of unknown labels falls back to ["user"], so it never grants less
    than a missing profile does; an explicitly empty collection stays empty.
    """
    if raw_roles is not None:
        values = raw_roles if isinstance(raw_roles, (list, tuple)) else [raw_roles]
    elif legacy_role:
        values = [legacy_role]
    else:
        return list(DEFAULT_ROLES)

    roles: List[Role] = []
    for value in values:
        try:
            role = Role(value)
        except ValueError:
            logger.warning(f"Ignoring unknown role label: {value!r}")
            continue
        if role not in roles:
            roles.append(role)

    if values and not roles:
        return list(DEFAULT_ROLES)

    return roles


def role_satisfied(roles: Iterable[Role], role: Role) -> bool:
    """True if `role` is granted by `roles`; admin satisfies every check."""
    granted = set(roles)
    return Role.ADMIN in granted or Role(role) in granted


class Profile(BaseModel):
    """Application-level user record (distinct from the auth identity)."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="User UUID (equal to auth.users.id)")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Contact email")
    roles: List[Role] = Field(default_factory=lambda: list(DEFAULT_ROLES))
    created_at: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy_role(cls, data: Any) -> Any:
        """Fold the legacy `role` column into `roles`."""
        if isinstance(data, dict):
            data = dict(data)
            legacy_role = data.pop("role", None)
            data["roles"] = coerce_roles(data.get("roles"), legacy_role)
        return data

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles
