from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .enums import Role


@dataclass(frozen=True)
class Principal:
    """
    The acting identity for one request.

    Built once by the principal supplier after authentication and never
    persisted by the core. Only platform principals may ever use the
    ``crossOrg`` scope.
    """

    id: int
    role: Role
    organization_id: int
    department_id: int
    is_platform_principal: bool = False

    @property
    def is_platform_super_admin(self) -> bool:
        return self.is_platform_principal and self.role is Role.SUPER_ADMIN

    @classmethod
    def from_user(cls, user: Any, *, is_platform_org: bool) -> Principal:
        """Derive the principal from a stored user; tenant status comes from the organization."""
        return cls(
            id=user.id,
            role=Role(user.role),
            organization_id=user.organization_id,
            department_id=user.department_id,
            is_platform_principal=bool(is_platform_org),
        )

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "id": self.id,
            "role": self.role.value,
            "organization_id": self.organization_id,
            "department_id": self.department_id,
            "is_platform_principal": self.is_platform_principal,
        }
