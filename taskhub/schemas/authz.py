from __future__ import annotations

from pydantic import BaseModel


class PrincipalOut(BaseModel):
    id: int
    role: str
    organization_id: int
    department_id: int
    is_platform_principal: bool


class MatrixOut(BaseModel):
    """Advisory copy of the permission table; ``fingerprint`` is SHA-256 of its canonical JSON."""

    fingerprint: str
    matrix: dict[str, dict[str, dict[str, list[str]]]]


class PermissionsOut(BaseModel):
    principal: PrincipalOut
    fingerprint: str
    # resource -> operation -> usable scopes
    permissions: dict[str, dict[str, list[str]]]


class OnlineUsersOut(BaseModel):
    organization_id: int
    user_ids: list[int]
