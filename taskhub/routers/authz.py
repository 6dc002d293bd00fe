from __future__ import annotations

from fastapi import APIRouter, Depends

from taskhub.authz.gate import AuthorizationGate
from taskhub.authz.matrix import PermissionMatrix
from taskhub.authz.principal import Principal
from taskhub.presence import PresenceTracker
from taskhub.schemas.authz import MatrixOut, OnlineUsersOut, PermissionsOut
from taskhub.security.dependencies import get_gate, get_matrix, get_presence, get_principal

router = APIRouter(tags=["authz"])


@router.get("/authz/matrix", response_model=MatrixOut)
def permission_matrix(
    principal: Principal = Depends(get_principal),
    matrix: PermissionMatrix = Depends(get_matrix),
) -> dict:
    # Clients verify the fingerprint before using their copy (see AdvisoryPermissions).
    return {"fingerprint": matrix.fingerprint, "matrix": matrix.to_dict()}


@router.get("/authz/permissions", response_model=PermissionsOut)
def my_permissions(
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
) -> dict:
    return {
        "principal": principal.to_dict(),
        "fingerprint": gate.matrix.fingerprint,
        "permissions": gate.permissions_for(principal),
    }


@router.get("/presence/online", response_model=OnlineUsersOut)
def online_users(
    principal: Principal = Depends(get_principal),
    presence: PresenceTracker = Depends(get_presence),
) -> dict:
    return {
        "organization_id": principal.organization_id,
        "user_ids": presence.online_users(principal.organization_id),
    }
