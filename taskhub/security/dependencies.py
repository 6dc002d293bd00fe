from __future__ import annotations

from functools import partial

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from taskhub.authz.conditions import FieldEquals
from taskhub.authz.enums import ResourceType
from taskhub.authz.gate import AuthorizationGate
from taskhub.authz.matrix import PermissionMatrix
from taskhub.authz.principal import Principal
from taskhub.db.session import get_db
from taskhub.db.store import SqlEntityStore
from taskhub.lifecycle.service import LifecycleService
from taskhub.presence import PresenceTracker
from taskhub.security.auth import extract_bearer_token, load_principal
from taskhub.security.tokens import user_id_from_token
from taskhub.settings import Settings, get_settings


def get_matrix(request: Request) -> PermissionMatrix:
    matrix = getattr(request.app.state, "permission_matrix", None)
    if matrix is None:
        raise RuntimeError("Permission table not loaded. Did app startup run?")
    return matrix


def get_presence(request: Request) -> PresenceTracker:
    presence = getattr(request.app.state, "presence", None)
    if presence is None:
        raise RuntimeError("Presence tracker not configured. Did app startup run?")
    return presence


def get_store(db: Session = Depends(get_db)) -> SqlEntityStore:
    return SqlEntityStore(db)


def count_other_hods(store: SqlEntityStore, department_id: int, exclude_user_id: int) -> int:
    """Active heads of ``department_id`` other than ``exclude_user_id``."""
    hods = store.find(
        ResourceType.USER,
        FieldEquals("department_id", department_id),
        FieldEquals("is_hod", True),
    )
    return sum(1 for user in hods if user.id != exclude_user_id)


def get_gate(
    matrix: PermissionMatrix = Depends(get_matrix),
    store: SqlEntityStore = Depends(get_store),
) -> AuthorizationGate:
    return AuthorizationGate(matrix, hod_counter=partial(count_other_hods, store))


def get_lifecycle_service(
    store: SqlEntityStore = Depends(get_store),
    gate: AuthorizationGate = Depends(get_gate),
) -> LifecycleService:
    return LifecycleService(store, gate)


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    presence: PresenceTracker = Depends(get_presence),
) -> Principal:
    """
    Principal supplier.

    Bearer JWT -> user id -> active user/organization/department -> Principal.
    The principal is also stored on ``request.state`` for error logging.
    """

    token = extract_bearer_token(request)
    user_id = user_id_from_token(token, settings)
    principal = load_principal(db, user_id)
    request.state.principal = principal
    presence.touch(principal)
    return principal
