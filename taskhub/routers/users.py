from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskhub.authz.conditions import FieldEquals
from taskhub.authz.enums import HOD_ROLES, Operation, ResourceType, Role, Scope
from taskhub.authz.gate import AuthorizationGate, Decision, DecisionReason
from taskhub.authz.principal import Principal
from taskhub.db.session import get_db
from taskhub.db.store import SqlEntityStore
from taskhub.errors import AuthorizationDenied, IntegrityBlocked, NotFound
from taskhub.models.tenancy import User
from taskhub.schemas.resources import UserOut, UserUpdateIn
from taskhub.security.dependencies import get_gate, get_principal, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

# Fields a user may not change through the ``own`` scope (their own profile).
PRIVILEGED_FIELDS = frozenset({"role", "is_hod", "department_id"})


@router.patch("/{id}", response_model=UserOut)
def update_user(
    id: int,
    payload: UserUpdateIn,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
    store: SqlEntityStore = Depends(get_store),
    db: Session = Depends(get_db),
) -> User:
    user = store.get(ResourceType.USER, id)
    if user is None:
        raise NotFound(f"User {id} not found")

    # An explicit null leaves the field unchanged.
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "role" in changes:
        changes["role"] = Role(changes["role"]).value

    decision = gate.require(principal, ResourceType.USER, Operation.UPDATE, user, changes=changes)

    privileged = sorted(PRIVILEGED_FIELDS & changes.keys())
    if decision.scope is Scope.OWN and privileged:
        denied = Decision(
            False,
            decision.scope,
            DecisionReason.OUT_OF_SCOPE,
            f"own-scope update cannot change {', '.join(privileged)}",
        )
        logger.warning("Authorization denied principal=%s user=%s fields=%s", principal.id, id, privileged)
        raise AuthorizationDenied(denied)

    new_role = Role(changes.get("role") or user.role)
    new_department_id = changes.get("department_id") or user.department_id
    if new_role not in HOD_ROLES and "is_hod" not in changes:
        changes["is_hod"] = False
    becomes_hod = changes.get("is_hod", user.is_hod)
    if becomes_hod and new_role not in HOD_ROLES:
        raise IntegrityBlocked("Only SuperAdmin or Admin users can be head of department", error_code="INVALID_HOD_ROLE")
    if new_department_id != user.department_id:
        department = store.get(ResourceType.DEPARTMENT, new_department_id)
        if department is None or department.organization_id != user.organization_id:
            raise NotFound(f"Department {new_department_id} not found")

    old_department_id = user.department_id
    if new_department_id != old_department_id and "is_hod" not in changes:
        # Headship belongs to the old department.
        changes["is_hod"] = False
    for field, value in changes.items():
        setattr(user, field, value)
    db.flush()

    _sync_department_hod(store, user, old_department_id)
    db.commit()
    db.refresh(user)
    logger.info("Updated user id=%s by=%s fields=%s", id, principal.id, sorted(changes))
    return user


def _sync_department_hod(store: SqlEntityStore, user: User, old_department_id: int) -> None:
    """Keep ``Department.hod_id`` pointing at an active head of that department."""
    if user.is_hod:
        department = store.get(ResourceType.DEPARTMENT, user.department_id)
        if department is not None and department.hod_id != user.id:
            department.hod_id = user.id

    old = store.get(ResourceType.DEPARTMENT, old_department_id)
    if old is not None and old.hod_id == user.id and (not user.is_hod or user.department_id != old.id):
        others = [
            u for u in store.find(
                ResourceType.USER, FieldEquals("department_id", old.id), FieldEquals("is_hod", True)
            ) if u.id != user.id
        ]
        old.hod_id = others[0].id if others else None
    store.session.flush()

