"""
Request-time enforcement point.

``AuthorizationGate.authorize`` combines the permission table and the scope
resolver into a single ``Decision``. It never mutates state; callers act on
``allowed`` (or use ``require`` to raise ``AuthorizationDenied``).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from taskhub.errors import AuthorizationDenied

from .enums import HOD_ROLES, Operation, ResourceType, Role, Scope
from .matrix import PermissionMatrix
from .principal import Principal
from .scopes import ScopeFilter, ScopeResolver

logger = logging.getLogger(__name__)

# (department_id, excluded_user_id) -> number of other active HODs in that department
HodCounter = Callable[[int, int], int]


class DecisionReason(str, Enum):
    GRANTED = "granted"
    NO_PERMISSION = "no_permission"
    OUT_OF_SCOPE = "out_of_scope"
    LAST_HOD = "last_hod"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    scope: Scope | None
    reason: DecisionReason
    message: str
    # Set for record-less (list/create) decisions that were allowed.
    filter: ScopeFilter | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "scope": self.scope.value if self.scope else None,
            "reason": self.reason.value,
        }


def _removes_hod(record: Any, changes: Mapping[str, Any]) -> bool:
    """True if applying ``changes`` would take away ``record``'s HOD assignment. None means unchanged."""
    if not getattr(record, "is_hod", False):
        return False
    changes = {k: v for k, v in changes.items() if v is not None}
    if "is_hod" in changes and not changes["is_hod"]:
        return True
    if "role" in changes and Role(changes["role"]) not in HOD_ROLES:
        return True
    if "department_id" in changes and changes["department_id"] != getattr(record, "department_id", None):
        return True
    return False


class AuthorizationGate:
    """
    Usage:
        gate = AuthorizationGate(matrix, hod_counter=store_backed_counter)
        decision = gate.authorize(principal, ResourceType.TASK, Operation.READ, task)
    """

    def __init__(
        self,
        matrix: PermissionMatrix,
        resolver: ScopeResolver | None = None,
        *,
        hod_counter: HodCounter | None = None,
    ) -> None:
        self._matrix = matrix
        self._resolver = resolver or ScopeResolver()
        self._hod_counter = hod_counter

    @property
    def matrix(self) -> PermissionMatrix:
        return self._matrix

    def authorize(
        self,
        principal: Principal,
        resource_type: ResourceType,
        operation: Operation,
        record: Any = None,
        *,
        changes: Mapping[str, Any] | None = None,
    ) -> Decision:
        resource_type = ResourceType(resource_type)
        operation = Operation(operation)
        scopes = self._matrix.lookup(resource_type, principal.role, operation)

        if not scopes:
            return Decision(
                False,
                None,
                DecisionReason.NO_PERMISSION,
                f"role {principal.role.value} has no {operation.value} permission on {resource_type.value}",
            )

        if record is None:
            usable = self._resolver.usable_scopes(principal, scopes)
            if not usable:
                return Decision(
                    False,
                    None,
                    DecisionReason.OUT_OF_SCOPE,
                    f"no scope usable by a tenant principal for {operation.value} on {resource_type.value}",
                )
            return Decision(
                True,
                usable[0],
                DecisionReason.GRANTED,
                "granted",
                filter=self._resolver.visibility_filter(principal, usable, resource_type),
            )

        scope = self._resolver.matching_scope(principal, scopes, resource_type, record)
        if scope is None:
            return Decision(
                False,
                None,
                DecisionReason.OUT_OF_SCOPE,
                f"{resource_type.value} {getattr(record, 'id', '?')} is outside the "
                f"{'/'.join(s.value for s in scopes)} scope of principal {principal.id}",
            )

        if (
            resource_type is ResourceType.USER
            and operation is Operation.UPDATE
            and changes
            and _removes_hod(record, changes)
        ):
            # Without a counter the remaining HODs cannot be verified.
            others = self._hod_counter(record.department_id, record.id) if self._hod_counter else 0
            if others < 1:
                return Decision(
                    False,
                    scope,
                    DecisionReason.LAST_HOD,
                    f"user {record.id} is the only head of department {record.department_id}",
                )

        return Decision(True, scope, DecisionReason.GRANTED, "granted")

    def require(
        self,
        principal: Principal,
        resource_type: ResourceType,
        operation: Operation,
        record: Any = None,
        *,
        changes: Mapping[str, Any] | None = None,
    ) -> Decision:
        """Like ``authorize`` but raise ``AuthorizationDenied`` when not allowed."""
        decision = self.authorize(principal, resource_type, operation, record, changes=changes)
        if not decision.allowed:
            logger.warning(
                "Authorization denied principal=%s role=%s resource=%s operation=%s reason=%s: %s",
                principal.id,
                principal.role.value,
                ResourceType(resource_type).value,
                Operation(operation).value,
                decision.reason.value,
                decision.message,
            )
            raise AuthorizationDenied(
                decision,
                context={"resource_type": ResourceType(resource_type).value, "operation": Operation(operation).value},
            )
        return decision

    def permissions_for(self, principal: Principal) -> dict[str, dict[str, list[str]]]:
        """Usable scopes per resource and operation for ``principal``."""
        return {
            resource_type.value: {
                operation.value: [
                    s.value
                    for s in self._resolver.usable_scopes(
                        principal, self._matrix.lookup(resource_type, principal.role, operation)
                    )
                ]
                for operation in Operation
            }
            for resource_type in ResourceType
        }
