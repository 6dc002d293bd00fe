"""
Client-side (advisory) permission checks.

Clients receive ``{"fingerprint": ..., "matrix": ...}`` from
``GET /authz/matrix`` and use it to decide what to *show*. The server always
re-checks through the gate; this copy only has to agree with it, which is
why it is rebuilt through the same loader and resolver and refuses a payload
whose fingerprint does not match its content.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from taskhub.errors import ConfigurationError

from .enums import Operation, ResourceType, Scope
from .matrix import PermissionMatrix
from .principal import Principal
from .scopes import ScopeResolver


class AdvisoryPermissions:
    def __init__(self, matrix: PermissionMatrix, resolver: ScopeResolver | None = None) -> None:
        self._matrix = matrix
        self._resolver = resolver or ScopeResolver()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> AdvisoryPermissions:
        """Build from the served payload, verifying its fingerprint."""
        if "matrix" not in payload or "fingerprint" not in payload:
            raise ConfigurationError("advisory payload needs 'matrix' and 'fingerprint'")
        matrix = PermissionMatrix.from_mapping(payload["matrix"])
        if matrix.fingerprint != payload["fingerprint"]:
            raise ConfigurationError(
                "advisory permission table does not match its fingerprint",
                context={"expected": payload["fingerprint"], "actual": matrix.fingerprint},
            )
        return cls(matrix)

    @property
    def fingerprint(self) -> str:
        return self._matrix.fingerprint

    def check_permission(
        self, principal: Principal, resource_type: ResourceType, operation: Operation
    ) -> tuple[bool, tuple[Scope, ...]]:
        """Return ``(has_permission, usable_scopes)``."""
        scopes = self._resolver.usable_scopes(
            principal, self._matrix.lookup(ResourceType(resource_type), principal.role, Operation(operation))
        )
        return bool(scopes), scopes

    def can_perform(self, principal: Principal, resource_type: ResourceType, operation: Operation) -> bool:
        return self.check_permission(principal, resource_type, operation)[0]

    def highest_scope(
        self, principal: Principal, resource_type: ResourceType, operation: Operation
    ) -> Scope | None:
        _, scopes = self.check_permission(principal, resource_type, operation)
        return scopes[0] if scopes else None

    def can_access(
        self, principal: Principal, record: Any, operation: Operation, resource_type: ResourceType
    ) -> bool:
        if record is None:
            return False
        resource_type = ResourceType(resource_type)
        scopes = self._matrix.lookup(resource_type, principal.role, Operation(operation))
        return self._resolver.resolve(principal, scopes, resource_type, record)

    def all_permissions(self, principal: Principal) -> dict[str, dict[str, dict[str, Any]]]:
        result: dict[str, dict[str, dict[str, Any]]] = {}
        for resource_type in ResourceType:
            result[resource_type.value] = {}
            for operation in Operation:
                allowed, scopes = self.check_permission(principal, resource_type, operation)
                result[resource_type.value][operation.value] = {
                    "has_permission": allowed,
                    "allowed_scopes": [s.value for s in scopes],
                }
        return result
