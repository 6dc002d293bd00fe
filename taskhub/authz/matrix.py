"""
Permission table and YAML loader.

The table maps (resource, role, operation) to an ordered set of scopes.

Key ideas:
- Load YAML once at startup; the loader rejects any table that does not
  define every resource x role x operation combination (an empty list is a
  valid definition, a missing key is not).
- ``lookup`` is a pure function over the loaded table and never raises for a
  combination drawn from the enumerations.
- The canonical JSON form and its SHA-256 fingerprint are what the advisory
  (client-side) copy is checked against.

The table is role-only. Whether ``crossOrg`` is usable depends on tenant
status, which is applied later by the scope resolver.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from taskhub.errors import ConfigurationError

from .enums import Operation, ResourceType, Role, Scope

logger = logging.getLogger(__name__)

_Key = tuple[ResourceType, Role, Operation]


def _parse_scopes(raw: Any, where: str) -> tuple[Scope, ...]:
    if not isinstance(raw, list):
        raise ConfigurationError(f"{where} must be a list of scopes")
    scopes: list[Scope] = []
    for value in raw:
        try:
            scope = Scope(value)
        except ValueError as exc:
            raise ConfigurationError(f"{where} has unknown scope {value!r}") from exc
        if scope in scopes:
            raise ConfigurationError(f"{where} lists scope {value!r} twice")
        scopes.append(scope)
    return tuple(scopes)


def _expect_mapping(raw: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{where} must be a mapping")
    return raw


def parse_permission_table(raw: Any) -> dict[_Key, tuple[Scope, ...]]:
    """
    Validate a ``resource -> role -> operation -> [scopes]`` mapping.

    Expected shape:

        Task:
          Manager:
            create: [ownDept]
            read: [ownDept]
            ...
    """

    resources = _expect_mapping(raw, "permission table")

    unknown = sorted(set(resources) - {r.value for r in ResourceType})
    if unknown:
        raise ConfigurationError(f"permission table has unknown resources: {unknown}")

    table: dict[_Key, tuple[Scope, ...]] = {}
    for resource in ResourceType:
        if resource.value not in resources:
            raise ConfigurationError(f"permission table is missing resource {resource.value!r}")
        roles = _expect_mapping(resources[resource.value], resource.value)

        unknown = sorted(set(roles) - {r.value for r in Role})
        if unknown:
            raise ConfigurationError(f"{resource.value} has unknown roles: {unknown}")

        for role in Role:
            where = f"{resource.value}.{role.value}"
            if role.value not in roles:
                raise ConfigurationError(f"permission table is missing {where}")
            operations = _expect_mapping(roles[role.value], where)

            unknown = sorted(set(operations) - {o.value for o in Operation})
            if unknown:
                raise ConfigurationError(f"{where} has unknown operations: {unknown}")

            for operation in Operation:
                if operation.value not in operations:
                    raise ConfigurationError(f"permission table is missing {where}.{operation.value}")
                table[(resource, role, operation)] = _parse_scopes(
                    operations[operation.value], f"{where}.{operation.value}"
                )
    return table


class PermissionMatrix:
    """
    In-memory, immutable permission table.

    Usage:
        matrix = PermissionMatrix.from_yaml(Path("permission_matrix.yaml"))
        scopes = matrix.lookup(ResourceType.TASK, Role.MANAGER, Operation.READ)
    """

    def __init__(self, table: Mapping[_Key, tuple[Scope, ...]]) -> None:
        missing = [
            (r, ro, o)
            for r in ResourceType
            for ro in Role
            for o in Operation
            if (r, ro, o) not in table
        ]
        if missing:
            r, ro, o = missing[0]
            raise ConfigurationError(f"permission table is missing {r.value}.{ro.value}.{o.value}")
        self._table = dict(table)
        self._fingerprint = hashlib.sha256(self.canonical_json().encode("utf-8")).hexdigest()

    @classmethod
    def from_mapping(cls, raw: Any) -> PermissionMatrix:
        return cls(parse_permission_table(raw))

    @classmethod
    def from_yaml(cls, path: Path) -> PermissionMatrix:
        """Load YAML and build the matrix in one step."""
        try:
            raw_text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"cannot read permission table {path}: {exc}") from exc
        try:
            raw = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"permission table {path} is not valid YAML") from exc
        matrix = cls.from_mapping(raw)
        logger.info("Loaded permission table path=%s fingerprint=%s", path, matrix.fingerprint)
        return matrix

    def lookup(self, resource_type: ResourceType, role: Role, operation: Operation) -> tuple[Scope, ...]:
        """Return the configured scopes, possibly empty."""
        return self._table[(ResourceType(resource_type), Role(role), Operation(operation))]

    def to_dict(self) -> dict[str, dict[str, dict[str, list[str]]]]:
        """Nested plain-data form, in enumeration order."""
        return {
            resource.value: {
                role.value: {
                    operation.value: [s.value for s in self._table[(resource, role, operation)]]
                    for operation in Operation
                }
                for role in Role
            }
            for resource in ResourceType
        }

    def canonical_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @property
    def fingerprint(self) -> str:
        return self._fingerprint

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PermissionMatrix):
            return NotImplemented
        return self._table == other._table

    def __hash__(self) -> int:
        return hash(self._fingerprint)
