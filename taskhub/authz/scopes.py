"""
Scope resolution.

Given a principal and the scopes the permission table grants it, decide
whether a specific record is visible (``resolve``) or describe the set of
visible records as a filter (``visibility_filter``).

Both paths are built from the same ``ScopeClause`` objects:
    crossOrg   -> no constraint
    crossDept  -> organization matches (no constraint for a platform SuperAdmin)
    ownDept    -> organization and department match
    own        -> any ownership predicate of the resource type matches

``crossOrg`` is dropped for non-platform principals before anything else is
evaluated, so it can never grant access to a tenant principal even when the
table lists it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .conditions import Condition, FieldEquals
from .enums import ResourceType, Scope
from .ownership import TENANCY, ownership_condition
from .principal import Principal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeClause:
    """Conjunction of conditions a record must satisfy under one scope. No conditions means unrestricted."""

    scope: Scope
    conditions: tuple[Condition, ...] = ()

    @property
    def unrestricted(self) -> bool:
        return not self.conditions

    def matches(self, record: Any) -> bool:
        return all(c.matches(record) for c in self.conditions)

    def describe(self) -> dict[str, Any]:
        return {"scope": self.scope.value, "all": [c.describe() for c in self.conditions]}


@dataclass(frozen=True)
class ScopeFilter:
    """
    Filter descriptor for list queries: a record is visible if it matches any clause.

    An empty filter admits nothing.
    """

    resource_type: ResourceType
    clauses: tuple[ScopeClause, ...]

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    @property
    def unrestricted(self) -> bool:
        return any(c.unrestricted for c in self.clauses)

    def matches(self, record: Any) -> bool:
        return any(c.matches(record) for c in self.clauses)

    def describe(self) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type.value,
            "any": [c.describe() for c in self.clauses],
        }


class ScopeResolver:
    """Stateless; identical inputs always produce identical outputs."""

    def usable_scopes(self, principal: Principal, allowed_scopes: Iterable[Scope]) -> tuple[Scope, ...]:
        """Allowed scopes minus ``crossOrg`` for tenant principals, broadest first."""
        scopes = Scope.broadest_first(Scope(s) for s in allowed_scopes)
        if not principal.is_platform_principal:
            scopes = tuple(s for s in scopes if s is not Scope.CROSS_ORG)
        return scopes

    def clause(self, principal: Principal, scope: Scope, resource_type: ResourceType) -> ScopeClause:
        tenancy = TENANCY[resource_type]
        same_org = FieldEquals(tenancy.organization, principal.organization_id)

        if scope is Scope.CROSS_ORG:
            return ScopeClause(scope)
        if scope is Scope.CROSS_DEPT:
            if principal.is_platform_super_admin:
                return ScopeClause(scope)
            return ScopeClause(scope, (same_org,))
        if scope is Scope.OWN_DEPT:
            if tenancy.department is None:
                # Organization records have no department of their own.
                return ScopeClause(scope, (same_org,))
            return ScopeClause(scope, (same_org, FieldEquals(tenancy.department, principal.department_id)))
        return ScopeClause(scope, (ownership_condition(resource_type, principal),))

    def matching_scope(
        self,
        principal: Principal,
        allowed_scopes: Iterable[Scope],
        resource_type: ResourceType,
        record: Any,
    ) -> Scope | None:
        """Return the broadest usable scope that admits ``record``, or None."""
        for scope in self.usable_scopes(principal, allowed_scopes):
            if self.clause(principal, scope, resource_type).matches(record):
                logger.debug(
                    "Scope match principal=%s resource=%s scope=%s",
                    principal.id,
                    resource_type.value,
                    scope.value,
                )
                return scope
        return None

    def resolve(
        self,
        principal: Principal,
        allowed_scopes: Iterable[Scope],
        resource_type: ResourceType,
        record: Any,
    ) -> bool:
        return self.matching_scope(principal, allowed_scopes, resource_type, record) is not None

    def visibility_filter(
        self,
        principal: Principal,
        allowed_scopes: Iterable[Scope],
        resource_type: ResourceType,
    ) -> ScopeFilter:
        """
        Translate the usable scopes into a filter descriptor.

        Every clause is one that ``resolve`` would also accept, so a row the
        filter admits is always resolvable by at least one allowed scope.
        """
        clauses: list[ScopeClause] = []
        for scope in self.usable_scopes(principal, allowed_scopes):
            clause = self.clause(principal, scope, resource_type)
            if clause.unrestricted:
                return ScopeFilter(resource_type, (clause,))
            if any(set(existing.conditions) <= set(clause.conditions) for existing in clauses):
                # A broader clause already admits everything this one does.
                continue
            clauses.append(clause)
        return ScopeFilter(resource_type, tuple(clauses))
