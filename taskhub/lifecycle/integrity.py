"""
Graph-consistency checks run before a soft delete or restore is committed.

Rules are small named objects evaluated in a fixed order; the first one that
returns a ``Blocked`` wins. They only read from the store.

Delete:   platform organization, department still staffed, last SuperAdmin,
          tenant boundary.
Restore:  parent deleted, dependency deleted, assignee liveness,
          comment/attachment parent chain, tenant boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from taskhub.authz.conditions import FieldEquals
from taskhub.authz.enums import ResourceType, Role
from taskhub.authz.ownership import organization_of
from taskhub.authz.principal import Principal
from taskhub.errors import IntegrityBlocked, TenantViolation

from .graph import (
    COMMENT_PARENT_TYPES,
    DEPENDENCIES,
    MAX_PARENT_CHAIN,
    TaskType,
    parents_of,
    primary_parent,
)
from .store import EntityStore

logger = logging.getLogger(__name__)

RESTORE_BLOCKED_PARENT_DELETED = "RESTORE_BLOCKED_PARENT_DELETED"
RESTORE_BLOCKED_DEPENDENCY_DELETED = "RESTORE_BLOCKED_DEPENDENCY_DELETED"
ASSIGNED_TASK_NO_ACTIVE_ASSIGNEES = "ASSIGNED_TASK_NO_ACTIVE_ASSIGNEES"
COMMENT_PARENT_CHAIN_INVALID = "COMMENT_PARENT_CHAIN_INVALID"
ATTACHMENT_PARENT_CHAIN_INVALID = "ATTACHMENT_PARENT_CHAIN_INVALID"
CROSS_ORG_VIOLATION = "CROSS_ORG_VIOLATION"
DEPARTMENT_HAS_ACTIVE_USERS = "DEPARTMENT_HAS_ACTIVE_USERS"
LAST_SUPER_ADMIN = "LAST_SUPER_ADMIN"
PLATFORM_ORG_PROTECTED = "PLATFORM_ORG_PROTECTED"


@dataclass(frozen=True)
class Blocked:
    code: str
    message: str

    @property
    def is_tenant_violation(self) -> bool:
        return self.code == CROSS_ORG_VIOLATION


@dataclass(frozen=True)
class RuleContext:
    store: EntityStore
    resource_type: ResourceType
    entity: Any
    principal: Principal
    # Users to (re)assign together with restoring an AssignedTask.
    assignee_ids: tuple[Any, ...] = field(default_factory=tuple)


class IntegrityRule:
    name: str = "rule"

    def check(self, ctx: RuleContext) -> Blocked | None:  # pragma: no cover (abstract)
        raise NotImplementedError


def _is_active(store: EntityStore, resource_type: ResourceType, entity_id: Any) -> bool:
    record = store.get(resource_type, entity_id, include_deleted=True)
    return record is not None and not record.is_deleted


class TenantBoundary(IntegrityRule):
    """
    The principal and the entity must belong to the same organization.

    Applies to platform principals too. The one exception is a platform
    principal acting on an Organization record itself, which is how tenants
    are administered.
    """

    name = "tenant_boundary"

    def check(self, ctx: RuleContext) -> Blocked | None:
        if ctx.resource_type is ResourceType.ORGANIZATION and ctx.principal.is_platform_principal:
            return None
        entity_org = organization_of(ctx.resource_type, ctx.entity)
        if entity_org != ctx.principal.organization_id:
            return Blocked(
                CROSS_ORG_VIOLATION,
                f"{ctx.resource_type.value} {ctx.entity.id} belongs to another organization",
            )
        return None


class PlatformOrganizationProtected(IntegrityRule):
    name = "platform_organization"

    def check(self, ctx: RuleContext) -> Blocked | None:
        if ctx.resource_type is ResourceType.ORGANIZATION and getattr(ctx.entity, "is_platform_org", False):
            return Blocked(PLATFORM_ORG_PROTECTED, "The platform organization cannot be deleted")
        return None


class DepartmentHasActiveUsers(IntegrityRule):
    name = "department_has_active_users"

    def check(self, ctx: RuleContext) -> Blocked | None:
        if ctx.resource_type is not ResourceType.DEPARTMENT:
            return None
        users = ctx.store.count(ResourceType.USER, FieldEquals("department_id", ctx.entity.id))
        if users:
            return Blocked(
                DEPARTMENT_HAS_ACTIVE_USERS,
                f"Department {ctx.entity.id} is still the home department of {users} active user(s)",
            )
        return None


class LastSuperAdmin(IntegrityRule):
    name = "last_super_admin"

    def check(self, ctx: RuleContext) -> Blocked | None:
        if ctx.resource_type is not ResourceType.USER or Role(ctx.entity.role) is not Role.SUPER_ADMIN:
            return None
        remaining = ctx.store.count(
            ResourceType.USER,
            FieldEquals("organization_id", ctx.entity.organization_id),
            FieldEquals("role", Role.SUPER_ADMIN.value),
        )
        if remaining <= 1:
            return Blocked(LAST_SUPER_ADMIN, "Cannot delete the last SuperAdmin in the organization")
        return None


class ParentActive(IntegrityRule):
    name = "parent_active"

    def check(self, ctx: RuleContext) -> Blocked | None:
        try:
            parents = parents_of(ctx.resource_type, ctx.entity)
        except ValueError:
            # Unresolvable polymorphic parent; reported by ParentChainValid.
            return None
        for parent_type, parent_id in parents:
            if not _is_active(ctx.store, parent_type, parent_id):
                return Blocked(
                    RESTORE_BLOCKED_PARENT_DELETED,
                    f"Cannot restore {ctx.resource_type.value} because its parent "
                    f"{parent_type.value} {parent_id} is deleted. Restore the parent first.",
                )
        return None


class DependenciesActive(IntegrityRule):
    name = "dependencies_active"

    def check(self, ctx: RuleContext) -> Blocked | None:
        for dependency in DEPENDENCIES.get(ctx.resource_type, ()):
            if dependency.many:
                ids: Iterable[Any] = ctx.store.related_ids(ctx.entity, dependency.field)
            else:
                value = getattr(ctx.entity, dependency.field, None)
                ids = () if value is None else (value,)
            for dependency_id in ids:
                if not _is_active(ctx.store, dependency.resource_type, dependency_id):
                    return Blocked(
                        RESTORE_BLOCKED_DEPENDENCY_DELETED,
                        f"Cannot restore {ctx.resource_type.value} because {dependency.resource_type.value} "
                        f"{dependency_id} is deleted",
                    )
        return None


class AssigneeLiveness(IntegrityRule):
    name = "assignee_liveness"

    def check(self, ctx: RuleContext) -> Blocked | None:
        if ctx.resource_type is not ResourceType.TASK or ctx.entity.task_type != TaskType.ASSIGNED.value:
            return None
        candidates = list(ctx.store.related_ids(ctx.entity, "assignees")) + list(ctx.assignee_ids)
        for user_id in candidates:
            user = ctx.store.get(ResourceType.USER, user_id)
            if user is not None and user.organization_id == ctx.entity.organization_id:
                return None
        return Blocked(
            ASSIGNED_TASK_NO_ACTIVE_ASSIGNEES,
            "Cannot restore an assigned task without at least one active assignee",
        )


class ParentChainValid(IntegrityRule):
    """Every link from a comment or attachment up to its root task must be active."""

    name = "parent_chain_valid"

    _CODES = {
        ResourceType.TASK_COMMENT: COMMENT_PARENT_CHAIN_INVALID,
        ResourceType.ATTACHMENT: ATTACHMENT_PARENT_CHAIN_INVALID,
    }

    def check(self, ctx: RuleContext) -> Blocked | None:
        code = self._CODES.get(ctx.resource_type)
        if code is None:
            return None

        visited: set[tuple[ResourceType, Any]] = set()
        current_type, current = ctx.resource_type, ctx.entity
        for _ in range(MAX_PARENT_CHAIN):
            try:
                link = primary_parent(current_type, current)
            except ValueError as exc:
                return Blocked(code, str(exc))
            if link is None:
                return Blocked(code, f"{current_type.value} {current.id} has no parent")
            if link in visited:
                return Blocked(code, "Parent chain contains a cycle")
            visited.add(link)

            parent_type, parent_id = link
            parent = ctx.store.get(parent_type, parent_id, include_deleted=True)
            if parent is None or parent.is_deleted:
                return Blocked(code, f"{parent_type.value} {parent_id} in the parent chain is deleted")
            if parent_type is ResourceType.TASK:
                return None
            if parent_type not in COMMENT_PARENT_TYPES:
                return Blocked(code, f"{parent_type.value} cannot appear in a comment chain")
            current_type, current = parent_type, parent
        return Blocked(code, f"Parent chain is longer than {MAX_PARENT_CHAIN} links")


DELETE_RULES: tuple[IntegrityRule, ...] = (
    PlatformOrganizationProtected(),
    DepartmentHasActiveUsers(),
    LastSuperAdmin(),
    TenantBoundary(),
)

RESTORE_RULES: tuple[IntegrityRule, ...] = (
    ParentActive(),
    DependenciesActive(),
    AssigneeLiveness(),
    ParentChainValid(),
    TenantBoundary(),
)


class IntegrityValidator:
    def __init__(
        self,
        store: EntityStore,
        *,
        delete_rules: Sequence[IntegrityRule] = DELETE_RULES,
        restore_rules: Sequence[IntegrityRule] = RESTORE_RULES,
    ) -> None:
        self._store = store
        self._delete_rules = tuple(delete_rules)
        self._restore_rules = tuple(restore_rules)

    def _first_block(self, rules: Sequence[IntegrityRule], ctx: RuleContext) -> Blocked | None:
        for rule in rules:
            blocked = rule.check(ctx)
            if blocked is not None:
                logger.debug("Integrity rule %s blocked %s %s", rule.name, ctx.resource_type.value, ctx.entity.id)
                return blocked
        return None

    def before_delete(self, resource_type: ResourceType, entity: Any, principal: Principal) -> Blocked | None:
        return self._first_block(self._delete_rules, RuleContext(self._store, resource_type, entity, principal))

    def before_restore(
        self,
        resource_type: ResourceType,
        entity: Any,
        principal: Principal,
        *,
        assignee_ids: Iterable[Any] = (),
    ) -> Blocked | None:
        ctx = RuleContext(self._store, resource_type, entity, principal, tuple(assignee_ids))
        return self._first_block(self._restore_rules, ctx)

    @staticmethod
    def enforce(blocked: Blocked | None, resource_type: ResourceType, entity: Any, principal: Principal) -> None:
        """Raise for a block, logging tenant violations at ERROR."""
        if blocked is None:
            return
        context = {"resource_type": resource_type.value, "entity_id": entity.id, "principal_id": principal.id}
        if blocked.is_tenant_violation:
            logger.error(
                "Cross-organization attempt principal=%s org=%s entity=%s/%s",
                principal.id,
                principal.organization_id,
                resource_type.value,
                entity.id,
            )
            raise TenantViolation(blocked.message, context=context)
        logger.warning(
            "Integrity block %s on %s id=%s principal=%s", blocked.code, resource_type.value, entity.id, principal.id
        )
        raise IntegrityBlocked(blocked.message, error_code=blocked.code, context=context)
