"""
Per-resource-type record accessors: tenancy fields and ownership predicates.

"Own" scope is established by a closed, type-specific set of link fields.
Each predicate turns a principal into a ``Condition`` that can be evaluated
against a record or pushed down into a query.
"""

from __future__ import annotations

from dataclasses import dataclass

from .conditions import AnyOf, Condition, Contains, FieldEquals
from .enums import ResourceType
from .principal import Principal


class OwnershipPredicate:
    def condition(self, principal: Principal) -> Condition:  # pragma: no cover (abstract)
        raise NotImplementedError


@dataclass(frozen=True)
class CreatorField(OwnershipPredicate):
    """A single reference field pointing at the owning user (createdBy, addedBy, ...)."""

    field: str

    def condition(self, principal: Principal) -> Condition:
        return FieldEquals(self.field, principal.id)


@dataclass(frozen=True)
class MemberOf(OwnershipPredicate):
    """Membership in a user collection (assignees, watchers, mentions)."""

    field: str

    def condition(self, principal: Principal) -> Condition:
        return Contains(self.field, principal.id)


@dataclass(frozen=True)
class IsPrincipal(OwnershipPredicate):
    """The record is the principal's own user record."""

    def condition(self, principal: Principal) -> Condition:
        return FieldEquals("id", principal.id)


@dataclass(frozen=True)
class IsPrincipalTenant(OwnershipPredicate):
    """The record is the principal's own organization."""

    def condition(self, principal: Principal) -> Condition:
        return FieldEquals("id", principal.organization_id)


OWNERSHIP: dict[ResourceType, tuple[OwnershipPredicate, ...]] = {
    ResourceType.ORGANIZATION: (IsPrincipalTenant(),),
    ResourceType.DEPARTMENT: (CreatorField("created_by_id"),),
    ResourceType.USER: (IsPrincipal(),),
    ResourceType.VENDOR: (CreatorField("created_by_id"),),
    ResourceType.MATERIAL: (CreatorField("added_by_id"),),
    ResourceType.TASK: (
        CreatorField("created_by_id"),
        MemberOf("assignees"),
        MemberOf("watchers"),
    ),
    ResourceType.TASK_ACTIVITY: (CreatorField("created_by_id"),),
    ResourceType.TASK_COMMENT: (CreatorField("created_by_id"), MemberOf("mentions")),
    ResourceType.ATTACHMENT: (CreatorField("uploaded_by_id"),),
    ResourceType.NOTIFICATION: (CreatorField("recipient_id"),),
}


def ownership_condition(resource_type: ResourceType, principal: Principal) -> Condition:
    return AnyOf(tuple(p.condition(principal) for p in OWNERSHIP[resource_type]))


@dataclass(frozen=True)
class TenancyFields:
    """Names of the attributes holding a record's organization and department ids."""

    organization: str
    department: str | None


TENANCY: dict[ResourceType, TenancyFields] = {
    ResourceType.ORGANIZATION: TenancyFields("id", None),
    ResourceType.DEPARTMENT: TenancyFields("organization_id", "id"),
}
for _resource_type in ResourceType:
    TENANCY.setdefault(_resource_type, TenancyFields("organization_id", "department_id"))


def organization_of(resource_type: ResourceType, record) -> object:
    return getattr(record, TENANCY[resource_type].organization, None)


def department_of(resource_type: ResourceType, record) -> object:
    field = TENANCY[resource_type].department
    return getattr(record, field, None) if field else None
