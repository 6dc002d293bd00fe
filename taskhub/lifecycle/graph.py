"""
Fixed dependency graph between resource types.

Parents: the records an entity cannot outlive. The first link of each type is
its direct (primary) parent; TaskComment and Attachment point at their parent
through a polymorphic ``(parent_model, parent_id)`` pair.

Dependencies: non-parent references that must be active for a restored
entity to be operable (a ProjectTask's vendor, material line items).

The graph is acyclic by construction; walks over it are additionally bounded
by ``MAX_PARENT_CHAIN``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from taskhub.authz.enums import ResourceType


class TaskType(str, Enum):
    PROJECT = "ProjectTask"
    ROUTINE = "RoutineTask"
    ASSIGNED = "AssignedTask"


# Types a comment or attachment may hang off.
COMMENT_PARENT_TYPES = frozenset({ResourceType.TASK, ResourceType.TASK_ACTIVITY, ResourceType.TASK_COMMENT})

MAX_COMMENT_DEPTH = 3
# attachment -> comment (x MAX_COMMENT_DEPTH) -> activity -> task
MAX_PARENT_CHAIN = MAX_COMMENT_DEPTH + 2


@dataclass(frozen=True)
class ParentLink:
    """Reference from a record to one of its parents."""

    id_field: str
    resource_type: ResourceType | None = None
    # Set for polymorphic links; names the attribute holding the parent's type.
    type_field: str | None = None

    def target(self, record: Any) -> tuple[ResourceType, Any] | None:
        parent_id = getattr(record, self.id_field, None)
        if parent_id is None:
            return None
        if self.type_field is None:
            return self.resource_type, parent_id
        parent_type = ResourceType(getattr(record, self.type_field))
        if parent_type not in COMMENT_PARENT_TYPES:
            raise ValueError(f"{parent_type.value} cannot own comments or attachments")
        return parent_type, parent_id


_TENANT_PARENTS = (
    ParentLink("department_id", ResourceType.DEPARTMENT),
    ParentLink("organization_id", ResourceType.ORGANIZATION),
)
_THREAD_PARENT = (ParentLink("parent_id", type_field="parent_model"),)

PARENTS: dict[ResourceType, tuple[ParentLink, ...]] = {
    ResourceType.ORGANIZATION: (),
    ResourceType.DEPARTMENT: (ParentLink("organization_id", ResourceType.ORGANIZATION),),
    ResourceType.USER: _TENANT_PARENTS,
    ResourceType.VENDOR: _TENANT_PARENTS,
    ResourceType.MATERIAL: _TENANT_PARENTS,
    ResourceType.TASK: _TENANT_PARENTS,
    ResourceType.TASK_ACTIVITY: (ParentLink("task_id", ResourceType.TASK),),
    ResourceType.TASK_COMMENT: _THREAD_PARENT,
    ResourceType.ATTACHMENT: _THREAD_PARENT,
    ResourceType.NOTIFICATION: (
        ParentLink("recipient_id", ResourceType.USER),
        ParentLink("organization_id", ResourceType.ORGANIZATION),
    ),
}


def parents_of(resource_type: ResourceType, record: Any) -> list[tuple[ResourceType, Any]]:
    """Resolved ``(type, id)`` of every parent reference the record carries, primary first."""
    targets = []
    for link in PARENTS[resource_type]:
        target = link.target(record)
        if target is not None:
            targets.append(target)
    return targets


def primary_parent(resource_type: ResourceType, record: Any) -> tuple[ResourceType, Any] | None:
    links = PARENTS[resource_type]
    return links[0].target(record) if links else None


@dataclass(frozen=True)
class Dependency:
    resource_type: ResourceType
    field: str
    # Collection relation (read through the store) rather than a scalar id.
    many: bool = False


DEPENDENCIES: dict[ResourceType, tuple[Dependency, ...]] = {
    ResourceType.TASK: (
        Dependency(ResourceType.VENDOR, "vendor_id"),
        Dependency(ResourceType.MATERIAL, "materials", many=True),
    ),
    ResourceType.TASK_ACTIVITY: (Dependency(ResourceType.MATERIAL, "materials", many=True),),
}
