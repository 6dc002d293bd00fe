"""
Soft-delete cascade and post-restore repairs.

Deleting an entity deletes the records that cannot exist without it,
top-down. Children that are already deleted are walked through (their own
children may still be active) but keep their original audit stamps.

Restore never cascades: children come back one at a time, each through its
own integrity checks. What restore does instead is repair weak references
that went stale while the entity was deleted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from taskhub.authz.conditions import Condition, FieldEquals
from taskhub.authz.enums import ResourceType
from taskhub.authz.principal import Principal

from .graph import TaskType
from .state import LifecycleState
from .store import EntityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChildLink:
    resource_type: ResourceType
    # Builds the conditions selecting the children of a given parent record.
    where: Callable[[ResourceType, Any], tuple[Condition, ...]]


def _by(field: str) -> Callable[[ResourceType, Any], tuple[Condition, ...]]:
    return lambda parent_type, parent: (FieldEquals(field, parent.id),)


def _thread(parent_type: ResourceType, parent: Any) -> tuple[Condition, ...]:
    return (FieldEquals("parent_model", parent_type.value), FieldEquals("parent_id", parent.id))


CHILDREN: dict[ResourceType, tuple[ChildLink, ...]] = {
    ResourceType.ORGANIZATION: (
        ChildLink(ResourceType.USER, _by("organization_id")),
        ChildLink(ResourceType.DEPARTMENT, _by("organization_id")),
        ChildLink(ResourceType.VENDOR, _by("organization_id")),
        ChildLink(ResourceType.MATERIAL, _by("organization_id")),
        ChildLink(ResourceType.NOTIFICATION, _by("organization_id")),
    ),
    ResourceType.DEPARTMENT: (
        ChildLink(ResourceType.TASK, _by("department_id")),
        ChildLink(ResourceType.VENDOR, _by("department_id")),
        ChildLink(ResourceType.MATERIAL, _by("department_id")),
    ),
    ResourceType.USER: (ChildLink(ResourceType.NOTIFICATION, _by("recipient_id")),),
    ResourceType.TASK: (
        ChildLink(ResourceType.TASK_ACTIVITY, _by("task_id")),
        ChildLink(ResourceType.TASK_COMMENT, _thread),
        ChildLink(ResourceType.ATTACHMENT, _thread),
        ChildLink(ResourceType.NOTIFICATION, _by("task_id")),
    ),
    ResourceType.TASK_ACTIVITY: (
        ChildLink(ResourceType.TASK_COMMENT, _thread),
        ChildLink(ResourceType.ATTACHMENT, _thread),
    ),
    ResourceType.TASK_COMMENT: (
        ChildLink(ResourceType.TASK_COMMENT, _thread),
        ChildLink(ResourceType.ATTACHMENT, _thread),
    ),
}


class Cascade:
    def __init__(self, store: EntityStore, state: LifecycleState) -> None:
        self._store = store
        self._state = state

    def soft_delete_children(self, resource_type: ResourceType, entity: Any, principal: Principal) -> int:
        """Soft-delete everything below ``entity``; returns how many records were stamped."""
        stamped = 0
        visited = {(resource_type, entity.id)}
        pending = [(resource_type, entity)]
        while pending:
            parent_type, parent = pending.pop(0)
            for link in CHILDREN.get(parent_type, ()):
                children = self._store.find(link.resource_type, *link.where(parent_type, parent), include_deleted=True)
                for child in children:
                    key = (link.resource_type, child.id)
                    if key in visited:
                        continue
                    visited.add(key)
                    if not child.is_deleted:
                        self._state.soft_delete(child, principal)
                        stamped += 1
                    pending.append((link.resource_type, child))
        if stamped:
            logger.info(
                "Cascade from %s id=%s soft-deleted %d record(s)", resource_type.value, entity.id, stamped
            )
        return stamped

    def repair_after_restore(
        self, resource_type: ResourceType, entity: Any, *, assignee_ids: Iterable[Any] = ()
    ) -> None:
        if resource_type is ResourceType.TASK:
            self._prune_users(entity, "watchers", entity.organization_id)
            if entity.task_type == TaskType.ASSIGNED.value:
                self._prune_users(entity, "assignees", entity.organization_id, extra=assignee_ids)
        elif resource_type is ResourceType.USER:
            if entity.is_hod:
                self._store.update_fields(entity, {"is_hod": False})
        elif resource_type is ResourceType.DEPARTMENT:
            self._drop_invalid_hod(entity)

    def _active_user_ids(self, ids: Iterable[Any], organization_id: Any) -> list[Any]:
        active = []
        for user_id in ids:
            user = self._store.get(ResourceType.USER, user_id)
            if user is not None and user.organization_id == organization_id and user_id not in active:
                active.append(user_id)
        return active

    def _prune_users(self, entity: Any, relation: str, organization_id: Any, *, extra: Iterable[Any] = ()) -> None:
        current = list(self._store.related_ids(entity, relation))
        kept = self._active_user_ids([*current, *extra], organization_id)
        if kept != current:
            self._store.set_related(entity, relation, kept)
            logger.info(
                "Pruned %s of Task id=%s: %d -> %d", relation, entity.id, len(current), len(kept)
            )

    def _drop_invalid_hod(self, department: Any) -> None:
        if department.hod_id is None:
            return
        hod = self._store.get(ResourceType.USER, department.hod_id)
        if hod is None or hod.department_id != department.id:
            self._store.update_fields(department, {"hod_id": None})
            logger.info("Cleared stale head of department on Department id=%s", department.id)
