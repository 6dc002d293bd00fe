"""
Delete/restore orchestration.

    fetch (including deleted) -> authorize -> state precheck -> integrity
    -> transition -> cascade (delete) or repairs (restore)

Everything runs inside the caller's unit of work; the caller commits.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from taskhub.authz.enums import Operation, ResourceType
from taskhub.authz.gate import AuthorizationGate
from taskhub.authz.principal import Principal
from taskhub.errors import NotFound

from .cascade import Cascade
from .integrity import IntegrityValidator
from .state import LifecycleState
from .store import EntityStore


class LifecycleService:
    def __init__(
        self,
        store: EntityStore,
        gate: AuthorizationGate,
        *,
        state: LifecycleState | None = None,
        validator: IntegrityValidator | None = None,
    ) -> None:
        self._store = store
        self._gate = gate
        self._state = state or LifecycleState(store)
        self._validator = validator or IntegrityValidator(store)
        self._cascade = Cascade(store, self._state)

    def _load(self, resource_type: ResourceType, entity_id: Any) -> Any:
        entity = self._store.get(resource_type, entity_id, include_deleted=True)
        if entity is None:
            raise NotFound(f"{resource_type.value} {entity_id} not found")
        return entity

    def soft_delete(self, principal: Principal, resource_type: ResourceType, entity_id: Any) -> Any:
        resource_type = ResourceType(resource_type)
        entity = self._load(resource_type, entity_id)
        self._gate.require(principal, resource_type, Operation.DELETE, entity)
        self._state.check_transition(entity, Operation.DELETE)

        blocked = self._validator.before_delete(resource_type, entity, principal)
        self._validator.enforce(blocked, resource_type, entity, principal)

        self._state.soft_delete(entity, principal)
        self._cascade.soft_delete_children(resource_type, entity, principal)
        return entity

    def restore(
        self,
        principal: Principal,
        resource_type: ResourceType,
        entity_id: Any,
        *,
        assignee_ids: Iterable[Any] = (),
    ) -> Any:
        resource_type = ResourceType(resource_type)
        assignee_ids = tuple(assignee_ids)
        entity = self._load(resource_type, entity_id)
        self._gate.require(principal, resource_type, Operation.RESTORE, entity)
        self._state.check_transition(entity, Operation.RESTORE)

        blocked = self._validator.before_restore(resource_type, entity, principal, assignee_ids=assignee_ids)
        self._validator.enforce(blocked, resource_type, entity, principal)

        self._state.restore(entity, principal)
        self._cascade.repair_after_restore(resource_type, entity, assignee_ids=assignee_ids)
        return entity
