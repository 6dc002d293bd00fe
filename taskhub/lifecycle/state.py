"""
Active/Deleted state machine for deletable entities.

Each transition writes all five audit fields in a single conditional update,
so a concurrent writer can only ever observe one complete state or the
other:

    Active  --soft_delete(p)-->  Deleted   is_deleted, deleted_at/by set; restored_* cleared
    Deleted --restore(p)------>  Active    restored_at/by set; is_deleted, deleted_* cleared
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from taskhub.authz.enums import Operation
from taskhub.authz.principal import Principal
from taskhub.errors import LifecycleConflict

from .store import EntityStore

logger = logging.getLogger(__name__)

ALREADY_DELETED = "ALREADY_DELETED"
NOT_DELETED = "NOT_DELETED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class LifecycleState:
    def __init__(self, store: EntityStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    @staticmethod
    def check_transition(entity: Any, operation: Operation) -> None:
        """Raise ``LifecycleConflict`` if ``operation`` does not apply to the entity's current state."""
        if operation is Operation.DELETE and entity.is_deleted:
            raise LifecycleConflict(
                f"{type(entity).__name__} {entity.id} is already deleted",
                error_code=ALREADY_DELETED,
            )
        if operation is Operation.RESTORE and not entity.is_deleted:
            raise LifecycleConflict(
                f"{type(entity).__name__} {entity.id} is not deleted",
                error_code=NOT_DELETED,
            )

    def soft_delete(self, entity: Any, principal: Principal) -> Any:
        self.check_transition(entity, Operation.DELETE)
        values = {
            "is_deleted": True,
            "deleted_at": self._clock(),
            "deleted_by_id": principal.id,
            "restored_at": None,
            "restored_by_id": None,
        }
        if not self._store.update_fields(entity, values, expect_deleted=False):
            raise LifecycleConflict(
                f"{type(entity).__name__} {entity.id} was deleted concurrently",
                error_code=ALREADY_DELETED,
            )
        logger.info("Soft-deleted %s id=%s by=%s", type(entity).__name__, entity.id, principal.id)
        return entity

    def restore(self, entity: Any, principal: Principal) -> Any:
        self.check_transition(entity, Operation.RESTORE)
        values = {
            "is_deleted": False,
            "deleted_at": None,
            "deleted_by_id": None,
            "restored_at": self._clock(),
            "restored_by_id": principal.id,
        }
        if not self._store.update_fields(entity, values, expect_deleted=True):
            raise LifecycleConflict(
                f"{type(entity).__name__} {entity.id} was restored concurrently",
                error_code=NOT_DELETED,
            )
        logger.info("Restored %s id=%s by=%s", type(entity).__name__, entity.id, principal.id)
        return entity
