from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria

from taskhub.db.base import LifecycleMixin

INCLUDE_DELETED = "include_deleted"


@event.listens_for(Session, "do_orm_execute")
def _exclude_soft_deleted(execute_state) -> None:
    """
    Transparent soft-delete visibility.

    Every ORM select hides rows with ``is_deleted = true`` unless the
    statement opts in:
        db.execute(select(Task).execution_options(include_deleted=True))

    Attribute refreshes and relationship lazy-loads are left alone so an
    already-loaded deleted entity (and its collections) stays readable.
    """

    if not execute_state.is_select:
        return
    if execute_state.is_column_load or execute_state.is_relationship_load:
        return
    if execute_state.execution_options.get(INCLUDE_DELETED, False):
        return

    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(LifecycleMixin, lambda cls: cls.is_deleted.is_(False), include_aliases=True)
    )
