"""
SQLAlchemy implementation of the entity store used by the lifecycle core.

Conditions produced by the scope resolver are translated into SQL here, so
list endpoints filter in the database with exactly the predicates
``ScopeResolver.resolve`` evaluates in memory.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import and_, false, func, or_, select, true, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from taskhub.authz.conditions import AnyOf, Condition, Contains, FieldEquals
from taskhub.authz.enums import ResourceType
from taskhub.authz.scopes import ScopeFilter
from taskhub.db.filters import INCLUDE_DELETED
from taskhub.models.tenancy import Department, Organization, User
from taskhub.models.work import (
    Attachment,
    Material,
    Notification,
    Task,
    TaskActivity,
    TaskComment,
    Vendor,
)

MODELS: dict[ResourceType, type] = {
    ResourceType.ORGANIZATION: Organization,
    ResourceType.DEPARTMENT: Department,
    ResourceType.USER: User,
    ResourceType.VENDOR: Vendor,
    ResourceType.MATERIAL: Material,
    ResourceType.TASK: Task,
    ResourceType.TASK_ACTIVITY: TaskActivity,
    ResourceType.TASK_COMMENT: TaskComment,
    ResourceType.ATTACHMENT: Attachment,
    ResourceType.NOTIFICATION: Notification,
}


def model_for(resource_type: ResourceType) -> type:
    return MODELS[ResourceType(resource_type)]


def resource_type_of(entity: Any) -> ResourceType:
    for resource_type, model in MODELS.items():
        if isinstance(entity, model):
            return resource_type
    raise TypeError(f"{type(entity).__name__} is not a stored resource")


def condition_to_sql(model: type, condition: Condition):
    """Translate a ``Condition`` into a SQL expression on ``model``."""
    if isinstance(condition, FieldEquals):
        if condition.value is None:
            return false()
        return getattr(model, condition.field) == condition.value
    if isinstance(condition, Contains):
        if condition.value is None:
            return false()
        return getattr(model, condition.field).any(id=condition.value)
    if isinstance(condition, AnyOf):
        if not condition.conditions:
            return false()
        return or_(*(condition_to_sql(model, c) for c in condition.conditions))
    raise TypeError(f"cannot translate {type(condition).__name__} to SQL")


def scope_filter_to_sql(model: type, scope_filter: ScopeFilter):
    if scope_filter.is_empty:
        return false()
    clauses = []
    for clause in scope_filter.clauses:
        if clause.unrestricted:
            return true()
        clauses.append(and_(*(condition_to_sql(model, c) for c in clause.conditions)))
    return or_(*clauses)


class SqlEntityStore:
    """Entity store over one ``Session``; the caller owns the transaction."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _select(self, model: type, include_deleted: bool):
        return select(model).execution_options(**{INCLUDE_DELETED: include_deleted})

    def get(self, resource_type: ResourceType, entity_id: Any, *, include_deleted: bool = False) -> Any | None:
        model = model_for(resource_type)
        stmt = self._select(model, include_deleted).where(model.id == entity_id)
        return self.session.execute(stmt).scalars().first()

    def find(
        self, resource_type: ResourceType, *conditions: Condition, include_deleted: bool = False
    ) -> list[Any]:
        model = model_for(resource_type)
        stmt = self._select(model, include_deleted).where(
            *(condition_to_sql(model, c) for c in conditions)
        ).order_by(model.id)
        return list(self.session.execute(stmt).scalars().all())

    def count(self, resource_type: ResourceType, *conditions: Condition, include_deleted: bool = False) -> int:
        model = model_for(resource_type)
        # Soft-delete visibility is applied here rather than by the session filter.
        stmt = (
            select(func.count())
            .select_from(model)
            .where(*(condition_to_sql(model, c) for c in conditions))
            .execution_options(**{INCLUDE_DELETED: True})
        )
        if not include_deleted:
            stmt = stmt.where(model.is_deleted.is_(False))
        return int(self.session.execute(stmt).scalar_one())

    def fetch_by_filter(
        self, resource_type: ResourceType, scope_filter: ScopeFilter, *, include_deleted: bool = False
    ) -> list[Any]:
        model = model_for(resource_type)
        stmt = (
            self._select(model, include_deleted)
            .where(scope_filter_to_sql(model, scope_filter))
            .order_by(model.id)
        )
        return list(self.session.execute(stmt).scalars().all())

    def _association(self, entity: Any, relation: str):
        prop = getattr(type(entity), relation).property
        if prop.secondary is None:
            raise TypeError(f"{type(entity).__name__}.{relation} is not a collection relation")
        (local_pair,) = prop.synchronize_pairs
        (remote_pair,) = prop.secondary_synchronize_pairs
        return local_pair[1], remote_pair[1]

    def related_ids(self, entity: Any, relation: str) -> list[Any]:
        """Ids in a collection relation, soft-deleted members included."""
        local_col, remote_col = self._association(entity, relation)
        stmt = select(remote_col).where(local_col == entity.id).order_by(remote_col)
        return list(self.session.execute(stmt).scalars().all())

    def set_related(self, entity: Any, relation: str, ids: Iterable[Any]) -> None:
        prop = getattr(type(entity), relation).property
        target = prop.mapper.class_
        wanted = list(dict.fromkeys(ids))
        stmt = (
            select(target)
            .where(target.id.in_(wanted))
            .execution_options(**{INCLUDE_DELETED: True})
        )
        members = list(self.session.execute(stmt).scalars().all()) if wanted else []
        setattr(entity, relation, members)
        self.session.flush()

    def update_fields(
        self, entity: Any, values: Mapping[str, Any], *, expect_deleted: bool | None = None
    ) -> bool:
        """
        Write ``values`` with one UPDATE statement.

        With ``expect_deleted`` the statement only matches while the stored
        ``is_deleted`` still equals it, which makes concurrent transitions of
        the same row compare-and-set.
        """
        model = type(entity)
        self.session.flush()
        stmt = update(model).where(model.id == entity.id)
        if expect_deleted is not None:
            stmt = stmt.where(model.is_deleted.is_(expect_deleted))
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            return False
        for key, value in values.items():
            set_committed_value(entity, key, value)
        return True
