from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from taskhub.authz.conditions import Condition
from taskhub.authz.enums import ResourceType
from taskhub.authz.scopes import ScopeFilter


class EntityStore(Protocol):
    """
    What the lifecycle core needs from persistence.

    Default reads exclude soft-deleted records; pass ``include_deleted=True``
    to see them. ``update_fields`` must write all given fields as one atomic
    unit and, when ``expect_deleted`` is given, only if the stored
    ``is_deleted`` still has that value. It returns False when no row matched.
    """

    def get(self, resource_type: ResourceType, entity_id: Any, *, include_deleted: bool = False) -> Any | None: ...

    def find(
        self, resource_type: ResourceType, *conditions: Condition, include_deleted: bool = False
    ) -> list[Any]: ...

    def count(self, resource_type: ResourceType, *conditions: Condition, include_deleted: bool = False) -> int: ...

    def fetch_by_filter(
        self, resource_type: ResourceType, scope_filter: ScopeFilter, *, include_deleted: bool = False
    ) -> list[Any]: ...

    def related_ids(self, entity: Any, relation: str) -> list[Any]: ...

    def set_related(self, entity: Any, relation: str, ids: Iterable[Any]) -> None: ...

    def update_fields(
        self, entity: Any, values: Mapping[str, Any], *, expect_deleted: bool | None = None
    ) -> bool: ...
