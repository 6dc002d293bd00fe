"""
Record predicates with two interpretations.

A condition can be evaluated against an in-memory record (``matches``) or
translated into a storage query (see ``taskhub.db.store``). The scope resolver
builds both its per-record decisions and its list filters out of the same
condition objects, so a filter can never admit a record that ``resolve``
would refuse.

Records are any objects exposing attributes: ORM instances in the service,
plain namespaces in tests. Reference fields may hold a raw id or an object
with an ``id`` attribute; collection fields may hold a list of either (or a
single value).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def ident(value: Any) -> Any:
    """Return the id of a referenced object, or the value itself when it is already an id."""
    return getattr(value, "id", value)


def _members(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


class Condition:
    """Base class; subclasses are small frozen dataclasses."""

    def matches(self, record: Any) -> bool:  # pragma: no cover (abstract)
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:  # pragma: no cover (abstract)
        raise NotImplementedError


@dataclass(frozen=True)
class FieldEquals(Condition):
    """``record.<field> == value``. A missing value never matches."""

    field: str
    value: Any

    def matches(self, record: Any) -> bool:
        if self.value is None:
            return False
        return ident(getattr(record, self.field, None)) == self.value

    def describe(self) -> dict[str, Any]:
        return {self.field: self.value}


@dataclass(frozen=True)
class Contains(Condition):
    """``value`` is a member of the collection ``record.<field>``."""

    field: str
    value: Any

    def matches(self, record: Any) -> bool:
        if self.value is None:
            return False
        return any(ident(member) == self.value for member in _members(getattr(record, self.field, None)))

    def describe(self) -> dict[str, Any]:
        return {self.field: {"contains": self.value}}


@dataclass(frozen=True)
class AnyOf(Condition):
    """Disjunction. An empty disjunction never matches."""

    conditions: tuple[Condition, ...]

    def matches(self, record: Any) -> bool:
        return any(c.matches(record) for c in self.conditions)

    def describe(self) -> dict[str, Any]:
        return {"any": [c.describe() for c in self.conditions]}
