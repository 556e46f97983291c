"""Base query builder for list endpoints.

Subclasses set ``model_class`` and ``ordering_fields`` and add chainable
filters that return a clone, so a partially built query can be reused.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseQuery(Generic[T]):
    model_class: type[T]
    ordering_fields: ClassVar[dict[str, Any]] = {}

    def __init__(self, db: Session):
        self.db = db
        self._query: Query = db.query(self.model_class)

    def _clone(self) -> Self:
        new = self.__class__.__new__(self.__class__)
        new.db = self.db
        new._query = self._query
        return new

    def active_only(self, active: bool = True) -> Self:
        """Filter on the soft-delete flag."""
        clone = self._clone()
        clone._query = clone._query.filter(self.model_class.is_active.is_(active))
        return clone

    def order_by(self, field: str, direction: str = "asc") -> Self:
        """Order by one of ``ordering_fields``; unknown fields are ignored."""
        clone = self._clone()
        column = self.ordering_fields.get(field)
        if column is not None:
            ordering = desc(column) if direction.lower() == "desc" else asc(column)
            # Tie-break on id so pages stay stable between requests
            clone._query = clone._query.order_by(ordering, self.model_class.id)
        return clone

    def paginate(self, limit: int = 50, offset: int = 0) -> Self:
        clone = self._clone()
        if limit > 0:
            clone._query = clone._query.limit(limit)
        if offset > 0:
            clone._query = clone._query.offset(offset)
        return clone

    def all(self) -> list[T]:
        return self._query.all()
