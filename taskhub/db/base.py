from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class LifecycleMixin:
    """
    Soft-delete audit fields shared by every deletable entity.

    ``is_deleted`` is True exactly when ``deleted_at``/``deleted_by_id`` are
    set and ``restored_at``/``restored_by_id`` are null. The fields are only
    written together, by ``taskhub.lifecycle.state.LifecycleState``.
    """

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    deleted_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    restored_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    restored_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
