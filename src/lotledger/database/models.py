"""SQLAlchemy database models."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class StockItem(Base):
    """Item document: lots and consumption history are embedded as JSON arrays.

    ``version`` is the optimistic-concurrency counter. SQLAlchemy adds it to
    the WHERE clause of every UPDATE and bumps it, so a write based on a stale
    read matches no row and raises StaleDataError.
    """

    __tablename__ = "stock_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String, nullable=False, default="None", index=True)
    supplier: Mapped[str] = mapped_column(String, nullable=False, default="Not specified")
    threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unassigned_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lots: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    consumptions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<StockItem(id={self.id}, name='{self.name}', quantity={self.quantity}, version={self.version})>"


class AppSetting(Base):
    """Shared settings document keyed by name (e.g. ``consumption_alerts``)."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<AppSetting(key='{self.key}')>"
