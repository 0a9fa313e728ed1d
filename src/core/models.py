"""SQLAlchemy ORM models for persisted anti-ban state."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Float, Index, Integer, JSON, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class WarmUpStateRecord(Base):
    """Latest warm-up snapshot per account."""

    __tablename__ = "warm_up_state"

    account_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<WarmUpStateRecord(account_id={self.account_id!r}, version={self.version})>"


class QueuedMessageRecord(Base):
    """A message waiting in an account's send queue."""

    __tablename__ = "queued_message"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    message_id: Mapped[str] = mapped_column(String(64), nullable=False)
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[Any] = mapped_column(JSON, nullable=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="normal")
    added_at: Mapped[float] = mapped_column(Float, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    scheduled_for: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    # Drain order at the time of saving
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_queued_message_account", "account_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<QueuedMessageRecord(account_id={self.account_id!r}, message_id={self.message_id!r})>"


__all__ = ["WarmUpStateRecord", "QueuedMessageRecord"]
