"""Persistence of warm-up snapshots and queued messages.

The engine itself never touches storage; hosts call ``StateStore`` on
shutdown/startup (or periodically) to carry an account's ramp progress and
pending messages across restarts.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import get_session, get_session_factory
from core.exceptions import StorageError
from core.logging_config import get_logger
from core.models import QueuedMessageRecord, WarmUpStateRecord
from warmup.ramp import SNAPSHOT_VERSION, WarmUpSnapshot

LOGGER = get_logger(__name__)


class StateStore:
    """SQL-backed store for per-account engine state."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    def save_warm_up_state(self, account_id: str, snapshot: WarmUpSnapshot) -> None:
        """Insert or replace the account's warm-up snapshot."""
        try:
            with get_session(self._session_factory) as session:
                record = session.get(WarmUpStateRecord, account_id)
                if record is None:
                    record = WarmUpStateRecord(account_id=account_id)
                    session.add(record)
                record.payload = snapshot.to_dict()
                record.version = snapshot.version
        except SQLAlchemyError as e:
            raise StorageError(f"Could not save warm-up state for {account_id}: {e}") from e
        LOGGER.debug(f"Saved warm-up state for {account_id}")

    def load_warm_up_state(self, account_id: str) -> Optional[WarmUpSnapshot]:
        """
        Load the account's warm-up snapshot.

        Returns:
            The validated snapshot, or None if nothing was saved.

        Raises:
            WarmUpStateError: If the stored payload is corrupt.
            StorageError: If the database cannot be read.
        """
        try:
            with get_session(self._session_factory) as session:
                record = session.get(WarmUpStateRecord, account_id)
                payload = dict(record.payload) if record is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load warm-up state for {account_id}: {e}") from e

        if payload is None:
            return None
        payload.setdefault("version", SNAPSHOT_VERSION)
        return WarmUpSnapshot.from_dict(payload)

    def delete_warm_up_state(self, account_id: str) -> bool:
        try:
            with get_session(self._session_factory) as session:
                result = session.execute(
                    delete(WarmUpStateRecord).where(WarmUpStateRecord.account_id == account_id)
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageError(f"Could not delete warm-up state for {account_id}: {e}") from e

    def save_queue(self, account_id: str, messages: Iterable[Mapping[str, Any]]) -> int:
        """
        Replace the account's persisted queue with ``messages``.

        Args:
            account_id: Owning account.
            messages: Output of ``MessageQueue.export()``.

        Returns:
            Number of messages saved.
        """
        records = [
            QueuedMessageRecord(
                account_id=account_id,
                message_id=m["id"],
                recipient=m["recipient"],
                content=m.get("content"),
                priority=m.get("priority", "normal"),
                added_at=m["added_at"],
                attempts=m.get("attempts", 0),
                max_attempts=m.get("max_attempts", 3),
                last_error=m.get("last_error"),
                scheduled_for=m.get("scheduled_for"),
                metadata_json=dict(m.get("metadata") or {}),
                position=position,
            )
            for position, m in enumerate(messages)
        ]
        try:
            with get_session(self._session_factory) as session:
                session.execute(
                    delete(QueuedMessageRecord).where(QueuedMessageRecord.account_id == account_id)
                )
                session.add_all(records)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not save queue for {account_id}: {e}") from e

        LOGGER.info(f"Saved {len(records)} queued messages for {account_id}")
        return len(records)

    def load_queue(self, account_id: str) -> List[Dict[str, Any]]:
        """Persisted queue in drain order, ready for ``MessageQueue.import_messages``."""
        try:
            with get_session(self._session_factory) as session:
                rows = session.scalars(
                    select(QueuedMessageRecord)
                    .where(QueuedMessageRecord.account_id == account_id)
                    .order_by(QueuedMessageRecord.position)
                ).all()
                return [
                    {
                        "id": row.message_id,
                        "recipient": row.recipient,
                        "content": row.content,
                        "priority": row.priority,
                        "added_at": row.added_at,
                        "attempts": row.attempts,
                        "max_attempts": row.max_attempts,
                        "last_error": row.last_error,
                        "scheduled_for": row.scheduled_for,
                        "metadata": dict(row.metadata_json or {}),
                    }
                    for row in rows
                ]
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load queue for {account_id}: {e}") from e


__all__ = ["StateStore"]
