"""
Repository layer - snapshot and signal log persistence.
"""

from datetime import datetime, timedelta, timezone
from typing import Sequence

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from worldpulse.analysis.types import CorrelationSignal, StreamSnapshot
from worldpulse.datastore.models import SignalLogDB, SnapshotDB, utcnow
from worldpulse.exceptions import SnapshotStoreError


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SnapshotRepository:
    """Keeps the latest StreamSnapshot per key."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self, key: str) -> StreamSnapshot | None:
        """
        Load the stored snapshot.

        A missing or unreadable row returns None, which puts the engine back
        into cold start instead of failing the cycle.
        """
        try:
            result = await self.session.execute(
                select(SnapshotDB).where(SnapshotDB.key == key)
            )
        except SQLAlchemyError as e:
            raise SnapshotStoreError(f"Failed to load snapshot: {e}", key=key) from e

        row = result.scalar_one_or_none()
        if row is None:
            return None

        try:
            return StreamSnapshot.from_json(row.payload)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable snapshot '{key}': {e}")
            return None

    async def save(self, key: str, snapshot: StreamSnapshot) -> None:
        """Insert or replace the snapshot for key. Caller commits."""
        try:
            result = await self.session.execute(
                select(SnapshotDB).where(SnapshotDB.key == key)
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = SnapshotDB(key=key, payload="", captured_at=utcnow())
                self.session.add(row)
            row.payload = snapshot.to_json()
            row.captured_at = _as_naive_utc(snapshot.timestamp)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise SnapshotStoreError(f"Failed to save snapshot: {e}", key=key) from e

    async def delete(self, key: str) -> bool:
        result = await self.session.execute(
            delete(SnapshotDB).where(SnapshotDB.key == key)
        )
        return (result.rowcount or 0) > 0


class SignalLogRepository:
    """Append-only log of emitted signals."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, signals: Sequence[CorrelationSignal]) -> int:
        for signal in signals:
            self.session.add(
                SignalLogDB(
                    signal_id=signal.id,
                    signal_type=signal.type.value,
                    title=signal.title,
                    description=signal.description,
                    confidence=signal.confidence,
                    payload=signal.model_dump_json(),
                    emitted_at=_as_naive_utc(signal.timestamp),
                )
            )
        await self.session.flush()
        return len(signals)

    async def get_recent(
        self, hours: int = 24, signal_type: str | None = None
    ) -> list[SignalLogDB]:
        """Signals emitted in the last hours, newest first."""
        cutoff = utcnow() - timedelta(hours=hours)
        query = select(SignalLogDB).where(SignalLogDB.emitted_at >= cutoff)
        if signal_type:
            query = query.where(SignalLogDB.signal_type == signal_type)
        result = await self.session.execute(
            query.order_by(SignalLogDB.emitted_at.desc())
        )
        return list(result.scalars().all())

    async def cleanup_old(self, days: int = 7) -> int:
        """Delete log rows older than days."""
        cutoff = utcnow() - timedelta(days=days)
        result = await self.session.execute(
            delete(SignalLogDB).where(SignalLogDB.emitted_at < cutoff)
        )
        deleted = result.rowcount or 0
        if deleted > 0:
            logger.debug(f"Cleaned up {deleted} old signal log entries")
        return deleted
