"""
Correlation cycle scheduler.
Runs the analysis pipeline on a fixed interval with APScheduler.
"""

from datetime import timedelta
from pathlib import Path
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from pydantic import BaseModel, Field

from worldpulse.analysis.config import EngineConfig
from worldpulse.analysis.correlation import Collaborators
from worldpulse.analysis.pipeline import AnalysisPipeline
from worldpulse.analysis.types import (
    CorrelationSignal,
    CycleResult,
    MarketQuote,
    NewsItem,
    PredictionQuote,
    StreamSnapshot,
)
from worldpulse.datastore.repositories import SignalLogRepository, SnapshotRepository
from worldpulse.exceptions import SnapshotStoreError
from worldpulse.services.dedup_guard import SignalDedupGuard
from worldpulse.settings import Settings, global_settings


class CycleBatch(BaseModel):
    """One cycle's worth of input delivered by the ingestion layer."""

    items: list[NewsItem] = Field(default_factory=list)
    predictions: list[PredictionQuote] = Field(default_factory=list)
    markets: list[MarketQuote] = Field(default_factory=list)


BatchProvider = Callable[[], Awaitable[CycleBatch]]
SignalSink = Callable[[list[CorrelationSignal]], Awaitable[None]]


def json_file_provider(path: str | Path) -> BatchProvider:
    """
    Provider reading the batch an ingestion process drops as JSON.

    A missing file yields an empty batch, a malformed one fails the cycle.
    """
    batch_path = Path(path)

    async def provide() -> CycleBatch:
        if not batch_path.exists():
            logger.info(f"No batch file at {batch_path}, running an empty cycle")
            return CycleBatch()
        return CycleBatch.model_validate_json(batch_path.read_text(encoding="utf-8"))

    return provide


class CycleScheduler:
    """
    Periodic correlation cycles.

    The previous snapshot comes from the datastore when a session factory is
    given, otherwise it is kept on this object for the process lifetime.
    """

    def __init__(
        self,
        provider: BatchProvider,
        session_factory=None,
        on_signals: SignalSink | None = None,
        settings: Settings = global_settings,
        guard: SignalDedupGuard | None = None,
    ):
        self.scheduler = AsyncIOScheduler()
        self.provider = provider
        self.session_factory = session_factory
        self.on_signals = on_signals
        self.settings = settings
        self.guard = guard or SignalDedupGuard(
            ttl=timedelta(minutes=settings.dedup_ttl_minutes),
            max_size=settings.dedup_max_entries,
        )
        self.pipeline = AnalysisPipeline(
            config=EngineConfig.from_settings(settings),
            collaborators=Collaborators.with_guard(self.guard),
        )
        self._snapshot: StreamSnapshot | None = None
        self._is_running = False

    async def _load_snapshot(self) -> StreamSnapshot | None:
        if not self.session_factory:
            return self._snapshot
        async with self.session_factory() as session:
            return await SnapshotRepository(session).load(self.settings.snapshot_key)

    async def _persist(self, result: CycleResult) -> None:
        self._snapshot = result.snapshot
        if not self.session_factory:
            return
        async with self.session_factory() as session:
            await SnapshotRepository(session).save(
                self.settings.snapshot_key, result.snapshot
            )
            log_repo = SignalLogRepository(session)
            if result.signals:
                await log_repo.record(result.signals)
            await log_repo.cleanup_old(days=self.settings.signal_log_retention_days)
            await session.commit()

    async def run_once(self) -> CycleResult | None:
        """Run a single cycle now. Returns None when the cycle was skipped."""
        try:
            batch = await self.provider()
        except Exception as e:
            logger.error(f"Batch provider failed, skipping cycle: {e}")
            return None

        try:
            previous = await self._load_snapshot()
        except SnapshotStoreError as e:
            logger.error(f"Snapshot load failed, skipping cycle: {e}")
            return None

        result = self.pipeline.process(
            batch.items, batch.predictions, batch.markets, previous
        )

        try:
            await self._persist(result)
        except SnapshotStoreError as e:
            logger.error(f"Snapshot save failed: {e}")

        removed = self.guard.cleanup_expired()
        if removed:
            logger.debug(f"Dedup guard swept {removed} expired keys")

        if result.signals and self.on_signals:
            await self.on_signals(result.signals)

        return result

    async def cycle_job(self) -> None:
        """Scheduled cycle."""
        logger.info("Starting scheduled correlation cycle...")
        try:
            result = await self.run_once()
            if result is not None:
                summary = result.summary()
                logger.info(f"Scheduled cycle completed: {summary.status}")
                for signal_type, count in summary.by_type.items():
                    logger.info(f"  - {signal_type}: {count}")
        except Exception as e:
            logger.error(f"Error in scheduled correlation cycle: {e}")

    def start(self) -> None:
        """Start the scheduler."""
        if self._is_running:
            logger.warning("Cycle scheduler is already running")
            return

        interval = self.settings.cycle_interval_seconds
        self.scheduler.add_job(
            self.cycle_job,
            trigger="interval",
            seconds=interval,
            id="correlation_cycle_job",
            name="Correlation Cycle",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.start()
        self._is_running = True

        logger.info(f"Cycle scheduler started: running every {interval} seconds")

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            logger.warning("Cycle scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Cycle scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running
