import asyncio
import json

from worldpulse.analysis.types import MarketQuote, SignalType
from worldpulse.datastore import engine as db
from worldpulse.datastore.repositories import SignalLogRepository, SnapshotRepository
from worldpulse.scheduler import CycleBatch, CycleScheduler, json_file_provider
from worldpulse.settings import Settings


def _batch():
    return CycleBatch(
        markets=[
            MarketQuote(
                symbol="LMT", name="Lockheed Martin", display="LMT", change_percent=4.5
            )
        ]
    )


async def _provide():
    return _batch()


def test_settings_read_env_aliases():
    settings = Settings.model_validate(
        {"CYCLE_INTERVAL_SECONDS": "30", "MIN_SIGNAL_CONFIDENCE": "0.7"}
    )
    assert settings.cycle_interval_seconds == 30
    assert settings.min_confidence == 0.7
    assert settings.similarity_threshold == 0.5


def test_run_once_in_memory_cold_start_then_signals():
    received = []

    async def sink(signals):
        received.extend(signals)

    async def _run():
        scheduler = CycleScheduler(_provide, on_signals=sink, settings=Settings())
        first = await scheduler.run_once()
        second = await scheduler.run_once()
        return first, second

    first, second = asyncio.run(_run())
    assert first.cold_start
    assert first.signals == []
    assert [s.type for s in second.signals] == [SignalType.SILENT_DIVERGENCE]
    assert [s.id for s in received] == [s.id for s in second.signals]


def test_repeat_alert_suppressed_across_cycles():
    async def _run():
        scheduler = CycleScheduler(_provide, settings=Settings())
        results = [await scheduler.run_once() for _ in range(3)]
        return scheduler, results

    scheduler, results = asyncio.run(_run())
    assert len(results[1].signals) == 1
    assert results[2].signals == []
    assert scheduler.guard.get_stats().suppressed >= 1


def test_provider_failure_skips_cycle():
    async def broken():
        raise OSError("feed directory unavailable")

    async def _run():
        scheduler = CycleScheduler(broken, settings=Settings())
        return await scheduler.run_once(), scheduler

    result, scheduler = asyncio.run(_run())
    assert result is None
    assert scheduler._snapshot is None


def test_json_file_provider(tmp_path):
    missing = json_file_provider(tmp_path / "absent.json")
    assert asyncio.run(missing()) == CycleBatch()

    path = tmp_path / "batch.json"
    path.write_text(
        json.dumps(
            {
                "items": [
                    {
                        "source": "Reuters",
                        "title": "Iran fires missiles at Israel",
                        "published_at": "2026-03-02T11:55:00Z",
                    }
                ],
                "predictions": [{"title": "Will Iran strike Israel?", "yes_price": 40}],
            }
        ),
        encoding="utf-8",
    )
    batch = asyncio.run(json_file_provider(path)())
    assert batch.items[0].source == "Reuters"
    assert batch.predictions[0].yes_price == 40.0
    assert batch.markets == []


def test_run_once_persists_snapshot_and_signals(tmp_path):
    async def _run():
        await db.init_db(f"sqlite+aiosqlite:///{tmp_path / 'worldpulse.db'}")
        try:
            session_factory = db.get_session_factory()
            settings = Settings()

            first = CycleScheduler(_provide, session_factory=session_factory, settings=settings)
            await first.run_once()

            # a fresh process picks the snapshot up from the database
            restarted = CycleScheduler(
                _provide, session_factory=session_factory, settings=settings
            )
            result = await restarted.run_once()

            async with session_factory() as session:
                stored = await SnapshotRepository(session).load(settings.snapshot_key)
                logged = await SignalLogRepository(session).get_recent(hours=1)
            return result, stored, logged
        finally:
            await db.close_db()

    result, stored, logged = asyncio.run(_run())
    assert not result.cold_start
    assert stored.market_change == {"LMT": 4.5}
    assert [row.signal_type for row in logged] == ["silent_divergence"]


def test_start_and_stop():
    async def _run():
        scheduler = CycleScheduler(_provide, settings=Settings())
        scheduler.start()
        running = scheduler.is_running()
        job = scheduler.scheduler.get_job("correlation_cycle_job")
        scheduler.stop()
        return running, job, scheduler.is_running()

    running, job, after = asyncio.run(_run())
    assert running
    assert job is not None
    assert not after


def test_run_once_with_batch_timestamps_without_timezone(tmp_path):
    path = tmp_path / "batch.json"
    item = {"title": "Iran fires missiles at Israel", "published_at": "2026-03-02T11:55:00"}
    path.write_text(
        json.dumps({"items": [dict(item, source="Reuters"), dict(item, source="AFP")]}),
        encoding="utf-8",
    )

    async def _run():
        scheduler = CycleScheduler(json_file_provider(path), settings=Settings())
        return await scheduler.run_once()

    result = asyncio.run(_run())
    assert result is not None
    assert result.cold_start
    assert "iran" in result.snapshot.topic_velocity
