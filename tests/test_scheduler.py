"""
Sync scheduler tests
"""
import asyncio

from app.workers.scheduler import SyncScheduler


class TestSyncScheduler:
    def test_run_once_records_result(self):
        async def run_sync():
            return {"stores": 2, "failed": 0}

        scheduler = SyncScheduler(run_sync, interval=120)
        result = asyncio.run(scheduler.run_once())

        assert result == {"stores": 2, "failed": 0}
        status = scheduler.get_status()
        assert status["lastResult"] == result
        assert status["lastRun"] is not None
        assert status["intervalSeconds"] == 120

    def test_run_once_never_raises(self):
        async def run_sync():
            raise RuntimeError("database is down")

        scheduler = SyncScheduler(run_sync, interval=120)
        result = asyncio.run(scheduler.run_once())

        assert result["success"] is False
        assert "database is down" in result["message"]

    def test_loop_runs_on_interval_until_stopped(self):
        calls = []

        async def run_sync():
            calls.append(1)
            return {"stores": 0, "failed": 0}

        async def scenario():
            scheduler = SyncScheduler(run_sync, interval=0.02, tick=0.01)
            scheduler.start()
            await asyncio.sleep(0.1)
            assert scheduler.get_status()["running"] is True
            await scheduler.stop()
            return scheduler

        scheduler = asyncio.run(scenario())

        assert len(calls) >= 2
        assert scheduler.running is False

    def test_not_due_before_interval(self):
        calls = []

        async def run_sync():
            calls.append(1)
            return {}

        async def scenario():
            scheduler = SyncScheduler(run_sync, interval=3600, tick=0.01)
            scheduler.start()
            await asyncio.sleep(0.1)
            await scheduler.stop()

        asyncio.run(scenario())

        assert len(calls) == 1

    def test_next_run_waits_for_due_time_not_next_tick(self):
        calls = []

        async def run_sync():
            calls.append(1)
            return {}

        async def scenario():
            # the tick is far longer than the interval; runs must still follow the interval
            scheduler = SyncScheduler(run_sync, interval=0.05, tick=10)
            scheduler.start()
            await asyncio.sleep(0.2)
            await scheduler.stop()

        asyncio.run(scenario())

        assert len(calls) >= 3

    def test_stop_cancels_in_flight_run(self):
        started = []

        async def run_sync():
            started.append(1)
            await asyncio.sleep(60)
            return {}

        async def scenario():
            scheduler = SyncScheduler(run_sync, interval=120, tick=0.01)
            scheduler.start()
            await asyncio.sleep(0.05)
            await scheduler.stop()
            return scheduler

        scheduler = asyncio.run(scenario())

        assert started == [1]
        assert scheduler.running is False
