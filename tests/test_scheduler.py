"""Tests for per-guild daily jobs."""
from datetime import time, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from arc_countdown.scheduler import Scheduler


# Async so teardown cancels the loops while the event loop is still open
@pytest_asyncio.fixture
async def make_scheduler(config_store, release_date):
    created = []

    def factory(now, deliver=None):
        scheduler = Scheduler(config_store, deliver or AsyncMock(), release_date, now=now)
        created.append(scheduler)
        return scheduler

    yield factory
    for scheduler in created:
        scheduler.stop_all()


class TestScheduleAll:
    @pytest.mark.asyncio
    async def test_schedules_only_configured_guilds(self, make_scheduler, config_store, before_release):
        config_store.update("1", channel_id="10", post_time="3pm")
        config_store.update("2", post_time="9am")  # no channel
        config_store.update("3", channel_id="30")

        scheduler = make_scheduler(before_release)
        assert scheduler.schedule_all() == 2
        assert set(scheduler.jobs) == {"1", "3"}
        assert scheduler.jobs["3"].post_time == "12:00"

    @pytest.mark.asyncio
    async def test_nothing_scheduled_after_release(self, make_scheduler, config_store, after_release):
        config_store.update("1", channel_id="10")
        scheduler = make_scheduler(after_release)
        assert scheduler.schedule_all() == 0
        assert scheduler.jobs == {}

    @pytest.mark.asyncio
    async def test_invalid_stored_time_is_skipped(self, make_scheduler, config_store, before_release):
        config_store.update("1", channel_id="10", post_time="whenever")
        config_store.update("2", channel_id="20", post_time="8am")
        scheduler = make_scheduler(before_release)
        assert scheduler.schedule_all() == 1
        assert "1" not in scheduler.jobs


class TestReschedule:
    @pytest.mark.asyncio
    async def test_3pm_then_9am(self, make_scheduler, config_store, before_release):
        config_store.update("1", channel_id="10", post_time="3pm")
        scheduler = make_scheduler(before_release)

        job = scheduler.schedule_guild("1", "3pm")
        assert (job.hour, job.minute) == (15, 0)
        assert job.cron == "0 0 15 * * *"
        assert job.loop.time == [time(15, 0, tzinfo=timezone.utc)]
        old_loop = job.loop

        new_job = scheduler.reschedule("1", "9am")
        assert new_job.hour == 9
        assert scheduler.jobs["1"] is new_job
        assert new_job.loop is not old_loop
        assert len(scheduler.jobs) == 1

    @pytest.mark.asyncio
    async def test_old_loop_is_cancelled(self, make_scheduler, config_store, before_release):
        config_store.update("1", channel_id="10")
        scheduler = make_scheduler(before_release)
        job = scheduler.schedule_guild("1", "12:00")
        cancelled = []
        real_cancel = job.loop.cancel

        def cancel():
            cancelled.append(job.guild_id)
            real_cancel()

        job.loop.cancel = cancel

        scheduler.reschedule("1", "13:00")
        assert cancelled == ["1"]

    @pytest.mark.asyncio
    async def test_unconfigured_guild_only_loses_job(self, make_scheduler, config_store, before_release):
        config_store.update("1", channel_id="10")
        scheduler = make_scheduler(before_release)
        scheduler.schedule_guild("1", "12:00")
        config_store.update("1", channel_id=None)

        assert scheduler.reschedule("1", "9am") is None
        assert "1" not in scheduler.jobs

    @pytest.mark.asyncio
    async def test_reschedule_after_release_stops(self, make_scheduler, config_store, after_release):
        config_store.update("1", channel_id="10")
        scheduler = make_scheduler(after_release)
        scheduler.schedule_guild("1", "12:00")
        assert scheduler.reschedule("1", "9am") is None
        assert scheduler.jobs == {}


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_and_stop_all(self, make_scheduler, config_store, before_release):
        scheduler = make_scheduler(before_release)
        scheduler.schedule_guild("1", "1am")
        scheduler.schedule_guild("2", "2am")

        assert scheduler.stop("1") is True
        assert scheduler.stop("1") is False
        scheduler.stop_all()
        assert scheduler.jobs == {}
        assert scheduler.next_run("2") is None

    @pytest.mark.asyncio
    async def test_stats(self, make_scheduler, before_release):
        scheduler = make_scheduler(before_release)
        scheduler.schedule_guild(5, "3:30pm")
        stats = scheduler.stats()
        assert stats["active_jobs"] == 1
        assert stats["servers"][0]["guild_id"] == "5"
        assert stats["servers"][0]["cron"] == "0 30 15 * * *"


class TestJobBody:
    @pytest.mark.asyncio
    async def test_job_body_delivers_for_its_guild(self, make_scheduler, before_release):
        deliver = AsyncMock()
        scheduler = make_scheduler(before_release, deliver)
        await scheduler._run_job("7")
        deliver.assert_awaited_once_with("7")

    @pytest.mark.asyncio
    async def test_job_body_swallows_guild_failures(self, make_scheduler, before_release):
        deliver = AsyncMock(side_effect=RuntimeError("guild exploded"))
        scheduler = make_scheduler(before_release, deliver)
        await scheduler._run_job("7")
        deliver.assert_awaited_once_with("7")
