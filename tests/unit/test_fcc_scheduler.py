"""
Unit tests for the FCC import scheduler
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from ingestion.scheduler import (
    FCCImportScheduler,
    SCHEDULED_JOB_ID,
    compute_next_run,
    cron_days,
)
from models.base import JobStatus, JobSource
from schemas.fcc import ScheduleSettings

# Wednesday
NOW = datetime(2024, 1, 17, 12, 0, tzinfo=timezone.utc)


class TestComputeNextRun:

    def test_later_today(self):
        assert compute_next_run("3", "18:30", NOW) == datetime(2024, 1, 17, 18, 30, tzinfo=timezone.utc)

    def test_earlier_today_rolls_to_next_week(self):
        assert compute_next_run("3", "06:00", NOW) == datetime(2024, 1, 24, 6, 0, tzinfo=timezone.utc)

    def test_sunday_is_zero(self):
        assert compute_next_run("0", "06:00", NOW) == datetime(2024, 1, 21, 6, 0, tzinfo=timezone.utc)

    def test_nearest_of_several_days(self):
        assert compute_next_run([1, 5], "06:00", NOW) == datetime(2024, 1, 19, 6, 0, tzinfo=timezone.utc)

    def test_naive_now_treated_as_utc(self):
        naive = NOW.replace(tzinfo=None)

        assert compute_next_run("4", "00:00", naive) == datetime(2024, 1, 18, 0, 0, tzinfo=timezone.utc)

    def test_empty_inputs(self):
        assert compute_next_run("", "06:00", NOW) is None
        assert compute_next_run("1", "", NOW) is None


def test_cron_days():
    assert cron_days([0, 6]) == "sun,sat"
    assert cron_days([1, 3, 5]) == "mon,wed,fri"


@pytest.fixture
def scheduler():
    runner = MagicMock()
    runner.handle = AsyncMock(return_value={"status": "completed", "status_code": 200})
    return FCCImportScheduler(session_factory=MagicMock(), runner=runner)


class TestFCCImportScheduler:

    def test_apply_enabled_schedule(self, scheduler):
        scheduler.apply_schedule(ScheduleSettings(enabled=True, days_of_week="1,4", time_utc="03:15"))

        job = scheduler.scheduler.get_job(SCHEDULED_JOB_ID)
        assert job is not None
        assert job.args == ("ALL",)
        assert "day_of_week='mon,thu'" in str(job.trigger)
        assert "hour='3'" in str(job.trigger)
        assert "minute='15'" in str(job.trigger)
        assert scheduler.schedule_installed()

    def test_disable_removes_job(self, scheduler):
        scheduler.apply_schedule(ScheduleSettings(enabled=True, days_of_week="0"))
        scheduler.apply_schedule(ScheduleSettings(enabled=False))

        assert not scheduler.schedule_installed()

    def test_enqueue_invocation(self, scheduler):
        job_key = scheduler.enqueue_invocation({"jobId": "fcc_AM_1", "dataType": "AM"})

        assert job_key.startswith("fcc_invoke_fcc_AM_1_")
        job = scheduler.scheduler.get_job(job_key)
        assert job.args == ({"jobId": "fcc_AM_1", "dataType": "AM"},)

    @pytest.mark.asyncio
    async def test_run_invocation_delegates_to_runner(self, scheduler):
        event = {"jobId": "fcc_AM_1", "dataType": "AM"}

        result = await scheduler.run_invocation(event)

        assert result["status"] == "completed"
        scheduler.runner.handle.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_scheduled_import_queues_and_runs(self, scheduler):
        scheduler.progress = AsyncMock()

        await scheduler.run_scheduled_import("en")

        job_id = scheduler.progress.put.call_args.args[0]
        assert job_id.startswith("fcc_scheduled_EN_")
        assert scheduler.progress.put.call_args.kwargs["status"] == JobStatus.QUEUED
        assert scheduler.progress.put.call_args.kwargs["source"] == JobSource.SCHEDULED
        scheduler.runner.handle.assert_awaited_once_with({
            "jobId": job_id,
            "dataType": "EN",
            "source": "scheduled",
        })

    @pytest.mark.asyncio
    async def test_load_schedule_survives_database_errors(self, scheduler):
        scheduler.session_factory = MagicMock(side_effect=OSError("connection refused"))

        await scheduler.load_schedule()

        assert not scheduler.schedule_installed()
