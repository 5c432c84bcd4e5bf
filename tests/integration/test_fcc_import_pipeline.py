"""
Integration tests against PostgreSQL (skipped when TEST_DATABASE_URL is unreachable)
"""

import pytest
from datetime import datetime, timedelta
from sqlalchemy import select, func
from ingestion.loaders.postgres_loader import UpsertWriter
from ingestion.parsers.uls_parser import AMATEUR_SPEC, ENTITY_SPEC, parse_line
from ingestion.processor import StreamProcessor, Deadline
from ingestion.progress import PostgresProgressStore
from ingestion.runner import FCCImportRunner
from ingestion.settings_repository import (
    get_setting,
    mark_last_updated,
    load_schedule_settings,
    save_schedule_settings,
    LAST_UPDATED_KEY,
)
from models.base import JobStatus
from models.fcc_records import AmateurRecord, EntityRecord
from models.import_job import ImportJob
from schemas.fcc import JobCheckpoint, ScheduleSettings
from tests.conftest import FakeDispatcher, am_line, en_line, write_lines


async def count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


class TestUpsertWriterPostgres:

    @pytest.mark.asyncio
    async def test_same_batch_twice_is_idempotent(self, db_session):
        """apply(B); apply(B) leaves one row per call sign"""
        writer = UpsertWriter(db_session, AMATEUR_SPEC)
        batch = [parse_line(am_line(f"K{i}ABC"), AMATEUR_SPEC) for i in range(25)]

        assert await writer.write(batch) == 25
        assert await writer.write(batch) == 25

        assert await count(db_session, AmateurRecord) == 25

    @pytest.mark.asyncio
    async def test_last_batch_wins(self, db_session):
        writer = UpsertWriter(db_session, AMATEUR_SPEC)

        await writer.write([parse_line(am_line("W1AW", operator_class="T"), AMATEUR_SPEC)])
        await writer.write([parse_line(am_line("W1AW", operator_class="E", trustee_name="ARRL"), AMATEUR_SPEC)])

        row = (await db_session.execute(
            select(AmateurRecord).where(AmateurRecord.call_sign == "W1AW")
        )).scalar_one()
        assert row.operator_class == "E"
        assert row.trustee_name == "ARRL"

    @pytest.mark.asyncio
    async def test_entity_key_with_null_licensee(self, db_session):
        """Rows whose key contains NULL still conflict with each other"""
        writer = UpsertWriter(db_session, ENTITY_SPEC)
        first = parse_line(en_line("W1AW", licensee_id="", last_name="Old"), ENTITY_SPEC)
        second = parse_line(en_line("W1AW", licensee_id="", last_name="New"), ENTITY_SPEC)

        await writer.write([first])
        await writer.write([second])

        rows = (await db_session.execute(select(EntityRecord))).scalars().all()
        assert len(rows) == 1
        assert rows[0].licensee_id is None
        assert rows[0].last_name == "New"

    @pytest.mark.asyncio
    async def test_bad_row_dropped_rest_saved(self, db_session):
        """A row the table rejects is dropped without sinking the batch"""
        writer = UpsertWriter(db_session, ENTITY_SPEC)
        good = parse_line(en_line("W1AW"), ENTITY_SPEC)
        bad = parse_line(en_line("K1ABC"), ENTITY_SPEC).model_copy(update={"call_sign": None})

        saved = await writer.write([good, bad])

        assert saved == 1
        assert await count(db_session, EntityRecord) == 1


class TestResumePostgres:

    @pytest.mark.asyncio
    async def test_split_run_matches_single_run(self, db_session, tmp_path):
        lines = [am_line(f"K{i % 7}ABC", trustee_name=f"rev{i}") for i in range(30)]
        path = write_lines(tmp_path / "AM.dat", lines)

        def processor(budget):
            clock_value = iter(range(10 ** 6))
            return StreamProcessor(
                writer=UpsertWriter(db_session, AMATEUR_SPEC),
                spec=AMATEUR_SPEC,
                batch_size=4,
                deadline=Deadline(budget, clock=lambda: next(clock_value)),
                progress_interval=10 ** 6,
            )

        first = await processor(10).process(path, "job-1")
        assert first.continued
        second = await processor(10 ** 6).process(path, "job-1", first.checkpoint)
        assert not second.continued

        rows = (await db_session.execute(select(AmateurRecord).order_by(AmateurRecord.call_sign))).scalars().all()
        assert len(rows) == 7
        expected = {f"K{n}ABC": f"rev{max(i for i in range(30) if i % 7 == n)}" for n in range(7)}
        assert {row.call_sign: row.trustee_name for row in rows} == expected


class TestProgressStorePostgres:

    @pytest.mark.asyncio
    async def test_put_update_get(self, session_factory):
        store = PostgresProgressStore(session_factory)

        await store.put("fcc_ALL_1", status=JobStatus.STARTING, data_type="ALL", source="api")
        await store.update(
            "fcc_ALL_1",
            status="processing",
            progress=55,
            checkpoint=JobCheckpoint(record_count=9, processed_count=8, skip_lines=12, phase="entity"),
        )

        job = await store.get("fcc_ALL_1")
        assert job.status == "processing"
        assert job.progress == 55
        assert job.checkpoint["skipLines"] == 12
        assert job.start_time is not None
        assert (await store.latest()).job_id == "fcc_ALL_1"
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_put_resets_fields(self, session_factory):
        store = PostgresProgressStore(session_factory)

        await store.put("fcc_ALL_1", status=JobStatus.PROCESSING, progress=80, message="half way")
        await store.put("fcc_ALL_1", status=JobStatus.QUEUED)

        job = await store.get("fcc_ALL_1")
        assert job.progress == 0
        assert job.message == ""

    @pytest.mark.asyncio
    async def test_find_active_window(self, session_factory):
        store = PostgresProgressStore(session_factory)
        await store.put("fcc_ALL_running", status=JobStatus.PROCESSING)
        await store.put("fcc_ALL_done", status=JobStatus.COMPLETED)

        window = timedelta(hours=1)
        active = await store.find_active(exclude_job_id="fcc_ALL_new", within=window)
        assert active.job_id == "fcc_ALL_running"
        assert await store.find_active(exclude_job_id="fcc_ALL_running", within=window) is None

        async with session_factory() as session:
            job = (await session.execute(
                select(ImportJob).where(ImportJob.job_id == "fcc_ALL_running")
            )).scalar_one()
            job.updated_at = datetime.utcnow() - timedelta(hours=2)
            await session.commit()

        assert await store.find_active(exclude_job_id="fcc_ALL_new", within=window) is None


class TestSettingsRepositoryPostgres:

    @pytest.mark.asyncio
    async def test_last_updated(self, db_session):
        stamp = await mark_last_updated(db_session, datetime(2024, 1, 15, 10, 20))
        await mark_last_updated(db_session, datetime(2024, 1, 16, 10, 20))

        assert stamp == "2024-01-15T10:20:00"
        assert await get_setting(db_session, LAST_UPDATED_KEY) == "2024-01-16T10:20:00"

    @pytest.mark.asyncio
    async def test_schedule_round_trip(self, db_session):
        await save_schedule_settings(db_session, ScheduleSettings(enabled=True, days_of_week="1,5", time_utc="04:00"))

        schedule = await load_schedule_settings(db_session)

        assert schedule.enabled is True
        assert schedule.days == [1, 5]
        assert schedule.time_utc == "04:00"


class TestClearTables:

    @pytest.mark.asyncio
    async def test_fresh_run_empties_both_tables(self, session_factory, db_session, tmp_path):
        await UpsertWriter(db_session, AMATEUR_SPEC).write([parse_line(am_line("W1AW"), AMATEUR_SPEC)])
        await UpsertWriter(db_session, ENTITY_SPEC).write([parse_line(en_line("W1AW"), ENTITY_SPEC)])

        runner = FCCImportRunner(
            session_factory=session_factory,
            progress_store=PostgresProgressStore(session_factory),
            staging=None,
            dispatcher=FakeDispatcher(),
            fetcher=None,
        )
        async with session_factory() as session:
            await runner._clear_tables(session)

        assert await count(db_session, AmateurRecord) == 0
        assert await count(db_session, EntityRecord) == 0
