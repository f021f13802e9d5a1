"""
Tests for the matchday scheduler: calendar math, manual and automatic scheduling,
idempotent execution, incomplete cohorts, tick/recovery windows and the cron jobs.
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from football_tcg.clock import FixedClock
from football_tcg.config import Settings
from football_tcg.persistence.db import get_connection, init_db, set_db_path
from football_tcg.persistence.repositories import (
    CohortRepository,
    LeagueTableRepository,
    MatchRepository,
    ScheduledMatchdayRepository,
    UserRepository,
)
from football_tcg.services.league_service import CohortNotFoundError
from football_tcg.services.match_service import MatchService
from football_tcg.services.matchday_scheduler import (
    DAILY_JOB_ID,
    RECOVERY_JOB_ID,
    CohortInactiveError,
    ExecutionOutcome,
    MatchdayScheduler,
    ScheduleConflictError,
    ScheduleInPastError,
    build_job_scheduler,
)
from football_tcg.simulation.match_engine import MatchSimulator
from football_tcg.simulation.rng import SeededRNG

BERLIN = ZoneInfo("Europe/Berlin")


def berlin(*args) -> datetime:
    return datetime(*args, tzinfo=BERLIN)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "scheduler_test.db"
    set_db_path(path)
    init_db(db_path=path)
    return path


@pytest.fixture
def db_conn(db_path):
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def _make_cohort(conn, name: str, members: int = 4) -> str:
    cohorts = CohortRepository()
    cohort = cohorts.create(conn, name)
    for i in range(members):
        user = UserRepository().create(conn, f"{name}-user{i}")
        cohorts.add_member(conn, cohort.id, user.id)
    return cohort.id


@pytest.fixture
def cohort_id(db_conn):
    return _make_cohort(db_conn, "alpha")


@pytest.fixture
def clock():
    return FixedClock(berlin(2026, 3, 10, 12, 0))


@pytest.fixture
def scheduler(clock):
    return MatchdayScheduler(
        clock=clock,
        settings=Settings(scheduler_enabled=False),
        match_service=MatchService(MatchSimulator(rng=SeededRNG(1))),
    )


# ---------- Calendar math ----------


def test_next_standard_time_normalizes_time_of_day(scheduler):
    assert scheduler.next_standard_time(berlin(2026, 3, 10, 9, 13, 27)) == berlin(2026, 3, 15, 18, 0)


def test_next_standard_time_across_dst(scheduler):
    nxt = scheduler.next_standard_time(berlin(2026, 3, 27, 12, 0))
    assert (nxt.month, nxt.day, nxt.hour, nxt.minute) == (4, 1, 18, 0)
    assert nxt.utcoffset() == timedelta(hours=2)


def test_is_daily_fire_minute_resolution(scheduler):
    assert scheduler.is_daily_fire(berlin(2026, 3, 10, 18, 0, 30))
    assert not scheduler.is_daily_fire(berlin(2026, 3, 10, 18, 1))
    assert scheduler.is_daily_fire(datetime(2026, 3, 10, 17, 0, tzinfo=ZoneInfo("UTC")))


# ---------- Scheduling ----------


def test_schedule_next_matchday(db_conn, scheduler, cohort_id):
    at = berlin(2026, 3, 11, 18, 0)
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, at)
    assert record.matchday == 1
    assert not record.executed
    assert ScheduledMatchdayRepository().get_pending_for_cohort(db_conn, cohort_id).id == record.id
    assert CohortRepository().get(db_conn, cohort_id).next_matchday_at == at
    with pytest.raises(ScheduleConflictError):
        scheduler.schedule_next_matchday(db_conn, cohort_id, at + timedelta(days=1))


def test_schedule_rejects_past_missing_and_inactive(db_conn, scheduler, cohort_id):
    with pytest.raises(ScheduleInPastError):
        scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 9, 18, 0))
    with pytest.raises(CohortNotFoundError):
        scheduler.schedule_next_matchday(db_conn, "missing", berlin(2026, 3, 11, 18, 0))
    CohortRepository().set_active(db_conn, cohort_id, False)
    with pytest.raises(CohortInactiveError):
        scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))


def test_auto_schedule_all(db_conn, scheduler, cohort_id):
    scheduled = _make_cohort(db_conn, "beta")
    inactive = _make_cohort(db_conn, "gamma")
    CohortRepository().set_active(db_conn, inactive, False)
    scheduler.schedule_next_matchday(db_conn, scheduled, berlin(2026, 3, 12, 18, 0))
    created = scheduler.auto_schedule_all(db_conn)
    assert [r.cohort_id for r in created] == [cohort_id]
    assert created[0].scheduled_at == berlin(2026, 3, 15, 18, 0)
    assert ScheduledMatchdayRepository().get_pending_for_cohort(db_conn, inactive) is None


# ---------- Execution ----------


def test_execute_record_is_idempotent(db_conn, scheduler, clock, cohort_id):
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    clock.set(berlin(2026, 3, 11, 18, 0))
    assert scheduler.execute_record(db_conn, record.id) == ExecutionOutcome.EXECUTED

    schedules = ScheduledMatchdayRepository()
    assert schedules.get(db_conn, record.id).executed
    assert len(MatchRepository().list_by_matchday(db_conn, cohort_id, 1)) == 6
    rows = LeagueTableRepository().list_entries(db_conn, cohort_id, 1)
    assert len(rows) == 4 and all(r.points == 0 for r in rows)
    pending = schedules.get_pending_for_cohort(db_conn, cohort_id)
    assert pending.matchday == 2
    assert pending.scheduled_at == berlin(2026, 3, 16, 18, 0)
    cohort = CohortRepository().get(db_conn, cohort_id)
    assert cohort.current_matchday == 1
    assert cohort.next_matchday_at == berlin(2026, 3, 16, 18, 0)

    assert scheduler.execute_record(db_conn, record.id) == ExecutionOutcome.ALREADY_EXECUTED
    assert len(MatchRepository().list_by_matchday(db_conn, cohort_id, 1)) == 6
    assert len(schedules.list_by_cohort(db_conn, cohort_id)) == 2


def test_concurrent_execution_runs_once(db_path, db_conn, scheduler, clock, cohort_id):
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    now = berlin(2026, 3, 11, 18, 0)

    def run() -> ExecutionOutcome:
        conn = get_connection(db_path)
        try:
            return scheduler.execute_record(conn, record.id, now)
        finally:
            conn.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(lambda _: run(), range(2)))
    assert sorted(o.value for o in outcomes) == ["already_executed", "executed"]
    assert len(MatchRepository().list_by_matchday(db_conn, cohort_id, 1)) == 6


def test_incomplete_cohort_skipped(db_conn, scheduler, cohort_id, caplog):
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    members = CohortRepository().list_member_ids(db_conn, cohort_id)
    CohortRepository().remove_member(db_conn, cohort_id, members[-1])
    with caplog.at_level(logging.WARNING):
        outcome = scheduler.execute_record(db_conn, record.id, berlin(2026, 3, 11, 18, 0))
    assert outcome == ExecutionOutcome.SKIPPED_INCOMPLETE_COHORT
    assert "insufficient members (3/4)" in caplog.text
    assert not ScheduledMatchdayRepository().get(db_conn, record.id).executed
    assert MatchRepository().list_by_matchday(db_conn, cohort_id, 1) == []


# ---------- Ticks ----------


def test_tick_at_daily_fire_runs_due(db_conn, scheduler, cohort_id):
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    report = scheduler.on_tick(db_conn, berlin(2026, 3, 11, 18, 0))
    assert report.primary_ran
    assert report.executed == [record.id]


def test_tick_within_grace_does_nothing(db_conn, scheduler, cohort_id):
    scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    report = scheduler.on_tick(db_conn, berlin(2026, 3, 11, 18, 30))
    assert not report.primary_ran
    assert report.executed == []


def test_recovery_sweep_picks_up_missed_record(db_conn, scheduler, cohort_id):
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    report = scheduler.on_tick(db_conn, berlin(2026, 3, 11, 19, 30))
    assert not report.primary_ran
    assert report.executed == [record.id]


def test_recovery_ignores_records_older_than_lookback(db_conn, scheduler, cohort_id, caplog):
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    with caplog.at_level(logging.WARNING):
        report = scheduler.recover_missed(db_conn, berlin(2026, 3, 13, 10, 0))
    assert "older than the 24h recovery window" in caplog.text
    assert report.executed == []
    assert not ScheduledMatchdayRepository().get(db_conn, record.id).executed


def test_failure_in_one_cohort_does_not_block_others(db_conn, clock, cohort_id):
    other = _make_cohort(db_conn, "delta")

    class FlakyMatchService(MatchService):
        def create_fixtures(self, conn, cid, matchday, member_ids):
            if cid == cohort_id:
                raise RuntimeError("fixture store unavailable")
            return super().create_fixtures(conn, cid, matchday, member_ids)

    scheduler = MatchdayScheduler(clock=clock, settings=Settings(), match_service=FlakyMatchService())
    failing = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    working = scheduler.schedule_next_matchday(db_conn, other, berlin(2026, 3, 11, 18, 0))
    report = scheduler.execute_due(db_conn, berlin(2026, 3, 11, 18, 0))
    assert report.failed == [failing.id]
    assert report.executed == [working.id]
    # rolled back: still pending, no table rows
    assert not ScheduledMatchdayRepository().get(db_conn, failing.id).executed
    assert LeagueTableRepository().list_entries(db_conn, cohort_id) == []



# ---------- Cron jobs ----------


def _build_jobs(scheduler, connect):
    """AsyncIOScheduler binds to the running loop at construction."""
    async def build():
        return build_job_scheduler(scheduler, connect=connect)

    return asyncio.run(build())


def test_job_triggers_follow_league_time(db_path, scheduler):
    jobs = _build_jobs(scheduler, lambda: get_connection(db_path))
    daily = jobs.get_job(DAILY_JOB_ID)
    hourly = jobs.get_job(RECOVERY_JOB_ID)
    assert daily.trigger.get_next_fire_time(None, berlin(2026, 3, 10, 12, 0)) == berlin(2026, 3, 10, 18, 0)
    assert daily.trigger.get_next_fire_time(None, berlin(2026, 3, 10, 18, 30)) == berlin(2026, 3, 11, 18, 0)
    assert daily.misfire_grace_time == 3600
    assert hourly.trigger.get_next_fire_time(None, berlin(2026, 3, 10, 12, 30)) == berlin(2026, 3, 10, 13, 0)


def test_late_daily_job_still_executes(db_path, db_conn, scheduler, clock, cohort_id):
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    clock.set(berlin(2026, 3, 11, 18, 1))
    report = scheduler.run_due_job(connect=lambda: get_connection(db_path))
    assert report.executed == [record.id]
    assert ScheduledMatchdayRepository().get(db_conn, record.id).executed


def test_recovery_job_uses_own_connection(db_path, db_conn, scheduler, clock, cohort_id):
    record = scheduler.schedule_next_matchday(db_conn, cohort_id, berlin(2026, 3, 11, 18, 0))
    clock.set(berlin(2026, 3, 11, 20, 0))
    opened = []

    def connect():
        conn = get_connection(db_path)
        opened.append(conn)
        return conn

    report = scheduler.run_recovery_job(connect=connect)
    assert report.executed == [record.id]
    assert len(opened) == 1
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")
