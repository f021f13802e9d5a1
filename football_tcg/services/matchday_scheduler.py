"""
Matchday scheduler: advances each cohort's calendar at a fixed local time.

Per cohort there is one pending ScheduledMatchday (partial unique index). Executing it
initializes the matchday's table rows and fixtures, marks it executed with a
compare-and-set update and schedules matchday + 1 in one transaction, so a
duplicate or concurrent run observes "already executed" and changes nothing.

Triggers are APScheduler cron jobs (build_job_scheduler): the daily fire at the configured
hour:minute runs every due record; an hourly sweep re-runs records missed by more than the
grace period but less than the lookback window. Older records are logged by the sweep and
left to the next daily fire.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from football_tcg.clock import Clock, SystemClock
from football_tcg.config import Settings, get_settings
from football_tcg.models import ScheduledMatchday
from football_tcg.persistence.db import get_connection, transaction
from football_tcg.persistence.repositories import (
    CohortRepository,
    LeagueTableRepository,
    ScheduledMatchdayRepository,
)
from football_tcg.services.league_service import CohortNotFoundError
from football_tcg.services.match_service import MatchService
from football_tcg.services.scheduling import COHORT_SIZE

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DAILY_JOB_ID = "matchday-daily"
RECOVERY_JOB_ID = "matchday-recovery"

# ---------- Exceptions ----------


class ScheduleNotFoundError(ValueError):
    """No scheduled matchday with the given id."""


class ScheduleConflictError(ValueError):
    """Cohort already has a pending scheduled matchday."""


class CohortInactiveError(ValueError):
    """Only active cohorts can be scheduled."""


class ScheduleInPastError(ValueError):
    """Manual schedules must lie in the future."""


class ExecutionOutcome(str, Enum):
    EXECUTED = "executed"
    ALREADY_EXECUTED = "already_executed"
    SKIPPED_INCOMPLETE_COHORT = "skipped_incomplete_cohort"


@dataclass
class TickReport:
    """What one trigger did, per record id."""
    primary_ran: bool = False
    executed: list[str] = field(default_factory=list)
    already_executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def merge(self, other: TickReport) -> TickReport:
        return TickReport(
            primary_ran=self.primary_ran or other.primary_ran,
            executed=self.executed + other.executed,
            already_executed=self.already_executed + other.already_executed,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
        )

    def to_dict(self) -> dict:
        return {
            "primary_ran": self.primary_ran,
            "executed": list(self.executed),
            "already_executed": list(self.already_executed),
            "skipped": list(self.skipped),
            "failed": list(self.failed),
        }


class MatchdayScheduler:
    """
    Owns its clock and exposes tick entry points, so catch-up logic runs without real time.
    All methods take an open connection; the background loop opens one per tick.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        settings: Settings | None = None,
        match_service: MatchService | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock(self.settings.timezone)
        self.tz = ZoneInfo(self.settings.timezone)
        self._match_service = match_service or MatchService()
        self._schedules = ScheduledMatchdayRepository()
        self._cohorts = CohortRepository()
        self._table = LeagueTableRepository()

    # ---------- Calendar math ----------

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else self.clock.now()

    def next_standard_time(self, now: datetime | None = None) -> datetime:
        """now + interval days, at the configured local time of day."""
        local = self._now(now).astimezone(self.tz) + timedelta(days=self.settings.matchday_interval_days)
        return local.replace(
            hour=self.settings.matchday_hour, minute=self.settings.matchday_minute, second=0, microsecond=0
        )

    def is_daily_fire(self, now: datetime) -> bool:
        local = now.astimezone(self.tz)
        return local.hour == self.settings.matchday_hour and local.minute == self.settings.matchday_minute

    # ---------- Execution ----------

    def execute_record(
        self, conn: sqlite3.Connection, record_id: str, now: datetime | None = None
    ) -> ExecutionOutcome:
        """
        Apply one scheduled matchday atomically. Idempotent: a second call returns
        ALREADY_EXECUTED. Incomplete cohorts are skipped and stay pending.
        """
        now = self._now(now)
        with transaction(conn):
            record = self._schedules.get(conn, record_id)
            if record is None:
                raise ScheduleNotFoundError(f"Scheduled matchday not found: {record_id}")
            if record.executed:
                return ExecutionOutcome.ALREADY_EXECUTED
            members = self._cohorts.list_member_ids(conn, record.cohort_id)
            if len(members) != COHORT_SIZE:
                logger.warning(
                    "Skipping matchday %d for cohort %s: insufficient members (%d/%d)",
                    record.matchday, record.cohort_id, len(members), COHORT_SIZE,
                )
                return ExecutionOutcome.SKIPPED_INCOMPLETE_COHORT
            if not self._schedules.mark_executed(conn, record.id, now):
                return ExecutionOutcome.ALREADY_EXECUTED
            self._table.init_rows(conn, record.cohort_id, members, record.matchday)
            fixtures = self._match_service.create_fixtures(conn, record.cohort_id, record.matchday, members)
            next_at = self.next_standard_time(now)
            self._schedules.create(conn, record.cohort_id, record.matchday + 1, next_at)
            self._cohorts.update_matchday_state(
                conn, record.cohort_id, current_matchday=record.matchday, next_matchday_at=next_at
            )
        logger.info(
            "Matchday %d executed for cohort %s with %d fixtures; matchday %d scheduled for %s",
            record.matchday, record.cohort_id, len(fixtures), record.matchday + 1,
            next_at.strftime("%Y-%m-%d %H:%M:%S %Z"),
        )
        return ExecutionOutcome.EXECUTED

    def _run_records(
        self, conn: sqlite3.Connection, records: Iterable[ScheduledMatchday], now: datetime
    ) -> TickReport:
        report = TickReport()
        for record in records:
            try:
                outcome = self.execute_record(conn, record.id, now)
            except Exception:
                logger.exception(
                    "Error executing matchday %d for cohort %s", record.matchday, record.cohort_id
                )
                report.failed.append(record.id)
                continue
            if outcome == ExecutionOutcome.EXECUTED:
                report.executed.append(record.id)
            elif outcome == ExecutionOutcome.ALREADY_EXECUTED:
                report.already_executed.append(record.id)
            else:
                report.skipped.append(record.id)
        return report

    def execute_due(self, conn: sqlite3.Connection, now: datetime | None = None) -> TickReport:
        """Primary path: every pending record whose time has come."""
        now = self._now(now)
        due = self._schedules.list_due(conn, now)
        logger.info("Found %d matchdays to execute at %s", len(due), now.astimezone(self.tz).isoformat())
        report = self._run_records(conn, due, now)
        report.primary_ran = True
        return report

    def recover_missed(self, conn: sqlite3.Connection, now: datetime | None = None) -> TickReport:
        """Sweep: pending records older than the grace period but inside the lookback window."""
        now = self._now(now)
        not_before = now - timedelta(hours=self.settings.recovery_lookback_hours)
        before = now - timedelta(hours=self.settings.recovery_grace_hours)
        missed = self._schedules.list_missed(conn, not_before, before)
        if missed:
            logger.warning("Found %d missed matchdays, executing now", len(missed))
        stale = self._schedules.list_missed(conn, _EPOCH, not_before)
        if stale:
            logger.warning(
                "%d pending matchdays are older than the %dh recovery window; they run at the next daily fire",
                len(stale), self.settings.recovery_lookback_hours,
            )
        return self._run_records(conn, missed, now)

    def on_tick(self, conn: sqlite3.Connection, now: datetime | None = None) -> TickReport:
        """Timer entry point: daily fire when due, recovery sweep always."""
        now = self._now(now)
        report = TickReport()
        if self.is_daily_fire(now):
            report = self.execute_due(conn, now)
        return report.merge(self.recover_missed(conn, now))

    # ---------- Scheduling ----------

    def schedule_next_matchday(
        self, conn: sqlite3.Connection, cohort_id: str, at: datetime, now: datetime | None = None
    ) -> ScheduledMatchday:
        """Create the pending record for the cohort's next matchday at a future time."""
        now = self._now(now)
        if at.tzinfo is None:
            at = at.replace(tzinfo=self.tz)
        if at <= now:
            raise ScheduleInPastError(f"Scheduled time {at.isoformat()} is not in the future")
        with transaction(conn):
            cohort = self._cohorts.get(conn, cohort_id)
            if cohort is None:
                raise CohortNotFoundError(f"Cohort not found: {cohort_id}")
            if not cohort.is_active:
                raise CohortInactiveError(f"Cohort {cohort_id} is not active")
            if self._schedules.get_pending_for_cohort(conn, cohort_id) is not None:
                raise ScheduleConflictError(f"Cohort {cohort_id} already has a pending matchday")
            record = self._schedules.create(conn, cohort_id, cohort.current_matchday + 1, at)
            self._cohorts.update_matchday_state(conn, cohort_id, next_matchday_at=at)
        logger.info(
            "Matchday %d scheduled for cohort %s at %s",
            record.matchday, cohort_id, at.astimezone(self.tz).strftime("%Y-%m-%d %H:%M:%S %Z"),
        )
        return record

    def auto_schedule_all(self, conn: sqlite3.Connection, now: datetime | None = None) -> list[ScheduledMatchday]:
        """Give every active cohort without a pending record one at the next standard time."""
        now = self._now(now)
        created: list[ScheduledMatchday] = []
        for cohort in self._cohorts.list_active(conn):
            if self._schedules.get_pending_for_cohort(conn, cohort.id) is not None:
                continue
            created.append(self.schedule_next_matchday(conn, cohort.id, self.next_standard_time(now), now=now))
        logger.info("Auto-scheduled %d cohorts", len(created))
        return created

    # ---------- Cron job bodies ----------

    def run_due_job(self, connect: Callable[[], sqlite3.Connection] = get_connection) -> TickReport:
        """Daily job: primary path on its own connection."""
        conn = connect()
        try:
            return self.execute_due(conn)
        finally:
            conn.close()

    def run_recovery_job(self, connect: Callable[[], sqlite3.Connection] = get_connection) -> TickReport:
        """Hourly job: recovery sweep on its own connection."""
        conn = connect()
        try:
            return self.recover_missed(conn)
        finally:
            conn.close()


def build_job_scheduler(
    scheduler: MatchdayScheduler,
    connect: Callable[[], sqlite3.Connection] = get_connection,
) -> AsyncIOScheduler:
    """
    Daily fire and hourly sweep as cron jobs in the league timezone. Not started.
    A late daily fire still runs within the recovery grace period; later ones are left to the sweep.
    """
    settings = scheduler.settings
    jobs = AsyncIOScheduler(timezone=scheduler.tz)
    jobs.add_job(
        scheduler.run_due_job,
        CronTrigger(hour=settings.matchday_hour, minute=settings.matchday_minute, timezone=scheduler.tz),
        kwargs={"connect": connect},
        id=DAILY_JOB_ID,
        misfire_grace_time=settings.recovery_grace_hours * 3600,
        coalesce=True,
        max_instances=1,
    )
    jobs.add_job(
        scheduler.run_recovery_job,
        CronTrigger(minute=0, timezone=scheduler.tz),
        kwargs={"connect": connect},
        id=RECOVERY_JOB_ID,
        coalesce=True,
        max_instances=1,
    )
    return jobs
