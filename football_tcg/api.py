"""
REST API for the football TCG backend.
Thin wrappers around domain logic and persistence.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Generator

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from football_tcg.config import get_settings
from football_tcg.persistence import TeamRepository, get_connection, init_db
from football_tcg.persistence.db import get_db_path
from football_tcg.services.league_service import CohortNotFoundError, LeagueService
from football_tcg.services.match_service import (
    MatchAlreadyPlayedError,
    MatchNotFoundError,
    MatchService,
)
from football_tcg.services.matchday_scheduler import (
    MatchdayScheduler,
    ScheduleConflictError,
    ScheduleNotFoundError,
    build_job_scheduler,
)
from football_tcg.services.packs import PackNotFoundError, PackService
from football_tcg.simulation import (
    MatchSimulator,
    SeededRNG,
    chemistry_breakdown,
    compute_team_strength,
    evaluate_chemistry,
)

logger = logging.getLogger(__name__)

_NOT_FOUND = (CohortNotFoundError, MatchNotFoundError, PackNotFoundError, ScheduleNotFoundError)
_CONFLICT = (MatchAlreadyPlayedError, ScheduleConflictError)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def _http_error(e: ValueError) -> HTTPException:
    """Domain error -> 404 / 409 / 400."""
    if isinstance(e, _NOT_FOUND):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, _CONFLICT):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _match_service(seed: int | None) -> MatchService:
    if seed is None:
        return MatchService()
    return MatchService(MatchSimulator(rng=SeededRNG(seed)))


# ---------- Startup: DB and scheduler ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db(db_path=get_db_path())
    jobs = None
    if settings.scheduler_enabled:
        jobs = build_job_scheduler(MatchdayScheduler(settings=settings))
        jobs.start()
        logger.info("Matchday jobs started (%s)", settings.timezone)
    app.state.jobs = jobs
    try:
        yield
    finally:
        if jobs is not None:
            jobs.shutdown(wait=False)
            logger.info("Matchday jobs stopped")


# ---------- FastAPI app ----------
app = FastAPI(
    title="Football TCG API",
    description="Chemistry, match simulation, packs and matchday scheduling",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Request models ----------
class ChemistryRequest(BaseModel):
    colors: list[str] = Field(..., description="Color tag of each rostered player")


class SimulateRequest(BaseModel):
    seed: int | None = Field(None, description="RNG seed for a reproducible result")


class ScheduleRequest(BaseModel):
    at: datetime | None = Field(None, description="Trigger time; default is the next standard matchday time")


class RebalanceRequest(BaseModel):
    target_total: float = Field(1.0, gt=0)


class TickRequest(BaseModel):
    now: datetime | None = Field(None, description="Override the scheduler clock")


# ---------- Routes ----------
@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/chemistry")
def chemistry(req: ChemistryRequest) -> dict[str, Any]:
    """Chemistry verdict plus per-color breakdown for a (partial) roster."""
    result = evaluate_chemistry(req.colors)
    d = result.to_dict()
    d["breakdown"] = [
        {"color": b.color, "player_count": b.player_count, "bonus": b.bonus}
        for b in chemistry_breakdown(req.colors)
    ]
    return d


@app.get("/teams/{team_id}/strength")
def team_strength(team_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        team = TeamRepository().get(conn, team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return compute_team_strength(team).to_dict()


@app.post("/matches/{match_id}/simulate")
def simulate_match(match_id: str, req: SimulateRequest | None = None) -> dict[str, Any]:
    """Simulate one stored fixture. A played match is rejected with 409."""
    with db_conn() as conn:
        svc = _match_service(req.seed if req else None)
        try:
            played = svc.play_match(conn, match_id)
        except ValueError as e:
            raise _http_error(e)
    return played.to_dict()


@app.post("/cohorts/{cohort_id}/matchdays/{matchday}/simulate")
def simulate_matchday(cohort_id: str, matchday: int, req: SimulateRequest | None = None) -> dict[str, Any]:
    """Play every unplayed fixture of the matchday."""
    with db_conn() as conn:
        svc = _match_service(req.seed if req else None)
        try:
            played = svc.play_matchday(conn, cohort_id, matchday)
        except ValueError as e:
            raise _http_error(e)
    return {"cohort_id": cohort_id, "matchday": matchday, "matches": [p.to_dict() for p in played]}


@app.get("/cohorts/{cohort_id}/table")
def league_table(cohort_id: str, matchday: int | None = Query(None, ge=1)) -> dict[str, Any]:
    """Standings for one matchday, or totals over all matchdays."""
    with db_conn() as conn:
        svc = LeagueService()
        try:
            standings = svc.standings(conn, cohort_id, matchday)
        except ValueError as e:
            raise _http_error(e)
    return {
        "cohort_id": cohort_id,
        "matchday": matchday,
        "standings": [row.to_dict() for row in standings],
        "rewards": svc.rewards(standings),
    }


@app.post("/cohorts/{cohort_id}/schedule")
def schedule_matchday(cohort_id: str, req: ScheduleRequest | None = None) -> dict[str, Any]:
    scheduler = MatchdayScheduler()
    at = req.at if req and req.at else scheduler.next_standard_time()
    with db_conn() as conn:
        try:
            record = scheduler.schedule_next_matchday(conn, cohort_id, at)
        except ValueError as e:
            raise _http_error(e)
    return record.to_dict()


@app.post("/packs/{pack_id}/open")
def open_pack(pack_id: str, x_user_id: str | None = Header(None)) -> dict[str, Any]:
    """Buy and open a pack as the user in the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required to open packs")
    with db_conn() as conn:
        try:
            opening = PackService().open_pack(conn, pack_id, x_user_id)
        except ValueError as e:
            raise _http_error(e)
    return opening.to_dict()


@app.post("/packs/{pack_id}/rebalance")
def rebalance_pack(pack_id: str, req: RebalanceRequest | None = None) -> dict[str, Any]:
    target = req.target_total if req else 1.0
    with db_conn() as conn:
        try:
            pack = PackService().rebalance_pack(conn, pack_id, target)
        except ValueError as e:
            raise _http_error(e)
    return pack.to_dict()


@app.post("/scheduler/tick")
def scheduler_tick(req: TickRequest | None = None) -> dict[str, Any]:
    """Operator hook: execute every pending matchday due now (or at the given time)."""
    scheduler = MatchdayScheduler()
    now = req.now if req and req.now else None
    if now is not None and now.tzinfo is None:
        now = now.replace(tzinfo=scheduler.tz)
    with db_conn() as conn:
        report = scheduler.execute_due(conn, now)
    return report.to_dict()
