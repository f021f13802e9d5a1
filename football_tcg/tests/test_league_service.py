"""
Tests for standings ordering, aggregation across matchdays and rewards.
"""
from __future__ import annotations

from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from football_tcg.models import LeagueTableEntry
from football_tcg.persistence.db import get_connection, init_db, set_db_path
from football_tcg.persistence.repositories import CohortRepository, LeagueTableRepository, UserRepository
from football_tcg.services.league_service import (
    LEAGUE_REWARDS,
    CohortNotFoundError,
    LeagueService,
    rank_entries,
)


def _entry(user_id: str, points: int, gf: int, ga: int, matchday: int = 1) -> LeagueTableEntry:
    return LeagueTableEntry(
        cohort_id="c1", user_id=user_id, matchday=matchday,
        points=points, goals_for=gf, goals_against=ga,
    )


def test_rank_by_points_then_goals_for_then_goals_against():
    rows = rank_entries([
        _entry("a", 4, 3, 3),
        _entry("b", 6, 2, 1),
        _entry("c", 4, 5, 4),
        _entry("d", 4, 3, 1),
    ])
    assert [r.user_id for r in rows] == ["b", "c", "d", "a"]
    assert [r.position for r in rows] == [1, 2, 3, 4]
    assert rows[1].goal_difference == 1


def test_rank_aggregates_matchdays():
    rows = rank_entries([
        _entry("a", 3, 2, 0, matchday=1),
        _entry("b", 0, 0, 2, matchday=1),
        _entry("a", 0, 0, 1, matchday=2),
        _entry("b", 3, 4, 0, matchday=2),
    ])
    assert rows[0].user_id == "b"
    assert (rows[0].points, rows[0].goals_for, rows[0].goals_against) == (3, 4, 2)
    assert (rows[1].points, rows[1].goals_for, rows[1].goals_against) == (3, 2, 1)


def test_rewards_by_position():
    rows = rank_entries([_entry(u, p, 0, 0) for u, p in (("a", 9), ("b", 6), ("c", 3), ("d", 0))])
    assert LeagueService().rewards(rows) == {"a": 250, "b": 200, "c": 150, "d": 100}
    assert LEAGUE_REWARDS[1] == 250


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "league_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def test_standings_from_table(db_conn):
    cohort = CohortRepository().create(db_conn, "Cohort B")
    users = [UserRepository().create(db_conn, name).id for name in ("w", "x", "y", "z")]
    table = LeagueTableRepository()
    table.init_rows(db_conn, cohort.id, users, 1)
    table.record_result(db_conn, cohort.id, users[2], 1, goals_for=2, goals_against=0, points=3)
    table.record_result(db_conn, cohort.id, users[3], 1, goals_for=0, goals_against=2, points=0)
    svc = LeagueService()
    standings = svc.standings(db_conn, cohort.id, matchday=1)
    assert standings[0].user_id == users[2]
    assert standings[0].wins == 1
    assert standings[-1].user_id == users[3]
    assert standings[-1].losses == 1
    assert len(svc.standings(db_conn, cohort.id)) == 4


def test_standings_unknown_cohort(db_conn):
    with pytest.raises(CohortNotFoundError):
        LeagueService().standings(db_conn, "missing")
