"""
Tests for match play: fixtures, single simulation per match, table bookkeeping, filler fallback.
"""
from __future__ import annotations

from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from football_tcg.persistence.db import get_connection, init_db, set_db_path
from football_tcg.persistence.repositories import (
    CohortRepository,
    LeagueTableRepository,
    MatchRepository,
    PlayerRepository,
    TeamRepository,
    UserRepository,
)
from football_tcg.services.match_service import (
    MatchAlreadyPlayedError,
    MatchNotFoundError,
    MatchService,
    NoUnplayedMatchesError,
)
from football_tcg.simulation.match_engine import MatchSimulator
from football_tcg.simulation.rng import SeededRNG
from football_tcg.simulation.strength import DEFAULT_FORMATION


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "match_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def cohort_with_fixtures(db_conn):
    """Cohort of 4 with matchday 1 fixtures; u1 has a real team, the rest play fillers."""
    users = UserRepository()
    cohorts = CohortRepository()
    cohort = cohorts.create(db_conn, "Cohort A")
    member_ids = []
    for name in ("u1", "u2", "u3", "u4"):
        user = users.create(db_conn, name, id=name)
        cohorts.add_member(db_conn, cohort.id, user.id)
        member_ids.append(user.id)
    players = PlayerRepository()
    colors = ["red"] * 4 + ["yellow"] * 4 + ["purple"] * 3
    player_ids = [
        players.create(db_conn, f"P{i}", 85, pos, c, id=f"p{i}").id
        for i, (pos, c) in enumerate(zip(DEFAULT_FORMATION.positions, colors))
    ]
    TeamRepository().create(db_conn, "u1", cohort.id, "Reds", DEFAULT_FORMATION.id, player_ids)
    svc = MatchService(MatchSimulator(rng=SeededRNG(12)))
    LeagueTableRepository().init_rows(db_conn, cohort.id, member_ids, 1)
    matches = svc.create_fixtures(db_conn, cohort.id, 1, member_ids)
    return cohort, matches, svc


def test_create_fixtures_persists_six_matches(db_conn, cohort_with_fixtures):
    cohort, matches, _ = cohort_with_fixtures
    assert len(matches) == 6
    stored = MatchRepository().list_by_matchday(db_conn, cohort.id, 1)
    assert [m.match_number for m in stored] == [1, 2, 3, 4, 5, 6]
    assert not any(m.played for m in stored)


def test_play_match_once(db_conn, cohort_with_fixtures):
    cohort, matches, svc = cohort_with_fixtures
    played = svc.play_match(db_conn, matches[0].id)
    stored = MatchRepository().get(db_conn, matches[0].id)
    assert stored.played
    assert (stored.home_score, stored.away_score) == played.simulation.scoreline
    assert stored.played_at is not None
    with pytest.raises(MatchAlreadyPlayedError):
        svc.play_match(db_conn, matches[0].id)


def test_play_match_updates_both_table_rows(db_conn, cohort_with_fixtures):
    cohort, matches, svc = cohort_with_fixtures
    played = svc.play_match(db_conn, matches[0].id)
    entries = {e.user_id: e for e in LeagueTableRepository().list_entries(db_conn, cohort.id, 1)}
    home, away = entries[played.match.home_user_id], entries[played.match.away_user_id]
    sim = played.simulation
    assert home.goals_for == sim.home_goals and home.goals_against == sim.away_goals
    assert away.goals_for == sim.away_goals and away.goals_against == sim.home_goals
    assert (home.points, away.points) == sim.league_points
    assert home.matches_played == 1 and away.matches_played == 1


def test_real_team_and_filler_fallback(db_conn, cohort_with_fixtures):
    _, matches, svc = cohort_with_fixtures
    # match 1 is u1 (real team) vs u2 (no team)
    played = svc.play_match(db_conn, matches[0].id)
    assert played.home_team.name == "Reds"
    assert played.simulation.home_strength.total_strength == 11 * 85 + 41
    assert played.away_team.id == "filler-team-u2"
    assert played.simulation.away_strength.total_strength == 0


def test_play_unknown_match(db_conn, cohort_with_fixtures):
    _, _, svc = cohort_with_fixtures
    with pytest.raises(MatchNotFoundError):
        svc.play_match(db_conn, "missing")


def test_play_matchday(db_conn, cohort_with_fixtures):
    cohort, matches, svc = cohort_with_fixtures
    svc.play_match(db_conn, matches[0].id)
    played = svc.play_matchday(db_conn, cohort.id, 1)
    assert len(played) == 5
    assert all(m.played for m in MatchRepository().list_by_matchday(db_conn, cohort.id, 1))
    entries = LeagueTableRepository().list_entries(db_conn, cohort.id, 1)
    assert all(e.matches_played == 3 for e in entries)
    with pytest.raises(NoUnplayedMatchesError):
        svc.play_matchday(db_conn, cohort.id, 1)
