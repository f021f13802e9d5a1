"""
Tests for round-robin fixture generation.
"""
from __future__ import annotations

from itertools import combinations
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from football_tcg.services.scheduling import (
    MATCHES_PER_MATCHDAY,
    InvalidCohortSizeError,
    generate_fixtures,
    generate_matchday_schedule,
)


def test_four_teams_six_unique_pairings():
    teams = ["a", "b", "c", "d"]
    fixtures = generate_fixtures(teams)
    assert len(fixtures) == MATCHES_PER_MATCHDAY
    pairs = {frozenset((f.home, f.away)) for f in fixtures}
    assert pairs == {frozenset(p) for p in combinations(teams, 2)}
    assert [f.match_number for f in fixtures] == [1, 2, 3, 4, 5, 6]


def test_lower_index_plays_at_home():
    teams = ["a", "b", "c", "d"]
    for f in generate_fixtures(teams):
        assert teams.index(f.home) < teams.index(f.away)


def test_same_input_same_fixtures():
    assert generate_fixtures(["w", "x", "y", "z"]) == generate_fixtures(["w", "x", "y", "z"])


@pytest.mark.parametrize("n", [0, 3, 5])
def test_wrong_team_count_raises(n):
    with pytest.raises(InvalidCohortSizeError, match="exactly 4 teams"):
        generate_fixtures([f"t{i}" for i in range(n)])


def test_matchday_schedule_shape():
    schedule = generate_matchday_schedule(["u1", "u2", "u3", "u4"], matchday=3)
    assert len(schedule) == 6
    assert schedule[0] == {"matchday": 3, "match_number": 1, "home_user_id": "u1", "away_user_id": "u2"}
    assert schedule[-1] == {"matchday": 3, "match_number": 6, "home_user_id": "u3", "away_user_id": "u4"}
