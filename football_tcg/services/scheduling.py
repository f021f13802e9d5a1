"""
Round-robin fixture generation for a cohort.

A cohort is always exactly 4 competitors, so a matchday is all C(4,2) = 6 pairings.
The lower index plays at home. Same input ordering yields the same fixtures.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar

COHORT_SIZE = 4
MATCHES_PER_MATCHDAY = 6

T = TypeVar("T")


class InvalidCohortSizeError(ValueError):
    """Fixtures need exactly COHORT_SIZE teams."""


@dataclass(frozen=True)
class Fixture(Generic[T]):
    match_number: int
    home: T
    away: T


def generate_fixtures(teams: Sequence[T]) -> list[Fixture[T]]:
    """
    Every unordered pair exactly once, numbered 1..6.
    Raises InvalidCohortSizeError unless len(teams) == 4.
    """
    if len(teams) != COHORT_SIZE:
        raise InvalidCohortSizeError(
            f"League must have exactly {COHORT_SIZE} teams (got {len(teams)})"
        )
    fixtures: list[Fixture[T]] = []
    match_number = 1
    for i in range(len(teams)):
        for j in range(i + 1, len(teams)):
            fixtures.append(Fixture(match_number=match_number, home=teams[i], away=teams[j]))
            match_number += 1
    return fixtures


def generate_matchday_schedule(user_ids: Sequence[str], matchday: int) -> list[dict[str, Any]]:
    """
    Return list of fixtures: { "matchday": int, "match_number": int, "home_user_id": str, "away_user_id": str }.
    """
    return [
        {
            "matchday": matchday,
            "match_number": f.match_number,
            "home_user_id": f.home,
            "away_user_id": f.away,
        }
        for f in generate_fixtures(list(user_ids))
    ]
