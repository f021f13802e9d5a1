"""
League standings and end-of-league rewards.
Order: points desc, goals for desc, goals against asc.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Iterable

from football_tcg.models import LeagueTableEntry
from football_tcg.persistence.repositories import CohortRepository, LeagueTableRepository

# Coins paid by final position
LEAGUE_REWARDS: dict[int, int] = {1: 250, 2: 200, 3: 150, 4: 100}


class CohortNotFoundError(ValueError):
    """No cohort with the given id."""


@dataclass
class StandingRow:
    position: int
    user_id: str
    points: int
    goals_for: int
    goals_against: int
    wins: int
    draws: int
    losses: int

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def matches(self) -> int:
        return self.wins + self.draws + self.losses

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "user_id": self.user_id,
            "points": self.points,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "matches": self.matches,
        }


def rank_entries(entries: Iterable[LeagueTableEntry]) -> list[StandingRow]:
    """Sum entries per user, sort and assign 1-based positions."""
    totals: dict[str, list[int]] = {}
    for e in entries:
        t = totals.setdefault(e.user_id, [0, 0, 0, 0, 0, 0])
        t[0] += e.points
        t[1] += e.goals_for
        t[2] += e.goals_against
        t[3] += e.wins
        t[4] += e.draws
        t[5] += e.losses
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1][0], -kv[1][1], kv[1][2], kv[0]))
    return [
        StandingRow(
            position=i + 1, user_id=uid, points=t[0], goals_for=t[1], goals_against=t[2],
            wins=t[3], draws=t[4], losses=t[5],
        )
        for i, (uid, t) in enumerate(ordered)
    ]


def rewards_for(standings: Iterable[StandingRow]) -> dict[str, int]:
    return {row.user_id: LEAGUE_REWARDS.get(row.position, 0) for row in standings}


class LeagueService:
    def __init__(self) -> None:
        self._cohorts = CohortRepository()
        self._table = LeagueTableRepository()

    def standings(self, conn: sqlite3.Connection, cohort_id: str, matchday: int | None = None) -> list[StandingRow]:
        """Table for one matchday, or totals over all matchdays when matchday is None."""
        if self._cohorts.get(conn, cohort_id) is None:
            raise CohortNotFoundError(f"Cohort not found: {cohort_id}")
        return rank_entries(self._table.list_entries(conn, cohort_id, matchday))

    def rewards(self, standings: Iterable[StandingRow]) -> dict[str, int]:
        """Coins per user for a final table."""
        return rewards_for(standings)
