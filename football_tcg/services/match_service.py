"""
Match play: simulate stored fixtures and book results into the league table.
Each match is simulated exactly once; the played flag is set with a conditional update
inside the same transaction as the table increments.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from football_tcg.models import Match, Team
from football_tcg.persistence.db import transaction
from football_tcg.persistence.repositories import LeagueTableRepository, MatchRepository, TeamRepository
from football_tcg.services.scheduling import generate_matchday_schedule
from football_tcg.simulation.match_engine import MatchSimulator
from football_tcg.simulation.schemas import MatchSimulation
from football_tcg.simulation.strength import filler_team

logger = logging.getLogger(__name__)

# ---------- Exceptions ----------


class MatchNotFoundError(ValueError):
    """No match with the given id."""


class MatchAlreadyPlayedError(ValueError):
    """A played match can never be simulated again."""


class NoUnplayedMatchesError(ValueError):
    """Matchday has no fixtures left to play."""


@dataclass
class PlayedMatch:
    match: Match
    simulation: MatchSimulation
    home_team: Team
    away_team: Team

    def to_dict(self) -> dict:
        return {
            "match": self.match.to_dict(),
            "simulation": self.simulation.to_dict(),
            "home_team_id": self.home_team.id,
            "away_team_id": self.away_team.id,
        }


class MatchService:
    """Runs fixtures through the simulator; persistence is delegated to repositories."""

    def __init__(self, simulator: MatchSimulator | None = None) -> None:
        self.simulator = simulator or MatchSimulator()
        self._matches = MatchRepository()
        self._teams = TeamRepository()
        self._table = LeagueTableRepository()

    def resolve_team(self, conn: sqlite3.Connection, cohort_id: str, user_id: str, matchday: int) -> Team:
        """User's lineup for the matchday; an all-filler team if the user never built one."""
        team = self._teams.find_for_matchday(conn, cohort_id, user_id, matchday)
        if team is None:
            logger.info("User %s has no team in cohort %s; fielding fillers", user_id, cohort_id)
            return filler_team(f"filler-team-{user_id}", user_id, cohort_id)
        return team

    def create_fixtures(
        self, conn: sqlite3.Connection, cohort_id: str, matchday: int, member_ids: Sequence[str]
    ) -> list[Match]:
        """Persist the six round-robin fixtures of a matchday."""
        return [
            self._matches.create(
                conn, cohort_id, matchday,
                match_number=f["match_number"],
                home_user_id=f["home_user_id"],
                away_user_id=f["away_user_id"],
            )
            for f in generate_matchday_schedule(member_ids, matchday)
        ]

    def play_match(self, conn: sqlite3.Connection, match_id: str, now: datetime | None = None) -> PlayedMatch:
        """
        Simulate one unplayed match, mark it played and update both table rows.
        Raises MatchAlreadyPlayedError for played matches (including a concurrent winner).
        """
        played_at = now or datetime.now(timezone.utc)
        with transaction(conn):
            match = self._matches.get(conn, match_id)
            if match is None:
                raise MatchNotFoundError(f"Match not found: {match_id}")
            if match.played:
                raise MatchAlreadyPlayedError(f"Match {match_id} has already been played")
            home = self.resolve_team(conn, match.cohort_id, match.home_user_id, match.matchday)
            away = self.resolve_team(conn, match.cohort_id, match.away_user_id, match.matchday)
            sim = self.simulator.simulate(home, away)
            if not self._matches.mark_played(conn, match_id, sim.home_goals, sim.away_goals, played_at):
                raise MatchAlreadyPlayedError(f"Match {match_id} has already been played")
            self._table.record_result(
                conn, match.cohort_id, match.home_user_id, match.matchday,
                goals_for=sim.home_goals, goals_against=sim.away_goals, points=sim.home_points,
            )
            self._table.record_result(
                conn, match.cohort_id, match.away_user_id, match.matchday,
                goals_for=sim.away_goals, goals_against=sim.home_goals, points=sim.away_points,
            )
        match.played = True
        match.home_score = sim.home_goals
        match.away_score = sim.away_goals
        match.played_at = played_at
        logger.info(
            "Match %s (matchday %d, #%d) finished %d:%d",
            match_id, match.matchday, match.match_number, sim.home_goals, sim.away_goals,
        )
        return PlayedMatch(match=match, simulation=sim, home_team=home, away_team=away)

    def play_matchday(
        self, conn: sqlite3.Connection, cohort_id: str, matchday: int, now: datetime | None = None
    ) -> list[PlayedMatch]:
        """Play every unplayed fixture of the matchday in one transaction."""
        with transaction(conn):
            pending = [m for m in self._matches.list_by_matchday(conn, cohort_id, matchday) if not m.played]
            if not pending:
                raise NoUnplayedMatchesError(
                    f"No unplayed matches found for matchday {matchday} in cohort {cohort_id}"
                )
            return [self.play_match(conn, m.id, now=now) for m in pending]
