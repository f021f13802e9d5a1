"""
Match simulator: many small independent scoring chances per side.

Each side runs a fixed number of Bernoulli trials at its per-chance probability;
goals = successes. A cosmetic goal timeline is then drawn (sorted random minutes,
random scorers) consistent with the final tally. Always completes in O(chances).
"""
from __future__ import annotations

from typing import Sequence

from football_tcg.models import Player, Team

from .probability import ScoringChanceModel
from .rng import RandomSource, SystemRNG
from .schemas import MatchEvent, MatchSettings, MatchSimulation, ScoringChances, Side, TeamStrength
from .strength import complete_roster, compute_team_strength

POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0


def league_points(home_goals: int, away_goals: int) -> tuple[int, int]:
    """(home, away) league points: win 3, draw 1, loss 0."""
    if home_goals > away_goals:
        return (POINTS_WIN, POINTS_LOSS)
    if away_goals > home_goals:
        return (POINTS_LOSS, POINTS_WIN)
    return (POINTS_DRAW, POINTS_DRAW)


class MatchSimulator:
    """
    Stochastic match engine with an injected random source.
    Defaults to OS entropy; pass SeededRNG for reproducible runs.
    """

    def __init__(
        self,
        settings: MatchSettings | None = None,
        rng: RandomSource | None = None,
    ) -> None:
        self.settings = settings or MatchSettings()
        self.rng = rng if rng is not None else SystemRNG()
        self.chance_model = ScoringChanceModel(self.settings)

    def run_chances(self, probability: float) -> int:
        """Count successes over chances_per_team independent trials."""
        rng = self.rng
        return sum(1 for _ in range(self.settings.chances_per_team) if rng.random() < probability)

    def generate_events(
        self,
        home_goals: int,
        away_goals: int,
        home_players: Sequence[Player],
        away_players: Sequence[Player],
    ) -> list[MatchEvent]:
        total = home_goals + away_goals
        if total == 0:
            return []
        rng = self.rng
        minutes = sorted(rng.randint(1, self.settings.match_minutes) for _ in range(total))
        events: list[MatchEvent] = []
        home_scored = 0
        away_scored = 0
        for minute in minutes:
            home_goal = home_scored < home_goals and (
                away_scored >= away_goals or rng.random() < home_goals / total
            )
            if home_goal:
                events.append(MatchEvent(minute=minute, side=Side.HOME, player_id=rng.choice(home_players).id))
                home_scored += 1
            else:
                events.append(MatchEvent(minute=minute, side=Side.AWAY, player_id=rng.choice(away_players).id))
                away_scored += 1
        return events

    def simulate_strengths(
        self,
        home_strength: TeamStrength,
        away_strength: TeamStrength,
        home_players: Sequence[Player],
        away_players: Sequence[Player],
    ) -> MatchSimulation:
        chances: ScoringChances = self.chance_model.compute(home_strength, away_strength)
        home_goals = self.run_chances(chances.home)
        away_goals = self.run_chances(chances.away)
        events = self.generate_events(home_goals, away_goals, home_players, away_players)
        home_points, away_points = league_points(home_goals, away_goals)
        return MatchSimulation(
            home_goals=home_goals,
            away_goals=away_goals,
            home_points=home_points,
            away_points=away_points,
            events=events,
            home_strength=home_strength,
            away_strength=away_strength,
            chances=chances,
            chances_per_team=self.settings.chances_per_team,
        )

    def simulate(self, home: Team, away: Team) -> MatchSimulation:
        """Team-level entry point: fills rosters, computes strengths, simulates."""
        home_roster = complete_roster(home.players, home.formation)
        away_roster = complete_roster(away.players, away.formation)
        return self.simulate_strengths(
            compute_team_strength(home),
            compute_team_strength(away),
            home_roster,
            away_roster,
        )


def simulate_match(home: Team, away: Team, rng: RandomSource | None = None) -> MatchSimulation:
    """Simulate one match with default settings. Caller rejects already-played matches."""
    return MatchSimulator(rng=rng).simulate(home, away)
