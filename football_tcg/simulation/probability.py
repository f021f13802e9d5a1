"""
Scoring-chance model: turns two team strengths into a per-chance scoring probability per side.

The average is half the combined strength. The side above the average strength
gains (excess × modifier_above_average) percentage points; the side below loses
(deficit × modifier_below_average). Final probability = base % + modifier, floored at min_chance.
"""
from __future__ import annotations

from .schemas import MatchSettings, ScoringChances, TeamStrength

EQUAL_CHANCE_ZERO_STRENGTH = 0.5


class ScoringChanceModel:
    """Stateless; safe to share across threads."""

    def __init__(self, settings: MatchSettings | None = None) -> None:
        self.settings = settings or MatchSettings()

    def modifier(self, strength: float, average: float) -> float:
        """Directional modifier in percentage points relative to the average strength."""
        if strength > average:
            return (strength - average) * self.settings.modifier_above_average
        if strength < average:
            return -(average - strength) * self.settings.modifier_below_average
        return 0.0

    def compute(self, home: TeamStrength, away: TeamStrength) -> ScoringChances:
        total = home.total_strength + away.total_strength
        if total == 0:
            return ScoringChances(home=EQUAL_CHANCE_ZERO_STRENGTH, away=EQUAL_CHANCE_ZERO_STRENGTH)
        average = total / 2
        base = self.settings.base_chance_percentage / 100
        home_chance = base + self.modifier(home.total_strength, average) / 100
        away_chance = base + self.modifier(away.total_strength, average) / 100
        floor = self.settings.min_chance
        return ScoringChances(home=max(floor, home_chance), away=max(floor, away_chance))
