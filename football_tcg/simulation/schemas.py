"""
Shared types for the match simulation engine.
Match events, team strengths, scoring chances and match results.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"


class EventType(str, Enum):
    GOAL = "goal"


@dataclass(frozen=True)
class MatchSettings:
    """
    Coefficients of the scoring-chance model.
    Modifiers are in percentage points per strength point away from the average.
    """
    base_chance_percentage: float = 1.0
    modifier_above_average: float = 0.05
    modifier_below_average: float = 0.01
    chances_per_team: int = 100
    min_chance: float = 0.001
    match_minutes: int = 90


@dataclass(frozen=True)
class TeamStrength:
    """Roster points plus chemistry bonus."""
    team_id: str
    player_points: int
    chemistry_points: int

    @property
    def total_strength(self) -> int:
        return self.player_points + self.chemistry_points

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "player_points": self.player_points,
            "chemistry_points": self.chemistry_points,
            "total_strength": self.total_strength,
        }


@dataclass(frozen=True)
class ScoringChances:
    """Per-chance scoring probability for each side."""
    home: float
    away: float


@dataclass(frozen=True)
class MatchEvent:
    """Cosmetic timeline entry: who scored, for which side, in which minute."""
    minute: int
    side: Side
    player_id: str
    type: EventType = EventType.GOAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "minute": self.minute,
            "type": self.type.value,
            "side": self.side.value,
            "player_id": self.player_id,
        }


@dataclass
class MatchSimulation:
    """Full simulation output: scoreline, timeline, points and diagnostics."""
    home_goals: int
    away_goals: int
    home_points: int
    away_points: int
    events: list[MatchEvent] = field(default_factory=list)
    home_strength: TeamStrength | None = None
    away_strength: TeamStrength | None = None
    chances: ScoringChances | None = None
    chances_per_team: int = 0

    @property
    def scoreline(self) -> tuple[int, int]:
        return (self.home_goals, self.away_goals)

    @property
    def league_points(self) -> tuple[int, int]:
        return (self.home_points, self.away_points)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "scoreline": {"home": self.home_goals, "away": self.away_goals},
            "league_points": {"home": self.home_points, "away": self.away_points},
            "events": [e.to_dict() for e in self.events],
            "chances_per_team": self.chances_per_team,
        }
        if self.chances is not None:
            d["home_percentage"] = self.chances.home * 100
            d["away_percentage"] = self.chances.away * 100
        if self.home_strength is not None:
            d["home_strength"] = self.home_strength.to_dict()
        if self.away_strength is not None:
            d["away_strength"] = self.away_strength.to_dict()
        return d
