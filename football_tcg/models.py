"""
Data models for the football TCG backend.
Domain objects only; no persistence or API logic.

Cohort-centric architecture: four competitors share a cohort; the cohort advances
matchday by matchday on a schedule; matches are simulated from each competitor's team.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- Pack status ----------
class PackStatus(str, Enum):
    """Pack lifecycle: active → empty (pool drained). Inactive = disabled by admin."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    EMPTY = "EMPTY"


# ---------- Pack item kind ----------
class PackItemKind(str, Enum):
    PLAYER = "player"
    FORMATION = "formation"


# ---------- Scheduled matchday status (one-way) ----------
class ScheduleStatus(str, Enum):
    PENDING = "pending"
    EXECUTED = "executed"


# ---------- Player ----------
@dataclass(frozen=True)
class Player:
    """
    A collectible player card. weight is the draw weight (percentage) in packs.
    Fillers are zero-point placeholders that complete a roster.
    """
    id: str
    name: str
    points: int
    position: str
    color: str
    weight: float = 0.0
    is_filler: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "points": self.points,
            "position": self.position,
            "color": self.color,
            "weight": self.weight,
            "is_filler": self.is_filler,
        }


# ---------- Formation ----------
@dataclass(frozen=True)
class Formation:
    """Ordered position tags, one per roster slot."""
    id: str
    name: str
    positions: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "positions": list(self.positions)}


# ---------- User (competitor) ----------
@dataclass
class User:
    """A competitor. coins pay for pack openings."""
    id: str
    username: str
    coins: int
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "coins": self.coins,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Cohort ----------
@dataclass
class Cohort:
    """
    Fixed group of four competitors sharing one competition.
    current_matchday is the last executed matchday (0 before the first).
    """
    id: str
    name: str
    is_active: bool
    current_matchday: int
    created_at: datetime
    next_matchday_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "current_matchday": self.current_matchday,
            "created_at": self.created_at.isoformat(),
        }
        if self.next_matchday_at is not None:
            d["next_matchday_at"] = self.next_matchday_at.isoformat()
        return d


# ---------- CohortMember (join: cohort_id, user_id) ----------
@dataclass
class CohortMember:
    cohort_id: str
    user_id: str
    joined_at: datetime


# ---------- Team ----------
@dataclass
class Team:
    """
    A competitor's lineup for a cohort. players holds one entry per formation slot;
    None marks an empty slot (filled with a filler before simulation).
    """
    id: str
    user_id: str
    cohort_id: str
    name: str
    formation: Formation
    players: list[Player | None]
    matchday: int | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "cohort_id": self.cohort_id,
            "name": self.name,
            "formation_id": self.formation.id,
            "matchday": self.matchday,
            "players": [p.to_dict() if p is not None else None for p in self.players],
        }


# ---------- Match ----------
@dataclass
class Match:
    """
    One fixture of a matchday between two competitors.
    Created unplayed; simulated exactly once; played is then permanent.
    """
    id: str
    cohort_id: str
    matchday: int
    match_number: int
    home_user_id: str
    away_user_id: str
    played: bool
    home_score: int
    away_score: int
    created_at: datetime
    played_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "cohort_id": self.cohort_id,
            "matchday": self.matchday,
            "match_number": self.match_number,
            "home_user_id": self.home_user_id,
            "away_user_id": self.away_user_id,
            "played": self.played,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "created_at": self.created_at.isoformat(),
        }
        if self.played_at is not None:
            d["played_at"] = self.played_at.isoformat()
        return d


# ---------- LeagueTableEntry ----------
@dataclass
class LeagueTableEntry:
    """Aggregate per (cohort, competitor, matchday)."""
    cohort_id: str
    user_id: str
    matchday: int
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def matches_played(self) -> int:
        return self.wins + self.draws + self.losses

    def to_dict(self) -> dict[str, Any]:
        return {
            "cohort_id": self.cohort_id,
            "user_id": self.user_id,
            "matchday": self.matchday,
            "points": self.points,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "matches": self.matches_played,
        }


# ---------- Pack ----------
@dataclass(frozen=True)
class PackItem:
    """A player or formation reference plus its draw weight."""
    kind: PackItemKind
    ref_id: str
    weight: float

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "ref_id": self.ref_id, "weight": self.weight}


@dataclass(frozen=True)
class Pack:
    """Shrinking pool of weighted items. Drawn items never return."""
    id: str
    name: str
    price: int
    status: PackStatus
    items: tuple[PackItem, ...] = field(default_factory=tuple)

    @property
    def total_weight(self) -> float:
        return sum(item.weight for item in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "status": self.status.value,
            "item_count": len(self.items),
            "total_weight": self.total_weight,
            "items": [item.to_dict() for item in self.items],
        }


# ---------- ScheduledMatchdayRecord ----------
@dataclass
class ScheduledMatchday:
    """
    Persisted intent to advance a cohort to `matchday` at `scheduled_at`.
    executed flips false → true exactly once.
    """
    id: str
    cohort_id: str
    matchday: int
    scheduled_at: datetime
    executed: bool
    created_at: datetime
    executed_at: datetime | None = None

    @property
    def status(self) -> ScheduleStatus:
        return ScheduleStatus.EXECUTED if self.executed else ScheduleStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "cohort_id": self.cohort_id,
            "matchday": self.matchday,
            "scheduled_at": self.scheduled_at.isoformat(),
            "executed": self.executed,
            "status": self.status.value,
        }
        if self.executed_at is not None:
            d["executed_at"] = self.executed_at.isoformat()
        return d
