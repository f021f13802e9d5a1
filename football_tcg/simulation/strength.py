"""
Team strength: roster points plus chemistry bonus.
Rosters are completed with zero-point fillers first, so every team fields 11 players.
"""
from __future__ import annotations

import logging
from typing import Sequence

from football_tcg.models import Formation, Player, Team

from .chemistry import evaluate_chemistry
from .schemas import TeamStrength

logger = logging.getLogger(__name__)

PLAYERS_PER_TEAM = 11
FILLER_PREFIX = "filler-"
FILLER_COLOR = "grey"
FILLER_POINTS = 0

# 4-3-3
DEFAULT_FORMATION = Formation(
    id="formation-4-3-3",
    name="4-3-3",
    positions=("GK", "LB", "CB", "CB", "RB", "CDM", "CM", "CAM", "LW", "ST", "RW"),
)


def filler_player(position: str) -> Player:
    return Player(
        id=f"{FILLER_PREFIX}{position.lower()}",
        name=f"Filler {position}",
        points=FILLER_POINTS,
        position=position,
        color=FILLER_COLOR,
        is_filler=True,
    )


def is_filler_id(player_id: str) -> bool:
    return player_id.startswith(FILLER_PREFIX)


def complete_roster(players: Sequence[Player | None], formation: Formation) -> list[Player]:
    """One player per formation slot; empty or missing slots get the slot's filler."""
    roster: list[Player] = []
    for i, position in enumerate(formation.positions):
        player = players[i] if i < len(players) else None
        roster.append(player if player is not None else filler_player(position))
    return roster


def filler_team(team_id: str, user_id: str, cohort_id: str, formation: Formation = DEFAULT_FORMATION) -> Team:
    """All-filler team for a competitor who has not built a lineup."""
    return Team(
        id=team_id,
        user_id=user_id,
        cohort_id=cohort_id,
        name="Filler XI",
        formation=formation,
        players=[None] * len(formation.positions),
    )


def compute_team_strength(team: Team) -> TeamStrength:
    """
    player_points + chemistry_points. Chemistry degrades to 0 on invalid
    distributions or evaluator errors; it never fails the caller.
    """
    roster = complete_roster(team.players, team.formation)
    player_points = sum(p.points for p in roster)
    try:
        chemistry_points = evaluate_chemistry(p.color for p in roster).total_bonus
    except Exception:
        logger.warning("Chemistry evaluation failed for team %s; using 0", team.id, exc_info=True)
        chemistry_points = 0
    return TeamStrength(team_id=team.id, player_points=player_points, chemistry_points=chemistry_points)
