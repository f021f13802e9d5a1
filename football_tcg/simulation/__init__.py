"""
Match simulation engine: chemistry, team strength, scoring chances and
stochastic football matches driven by an injectable random source.
"""
from .schemas import (
    EventType,
    MatchEvent,
    MatchSettings,
    MatchSimulation,
    ScoringChances,
    Side,
    TeamStrength,
)
from .rng import RandomSource, SeededRNG, SystemRNG
from .chemistry import ChemistryResult, chemistry_breakdown, evaluate_chemistry
from .strength import (
    DEFAULT_FORMATION,
    complete_roster,
    compute_team_strength,
    filler_player,
    filler_team,
)
from .probability import ScoringChanceModel
from .match_engine import MatchSimulator, league_points, simulate_match

__all__ = [
    "EventType",
    "MatchEvent",
    "MatchSettings",
    "MatchSimulation",
    "ScoringChances",
    "Side",
    "TeamStrength",
    "RandomSource",
    "SeededRNG",
    "SystemRNG",
    "ChemistryResult",
    "chemistry_breakdown",
    "evaluate_chemistry",
    "DEFAULT_FORMATION",
    "complete_roster",
    "compute_team_strength",
    "filler_player",
    "filler_team",
    "ScoringChanceModel",
    "MatchSimulator",
    "league_points",
    "simulate_match",
]
