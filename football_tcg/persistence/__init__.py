"""
Persistence layer for game data.
Read/write interfaces only; no business logic.
"""
from .db import get_connection, init_db, transaction
from .repositories import (
    UserRepository,
    PlayerRepository,
    FormationRepository,
    CohortRepository,
    TeamRepository,
    MatchRepository,
    LeagueTableRepository,
    PackRepository,
    ScheduledMatchdayRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "transaction",
    "UserRepository",
    "PlayerRepository",
    "FormationRepository",
    "CohortRepository",
    "TeamRepository",
    "MatchRepository",
    "LeagueTableRepository",
    "PackRepository",
    "ScheduledMatchdayRepository",
]
