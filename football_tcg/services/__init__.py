"""
Service layer: fixtures, match play, standings, packs and the matchday scheduler.
Simulation stays pure; these services orchestrate persistence around it.
"""
from .scheduling import InvalidCohortSizeError, generate_fixtures, generate_matchday_schedule
from .league_service import CohortNotFoundError, LeagueService, StandingRow
from .match_service import (
    MatchAlreadyPlayedError,
    MatchNotFoundError,
    MatchService,
    NoUnplayedMatchesError,
)
from .packs import (
    InsufficientCoinsError,
    PackNotAvailableError,
    PackNotFoundError,
    PackService,
    PoolMisconfiguredError,
    draw_from_pool,
    rebalance_pool,
)
from .matchday_scheduler import (
    CohortInactiveError,
    ExecutionOutcome,
    MatchdayScheduler,
    ScheduleConflictError,
    ScheduleInPastError,
    ScheduleNotFoundError,
    build_job_scheduler,
)

__all__ = [
    "InvalidCohortSizeError",
    "generate_fixtures",
    "generate_matchday_schedule",
    "CohortNotFoundError",
    "LeagueService",
    "StandingRow",
    "MatchAlreadyPlayedError",
    "MatchNotFoundError",
    "MatchService",
    "NoUnplayedMatchesError",
    "InsufficientCoinsError",
    "PackNotAvailableError",
    "PackNotFoundError",
    "PackService",
    "PoolMisconfiguredError",
    "draw_from_pool",
    "rebalance_pool",
    "CohortInactiveError",
    "ExecutionOutcome",
    "MatchdayScheduler",
    "ScheduleConflictError",
    "ScheduleInPastError",
    "ScheduleNotFoundError",
    "build_job_scheduler",
]
