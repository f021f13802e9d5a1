#!/usr/bin/env python3
"""
Vertical slice: Cohort → Packs → Teams → Matchday fires → Play → Standings.
Run from project root: python3 scripts/vertical_slice.py
"""
from __future__ import annotations

import random
import sys
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from football_tcg.clock import FixedClock
from football_tcg.config import get_settings
from football_tcg.models import PackItem, PackItemKind
from football_tcg.persistence import (
    CohortRepository,
    PackRepository,
    PlayerRepository,
    TeamRepository,
    UserRepository,
    get_connection,
    init_db,
)
from football_tcg.persistence.db import set_db_path
from football_tcg.services import LeagueService, MatchdayScheduler, MatchService, PackService
from football_tcg.simulation import DEFAULT_FORMATION, MatchSimulator, SeededRNG, compute_team_strength
from football_tcg.simulation.chemistry import PLAYER_COLORS

SEED = 99999


def main() -> None:
    # Use data/vertical_slice.db for demo (distinct from app.db)
    db_path = PROJECT_ROOT / "data" / "vertical_slice.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path=db_path)
    rng = random.Random(SEED)
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)

    conn = get_connection()
    try:
        users = UserRepository()
        players = PlayerRepository()
        cohorts = CohortRepository()

        # 1. Card pool: 8 players per color
        pool = [
            players.create(conn, f"{color.title()} {i}", rng.randint(60, 95), "CM", color)
            for color in PLAYER_COLORS
            for i in range(8)
        ]
        print(f"Created {len(pool)} player cards")

        # 2. Cohort of four
        cohort = cohorts.create(conn, "Slice Cohort")
        members = []
        for name in ("anna", "bruno", "chiara", "dario"):
            user = users.create(conn, name, coins=1000)
            cohorts.add_member(conn, cohort.id, user.id)
            members.append(user)
        print(f"Created cohort {cohort.id} with {len(members)} members")

        # 3. One pack, opened once by the first member
        pack = PackRepository().create(
            conn, "Starter Pack", 200,
            [PackItem(PackItemKind.PLAYER, p.id, rng.uniform(0.5, 2.0)) for p in pool[:10]],
        )
        opening = PackService(rng=SeededRNG(SEED)).open_pack(conn, pack.id, members[0].id)
        print(f"{members[0].username} drew {opening.drawn.ref_id}; {opening.remaining_coins} coins left")

        # 4. Three-color lineups (4/4/3)
        teams = TeamRepository()
        for user in members[:3]:
            colors = rng.sample(sorted(PLAYER_COLORS), 3)
            lineup = []
            for color, n in zip(colors, (4, 4, 3)):
                lineup += [p.id for p in pool if p.color == color][:n]
            team_id = teams.create(conn, user.id, cohort.id, f"{user.username} XI", DEFAULT_FORMATION.id, lineup)
            strength = compute_team_strength(teams.get(conn, team_id))
            print(f"  {user.username}: strength {strength.total_strength} (chemistry {strength.chemistry_points})")
        print(f"  {members[3].username}: no lineup, fields fillers")

        # 5. Schedule matchday 1 and fire it
        clock = FixedClock(datetime(2026, 3, 11, 12, 0, tzinfo=tz))
        match_service = MatchService(MatchSimulator(rng=SeededRNG(SEED)))
        scheduler = MatchdayScheduler(clock=clock, settings=settings, match_service=match_service)
        fire_at = datetime(2026, 3, 11, settings.matchday_hour, settings.matchday_minute, tzinfo=tz)
        scheduler.schedule_next_matchday(conn, cohort.id, fire_at)
        clock.set(fire_at)
        report = scheduler.on_tick(conn)
        print(f"Tick at {fire_at.isoformat()}: {report.to_dict()}")

        # 6. Play and print the table
        names = {u.id: u.username for u in members}
        for played in match_service.play_matchday(conn, cohort.id, 1, now=fire_at):
            m = played.match
            print(f"  #{m.match_number} {names[m.home_user_id]} {m.home_score}:{m.away_score} {names[m.away_user_id]}")
        league = LeagueService()
        standings = league.standings(conn, cohort.id, matchday=1)
        rewards = league.rewards(standings)
        print("\nStandings:")
        for row in standings:
            print(
                f"  {row.position}. {names[row.user_id]:<8} {row.points:>2} pts "
                f"{row.goals_for}:{row.goals_against}  reward {rewards[row.user_id]}"
            )

        print("\nVertical slice complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
