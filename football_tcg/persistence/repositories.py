"""
Repository interfaces for game data.
No business logic: only read/write operations. Repositories never commit;
callers group writes with persistence.db.transaction().
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Iterable, Sequence

from football_tcg.models import (
    Cohort,
    Formation,
    LeagueTableEntry,
    Match,
    Pack,
    PackItem,
    PackItemKind,
    PackStatus,
    Player,
    ScheduledMatchday,
    Team,
    User,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(dt: datetime) -> str:
    """UTC, fixed width, so stored timestamps compare correctly as strings."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _parse_optional_datetime(s: str | None) -> datetime | None:
    return _parse_datetime(s) if s else None


# ---------- UserRepository ----------


class UserRepository:
    """Users, coin balance and card collection."""

    def create(self, conn: sqlite3.Connection, username: str, coins: int = 0, id: str | None = None) -> User:
        uid = id or str(uuid.uuid4())
        now = _utcnow()
        conn.execute(
            "INSERT INTO users (id, username, coins, created_at) VALUES (?, ?, ?, ?)",
            (uid, username, coins, _to_iso(now)),
        )
        return User(id=uid, username=username, coins=coins, created_at=now)

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute(
            "SELECT id, username, coins, created_at FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return User(
            id=row["id"],
            username=row["username"],
            coins=row["coins"],
            created_at=_parse_datetime(row["created_at"]),
        )

    def charge_coins(self, conn: sqlite3.Connection, user_id: str, amount: int) -> bool:
        """Deduct amount if the balance covers it. False = insufficient coins (or no user)."""
        cur = conn.execute(
            "UPDATE users SET coins = coins - ? WHERE id = ? AND coins >= ?",
            (amount, user_id, amount),
        )
        return cur.rowcount == 1

    def add_coins(self, conn: sqlite3.Connection, user_id: str, amount: int) -> None:
        conn.execute("UPDATE users SET coins = coins + ? WHERE id = ?", (amount, user_id))

    def add_player(self, conn: sqlite3.Connection, user_id: str, player_id: str) -> None:
        conn.execute(
            "INSERT INTO user_players (user_id, player_id, acquired_at) VALUES (?, ?, ?)",
            (user_id, player_id, _to_iso(_utcnow())),
        )

    def add_formation(self, conn: sqlite3.Connection, user_id: str, formation_id: str) -> None:
        conn.execute(
            "INSERT INTO user_formations (user_id, formation_id, acquired_at) VALUES (?, ?, ?)",
            (user_id, formation_id, _to_iso(_utcnow())),
        )

    def list_player_ids(self, conn: sqlite3.Connection, user_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT player_id FROM user_players WHERE user_id = ? ORDER BY id", (user_id,)
        ).fetchall()
        return [r["player_id"] for r in rows]

    def list_formation_ids(self, conn: sqlite3.Connection, user_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT formation_id FROM user_formations WHERE user_id = ? ORDER BY id", (user_id,)
        ).fetchall()
        return [r["formation_id"] for r in rows]


# ---------- PlayerRepository ----------


def _row_to_player(r: sqlite3.Row) -> Player:
    return Player(
        id=r["id"],
        name=r["name"],
        points=r["points"],
        position=r["position"],
        color=r["color"],
        weight=r["weight"],
    )


class PlayerRepository:
    """CRUD for players. No business logic."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        points: int,
        position: str,
        color: str,
        weight: float = 0.0,
        id: str | None = None,
    ) -> Player:
        pid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO players (id, name, points, position, color, weight, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (pid, name, points, position, color, weight, _to_iso(_utcnow())),
        )
        return Player(id=pid, name=name, points=points, position=position, color=color, weight=weight)

    def get(self, conn: sqlite3.Connection, player_id: str) -> Player | None:
        row = conn.execute(
            "SELECT id, name, points, position, color, weight FROM players WHERE id = ?", (player_id,)
        ).fetchone()
        return _row_to_player(row) if row is not None else None

    def get_many(self, conn: sqlite3.Connection, player_ids: Iterable[str]) -> dict[str, Player]:
        ids = list(dict.fromkeys(player_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT id, name, points, position, color, weight FROM players WHERE id IN ({placeholders})",
            ids,
        ).fetchall()
        return {r["id"]: _row_to_player(r) for r in rows}

    def update_weight(self, conn: sqlite3.Connection, player_id: str, weight: float) -> None:
        conn.execute("UPDATE players SET weight = ? WHERE id = ?", (weight, player_id))


# ---------- FormationRepository ----------


class FormationRepository:
    def create(
        self, conn: sqlite3.Connection, name: str, positions: Sequence[str], id: str | None = None
    ) -> Formation:
        fid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO formations (id, name, positions, created_at) VALUES (?, ?, ?, ?)",
            (fid, name, json.dumps(list(positions)), _to_iso(_utcnow())),
        )
        return Formation(id=fid, name=name, positions=tuple(positions))

    def get(self, conn: sqlite3.Connection, formation_id: str) -> Formation | None:
        row = conn.execute(
            "SELECT id, name, positions FROM formations WHERE id = ?", (formation_id,)
        ).fetchone()
        if row is None:
            return None
        return Formation(id=row["id"], name=row["name"], positions=tuple(json.loads(row["positions"])))


# ---------- CohortRepository ----------


def _row_to_cohort(r: sqlite3.Row) -> Cohort:
    return Cohort(
        id=r["id"],
        name=r["name"],
        is_active=bool(r["is_active"]),
        current_matchday=r["current_matchday"],
        created_at=_parse_datetime(r["created_at"]),
        next_matchday_at=_parse_optional_datetime(r["next_matchday_at"]),
    )


class CohortRepository:
    """Cohorts and their members."""

    _COLS = "id, name, is_active, current_matchday, next_matchday_at, created_at"

    def create(self, conn: sqlite3.Connection, name: str, is_active: bool = True, id: str | None = None) -> Cohort:
        cid = id or str(uuid.uuid4())
        now = _utcnow()
        conn.execute(
            "INSERT INTO cohorts (id, name, is_active, current_matchday, next_matchday_at, created_at) VALUES (?, ?, ?, 0, NULL, ?)",
            (cid, name, int(is_active), _to_iso(now)),
        )
        return Cohort(id=cid, name=name, is_active=is_active, current_matchday=0, created_at=now)

    def get(self, conn: sqlite3.Connection, cohort_id: str) -> Cohort | None:
        row = conn.execute(f"SELECT {self._COLS} FROM cohorts WHERE id = ?", (cohort_id,)).fetchone()
        return _row_to_cohort(row) if row is not None else None

    def list_active(self, conn: sqlite3.Connection) -> list[Cohort]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM cohorts WHERE is_active = 1 ORDER BY created_at"
        ).fetchall()
        return [_row_to_cohort(r) for r in rows]

    def set_active(self, conn: sqlite3.Connection, cohort_id: str, is_active: bool) -> None:
        conn.execute("UPDATE cohorts SET is_active = ? WHERE id = ?", (int(is_active), cohort_id))

    def add_member(self, conn: sqlite3.Connection, cohort_id: str, user_id: str) -> None:
        conn.execute(
            "INSERT INTO cohort_members (cohort_id, user_id, joined_at) VALUES (?, ?, ?)",
            (cohort_id, user_id, _to_iso(_utcnow())),
        )

    def remove_member(self, conn: sqlite3.Connection, cohort_id: str, user_id: str) -> None:
        conn.execute("DELETE FROM cohort_members WHERE cohort_id = ? AND user_id = ?", (cohort_id, user_id))

    def list_member_ids(self, conn: sqlite3.Connection, cohort_id: str) -> list[str]:
        """Member user ids in join order (fixture order depends on it)."""
        rows = conn.execute(
            "SELECT user_id FROM cohort_members WHERE cohort_id = ? ORDER BY joined_at, user_id",
            (cohort_id,),
        ).fetchall()
        return [r["user_id"] for r in rows]

    def update_matchday_state(
        self,
        conn: sqlite3.Connection,
        cohort_id: str,
        current_matchday: int | None = None,
        next_matchday_at: datetime | None = None,
    ) -> None:
        if current_matchday is not None:
            conn.execute(
                "UPDATE cohorts SET current_matchday = ? WHERE id = ?", (current_matchday, cohort_id)
            )
        conn.execute(
            "UPDATE cohorts SET next_matchday_at = ? WHERE id = ?",
            (_to_iso(next_matchday_at) if next_matchday_at else None, cohort_id),
        )


# ---------- TeamRepository ----------


class TeamRepository:
    """Teams and their slot assignments."""

    _COLS = "id, user_id, cohort_id, matchday, name, formation_id, created_at"

    def __init__(self) -> None:
        self._formations = FormationRepository()
        self._players = PlayerRepository()

    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        cohort_id: str,
        name: str,
        formation_id: str,
        player_ids: Sequence[str | None],
        matchday: int | None = None,
        id: str | None = None,
    ) -> str:
        """Insert team and slots (None = empty slot). Returns the team id."""
        tid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO teams (id, user_id, cohort_id, matchday, name, formation_id, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (tid, user_id, cohort_id, matchday, name, formation_id, _to_iso(_utcnow())),
        )
        for slot, pid in enumerate(player_ids):
            if pid is None:
                continue
            conn.execute(
                "INSERT INTO team_players (team_id, slot, player_id) VALUES (?, ?, ?)",
                (tid, slot, pid),
            )
        return tid

    def _hydrate(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Team:
        formation = self._formations.get(conn, row["formation_id"])
        if formation is None:
            raise ValueError(f"Formation not found: {row['formation_id']}")
        slots = conn.execute(
            "SELECT slot, player_id FROM team_players WHERE team_id = ? ORDER BY slot", (row["id"],)
        ).fetchall()
        players_by_id = self._players.get_many(conn, (s["player_id"] for s in slots))
        players: list[Player | None] = [None] * len(formation.positions)
        for s in slots:
            if 0 <= s["slot"] < len(players):
                players[s["slot"]] = players_by_id.get(s["player_id"])
        return Team(
            id=row["id"],
            user_id=row["user_id"],
            cohort_id=row["cohort_id"],
            name=row["name"],
            formation=formation,
            players=players,
            matchday=row["matchday"],
            created_at=_parse_datetime(row["created_at"]),
        )

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute(f"SELECT {self._COLS} FROM teams WHERE id = ?", (team_id,)).fetchone()
        return self._hydrate(conn, row) if row is not None else None

    def find_for_matchday(
        self, conn: sqlite3.Connection, cohort_id: str, user_id: str, matchday: int
    ) -> Team | None:
        """Team pinned to the matchday, else the user's most recent team in the cohort."""
        row = conn.execute(
            f"SELECT {self._COLS} FROM teams WHERE cohort_id = ? AND user_id = ? AND matchday = ? "
            "ORDER BY created_at DESC LIMIT 1",
            (cohort_id, user_id, matchday),
        ).fetchone()
        if row is None:
            row = conn.execute(
                f"SELECT {self._COLS} FROM teams WHERE cohort_id = ? AND user_id = ? "
                "ORDER BY created_at DESC LIMIT 1",
                (cohort_id, user_id),
            ).fetchone()
        return self._hydrate(conn, row) if row is not None else None


# ---------- MatchRepository ----------


def _row_to_match(r: sqlite3.Row) -> Match:
    return Match(
        id=r["id"],
        cohort_id=r["cohort_id"],
        matchday=r["matchday"],
        match_number=r["match_number"],
        home_user_id=r["home_user_id"],
        away_user_id=r["away_user_id"],
        played=bool(r["played"]),
        home_score=r["home_score"],
        away_score=r["away_score"],
        created_at=_parse_datetime(r["created_at"]),
        played_at=_parse_optional_datetime(r["played_at"]),
    )


class MatchRepository:
    """Fixtures and results. No business logic."""

    _COLS = (
        "id, cohort_id, matchday, match_number, home_user_id, away_user_id, "
        "played, home_score, away_score, created_at, played_at"
    )

    def create(
        self,
        conn: sqlite3.Connection,
        cohort_id: str,
        matchday: int,
        match_number: int,
        home_user_id: str,
        away_user_id: str,
        id: str | None = None,
    ) -> Match:
        mid = id or str(uuid.uuid4())
        now = _utcnow()
        conn.execute(
            "INSERT INTO matches (id, cohort_id, matchday, match_number, home_user_id, away_user_id, played, home_score, away_score, created_at, played_at) "
            "VALUES (?, ?, ?, ?, ?, ?, 0, 0, 0, ?, NULL)",
            (mid, cohort_id, matchday, match_number, home_user_id, away_user_id, _to_iso(now)),
        )
        return Match(
            id=mid, cohort_id=cohort_id, matchday=matchday, match_number=match_number,
            home_user_id=home_user_id, away_user_id=away_user_id, played=False,
            home_score=0, away_score=0, created_at=now,
        )

    def get(self, conn: sqlite3.Connection, match_id: str) -> Match | None:
        row = conn.execute(f"SELECT {self._COLS} FROM matches WHERE id = ?", (match_id,)).fetchone()
        return _row_to_match(row) if row is not None else None

    def list_by_matchday(self, conn: sqlite3.Connection, cohort_id: str, matchday: int) -> list[Match]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM matches WHERE cohort_id = ? AND matchday = ? ORDER BY match_number",
            (cohort_id, matchday),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def mark_played(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        home_score: int,
        away_score: int,
        played_at: datetime,
    ) -> bool:
        """Conditional update: False if the match was already played."""
        cur = conn.execute(
            "UPDATE matches SET played = 1, home_score = ?, away_score = ?, played_at = ? WHERE id = ? AND played = 0",
            (home_score, away_score, _to_iso(played_at), match_id),
        )
        return cur.rowcount == 1


# ---------- LeagueTableRepository ----------


def _row_to_entry(r: sqlite3.Row) -> LeagueTableEntry:
    return LeagueTableEntry(
        cohort_id=r["cohort_id"],
        user_id=r["user_id"],
        matchday=r["matchday"],
        points=r["points"],
        goals_for=r["goals_for"],
        goals_against=r["goals_against"],
        wins=r["wins"],
        draws=r["draws"],
        losses=r["losses"],
    )


class LeagueTableRepository:
    """Per-matchday league table rows."""

    _COLS = "cohort_id, user_id, matchday, points, goals_for, goals_against, wins, draws, losses"

    def init_rows(self, conn: sqlite3.Connection, cohort_id: str, user_ids: Iterable[str], matchday: int) -> None:
        """Zeroed rows. Fails on an existing row (primary key), which aborts the enclosing transaction."""
        conn.executemany(
            "INSERT INTO league_table (cohort_id, user_id, matchday) VALUES (?, ?, ?)",
            [(cohort_id, uid, matchday) for uid in user_ids],
        )

    def record_result(
        self,
        conn: sqlite3.Connection,
        cohort_id: str,
        user_id: str,
        matchday: int,
        goals_for: int,
        goals_against: int,
        points: int,
    ) -> None:
        """Create the row on first result, increment afterwards."""
        win, draw, loss = int(points == 3), int(points == 1), int(points == 0)
        conn.execute(
            "INSERT INTO league_table (cohort_id, user_id, matchday, points, goals_for, goals_against, wins, draws, losses) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT (cohort_id, user_id, matchday) DO UPDATE SET "
            "points = points + excluded.points, "
            "goals_for = goals_for + excluded.goals_for, "
            "goals_against = goals_against + excluded.goals_against, "
            "wins = wins + excluded.wins, "
            "draws = draws + excluded.draws, "
            "losses = losses + excluded.losses",
            (cohort_id, user_id, matchday, points, goals_for, goals_against, win, draw, loss),
        )

    def list_entries(self, conn: sqlite3.Connection, cohort_id: str, matchday: int | None = None) -> list[LeagueTableEntry]:
        if matchday is None:
            rows = conn.execute(
                f"SELECT {self._COLS} FROM league_table WHERE cohort_id = ? ORDER BY matchday, user_id",
                (cohort_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                f"SELECT {self._COLS} FROM league_table WHERE cohort_id = ? AND matchday = ? ORDER BY user_id",
                (cohort_id, matchday),
            ).fetchall()
        return [_row_to_entry(r) for r in rows]


# ---------- PackRepository ----------


class PackRepository:
    """Packs and their shrinking item pools."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        price: int,
        items: Sequence[PackItem],
        status: PackStatus = PackStatus.ACTIVE,
        id: str | None = None,
    ) -> Pack:
        pid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO packs (id, name, price, status, created_at) VALUES (?, ?, ?, ?, ?)",
            (pid, name, price, status.value, _to_iso(_utcnow())),
        )
        conn.executemany(
            "INSERT INTO pack_items (pack_id, position, kind, ref_id, weight) VALUES (?, ?, ?, ?, ?)",
            [(pid, i, item.kind.value, item.ref_id, item.weight) for i, item in enumerate(items)],
        )
        return Pack(id=pid, name=name, price=price, status=status, items=tuple(items))

    def get(self, conn: sqlite3.Connection, pack_id: str) -> Pack | None:
        row = conn.execute(
            "SELECT id, name, price, status FROM packs WHERE id = ?", (pack_id,)
        ).fetchone()
        if row is None:
            return None
        item_rows = conn.execute(
            "SELECT kind, ref_id, weight FROM pack_items WHERE pack_id = ? ORDER BY position",
            (pack_id,),
        ).fetchall()
        items = tuple(
            PackItem(kind=PackItemKind(r["kind"]), ref_id=r["ref_id"], weight=r["weight"])
            for r in item_rows
        )
        return Pack(
            id=row["id"], name=row["name"], price=row["price"],
            status=PackStatus(row["status"]), items=items,
        )

    def update_status(self, conn: sqlite3.Connection, pack_id: str, status: PackStatus) -> None:
        conn.execute("UPDATE packs SET status = ? WHERE id = ?", (status.value, pack_id))

    def remove_item(self, conn: sqlite3.Connection, pack_id: str, item: PackItem) -> bool:
        """Guarded delete: False if the item was already drawn."""
        cur = conn.execute(
            "DELETE FROM pack_items WHERE pack_id = ? AND kind = ? AND ref_id = ?",
            (pack_id, item.kind.value, item.ref_id),
        )
        return cur.rowcount == 1

    def count_items(self, conn: sqlite3.Connection, pack_id: str) -> int:
        row = conn.execute("SELECT COUNT(*) AS n FROM pack_items WHERE pack_id = ?", (pack_id,)).fetchone()
        return row["n"]

    def update_weights(self, conn: sqlite3.Connection, pack_id: str, items: Iterable[PackItem]) -> None:
        conn.executemany(
            "UPDATE pack_items SET weight = ? WHERE pack_id = ? AND kind = ? AND ref_id = ?",
            [(item.weight, pack_id, item.kind.value, item.ref_id) for item in items],
        )


# ---------- ScheduledMatchdayRepository ----------


def _row_to_schedule(r: sqlite3.Row) -> ScheduledMatchday:
    return ScheduledMatchday(
        id=r["id"],
        cohort_id=r["cohort_id"],
        matchday=r["matchday"],
        scheduled_at=_parse_datetime(r["scheduled_at"]),
        executed=bool(r["executed"]),
        created_at=_parse_datetime(r["created_at"]),
        executed_at=_parse_optional_datetime(r["executed_at"]),
    )


class ScheduledMatchdayRepository:
    """Persisted matchday intents. executed flips 0 -> 1 through mark_executed only."""

    _COLS = "id, cohort_id, matchday, scheduled_at, executed, executed_at, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        cohort_id: str,
        matchday: int,
        scheduled_at: datetime,
        id: str | None = None,
    ) -> ScheduledMatchday:
        sid = id or str(uuid.uuid4())
        now = _utcnow()
        conn.execute(
            "INSERT INTO scheduled_matchdays (id, cohort_id, matchday, scheduled_at, executed, executed_at, created_at) "
            "VALUES (?, ?, ?, ?, 0, NULL, ?)",
            (sid, cohort_id, matchday, _to_iso(scheduled_at), _to_iso(now)),
        )
        return ScheduledMatchday(
            id=sid, cohort_id=cohort_id, matchday=matchday,
            scheduled_at=scheduled_at, executed=False, created_at=now,
        )

    def get(self, conn: sqlite3.Connection, record_id: str) -> ScheduledMatchday | None:
        row = conn.execute(
            f"SELECT {self._COLS} FROM scheduled_matchdays WHERE id = ?", (record_id,)
        ).fetchone()
        return _row_to_schedule(row) if row is not None else None

    def get_pending_for_cohort(self, conn: sqlite3.Connection, cohort_id: str) -> ScheduledMatchday | None:
        row = conn.execute(
            f"SELECT {self._COLS} FROM scheduled_matchdays WHERE cohort_id = ? AND executed = 0",
            (cohort_id,),
        ).fetchone()
        return _row_to_schedule(row) if row is not None else None

    def list_by_cohort(self, conn: sqlite3.Connection, cohort_id: str) -> list[ScheduledMatchday]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM scheduled_matchdays WHERE cohort_id = ? ORDER BY matchday",
            (cohort_id,),
        ).fetchall()
        return [_row_to_schedule(r) for r in rows]

    def list_due(self, conn: sqlite3.Connection, now: datetime) -> list[ScheduledMatchday]:
        """Pending records with scheduled_at <= now."""
        rows = conn.execute(
            f"SELECT {self._COLS} FROM scheduled_matchdays WHERE executed = 0 AND scheduled_at <= ? ORDER BY scheduled_at",
            (_to_iso(now),),
        ).fetchall()
        return [_row_to_schedule(r) for r in rows]

    def list_missed(
        self, conn: sqlite3.Connection, not_before: datetime, before: datetime
    ) -> list[ScheduledMatchday]:
        """Pending records with not_before <= scheduled_at < before."""
        rows = conn.execute(
            f"SELECT {self._COLS} FROM scheduled_matchdays WHERE executed = 0 AND scheduled_at >= ? AND scheduled_at < ? "
            "ORDER BY scheduled_at",
            (_to_iso(not_before), _to_iso(before)),
        ).fetchall()
        return [_row_to_schedule(r) for r in rows]

    def mark_executed(self, conn: sqlite3.Connection, record_id: str, executed_at: datetime) -> bool:
        """Compare-and-set: False if another run already executed the record."""
        cur = conn.execute(
            "UPDATE scheduled_matchdays SET executed = 1, executed_at = ? WHERE id = ? AND executed = 0",
            (_to_iso(executed_at), record_id),
        )
        return cur.rowcount == 1
