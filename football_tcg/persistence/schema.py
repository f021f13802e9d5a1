"""
SQLite schema for the football TCG.
Migration-friendly: each table created with IF NOT EXISTS.
Timestamps are UTC ISO-8601 strings with microseconds, so they compare lexically.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL,
        coins INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users(username);
    """


def players_schema() -> str:
    """Collectible players. weight = draw weight (percentage) used when the player sits in a pack."""
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        points INTEGER NOT NULL,
        position TEXT NOT NULL,
        color TEXT NOT NULL,
        weight REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    """


def formations_schema() -> str:
    """positions: JSON array of 11 position tags in slot order."""
    return """
    CREATE TABLE IF NOT EXISTS formations (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        positions TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """


def collection_schema() -> str:
    """Cards owned by a user. A player may be owned more than once (drawn from different packs)."""
    return """
    CREATE TABLE IF NOT EXISTS user_players (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        player_id TEXT NOT NULL,
        acquired_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (player_id) REFERENCES players(id)
    );
    CREATE INDEX IF NOT EXISTS ix_user_players_user ON user_players(user_id);
    CREATE TABLE IF NOT EXISTS user_formations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        formation_id TEXT NOT NULL,
        acquired_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (formation_id) REFERENCES formations(id)
    );
    CREATE INDEX IF NOT EXISTS ix_user_formations_user ON user_formations(user_id);
    """


def cohorts_schema() -> str:
    """Competition container for exactly four members. current_matchday = last executed matchday."""
    return """
    CREATE TABLE IF NOT EXISTS cohorts (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        current_matchday INTEGER NOT NULL DEFAULT 0,
        next_matchday_at TEXT,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_cohorts_active ON cohorts(is_active);
    CREATE TABLE IF NOT EXISTS cohort_members (
        cohort_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        joined_at TEXT NOT NULL,
        PRIMARY KEY (cohort_id, user_id),
        FOREIGN KEY (cohort_id) REFERENCES cohorts(id),
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    """


def teams_schema() -> str:
    """A competitor's lineup in a cohort, optionally pinned to a matchday. Slots 0-10."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        cohort_id TEXT NOT NULL,
        matchday INTEGER,
        name TEXT NOT NULL,
        formation_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (cohort_id) REFERENCES cohorts(id),
        FOREIGN KEY (formation_id) REFERENCES formations(id)
    );
    CREATE INDEX IF NOT EXISTS ix_teams_cohort_user ON teams(cohort_id, user_id);
    CREATE TABLE IF NOT EXISTS team_players (
        team_id TEXT NOT NULL,
        slot INTEGER NOT NULL,
        player_id TEXT NOT NULL,
        PRIMARY KEY (team_id, slot),
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (player_id) REFERENCES players(id)
    );
    """


def matches_schema() -> str:
    """Fixture between two members on a matchday. played flips 0 -> 1 once."""
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id TEXT PRIMARY KEY,
        cohort_id TEXT NOT NULL,
        matchday INTEGER NOT NULL,
        match_number INTEGER NOT NULL,
        home_user_id TEXT NOT NULL,
        away_user_id TEXT NOT NULL,
        played INTEGER NOT NULL DEFAULT 0,
        home_score INTEGER NOT NULL DEFAULT 0,
        away_score INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        played_at TEXT,
        FOREIGN KEY (cohort_id) REFERENCES cohorts(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_matches_cohort_matchday_number ON matches(cohort_id, matchday, match_number);
    """


def league_table_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS league_table (
        cohort_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        matchday INTEGER NOT NULL,
        points INTEGER NOT NULL DEFAULT 0,
        goals_for INTEGER NOT NULL DEFAULT 0,
        goals_against INTEGER NOT NULL DEFAULT 0,
        wins INTEGER NOT NULL DEFAULT 0,
        draws INTEGER NOT NULL DEFAULT 0,
        losses INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (cohort_id, user_id, matchday),
        FOREIGN KEY (cohort_id) REFERENCES cohorts(id)
    );
    """


def packs_schema() -> str:
    """status: ACTIVE | INACTIVE | EMPTY. pack_items shrink as items are drawn."""
    return """
    CREATE TABLE IF NOT EXISTS packs (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        price INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'ACTIVE',
        created_at TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS pack_items (
        pack_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        kind TEXT NOT NULL,
        ref_id TEXT NOT NULL,
        weight REAL NOT NULL,
        PRIMARY KEY (pack_id, kind, ref_id),
        FOREIGN KEY (pack_id) REFERENCES packs(id)
    );
    CREATE INDEX IF NOT EXISTS ix_pack_items_pack ON pack_items(pack_id, position);
    """


def scheduled_matchdays_schema() -> str:
    """One pending (executed = 0) record per cohort, enforced by a partial unique index."""
    return """
    CREATE TABLE IF NOT EXISTS scheduled_matchdays (
        id TEXT PRIMARY KEY,
        cohort_id TEXT NOT NULL,
        matchday INTEGER NOT NULL,
        scheduled_at TEXT NOT NULL,
        executed INTEGER NOT NULL DEFAULT 0,
        executed_at TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (cohort_id) REFERENCES cohorts(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_scheduled_matchdays_pending ON scheduled_matchdays(cohort_id) WHERE executed = 0;
    CREATE UNIQUE INDEX IF NOT EXISTS ix_scheduled_matchdays_cohort_matchday ON scheduled_matchdays(cohort_id, matchday);
    CREATE INDEX IF NOT EXISTS ix_scheduled_matchdays_due ON scheduled_matchdays(executed, scheduled_at);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution."""
    return "\n".join([
        users_schema(),
        players_schema(),
        formations_schema(),
        collection_schema(),
        cohorts_schema(),
        teams_schema(),
        matches_schema(),
        league_table_schema(),
        packs_schema(),
        scheduled_matchdays_schema(),
    ])
