"""
Team chemistry: a bonus derived from the color distribution of a roster.

Valid rosters have exactly 3 distinct colors, each held by 2..7 players.
Each color contributes count² (2 → 4, 3 → 9, ... 7 → 49). Invalid rosters score 0.
Pure functions; partial rosters are accepted for team-builder previews.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

EXACT_CHEMISTRY_COLORS = 3
MIN_PLAYERS_PER_COLOR = 2
MAX_PLAYERS_PER_COLOR = 7

PLAYER_COLORS: dict[str, str] = {
    "dark_green": "#166534",
    "light_green": "#16A34A",
    "dark_blue": "#1E40AF",
    "light_blue": "#3B82F6",
    "red": "#DC2626",
    "yellow": "#FACC15",
    "purple": "#7C3AED",
    "orange": "#EA580C",
}


def color_bonus(count: int) -> int:
    """Bonus for one color held by `count` players; 0 outside 2..7."""
    if MIN_PLAYERS_PER_COLOR <= count <= MAX_PLAYERS_PER_COLOR:
        return count * count
    return 0


@dataclass(frozen=True)
class ChemistryResult:
    is_valid: bool
    total_bonus: int
    per_color_bonus: dict[str, int] = field(default_factory=dict)
    errors: tuple[str, ...] = ()

    @property
    def error(self) -> str | None:
        return "; ".join(self.errors) if self.errors else None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "is_valid": self.is_valid,
            "total_bonus": self.total_bonus,
            "per_color_bonus": dict(self.per_color_bonus),
        }
        if self.errors:
            d["error"] = self.error
            d["errors"] = list(self.errors)
        return d


@dataclass(frozen=True)
class ColorBreakdown:
    color: str
    player_count: int
    bonus: int


def count_colors(colors: Iterable[str]) -> Counter:
    return Counter(colors)


def validate_chemistry(colors: Iterable[str]) -> list[str]:
    """Return human-readable rule violations; empty list = valid."""
    counts = count_colors(colors)
    errors: list[str] = []
    if len(counts) != EXACT_CHEMISTRY_COLORS:
        errors.append(
            f"Team must have exactly {EXACT_CHEMISTRY_COLORS} distinct colors (has {len(counts)})"
        )
    for color, count in counts.items():
        if count < MIN_PLAYERS_PER_COLOR:
            errors.append(f"Color {color} must have at least {MIN_PLAYERS_PER_COLOR} players (has {count})")
        elif count > MAX_PLAYERS_PER_COLOR:
            errors.append(f"Color {color} may have at most {MAX_PLAYERS_PER_COLOR} players (has {count})")
    return errors


def evaluate_chemistry(colors: Iterable[str]) -> ChemistryResult:
    """
    Score a roster's color distribution.
    Invalid distributions yield is_valid=False, total_bonus=0 and the reasons.
    """
    colors = list(colors)
    errors = validate_chemistry(colors)
    if errors:
        return ChemistryResult(is_valid=False, total_bonus=0, errors=tuple(errors))
    per_color = {color: color_bonus(count) for color, count in count_colors(colors).items()}
    return ChemistryResult(is_valid=True, total_bonus=sum(per_color.values()), per_color_bonus=per_color)


def chemistry_breakdown(colors: Iterable[str]) -> list[ColorBreakdown]:
    """Per-color bonus for every color in 2..7, highest bonus first. Ignores overall validity."""
    breakdown = [
        ColorBreakdown(color=color, player_count=count, bonus=color_bonus(count))
        for color, count in count_colors(colors).items()
        if MIN_PLAYERS_PER_COLOR <= count <= MAX_PLAYERS_PER_COLOR
    ]
    return sorted(breakdown, key=lambda b: b.bonus, reverse=True)
