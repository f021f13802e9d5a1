"""
Pack draw engine: weighted sampling without replacement over a shrinking pool.

Selection is a cumulative-weight walk done by binary search: r ~ U[0, total), pick the
first item whose cumulative weight >= r. Drawn items leave the pool for good; an empty
pool turns its pack EMPTY. PackService applies a draw to the database as one transaction
(availability check, coin charge, draw, guarded delete, collection insert, status flip).
"""
from __future__ import annotations

import logging
import sqlite3
from bisect import bisect_left
from dataclasses import dataclass, replace
from itertools import accumulate
from typing import Sequence

from football_tcg.models import Pack, PackItem, PackItemKind, PackStatus
from football_tcg.persistence.db import transaction
from football_tcg.persistence.repositories import PackRepository, PlayerRepository, UserRepository
from football_tcg.simulation.rng import RandomSource, SystemRNG

logger = logging.getLogger(__name__)

DEFAULT_TARGET_TOTAL = 1.0

# ---------- Exceptions ----------


class PackNotFoundError(ValueError):
    """No pack with the given id."""


class PackNotAvailableError(ValueError):
    """Pack is inactive, empty or exhausted; nothing can be drawn."""


class PoolMisconfiguredError(ValueError):
    """Pool weights sum to zero or less."""


class InsufficientCoinsError(ValueError):
    """User cannot pay the pack price."""


# ---------- Pure draw engine ----------


def select_index(weights: Sequence[float], rng: RandomSource) -> int:
    """
    Index of the item selected by a weighted draw. Stateless.
    Falls back to index 0 when float rounding leaves r beyond the last cumulative weight.
    """
    total = sum(weights)
    if total <= 0:
        raise PoolMisconfiguredError(f"Pool has invalid weight distribution (total={total})")
    r = rng.random() * total
    cumulative = list(accumulate(weights))
    index = bisect_left(cumulative, r)
    if index >= len(weights):
        return 0
    return index


@dataclass(frozen=True)
class DrawResult:
    selected: PackItem
    updated_pool: tuple[PackItem, ...]


def draw_from_pool(pool: Sequence[PackItem], rng: RandomSource) -> DrawResult:
    """Draw one item and return it with the pool minus that item."""
    if not pool:
        raise PackNotAvailableError("Pool has no items left")
    index = select_index([item.weight for item in pool], rng)
    remaining = tuple(pool[:index]) + tuple(pool[index + 1:])
    return DrawResult(selected=pool[index], updated_pool=remaining)


def rebalance_pool(pool: Sequence[PackItem], target_total: float = DEFAULT_TARGET_TOTAL) -> tuple[PackItem, ...]:
    """Rescale weights so they sum to target_total, preserving proportions."""
    current = sum(item.weight for item in pool)
    if current <= 0:
        raise PoolMisconfiguredError("Pool has no items with valid weights")
    scale = target_total / current
    return tuple(replace(item, weight=item.weight * scale) for item in pool)


def assert_pack_available(pack: Pack) -> None:
    if pack.status != PackStatus.ACTIVE:
        raise PackNotAvailableError(f"Pack {pack.id} is not available (status: {pack.status.value})")
    if not pack.items:
        raise PackNotAvailableError(f"Pack {pack.id} has no items available")


@dataclass(frozen=True)
class PackDraw:
    selected: PackItem
    pack: Pack

    @property
    def pack_now_empty(self) -> bool:
        return self.pack.status == PackStatus.EMPTY


def draw_from_pack(pack: Pack, rng: RandomSource) -> PackDraw:
    """Availability check, then one draw. The returned pack is EMPTY once its pool drains."""
    assert_pack_available(pack)
    result = draw_from_pool(pack.items, rng)
    status = PackStatus.EMPTY if not result.updated_pool else pack.status
    return PackDraw(selected=result.selected, pack=replace(pack, items=result.updated_pool, status=status))


# ---------- Persistent pack flow ----------


@dataclass(frozen=True)
class PackOpening:
    drawn: PackItem
    coins_spent: int
    remaining_coins: int
    remaining_items: int
    pack_now_empty: bool

    def to_dict(self) -> dict:
        return {
            "drawn": self.drawn.to_dict(),
            "coins_spent": self.coins_spent,
            "remaining_coins": self.remaining_coins,
            "remaining_items_in_pack": self.remaining_items,
            "pack_now_empty": self.pack_now_empty,
        }


class PackService:
    """Opens and rebalances stored packs. Every write path is a single transaction."""

    def __init__(self, rng: RandomSource | None = None) -> None:
        self.rng = rng if rng is not None else SystemRNG()
        self._packs = PackRepository()
        self._users = UserRepository()
        self._players = PlayerRepository()

    def open_pack(self, conn: sqlite3.Connection, pack_id: str, user_id: str) -> PackOpening:
        with transaction(conn):
            pack = self._packs.get(conn, pack_id)
            if pack is None:
                raise PackNotFoundError(f"Pack not found: {pack_id}")
            assert_pack_available(pack)
            if not self._users.charge_coins(conn, user_id, pack.price):
                raise InsufficientCoinsError(f"You need {pack.price} coins to open this pack")
            draw = draw_from_pack(pack, self.rng)
            if not self._packs.remove_item(conn, pack_id, draw.selected):
                raise PackNotAvailableError(f"Item {draw.selected.ref_id} was already drawn from pack {pack_id}")
            if draw.selected.kind == PackItemKind.PLAYER:
                self._users.add_player(conn, user_id, draw.selected.ref_id)
            else:
                self._users.add_formation(conn, user_id, draw.selected.ref_id)
            if draw.pack_now_empty:
                self._packs.update_status(conn, pack_id, PackStatus.EMPTY)
            user = self._users.get(conn, user_id)
        logger.info(
            "User %s drew %s %s from pack %s (%d left)",
            user_id, draw.selected.kind.value, draw.selected.ref_id, pack_id, len(draw.pack.items),
        )
        return PackOpening(
            drawn=draw.selected,
            coins_spent=pack.price,
            remaining_coins=user.coins if user else 0,
            remaining_items=len(draw.pack.items),
            pack_now_empty=draw.pack_now_empty,
        )

    def rebalance_pack(
        self, conn: sqlite3.Connection, pack_id: str, target_total: float = DEFAULT_TARGET_TOTAL
    ) -> Pack:
        """Persist rescaled weights; player cards carry their new weight too."""
        with transaction(conn):
            pack = self._packs.get(conn, pack_id)
            if pack is None:
                raise PackNotFoundError(f"Pack not found: {pack_id}")
            items = rebalance_pool(pack.items, target_total)
            self._packs.update_weights(conn, pack_id, items)
            for item in items:
                if item.kind == PackItemKind.PLAYER:
                    self._players.update_weight(conn, item.ref_id, item.weight)
        logger.info("Rebalanced pack %s to total weight %s", pack_id, target_total)
        return replace(pack, items=items)
