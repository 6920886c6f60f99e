from __future__ import annotations

import hashlib
from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .errors import InvalidConfiguration
from .project_constants import BASIS_POINTS, NO_TIER
from .tiers import Tier, TierInput


@dataclass(frozen=True)
class Resolution:
    tier_index: int  # NO_TIER for the default prize
    prize_amount: int
    roll: int

    @property
    def is_default(self) -> bool:
        return self.tier_index == NO_TIER


def build_bands(tiers: Sequence[Tier | TierInput]) -> Tuple[List[int], int]:
    """Cumulative upper bounds (exclusive) in insertion order, and the covered total."""
    bands: List[int] = []
    cursor = 0
    for t in tiers:
        cursor += t.win_probability
        bands.append(cursor)
    return bands, cursor


def roll_for(random_value: int) -> int:
    if not isinstance(random_value, int) or isinstance(random_value, bool) or random_value < 0:
        raise InvalidConfiguration(f"Random value must be an unsigned integer, got {random_value!r}")
    return random_value % BASIS_POINTS


def resolve(random_value: int, tiers: Sequence[Tier | TierInput], default_prize: int) -> Resolution:
    """
    Map a random value to a prize outcome.

    The roll is ``random_value mod 10000``. Tier i wins when the roll falls in
    ``[cum(i-1), cum(i))``; a zero-probability tier owns an empty band and never
    wins. Rolls past the last band get the default prize (0 when disabled).
    """
    roll = roll_for(random_value)
    bands, covered = build_bands(tiers)

    # bisect_right skips empty bands: first bound strictly above the roll
    idx = bisect_right(bands, roll)
    if roll < covered and idx < len(tiers):
        return Resolution(tier_index=idx, prize_amount=tiers[idx].prize_amount, roll=roll)
    return Resolution(tier_index=NO_TIER, prize_amount=default_prize, roll=roll)


def roll_from_seed(seed: str) -> Tuple[int, str]:
    """Derive a 256-bit random word from a public seed. Returns (word, sha256 hex)."""
    seed_hash_hex = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    return int(seed_hash_hex, 16), seed_hash_hex
