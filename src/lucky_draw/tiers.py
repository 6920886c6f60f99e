from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .errors import InvalidTierConfig, ProbabilityExceedsMax
from .project_constants import BASIS_POINTS


@dataclass(frozen=True)
class TierInput:
    prize_amount: int
    win_probability: int  # basis points


@dataclass
class Tier:
    prize_amount: int
    win_probability: int
    winners_count: int = 0
    total_paid: int = 0


def total_probability(tiers: Iterable[TierInput | Tier]) -> int:
    return sum(t.win_probability for t in tiers)


def validate_tiers(inputs: Sequence[TierInput]) -> List[Tier]:
    """
    Check a full replacement tier list and build fresh Tier records.
    Nothing is stored here; the caller swaps the list in only on success.
    """
    out: List[Tier] = []
    for i, t in enumerate(inputs):
        if not _is_uint(t.prize_amount) or t.prize_amount == 0:
            raise InvalidTierConfig(f"Tier {i}: prize amount must be positive, got {t.prize_amount!r}")
        if not _is_uint(t.win_probability):
            raise InvalidTierConfig(
                f"Tier {i}: win probability must be a non-negative integer, got {t.win_probability!r}"
            )
        out.append(Tier(prize_amount=t.prize_amount, win_probability=t.win_probability))

    total = total_probability(out)
    if total > BASIS_POINTS:
        raise ProbabilityExceedsMax(
            f"Total probability {total} exceeds {BASIS_POINTS} basis points"
        )
    return out


def parse_tier_arg(text: str) -> TierInput:
    """CLI form PRIZE:BPS, e.g. "50000000:500"."""
    prize, sep, bps = text.partition(":")
    if not sep:
        raise InvalidTierConfig(f"Expected PRIZE:BPS, got {text!r}")
    try:
        return TierInput(prize_amount=int(prize), win_probability=int(bps))
    except ValueError as e:
        raise InvalidTierConfig(f"Expected integers in PRIZE:BPS, got {text!r}") from e


def _is_uint(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
