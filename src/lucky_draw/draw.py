from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from .errors import (
    AlreadyEntered,
    DrawNotOpen,
    InsufficientFunds,
    InvalidAmount,
    InvalidDrawState,
)
from .project_constants import BASIS_POINTS, NO_TIER
from .resolution import Resolution
from .tiers import Tier, total_probability


class DrawStatus(IntEnum):
    OPEN = 0
    CLOSED = 1
    CANCELLED = 2


class EntryStatus(IntEnum):
    NOT_ENTERED = 0
    PENDING_RANDOMNESS = 1
    RESOLVED = 2


@dataclass
class UserResult:
    has_entered: bool = False
    has_result: bool = False
    tier_index: int = 0
    prize_amount: int = 0
    request_id: Optional[int] = None
    random_value: Optional[int] = None

    @property
    def status(self) -> EntryStatus:
        if self.has_result:
            return EntryStatus.RESOLVED
        if self.has_entered:
            return EntryStatus.PENDING_RANDOMNESS
        return EntryStatus.NOT_ENTERED


@dataclass(frozen=True)
class DrawInfo:
    """Read-only view returned by LuckyDrawManager.get_draw."""

    draw_id: int
    status: DrawStatus
    token: str
    funded_amount: int
    total_distributed: int
    entrant_count: int
    tier_count: int
    default_prize: int

    @property
    def available_funds(self) -> int:
        return self.funded_amount - self.total_distributed


@dataclass(frozen=True)
class TierInfo:
    prize_amount: int
    win_probability: int
    winners_count: int
    total_paid: int


@dataclass
class Draw:
    """
    One draw: its status, prize pool counters, tier list and participants.

    The counters are only changed through the methods below, each of which
    checks everything it needs before touching any field.
    """

    draw_id: int
    token: str
    status: DrawStatus = DrawStatus.OPEN
    _funded: int = 0
    _distributed: int = 0
    _entrants: int = 0
    _resolved: int = 0
    _tiers: List[Tier] = field(default_factory=list)
    _default_prize: int = 0
    _results: Dict[str, UserResult] = field(default_factory=dict)

    # reads
    @property
    def funded_amount(self) -> int:
        return self._funded

    @property
    def total_distributed(self) -> int:
        return self._distributed

    @property
    def entrant_count(self) -> int:
        return self._entrants

    @property
    def resolved_count(self) -> int:
        return self._resolved

    @property
    def pending_count(self) -> int:
        return self._entrants - self._resolved

    @property
    def default_prize(self) -> int:
        return self._default_prize

    @property
    def tiers(self) -> Tuple[Tier, ...]:
        return tuple(self._tiers)

    @property
    def available_funds(self) -> int:
        return self._funded - self._distributed

    def info(self) -> DrawInfo:
        return DrawInfo(
            draw_id=self.draw_id,
            status=self.status,
            token=self.token,
            funded_amount=self._funded,
            total_distributed=self._distributed,
            entrant_count=self._entrants,
            tier_count=len(self._tiers),
            default_prize=self._default_prize,
        )

    def get_tier(self, index: int) -> TierInfo:
        if not 0 <= index < len(self._tiers):
            raise InvalidDrawState(
                f"Draw {self.draw_id}: tier index {index} out of range ({len(self._tiers)} tiers)"
            )
        t = self._tiers[index]
        return TierInfo(t.prize_amount, t.win_probability, t.winners_count, t.total_paid)

    def result_for(self, participant: str) -> UserResult:
        found = self._results.get(participant)
        if found is None:
            return UserResult()
        return UserResult(**vars(found))

    def results(self) -> List[Tuple[str, UserResult]]:
        return [(addr, UserResult(**vars(r))) for addr, r in self._results.items()]

    @property
    def largest_prize(self) -> int:
        return max([t.prize_amount for t in self._tiers] + [self._default_prize])

    @property
    def pending_reserve(self) -> int:
        """Funds held back so every unresolved entry can still be paid its largest prize."""
        return self.pending_count * self.largest_prize

    @property
    def withdrawable_funds(self) -> int:
        return max(0, self.available_funds - self.pending_reserve)

    def max_payout(self) -> int:
        """Worst case: everything paid so far plus every pending entry winning the largest prize."""
        return self._distributed + self.pending_reserve

    def expected_payout(self) -> Tuple[int, List[int], int]:
        n = self._entrants
        per_tier = [n * t.prize_amount * t.win_probability // BASIS_POINTS for t in self._tiers]
        remaining = BASIS_POINTS - total_probability(self._tiers)
        expected_default = n * self._default_prize * remaining // BASIS_POINTS
        return sum(per_tier) + expected_default, per_tier, expected_default

    # state machine
    def require_open(self) -> None:
        if self.status != DrawStatus.OPEN:
            raise DrawNotOpen(f"Draw {self.draw_id} is {self.status.name}, not OPEN")

    def require_configurable(self) -> None:
        self.require_open()
        if self._entrants:
            raise InvalidDrawState(
                f"Draw {self.draw_id}: prizes are locked once entries exist ({self._entrants})"
            )

    def replace_tiers(self, tiers: List[Tier]) -> None:
        self.require_configurable()
        self._tiers = list(tiers)

    def set_default_prize(self, amount: int) -> None:
        self.require_configurable()
        self._default_prize = amount

    def check_can_enter(self, participant: str) -> None:
        self.require_open()
        if participant in self._results:
            raise AlreadyEntered(f"{participant} already entered draw {self.draw_id}")

    def record_entry(self, participant: str, request_id: int) -> None:
        self.check_can_enter(participant)
        self._results[participant] = UserResult(has_entered=True, request_id=request_id)
        self._entrants += 1

    def close(self) -> None:
        if self.status != DrawStatus.OPEN:
            raise InvalidDrawState(f"Draw {self.draw_id} is {self.status.name}; only OPEN draws close")
        self.status = DrawStatus.CLOSED

    def check_cancellable(self) -> None:
        if self.status == DrawStatus.CANCELLED:
            raise InvalidDrawState(f"Draw {self.draw_id} is already CANCELLED")

    def cancel(self) -> int:
        """Mark cancelled and release the leftover. Returns the amount to refund."""
        self.check_cancellable()
        self.status = DrawStatus.CANCELLED
        return self._release()

    # fund ledger
    def check_fundable(self, amount: int) -> None:
        if self.status == DrawStatus.CANCELLED:
            raise InvalidDrawState(f"Draw {self.draw_id} is CANCELLED")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidAmount(f"Funding amount must be a positive integer, got {amount!r}")

    def credit_funding(self, amount: int) -> None:
        self.check_fundable(amount)
        self._funded += amount

    def pending_entry(self, participant: str) -> UserResult:
        found = self._results.get(participant)
        if found is None or not found.has_entered:
            raise InvalidDrawState(f"{participant} has no entry in draw {self.draw_id}")
        if found.has_result:
            raise InvalidDrawState(f"{participant} already resolved in draw {self.draw_id}")
        return found

    def check_payout(self, amount: int) -> None:
        if self._distributed + amount > self._funded:
            raise InsufficientFunds(
                f"Draw {self.draw_id}: payout {amount} exceeds available funds {self.available_funds}"
            )

    def apply_payout(self, participant: str, outcome: Resolution, random_value: int) -> None:
        """Record the resolved outcome; the caller moves the tokens."""
        entry = self.pending_entry(participant)
        self.check_payout(outcome.prize_amount)

        self._distributed += outcome.prize_amount
        if outcome.tier_index != NO_TIER:
            tier = self._tiers[outcome.tier_index]
            tier.winners_count += 1
            tier.total_paid += outcome.prize_amount

        entry.has_result = True
        entry.tier_index = outcome.tier_index
        entry.prize_amount = outcome.prize_amount
        entry.random_value = random_value
        self._resolved += 1

    def check_withdrawable(self) -> None:
        if self.status != DrawStatus.CLOSED:
            raise InvalidDrawState(
                f"Draw {self.draw_id} is {self.status.name}; leftover is withdrawable once CLOSED"
            )

    def release_leftover(self) -> int:
        """Release everything above the pending reserve. Returns the amount released."""
        self.check_withdrawable()
        leftover = self.withdrawable_funds
        self._funded -= leftover
        return leftover

    def _release(self) -> int:
        # funded shrinks to what was actually paid out
        leftover = self._funded - self._distributed
        self._funded = self._distributed
        return leftover

    # persistence
    def to_dict(self) -> Dict[str, Any]:
        return {
            "draw_id": self.draw_id,
            "token": self.token,
            "status": int(self.status),
            "funded_amount": str(self._funded),
            "total_distributed": str(self._distributed),
            "entrant_count": self._entrants,
            "resolved_count": self._resolved,
            "default_prize": str(self._default_prize),
            "tiers": [
                {
                    "prize_amount": str(t.prize_amount),
                    "win_probability": t.win_probability,
                    "winners_count": t.winners_count,
                    "total_paid": str(t.total_paid),
                }
                for t in self._tiers
            ],
            "results": {
                addr: {
                    "has_entered": r.has_entered,
                    "has_result": r.has_result,
                    "tier_index": str(r.tier_index),
                    "prize_amount": str(r.prize_amount),
                    "request_id": None if r.request_id is None else str(r.request_id),
                    "random_value": None if r.random_value is None else str(r.random_value),
                }
                for addr, r in self._results.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Draw":
        results = {
            addr: UserResult(
                has_entered=bool(r["has_entered"]),
                has_result=bool(r["has_result"]),
                tier_index=int(r["tier_index"]),
                prize_amount=int(r["prize_amount"]),
                request_id=None if r.get("request_id") is None else int(r["request_id"]),
                random_value=None if r.get("random_value") is None else int(r["random_value"]),
            )
            for addr, r in data.get("results", {}).items()
        }
        return cls(
            draw_id=int(data["draw_id"]),
            token=data["token"],
            status=DrawStatus(int(data["status"])),
            _funded=int(data["funded_amount"]),
            _distributed=int(data["total_distributed"]),
            _entrants=int(data["entrant_count"]),
            _resolved=int(data.get("resolved_count", 0)),
            _tiers=[
                Tier(
                    prize_amount=int(t["prize_amount"]),
                    win_probability=int(t["win_probability"]),
                    winners_count=int(t.get("winners_count", 0)),
                    total_paid=int(t.get("total_paid", 0)),
                )
                for t in data.get("tiers", [])
            ],
            _default_prize=int(data.get("default_prize", 0)),
            _results=results,
        )
