from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .access import AccessGate
from .addresses import derive_address, is_zero_address, normalize_address
from .draw import Draw, DrawInfo, DrawStatus, EntryStatus, TierInfo, UserResult
from .errors import DrawNotFound, InvalidAddress, InvalidAmount, InvalidToken
from .events import EventLog
from .project_constants import CUSTODY_LABEL, NO_TIER
from .randomness import PendingRequests, RandomnessConfig, RandomnessCoordinator, first_word
from .resolution import Resolution, resolve, roll_for
from .tiers import TierInput, total_probability, validate_tiers
from .token import FungibleToken

log = logging.getLogger(__name__)


class LuckyDrawManager:
    """
    Ledger of whitelisted, tiered prize draws.

    Calls run one at a time to completion. Every mutating call validates
    before it changes anything, so a raised error leaves the ledger as it was.
    Entries are resolved only by ``fulfill_random_words``, the randomness
    callback.
    """

    def __init__(
        self,
        owner: str,
        coordinator: RandomnessCoordinator,
        randomness_config: RandomnessConfig,
        tokens: Mapping[str, FungibleToken],
        address: Optional[str] = None,
    ) -> None:
        self.events = EventLog()
        self.access = AccessGate(owner, self.events)
        self.address = normalize_address(address) if address else derive_address(CUSTODY_LABEL)
        self.coordinator = coordinator
        self._randomness_config = randomness_config.validate()
        self._tokens = {normalize_address(k): v for k, v in tokens.items()}
        self._draws: Dict[int, Draw] = {}
        self._next_draw_id = 0
        self._pending = PendingRequests()

        bind = getattr(coordinator, "bind", None)
        if callable(bind):
            bind(self.fulfill_random_words)

    # read surface
    @property
    def owner(self) -> str:
        return self.access.owner

    @property
    def paused(self) -> bool:
        return self.access.paused

    @property
    def next_draw_id(self) -> int:
        return self._next_draw_id

    @property
    def randomness_config(self) -> RandomnessConfig:
        return self._randomness_config

    def get_draw(self, draw_id: int) -> DrawInfo:
        return self._draw(draw_id).info()

    def get_tier(self, draw_id: int, index: int) -> TierInfo:
        return self._draw(draw_id).get_tier(index)

    def get_tier_count(self, draw_id: int) -> int:
        return len(self._draw(draw_id).tiers)

    def get_total_tier_probability(self, draw_id: int) -> int:
        return total_probability(self._draw(draw_id).tiers)

    def get_user_result(self, draw_id: int, user: str) -> UserResult:
        return self._draw(draw_id).result_for(normalize_address(user))

    def get_entry_status(self, draw_id: int, user: str) -> EntryStatus:
        return self.get_user_result(draw_id, user).status

    def get_results(self, draw_id: int) -> List[Tuple[str, UserResult]]:
        return self._draw(draw_id).results()

    def is_whitelisted(self, user: str) -> bool:
        return self.access.is_whitelisted(user)

    whitelist = is_whitelisted

    def get_available_funds(self, draw_id: int) -> int:
        return self._draw(draw_id).available_funds

    def get_max_payout(self, draw_id: int) -> int:
        return self._draw(draw_id).max_payout()

    def get_expected_payout(self, draw_id: int) -> Tuple[int, List[int], int]:
        return self._draw(draw_id).expected_payout()

    @property
    def last_request_id(self) -> int:
        return self._pending.last_request_id

    def pending_request(self, request_id: int) -> Optional[Tuple[int, str]]:
        return self._pending.get(request_id)

    def token(self, address: str) -> FungibleToken:
        token = self._tokens.get(normalize_address(address))
        if token is None:
            raise InvalidToken(f"Unknown token {address}")
        return token

    # access gate
    def set_whitelist(self, caller: str, user: str, allowed: bool) -> None:
        self.access.set_whitelist(caller, user, allowed)

    def set_whitelist_batch(self, caller: str, users: Sequence[str], allowed: bool) -> None:
        self.access.set_whitelist_batch(caller, users, allowed)

    def pause(self, caller: str) -> None:
        self.access.pause(caller)

    def unpause(self, caller: str) -> None:
        self.access.unpause(caller)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.access.transfer_ownership(caller, new_owner)

    def update_randomness_config(self, caller: str, config: RandomnessConfig) -> None:
        self.access.require_owner(caller)
        self._randomness_config = config.validate()
        self.events.emit(
            "RandomnessConfigUpdated",
            subscription_id=config.subscription_id,
            key_hash=config.key_hash,
            callback_gas_limit=config.callback_gas_limit,
            request_confirmations=config.request_confirmations,
            native_payment=config.native_payment,
        )

    # draw administration
    def create_draw(self, caller: str, token: str) -> int:
        self.access.require_owner(caller)
        try:
            token = normalize_address(token)
        except InvalidAddress as e:
            raise InvalidToken(str(e)) from e
        if is_zero_address(token):
            raise InvalidToken("Token cannot be the zero address")
        self.token(token)

        draw_id = self._next_draw_id
        self._draws[draw_id] = Draw(draw_id=draw_id, token=token)
        self._next_draw_id += 1
        self.events.emit("DrawCreated", draw_id=draw_id, token=token)
        return draw_id

    def set_tiers(self, caller: str, draw_id: int, tiers: Sequence[TierInput]) -> None:
        self.access.require_owner(caller)
        draw = self._draw(draw_id)
        draw.require_configurable()
        built = validate_tiers(tiers)
        draw.replace_tiers(built)
        self.events.emit("TiersConfigured", draw_id=draw_id, tier_count=len(built))

    def set_default_prize(self, caller: str, draw_id: int, amount: int) -> None:
        self.access.require_owner(caller)
        draw = self._draw(draw_id)
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidAmount(f"Default prize must be a non-negative integer, got {amount!r}")
        draw.set_default_prize(amount)
        self.events.emit("DefaultPrizeConfigured", draw_id=draw_id, amount=amount)

    def fund_draw(self, caller: str, draw_id: int, amount: int) -> None:
        self.access.require_owner(caller)
        draw = self._draw(draw_id)
        draw.check_fundable(amount)
        self.token(draw.token).transfer_from(self.address, caller, self.address, amount)
        draw.credit_funding(amount)
        self.events.emit(
            "DrawFunded", draw_id=draw_id, amount=amount, total_funded=draw.funded_amount
        )

    def close_draw(self, caller: str, draw_id: int) -> None:
        self.access.require_owner(caller)
        self._draw(draw_id).close()
        self.events.emit("DrawClosed", draw_id=draw_id)

    def cancel_draw(self, caller: str, draw_id: int) -> int:
        self.access.require_owner(caller)
        draw = self._draw(draw_id)
        draw.check_cancellable()
        refund = draw.available_funds
        if refund:
            self.token(draw.token).transfer(self.address, self.owner, refund)
        draw.cancel()
        self.events.emit("DrawCancelled", draw_id=draw_id, refunded=refund)
        return refund

    def withdraw_leftover(self, caller: str, draw_id: int, recipient: str) -> int:
        self.access.require_owner(caller)
        draw = self._draw(draw_id)
        recipient = normalize_address(recipient)
        if is_zero_address(recipient):
            raise InvalidAddress("Recipient cannot be the zero address")
        draw.check_withdrawable()
        leftover = draw.withdrawable_funds
        if leftover:
            self.token(draw.token).transfer(self.address, recipient, leftover)
        draw.release_leftover()
        self.events.emit(
            "LeftoverWithdrawn", draw_id=draw_id, recipient=recipient, amount=leftover
        )
        return leftover

    # entry and resolution
    def enter(self, caller: str, draw_id: int) -> int:
        self.access.require_not_paused()
        user = normalize_address(caller)
        self.access.require_whitelisted(user)
        draw = self._draw(draw_id)
        draw.check_can_enter(user)

        request_id = self.coordinator.request_random_words(self._randomness_config)
        self._pending.add(request_id, draw_id, user)
        draw.record_entry(user, request_id)
        self.events.emit("EntryRequested", draw_id=draw_id, user=user, request_id=request_id)
        return request_id

    def fulfill_random_words(self, request_id: int, random_words: Sequence[int]) -> Resolution:
        """Randomness callback: resolve and pay the entry behind ``request_id`` exactly once."""
        draw_id, user = self._pending.lookup(request_id)
        random_value = first_word(list(random_words))
        draw = self._draw(draw_id)
        draw.pending_entry(user)

        if draw.status == DrawStatus.CANCELLED:
            # pool already refunded; the entry is closed out with nothing paid
            outcome = Resolution(tier_index=NO_TIER, prize_amount=0, roll=roll_for(random_value))
        else:
            outcome = resolve(random_value, draw.tiers, draw.default_prize)
        draw.check_payout(outcome.prize_amount)

        log.debug(
            "Request %d: draw=%d user=%s roll=%d tier=%s prize=%d",
            request_id, draw_id, user, outcome.roll,
            "default" if outcome.is_default else outcome.tier_index, outcome.prize_amount,
        )
        if outcome.prize_amount:
            self.token(draw.token).transfer(self.address, user, outcome.prize_amount)
        draw.apply_payout(user, outcome, random_value)
        self._pending.remove(request_id)

        self.events.emit(
            "PrizeAwarded",
            draw_id=draw_id,
            winner=user,
            tier_index=outcome.tier_index,
            amount=outcome.prize_amount,
        )
        return outcome

    # internals
    def _draw(self, draw_id: int) -> Draw:
        draw = self._draws.get(draw_id)
        if draw is None:
            raise DrawNotFound(f"Draw {draw_id} does not exist")
        return draw

    # persistence
    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "address": self.address,
            "paused": self.paused,
            "whitelist": self.access.whitelisted(),
            "randomness_config": self._randomness_config.to_dict(),
            "next_draw_id": self._next_draw_id,
            "draws": [d.to_dict() for _, d in sorted(self._draws.items())],
            "pending_requests": self._pending.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        coordinator: RandomnessCoordinator,
        tokens: Mapping[str, FungibleToken],
    ) -> "LuckyDrawManager":
        manager = cls(
            owner=data["owner"],
            coordinator=coordinator,
            randomness_config=RandomnessConfig.from_dict(data["randomness_config"]),
            tokens=tokens,
            address=data.get("address"),
        )
        manager.access.restore(data.get("whitelist", {}), data.get("paused", False))
        manager._next_draw_id = int(data.get("next_draw_id", 0))
        for item in data.get("draws", []):
            draw = Draw.from_dict(item)
            manager._draws[draw.draw_id] = draw
        manager._pending = PendingRequests.from_dict(data.get("pending_requests", {}))
        return manager
