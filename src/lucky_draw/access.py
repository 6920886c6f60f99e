from __future__ import annotations

from typing import Dict, Iterable

from .addresses import is_zero_address, normalize_address, normalize_addresses
from .errors import AuthorizationError, InvalidAddress, NotWhitelisted, PausedError
from .events import EventLog


class AccessGate:
    """Owner capability, participant whitelist and the entry pause switch."""

    def __init__(self, owner: str, events: EventLog) -> None:
        owner = normalize_address(owner)
        if is_zero_address(owner):
            raise InvalidAddress("Owner cannot be the zero address")
        self._owner = owner
        self._whitelist: Dict[str, bool] = {}
        self._paused = False
        self._events = events

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def paused(self) -> bool:
        return self._paused

    def require_owner(self, caller: str) -> None:
        try:
            is_owner = normalize_address(caller) == self._owner
        except InvalidAddress:
            is_owner = False
        if not is_owner:
            raise AuthorizationError("Only callable by owner")

    def is_whitelisted(self, address: str) -> bool:
        try:
            return self._whitelist.get(normalize_address(address), False)
        except InvalidAddress:
            return False

    def require_whitelisted(self, address: str) -> None:
        if not self.is_whitelisted(address):
            raise NotWhitelisted(f"{address} is not whitelisted")

    def require_not_paused(self) -> None:
        if self._paused:
            raise PausedError("Entries are paused")

    def set_whitelist(self, caller: str, address: str, allowed: bool) -> None:
        self.set_whitelist_batch(caller, [address], allowed)

    def set_whitelist_batch(self, caller: str, addresses: Iterable[str], allowed: bool) -> None:
        self.require_owner(caller)
        # every address is checked before the first one is written
        normalized = normalize_addresses(addresses)
        for addr in normalized:
            self._whitelist[addr] = bool(allowed)
            self._events.emit("WhitelistUpdated", user=addr, allowed=bool(allowed))

    def whitelisted(self) -> Dict[str, bool]:
        return {k: v for k, v in self._whitelist.items() if v}

    def pause(self, caller: str) -> None:
        self.require_owner(caller)
        if self._paused:
            raise PausedError("Already paused")
        self._paused = True
        self._events.emit("Paused", account=self._owner)

    def unpause(self, caller: str) -> None:
        self.require_owner(caller)
        if not self._paused:
            raise PausedError("Not paused")
        self._paused = False
        self._events.emit("Unpaused", account=self._owner)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.require_owner(caller)
        new_owner = normalize_address(new_owner)
        if is_zero_address(new_owner):
            raise InvalidAddress("New owner cannot be the zero address")
        previous, self._owner = self._owner, new_owner
        self._events.emit("OwnershipTransferred", previous_owner=previous, new_owner=new_owner)

    def restore(self, whitelist: Dict[str, bool], paused: bool) -> None:
        self._whitelist = {normalize_address(k): bool(v) for k, v in whitelist.items()}
        self._paused = bool(paused)
