from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Protocol, Tuple

from .addresses import normalize_address
from .errors import InvalidAmount, TokenError

log = logging.getLogger(__name__)


class FungibleToken(Protocol):
    """ERC20-style collaborator. Amounts are raw integers in the smallest unit."""

    address: str

    def balance_of(self, account: str) -> int: ...

    def allowance(self, owner: str, spender: str) -> int: ...

    def approve(self, owner: str, spender: str, amount: int) -> bool: ...

    def transfer(self, sender: str, to: str, amount: int) -> bool: ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool: ...


def to_display(raw_amount: int, decimals: int) -> str:
    whole, frac = divmod(int(raw_amount), 10**decimals)
    if decimals == 0 or frac == 0:
        return str(whole)
    return f"{whole}.{str(frac).rjust(decimals, '0').rstrip('0')}"


def parse_display(text: str, decimals: int) -> int:
    """Inverse of to_display for operator input ("12.5" with 6 decimals -> 12500000)."""
    text = text.strip()
    whole, _, frac = text.partition(".")
    if (whole and not whole.isdigit()) or (frac and not frac.isdigit()) or not (whole or frac):
        raise InvalidAmount(f"Not a token amount: {text!r}")
    if len(frac) > decimals:
        raise InvalidAmount(f"Too many decimals for {decimals}-decimal token: {text!r}")
    return int(whole or "0") * 10**decimals + int(frac.ljust(decimals, "0") or "0")


class InMemoryToken:
    def __init__(self, address: str, symbol: str = "TEST", decimals: int = 6) -> None:
        self.address = normalize_address(address)
        self.symbol = symbol
        self.decimals = decimals
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str], int] = defaultdict(int)

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        key = (normalize_address(owner), normalize_address(spender))
        return self._allowances.get(key, 0)

    def mint(self, to: str, amount: int) -> None:
        _check_amount(amount)
        self._balances[normalize_address(to)] += amount
        log.debug("%s mint %d -> %s", self.symbol, amount, to)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        _check_amount(amount)
        self._allowances[(normalize_address(owner), normalize_address(spender))] = amount
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        _check_amount(amount)
        self._move(normalize_address(sender), normalize_address(to), amount)
        return True

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        _check_amount(amount)
        key = (normalize_address(owner), normalize_address(spender))
        allowed = self._allowances.get(key, 0)
        if allowed < amount:
            raise TokenError(
                f"{self.symbol}: insufficient allowance ({allowed} < {amount})"
            )
        self._move(key[0], normalize_address(to), amount)
        self._allowances[key] = allowed - amount
        return True

    def _move(self, sender: str, to: str, amount: int) -> None:
        have = self._balances.get(sender, 0)
        if have < amount:
            raise TokenError(f"{self.symbol}: insufficient balance ({have} < {amount})")
        self._balances[sender] = have - amount
        self._balances[to] += amount
        log.debug("%s transfer %d %s -> %s", self.symbol, amount, sender, to)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "balances": {k: str(v) for k, v in sorted(self._balances.items()) if v},
            "allowances": [
                {"owner": o, "spender": s, "amount": str(v)}
                for (o, s), v in sorted(self._allowances.items())
                if v
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryToken":
        token = cls(data["address"], data.get("symbol", "TEST"), int(data.get("decimals", 6)))
        for account, amount in data.get("balances", {}).items():
            token._balances[normalize_address(account)] = int(amount)
        for item in data.get("allowances", []):
            key = (normalize_address(item["owner"]), normalize_address(item["spender"]))
            token._allowances[key] = int(item["amount"])
        return token


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidAmount(f"Token amounts must be non-negative integers, got {amount!r}")
