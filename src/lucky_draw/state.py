from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .addresses import derive_address
from .config import Settings
from .manager import LuckyDrawManager
from .randomness import LocalCoordinator
from .rpc import RpcRandomnessClient
from .token import InMemoryToken

log = logging.getLogger(__name__)

STATE_VERSION = 1
DEFAULT_TOKEN_SYMBOL = "TEST"

Coordinator = Union[LocalCoordinator, RpcRandomnessClient]


@dataclass
class LedgerState:
    manager: LuckyDrawManager
    coordinator: Coordinator
    tokens: Dict[str, InMemoryToken]
    # local coordinator block kept aside while a remote oracle is in use
    saved_coordinator: Optional[Dict[str, Any]] = None

    @property
    def default_token(self) -> InMemoryToken:
        return next(iter(self.tokens.values()))

    @property
    def local_coordinator(self) -> Optional[LocalCoordinator]:
        if isinstance(self.coordinator, LocalCoordinator):
            return self.coordinator
        return None

    def close(self) -> None:
        if isinstance(self.coordinator, RpcRandomnessClient):
            self.coordinator.close()

    def to_dict(self) -> Dict[str, Any]:
        local = self.local_coordinator
        return {
            "version": STATE_VERSION,
            "ledger": self.manager.to_dict(),
            "coordinator": local.to_dict() if local else self.saved_coordinator,
            "tokens": [t.to_dict() for t in self.tokens.values()],
        }


def _coordinator_for(settings: Settings, saved: Optional[Dict[str, Any]]) -> Coordinator:
    if settings.randomness_rpc_url:
        return RpcRandomnessClient(settings.randomness_rpc_url)
    if saved:
        return LocalCoordinator.from_dict(saved)
    return LocalCoordinator()


def new_state(settings: Settings) -> LedgerState:
    token = InMemoryToken(
        derive_address(f"token:{DEFAULT_TOKEN_SYMBOL}"),
        symbol=DEFAULT_TOKEN_SYMBOL,
        decimals=settings.token_decimals,
    )
    tokens = {token.address: token}
    coordinator = _coordinator_for(settings, None)
    manager = LuckyDrawManager(
        owner=settings.owner,
        coordinator=coordinator,
        randomness_config=settings.randomness,
        tokens=tokens,
    )
    return LedgerState(manager=manager, coordinator=coordinator, tokens=tokens)


def load_state(path: str, settings: Settings) -> LedgerState:
    if not os.path.exists(path):
        log.info("No state at %s; starting a fresh ledger owned by %s", path, settings.owner)
        return new_state(settings)

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if data.get("version") != STATE_VERSION:
        raise RuntimeError(f"Unsupported state file version: {data.get('version')!r}")

    tokens: Dict[str, InMemoryToken] = {}
    for item in data.get("tokens", []):
        token = InMemoryToken.from_dict(item)
        tokens[token.address] = token
    if not tokens:
        raise RuntimeError(f"State file {path} lists no tokens.")

    saved = data.get("coordinator")
    coordinator = _coordinator_for(settings, saved)
    manager = LuckyDrawManager.from_dict(data["ledger"], coordinator, tokens)
    if isinstance(coordinator, LocalCoordinator):
        # ids issued by a remote oracle in earlier runs are never handed out again
        coordinator.next_request_id = max(coordinator.next_request_id, manager.last_request_id + 1)
    return LedgerState(manager=manager, coordinator=coordinator, tokens=tokens, saved_coordinator=saved)


def save_state(path: str, state: LedgerState) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp = tempfile.mkstemp(prefix=".lucky_draw_", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise
    log.debug("Wrote state: %s", path)
