from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .addresses import derive_address, resolve_principal
from .project_constants import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_NATIVE_PAYMENT,
    DEFAULT_REQUEST_CONFIRMATIONS,
    DEFAULT_TOKEN_DECIMALS,
)
from .randomness import RandomnessConfig

# Public key hash of the default oracle lane; override with VRF_KEY_HASH
DEFAULT_KEY_HASH = "0x787d74caea10b2b357790d5b5247c2f63d1d91572a9846f780606e4d953677ae"
DEFAULT_STATE_FILE = "lucky_draw_state.json"


@dataclass(frozen=True)
class Settings:
    state_file: str
    owner: str
    token_decimals: int
    randomness: RandomnessConfig
    randomness_rpc_url: Optional[str] = None

    @staticmethod
    def from_env(
        state_file_override: str | None = None,
        rpc_url_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        state_file = state_file_override or os.getenv("LUCKY_DRAW_STATE_FILE", "").strip()
        owner_env = os.getenv("LUCKY_DRAW_OWNER", "").strip()
        owner = resolve_principal(owner_env) if owner_env else derive_address("owner")

        randomness = RandomnessConfig(
            subscription_id=_int_env("VRF_SUBSCRIPTION_ID", 0),
            key_hash=os.getenv("VRF_KEY_HASH", "").strip() or DEFAULT_KEY_HASH,
            callback_gas_limit=_int_env("VRF_CALLBACK_GAS_LIMIT", DEFAULT_CALLBACK_GAS_LIMIT),
            request_confirmations=_int_env(
                "VRF_REQUEST_CONFIRMATIONS", DEFAULT_REQUEST_CONFIRMATIONS
            ),
            native_payment=_bool_env("VRF_NATIVE_PAYMENT", DEFAULT_NATIVE_PAYMENT),
        )

        # If user provides --rpc-url, trust it; else an env URL enables the remote oracle.
        rpc_url = rpc_url_override or os.getenv("RANDOMNESS_RPC_URL", "").strip() or None

        return Settings(
            state_file=state_file or DEFAULT_STATE_FILE,
            owner=owner,
            token_decimals=_int_env("LUCKY_DRAW_TOKEN_DECIMALS", DEFAULT_TOKEN_DECIMALS),
            randomness=randomness,
            randomness_rpc_url=rpc_url,
        )


def _int_env(name: str, fallback: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return fallback
    try:
        return int(value)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from None


def _bool_env(name: str, fallback: bool) -> bool:
    value = os.getenv(name, "").strip()
    if not value:
        return fallback
    return value.lower() in ("1", "true", "yes", "on")
