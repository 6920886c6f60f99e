from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .errors import InvalidConfiguration, UnknownRequest
from .project_constants import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_NATIVE_PAYMENT,
    DEFAULT_REQUEST_CONFIRMATIONS,
    MAX_REQUEST_CONFIRMATIONS,
    MIN_REQUEST_CONFIRMATIONS,
    NUM_WORDS,
)
from .resolution import roll_from_seed

log = logging.getLogger(__name__)

_KEY_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

FulfillCallback = Callable[[int, Sequence[int]], Any]


@dataclass(frozen=True)
class RandomnessConfig:
    subscription_id: int
    key_hash: str
    callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    request_confirmations: int = DEFAULT_REQUEST_CONFIRMATIONS
    native_payment: bool = DEFAULT_NATIVE_PAYMENT
    num_words: int = NUM_WORDS

    def validate(self) -> "RandomnessConfig":
        if not isinstance(self.subscription_id, int) or self.subscription_id < 0:
            raise InvalidConfiguration(f"Invalid subscription id: {self.subscription_id!r}")
        if not isinstance(self.key_hash, str) or not _KEY_HASH_RE.match(self.key_hash):
            raise InvalidConfiguration(f"Key hash must be 0x + 64 hex chars: {self.key_hash!r}")
        if not isinstance(self.callback_gas_limit, int) or self.callback_gas_limit <= 0:
            raise InvalidConfiguration(f"Invalid callback gas limit: {self.callback_gas_limit!r}")
        if not MIN_REQUEST_CONFIRMATIONS <= self.request_confirmations <= MAX_REQUEST_CONFIRMATIONS:
            raise InvalidConfiguration(
                f"Request confirmations must be in [{MIN_REQUEST_CONFIRMATIONS}, "
                f"{MAX_REQUEST_CONFIRMATIONS}], got {self.request_confirmations}"
            )
        if self.num_words != NUM_WORDS:
            raise InvalidConfiguration(f"Exactly {NUM_WORDS} random word per request is consumed")
        return self

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["subscription_id"] = str(self.subscription_id)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RandomnessConfig":
        return cls(
            subscription_id=int(data["subscription_id"]),
            key_hash=data["key_hash"],
            callback_gas_limit=int(data.get("callback_gas_limit", DEFAULT_CALLBACK_GAS_LIMIT)),
            request_confirmations=int(
                data.get("request_confirmations", DEFAULT_REQUEST_CONFIRMATIONS)
            ),
            native_payment=bool(data.get("native_payment", DEFAULT_NATIVE_PAYMENT)),
            num_words=int(data.get("num_words", NUM_WORDS)),
        )


class RandomnessCoordinator(Protocol):
    def request_random_words(self, config: RandomnessConfig) -> int: ...


class PendingRequests:
    """Request id -> (draw_id, participant). An id is admitted once and removed once."""

    def __init__(self) -> None:
        self._pending: Dict[int, Tuple[int, str]] = {}
        self._seen: set[int] = set()

    def add(self, request_id: int, draw_id: int, participant: str) -> None:
        if request_id in self._seen:
            raise InvalidConfiguration(f"Coordinator reused request id {request_id}")
        self._pending[request_id] = (draw_id, participant)
        self._seen.add(request_id)

    def get(self, request_id: int) -> Optional[Tuple[int, str]]:
        return self._pending.get(request_id)

    def lookup(self, request_id: int) -> Tuple[int, str]:
        found = self._pending.get(request_id)
        if found is None:
            raise UnknownRequest(f"Unknown or already fulfilled request id {request_id}")
        return found

    def remove(self, request_id: int) -> None:
        self._pending.pop(request_id)

    @property
    def last_request_id(self) -> int:
        return max(self._seen, default=0)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pending": {str(k): [d, p] for k, (d, p) in sorted(self._pending.items())},
            "seen": sorted(str(s) for s in self._seen),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingRequests":
        book = cls()
        book._pending = {int(k): (int(v[0]), v[1]) for k, v in data.get("pending", {}).items()}
        book._seen = {int(s) for s in data.get("seen", [])} | set(book._pending)
        return book


class LocalCoordinator:
    """
    In-process stand-in for the randomness oracle.

    Issues sequential request ids and hands delivered words to the consumer
    registered with ``bind``. Delivery is triggered explicitly (tests, CLI).
    """

    def __init__(self, next_request_id: int = 1) -> None:
        self.next_request_id = next_request_id
        self.outstanding: Dict[int, RandomnessConfig] = {}
        self._consumer: Optional[FulfillCallback] = None

    def bind(self, consumer: FulfillCallback) -> None:
        self._consumer = consumer

    def request_random_words(self, config: RandomnessConfig) -> int:
        request_id = self.next_request_id
        self.next_request_id += 1
        self.outstanding[request_id] = config
        log.debug("Randomness requested: id=%d sub=%s", request_id, config.subscription_id)
        return request_id

    def fulfill(self, request_id: int, random_words: Sequence[int]) -> Any:
        if request_id not in self.outstanding:
            raise UnknownRequest(f"Coordinator never issued (or already fulfilled) request {request_id}")
        if self._consumer is None:
            raise RuntimeError("No consumer bound to the coordinator.")
        result = self._consumer(request_id, list(random_words))
        # only forget the request once the consumer accepted it
        del self.outstanding[request_id]
        return result

    def fulfill_from_seed(self, request_id: int, seed: str) -> Tuple[Any, int, str]:
        """Deliver sha256("seed:request_id"). Returns (consumer result, word, seed hash hex)."""
        word, seed_hash_hex = roll_from_seed(f"{seed}:{request_id}")
        return self.fulfill(request_id, [word]), word, seed_hash_hex

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_request_id": self.next_request_id,
            "outstanding": {str(k): v.to_dict() for k, v in sorted(self.outstanding.items())},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalCoordinator":
        c = cls(next_request_id=int(data.get("next_request_id", 1)))
        c.outstanding = {
            int(k): RandomnessConfig.from_dict(v) for k, v in data.get("outstanding", {}).items()
        }
        return c


def first_word(random_words: List[int]) -> int:
    if not random_words:
        raise InvalidConfiguration("Randomness delivery carried no random words")
    return int(random_words[0])
