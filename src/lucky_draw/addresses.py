from __future__ import annotations

import hashlib
from typing import Iterable, List

import base58

from .errors import InvalidAddress
from .project_constants import ZERO_ADDRESS

ADDRESS_BYTES = 32


def normalize_address(value: str) -> str:
    """
    Addresses are base58 text of a 32-byte public key.
    Returns the canonical re-encoded form.
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidAddress(f"Empty or non-text address: {value!r}")
    text = value.strip()
    try:
        raw = base58.b58decode(text)
    except ValueError as e:
        raise InvalidAddress(f"Address is not base58: {text!r} ({e})") from e
    if len(raw) != ADDRESS_BYTES:
        raise InvalidAddress(
            f"Address must decode to {ADDRESS_BYTES} bytes, got {len(raw)}: {text!r}"
        )
    return base58.b58encode(raw).decode("ascii")


def normalize_addresses(values: Iterable[str]) -> List[str]:
    return [normalize_address(v) for v in values]


def is_zero_address(value: str) -> bool:
    return normalize_address(value) == ZERO_ADDRESS


def derive_address(label: str) -> str:
    """Deterministic address for a named principal (custody account, CLI labels)."""
    digest = hashlib.sha256(label.encode("utf-8")).digest()
    return base58.b58encode(digest).decode("ascii")


def resolve_principal(value: str) -> str:
    """Accept either a base58 address or a label to derive one from."""
    try:
        return normalize_address(value)
    except InvalidAddress:
        return derive_address(value)
