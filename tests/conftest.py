"""Pytest configuration and fixtures."""

import pytest

from lucky_draw.addresses import derive_address
from lucky_draw.manager import LuckyDrawManager
from lucky_draw.randomness import LocalCoordinator, RandomnessConfig
from lucky_draw.tiers import TierInput
from lucky_draw.token import InMemoryToken

KEY_HASH = "0x787d74caea10b2b357790d5b5247c2f63d1d91572a9846f780606e4d953677ae"
UNIT = 10**6


@pytest.fixture
def owner():
    return derive_address("owner")


@pytest.fixture
def users():
    return [derive_address(f"user{i}") for i in (1, 2, 3)]


@pytest.fixture
def outsider():
    return derive_address("not-whitelisted")


@pytest.fixture
def randomness_config():
    return RandomnessConfig(
        subscription_id=1,
        key_hash=KEY_HASH,
        callback_gas_limit=500_000,
        request_confirmations=3,
        native_payment=False,
    )


@pytest.fixture
def token(owner):
    t = InMemoryToken(derive_address("token:TEST"), symbol="TEST", decimals=6)
    t.mint(owner, 10_000 * UNIT)
    return t


@pytest.fixture
def coordinator():
    return LocalCoordinator()


@pytest.fixture
def manager(owner, token, coordinator, randomness_config):
    m = LuckyDrawManager(
        owner=owner,
        coordinator=coordinator,
        randomness_config=randomness_config,
        tokens={token.address: token},
    )
    token.approve(owner, m.address, 10_000 * UNIT)
    return m


@pytest.fixture
def draw_id(manager, owner, token, users):
    """Open draw: 5% -> 50, 15% -> 10, 30% -> 3, default 1, funded 1000, three whitelisted users."""
    d = manager.create_draw(owner, token.address)
    manager.set_tiers(
        owner,
        d,
        [
            TierInput(prize_amount=50 * UNIT, win_probability=500),
            TierInput(prize_amount=10 * UNIT, win_probability=1500),
            TierInput(prize_amount=3 * UNIT, win_probability=3000),
        ],
    )
    manager.set_default_prize(owner, d, 1 * UNIT)
    manager.fund_draw(owner, d, 1000 * UNIT)
    manager.set_whitelist_batch(owner, users, True)
    return d
