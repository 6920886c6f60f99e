"""Unit tests for tier validation and random-value resolution."""

import pytest

from lucky_draw.errors import InvalidConfiguration, InvalidTierConfig, ProbabilityExceedsMax
from lucky_draw.project_constants import BASIS_POINTS, NO_TIER
from lucky_draw.resolution import build_bands, resolve, roll_from_seed
from lucky_draw.tiers import TierInput, parse_tier_arg, total_probability, validate_tiers

TWO_BANDS = [TierInput(prize_amount=50, win_probability=500), TierInput(prize_amount=10, win_probability=1500)]


def test_bands_are_cumulative_in_insertion_order():
    bands, covered = build_bands(TWO_BANDS)
    assert bands == [500, 2000]
    assert covered == 2000


@pytest.mark.parametrize(
    "random_value, tier_index, prize",
    [
        (0, 0, 50),
        (499, 0, 50),
        (500, 1, 10),
        (1999, 1, 10),
        (2000, NO_TIER, 7),
        (9999, NO_TIER, 7),
    ],
)
def test_band_boundaries(random_value, tier_index, prize):
    outcome = resolve(random_value, TWO_BANDS, default_prize=7)
    assert (outcome.tier_index, outcome.prize_amount) == (tier_index, prize)


def test_default_disabled_pays_zero():
    outcome = resolve(2000, TWO_BANDS, default_prize=0)
    assert outcome.is_default
    assert outcome.prize_amount == 0


def test_large_random_values_reduce_mod_basis_points():
    r = 2**255 + 123
    outcome = resolve(r, TWO_BANDS, default_prize=1)
    assert outcome.roll == r % BASIS_POINTS
    assert outcome == resolve(r % BASIS_POINTS, TWO_BANDS, default_prize=1)


def test_resolution_is_deterministic():
    word, _ = roll_from_seed("public-seed")
    first = resolve(word, TWO_BANDS, 1)
    for _ in range(5):
        assert resolve(word, TWO_BANDS, 1) == first


def test_zero_probability_tier_never_wins():
    tiers = [TierInput(prize_amount=99, win_probability=0), TierInput(prize_amount=5, win_probability=100)]
    assert resolve(0, tiers, 1).tier_index == 1
    assert resolve(99, tiers, 1).tier_index == 1
    assert resolve(100, tiers, 1).tier_index == NO_TIER


def test_full_coverage_has_no_default_band():
    tiers = [TierInput(prize_amount=1, win_probability=BASIS_POINTS)]
    assert resolve(BASIS_POINTS - 1, tiers, 5).tier_index == 0


def test_no_tiers_always_default():
    assert resolve(0, [], 3).tier_index == NO_TIER
    assert resolve(0, [], 3).prize_amount == 3


def test_negative_random_value_rejected():
    with pytest.raises(InvalidConfiguration):
        resolve(-1, TWO_BANDS, 0)


def test_roll_from_seed_is_sha256():
    word, hex_digest = roll_from_seed("abc")
    assert hex_digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert word == int(hex_digest, 16)


def test_validate_rejects_zero_prize():
    with pytest.raises(InvalidTierConfig):
        validate_tiers([TierInput(prize_amount=0, win_probability=500)])


def test_validate_rejects_probability_over_max():
    with pytest.raises(ProbabilityExceedsMax):
        validate_tiers([TierInput(50, 6000), TierInput(10, 5000)])


def test_validate_accepts_exactly_max():
    tiers = validate_tiers([TierInput(50, 6000), TierInput(10, 4000)])
    assert total_probability(tiers) == BASIS_POINTS
    assert all(t.winners_count == 0 and t.total_paid == 0 for t in tiers)


def test_parse_tier_arg():
    assert parse_tier_arg("50000000:500") == TierInput(50_000_000, 500)
    with pytest.raises(InvalidTierConfig):
        parse_tier_arg("50000000")
    with pytest.raises(InvalidTierConfig):
        parse_tier_arg("a:b")
