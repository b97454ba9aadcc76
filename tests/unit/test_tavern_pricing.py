"""
Unit tests for tavern pricing, fame tiers and deterministic ordering.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from src.domain.models.items import TAVERN_SHOP_POOL
from src.modules.shared import constants
from src.modules.tavern.pricing import (
    apply_shop_discount,
    daily_pool_order,
    daily_shop_items,
    fame_perks,
    fame_tier,
    fame_to_next_tier,
    format_reset,
    hire_cost_for_rarity,
    is_pet_unlocked,
    jitter,
    order_by_weighted_jitter,
    reroll_cost_for_fame,
    reroll_rotation,
    round_up_to_5,
    seconds_until_reset,
    stable_hash,
    visible_cap,
)

pytestmark = pytest.mark.unit


DAY = date(2025, 3, 14)


@pytest.mark.unit
class TestCosts:
    @pytest.mark.parametrize("value,expected", [(86, 90), (90, 90), (1, 5), (0, 1), (-5, 1)])
    def test_round_up_to_5(self, value, expected):
        assert round_up_to_5(value) == expected

    def test_shop_discount(self):
        assert apply_shop_discount(101, 0.15) == 90
        assert apply_shop_discount(150, 0.0) == 150

    @pytest.mark.parametrize(
        "rarity,expected", [("Common", 250), ("Rare", 290), ("Epic", 340), ("Fabled", 690)]
    )
    def test_hire_cost_for_rarity(self, rarity, expected):
        assert hire_cost_for_rarity(rarity) == expected

    def test_hire_cost_is_a_multiple_of_five(self):
        for rarity in ("Common", "Rare", "Epic", "Legendary", "Unique", "Mythical", "Fabled"):
            assert hire_cost_for_rarity(rarity) % 5 == 0


@pytest.mark.unit
class TestFame:
    @pytest.mark.parametrize(
        "fame,tier,progress", [(0, 0, 0.0), (25, 0, 0.5), (75, 1, 0.25), (150, 2, 0.0), (999, 3, 1.0)]
    )
    def test_fame_tier(self, fame, tier, progress):
        assert fame_tier(fame) == (tier, pytest.approx(progress))

    def test_fame_to_next_tier(self):
        assert fame_to_next_tier(0) == 50
        assert fame_to_next_tier(75) == 75
        assert fame_to_next_tier(400) is None

    def test_perks_clamp_to_known_tiers(self):
        assert fame_perks(-1) == fame_perks(0)
        assert fame_perks(10) == fame_perks(3)
        assert fame_perks(3).extra_visible == 2

    @pytest.mark.parametrize("fame,expected", [(0, 150), (60, 150), (150, 115), (400, 75)])
    def test_reroll_cost(self, fame, expected):
        assert reroll_cost_for_fame(fame) == expected


@pytest.mark.unit
class TestOrdering:
    def test_stable_hash_is_deterministic(self):
        assert stable_hash(1, 2, 3) == stable_hash(1, 2, 3)
        assert stable_hash(1, 2, 3) != stable_hash(3, 2, 1)

    def test_daily_pool_is_capped_and_stable(self):
        ids = list(range(1, 61))

        pool = daily_pool_order(ids, DAY)

        assert len(pool) == constants.TAVERN_MAX_DAILY
        assert pool == daily_pool_order(reversed(ids), DAY)
        assert set(pool) <= set(ids)

    def test_daily_pool_changes_with_the_day(self):
        ids = list(range(1, 61))

        assert daily_pool_order(ids, DAY) != daily_pool_order(ids, DAY + timedelta(days=1))

    def test_jitter_in_unit_interval(self):
        for unit_id in range(1, 50):
            assert 0.0 <= jitter(42, DAY, unit_id) <= 1.0

    def test_weighted_jitter_is_per_user(self):
        entries = [(uid, "Common") for uid in range(1, 30)]
        kwargs = dict(unit_id_of=lambda e: e[0], rarity_of=lambda e: e[1])

        first = order_by_weighted_jitter(entries, 1, DAY, 0, **kwargs)

        assert first == order_by_weighted_jitter(entries, 1, DAY, 0, **kwargs)
        assert first != order_by_weighted_jitter(entries, 2, DAY, 0, **kwargs)
        assert sorted(first) == sorted(entries)

    @pytest.mark.parametrize(
        "story,extra,expected", [(0, 0, 5), (3, 0, 6), (6, 0, 7), (6, 2, 9)]
    )
    def test_visible_cap(self, story, extra, expected):
        assert visible_cap(story, extra) == expected

    @pytest.mark.parametrize("story", [0, 6, 12])
    def test_higher_rarity_wins_the_visible_slots(self, story):
        # Fabled entries sit at the back of the rotation; ranking still surfaces them.
        entries = [(uid, "Common") for uid in range(1, 101)] + [(uid, "Fabled") for uid in range(101, 201)]
        kwargs = dict(unit_id_of=lambda e: e[0], rarity_of=lambda e: e[1])

        visible = order_by_weighted_jitter(entries, 3, DAY, story, **kwargs)[:20]
        fabled = sum(1 for _, rarity in visible if rarity == "Fabled")

        assert fabled > len(visible) - fabled

    def test_reroll_drops_shown_units_from_a_large_pool(self):
        pool = list(range(1, 21))
        shown = [1, 2, 3, 4, 5]

        rotated = reroll_rotation(pool, shown, user_id=9, day=DAY, reroll_number=1, cap=5)

        assert sorted(rotated) == list(range(6, 21))
        assert rotated == reroll_rotation(pool, shown, user_id=9, day=DAY, reroll_number=1, cap=5)
        assert rotated != reroll_rotation(pool, shown, user_id=9, day=DAY, reroll_number=2, cap=5)

    def test_reroll_keeps_a_small_pool_with_shown_units_last(self):
        pool = list(range(1, 9))
        shown = [1, 2, 3, 4, 5]

        rotated = reroll_rotation(pool, shown, user_id=9, day=DAY, reroll_number=1, cap=5)

        assert sorted(rotated) == pool
        assert set(rotated[-5:]) == set(shown)

    def test_daily_shop_items(self):
        items = daily_shop_items(5, DAY)

        assert len(items) == constants.TAVERN_SHOP_DAILY_COUNT
        assert set(items) <= set(TAVERN_SHOP_POOL)
        assert items == daily_shop_items(5, DAY)


@pytest.mark.unit
class TestResetAndUnlocks:
    def test_seconds_until_reset(self):
        now = datetime(2025, 1, 1, 23, 0, tzinfo=timezone.utc)
        assert seconds_until_reset(now) == 3600

    def test_format_reset(self):
        assert format_reset(5 * 3600 + 12 * 60) == "5h 12m"
        assert format_reset(59) == "0m"

    def test_pet_unlock(self):
        assert not is_pet_unlocked(4)
        assert is_pet_unlocked(5)
