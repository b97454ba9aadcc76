"""
Unit tests for leveling, rarity tables and the item catalog.
"""

import pytest

from src.database.models.enums import UnitRarity
from src.domain.models.items import (
    TAVERN_SHOP_POOL,
    ItemId,
    item_from_id,
    parse_item,
    properties,
    research_item_for_unit,
)
from src.domain.models.leveling import apply_unit_xp, xp_for_level
from src.domain.models.rarity import (
    DEFEATS_REQUIRED,
    average_reward_scale,
    is_party_eligible_pet_rarity,
    rarities_at_least,
    rarity_at_least,
    rarity_rank,
    rarity_tier_for_story,
    round_half_up,
    to_rarity,
)


pytestmark = pytest.mark.unit


@pytest.mark.unit
class TestLeveling:
    def test_xp_curve(self):
        assert xp_for_level(1) == 125
        assert xp_for_level(4) == 200

    def test_single_level_up_keeps_surplus(self):
        result = apply_unit_xp(7, current_level=1, current_xp=0, xp_gained=130)

        assert result.new_level == 2
        assert result.new_xp == 5
        assert result.stat_gains == (2, 1, 10)
        assert result.did_level_up

    def test_multiple_level_ups_from_one_award(self):
        result = apply_unit_xp(1, current_level=1, current_xp=0, xp_gained=125 + 150)

        assert result.new_level == 3
        assert result.new_xp == 0
        assert result.levels_gained == 2
        assert result.stat_gains == (4, 2, 20)

    def test_below_threshold(self):
        result = apply_unit_xp(1, current_level=3, current_xp=10, xp_gained=50)

        assert (result.new_level, result.new_xp) == (3, 60)
        assert not result.did_level_up
        assert result.stat_gains == (0, 0, 0)

    def test_negative_award_is_ignored(self):
        result = apply_unit_xp(1, current_level=2, current_xp=40, xp_gained=-100)

        assert (result.new_level, result.new_xp) == (2, 40)


@pytest.mark.unit
class TestRarity:
    def test_ladder_order(self):
        assert rarity_rank("Common") == 0
        assert rarity_rank(UnitRarity.FABLED) == 6
        assert rarity_at_least("Epic", "Rare")
        assert not rarity_at_least("Rare", UnitRarity.EPIC)

    def test_to_rarity_rejects_unknown_labels(self):
        with pytest.raises(ValueError):
            to_rarity("Shiny")

    def test_party_eligible_pets_are_legendary_or_better(self):
        assert not is_party_eligible_pet_rarity("Epic")
        assert is_party_eligible_pet_rarity("Legendary")
        assert is_party_eligible_pet_rarity(UnitRarity.MYTHICAL)

    @pytest.mark.parametrize(
        "story,expected",
        [(0, UnitRarity.COMMON), (2, UnitRarity.COMMON), (3, UnitRarity.RARE), (5, UnitRarity.RARE), (6, UnitRarity.EPIC)],
    )
    def test_rarity_tier_for_story(self, story, expected):
        assert rarity_tier_for_story(story) == expected

    def test_rarities_at_least(self):
        assert rarities_at_least("Unique") == [UnitRarity.UNIQUE, UnitRarity.MYTHICAL, UnitRarity.FABLED]

    def test_defeats_required_grows_with_rarity(self):
        values = [DEFEATS_REQUIRED[r] for r in UnitRarity]
        assert values == sorted(values)
        assert DEFEATS_REQUIRED[UnitRarity.EPIC] == 5

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.49) == 2

    def test_average_reward_scale(self):
        assert average_reward_scale([]) == 1.0
        assert average_reward_scale(["Rare", "Rare"]) == pytest.approx(1.08)
        assert average_reward_scale(["Common", "Fabled"]) == pytest.approx(1.55)


@pytest.mark.unit
class TestItemCatalog:
    def test_every_item_has_properties(self):
        for item in ItemId:
            assert properties(item).display_name

    def test_item_from_id(self):
        assert item_from_id(11) == ItemId.HEALTH_POTION
        assert item_from_id(999) is None

    def test_parse_item_ignores_case_and_spaces(self):
        assert parse_item("Golden Fish") == ItemId.GOLDEN_FISH
        assert parse_item("  TONIC ") == ItemId.FOCUS_TONIC
        assert parse_item("sword") is None

    def test_research_items(self):
        assert research_item_for_unit("Alpha Wolf") == ItemId.WOLF_RESEARCH_DATA
        assert research_item_for_unit("Bandit") is None

    def test_label(self):
        assert properties(ItemId.GEM).label == "💎 Gem"

    def test_shop_pool_has_no_duplicates(self):
        assert len(set(TAVERN_SHOP_POOL)) == len(TAVERN_SHOP_POOL)
