"""
Unit tests for bond bonuses, battle unit builders and victory rewards.

Every roll goes through an injected RNG, so the results below are exact.
"""

import random
from datetime import datetime, timezone

import pytest

from src.database.models.enums import UnitKind, UnitRarity
from src.domain.models.items import ItemId
from src.domain.models.leveling import apply_unit_xp
from src.modules.battle.factory import (
    NO_SCALE,
    battle_unit_from_enemy,
    battle_unit_from_owned,
    build_player_party,
    enemy_scaling,
)
from src.modules.battle.rewards import (
    build_victory_lines,
    research_drop_chance,
    roll_victory,
    scale_reward,
)
from src.modules.units.bonus_logic import bond_bonus, vitality_from_health_bonus
from src.modules.units.repository import OwnedUnit
from src.modules.world.service import EnemyTemplate, NodeLoot


pytestmark = pytest.mark.unit


class FixedRng(random.Random):
    """Random whose `random()` always returns the same value."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def owned(puid=1, name="Squire", *, nickname=None, attack=12, defense=6, health=80, level=1, kind=UnitKind.HUMAN):
    return OwnedUnit(
        player_unit_id=puid,
        unit_id=100 + puid,
        name=name,
        nickname=nickname,
        kind=kind,
        rarity=UnitRarity.COMMON,
        current_level=level,
        current_xp=0,
        current_attack=attack,
        current_defense=defense,
        current_health=health,
        is_in_party=True,
        is_training=False,
        training_stat=None,
        training_ends_at=None,
    )


def enemy(unit_id=3, name="Slime", *, kind=UnitKind.PET, rarity=UnitRarity.COMMON, attack=10, defense=10, health=100):
    return EnemyTemplate(
        unit_id=unit_id,
        name=name,
        kind=kind,
        rarity=rarity,
        attack=attack,
        defense=defense,
        health=health,
        is_recruitable=True,
    )


@pytest.mark.unit
class TestBondBonus:
    def test_legendary_level_four(self):
        assert bond_bonus("Legendary", 4, 20, 10, 100) == (8, 4, 46)

    def test_common_level_zero_rounds_up(self):
        assert bond_bonus(UnitRarity.COMMON, 0, 10, 10, 10) == (1, 1, 1)

    def test_vitality(self):
        assert vitality_from_health_bonus(46) == 4
        assert vitality_from_health_bonus(9) == 0
        assert vitality_from_health_bonus(-5) == 0


@pytest.mark.unit
class TestFactory:
    @pytest.mark.parametrize(
        "story,required,expected",
        [
            (9, 2, (1.25, 1.25, 1.35)),
            (5, 2, (1.15, 1.10, 1.20)),
            (2, 2, NO_SCALE),
            (0, 4, (0.90, 0.95, 0.90)),
        ],
    )
    def test_enemy_scaling(self, story, required, expected):
        assert enemy_scaling(story, required) == expected

    def test_owned_unit_with_bonus(self):
        unit = battle_unit_from_owned(owned(nickname="Sir Ann"), (8, 4, 46))

        assert unit.name == "Sir Ann"
        assert (unit.attack, unit.defense, unit.max_hp, unit.current_hp) == (20, 10, 126, 126)
        assert unit.vitality == 4
        assert unit.player_unit_id == 1

    def test_enemy_scaled(self):
        unit = battle_unit_from_enemy(enemy(), (1.25, 1.25, 1.35))

        assert (unit.attack, unit.defense, unit.max_hp) == (13, 13, 135)
        assert unit.player_unit_id is None
        assert unit.is_recruitable

    def test_enemy_health_never_below_one(self):
        assert battle_unit_from_enemy(enemy(health=0)).max_hp == 1

    def test_synergy_lines_only_for_boosted_units(self):
        party = [owned(1, "Squire"), owned(2, "Archer")]

        units, lines = build_player_party(party, {1: (3, 2, 10), 2: (0, 0, 0)})

        assert [u.name for u in units] == ["Squire", "Archer"]
        assert lines == ["🔗 Squire gains +3 Atk / +2 Def / +10 HP from bonded unit(s)."]


@pytest.mark.unit
class TestRewards:
    def test_research_drop_chance(self):
        assert research_drop_chance("Common") == 0.55
        assert research_drop_chance("Epic", focus_active=True) == pytest.approx(0.375)
        assert research_drop_chance("Legendary", focus_active=True) == 0.0

    def test_scale_reward(self):
        assert scale_reward(100, 1.08) == 108
        assert scale_reward(0, 2.0) == 0

    def test_loot_drops_below_chance(self):
        loot = [NodeLoot(ItemId.SLIME_GEL, 2, 0.5), NodeLoot(ItemId.GEM, 1, 0.0)]

        rolls = roll_victory(loot, [], focus_active=False, rng=FixedRng(0.4))

        assert rolls.loot == [(ItemId.SLIME_GEL, 2)]
        assert rolls.multiplier == 1.0

    def test_research_drops_and_humans(self):
        enemies = [
            enemy(3, "Slime"),
            enemy(20, "Bandit", kind=UnitKind.HUMAN, rarity=UnitRarity.RARE),
            enemy(9, "Alpha Wolf", rarity=UnitRarity.LEGENDARY),
            enemy(10, "Mystery Pet"),
        ]

        rolls = roll_victory([], enemies, focus_active=False, rng=FixedRng(0.0))

        assert rolls.loot == [(ItemId.SLIME_RESEARCH_DATA, 1)]
        assert [h.name for h in rolls.humans] == ["Bandit"]

    def test_research_miss(self):
        rolls = roll_victory([], [enemy(3, "Slime")], focus_active=False, rng=FixedRng(0.6))

        assert rolls.loot == []

    def test_seeded_rolls_are_reproducible(self):
        loot = [NodeLoot(ItemId.FISH, 1, 0.5)] * 5
        enemies = [enemy(3, "Slime"), enemy(4, "Wolf")]

        first = roll_victory(loot, enemies, False, random.Random(99))
        second = roll_victory(loot, enemies, False, random.Random(99))

        assert first == second

    def test_victory_lines_with_rarity_scaling(self):
        party = [owned(1, "Squire")]
        results = [apply_unit_xp(1, 1, 0, 54)]

        lines = build_victory_lines(
            node_name="Whispering Woods",
            base_coins=100,
            coins=108,
            base_xp=50,
            xp=54,
            multiplier=1.08,
            focus_active=True,
            loot=[(ItemId.SLIME_GEL, 2)],
            vitality_mitigated=7,
            party=party,
            results=results,
        )

        assert lines == [
            "🎉 **Victory at the Whispering Woods!**",
            "💰 You earned **108** coins (100 base × 1.08 rarity).",
            "🧠 Focus active (+25% research drop chance this battle).",
            "🎁 You found: **`2` Slime Gel**!",
            "🛡️ Vitality prevented **7** damage this battle.",
            "\n--- **Party Members Gained XP** ---",
            "- **Squire** gained `54` XP (50 base × 1.08 rarity).",
        ]

    def test_victory_lines_level_up(self):
        party = [owned(1, "Squire")]

        lines = build_victory_lines(
            node_name="Forest",
            base_coins=100,
            coins=100,
            base_xp=130,
            xp=130,
            multiplier=1.0,
            focus_active=False,
            loot=[],
            vitality_mitigated=0,
            party=party,
            results=[apply_unit_xp(1, 1, 0, 130)],
        )

        assert lines[1] == "💰 You earned **100** coins."
        assert lines[-1] == "🌟 **Squire leveled up to 2!** (+2 ATK, +1 DEF, +10 HP)"
