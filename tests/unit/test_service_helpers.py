"""
Unit tests for the pure helpers behind the saga, economy and quest
services.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from src.database.models.enums import QuestType
from src.domain.models.items import ItemId
from src.modules.economy.jobs import JOBS, apply_job_xp, job_xp_threshold, roll_work, streak_bonus
from src.modules.progression.quest_service import AcceptedQuest, parse_enemy_ids
from src.modules.progression.task_service import RewardBundle
from src.modules.saga.service import available_nodes, calculate_tp_recharge, needs_ap_reset

pytestmark = pytest.mark.unit


LAST = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestTpRecharge:
    def test_whole_hours_only(self):
        assert calculate_tp_recharge(2, 10, LAST, LAST + timedelta(hours=2, minutes=30)) == (4, True)

    def test_under_an_hour_changes_nothing(self):
        assert calculate_tp_recharge(2, 10, LAST, LAST + timedelta(minutes=59)) == (2, False)

    def test_capped_at_max(self):
        assert calculate_tp_recharge(8, 10, LAST, LAST + timedelta(hours=12)) == (10, True)

    def test_full_tp_reports_no_change(self):
        assert calculate_tp_recharge(10, 10, LAST, LAST + timedelta(hours=3)) == (10, False)

    def test_longer_replenish_interval(self):
        assert calculate_tp_recharge(0, 10, LAST, LAST + timedelta(hours=5), replenish_hours=2) == (2, True)


@pytest.mark.unit
class TestApReset:
    def test_same_day(self):
        assert not needs_ap_reset(LAST, LAST + timedelta(hours=13))

    def test_next_day(self):
        assert needs_ap_reset(LAST, LAST + timedelta(hours=14))


@pytest.mark.unit
class TestAvailableNodes:
    def test_new_player_starts_at_first_node(self):
        assert available_nodes(0) == [1]

    def test_after_first_story_step(self):
        assert available_nodes(1) == [2]
        assert available_nodes(7) == [2]


@pytest.mark.unit
class TestJobs:
    def test_job_xp_threshold_has_a_floor(self):
        assert job_xp_threshold(0) == 100
        assert job_xp_threshold(3) == 300

    def test_apply_job_xp_carries_surplus(self):
        assert apply_job_xp(1, 90, 25) == (2, 15, True)

    def test_apply_job_xp_ignores_non_positive(self):
        assert apply_job_xp(1, 90, 0) == (1, 90, False)

    def test_streak_bonus(self):
        assert streak_bonus(100, 1) == 0
        assert streak_bonus(100, 5) == 5
        assert streak_bonus(100, 60) == 25

    def test_roll_work_is_reproducible(self):
        first = roll_work(JOBS["fishing"], 2, 3, random.Random(11))
        second = roll_work(JOBS["fishing"], 2, 3, random.Random(11))

        assert first == second
        assert 25 <= first.base_coins <= 75
        assert first.items[0][0] == ItemId.FISH
        assert first.total_coins == first.base_coins + first.streak_bonus

    def test_coding_has_no_rare_drop(self):
        roll = roll_work(JOBS["coding"], 1, 0, random.Random(3))

        assert roll.rare_drop is None
        assert [item for item, _ in roll.items] == [ItemId.GEM]


@pytest.mark.unit
class TestQuestHelpers:
    def test_parse_enemy_ids_skips_junk(self):
        assert parse_enemy_ids("3, 7,x,7") == [3, 7, 7]
        assert parse_enemy_ids("") == []

    def test_riddle_quests_have_no_enemies(self):
        quest = AcceptedQuest(player_quest_id=1, quest_type=QuestType.RIDDLE, objective_key="echo")

        assert quest.enemy_unit_ids == []

    def test_battle_quest_enemies(self):
        quest = AcceptedQuest(player_quest_id=1, quest_type=QuestType.BATTLE, objective_key="4,4,20")

        assert quest.enemy_unit_ids == [4, 4, 20]


@pytest.mark.unit
class TestRewardBundle:
    def test_from_columns(self):
        bundle = RewardBundle.from_columns(150, int(ItemId.HEALTH_POTION), 2)

        assert bundle == RewardBundle(coins=150, item=ItemId.HEALTH_POTION, item_quantity=2)
        assert not bundle.is_empty

    def test_unknown_item_is_dropped(self):
        bundle = RewardBundle.from_columns(None, 999, 5)

        assert bundle.item is None
        assert bundle.item_quantity == 0
        assert bundle.is_empty

    def test_negative_coins_clamp_to_zero(self):
        assert RewardBundle.from_columns(-10, None, None).coins == 0
