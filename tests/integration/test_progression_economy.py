"""
Integration tests for tasks, quests, crafting and the coin/item economy.

Templates (tasks, quests, recipes) are seeded per test; the item catalog
comes from the session-wide seed.
"""

import pytest
import pytest_asyncio

from src.core.database.service import DatabaseService
from src.database.models import Quest, QuestReward, Recipe, RecipeIngredient, Task
from src.database.models.enums import PlayerQuestStatus, QuestType, TaskType
from src.domain.models.items import ItemId
from src.modules.progression.quest_service import ACCEPT_FAILED_MESSAGE
from src.modules.progression.task_service import CLAIM_UNAVAILABLE_MESSAGE, RewardBundle
from src.modules.shared.exceptions import (
    CooldownActiveError,
    InsufficientResourcesError,
    NotFoundError,
    ValidationError,
)

pytestmark = [pytest.mark.integration, pytest.mark.database, pytest.mark.asyncio(loop_scope="session")]

USER_ID = 818181
FRIEND_ID = 828282


async def _balance(services, user_id=USER_ID):
    return (await services.economy.get_or_create_profile(user_id)).balance


# ============================================================================
# TASKS
# ============================================================================


@pytest_asyncio.fixture
async def win_task(services):
    async with DatabaseService.get_transaction() as session:
        session.add(
            Task(
                task_id=1,
                task_type=TaskType.DAILY,
                title="Skirmisher",
                description="Win two battles.",
                objective_key="WinBattle",
                objective_goal=2,
                reward_coins=50,
                reward_item_id=int(ItemId.GEM),
                reward_item_quantity=1,
            )
        )
    (task,) = await services.tasks.get_or_assign_player_tasks(USER_ID)
    return task


async def test_task_progress_is_clamped_and_completes(services, win_task):
    assert (win_task.progress, win_task.goal, win_task.is_completed) == (0, 2, False)

    assert await services.tasks.update_task_progress(USER_ID, "WinBattle", 1) == 0
    (task,) = await services.tasks.get_or_assign_player_tasks(USER_ID)
    assert (task.progress, task.is_completed) == (1, False)

    assert await services.tasks.update_task_progress(USER_ID, "WinBattle", 5) == 1
    (task,) = await services.tasks.get_or_assign_player_tasks(USER_ID)
    assert (task.progress, task.is_completed) == (2, True)

    assert await services.tasks.update_task_progress(USER_ID, "WinBattle", 1) == 0
    assert await services.tasks.update_task_progress(USER_ID, "Work", 1) == 0


async def test_incomplete_task_cannot_be_claimed(services, win_task):
    with pytest.raises(NotFoundError) as exc_info:
        await services.tasks.claim_task_reward(USER_ID, win_task.player_task_id)

    assert exc_info.value.message == CLAIM_UNAVAILABLE_MESSAGE


async def test_task_reward_pays_out_once(services, win_task):
    await services.tasks.update_task_progress(USER_ID, "WinBattle", 2)

    reward = await services.tasks.claim_task_reward(USER_ID, win_task.player_task_id)
    assert reward == RewardBundle(coins=50, item=ItemId.GEM, item_quantity=1)

    with pytest.raises(NotFoundError):
        await services.tasks.claim_task_reward(USER_ID, win_task.player_task_id)

    assert await _balance(services) == 50
    assert await services.economy.get_item_quantity(USER_ID, ItemId.GEM) == 1
    assert await services.tasks.get_or_assign_player_tasks(USER_ID) == []


# ============================================================================
# QUESTS
# ============================================================================


@pytest_asyncio.fixture
async def quest_board(services):
    async with DatabaseService.get_transaction() as session:
        session.add_all(
            [
                Quest(
                    quest_id=1,
                    title="The Echo",
                    description="Answer the riddle.",
                    giver_name="Old Hermit",
                    quest_type=QuestType.RIDDLE,
                    objective_key="echo",
                ),
                Quest(
                    quest_id=2,
                    title="Bandit Trouble",
                    description="Clear the road.",
                    giver_name="Guard Captain",
                    quest_type=QuestType.BATTLE,
                    objective_key="3,3",
                ),
            ]
        )
        await session.flush()
        session.add(QuestReward(quest_id=1, reward_coins=75))
    board = await services.quests.get_or_refresh_quest_board(USER_ID)
    return {entry.quest_id: entry for entry in board}


async def test_quest_offered_accepted_completed(services, quest_board):
    riddle = quest_board[1]
    assert riddle.status == PlayerQuestStatus.OFFERED
    assert riddle.rewards == (RewardBundle(coins=75),)

    accepted = await services.quests.accept_quest(USER_ID, riddle.player_quest_id)
    assert accepted.quest_type == QuestType.RIDDLE
    assert accepted.enemy_unit_ids == []

    with pytest.raises(NotFoundError) as exc_info:
        await services.quests.accept_quest(USER_ID, riddle.player_quest_id)
    assert exc_info.value.message == ACCEPT_FAILED_MESSAGE

    rewards = await services.quests.complete_quest(USER_ID, riddle.player_quest_id)
    assert rewards == [RewardBundle(coins=75)]
    assert await _balance(services) == 75

    with pytest.raises(NotFoundError):
        await services.quests.complete_quest(USER_ID, riddle.player_quest_id)
    completed = await services.quests.get_player_quests(USER_ID, PlayerQuestStatus.COMPLETED)
    assert [q.quest_id for q in completed] == [1]


async def test_quest_accepted_then_failed(services, quest_board):
    battle = quest_board[2]

    accepted = await services.quests.accept_quest(USER_ID, battle.player_quest_id)
    assert accepted.enemy_unit_ids == [3, 3]

    await services.quests.fail_quest(USER_ID, battle.player_quest_id)

    failed = await services.quests.get_player_quests(USER_ID, PlayerQuestStatus.FAILED)
    assert [q.quest_id for q in failed] == [2]
    assert await services.quests.get_player_quests(USER_ID, PlayerQuestStatus.ACCEPTED) == []
    with pytest.raises(NotFoundError):
        await services.quests.complete_quest(USER_ID, battle.player_quest_id)


async def test_offered_quest_cannot_be_completed_or_failed(services, quest_board):
    riddle = quest_board[1]

    with pytest.raises(NotFoundError):
        await services.quests.complete_quest(USER_ID, riddle.player_quest_id)
    with pytest.raises(NotFoundError):
        await services.quests.fail_quest(USER_ID, riddle.player_quest_id)


# ============================================================================
# CRAFTING
# ============================================================================


@pytest_asyncio.fixture
async def gem_recipe(services):
    async with DatabaseService.get_transaction() as session:
        session.add(Recipe(recipe_id=1, name="Polished Gem", output_item_id=int(ItemId.GEM), output_quantity=1))
        await session.flush()
        session.add(RecipeIngredient(recipe_id=1, item_id=int(ItemId.ORE), quantity=3))
    return 1


async def test_craft_consumes_ingredients_and_grants_output(services, gem_recipe):
    await services.economy.add_to_inventory(USER_ID, ItemId.ORE, 4)

    result = await services.crafting.craft_item(USER_ID, gem_recipe)

    assert (result.item, result.quantity) == (ItemId.GEM, 1)
    assert await services.economy.get_item_quantity(USER_ID, ItemId.ORE) == 1
    assert await services.economy.get_item_quantity(USER_ID, ItemId.GEM) == 1

    with pytest.raises(InsufficientResourcesError) as exc_info:
        await services.crafting.craft_item(USER_ID, gem_recipe)
    assert exc_info.value.message == "You don't have enough Ore!"
    assert await services.economy.get_item_quantity(USER_ID, ItemId.ORE) == 1
    assert await services.economy.get_item_quantity(USER_ID, ItemId.GEM) == 1


async def test_craft_unknown_recipe(services, gem_recipe):
    with pytest.raises(NotFoundError):
        await services.crafting.craft_item(USER_ID, 999)


# ============================================================================
# ECONOMY
# ============================================================================


async def test_sell_part_then_all(services):
    await services.economy.add_to_inventory(USER_ID, ItemId.FISH, 7)

    sale = await services.economy.sell_item(USER_ID, ItemId.FISH, 5)
    assert (sale.quantity, sale.coins_earned, sale.new_balance) == (5, 50, 50)

    sale = await services.economy.sell_item(USER_ID, ItemId.FISH)
    assert (sale.quantity, sale.new_balance) == (2, 70)
    assert await services.economy.get_item_quantity(USER_ID, ItemId.FISH) == 0

    with pytest.raises(InsufficientResourcesError):
        await services.economy.sell_item(USER_ID, ItemId.FISH)


async def test_unsellable_items_are_rejected(services):
    await services.economy.add_to_inventory(USER_ID, ItemId.LARGE_GEODE, 1)

    with pytest.raises(ValidationError):
        await services.economy.sell_item(USER_ID, ItemId.LARGE_GEODE)
    assert await services.economy.get_item_quantity(USER_ID, ItemId.LARGE_GEODE) == 1


async def test_give_moves_items_between_players(services):
    await services.economy.add_to_inventory(USER_ID, ItemId.GEM, 3)

    await services.economy.give_item(USER_ID, FRIEND_ID, ItemId.GEM, 2)

    assert await services.economy.get_item_quantity(USER_ID, ItemId.GEM) == 1
    assert await services.economy.get_item_quantity(FRIEND_ID, ItemId.GEM) == 2

    with pytest.raises(InsufficientResourcesError):
        await services.economy.give_item(USER_ID, FRIEND_ID, ItemId.GEM, 2)
    assert await services.economy.get_item_quantity(USER_ID, ItemId.GEM) == 1


@pytest.mark.parametrize(
    "receiver,item,quantity",
    [(USER_ID, ItemId.GEM, 1), (FRIEND_ID, ItemId.GEM, 0), (FRIEND_ID, ItemId.SLIME_RESEARCH_DATA, 1)],
)
async def test_give_rejects_invalid_gifts(services, receiver, item, quantity):
    await services.economy.add_to_inventory(USER_ID, item, 1)

    with pytest.raises(ValidationError):
        await services.economy.give_item(USER_ID, receiver, item, quantity)
    assert await services.economy.get_item_quantity(USER_ID, item) == 1


async def test_work_pays_and_starts_a_cooldown(services):
    result = await services.economy.do_work(USER_ID, "Fishing")

    assert result.job == "fishing"
    assert result.streak == 1
    assert await _balance(services) == result.total_coins
    for item, quantity in result.items:
        assert await services.economy.get_item_quantity(USER_ID, item) >= quantity

    with pytest.raises(CooldownActiveError):
        await services.economy.do_work(USER_ID, "fishing")
    assert await _balance(services) == result.total_coins


async def test_unknown_job(services):
    with pytest.raises(ValidationError):
        await services.economy.do_work(USER_ID, "juggling")
