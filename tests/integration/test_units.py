"""
Integration tests for owned units: party rules, army cap, taming,
training completion and battle XP, all against the real row locks.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.database.models import PlayerUnit, SagaProfile, Unit
from src.domain.models.items import ItemId
from src.modules.shared import constants
from src.modules.shared.exceptions import InsufficientResourcesError, ValidationError

pytestmark = [pytest.mark.integration, pytest.mark.database, pytest.mark.asyncio(loop_scope="session")]

USER_ID = 717171


async def _owned_by_master(services, unit_id):
    return [u for u in await services.units.get_player_units(USER_ID) if u.unit_id == unit_id]


async def _hire(services, *unit_ids):
    await services.economy.get_or_create_profile(USER_ID)
    for unit_id in unit_ids:
        await services.units.hire_unit(USER_ID, unit_id, 0)


async def _give(services, item, quantity):
    await services.economy.add_to_inventory(USER_ID, item, quantity)


# ============================================================================
# PARTY
# ============================================================================


async def test_sub_legendary_pets_cannot_join_the_party(services, world):
    await _hire(services, world.slime_id)
    (slime,) = await _owned_by_master(services, world.slime_id)

    assert await services.units.set_unit_party_status(USER_ID, slime.player_unit_id, True) is False
    (slime,) = await _owned_by_master(services, world.slime_id)
    assert slime.is_in_party is False


async def test_legendary_pets_can_join_the_party(services, world):
    await _hire(services, world.alpha_wolf_id)
    (alpha,) = await _owned_by_master(services, world.alpha_wolf_id)

    assert await services.units.set_unit_party_status(USER_ID, alpha.player_unit_id, True) is True
    assert [u.unit_id for u in await services.units.get_user_party(USER_ID)] == [world.alpha_wolf_id]


async def test_party_holds_at_most_five(services, world):
    await _hire(services, *([world.squire_id] * (constants.MAX_PARTY_SIZE + 1)))

    party = await services.units.get_user_party(USER_ID)
    assert len(party) == constants.MAX_PARTY_SIZE
    (bench,) = [u for u in await services.units.get_player_units(USER_ID) if not u.is_in_party]

    assert await services.units.set_unit_party_status(USER_ID, bench.player_unit_id, True) is False

    assert await services.units.set_unit_party_status(USER_ID, party[0].player_unit_id, False) is True
    assert await services.units.set_unit_party_status(USER_ID, bench.player_unit_id, True) is True
    assert len(await services.units.get_user_party(USER_ID)) == constants.MAX_PARTY_SIZE


async def test_equipped_unit_cannot_rejoin_the_party(services, world):
    await _hire(services, world.alpha_wolf_id, world.alpha_wolf_id)
    host, equipped = await _owned_by_master(services, world.alpha_wolf_id)
    assert await services.units.set_unit_party_status(USER_ID, equipped.player_unit_id, True) is True

    await services.bonds.bond_units(USER_ID, host.player_unit_id, equipped.player_unit_id)

    assert await services.units.set_unit_party_status(USER_ID, equipped.player_unit_id, True) is False
    party_ids = [u.player_unit_id for u in await services.units.get_user_party(USER_ID)]
    assert equipped.player_unit_id not in party_ids

    assert await services.bonds.unequip_equippable(USER_ID, host.player_unit_id) is True
    assert await services.units.set_unit_party_status(USER_ID, equipped.player_unit_id, True) is True


# ============================================================================
# ARMY CAP
# ============================================================================


async def test_hire_stops_at_the_army_cap(services, world):
    await _hire(services, *([world.squire_id] * constants.MAX_ARMY_SIZE))

    with pytest.raises(ValidationError) as exc_info:
        await services.units.hire_unit(USER_ID, world.squire_id, 0)

    assert exc_info.value.message == f"Your army is full ({constants.MAX_ARMY_SIZE}/{constants.MAX_ARMY_SIZE})"
    assert len(await services.units.get_player_units(USER_ID)) == constants.MAX_ARMY_SIZE


async def test_contract_accept_stops_at_the_army_cap(services, world):
    bandit = await services.units.get_unit(world.bandit_id)
    await _hire(services, *([world.squire_id] * constants.MAX_ARMY_SIZE))
    for _ in range(services.contracts.defeats_required_for(bandit.rarity)):
        await services.contracts.record_human_defeat(USER_ID, bandit)
    await services.contracts.draft_contract(USER_ID, world.bandit_id)

    with pytest.raises(ValidationError):
        await services.contracts.accept_drafted_contract(USER_ID, world.bandit_id)

    assert await _owned_by_master(services, world.bandit_id) == []
    drafted = await services.contracts.list_drafted_contracts(USER_ID)
    assert [d.unit_id for d in drafted] == [world.bandit_id]


# ============================================================================
# TAMING
# ============================================================================


async def test_taming_a_common_pet_adds_research(services, world):
    await _give(services, ItemId.TAMING_LURE, 2)
    await _give(services, ItemId.SLIME_RESEARCH_DATA, 25)

    outcome = await services.units.attempt_recruit_unit(USER_ID, world.slime_id)

    assert outcome.added_to_army is False
    assert outcome.research_count == 1
    assert await services.research.get_research_progress(USER_ID, world.slime_id) == 1
    assert await services.economy.get_item_quantity(USER_ID, ItemId.TAMING_LURE) == 1
    assert await services.economy.get_item_quantity(USER_ID, ItemId.SLIME_RESEARCH_DATA) == 15
    assert await services.units.get_player_units(USER_ID) == []


async def test_taming_without_materials_changes_nothing(services, world):
    await _give(services, ItemId.TAMING_LURE, 1)
    await _give(services, ItemId.SLIME_RESEARCH_DATA, 9)

    with pytest.raises(InsufficientResourcesError):
        await services.units.attempt_recruit_unit(USER_ID, world.slime_id)

    assert await services.economy.get_item_quantity(USER_ID, ItemId.TAMING_LURE) == 1
    assert await services.economy.get_item_quantity(USER_ID, ItemId.SLIME_RESEARCH_DATA) == 9
    assert await services.research.get_research_progress(USER_ID, world.slime_id) == 0


async def test_taming_a_legendary_pet_respects_the_army_cap(services, world):
    async with DatabaseService.get_transaction() as session:
        await session.execute(
            update(Unit).where(Unit.unit_id == world.alpha_wolf_id).values(is_recruitable=True)
        )
    await _give(services, ItemId.TAMING_LURE, 2)
    await _give(services, ItemId.WOLF_RESEARCH_DATA, 20)

    outcome = await services.units.attempt_recruit_unit(USER_ID, world.alpha_wolf_id)
    assert outcome.added_to_army is True
    (alpha,) = await _owned_by_master(services, world.alpha_wolf_id)
    assert alpha.is_in_party is True

    await _hire(services, *([world.squire_id] * (constants.MAX_ARMY_SIZE - 1)))
    with pytest.raises(ValidationError):
        await services.units.attempt_recruit_unit(USER_ID, world.alpha_wolf_id)
    assert await services.economy.get_item_quantity(USER_ID, ItemId.TAMING_LURE) == 1
    assert await services.economy.get_item_quantity(USER_ID, ItemId.WOLF_RESEARCH_DATA) == 10


async def test_humans_cannot_be_tamed(services, world):
    with pytest.raises(ValidationError):
        await services.units.attempt_recruit_unit(USER_ID, world.squire_id)


# ============================================================================
# STARTER
# ============================================================================


async def test_starter_unit_joins_the_party(services, world):
    assert await services.units.grant_starter_unit(USER_ID) == "Squire"

    assert [u.unit_id for u in await services.units.get_user_party(USER_ID)] == [world.squire_id]
    with pytest.raises(ValidationError):
        await services.units.grant_starter_unit(USER_ID)


async def test_sub_legendary_pet_starter_stays_out_of_the_party(services, world, mocker):
    mocker.patch.object(ConfigManager, "get_config_int", mocker.AsyncMock(return_value=world.slime_id))

    assert await services.units.grant_starter_unit(USER_ID) == "Slime"

    (slime,) = await _owned_by_master(services, world.slime_id)
    assert slime.is_in_party is False


# ============================================================================
# TRAINING AND RECHARGE
# ============================================================================


async def test_finished_training_is_applied_on_profile_read(services, world):
    await _hire(services, world.squire_id)
    (squire,) = await _owned_by_master(services, world.squire_id)
    profile = await services.saga.update_and_get_saga_profile(USER_ID)

    assert await services.units.start_training(USER_ID, squire.player_unit_id, "attack", 1, 2) is True
    assert await services.units.start_training(USER_ID, squire.player_unit_id, "defense", 1, 2) is False
    (training,) = await _owned_by_master(services, world.squire_id)
    assert training.is_training is True

    async with DatabaseService.get_transaction() as session:
        await session.execute(
            update(PlayerUnit)
            .where(PlayerUnit.player_unit_id == squire.player_unit_id)
            .values(training_ends_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        )

    after = await services.saga.update_and_get_saga_profile(USER_ID)

    (trained,) = await _owned_by_master(services, world.squire_id)
    assert trained.current_attack == squire.current_attack + 1
    assert trained.current_defense == squire.current_defense
    assert trained.is_training is False
    assert trained.training_stat is None
    assert after.current_tp == profile.current_tp - 2


async def test_training_without_tp_spends_nothing(services, world):
    await _hire(services, world.squire_id)
    (squire,) = await _owned_by_master(services, world.squire_id)
    profile = await services.saga.update_and_get_saga_profile(USER_ID)

    assert await services.units.start_training(
        USER_ID, squire.player_unit_id, "attack", 1, profile.current_tp + 1
    ) is False

    (idle,) = await _owned_by_master(services, world.squire_id)
    assert idle.is_training is False
    assert (await services.saga.update_and_get_saga_profile(USER_ID)).current_tp == profile.current_tp


async def test_tp_recharges_one_point_per_elapsed_hour(services, world):
    profile = await services.saga.update_and_get_saga_profile(USER_ID)
    hours = 3 * services.saga.replenish_hours

    async with DatabaseService.get_transaction() as session:
        await session.execute(
            update(SagaProfile)
            .where(SagaProfile.user_id == USER_ID)
            .values(
                current_tp=0,
                last_tp_update=datetime.now(timezone.utc) - timedelta(hours=hours, minutes=5),
            )
        )

    recharged = await services.saga.update_and_get_saga_profile(USER_ID)

    assert recharged.current_tp == min(3, profile.max_tp)
    assert datetime.now(timezone.utc) - recharged.last_tp_update < timedelta(minutes=1)


# ============================================================================
# BATTLE XP
# ============================================================================


async def test_battle_xp_lands_on_current_unit_state(services, world):
    await _hire(services, world.squire_id)
    stale_party = await services.units.get_user_party(USER_ID)

    await services.units.apply_battle_rewards(USER_ID, 0, [], stale_party, 60)
    (result,) = await services.units.apply_battle_rewards(USER_ID, 0, [], stale_party, 60)

    assert (result.new_level, result.new_xp) == (1, 120)
    (squire,) = await _owned_by_master(services, world.squire_id)
    assert (squire.current_level, squire.current_xp) == (1, 120)

    (result,) = await services.units.apply_battle_rewards(USER_ID, 0, [], stale_party, 10)
    assert (result.new_level, result.new_xp) == (2, 5)
    (squire,) = await _owned_by_master(services, world.squire_id)
    assert squire.current_attack == stale_party[0].current_attack + 2


async def test_concurrent_unequips_release_the_bond_once(services, world):
    await _hire(services, world.alpha_wolf_id, world.alpha_wolf_id)
    host, equipped = await _owned_by_master(services, world.alpha_wolf_id)
    await services.bonds.bond_units(USER_ID, host.player_unit_id, equipped.player_unit_id)

    results = await asyncio.gather(
        *(services.bonds.unequip_equippable(USER_ID, host.player_unit_id) for _ in range(4))
    )

    assert sorted(results) == [False, False, False, True]
    assert await services.bonds.get_bond_map(USER_ID) == {}
