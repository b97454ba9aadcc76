"""
Integration tests for the acquisition pipelines: hiring, human contracts
and pet bonds, each against the real row locks and constraints.
"""

import pytest

from src.domain.models.items import ItemId
from src.modules.shared.exceptions import (
    ConflictError,
    InsufficientResourcesError,
    NotFoundError,
    ValidationError,
)

pytestmark = [pytest.mark.integration, pytest.mark.database, pytest.mark.asyncio(loop_scope="session")]

USER_ID = 515151


async def _owned_by_master(services, unit_id):
    return [u for u in await services.units.get_player_units(USER_ID) if u.unit_id == unit_id]


# ============================================================================
# HIRING
# ============================================================================


async def test_hire_charges_and_seats_humans(services, world):
    await services.economy.add_balance(USER_ID, 300)

    name = await services.units.hire_unit(USER_ID, world.squire_id, 250)

    assert name == "Squire"
    assert (await services.economy.get_or_create_profile(USER_ID)).balance == 50
    party = await services.units.get_user_party(USER_ID)
    assert [u.unit_id for u in party] == [world.squire_id]


async def test_hired_pets_skip_the_party(services, world):
    await services.economy.add_balance(USER_ID, 300)

    await services.units.hire_unit(USER_ID, world.slime_id, 250)

    (slime,) = await _owned_by_master(services, world.slime_id)
    assert slime.is_in_party is False


async def test_hire_without_coins_changes_nothing(services, world):
    await services.economy.add_balance(USER_ID, 100)

    with pytest.raises(InsufficientResourcesError):
        await services.units.hire_unit(USER_ID, world.squire_id, 250)

    assert (await services.economy.get_or_create_profile(USER_ID)).balance == 100
    assert await services.units.get_player_units(USER_ID) == []


async def test_hire_without_profile_is_not_found(services, world):
    with pytest.raises(NotFoundError):
        await services.units.hire_unit(USER_ID, world.squire_id, 0)


async def test_tavern_hire_grants_fame(services, world):
    await services.economy.add_balance(USER_ID, 1000)

    line = await services.tavern.hire_from_tavern(USER_ID, world.squire_id)

    assert line.startswith("Hired Squire!")
    state = await services.tavern.build_tavern_state_cached(USER_ID)
    assert state.meta.fame == services.tavern.fame_per_hire
    assert state.meta.balance == 1000 - 250


# ============================================================================
# CONTRACTS
# ============================================================================


async def test_draft_and_accept_epic_contract(services, world):
    scout = await services.units.get_unit(world.scout_id)
    await services.economy.get_or_create_profile(USER_ID)
    for _ in range(4):
        await services.contracts.record_human_defeat(USER_ID, scout)

    with pytest.raises(ValidationError) as exc_info:
        await services.contracts.draft_contract(USER_ID, world.scout_id)
    assert exc_info.value.message == "Need 5 defeats, you have 4."

    assert await services.contracts.record_human_defeat(USER_ID, scout) == 5
    with pytest.raises(InsufficientResourcesError) as exc_info:
        await services.contracts.draft_contract(USER_ID, world.scout_id)
    assert "to draft this contract" in exc_info.value.message

    await services.economy.add_to_inventory(USER_ID, ItemId.FRONTIER_CONTRACT_PARCHMENT, 1)
    assert await services.contracts.draft_contract(USER_ID, world.scout_id) == "Scout"
    assert await services.economy.get_item_quantity(USER_ID, ItemId.FRONTIER_CONTRACT_PARCHMENT) == 0

    with pytest.raises(ConflictError):
        await services.contracts.draft_contract(USER_ID, world.scout_id)

    drafted = await services.contracts.list_drafted_contracts(USER_ID)
    assert [d.unit_id for d in drafted] == [world.scout_id]

    assert await services.contracts.accept_drafted_contract(USER_ID, world.scout_id) == "Scout"
    assert len(await _owned_by_master(services, world.scout_id)) == 1
    assert await services.contracts.list_drafted_contracts(USER_ID) == []


async def test_accept_without_draft(services, world):
    with pytest.raises(NotFoundError):
        await services.contracts.accept_drafted_contract(USER_ID, world.scout_id)


async def test_pets_cannot_be_contracted(services, world):
    with pytest.raises(ValidationError):
        await services.contracts.draft_contract(USER_ID, world.slime_id)


# ============================================================================
# BONDS
# ============================================================================


async def test_bond_rules(services, world):
    await services.economy.get_or_create_profile(USER_ID)
    for unit_id in (world.squire_id, world.slime_id, world.slime_id, world.alpha_wolf_id):
        await services.units.hire_unit(USER_ID, unit_id, 0)

    (squire,) = await _owned_by_master(services, world.squire_id)
    slime_a, slime_b = await _owned_by_master(services, world.slime_id)
    (alpha,) = await _owned_by_master(services, world.alpha_wolf_id)

    with pytest.raises(ValidationError) as exc_info:
        await services.bonds.bond_units(USER_ID, squire.player_unit_id, squire.player_unit_id)
    assert exc_info.value.message == "Cannot bond a unit to itself."

    with pytest.raises(ValidationError) as exc_info:
        await services.bonds.bond_units(USER_ID, squire.player_unit_id, alpha.player_unit_id)
    assert exc_info.value.message == "Equipped unit's rarity exceeds host unit's rarity."

    with pytest.raises(ValidationError) as exc_info:
        await services.bonds.bond_units(USER_ID, alpha.player_unit_id, squire.player_unit_id)
    assert exc_info.value.message == "Only pets can be equipped."

    await services.bonds.bond_units(USER_ID, squire.player_unit_id, slime_a.player_unit_id)
    bonuses = await services.bonds.get_equipment_bonuses(USER_ID)
    assert squire.player_unit_id in bonuses

    with pytest.raises(ConflictError) as exc_info:
        await services.bonds.bond_units(USER_ID, squire.player_unit_id, slime_b.player_unit_id)
    assert exc_info.value.message == "Host already has an equipped unit."

    assert await services.bonds.unequip_equippable(USER_ID, squire.player_unit_id) is True
    assert await services.bonds.unequip_equippable(USER_ID, squire.player_unit_id) is False
    await services.bonds.bond_units(USER_ID, squire.player_unit_id, slime_a.player_unit_id)
    assert await services.bonds.get_bond_map(USER_ID) == {squire.player_unit_id: slime_a.player_unit_id}
