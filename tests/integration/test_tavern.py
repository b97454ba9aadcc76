"""
Integration tests for the tavern: per-user rotation, deterministic
ordering, and all-or-nothing rerolls.
"""

import pytest

from src.modules.shared.exceptions import InsufficientResourcesError, NotFoundError
from src.modules.tavern.service import REROLL_FAILED_MESSAGE

pytestmark = [pytest.mark.integration, pytest.mark.database, pytest.mark.asyncio(loop_scope="session")]

USER_ID = 616161


def _ids(state):
    return [r.unit_id for r in state.recruits]


async def _rotation(services):
    pool = [r.unit_id for r in await services.tavern.get_daily_recruits()]
    return await services.tavern.get_or_generate_rotation(USER_ID, pool)


async def test_state_is_deterministic_and_hides_pets(services, world):
    first = await services.tavern.build_tavern_state_cached(USER_ID)
    second = await services.tavern.build_tavern_state_cached(USER_ID)

    assert _ids(first) == _ids(second)
    assert len(first.recruits) == 5
    assert world.slime_id not in _ids(first)
    assert first.meta.reroll_cost == 150
    assert first.meta.rerolls_left == 3
    assert first.meta.can_reroll is True


async def test_reroll_replaces_visible_recruits(services, world):
    await services.economy.add_balance(USER_ID, 300)
    before = await services.tavern.build_tavern_state_cached(USER_ID)

    result = await services.tavern.reroll_tavern(USER_ID)

    assert result.cost == 150
    assert result.state.meta.balance == 150
    assert result.state.meta.rerolls_left == 2
    assert set(_ids(result.state)).isdisjoint(_ids(before))
    assert len(result.added) == len(result.state.recruits)

    again = await services.tavern.build_tavern_state_cached(USER_ID)
    assert _ids(again) == _ids(result.state)


async def test_failed_reroll_changes_nothing(services, world):
    await services.economy.add_balance(USER_ID, 100)
    before = await services.tavern.build_tavern_state_cached(USER_ID)
    rotation = await _rotation(services)

    with pytest.raises(InsufficientResourcesError) as exc_info:
        await services.tavern.transactional_reroll(USER_ID, list(reversed(rotation)), 150)
    assert exc_info.value.message == REROLL_FAILED_MESSAGE

    after = await services.tavern.build_tavern_state_cached(USER_ID)
    assert after.meta.balance == 100
    assert after.meta.daily_rerolls_used == 0
    assert await _rotation(services) == rotation
    assert _ids(after) == _ids(before)


async def test_transactional_reroll_overwrites_rotation(services, world):
    await services.economy.add_balance(USER_ID, 300)
    rotation = await _rotation(services)
    new_rotation = list(reversed(rotation))

    balance = await services.tavern.transactional_reroll(USER_ID, new_rotation, 150)

    assert balance == 150
    assert await _rotation(services) == new_rotation
    state = await services.tavern.build_tavern_state_cached(USER_ID)
    assert state.meta.daily_rerolls_used == 1


async def test_daily_reroll_limit(services, world):
    await services.economy.add_balance(USER_ID, 10_000)
    for _ in range(3):
        await services.tavern.reroll_tavern(USER_ID)

    assert await services.tavern.can_reroll(USER_ID) is False
    with pytest.raises(NotFoundError):
        await services.tavern.reroll_tavern(USER_ID)
    state = await services.tavern.build_tavern_state_cached(USER_ID)
    assert state.meta.balance == 10_000 - 3 * 150
