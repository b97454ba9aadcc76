"""
Integration tests for DatabaseService and the read-only leaderboards.
"""

import pytest
from sqlalchemy import text

from src.core.database.service import DatabaseService
from src.modules.shared.exceptions import ValidationError

pytestmark = [pytest.mark.integration, pytest.mark.database, pytest.mark.asyncio(loop_scope="session")]


async def test_health_check(database):
    assert DatabaseService.is_initialized()
    assert await DatabaseService.health_check() is True


async def test_session_executes_queries(database):
    async with DatabaseService.get_session() as session:
        assert (await session.execute(text("SELECT 1"))).scalar() == 1


async def test_transaction_rolls_back_on_error(services):
    with pytest.raises(RuntimeError):
        async with DatabaseService.get_transaction() as session:
            await session.execute(text("INSERT INTO profiles (user_id, balance) VALUES (77, 5)"))
            raise RuntimeError("boom")

    async with DatabaseService.get_session() as session:
        count = (await session.execute(text("SELECT count(*) FROM profiles WHERE user_id = 77"))).scalar()
    assert count == 0


async def test_user_lock_is_reentrant_within_a_transaction(services):
    async with DatabaseService.get_transaction() as session:
        await DatabaseService.acquire_user_lock(session, 1)
        await DatabaseService.acquire_user_lock(session, 1)


async def test_leaderboards_order_and_tie_break(services):
    await services.economy.add_balance(3, 500)
    await services.economy.add_balance(1, 500)
    await services.economy.add_balance(2, 900)
    await services.saga.update_and_get_saga_profile(1)
    await services.saga.advance_story_progress(1, 1)

    wealth = await services.leaderboard.get_wealth_leaderboard()
    assert [(e.rank, e.user_id, e.score) for e in wealth] == [(1, 2, 900), (2, 1, 500), (3, 3, 500)]

    gamemaster = await services.leaderboard.get_gamemaster_leaderboard(limit=2)
    assert [(e.user_id, e.score) for e in gamemaster] == [(1, 1050), (2, 90)]


async def test_leaderboard_rejects_non_positive_limit(services):
    with pytest.raises(ValidationError):
        await services.leaderboard.get_streak_leaderboard(limit=0)
