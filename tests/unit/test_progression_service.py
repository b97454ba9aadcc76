"""
Unit tests for the task.progress listener and leaderboard argument checks.
"""

import pytest

from src.core.logging.logger import get_logger
from src.modules.leaderboard import LeaderboardService
from src.modules.progression.listeners import register_progression_listeners
from src.modules.progression.task_service import TaskService
from src.modules.shared.exceptions import ValidationError


pytestmark = pytest.mark.unit


@pytest.fixture
def task_service(mock_config_manager, mock_event_bus):
    return TaskService(mock_config_manager, mock_event_bus, get_logger("tests.tasks"))


@pytest.mark.unit
class TestTaskProgressListener:
    async def test_forwards_payload(self, task_service, mocker):
        update = mocker.patch.object(task_service, "update_task_progress", mocker.AsyncMock(return_value=1))

        await task_service.on_task_progress({"user_id": "7", "objective_key": "Work", "increment": 2})

        update.assert_awaited_once_with(7, "Work", 2)

    async def test_increment_defaults_to_one(self, task_service, mocker):
        update = mocker.patch.object(task_service, "update_task_progress", mocker.AsyncMock(return_value=0))

        await task_service.on_task_progress({"user_id": 7, "objective_key": "Battle"})

        update.assert_awaited_once_with(7, "Battle", 1)

    @pytest.mark.parametrize("payload", [{}, {"user_id": 7}, {"objective_key": "Work"}, {"user_id": 7, "objective_key": ""}])
    async def test_malformed_payload_is_ignored(self, task_service, mocker, payload):
        update = mocker.patch.object(task_service, "update_task_progress", mocker.AsyncMock())

        await task_service.on_task_progress(payload)

        update.assert_not_awaited()

    async def test_zero_increment_rejected(self, task_service):
        with pytest.raises(ValidationError):
            await task_service.update_task_progress(7, "Work", 0)

    def test_listener_registration(self, task_service, mock_event_bus):
        listener_id = register_progression_listeners(mock_event_bus, task_service)

        assert listener_id == "listener-id"
        args, kwargs = mock_event_bus.subscribe.call_args
        assert args == ("task.progress", task_service.on_task_progress)
        assert kwargs["identifier"] == "progression.task_progress"


@pytest.mark.unit
class TestLeaderboardArguments:
    async def test_limit_must_be_positive(self, mock_config_manager, mock_event_bus):
        service = LeaderboardService(mock_config_manager, mock_event_bus, get_logger("tests.leaderboard"))

        with pytest.raises(ValidationError):
            await service.get_wealth_leaderboard(limit=0)
