"""
Unit tests for SagaService argument checks that run before any database
work.
"""

import pytest

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.modules.saga.service import SagaService
from src.modules.shared.exceptions import ValidationError


pytestmark = pytest.mark.unit


@pytest.fixture
def saga(mock_config_manager, mock_event_bus):
    return SagaService(mock_config_manager, mock_event_bus, get_logger("tests.saga"))


@pytest.mark.unit
class TestSpendActionPoints:
    @pytest.mark.parametrize("amount", [0, -1, -50])
    async def test_non_positive_amount_rejected_before_any_write(self, saga, mocker, amount):
        transaction = mocker.patch.object(DatabaseService, "get_transaction")

        with pytest.raises(ValidationError) as exc_info:
            await saga.spend_action_points(1, amount)

        assert exc_info.value.field == "amount"
        transaction.assert_not_called()

    async def test_bool_amount_rejected(self, saga, mocker):
        transaction = mocker.patch.object(DatabaseService, "get_transaction")

        with pytest.raises(ValidationError):
            await saga.spend_action_points(1, True)

        transaction.assert_not_called()
