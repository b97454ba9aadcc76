"""
Unit tests for the in-process caches, the event bus, configuration
loading and the domain exception hierarchy.
"""

import pytest

from src.core.cache.metrics import CacheMetrics
from src.core.cache.ttl_cache import (
    DailyPoolCache,
    TtlCache,
    bond_map_cache,
    cache_stats,
    focus_buff_cache,
    invalidate_user_caches,
    saga_profile_cache,
)
from src.core.config.manager import ConfigManager
from src.core.event.bus import EventBus
from src.core.event.types import ListenerPriority
from src.modules.shared.exceptions import (
    CooldownActiveError,
    ErrorSeverity,
    InsufficientResourcesError,
    NotFoundError,
    PersistenceError,
    SagaDomainException,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)


pytestmark = pytest.mark.unit


# ============================================================================
# CACHES
# ============================================================================


@pytest.mark.unit
class TestTtlCache:
    def test_insert_and_get(self):
        cache = TtlCache("unit_test", 60)
        cache.insert(1, {"ap": 3})

        assert cache.get(1) == {"ap": 3}
        assert len(cache) == 1

    def test_expired_entries_are_dropped(self):
        cache = TtlCache("unit_test", 60)
        cache.insert(1, "value")

        assert cache.get_with_ttl(1, 0.0) is None
        assert len(cache) == 0

    def test_reads_are_copies(self):
        cache = TtlCache("unit_test", 60)
        original = {"party": [1, 2]}
        cache.insert(1, original)

        original["party"].append(3)
        read = cache.get(1)
        read["party"].append(4)

        assert cache.get(1) == {"party": [1, 2]}

    def test_invalidate(self):
        cache = TtlCache("unit_test", 60)
        cache.insert("k", 1)

        assert cache.invalidate("k") is True
        assert cache.invalidate("k") is False
        assert cache.get("k") is None

    def test_ttl_comes_from_config(self):
        assert saga_profile_cache.ttl_seconds == 3.0
        assert TtlCache("not_configured", 42).ttl_seconds == 42.0

    def test_invalidate_user_caches_leaves_focus_buffs(self):
        saga_profile_cache.insert(5, "profile")
        bond_map_cache.insert(5, "bonds")
        focus_buff_cache.insert(5, 123.0)

        invalidate_user_caches(5)

        assert saga_profile_cache.get(5) is None
        assert bond_map_cache.get(5) is None
        assert focus_buff_cache.get(5) == 123.0

    def test_stats_count_hits_and_misses(self):
        CacheMetrics.reset()
        cache = TtlCache("unit_test", 60)
        cache.insert(1, 1)
        cache.get(1)
        cache.get(2)

        assert cache_stats() == (1, 1)


@pytest.mark.unit
class TestDailyPoolCache:
    def test_keyed_by_day(self):
        from datetime import date

        cache = DailyPoolCache()
        cache.set(date(2025, 1, 1), [3, 1, 2])

        assert cache.get(date(2025, 1, 1)) == [3, 1, 2]
        assert cache.get(date(2025, 1, 2)) is None


# ============================================================================
# EVENT BUS
# ============================================================================


@pytest.mark.unit
class TestEventBus:
    async def test_publish_runs_listeners_in_priority_order(self):
        bus = EventBus(critical_timeout_seconds=1, high_timeout_seconds=1)
        calls = []

        async def normal(payload):
            calls.append("normal")
            return "n"

        async def critical(payload):
            calls.append("critical")
            return "c"

        bus.subscribe("task.progress", normal)
        bus.subscribe("task.progress", critical, priority=ListenerPriority.CRITICAL)

        results = await bus.publish("task.progress", {"user_id": 1})

        assert calls == ["critical", "normal"]
        assert results == ["c", "n"]

    async def test_listener_errors_are_isolated(self):
        bus = EventBus()

        async def broken(payload):
            raise RuntimeError("boom")

        async def healthy(payload):
            return payload["value"]

        bus.subscribe("evt", broken, identifier="broken")
        bus.subscribe("evt", healthy, identifier="healthy")

        results = await bus.publish("evt", {"value": 7})

        assert sorted(results, key=str) == [7, None]
        assert bus.get_metrics_summary()["listener_errors"] == 1

    async def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        listener_id = bus.subscribe("evt", lambda payload: seen.append(payload))

        assert bus.unsubscribe("evt", listener_id) is True
        await bus.publish("evt", {"x": 1})

        assert seen == []

    async def test_once_listener_fires_once(self):
        bus = EventBus()
        seen = []
        bus.subscribe("evt", lambda payload: seen.append(payload), once=True)

        await bus.publish("evt", {"n": 1})
        await bus.publish("evt", {"n": 2})

        assert seen == [{"n": 1}]

    async def test_low_priority_runs_in_background(self):
        bus = EventBus()
        seen = []

        async def audit(payload):
            seen.append(payload)

        bus.subscribe("evt", audit, priority=ListenerPriority.LOW)
        results = await bus.publish("evt", {"n": 1})
        await bus.drain()

        assert results == []
        assert seen == [{"n": 1}]

    def test_rejects_callbacks_with_wrong_arity(self):
        bus = EventBus()

        with pytest.raises(ValueError):
            bus.subscribe("evt", lambda a, b: None)

    def test_timeouts_read_from_config_manager(self, mock_config_manager):
        mock_config_manager.get.side_effect = lambda key, default=None: 2.5

        bus = EventBus(config_manager=mock_config_manager)

        assert bus._critical_timeout == 2.5
        assert bus._high_timeout == 2.5


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.mark.unit
class TestConfigManager:
    @pytest.fixture(autouse=True)
    def _reset_config(self):
        ConfigManager.reset()
        yield
        ConfigManager.reset()

    def test_yaml_files_are_deep_merged(self, tmp_path):
        (tmp_path / "a.yaml").write_text("tavern:\n  reroll_cost: 150\n  fame_per_hire: 5\n")
        (tmp_path / "b.yaml").write_text("tavern:\n  reroll_cost: 99\n")

        ConfigManager._load_yaml_configs(tmp_path)

        assert ConfigManager.get_int("tavern.reroll_cost") == 99
        assert ConfigManager.get_int("tavern.fame_per_hire") == 5

    def test_missing_keys_use_default(self, tmp_path):
        ConfigManager._load_yaml_configs(tmp_path)

        assert ConfigManager.get("nope.missing", "fallback") == "fallback"
        assert ConfigManager.get_float("nope.missing", 1.5) == 1.5

    def test_bad_numbers_fall_back(self, tmp_path):
        (tmp_path / "a.yaml").write_text("saga:\n  battle_ap_cost: lots\n  enabled: 'yes'\n")
        ConfigManager._load_yaml_configs(tmp_path)

        assert ConfigManager.get_int("saga.battle_ap_cost", 1) == 1
        assert ConfigManager.get_bool("saga.enabled") is True

    def test_defaults_load_lazily_from_config_dir(self):
        assert ConfigManager.get_int("progression.quest_board_size") == 3


# ============================================================================
# EXCEPTIONS
# ============================================================================


@pytest.mark.unit
class TestExceptions:
    def test_user_message_is_the_message(self):
        exc = ValidationError("Host already has an equipped unit.", field="host")

        assert exc.user_message == "Host already has an equipped unit."
        assert exc.severity == ErrorSeverity.INFO
        assert not should_alert(exc)

    def test_insufficient_resources_is_a_validation_error(self):
        assert issubclass(InsufficientResourcesError, ValidationError)

    def test_not_found_code(self):
        exc = NotFoundError("That recipe does not exist.", resource_type="Recipe", identifier=3)

        assert exc.error_code == "RECIPE_NOT_FOUND"

    def test_persistence_error_hides_details(self):
        exc = PersistenceError("hire_from_tavern", RuntimeError("connection reset"))

        assert exc.user_message == PersistenceError.USER_MESSAGE
        assert exc.details["error_type"] == "RuntimeError"
        assert is_transient_error(exc)
        assert should_alert(exc)

    def test_cooldown_message(self):
        exc = CooldownActiveError("work:fishing", 125)

        assert exc.user_message == "You are tired. Try again in 2m 5s."
        assert exc.severity == ErrorSeverity.DEBUG

    def test_plain_exceptions_default_to_error(self):
        assert get_error_severity(RuntimeError()) == ErrorSeverity.ERROR
        assert not is_transient_error(RuntimeError())

    def test_to_dict(self):
        exc = SagaDomainException("Broken.", {"k": 1})

        assert exc.to_dict()["details"] == {"k": 1}
        assert str(exc) == "[SagaDomainException] Broken. | Details: {'k': 1}"
