"""Tests for cache, timestamp and logging helpers."""

from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest

from streamhedge.core.cache import CacheManager
from streamhedge.core.logging import LoggerMixin, get_logger
from streamhedge.core.timeutil import format_local, from_epoch_ns


class TestCacheManager:
    """Tests for CacheManager."""

    def test_hit_and_miss_counted(self):
        cache = CacheManager(ttl=30)
        cache.set("pool:THOR.RUJI", {"assetPriceUSD": "0.5"})

        assert cache.get("pool:THOR.RUJI") == {"assetPriceUSD": "0.5"}
        assert cache.get("pool:BTC.BTC") is None
        assert cache.stats["hits"] == 1
        assert cache.stats["misses"] == 1
        assert cache.stats["hit_rate"] == 0.5

    def test_falsy_values_are_hits(self):
        cache = CacheManager(ttl=30)
        cache.set("count", 0)
        assert cache.get("count") == 0
        assert cache.stats["hits"] == 1

    def test_get_or_load_keeps_result(self):
        cache = CacheManager(ttl=30)
        loader = Mock(return_value="status")

        assert cache.get_or_load("tx", loader) == "status"
        assert cache.get_or_load("tx", loader) == "status"
        loader.assert_called_once()

    def test_get_or_load_retries_none(self):
        """A failed lookup is tried again on the next call."""
        cache = CacheManager(ttl=30)
        loader = Mock(return_value=None)

        cache.get_or_load("tx", loader)
        cache.get_or_load("tx", loader)

        assert loader.call_count == 2

    def test_namespaces_do_not_collide(self):
        midgard = CacheManager(ttl=30, namespace="midgard")
        thornode = CacheManager(ttl=30, namespace="thornode")
        midgard.set("k", 1)

        assert thornode.get("k") is None
        midgard.delete("k")
        assert midgard.get("k") is None


class TestTimeutil:
    """Tests for timestamp helpers."""

    def test_epoch_nanos_keep_microseconds(self):
        dt = from_epoch_ns("1700000000123456789")
        assert dt == datetime(2023, 11, 14, 22, 13, 20, 123456, tzinfo=timezone.utc)

    def test_epoch_rejects_non_integer(self):
        with pytest.raises(ValueError):
            from_epoch_ns("17e9")

    @patch("streamhedge.core.timeutil.get_settings")
    def test_format_local_converts_zone(self, mock_settings):
        mock_settings.return_value.timezone = "Asia/Tokyo"
        dt = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
        assert format_local(dt) == "09:00:00"

    @patch("streamhedge.core.timeutil.get_settings")
    def test_format_local_treats_naive_as_utc(self, mock_settings):
        mock_settings.return_value.timezone = "UTC"
        assert format_local(datetime(2024, 1, 1, 12, 30), "%H:%M") == "12:30"


class TestLogging:
    """Tests for logger naming."""

    def test_prefix_added_once(self):
        assert get_logger("poller").name == "streamhedge.poller"
        assert get_logger("streamhedge.poller").name == "streamhedge.poller"

    def test_mixin_uses_class_name(self):
        class Planner(LoggerMixin):
            pass

        assert Planner().logger.name == "streamhedge.Planner"
