"""
Tests for key construction, key categories and default query options.
"""
import pytest

from config.settings import settings
from querysync.cache import (
    DataCategory,
    QueryOptions,
    cache_key,
    get_category_for_key,
    get_options_for_key,
)


class TestCacheKey:

    def test_no_params(self):
        assert cache_key("customer-wallet") == "customer-wallet"
        assert cache_key("customer-wallet", {}) == "customer-wallet"

    def test_params_sorted_and_none_dropped(self):
        key = cache_key("admin-customers", {"status": "active", "page": 2, "search": None})

        assert key == "admin-customers:page=2&status=active"

    def test_all_none_params(self):
        assert cache_key("admin-customers", {"search": None}) == "admin-customers"


class TestCategories:

    @pytest.mark.parametrize("key,category", [
        ("customer-profile", DataCategory.ACCOUNT),
        ("customer-api-keys", DataCategory.ACCOUNT),
        ("customer-wallet", DataCategory.BALANCE),
        ("customer-usage", DataCategory.USAGE),
        ("admin-dashboard-stats", DataCategory.DASHBOARD_STATS),
        ("admin-system-metrics", DataCategory.SYSTEM_METRICS),
        ("admin-customers:page=2", DataCategory.CUSTOMER_LIST),
        ("pricing", DataCategory.REFERENCE),
        ("something-else", DataCategory.DEFAULT),
    ])
    def test_category_for_key(self, key, category):
        assert get_category_for_key(key) == category


class TestOptions:

    def test_usage_polls_every_minute(self):
        opts = get_options_for_key("customer-usage")

        assert opts.cache_time == 300
        assert opts.refetch_interval == 60
        assert opts.polls

    def test_metrics_poll_every_30_seconds(self):
        opts = get_options_for_key("admin-system-metrics")

        assert opts.cache_time == 30
        assert opts.refetch_interval == 30

    def test_default_falls_back_to_settings(self):
        opts = get_options_for_key("something-else")

        assert opts.cache_time == settings.default_cache_time_seconds
        assert opts.gc_time == settings.default_gc_time_seconds
        assert opts.refetch_interval is None
        assert not opts.polls

    def test_overrides_win(self):
        opts = get_options_for_key("customer-usage", refetch_interval=None, enabled=False)

        assert opts.refetch_interval is None
        assert opts.enabled is False
        assert opts.cache_time == 300

    def test_disabled_query_does_not_poll(self):
        assert not QueryOptions(refetch_interval=10, enabled=False).polls
