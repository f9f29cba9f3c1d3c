"""
Tests for the pricing resolver and admin pricing updates.

The resolver tests drive a fake clock and a counting loader, so they
need no database.
"""

import logging
from decimal import Decimal

import pytest
from django.db import DatabaseError

from core.exceptions import ValidationError
from credits.exceptions import InvalidAmount, Unauthorized
from credits.models import PricingSetting
from credits.services.pricing import (
    PricingResolver,
    PricingService,
    load_pricing_from_store,
    pricing,
)
from credits.types import DEFAULT_PRICING, PricingConfig


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class CountingLoader:
    """Loader returning a config whose payg rate grows by one cent per load."""

    def __init__(self):
        self.calls = 0
        self.fail = False

    def __call__(self):
        if self.fail:
            raise DatabaseError("connection refused")
        self.calls += 1
        return PricingConfig(cost_per_minute_payg=Decimal("0.07") + Decimal("0.01") * (self.calls - 1))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def loader():
    return CountingLoader()


@pytest.fixture
def resolver(loader, clock):
    return PricingResolver(loader=loader, ttl_seconds=300, clock=clock)


class TestPricingResolver:
    """Tests for PricingResolver caching and fallback."""

    def test_serves_cached_config_within_ttl(self, resolver, loader, clock):
        first = resolver.get()
        clock.advance(299)
        second = resolver.get()

        assert loader.calls == 1
        assert first is second

    def test_reloads_after_ttl(self, resolver, loader, clock):
        resolver.get()
        clock.advance(300)

        config = resolver.get()

        assert loader.calls == 2
        assert config.cost_per_minute_payg == Decimal("0.08")

    def test_invalidate_forces_reload(self, resolver, loader):
        resolver.get()
        resolver.invalidate()
        resolver.get()

        assert loader.calls == 2

    def test_store_failure_serves_last_config(self, resolver, loader, clock, caplog):
        loaded = resolver.get()
        clock.advance(301)
        loader.fail = True

        with caplog.at_level(logging.WARNING, logger="credits.services.pricing"):
            config = resolver.get()

        assert config is loaded
        assert "Pricing store unavailable" in caplog.text

    def test_store_failure_without_cache_serves_defaults(self, resolver, loader):
        loader.fail = True

        assert resolver.get() == DEFAULT_PRICING

    def test_recovers_after_store_failure(self, resolver, loader, clock):
        loader.fail = True
        resolver.get()
        loader.fail = False

        config = resolver.get()

        assert loader.calls == 1
        assert config.cost_per_minute_payg == Decimal("0.07")

    def test_ttl_defaults_to_setting(self, settings):
        settings.CREDITS_PRICING_CACHE_TTL = 42

        assert PricingResolver().ttl_seconds == 42


class TestLoadPricingFromStore:
    """Tests for reading the PricingSetting table."""

    def test_seeded_rows_match_defaults(self, db):
        assert PricingSetting.objects.count() == 6
        assert load_pricing_from_store() == DEFAULT_PRICING

    def test_reads_edited_value(self, db):
        PricingSetting.objects.filter(key="cost_per_minute_payg").update(value=Decimal("0.09"))

        assert load_pricing_from_store().cost_per_minute_payg == Decimal("0.09")

    def test_missing_row_keeps_default(self, db):
        PricingSetting.objects.filter(key="assistant_base_cost").delete()

        assert load_pricing_from_store().assistant_base_cost == Decimal("20")

    def test_ignores_unrelated_rows(self, db):
        PricingSetting.objects.create(key="legacy_rate", value=Decimal("9"))

        assert load_pricing_from_store() == DEFAULT_PRICING


class TestPricingService:
    """Tests for admin reads and writes of pricing."""

    def test_get_settings_requires_view_permission(self, support_user):
        with pytest.raises(Unauthorized) as exc_info:
            PricingService.get_pricing_settings(support_user)

        assert exc_info.value.permission == "credits.view_pricing"

    def test_get_settings_lists_rows(self, credits_admin):
        rows = PricingService.get_pricing_settings(credits_admin)

        assert {row.key for row in rows} == set(PricingConfig.keys())

    def test_update_requires_manage_permission(self, support_user):
        with pytest.raises(Unauthorized):
            PricingService.update_pricing(support_user, {"cost_per_minute_payg": "0.10"})

        assert pricing.get().cost_per_minute_payg == Decimal("0.07")

    def test_update_applies_immediately(self, credits_admin):
        pricing.get()

        config = PricingService.update_pricing(
            credits_admin, {"cost_per_minute_payg": "0.10", "assistant_base_cost": 15}
        )

        row = PricingSetting.objects.get(key="cost_per_minute_payg")
        assert config.cost_per_minute_payg == Decimal("0.10")
        assert config.assistant_base_cost == Decimal("15")
        assert pricing.get().cost_per_minute_payg == Decimal("0.10")
        assert row.updated_by == credits_admin

    def test_update_allows_zero(self, credits_admin):
        config = PricingService.update_pricing(credits_admin, {"assistant_base_cost": "0"})

        assert config.assistant_base_cost == Decimal("0")

    def test_update_rejects_unknown_key(self, credits_admin):
        with pytest.raises(ValidationError) as exc_info:
            PricingService.update_pricing(credits_admin, {"free_minutes": "10"})

        assert exc_info.value.error_code == "UNKNOWN_PRICING_KEY"

    @pytest.mark.parametrize("value", ["-0.01", "cheap", "NaN", "1e9"])
    def test_update_rejects_bad_values(self, credits_admin, value):
        with pytest.raises(InvalidAmount):
            PricingService.update_pricing(credits_admin, {"cost_per_minute_payg": value})

        assert PricingSetting.objects.get(key="cost_per_minute_payg").value == Decimal("0.07")

    def test_superuser_can_update(self, super_admin):
        config = PricingService.update_pricing(super_admin, {"minimum_topup_amount": "10"})

        assert config.minimum_topup_amount == Decimal("10")
