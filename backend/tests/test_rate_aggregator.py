"""
Tests for RateAggregator: fan-out, partial-failure isolation, ordering and
metadata. Fake providers stand in for carriers except in the end-to-end
Dallas / New York scenario.
"""
import asyncio
import time

from app.config import ProviderSettings, ShippingConfig
from app.models.shipping_schema import RateQuote
from app.services.errors import ProviderError
from app.services.perf_monitor import tracker
from app.services.shipping.base import RateProvider
from app.services.shipping.rate_aggregator import RateAggregator, build_providers
from app.services.shipping.ups_provider import UPSProvider


class FakeProvider(RateProvider):

    def __init__(self, provider_id, amounts=(), priority=0, enabled=True, delay=0.0, error=None):
        super().__init__(ProviderSettings(priority=priority), enabled)
        self.provider_id = provider_id
        self.amounts = amounts
        self.delay = delay
        self.error = error
        self.calls = 0

    async def quote(self, package, destination):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [
            RateQuote(provider_id=self.provider_id, service_code=f"SVC_{i}",
                      service_name=f"Service {i}", amount=amount)
            for i, amount in enumerate(self.amounts)
        ]


def _aggregate(providers, package, destination, timeout=1.0, requested=None):
    aggregator = RateAggregator(ShippingConfig(provider_timeout_s=timeout), providers)
    return asyncio.run(aggregator.aggregate(package, destination, requested))


class TestPartialFailure:

    def test_one_provider_error_does_not_affect_others(self, package_5lb, dallas):
        good = FakeProvider("good", amounts=(10.0,))
        bad = FakeProvider("bad", error=ProviderError("bad", "carrier API down"))
        result = _aggregate([good, bad], package_5lb, dallas)
        assert [q.provider_id for q in result.quotes] == ["good"]
        assert result.metadata.errors == {"bad": "carrier API down"}

    def test_unexpected_exception_recorded(self, package_5lb, dallas):
        boom = FakeProvider("boom", error=RuntimeError("boom"))
        result = _aggregate([boom, FakeProvider("ok", amounts=(7.0,))], package_5lb, dallas)
        assert result.metadata.errors["boom"] == "RuntimeError: boom"
        assert result.cheapest.amount == 7.0

    def test_timeout_recorded(self, package_5lb, dallas):
        slow = FakeProvider("slow", amounts=(1.0,), delay=2.0)
        fast = FakeProvider("fast", amounts=(9.0,))
        result = _aggregate([slow, fast], package_5lb, dallas, timeout=0.05)
        assert "timed out" in result.metadata.errors["slow"]
        assert [q.provider_id for q in result.quotes] == ["fast"]

    def test_all_fail_returns_empty_result(self, package_5lb, dallas):
        providers = [
            FakeProvider("a", error=ProviderError("a", "down")),
            FakeProvider("b", error=ProviderError("b", "down")),
        ]
        result = _aggregate(providers, package_5lb, dallas)
        assert result.quotes == []
        assert result.cheapest is None
        assert not result.has_options
        assert set(result.metadata.errors) == {"a", "b"}

    def test_failures_counted_in_tracker(self, package_5lb, dallas):
        _aggregate([FakeProvider("bad", error=ProviderError("bad", "down"))], package_5lb, dallas)
        metrics = tracker.get_metrics()
        assert metrics["error_count_by_provider"] == {"bad": 1}
        assert metrics["rate_requests"] == 1


class TestSelectionAndOrdering:

    def test_grouped_by_priority_sorted_within_provider(self, package_5lb, dallas):
        second = FakeProvider("second", amounts=(5.0,), priority=2)
        first = FakeProvider("first", amounts=(20.0, 10.0), priority=1)
        result = _aggregate([second, first], package_5lb, dallas)
        assert [(q.provider_id, q.amount) for q in result.quotes] == [
            ("first", 10.0), ("first", 20.0), ("second", 5.0),
        ]
        assert result.cheapest.provider_id == "second"
        assert result.metadata.modules_used == ["first", "second"]

    def test_disabled_provider_not_queried(self, package_5lb, dallas):
        off = FakeProvider("off", amounts=(1.0,), enabled=False)
        on = FakeProvider("on", amounts=(2.0,))
        result = _aggregate([off, on], package_5lb, dallas)
        assert off.calls == 0
        assert result.metadata.module_status["off"].enabled is False
        assert result.metadata.modules_used == ["on"]

    def test_requested_subset(self, package_5lb, dallas):
        a, b = FakeProvider("a", amounts=(1.0,)), FakeProvider("b", amounts=(2.0,))
        result = _aggregate([a, b], package_5lb, dallas, requested=["b"])
        assert b.calls == 1 and a.calls == 0
        assert [q.provider_id for q in result.quotes] == ["b"]

    def test_metadata_weight(self, package_5lb, dallas):
        result = _aggregate([FakeProvider("a", amounts=(1.0,))], package_5lb, dallas)
        assert result.metadata.total_weight == 5.0

    def test_providers_run_concurrently(self, package_5lb, dallas):
        """Two 0.3 s providers finish together, not back to back."""
        providers = [FakeProvider("a", amounts=(1.0,), delay=0.3), FakeProvider("b", amounts=(2.0,), delay=0.3)]
        start = time.perf_counter()
        result = _aggregate(providers, package_5lb, dallas)
        assert time.perf_counter() - start < 0.55
        assert len(result.quotes) == 2


class TestCarrierScenario:

    def test_dallas_gets_both_carriers(self, package_5lb, dallas):
        aggregator = RateAggregator(ShippingConfig())
        result = asyncio.run(aggregator.aggregate(package_5lb, dallas))
        providers = {q.provider_id for q in result.quotes}
        assert providers == {"fedex", "southwest_cargo"}
        southwest = [q for q in result.quotes if q.provider_id == "southwest_cargo"]
        assert {q.service_name for q in southwest} == {"Southwest Cargo Pickup", "Southwest Cargo Dash"}
        assert result.metadata.errors == {}

    def test_new_york_only_fedex(self, package_5lb, new_york):
        aggregator = RateAggregator(ShippingConfig())
        result = asyncio.run(aggregator.aggregate(package_5lb, new_york))
        assert {q.provider_id for q in result.quotes} == {"fedex"}
        assert result.metadata.errors == {}
        assert set(result.metadata.module_status) == {"fedex", "southwest_cargo", "ups"}
        assert result.metadata.module_status["ups"].enabled is False

    def test_build_providers_respects_enabled_list(self):
        providers = build_providers(ShippingConfig(enabled_provider_ids=("southwest_cargo",)))
        enabled = {p.provider_id: p.enabled for p in providers}
        assert enabled == {"fedex": False, "southwest_cargo": True, "ups": False}

    def test_ups_joins_when_enabled(self, package_5lb, new_york):
        """
        UPS stubs at 5 lb: Ground 11.00 + 0.80 x 5 = 15.00, 2nd Day Air
        28.00 + 1.60 x 5 = 36.00, Next Day Air 52.00 + 2.25 x 5 = 63.25.
        Ground undercuts FedEx Ground, so it becomes the cheapest option.
        """
        config = ShippingConfig(enabled_provider_ids=("fedex", "southwest_cargo", "ups"))
        result = asyncio.run(RateAggregator(config).aggregate(package_5lb, new_york))
        ups = [(q.service_code, q.amount) for q in result.quotes if q.provider_id == "ups"]
        assert ups == [("03", 15.0), ("02", 36.0), ("01", 63.25)]
        assert result.metadata.modules_used == ["fedex", "southwest_cargo", "ups"]
        assert result.cheapest.provider_id == "ups"
        assert result.cheapest.service_name == "UPS Ground"
        assert result.metadata.errors == {}

    def test_ups_markup_from_config(self, package_5lb, dallas):
        config = ShippingConfig(
            enabled_provider_ids=("ups",),
            providers={"ups": ProviderSettings(priority=3, test_mode=True, markup_percentage=10.0)},
        )
        providers = build_providers(config)
        ups = next(p for p in providers if p.provider_id == "ups")
        assert isinstance(ups, UPSProvider)
        result = asyncio.run(RateAggregator(config, providers).aggregate(package_5lb, dallas))
        assert [q.amount for q in result.quotes][:2] == [16.5, 39.6]
