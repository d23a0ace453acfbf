"""
Tests for SouthwestCargoProvider.

Rate tables (before the 5% markup):
  Pickup: <=50 lb $29 + $10 handling; <=100 lb $29 + $0.45/lb over 50 + $10;
          >100 lb $0.65/lb on the FULL weight + $10
  Dash:   <=50 lb $89 + $12; <=100 lb $89 + $1.00/lb over 50 + $12;
          >100 lb $139 + $1.25/lb on weight ABOVE 100 + $12
"""
import asyncio

import pytest

from app.config import ProviderSettings
from app.models.shipping_schema import Destination, ShippingPackage
from app.services.errors import ConfigurationError
from app.services.shipping.southwest_cargo_provider import (
    SERVICES,
    CargoService,
    SouthwestCargoProvider,
    WeightTier,
)

PICKUP = SERVICES["SOUTHWEST_CARGO_PICKUP"]
DASH = SERVICES["SOUTHWEST_CARGO_DASH"]


@pytest.fixture
def provider():
    return SouthwestCargoProvider()


def _quotes(provider, weight, state="TX"):
    package = ShippingPackage(total_weight=weight)
    return asyncio.run(provider.quote(package, Destination(state=state)))


class TestTierTables:

    def test_weight_at_max_uses_that_tier(self):
        assert PICKUP.rate(50.0) == 39.0
        assert DASH.rate(50.0) == 101.0

    def test_weight_just_over_max_uses_next_tier(self):
        """50.1 lb: Pickup $29 + 0.1 x $0.45 + $10 = $39.045."""
        assert abs(PICKUP.rate(50.1) - 39.045) < 1e-9
        assert abs(DASH.rate(50.1) - 101.1) < 1e-9

    def test_pickup_last_tier_bills_full_weight(self):
        """120 lb Pickup: $0.65 x 120 + $10 = $88.00."""
        assert abs(PICKUP.rate(120.0) - 88.0) < 1e-9

    def test_dash_last_tier_bills_overage_only(self):
        """120 lb Dash: $139 + $1.25 x 20 + $12 = $176.00."""
        assert abs(DASH.rate(120.0) - 176.0) < 1e-9

    def test_last_tier_must_be_open_ended(self):
        with pytest.raises(ConfigurationError):
            CargoService(
                code="BROKEN", name="Broken",
                tiers=(WeightTier(max_weight=50.0, base_rate=10.0),),
                last_tier_bills_overage_only=False,
                transit_description="", estimated_days=1,
            )


class TestQuote:

    def test_dallas_five_pounds(self, provider):
        """(29 + 10) x 1.05 = $40.95 Pickup; (89 + 12) x 1.05 = $106.05 Dash."""
        quotes = _quotes(provider, 5.0)
        assert [(q.service_code, q.amount) for q in quotes] == [
            ("SOUTHWEST_CARGO_PICKUP", 40.95),
            ("SOUTHWEST_CARGO_DASH", 106.05),
        ]
        assert quotes[1].guaranteed is True
        assert all(q.provider_id == "southwest_cargo" for q in quotes)

    def test_outside_service_area_is_no_offer(self, provider):
        assert _quotes(provider, 5.0, state="NY") == []

    def test_markup_is_configurable(self):
        provider = SouthwestCargoProvider(settings=ProviderSettings(markup_percentage=0.0))
        assert _quotes(provider, 5.0)[0].amount == 39.0

    def test_lowercase_state_normalized(self, provider):
        assert len(_quotes(provider, 5.0, state="tx")) == 2
