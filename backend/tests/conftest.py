"""
conftest.py - Shared pytest fixtures for the PrintQuote backend test suite.

No network or external service fixtures are defined here. Carrier HTTP calls
are faked per test with ``httpx.MockTransport``.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Pricing fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def calculator():
    """PriceCalculator with default config: 5000-piece custom increments, 0.25" sizes."""
    from app.services.pricing_engine import PriceCalculator
    return PriceCalculator()


@pytest.fixture(scope="session")
def resolver():
    from app.services.addon_pricing_engine import AddonPricingResolver
    return AddonPricingResolver()


@pytest.fixture(scope="session")
def turnaround_tiers():
    """
    Economy x1.0 (default, 5-7 days), Fast x1.25 (2-3 days), Rush x1.5 (1 day),
    Flat +$20 (3-4 days).
    """
    from app.models.pricing_schema import TurnaroundTier
    return [
        TurnaroundTier(id="economy", name="Economy", days_min=5, days_max=7, is_default=True,
                       pricing={"type": "PERCENTAGE", "multiplier": 1.0}),
        TurnaroundTier(id="fast", name="Fast", days_min=2, days_max=3,
                       pricing={"type": "PERCENTAGE", "multiplier": 1.25}),
        TurnaroundTier(id="rush", name="Rush", days_min=1, days_max=1,
                       pricing={"type": "PERCENTAGE", "multiplier": 1.5}),
        TurnaroundTier(id="flat20", name="Standard", days_min=3, days_max=4,
                       pricing={"type": "FLAT", "amount": 20.0}),
    ]


@pytest.fixture(scope="session")
def make_configuration(turnaround_tiers):
    """
    Factory for a simple configuration: $0.001/sq in paper, 4x6 (24 sq in),
    no coating or sides surcharge, so 1000 pieces cost exactly $24.00 before
    add-ons.
    """
    from app.models.pricing_schema import (
        PaperStock, ProductConfiguration, SelectedAddon, SizeOption,
    )

    paper = PaperStock(id="test-paper", price_per_sq_in=0.001, weight_per_sq_in=0.0004)
    size = SizeOption(id="4x6", width=4.0, height=6.0, pre_calculated_value=24.0)

    def _make(addons=(), turnaround_id=None, **overrides):
        fields = dict(
            id="test-config",
            size=size,
            paper=paper,
            turnaround_tiers=turnaround_tiers,
            turnaround_id=turnaround_id,
            addons=[SelectedAddon(addon=a, values=v) for a, v in addons],
        )
        fields.update(overrides)
        return ProductConfiguration(**fields)

    return _make


@pytest.fixture(scope="session")
def catalog():
    """The bundled default catalog."""
    from app.services.catalog_store import CatalogStore
    return CatalogStore.load()


@pytest.fixture(scope="session")
def addon(catalog):
    """Look up an add-on definition from the default catalog by id."""
    return lambda addon_id: catalog.addons[addon_id]


# ---------------------------------------------------------------------------
# Shipping fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def dallas():
    from app.models.shipping_schema import Destination
    return Destination(state="TX", city="Dallas", postal_code="75201")


@pytest.fixture
def new_york():
    from app.models.shipping_schema import Destination
    return Destination(state="NY", city="New York", postal_code="10001")


@pytest.fixture
def package_5lb():
    from app.models.shipping_schema import ShippingPackage
    return ShippingPackage(total_weight=5.0, origin_state="TX", origin_postal_code="77092")


@pytest.fixture(autouse=True)
def _reset_perf_tracker():
    from app.services.perf_monitor import tracker
    tracker.reset()
    yield
