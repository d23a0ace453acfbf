"""Tests for CatalogStore loading, validation and configuration assembly."""
import copy
import json

import pytest

from app.config import PricingConfig
from app.services.catalog_store import DEFAULT_CATALOG_PATH, CatalogStore
from app.services.errors import ConfigurationError


@pytest.fixture(scope="module")
def raw_catalog():
    return json.loads(DEFAULT_CATALOG_PATH.read_text(encoding="utf-8"))


def _mutated(raw_catalog, mutate):
    data = copy.deepcopy(raw_catalog)
    mutate(data)
    return data


class TestDefaultCatalog:

    def test_loads(self, catalog):
        assert "postcard-4x6-14pt" in catalog.product_ids()
        assert catalog.papers["14pt-cardstock-gloss"].weight_per_sq_in == 0.0004

    def test_every_product_prices(self, catalog, calculator):
        for product_id in catalog.product_ids():
            result = calculator.calculate(catalog.configuration(product_id), 1000)
            assert result.final_price > 0

    def test_load_from_path(self, tmp_path, raw_catalog):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(raw_catalog), encoding="utf-8")
        assert CatalogStore.load(str(path)).product_ids() == CatalogStore.from_dict(raw_catalog).product_ids()


class TestCatalogValidation:

    def test_unknown_pricing_type(self, raw_catalog):
        data = _mutated(raw_catalog, lambda d: d["addons"][0].update(pricing={"type": "BARTER", "amount": 1}))
        with pytest.raises(ConfigurationError) as exc:
            CatalogStore.from_dict(data)
        assert exc.value.field.startswith("catalog.addons")

    def test_unknown_formula(self, raw_catalog):
        def mutate(d):
            d["addons"].append({"id": "astro", "name": "Astro", "pricing": {"type": "CUSTOM", "formula": "astrology"}})
        with pytest.raises(ConfigurationError):
            CatalogStore.from_dict(_mutated(raw_catalog, mutate))

    def test_duplicate_ids(self, raw_catalog):
        data = _mutated(raw_catalog, lambda d: d["papers"].append(dict(d["papers"][0])))
        with pytest.raises(ConfigurationError) as exc:
            CatalogStore.from_dict(data)
        assert "Duplicate" in exc.value.message

    def test_dangling_reference(self, raw_catalog):
        data = _mutated(raw_catalog, lambda d: d["products"][0].update(paper_id="vellum"))
        with pytest.raises(ConfigurationError) as exc:
            CatalogStore.from_dict(data)
        assert exc.value.field == "products.postcard-4x6-14pt.paper_id"

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            CatalogStore.load(str(path))

    def test_hidden_quantity_must_not_undercut_next_entry(self, raw_catalog):
        """100 priced as 300 would cost more than 250 priced as 250."""
        data = _mutated(raw_catalog, lambda d: d["quantity_groups"][0]["standard"][0].update(calculation_value=300))
        with pytest.raises(ConfigurationError) as exc:
            CatalogStore.from_dict(data)
        assert exc.value.field == "quantity_groups.standard.standard"

    def test_hidden_quantity_ignored_above_threshold(self, raw_catalog):
        data = _mutated(raw_catalog, lambda d: d["quantity_groups"][0]["standard"][0].update(calculation_value=300))
        store = CatalogStore.from_dict(data, PricingConfig(custom_quantity_threshold=100))
        assert "postcard-4x6-14pt" in store.product_ids()


class TestConfiguration:

    def test_addon_selection_order_kept(self, catalog):
        config = catalog.configuration(
            "postcard-4x6-14pt",
            addon_selections=[{"addon_id": "exact_size"}, {"addon_id": "digital_proof"}],
        )
        assert [s.addon.id for s in config.addons] == ["exact_size", "digital_proof"]

    def test_addon_not_offered(self, catalog):
        with pytest.raises(ConfigurationError) as exc:
            catalog.configuration("business-card-16pt", addon_selections=[{"addon_id": "hole_drilling"}])
        assert exc.value.field == "addons.hole_drilling"

    def test_unknown_product(self, catalog):
        with pytest.raises(ConfigurationError) as exc:
            catalog.configuration("billboard")
        assert exc.value.field == "configuration_id"
