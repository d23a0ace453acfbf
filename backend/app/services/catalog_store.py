"""
CatalogStore - read-only, in-memory catalog of print options.

Loaded once from a JSON document (PRINTQUOTE_CATALOG_PATH, or the bundled
app/data/default_catalog.json) and validated up front: schema, duplicate ids,
dangling references, every add-on pricing definition, and quantity groups
whose hidden calculation values would price a larger order below a smaller
one. A bad catalog fails at load time with ConfigurationError, never at
pricing time.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from pydantic import ValidationError

from app.config import PricingConfig
from app.models.pricing_schema import (
    AddonDefinition,
    CatalogDocument,
    CoatingOption,
    PaperStock,
    ProductConfiguration,
    ProductDefinition,
    QuantityGroup,
    SelectedAddon,
    SidesOption,
    SizeOption,
    TurnaroundTier,
)
from app.services.addon_pricing_engine import validate_definition
from app.services.errors import ConfigurationError
from app.services.pricing_engine import pricing_points

logger = logging.getLogger("printquote-api.catalog")

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "default_catalog.json"

T = TypeVar("T")


def _index(items: Iterable[T], kind: str) -> Dict[str, T]:
    indexed: Dict[str, T] = {}
    for item in items:
        if item.id in indexed:
            raise ConfigurationError(f"Duplicate {kind} id '{item.id}'", field=f"catalog.{kind}")
        indexed[item.id] = item
    return indexed


def _get(table: Mapping[str, T], key: str, kind: str, field_name: str) -> T:
    try:
        return table[key]
    except KeyError:
        raise ConfigurationError(f"Unknown {kind} '{key}'", field=field_name)


class CatalogStore:
    def __init__(self, document: CatalogDocument, pricing_config: Optional[PricingConfig] = None):
        self.papers: Dict[str, PaperStock] = _index(document.papers, "papers")
        self.sizes: Dict[str, SizeOption] = _index(document.sizes, "sizes")
        self.coatings: Dict[str, CoatingOption] = _index(document.coatings, "coatings")
        self.sides: Dict[str, SidesOption] = _index(document.sides, "sides")
        self.quantity_groups: Dict[str, QuantityGroup] = _index(document.quantity_groups, "quantity_groups")
        self.turnarounds: Dict[str, TurnaroundTier] = _index(document.turnarounds, "turnarounds")
        self.addons: Dict[str, AddonDefinition] = _index(document.addons, "addons")
        self.products: Dict[str, ProductDefinition] = _index(document.products, "products")

        for addon in self.addons.values():
            validate_definition(addon)
            for other in addon.conflicts_with:
                _get(self.addons, other, "add-on", f"addons.{addon.id}.conflicts_with")
        threshold = (pricing_config or PricingConfig()).custom_quantity_threshold
        for group in self.quantity_groups.values():
            pricing_points(group, threshold)
        for product in self.products.values():
            self._check_references(product)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any], pricing_config: Optional[PricingConfig] = None) -> "CatalogStore":
        try:
            document = CatalogDocument.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(
                f"Invalid catalog: {first['msg']} at {location}", field=f"catalog.{location}"
            )
        return cls(document, pricing_config)

    @classmethod
    def load(cls, path: Optional[str] = None, pricing_config: Optional[PricingConfig] = None) -> "CatalogStore":
        source = Path(path) if path else DEFAULT_CATALOG_PATH
        try:
            data = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read catalog {source}: {e}", field="catalog")
        store = cls.from_dict(data, pricing_config)
        logger.info(
            "catalog loaded",
            extra={"path": str(source), "products": len(store.products), "addons": len(store.addons)},
        )
        return store

    def _check_references(self, product: ProductDefinition) -> None:
        prefix = f"products.{product.id}"
        _get(self.sizes, product.size_id, "size", f"{prefix}.size_id")
        _get(self.papers, product.paper_id, "paper", f"{prefix}.paper_id")
        _get(self.coatings, product.coating_id, "coating", f"{prefix}.coating_id")
        _get(self.sides, product.sides_id, "sides option", f"{prefix}.sides_id")
        if product.quantity_group_id is not None:
            _get(self.quantity_groups, product.quantity_group_id, "quantity group",
                 f"{prefix}.quantity_group_id")
        for tier_id in product.turnaround_ids:
            _get(self.turnarounds, tier_id, "turnaround tier", f"{prefix}.turnaround_ids")
        for addon_id in product.addon_ids:
            _get(self.addons, addon_id, "add-on", f"{prefix}.addon_ids")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def product(self, product_id: str) -> ProductDefinition:
        return _get(self.products, product_id, "product configuration", "configuration_id")

    def product_ids(self) -> List[str]:
        return sorted(self.products)

    def configuration(
        self,
        product_id: str,
        turnaround_id: Optional[str] = None,
        addon_selections: Optional[Sequence[Mapping[str, Any]]] = None,
        custom_size: Optional[SizeOption] = None,
    ) -> ProductConfiguration:
        """
        Assemble a ProductConfiguration for one priced line.

        Args:
            product_id: catalog product id.
            turnaround_id: explicit tier; the product's default tier when None.
            addon_selections: ordered ``{"addon_id": ..., "values": {...}}``
                mappings; each add-on must be offered by the product.
            custom_size: replaces the product's preset size.
        """
        product = self.product(product_id)
        selected: List[SelectedAddon] = []
        for selection in addon_selections or []:
            addon_id = selection.get("addon_id", "")
            if addon_id not in product.addon_ids:
                raise ConfigurationError(
                    f"Add-on '{addon_id}' is not offered for '{product.id}'", field=f"addons.{addon_id}"
                )
            selected.append(SelectedAddon(addon=self.addons[addon_id], values=dict(selection.get("values") or {})))

        return ProductConfiguration(
            id=product.id,
            name=product.name,
            size=custom_size or self.sizes[product.size_id],
            paper=self.papers[product.paper_id],
            coating=self.coatings[product.coating_id],
            sides=self.sides[product.sides_id],
            quantity_group=(
                self.quantity_groups[product.quantity_group_id] if product.quantity_group_id else None
            ),
            turnaround_tiers=[self.turnarounds[t] for t in product.turnaround_ids],
            turnaround_id=turnaround_id,
            addons=selected,
        )
