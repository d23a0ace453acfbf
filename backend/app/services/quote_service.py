"""
QuoteService - the surface the storefront calls.

  compute_price(configuration_id, quantity, ...)       -> PriceBreakdown
  compute_shipping_weight(line_items)                   -> ShippingPackage
  get_shipping_rates(package, destination, providers)   -> RateAggregationResult

The catalog and pricing config are fixed for the life of the service.
Shipping settings come from ``shipping_settings`` and are read exactly once
per rate request, so a settings change never applies to half a request. A
caller that builds the package first passes the same snapshot to both calls.
"""
import logging
import uuid
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from app.config import PricingConfig, ShippingConfig, load_shipping_config
from app.models.pricing_schema import PriceBreakdown
from app.models.shipping_schema import (
    Destination,
    LineItem,
    RateAggregationResult,
    ShippingPackage,
)
from app.services.catalog_store import CatalogStore
from app.services.errors import ConfigurationError
from app.services.perf_monitor import timed, timed_async, tracker
from app.services.pricing_engine import PriceCalculator
from app.services.shipping.base import RateProvider
from app.services.shipping.rate_aggregator import RateAggregator
from app.services.weight_engine import (
    DEFAULT_PACKAGING_OVERHEAD_LBS,
    ShippingWeightEstimator,
    WeightLine,
)

logger = logging.getLogger("printquote-api")


class QuoteService:
    def __init__(
        self,
        catalog: CatalogStore,
        pricing_config: Optional[PricingConfig] = None,
        shipping_settings: Callable[[], ShippingConfig] = load_shipping_config,
        provider_factory: Optional[Callable[[ShippingConfig], Sequence[RateProvider]]] = None,
    ):
        self.catalog = catalog
        self.pricing_config = pricing_config or PricingConfig()
        self.calculator = PriceCalculator(self.pricing_config)
        self.weight_estimator = ShippingWeightEstimator()
        self.shipping_settings = shipping_settings
        self.provider_factory = provider_factory

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    @timed
    def compute_price(
        self,
        configuration_id: str,
        quantity: int,
        turnaround_id: Optional[str] = None,
        addons: Optional[Sequence[Mapping[str, Any]]] = None,
        custom_width: Optional[float] = None,
        custom_height: Optional[float] = None,
    ) -> PriceBreakdown:
        quote_id = uuid.uuid4().hex[:12]
        custom_size = None
        if custom_width is not None or custom_height is not None:
            if custom_width is None or custom_height is None:
                raise ConfigurationError("Custom sizes need both width and height", field="size")
            custom_size = self.calculator.custom_size(custom_width, custom_height)

        configuration = self.catalog.configuration(
            configuration_id,
            turnaround_id=turnaround_id,
            addon_selections=addons,
            custom_size=custom_size,
        )
        breakdown = self.calculator.calculate(configuration, quantity)
        tracker.record_price_computed()
        logger.info(
            "price computed",
            extra={
                "quote_id": quote_id,
                "configuration_id": configuration_id,
                "quantity": quantity,
                "final_price": breakdown.final_price,
            },
        )
        return breakdown

    # ------------------------------------------------------------------
    # Shipping
    # ------------------------------------------------------------------

    def _weight_line(self, item: LineItem) -> WeightLine:
        if item.configuration_id is not None:
            product = self.catalog.product(item.configuration_id)
            paper = self.catalog.papers[product.paper_id]
            size = self.catalog.sizes[product.size_id]
            return WeightLine(
                paper_weight_per_sq_in=(
                    item.paper_weight_per_sq_in
                    if item.paper_weight_per_sq_in is not None
                    else paper.weight_per_sq_in
                ),
                width=item.width or size.width,
                height=item.height or size.height,
                quantity=item.quantity,
            )
        if item.width is None or item.height is None:
            raise ConfigurationError(
                "Line items without a configuration need width and height", field="line_items"
            )
        return WeightLine(item.paper_weight_per_sq_in, item.width, item.height, item.quantity)

    def compute_shipping_weight(
        self,
        line_items: Iterable[LineItem],
        packaging_overhead_lbs: float = DEFAULT_PACKAGING_OVERHEAD_LBS,
        config: Optional[ShippingConfig] = None,
    ) -> ShippingPackage:
        config = config or self.shipping_settings()
        lines: List[WeightLine] = [self._weight_line(item) for item in line_items]
        return self.weight_estimator.build_package(
            lines,
            origin_state=config.origin_state,
            origin_postal_code=config.origin_postal_code,
            intelligent_packing=config.intelligent_packing_enabled,
            packaging_overhead_lbs=packaging_overhead_lbs,
        )

    @timed_async
    async def get_shipping_rates(
        self,
        package: ShippingPackage,
        destination: Destination,
        requested_provider_ids: Optional[Iterable[str]] = None,
        config: Optional[ShippingConfig] = None,
    ) -> RateAggregationResult:
        config = config or self.shipping_settings()
        providers = self.provider_factory(config) if self.provider_factory is not None else None
        aggregator = RateAggregator(config, providers)
        return await aggregator.aggregate(package, destination, requested_provider_ids)
