"""
Southwest Cargo airport-to-airport rates.

Two services, each priced from an ascending weight-tier table:
  Pickup  standard air cargo, collected at the destination airport
  Dash    next-flight-out, guaranteed

A weight equal to a tier's max_weight is billed in that tier. Closed tiers
bill per pound only above their included weight. The open-ended last tier
differs by service: Dash bills per pound on the weight above the previous
tier's max, Pickup bills per pound on the full weight. Both reproduce the
carrier's published billing.

Only destinations in the service-area state list get quotes.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from app.config import SOUTHWEST_CARGO_PROVIDER_ID, ProviderSettings
from app.models.shipping_schema import Destination, RateQuote, ShippingPackage
from app.services.errors import ConfigurationError, ProviderError
from app.services.shipping.base import RateProvider, logger


@dataclass(frozen=True)
class WeightTier:
    max_weight: Optional[float]           # None = open-ended last tier
    base_rate: float
    additional_per_pound: float = 0.0
    handling_fee: float = 0.0
    included_weight: float = 0.0


@dataclass(frozen=True)
class CargoService:
    code: str
    name: str
    tiers: Tuple[WeightTier, ...]
    last_tier_bills_overage_only: bool
    transit_description: str
    estimated_days: int
    guaranteed: bool = False

    def __post_init__(self):
        if not self.tiers or self.tiers[-1].max_weight is not None:
            raise ConfigurationError(
                f"{self.code}: the last weight tier must be open-ended", field="southwest_cargo.tiers"
            )
        closed = [t.max_weight for t in self.tiers[:-1]]
        if any(m is None for m in closed) or closed != sorted(closed):
            raise ConfigurationError(
                f"{self.code}: weight tiers must be in ascending order", field="southwest_cargo.tiers"
            )

    def rate(self, weight: float) -> float:
        """Raw carrier rate before markup."""
        previous_max = 0.0
        for tier in self.tiers:
            if tier.max_weight is None:
                billable = weight - previous_max if self.last_tier_bills_overage_only else weight
                return tier.base_rate + tier.additional_per_pound * billable + tier.handling_fee
            if weight <= tier.max_weight:
                overage = max(0.0, weight - tier.included_weight)
                return tier.base_rate + tier.additional_per_pound * overage + tier.handling_fee
            previous_max = tier.max_weight
        raise ConfigurationError(f"{self.code}: no tier for {weight} lb", field="southwest_cargo.tiers")


# ---------------------------------------------------------------------------
# Rate tables (USD, pounds)
# ---------------------------------------------------------------------------
PICKUP_TIERS: Tuple[WeightTier, ...] = (
    WeightTier(max_weight=50.0, base_rate=29.00, handling_fee=10.00),
    WeightTier(max_weight=100.0, base_rate=29.00, additional_per_pound=0.45,
               handling_fee=10.00, included_weight=50.0),
    WeightTier(max_weight=None, base_rate=0.00, additional_per_pound=0.65, handling_fee=10.00),
)

DASH_TIERS: Tuple[WeightTier, ...] = (
    WeightTier(max_weight=50.0, base_rate=89.00, handling_fee=12.00),
    WeightTier(max_weight=100.0, base_rate=89.00, additional_per_pound=1.00,
               handling_fee=12.00, included_weight=50.0),
    WeightTier(max_weight=None, base_rate=139.00, additional_per_pound=1.25, handling_fee=12.00),
)

SERVICES: Dict[str, CargoService] = {
    "SOUTHWEST_CARGO_PICKUP": CargoService(
        code="SOUTHWEST_CARGO_PICKUP",
        name="Southwest Cargo Pickup",
        tiers=PICKUP_TIERS,
        last_tier_bills_overage_only=False,
        transit_description="1-2 business days, airport pickup",
        estimated_days=2,
    ),
    "SOUTHWEST_CARGO_DASH": CargoService(
        code="SOUTHWEST_CARGO_DASH",
        name="Southwest Cargo Dash",
        tiers=DASH_TIERS,
        last_tier_bills_overage_only=True,
        transit_description="Next flight out, airport pickup",
        estimated_days=1,
        guaranteed=True,
    ),
}

SERVICE_AREA_STATES: FrozenSet[str] = frozenset({
    "AL", "AR", "AZ", "CA", "CO", "FL", "GA", "IL", "IN", "KS",
    "KY", "LA", "MO", "NE", "NM", "NV", "OK", "TN", "TX", "UT",
})

DEFAULT_MARKUP_PERCENTAGE: float = 5.0


class SouthwestCargoProvider(RateProvider):
    provider_id = SOUTHWEST_CARGO_PROVIDER_ID

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        enabled: bool = True,
        services: Optional[Dict[str, CargoService]] = None,
        service_area: Optional[FrozenSet[str]] = None,
    ):
        super().__init__(settings or ProviderSettings(markup_percentage=DEFAULT_MARKUP_PERCENTAGE), enabled)
        self.services = services if services is not None else SERVICES
        self.service_area = service_area if service_area is not None else SERVICE_AREA_STATES

    def serves(self, destination: Destination) -> bool:
        return destination.country == "US" and destination.state in self.service_area

    async def quote(self, package: ShippingPackage, destination: Destination) -> List[RateQuote]:
        if not self.serves(destination):
            logger.debug(
                "destination outside service area",
                extra={"provider_id": self.provider_id, "state": destination.state},
            )
            return []
        if package.total_weight <= 0:
            raise ProviderError(self.provider_id, f"invalid package weight {package.total_weight}")

        quotes = []
        for service in self.services.values():
            amount = self.apply_markup(service.rate(package.total_weight))
            quotes.append(RateQuote(
                provider_id=self.provider_id,
                service_code=service.code,
                service_name=service.name,
                amount=amount,
                transit_description=service.transit_description,
                estimated_days=service.estimated_days,
                guaranteed=service.guaranteed,
            ))
        return sorted(quotes, key=lambda q: q.amount)
