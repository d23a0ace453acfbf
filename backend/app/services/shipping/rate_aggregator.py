"""
RateAggregator - queries every enabled carrier concurrently and merges the
results.

Each provider runs under its own timeout. A timeout or exception from one
provider becomes an entry in ``metadata.errors`` and never affects the
others; when every provider fails the result simply has no quotes.
"""
import asyncio
import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.config import ShippingConfig
from app.models.shipping_schema import (
    Destination,
    RateAggregationResult,
    RateMetadata,
    RateQuote,
    ShippingPackage,
)
from app.services.errors import ProviderError
from app.services.perf_monitor import tracker
from app.services.shipping.base import RateProvider, logger
from app.services.shipping.fedex_provider import FedExProvider
from app.services.shipping.southwest_cargo_provider import SouthwestCargoProvider
from app.services.shipping.ups_provider import UPSProvider

_Outcome = Tuple[str, List[RateQuote], Optional[str]]


def build_providers(config: ShippingConfig) -> List[RateProvider]:
    """Instantiate every known carrier module from one config snapshot."""
    fedex = FedExProvider(
        settings=config.provider(FedExProvider.provider_id),
        enabled=config.is_enabled(FedExProvider.provider_id),
        enabled_services=config.fedex_enabled_services,
        credentials=config.fedex_credentials,
        base_url=config.fedex_base_url,
    )
    southwest = SouthwestCargoProvider(
        settings=config.provider(SouthwestCargoProvider.provider_id),
        enabled=config.is_enabled(SouthwestCargoProvider.provider_id),
    )
    ups = UPSProvider(
        settings=config.provider(UPSProvider.provider_id),
        enabled=config.is_enabled(UPSProvider.provider_id),
        enabled_services=config.ups_enabled_services,
        credentials=config.ups_credentials,
        base_url=config.ups_base_url,
    )
    return [fedex, southwest, ups]


class RateAggregator:
    def __init__(
        self,
        config: Optional[ShippingConfig] = None,
        providers: Optional[Sequence[RateProvider]] = None,
    ):
        self.config = config or ShippingConfig()
        self.providers = list(providers) if providers is not None else build_providers(self.config)

    def effective_providers(self, requested_provider_ids: Optional[Iterable[str]] = None) -> List[RateProvider]:
        requested = set(requested_provider_ids) if requested_provider_ids is not None else None
        chosen = [
            p for p in self.providers
            if p.enabled and (requested is None or p.provider_id in requested)
        ]
        return sorted(chosen, key=lambda p: p.priority)

    async def _query(self, provider: RateProvider, package: ShippingPackage,
                     destination: Destination) -> _Outcome:
        timeout = self.config.provider_timeout_s
        start = time.perf_counter()
        error: Optional[str] = None
        quotes: List[RateQuote] = []
        try:
            quotes = await asyncio.wait_for(provider.quote(package, destination), timeout=timeout)
        except asyncio.TimeoutError:
            error = f"timed out after {timeout:g}s"
        except ProviderError as e:
            error = e.message
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            tracker.record_provider_duration(provider.provider_id, duration_ms)

        if error is not None:
            tracker.record_provider_error(provider.provider_id)
            logger.warning(
                "rate provider failed",
                extra={"provider_id": provider.provider_id, "duration_ms": duration_ms, "error": error},
            )
            return provider.provider_id, [], error
        return provider.provider_id, sorted(quotes, key=lambda q: q.amount), None

    async def aggregate(
        self,
        package: ShippingPackage,
        destination: Destination,
        requested_provider_ids: Optional[Iterable[str]] = None,
    ) -> RateAggregationResult:
        """
        Gather quotes from the effective provider set.

        Returns:
            RateAggregationResult with quotes grouped by provider in priority
            order (ascending amount within a provider), the cheapest quote
            overall, and per-provider status and errors. Never raises for a
            provider failure.
        """
        start = time.perf_counter()
        effective = self.effective_providers(requested_provider_ids)
        outcomes = await asyncio.gather(*(self._query(p, package, destination) for p in effective))

        quotes: List[RateQuote] = []
        errors: Dict[str, str] = {}
        for provider_id, provider_quotes, error in outcomes:
            if error is not None:
                errors[provider_id] = error
            quotes.extend(provider_quotes)

        cheapest = min(quotes, key=lambda q: q.amount) if quotes else None
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        tracker.record_aggregation_complete(duration_ms)
        logger.info(
            "shipping rates aggregated",
            extra={"duration_ms": duration_ms, "quote_count": len(quotes), "error_count": len(errors)},
        )

        return RateAggregationResult(
            quotes=quotes,
            cheapest=cheapest,
            metadata=RateMetadata(
                modules_used=[p.provider_id for p in effective],
                total_weight=package.total_weight,
                module_status={p.provider_id: p.status() for p in self.providers},
                errors=errors,
            ),
        )
