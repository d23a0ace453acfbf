"""TurnaroundResolver - selects a turnaround tier and applies its surcharge."""

from typing import List, Optional, Tuple

from app.models.pricing_schema import TurnaroundFlat, TurnaroundPercentage, TurnaroundTier
from app.services.errors import ConfigurationError
from app.services.money import round2


class TurnaroundResolver:

    @staticmethod
    def select(tiers: List[TurnaroundTier], tier_id: Optional[str] = None) -> TurnaroundTier:
        """
        Pick the tier to price with.

        An explicit ``tier_id`` must exist. Without one, the tier flagged
        ``is_default`` wins, falling back to the first tier listed.
        """
        if not tiers:
            raise ConfigurationError("No turnaround tiers configured", field="turnaround")
        if tier_id is not None:
            for tier in tiers:
                if tier.id == tier_id:
                    return tier
            raise ConfigurationError(f"Unknown turnaround tier '{tier_id}'", field="turnaround")
        for tier in tiers:
            if tier.is_default:
                return tier
        return tiers[0]

    @staticmethod
    def apply(tier: TurnaroundTier, price_before_turnaround: float) -> Tuple[float, float]:
        """
        Returns:
            (turnaround_cost, final_subtotal), both rounded to cents.
        """
        pricing = tier.pricing
        if isinstance(pricing, TurnaroundPercentage):
            final = round2(price_before_turnaround * pricing.multiplier)
            return round2(final - price_before_turnaround), final
        if isinstance(pricing, TurnaroundFlat):
            final = round2(price_before_turnaround + pricing.amount)
            return round2(pricing.amount), final
        raise ConfigurationError(f"Unsupported turnaround pricing on '{tier.id}'", field="turnaround")

    @staticmethod
    def describe(tier: TurnaroundTier, extra_days: int = 0) -> str:
        if tier.days_min == tier.days_max:
            days = f"{tier.days_min} business day{'s' if tier.days_min != 1 else ''}"
        else:
            days = f"{tier.days_min}-{tier.days_max} business days"
        text = f"{tier.name} ({days})"
        if extra_days > 0:
            text += f" +{extra_days} day{'s' if extra_days != 1 else ''} for add-ons"
        return text
