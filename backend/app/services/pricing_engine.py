"""
PriceCalculator - turns a product configuration and quantity into an itemized
price.

Fixed order of operations:
  1. unit_price  = paper $/sq in x square inches x coating x sides
  2. base_price  = round2(unit_price x calculation quantity)
  3. add-ons     resolved in selection order with the calculation quantity,
                 each against the running subtotal
                 (base + previously resolved add-on costs)
  4. subtotal    = base + sum(add-ons)
  5. turnaround  percentage multiplier or flat amount
  6. every currency value rounded half-up to cents

Quantity handling:
  - standard quantities below the custom threshold may carry a hidden
    calculation value that is used for pricing instead of the displayed one
  - custom quantities are priced between the standard entries around them
  - custom quantities must sit inside the group's min/max and, above the
    threshold, be a multiple of the configured increment
Custom sizes must be positive and land on the configured inch increment.
"""

import math
from typing import List, Optional, Tuple

from app.config import PricingConfig
from app.models.pricing_schema import (
    AddonCost,
    PriceBreakdown,
    ProductConfiguration,
    QuantityGroup,
    SizeOption,
)
from app.services.addon_pricing_engine import AddonPricingResolver
from app.services.errors import ConfigurationError
from app.services.money import round2, round_places
from app.services.turnaround_engine import TurnaroundResolver

_PER_UNIT_PRICE_PLACES: int = 4
_UNIT_PRICE_PLACES: int = 8
_INCREMENT_TOLERANCE: float = 1e-9


def _fmt(value: float) -> str:
    return f"{value:g}"


def pricing_points(group: QuantityGroup, threshold: int) -> List[Tuple[int, int]]:
    """
    ``(display_value, priced_quantity)`` for each standard quantity, ascending.

    A hidden calculation value only applies below ``threshold``. Priced
    quantities must not fall as displayed quantities rise, otherwise a larger
    order could cost less than a smaller one.
    """
    points = sorted(
        (
            s.display_value,
            s.calculation_value if s.calculation_value and s.display_value < threshold else s.display_value,
        )
        for s in group.standard
    )
    for (prev_display, prev_priced), (display, priced) in zip(points, points[1:]):
        if priced < prev_priced:
            raise ConfigurationError(
                f"Quantity group '{group.id}': {display:,} is priced as {priced:,}, "
                f"below {prev_display:,} priced as {prev_priced:,}",
                field=f"quantity_groups.{group.id}.standard",
            )
    return points


class PriceCalculator:
    def __init__(
        self,
        pricing_config: Optional[PricingConfig] = None,
        addon_resolver: Optional[AddonPricingResolver] = None,
        turnaround_resolver: Optional[TurnaroundResolver] = None,
    ):
        self.config = pricing_config or PricingConfig()
        self.addon_resolver = addon_resolver or AddonPricingResolver()
        self.turnaround_resolver = turnaround_resolver or TurnaroundResolver()

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_increment(self, value: float, label: str, field_name: str) -> None:
        step = self.config.custom_size_increment
        if value <= 0:
            raise ConfigurationError(f"{label} must be greater than 0", field=field_name)
        steps = value / step
        if abs(steps - round(steps)) > _INCREMENT_TOLERANCE:
            lower = math.floor(steps) * step
            upper = lower + step
            raise ConfigurationError(
                f'{label} must be in {_fmt(step)} inch increments. '
                f'Try {_fmt(lower)}" or {_fmt(upper)}"',
                field=field_name,
            )

    def custom_size(self, width: float, height: float) -> SizeOption:
        """Build a validated custom size option."""
        self._check_increment(width, "Width", "size.width")
        self._check_increment(height, "Height", "size.height")
        return SizeOption(
            id="custom",
            name=f'Custom {_fmt(width)}" x {_fmt(height)}"',
            width=width,
            height=height,
            is_custom=True,
        )

    def _validate_size(self, size: Optional[SizeOption]) -> SizeOption:
        if size is None:
            raise ConfigurationError("A size must be selected", field="size")
        if size.is_custom:
            self._check_increment(size.width, "Width", "size.width")
            self._check_increment(size.height, "Height", "size.height")
        elif size.square_inches <= 0:
            raise ConfigurationError(f"Size '{size.id}' has no printable area", field="size")
        return size

    def resolve_quantity(self, configuration: ProductConfiguration, quantity: int) -> int:
        """
        Validate ``quantity`` against the product's quantity group.

        Returns:
            The quantity to price with. A standard quantity uses its hidden
            calculation value when it has one below the threshold. A custom
            quantity is clamped between the priced quantities of the standard
            entries around it, so pricing never drops as quantity rises.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ConfigurationError("Quantity must be a whole number of at least 1", field="quantity")

        group = configuration.quantity_group
        if group is None:
            return quantity

        threshold = self.config.custom_quantity_threshold
        points = pricing_points(group, threshold)
        for display, priced in points:
            if display == quantity:
                return priced

        if not group.allow_custom:
            offered = ", ".join(f"{display}" for display, _ in points)
            raise ConfigurationError(
                f"Quantity {quantity} is not offered; choose one of: {offered}", field="quantity"
            )
        if quantity < group.custom_min:
            raise ConfigurationError(
                f"Minimum custom quantity is {group.custom_min}", field="quantity"
            )
        if group.custom_max is not None and quantity > group.custom_max:
            raise ConfigurationError(
                f"Maximum custom quantity is {group.custom_max}", field="quantity"
            )

        increment = self.config.custom_quantity_increment
        if quantity > threshold and increment > 0 and quantity % increment != 0:
            lower = (quantity // increment) * increment
            upper = lower + increment
            raise ConfigurationError(
                f"Custom quantities above {threshold:,} must be in increments of {increment:,}. "
                f"Try {lower:,} or {upper:,}",
                field="quantity",
            )

        below = [priced for display, priced in points if display < quantity]
        above = [priced for display, priced in points if display > quantity]
        priced = quantity
        if above:
            priced = min(priced, above[0])
        if below:
            priced = max(priced, below[-1])
        return priced

    @staticmethod
    def _conflict_warnings(configuration: ProductConfiguration) -> List[str]:
        selected = {s.addon.id: s.addon for s in configuration.addons}
        warnings: List[str] = []
        seen = set()
        for addon in selected.values():
            for other_id in addon.conflicts_with:
                pair = tuple(sorted((addon.id, other_id)))
                if other_id in selected and pair not in seen:
                    seen.add(pair)
                    warnings.append(f"{addon.name} conflicts with {selected[other_id].name}")
        return warnings

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def calculate(self, configuration: ProductConfiguration, quantity: int) -> PriceBreakdown:
        """
        Price ``quantity`` pieces of ``configuration``.

        The base price and every add-on use the calculation quantity from
        :meth:`resolve_quantity`. ``per_unit_price`` divides the final price by
        the displayed ``quantity``, the number of pieces the customer receives.

        Raises:
            ConfigurationError: missing size or paper, invalid quantity,
                invalid custom size, unknown turnaround tier, or any add-on
                sub-option problem. The error names the offending field.
        """
        size = self._validate_size(configuration.size)
        paper = configuration.paper
        if paper is None:
            raise ConfigurationError("A paper stock must be selected", field="paper")
        if paper.price_per_sq_in <= 0:
            raise ConfigurationError(f"Paper '{paper.id}' has no price", field="paper")
        calc_quantity = self.resolve_quantity(configuration, quantity)
        tier = self.turnaround_resolver.select(configuration.turnaround_tiers, configuration.turnaround_id)

        # 1-2. base print cost
        square_inches = size.square_inches
        unit_price = (
            paper.price_per_sq_in
            * square_inches
            * configuration.coating.multiplier
            * configuration.sides.multiplier
        )
        base_price = round2(unit_price * calc_quantity)

        # 3. add-ons against the running subtotal
        addon_costs: List[AddonCost] = []
        running = base_price
        for selected in configuration.addons:
            cost = self.addon_resolver.resolve(
                selected.addon, selected.values, calc_quantity, running, paper_type=paper.paper_type
            )
            addon_costs.append(cost)
            running = round2(running + cost.cost)
        addons_total = round2(sum(c.cost for c in addon_costs))

        # 4-5. turnaround
        pre_turnaround = round2(base_price + addons_total)
        turnaround_cost, final_price = self.turnaround_resolver.apply(tier, pre_turnaround)
        extra_days = sum(c.additional_turnaround_days for c in addon_costs)

        per_unit_price = round_places(final_price / quantity, _PER_UNIT_PRICE_PLACES)

        breakdown = PriceBreakdown(
            configuration_id=configuration.id,
            quantity=quantity,
            calculation_quantity=calc_quantity,
            square_inches=square_inches,
            unit_price=round_places(unit_price, _UNIT_PRICE_PLACES),
            base_price=base_price,
            addon_costs=addon_costs,
            addons_total=addons_total,
            pre_turnaround_subtotal=pre_turnaround,
            turnaround_id=tier.id,
            turnaround_cost=turnaround_cost,
            turnaround_description=self.turnaround_resolver.describe(tier, extra_days),
            turnaround_days_min=tier.days_min + extra_days,
            turnaround_days_max=tier.days_max + extra_days,
            final_price=final_price,
            per_unit_price=per_unit_price,
            warnings=self._conflict_warnings(configuration),
        )
        breakdown.display_lines = self.display_lines(breakdown)
        return breakdown

    @staticmethod
    def display_lines(breakdown: PriceBreakdown) -> List[str]:
        lines = [
            f"Base price ({breakdown.quantity:,} pcs, {_fmt(breakdown.square_inches)} sq in): "
            f"${breakdown.base_price:,.2f}"
        ]
        for cost in breakdown.addon_costs:
            lines.append(f"{cost.name} ({cost.formula}): ${cost.cost:,.2f}")
        lines.append(f"Subtotal: ${breakdown.pre_turnaround_subtotal:,.2f}")
        lines.append(f"{breakdown.turnaround_description}: ${breakdown.turnaround_cost:,.2f}")
        lines.append(f"Total: ${breakdown.final_price:,.2f} (${breakdown.per_unit_price:,.4f} each)")
        return lines
