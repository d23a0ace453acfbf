"""
AddonPricingResolver - prices one selected add-on against the running subtotal.

Pricing models (closed set, see app.models.pricing_schema):
  FLAT        fixed amount
  PERCENTAGE  running_subtotal x rate (negative rate = discount)
  PER_UNIT    setup_fee + unit_count x price_per_unit, unit_count derived from a bundle
              size sub-option when one is configured
  CUSTOM      named formula from FORMULAS, constants overridable via params;
              by_paper_type picks its rates from the stock's paper type
  TIERED      quantity-banded flat price plus optional per-piece rate

Every cost comes back rounded to cents together with a human-readable
formula string for the breakdown.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set, Tuple

from app.models.pricing_schema import (
    AddonCost,
    AddonDefinition,
    CustomPricing,
    FlatPricing,
    PercentagePricing,
    PerUnitPricing,
    TieredPricing,
)
from app.services.errors import ConfigurationError
from app.services.money import round2


# ---------------------------------------------------------------------------
# Formula constants
# ---------------------------------------------------------------------------
_DEFAULT_ITEMS_PER_BUNDLE: int = 100

_VARIABLE_DATA_BASE_FEE: float = 60.0
_VARIABLE_DATA_PER_PIECE: float = 0.02

_PERFORATION_BASE_FEE: float = 20.0
_PERFORATION_PER_PIECE: float = 0.01

_CORNER_ROUNDING_BASE_FEE: float = 20.0
_CORNER_ROUNDING_PER_PIECE: float = 0.01

_HOLE_DRILLING_BASE_FEE: float = 20.0
_HOLE_DRILLING_PER_PIECE: float = 0.02
_HOLE_PRICING: Dict[str, float] = {
    "1": 1.00,
    "2": 2.00,
    "3": 3.00,
    "4": 4.00,
    "5": 5.00,
    "3 Hole Binder Punch": 4.00,
    "4 Hole Binder Punch": 5.00,
}

_ENVELOPE_PRICE_EACH: float = 0.25
_NO_ENVELOPES: str = "No Envelopes"


def _money(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


# ---------------------------------------------------------------------------
# Sub-option access
# ---------------------------------------------------------------------------

class SubOptionValues:
    """Typed, validated view over the raw sub-option values of one add-on."""

    def __init__(self, addon: AddonDefinition, values: Optional[Dict[str, Any]] = None):
        self.addon = addon
        self._values = dict(values or {})

    def _field(self, key: str) -> str:
        return f"addons.{self.addon.id}.{key}"

    def raw(self, key: str) -> Optional[str]:
        value = self._values.get(key)
        if value is None or str(value).strip() == "":
            option = self.addon.sub_option(key)
            value = option.default if option is not None else None
        if value is None or str(value).strip() == "":
            return None
        return str(value).strip()

    def require_present(self) -> None:
        for option in self.addon.sub_options:
            if option.is_required and self.raw(option.key) is None:
                raise ConfigurationError(
                    f"{self.addon.name}: '{option.label or option.key}' is required",
                    field=self._field(option.key),
                )

    def text(self, key: str) -> str:
        value = self.raw(key)
        if value is None:
            raise ConfigurationError(
                f"{self.addon.name}: missing value for '{key}'", field=self._field(key)
            )
        return value

    def number(self, key: str, default: Optional[float] = None) -> float:
        value = self.raw(key)
        if value is None:
            if default is not None:
                return default
            raise ConfigurationError(
                f"{self.addon.name}: missing value for '{key}'", field=self._field(key)
            )
        try:
            parsed = float(value)
        except ValueError:
            raise ConfigurationError(
                f"{self.addon.name}: '{value}' is not a number", field=self._field(key)
            )
        if math.isnan(parsed) or math.isinf(parsed):
            raise ConfigurationError(
                f"{self.addon.name}: '{value}' is not a number", field=self._field(key)
            )
        return parsed


# ---------------------------------------------------------------------------
# Custom formulas
# ---------------------------------------------------------------------------

FormulaFn = Callable[[Dict[str, Any], SubOptionValues, int, Optional[str]], Tuple[float, str]]


@dataclass(frozen=True)
class CustomFormula:
    name: str
    compute: FormulaFn
    option_keys: Callable[[Dict[str, Any]], Set[str]] = lambda params: set()
    required_params: Tuple[str, ...] = ()
    description: str = ""


def _setup_plus_per_piece(default_base: float, default_rate: float) -> FormulaFn:
    def compute(
        params: Dict[str, Any], values: SubOptionValues, quantity: int, paper_type: Optional[str]
    ) -> Tuple[float, str]:
        base_fee = float(params.get("base_fee", default_base))
        rate = float(params.get("per_piece_rate", default_rate))
        cost = base_fee + rate * quantity
        return cost, f"{_money(base_fee)} + {_money(rate)} x {quantity:,}"
    return compute


def _lookup(table: Dict[str, Any], label: str, values: SubOptionValues, key: str) -> float:
    if label not in table:
        raise ConfigurationError(
            f"{values.addon.name}: unknown option '{label}'",
            field=f"addons.{values.addon.id}.{key}",
        )
    return float(table[label])


def _hole_drilling(
    params: Dict[str, Any], values: SubOptionValues, quantity: int, paper_type: Optional[str]
) -> Tuple[float, str]:
    key = params.get("option_key", "hole_count")
    table = params.get("hole_pricing", _HOLE_PRICING)
    base_fee = float(params.get("base_fee", _HOLE_DRILLING_BASE_FEE))
    rate = float(params.get("per_piece_rate", _HOLE_DRILLING_PER_PIECE))
    label = values.text(key)
    surcharge = _lookup(table, label, values, key)
    cost = base_fee + rate * quantity + surcharge
    return cost, f"{_money(base_fee)} + {_money(rate)} x {quantity:,} + {_money(surcharge)} ({label})"


def _blank_envelopes(
    params: Dict[str, Any], values: SubOptionValues, quantity: int, paper_type: Optional[str]
) -> Tuple[float, str]:
    key = params.get("option_key", "envelope_size")
    none_label = params.get("none_label", _NO_ENVELOPES)
    price = float(params.get("price_each", _ENVELOPE_PRICE_EACH))
    label = values.text(key)
    if label == none_label:
        return 0.0, none_label
    return quantity * price, f"{quantity:,} x {_money(price)} ({label})"


def _option_lookup(
    params: Dict[str, Any], values: SubOptionValues, quantity: int, paper_type: Optional[str]
) -> Tuple[float, str]:
    key = params["option_key"]
    label = values.text(key)
    price = _lookup(params["prices"], label, values, key)
    if params.get("per_piece"):
        return price * quantity, f"{quantity:,} x {_money(price)} ({label})"
    return price, f"{label}: {_money(price)}"


def _by_paper_type(
    params: Dict[str, Any], values: SubOptionValues, quantity: int, paper_type: Optional[str]
) -> Tuple[float, str]:
    """Setup fee plus per-piece rate, both chosen by the stock's paper type (e.g. folding)."""
    rates = params["rates"]
    if paper_type not in rates:
        raise ConfigurationError(
            f"{values.addon.name} is not available on {paper_type or 'unknown'} paper",
            field="paper",
        )
    setup = float(rates[paper_type].get("setup", 0.0))
    per_piece = float(rates[paper_type].get("per_piece", 0.0))
    cost = setup + per_piece * quantity
    return cost, f"{paper_type.capitalize()} paper: {_money(setup)} + {_money(per_piece)}/pc x {quantity:,}"


def _option_key(default: str) -> Callable[[Dict[str, Any]], Set[str]]:
    return lambda params: {params.get("option_key", default)}


FORMULAS: Dict[str, CustomFormula] = {
    "variable_data": CustomFormula(
        "variable_data",
        _setup_plus_per_piece(_VARIABLE_DATA_BASE_FEE, _VARIABLE_DATA_PER_PIECE),
        description="$60 setup + $0.02 per piece",
    ),
    "perforation": CustomFormula(
        "perforation",
        _setup_plus_per_piece(_PERFORATION_BASE_FEE, _PERFORATION_PER_PIECE),
        description="$20 setup + $0.01 per piece",
    ),
    "corner_rounding": CustomFormula(
        "corner_rounding",
        _setup_plus_per_piece(_CORNER_ROUNDING_BASE_FEE, _CORNER_ROUNDING_PER_PIECE),
        description="$20 setup + $0.01 per piece",
    ),
    "setup_plus_per_piece": CustomFormula(
        "setup_plus_per_piece",
        _setup_plus_per_piece(0.0, 0.0),
        required_params=("base_fee", "per_piece_rate"),
    ),
    "hole_drilling": CustomFormula(
        "hole_drilling",
        _hole_drilling,
        option_keys=_option_key("hole_count"),
        description="$20 setup + $0.02 per piece + hole surcharge",
    ),
    "blank_envelopes": CustomFormula(
        "blank_envelopes",
        _blank_envelopes,
        option_keys=_option_key("envelope_size"),
        description="$0.25 per envelope unless 'No Envelopes'",
    ),
    "option_lookup": CustomFormula(
        "option_lookup",
        _option_lookup,
        option_keys=lambda params: {params["option_key"]},
        required_params=("option_key", "prices"),
    ),
    "by_paper_type": CustomFormula(
        "by_paper_type",
        _by_paper_type,
        required_params=("rates",),
        description="setup + per piece, rates keyed by paper type",
    ),
}


# ---------------------------------------------------------------------------
# Load-time validation
# ---------------------------------------------------------------------------

def _consumed_option_keys(addon: AddonDefinition) -> Set[str]:
    pricing = addon.pricing
    if isinstance(pricing, PerUnitPricing) and pricing.items_per_unit_option:
        return {pricing.items_per_unit_option}
    if isinstance(pricing, CustomPricing):
        return FORMULAS[pricing.formula].option_keys(pricing.params)
    return set()


def validate_definition(addon: AddonDefinition) -> None:
    """
    Reject add-on definitions that could not be priced correctly.

    Raises:
        ConfigurationError: unknown custom formula, missing formula params,
            empty tier table, or a price-affecting sub-option that the
            pricing model never reads.
    """
    field_name = f"addons.{addon.id}.pricing"
    pricing = addon.pricing

    if isinstance(pricing, CustomPricing):
        formula = FORMULAS.get(pricing.formula)
        if formula is None:
            raise ConfigurationError(
                f"{addon.name}: unknown pricing formula '{pricing.formula}'", field=field_name
            )
        missing = [p for p in formula.required_params if p not in pricing.params]
        if missing:
            raise ConfigurationError(
                f"{addon.name}: formula '{formula.name}' requires params {missing}", field=field_name
            )
        if formula.name == "by_paper_type":
            rates = pricing.params["rates"]
            if not isinstance(rates, dict) or not rates or not all(isinstance(r, dict) for r in rates.values()):
                raise ConfigurationError(
                    f"{addon.name}: 'rates' must map paper types to setup/per_piece rates",
                    field=field_name,
                )
    elif isinstance(pricing, TieredPricing):
        if not pricing.tiers:
            raise ConfigurationError(f"{addon.name}: tiered pricing has no tiers", field=field_name)
    elif isinstance(pricing, PerUnitPricing) and pricing.items_per_unit_option:
        if addon.sub_option(pricing.items_per_unit_option) is None:
            raise ConfigurationError(
                f"{addon.name}: unit sub-option '{pricing.items_per_unit_option}' is not defined",
                field=field_name,
            )

    consumed = _consumed_option_keys(addon)
    for option in addon.sub_options:
        if option.affects_pricing and option.key not in consumed:
            raise ConfigurationError(
                f"{addon.name}: sub-option '{option.key}' affects pricing but is not used by "
                f"the {pricing.type} model",
                field=f"addons.{addon.id}.{option.key}",
            )


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

@dataclass
class AddonPricingResolver:
    """Stateless evaluator for add-on pricing models."""

    formulas: Dict[str, CustomFormula] = field(default_factory=lambda: dict(FORMULAS))

    def resolve(
        self,
        addon: AddonDefinition,
        sub_option_values: Optional[Dict[str, Any]],
        quantity: int,
        running_subtotal: float,
        paper_type: Optional[str] = None,
    ) -> AddonCost:
        """
        ``quantity`` is the quantity being priced (the calculation quantity
        when the selected standard quantity defines one). ``paper_type`` comes
        from the configured stock and is only read by paper-dependent formulas.
        """
        values = SubOptionValues(addon, sub_option_values)
        values.require_present()
        pricing = addon.pricing

        if isinstance(pricing, FlatPricing):
            cost, formula = pricing.amount, f"Flat {_money(pricing.amount)}"
        elif isinstance(pricing, PercentagePricing):
            cost = running_subtotal * pricing.rate
            formula = f"{pricing.rate * 100:g}% of {_money(running_subtotal)}"
        elif isinstance(pricing, PerUnitPricing):
            cost, formula = self._per_unit(pricing, values, quantity)
        elif isinstance(pricing, CustomPricing):
            custom = self.formulas.get(pricing.formula)
            if custom is None:
                raise ConfigurationError(
                    f"{addon.name}: unknown pricing formula '{pricing.formula}'",
                    field=f"addons.{addon.id}.pricing",
                )
            cost, formula = custom.compute(pricing.params, values, quantity, paper_type)
        elif isinstance(pricing, TieredPricing):
            cost, formula = self._tiered(addon, pricing, quantity)
        else:
            raise ConfigurationError(
                f"{addon.name}: unsupported pricing model", field=f"addons.{addon.id}.pricing"
            )

        return AddonCost(
            addon_id=addon.id,
            name=addon.name,
            cost=round2(cost),
            formula=formula,
            additional_turnaround_days=addon.additional_turnaround_days,
        )

    @staticmethod
    def _per_unit(pricing: PerUnitPricing, values: SubOptionValues, quantity: int) -> Tuple[float, str]:
        setup = f"{_money(pricing.setup_fee)} setup + " if pricing.setup_fee else ""
        if not pricing.items_per_unit_option:
            cost = pricing.setup_fee + quantity * pricing.price_per_unit
            return cost, f"{setup}{quantity:,} x {_money(pricing.price_per_unit)} per {pricing.unit_name}"

        default = float(pricing.default_items_per_unit or _DEFAULT_ITEMS_PER_BUNDLE)
        items_per_unit = values.number(pricing.items_per_unit_option, default=default)
        if items_per_unit <= 0 or items_per_unit != int(items_per_unit):
            raise ConfigurationError(
                f"{values.addon.name}: items per {pricing.unit_name} must be a positive whole number",
                field=f"addons.{values.addon.id}.{pricing.items_per_unit_option}",
            )
        units = math.ceil(quantity / int(items_per_unit))
        cost = pricing.setup_fee + units * pricing.price_per_unit
        return cost, (
            f"{setup}{units:,} {pricing.unit_name}s (ceil({quantity:,} / {int(items_per_unit)})) "
            f"x {_money(pricing.price_per_unit)}"
        )

    @staticmethod
    def _tiered(addon: AddonDefinition, pricing: TieredPricing, quantity: int) -> Tuple[float, str]:
        for tier in sorted(pricing.tiers, key=lambda t: t.min_quantity):
            upper_ok = tier.max_quantity is None or quantity <= tier.max_quantity
            if tier.min_quantity <= quantity and upper_ok:
                cost = tier.price + tier.price_per_unit * quantity
                if tier.max_quantity is None:
                    band = f"{tier.min_quantity:,}+"
                else:
                    band = f"{tier.min_quantity:,}-{tier.max_quantity:,}"
                if tier.price_per_unit:
                    return cost, f"Tier {band}: {_money(tier.price)} + {_money(tier.price_per_unit)} x {quantity:,}"
                return cost, f"Tier {band}: {_money(tier.price)}"
        raise ConfigurationError(
            f"{addon.name}: no pricing tier covers quantity {quantity}",
            field=f"addons.{addon.id}.pricing",
        )
