"""
Pricing schemas: catalog entities and the itemized price result.

Add-on and turnaround pricing are closed tagged unions discriminated on
``type``. A catalog entry with an unknown ``type`` fails validation when the
catalog is loaded instead of being priced at zero.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _CatalogModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Print options
# ---------------------------------------------------------------------------

class SizeOption(_CatalogModel):
    id: str
    name: str = ""
    width: float = Field(..., description="Inches")
    height: float = Field(..., description="Inches")
    pre_calculated_value: Optional[float] = Field(
        None, description="Square-inch value used in place of width x height for standard sizes"
    )
    is_custom: bool = False

    @property
    def square_inches(self) -> float:
        if self.pre_calculated_value is not None and not self.is_custom:
            return self.pre_calculated_value
        return self.width * self.height


class PaperStock(_CatalogModel):
    id: str
    name: str = ""
    price_per_sq_in: float = Field(..., description="USD per square inch per side")
    weight_per_sq_in: Optional[float] = Field(None, description="Pounds per square inch")
    paper_type: Literal["cardstock", "text", "specialty"] = "cardstock"


class CoatingOption(_CatalogModel):
    id: str
    name: str = ""
    multiplier: float = 1.0


class SidesOption(_CatalogModel):
    id: str
    name: str = ""
    multiplier: float = 1.0


class StandardQuantity(_CatalogModel):
    display_value: int
    calculation_value: Optional[int] = Field(
        None, description="Quantity used for pricing when it differs from the displayed one"
    )


class QuantityGroup(_CatalogModel):
    id: str
    name: str = ""
    standard: List[StandardQuantity] = []
    allow_custom: bool = True
    custom_min: int = 1
    custom_max: Optional[int] = None


# ---------------------------------------------------------------------------
# Add-ons
# ---------------------------------------------------------------------------

class SubOption(_CatalogModel):
    key: str
    label: str = ""
    kind: Literal["number", "select", "text"] = "select"
    options: List[str] = []
    is_required: bool = False
    affects_pricing: bool = False
    default: Optional[str] = None


class FlatPricing(_CatalogModel):
    type: Literal["FLAT"] = "FLAT"
    amount: float


class PercentagePricing(_CatalogModel):
    type: Literal["PERCENTAGE"] = "PERCENTAGE"
    rate: float = Field(..., description="Fraction of the running subtotal; negative is a discount")


class PerUnitPricing(_CatalogModel):
    type: Literal["PER_UNIT"] = "PER_UNIT"
    price_per_unit: float
    unit_name: str = "piece"
    items_per_unit_option: Optional[str] = Field(
        None, description="Sub-option holding how many pieces make one unit (e.g. per bundle)"
    )
    default_items_per_unit: Optional[int] = None
    setup_fee: float = Field(0.0, description="One-time fee added before the per-unit charge")


class CustomPricing(_CatalogModel):
    type: Literal["CUSTOM"] = "CUSTOM"
    formula: str
    params: Dict[str, Any] = {}


class PricingTier(_CatalogModel):
    min_quantity: int
    max_quantity: Optional[int] = None
    price: float = 0.0
    price_per_unit: float = 0.0


class TieredPricing(_CatalogModel):
    type: Literal["TIERED"] = "TIERED"
    tiers: List[PricingTier]


AddonPricingModel = Annotated[
    Union[FlatPricing, PercentagePricing, PerUnitPricing, CustomPricing, TieredPricing],
    Field(discriminator="type"),
]


class AddonDefinition(_CatalogModel):
    id: str
    name: str
    pricing: AddonPricingModel
    sub_options: List[SubOption] = []
    additional_turnaround_days: int = 0
    conflicts_with: List[str] = []

    def sub_option(self, key: str) -> Optional[SubOption]:
        for option in self.sub_options:
            if option.key == key:
                return option
        return None


class SelectedAddon(_CatalogModel):
    addon: AddonDefinition
    values: Dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Turnaround
# ---------------------------------------------------------------------------

class TurnaroundPercentage(_CatalogModel):
    type: Literal["PERCENTAGE"] = "PERCENTAGE"
    multiplier: float


class TurnaroundFlat(_CatalogModel):
    type: Literal["FLAT"] = "FLAT"
    amount: float


TurnaroundPricingModel = Annotated[
    Union[TurnaroundPercentage, TurnaroundFlat],
    Field(discriminator="type"),
]


class TurnaroundTier(_CatalogModel):
    id: str
    name: str
    days_min: int
    days_max: int
    is_default: bool = False
    pricing: TurnaroundPricingModel


# ---------------------------------------------------------------------------
# Configuration and result
# ---------------------------------------------------------------------------

class ProductConfiguration(_CatalogModel):
    """Everything the calculator needs for one priced line, minus the quantity."""
    id: str = "adhoc"
    name: str = ""
    size: Optional[SizeOption] = None
    paper: Optional[PaperStock] = None
    coating: CoatingOption = CoatingOption(id="none", name="No Coating")
    sides: SidesOption = SidesOption(id="single", name="Single Sided")
    quantity_group: Optional[QuantityGroup] = None
    turnaround_tiers: List[TurnaroundTier] = []
    turnaround_id: Optional[str] = None
    addons: List[SelectedAddon] = []


class AddonCost(BaseModel):
    addon_id: str
    name: str
    cost: float
    formula: str
    additional_turnaround_days: int = 0


class PriceBreakdown(BaseModel):
    configuration_id: str
    quantity: int
    calculation_quantity: int
    square_inches: float
    unit_price: float
    base_price: float
    addon_costs: List[AddonCost] = []
    addons_total: float = 0.0
    pre_turnaround_subtotal: float
    turnaround_id: str
    turnaround_cost: float
    turnaround_description: str
    turnaround_days_min: int
    turnaround_days_max: int
    final_price: float
    per_unit_price: float
    warnings: List[str] = []
    display_lines: List[str] = []


# ---------------------------------------------------------------------------
# Catalog document (what a catalog JSON file contains)
# ---------------------------------------------------------------------------

class ProductDefinition(_CatalogModel):
    id: str
    name: str
    size_id: str
    paper_id: str
    coating_id: str = "none"
    sides_id: str = "single"
    quantity_group_id: Optional[str] = None
    turnaround_ids: List[str] = []
    addon_ids: List[str] = []


class CatalogDocument(_CatalogModel):
    papers: List[PaperStock] = []
    sizes: List[SizeOption] = []
    coatings: List[CoatingOption] = []
    sides: List[SidesOption] = []
    quantity_groups: List[QuantityGroup] = []
    turnarounds: List[TurnaroundTier] = []
    addons: List[AddonDefinition] = []
    products: List[ProductDefinition] = []
