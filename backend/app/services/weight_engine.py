"""
ShippingWeightEstimator - paper weight x piece area x quantity + packaging.

Weights are in pounds and rounded once, to one decimal place, after all line
items have been summed (carrier billing granularity).
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from app.models.shipping_schema import PackageDimensions, ShippingPackage
from app.services.errors import ConfigurationError
from app.services.money import round1

DEFAULT_PACKAGING_OVERHEAD_LBS: float = 1.0
MAX_BOX_WEIGHT_LBS: float = 50.0
DEFAULT_BOX = PackageDimensions(length=12.0, width=9.0, height=6.0)


@dataclass(frozen=True)
class WeightLine:
    """Resolved inputs for one line item."""
    paper_weight_per_sq_in: Optional[float]
    width: float
    height: float
    quantity: int


class ShippingWeightEstimator:
    def __init__(self, max_box_weight_lbs: float = MAX_BOX_WEIGHT_LBS):
        self.max_box_weight_lbs = max_box_weight_lbs

    @staticmethod
    def raw_paper_weight(line: WeightLine) -> float:
        """Unrounded paper weight of one line; validates its inputs."""
        if line.paper_weight_per_sq_in is None:
            raise ConfigurationError("Paper stock has no weight configured", field="paper.weight_per_sq_in")
        if line.paper_weight_per_sq_in < 0:
            raise ConfigurationError("Paper weight cannot be negative", field="paper.weight_per_sq_in")
        if line.width <= 0 or line.height <= 0:
            raise ConfigurationError("Piece dimensions must be positive", field="size")
        if line.quantity < 1:
            raise ConfigurationError("Quantity must be at least 1", field="quantity")
        return line.paper_weight_per_sq_in * line.width * line.height * line.quantity

    def estimate(
        self,
        paper_weight_per_sq_in: Optional[float],
        piece_width: float,
        piece_height: float,
        quantity: int,
        packaging_overhead_lbs: float = DEFAULT_PACKAGING_OVERHEAD_LBS,
    ) -> float:
        """
        Total shippable weight of a single line.

        Example:
            0.0004 lb/sq in x 4" x 6" x 5000 + 1.0 lb packaging = 49.0 lb
        """
        line = WeightLine(paper_weight_per_sq_in, piece_width, piece_height, quantity)
        return self.estimate_line_items([line], packaging_overhead_lbs)

    def estimate_line_items(
        self,
        lines: Iterable[WeightLine],
        packaging_overhead_lbs: float = DEFAULT_PACKAGING_OVERHEAD_LBS,
    ) -> float:
        """Sum every line's raw weight, add packaging once, round once."""
        if packaging_overhead_lbs < 0:
            raise ConfigurationError("Packaging overhead cannot be negative", field="packaging_overhead_lbs")
        lines = list(lines)
        if not lines:
            raise ConfigurationError("At least one line item is required", field="line_items")
        total = sum(self.raw_paper_weight(line) for line in lines)
        return round1(total + packaging_overhead_lbs)

    def box_count(self, total_weight: float, intelligent_packing: bool) -> int:
        if not intelligent_packing or total_weight <= 0:
            return 1
        return max(1, math.ceil(total_weight / self.max_box_weight_lbs))

    def build_package(
        self,
        lines: Iterable[WeightLine],
        origin_state: str,
        origin_postal_code: str = "",
        intelligent_packing: bool = False,
        packaging_overhead_lbs: float = DEFAULT_PACKAGING_OVERHEAD_LBS,
    ) -> ShippingPackage:
        total_weight = self.estimate_line_items(lines, packaging_overhead_lbs)
        return ShippingPackage(
            total_weight=total_weight,
            dimensions=DEFAULT_BOX,
            origin_state=origin_state,
            origin_postal_code=origin_postal_code,
            box_count=self.box_count(total_weight, intelligent_packing),
        )
