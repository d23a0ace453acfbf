"""Shipping schemas: packages, destinations, carrier quotes, aggregation result."""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PackageDimensions(BaseModel):
    model_config = ConfigDict(frozen=True)

    length: float = 12.0
    width: float = 9.0
    height: float = 6.0


class ShippingPackage(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_weight: float = Field(..., description="Pounds, one decimal place")
    dimensions: PackageDimensions = PackageDimensions()
    origin_state: str = "TX"
    origin_postal_code: str = ""
    box_count: int = 1


class Destination(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: str
    city: str = ""
    postal_code: str = ""
    residential: bool = False
    country: str = "US"

    @field_validator("state", "country")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()


class LineItem(BaseModel):
    """
    One cart line for weight estimation. Either references a catalog product
    configuration or carries explicit paper weight and piece dimensions.
    """
    model_config = ConfigDict(frozen=True)

    quantity: int
    configuration_id: Optional[str] = None
    paper_weight_per_sq_in: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


class RateQuote(BaseModel):
    provider_id: str
    service_code: str
    service_name: str
    amount: float
    currency: str = "USD"
    transit_description: str = ""
    estimated_days: Optional[int] = None
    guaranteed: bool = False


class ModuleStatus(BaseModel):
    enabled: bool
    priority: int
    test_mode: bool


class RateMetadata(BaseModel):
    modules_used: List[str] = []
    total_weight: float
    module_status: Dict[str, ModuleStatus] = {}
    errors: Dict[str, str] = {}


class RateAggregationResult(BaseModel):
    quotes: List[RateQuote] = []
    cheapest: Optional[RateQuote] = None
    metadata: RateMetadata

    @property
    def has_options(self) -> bool:
        return bool(self.quotes)
