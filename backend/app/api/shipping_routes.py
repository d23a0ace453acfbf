"""Shipping routes - package weight and carrier rate quotes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.deps import get_quote_service
from app.models.shipping_schema import (
    Destination,
    LineItem,
    RateAggregationResult,
    ShippingPackage,
)
from app.services.errors import ConfigurationError
from app.services.quote_service import QuoteService
from app.services.weight_engine import DEFAULT_PACKAGING_OVERHEAD_LBS

router = APIRouter(prefix="/api/shipping", tags=["Shipping"])
logger = logging.getLogger("printquote-api.shipping")


class WeightRequest(BaseModel):
    line_items: List[LineItem]
    packaging_overhead_lbs: float = DEFAULT_PACKAGING_OVERHEAD_LBS


class RatesRequest(BaseModel):
    destination: Destination
    package: Optional[ShippingPackage] = None
    line_items: List[LineItem] = []
    provider_ids: Optional[List[str]] = None


@router.post("/weight", response_model=ShippingPackage)
def shipping_weight(req: WeightRequest, service: QuoteService = Depends(get_quote_service)):
    try:
        return service.compute_shipping_weight(req.line_items, req.packaging_overhead_lbs)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())


@router.post("/rates", response_model=RateAggregationResult)
async def shipping_rates(req: RatesRequest, service: QuoteService = Depends(get_quote_service)):
    """
    Quotes from every enabled carrier. Carrier failures are reported in
    ``metadata.errors`` and never fail the request. One settings snapshot
    serves both the package build and the carrier calls.
    """
    config = service.shipping_settings()
    package = req.package
    if package is None:
        if not req.line_items:
            raise HTTPException(
                status_code=422,
                detail={"error": "configuration_error", "field": "package",
                        "message": "Provide a package or line items"},
            )
        try:
            package = service.compute_shipping_weight(req.line_items, config=config)
        except ConfigurationError as e:
            raise HTTPException(status_code=422, detail=e.to_dict())
    return await service.get_shipping_rates(package, req.destination, req.provider_ids, config=config)
