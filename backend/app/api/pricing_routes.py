"""Pricing routes - itemized print price for a catalog product."""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.deps import get_quote_service
from app.models.pricing_schema import PriceBreakdown
from app.services.errors import ConfigurationError
from app.services.quote_service import QuoteService

router = APIRouter(prefix="/api/pricing", tags=["Pricing"])
logger = logging.getLogger("printquote-api")


class AddonSelectionIn(BaseModel):
    addon_id: str
    values: Dict[str, Any] = {}


class PriceRequest(BaseModel):
    configuration_id: str
    quantity: int = Field(..., description="Pieces ordered")
    turnaround_id: Optional[str] = None
    addons: List[AddonSelectionIn] = []
    custom_width: Optional[float] = None
    custom_height: Optional[float] = None


@router.get("/configurations")
async def list_configurations(service: QuoteService = Depends(get_quote_service)):
    return [
        {"id": product.id, "name": product.name, "addon_ids": product.addon_ids,
         "turnaround_ids": product.turnaround_ids}
        for product in (service.catalog.product(pid) for pid in service.catalog.product_ids())
    ]


@router.post("/calculate", response_model=PriceBreakdown)
def calculate_price(req: PriceRequest, service: QuoteService = Depends(get_quote_service)):
    try:
        return service.compute_price(
            req.configuration_id,
            req.quantity,
            turnaround_id=req.turnaround_id,
            addons=[a.model_dump() for a in req.addons],
            custom_width=req.custom_width,
            custom_height=req.custom_height,
        )
    except ConfigurationError as e:
        logger.info("price rejected", extra={"configuration_id": req.configuration_id, "error": e.message})
        raise HTTPException(status_code=422, detail=e.to_dict())
