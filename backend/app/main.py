"""
PrintQuote API v1.0
FastAPI front for the print pricing and shipping-rate engines.
"""
import logging
import os
import resource
import sys
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from app.api.deps import get_quote_service
from app.api.pricing_routes import router as pricing_router
from app.api.shipping_routes import router as shipping_router
from app.config import FEDEX_PROVIDER_ID, load_shipping_config
from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware
from app.services.perf_monitor import tracker as perf_tracker

setup_logging(
    level=os.getenv("LOG_LEVEL", "INFO"),
    json_output=os.getenv("LOG_FORMAT", "json").lower() != "text",
)
logger = logging.getLogger("printquote-api")

VERSION = "1.0.0"
_STARTED_AT = time.monotonic()
_DEFAULT_ORIGINS = "http://localhost:3000,http://localhost:8000"


def _max_rss_mb() -> float:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # kilobytes on Linux, bytes on macOS
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(peak / divisor, 2)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = get_quote_service()
    shipping = load_shipping_config()
    logger.info(
        f"PrintQuote ready: {len(service.catalog.products)} configurations, "
        f"carriers={','.join(shipping.enabled_provider_ids) or 'none'}"
    )
    if shipping.provider(FEDEX_PROVIDER_ID).test_mode:
        logger.info("FedEx in test mode; set FEDEX_API_KEY and FEDEX_SECRET_KEY for live rates")
    yield


app = FastAPI(
    title="PrintQuote API",
    version=VERSION,
    description="Print pricing and shipping-rate quotes for the storefront",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", _DEFAULT_ORIGINS).split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Request-ID"],
)
# Added last so it wraps CORS and every route
app.add_middleware(RequestTimingMiddleware)

app.include_router(pricing_router)
app.include_router(shipping_router)


@app.get("/health")
async def health_check():
    shipping = load_shipping_config()
    return {
        "status": "active",
        "version": VERSION,
        "enabled_providers": list(shipping.enabled_provider_ids),
        "fedex_test_mode": shipping.provider(FEDEX_PROVIDER_ID).test_mode,
    }


@app.get("/metrics")
async def metrics():
    """
    Quote throughput, aggregation latency, per-carrier durations and error
    counts from the in-process PerformanceTracker.
    """
    return {
        "uptime_seconds": round(time.monotonic() - _STARTED_AT, 1),
        "memory_usage_mb": _max_rss_mb(),
        **perf_tracker.get_metrics(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=True)
