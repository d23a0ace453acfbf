"""FastAPI dependency injection - quote service wiring."""
from functools import lru_cache

from app.config import load_pricing_config, load_shipping_config
from app.services.catalog_store import CatalogStore
from app.services.quote_service import QuoteService


@lru_cache(maxsize=1)
def get_quote_service() -> QuoteService:
    """Process-wide service; the catalog is loaded on first use."""
    pricing_config = load_pricing_config()
    catalog = CatalogStore.load(pricing_config.catalog_path, pricing_config)
    return QuoteService(catalog, pricing_config, shipping_settings=load_shipping_config)
