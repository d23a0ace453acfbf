"""
Error taxonomy for the pricing and shipping engines.

ConfigurationError is caller-fixable (bad catalog data, bad selection) and is
never converted into a zero price. ProviderError is environmental and is only
absorbed by the RateAggregator, which records it per provider.
"""
from typing import Optional


class PrintQuoteError(Exception):
    """Base class for every error raised by the quote engines."""


class ConfigurationError(PrintQuoteError):
    """Invalid or incomplete product, add-on, or catalog configuration."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"error": "configuration_error", "field": self.field, "message": self.message}


class ProviderError(PrintQuoteError):
    """A shipping rate provider could not produce quotes."""

    def __init__(self, provider_id: str, message: str):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.message = message
