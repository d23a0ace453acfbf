"""Common interface for carrier rate providers."""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from app.config import ProviderSettings
from app.models.shipping_schema import Destination, ModuleStatus, RateQuote, ShippingPackage
from app.services.money import round2

logger = logging.getLogger("printquote-api.shipping")


class RateProvider(ABC):
    """
    A carrier module. ``quote`` returns zero or more quotes (an empty list
    means the carrier has no offer for this shipment) or raises ProviderError.
    """

    provider_id: str = ""

    def __init__(self, settings: Optional[ProviderSettings] = None, enabled: bool = True):
        self.settings = settings or ProviderSettings()
        self.enabled = enabled

    @property
    def priority(self) -> int:
        return self.settings.priority

    @property
    def test_mode(self) -> bool:
        return self.settings.test_mode

    def status(self) -> ModuleStatus:
        return ModuleStatus(enabled=self.enabled, priority=self.priority, test_mode=self.test_mode)

    def apply_markup(self, amount: float) -> float:
        return round2(amount * self.settings.markup_multiplier)

    @abstractmethod
    async def quote(self, package: ShippingPackage, destination: Destination) -> List[RateQuote]:
        ...
