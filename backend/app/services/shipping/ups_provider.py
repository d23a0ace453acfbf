"""
UPS rates.

Test mode returns deterministic stub quotes (none guaranteed). Live mode
uses the UPS REST API: an OAuth client-credentials token from
/security/v1/oauth/token (HTTP basic auth), then POST
/api/rating/v2403/Shop, which rates every service in one call. Replies are
filtered through the enabled-service allowlist and the provider markup is
applied.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from app.config import UPS_PRODUCTION_URL, UPS_PROVIDER_ID, ProviderSettings, UPSCredentials
from app.models.shipping_schema import Destination, RateQuote, ShippingPackage
from app.services.errors import ProviderError
from app.services.money import round1, round2
from app.services.shipping.base import RateProvider, logger


UPS_SERVICES: Dict[str, str] = {
    "01": "UPS Next Day Air",
    "02": "UPS 2nd Day Air",
    "03": "UPS Ground",
    "12": "UPS 3 Day Select",
    "13": "UPS Next Day Air Saver",
    "14": "UPS Next Day Air Early",
    "59": "UPS 2nd Day Air A.M.",
}

# Business days by service code; anything unlisted is quoted as 3
_ESTIMATED_DAYS: Dict[str, int] = {"01": 1, "13": 1, "14": 1, "02": 2, "59": 2, "12": 3, "03": 5}
_DEFAULT_ESTIMATED_DAYS: int = 3

# Stub rates used in test mode: code -> (base, per pound)
TEST_MODE_RATES: Dict[str, Tuple[float, float]] = {
    "03": (11.00, 0.80),
    "02": (28.00, 1.60),
    "01": (52.00, 2.25),
}

_OAUTH_PATH = "/security/v1/oauth/token"
_RATE_PATH = "/api/rating/v2403/Shop"
_DEFAULT_HTTP_TIMEOUT_S: float = 8.0


def estimated_days(service_code: str) -> int:
    return _ESTIMATED_DAYS.get(service_code, _DEFAULT_ESTIMATED_DAYS)


class UPSProvider(RateProvider):
    provider_id = UPS_PROVIDER_ID

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        enabled: bool = True,
        enabled_services: Sequence[str] = tuple(TEST_MODE_RATES),
        credentials: Optional[UPSCredentials] = None,
        base_url: str = UPS_PRODUCTION_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_timeout_s: float = _DEFAULT_HTTP_TIMEOUT_S,
    ):
        super().__init__(settings or ProviderSettings(test_mode=True), enabled)
        self.enabled_services = set(enabled_services)
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self.http_timeout_s = http_timeout_s

    def _make_quote(self, code: str, raw_amount: float, currency: str = "USD",
                    guaranteed: bool = False) -> RateQuote:
        days = estimated_days(code)
        return RateQuote(
            provider_id=self.provider_id,
            service_code=code,
            service_name=UPS_SERVICES.get(code, f"UPS service {code}"),
            amount=self.apply_markup(raw_amount),
            currency=currency,
            transit_description=f"{days} business day{'s' if days != 1 else ''}",
            estimated_days=days,
            guaranteed=guaranteed,
        )

    async def quote(self, package: ShippingPackage, destination: Destination) -> List[RateQuote]:
        if self.test_mode:
            quotes = [
                self._make_quote(code, round2(base + per_lb * package.total_weight))
                for code, (base, per_lb) in TEST_MODE_RATES.items()
                if code in self.enabled_services
            ]
        else:
            quotes = await self._live_quotes(package, destination)
        return sorted(quotes, key=lambda q: q.amount)

    # ------------------------------------------------------------------
    # Live API
    # ------------------------------------------------------------------

    def _rate_request(self, package: ShippingPackage, destination: Destination) -> Dict[str, Any]:
        boxes = max(1, package.box_count)
        box_weight = max(0.1, round1(package.total_weight / boxes))
        dims = package.dimensions
        ship_to: Dict[str, Any] = {
            "PostalCode": destination.postal_code,
            "City": destination.city,
            "StateProvinceCode": destination.state,
            "CountryCode": destination.country,
        }
        if destination.residential:
            ship_to["ResidentialAddressIndicator"] = ""
        parcel = {
            "PackagingType": {"Code": "02"},
            "Dimensions": {
                "UnitOfMeasurement": {"Code": "IN"},
                "Length": str(int(dims.length)),
                "Width": str(int(dims.width)),
                "Height": str(int(dims.height)),
            },
            "PackageWeight": {"UnitOfMeasurement": {"Code": "LBS"}, "Weight": str(box_weight)},
        }
        return {
            "RateRequest": {
                "Request": {"RequestOption": "Shop"},
                "Shipment": {
                    "Shipper": {
                        "ShipperNumber": self.credentials.account_number,
                        "Address": {
                            "PostalCode": package.origin_postal_code,
                            "StateProvinceCode": package.origin_state,
                            "CountryCode": "US",
                        },
                    },
                    "ShipTo": {"Address": ship_to},
                    "Package": [parcel] * boxes,
                },
            }
        }

    async def _authenticate(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            _OAUTH_PATH,
            data={"grant_type": "client_credentials"},
            auth=(self.credentials.client_id, self.credentials.client_secret),
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise ProviderError(self.provider_id, "OAuth response carried no access token")
        return token

    def _parse_reply(self, data: Dict[str, Any]) -> List[RateQuote]:
        rated = data.get("RateResponse", {}).get("RatedShipment") or []
        if isinstance(rated, dict):
            rated = [rated]
        quotes = []
        for shipment in rated:
            code = shipment["Service"]["Code"]
            if code not in self.enabled_services:
                continue
            charges = shipment["TotalCharges"]
            guaranteed = "BusinessDaysInTransit" in (shipment.get("GuaranteedDelivery") or {})
            quotes.append(self._make_quote(
                code,
                float(charges["MonetaryValue"]),
                currency=charges.get("CurrencyCode", "USD"),
                guaranteed=guaranteed,
            ))
        return quotes

    async def _live_quotes(self, package: ShippingPackage, destination: Destination) -> List[RateQuote]:
        if self.credentials is None:
            raise ProviderError(self.provider_id, "live mode requires UPS_CLIENT_ID and UPS_CLIENT_SECRET")
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.http_timeout_s, transport=self._transport
            ) as client:
                token = await self._authenticate(client)
                response = await client.post(
                    _RATE_PATH,
                    params={"additionalinfo": "timeintransit"},
                    json=self._rate_request(package, destination),
                    headers={"Authorization": f"Bearer {token}", "transactionSrc": "printquote"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(self.provider_id, f"HTTP {e.response.status_code} from {e.request.url.path}")
        except httpx.HTTPError as e:
            raise ProviderError(self.provider_id, f"request failed: {type(e).__name__}: {e}")
        except ValueError as e:
            raise ProviderError(self.provider_id, f"unreadable response: {e}")

        try:
            quotes = self._parse_reply(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(self.provider_id, f"malformed rate reply: {e}")
        logger.debug(
            "ups live rates received",
            extra={"provider_id": self.provider_id, "quote_count": len(quotes)},
        )
        return quotes
