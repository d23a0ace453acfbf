"""
FedEx rates.

Test mode returns deterministic stub quotes, none of them guaranteed, so
checkout works without credentials. Live mode uses the FedEx REST API: an
OAuth client-credentials token from /oauth/token, then POST
/rate/v1/rates/quotes. Either way the reply is filtered through the
enabled-service allowlist and the provider markup is applied.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from app.config import FEDEX_PRODUCTION_URL, FEDEX_PROVIDER_ID, FedExCredentials, ProviderSettings
from app.models.shipping_schema import Destination, RateQuote, ShippingPackage
from app.services.errors import ProviderError
from app.services.money import round1, round2
from app.services.shipping.base import RateProvider, logger


# ---------------------------------------------------------------------------
# Service catalog: code -> (display name, category)
# ---------------------------------------------------------------------------
FEDEX_SERVICES: Dict[str, Tuple[str, str]] = {
    "FIRST_OVERNIGHT": ("FedEx First Overnight", "express"),
    "PRIORITY_OVERNIGHT": ("FedEx Priority Overnight", "express"),
    "STANDARD_OVERNIGHT": ("FedEx Standard Overnight", "express"),
    "FEDEX_2_DAY_AM": ("FedEx 2Day A.M.", "express"),
    "FEDEX_2_DAY": ("FedEx 2Day", "express"),
    "FEDEX_EXPRESS_SAVER": ("FedEx Express Saver", "express"),
    "FEDEX_GROUND": ("FedEx Ground", "ground"),
    "GROUND_HOME_DELIVERY": ("FedEx Home Delivery", "ground"),
    "FEDEX_REGIONAL_ECONOMY": ("FedEx Regional Economy", "ground"),
    "SMART_POST": ("FedEx Ground Economy", "smartpost"),
    "FEDEX_1_DAY_FREIGHT": ("FedEx 1Day Freight", "freight"),
    "FEDEX_2_DAY_FREIGHT": ("FedEx 2Day Freight", "freight"),
    "FEDEX_3_DAY_FREIGHT": ("FedEx 3Day Freight", "freight"),
    "FEDEX_FREIGHT_ECONOMY": ("FedEx Freight Economy", "freight"),
    "FEDEX_FREIGHT_PRIORITY": ("FedEx Freight Priority", "freight"),
    "FEDEX_NATIONAL_FREIGHT": ("FedEx National Freight", "freight"),
    "INTERNATIONAL_ECONOMY": ("FedEx International Economy", "international"),
    "INTERNATIONAL_PRIORITY": ("FedEx International Priority", "international"),
    "INTERNATIONAL_FIRST": ("FedEx International First", "international"),
    "INTERNATIONAL_GROUND": ("FedEx International Ground", "international"),
    "FEDEX_INTERNATIONAL_CONNECT_PLUS": ("FedEx International Connect Plus", "international"),
    "FEDEX_INTERNATIONAL_PRIORITY_EXPRESS": ("FedEx International Priority Express", "international"),
    "INTERNATIONAL_ECONOMY_FREIGHT": ("FedEx International Economy Freight", "international"),
    "INTERNATIONAL_PRIORITY_FREIGHT": ("FedEx International Priority Freight", "international"),
}

# Stub rates used in test mode: code -> (base, per pound)
TEST_MODE_RATES: Dict[str, Tuple[float, float]] = {
    "FEDEX_GROUND": (12.00, 0.85),
    "FEDEX_2_DAY": (25.00, 1.50),
    "STANDARD_OVERNIGHT": (45.00, 2.00),
}

_OVERNIGHT_CODES = {"FIRST_OVERNIGHT", "PRIORITY_OVERNIGHT", "STANDARD_OVERNIGHT", "FEDEX_1_DAY_FREIGHT"}
_TWO_DAY_CODES = {"FEDEX_2_DAY", "FEDEX_2_DAY_AM", "FEDEX_2_DAY_FREIGHT"}
_THREE_DAY_CODES = {"FEDEX_EXPRESS_SAVER", "FEDEX_3_DAY_FREIGHT"}

# Ground transit by distance between 3-digit ZIP prefixes: (max distance, days)
_GROUND_TRANSIT_BANDS: Tuple[Tuple[int, int], ...] = ((50, 1), (150, 2), (300, 3), (500, 4))
_GROUND_TRANSIT_MAX_DAYS: int = 5

_TRANSIT_WORDS = {
    "ONE_DAY": 1, "TWO_DAYS": 2, "THREE_DAYS": 3, "FOUR_DAYS": 4,
    "FIVE_DAYS": 5, "SIX_DAYS": 6, "SEVEN_DAYS": 7,
}

_OAUTH_PATH = "/oauth/token"
_RATE_PATH = "/rate/v1/rates/quotes"
_DEFAULT_HTTP_TIMEOUT_S: float = 8.0


def estimate_transit_days(service_code: str, origin_zip: str, destination_zip: str) -> Optional[int]:
    """Business-day estimate when the carrier reply carries none."""
    if service_code in _OVERNIGHT_CODES:
        return 1
    if service_code in _TWO_DAY_CODES:
        return 2
    if service_code in _THREE_DAY_CODES:
        return 3
    if FEDEX_SERVICES.get(service_code, ("", ""))[1] not in ("ground", "smartpost"):
        return None
    try:
        distance = abs(int(origin_zip[:3]) - int(destination_zip[:3]))
    except ValueError:
        return None
    for max_distance, days in _GROUND_TRANSIT_BANDS:
        if distance <= max_distance:
            return days
    return _GROUND_TRANSIT_MAX_DAYS


def _transit_text(days: Optional[int]) -> str:
    if days is None:
        return ""
    return f"{days} business day{'s' if days != 1 else ''}"


class FedExProvider(RateProvider):
    provider_id = FEDEX_PROVIDER_ID

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        enabled: bool = True,
        enabled_services: Sequence[str] = tuple(TEST_MODE_RATES),
        credentials: Optional[FedExCredentials] = None,
        base_url: str = FEDEX_PRODUCTION_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_timeout_s: float = _DEFAULT_HTTP_TIMEOUT_S,
    ):
        super().__init__(settings or ProviderSettings(test_mode=True), enabled)
        self.enabled_services = set(enabled_services)
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self.http_timeout_s = http_timeout_s

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _service_for(code: str, destination: Destination) -> str:
        if code == "FEDEX_GROUND" and destination.residential:
            return "GROUND_HOME_DELIVERY"
        return code

    def _allowed(self, code: str) -> bool:
        if code == "GROUND_HOME_DELIVERY":
            return code in self.enabled_services or "FEDEX_GROUND" in self.enabled_services
        return code in self.enabled_services

    def _make_quote(
        self,
        code: str,
        raw_amount: float,
        package: ShippingPackage,
        destination: Destination,
        estimated_days: Optional[int] = None,
        currency: str = "USD",
        guaranteed: bool = False,
    ) -> RateQuote:
        if estimated_days is None:
            estimated_days = estimate_transit_days(code, package.origin_postal_code, destination.postal_code)
        name, _ = FEDEX_SERVICES.get(code, (code.replace("_", " ").title(), "other"))
        return RateQuote(
            provider_id=self.provider_id,
            service_code=code,
            service_name=name,
            amount=self.apply_markup(raw_amount),
            currency=currency,
            transit_description=_transit_text(estimated_days),
            estimated_days=estimated_days,
            guaranteed=guaranteed,
        )

    async def quote(self, package: ShippingPackage, destination: Destination) -> List[RateQuote]:
        if self.test_mode:
            quotes = self._test_mode_quotes(package, destination)
        else:
            quotes = await self._live_quotes(package, destination)
        return sorted(quotes, key=lambda q: q.amount)

    # ------------------------------------------------------------------
    # Test mode
    # ------------------------------------------------------------------

    def _test_mode_quotes(self, package: ShippingPackage, destination: Destination) -> List[RateQuote]:
        weight = package.total_weight
        quotes = []
        for code, (base, per_lb) in TEST_MODE_RATES.items():
            service = self._service_for(code, destination)
            if not self._allowed(service):
                continue
            quotes.append(self._make_quote(service, round2(base + per_lb * weight), package, destination))
        return quotes

    # ------------------------------------------------------------------
    # Live API
    # ------------------------------------------------------------------

    def _rate_request(self, package: ShippingPackage, destination: Destination) -> Dict[str, Any]:
        boxes = max(1, package.box_count)
        box_weight = max(0.1, round1(package.total_weight / boxes))
        dims = package.dimensions
        line_item = {
            "weight": {"units": "LB", "value": box_weight},
            "dimensions": {
                "length": int(dims.length),
                "width": int(dims.width),
                "height": int(dims.height),
                "units": "IN",
            },
        }
        return {
            "accountNumber": {"value": self.credentials.account_number},
            "requestedShipment": {
                "shipper": {"address": {
                    "postalCode": package.origin_postal_code,
                    "stateOrProvinceCode": package.origin_state,
                    "countryCode": "US",
                }},
                "recipient": {"address": {
                    "postalCode": destination.postal_code,
                    "city": destination.city,
                    "stateOrProvinceCode": destination.state,
                    "countryCode": destination.country,
                    "residential": destination.residential,
                }},
                "pickupType": "DROPOFF_AT_FEDEX_LOCATION",
                "rateRequestType": ["ACCOUNT", "LIST"],
                "requestedPackageLineItems": [line_item] * boxes,
            },
        }

    async def _authenticate(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            _OAUTH_PATH,
            data={
                "grant_type": "client_credentials",
                "client_id": self.credentials.api_key,
                "client_secret": self.credentials.secret_key,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise ProviderError(self.provider_id, "OAuth response carried no access token")
        return token

    def _parse_reply(self, data: Dict[str, Any], package: ShippingPackage,
                     destination: Destination) -> List[RateQuote]:
        quotes = []
        for detail in data.get("output", {}).get("rateReplyDetails", []):
            code = self._service_for(detail.get("serviceType", ""), destination)
            if not self._allowed(code):
                continue
            rated = detail.get("ratedShipmentDetails") or []
            if not rated:
                continue
            amount = float(rated[0]["totalNetCharge"])
            currency = rated[0].get("currency", "USD")
            transit_word = (detail.get("operationalDetail") or {}).get("transitTime")
            commit_day = ((detail.get("commit") or {}).get("dateDetail") or {}).get("dayOfWeek")
            quotes.append(self._make_quote(
                code, amount, package, destination,
                estimated_days=_TRANSIT_WORDS.get(transit_word),
                currency=currency,
                guaranteed=commit_day is not None,
            ))
        return quotes

    async def _live_quotes(self, package: ShippingPackage, destination: Destination) -> List[RateQuote]:
        if self.credentials is None:
            raise ProviderError(self.provider_id, "live mode requires FEDEX_API_KEY and FEDEX_SECRET_KEY")
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.http_timeout_s, transport=self._transport
            ) as client:
                token = await self._authenticate(client)
                response = await client.post(
                    _RATE_PATH,
                    json=self._rate_request(package, destination),
                    headers={"Authorization": f"Bearer {token}", "X-locale": "en_US"},
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
            quotes = self._parse_reply(data, package, destination)
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(self.provider_id, f"malformed rate reply: {e}")
        logger.debug(
            "fedex live rates received",
            extra={"provider_id": self.provider_id, "quote_count": len(quotes)},
        )
        return quotes
