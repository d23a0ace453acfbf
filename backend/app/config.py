"""
Runtime settings for the pricing and shipping engines.

Single source of truth for environment-driven configuration. Values are read
once into frozen models and handed to the engines; nothing re-reads the
environment mid-request.

Environment variables:
  PRINTQUOTE_CATALOG_PATH        JSON catalog file (bundled default when unset)
  CUSTOM_QUANTITY_THRESHOLD      custom quantities above this must be multiples (5000)
  CUSTOM_QUANTITY_INCREMENT      multiple required above the threshold (5000)
  CUSTOM_SIZE_INCREMENT          custom width/height step in inches (0.25)
  SHIPPING_ENABLED_PROVIDERS     comma list, e.g. "fedex,southwest_cargo"
  SHIPPING_PROVIDER_TIMEOUT_S    per-provider timeout (10)
  SHIPPING_ORIGIN_STATE / SHIPPING_ORIGIN_ZIP
  SHIPPING_INTELLIGENT_PACKING   split heavy shipments into 50 lb boxes
  FEDEX_API_KEY / FEDEX_SECRET_KEY / FEDEX_ACCOUNT_NUMBER
  FEDEX_TEST_MODE                defaults to true when no API key is set
  FEDEX_BASE_URL                 production by default, sandbox URL for certification
  FEDEX_MARKUP_PCT / FEDEX_PRIORITY / FEDEX_ENABLED_SERVICES
  SOUTHWEST_CARGO_MARKUP_PCT / SOUTHWEST_CARGO_PRIORITY
  UPS_CLIENT_ID / UPS_CLIENT_SECRET / UPS_ACCOUNT_NUMBER
  UPS_TEST_MODE                  defaults to true when no client id is set
  UPS_BASE_URL                   production by default
  UPS_MARKUP_PCT / UPS_PRIORITY / UPS_ENABLED_SERVICES
                                 UPS is off unless listed in SHIPPING_ENABLED_PROVIDERS
"""
import os
from typing import Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict


FEDEX_PROVIDER_ID = "fedex"
SOUTHWEST_CARGO_PROVIDER_ID = "southwest_cargo"
UPS_PROVIDER_ID = "ups"

FEDEX_SANDBOX_URL = "https://apis-sandbox.fedex.com"
FEDEX_PRODUCTION_URL = "https://apis.fedex.com"
UPS_SANDBOX_URL = "https://wwwcie.ups.com"
UPS_PRODUCTION_URL = "https://onlinetools.ups.com"

_DEFAULT_ENABLED_PROVIDERS = f"{FEDEX_PROVIDER_ID},{SOUTHWEST_CARGO_PROVIDER_ID}"
_DEFAULT_FEDEX_SERVICES = (
    "STANDARD_OVERNIGHT",
    "FEDEX_2_DAY",
    "FEDEX_GROUND",
    "GROUND_HOME_DELIVERY",
)
# UPS service codes: 03 Ground, 02 2nd Day Air, 01 Next Day Air
_DEFAULT_UPS_SERVICES = ("03", "02", "01")
_DEFAULT_PROVIDER_TIMEOUT_S: float = 10.0
_DEFAULT_SOUTHWEST_MARKUP_PCT: float = 5.0
_DEFAULT_FEDEX_MARKUP_PCT: float = 0.0

_TRUTHY = {"1", "true", "yes", "on"}


class PricingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    custom_quantity_threshold: int = 5000
    custom_quantity_increment: int = 5000
    custom_size_increment: float = 0.25
    catalog_path: Optional[str] = None


class ProviderSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: int = 0
    test_mode: bool = False
    markup_percentage: float = 0.0

    @property
    def markup_multiplier(self) -> float:
        return 1 + self.markup_percentage / 100


class FedExCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str
    secret_key: str
    account_number: str


class UPSCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    account_number: str


class ShippingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled_provider_ids: Tuple[str, ...] = (FEDEX_PROVIDER_ID, SOUTHWEST_CARGO_PROVIDER_ID)
    providers: Dict[str, ProviderSettings] = {
        FEDEX_PROVIDER_ID: ProviderSettings(priority=1, test_mode=True),
        SOUTHWEST_CARGO_PROVIDER_ID: ProviderSettings(
            priority=2, markup_percentage=_DEFAULT_SOUTHWEST_MARKUP_PCT
        ),
        UPS_PROVIDER_ID: ProviderSettings(priority=3, test_mode=True),
    }
    fedex_enabled_services: Tuple[str, ...] = _DEFAULT_FEDEX_SERVICES
    fedex_credentials: Optional[FedExCredentials] = None
    fedex_base_url: str = FEDEX_PRODUCTION_URL
    ups_enabled_services: Tuple[str, ...] = _DEFAULT_UPS_SERVICES
    ups_credentials: Optional[UPSCredentials] = None
    ups_base_url: str = UPS_PRODUCTION_URL
    intelligent_packing_enabled: bool = False
    provider_timeout_s: float = _DEFAULT_PROVIDER_TIMEOUT_S
    origin_state: str = "TX"
    origin_postal_code: str = "77092"

    def provider(self, provider_id: str) -> ProviderSettings:
        return self.providers.get(provider_id, ProviderSettings())

    def is_enabled(self, provider_id: str) -> bool:
        return provider_id in self.enabled_provider_ids


# ---------------------------------------------------------------------------
# Environment loaders
# ---------------------------------------------------------------------------

def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def _env_csv(env: Mapping[str, str], name: str, default: str) -> Tuple[str, ...]:
    raw = env.get(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def load_pricing_config(env: Optional[Mapping[str, str]] = None) -> PricingConfig:
    env = os.environ if env is None else env
    return PricingConfig(
        custom_quantity_threshold=int(env.get("CUSTOM_QUANTITY_THRESHOLD", "5000")),
        custom_quantity_increment=int(env.get("CUSTOM_QUANTITY_INCREMENT", "5000")),
        custom_size_increment=float(env.get("CUSTOM_SIZE_INCREMENT", "0.25")),
        catalog_path=env.get("PRINTQUOTE_CATALOG_PATH") or None,
    )


def load_shipping_config(env: Optional[Mapping[str, str]] = None) -> ShippingConfig:
    env = os.environ if env is None else env

    credentials = None
    if env.get("FEDEX_API_KEY") and env.get("FEDEX_SECRET_KEY"):
        credentials = FedExCredentials(
            api_key=env["FEDEX_API_KEY"],
            secret_key=env["FEDEX_SECRET_KEY"],
            account_number=env.get("FEDEX_ACCOUNT_NUMBER", ""),
        )
    fedex_test_mode = _env_bool(env, "FEDEX_TEST_MODE", credentials is None)

    ups_credentials = None
    if env.get("UPS_CLIENT_ID") and env.get("UPS_CLIENT_SECRET"):
        ups_credentials = UPSCredentials(
            client_id=env["UPS_CLIENT_ID"],
            client_secret=env["UPS_CLIENT_SECRET"],
            account_number=env.get("UPS_ACCOUNT_NUMBER", ""),
        )

    return ShippingConfig(
        enabled_provider_ids=_env_csv(env, "SHIPPING_ENABLED_PROVIDERS", _DEFAULT_ENABLED_PROVIDERS),
        providers={
            FEDEX_PROVIDER_ID: ProviderSettings(
                priority=int(env.get("FEDEX_PRIORITY", "1")),
                test_mode=fedex_test_mode,
                markup_percentage=float(env.get("FEDEX_MARKUP_PCT", str(_DEFAULT_FEDEX_MARKUP_PCT))),
            ),
            SOUTHWEST_CARGO_PROVIDER_ID: ProviderSettings(
                priority=int(env.get("SOUTHWEST_CARGO_PRIORITY", "2")),
                markup_percentage=float(
                    env.get("SOUTHWEST_CARGO_MARKUP_PCT", str(_DEFAULT_SOUTHWEST_MARKUP_PCT))
                ),
            ),
            UPS_PROVIDER_ID: ProviderSettings(
                priority=int(env.get("UPS_PRIORITY", "3")),
                test_mode=_env_bool(env, "UPS_TEST_MODE", ups_credentials is None),
                markup_percentage=float(env.get("UPS_MARKUP_PCT", "0")),
            ),
        },
        fedex_enabled_services=_env_csv(env, "FEDEX_ENABLED_SERVICES", ",".join(_DEFAULT_FEDEX_SERVICES)),
        fedex_credentials=credentials,
        fedex_base_url=env.get("FEDEX_BASE_URL", FEDEX_PRODUCTION_URL),
        ups_enabled_services=_env_csv(env, "UPS_ENABLED_SERVICES", ",".join(_DEFAULT_UPS_SERVICES)),
        ups_credentials=ups_credentials,
        ups_base_url=env.get("UPS_BASE_URL", UPS_PRODUCTION_URL),
        intelligent_packing_enabled=_env_bool(env, "SHIPPING_INTELLIGENT_PACKING", False),
        provider_timeout_s=float(env.get("SHIPPING_PROVIDER_TIMEOUT_S", str(_DEFAULT_PROVIDER_TIMEOUT_S))),
        origin_state=env.get("SHIPPING_ORIGIN_STATE", "TX").strip().upper(),
        origin_postal_code=env.get("SHIPPING_ORIGIN_ZIP", "77092").strip(),
    )
