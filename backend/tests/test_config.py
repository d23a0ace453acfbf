"""Tests for environment-driven settings."""
from app.config import (
    FEDEX_PRODUCTION_URL,
    UPS_PRODUCTION_URL,
    load_pricing_config,
    load_shipping_config,
)


class TestShippingConfig:

    def test_defaults_without_credentials(self):
        config = load_shipping_config({})
        assert config.enabled_provider_ids == ("fedex", "southwest_cargo")
        assert config.provider("fedex").test_mode is True
        assert config.fedex_credentials is None
        assert config.provider("southwest_cargo").markup_multiplier == 1.05
        assert config.provider_timeout_s == 10.0
        assert config.fedex_base_url == FEDEX_PRODUCTION_URL
        assert config.provider("ups").test_mode is True
        assert not config.is_enabled("ups")
        assert config.ups_credentials is None
        assert config.ups_base_url == UPS_PRODUCTION_URL

    def test_credentials_switch_to_live(self):
        config = load_shipping_config({
            "FEDEX_API_KEY": "k", "FEDEX_SECRET_KEY": "s", "FEDEX_ACCOUNT_NUMBER": "123",
        })
        assert config.provider("fedex").test_mode is False
        assert config.fedex_credentials.account_number == "123"

    def test_explicit_test_mode_wins(self):
        config = load_shipping_config({"FEDEX_API_KEY": "k", "FEDEX_SECRET_KEY": "s", "FEDEX_TEST_MODE": "true"})
        assert config.provider("fedex").test_mode is True

    def test_ups_settings(self):
        config = load_shipping_config({
            "SHIPPING_ENABLED_PROVIDERS": "fedex,ups",
            "UPS_CLIENT_ID": "c", "UPS_CLIENT_SECRET": "s", "UPS_ACCOUNT_NUMBER": "A1B2C3",
            "UPS_MARKUP_PCT": "15",
            "UPS_PRIORITY": "1",
            "UPS_ENABLED_SERVICES": "03,12",
            "UPS_BASE_URL": "https://wwwcie.ups.com",
        })
        assert config.is_enabled("ups")
        ups = config.provider("ups")
        assert ups.test_mode is False
        assert ups.priority == 1
        assert ups.markup_percentage == 15.0
        assert config.ups_credentials.account_number == "A1B2C3"
        assert config.ups_enabled_services == ("03", "12")
        assert config.ups_base_url == "https://wwwcie.ups.com"

    def test_ups_test_mode_forced(self):
        config = load_shipping_config({"UPS_CLIENT_ID": "c", "UPS_CLIENT_SECRET": "s", "UPS_TEST_MODE": "1"})
        assert config.provider("ups").test_mode is True

    def test_enabled_list_and_overrides(self):
        config = load_shipping_config({
            "SHIPPING_ENABLED_PROVIDERS": " southwest_cargo ",
            "SOUTHWEST_CARGO_MARKUP_PCT": "10",
            "SHIPPING_PROVIDER_TIMEOUT_S": "2.5",
            "SHIPPING_INTELLIGENT_PACKING": "yes",
            "SHIPPING_ORIGIN_STATE": "ok",
        })
        assert config.enabled_provider_ids == ("southwest_cargo",)
        assert not config.is_enabled("fedex")
        assert config.provider("southwest_cargo").markup_multiplier == 1.1
        assert config.provider_timeout_s == 2.5
        assert config.intelligent_packing_enabled is True
        assert config.origin_state == "OK"


class TestPricingConfig:

    def test_defaults(self):
        config = load_pricing_config({})
        assert (config.custom_quantity_threshold, config.custom_quantity_increment) == (5000, 5000)
        assert config.custom_size_increment == 0.25
        assert config.catalog_path is None

    def test_overrides(self):
        config = load_pricing_config({"CUSTOM_QUANTITY_INCREMENT": "1000", "PRINTQUOTE_CATALOG_PATH": "/tmp/c.json"})
        assert config.custom_quantity_increment == 1000
        assert config.catalog_path == "/tmp/c.json"
