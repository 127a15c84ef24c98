"""Configuration helpers for the fulfillment app."""

from django.conf import settings

from .exceptions import ProviderConfigurationError

INLINE = "inline"
TWO_PHASE = "two_phase"
ORDER_MODES = (INLINE, TWO_PHASE)

DEFAULTS = {
    "PRINTIFY_API_TOKEN": "",
    "PRINTIFY_SHOP_ID": "",
    "PRINTIFY_BASE_URL": "https://api.printify.com/v1",
    "ORDER_MODE": INLINE,
    "REQUEST_TIMEOUT": 15.0,
    "CATALOG_CACHE_TTL": 900,
    "CLAIM_TIMEOUT": 300,
    "SHIPPING_METHOD": 1,
    "DEFAULT_COUNTRY": "US",
    "PAYMENT_WEBHOOK_SECRET": "",
    "PAYMENT_WEBHOOK_TOLERANCE": 300,
}


def get_setting(name: str, default=None):
    """Get a setting with FULFILLMENT_ prefix."""
    if default is None:
        default = DEFAULTS.get(name)
    return getattr(settings, f"FULFILLMENT_{name}", default)


def order_mode() -> str:
    mode = get_setting("ORDER_MODE")
    if mode not in ORDER_MODES:
        raise ProviderConfigurationError(f"Unknown FULFILLMENT_ORDER_MODE: {mode!r} (expected one of {ORDER_MODES})")
    return mode
