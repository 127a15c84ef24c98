"""Exceptions for the fulfillment pipeline."""


class FulfillmentError(Exception):
    """Base exception for fulfillment errors."""

    kind = "fulfillment_error"
    retryable = False


class OrderNotFound(FulfillmentError):
    """Order, its line items, its shipping address or a referenced design is missing."""

    kind = "not_found"

    def __init__(self, order_id, what: str = "Order"):
        self.order_id = order_id
        self.what = what
        super().__init__(f"{what} not found for order {order_id}")


class CatalogLookupError(FulfillmentError):
    """Provider catalog endpoint unreachable or returned a non-success status."""

    kind = "catalog_lookup_error"

    def __init__(self, blueprint_id: int, print_provider_id: int, reason: str, status: int = None):
        self.blueprint_id = blueprint_id
        self.print_provider_id = print_provider_id
        self.status = status
        self.reason = reason
        super().__init__(
            f"Catalog lookup failed for blueprint {blueprint_id} / provider {print_provider_id}: {reason}"
        )


class NoVariantsAvailable(FulfillmentError):
    """Catalog lookup succeeded but returned no purchasable variants."""

    kind = "no_variants_available"

    def __init__(self, blueprint_id: int, print_provider_id: int):
        self.blueprint_id = blueprint_id
        self.print_provider_id = print_provider_id
        super().__init__(
            f"No purchasable variants for blueprint {blueprint_id} / provider {print_provider_id}"
        )


class ProviderRequestError(FulfillmentError):
    """Provider call failed.

    ``status`` is None for network errors and timeouts. ``retryable`` is True
    for transient failures (network, timeout, 5xx, 429).
    """

    kind = "provider_request_error"

    def __init__(self, message: str, status: int = None, body=None, retryable: bool = False):
        self.status = status
        self.body = body
        self.retryable = retryable
        super().__init__(message)

    @property
    def is_configuration_problem(self):
        return self.status in (401, 403)


class ProviderResponseError(ProviderRequestError):
    """Provider answered 2xx with a payload we cannot use."""

    kind = "provider_response_error"


class ProviderConfigurationError(FulfillmentError):
    """Missing credentials or a shop that cannot be resolved."""

    kind = "provider_configuration_error"
