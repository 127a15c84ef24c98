"""Printify API client.

Covers the calls the fulfillment pipeline needs:

1. Catalog variants -> ``GET /catalog/blueprints/{bp}/print_providers/{pp}/variants.json``
2. Shop lookup      -> ``GET /shops.json`` (only when no shop id is configured)
3. Product creation -> ``POST /shops/{shop_id}/products.json`` (two-phase mode)
4. Order creation   -> ``POST /shops/{shop_id}/orders.json``

Every failure is raised as :class:`ProviderRequestError` carrying the HTTP
status and body. The client classifies, it never retries or substitutes a
result.
"""

import logging
from typing import Any

import requests
from requests.exceptions import ConnectionError as ReqConnectionError
from requests.exceptions import RequestException, Timeout

from .conf import get_setting
from .exceptions import ProviderConfigurationError, ProviderRequestError, ProviderResponseError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUSES = {408, 425, 429}


def is_retryable_status(status: int) -> bool:
    return status >= 500 or status in _RETRYABLE_STATUSES


class PrintifyClient:
    """Blocking Printify client with a bounded per-request timeout."""

    def __init__(self, api_token: str = None, shop_id: str = None, base_url: str = None,
                 timeout: float = None, session: requests.Session = None):
        self._api_token = api_token if api_token is not None else get_setting("PRINTIFY_API_TOKEN")
        self._shop_id = str(shop_id if shop_id is not None else get_setting("PRINTIFY_SHOP_ID") or "")
        self._base_url = (base_url or get_setting("PRINTIFY_BASE_URL")).rstrip("/")
        self._timeout = timeout if timeout is not None else float(get_setting("REQUEST_TIMEOUT"))
        self._session = session or requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "User-Agent": "teamcaps-fulfillment",
        })

    def __repr__(self):
        return f"PrintifyClient(base_url={self._base_url!r}, shop_id={self._shop_id!r})"

    # -- HTTP layer -----------------------------------------------------------

    def _request(self, method: str, path: str, *, json: dict = None) -> Any:
        if not self._api_token:
            raise ProviderConfigurationError("Printify API token is not configured (PRINTIFY_API_TOKEN)")

        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                json=json,
                headers={"Authorization": f"Bearer {self._api_token}"},
                timeout=self._timeout,
            )
        except Timeout as exc:
            raise ProviderRequestError(
                f"Request to Printify timed out after {self._timeout}s ({method} {path})",
                retryable=True,
            ) from exc
        except ReqConnectionError as exc:
            raise ProviderRequestError(
                f"Could not connect to Printify at {self._base_url}",
                retryable=True,
            ) from exc
        except RequestException as exc:
            raise ProviderRequestError(f"Request error for {method} {path}: {exc}", retryable=True) from exc

        if not response.ok:
            body = _response_body(response)
            raise ProviderRequestError(
                f"Printify returned HTTP {response.status_code} for {method} {path}: {response.text[:500]}",
                status=response.status_code,
                body=body,
                retryable=is_retryable_status(response.status_code),
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderResponseError(
                f"Invalid JSON from Printify for {method} {path}",
                status=response.status_code,
                body=response.text[:500],
            ) from exc

    # -- Shop -----------------------------------------------------------------

    def resolve_shop_id(self) -> str:
        """Configured shop id, or the first shop on the account."""
        if self._shop_id:
            return self._shop_id

        shops = self._request("GET", "/shops.json")
        if not isinstance(shops, list) or not shops or "id" not in shops[0]:
            raise ProviderConfigurationError("No Printify shop could be resolved for this API token")

        self._shop_id = str(shops[0]["id"])
        logger.info("Resolved Printify shop %s", self._shop_id)
        return self._shop_id

    # -- Catalog --------------------------------------------------------------

    def get_variants(self, blueprint_id: int, print_provider_id: int) -> list:
        path = f"/catalog/blueprints/{blueprint_id}/print_providers/{print_provider_id}/variants.json"
        data = self._request("GET", path)
        if isinstance(data, dict):
            data = data.get("variants", [])
        if not isinstance(data, list):
            raise ProviderResponseError(
                f"Unexpected catalog payload for {path}",
                body=data,
            )
        return data

    # -- Products & orders ----------------------------------------------------

    def create_product(self, payload: dict) -> str:
        """Create a shop product. Not idempotent on the provider side, never retried here."""
        shop_id = self.resolve_shop_id()
        data = self._request("POST", f"/shops/{shop_id}/products.json", json=payload)
        return _require_id(data, "product")

    def create_order(self, payload: dict) -> str:
        shop_id = self.resolve_shop_id()
        data = self._request("POST", f"/shops/{shop_id}/orders.json", json=payload)
        return _require_id(data, "order")


def _response_body(response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


def _require_id(data: Any, what: str) -> str:
    if isinstance(data, dict) and data.get("id"):
        return str(data["id"])
    raise ProviderResponseError(f"Printify {what} response is missing an id", body=data)
