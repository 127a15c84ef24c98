"""Variant resolution against the provider catalog."""

import logging

from django.core.cache import cache

from .conf import get_setting
from .exceptions import CatalogLookupError, NoVariantsAvailable, ProviderRequestError
from .types import CatalogVariant

logger = logging.getLogger(__name__)


class VariantResolver:
    """
    Read-through lookup of purchasable variants per (blueprint, print provider).

    Results are cached for a short TTL. Only non-empty variant sets are cached,
    so a cache miss always falls through to a live lookup.
    """

    cache_prefix = "fulfillment:variants"

    def __init__(self, client, ttl: int = None, cache_backend=None):
        self.client = client
        self.ttl = int(get_setting("CATALOG_CACHE_TTL") if ttl is None else ttl)
        self.cache = cache_backend or cache

    def cache_key(self, blueprint_id, print_provider_id) -> str:
        return f"{self.cache_prefix}:{blueprint_id}:{print_provider_id}"

    def variants(self, blueprint_id: int, print_provider_id: int) -> list:
        """
        Ordered purchasable variants, in provider-returned order.

        Raises CatalogLookupError when the catalog cannot be read and
        NoVariantsAvailable when nothing sellable comes back.
        """
        key = self.cache_key(blueprint_id, print_provider_id)
        cached = self.cache.get(key) if self.ttl > 0 else None
        if cached:
            return list(cached)

        try:
            raw = self.client.get_variants(blueprint_id, print_provider_id)
        except ProviderRequestError as exc:
            raise CatalogLookupError(blueprint_id, print_provider_id, str(exc), status=exc.status) from exc

        try:
            parsed = [CatalogVariant.from_provider(item) for item in raw]
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogLookupError(blueprint_id, print_provider_id, f"malformed variant data: {exc}") from exc

        purchasable = [v for v in parsed if v.available]
        if not purchasable:
            logger.warning(
                "No purchasable variants for blueprint %s / provider %s (%d returned)",
                blueprint_id, print_provider_id, len(parsed),
            )
            raise NoVariantsAvailable(blueprint_id, print_provider_id)

        if self.ttl > 0:
            self.cache.set(key, purchasable, self.ttl)
        return purchasable

    def select(self, design) -> CatalogVariant:
        """
        Pick the variant to order for a design.

        The design's default variant wins when it is currently purchasable,
        otherwise the first purchasable variant in provider order.
        """
        variants = self.variants(design.blueprint_id, design.print_provider_id)
        preferred = getattr(design, "default_variant_id", None)
        if preferred:
            for variant in variants:
                if variant.id == preferred:
                    return variant
            logger.info(
                "Default variant %s of design %s is not purchasable, using %s",
                preferred, design.pk, variants[0].id,
            )
        return variants[0]

    def invalidate(self, blueprint_id: int, print_provider_id: int):
        self.cache.delete(self.cache_key(blueprint_id, print_provider_id))
