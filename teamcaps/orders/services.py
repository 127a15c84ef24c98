"""Order lifecycle transitions.

Provides:
- mark_paid / mark_paid_by_reference / mark_payment_failed: payment side
- claim_for_fulfillment / release_claim: per-order compare-and-set lock
- record_provider_products: two-phase products created so far
- record_fulfilled / record_fulfillment_error: fulfillment outcome writes

Each write is a single conditional UPDATE and is logged on its own. None of
them undo provider-side effects.
"""

import logging
import uuid
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone

from fulfillment.conf import get_setting
from .models import Order

logger = logging.getLogger(__name__)


def mark_paid(order_id, payment_reference: str = None):
    """
    created -> paid, on a verified payment confirmation.

    Returns the order, or None when no such order exists (not fatal).
    """
    try:
        order = Order.objects.get(pk=order_id)
    except (Order.DoesNotExist, ValidationError, ValueError):
        logger.warning("Payment confirmed for unknown order %s", order_id, extra={"order_id": str(order_id)})
        return None

    if order.payment_status == Order.PaymentStatus.PAID:
        logger.info("Order %s already marked paid", order.pk, extra={"order_id": str(order.pk)})
        return order

    order.payment_status = Order.PaymentStatus.PAID
    update_fields = ["payment_status", "updated_at"]
    if payment_reference:
        order.payment_reference = payment_reference
        update_fields.append("payment_reference")
    order.save(update_fields=update_fields)

    logger.info("Order %s marked as paid", order.pk, extra={"order_id": str(order.pk)})
    return order


def mark_paid_by_reference(payment_reference: str) -> int:
    if not payment_reference:
        return 0
    updated = (Order.objects
               .filter(payment_reference=payment_reference)
               .exclude(payment_status=Order.PaymentStatus.PAID)
               .update(payment_status=Order.PaymentStatus.PAID, updated_at=timezone.now()))
    logger.info("Payment %s marked as succeeded (%d order(s))", payment_reference, updated)
    return updated


def mark_payment_failed(payment_reference: str) -> int:
    if not payment_reference:
        return 0
    # a paid order never moves back to failed
    updated = (Order.objects
               .filter(payment_reference=payment_reference, payment_status=Order.PaymentStatus.PENDING)
               .update(payment_status=Order.PaymentStatus.FAILED, updated_at=timezone.now()))
    logger.info("Payment %s marked as failed (%d order(s))", payment_reference, updated)
    return updated


def _claimable(now):
    stale_before = now - timedelta(seconds=int(get_setting("CLAIM_TIMEOUT")))
    return Q(fulfillment_claimed_at__isnull=True) | Q(fulfillment_claimed_at__lt=stale_before)


def claim_for_fulfillment(order_id, include_errors: bool = False):
    """
    Take the per-order fulfillment lock.

    Succeeds only while the fulfillment reference is null and no live claim
    exists. Orders in fulfillment_error are claimable only with
    ``include_errors`` (operator retry). Returns the claim token, or None.
    """
    now = timezone.now()
    token = uuid.uuid4().hex
    qs = Order.objects.filter(_claimable(now), pk=order_id, fulfillment_reference__isnull=True)
    if not include_errors:
        qs = qs.exclude(fulfillment_status=Order.FulfillmentStatus.ERROR)
    claimed = qs.update(fulfillment_claimed_at=now, fulfillment_claim_token=token)
    if not claimed:
        return None
    return token


def release_claim(order_id, token: str) -> bool:
    released = (Order.objects
                .filter(pk=order_id, fulfillment_claim_token=token)
                .update(fulfillment_claimed_at=None, fulfillment_claim_token=""))
    return bool(released)


def record_provider_products(order_id, token: str, products: dict) -> bool:
    """
    Remember two-phase products as soon as they exist.

    ``products`` maps design pk to provider product id. Later attempts reuse
    them instead of creating the product again.
    """
    stored = {str(design_id): str(product_id) for design_id, product_id in products.items()}
    updated = (Order.objects
               .filter(pk=order_id, fulfillment_claim_token=token)
               .update(
                   provider_products=stored,
                   provider_product_id=",".join(stored.values()),
                   updated_at=timezone.now(),
               ))
    if updated:
        logger.info("Order %s provider products: %s", order_id, ", ".join(stored.values()),
                    extra={"order_id": str(order_id)})
    return bool(updated)


def record_fulfilled(order_id, token: str, provider_order_id: str, provider_product_id: str = None) -> bool:
    """
    fulfilling -> fulfilled.

    Sets the reference only if it is still null and our claim still holds.
    Returns False when the write lost the race or failed; the provider order
    exists either way and is left for reconciliation.
    """
    try:
        updated = (Order.objects
                   .filter(pk=order_id, fulfillment_reference__isnull=True, fulfillment_claim_token=token)
                   .update(
                       fulfillment_reference=provider_order_id,
                       provider_product_id=provider_product_id or "",
                       fulfillment_status=Order.FulfillmentStatus.PROCESSING,
                       fulfillment_error="",
                       fulfillment_claimed_at=None,
                       fulfillment_claim_token="",
                       updated_at=timezone.now(),
                   ))
    except DatabaseError:
        logger.exception(
            "Failed to record provider order %s for order %s; reconcile manually",
            provider_order_id, order_id,
            extra={"order_id": str(order_id), "provider_order_id": provider_order_id},
        )
        return False

    if not updated:
        logger.error(
            "Order %s was not updated with provider order %s (reference already set or claim lost)",
            order_id, provider_order_id,
            extra={"order_id": str(order_id), "provider_order_id": provider_order_id},
        )
        return False

    logger.info(
        "Order %s fulfilled with provider order %s", order_id, provider_order_id,
        extra={"order_id": str(order_id), "provider_order_id": provider_order_id},
    )
    return True


def record_fulfillment_error(order_id, token: str, diagnostic: str) -> bool:
    """paid -> fulfillment_error, with a human readable cause."""
    diagnostic = (diagnostic or "").strip() or "Fulfillment failed without a diagnostic from the provider"
    try:
        updated = (Order.objects
                   .filter(pk=order_id, fulfillment_reference__isnull=True, fulfillment_claim_token=token)
                   .update(
                       fulfillment_status=Order.FulfillmentStatus.ERROR,
                       fulfillment_error=diagnostic,
                       fulfillment_claimed_at=None,
                       fulfillment_claim_token="",
                       updated_at=timezone.now(),
                   ))
    except DatabaseError:
        logger.exception("Failed to record fulfillment error for order %s", order_id,
                         extra={"order_id": str(order_id)})
        return False

    if updated:
        logger.warning("Order %s moved to fulfillment_error: %s", order_id, diagnostic,
                       extra={"order_id": str(order_id)})
    return bool(updated)
