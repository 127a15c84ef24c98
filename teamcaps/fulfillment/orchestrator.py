"""Fulfillment orchestration: one paid order, one provider order.

``fulfill(order_id)`` loads the order, checks idempotency, claims the order,
resolves variants, builds the provider payload, calls the provider and
records the outcome. It always returns a FulfillmentAttemptResult.
"""

import logging

from django.core.exceptions import ObjectDoesNotExist, ValidationError

from orders.models import Order
from orders import services as order_states
from .catalog import VariantResolver
from .client import PrintifyClient
from .conf import TWO_PHASE, order_mode
from .exceptions import (
    CatalogLookupError,
    NoVariantsAvailable,
    OrderNotFound,
    ProviderConfigurationError,
    ProviderRequestError,
)
from .payloads import build_order_payload, build_product_payload
from .types import FulfillmentAttemptResult as Result

logger = logging.getLogger(__name__)


def load_order(order_id):
    """Order plus items, shipping address and designs, keyed by design pk."""
    try:
        order = Order.objects.get(pk=order_id)
    except (Order.DoesNotExist, ValidationError, ValueError):
        raise OrderNotFound(order_id)

    items = list(order.items.select_related("design").order_by("pk"))
    if not items:
        raise OrderNotFound(order_id, "Order items")

    try:
        address = order.shipping_address
    except ObjectDoesNotExist:
        raise OrderNotFound(order_id, "Shipping address")

    designs = {item.design_id: item.design for item in items}
    return order, items, address, designs


def fulfill(order_id, client=None, resolver=None, mode: str = None, retry_errors: bool = False) -> Result:
    """
    Run a single fulfillment attempt for ``order_id``.

    Safe to call repeatedly: an order with a fulfillment reference is never
    sent to the provider again, and concurrent attempts are serialized by
    the order claim. Orders in fulfillment_error are only sent again when an
    operator asks for it with ``retry_errors``.
    """
    try:
        order, items, address, designs = load_order(order_id)
    except OrderNotFound as exc:
        return _finish(Result.failed(Result.NOT_FOUND, order_id, exc))

    if order.fulfillment_reference:
        return _finish(_already_fulfilled(order))

    if order.payment_status != Order.PaymentStatus.PAID:
        return _finish(Result(
            outcome=Result.INVALID,
            order_id=str(order.pk),
            error_kind="payment_not_confirmed",
            message=f"Order payment status is {order.payment_status!r}, expected 'paid'",
        ))

    if order.fulfillment_status == Order.FulfillmentStatus.ERROR and not retry_errors:
        return _finish(_awaiting_operator(order))

    token = order_states.claim_for_fulfillment(order.pk, include_errors=retry_errors)
    if token is None:
        order.refresh_from_db()
        if order.fulfillment_reference:
            return _finish(_already_fulfilled(order))
        if order.fulfillment_status == Order.FulfillmentStatus.ERROR and not retry_errors:
            return _finish(_awaiting_operator(order))
        return _finish(Result(
            outcome=Result.IN_PROGRESS,
            order_id=str(order.pk),
            error_kind="in_progress",
            message="Another fulfillment attempt for this order is in progress",
        ))

    try:
        result = _attempt(order, items, address, designs, token, client, resolver, mode)
    except Exception as exc:
        logger.exception("Unexpected error fulfilling order %s", order.pk, extra={"order_id": str(order.pk)})
        order_states.release_claim(order.pk, token)
        result = Result(
            outcome=Result.ERROR,
            order_id=str(order.pk),
            error_kind="internal_error",
            message=f"Internal error: {exc}",
        )
    return _finish(result)


def _attempt(order, items, address, designs, token, client, resolver, mode) -> Result:
    order_id = order.pk
    try:
        mode = mode or order_mode()
        client = client or PrintifyClient()
        resolver = resolver or VariantResolver(client)
        variants = {design_id: resolver.select(design) for design_id, design in designs.items()}
    except (CatalogLookupError, NoVariantsAvailable) as exc:
        # data problem upstream; leave the order in paid for an operator
        order_states.release_claim(order_id, token)
        return Result.failed(Result.ERROR, order_id, exc)
    except ProviderConfigurationError as exc:
        order_states.record_fulfillment_error(order_id, token, str(exc))
        return Result.failed(Result.ERROR, order_id, exc)

    product_ids = _stored_products(order_id, designs) if mode == TWO_PHASE else {}
    try:
        if mode == TWO_PHASE:
            for design_id, design in designs.items():
                if design_id in product_ids:
                    continue
                product_ids[design_id] = client.create_product(
                    build_product_payload(design, [variants[design_id]])
                )
                order_states.record_provider_products(order_id, token, product_ids)
        payload = build_order_payload(order, items, address, designs, variants, product_ids)
        provider_order_id = client.create_order(payload)
    except ProviderRequestError as exc:
        product_id = _joined(product_ids)
        if exc.retryable:
            if product_ids:
                logger.warning(
                    "Provider products %s exist for order %s; the next attempt reuses them",
                    product_id, order_id,
                    extra={"order_id": str(order_id), "provider_product_id": product_id},
                )
            order_states.release_claim(order_id, token)
            return Result.failed(Result.RETRYABLE, order_id, exc, provider_product_id=product_id, mode=mode)
        if product_ids:
            logger.error(
                "Provider products %s were created for order %s but the order was rejected; "
                "an operator retry reuses them",
                product_id, order_id,
                extra={"order_id": str(order_id), "provider_product_id": product_id},
            )
        order_states.record_fulfillment_error(order_id, token, _diagnostic(exc, product_id))
        extra = {"provider_product_id": product_id, "mode": mode}
        if exc.is_configuration_problem:
            extra["error_kind"] = ProviderConfigurationError.kind
        return Result.failed(Result.ERROR, order_id, exc, **extra)
    except ProviderConfigurationError as exc:
        order_states.record_fulfillment_error(order_id, token, str(exc))
        return Result.failed(Result.ERROR, order_id, exc, mode=mode)

    product_id = _joined(product_ids)
    recorded = order_states.record_fulfilled(order_id, token, provider_order_id, product_id)
    return Result(
        outcome=Result.SUCCESS,
        order_id=str(order_id),
        provider_order_id=provider_order_id,
        provider_product_id=product_id,
        mode=mode,
        message="" if recorded else "Provider order created but the local record was not updated",
    )


def _already_fulfilled(order) -> Result:
    return Result(
        outcome=Result.ALREADY_FULFILLED,
        order_id=str(order.pk),
        provider_order_id=order.fulfillment_reference,
        provider_product_id=order.provider_product_id or None,
        message="Order already fulfilled",
    )


def _awaiting_operator(order) -> Result:
    return Result(
        outcome=Result.INVALID,
        order_id=str(order.pk),
        error_kind="fulfillment_error",
        message="Order is in fulfillment_error and waits for an operator retry",
        diagnostic=order.fulfillment_error or None,
    )


def _stored_products(order_id, designs) -> dict:
    # products created by earlier attempts; read after the claim is held
    stored = (Order.objects
              .filter(pk=order_id)
              .values_list("provider_products", flat=True)
              .first()) or {}
    return {int(design_id): product_id for design_id, product_id in stored.items()
            if int(design_id) in designs}


def _joined(product_ids: dict):
    return ",".join(str(pid) for pid in product_ids.values()) or None


def _diagnostic(exc: ProviderRequestError, product_id=None) -> str:
    parts = [str(exc)]
    if product_id:
        parts.append(f"provider product(s) kept for retry: {product_id}")
    return "; ".join(parts)


def _finish(result: Result) -> Result:
    log = logger.info if result.success else logger.warning
    log(
        "Fulfillment attempt for order %s finished: %s%s",
        result.order_id, result.outcome, f" ({result.message})" if result.message else "",
        extra={
            "order_id": result.order_id,
            "outcome": result.outcome,
            "provider_order_id": result.provider_order_id,
            "error_kind": result.error_kind,
        },
    )
    return result
