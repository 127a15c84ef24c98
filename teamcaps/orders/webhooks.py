# orders/webhooks.py
import logging

import stripe

from fulfillment.conf import get_setting
from . import services

logger = logging.getLogger(__name__)


class WebhookVerificationError(Exception):
    """Webhook signature missing, stale or wrong, or the body is not an event."""


def construct_event(payload: bytes, signature_header: str):
    """Verify the Stripe signature and decode the event body."""
    secret = get_setting("PAYMENT_WEBHOOK_SECRET")
    if not secret:
        raise WebhookVerificationError("Webhook secret is not configured")
    if not signature_header:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        event = stripe.Webhook.construct_event(
            payload,
            signature_header,
            secret,
            tolerance=int(get_setting("PAYMENT_WEBHOOK_TOLERANCE")),
        )
    except stripe.SignatureVerificationError as exc:
        raise WebhookVerificationError(str(exc)) from exc
    except ValueError as exc:
        raise WebhookVerificationError("Signed payload is not valid JSON") from exc

    if not event.get("type"):
        raise WebhookVerificationError("Signed payload is not an event")
    return event


def handle_event(event, fulfill=None) -> dict:
    """
    Apply a verified payment event.

    ``fulfill`` is called with the order id once a checkout completes.
    Returns a small summary for the webhook response.
    """
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    logger.info("Received payment webhook: %s", event_type)

    if event_type == "checkout.session.completed":
        return _checkout_completed(obj, fulfill)
    if event_type in ("payment_intent.succeeded", "payment_intent.payment_failed"):
        reference = obj.get("id")
        if not reference:
            logger.error("No payment intent id in %s event", event_type)
            return {"updated": 0}
        if event_type == "payment_intent.succeeded":
            return {"updated": services.mark_paid_by_reference(reference)}
        return {"updated": services.mark_payment_failed(reference)}

    logger.info("Unhandled event type: %s", event_type)
    return {"ignored": True}


def _checkout_completed(session, fulfill) -> dict:
    order_id = (session.get("metadata") or {}).get("order_id")
    if not order_id:
        logger.error("No order_id found in checkout session metadata")
        return {"order_id": None}

    order = services.mark_paid(order_id, session.get("payment_intent") or session.get("id"))
    if order is None:
        return {"order_id": order_id, "found": False}

    summary = {"order_id": str(order.pk), "payment_status": order.payment_status}
    if fulfill is not None:
        # orders in fulfillment_error wait for an operator, redeliveries do not resend them
        result = fulfill(order.pk)
        summary["fulfillment"] = result.outcome
        summary["fulfillment_reference"] = result.provider_order_id
    return summary
