# orders/views.py
import logging
from rest_framework import generics, permissions, status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiResponse, OpenApiExample
from fulfillment.orchestrator import fulfill
from .models import Order
from .serializers import OrderSerializer
from . import webhooks
logger = logging.getLogger(__name__)


@extend_schema(
    tags=["Orders"],
    responses={
        201: OpenApiResponse(response=OrderSerializer, description="Order created, payment pending"),
        400: OpenApiResponse(description="Invalid input"),
    },
)
class OrderCreateView(generics.CreateAPIView):
    """
    Records a pending order (items + shipping address) ahead of hosted checkout.
    """
    serializer_class = OrderSerializer
    permission_classes = [permissions.AllowAny]


@extend_schema(tags=["Orders"])
class OrderDetailView(generics.RetrieveAPIView):
    serializer_class = OrderSerializer
    permission_classes = [permissions.AllowAny]
    queryset = Order.objects.prefetch_related("items__design").select_related("shipping_address")


@extend_schema(
    tags=["Payments"],
    request=None,
    responses={
        200: OpenApiResponse(description="Event accepted"),
        400: OpenApiResponse(description="Invalid signature"),
    },
    examples=[
        OpenApiExample(
            "Checkout completed",
            value={
                "received": True,
                "order_id": "0b7f3c8e-5f4e-4d3a-9a57-3b1f0f2e1c11",
                "payment_status": "paid",
                "fulfillment": "success",
                "fulfillment_reference": "5a96f649b2439217d070f507",
            },
            response_only=True,
            status_codes=["200"],
        ),
    ],
)
class PaymentWebhookView(APIView):
    """
    Payment processor webhook.
      - Verify signature before touching anything
      - checkout.session.completed: mark the order paid, then fulfill it
      - payment_intent.succeeded / payment_failed: update payment status by reference
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        try:
            event = webhooks.construct_event(request.body, request.headers.get("Stripe-Signature", ""))
        except webhooks.WebhookVerificationError as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            return Response({"detail": "Invalid signature"}, status=status.HTTP_400_BAD_REQUEST)

        summary = webhooks.handle_event(event, fulfill=fulfill)
        return Response({"received": True, **summary}, status=status.HTTP_200_OK)
