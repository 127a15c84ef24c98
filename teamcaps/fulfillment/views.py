# fulfillment/views.py
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiResponse, OpenApiExample

from orders.models import Order
from .orchestrator import fulfill
from .serializers import FulfillRequestSerializer, FulfillResponseSerializer
from .types import FulfillmentAttemptResult as Result

OUTCOME_STATUS = {
    Result.SUCCESS: status.HTTP_200_OK,
    Result.ALREADY_FULFILLED: status.HTTP_200_OK,
    Result.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    Result.INVALID: status.HTTP_409_CONFLICT,
    Result.IN_PROGRESS: status.HTTP_409_CONFLICT,
    Result.RETRYABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    Result.ERROR: status.HTTP_502_BAD_GATEWAY,
}


@extend_schema(
    tags=["Fulfillment"],
    request=FulfillRequestSerializer,
    responses={
        200: OpenApiResponse(response=FulfillResponseSerializer, description="Fulfilled or already fulfilled"),
        400: OpenApiResponse(description="Malformed request"),
        404: OpenApiResponse(response=FulfillResponseSerializer, description="Order, items or address missing"),
        409: OpenApiResponse(response=FulfillResponseSerializer, description="Not paid, or attempt in progress"),
        502: OpenApiResponse(response=FulfillResponseSerializer, description="Catalog or provider rejected the order"),
        503: OpenApiResponse(response=FulfillResponseSerializer, description="Provider unavailable, retry later"),
    },
    examples=[
        OpenApiExample(
            "Fulfilled",
            value={
                "success": True,
                "outcome": "success",
                "order_id": "0b7f3c8e-5f4e-4d3a-9a57-3b1f0f2e1c11",
                "fulfillment_reference": "5a96f649b2439217d070f507",
                "status": "processing",
            },
            response_only=True,
            status_codes=["200"],
        ),
        OpenApiExample(
            "Provider down",
            value={
                "success": False,
                "outcome": "retryable",
                "order_id": "0b7f3c8e-5f4e-4d3a-9a57-3b1f0f2e1c11",
                "fulfillment_reference": None,
                "status": "pending",
                "error": {"kind": "provider_request_error", "message": "Printify returned HTTP 503"},
            },
            response_only=True,
            status_codes=["503"],
        ),
    ],
)
class FulfillOrderView(APIView):
    """
    Manual / scheduled retry entry point: {"order_id": ...}.
    Staff only; also re-sends orders in fulfillment_error.
    """
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = FulfillRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = fulfill(serializer.validated_data["order_id"], retry_errors=True)
        fulfillment_status = (Order.objects
                              .filter(pk=result.order_id)
                              .values_list("fulfillment_status", flat=True)
                              .first())
        return Response(
            result.as_response(fulfillment_status),
            status=OUTCOME_STATUS.get(result.outcome, status.HTTP_500_INTERNAL_SERVER_ERROR),
        )
