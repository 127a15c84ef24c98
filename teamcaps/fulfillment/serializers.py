# fulfillment/serializers.py
from rest_framework import serializers


class FulfillRequestSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()


class FulfillResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    outcome = serializers.CharField()
    order_id = serializers.CharField()
    fulfillment_reference = serializers.CharField(allow_null=True)
    status = serializers.CharField(allow_null=True)
    provider_product_id = serializers.CharField(required=False)
    error = serializers.DictField(required=False)
