from django.db import transaction
from rest_framework import serializers
from designs.models import ProductDesign
from .models import Order, OrderItem, ShippingAddress


class OrderItemSerializer(serializers.ModelSerializer):
    design_name = serializers.ReadOnlyField(source='design.name')
    design = serializers.PrimaryKeyRelatedField(
        queryset=ProductDesign.objects.filter(status=ProductDesign.Status.ACTIVE)
    )

    class Meta:
        model = OrderItem
        fields = ['id', 'design', 'design_name', 'quantity', 'unit_price', 'total_price']
        read_only_fields = ['unit_price', 'total_price']

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be > 0")
        return value


class ShippingAddressSerializer(serializers.ModelSerializer):
    country = serializers.CharField(max_length=2, required=False, allow_blank=True)

    class Meta:
        model = ShippingAddress
        fields = ['first_name', 'last_name', 'address1', 'address2', 'city', 'state', 'zip', 'country']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True)
    shipping_address = ShippingAddressSerializer()
    lifecycle_state = serializers.ReadOnlyField()

    class Meta:
        model = Order
        fields = [
            "id", "email", "first_name", "last_name", "phone",
            "total_amount", "payment_status", "fulfillment_status",
            "fulfillment_reference", "lifecycle_state",
            "created_at", "items", "shipping_address",
        ]
        read_only_fields = [
            "total_amount", "payment_status", "fulfillment_status",
            "fulfillment_reference", "created_at",
        ]

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required")
        return value

    @transaction.atomic
    def create(self, validated_data):
        items_data = validated_data.pop('items')
        address_data = validated_data.pop('shipping_address')
        order = Order.objects.create(**validated_data)
        total = 0

        for item_data in items_data:
            design = item_data['design']
            quantity = item_data['quantity']
            unit_price = design.selling_price  # get current price
            item = OrderItem.objects.create(
                order=order,
                design=design,
                quantity=quantity,
                unit_price=unit_price,
            )
            total += item.total_price

        if not address_data.get('country'):
            address_data.pop('country', None)  # model default applies
        ShippingAddress.objects.create(
            order=order,
            first_name=address_data.pop('first_name', '') or order.first_name,
            last_name=address_data.pop('last_name', '') or order.last_name,
            **address_data,
        )

        order.total_amount = total
        order.save(update_fields=["total_amount"])
        return order
