# fulfillment/tests/helpers.py
import json
from decimal import Decimal
from unittest.mock import MagicMock

import requests

from designs.models import ProductDesign
from orders.models import Order, OrderItem, ShippingAddress
from fulfillment.exceptions import ProviderRequestError


def make_design(**overrides):
    data = {
        "name": "Tigers Dad Cap",
        "blueprint_id": 1446,
        "print_provider_id": 217,
        "artwork_image_id": "img_tigers",
        "base_price": Decimal("16.67"),
        "markup_percentage": Decimal("50"),
    }
    data.update(overrides)
    return ProductDesign.objects.create(**data)


def make_order(design=None, quantity=2, unit_price=Decimal("25.00"), paid=True, address=True, **overrides):
    design = design or make_design()
    data = {
        "email": "coach@example.com",
        "first_name": "Pat",
        "last_name": "Coach",
        "payment_status": Order.PaymentStatus.PAID if paid else Order.PaymentStatus.PENDING,
        "payment_reference": "pi_123" if paid else None,
    }
    data.update(overrides)
    order = Order.objects.create(**data)
    OrderItem.objects.create(order=order, design=design, quantity=quantity, unit_price=unit_price)
    order.total_amount = Decimal(unit_price) * quantity
    order.save(update_fields=["total_amount"])
    if address:
        ShippingAddress.objects.create(
            order=order,
            first_name="Pat",
            last_name="Coach",
            address1="1 Harrison Ave",
            city="Boston",
            state="MA",
            zip="02118",
            country="US",
        )
    return order


def variant(variant_id=102226, color="Black", size="One size", available=True):
    return {
        "id": variant_id,
        "title": f"{color} / {size}",
        "options": {"color": color, "size": size},
        "available": available,
    }


class FakePrintify:
    """In-memory stand-in for PrintifyClient; records every call."""

    def __init__(self, variants=None, order_id="prov_999", product_id="prod_1"):
        self.variants = [variant()] if variants is None else variants
        self.order_id = order_id
        self.product_id = product_id
        self.order_errors = []
        self.product_errors = []
        self.on_create_order = None
        self.variant_calls = []
        self.products = []
        self.orders = []

    def get_variants(self, blueprint_id, print_provider_id):
        self.variant_calls.append((blueprint_id, print_provider_id))
        if isinstance(self.variants, Exception):
            raise self.variants
        return self.variants

    def create_product(self, payload):
        self.products.append(payload)
        if self.product_errors:
            raise self.product_errors.pop(0)
        return self.product_id

    def create_order(self, payload):
        self.orders.append(payload)
        if self.on_create_order is not None:
            self.on_create_order(payload)
        if self.order_errors:
            raise self.order_errors.pop(0)
        return self.order_id


def provider_error(status, body=None):
    return ProviderRequestError(
        f"Printify returned HTTP {status}",
        status=status,
        body=body or {"error": f"HTTP {status}"},
        retryable=status >= 500,
    )


def mock_response(status_code=200, json_data=None):
    """Create a mock requests.Response."""
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.text = json.dumps(json_data) if json_data is not None else ""
    if json_data is None:
        resp.json.side_effect = ValueError("No JSON")
    else:
        resp.json.return_value = json_data
    return resp
