# orders/models.py
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from designs.models import ProductDesign


def default_country():
    return getattr(settings, "FULFILLMENT_DEFAULT_COUNTRY", "US")


class Order(models.Model):
    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"

    class FulfillmentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        ERROR = "error", "Error"

    class Lifecycle(models.TextChoices):
        CREATED = "created", "Created"
        PAID = "paid", "Paid"
        FULFILLING = "fulfilling", "Fulfilling"
        FULFILLED = "fulfilled", "Fulfilled"
        FULFILLMENT_ERROR = "fulfillment_error", "Fulfillment error"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    email = models.EmailField()
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=30, blank=True, null=True)

    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    payment_reference = models.CharField(max_length=255, blank=True, null=True, db_index=True)

    fulfillment_status = models.CharField(
        max_length=12, choices=FulfillmentStatus.choices, default=FulfillmentStatus.PENDING
    )
    # provider order id; non-null means "already fulfilled"
    fulfillment_reference = models.CharField(max_length=100, blank=True, null=True, unique=True)
    provider_product_id = models.CharField(max_length=100, blank=True)
    # design pk -> provider product id, kept across attempts in two-phase mode
    provider_products = models.JSONField(default=dict, blank=True)
    fulfillment_error = models.TextField(blank=True)

    # compare-and-set claim held while a fulfillment attempt is in flight
    fulfillment_claimed_at = models.DateTimeField(null=True, blank=True)
    fulfillment_claim_token = models.CharField(max_length=32, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Order {self.id} ({self.email})"

    @property
    def customer_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_fulfilled(self):
        return bool(self.fulfillment_reference)

    @property
    def lifecycle_state(self):
        if self.fulfillment_reference:
            return self.Lifecycle.FULFILLED
        if self.fulfillment_status == self.FulfillmentStatus.ERROR:
            return self.Lifecycle.FULFILLMENT_ERROR
        if self.payment_status != self.PaymentStatus.PAID:
            return self.Lifecycle.CREATED
        if self.fulfillment_claimed_at is not None:
            return self.Lifecycle.FULFILLING
        return self.Lifecycle.PAID


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    design = models.ForeignKey(ProductDesign, on_delete=models.PROTECT, related_name="order_items")
    quantity = models.PositiveIntegerField(default=1)

    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    def __str__(self):
        return f"{self.design.name} x {self.quantity}"

    def save(self, *args, **kwargs):
        self.total_price = Decimal(self.unit_price) * self.quantity
        super().save(*args, **kwargs)


class ShippingAddress(models.Model):
    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name="shipping_address")
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    address1 = models.CharField(max_length=255)
    address2 = models.CharField(max_length=255, blank=True, null=True)
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True)
    zip = models.CharField(max_length=20)
    country = models.CharField(max_length=2, default=default_country)

    def __str__(self):
        return f"{self.address1}, {self.city} {self.zip} ({self.country})"
