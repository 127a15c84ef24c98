# orders/admin.py
import csv
from django.contrib import admin, messages
from django.http import HttpResponse
from fulfillment.orchestrator import fulfill
from .models import Order, OrderItem, ShippingAddress


def export_csv(modeladmin, request, queryset):
    """Export selected orders to CSV with order items details"""
    resp = HttpResponse(content_type='text/csv')
    resp['Content-Disposition'] = 'attachment; filename=orders.csv'
    w = csv.writer(resp)
    w.writerow(["order_id", "design", "qty", "blueprint", "payment_status", "fulfillment_status", "fulfillment_reference"])

    for o in queryset.prefetch_related("items__design"):
        for it in o.items.all():
            w.writerow([
                o.id,
                it.design.name,
                it.quantity,
                it.design.blueprint_id,
                o.payment_status,
                o.fulfillment_status,
                o.fulfillment_reference or "",
            ])
    return resp

export_csv.short_description = "Export to CSV"


def retry_fulfillment(modeladmin, request, queryset):
    """Send selected paid orders to the provider again"""
    for order in queryset:
        result = fulfill(order.pk, retry_errors=True)
        level = messages.SUCCESS if result.success else messages.WARNING
        modeladmin.message_user(request, f"Order {order.pk}: {result.outcome} {result.message}".strip(), level)

retry_fulfillment.short_description = "Retry fulfillment"


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("total_price",)


class ShippingAddressInline(admin.StackedInline):
    model = ShippingAddress
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "email", "total_amount", "payment_status", "fulfillment_status", "fulfillment_reference", "created_at")
    list_filter = ("payment_status", "fulfillment_status")
    search_fields = ("id", "email", "payment_reference", "fulfillment_reference")
    readonly_fields = ("fulfillment_reference", "provider_product_id", "provider_products", "fulfillment_claimed_at", "fulfillment_claim_token")
    inlines = [OrderItemInline, ShippingAddressInline]
    actions = [export_csv, retry_fulfillment]


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "design", "quantity", "unit_price", "total_price")
    list_filter = ("order__fulfillment_status", "design")
    search_fields = ("order__id", "design__name")
