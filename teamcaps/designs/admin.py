# designs/admin.py
from django.contrib import admin
from .models import ProductDesign


@admin.register(ProductDesign)
class ProductDesignAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "blueprint_id", "print_provider_id", "base_price", "markup_percentage", "status")
    list_editable = ("status",)
    list_filter = ("status", "product_type", "print_provider_id")
    search_fields = ("name", "description")
