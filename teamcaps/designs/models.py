# designs/models.py
from decimal import Decimal, ROUND_HALF_UP

from django.db import models


def calculate_selling_price(base_cost, markup_percentage=50):
    """Base cost plus markup, rounded to cents."""
    price = Decimal(base_cost) * (1 + Decimal(markup_percentage) / 100)
    return price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class ProductDesign(models.Model):
    """
    A customized product authored by a team creator.
    The fulfillment pipeline only reads these rows.
    """

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        ARCHIVED = "archived", "Archived"

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    # provider catalog coordinates
    blueprint_id = models.PositiveIntegerField()
    print_provider_id = models.PositiveIntegerField()

    artwork_image_id = models.CharField(max_length=100)  # provider upload id
    mockup_image_url = models.URLField(blank=True, null=True)

    base_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    markup_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("50.00"))

    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)
    product_type = models.CharField(max_length=50, default="hat")
    team_info = models.JSONField(default=dict, blank=True)

    # creator's preferred color variant, if any
    default_variant_id = models.PositiveIntegerField(null=True, blank=True)
    default_color = models.CharField(max_length=60, blank=True, null=True)

    # overrides for position/x/y/scale/angle of the artwork
    print_placement = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    @property
    def selling_price(self):
        return calculate_selling_price(self.base_price, self.markup_percentage)
