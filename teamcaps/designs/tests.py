from decimal import Decimal

from django.test import TestCase

from designs.models import ProductDesign, calculate_selling_price


class ProductDesignModelSmokeTests(TestCase):
    def test_create_design_defaults(self):
        d = ProductDesign.objects.create(
            name="Tigers Dad Cap",
            blueprint_id=1446,
            print_provider_id=217,
            artwork_image_id="img_tigers",
            base_price=Decimal("20.00"),
        )
        self.assertGreater(d.id, 0)
        self.assertEqual(d.status, ProductDesign.Status.ACTIVE)
        self.assertEqual(d.print_placement, {})
        self.assertIsNone(d.default_variant_id)
        self.assertEqual(d.selling_price, Decimal("30.00"))

    def test_selling_price_rounds_half_up(self):
        self.assertEqual(calculate_selling_price(Decimal("16.67")), Decimal("25.01"))
        self.assertEqual(calculate_selling_price(Decimal("10.00"), 0), Decimal("10.00"))
        self.assertEqual(calculate_selling_price("9.99", 25), Decimal("12.49"))
