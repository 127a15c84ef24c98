from django.test import SimpleTestCase
from rest_framework import exceptions

from common.exceptions import custom_exception_handler


class ExceptionHandlerTests(SimpleTestCase):
    def test_detail_is_wrapped(self):
        response = custom_exception_handler(exceptions.NotFound("No such order"), {})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {"error": True, "detail": "No such order"})

    def test_field_errors_are_kept(self):
        response = custom_exception_handler(exceptions.ValidationError({"order_id": ["Must be a valid UUID."]}), {})
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.data["error"])
        self.assertEqual(response.data["detail"]["order_id"], ["Must be a valid UUID."])

    def test_unhandled_exception_passes_through(self):
        self.assertIsNone(custom_exception_handler(RuntimeError("boom"), {}))
