# fulfillment/tests/test_orchestrator.py
import threading
from datetime import timedelta
from unittest.mock import MagicMock

from django.core.cache import cache
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone

from orders.models import Order
from fulfillment.client import PrintifyClient
from fulfillment.conf import TWO_PHASE
from fulfillment.exceptions import ProviderConfigurationError, ProviderRequestError
from fulfillment.orchestrator import fulfill
from fulfillment.types import FulfillmentAttemptResult as Result
from .helpers import FakePrintify, make_design, make_order, mock_response, provider_error, variant


class FulfillOrchestratorTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = FakePrintify()
        self.order = make_order()

    def test_success_records_provider_reference(self):
        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.SUCCESS)
        self.assertEqual(result.provider_order_id, "prov_999")
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_reference, "prov_999")
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.PROCESSING)
        self.assertEqual(self.order.lifecycle_state, Order.Lifecycle.FULFILLED)
        self.assertIsNone(self.order.fulfillment_claimed_at)

    def test_second_call_is_already_fulfilled(self):
        first = fulfill(self.order.pk, client=self.client)
        second = fulfill(self.order.pk, client=self.client)

        self.assertEqual(first.outcome, Result.SUCCESS)
        self.assertEqual(second.outcome, Result.ALREADY_FULFILLED)
        self.assertEqual(second.provider_order_id, first.provider_order_id)
        self.assertEqual(len(self.client.orders), 1)

    def test_duplicate_attempt_during_provider_call_does_not_create_second_order(self):
        inner = []
        self.client.on_create_order = lambda payload: inner.append(fulfill(self.order.pk, client=self.client))

        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.SUCCESS)
        self.assertEqual(len(self.client.orders), 1)
        self.assertEqual(inner[0].outcome, Result.IN_PROGRESS)
        self.assertTrue(inner[0].retryable)

    def test_stale_claim_is_taken_over(self):
        Order.objects.filter(pk=self.order.pk).update(
            fulfillment_claimed_at=timezone.now() - timedelta(hours=1),
            fulfillment_claim_token="deadbeef",
        )
        result = fulfill(self.order.pk, client=self.client)
        self.assertEqual(result.outcome, Result.SUCCESS)

    def test_no_variants_leaves_reference_null(self):
        self.client.variants = [variant(available=False)]

        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.ERROR)
        self.assertEqual(result.error_kind, "no_variants_available")
        self.assertEqual(self.client.orders, [])
        self.order.refresh_from_db()
        self.assertIsNone(self.order.fulfillment_reference)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PAID)
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.PENDING)
        self.assertIsNone(self.order.fulfillment_claimed_at)

    def test_catalog_lookup_failure_is_fatal_for_attempt(self):
        self.client.variants = provider_error(502)

        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.ERROR)
        self.assertEqual(result.error_kind, "catalog_lookup_error")
        self.order.refresh_from_db()
        self.assertEqual(self.order.lifecycle_state, Order.Lifecycle.PAID)

    def test_provider_5xx_is_retryable_then_succeeds(self):
        self.client.order_errors = [provider_error(503)]

        first = fulfill(self.order.pk, client=self.client)

        self.assertEqual(first.outcome, Result.RETRYABLE)
        self.assertTrue(first.retryable)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PAID)
        self.assertIsNone(self.order.fulfillment_reference)
        self.assertEqual(self.order.lifecycle_state, Order.Lifecycle.PAID)

        second = fulfill(self.order.pk, client=self.client)

        self.assertEqual(second.outcome, Result.SUCCESS)
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_reference, "prov_999")
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.PROCESSING)

    def test_timeout_is_retryable(self):
        self.client.order_errors = [ProviderRequestError("timed out", retryable=True)]
        result = fulfill(self.order.pk, client=self.client)
        self.assertEqual(result.outcome, Result.RETRYABLE)

    def test_provider_4xx_moves_order_to_fulfillment_error(self):
        self.client.order_errors = [provider_error(400, {"errors": {"reason": "Invalid variant"}})]

        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.ERROR)
        self.assertEqual(result.error_kind, "provider_request_error")
        self.assertEqual(result.diagnostic, {"errors": {"reason": "Invalid variant"}})
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.ERROR)
        self.assertEqual(self.order.lifecycle_state, Order.Lifecycle.FULFILLMENT_ERROR)
        self.assertTrue(self.order.fulfillment_error)
        self.assertIsNone(self.order.fulfillment_reference)

    def test_fulfillment_error_waits_for_operator(self):
        self.client.order_errors = [provider_error(422)]
        fulfill(self.order.pk, client=self.client)

        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.INVALID)
        self.assertEqual(result.error_kind, "fulfillment_error")
        self.assertEqual(len(self.client.orders), 1)
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.ERROR)

    def test_operator_retry_after_fulfillment_error(self):
        self.client.order_errors = [provider_error(422)]
        fulfill(self.order.pk, client=self.client)

        result = fulfill(self.order.pk, client=self.client, retry_errors=True)

        self.assertEqual(result.outcome, Result.SUCCESS)
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.PROCESSING)
        self.assertEqual(self.order.fulfillment_error, "")

    def test_rejected_credentials_are_a_configuration_error(self):
        self.client.order_errors = [provider_error(401, {"error": "Unauthenticated"})]

        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.ERROR)
        self.assertEqual(result.error_kind, "provider_configuration_error")
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.ERROR)

    def test_configuration_problem_is_recorded(self):
        self.client.order_errors = [ProviderConfigurationError("No Printify shop could be resolved")]

        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.ERROR)
        self.assertEqual(result.error_kind, "provider_configuration_error")
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.ERROR)
        self.assertIn("shop", self.order.fulfillment_error)

    @override_settings(FULFILLMENT_PRINTIFY_API_TOKEN="")
    def test_missing_token_is_a_configuration_error(self):
        result = fulfill(self.order.pk)

        self.assertEqual(result.outcome, Result.ERROR)
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.ERROR)
        self.assertIsNone(self.order.fulfillment_reference)

    def test_unpaid_order_is_not_sent(self):
        order = make_order(paid=False)

        result = fulfill(order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.INVALID)
        self.assertEqual(self.client.orders, [])

    def test_missing_records_are_not_found(self):
        no_address = make_order(address=False)

        self.assertEqual(fulfill(no_address.pk, client=self.client).outcome, Result.NOT_FOUND)
        self.assertEqual(fulfill("1a2b3c4d-0000-0000-0000-000000000000", client=self.client).outcome, Result.NOT_FOUND)
        self.assertEqual(fulfill("not-a-uuid", client=self.client).outcome, Result.NOT_FOUND)
        self.assertEqual(self.client.orders, [])

    def test_unexpected_error_returns_definite_outcome(self):
        self.client.order_errors = [RuntimeError("boom")]

        result = fulfill(self.order.pk, client=self.client)

        self.assertEqual(result.outcome, Result.ERROR)
        self.assertEqual(result.error_kind, "internal_error")
        self.order.refresh_from_db()
        self.assertIsNone(self.order.fulfillment_claimed_at)


class TwoPhaseFulfillmentTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = FakePrintify(order_id="prov_42", product_id="prod_7")
        self.order = make_order()

    def test_product_then_order(self):
        result = fulfill(self.order.pk, client=self.client, mode=TWO_PHASE)

        self.assertEqual(result.outcome, Result.SUCCESS)
        self.assertEqual(result.mode, TWO_PHASE)
        self.assertEqual(len(self.client.products), 1)
        line = self.client.orders[0]["line_items"][0]
        self.assertEqual(line, {"product_id": "prod_7", "variant_id": 102226, "quantity": 2})
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_reference, "prov_42")
        self.assertEqual(self.order.provider_product_id, "prod_7")

    def test_order_failure_after_product_keeps_product_id_for_cleanup(self):
        self.client.order_errors = [provider_error(400)]

        result = fulfill(self.order.pk, client=self.client, mode=TWO_PHASE)

        self.assertEqual(result.outcome, Result.ERROR)
        self.assertEqual(result.provider_product_id, "prod_7")
        self.order.refresh_from_db()
        self.assertIn("prod_7", self.order.fulfillment_error)
        self.assertIsNone(self.order.fulfillment_reference)

    def test_product_failure_sends_no_order(self):
        self.client.product_errors = [provider_error(500)]

        result = fulfill(self.order.pk, client=self.client, mode=TWO_PHASE)

        self.assertEqual(result.outcome, Result.RETRYABLE)
        self.assertEqual(self.client.orders, [])
        self.assertIsNone(result.provider_product_id)

    def test_retry_reuses_product_created_before_order_failure(self):
        self.client.order_errors = [provider_error(503)]

        first = fulfill(self.order.pk, client=self.client, mode=TWO_PHASE)
        self.order.refresh_from_db()
        self.assertEqual(self.order.provider_product_id, "prod_7")
        second = fulfill(self.order.pk, client=self.client, mode=TWO_PHASE)

        self.assertEqual(first.outcome, Result.RETRYABLE)
        self.assertEqual(first.provider_product_id, "prod_7")
        self.assertEqual(second.outcome, Result.SUCCESS)
        self.assertEqual(len(self.client.products), 1)
        self.assertEqual(self.client.orders[-1]["line_items"][0]["product_id"], "prod_7")
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_reference, "prov_42")
        self.assertEqual(self.order.provider_product_id, "prod_7")

    def test_operator_retry_reuses_product_after_rejection(self):
        self.client.order_errors = [provider_error(400)]
        fulfill(self.order.pk, client=self.client, mode=TWO_PHASE)

        result = fulfill(self.order.pk, client=self.client, mode=TWO_PHASE, retry_errors=True)

        self.assertEqual(result.outcome, Result.SUCCESS)
        self.assertEqual(len(self.client.products), 1)


@override_settings(FULFILLMENT_PRINTIFY_SHOP_ID="123")
class EndToEndFulfillmentTests(TestCase):
    def setUp(self):
        cache.clear()

    def test_order_reaches_provider_with_resolved_variant(self):
        design = make_design(blueprint_id=1446, print_provider_id=217)
        order = make_order(design=design, quantity=2)
        session = MagicMock()
        session.headers = {}
        session.request.side_effect = [
            mock_response(200, {"id": 1446, "variants": [variant(102226)]}),
            mock_response(200, {"id": "prov_999"}),
        ]
        client = PrintifyClient(api_token="token", session=session)

        result = fulfill(order.pk, client=client)

        self.assertEqual(result.outcome, Result.SUCCESS)
        method, url = session.request.call_args_list[1].args
        payload = session.request.call_args_list[1].kwargs["json"]
        self.assertEqual(method, "POST")
        self.assertTrue(url.endswith("/shops/123/orders.json"))
        self.assertEqual(payload["external_id"], str(order.pk))
        self.assertEqual(len(payload["line_items"]), 1)
        self.assertEqual(payload["line_items"][0]["variant_id"], 102226)
        self.assertEqual(payload["line_items"][0]["quantity"], 2)
        self.assertEqual(payload["address_to"]["city"], "Boston")
        self.assertEqual(payload["address_to"]["region"], "MA")
        self.assertEqual(payload["address_to"]["zip"], "02118")
        self.assertEqual(payload["address_to"]["country"], "US")

        order.refresh_from_db()
        self.assertEqual(order.fulfillment_status, "processing")
        self.assertEqual(order.fulfillment_reference, "prov_999")


class ConcurrentFulfillmentTests(TransactionTestCase):
    def setUp(self):
        cache.clear()
        self.order = make_order()

    def test_attempt_on_another_thread_blocks_second_attempt(self):
        in_provider_call = threading.Event()
        release = threading.Event()
        provider = FakePrintify()
        provider.on_create_order = lambda payload: (in_provider_call.set(), release.wait(10))
        results = []

        def first_attempt():
            try:
                results.append(fulfill(self.order.pk, client=provider))
            finally:
                connection.close()

        worker = threading.Thread(target=first_attempt)
        worker.start()
        self.assertTrue(in_provider_call.wait(10))

        second = fulfill(self.order.pk, client=provider)
        release.set()
        worker.join(10)

        self.assertEqual(second.outcome, Result.IN_PROGRESS)
        self.assertEqual(results[0].outcome, Result.SUCCESS)
        self.assertEqual(len(provider.orders), 1)
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_reference, "prov_999")
