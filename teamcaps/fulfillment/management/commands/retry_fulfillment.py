"""Management command to retry fulfillment of paid, unfulfilled orders."""

from django.core.management.base import BaseCommand, CommandError

from orders.models import Order
from fulfillment.orchestrator import fulfill


class Command(BaseCommand):
    help = 'Send paid orders without a fulfillment reference to the provider'

    def add_arguments(self, parser):
        parser.add_argument(
            '--order',
            action='append',
            dest='order_ids',
            default=[],
            help='Only retry this order id (repeatable)'
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=50,
            help='Maximum number of orders to attempt (default: 50)'
        )
        parser.add_argument(
            '--include-errors',
            action='store_true',
            help='Also retry orders in fulfillment error state (operator retry)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the orders that would be retried without calling the provider'
        )

    def handle(self, *args, **options):
        statuses = [Order.FulfillmentStatus.PENDING]
        if options['include_errors']:
            statuses.append(Order.FulfillmentStatus.ERROR)

        qs = Order.objects.filter(
            payment_status=Order.PaymentStatus.PAID,
            fulfillment_reference__isnull=True,
            fulfillment_status__in=statuses,
        ).order_by('created_at')
        if options['order_ids']:
            qs = qs.filter(pk__in=options['order_ids'])
        if options['limit'] < 1:
            raise CommandError('--limit must be at least 1')

        order_ids = list(qs.values_list('pk', flat=True)[:options['limit']])

        if options['dry_run']:
            self.stdout.write(f'Would retry {len(order_ids)} order(s)')
            for order_id in order_ids:
                self.stdout.write(f'  - {order_id}')
            return

        counts = {}
        for order_id in order_ids:
            result = fulfill(order_id, retry_errors=options['include_errors'])
            counts[result.outcome] = counts.get(result.outcome, 0) + 1
            line = f'{order_id}: {result.outcome}'
            if result.provider_order_id:
                line += f' ({result.provider_order_id})'
            elif result.message:
                line += f' - {result.message}'
            self.stdout.write(self.style.SUCCESS(line) if result.success else self.style.WARNING(line))

        summary = ', '.join(f'{k}={v}' for k, v in sorted(counts.items())) or 'nothing to do'
        self.stdout.write(f'Retried {len(order_ids)} order(s): {summary}')
