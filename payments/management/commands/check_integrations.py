from django.core.management.base import BaseCommand, CommandError

from notifications.apps import email_configured
from payments.gateways import GatewayRegistry
from payments.integrations.cashfree import CashfreeConfig, get_order
from shophub.errors import ApiError


class Command(BaseCommand):
    help = "Report which payment and email integrations are configured"

    def add_arguments(self, parser):
        parser.add_argument("--verify-order", dest="verify_order", default="",
                            help="Cashfree order id to look up")

    def _line(self, name, ok, note=""):
        style = self.style.SUCCESS if ok else self.style.WARNING
        state = "configured" if ok else "not configured"
        self.stdout.write(style(f"{name:<10} {state}{f' ({note})' if note else ''}"))

    def handle(self, *args, **opts):
        self._line("email", email_configured())
        for name, ok in GatewayRegistry.from_settings().configured().items():
            self._line(name, ok)
        cashfree = CashfreeConfig.from_settings()
        self._line("cashfree", cashfree.configured, cashfree.environment)

        order_id = opts["verify_order"]
        if not order_id:
            return
        try:
            data = get_order(order_id, cashfree)
        except ApiError as e:
            raise CommandError(f"{order_id}: {e.message}")
        self.stdout.write(self.style.SUCCESS(
            f"{order_id} -> {data.get('order_status')} ({data.get('order_amount')} {data.get('order_currency')})"
        ))
