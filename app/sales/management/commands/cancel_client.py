"""
Management command para cancelar la relación de un partner con un cliente final.

Uso:
    python manage.py cancel_client --partner <id> --client "<nombre>"
    python manage.py cancel_client --partner <id> --client "<nombre>" --no-input
"""

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from core.normalization import customer_key
from finance.services import operations
from finance.services.store import get_store, run_operation


class Command(BaseCommand):
    help = (
        "Elimina las ventas de un partner para un cliente final y todo el "
        "historial de pagos de comisión asociado."
    )

    def add_arguments(self, parser):
        parser.add_argument("--partner", type=str, required=True, help="Id del partner.")
        parser.add_argument(
            "--client", type=str, required=True, help="Nombre del cliente final."
        )
        parser.add_argument(
            "--no-input",
            action="store_true",
            help="Saltar confirmacion (para scripts automatizados).",
        )

    def handle(self, *args, **options):
        partner_id = options["partner"]
        client = options["client"]
        store = get_store()

        # Contar lo que se va a borrar
        state = store.load()
        key = customer_key(client)
        sale_ids = {
            s.id
            for s in state.sales
            if s.partner_id == partner_id and customer_key(s.customer_name) == key
        }
        payment_count = sum(
            1
            for p in state.payments
            if p.sale_id in sale_ids
            or (p.partner_id == partner_id and customer_key(p.customer_name) == key)
        )

        self.stdout.write("")
        self.stdout.write(self.style.ERROR("=" * 60))
        self.stdout.write(self.style.ERROR("  ATENCION: OPERACION DESTRUCTIVA E IRREVERSIBLE"))
        self.stdout.write(self.style.ERROR("=" * 60))
        self.stdout.write("")
        self.stdout.write(f"  Partner:              {partner_id}")
        self.stdout.write(f"  Cliente final:        {client}")
        self.stdout.write(f"  Ventas a borrar:      {len(sale_ids)}")
        self.stdout.write(f"  Pagos de comision:    {payment_count}")
        self.stdout.write("")

        if not options["no_input"]:
            confirm = input('  Escribe "CANCELAR" para confirmar: ')
            if confirm.strip() != "CANCELAR":
                raise CommandError("Operacion cancelada.")

        try:
            run_operation(operations.cancel_client, partner_id, client, store=store)
        except ValidationError as exc:
            raise CommandError(" ".join(exc.messages))

        self.stdout.write(
            self.style.SUCCESS(
                f"Listo. {len(sale_ids)} ventas y {payment_count} pagos eliminados."
            )
        )
