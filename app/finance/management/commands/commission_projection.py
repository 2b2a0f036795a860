from django.core.management.base import BaseCommand

from finance.services.projections import build_projections, partner_totals
from finance.services.store import get_store


class Command(BaseCommand):
    help = "Imprime la proyección mensual de comisiones pendientes por partner."

    def add_arguments(self, parser):
        parser.add_argument(
            "--partner",
            type=str,
            default=None,
            help="Id del partner. Si se omite, incluye todos.",
        )

    def handle(self, *args, **options):
        state = get_store().load()
        sales = state.sales
        if options["partner"]:
            sales = tuple(s for s in sales if s.partner_id == options["partner"])

        projections = build_projections(sales, state.payments)
        if not projections:
            self.stdout.write(self.style.WARNING("No hay comisiones pendientes."))
            return

        names = {p.id: p.company_name for p in state.partners}
        for key, projection in projections.items():
            self.stdout.write(self.style.MIGRATE_HEADING(f"{key}  {projection.total:,.2f}"))
            for partner_id, amount in projection.by_partner.items():
                label = names.get(partner_id, partner_id)
                self.stdout.write(f"    {label:<40} {amount:>14,.2f}")
            self.stdout.write(f"    ventas: {len(projection.sales)}")

        self.stdout.write("")
        self.stdout.write("Total pendiente por partner:")
        for partner_id, amount in partner_totals(projections).items():
            label = names.get(partner_id, partner_id)
            self.stdout.write(f"    {label:<40} {amount:>14,.2f}")
