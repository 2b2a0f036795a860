"""
Importa partners, ventas y pagos desde archivos JSON a la base de datos.

Uso:
    python manage.py import_commissions <directorio>
    python manage.py import_commissions <directorio> --no-input

El directorio debe contener partners.json, sales.json y payments.json (los
archivos que faltan se leen como vacíos). Reemplaza el contenido de las tablas.
"""

from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from finance.services.store import DatabaseStore, JsonFileStore


class Command(BaseCommand):
    help = "Reemplaza partners, ventas y pagos de la base de datos con los de un directorio JSON."

    def add_arguments(self, parser):
        parser.add_argument("directory", type=str, help="Directorio con los archivos JSON.")
        parser.add_argument(
            "--no-input",
            action="store_true",
            help="Saltar confirmacion (para scripts automatizados).",
        )

    def handle(self, *args, **options):
        directory = Path(options["directory"])
        if not directory.is_dir():
            raise CommandError(f"No existe el directorio {directory}.")

        state = JsonFileStore(directory).load()
        self.stdout.write(f"  Partners: {len(state.partners)}")
        self.stdout.write(f"  Ventas:   {len(state.sales)}")
        self.stdout.write(f"  Pagos:    {len(state.payments)}")

        # Las ventas huérfanas romperían la llave foránea Sale -> Partner
        partner_ids = {p.id for p in state.partners}
        orphans = [s.id for s in state.sales if s.partner_id not in partner_ids]
        if orphans:
            raise CommandError(
                f"Ventas con partner inexistente: {', '.join(orphans)}"
            )

        if not options["no_input"]:
            confirm = input('  Escribe "IMPORTAR" para reemplazar los datos actuales: ')
            if confirm.strip() != "IMPORTAR":
                raise CommandError("Operacion cancelada.")

        DatabaseStore().save(state)
        self.stdout.write(self.style.SUCCESS("Importación completada."))
