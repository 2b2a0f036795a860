from pathlib import Path

from django.core.management.base import BaseCommand

from finance.services.store import DatabaseStore, JsonFileStore


class Command(BaseCommand):
    help = "Exporta partners, ventas y pagos de la base de datos a archivos JSON."

    def add_arguments(self, parser):
        parser.add_argument("directory", type=str, help="Directorio destino.")

    def handle(self, *args, **options):
        directory = Path(options["directory"])
        state = DatabaseStore().load()
        JsonFileStore(directory).save(state)
        self.stdout.write(
            self.style.SUCCESS(
                f"Exportados {len(state.partners)} partners, {len(state.sales)} ventas "
                f"y {len(state.payments)} pagos a {directory}."
            )
        )
