"""
Persistencia del estado de comisiones.

Contrato mínimo: ``load() -> CommissionState`` y ``save(state)``. El motor no
sabe de dónde viene el estado; las vistas y los comandos cargan, aplican una
operación pura y guardan.
"""
import json
import logging
import os
import tempfile
from pathlib import Path

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

from finance.models import PaymentRecord as PaymentRecordModel
from finance.records import (
    AutomaticPlan,
    CommissionState,
    CustomInstallment,
    CustomPlan,
    Partner,
    PaymentRecord,
    PlanType,
    Sale,
)
from finance.services.serialization import (
    partner_to_dict,
    payment_to_dict,
    sale_to_dict,
    state_from_payload,
)
from finance.services.schedule import custom_installment_id
from partners.models import Partner as PartnerModel
from sales.models import CustomInstallment as CustomInstallmentModel
from sales.models import Sale as SaleModel

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Tres archivos JSON (partners, ventas, pagos) en un directorio."""

    FILES = {
        "partners": "partners.json",
        "sales": "sales.json",
        "payments": "payments.json",
    }

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, name) -> Path:
        return self.directory / self.FILES[name]

    def _read(self, name):
        path = self._path(name)
        if not path.exists():
            return []
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("No se pudo leer %s: %s. Se usa lista vacía", path, exc)
            return []

    def _write(self, name, payload):
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, cls=DjangoJSONEncoder, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load(self, for_update=False) -> CommissionState:
        return state_from_payload(
            partners=self._read("partners"),
            sales=self._read("sales"),
            payments=self._read("payments"),
        )

    def save(self, state: CommissionState, previous: CommissionState = None):
        # Cada archivo se reescribe completo; ``previous`` no cambia nada aquí
        self._write("partners", [partner_to_dict(p) for p in state.partners])
        self._write("sales", [sale_to_dict(s) for s in state.sales])
        self._write("payments", [payment_to_dict(p) for p in state.payments])
        logger.info(
            "Estado guardado en %s (%s partners, %s ventas, %s pagos)",
            self.directory,
            len(state.partners),
            len(state.sales),
            len(state.payments),
        )


class DatabaseStore:
    """
    Estado persistido en las tablas de partners, ventas y pagos.

    ``save(state, previous=loaded)`` escribe solo la diferencia con el estado
    cargado: filas nuevas o modificadas, y borrado de los ids que la operación
    quitó. Sin ``previous`` (importaciones) las tablas quedan iguales a ``state``.
    """

    def load(self, for_update=False) -> CommissionState:
        partner_qs = PartnerModel.objects.order_by("created_at", "id")
        sale_qs = SaleModel.objects.order_by("created_at", "id")
        if for_update:
            # Bloquea partners y ventas hasta el commit: escrituras concurrentes esperan
            partner_qs = partner_qs.select_for_update()
            sale_qs = sale_qs.select_for_update()

        partners = tuple(
            Partner(id=p.id, company_name=p.company_name, standard_rate=p.standard_rate)
            for p in partner_qs
        )
        sales = tuple(
            self._sale_record(sale) for sale in sale_qs.prefetch_related("custom_installments")
        )
        payments = tuple(
            PaymentRecord(
                id=p.id,
                sale_id=p.sale_id,
                partner_id=p.partner_id,
                customer_name=p.customer_name,
                amount=p.amount,
                due_date=p.due_date,
                paid_date=p.paid_date,
                plan_type=p.plan_type,
            )
            for p in PaymentRecordModel.objects.order_by("created_at", "id")
        )
        return CommissionState(partners=partners, sales=sales, payments=payments)

    @staticmethod
    def _sale_record(sale) -> Sale:
        if sale.plan_type == PlanType.CUSTOM:
            plan = CustomPlan(
                installments=tuple(
                    CustomInstallment(
                        id=item.installment_id,
                        due_date=item.due_date,
                        amount=item.amount,
                        status=item.status,
                        paid_date=item.paid_date,
                    )
                    for item in sale.custom_installments.all()
                )
            )
        else:
            plan = AutomaticPlan(
                installment_count=sale.installment_count,
                cadence=sale.cadence or None,
            )
        return Sale(
            id=sale.id,
            partner_id=sale.partner_id,
            customer_name=sale.customer_name,
            total_amount=sale.total_amount,
            applied_rate=sale.applied_rate,
            sale_date=sale.sale_date,
            total_commission=sale.total_commission,
            plan=plan,
        )

    @staticmethod
    def _write_partner(partner: Partner):
        PartnerModel.objects.update_or_create(
            id=partner.id,
            defaults={
                "company_name": partner.company_name,
                "standard_rate": partner.standard_rate,
            },
        )

    @staticmethod
    def _write_sale(sale: Sale):
        is_custom = isinstance(sale.plan, CustomPlan)
        SaleModel.objects.update_or_create(
            id=sale.id,
            defaults={
                "partner_id": sale.partner_id,
                "customer_name": sale.customer_name,
                "total_amount": sale.total_amount,
                "applied_rate": sale.applied_rate,
                "sale_date": sale.sale_date,
                "total_commission": sale.total_commission,
                "plan_type": sale.plan_type,
                "installment_count": None if is_custom else sale.plan.installment_count,
                "cadence": None if is_custom else sale.plan.cadence,
            },
        )
        CustomInstallmentModel.objects.filter(sale_id=sale.id).delete()
        if is_custom:
            CustomInstallmentModel.objects.bulk_create(
                [
                    CustomInstallmentModel(
                        sale_id=sale.id,
                        installment_id=item.id or custom_installment_id(sale.id, position),
                        position=position,
                        due_date=item.due_date,
                        amount=item.amount,
                        status=item.status,
                        paid_date=item.paid_date,
                    )
                    for position, item in enumerate(sale.plan.installments)
                ]
            )

    @staticmethod
    def _changes(current, before):
        """(registros nuevos o modificados, ids eliminados) de una colección."""
        if before is None:
            return list(current), None
        before_by_id = {record.id: record for record in before}
        changed = [record for record in current if before_by_id.get(record.id) != record]
        removed = set(before_by_id) - {record.id for record in current}
        return changed, removed

    @transaction.atomic
    def save(self, state: CommissionState, previous: CommissionState = None):
        partners, removed_partners = self._changes(
            state.partners, previous.partners if previous else None
        )
        sales, removed_sales = self._changes(state.sales, previous.sales if previous else None)
        payments, removed_payments = self._changes(
            state.payments, previous.payments if previous else None
        )

        for partner in partners:
            self._write_partner(partner)

        # Ventas primero: Sale -> Partner es PROTECT
        if previous is None:
            SaleModel.objects.exclude(id__in=[s.id for s in state.sales]).delete()
            PartnerModel.objects.exclude(id__in=[p.id for p in state.partners]).delete()
            PaymentRecordModel.objects.exclude(id__in=[p.id for p in state.payments]).delete()
        else:
            SaleModel.objects.filter(id__in=removed_sales).delete()
            PartnerModel.objects.filter(id__in=removed_partners).delete()
            PaymentRecordModel.objects.filter(id__in=removed_payments).delete()

        for sale in sales:
            self._write_sale(sale)

        # El historial de pagos solo se agrega
        existing_payments = set(
            PaymentRecordModel.objects.filter(id__in=[p.id for p in payments]).values_list(
                "id", flat=True
            )
        )
        PaymentRecordModel.objects.bulk_create(
            [
                PaymentRecordModel(
                    id=p.id,
                    sale_id=p.sale_id,
                    partner_id=p.partner_id,
                    customer_name=p.customer_name,
                    amount=p.amount,
                    due_date=p.due_date,
                    paid_date=p.paid_date,
                    plan_type=p.plan_type,
                )
                for p in payments
                if p.id not in existing_payments
            ]
        )
        logger.info(
            "Estado guardado en base de datos (%s partners, %s ventas y %s pagos escritos)",
            len(partners),
            len(sales),
            len(payments) - len(existing_payments),
        )


def get_store():
    backend = getattr(settings, "COMMISSIONS_STORE", "database")
    if backend == "json":
        return JsonFileStore(settings.COMMISSIONS_DATA_DIR)
    return DatabaseStore()


def run_operation(operation, *args, store=None, **kwargs):
    """
    Carga el estado, aplica ``operation`` y guarda el resultado.

    ``operation`` devuelve el nuevo estado o una tupla ``(estado, valor)``; se
    retorna ``valor``. Si la operación lanza, no se guarda nada. Se guarda solo
    la diferencia con el estado cargado, así una escritura concurrente que no
    tocó los mismos registros se conserva.
    """
    store = store or get_store()
    with transaction.atomic():
        previous = store.load(for_update=True)
        result = operation(previous, *args, **kwargs)
        if isinstance(result, tuple):
            state, value = result
        else:
            state, value = result, None
        store.save(state, previous=previous)
    return value
