"""
Operaciones de escritura sobre el estado de comisiones.

Cada operación recibe el ``CommissionState`` actual y devuelve uno nuevo; el
estado recibido nunca se modifica. Las reglas de negocio se validan antes de
construir el nuevo estado y se reportan con ``ValidationError`` (con ``code``),
así que un fallo deja al llamador con su estado intacto.
"""
import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from django.core.exceptions import ValidationError

from core.identifiers import new_id
from core.normalization import customer_key, normalize_customer_name, to_decimal
from finance.records import (
    AutomaticPlan,
    CommissionState,
    CustomPlan,
    InstallmentStatus,
    Partner,
    PaymentRecord,
    Plan,
    Sale,
)
from finance.services.ledger import AMOUNT_TOLERANCE, amounts_match
from finance.services.schedule import CADENCE_MONTHS, custom_installment_id, due_date_for

logger = logging.getLogger(__name__)


def _decimal(value, label):
    result = to_decimal(value)
    if result is None:
        raise ValidationError(
            "%(label)s debe ser un número.", code="invalid_number", params={"label": label}
        )
    return result


# ---------------------------------------------------------------------------
# Partners
# ---------------------------------------------------------------------------

def save_partner(
    state: CommissionState,
    *,
    company_name: str,
    standard_rate,
    partner_id: Optional[str] = None,
) -> Tuple[CommissionState, Partner]:
    """Crea el partner o reemplaza el existente con el mismo id."""
    company_name = (company_name or "").strip()
    if not company_name:
        raise ValidationError("La razón social es requerida.", code="invalid_partner")
    rate = _decimal(standard_rate, "La tasa de comisión")
    if rate < 0 or rate > 1:
        raise ValidationError(
            "La tasa de comisión debe estar entre 0 y 1.", code="invalid_rate"
        )

    existing = state.get_partner(partner_id) if partner_id else None
    if existing:
        partner = replace(existing, company_name=company_name, standard_rate=rate)
        partners = tuple(partner if p.id == existing.id else p for p in state.partners)
        logger.info("Partner %s actualizado", partner.id)
    else:
        partner = Partner(
            id=partner_id or new_id("p"),
            company_name=company_name,
            standard_rate=rate,
        )
        partners = state.partners + (partner,)
        logger.info("Partner %s creado", partner.id)
    return replace(state, partners=partners), partner


def delete_partner(state: CommissionState, partner_id: str) -> CommissionState:
    """Elimina el partner. Se rechaza mientras tenga ventas asociadas."""
    sales_count = sum(1 for sale in state.sales if sale.partner_id == partner_id)
    if sales_count:
        logger.warning(
            "Eliminación de partner %s rechazada: %s ventas asociadas",
            partner_id,
            sales_count,
        )
        raise ValidationError(
            "No se puede eliminar este partner porque tiene ventas asociadas.",
            code="partner_has_sales",
        )
    partners = tuple(p for p in state.partners if p.id != partner_id)
    if len(partners) != len(state.partners):
        logger.info("Partner %s eliminado", partner_id)
    return replace(state, partners=partners)


# ---------------------------------------------------------------------------
# Ventas
# ---------------------------------------------------------------------------

def _prepare_custom_plan(sale_id: str, plan: CustomPlan, total_commission) -> CustomPlan:
    assigned = sum((item.amount for item in plan.installments), Decimal("0"))
    if abs(assigned - total_commission) > AMOUNT_TOLERANCE:
        raise ValidationError(
            "La suma de las cuotas personalizadas (%(assigned)s) no corresponde "
            "a la comisión total (%(total)s).",
            code="custom_plan_mismatch",
            params={"assigned": assigned, "total": total_commission},
        )
    ids = [
        item.id or custom_installment_id(sale_id, position)
        for position, item in enumerate(plan.installments)
    ]
    if len(set(ids)) != len(ids):
        raise ValidationError(
            "Las cuotas personalizadas tienen ids repetidos.", code="invalid_plan"
        )
    return CustomPlan(
        installments=tuple(
            replace(
                item,
                id=installment_id,
                status=item.status or InstallmentStatus.PENDING,
            )
            for installment_id, item in zip(ids, plan.installments)
        )
    )


def _check_automatic_plan(plan: AutomaticPlan, sale_date: date):
    count = plan.installment_count
    if count is None:
        return
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValidationError(
            "El número de cuotas debe ser un entero positivo.", code="invalid_plan"
        )
    if plan.cadence in CADENCE_MONTHS:
        try:
            due_date_for(sale_date, plan.cadence, count)
        except (OverflowError, ValueError):
            raise ValidationError(
                "La última cuota caería fuera del calendario.", code="invalid_plan"
            )


def create_sale(
    state: CommissionState,
    *,
    partner_id: str,
    customer_name: str,
    total_amount,
    applied_rate,
    sale_date: date,
    plan: Plan,
    sale_id: Optional[str] = None,
) -> Tuple[CommissionState, Sale]:
    """
    Registra una venta nueva.

    La comisión total (monto × tasa aplicada) se calcula aquí una sola vez.
    Para planes personalizados la suma de cuotas debe coincidir con ella
    (tolerancia 0.02).
    """
    if state.get_partner(partner_id) is None:
        raise ValidationError("El partner no existe.", code="unknown_partner")
    customer_name = normalize_customer_name(customer_name)
    if not customer_name:
        raise ValidationError("El nombre del cliente es requerido.", code="invalid_sale")

    total_amount = _decimal(total_amount, "El monto de la venta")
    applied_rate = _decimal(applied_rate, "La tasa aplicada")
    if total_amount < 0:
        raise ValidationError("El monto de la venta no puede ser negativo.", code="invalid_sale")
    if applied_rate < 0 or applied_rate > 1:
        raise ValidationError(
            "La tasa de comisión debe estar entre 0 y 1.", code="invalid_rate"
        )

    sale_id = sale_id or new_id("v")
    if state.get_sale(sale_id) is not None:
        raise ValidationError("Ya existe una venta con ese id.", code="invalid_sale")
    total_commission = total_amount * applied_rate

    if isinstance(plan, CustomPlan):
        plan = _prepare_custom_plan(sale_id, plan, total_commission)
    elif isinstance(plan, AutomaticPlan):
        _check_automatic_plan(plan, sale_date)
    else:
        raise ValidationError("Tipo de plan inválido.", code="invalid_plan")

    sale = Sale(
        id=sale_id,
        partner_id=partner_id,
        customer_name=customer_name,
        total_amount=total_amount,
        applied_rate=applied_rate,
        sale_date=sale_date,
        total_commission=total_commission,
        plan=plan,
    )
    logger.info(
        "Venta %s registrada para partner %s (%s, comisión %s)",
        sale.id,
        partner_id,
        sale.plan_type,
        total_commission,
    )
    return replace(state, sales=state.sales + (sale,)), sale


# ---------------------------------------------------------------------------
# Pagos
# ---------------------------------------------------------------------------

def _mark_custom_installment_paid(plan: CustomPlan, due_date, amount, paid_date) -> CustomPlan:
    installments = list(plan.installments)
    for index, item in enumerate(installments):
        if item.is_paid:
            continue
        if item.due_date == due_date and amounts_match(item.amount, amount):
            installments[index] = replace(
                item, status=InstallmentStatus.PAID, paid_date=paid_date
            )
            break
    return CustomPlan(installments=tuple(installments))


def mark_paid(
    state: CommissionState,
    *,
    sale_id: str,
    partner_id: str,
    customer_name: str,
    amount,
    due_date: date,
    plan_type: str,
    today: date,
) -> Tuple[CommissionState, PaymentRecord]:
    """
    Registra el pago de una cuota.

    1. Agrega un ``PaymentRecord`` nuevo con fecha de pago ``today``.
    2. Si la venta tiene plan personalizado, marca como pagada la cuota con el
       mismo vencimiento y monto (tolerancia 0.02). Las ventas con plan
       automático no cambian: su estado sale solo del historial de pagos.
    """
    sale = state.get_sale(sale_id)
    if sale is None:
        raise ValidationError("La venta no existe.", code="unknown_sale")

    payment = PaymentRecord(
        id=new_id("c"),
        sale_id=sale_id,
        partner_id=partner_id,
        customer_name=customer_name,
        amount=_decimal(amount, "El monto"),
        due_date=due_date,
        paid_date=today,
        plan_type=plan_type,
    )

    sales = state.sales
    if isinstance(sale.plan, CustomPlan):
        updated = replace(
            sale,
            plan=_mark_custom_installment_paid(sale.plan, due_date, payment.amount, today),
        )
        sales = tuple(updated if s.id == sale_id else s for s in state.sales)

    logger.info(
        "Cuota de venta %s con vencimiento %s marcada como pagada (%s)",
        sale_id,
        due_date.isoformat(),
        payment.amount,
    )
    return replace(state, sales=sales, payments=state.payments + (payment,)), payment


def cancel_client(
    state: CommissionState, partner_id: str, customer_name: str
) -> CommissionState:
    """
    Elimina la relación del partner con un cliente final: sus ventas y todo el
    historial de pagos asociado.
    """
    key = customer_key(customer_name)

    def belongs(record_partner_id, record_customer):
        return record_partner_id == partner_id and customer_key(record_customer) == key

    removed_sales = {s.id for s in state.sales if belongs(s.partner_id, s.customer_name)}
    if not removed_sales and not any(
        belongs(p.partner_id, p.customer_name) for p in state.payments
    ):
        raise ValidationError(
            "El partner no tiene ventas para ese cliente.", code="unknown_client"
        )

    sales = tuple(s for s in state.sales if s.id not in removed_sales)
    payments = tuple(
        p
        for p in state.payments
        if p.sale_id not in removed_sales and not belongs(p.partner_id, p.customer_name)
    )
    logger.info(
        "Cliente '%s' cancelado para partner %s: %s ventas y %s pagos eliminados",
        customer_name,
        partner_id,
        len(state.sales) - len(sales),
        len(state.payments) - len(payments),
    )
    return replace(state, sales=sales, payments=payments)

