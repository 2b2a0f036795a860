"""
Generación del cronograma de cuotas de comisión de una venta.

Plan automático: ``n`` cuotas iguales de ``total_commission / n`` (sin ajustar
el residuo en la última), con vencimiento ``i`` meses (mensual) o ``3i`` meses
(trimestral) después de la fecha de venta. ``relativedelta`` conserva el día
del mes y, si no existe en el mes destino, usa el último día de ese mes
(31-ene + 1 mes = 29-feb en año bisiesto).

Plan personalizado: las cuotas persistidas tal cual.
"""
from datetime import date
from typing import List

from dateutil.relativedelta import relativedelta

from finance.records import (
    AutomaticPlan,
    Cadence,
    CustomPlan,
    Installment,
    PlanType,
    Sale,
)

CADENCE_MONTHS = {
    Cadence.MONTHLY: 1,
    Cadence.QUARTERLY: 3,
}


def automatic_installment_id(sale_id: str, index: int) -> str:
    """Id estable de la cuota ``index`` (1..n) de un plan automático."""
    return f"{sale_id}_auto_{index}"


def custom_installment_id(sale_id: str, position: int) -> str:
    """Id de respaldo para cuotas personalizadas sin id persistido."""
    return f"{sale_id}_{position}"


def due_date_for(sale_date: date, cadence: str, index: int) -> date:
    return sale_date + relativedelta(months=CADENCE_MONTHS[cadence] * index)


def _automatic_schedule(sale: Sale, plan: AutomaticPlan) -> List[Installment]:
    count = plan.installment_count
    if not count or count < 1 or plan.cadence not in CADENCE_MONTHS:
        return []

    amount = sale.total_commission / count
    installments = []
    for i in range(1, count + 1):
        try:
            due_date = due_date_for(sale.sale_date, plan.cadence, i)
        except (OverflowError, ValueError):
            # Más allá de date.max: el cronograma se corta en la última fecha válida
            break
        installments.append(
            Installment(
                id=automatic_installment_id(sale.id, i),
                sale_id=sale.id,
                partner_id=sale.partner_id,
                customer_name=sale.customer_name,
                plan_type=PlanType.AUTOMATIC,
                due_date=due_date,
                amount=amount,
            )
        )
    return installments


def _custom_schedule(sale: Sale, plan: CustomPlan) -> List[Installment]:
    installments = [
        Installment(
            id=item.id or custom_installment_id(sale.id, position),
            sale_id=sale.id,
            partner_id=sale.partner_id,
            customer_name=sale.customer_name,
            plan_type=PlanType.CUSTOM,
            due_date=item.due_date,
            amount=item.amount,
            status=item.status,
        )
        for position, item in enumerate(plan.installments)
    ]
    # sorted() es estable: cuotas del mismo día conservan su orden.
    return sorted(installments, key=lambda inst: inst.due_date)


def generate_schedule(sale: Sale) -> List[Installment]:
    """Cuotas de la venta en orden cronológico. Nunca lanza por planes incompletos."""
    plan = sale.plan
    if isinstance(plan, AutomaticPlan):
        return _automatic_schedule(sale, plan)
    if isinstance(plan, CustomPlan):
        return _custom_schedule(sale, plan)
    raise TypeError(f"Tipo de plan no soportado: {type(plan).__name__}")
