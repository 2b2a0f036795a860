"""
Proyección mensual de comisiones por cobrar.

Reconstruye todo en cada llamada a partir de (ventas, pagos): genera las
cuotas de cada venta, descarta las liquidadas y agrupa el resto por mes de
vencimiento, con subtotal por partner y las ventas que aportan al mes.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

from finance.records import PaymentRecord, Sale
from finance.services.ledger import PaymentLedger
from finance.services.schedule import generate_schedule


@dataclass
class MonthProjection:
    month: str
    total: Decimal = Decimal("0")
    by_partner: Dict[str, Decimal] = field(default_factory=dict)
    sales: List[Sale] = field(default_factory=list)


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def build_projections(
    sales: Iterable[Sale], payments: Iterable[PaymentRecord]
) -> Dict[str, MonthProjection]:
    ledger = PaymentLedger(payments)
    months: Dict[str, MonthProjection] = {}
    seen_sales = set()

    for sale in sales:
        for installment in generate_schedule(sale):
            if ledger.is_settled(installment):
                continue

            key = month_key(installment.due_date)
            projection = months.get(key)
            if projection is None:
                projection = months[key] = MonthProjection(month=key)

            projection.total += installment.amount
            projection.by_partner[installment.partner_id] = (
                projection.by_partner.get(installment.partner_id, Decimal("0"))
                + installment.amount
            )
            if (key, sale.id) not in seen_sales:
                seen_sales.add((key, sale.id))
                projection.sales.append(sale)

    return {key: months[key] for key in sorted(months)}


def partner_totals(projections: Dict[str, MonthProjection]) -> Dict[str, Decimal]:
    """Total pendiente por partner sumando todos los meses."""
    totals: Dict[str, Decimal] = {}
    for projection in projections.values():
        for partner_id, amount in projection.by_partner.items():
            totals[partner_id] = totals.get(partner_id, Decimal("0")) + amount
    return totals
