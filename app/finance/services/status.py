from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from finance.records import Installment, PaymentRecord, Sale
from finance.services.ledger import PaymentLedger
from finance.services.projections import month_key
from finance.services.schedule import generate_schedule


@dataclass(frozen=True)
class CommissionLine:
    installment: Installment
    is_paid: bool
    is_overdue: bool
    payment: Optional[PaymentRecord] = None


def list_commissions(
    sales: Iterable[Sale], payments: Iterable[PaymentRecord], today: date
) -> List[CommissionLine]:
    """Todas las cuotas de todas las ventas (pagadas o no), por fecha de vencimiento."""
    ledger = PaymentLedger(payments)
    lines = []
    for sale in sales:
        for installment in generate_schedule(sale):
            is_paid = ledger.is_settled(installment)
            lines.append(
                CommissionLine(
                    installment=installment,
                    is_paid=is_paid,
                    is_overdue=not is_paid and installment.due_date < today,
                    payment=ledger.match(installment),
                )
            )
    return sorted(lines, key=lambda line: line.installment.due_date)


def pending_summary(lines: Iterable[CommissionLine]) -> dict:
    total_pending = Decimal("0")
    pending_count = 0
    overdue_total = Decimal("0")
    overdue_count = 0
    for line in lines:
        if line.is_paid:
            continue
        total_pending += line.installment.amount
        pending_count += 1
        if line.is_overdue:
            overdue_total += line.installment.amount
            overdue_count += 1
    return {
        "total_pending": total_pending,
        "pending_count": pending_count,
        "overdue_total": overdue_total,
        "overdue_count": overdue_count,
    }


def payment_history_summary(payments: Iterable[PaymentRecord]) -> dict:
    """Total pagado y totales por mes de pago, del mes más reciente al más antiguo."""
    total_paid = Decimal("0")
    count = 0
    by_month = {}
    for payment in payments:
        total_paid += payment.amount
        count += 1
        key = month_key(payment.paid_date)
        by_month[key] = by_month.get(key, Decimal("0")) + payment.amount
    return {
        "total_paid": total_paid,
        "payment_count": count,
        "by_month": {key: by_month[key] for key in sorted(by_month, reverse=True)},
    }
