"""
Conciliación de cuotas contra el historial de pagos.

Una cuota está liquidada cuando existe un pago de la misma venta, con la misma
fecha de vencimiento y un monto a 0.02 o menos de distancia. Las cuotas de
planes personalizados marcadas como pagadas también cuentan como liquidadas
aunque no haya pago registrado (datos marcados a mano antes del historial).
"""
from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from finance.records import InstallmentStatus, Installment, PaymentRecord, PlanType

AMOUNT_TOLERANCE = Decimal("0.02")


def amounts_match(left, right) -> bool:
    return abs(Decimal(left) - Decimal(right)) <= AMOUNT_TOLERANCE


class PaymentLedger:
    """Índice de pagos por (venta, vencimiento)."""

    def __init__(self, payments: Iterable[PaymentRecord] = ()):
        self._by_key = defaultdict(list)
        for payment in payments:
            self._by_key[(payment.sale_id, payment.due_date)].append(payment)

    def match(self, installment: Installment) -> Optional[PaymentRecord]:
        candidates = self._by_key.get((installment.sale_id, installment.due_date), ())
        for payment in candidates:
            if amounts_match(payment.amount, installment.amount):
                return payment
        return None

    def is_settled(self, installment: Installment) -> bool:
        if (
            installment.plan_type == PlanType.CUSTOM
            and installment.status == InstallmentStatus.PAID
        ):
            return True
        return self.match(installment) is not None


def is_settled(installment: Installment, payments: Iterable[PaymentRecord]) -> bool:
    return PaymentLedger(payments).is_settled(installment)
