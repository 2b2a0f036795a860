from datetime import date
from decimal import Decimal
from itertools import count

from finance.models import PaymentRecord as PaymentRecordRow
from finance.records import (
    AutomaticPlan,
    Cadence,
    CommissionState,
    CustomInstallment,
    CustomPlan,
    InstallmentStatus,
    Partner,
    PaymentRecord,
    PlanType,
    Sale,
)
from partners.models import Partner as PartnerRow
from sales.models import CustomInstallment as CustomInstallmentRow
from sales.models import Sale as SaleRow


class Factory:
    _seq = count(1)

    @classmethod
    def _n(cls):
        return next(cls._seq)

    # ------------------------------------------------------------------
    # Registros en memoria
    # ------------------------------------------------------------------

    @classmethod
    def partner(cls, **kwargs):
        n = cls._n()
        defaults = {
            "id": f"p_{n}",
            "company_name": f"Partner {n}",
            "standard_rate": Decimal("0.10"),
        }
        defaults.update(kwargs)
        return Partner(**defaults)

    @classmethod
    def sale(
        cls,
        *,
        partner_id="p_1",
        total_amount="10000",
        applied_rate="0.10",
        plan=None,
        **kwargs,
    ):
        n = cls._n()
        total_amount = Decimal(str(total_amount))
        applied_rate = Decimal(str(applied_rate))
        if plan is None:
            plan = AutomaticPlan(installment_count=4, cadence=Cadence.MONTHLY)
        defaults = {
            "id": f"v_{n}",
            "partner_id": partner_id,
            "customer_name": f"Cliente {n}",
            "total_amount": total_amount,
            "applied_rate": applied_rate,
            "sale_date": date(2024, 1, 15),
            "total_commission": total_amount * applied_rate,
            "plan": plan,
        }
        defaults.update(kwargs)
        return Sale(**defaults)

    @classmethod
    def custom_plan(cls, *items):
        """``items``: tuplas (fecha, monto) o (fecha, monto, estado)."""
        installments = []
        for item in items:
            due_date, amount = item[0], Decimal(str(item[1]))
            status = item[2] if len(item) > 2 else InstallmentStatus.PENDING
            installments.append(
                CustomInstallment(due_date=due_date, amount=amount, status=status)
            )
        return CustomPlan(installments=tuple(installments))

    @classmethod
    def payment(cls, *, sale, due_date, amount, paid_date=None, **kwargs):
        n = cls._n()
        defaults = {
            "id": f"c_{n}",
            "sale_id": sale.id,
            "partner_id": sale.partner_id,
            "customer_name": sale.customer_name,
            "amount": Decimal(str(amount)),
            "due_date": due_date,
            "paid_date": paid_date or due_date,
            "plan_type": sale.plan_type,
        }
        defaults.update(kwargs)
        return PaymentRecord(**defaults)

    @classmethod
    def state(cls, *, partners=(), sales=(), payments=()):
        return CommissionState(
            partners=tuple(partners), sales=tuple(sales), payments=tuple(payments)
        )

    # ------------------------------------------------------------------
    # Filas ORM
    # ------------------------------------------------------------------

    @classmethod
    def partner_row(cls, **kwargs):
        n = cls._n()
        defaults = {
            "id": f"p_{n}",
            "company_name": f"Partner {n}",
            "standard_rate": Decimal("0.100000"),
        }
        defaults.update(kwargs)
        return PartnerRow.objects.create(**defaults)

    @classmethod
    def sale_row(
        cls,
        *,
        partner,
        total_amount="10000.00",
        applied_rate="0.100000",
        installment_count=4,
        cadence=Cadence.MONTHLY,
        **kwargs,
    ):
        n = cls._n()
        total_amount = Decimal(str(total_amount))
        applied_rate = Decimal(str(applied_rate))
        defaults = {
            "id": f"v_{n}",
            "partner": partner,
            "customer_name": f"Cliente {n}",
            "total_amount": total_amount,
            "applied_rate": applied_rate,
            "sale_date": date(2024, 1, 15),
            "total_commission": total_amount * applied_rate,
            "plan_type": PlanType.AUTOMATIC,
            "installment_count": installment_count,
            "cadence": cadence,
        }
        defaults.update(kwargs)
        return SaleRow.objects.create(**defaults)

    @classmethod
    def custom_installment_row(cls, *, sale, position, due_date, amount, **kwargs):
        defaults = {
            "installment_id": f"{sale.id}_{position}",
            "sale": sale,
            "position": position,
            "due_date": due_date,
            "amount": Decimal(str(amount)),
        }
        defaults.update(kwargs)
        return CustomInstallmentRow.objects.create(**defaults)

    @classmethod
    def payment_row(cls, *, sale, due_date, amount, paid_date=None, **kwargs):
        n = cls._n()
        defaults = {
            "id": f"c_{n}",
            "sale_id": sale.id,
            "partner_id": sale.partner_id,
            "customer_name": sale.customer_name,
            "amount": Decimal(str(amount)),
            "due_date": due_date,
            "paid_date": paid_date or due_date,
            "plan_type": sale.plan_type,
        }
        defaults.update(kwargs)
        return PaymentRecordRow.objects.create(**defaults)
