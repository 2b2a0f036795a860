"""
Registros en memoria del motor de comisiones.

El motor trabaja sobre estos registros inmutables; los modelos ORM y los
archivos JSON solo son formas de persistirlos (ver ``finance.services.store``).
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple, Union

from django.db import models


class PlanType(models.TextChoices):
    AUTOMATIC = "AUTO", "Automático"
    CUSTOM = "CUSTOM", "Personalizado"


class Cadence(models.TextChoices):
    MONTHLY = "MONTHLY", "Mensual"
    QUARTERLY = "QUARTERLY", "Trimestral"


class InstallmentStatus(models.TextChoices):
    PENDING = "PENDING", "Pendiente"
    PAID = "PAID", "Pagada"


@dataclass(frozen=True)
class Partner:
    id: str
    company_name: str
    standard_rate: Decimal


@dataclass(frozen=True)
class CustomInstallment:
    """Cuota explícita de un plan personalizado."""
    due_date: date
    amount: Decimal
    status: str = InstallmentStatus.PENDING
    paid_date: Optional[date] = None
    id: str = ""

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID


@dataclass(frozen=True)
class AutomaticPlan:
    # Ambos pueden faltar mientras la venta se edita: el cronograma queda vacío.
    installment_count: Optional[int] = None
    cadence: Optional[str] = None

    plan_type = PlanType.AUTOMATIC


@dataclass(frozen=True)
class CustomPlan:
    installments: Tuple[CustomInstallment, ...] = ()

    plan_type = PlanType.CUSTOM


Plan = Union[AutomaticPlan, CustomPlan]


@dataclass(frozen=True)
class Sale:
    id: str
    partner_id: str
    customer_name: str
    total_amount: Decimal
    applied_rate: Decimal
    sale_date: date
    total_commission: Decimal
    plan: Plan

    @property
    def plan_type(self) -> str:
        return self.plan.plan_type


@dataclass(frozen=True)
class Installment:
    """Cuota de comisión derivada de una venta (calculada o persistida)."""
    id: str
    sale_id: str
    partner_id: str
    customer_name: str
    plan_type: str
    due_date: date
    amount: Decimal
    status: Optional[str] = None


@dataclass(frozen=True)
class PaymentRecord:
    id: str
    sale_id: str
    partner_id: str
    customer_name: str
    amount: Decimal
    due_date: date
    paid_date: date
    plan_type: str


@dataclass(frozen=True)
class CommissionState:
    partners: Tuple[Partner, ...] = field(default_factory=tuple)
    sales: Tuple[Sale, ...] = field(default_factory=tuple)
    payments: Tuple[PaymentRecord, ...] = field(default_factory=tuple)

    def get_partner(self, partner_id) -> Optional[Partner]:
        return next((p for p in self.partners if p.id == partner_id), None)

    def get_sale(self, sale_id) -> Optional[Sale]:
        return next((s for s in self.sales if s.id == sale_id), None)
