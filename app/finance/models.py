from django.db import models

from core.identifiers import new_id
from finance.records import PlanType


def new_payment_id():
    return new_id("c")


# ---------------------------------------------------------------------------
# Historial de comisiones pagadas
# ---------------------------------------------------------------------------

class PaymentRecord(models.Model):
    """
    Evidencia de que una cuota de comisión fue pagada. Solo se agrega.

    Venta y partner se referencian por id, sin llave foránea: el historial
    sobrevive aunque la venta o el partner ya no existan.
    """
    id = models.CharField(primary_key=True, max_length=64, default=new_payment_id, editable=False)
    sale_id = models.CharField("Venta", max_length=64, db_index=True)
    partner_id = models.CharField("Partner", max_length=64, db_index=True)
    customer_name = models.CharField("Cliente final", max_length=200)
    amount = models.DecimalField("Valor pagado", max_digits=20, decimal_places=8)
    due_date = models.DateField("Fecha de vencimiento")
    paid_date = models.DateField("Fecha de pago")
    plan_type = models.CharField("Tipo de plan", max_length=10, choices=PlanType.choices)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-paid_date", "-created_at"]

    def __str__(self):
        return f"Pago {self.id} - {self.amount:,.2f}"
