from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.identifiers import new_id
from finance.records import Cadence, InstallmentStatus, PlanType


def new_sale_id():
    return new_id("v")


class Sale(models.Model):
    id = models.CharField(primary_key=True, max_length=64, default=new_sale_id, editable=False)
    partner = models.ForeignKey(
        "partners.Partner", on_delete=models.PROTECT, related_name="sales"
    )
    customer_name = models.CharField("Cliente final", max_length=200)
    total_amount = models.DecimalField("Monto total de la venta", max_digits=14, decimal_places=2)
    applied_rate = models.DecimalField(
        "Tasa de comisión aplicada",
        max_digits=7,
        decimal_places=6,
        validators=[MinValueValidator(0), MaxValueValidator(1)],
    )
    sale_date = models.DateField("Fecha de venta")
    # monto × tasa, calculado una sola vez al registrar la venta
    total_commission = models.DecimalField(
        "Comisión total", max_digits=20, decimal_places=8, editable=False
    )

    plan_type = models.CharField(
        "Tipo de plan", max_length=10, choices=PlanType.choices, default=PlanType.AUTOMATIC
    )
    installment_count = models.PositiveIntegerField("Número de cuotas", blank=True, null=True)
    cadence = models.CharField(
        "Periodicidad", max_length=20, choices=Cadence.choices, blank=True, null=True
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["sale_date", "created_at"]
        indexes = [
            models.Index(fields=["partner", "customer_name"], name="sale_partner_customer_idx"),
        ]

    def __str__(self):
        return f"Venta {self.id} - {self.customer_name}"

    def save(self, *args, **kwargs):
        # Altas desde el admin: la comisión total no es editable
        if self.total_commission is None:
            self.total_commission = self.total_amount * self.applied_rate
        super().save(*args, **kwargs)


class CustomInstallment(models.Model):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="custom_installments")
    # Id de la cuota dentro de su venta; los archivos antiguos repiten ids entre ventas
    installment_id = models.CharField("Id de cuota", max_length=80)
    position = models.PositiveIntegerField("Orden")
    due_date = models.DateField("Fecha de vencimiento")
    amount = models.DecimalField("Comisión", max_digits=20, decimal_places=8)
    status = models.CharField(
        "Estado",
        max_length=10,
        choices=InstallmentStatus.choices,
        default=InstallmentStatus.PENDING,
    )
    paid_date = models.DateField("Fecha de pago", blank=True, null=True)

    class Meta:
        ordering = ["position", "due_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["sale", "installment_id"], name="unique_installment_id_per_sale"
            ),
        ]

    def __str__(self):
        return f"Cuota {self.position + 1} de {self.sale_id}"
