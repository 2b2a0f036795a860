import django.core.validators
import django.db.models.deletion
from django.db import migrations, models

import sales.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("partners", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=sales.models.new_sale_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("customer_name", models.CharField(max_length=200, verbose_name="Cliente final")),
                (
                    "total_amount",
                    models.DecimalField(
                        decimal_places=2, max_digits=14, verbose_name="Monto total de la venta"
                    ),
                ),
                (
                    "applied_rate",
                    models.DecimalField(
                        decimal_places=6,
                        max_digits=7,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(1),
                        ],
                        verbose_name="Tasa de comisión aplicada",
                    ),
                ),
                ("sale_date", models.DateField(verbose_name="Fecha de venta")),
                (
                    "total_commission",
                    models.DecimalField(
                        decimal_places=8,
                        editable=False,
                        max_digits=20,
                        verbose_name="Comisión total",
                    ),
                ),
                (
                    "plan_type",
                    models.CharField(
                        choices=[("AUTO", "Automático"), ("CUSTOM", "Personalizado")],
                        default="AUTO",
                        max_length=10,
                        verbose_name="Tipo de plan",
                    ),
                ),
                (
                    "installment_count",
                    models.PositiveIntegerField(
                        blank=True, null=True, verbose_name="Número de cuotas"
                    ),
                ),
                (
                    "cadence",
                    models.CharField(
                        blank=True,
                        choices=[("MONTHLY", "Mensual"), ("QUARTERLY", "Trimestral")],
                        max_length=20,
                        null=True,
                        verbose_name="Periodicidad",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "partner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to="partners.partner",
                    ),
                ),
            ],
            options={
                "ordering": ["sale_date", "created_at"],
                "indexes": [
                    models.Index(
                        fields=["partner", "customer_name"], name="sale_partner_customer_idx"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="CustomInstallment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("installment_id", models.CharField(max_length=80, verbose_name="Id de cuota")),
                ("position", models.PositiveIntegerField(verbose_name="Orden")),
                ("due_date", models.DateField(verbose_name="Fecha de vencimiento")),
                (
                    "amount",
                    models.DecimalField(decimal_places=8, max_digits=20, verbose_name="Comisión"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pendiente"), ("PAID", "Pagada")],
                        default="PENDING",
                        max_length=10,
                        verbose_name="Estado",
                    ),
                ),
                (
                    "paid_date",
                    models.DateField(blank=True, null=True, verbose_name="Fecha de pago"),
                ),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="custom_installments",
                        to="sales.sale",
                    ),
                ),
            ],
            options={
                "ordering": ["position", "due_date"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("sale", "installment_id"), name="unique_installment_id_per_sale"
                    )
                ],
            },
        ),
    ]
