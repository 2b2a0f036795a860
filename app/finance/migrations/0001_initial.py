from django.db import migrations, models

import finance.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PaymentRecord",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=finance.models.new_payment_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("sale_id", models.CharField(db_index=True, max_length=64, verbose_name="Venta")),
                (
                    "partner_id",
                    models.CharField(db_index=True, max_length=64, verbose_name="Partner"),
                ),
                ("customer_name", models.CharField(max_length=200, verbose_name="Cliente final")),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=8, max_digits=20, verbose_name="Valor pagado"
                    ),
                ),
                ("due_date", models.DateField(verbose_name="Fecha de vencimiento")),
                ("paid_date", models.DateField(verbose_name="Fecha de pago")),
                (
                    "plan_type",
                    models.CharField(
                        choices=[("AUTO", "Automático"), ("CUSTOM", "Personalizado")],
                        max_length=10,
                        verbose_name="Tipo de plan",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-paid_date", "-created_at"],
            },
        ),
    ]
