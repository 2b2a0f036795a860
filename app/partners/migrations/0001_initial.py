import django.core.validators
from django.db import migrations, models

import partners.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Partner",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=partners.models.new_partner_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("company_name", models.CharField(max_length=200, verbose_name="Razón social")),
                (
                    "standard_rate",
                    models.DecimalField(
                        decimal_places=6,
                        help_text="Fracción entre 0 y 1 (0.10 = 10%)",
                        max_digits=7,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(1),
                        ],
                        verbose_name="Tasa de comisión estándar",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["company_name"],
            },
        ),
    ]
