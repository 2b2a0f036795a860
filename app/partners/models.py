from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.identifiers import new_id


def new_partner_id():
    return new_id("p")


class Partner(models.Model):
    id = models.CharField(primary_key=True, max_length=64, default=new_partner_id, editable=False)
    company_name = models.CharField("Razón social", max_length=200)
    standard_rate = models.DecimalField(
        "Tasa de comisión estándar",
        max_digits=7,
        decimal_places=6,
        validators=[MinValueValidator(0), MaxValueValidator(1)],
        help_text="Fracción entre 0 y 1 (0.10 = 10%)",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["company_name"]

    def __str__(self):
        return self.company_name
