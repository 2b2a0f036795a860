from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.urls import reverse

from finance.models import PaymentRecord
from finance.records import Cadence, InstallmentStatus, PlanType
from sales.models import CustomInstallment, Sale
from tests.base import BaseAppTestCase
from tests.factories import Factory


class SaleApiTests(BaseAppTestCase):
    def setUp(self):
        self.partner = self.make_partner(id="p_a")

    def _payload(self, **overrides):
        payload = {
            "partner_id": "p_a",
            "customer_name": "ACME",
            "total_amount": 10000,
            "applied_rate": "0.10",
            "sale_date": "2024-01-15",
            "plan_type": "AUTO",
            "installment_count": 4,
            "cadence": "MONTHLY",
        }
        payload.update(overrides)
        return payload

    def test_create_automatic_sale(self):
        response = self.post_json(reverse("sales:sale_collection"), self._payload())

        self.assertEqual(response.status_code, 201)
        data = response.json()["sale"]
        self.assertEqual(Decimal(data["total_commission"]), Decimal("1000"))
        sale = Sale.objects.get(id=data["id"])
        self.assertEqual(sale.plan_type, PlanType.AUTOMATIC)
        self.assertEqual(sale.installment_count, 4)
        self.assertEqual(sale.cadence, Cadence.MONTHLY)

    def test_create_custom_sale(self):
        payload = self._payload(
            plan_type="CUSTOM",
            custom_installments=[
                {"due_date": "2024-03-01", "amount": "400"},
                {"due_date": "2024-04-01", "amount": "600"},
            ],
        )

        response = self.post_json(reverse("sales:sale_collection"), payload)

        self.assertEqual(response.status_code, 201)
        sale_id = response.json()["sale"]["id"]
        items = list(CustomInstallment.objects.filter(sale_id=sale_id))
        self.assertEqual([i.installment_id for i in items], [f"{sale_id}_0", f"{sale_id}_1"])
        self.assertTrue(all(i.status == InstallmentStatus.PENDING for i in items))

    def test_custom_sale_with_mismatched_total_is_rejected(self):
        payload = self._payload(
            plan_type="CUSTOM",
            custom_installments=[{"due_date": "2024-03-01", "amount": "900"}],
        )

        response = self.post_json(reverse("sales:sale_collection"), payload)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "custom_plan_mismatch")
        self.assertFalse(Sale.objects.exists())

    def test_unknown_plan_type_is_rejected(self):
        response = self.post_json(
            reverse("sales:sale_collection"), self._payload(plan_type="mixto")
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_plan")

    def test_non_positive_installment_count_is_rejected(self):
        response = self.post_json(
            reverse("sales:sale_collection"), self._payload(installment_count=-2)
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_plan")
        self.assertFalse(Sale.objects.exists())

    def test_fractional_installment_count_is_rejected(self):
        response = self.post_json(
            reverse("sales:sale_collection"), self._payload(installment_count=2.7)
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_plan")
        self.assertFalse(Sale.objects.exists())

    def test_installment_count_past_the_calendar_is_rejected(self):
        response = self.post_json(
            reverse("sales:sale_collection"),
            self._payload(installment_count=40000, cadence="QUARTERLY"),
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_plan")

    def test_custom_sales_may_reuse_installment_ids(self):
        payload = self._payload(
            plan_type="CUSTOM",
            custom_installments=[
                {"id": "e1", "due_date": "2024-03-01", "amount": "400"},
                {"id": "e2", "due_date": "2024-04-01", "amount": "600"},
            ],
        )

        first = self.post_json(reverse("sales:sale_collection"), payload)
        second = self.post_json(reverse("sales:sale_collection"), payload)

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 201)
        self.assertEqual(CustomInstallment.objects.filter(installment_id="e1").count(), 2)

    def test_unknown_partner_is_rejected(self):
        response = self.post_json(
            reverse("sales:sale_collection"), self._payload(partner_id="p_nada")
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "unknown_partner")

    def test_invalid_sale_date(self):
        response = self.post_json(
            reverse("sales:sale_collection"), self._payload(sale_date="15/01/2024")
        )
        self.assertEqual(response.status_code, 400)

    def test_list_sales_filters_by_partner(self):
        other = self.make_partner()
        self.make_sale(partner=self.partner, id="v_a")
        self.make_sale(partner=other, id="v_b")

        every = self.client.get(reverse("sales:sale_collection")).json()["items"]
        mine = self.client.get(
            reverse("sales:sale_collection"), {"partner_id": "p_a"}
        ).json()["items"]

        self.assertEqual(len(every), 2)
        self.assertEqual([s["id"] for s in mine], ["v_a"])

    def test_schedule_endpoint(self):
        sale = self.make_sale(partner=self.partner, sale_date=date(2024, 1, 31), installment_count=2)
        Factory.payment_row(sale=sale, due_date=date(2024, 2, 29), amount="500")

        response = self.client.get(
            reverse("sales:sale_schedule", kwargs={"sale_id": sale.id})
        )

        self.assertEqual(response.status_code, 200)
        items = response.json()["installments"]
        self.assertEqual([i["due_date"] for i in items], ["2024-02-29", "2024-03-31"])
        self.assertEqual([i["is_paid"] for i in items], [True, False])
        self.assertEqual(items[0]["id"], f"{sale.id}_auto_1")

    def test_schedule_unknown_sale(self):
        response = self.client.get(
            reverse("sales:sale_schedule", kwargs={"sale_id": "v_nada"})
        )
        self.assertEqual(response.status_code, 404)


class CancelClientCommandTests(BaseAppTestCase):
    def setUp(self):
        self.partner = self.make_partner(id="p_a")
        self.sale = self.make_sale(partner=self.partner, customer_name="ACME")
        self.other = self.make_sale(partner=self.partner, customer_name="Otro")
        Factory.payment_row(sale=self.sale, due_date=date(2024, 2, 15), amount="250")

    def test_cancel_client_without_confirmation_prompt(self):
        out = StringIO()

        call_command("cancel_client", partner="p_a", client="acme", no_input=True, stdout=out)

        self.assertEqual(list(Sale.objects.values_list("id", flat=True)), [self.other.id])
        self.assertFalse(PaymentRecord.objects.exists())
        self.assertIn("1 ventas y 1 pagos eliminados", out.getvalue())

    def test_cancel_unknown_client_fails(self):
        with self.assertRaises(CommandError):
            call_command(
                "cancel_client", partner="p_a", client="Nadie", no_input=True, stdout=StringIO()
            )
        self.assertEqual(Sale.objects.count(), 2)
