from decimal import Decimal

from django.urls import reverse

from partners.models import Partner
from tests.base import BaseAppTestCase


class PartnerApiTests(BaseAppTestCase):
    def test_create_partner(self):
        response = self.post_json(
            reverse("partners:partner_collection"),
            {"company_name": "  Distribuciones Norte  ", "standard_rate": "0.08"},
        )

        self.assertEqual(response.status_code, 201)
        partner_id = response.json()["partner"]["id"]
        partner = Partner.objects.get(id=partner_id)
        self.assertEqual(partner.company_name, "Distribuciones Norte")
        self.assertEqual(partner.standard_rate, Decimal("0.08"))

    def test_update_partner_keeps_id(self):
        partner = self.make_partner(company_name="Viejo")

        response = self.post_json(
            reverse("partners:partner_collection"),
            {"id": partner.id, "company_name": "Nuevo", "standard_rate": 0.12},
        )

        self.assertEqual(response.status_code, 200)
        partner.refresh_from_db()
        self.assertEqual(partner.company_name, "Nuevo")
        self.assertEqual(partner.standard_rate, Decimal("0.12"))
        self.assertEqual(Partner.objects.count(), 1)

    def test_rate_out_of_range_is_rejected(self):
        response = self.post_json(
            reverse("partners:partner_collection"),
            {"company_name": "X", "standard_rate": "1.5"},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_rate")
        self.assertFalse(Partner.objects.exists())

    def test_missing_name_is_rejected(self):
        response = self.post_json(
            reverse("partners:partner_collection"), {"standard_rate": "0.1"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_partner")

    def test_list_partners_with_sales_count(self):
        first = self.make_partner(company_name="Beta")
        self.make_partner(company_name="alfa")
        self.make_sale(partner=first)

        items = self.client.get(reverse("partners:partner_collection")).json()["items"]

        self.assertEqual([p["company_name"] for p in items], ["alfa", "Beta"])
        self.assertEqual([p["sales_count"] for p in items], [0, 1])

    def test_delete_partner_with_sales_returns_conflict(self):
        partner = self.make_partner()
        self.make_sale(partner=partner)

        response = self.client.post(
            reverse("partners:partner_delete", kwargs={"partner_id": partner.id})
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "partner_has_sales")
        self.assertTrue(Partner.objects.filter(id=partner.id).exists())

    def test_delete_partner_without_sales(self):
        partner = self.make_partner()

        response = self.client.post(
            reverse("partners:partner_delete", kwargs={"partner_id": partner.id})
        )

        self.assertEqual(response.status_code, 200)
        self.assertFalse(Partner.objects.exists())
