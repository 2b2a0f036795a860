import json

from django.test import TestCase, override_settings

from .factories import Factory


@override_settings(COMMISSIONS_STORE="database", COMMISSIONS_API_TOKEN="")
class BaseAppTestCase(TestCase):
    api_token = "token-test"

    def post_json(self, url, payload, **extra):
        return self.client.post(
            url,
            data=json.dumps(payload),
            content_type="application/json",
            **extra,
        )

    def auth_headers(self, token=None):
        return {"HTTP_AUTHORIZATION": f"Bearer {token or self.api_token}"}

    def make_partner(self, **kwargs):
        return Factory.partner_row(**kwargs)

    def make_sale(self, *, partner, **kwargs):
        return Factory.sale_row(partner=partner, **kwargs)
