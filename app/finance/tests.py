import json
import tempfile
from datetime import date
from decimal import Decimal
from io import StringIO
from pathlib import Path

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import SimpleTestCase, override_settings
from django.urls import reverse

from finance.models import PaymentRecord as PaymentRecordRow
from finance.records import (
    AutomaticPlan,
    Cadence,
    CustomInstallment,
    CustomPlan,
    InstallmentStatus,
    PlanType,
)
from finance.services import operations
from finance.services.ledger import PaymentLedger, amounts_match, is_settled
from finance.services.projections import build_projections, month_key, partner_totals
from finance.services.schedule import generate_schedule
from finance.services.serialization import (
    MalformedRecord,
    plan_from_dict,
    sale_from_dict,
    state_from_payload,
)
from finance.services.status import (
    list_commissions,
    payment_history_summary,
    pending_summary,
)
from finance.services.store import DatabaseStore, JsonFileStore, run_operation
from sales.models import CustomInstallment as CustomInstallmentRow
from sales.models import Sale as SaleRow
from tests.base import BaseAppTestCase
from tests.factories import Factory


class ScheduleTests(SimpleTestCase):
    def test_automatic_monthly_plan_splits_commission_equally(self):
        sale = Factory.sale(id="v_a", sale_date=date(2024, 1, 15))

        schedule = generate_schedule(sale)

        self.assertEqual(
            [i.due_date for i in schedule],
            [date(2024, 2, 15), date(2024, 3, 15), date(2024, 4, 15), date(2024, 5, 15)],
        )
        self.assertEqual([i.amount for i in schedule], [Decimal("250")] * 4)
        self.assertEqual([i.id for i in schedule], [f"v_a_auto_{n}" for n in range(1, 5)])
        self.assertTrue(all(i.plan_type == PlanType.AUTOMATIC for i in schedule))

    def test_month_end_sale_date_is_clamped_to_last_day(self):
        sale = Factory.sale(
            sale_date=date(2024, 1, 31),
            plan=AutomaticPlan(installment_count=2, cadence=Cadence.MONTHLY),
        )

        schedule = generate_schedule(sale)

        self.assertEqual([i.due_date for i in schedule], [date(2024, 2, 29), date(2024, 3, 31)])

    def test_quarterly_plan_steps_three_months(self):
        sale = Factory.sale(
            sale_date=date(2024, 11, 30),
            plan=AutomaticPlan(installment_count=3, cadence=Cadence.QUARTERLY),
        )

        schedule = generate_schedule(sale)

        self.assertEqual(
            [i.due_date for i in schedule],
            [date(2025, 2, 28), date(2025, 5, 30), date(2025, 8, 30)],
        )

    def test_uneven_split_sums_to_total_within_tolerance(self):
        sale = Factory.sale(plan=AutomaticPlan(installment_count=3, cadence=Cadence.MONTHLY))

        schedule = generate_schedule(sale)

        self.assertEqual(len(schedule), 3)
        self.assertTrue(amounts_match(sum(i.amount for i in schedule), sale.total_commission))

    def test_incomplete_plans_yield_empty_schedule(self):
        plans = [
            AutomaticPlan(installment_count=None, cadence=Cadence.MONTHLY),
            AutomaticPlan(installment_count=0, cadence=Cadence.MONTHLY),
            AutomaticPlan(installment_count=4, cadence=None),
            CustomPlan(),
        ]
        for plan in plans:
            with self.subTest(plan=plan):
                self.assertEqual(generate_schedule(Factory.sale(plan=plan)), [])

    def test_custom_plan_is_ordered_by_due_date_with_positional_ids(self):
        plan = Factory.custom_plan((date(2024, 5, 1), "600"), (date(2024, 3, 1), "400"))
        sale = Factory.sale(id="v_c", plan=plan)

        schedule = generate_schedule(sale)

        self.assertEqual([i.due_date for i in schedule], [date(2024, 3, 1), date(2024, 5, 1)])
        self.assertEqual([i.id for i in schedule], ["v_c_1", "v_c_0"])
        self.assertEqual([i.amount for i in schedule], [Decimal("400"), Decimal("600")])

    def test_schedule_stops_at_the_last_representable_date(self):
        sale = Factory.sale(
            sale_date=date(2024, 1, 15),
            plan=AutomaticPlan(installment_count=40000, cadence=Cadence.QUARTERLY),
        )

        schedule = generate_schedule(sale)

        self.assertEqual(len(schedule), 31903)
        self.assertEqual(schedule[-1].due_date, date(9999, 10, 15))
        self.assertIn("9999-10", build_projections([sale], []))

    def test_unknown_plan_type_raises_type_error(self):
        sale = Factory.sale(plan=object())
        with self.assertRaises(TypeError):
            generate_schedule(sale)


class LedgerTests(SimpleTestCase):
    def setUp(self):
        self.sale = Factory.sale()
        self.installment = generate_schedule(self.sale)[0]

    def _payment(self, amount, **kwargs):
        kwargs.setdefault("due_date", self.installment.due_date)
        return Factory.payment(sale=self.sale, amount=amount, **kwargs)

    def test_amount_difference_of_one_cent_matches(self):
        self.assertTrue(is_settled(self.installment, [self._payment("250.01")]))

    def test_amount_difference_of_three_cents_does_not_match(self):
        self.assertFalse(is_settled(self.installment, [self._payment("250.03")]))

    def test_tolerance_boundary_is_inclusive(self):
        self.assertTrue(amounts_match(Decimal("250.02"), Decimal("250")))

    def test_due_date_and_sale_must_match(self):
        other_date = self._payment("250", due_date=date(2024, 3, 15))
        other_sale = self._payment("250", sale_id="v_otra")

        self.assertFalse(is_settled(self.installment, [other_date, other_sale]))

    def test_match_returns_the_payment_record(self):
        payment = self._payment("250")
        self.assertEqual(PaymentLedger([payment]).match(self.installment), payment)

    def test_custom_installment_with_paid_flag_is_settled_without_payment(self):
        sale = Factory.sale(
            plan=Factory.custom_plan(
                (date(2024, 3, 1), "400", InstallmentStatus.PAID),
                (date(2024, 4, 1), "600"),
            )
        )
        paid, pending = generate_schedule(sale)

        self.assertTrue(is_settled(paid, []))
        self.assertFalse(is_settled(pending, []))


class ProjectionTests(SimpleTestCase):
    def setUp(self):
        self.partner = Factory.partner(id="p_a", standard_rate=Decimal("0.10"))
        self.sale = Factory.sale(
            id="v_a",
            partner_id="p_a",
            total_amount="10000",
            applied_rate="0.10",
            sale_date=date(2024, 1, 15),
        )

    def test_month_key(self):
        self.assertEqual(month_key(date(2024, 2, 29)), "2024-02")

    def test_four_monthly_installments_land_in_four_months(self):
        projections = build_projections([self.sale], [])

        self.assertEqual(list(projections), ["2024-02", "2024-03", "2024-04", "2024-05"])
        february = projections["2024-02"]
        self.assertEqual(february.total, Decimal("250"))
        self.assertEqual(february.by_partner, {"p_a": Decimal("250")})
        self.assertEqual(february.sales, [self.sale])

    def test_marking_paid_removes_the_month_bucket(self):
        state = Factory.state(partners=[self.partner], sales=[self.sale])
        before = build_projections(state.sales, state.payments)

        new_state, _payment = operations.mark_paid(
            state,
            sale_id="v_a",
            partner_id="p_a",
            customer_name=self.sale.customer_name,
            amount=Decimal("250"),
            due_date=date(2024, 2, 15),
            plan_type=PlanType.AUTOMATIC,
            today=date(2024, 2, 16),
        )
        after = build_projections(new_state.sales, new_state.payments)

        self.assertIn("2024-02", before)
        self.assertNotIn("2024-02", after)
        self.assertEqual(list(after), ["2024-03", "2024-04", "2024-05"])
        for projection in after.values():
            self.assertEqual(projection.total, Decimal("250"))

    def test_sale_with_two_installments_in_same_month_is_listed_once(self):
        sale = Factory.sale(
            plan=Factory.custom_plan((date(2024, 3, 1), "400"), (date(2024, 3, 20), "600"))
        )

        projections = build_projections([sale], [])

        self.assertEqual(projections["2024-03"].sales, [sale])
        self.assertEqual(projections["2024-03"].total, Decimal("1000"))

    def test_settled_installments_are_excluded(self):
        sale = Factory.sale(
            plan=Factory.custom_plan(
                (date(2024, 3, 1), "400", InstallmentStatus.PAID),
                (date(2024, 4, 1), "600"),
            )
        )

        projections = build_projections([sale], [])

        self.assertEqual(list(projections), ["2024-04"])

    def test_projection_is_a_pure_function_of_its_inputs(self):
        payments = [Factory.payment(sale=self.sale, due_date=date(2024, 3, 15), amount="250")]

        first = build_projections([self.sale], payments)
        second = build_projections([self.sale], payments)

        self.assertEqual(first, second)
        self.assertEqual(len(payments), 1)

    def test_partner_totals_sum_every_month(self):
        other = Factory.sale(
            partner_id="p_b",
            plan=AutomaticPlan(installment_count=2, cadence=Cadence.QUARTERLY),
        )

        totals = partner_totals(build_projections([self.sale, other], []))

        self.assertEqual(totals, {"p_a": Decimal("1000"), "p_b": Decimal("1000")})


class CommissionStatusTests(SimpleTestCase):
    def setUp(self):
        self.sale = Factory.sale(sale_date=date(2024, 1, 15))
        self.payment = Factory.payment(
            sale=self.sale,
            due_date=date(2024, 2, 15),
            amount="250",
            paid_date=date(2024, 2, 20),
        )

    def test_lines_carry_paid_and_overdue_flags(self):
        lines = list_commissions([self.sale], [self.payment], today=date(2024, 3, 20))

        self.assertEqual(len(lines), 4)
        self.assertEqual([line.is_paid for line in lines], [True, False, False, False])
        self.assertEqual([line.is_overdue for line in lines], [False, True, False, False])
        self.assertEqual(lines[0].payment, self.payment)
        self.assertIsNone(lines[1].payment)

    def test_installment_due_today_is_not_overdue(self):
        lines = list_commissions([self.sale], [], today=date(2024, 2, 15))
        self.assertFalse(lines[0].is_overdue)

    def test_lines_are_sorted_across_sales(self):
        later = Factory.sale(sale_date=date(2024, 1, 20))

        lines = list_commissions([later, self.sale], [], today=date(2024, 1, 1))

        dates = [line.installment.due_date for line in lines]
        self.assertEqual(dates, sorted(dates))
        self.assertEqual(lines[0].installment.sale_id, self.sale.id)

    def test_pending_summary(self):
        lines = list_commissions([self.sale], [self.payment], today=date(2024, 3, 20))

        summary = pending_summary(lines)

        self.assertEqual(summary["total_pending"], Decimal("750"))
        self.assertEqual(summary["pending_count"], 3)
        self.assertEqual(summary["overdue_total"], Decimal("250"))
        self.assertEqual(summary["overdue_count"], 1)

    def test_payment_history_summary_groups_by_paid_month(self):
        payments = [
            self.payment,
            Factory.payment(
                sale=self.sale, due_date=date(2024, 3, 15), amount="250", paid_date=date(2024, 3, 5)
            ),
            Factory.payment(
                sale=self.sale, due_date=date(2024, 4, 15), amount="100", paid_date=date(2024, 3, 10)
            ),
        ]

        summary = payment_history_summary(payments)

        self.assertEqual(summary["total_paid"], Decimal("600"))
        self.assertEqual(summary["payment_count"], 3)
        self.assertEqual(list(summary["by_month"]), ["2024-03", "2024-02"])
        self.assertEqual(summary["by_month"]["2024-03"], Decimal("350"))


class OperationTests(SimpleTestCase):
    def setUp(self):
        self.partner = Factory.partner(id="p_a")
        self.state = Factory.state(partners=[self.partner])

    def _create(self, state=None, **kwargs):
        params = {
            "partner_id": "p_a",
            "customer_name": "ACME Corp",
            "total_amount": "10000",
            "applied_rate": "0.10",
            "sale_date": date(2024, 1, 15),
            "plan": AutomaticPlan(installment_count=4, cadence=Cadence.MONTHLY),
        }
        params.update(kwargs)
        return operations.create_sale(state or self.state, **params)

    def test_create_sale_computes_total_commission(self):
        state, sale = self._create()

        self.assertEqual(sale.total_commission, Decimal("1000"))
        self.assertEqual(state.sales, (sale,))
        self.assertEqual(self.state.sales, ())

    def test_create_sale_requires_existing_partner(self):
        with self.assertRaises(ValidationError) as ctx:
            self._create(partner_id="p_inexistente")
        self.assertEqual(ctx.exception.code, "unknown_partner")

    def test_create_sale_rejects_rate_out_of_range(self):
        with self.assertRaises(ValidationError) as ctx:
            self._create(applied_rate="1.5")
        self.assertEqual(ctx.exception.code, "invalid_rate")

    def test_automatic_plan_count_must_be_positive(self):
        for count in (0, -2):
            with self.subTest(count=count):
                with self.assertRaises(ValidationError) as ctx:
                    self._create(
                        plan=AutomaticPlan(installment_count=count, cadence=Cadence.MONTHLY)
                    )
                self.assertEqual(ctx.exception.code, "invalid_plan")

    def test_automatic_plan_past_the_calendar_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self._create(plan=AutomaticPlan(installment_count=40000, cadence=Cadence.QUARTERLY))
        self.assertEqual(ctx.exception.code, "invalid_plan")

    def test_custom_plan_with_repeated_ids_is_rejected(self):
        plan = CustomPlan(
            installments=(
                CustomInstallment(id="e1", due_date=date(2024, 3, 1), amount=Decimal("400")),
                CustomInstallment(id="e1", due_date=date(2024, 4, 1), amount=Decimal("600")),
            )
        )
        with self.assertRaises(ValidationError) as ctx:
            self._create(plan=plan)
        self.assertEqual(ctx.exception.code, "invalid_plan")

    def test_custom_plan_must_sum_to_total_commission(self):
        plan = Factory.custom_plan((date(2024, 3, 1), "400"), (date(2024, 4, 1), "500"))
        with self.assertRaises(ValidationError) as ctx:
            self._create(plan=plan)
        self.assertEqual(ctx.exception.code, "custom_plan_mismatch")

    def test_custom_plan_within_tolerance_gets_ids_and_pending_status(self):
        plan = Factory.custom_plan((date(2024, 3, 1), "400"), (date(2024, 4, 1), "599.99"))

        _state, sale = self._create(plan=plan, sale_id="v_c")

        self.assertEqual([i.id for i in sale.plan.installments], ["v_c_0", "v_c_1"])
        self.assertTrue(
            all(i.status == InstallmentStatus.PENDING for i in sale.plan.installments)
        )

    def test_save_partner_creates_and_updates(self):
        state, created = operations.save_partner(
            self.state, company_name="Nuevo SAS", standard_rate="0.05"
        )
        self.assertTrue(created.id.startswith("p_"))
        self.assertEqual(len(state.partners), 2)

        state, updated = operations.save_partner(
            state, partner_id=created.id, company_name="Nuevo SAS", standard_rate="0.07"
        )
        self.assertEqual(updated.id, created.id)
        self.assertEqual(state.get_partner(created.id).standard_rate, Decimal("0.07"))
        self.assertEqual(len(state.partners), 2)

    def test_save_partner_rejects_rate_above_one(self):
        with self.assertRaises(ValidationError) as ctx:
            operations.save_partner(self.state, company_name="X", standard_rate="1.01")
        self.assertEqual(ctx.exception.code, "invalid_rate")

    def test_delete_partner_with_sales_is_refused(self):
        state, _sale = self._create()

        with self.assertRaises(ValidationError) as ctx:
            operations.delete_partner(state, "p_a")

        self.assertEqual(ctx.exception.code, "partner_has_sales")
        self.assertIsNotNone(state.get_partner("p_a"))

    def test_delete_partner_without_sales(self):
        state = operations.delete_partner(self.state, "p_a")
        self.assertEqual(state.partners, ())

    def test_mark_paid_on_custom_plan_flags_the_installment(self):
        plan = Factory.custom_plan((date(2024, 3, 1), "400"), (date(2024, 4, 1), "600"))
        state, sale = self._create(plan=plan)

        state, payment = operations.mark_paid(
            state,
            sale_id=sale.id,
            partner_id="p_a",
            customer_name=sale.customer_name,
            amount="400.01",
            due_date=date(2024, 3, 1),
            plan_type=PlanType.CUSTOM,
            today=date(2024, 3, 2),
        )

        first, second = state.get_sale(sale.id).plan.installments
        self.assertEqual(first.status, InstallmentStatus.PAID)
        self.assertEqual(first.paid_date, date(2024, 3, 2))
        self.assertEqual(second.status, InstallmentStatus.PENDING)
        self.assertEqual(payment.paid_date, date(2024, 3, 2))
        self.assertEqual(state.payments, (payment,))

    def test_mark_paid_on_automatic_plan_leaves_sale_untouched(self):
        state, sale = self._create()

        new_state, _payment = operations.mark_paid(
            state,
            sale_id=sale.id,
            partner_id="p_a",
            customer_name=sale.customer_name,
            amount="250",
            due_date=date(2024, 2, 15),
            plan_type=PlanType.AUTOMATIC,
            today=date(2024, 2, 16),
        )

        self.assertEqual(new_state.get_sale(sale.id), sale)
        self.assertEqual(len(new_state.payments), 1)

    def test_mark_paid_unknown_sale(self):
        with self.assertRaises(ValidationError) as ctx:
            operations.mark_paid(
                self.state,
                sale_id="v_nada",
                partner_id="p_a",
                customer_name="X",
                amount="1",
                due_date=date(2024, 2, 15),
                plan_type=PlanType.AUTOMATIC,
                today=date(2024, 2, 16),
            )
        self.assertEqual(ctx.exception.code, "unknown_sale")

    def test_cancel_client_removes_sales_and_payments(self):
        state, first = self._create(customer_name="ACME Corp")
        state, second = self._create(state, customer_name=" acme   corp ")
        state, other = self._create(state, customer_name="Otro Cliente")
        payment = Factory.payment(sale=first, due_date=date(2024, 2, 15), amount="250")
        kept = Factory.payment(sale=other, due_date=date(2024, 2, 15), amount="250")
        state = Factory.state(
            partners=state.partners, sales=state.sales, payments=[payment, kept]
        )

        state = operations.cancel_client(state, "p_a", "Acme corp")

        self.assertEqual([s.id for s in state.sales], [other.id])
        self.assertEqual(state.payments, (kept,))
        self.assertNotIn(second.id, [s.id for s in state.sales])

    def test_cancel_unknown_client(self):
        with self.assertRaises(ValidationError) as ctx:
            operations.cancel_client(self.state, "p_a", "Nadie")
        self.assertEqual(ctx.exception.code, "unknown_client")


class SerializationTests(SimpleTestCase):
    def test_non_list_collections_load_as_empty(self):
        with self.assertLogs("finance.services.serialization", "WARNING"):
            state = state_from_payload(partners={"id": "p_1"}, sales="dañado", payments=None)

        self.assertEqual(state.partners, ())
        self.assertEqual(state.sales, ())
        self.assertEqual(state.payments, ())

    def test_malformed_entries_are_skipped(self):
        sales = [
            {
                "id": "v_1",
                "partner_id": "p_1",
                "customer_name": "Cliente",
                "total_amount": "1000",
                "applied_rate": "0.1",
                "sale_date": "2024-01-15",
                "plan_type": "AUTO",
                "installment_count": 2,
                "cadence": "MONTHLY",
            },
            {"id": "v_2"},
            "texto",
        ]

        with self.assertLogs("finance.services.serialization", "WARNING") as logs:
            state = state_from_payload(sales=sales)

        self.assertEqual([s.id for s in state.sales], ["v_1"])
        self.assertEqual(len(logs.records), 2)

    def test_legacy_field_names(self):
        sale = sale_from_dict(
            {
                "id": "v_1",
                "partenaireId": "p_1",
                "clientFinalNom": "Dupont",
                "montantTotalVente": 5000,
                "tauxCommissionApplique": 0.1,
                "dateVente": "2024-01-31",
                "planType": "Personnalisé",
                "echeancesPersonnalisees": [
                    {"date": "2024-03-01", "commission": 200, "statut": "payee", "datePaiement": "2024-03-02"},
                    {"date": "2024-04-01", "commission": 300, "statut": "en_attente"},
                ],
            }
        )

        self.assertEqual(sale.partner_id, "p_1")
        self.assertEqual(sale.total_commission, Decimal("500"))
        self.assertIsInstance(sale.plan, CustomPlan)
        paid, pending = sale.plan.installments
        self.assertEqual(paid.status, InstallmentStatus.PAID)
        self.assertEqual(paid.paid_date, date(2024, 3, 2))
        self.assertEqual(pending.status, InstallmentStatus.PENDING)

    def test_installment_count_must_be_an_integer(self):
        for count in (2.7, True, "2.5", "dos"):
            with self.subTest(count=count):
                with self.assertRaises(MalformedRecord):
                    plan_from_dict(
                        {"plan_type": "AUTO", "installment_count": count, "cadence": "MONTHLY"}
                    )

        plan = plan_from_dict({"plan_type": "AUTO", "installment_count": " 3 ", "cadence": "MONTHLY"})
        self.assertEqual(plan.installment_count, 3)

    def test_legacy_automatic_plan(self):
        sale = sale_from_dict(
            {
                "id": "v_1",
                "partenaireId": "p_1",
                "clientFinalNom": "Dupont",
                "montantTotalVente": "5000",
                "tauxCommissionApplique": "0.1",
                "dateVente": "2024-01-31",
                "planType": "Automatique",
                "nombreEcheances": "2",
                "pasEcheance": "trimestriel",
            }
        )
        self.assertEqual(sale.plan, AutomaticPlan(installment_count=2, cadence=Cadence.QUARTERLY))


class JsonFileStoreTests(SimpleTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmp.name)
        self.addCleanup(self._tmp.cleanup)

    def test_missing_files_load_as_empty_state(self):
        state = JsonFileStore(self.directory / "nuevo").load()
        self.assertEqual(state, Factory.state())

    def test_unreadable_file_loads_as_empty(self):
        (self.directory / "sales.json").write_text("{no es json", encoding="utf-8")

        with self.assertLogs("finance.services.store", "WARNING"):
            state = JsonFileStore(self.directory).load()

        self.assertEqual(state.sales, ())

    def test_saved_state_is_loaded_back(self):
        partner = Factory.partner(id="p_a")
        auto = Factory.sale(partner_id="p_a")
        custom = Factory.sale(
            partner_id="p_a",
            plan=Factory.custom_plan((date(2024, 3, 1), "400"), (date(2024, 4, 1), "600")),
        )
        payment = Factory.payment(sale=auto, due_date=date(2024, 2, 15), amount="250")
        state = Factory.state(partners=[partner], sales=[auto, custom], payments=[payment])
        store = JsonFileStore(self.directory)

        store.save(state)

        self.assertEqual(store.load(), state)
        saved = json.loads((self.directory / "sales.json").read_text(encoding="utf-8"))
        self.assertEqual(saved[0]["cadence"], Cadence.MONTHLY)
        self.assertEqual(len(saved[1]["custom_installments"]), 2)


class DatabaseStoreTests(BaseAppTestCase):
    def setUp(self):
        self.store = DatabaseStore()
        self.partner = self.make_partner(id="p_a")

    def test_load_maps_rows_to_records(self):
        auto = self.make_sale(partner=self.partner, id="v_a")
        custom = self.make_sale(
            partner=self.partner,
            id="v_c",
            plan_type=PlanType.CUSTOM,
            installment_count=None,
            cadence=None,
        )
        Factory.custom_installment_row(sale=custom, position=0, due_date=date(2024, 3, 1), amount="400")
        Factory.custom_installment_row(sale=custom, position=1, due_date=date(2024, 4, 1), amount="600")
        Factory.payment_row(sale=auto, due_date=date(2024, 2, 15), amount="250")

        state = self.store.load()

        self.assertEqual(state.get_sale("v_a").plan, AutomaticPlan(4, Cadence.MONTHLY))
        custom_plan = state.get_sale("v_c").plan
        self.assertEqual([i.id for i in custom_plan.installments], ["v_c_0", "v_c_1"])
        self.assertEqual(len(state.payments), 1)
        self.assertEqual(len(generate_schedule(state.get_sale("v_a"))), 4)

    def test_save_synchronises_tables(self):
        state, sale = operations.create_sale(
            self.store.load(),
            partner_id="p_a",
            customer_name="ACME",
            total_amount="10000",
            applied_rate="0.10",
            sale_date=date(2024, 1, 15),
            plan=Factory.custom_plan((date(2024, 3, 1), "400"), (date(2024, 4, 1), "600")),
        )

        self.store.save(state)

        row = SaleRow.objects.get(id=sale.id)
        self.assertEqual(row.total_commission, Decimal("1000"))
        self.assertEqual(row.plan_type, PlanType.CUSTOM)
        self.assertEqual(CustomInstallmentRow.objects.filter(sale=row).count(), 2)

        state = operations.cancel_client(state, "p_a", "acme")
        self.store.save(state)

        self.assertFalse(SaleRow.objects.filter(id=sale.id).exists())
        self.assertFalse(CustomInstallmentRow.objects.exists())

    def test_save_keeps_rows_written_after_load(self):
        sale = self.make_sale(partner=self.partner, id="v_a")
        previous = self.store.load()
        # Otra escritura confirmada entre la carga y el guardado
        concurrent = Factory.payment_row(sale=sale, due_date=date(2024, 3, 15), amount="250")
        other_sale = self.make_sale(partner=self.partner, id="v_b")

        state, payment = operations.mark_paid(
            previous,
            sale_id="v_a",
            partner_id="p_a",
            customer_name=sale.customer_name,
            amount="250",
            due_date=date(2024, 2, 15),
            plan_type=PlanType.AUTOMATIC,
            today=date(2024, 2, 16),
        )
        self.store.save(state, previous=previous)

        self.assertEqual(
            set(PaymentRecordRow.objects.values_list("id", flat=True)), {concurrent.id, payment.id}
        )
        self.assertTrue(SaleRow.objects.filter(id=other_sale.id).exists())

    def test_save_with_previous_deletes_only_removed_records(self):
        self.make_sale(partner=self.partner, id="v_a", customer_name="ACME")
        self.make_sale(partner=self.partner, id="v_b", customer_name="Otro")
        previous = self.store.load()

        state = operations.cancel_client(previous, "p_a", "acme")
        self.store.save(state, previous=previous)

        self.assertEqual(list(SaleRow.objects.values_list("id", flat=True)), ["v_b"])

    def test_custom_installment_ids_are_scoped_per_sale(self):
        state = self.store.load()
        for _ in range(2):
            plan = CustomPlan(
                installments=(
                    CustomInstallment(id="e1", due_date=date(2024, 3, 1), amount=Decimal("400")),
                    CustomInstallment(id="e2", due_date=date(2024, 4, 1), amount=Decimal("600")),
                )
            )
            state, _sale = operations.create_sale(
                state,
                partner_id="p_a",
                customer_name="ACME",
                total_amount="10000",
                applied_rate="0.10",
                sale_date=date(2024, 1, 15),
                plan=plan,
            )

        self.store.save(state)

        self.assertEqual(CustomInstallmentRow.objects.filter(installment_id="e1").count(), 2)
        loaded = self.store.load()
        self.assertEqual(
            [[i.id for i in s.plan.installments] for s in loaded.sales], [["e1", "e2"]] * 2
        )

    def test_run_operation_does_not_save_when_operation_fails(self):
        self.make_sale(partner=self.partner)

        with self.assertRaises(ValidationError):
            run_operation(operations.delete_partner, "p_a", store=self.store)

        self.assertEqual(SaleRow.objects.count(), 1)


class CommissionApiTests(BaseAppTestCase):
    def setUp(self):
        self.partner = self.make_partner(id="p_a", company_name="Partner A")
        self.sale = self.make_sale(partner=self.partner, id="v_a", customer_name="ACME")

    def _mark_paid(self, **overrides):
        payload = {"sale_id": "v_a", "due_date": "2024-02-15", "amount": "250"}
        payload.update(overrides)
        return self.post_json(reverse("finance:mark_paid"), payload)

    def test_projections_endpoint(self):
        response = self.client.get(reverse("finance:projections"))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(
            [m["month"] for m in data["months"]], ["2024-02", "2024-03", "2024-04", "2024-05"]
        )
        self.assertEqual(Decimal(data["months"][0]["total"]), Decimal("250"))
        self.assertEqual(Decimal(data["partner_totals"]["p_a"]), Decimal("1000"))
        self.assertEqual(data["months"][0]["sales"][0]["id"], "v_a")

    def test_mark_paid_records_payment_and_updates_projection(self):
        response = self._mark_paid()

        self.assertEqual(response.status_code, 201)
        payment = PaymentRecordRow.objects.get()
        self.assertEqual(payment.sale_id, "v_a")
        self.assertEqual(payment.partner_id, "p_a")
        self.assertEqual(payment.customer_name, "ACME")

        months = self.client.get(reverse("finance:projections")).json()["months"]
        self.assertEqual([m["month"] for m in months], ["2024-03", "2024-04", "2024-05"])

    def test_mark_paid_on_custom_sale_updates_installment_row(self):
        sale = self.make_sale(
            partner=self.partner,
            id="v_c",
            plan_type=PlanType.CUSTOM,
            installment_count=None,
            cadence=None,
        )
        Factory.custom_installment_row(sale=sale, position=0, due_date=date(2024, 3, 1), amount="1000")

        response = self._mark_paid(sale_id="v_c", due_date="2024-03-01", amount="1000")

        self.assertEqual(response.status_code, 201)
        item = CustomInstallmentRow.objects.get(sale=sale)
        self.assertEqual(item.status, InstallmentStatus.PAID)
        self.assertIsNotNone(item.paid_date)

    def test_mark_paid_unknown_sale_returns_404(self):
        response = self._mark_paid(sale_id="v_nada")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "unknown_sale")
        self.assertFalse(PaymentRecordRow.objects.exists())

    def test_mark_paid_rejects_invalid_json(self):
        response = self.client.post(
            reverse("finance:mark_paid"), data="{roto", content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_json")

    def test_commission_list_filters_by_status(self):
        self._mark_paid()

        pending = self.client.get(reverse("finance:commission_list")).json()
        paid = self.client.get(reverse("finance:commission_list"), {"status": "paid"}).json()
        every = self.client.get(reverse("finance:commission_list"), {"status": "all"}).json()

        self.assertEqual(len(pending["items"]), 3)
        self.assertEqual(len(paid["items"]), 1)
        self.assertEqual(len(every["items"]), 4)
        self.assertEqual(paid["items"][0]["partner_name"], "Partner A")
        self.assertEqual(pending["summary"]["pending_count"], 3)
        self.assertEqual(Decimal(pending["summary"]["total_pending"]), Decimal("750"))

    def test_commission_list_rejects_unknown_status(self):
        response = self.client.get(reverse("finance:commission_list"), {"status": "x"})
        self.assertEqual(response.status_code, 400)

    def test_payment_history(self):
        self._mark_paid()

        data = self.client.get(reverse("finance:payment_history")).json()

        self.assertEqual(len(data["items"]), 1)
        self.assertEqual(data["summary"]["payment_count"], 1)
        self.assertEqual(Decimal(data["summary"]["total_paid"]), Decimal("250"))

    def test_cancel_client_removes_rows(self):
        self._mark_paid()

        response = self.post_json(
            reverse("finance:cancel_client"), {"partner_id": "p_a", "customer_name": "acme"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertFalse(SaleRow.objects.exists())
        self.assertFalse(PaymentRecordRow.objects.exists())

    def test_cancel_client_unknown(self):
        response = self.post_json(
            reverse("finance:cancel_client"), {"partner_id": "p_a", "customer_name": "Nadie"}
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "unknown_client")

    @override_settings(COMMISSIONS_API_TOKEN="token-test")
    def test_api_token_is_required_when_configured(self):
        url = reverse("finance:projections")

        self.assertEqual(self.client.get(url).status_code, 401)
        self.assertEqual(self.client.get(url, **self.auth_headers()).status_code, 200)
        self.assertEqual(
            self.client.get(url, HTTP_X_API_KEY="token-test").status_code, 200
        )
        self.assertEqual(self.client.get(url, **self.auth_headers("otro")).status_code, 401)

    def test_mark_paid_rejects_get(self):
        response = self.client.get(reverse("finance:mark_paid"))
        self.assertEqual(response.status_code, 405)


class CommissionCommandTests(BaseAppTestCase):
    def setUp(self):
        self.partner = self.make_partner(id="p_a", company_name="Partner A")
        self.sale = self.make_sale(partner=self.partner, id="v_a")

    def test_commission_projection_prints_months(self):
        out = StringIO()

        call_command("commission_projection", stdout=out)

        output = out.getvalue()
        self.assertIn("2024-02", output)
        self.assertIn("2024-05", output)
        self.assertIn("Partner A", output)

    def test_export_then_import_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            call_command("export_commissions", tmp, stdout=StringIO())
            self.assertTrue((Path(tmp) / "sales.json").exists())

            SaleRow.objects.all().delete()
            call_command("import_commissions", tmp, no_input=True, stdout=StringIO())

        self.assertTrue(SaleRow.objects.filter(id="v_a", partner_id="p_a").exists())
