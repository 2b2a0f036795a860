from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import json_error, load_json_body, require_api_token, validation_error_response
from core.normalization import to_date, to_decimal
from finance.services import operations
from finance.services.projections import build_projections, partner_totals
from finance.services.serialization import payment_to_dict
from finance.services.status import (
    list_commissions,
    payment_history_summary,
    pending_summary,
)
from finance.services.store import get_store, run_operation

STATUS_FILTERS = {"pending", "paid", "all"}


def _partner_names(state):
    return {p.id: p.company_name for p in state.partners}


def _line_to_item(line, partner_names):
    installment = line.installment
    return {
        "id": installment.id,
        "sale_id": installment.sale_id,
        "partner_id": installment.partner_id,
        "partner_name": partner_names.get(installment.partner_id, ""),
        "customer_name": installment.customer_name,
        "plan_type": installment.plan_type,
        "due_date": installment.due_date,
        "amount": installment.amount,
        "is_paid": line.is_paid,
        "is_overdue": line.is_overdue,
        "payment_id": line.payment.id if line.payment else None,
    }


@require_http_methods(["GET"])
@require_api_token
def api_projections(request):
    state = get_store().load()
    projections = build_projections(state.sales, state.payments)
    names = _partner_names(state)
    months = [
        {
            "month": projection.month,
            "total": projection.total,
            "by_partner": projection.by_partner,
            "sales": [
                {
                    "id": sale.id,
                    "customer_name": sale.customer_name,
                    "partner_id": sale.partner_id,
                    "total_amount": sale.total_amount,
                }
                for sale in projection.sales
            ],
        }
        for projection in projections.values()
    ]
    return JsonResponse(
        {
            "months": months,
            "partner_totals": partner_totals(projections),
            "partners": names,
        }
    )


@require_http_methods(["GET"])
@require_api_token
def api_commission_list(request):
    status_filter = request.GET.get("status", "pending")
    if status_filter not in STATUS_FILTERS:
        return json_error("Filtro de estado inválido", code="invalid_status")

    state = get_store().load()
    lines = list_commissions(state.sales, state.payments, timezone.localdate())
    names = _partner_names(state)
    if status_filter == "pending":
        visible = [line for line in lines if not line.is_paid]
    elif status_filter == "paid":
        visible = [line for line in lines if line.is_paid]
    else:
        visible = lines

    return JsonResponse(
        {
            "items": [_line_to_item(line, names) for line in visible],
            "summary": pending_summary(lines),
        }
    )


@require_http_methods(["GET"])
@require_api_token
def api_payment_history(request):
    state = get_store().load()
    payments = sorted(state.payments, key=lambda p: p.paid_date, reverse=True)
    return JsonResponse(
        {
            "items": [payment_to_dict(p) for p in payments],
            "summary": payment_history_summary(payments),
        }
    )


@csrf_exempt
@require_http_methods(["POST"])
@require_api_token
def api_mark_paid(request):
    data, error = load_json_body(request)
    if error:
        return error

    sale_id = data.get("sale_id")
    if not sale_id:
        return json_error("sale_id es requerido", code="missing_sale_id")
    due_date = to_date(data.get("due_date"))
    if due_date is None:
        return json_error("due_date inválida (YYYY-MM-DD)", code="invalid_due_date")
    amount = to_decimal(data.get("amount"))
    if amount is None:
        return json_error("amount es requerido", code="invalid_amount")

    def mark(state):
        # Los datos de la cuota que no vienen en la solicitud se toman de la venta.
        sale = state.get_sale(sale_id)
        return operations.mark_paid(
            state,
            sale_id=sale_id,
            partner_id=data.get("partner_id") or (sale.partner_id if sale else ""),
            customer_name=data.get("customer_name") or (sale.customer_name if sale else ""),
            amount=amount,
            due_date=due_date,
            plan_type=data.get("plan_type") or (sale.plan_type if sale else ""),
            today=timezone.localdate(),
        )

    try:
        payment = run_operation(mark)
    except ValidationError as exc:
        return validation_error_response(exc)
    return JsonResponse({"payment": payment_to_dict(payment)}, status=201)


@csrf_exempt
@require_http_methods(["POST"])
@require_api_token
def api_cancel_client(request):
    data, error = load_json_body(request)
    if error:
        return error

    partner_id = data.get("partner_id")
    customer_name = data.get("customer_name")
    if not partner_id or not customer_name:
        return json_error(
            "partner_id y customer_name son requeridos", code="missing_fields"
        )

    try:
        run_operation(operations.cancel_client, partner_id, customer_name)
    except ValidationError as exc:
        return validation_error_response(exc)
    return JsonResponse({"ok": True})
