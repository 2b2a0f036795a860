from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import json_error, load_json_body, require_api_token, validation_error_response
from core.normalization import to_date
from finance.services import operations
from finance.services.ledger import PaymentLedger
from finance.services.schedule import generate_schedule
from finance.services.serialization import (
    MalformedRecord,
    installment_to_dict,
    plan_from_dict,
    sale_to_dict,
)
from finance.services.store import get_store, run_operation


def _plan_or_error(data):
    try:
        return plan_from_dict(data)
    except (MalformedRecord, TypeError, ValueError) as exc:
        raise ValidationError(f"Plan de comisión inválido: {exc}", code="invalid_plan")


@csrf_exempt
@require_http_methods(["GET", "POST"])
@require_api_token
def sale_collection(request):
    if request.method == "GET":
        state = get_store().load()
        partner_id = request.GET.get("partner_id")
        sales = [s for s in state.sales if not partner_id or s.partner_id == partner_id]
        return JsonResponse({"items": [sale_to_dict(s) for s in sales]})

    data, error = load_json_body(request)
    if error:
        return error
    sale_date = to_date(data.get("sale_date"))
    if sale_date is None:
        return json_error("sale_date inválida (YYYY-MM-DD)", code="invalid_sale")

    try:
        plan = _plan_or_error(data)
        sale = run_operation(
            operations.create_sale,
            partner_id=data.get("partner_id") or "",
            customer_name=data.get("customer_name") or "",
            total_amount=data.get("total_amount"),
            applied_rate=data.get("applied_rate"),
            sale_date=sale_date,
            plan=plan,
        )
    except ValidationError as exc:
        return validation_error_response(exc)
    return JsonResponse({"sale": sale_to_dict(sale)}, status=201)


@require_http_methods(["GET"])
@require_api_token
def sale_schedule(request, sale_id):
    state = get_store().load()
    sale = state.get_sale(sale_id)
    if sale is None:
        return json_error("La venta no existe.", status=404, code="unknown_sale")

    ledger = PaymentLedger(state.payments)
    items = []
    for installment in generate_schedule(sale):
        item = installment_to_dict(installment)
        item["is_paid"] = ledger.is_settled(installment)
        items.append(item)
    return JsonResponse({"sale": sale_to_dict(sale), "installments": items})
