from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import json_error, load_json_body, require_api_token, validation_error_response
from finance.services import operations
from finance.services.serialization import partner_to_dict
from finance.services.store import get_store, run_operation


@csrf_exempt
@require_http_methods(["GET", "POST"])
@require_api_token
def partner_collection(request):
    if request.method == "GET":
        state = get_store().load()
        partners = sorted(state.partners, key=lambda p: p.company_name.casefold())
        sales_by_partner = {}
        for sale in state.sales:
            sales_by_partner[sale.partner_id] = sales_by_partner.get(sale.partner_id, 0) + 1
        items = []
        for partner in partners:
            item = partner_to_dict(partner)
            item["sales_count"] = sales_by_partner.get(partner.id, 0)
            items.append(item)
        return JsonResponse({"items": items})

    data, error = load_json_body(request)
    if error:
        return error
    if "standard_rate" not in data:
        return json_error("standard_rate es requerido", code="invalid_partner")

    partner_id = data.get("id") or None
    try:
        partner = run_operation(
            operations.save_partner,
            company_name=data.get("company_name", ""),
            standard_rate=data.get("standard_rate"),
            partner_id=partner_id,
        )
    except ValidationError as exc:
        return validation_error_response(exc)
    return JsonResponse(
        {"partner": partner_to_dict(partner)}, status=200 if partner_id else 201
    )


@csrf_exempt
@require_http_methods(["POST"])
@require_api_token
def partner_delete(request, partner_id):
    try:
        run_operation(operations.delete_partner, partner_id)
    except ValidationError as exc:
        return validation_error_response(exc)
    return JsonResponse({"ok": True})
