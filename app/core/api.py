import json
from functools import wraps

from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import JsonResponse


# Código de ValidationError -> status HTTP
ERROR_STATUS = {
    "partner_has_sales": 409,
    "unknown_sale": 404,
    "unknown_partner": 404,
    "unknown_client": 404,
}


def json_error(message, status=400, code="bad_request"):
    return JsonResponse({"error": message, "code": code}, status=status)


def validation_error_response(exc: ValidationError):
    code = getattr(exc, "code", None) or "invalid"
    message = " ".join(exc.messages) if exc.messages else "Solicitud inválida"
    return json_error(message, status=ERROR_STATUS.get(code, 400), code=code)


def _extract_api_token(request):
    auth = request.headers.get("Authorization", "").strip()
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return request.headers.get("X-API-Key", "").strip()


def check_api_token(request):
    expected = (getattr(settings, "COMMISSIONS_API_TOKEN", "") or "").strip()
    if not expected:
        return None
    token = _extract_api_token(request)
    if token != expected:
        return json_error("Token inválido", status=401, code="invalid_token")
    return None


def require_api_token(view_func):
    """Decorator: exige el token de la API cuando está configurado."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        token_error = check_api_token(request)
        if token_error:
            return token_error
        return view_func(request, *args, **kwargs)
    return wrapper


def load_json_body(request):
    """Devuelve (data, error_response)."""
    try:
        data = json.loads(request.body or b"{}")
    except ValueError:
        return None, json_error("JSON inválido", code="invalid_json")
    if not isinstance(data, dict):
        return None, json_error("Se esperaba un objeto JSON", code="invalid_json")
    return data, None
