"""
Conversión entre diccionarios (JSON) y registros del motor.

Acepta los nombres de campo de este proyecto y los del antiguo tablero en el
navegador (``nomSociete``, ``dateVente``, ``echeancesPersonnalisees``...), para
poder importar sus archivos tal cual. Las colecciones que no son listas se
leen como vacías y las entradas ilegibles se omiten con un warning.
"""
import logging
import re
from typing import List

from core.normalization import normalize_choice, to_date, to_decimal
from finance.records import (
    AutomaticPlan,
    Cadence,
    CommissionState,
    CustomInstallment,
    CustomPlan,
    Installment,
    InstallmentStatus,
    Partner,
    PaymentRecord,
    PlanType,
    Sale,
)

logger = logging.getLogger(__name__)

PLAN_TYPE_ALIASES = {
    "auto": PlanType.AUTOMATIC,
    "automatic": PlanType.AUTOMATIC,
    "automatico": PlanType.AUTOMATIC,
    "automatique": PlanType.AUTOMATIC,
    "custom": PlanType.CUSTOM,
    "personalizado": PlanType.CUSTOM,
    "personnalise": PlanType.CUSTOM,
}

CADENCE_ALIASES = {
    "monthly": Cadence.MONTHLY,
    "mensual": Cadence.MONTHLY,
    "mensuel": Cadence.MONTHLY,
    "quarterly": Cadence.QUARTERLY,
    "trimestral": Cadence.QUARTERLY,
    "trimestriel": Cadence.QUARTERLY,
}

STATUS_ALIASES = {
    "pending": InstallmentStatus.PENDING,
    "pendiente": InstallmentStatus.PENDING,
    "en_attente": InstallmentStatus.PENDING,
    "paid": InstallmentStatus.PAID,
    "pagada": InstallmentStatus.PAID,
    "payee": InstallmentStatus.PAID,
}


class MalformedRecord(ValueError):
    pass


def _get(data, *keys):
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _required(value, name):
    if value is None or value == "":
        raise MalformedRecord(f"campo requerido ausente: {name}")
    return value


def _integer(value, name):
    """Entero de un int o de un texto de dígitos. Rechaza bool, decimales y floats no enteros."""
    if isinstance(value, bool):
        raise MalformedRecord(f"{name} debe ser un entero")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
        return int(value)
    raise MalformedRecord(f"{name} debe ser un entero")


def _choice(value, aliases):
    if value is None:
        return None
    return aliases.get(normalize_choice(value))


# ---------------------------------------------------------------------------
# dict -> registro
# ---------------------------------------------------------------------------

def partner_from_dict(data) -> Partner:
    return Partner(
        id=str(_required(_get(data, "id"), "id")),
        company_name=str(_required(_get(data, "company_name", "nomSociete"), "company_name")),
        standard_rate=_required(
            to_decimal(_get(data, "standard_rate", "tauxCommissionStandard")),
            "standard_rate",
        ),
    )


def custom_installment_from_dict(data) -> CustomInstallment:
    return CustomInstallment(
        id=str(_get(data, "id") or ""),
        due_date=_required(to_date(_get(data, "due_date", "date")), "due_date"),
        amount=_required(to_decimal(_get(data, "amount", "commission")), "amount"),
        status=_choice(_get(data, "status", "statut"), STATUS_ALIASES)
        or InstallmentStatus.PENDING,
        paid_date=to_date(_get(data, "paid_date", "datePaiement")),
    )


def plan_from_dict(data):
    plan_type = _choice(_get(data, "plan_type", "planType"), PLAN_TYPE_ALIASES)
    if plan_type == PlanType.CUSTOM:
        raw = _get(data, "custom_installments", "echeancesPersonnalisees")
        items = raw if isinstance(raw, list) else []
        return CustomPlan(
            installments=tuple(custom_installment_from_dict(item) for item in items)
        )
    if plan_type == PlanType.AUTOMATIC:
        count = _get(data, "installment_count", "nombreEcheances")
        return AutomaticPlan(
            installment_count=(
                _integer(count, "installment_count") if count not in (None, "") else None
            ),
            cadence=_choice(_get(data, "cadence", "pasEcheance"), CADENCE_ALIASES),
        )
    raise MalformedRecord("tipo de plan desconocido")


def sale_from_dict(data) -> Sale:
    total_amount = _required(
        to_decimal(_get(data, "total_amount", "montantTotalVente")), "total_amount"
    )
    applied_rate = _required(
        to_decimal(_get(data, "applied_rate", "tauxCommissionApplique")), "applied_rate"
    )
    total_commission = to_decimal(_get(data, "total_commission", "montantCommissionTotal"))
    if total_commission is None:
        total_commission = total_amount * applied_rate
    return Sale(
        id=str(_required(_get(data, "id"), "id")),
        partner_id=str(_required(_get(data, "partner_id", "partenaireId"), "partner_id")),
        customer_name=str(_get(data, "customer_name", "clientFinalNom") or ""),
        total_amount=total_amount,
        applied_rate=applied_rate,
        sale_date=_required(to_date(_get(data, "sale_date", "dateVente")), "sale_date"),
        total_commission=total_commission,
        plan=plan_from_dict(data),
    )


def payment_from_dict(data) -> PaymentRecord:
    return PaymentRecord(
        id=str(_required(_get(data, "id"), "id")),
        sale_id=str(_required(_get(data, "sale_id", "venteId"), "sale_id")),
        partner_id=str(_get(data, "partner_id", "partenaireId") or ""),
        customer_name=str(_get(data, "customer_name", "clientFinalNom") or ""),
        amount=_required(to_decimal(_get(data, "amount", "montant")), "amount"),
        due_date=_required(to_date(_get(data, "due_date", "dateEcheance")), "due_date"),
        paid_date=_required(to_date(_get(data, "paid_date", "datePaiement")), "paid_date"),
        plan_type=_choice(_get(data, "plan_type", "planType"), PLAN_TYPE_ALIASES)
        or PlanType.AUTOMATIC,
    )


def records_from_list(payload, parser, label) -> List:
    """Lista de registros; ``payload`` que no es lista se trata como vacío."""
    if not isinstance(payload, list):
        if payload is not None:
            logger.warning(
                "Colección %s inválida (%s): se usa lista vacía",
                label,
                type(payload).__name__,
            )
        return []

    records = []
    for position, item in enumerate(payload):
        try:
            if not isinstance(item, dict):
                raise MalformedRecord("no es un objeto")
            records.append(parser(item))
        except (MalformedRecord, TypeError, ValueError) as exc:
            logger.warning("Entrada %s #%s omitida: %s", label, position, exc)
    return records


def state_from_payload(partners=None, sales=None, payments=None) -> CommissionState:
    return CommissionState(
        partners=tuple(records_from_list(partners, partner_from_dict, "partners")),
        sales=tuple(records_from_list(sales, sale_from_dict, "sales")),
        payments=tuple(records_from_list(payments, payment_from_dict, "payments")),
    )


# ---------------------------------------------------------------------------
# registro -> dict
# ---------------------------------------------------------------------------

def partner_to_dict(partner: Partner) -> dict:
    return {
        "id": partner.id,
        "company_name": partner.company_name,
        "standard_rate": partner.standard_rate,
    }


def custom_installment_to_dict(item: CustomInstallment) -> dict:
    return {
        "id": item.id,
        "due_date": item.due_date,
        "amount": item.amount,
        "status": item.status,
        "paid_date": item.paid_date,
    }


def sale_to_dict(sale: Sale) -> dict:
    data = {
        "id": sale.id,
        "partner_id": sale.partner_id,
        "customer_name": sale.customer_name,
        "total_amount": sale.total_amount,
        "applied_rate": sale.applied_rate,
        "sale_date": sale.sale_date,
        "total_commission": sale.total_commission,
        "plan_type": sale.plan_type,
    }
    if isinstance(sale.plan, CustomPlan):
        data["custom_installments"] = [
            custom_installment_to_dict(item) for item in sale.plan.installments
        ]
    else:
        data["installment_count"] = sale.plan.installment_count
        data["cadence"] = sale.plan.cadence
    return data


def payment_to_dict(payment: PaymentRecord) -> dict:
    return {
        "id": payment.id,
        "sale_id": payment.sale_id,
        "partner_id": payment.partner_id,
        "customer_name": payment.customer_name,
        "amount": payment.amount,
        "due_date": payment.due_date,
        "paid_date": payment.paid_date,
        "plan_type": payment.plan_type,
    }


def installment_to_dict(installment: Installment) -> dict:
    return {
        "id": installment.id,
        "sale_id": installment.sale_id,
        "partner_id": installment.partner_id,
        "customer_name": installment.customer_name,
        "plan_type": installment.plan_type,
        "due_date": installment.due_date,
        "amount": installment.amount,
    }
