"""Utility for structuring flat billing records for the validation engine.

Billing systems hand over one joined row per claim (claim, patient,
primary insurance, provider and facility columns) plus child rows for
service lines, diagnoses and the patient's prior services. The engine
expects the nested payload accepted by ``parse_claim``:
- patient.patient_id
- provider.provider_id / provider.npi
- payer.payer_id / payer.name
- procedures[].procedure_code
"""

from __future__ import annotations

import json
from typing import Any

from .date_parser import parse_flexible_date

# Record keys consumed into the structured payload; everything else that
# carries a value is passed through as a payer-specific field.
CONSUMED_KEYS = frozenset(
    {
        "id",
        "claim_id",
        "patient_id",
        "date_of_birth",
        "gender",
        "address",
        "city",
        "state",
        "zip_code",
        "provider_id",
        "provider_npi",
        "enrollment_status",
        "enrollment_date",
        "enrollment_effective_date",
        "enrollment_termination_date",
        "taxonomy_code",
        "payer_id",
        "insurance_id",
        "insurance_name",
        "payer_type",
        "service_date",
        "submission_date",
        "submitted_date",
        "service_lines",
        "diagnosis_codes",
        "patient_history",
        "total_amount",
        "total_charge",
        "prior_auth_number",
        "prior_authorization_number",
        "rendering_provider_npi",
        "referring_provider_npi",
        "place_of_service",
        "facility_npi",
        "raw_data",
        "first_name",
        "last_name",
        "facility_name",
    }
)


def structure_claim_record(claim_record: dict[str, Any]) -> dict[str, Any]:
    """Structure a flat billing record into a claim payload.

    Args:
        claim_record: Flat record with keys like patient_id, provider_npi,
            insurance_name, service_lines, diagnosis_codes, etc.

    Returns:
        Nested payload for ``parse_claim``
    """
    # raw_data holds extra fields from the source system
    raw_data: dict[str, Any] = {}
    if claim_record.get("raw_data"):
        try:
            parsed = json.loads(claim_record["raw_data"])
        except (json.JSONDecodeError, TypeError):
            parsed = None
        if isinstance(parsed, dict):
            raw_data = parsed
    record = {**raw_data, **{k: v for k, v in claim_record.items() if v is not None}}

    procedures = [_structure_service_line(line) for line in parse_json_records(record.get("service_lines"))]
    line_dates = [
        parsed
        for parsed in (
            parse_flexible_date(line.get("service_date"))
            for line in parse_json_records(record.get("service_lines"))
        )
        if parsed is not None
    ]

    service_date = record.get("service_date")
    if not service_date and line_dates:
        service_date = min(line_dates).isoformat()

    place_of_service = record.get("place_of_service")
    if not place_of_service:
        for line in parse_json_records(record.get("service_lines")):
            if line.get("place_of_service"):
                place_of_service = str(line["place_of_service"])
                break

    payload = {
        "claim_id": _stringify(record.get("claim_id") or record.get("id")),
        "patient": {
            "patient_id": _stringify(record.get("patient_id")),
            "date_of_birth": record.get("date_of_birth"),
            "gender": record.get("gender"),
            "address": record.get("address"),
            "city": record.get("city"),
            "state": record.get("state"),
            "zip_code": _stringify(record.get("zip_code")),
        },
        "provider": {
            "provider_id": _stringify(record.get("provider_id") or record.get("provider_npi")),
            "npi": _stringify(record.get("provider_npi")),
            "enrollment_status": record.get("enrollment_status"),
            "enrollment_effective_date": record.get("enrollment_effective_date")
            or record.get("enrollment_date"),
            "enrollment_termination_date": record.get("enrollment_termination_date"),
            "taxonomy_code": record.get("taxonomy_code"),
        },
        "payer": {
            "payer_id": _stringify(
                record.get("payer_id") or record.get("insurance_id") or record.get("insurance_name")
            ),
            "name": record.get("insurance_name"),
            "payer_type": record.get("payer_type"),
        },
        "service_date": service_date,
        "submission_date": record.get("submission_date") or record.get("submitted_date"),
        "procedures": procedures,
        "diagnoses": _structure_diagnoses(record.get("diagnosis_codes")),
        "procedure_history": [
            {
                "procedure_code": str(entry.get("procedure_code")),
                "service_date": entry.get("service_date"),
                "units": entry.get("units") or 1,
            }
            for entry in parse_json_records(record.get("patient_history"))
            if entry.get("procedure_code") and entry.get("service_date")
        ],
        "total_charge": record.get("total_charge", record.get("total_amount")),
        "prior_authorization_number": record.get("prior_authorization_number")
        or record.get("prior_auth_number"),
        "rendering_provider_npi": _stringify(record.get("rendering_provider_npi")),
        "referring_provider_npi": _stringify(record.get("referring_provider_npi")),
        "place_of_service": _stringify(place_of_service),
        "facility_npi": _stringify(record.get("facility_npi")),
        "payer_fields": {
            key: value
            for key, value in record.items()
            if key not in CONSUMED_KEYS and value not in (None, "")
        },
    }
    return payload


def _structure_service_line(line: dict[str, Any]) -> dict[str, Any]:
    modifiers = line.get("modifiers")
    if not modifiers:
        modifiers = [line.get(f"modifier{idx}") or line.get(f"modifier_{idx}") for idx in range(1, 5)]
    return {
        "procedure_code": str(line.get("procedure_code", "")),
        "units": line.get("units") or 1,
        "diagnosis_pointers": line.get("diagnosis_pointers", line.get("diagnosis_pointer")),
        "modifiers": [m for m in modifiers if m],
        "charge": line.get("charge", line.get("charges")),
    }


def _structure_diagnoses(value: Any) -> list[dict[str, Any]]:
    diagnoses = []
    for idx, entry in enumerate(parse_json_records(value), start=1):
        code = entry.get("diagnosis_code") or entry.get("code")
        if not code:
            continue
        diagnoses.append(
            {
                "code": str(code),
                "pointer": entry.get("pointer_position") or entry.get("pointer") or idx,
            }
        )
    return diagnoses


def _stringify(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_json_records(value: Any) -> list[dict[str, Any]]:
    """Parse a JSON string or list of child rows into a list of dicts.

    Plain strings (e.g. bare diagnosis codes) become ``{"code": value}``.
    """
    records = []
    for item in parse_json_list(value, keep_objects=True):
        if isinstance(item, dict):
            records.append(item)
        elif item not in (None, ""):
            records.append({"code": str(item), "procedure_code": str(item)})
    return records


def parse_json_list(value: Any, keep_objects: bool = False) -> list[Any]:
    """Parse a value that may be a JSON string or list.

    Args:
        value: String, list, or None
        keep_objects: Return parsed items as-is instead of converting
            them to strings

    Returns:
        List of items (strings unless keep_objects is set)
    """
    if not value:
        return []

    convert = (lambda item: item) if keep_objects else str

    if isinstance(value, (list, tuple)):
        return [convert(item) for item in value]

    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return [value]
        if isinstance(parsed, list):
            return [convert(item) for item in parsed]
        return [convert(parsed)]

    return [convert(value)]
