"""Declarative validation rules for entity columns and dynamic field values.

Never raises on a failing rule: failures are collected into a ValidationReport and stored on the
record (validation_status/validation_messages). Structural problems are the record builder's job.

Rule document (per value):
  required, min_length, max_length, pattern, allowed_values, min, max,
  required_if: {"field": <name>, "equals": <value>}, custom: [<registered rule name>, ...]
Entity rules are keyed by column name: {"entity_code": {"pattern": "^C-\\d+$"}}.
"""

import re
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from typing import Any

from apps.universal_api.schemas.responses import ValidationReport
from apps.universal_api.services.value_codec import decode_value

SMART_CODE_PATTERN = re.compile(r"^HERA\.[A-Z0-9_]+(\.[A-Z0-9_]+){2,}\.[vV]\d+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9 ()\-]{7,20}$")

# Business data that belongs in dynamic fields rather than entity metadata
FIELD_PLACEMENT_KEYS = ("price", "quantity", "description", "category", "status", "type")

KNOWN_RULES = frozenset(
    {"required", "min_length", "max_length", "pattern", "allowed_values", "min", "max", "required_if", "custom"}
)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and len(value) == 0)


def _email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value))


def _phone(value: Any) -> bool:
    return isinstance(value, str) and bool(PHONE_PATTERN.match(value))


def _non_negative(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _uppercase(value: Any) -> bool:
    return isinstance(value, str) and value == value.upper()


def _smart_code(value: Any) -> bool:
    return isinstance(value, str) and bool(SMART_CODE_PATTERN.match(value))


CUSTOM_RULES: dict[str, Callable[[Any], bool]] = {
    "email": _email,
    "phone": _phone,
    "non_negative": _non_negative,
    "uppercase": _uppercase,
    "smart_code": _smart_code,
}


def register_rule(name: str, predicate: Callable[[Any], bool]) -> None:
    """Register a named custom rule usable from validation_rules['custom']."""
    CUSTOM_RULES[name] = predicate


def _comparable(value: Any) -> Any:
    """Dates/ISO strings -> aware datetime, numbers unchanged. None if not comparable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return _comparable(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            try:
                return float(value)
            except ValueError:
                return None
    return None


def _check_bound(label: str, value: Any, bound: Any, op: str) -> str | None:
    v, b = _comparable(value), _comparable(bound)
    if v is None or b is None or isinstance(v, datetime) != isinstance(b, datetime):
        return f"{label}: cannot compare {value!r} with {op} {bound!r}"
    if op == "min" and v < b:
        return f"{label}: must be >= {bound}"
    if op == "max" and v > b:
        return f"{label}: must be <= {bound}"
    return None


def _is_count(operand: Any) -> bool:
    return isinstance(operand, int) and not isinstance(operand, bool) and operand >= 0


def _invalid_rule(label: str, name: str) -> str:
    return f"{label}: invalid rule {name!r}"


def validate_value(
    label: str,
    value: Any,
    rules: Mapping[str, Any] | None,
    context: Mapping[str, Any] | None = None,
) -> list[str]:
    """Evaluate one rule document against value. Returns failure messages (empty = valid).
    context supplies sibling values for required_if. A malformed rule operand is reported, never raised."""
    if not rules:
        return []
    if not isinstance(rules, Mapping):
        return [f"{label}: rules must be an object"]
    messages: list[str] = []
    context = context or {}

    unknown = sorted(str(k) for k in set(rules) - KNOWN_RULES)
    for name in unknown:
        messages.append(f"{label}: unknown rule {name!r}")

    required = bool(rules.get("required"))
    if "required_if" in rules:
        cond = rules["required_if"]
        if not isinstance(cond, Mapping) or not isinstance(cond.get("field"), str) or not cond["field"]:
            messages.append(_invalid_rule(label, "required_if"))
        elif context.get(cond["field"]) == cond.get("equals"):
            required = True
    if _is_empty(value):
        if required:
            messages.append(f"{label}: is required")
        return messages

    size = len(value) if isinstance(value, (str, list, dict)) else len(str(value))
    for name in ("min_length", "max_length"):
        bound = rules.get(name)
        if bound is None:
            continue
        if not _is_count(bound):
            messages.append(_invalid_rule(label, name))
        elif name == "min_length" and size < bound:
            messages.append(f"{label}: length must be >= {bound}")
        elif name == "max_length" and size > bound:
            messages.append(f"{label}: length must be <= {bound}")

    pattern = rules.get("pattern")
    if pattern is not None and not isinstance(pattern, str):
        messages.append(_invalid_rule(label, "pattern"))
    elif pattern:
        try:
            if not re.fullmatch(pattern, str(value)):
                messages.append(f"{label}: does not match pattern {pattern}")
        except re.error as e:
            messages.append(f"{label}: invalid pattern {pattern!r} ({e})")

    allowed = rules.get("allowed_values")
    if allowed is not None:
        if not isinstance(allowed, (list, tuple)):
            messages.append(_invalid_rule(label, "allowed_values"))
        elif value not in allowed:
            messages.append(f"{label}: {value!r} not in allowed values {list(allowed)}")

    for op in ("min", "max"):
        if rules.get(op) is not None:
            msg = _check_bound(label, value, rules[op], op)
            if msg:
                messages.append(msg)

    custom = rules.get("custom") or []
    if isinstance(custom, str):
        custom = [custom]
    if not isinstance(custom, (list, tuple)):
        messages.append(_invalid_rule(label, "custom"))
        custom = []
    for name in custom:
        if not isinstance(name, str):
            messages.append(_invalid_rule(label, "custom"))
            continue
        predicate = CUSTOM_RULES.get(name)
        if predicate is None:
            messages.append(f"{label}: unknown custom rule {name!r}")
        elif not predicate(value):
            messages.append(f"{label}: failed {name} check")
    return messages


def _report(messages: list[str], warnings: list[str], evaluated: bool) -> ValidationReport:
    if messages:
        status = "invalid"
    elif evaluated:
        status = "valid"
    else:
        status = "pending"
    return ValidationReport(status=status, messages=messages, warnings=warnings)


def _get(record: Any, key: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(key)
    return getattr(record, key, None)


def smart_code_warnings(smart_code: Any) -> list[str]:
    if smart_code and not _smart_code(smart_code):
        return [f"smart_code {smart_code!r} does not follow HERA.<MODULE>.<TYPE>...v<N>"]
    return []


def validate_entity(record: Any, rules: Mapping[str, Any] | None = None) -> ValidationReport:
    """Evaluate column rules (default: record's own validation_rules) plus advisory guardrails.

    Warnings (smart code format, business keys in metadata) never change the status.
    """
    if rules is None:
        rules = _get(record, "validation_rules") or {}
    metadata = _get(record, "metadata_")
    if metadata is None:
        metadata = _get(record, "metadata") if isinstance(record, Mapping) else None
    columns = {
        "entity_type": _get(record, "entity_type"),
        "entity_name": _get(record, "entity_name"),
        "entity_code": _get(record, "entity_code"),
        "entity_description": _get(record, "entity_description"),
        "status": _get(record, "status"),
        "smart_code": _get(record, "smart_code"),
        "tags": _get(record, "tags"),
        "ai_confidence": _get(record, "ai_confidence"),
        "ai_classification": _get(record, "ai_classification"),
    }
    messages: list[str] = []
    for column, column_rules in rules.items():
        if column not in columns:
            messages.append(f"{column}: no such entity column")
            continue
        if not isinstance(column_rules, Mapping):
            messages.append(f"{column}: rules must be an object")
            continue
        messages.extend(validate_value(column, columns[column], column_rules, columns))

    warnings = smart_code_warnings(columns["smart_code"])
    if isinstance(metadata, Mapping):
        misplaced = [k for k in FIELD_PLACEMENT_KEYS if k in metadata]
        if misplaced:
            warnings.append(
                f"Business fields [{', '.join(misplaced)}] detected in metadata. Consider moving to dynamic fields"
            )
    return _report(messages, warnings, evaluated=bool(rules))


def validate_field(record: Any, siblings: Mapping[str, Any] | None = None) -> ValidationReport:
    """Evaluate a dynamic field's validation_rules against its decoded value.
    is_required=True implies the required rule. siblings maps other field_name -> value (for required_if)."""
    rules = dict(_get(record, "validation_rules") or {})
    if _get(record, "is_required"):
        rules["required"] = True
    label = _get(record, "field_name") or "value"
    messages = validate_value(label, decode_value(record), rules, siblings)
    return _report(messages, smart_code_warnings(_get(record, "smart_code")), evaluated=bool(rules))
