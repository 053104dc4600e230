"""
Admin-console validation for discount code records.

Create and update share one validator: an update is merged onto the stored
record and the merged record must satisfy the same rules as a new one. Values
that belong to the other family of code types are nulled, so a record is either
percent/fixed with ``discount_value`` or partner-tiered with moq and tiers.
"""
from __future__ import annotations
from typing import Any, Dict, Mapping

from ..helpers import coerce_bool, coerce_int, from_iso
from .discount import DISCOUNT_TYPES, PARTNER_TIERED, PERCENT
from .errors import InvalidDiscountConfig
from .tiers import DEFAULT_PARTNER_MOQ, normalize_tiers, validate_partner_config

EDITABLE_FIELDS = (
    "code", "active", "discount_type", "discount_value", "valid_from",
    "valid_to", "max_redemptions", "min_subtotal_cents", "notes",
    "stripe_coupon_id", "partner_moq", "partner_tiers",
)


def _code(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidDiscountConfig("Missing code")
    # lookups fold case with SQL upper(), which is ASCII-only on SQLite
    if not value.isascii():
        raise InvalidDiscountConfig("Code must use ASCII characters only")
    return value.strip()


def _discount_type(value: Any) -> str:
    if value not in DISCOUNT_TYPES:
        raise InvalidDiscountConfig("Invalid discount_type")
    return value


def _optional_int(body: Mapping[str, Any], key: str, minimum: int):
    value = body.get(key)
    if value is None:
        return None
    n = coerce_int(value)
    if n is None or n < minimum:
        raise InvalidDiscountConfig(f"Invalid {key}")
    return n


def _optional_str(value: Any):
    return value if isinstance(value, str) else None


def _coerce_field(body: Mapping[str, Any], key: str) -> Any:
    value = body.get(key)
    if key == "code":
        return _code(value)
    if key == "active":
        active = coerce_bool(value)
        if active is None:
            raise InvalidDiscountConfig("Invalid active")
        return active
    if key == "discount_type":
        return _discount_type(value)
    if key == "discount_value":
        return _optional_int(body, key, 1)
    if key in ("valid_from", "valid_to"):
        return from_iso(value)
    if key in ("max_redemptions", "min_subtotal_cents"):
        return _optional_int(body, key, 0)
    if key == "partner_moq":
        return _optional_int(body, key, 1)
    if key == "partner_tiers":
        return None if value is None else [
            t.to_dict() for t in normalize_tiers(value)
        ]
    return _optional_str(value)


def validate_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Check a complete record and null the fields of the other code family."""
    out = dict(record)
    if (out.get("valid_from") is not None and out.get("valid_to") is not None
            and out["valid_from"] > out["valid_to"]):
        raise InvalidDiscountConfig("valid_from must not be after valid_to")

    if out["discount_type"] == PARTNER_TIERED:
        if out.get("discount_value") is not None:
            raise InvalidDiscountConfig(
                "discount_value must be null for partner tier codes"
            )
        if out.get("partner_moq") is None:
            out["partner_moq"] = DEFAULT_PARTNER_MOQ
        tiers = normalize_tiers(out.get("partner_tiers") or [])
        validate_partner_config(out["partner_moq"], tiers)
        out["partner_tiers"] = [t.to_dict() for t in tiers]
        out["stripe_coupon_id"] = None
        return out

    value = out.get("discount_value")
    if value is None:
        raise InvalidDiscountConfig(
            "discount_value is required for percent and fixed codes"
        )
    if out["discount_type"] == PERCENT and not 1 <= value <= 100:
        raise InvalidDiscountConfig("Percent must be 1 to 100")
    out["partner_moq"] = None
    out["partner_tiers"] = None
    return out


def parse_new_code(body: Mapping[str, Any]) -> Dict[str, Any]:
    if not isinstance(body, Mapping):
        raise InvalidDiscountConfig("Invalid JSON")
    record: Dict[str, Any] = {
        "code": _code(body.get("code")),
        "discount_type": _discount_type(body.get("discount_type")),
        "active": True,
    }
    if body.get("active") is not None:
        record["active"] = _coerce_field(body, "active")
    for key in EDITABLE_FIELDS:
        if key not in record:
            record[key] = _coerce_field(body, key)
    if record["discount_type"] == PARTNER_TIERED:
        record["discount_value"] = None
    return validate_record(record)


def merge_code_update(
    current: Mapping[str, Any], body: Mapping[str, Any]
) -> Dict[str, Any]:
    """Columns that change when ``body`` is applied to ``current``."""
    if not isinstance(body, Mapping):
        raise InvalidDiscountConfig("Invalid JSON")
    supplied = {
        key: _coerce_field(body, key)
        for key in EDITABLE_FIELDS
        # null for code/active/discount_type means "leave alone"
        if key in body and not (
            body[key] is None and key in ("code", "active", "discount_type")
        )
    }
    if not supplied:
        raise InvalidDiscountConfig("No fields to update")

    merged = {key: current.get(key) for key in EDITABLE_FIELDS}
    merged.update(supplied)
    if (merged["discount_type"] == PARTNER_TIERED
            and "discount_value" not in supplied):
        merged["discount_value"] = None
    merged = validate_record(merged)
    return {
        key: merged[key] for key in EDITABLE_FIELDS
        if merged[key] != current.get(key)
    }
