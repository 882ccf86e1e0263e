"""
terminology/numeric.py
----------------------
Maps the numeric facet of a test to and from ObservationDefinition
quantitativeDetails / qualifiedInterval blocks.

Each interval is tagged with the reference-range extension (normal,
treatment, absolute). The standard qualifiedInterval.category is used
as a fallback tag on import and emitted alongside the extension on export.
"""

from terminology.fhir_constants import (
    CATEGORY_TO_RANGE, RANGE_ABSOLUTE, RANGE_CATEGORY,
    RANGE_CRITICAL, RANGE_NORMAL, REFERENCE_RANGE_EXTENSION,
)
from terminology.model import NumericDetails
from utils import clean_str, safe_float, safe_int

# range code → (low field, high field) on NumericDetails
RANGE_FIELDS = {
    RANGE_NORMAL:   ("low_normal", "hi_normal"),
    RANGE_CRITICAL: ("low_critical", "hi_critical"),
    RANGE_ABSOLUTE: ("low_absolute", "hi_absolute"),
}


# ── Import ────────────────────────────────────────────────────────────────────

def apply_numeric_details(details: NumericDetails, definition: dict) -> None:
    quantitative = definition.get("quantitativeDetails") or {}

    units = _unit_code(quantitative.get("unit"))
    if units:
        details.units = units

    # Only an explicit zero decimal precision forbids fractional values.
    precision = safe_int(quantitative.get("decimalPrecision"))
    details.allow_fractional = precision != 0

    for interval in definition.get("qualifiedInterval") or []:
        _apply_interval(details, interval)


def _unit_code(unit):
    if not isinstance(unit, dict):
        return clean_str(unit) if isinstance(unit, str) else None
    codings = unit.get("coding") or []
    if codings and isinstance(codings[0], dict) and clean_str(codings[0].get("code")):
        return clean_str(codings[0]["code"])
    return clean_str(unit.get("text"))


def _apply_interval(details: NumericDetails, interval) -> None:
    if not isinstance(interval, dict) or not interval.get("range"):
        return

    range_code = _range_code(interval)
    if range_code not in RANGE_FIELDS:
        return

    low_field, high_field = RANGE_FIELDS[range_code]
    low = _quantity_value(interval["range"].get("low"))
    high = _quantity_value(interval["range"].get("high"))
    if low is not None:
        setattr(details, low_field, low)
    if high is not None:
        setattr(details, high_field, high)


def _range_code(interval: dict):
    for ext in interval.get("extension") or []:
        if not isinstance(ext, dict) or ext.get("url") != REFERENCE_RANGE_EXTENSION:
            continue
        for key, value in ext.items():
            if key.startswith("value") and isinstance(value, str):
                return clean_str(value)
        return None

    category = interval.get("category")
    if isinstance(category, str):
        return CATEGORY_TO_RANGE.get(category)
    if isinstance(category, dict):
        for coding in category.get("coding") or []:
            mapped = CATEGORY_TO_RANGE.get((coding or {}).get("code"))
            if mapped:
                return mapped
    return None


def _quantity_value(quantity):
    if not isinstance(quantity, dict):
        return None
    return safe_float(quantity.get("value"))


# ── Export ────────────────────────────────────────────────────────────────────

def quantitative_details(details: NumericDetails):
    """quantitativeDetails block, or None when nothing is set."""
    block = {}
    if clean_str(details.units):
        units = details.units.strip()
        block["unit"] = {"coding": [{"code": units, "display": units}], "text": units}
    if details.allow_fractional is False:
        block["decimalPrecision"] = 0
    return block or None


def qualified_intervals(details: NumericDetails) -> list:
    allow_fractional = details.allow_fractional is not False
    intervals = []
    for range_code, (low_field, high_field) in RANGE_FIELDS.items():
        low = getattr(details, low_field)
        high = getattr(details, high_field)
        if low is None and high is None:
            continue
        rng = {}
        if low is not None:
            rng["low"] = {"value": _export_value(low, allow_fractional)}
        if high is not None:
            rng["high"] = {"value": _export_value(high, allow_fractional)}
        intervals.append({
            "extension": [{"url": REFERENCE_RANGE_EXTENSION, "valueCode": range_code}],
            "category": RANGE_CATEGORY[range_code],
            "range": rng,
        })
    return intervals


def _export_value(value: float, allow_fractional: bool):
    return float(value) if allow_fractional else int(value)
