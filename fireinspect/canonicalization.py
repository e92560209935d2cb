"""
Canonical Content Encoding for inspection records.

Turns an InspectionContent into a deterministic byte sequence for hashing.

Rules (version fireinspect.content.v1):
- Fields are emitted in the fixed order of CONTENT_FIELDS, never by
  reflection over the object
- Compact JSON object, UTF-8, no whitespace, non-ASCII kept as-is
- First member is "v" carrying CANONICAL_VERSION
- Decimals rendered as strings with fixed precision (GPS 7 places,
  accuracy/pressure/weight 2 places), half-even rounding, no negative zero
- Timestamps in UTC, ISO-8601 with microseconds and "Z"
- Text NFC-normalized
- Photo references keep their order; checklist outcomes are sorted by
  item key and encoded as fixed-position arrays

Changing any of these rules requires a new CANONICAL_VERSION.
"""

import json
import math
import unicodedata
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Any, Callable, Dict, List, Optional, Tuple

from .content import ChecklistOutcome, InspectionContent
from .errors import SerializationError


CANONICAL_VERSION = "fireinspect.content.v1"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

VALID_RESPONSES = ("Pass", "Fail", "NA")


# ============================================================
# Value encoders
# ============================================================

def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Fixed-precision UTC ISO-8601, e.g. 2024-03-01T09:30:00.000000Z."""
    return ensure_utc(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Inverse of format_timestamp."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _text(name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise SerializationError(name, f"expected text, got {type(value).__name__}")
    return unicodedata.normalize("NFC", value)


def _required_text(name: str, value: Any) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise SerializationError(name, "is required")
    return _text(name, value)


def _timestamp(name: str, value: Any) -> str:
    if value is None:
        raise SerializationError(name, "is required")
    if not isinstance(value, datetime):
        raise SerializationError(name, f"expected datetime, got {type(value).__name__}")
    return format_timestamp(value)


def _flag(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise SerializationError(name, "expected true/false")
    return value


def _check(name: str, value: Any) -> Optional[bool]:
    if value is None:
        return None
    return _flag(name, value)


def _decimal(places: int) -> Callable[[str, Any], Optional[str]]:
    quantum = Decimal(1).scaleb(-places)

    def encode(name: str, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool):
            raise SerializationError(name, "expected a number, got bool")
        try:
            if isinstance(value, float):
                if not math.isfinite(value):
                    raise SerializationError(name, "must be finite")
                number = Decimal(repr(value))
            elif isinstance(value, (int, str, Decimal)):
                number = Decimal(value)
            else:
                raise SerializationError(name, f"expected a number, got {type(value).__name__}")
            if not number.is_finite():
                raise SerializationError(name, "must be finite")
            number = number.quantize(quantum, rounding=ROUND_HALF_EVEN)
        except InvalidOperation:
            raise SerializationError(name, f"not a valid number: {value!r}")
        if number.is_zero():
            number = abs(number)
        return format(number, "f")

    return encode


def _photos(name: str, value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        raise SerializationError(name, "expected a list of photo references")
    return [_required_text(f"{name}[{i}]", ref) for i, ref in enumerate(value)]


_checklist_value = _decimal(2)


def _checklist(name: str, value: Any) -> List[List[Any]]:
    if value is None:
        return []
    outcomes: List[ChecklistOutcome] = list(value)
    seen = set()
    encoded = []
    for outcome in sorted(outcomes, key=lambda o: str(o.item_key)):
        key = _required_text(f"{name}.item_key", outcome.item_key)
        if key in seen:
            raise SerializationError(name, f"duplicate checklist item {key!r}")
        seen.add(key)
        if outcome.response not in VALID_RESPONSES:
            raise SerializationError(f"{name}[{key}].response", f"must be one of {', '.join(VALID_RESPONSES)}")
        encoded.append([
            key,
            outcome.response,
            _text(f"{name}[{key}].comment", outcome.comment),
            _checklist_value(f"{name}[{key}].value", outcome.value),
            _text(f"{name}[{key}].photo_id", outcome.photo_id),
        ])
    return encoded


# ============================================================
# Field list (version fireinspect.content.v1)
# ============================================================

CONTENT_FIELDS: Tuple[Tuple[str, Callable[[str, Any], Any]], ...] = (
    ("asset_id", _required_text),
    ("inspector_id", _required_text),
    ("inspection_date", _timestamp),
    ("inspection_type", _required_text),
    ("gps_latitude", _decimal(7)),
    ("gps_longitude", _decimal(7)),
    ("gps_accuracy_meters", _decimal(2)),
    ("is_accessible", _check),
    ("has_obstructions", _check),
    ("signage_visible", _check),
    ("seal_intact", _check),
    ("pin_in_place", _check),
    ("nozzle_clear", _check),
    ("hose_condition_good", _check),
    ("gauge_in_green_zone", _check),
    ("gauge_pressure_psi", _decimal(2)),
    ("physical_damage_present", _check),
    ("damage_description", _text),
    ("weight_pounds", _decimal(2)),
    ("inspection_tag_attached", _check),
    ("previous_inspection_date", _text),
    ("notes", _text),
    ("requires_service", _flag),
    ("requires_replacement", _flag),
    ("failure_reason", _text),
    ("corrective_action", _text),
    ("declared_result", _text),
    ("photo_refs", _photos),
    ("checklist", _checklist),
)


def canonical_fields(content: InspectionContent) -> Dict[str, Any]:
    """Encoded field values in canonical order, led by the version tag."""
    encoded: Dict[str, Any] = {"v": CANONICAL_VERSION}
    for name, encode in CONTENT_FIELDS:
        encoded[name] = encode(name, getattr(content, name, None))
    return encoded


def canonicalize(content: InspectionContent) -> bytes:
    """
    Convert inspection content to its canonical byte form.

    Raises:
        SerializationError: If a required field is missing or a value
            cannot be encoded
    """
    return json.dumps(
        canonical_fields(content),
        separators=(',', ':'),
        ensure_ascii=False,
        allow_nan=False,
    ).encode('utf-8')


def canonicalize_str(content: InspectionContent) -> str:
    """Return canonical form as string."""
    return canonicalize(content).decode('utf-8')
