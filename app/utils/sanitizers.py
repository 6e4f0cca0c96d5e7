"""
Form Input Sanitizers

Every value coming from an admin multipart form passes through one of these
before it reaches a model column. Admin forms send everything as strings,
so each helper accepts raw strings, treats blank as "no value", and either
returns None or raises SanitizationError in strict mode.
"""
import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_INVALID_RE = re.compile(r"[^a-z0-9-]")


class SanitizationError(Exception):
    """Raised when sanitization fails and cannot recover."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def sanitize_decimal(
    value: Any,
    field_name: str = "decimal",
    min_value: Optional[Decimal] = None,
    max_value: Optional[Decimal] = None,
    exclusive_min: bool = False,
    strict: bool = False,
) -> Optional[Decimal]:
    """
    Sanitize value for a NUMERIC column.

    Args:
        value: Raw form value
        field_name: Name of field (for errors and logging)
        min_value: Minimum allowed value
        max_value: Maximum allowed value
        exclusive_min: Reject values equal to min_value
        strict: Raise on invalid input instead of returning None

    Returns:
        Decimal or None
    """
    if _blank(value):
        return None

    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, bool):
            raise InvalidOperation(f"boolean is not a number: {value}")
        elif isinstance(value, (int, float)):
            result = Decimal(str(value))
        else:
            result = Decimal(str(value).strip())
        if not result.is_finite():
            raise InvalidOperation(f"non-finite value: {value}")
    except (InvalidOperation, ValueError) as e:
        if strict:
            raise SanitizationError(f"{field_name} must be a number", field_name) from e
        logger.debug(f"Could not parse decimal for {field_name}: '{value}', returning None")
        return None

    too_small = min_value is not None and (
        result <= min_value if exclusive_min else result < min_value
    )
    too_large = max_value is not None and result > max_value
    if too_small or too_large:
        if strict:
            if too_small:
                bound = "greater than" if exclusive_min else "at least"
                raise SanitizationError(f"{field_name} must be {bound} {min_value}", field_name)
            raise SanitizationError(f"{field_name} must be at most {max_value}", field_name)
        logger.warning(f"{field_name} out of range, returning None: {result}")
        return None

    return result


def sanitize_integer(
    value: Any,
    field_name: str = "integer",
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
    strict: bool = False,
) -> Optional[int]:
    """
    Sanitize value for an INTEGER column.

    Only whole numbers are accepted ("3", "3.0" and 3 all parse; "3.5" does not).
    """
    if _blank(value):
        return None

    try:
        if isinstance(value, bool):
            raise ValueError(f"boolean is not an integer: {value}")
        if isinstance(value, int):
            result = value
        else:
            as_decimal = Decimal(str(value).strip())
            if not as_decimal.is_finite() or as_decimal != as_decimal.to_integral_value():
                raise ValueError(f"not a whole number: {value}")
            result = int(as_decimal)
    except (InvalidOperation, ValueError, TypeError) as e:
        if strict:
            raise SanitizationError(f"{field_name} must be a whole number", field_name) from e
        return None

    if min_value is not None and result < min_value:
        if strict:
            raise SanitizationError(f"{field_name} must be at least {min_value}", field_name)
        return None

    if max_value is not None and result > max_value:
        if strict:
            raise SanitizationError(f"{field_name} must be at most {max_value}", field_name)
        return None

    return result


def sanitize_string(
    value: Any,
    field_name: str = "string",
    max_length: Optional[int] = None,
    allow_empty: bool = False,
) -> Optional[str]:
    """
    Strip a string value; blank becomes None unless allow_empty.

    Over-long values are truncated.
    """
    if value is None:
        return None

    result = str(value).strip()

    if not allow_empty and result == "":
        return None

    if max_length and len(result) > max_length:
        logger.debug(f"Truncating {field_name} from {len(result)} to {max_length} chars")
        result = result[:max_length]

    return result


def sanitize_boolean(value: Any) -> Optional[bool]:
    """Parse the usual truthy/falsy query and form spellings."""
    if value is None:
        return None

    if isinstance(value, bool):
        return value

    if isinstance(value, str):
        value = value.strip().lower()
        if value in ('true', 'yes', '1', 't', 'y', 'on'):
            return True
        if value in ('false', 'no', '0', 'f', 'n', 'off'):
            return False
        return None

    return None


def is_absolute_url(value: Any) -> bool:
    """True for well-formed absolute http(s) URLs."""
    if not isinstance(value, str) or not value or value != value.strip():
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def slugify(name: str) -> str:
    """
    URL-safe slug: lowercase, whitespace runs become "-", anything outside
    [a-z0-9-] is removed.

    >>> slugify("Gaming PC #1")
    'gaming-pc-1'
    """
    slug = _WHITESPACE_RE.sub("-", name.strip().lower())
    return _SLUG_INVALID_RE.sub("", slug)


def _load_json_array(raw: Any, field_name: str) -> Optional[list]:
    """Decode a JSON array; blank or null input is an empty list, malformed input is None."""
    if isinstance(raw, list):
        return raw
    if _blank(raw) or raw in ("null", "undefined"):
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {field_name} JSON received: {raw!r}")
        return None
    if not isinstance(parsed, list):
        logger.warning(f"{field_name} JSON is not an array: {raw!r}")
        return None
    return parsed


def sanitize_specs(raw: Any) -> Optional[List[Dict[str, str]]]:
    """
    Parse the technical specs list.

    Each {key, value} pair is trimmed; pairs with an empty key or value after
    trimming are dropped. Input order is preserved and duplicate keys are
    allowed. Returns None when the input is not a JSON array at all, so
    callers can leave stored specs untouched.
    """
    items = _load_json_array(raw, "specs")
    if items is None:
        return None

    specs = []
    for item in items:
        if not isinstance(item, dict):
            continue
        key = item.get("key")
        value = item.get("value")
        key = key.strip() if isinstance(key, str) else ""
        value = value.strip() if isinstance(value, str) else ""
        if key and value:
            specs.append({"key": key, "value": value})
    return specs


def parse_url_list(raw: Any, field_name: str = "keepImageUrls") -> List[str]:
    """
    Parse a JSON array of URLs, keeping only well-formed absolute URLs.

    Anything else is discarded silently; duplicates collapse to their first
    occurrence.
    """
    items = _load_json_array(raw, field_name) or []

    urls = []
    for item in items:
        if is_absolute_url(item) and item not in urls:
            urls.append(item)
    return urls
