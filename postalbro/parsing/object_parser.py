"""
Lenient object parsing for --data / --header / --query values.

Accepts strict JSON (``'{"name": "John", "age": "30"}'``) or a relaxed
object-literal form (``"{name: John, age: 30}"``).  All-digit string values
are coerced to ints in both cases.

Usage:
    parse_object("{a:1, b:two}")      -> {"a": 1, "b": "two"}
    encode_query({"a": 1, "b": "x"})  -> "a=1&b=x"
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from urllib.parse import quote_plus, urlencode

_DIGITS_RE = re.compile(r"[0-9]+")
_PART_SPLIT_RE = re.compile(r"\s*,\s*")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _coerce(value):
    """Turn an all-digit string into an int, leave everything else alone."""
    if isinstance(value, str) and _DIGITS_RE.fullmatch(value):
        return int(value)
    return value


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _parse_relaxed(text: str, require_value: bool = False) -> dict:
    """Parse ``{key: val, key2: val2}``.  No nesting, no quoted commas.

    Parts without a key are skipped.  With *require_value*, parts without a
    value are skipped too (the query-string rule); otherwise the value is "".
    """
    body = text.strip()
    if body.startswith("{") and body.endswith("}"):
        body = body[1:-1].strip()

    result: dict = {}
    if not body:
        return result

    for part in _PART_SPLIT_RE.split(body):
        key, _, value = part.partition(":")
        key = key.strip()
        value = value.strip()
        if not key:
            continue
        if require_value and not value:
            continue
        result[key] = _coerce(_strip_quotes(value))
    return result


def _load(text: str, require_value: bool = False) -> dict:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return _parse_relaxed(text, require_value=require_value)
    if not isinstance(obj, dict):
        raise ValueError(f"expected an object, got {type(obj).__name__}")
    return {key: _coerce(value) for key, value in obj.items()}


# ── Public API ───────────────────────────────────────────────────────────────


def parse_object(text) -> dict:
    """Parse a JSON or relaxed object string into a dict.

    Raises ValueError when the input parses to something other than an
    object.  Callers report that as invalid JSON.
    """
    if isinstance(text, Mapping):
        return {key: _coerce(value) for key, value in text.items()}
    if not text or not text.strip():
        return {}
    return _load(text)


def form_value(value) -> str:
    """Stringify a parsed value for a query string or form field."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _form_quote(value, safe="", encoding=None, errors=None) -> str:
    """application/x-www-form-urlencoded escaping: keeps alphanumerics and ``*-._``."""
    return quote_plus(value, safe="*", encoding=encoding, errors=errors).replace("~", "%7E")


def encode_query(value) -> str:
    """Encode a mapping or JSON/relaxed string as ``key=value&key2=value2``."""
    if not value:
        return ""
    if isinstance(value, Mapping):
        obj = {key: _coerce(val) for key, val in value.items()}
    else:
        obj = _load(value, require_value=True)
    return urlencode(
        [(str(key), form_value(val)) for key, val in obj.items()],
        quote_via=_form_quote,
    )
