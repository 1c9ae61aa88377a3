"""
Canonical encoding and response format checking.

The canonical encoder turns a transaction tree into the exact byte sequence
that gets signed, so its output must be deterministic and idempotent. The
format checkers validate and coerce loosely typed RPC payloads before they
are renamed into application-facing records.
"""
import json
import re
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from .. import errors


class _Undefined:
    """Marker for a value that is absent, as opposed to an explicit ``None``."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "UNDEFINED"


UNDEFINED = _Undefined()


@runtime_checkable
class Canonicalizable(Protocol):
    """A value that knows its own canonical (decimal string) form."""

    def to_canonical_form(self) -> str:
        ...


CheckFormatFunc = Callable[[Any], Any]
Visitor = Callable[[Any, Any, Optional[str]], Any]

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")


def is_undefined_or_null(value: Any) -> bool:
    return value is None or value is UNDEFINED


def is_undefined_or_null_or_empty(value: Any) -> bool:
    if is_undefined_or_null(value):
        return True
    if isinstance(value, str):
        return len(value) == 0
    return False


def is_hex_string(value: Any, length: Optional[int] = None) -> bool:
    if not isinstance(value, str) or not _HEX_RE.match(value):
        return False
    if length is not None and len(value) != 2 + 2 * length:
        return False
    return True


def hex_data_length(value: Any) -> Optional[int]:
    if not is_hex_string(value) or len(value) % 2:
        return None
    return (len(value) - 2) // 2


def type_tag(value: Any) -> Optional[str]:
    """Classify a leaf for the canonical visitor."""
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float, Decimal)):
        return "Number"
    if isinstance(value, Canonicalizable):
        return "BigNumber"
    return type(value).__name__


def _is_composite(value: Any) -> bool:
    return isinstance(value, (dict, list, tuple)) and len(value) > 0


def sort_object(obj: Any) -> Any:
    """
    Return ``obj`` with dict keys sorted at every nesting level.

    Lists keep their order, their elements are sorted individually. ``None``
    is preserved and empty containers are kept as they are.
    """
    if isinstance(obj, dict):
        result = {}
        for key in sorted(obj.keys()):
            value = obj[key]
            result[key] = sort_object(value) if _is_composite(value) else value
        return result
    if isinstance(obj, (list, tuple)):
        return [sort_object(value) if _is_composite(value) else value for value in obj]
    return obj


def iterate(obj: Any, visitor: Optional[Visitor] = None) -> Any:
    """
    Walk every composite and leaf of ``obj``, letting ``visitor`` replace them.

    The visitor is called as ``visitor(key, value, type_tag)``. Values equal to
    ``UNDEFINED`` are dropped, ``None`` values are kept without visiting.
    """
    if not isinstance(obj, (dict, list, tuple)) or len(obj) == 0:
        return obj

    is_mapping = isinstance(obj, dict)
    modified: Any = {} if is_mapping else []
    items = obj.items() if is_mapping else enumerate(obj)

    for key, data in items:
        if data is UNDEFINED:
            continue
        if data is None:
            if is_mapping:
                modified[key] = None
            else:
                modified.append(None)
            continue

        tag = type_tag(data)
        if visitor:
            data = visitor(key, data, tag)
        if _is_composite(data):
            data = iterate(data, visitor)

        if is_mapping:
            modified[key] = data
        else:
            modified.append(data)
    return modified


def stringify_numbers(key: Any, value: Any, tag: Optional[str]) -> Any:
    """Visitor that turns numeric leaves into decimal strings."""
    if tag == "Number":
        return str(value)
    if tag == "BigNumber":
        return value.to_canonical_form()
    return value


def canonicalize(value: Any) -> Any:
    return sort_object(iterate(value, stringify_numbers))


def canonical_json(value: Any) -> str:
    """Canonical JSON text: numerics stringified, keys sorted, no whitespace."""
    return json.dumps(canonicalize(value), separators=(",", ":"), ensure_ascii=False)


def check_format(format: Dict[str, Any], obj: Any) -> Dict[str, Any]:
    """
    Validate and coerce ``obj`` against a nested schema of coercion functions.

    Args:
        format: Mapping of key to coercion function or nested mapping
        obj: Raw value to check

    Returns:
        A new dict containing only the schema keys, coerced

    Raises:
        ValidationError: MISSING_ARGUMENT when a key is absent,
            INVALID_FORMAT when a coercion fails
    """
    result: Dict[str, Any] = {}
    source = obj if isinstance(obj, dict) else {}
    for key, check in format.items():
        value = source.get(key, UNDEFINED)
        try:
            if callable(check):
                coerced = check(value)
                if coerced is not UNDEFINED:
                    result[key] = coerced
            else:
                result[key] = check_format(check, value)
        except Exception as error:
            if value is UNDEFINED:
                errors.throw_error(f"missing object key {key}", errors.MISSING_ARGUMENT, {
                    "key": key,
                    "object": obj,
                })
            reason = getattr(error, "reason", None) or str(error)
            errors.throw_error(f"invalid format object key {key}: {reason}", errors.INVALID_FORMAT, {
                "value": value,
                "key": key,
                "object": obj,
            })
    return result


def allow_null(check: CheckFormatFunc, null_value: Any = UNDEFINED) -> CheckFormatFunc:
    def _check(value: Any) -> Any:
        if is_undefined_or_null(value):
            return null_value
        return check(value)
    return _check


def not_allow_null(check: CheckFormatFunc) -> CheckFormatFunc:
    def _check(value: Any) -> Any:
        if is_undefined_or_null(value):
            raise ValueError("is null")
        return check(value)
    return _check


def allow_null_or_empty(check: CheckFormatFunc, null_value: Any = UNDEFINED) -> CheckFormatFunc:
    def _check(value: Any) -> Any:
        if is_undefined_or_null(value) or value == "" or (isinstance(value, list) and len(value) == 0):
            return null_value
        return check(value)
    return _check


def not_allow_null_or_empty(check: CheckFormatFunc) -> CheckFormatFunc:
    def _check(value: Any) -> Any:
        if is_undefined_or_null_or_empty(value):
            raise ValueError("empty")
        return check(value)
    return _check


def array_of(check: CheckFormatFunc) -> CheckFormatFunc:
    def _check(array: Any) -> list:
        if not isinstance(array, (list, tuple)):
            raise ValueError("not an array")
        return [check(value) for value in array]
    return _check


def to_int(value: Any) -> int:
    """Parse an integer from an int, decimal string, hex string or big number."""
    if isinstance(value, bool):
        raise ValueError(f"invalid number - {value}")
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if value != int(value):
            raise ValueError(f"invalid integer - {value}")
        return int(value)
    if isinstance(value, Canonicalizable):
        return int(value.to_canonical_form())
    if isinstance(value, str):
        text = value.strip()
        if is_hex_string(text):
            return int(text[2:] or "0", 16)
        if re.match(r"^-?[0-9]+$", text):
            return int(text)
    raise ValueError(f"invalid number - {value}")


def check_hash(hash: Any, require_prefix: bool = False) -> str:
    if isinstance(hash, str):
        if not require_prefix and not hash.startswith("0x"):
            hash = "0x" + hash
        if hex_data_length(hash) == 32:
            return hash.lower()
    raise ValueError(f"invalid hash - {hash}")


def check_number(number: Any) -> int:
    return to_int(number)


def check_number_string(number: Any) -> str:
    return str(to_int(number))


def check_big_number(number: Any) -> int:
    return to_int(number)


def check_big_number_string(number: Any) -> str:
    return str(to_int(number))


def check_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueError(f"invalid boolean - {value}")


def check_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid string")
    return value


def check_timestamp(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid timestamp")
    return value


def check_address(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid address")
    return value


def check_hex(value: Any) -> str:
    if isinstance(value, str):
        if not value.startswith("0x"):
            value = "0x" + value
        if is_hex_string(value):
            return value
    raise ValueError(f"invalid hex - {value}")


def check_hex_address(value: Any) -> str:
    if isinstance(value, str):
        if not value.startswith("0x"):
            value = "0x" + value
        if is_hex_string(value):
            return value
    raise ValueError(f"invalid hex address - {value}")


def check_any(value: Any) -> Any:
    return value
