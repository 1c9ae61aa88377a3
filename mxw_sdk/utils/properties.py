"""
Helpers for shaping dict-based records.
"""
import re
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional

from .. import errors
from .misc import is_undefined_or_null

RenameFunc = Callable[[str, int, Any], str]

_SNAKE_RE = re.compile(r"_([a-z])")


def camel_case(name: str) -> str:
    return _SNAKE_RE.sub(lambda match: match.group(1).upper(), name)


def camelize(obj: Any, rename: Optional[RenameFunc] = None, depth: int = 0) -> Any:
    """
    Recursively convert snake_case dict keys to camelCase.

    Args:
        obj: Dict or list to convert
        rename: Optional hook called as ``rename(camel_name, depth, obj)``
            returning the final key name
        depth: Current nesting depth

    Returns:
        A converted copy of ``obj``
    """
    if isinstance(obj, list):
        return [camelize(item, rename, depth + 1) for item in obj]
    if not isinstance(obj, dict):
        return obj

    result = {}
    for key, value in obj.items():
        if isinstance(value, (dict, list)):
            value = camelize(value, rename, depth + 1)
        name = camel_case(key) if isinstance(key, str) else key
        if rename:
            name = rename(name, depth, obj)
        result[name] = value
    return result


def resolve_properties(obj: Dict[str, Any]) -> Dict[str, Any]:
    """
    Resolve every ``Future`` value of ``obj``.

    The first failing future raises its exception.
    """
    result = {}
    for key, value in obj.items():
        if isinstance(value, Future):
            value = value.result()
        result[key] = value
    return result


def check_properties(obj: Any, properties: Dict[str, bool], mandate: bool = False) -> None:
    """
    Check that ``obj`` only carries known keys.

    Args:
        obj: Dict to check
        properties: Allowed keys mapped to whether they are required
        mandate: Also require the keys flagged as required

    Raises:
        ValidationError: INVALID_ARGUMENT for unknown keys,
            MISSING_ARGUMENT for absent required keys
    """
    if not isinstance(obj, dict):
        errors.throw_error("invalid object", errors.INVALID_ARGUMENT, {
            "argument": "object",
            "value": obj,
        })

    for key in obj:
        if key not in properties:
            errors.throw_error(f"invalid object key - {key}", errors.INVALID_ARGUMENT, {
                "argument": "transaction",
                "value": obj,
                "key": key,
            })

    if mandate:
        for key, required in properties.items():
            if required and is_undefined_or_null(obj.get(key)):
                errors.throw_error(f"missing object key - {key}", errors.MISSING_ARGUMENT, {
                    "argument": "transaction",
                    "value": obj,
                    "key": key,
                })


def shallow_copy(obj: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return dict(obj) if obj else {}
