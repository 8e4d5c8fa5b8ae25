import json
import math
import re
from collections.abc import Callable
from types import MappingProxyType
from typing import Any

from .errors import InvalidOperationError

_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+", re.ASCII)
_DECIMAL_TEXT = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?", re.ASCII)
_INFINITY_TEXT = {"infinity": math.inf, "+infinity": math.inf, "-infinity": -math.inf}


def to_number(value: Any) -> int | float | None:
    # Anything that does not parse cleanly becomes None rather than NaN.
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return 0
    if _INTEGER_TEXT.fullmatch(text):
        return int(text)
    if text.lower() in _INFINITY_TEXT:
        return _INFINITY_TEXT[text.lower()]
    # float() alone would also take "nan", "1_000" and non-ASCII digits.
    if not _DECIMAL_TEXT.fullmatch(text):
        return None
    return float(text)


def to_string(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    if isinstance(value, dict | list):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def to_boolean(value: Any) -> bool:
    return bool(value)


DEFAULT_CAST_REGISTRY = MappingProxyType(
    {
        "number": to_number,
        "string": to_string,
        "boolean": to_boolean,
    }
)


def get_caster(type_name: str) -> Callable[[Any], Any]:
    try:
        return DEFAULT_CAST_REGISTRY[type_name]
    except (KeyError, TypeError) as ex:
        valid_options = ", ".join(DEFAULT_CAST_REGISTRY)
        raise InvalidOperationError(
            f"Invalid type value for $cast. Expected one of: {valid_options}, got {type_name!r}.",
            extra={"type": type_name},
        ) from ex


def cast_value(value: Any, type_name: str) -> Any:
    """
    Coerce a primitive value to `number`, `string` or `boolean`.

    Raises:
        InvalidOperationError: If `type_name` is not a known cast.
    """
    return get_caster(type_name)(value)
