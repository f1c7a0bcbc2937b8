"""
Bind value validation and conversion.

Raw Python values are turned into tagged bind variants (TextBind, NumberBind,
TimestampBind, NullBind, OutBind) before any connection is acquired, then
unwrapped into driver parameters at dispatch.
"""

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from dbaccess.core.errors import BindTypeError
from dbaccess.models import (
    Bind,
    BindsArg,
    NullBind,
    NumberBind,
    OutBind,
    TextBind,
    TimestampBind,
)

_BIND_TYPES = (TextBind, NumberBind, TimestampBind, NullBind, OutBind)

NormalizedBinds = list[Bind] | dict[str, Bind]


def to_bind(value: Any) -> Bind:
    """Wrap a raw value in its bind variant. Bind variants pass through unchanged."""
    if isinstance(value, _BIND_TYPES):
        return value
    if value is None:
        return NullBind()
    if isinstance(value, bool):
        raise BindTypeError("Boolean not allowed as a bind value; use 1/0")
    if isinstance(value, (int, float, Decimal)):
        return NumberBind(value)
    if isinstance(value, str):
        return TextBind(value)
    if isinstance(value, date):
        return TimestampBind(value)
    raise BindTypeError(f"Unsupported bind value type: {type(value).__name__}")


def normalize_binds(binds: BindsArg) -> NormalizedBinds:
    """Validate a bind container: positional sequence or named mapping."""
    if binds is None:
        return []
    if isinstance(binds, Mapping):
        return {str(k): to_bind(v) for k, v in binds.items()}
    if isinstance(binds, (str, bytes)) or not isinstance(binds, Sequence):
        raise BindTypeError(
            f"Binds must be a sequence or a mapping, got {type(binds).__name__}"
        )
    return [to_bind(v) for v in binds]


def positional_binds(binds: BindsArg) -> list[Bind]:
    normalized = normalize_binds(binds)
    if isinstance(normalized, dict):
        raise BindTypeError("Positional binds expected, got a mapping")
    return normalized


def driver_value(bind: Bind) -> Any:
    if isinstance(bind, (OutBind, NullBind)):
        return None
    return bind.value


def driver_params(binds: NormalizedBinds) -> list[Any] | dict[str, Any] | None:
    """Unwrap binds for the driver; None when there is nothing to bind."""
    if not binds:
        return None
    if isinstance(binds, dict):
        return {k: driver_value(b) for k, b in binds.items()}
    return [driver_value(b) for b in binds]


def out_keys(binds: NormalizedBinds) -> list[str | int]:
    """Names (mapping) or positions (sequence) of OutBind entries, in order."""
    items = binds.items() if isinstance(binds, dict) else enumerate(binds)
    return [k for k, b in items if isinstance(b, OutBind)]
