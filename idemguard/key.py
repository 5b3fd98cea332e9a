"""Key generation for idempotent operations."""

import dataclasses
import datetime
import decimal
import enum
import json
import math
import uuid
from collections.abc import Callable, Mapping, Sequence

from .exceptions import SerializationError
from .murmur import hash128


def derive_key(args: Sequence[object]) -> str:
    """Derive the fingerprint of an argument sequence.

    Args:
        args: Ordered call arguments

    Returns:
        32 lowercase hex characters, stable across processes

    Raises:
        SerializationError: If any argument cannot be canonicalized
    """
    return hash128(canonicalize(args))


def canonicalize(args: Sequence[object]) -> bytes:
    """Render an argument sequence as canonical UTF-8 JSON bytes.

    Logically equal values (``1`` and ``1.0``, ``(1, 2)`` and ``[1, 2]``,
    dicts with different insertion order, sets) produce the same bytes.
    Argument order is significant.
    """
    if not isinstance(args, (list, tuple)):
        raise SerializationError(args, "arguments must be a list or tuple")

    try:
        normalized = [_normalize_value(arg) for arg in args]
        text = json.dumps(
            normalized,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except RecursionError as e:
        raise SerializationError(args, "arguments contain a reference cycle") from e
    except (TypeError, ValueError) as e:
        raise SerializationError(args, str(e)) from e

    return text.encode("utf-8")


def build_call_args(
    func: Callable,
    args: tuple[object, ...],
    kwargs: dict[str, object],
    custom_key_func: Callable[..., str] | None = None,
) -> list[object]:
    """Build the argument sequence identifying a call to ``func``.

    The qualified function name is part of the sequence so that two
    functions called with the same arguments do not share a key.
    """
    if custom_key_func:
        return [custom_key_func(*args, **kwargs)]

    func_name = f"{func.__module__}.{func.__qualname__}"
    return [func_name, list(args), dict(kwargs)]


def generate_key(
    func: Callable,
    args: tuple[object, ...],
    kwargs: dict[str, object],
    custom_key_func: Callable[..., str] | None = None,
) -> str:
    """Generate the fingerprint for a call to ``func``.

    Args:
        func: The function being called
        args: Positional arguments
        kwargs: Keyword arguments
        custom_key_func: Optional function whose string result replaces
            the arguments

    Returns:
        The fingerprint of the call
    """
    return derive_key(build_call_args(func, args, kwargs, custom_key_func))


def _normalize_number(value: int | float | decimal.Decimal) -> object:
    if isinstance(value, decimal.Decimal):
        if not value.is_finite():
            raise SerializationError(value, f"non-finite decimal {value}")
        if value == value.to_integral_value():
            return int(value)
        as_float = float(value)
        if decimal.Decimal(as_float) == value:
            return as_float
        return {"__decimal__": str(value.normalize())}

    if isinstance(value, float):
        if not math.isfinite(value):
            raise SerializationError(value, f"non-finite float {value}")
        if value.is_integer():
            return int(value)
    return value


def _escape_key(key: str) -> str:
    # Tag names start with "__"; user keys never do after escaping.
    if key.startswith(("__", "~")):
        return "~" + key
    return key


def _normalize_dict_key(key: object) -> str:
    if isinstance(key, str):
        return _escape_key(key)
    if isinstance(key, bool):
        return json.dumps(key)
    if isinstance(key, (int, float, decimal.Decimal)):
        return json.dumps(_normalize_number(key))
    raise SerializationError(key, f"unsupported dict key type {type(key).__name__}")


def _normalize_value(value: object) -> object:
    """Convert a value into a JSON-compatible canonical structure.

    Args:
        value: Value to normalize

    Returns:
        Nested dicts, lists, strings, numbers, booleans and None

    Raises:
        SerializationError: If the value has no canonical form
    """
    if value is None or isinstance(value, (bool, str)):
        return value

    if isinstance(value, enum.Enum):
        return _normalize_value(value.value)

    if isinstance(value, (int, float, decimal.Decimal)):
        return _normalize_number(value)

    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]

    if isinstance(value, Mapping):
        normalized: dict[str, object] = {}
        for k, v in value.items():
            nk = _normalize_dict_key(k)
            if nk in normalized:
                raise SerializationError(value, f"dict keys collide on {nk!r}")
            normalized[nk] = _normalize_value(v)
        return normalized

    # Handle sets (sorted by the canonical text of each element)
    if isinstance(value, (set, frozenset)):
        items = [_normalize_value(v) for v in value]
        return sorted(
            items,
            key=lambda item: json.dumps(item, sort_keys=True, separators=(",", ":")),
        )

    if isinstance(value, (bytes, bytearray)):
        return {"__bytes__": bytes(value).hex()}

    if isinstance(value, datetime.datetime):
        return {"__datetime__": value.isoformat()}

    if isinstance(value, datetime.date):
        return {"__date__": value.isoformat()}

    if isinstance(value, datetime.time):
        return {"__time__": value.isoformat()}

    if isinstance(value, uuid.UUID):
        return {"__uuid__": str(value)}

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {
            _escape_key(f.name): _normalize_value(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
        fields["__dataclass__"] = type(value).__qualname__
        return fields

    model_dump = getattr(value, "model_dump", None)
    if callable(model_dump):
        return _normalize_value(model_dump())

    raise SerializationError(value, f"unsupported type {type(value).__name__}")
