"""
Deterministic cache key construction.

Keys look like ``products:list`` or ``products:list:{"page":1,"q":"bolt"}``.
Parameter names are sorted so insertion order never changes the key.
Namespace and operation may not contain the separator, so the first two
separators always split the key unambiguously.
"""
import json
import math
from typing import Any, Mapping, Optional, Sequence, Union

from .errors import InvalidKeyInput

KEY_SEPARATOR = ":"

Scalar = Union[str, int, float, bool, None]
ParamValue = Union[Scalar, Sequence[Scalar]]

_SCALAR_TYPES = (str, int, float, bool, type(None))


def _check_scalar(name: str, value: Any) -> None:
    if not isinstance(value, _SCALAR_TYPES):
        raise InvalidKeyInput(
            f"Parameter '{name}' has unsupported type {type(value).__name__}"
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidKeyInput(f"Parameter '{name}' is not a finite number: {value}")


def _normalize(name: str, value: Any) -> ParamValue:
    if isinstance(value, (list, tuple)):
        for item in value:
            _check_scalar(name, item)
        return list(value)
    _check_scalar(name, value)
    return value


def _check_part(label: str, part: Any) -> None:
    if not isinstance(part, str) or not part:
        raise InvalidKeyInput(f"{label} must be a non-empty string, got {part!r}")
    if KEY_SEPARATOR in part:
        raise InvalidKeyInput(f"{label} may not contain '{KEY_SEPARATOR}': {part!r}")


def build_key(
    namespace: str,
    operation: str,
    params: Optional[Mapping[str, ParamValue]] = None,
) -> str:
    """
    Build a cache key from a namespace, an operation and its parameters.

    Args:
        namespace: Feature area prefix (e.g. "products")
        operation: Operation id within the namespace (e.g. "list")
        params: Scalar or list-of-scalar values keyed by name

    Returns:
        Stable string key

    Raises:
        InvalidKeyInput: If any part cannot be serialized deterministically
    """
    _check_part("Namespace", namespace)
    _check_part("Operation", operation)

    base = f"{namespace}{KEY_SEPARATOR}{operation}"
    if not params:
        return base

    if not isinstance(params, Mapping):
        raise InvalidKeyInput(f"Parameters must be a mapping, got {type(params).__name__}")

    normalized = {}
    for name, value in params.items():
        if not isinstance(name, str):
            raise InvalidKeyInput(f"Parameter names must be strings, got {name!r}")
        normalized[name] = _normalize(name, value)

    encoded = json.dumps(
        normalized,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return f"{base}{KEY_SEPARATOR}{encoded}"
