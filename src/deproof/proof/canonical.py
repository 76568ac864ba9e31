"""Canonical JSON encoding used as digest input.

Signer and verifier must produce byte-identical output for logically equal
values, whatever the key insertion order or the runtime on either side:

* object keys are sorted by code point, arrays keep their order;
* no insignificant whitespace, non-ASCII text is emitted as UTF-8;
* integral numbers print without a fractional part (``1.0`` -> ``1``) and
  no number ever uses exponent notation (``1e-07`` -> ``0.0000001``).
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any


def canonicalize(value: Any) -> bytes:
    """Return the canonical UTF-8 encoding of a JSON-like value tree.

    Raises:
        TypeError: For non-string object keys or unsupported value types.
        ValueError: For NaN or infinite floats.
    """
    return _encode(value).encode("utf-8")


def _encode(value: Any) -> str:
    # bool is an int subclass; it has to be checked first
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        return _encode_float(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, Mapping):
        return _encode_object(value)
    if isinstance(value, list | tuple):
        return "[" + ",".join(_encode(item) for item in value) + "]"
    msg = f"Cannot canonicalize value of type {type(value).__name__}"
    raise TypeError(msg)


def _encode_object(value: Mapping[Any, Any]) -> str:
    for key in value:
        if not isinstance(key, str):
            msg = f"Object keys must be strings, got {type(key).__name__}"
            raise TypeError(msg)
    members = (
        f"{json.dumps(key, ensure_ascii=False)}:{_encode(value[key])}"
        for key in sorted(value)
    )
    return "{" + ",".join(members) + "}"


def _encode_float(value: float) -> str:
    if not math.isfinite(value):
        msg = f"Non-finite number cannot be canonicalized: {value!r}"
        raise ValueError(msg)
    if value.is_integer():
        return str(int(value))
    # repr gives the shortest round-trip digits; Decimal drops the exponent
    return format(Decimal(repr(value)), "f")
