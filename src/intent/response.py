"""Strict decoding of interpreter output.

The interpreter is asked for exactly one JSON object. Anything else (prose, code fences, truncated
JSON, a top-level array) is a decode failure. No best-effort extraction is attempted: partially
recovered data must never reach the validator.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Decoded:
    """The interpreter output decoded to a JSON object."""

    value: dict[str, Any]


@dataclass(frozen=True)
class DecodeFailure:
    """The interpreter output was not a single JSON object."""

    reason: str


def decode_response(raw: str | None) -> Decoded | DecodeFailure:
    """Decode raw interpreter text into a JSON object without raising."""

    if not isinstance(raw, str) or not raw.strip():
        return DecodeFailure("empty response")

    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        return DecodeFailure(f"invalid JSON: {exc.msg}")
    except RecursionError:
        return DecodeFailure("invalid JSON: nesting too deep")

    if not isinstance(value, dict):
        return DecodeFailure(f"expected a JSON object, got {type(value).__name__}")
    return Decoded(value=value)
