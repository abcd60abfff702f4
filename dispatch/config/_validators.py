"""Shared value checks for the config dataclasses."""
from __future__ import annotations

from typing import Union

Number = Union[int, float]


def validate_positive_int(value: int, name: str, min_val: int = 1) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < min_val:
        raise ValueError(f"{name} must be an integer >= {min_val}, got {value!r}")
    return value


def validate_nonnegative_int(value: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def validate_positive_number(value: Number, name: str) -> Number:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{name} must be a positive number, got {value!r}")
    return value


def parse_bool(value: object, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    raw = str(value or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes")
