# studygram/services/lookup.py
"""
Result types for best-effort reads.

`StudyDataService` returns one of these for every read so callers can
decide explicitly how to degrade when a row is missing versus when the
database call itself failed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Found:
    value: Any


@dataclass(frozen=True)
class Missing:
    pass


@dataclass(frozen=True)
class LookupFailed:
    reason: str


Lookup = Union[Found, Missing, LookupFailed]


def value_or(result: Lookup, default: Any) -> Any:
    """Unwrap a `Found` value, or return `default` for both absence cases."""
    if isinstance(result, Found):
        return result.value
    return default
