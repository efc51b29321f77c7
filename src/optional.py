"""Explicit optional values for entity fields.

Form inputs and CSV rows hand us ``""`` or ``None`` for fields the
instructor left blank.  Entities keep such fields as :data:`ABSENT` and only
the serialisation edge (:func:`to_store`) turns that into the store's null,
which is always written rather than omitted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class _Absent:
    """Singleton marker for a field without a value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


@dataclass(frozen=True)
class Some(Generic[T]):
    value: T


Maybe = Union[Some[T], _Absent]


def optional(value: Any) -> Maybe:
    """Wrap a raw value, treating ``None`` and blank strings as absent."""

    if isinstance(value, (Some, _Absent)):
        return value
    if value is None:
        return ABSENT
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return ABSENT
    return Some(value)


def to_store(value: Maybe) -> Any:
    """Return the store representation of ``value`` (``None`` when absent)."""

    return value.value if isinstance(value, Some) else None


def value_or(value: Maybe, default: Any = None) -> Any:
    return value.value if isinstance(value, Some) else default


__all__ = ["ABSENT", "Maybe", "Some", "optional", "to_store", "value_or"]
