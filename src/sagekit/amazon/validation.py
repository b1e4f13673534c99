"""Validation predicates for built-in algorithm hyperparameters."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any


def gt(minimum: float) -> Callable[[Any], bool]:
    def validate(value: Any) -> bool:
        return value > minimum

    return validate


def ge(minimum: float) -> Callable[[Any], bool]:
    def validate(value: Any) -> bool:
        return value >= minimum

    return validate


def lt(maximum: float) -> Callable[[Any], bool]:
    def validate(value: Any) -> bool:
        return value < maximum

    return validate


def le(maximum: float) -> Callable[[Any], bool]:
    def validate(value: Any) -> bool:
        return value <= maximum

    return validate


def isin(*expected: Any) -> Callable[[Any], bool]:
    def validate(value: Any) -> bool:
        return value in expected

    return validate


def istype(expected: type | tuple[type, ...]) -> Callable[[Any], bool]:
    def validate(value: Any) -> bool:
        return isinstance(value, expected)

    return validate
