"""Hyperparameter ranges searched by a tuning job."""

from __future__ import annotations

import json
from typing import Any


class ParameterRange:
    """Base class for a hyperparameter range with minimum and maximum values."""

    RANGE_TYPES = ("Continuous", "Categorical", "Integer")
    range_type = ""

    def __init__(
        self,
        min_value: float | int | str,
        max_value: float | int | str,
        scaling_type: str = "Auto",
    ) -> None:
        """Initialize a parameter range.

        Args:
            min_value: Minimum value of the range.
            max_value: Maximum value of the range.
            scaling_type: ``Auto``, ``Linear``, ``Logarithmic`` or
                ``ReverseLogarithmic``.
        """
        self.min_value = min_value
        self.max_value = max_value
        self.scaling_type = scaling_type

    def is_valid(self, value: Any) -> bool:
        """Whether the value lies within the range."""
        return self.min_value <= value <= self.max_value

    @classmethod
    def cast_to_type(cls, value: Any) -> Any:
        return float(value)

    def as_tuning_range(self, name: str) -> dict[str, str]:
        """Represent the range as a tuning request ``ParameterRange`` dict."""
        return {
            "Name": name,
            "MinValue": str(self.min_value),
            "MaxValue": str(self.max_value),
            "ScalingType": self.scaling_type,
        }


class ContinuousParameter(ParameterRange):
    """A range of float values."""

    range_type = "Continuous"

    @classmethod
    def cast_to_type(cls, value: Any) -> float:
        return float(value)


class IntegerParameter(ParameterRange):
    """A range of integer values."""

    range_type = "Integer"

    @classmethod
    def cast_to_type(cls, value: Any) -> int:
        return int(value)


class CategoricalParameter(ParameterRange):
    """A set of discrete values."""

    range_type = "Categorical"

    def __init__(self, values: Any) -> None:
        """Initialize a categorical range.

        Args:
            values: The possible values. A single value is wrapped in a list.
        """
        if isinstance(values, list):
            self.values = [str(v) for v in values]
        else:
            self.values = [str(values)]

    def as_tuning_range(self, name: str) -> dict[str, Any]:  # type: ignore[override]
        return {"Name": name, "Values": self.values}

    def as_json_range(self, name: str) -> dict[str, Any]:
        """Tuning range with JSON-encoded values, for framework estimators.

        Framework containers decode every hyperparameter as JSON.
        """
        return {"Name": name, "Values": [json.dumps(v) for v in self.values]}

    def is_valid(self, value: Any) -> bool:
        return value in self.values

    @classmethod
    def cast_to_type(cls, value: Any) -> str:
        return str(value)
