"""Descriptor for validated hyperparameters of built-in algorithm estimators."""

from __future__ import annotations

from collections.abc import Callable, Iterable
import json
from typing import Any


class Hyperparameter:
    """A hyperparameter stored in the owner's ``_hyperparameters`` dict.

    Assigned values are converted with ``data_type`` and checked by every
    validation callable; None unsets the hyperparameter.
    """

    def __init__(
        self,
        name: str,
        validate: Callable[[Any], bool] | Iterable[Callable[[Any], bool]] = lambda _: True,
        validation_message: str = "",
        data_type: Callable[[Any], Any] = str,
    ) -> None:
        """Initialize a hyperparameter.

        Args:
            name: Name passed to the training job.
            validate: Callable, or iterable of callables, returning True for valid values.
            validation_message: Description of valid values, used in errors.
            data_type: Conversion applied to assigned values.
        """
        self.name = name
        self.validation_message = validation_message
        self.data_type = data_type
        if callable(validate):
            self.validation: list[Callable[[Any], bool]] = [validate]
        else:
            self.validation = list(validate)

    @property
    def description(self) -> str:
        return self.validation_message

    def validate(self, value: Any) -> None:
        """Check a converted value.

        Raises:
            ValueError: If any validation callable rejects the value.
        """
        if value is None:
            return
        for valid in self.validation:
            if not valid(value):
                error_message = f"Invalid hyperparameter value {value} for {self.name}"
                if self.validation_message:
                    error_message += f". Expecting: {self.validation_message}"
                raise ValueError(error_message)

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return getattr(obj, "_hyperparameters", {}).get(self.name)

    def __set__(self, obj: Any, value: Any) -> None:
        if value is not None:
            value = self.data_type(value)
        self.validate(value)
        if "_hyperparameters" not in obj.__dict__:
            obj._hyperparameters = {}
        obj._hyperparameters[self.name] = value

    def __delete__(self, obj: Any) -> None:
        obj._hyperparameters.pop(self.name, None)

    @staticmethod
    def serialize_all(obj: Any) -> dict[str, str]:
        """All set hyperparameters of obj as strings; lists are JSON-encoded."""
        hyperparameters = obj.__dict__.get("_hyperparameters", {})
        return {
            k: json.dumps(v) if isinstance(v, list) else str(v)
            for k, v in hyperparameters.items()
            if v is not None
        }
