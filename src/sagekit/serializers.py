"""Serializers that encode prediction requests for ``InvokeEndpoint``."""

from __future__ import annotations

from abc import ABC, abstractmethod
import csv
import io
import json
import os
from typing import Any

import numpy as np


class BaseSerializer(ABC):
    """Abstract base class for serializers.

    Subclasses set ``content_type``, the MIME type of the serialized data.
    """

    content_type: str

    @abstractmethod
    def serialize(self, data: Any) -> Any:
        """Serialize data into the request body of an inference request."""


class SimpleBaseSerializer(BaseSerializer):
    """Serializer with a configurable content type."""

    def __init__(self, content_type: str = "application/json") -> None:
        if not isinstance(content_type, str):
            raise ValueError(
                f"content_type must be a string specifying the MIME type of the data sent in "
                f"requests: e.g. 'application/json', 'text/csv', etc. Got {content_type}"
            )
        self.content_type = content_type


def _is_sequence_like(obj: Any) -> bool:
    return isinstance(obj, (list, tuple, np.ndarray))


class CSVSerializer(SimpleBaseSerializer):
    """Serialize scalars, sequences, nested sequences and arrays as CSV rows."""

    def __init__(self, content_type: str = "text/csv") -> None:
        super().__init__(content_type=content_type)

    def serialize(self, data: Any) -> str:
        """Serialize data of various formats to a CSV-formatted string.

        Args:
            data: A scalar, a sequence (one row), a sequence of sequences or
                a 2-D array (one row each), a file-like object, the path of
                a local file, or a string already in CSV form.

        Returns:
            The CSV text.
        """
        if hasattr(data, "read"):
            return data.read()
        if isinstance(data, str) and os.path.isfile(data):
            with open(data) as f:
                return f.read()

        if _is_sequence_like(data) and len(data) > 0 and _is_sequence_like(data[0]):
            return "\n".join(self._serialize_row(row) for row in data)
        return self._serialize_row(data)

    @staticmethod
    def _serialize_row(data: Any) -> str:
        if isinstance(data, str):
            return data
        if isinstance(data, (bool, int, float, np.number)):
            return str(data)
        if isinstance(data, np.ndarray):
            data = data.flatten()

        if hasattr(data, "__len__"):
            if len(data) == 0:
                raise ValueError("Cannot serialize empty array")
            csv_buffer = io.StringIO()
            csv.writer(csv_buffer, delimiter=",").writerow(data)
            return csv_buffer.getvalue().rstrip("\r\n")

        raise ValueError(f"Unable to handle input format: {type(data)}")


class NumpySerializer(SimpleBaseSerializer):
    """Serialize data to the NPY format."""

    def __init__(self, dtype: Any = None, content_type: str = "application/x-npy") -> None:
        super().__init__(content_type=content_type)
        self.dtype = dtype

    def serialize(self, data: Any) -> Any:
        """Serialize an array, a list or a file-like object to NPY bytes.

        Raises:
            ValueError: If the array is empty.
        """
        if isinstance(data, np.ndarray):
            if data.size == 0:
                raise ValueError("Cannot serialize empty array.")
            return self._serialize_array(data)

        if isinstance(data, list):
            if len(data) == 0:
                raise ValueError("Cannot serialize empty array.")
            return self._serialize_array(np.array(data, self.dtype))

        if hasattr(data, "read"):
            return data.read()

        return self._serialize_array(np.array(data))

    @staticmethod
    def _serialize_array(array: np.ndarray) -> bytes:
        buffer = io.BytesIO()
        np.save(buffer, array)
        return buffer.getvalue()


class JSONSerializer(SimpleBaseSerializer):
    """Serialize data to JSON, converting numpy arrays to lists."""

    def serialize(self, data: Any) -> str:
        if isinstance(data, dict):
            return json.dumps({key: _ndarray_to_list(value) for key, value in data.items()})
        if hasattr(data, "read"):
            return data.read()
        return json.dumps(_ndarray_to_list(data))


def _ndarray_to_list(data: Any) -> Any:
    return data.tolist() if isinstance(data, np.ndarray) else data


class IdentitySerializer(SimpleBaseSerializer):
    """Pass data through unchanged."""

    def __init__(self, content_type: str = "application/octet-stream") -> None:
        super().__init__(content_type=content_type)

    def serialize(self, data: Any) -> Any:
        return data


class JSONLinesSerializer(SimpleBaseSerializer):
    """Serialize a sequence of records to JSON Lines."""

    def __init__(self, content_type: str = "application/jsonlines") -> None:
        super().__init__(content_type=content_type)

    def serialize(self, data: Any) -> str:
        """Serialize records, one JSON document per line.

        Strings and file-like objects are assumed to be JSON Lines already.

        Raises:
            ValueError: If data is not a sequence of records.
        """
        if isinstance(data, str):
            return data
        if hasattr(data, "read"):
            return data.read()
        if _is_sequence_like(data):
            return "\n".join(json.dumps(_ndarray_to_list(record)) for record in data)
        raise ValueError(f"Object of type {type(data)} is not JSON Lines serializable.")
