"""Deserializers that decode ``InvokeEndpoint`` response bodies.

Every deserializer reads the streaming body and closes it, except
:class:`StreamDeserializer`, which hands the open stream to the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import codecs
import csv
import io
import json
from typing import Any

import numpy as np
import pandas as pd


class BaseDeserializer(ABC):
    """Abstract base class for deserializers.

    Subclasses set ``accept``, the MIME type(s) they can read.
    """

    accept: str | tuple[str, ...]

    @abstractmethod
    def deserialize(self, stream: Any, content_type: str) -> Any:
        """Deserialize data received from an inference endpoint.

        Args:
            stream: Streaming body (``read()``/``close()``).
            content_type: MIME type of the body.
        """


class SimpleBaseDeserializer(BaseDeserializer):
    """Deserializer with a configurable accept type."""

    def __init__(self, accept: str | tuple[str, ...] = "*/*") -> None:
        self.accept = accept


class StringDeserializer(SimpleBaseDeserializer):
    """Deserialize data to a string."""

    def __init__(self, encoding: str = "UTF-8", accept: str = "application/json") -> None:
        super().__init__(accept=accept)
        self.encoding = encoding

    def deserialize(self, stream: Any, content_type: str) -> str:
        try:
            return stream.read().decode(self.encoding)
        finally:
            stream.close()


class BytesDeserializer(SimpleBaseDeserializer):
    """Deserialize data to bytes."""

    def deserialize(self, stream: Any, content_type: str) -> bytes:
        try:
            return stream.read()
        finally:
            stream.close()


class CSVDeserializer(SimpleBaseDeserializer):
    """Deserialize CSV to a list of rows, each a list of strings."""

    def __init__(self, encoding: str = "utf-8", accept: str = "text/csv") -> None:
        super().__init__(accept=accept)
        self.encoding = encoding

    def deserialize(self, stream: Any, content_type: str) -> list[list[str]]:
        try:
            decoded_string = stream.read().decode(self.encoding)
            return list(csv.reader(decoded_string.splitlines()))
        finally:
            stream.close()


class StreamDeserializer(SimpleBaseDeserializer):
    """Return the open stream and its content type; the caller closes it."""

    def deserialize(self, stream: Any, content_type: str) -> tuple[Any, str]:
        return stream, content_type


class NumpyDeserializer(SimpleBaseDeserializer):
    """Deserialize CSV, JSON or NPY data to a numpy array."""

    def __init__(
        self, dtype: Any = None, accept: str = "application/x-npy", allow_pickle: bool = False
    ) -> None:
        super().__init__(accept=accept)
        self.dtype = dtype
        self.allow_pickle = allow_pickle

    def deserialize(self, stream: Any, content_type: str) -> np.ndarray:
        """Deserialize into a numpy array.

        Raises:
            ValueError: If the content type is not CSV, JSON or NPY.
        """
        try:
            if content_type == "text/csv":
                return np.genfromtxt(
                    codecs.getreader("utf-8")(stream), delimiter=",", dtype=self.dtype
                )
            if content_type == "application/json":
                return np.array(json.load(codecs.getreader("utf-8")(stream)), dtype=self.dtype)
            if content_type == "application/x-npy":
                return np.load(io.BytesIO(stream.read()), allow_pickle=self.allow_pickle)
        finally:
            stream.close()

        raise ValueError(f"{type(self).__name__} cannot read content type {content_type}.")


class JSONDeserializer(SimpleBaseDeserializer):
    """Deserialize JSON data to Python objects."""

    def __init__(self, accept: str = "application/json") -> None:
        super().__init__(accept=accept)

    def deserialize(self, stream: Any, content_type: str) -> Any:
        try:
            return json.load(codecs.getreader("utf-8")(stream))
        finally:
            stream.close()


class JSONLinesDeserializer(SimpleBaseDeserializer):
    """Deserialize JSON Lines data to a list of Python objects."""

    def __init__(self, accept: str = "application/jsonlines") -> None:
        super().__init__(accept=accept)

    def deserialize(self, stream: Any, content_type: str) -> list[Any]:
        try:
            body = stream.read().decode("utf-8")
            return [json.loads(line) for line in body.splitlines() if line.strip()]
        finally:
            stream.close()


class PandasDeserializer(SimpleBaseDeserializer):
    """Deserialize CSV or JSON data to a pandas DataFrame."""

    def __init__(self, accept: tuple[str, ...] = ("text/csv", "application/json")) -> None:
        super().__init__(accept=accept)

    def deserialize(self, stream: Any, content_type: str) -> pd.DataFrame:
        """Deserialize into a DataFrame.

        Raises:
            ValueError: If the content type is not CSV or JSON.
        """
        try:
            if content_type == "text/csv":
                return pd.read_csv(io.BytesIO(stream.read()))
            if content_type == "application/json":
                return pd.read_json(io.BytesIO(stream.read()))
        finally:
            stream.close()

        raise ValueError(f"{type(self).__name__} cannot read content type {content_type}.")
