"""Tests for request serializers and response deserializers."""

import io
import json

import numpy as np
import pandas as pd
import pytest

from sagekit.deserializers import (
    BytesDeserializer,
    CSVDeserializer,
    JSONDeserializer,
    JSONLinesDeserializer,
    NumpyDeserializer,
    PandasDeserializer,
    StreamDeserializer,
    StringDeserializer,
)
from sagekit.serializers import (
    CSVSerializer,
    IdentitySerializer,
    JSONLinesSerializer,
    JSONSerializer,
    NumpySerializer,
)


class TestCSVSerializer:
    """Test CSV encoding."""

    def test_content_type(self):
        """Test the default content type."""
        assert CSVSerializer().content_type == "text/csv"

    def test_scalar_and_row(self):
        """Test scalars and flat sequences."""
        serializer = CSVSerializer()
        assert serializer.serialize(1.5) == "1.5"
        assert serializer.serialize([1, 2, 3]) == "1,2,3"
        assert serializer.serialize(np.array([1, 2, 3])) == "1,2,3"

    def test_rows(self):
        """Test nested sequences and 2-D arrays become one line per row."""
        serializer = CSVSerializer()
        assert serializer.serialize([[1, 2], [3, 4]]) == "1,2\n3,4"
        assert serializer.serialize(np.array([[1, 2], [3, 4]])) == "1,2\n3,4"

    def test_string_and_file(self, tmp_path):
        """Test that CSV text, files and paths pass through."""
        serializer = CSVSerializer()
        assert serializer.serialize("1,2\n3,4") == "1,2\n3,4"
        assert serializer.serialize(io.StringIO("5,6")) == "5,6"
        path = tmp_path / "rows.csv"
        path.write_text("7,8\n")
        assert serializer.serialize(str(path)) == "7,8\n"

    def test_empty(self):
        """Test that empty rows are rejected."""
        with pytest.raises(ValueError, match="empty"):
            CSVSerializer().serialize([])

    def test_invalid_content_type(self):
        """Test that the content type must be a string."""
        with pytest.raises(ValueError, match="content_type must be a string"):
            JSONSerializer(content_type=None)


class TestOtherSerializers:
    """Test JSON, JSON Lines, NPY and identity encoding."""

    def test_json(self):
        """Test that arrays are converted to lists."""
        serializer = JSONSerializer()
        assert json.loads(serializer.serialize({"instances": np.array([1, 2])})) == {"instances": [1, 2]}
        assert json.loads(serializer.serialize(np.array([[1], [2]]))) == [[1], [2]]

    def test_json_lines(self):
        """Test one JSON document per record."""
        serializer = JSONLinesSerializer()
        assert serializer.serialize([{"a": 1}, {"b": 2}]) == '{"a": 1}\n{"b": 2}'
        with pytest.raises(ValueError, match="not JSON Lines serializable"):
            serializer.serialize(42)

    def test_numpy(self):
        """Test that lists and arrays encode to NPY."""
        serializer = NumpySerializer(dtype="float32")
        loaded = np.load(io.BytesIO(serializer.serialize([1, 2, 3])))
        assert loaded.dtype == np.float32
        assert loaded.tolist() == [1.0, 2.0, 3.0]
        with pytest.raises(ValueError, match="empty"):
            serializer.serialize(np.array([]))

    def test_identity(self):
        """Test that bytes pass through."""
        serializer = IdentitySerializer()
        assert serializer.serialize(b"raw") == b"raw"
        assert serializer.content_type == "application/octet-stream"


class TestDeserializers:
    """Test decoding response bodies."""

    def test_string_and_bytes(self):
        """Test raw decoders."""
        assert StringDeserializer().deserialize(io.BytesIO(b"hello"), "text/plain") == "hello"
        assert BytesDeserializer().deserialize(io.BytesIO(b"hello"), "text/plain") == b"hello"

    def test_closes_stream(self):
        """Test that the stream is closed after reading."""
        stream = io.BytesIO(b"[1]")
        JSONDeserializer().deserialize(stream, "application/json")
        assert stream.closed

    def test_stream_left_open(self):
        """Test that the stream deserializer hands back the open stream."""
        stream = io.BytesIO(b"data")
        result, content_type = StreamDeserializer().deserialize(stream, "text/plain")
        assert result is stream
        assert content_type == "text/plain"
        assert not stream.closed

    def test_csv(self):
        """Test CSV rows as lists of strings."""
        rows = CSVDeserializer().deserialize(io.BytesIO(b"1,2\n3,4\n"), "text/csv")
        assert rows == [["1", "2"], ["3", "4"]]

    def test_json_lines(self):
        """Test JSON Lines, skipping blank lines."""
        records = JSONLinesDeserializer().deserialize(io.BytesIO(b'{"a": 1}\n\n{"b": 2}\n'), "application/jsonlines")
        assert records == [{"a": 1}, {"b": 2}]

    def test_numpy_formats(self):
        """Test reading CSV, JSON and NPY into arrays."""
        deserializer = NumpyDeserializer()
        csv_array = deserializer.deserialize(io.BytesIO(b"1,2\n3,4"), "text/csv")
        assert csv_array.tolist() == [[1.0, 2.0], [3.0, 4.0]]

        json_array = deserializer.deserialize(io.BytesIO(b"[[1, 2], [3, 4]]"), "application/json")
        assert json_array.tolist() == [[1, 2], [3, 4]]

        buffer = io.BytesIO()
        np.save(buffer, np.array([5, 6]))
        npy_array = deserializer.deserialize(io.BytesIO(buffer.getvalue()), "application/x-npy")
        assert npy_array.tolist() == [5, 6]

    def test_numpy_unsupported(self):
        """Test that unknown content types are rejected."""
        with pytest.raises(ValueError, match="cannot read content type"):
            NumpyDeserializer().deserialize(io.BytesIO(b""), "image/png")

    def test_pandas(self):
        """Test reading CSV and JSON into data frames."""
        deserializer = PandasDeserializer()
        frame = deserializer.deserialize(io.BytesIO(b"a,b\n1,2\n3,4\n"), "text/csv")
        pd.testing.assert_frame_equal(frame, pd.DataFrame({"a": [1, 3], "b": [2, 4]}))

        frame = deserializer.deserialize(io.BytesIO(b'{"a": [1, 3], "b": [2, 4]}'), "application/json")
        assert frame["a"].tolist() == [1, 3]
