"""Formats of the datasets analyzed by baselining jobs."""

from __future__ import annotations

from typing import Any


class DatasetFormat:
    """Builds the ``dataset_format`` structure of the model monitor analyzer."""

    @staticmethod
    def csv(header: bool = True, output_columns_position: str = "START") -> dict[str, Any]:
        """CSV data.

        Args:
            header: Whether the files have a header row.
            output_columns_position: ``START`` or ``END``; where the model
                output columns sit in captured records.

        Raises:
            ValueError: If output_columns_position is neither START nor END.
        """
        if output_columns_position not in ("START", "END"):
            raise ValueError(
                f"output_columns_position must be START or END, got {output_columns_position}"
            )
        return {"csv": {"header": header, "output_columns_position": output_columns_position}}

    @staticmethod
    def json(lines: bool = True) -> dict[str, Any]:
        """JSON data, one document per line when lines is True."""
        return {"json": {"lines": lines}}

    @staticmethod
    def sagemaker_capture_json() -> dict[str, Any]:
        """Data captured from an endpoint."""
        return {"sagemakerCaptureJson": {}}
