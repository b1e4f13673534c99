"""Data capture settings of an endpoint."""

from __future__ import annotations

from typing import Any

from ..s3 import s3_path_join
from ..session import Session

_MODEL_MONITOR_S3_PATH = "model-monitor"
_DATA_CAPTURE_S3_PATH = "data-capture"


class DataCaptureConfig:
    """Which requests and responses an endpoint captures, and where they go."""

    API_MAPPING = {"REQUEST": "Input", "RESPONSE": "Output"}

    def __init__(
        self,
        enable_capture: bool,
        sampling_percentage: int = 20,
        destination_s3_uri: str | None = None,
        kms_key_id: str | None = None,
        capture_options: list[str] | None = None,
        csv_content_types: list[str] | None = None,
        json_content_types: list[str] | None = None,
        sagemaker_session: Session | None = None,
    ) -> None:
        """Initialize a data capture configuration.

        Args:
            enable_capture: Whether capture is enabled.
            sampling_percentage: Percentage of requests captured.
            destination_s3_uri: Capture location. Defaults to
                ``s3://{default_bucket}/model-monitor/data-capture``.
            kms_key_id: KMS key for the captured data.
            capture_options: ``REQUEST`` and/or ``RESPONSE``.
            csv_content_types: Content types captured as CSV.
            json_content_types: Content types captured as JSON.
            sagemaker_session: Session used to find the default bucket.
        """
        self.enable_capture = enable_capture
        self.sampling_percentage = sampling_percentage
        self.destination_s3_uri = destination_s3_uri
        if self.destination_s3_uri is None:
            sagemaker_session = sagemaker_session or Session()
            self.destination_s3_uri = s3_path_join(
                "s3://",
                sagemaker_session.default_bucket(),
                _MODEL_MONITOR_S3_PATH,
                _DATA_CAPTURE_S3_PATH,
            )

        self.kms_key_id = kms_key_id
        self.capture_options = capture_options or ["REQUEST", "RESPONSE"]
        self.csv_content_types = csv_content_types or ["text/csv"]
        self.json_content_types = json_content_types or ["application/json"]

    def _to_request_dict(self) -> dict[str, Any]:
        """The ``DataCaptureConfig`` request structure of an endpoint configuration."""
        request_dict: dict[str, Any] = {
            "EnableCapture": self.enable_capture,
            "InitialSamplingPercentage": self.sampling_percentage,
            "DestinationS3Uri": self.destination_s3_uri,
            # Unknown options pass through unchanged
            "CaptureOptions": [
                {"CaptureMode": self.API_MAPPING.get(option.upper(), option)}
                for option in self.capture_options
            ],
        }

        if self.kms_key_id is not None:
            request_dict["KmsKeyId"] = self.kms_key_id

        if self.csv_content_types is not None or self.json_content_types is not None:
            content_type_header: dict[str, list[str]] = {}
            if self.csv_content_types is not None:
                content_type_header["CsvContentTypes"] = self.csv_content_types
            if self.json_content_types is not None:
                content_type_header["JsonContentTypes"] = self.json_content_types
            request_dict["CaptureContentTypeHeader"] = content_type_header

        return request_dict
