"""Input channel definitions for training and transform jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FILE_SYSTEM_TYPES = ("FSxLustre", "EFS")
FILE_SYSTEM_ACCESS_MODES = ("ro", "rw")


class ShuffleConfig:
    """Shuffle configuration of an S3 channel."""

    def __init__(self, seed: int) -> None:
        self.seed = seed


class TrainingInput:
    """Amazon SageMaker channel configuration for S3 data sources.

    Attributes:
        config: The ``Channel`` structure passed to ``CreateTrainingJob``
            (without ``ChannelName``, added when the job is created).
    """

    def __init__(
        self,
        s3_data: str,
        distribution: str | None = None,
        compression: str | None = None,
        content_type: str | None = None,
        record_wrapping: str | None = None,
        s3_data_type: str = "S3Prefix",
        input_mode: str | None = None,
        attribute_names: list[str] | None = None,
        target_attribute_name: str | None = None,
        shuffle_config: ShuffleConfig | None = None,
    ) -> None:
        """Create a channel definition.

        Args:
            s3_data: S3 location of the data.
            distribution: ``FullyReplicated`` or ``ShardedByS3Key``.
            compression: ``Gzip`` or None.
            content_type: MIME type of the input data.
            record_wrapping: ``RecordIO`` or None.
            s3_data_type: ``S3Prefix``, ``ManifestFile`` or ``AugmentedManifestFile``.
            input_mode: ``File`` or ``Pipe``; overrides the estimator's input mode.
            attribute_names: Attribute names used with ``AugmentedManifestFile``.
            target_attribute_name: Target attribute used for inference.
            shuffle_config: Shuffle configuration for ``Pipe`` mode.
        """
        self.config: dict[str, Any] = {
            "DataSource": {"S3DataSource": {"S3DataType": s3_data_type, "S3Uri": s3_data}}
        }
        s3_source = self.config["DataSource"]["S3DataSource"]

        if not (target_attribute_name or distribution):
            distribution = "FullyReplicated"
        if distribution is not None:
            s3_source["S3DataDistributionType"] = distribution
        if attribute_names is not None:
            s3_source["AttributeNames"] = attribute_names

        if compression is not None:
            self.config["CompressionType"] = compression
        if content_type is not None:
            self.config["ContentType"] = content_type
        if record_wrapping is not None:
            self.config["RecordWrapperType"] = record_wrapping
        if input_mode is not None:
            self.config["InputMode"] = input_mode
        if target_attribute_name is not None:
            self.config["TargetAttributeName"] = target_attribute_name
        if shuffle_config is not None:
            self.config["ShuffleConfig"] = {"Seed": shuffle_config.seed}


class FileSystemInput:
    """Amazon SageMaker channel configuration for file system data sources."""

    def __init__(
        self,
        file_system_id: str,
        file_system_type: str,
        directory_path: str,
        file_system_access_mode: str = "ro",
        content_type: str | None = None,
    ) -> None:
        """Create a file system channel definition.

        Raises:
            ValueError: If the file system type or access mode is unsupported.
        """
        if file_system_type not in FILE_SYSTEM_TYPES:
            raise ValueError(
                f"Unrecognized file system type: {file_system_type}. "
                f"Valid values: {', '.join(FILE_SYSTEM_TYPES)}."
            )
        if file_system_access_mode not in FILE_SYSTEM_ACCESS_MODES:
            raise ValueError(
                f"Unrecognized file system access mode: {file_system_access_mode}. "
                f"Valid values: {', '.join(FILE_SYSTEM_ACCESS_MODES)}."
            )

        self.config: dict[str, Any] = {
            "DataSource": {
                "FileSystemDataSource": {
                    "FileSystemId": file_system_id,
                    "FileSystemType": file_system_type,
                    "DirectoryPath": directory_path,
                    "FileSystemAccessMode": file_system_access_mode,
                }
            }
        }
        if content_type:
            self.config["ContentType"] = content_type


@dataclass
class TransformInput:
    """Transform input as reported by ``DescribeTransformJob``."""

    data: str
    data_type: str = "S3Prefix"
    content_type: str | None = None
    compression_type: str | None = None
    split_type: str | None = None

    def to_request_dict(self) -> dict[str, Any]:
        """Get the ``TransformInput`` request structure."""
        request: dict[str, Any] = {
            "DataSource": {"S3DataSource": {"S3DataType": self.data_type, "S3Uri": self.data}}
        }
        if self.content_type is not None:
            request["ContentType"] = self.content_type
        if self.compression_type is not None:
            request["CompressionType"] = self.compression_type
        if self.split_type is not None:
            request["SplitType"] = self.split_type
        return request
