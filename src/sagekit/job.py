"""Base class for the handles of running SageMaker jobs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from .inputs import FileSystemInput, TrainingInput

if TYPE_CHECKING:
    from .session import Session


class _Job(ABC):
    """Handle to a SageMaker job.

    Subclasses wrap training, processing, transform and tuning jobs and
    know how to start, wait for, describe and stop them.
    """

    def __init__(self, sagemaker_session: Session, job_name: str) -> None:
        self.sagemaker_session = sagemaker_session
        self.job_name = job_name

    @property
    def name(self) -> str:
        return self.job_name

    @classmethod
    @abstractmethod
    def start_new(cls, *args: Any, **kwargs: Any) -> _Job:
        """Create and start a new job."""

    @abstractmethod
    def wait(self, *args: Any, **kwargs: Any) -> Any:
        """Wait for the job to finish."""

    @abstractmethod
    def describe(self) -> dict[str, Any]:
        """Describe the job."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the job."""

    @staticmethod
    def _load_config(
        inputs: Any, estimator: Any, expand_role: bool = True, validate_uri: bool = True
    ) -> dict[str, Any]:
        """Collect the request pieces shared by training jobs and tuning jobs.

        Args:
            inputs: Training inputs (see :meth:`_format_inputs_to_input_config`).
            estimator: The estimator the job is created from.
            expand_role: Whether to expand a role name into an ARN.
            validate_uri: Whether to validate string inputs as S3 URIs.

        Returns:
            Dict with ``input_config``, ``role``, ``output_config``,
            ``resource_config``, ``stop_condition`` and ``vpc_config``.
        """
        input_config = _Job._format_inputs_to_input_config(inputs, validate_uri)
        role = (
            estimator.sagemaker_session.expand_role(estimator.role)
            if expand_role
            else estimator.role
        )
        output_config = _Job._prepare_output_config(estimator.output_path, estimator.output_kms_key)
        resource_config = _Job._prepare_resource_config(
            estimator.instance_count,
            estimator.instance_type,
            estimator.volume_size,
            estimator.volume_kms_key,
        )
        stop_condition = _Job._prepare_stop_condition(estimator.max_run, estimator.max_wait)
        vpc_config = estimator.get_vpc_config()

        model_channel = _Job._prepare_channel(
            input_config,
            estimator.model_uri,
            estimator.model_channel_name,
            validate_uri,
            content_type="application/x-sagemaker-model",
            input_mode="File",
        )
        if model_channel:
            input_config = input_config or []
            input_config.append(model_channel)

        return {
            "input_config": input_config,
            "role": role,
            "output_config": output_config,
            "resource_config": resource_config,
            "stop_condition": stop_condition,
            "vpc_config": vpc_config,
        }

    @staticmethod
    def _format_inputs_to_input_config(
        inputs: Any, validate_uri: bool = True
    ) -> list[dict[str, Any]] | None:
        """Convert the accepted input forms into a list of ``Channel`` dicts.

        Accepts an S3 URI string, a :class:`TrainingInput`, a
        :class:`FileSystemInput`, a ``RecordSet``, a list of ``RecordSet``
        objects, or a dict mapping channel names to any of the single forms.
        Single inputs are placed in the ``training`` channel.

        Raises:
            ValueError: If the input cannot be formatted.
        """
        if inputs is None:
            return None

        from .amazon.amazon_estimator import RecordSet

        input_dict: dict[str, Any] = {}
        if isinstance(inputs, str):
            input_dict["training"] = _Job._format_string_uri_input(inputs, validate_uri)
        elif isinstance(inputs, (TrainingInput, FileSystemInput)):
            input_dict["training"] = inputs
        elif isinstance(inputs, RecordSet):
            input_dict = inputs.data_channel()
        elif isinstance(inputs, list):
            for record in inputs:
                if not isinstance(record, RecordSet):
                    raise ValueError("List compatible only with RecordSets.")
                if record.channel in input_dict:
                    raise ValueError("Duplicate channels not allowed.")
                input_dict.update(record.data_channel())
        elif isinstance(inputs, dict):
            for k, v in inputs.items():
                input_dict[k] = _Job._format_string_uri_input(v, validate_uri)
        else:
            raise ValueError(
                f"Cannot format input {inputs}. Expecting one of str, dict, TrainingInput, "
                "FileSystemInput or RecordSet"
            )

        return [_Job._convert_input_to_channel(name, value) for name, value in input_dict.items()]

    @staticmethod
    def _convert_input_to_channel(channel_name: str, channel_input: Any) -> dict[str, Any]:
        channel_config = dict(channel_input.config)
        channel_config["ChannelName"] = channel_name
        return channel_config

    @staticmethod
    def _format_string_uri_input(
        uri_input: Any,
        validate_uri: bool = True,
        content_type: str | None = None,
        input_mode: str | None = None,
        compression: str | None = None,
        target_attribute_name: str | None = None,
    ) -> TrainingInput | FileSystemInput:
        """Wrap a string URI in a :class:`TrainingInput`.

        ``TrainingInput`` and ``FileSystemInput`` objects pass through.

        Raises:
            ValueError: If the URI is not an S3 URI (when validating), is a
                ``file://`` URI, or the input type is unsupported.
        """
        if isinstance(uri_input, str):
            if validate_uri and uri_input.startswith("file://"):
                raise ValueError(
                    f"Local file input {uri_input} is not supported; upload the data to S3 first."
                )
            if validate_uri and not uri_input.startswith("s3://"):
                raise ValueError(
                    f'URI input {uri_input} must be a valid S3 URI: must start with "s3://"'
                )
            return TrainingInput(
                uri_input,
                content_type=content_type,
                input_mode=input_mode,
                compression=compression,
                target_attribute_name=target_attribute_name,
            )
        if isinstance(uri_input, (TrainingInput, FileSystemInput)):
            return uri_input

        raise ValueError(
            f"Cannot format input {uri_input}. Expecting one of str, TrainingInput or "
            "FileSystemInput"
        )

    @staticmethod
    def _prepare_channel(
        input_config: list[dict[str, Any]] | None,
        channel_uri: str | None = None,
        channel_name: str | None = None,
        validate_uri: bool = True,
        content_type: str | None = None,
        input_mode: str | None = None,
    ) -> dict[str, Any] | None:
        """Build an extra channel (e.g. the model channel) for a URI.

        Raises:
            ValueError: If a URI is given without a channel name, or the
                channel name is already taken.
        """
        if not channel_uri:
            return None
        if not channel_name:
            raise ValueError(f"Expected a channel name if a channel URI {channel_uri} is specified")

        for existing_channel in input_config or []:
            if existing_channel["ChannelName"] == channel_name:
                raise ValueError(f"Duplicate channel {channel_name} not allowed.")

        channel_input = _Job._format_string_uri_input(
            channel_uri, validate_uri, content_type, input_mode
        )
        return _Job._convert_input_to_channel(channel_name, channel_input)

    @staticmethod
    def _prepare_output_config(s3_path: str, kms_key_id: str | None) -> dict[str, str]:
        config = {"S3OutputPath": s3_path}
        if kms_key_id is not None:
            config["KmsKeyId"] = kms_key_id
        return config

    @staticmethod
    def _prepare_resource_config(
        instance_count: int,
        instance_type: str,
        volume_size: int,
        volume_kms_key: str | None,
    ) -> dict[str, Any]:
        resource_config: dict[str, Any] = {
            "InstanceCount": instance_count,
            "InstanceType": instance_type,
            "VolumeSizeInGB": volume_size,
        }
        if volume_kms_key is not None:
            resource_config["VolumeKmsKeyId"] = volume_kms_key
        return resource_config

    @staticmethod
    def _prepare_stop_condition(max_run: int, max_wait: int | None) -> dict[str, int]:
        if max_wait:
            return {"MaxRuntimeInSeconds": max_run, "MaxWaitTimeInSeconds": max_wait}
        return {"MaxRuntimeInSeconds": max_run}
