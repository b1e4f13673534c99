"""Processing jobs: run a container over data in S3 and write results back to S3.

:class:`Processor` runs any image with an optional entrypoint.
:class:`ScriptProcessor` uploads a user script and runs it with a command
such as ``python3``. Local inputs and the script are uploaded under
``s3://{bucket}/{job_name}/input/{input_name}``; outputs without a
destination are written under ``s3://{bucket}/{job_name}/output/{output_name}``.
"""

from __future__ import annotations

import logging
import os
from typing import Any
from urllib.parse import urlparse

from .job import _Job
from .s3 import S3Uploader, s3_path_join
from .session import Session
from .utils import base_name_from_image, name_from_base

logger = logging.getLogger(__name__)

PROCESSING_INPUT_ROOT = "/opt/ml/processing/input"


class Processor:
    """Handle Amazon SageMaker processing tasks."""

    def __init__(
        self,
        role: str,
        image_uri: str,
        instance_count: int,
        instance_type: str,
        entrypoint: list[str] | None = None,
        volume_size_in_gb: int = 30,
        volume_kms_key: str | None = None,
        output_kms_key: str | None = None,
        max_runtime_in_seconds: int | None = None,
        base_job_name: str | None = None,
        sagemaker_session: Session | None = None,
        env: dict[str, str] | None = None,
        tags: list[dict[str, str]] | None = None,
        network_config: NetworkConfig | None = None,
    ) -> None:
        """Initialize a processor.

        Args:
            role: IAM role name or ARN for the job.
            image_uri: Processing container image.
            instance_count: Number of processing instances.
            instance_type: Processing instance type.
            entrypoint: Container entrypoint.
            volume_size_in_gb: Storage volume size per instance.
            volume_kms_key: KMS key for the storage volumes.
            output_kms_key: KMS key for the outputs.
            max_runtime_in_seconds: Job timeout.
            base_job_name: Prefix of generated job names. Defaults to the image name.
            sagemaker_session: Session used for AWS calls.
            env: Environment variables for the container.
            tags: Tags for the job.
            network_config: Network settings of the job.
        """
        self.role = role
        self.image_uri = image_uri
        self.instance_count = instance_count
        self.instance_type = instance_type
        self.entrypoint = entrypoint
        self.volume_size_in_gb = volume_size_in_gb
        self.volume_kms_key = volume_kms_key
        self.output_kms_key = output_kms_key
        self.max_runtime_in_seconds = max_runtime_in_seconds
        self.base_job_name = base_job_name
        self.env = env
        self.tags = tags
        self.network_config = network_config

        self.jobs: list[ProcessingJob] = []
        self.latest_job: ProcessingJob | None = None
        self._current_job_name: str | None = None
        self.arguments: list[str] | None = None

        self.sagemaker_session = sagemaker_session or Session()

    def run(
        self,
        inputs: list[ProcessingInput] | None = None,
        outputs: list[ProcessingOutput] | None = None,
        arguments: list[str] | None = None,
        wait: bool = True,
        logs: bool = True,
        job_name: str | None = None,
        experiment_config: dict[str, str] | None = None,
        kms_key: str | None = None,
    ) -> None:
        """Run a processing job.

        Args:
            inputs: Input sources. Local paths are uploaded to S3 first.
            outputs: Outputs of the job.
            arguments: Arguments passed to the container.
            wait: Whether to block until the job completes.
            logs: Whether to stream the job logs. Only applies when waiting.
            job_name: Job name. Generated from the base name when unset.
            experiment_config: Experiment association.
            kms_key: KMS key used to encrypt uploaded inputs.

        Raises:
            ValueError: If logs are requested without waiting.
        """
        if logs and not wait:
            raise ValueError(
                "Logs can only be shown if wait is set to True. "
                "Please either set wait to True or set logs to False."
            )

        normalized_inputs, normalized_outputs = self._normalize_args(
            job_name=job_name, arguments=arguments, inputs=inputs, outputs=outputs, kms_key=kms_key
        )

        self.latest_job = ProcessingJob.start_new(
            processor=self,
            inputs=normalized_inputs,
            outputs=normalized_outputs,
            experiment_config=experiment_config,
        )
        self.jobs.append(self.latest_job)
        if wait:
            self.latest_job.wait(logs=logs)

    def _normalize_args(
        self,
        job_name: str | None = None,
        arguments: list[str] | None = None,
        inputs: list[ProcessingInput] | None = None,
        outputs: list[ProcessingOutput] | None = None,
        code: str | None = None,
        kms_key: str | None = None,
    ) -> tuple[list[ProcessingInput], list[ProcessingOutput]]:
        """Name the job and resolve the inputs and outputs it runs with."""
        self._current_job_name = self._generate_current_job_name(job_name=job_name)

        inputs_with_source = self._include_code_in_inputs(inputs, code, kms_key)
        normalized_inputs = self._normalize_inputs(inputs_with_source, kms_key)
        normalized_outputs = self._normalize_outputs(outputs)
        self.arguments = arguments

        return normalized_inputs, normalized_outputs

    def _include_code_in_inputs(
        self, inputs: list[ProcessingInput] | None, code: str | None, kms_key: str | None = None
    ) -> list[ProcessingInput] | None:
        return inputs

    def _generate_current_job_name(self, job_name: str | None = None) -> str:
        if job_name is not None:
            return job_name
        base_name = self.base_job_name or base_name_from_image(self.image_uri)
        return name_from_base(base_name)

    def _normalize_inputs(
        self, inputs: list[ProcessingInput] | None = None, kms_key: str | None = None
    ) -> list[ProcessingInput]:
        """Name unnamed inputs and upload local sources to S3.

        Raises:
            TypeError: If an input is not a :class:`ProcessingInput`.
        """
        normalized_inputs: list[ProcessingInput] = []
        if inputs is None:
            return normalized_inputs

        for count, file_input in enumerate(inputs, 1):
            if not isinstance(file_input, ProcessingInput):
                raise TypeError("Your inputs must be provided as ProcessingInput objects.")
            if file_input.input_name is None:
                file_input.input_name = f"input-{count}"

            parse_result = urlparse(file_input.source)
            if parse_result.scheme != "s3":
                desired_s3_uri = s3_path_join(
                    "s3://",
                    self.sagemaker_session.default_bucket(),
                    self._current_job_name or "",
                    "input",
                    file_input.input_name,
                )
                s3_uri = S3Uploader.upload(
                    local_path=file_input.source,
                    desired_s3_uri=desired_s3_uri,
                    sagemaker_session=self.sagemaker_session,
                    kms_key=kms_key,
                )
                file_input.source = s3_uri
            normalized_inputs.append(file_input)
        return normalized_inputs

    def _normalize_outputs(self, outputs: list[ProcessingOutput] | None = None) -> list[ProcessingOutput]:
        """Name unnamed outputs and give outputs without a destination an S3 one.

        Raises:
            TypeError: If an output is not a :class:`ProcessingOutput`.
        """
        normalized_outputs: list[ProcessingOutput] = []
        if outputs is None:
            return normalized_outputs

        for count, output in enumerate(outputs, 1):
            if not isinstance(output, ProcessingOutput):
                raise TypeError("Your outputs must be provided as ProcessingOutput objects.")
            if output.output_name is None:
                output.output_name = f"output-{count}"

            if output.destination is None or urlparse(output.destination).scheme != "s3":
                output.destination = s3_path_join(
                    "s3://",
                    self.sagemaker_session.default_bucket(),
                    self._current_job_name or "",
                    "output",
                    output.output_name,
                )
            normalized_outputs.append(output)
        return normalized_outputs


class ScriptProcessor(Processor):
    """Processor that runs a user script with a command such as ``python3``."""

    def __init__(
        self,
        role: str,
        image_uri: str,
        command: list[str],
        instance_count: int,
        instance_type: str,
        volume_size_in_gb: int = 30,
        volume_kms_key: str | None = None,
        output_kms_key: str | None = None,
        max_runtime_in_seconds: int | None = None,
        base_job_name: str | None = None,
        sagemaker_session: Session | None = None,
        env: dict[str, str] | None = None,
        tags: list[dict[str, str]] | None = None,
        network_config: NetworkConfig | None = None,
    ) -> None:
        """Initialize a script processor.

        Args:
            command: Command that runs the script, e.g. ``["python3"]``.

        The other arguments are those of :class:`Processor`.
        """
        self._CODE_CONTAINER_BASE_PATH = f"{PROCESSING_INPUT_ROOT}/"
        self._CODE_CONTAINER_INPUT_NAME = "code"
        self.command = command

        super().__init__(
            role=role,
            image_uri=image_uri,
            instance_count=instance_count,
            instance_type=instance_type,
            volume_size_in_gb=volume_size_in_gb,
            volume_kms_key=volume_kms_key,
            output_kms_key=output_kms_key,
            max_runtime_in_seconds=max_runtime_in_seconds,
            base_job_name=base_job_name,
            sagemaker_session=sagemaker_session,
            env=env,
            tags=tags,
            network_config=network_config,
        )

    def run(  # type: ignore[override]
        self,
        code: str,
        inputs: list[ProcessingInput] | None = None,
        outputs: list[ProcessingOutput] | None = None,
        arguments: list[str] | None = None,
        wait: bool = True,
        logs: bool = True,
        job_name: str | None = None,
        experiment_config: dict[str, str] | None = None,
        kms_key: str | None = None,
    ) -> None:
        """Run a processing job with a script.

        Args:
            code: Local path or S3 URI of the script.

        The other arguments are those of :meth:`Processor.run`.
        """
        normalized_inputs, normalized_outputs = self._normalize_args(
            job_name=job_name,
            arguments=arguments,
            inputs=inputs,
            outputs=outputs,
            code=code,
            kms_key=kms_key,
        )

        self.latest_job = ProcessingJob.start_new(
            processor=self,
            inputs=normalized_inputs,
            outputs=normalized_outputs,
            experiment_config=experiment_config,
        )
        self.jobs.append(self.latest_job)
        if wait:
            self.latest_job.wait(logs=logs)

    def _include_code_in_inputs(
        self, inputs: list[ProcessingInput] | None, code: str | None, kms_key: str | None = None
    ) -> list[ProcessingInput] | None:
        if code is None:
            return inputs

        user_code_s3_uri = self._handle_user_code_url(code, kms_key)
        user_script_name = self._get_user_code_name(code)

        code_input = ProcessingInput(
            source=user_code_s3_uri,
            destination=f"{self._CODE_CONTAINER_BASE_PATH}{self._CODE_CONTAINER_INPUT_NAME}",
            input_name=self._CODE_CONTAINER_INPUT_NAME,
        )
        self._set_entrypoint(self.command, user_script_name)
        return (inputs or []) + [code_input]

    @staticmethod
    def _get_user_code_name(code: str) -> str:
        return os.path.basename(urlparse(code).path)

    def _handle_user_code_url(self, code: str, kms_key: str | None = None) -> str:
        """Return the S3 URI of the script, uploading a local file.

        Raises:
            ValueError: If the URL scheme is unsupported, or the local file is
                missing or a directory.
        """
        code_url = urlparse(code)
        if code_url.scheme == "s3":
            return code
        if code_url.scheme == "" or code_url.scheme == "file":
            if not os.path.exists(code_url.path):
                raise ValueError(
                    f"code {code} wasn't found. Please make sure that the file exists."
                )
            if not os.path.isfile(code_url.path):
                raise ValueError(
                    f"code {code} must be a file, not a directory. Please pass a path to a file."
                )
            return self._upload_code(code_url.path, kms_key)
        raise ValueError(
            f"code {code} url scheme {code_url.scheme} is not recognized. "
            "Please pass a file path or S3 url"
        )

    def _upload_code(self, code: str, kms_key: str | None = None) -> str:
        desired_s3_uri = s3_path_join(
            "s3://",
            self.sagemaker_session.default_bucket(),
            self._current_job_name or "",
            "input",
            self._CODE_CONTAINER_INPUT_NAME,
        )
        return S3Uploader.upload(
            local_path=code,
            desired_s3_uri=desired_s3_uri,
            sagemaker_session=self.sagemaker_session,
            kms_key=kms_key,
        )

    def _set_entrypoint(self, command: list[str], user_script_name: str) -> None:
        user_script_location = (
            f"{self._CODE_CONTAINER_BASE_PATH}{self._CODE_CONTAINER_INPUT_NAME}/{user_script_name}"
        )
        self.entrypoint = command + [user_script_location]


class ProcessingJob(_Job):
    """Handle to a processing job."""

    def __init__(
        self,
        sagemaker_session: Session,
        job_name: str,
        inputs: list[ProcessingInput] | None,
        outputs: list[ProcessingOutput] | None,
        output_kms_key: str | None = None,
    ) -> None:
        self.inputs = inputs
        self.outputs = outputs
        self.output_kms_key = output_kms_key
        super().__init__(sagemaker_session=sagemaker_session, job_name=job_name)

    @classmethod
    def start_new(
        cls,
        processor: Processor,
        inputs: list[ProcessingInput],
        outputs: list[ProcessingOutput],
        experiment_config: dict[str, str] | None = None,
    ) -> ProcessingJob:
        """Create a processing job from a processor and start it."""
        process_args = cls._get_process_args(processor, inputs, outputs, experiment_config)
        processor.sagemaker_session.process(**process_args)
        assert processor._current_job_name is not None
        return cls(
            processor.sagemaker_session,
            processor._current_job_name,
            inputs,
            outputs,
            processor.output_kms_key,
        )

    @staticmethod
    def _get_process_args(
        processor: Processor,
        inputs: list[ProcessingInput],
        outputs: list[ProcessingOutput],
        experiment_config: dict[str, str] | None,
    ) -> dict[str, Any]:
        """Build the keyword arguments of :meth:`Session.process`."""
        output_config: dict[str, Any] = {"Outputs": [output._to_request_dict() for output in outputs]}
        if processor.output_kms_key is not None:
            output_config["KmsKeyId"] = processor.output_kms_key

        cluster_config: dict[str, Any] = {
            "InstanceType": processor.instance_type,
            "InstanceCount": processor.instance_count,
            "VolumeSizeInGB": processor.volume_size_in_gb,
        }
        if processor.volume_kms_key is not None:
            cluster_config["VolumeKmsKeyId"] = processor.volume_kms_key

        stopping_condition = None
        if processor.max_runtime_in_seconds is not None:
            stopping_condition = {"MaxRuntimeInSeconds": processor.max_runtime_in_seconds}

        app_specification: dict[str, Any] = {"ImageUri": processor.image_uri}
        if processor.arguments is not None:
            app_specification["ContainerArguments"] = processor.arguments
        if processor.entrypoint is not None:
            app_specification["ContainerEntrypoint"] = processor.entrypoint

        network_config = None
        if processor.network_config is not None:
            network_config = processor.network_config._to_request_dict()

        return {
            "inputs": [file_input._to_request_dict() for file_input in inputs],
            "output_config": output_config,
            "job_name": processor._current_job_name,
            "resources": {"ClusterConfig": cluster_config},
            "stopping_condition": stopping_condition,
            "app_specification": app_specification,
            "environment": processor.env,
            "network_config": network_config,
            "role_arn": processor.sagemaker_session.expand_role(processor.role),
            "tags": processor.tags,
            "experiment_config": experiment_config,
        }

    @classmethod
    def from_processing_name(cls, sagemaker_session: Session, processing_job_name: str) -> ProcessingJob:
        """Rebuild a job handle from the description of an existing processing job."""
        job_desc = sagemaker_session.describe_processing_job(job_name=processing_job_name)

        inputs = None
        if job_desc.get("ProcessingInputs"):
            inputs = [
                ProcessingInput._from_request_dict(processing_input)
                for processing_input in job_desc["ProcessingInputs"]
            ]

        outputs = None
        output_kms_key = None
        output_config = job_desc.get("ProcessingOutputConfig")
        if output_config:
            outputs = [
                ProcessingOutput._from_request_dict(processing_output)
                for processing_output in output_config["Outputs"]
            ]
            output_kms_key = output_config.get("KmsKeyId")

        return cls(
            sagemaker_session=sagemaker_session,
            job_name=processing_job_name,
            inputs=inputs,
            outputs=outputs,
            output_kms_key=output_kms_key,
        )

    @classmethod
    def from_processing_arn(cls, sagemaker_session: Session, processing_job_arn: str) -> ProcessingJob:
        """Rebuild a job handle from a processing job ARN."""
        processing_job_name = processing_job_arn.split(":")[5][len("processing-job/") :]
        return cls.from_processing_name(
            sagemaker_session=sagemaker_session, processing_job_name=processing_job_name
        )

    def wait(self, logs: bool = True) -> None:
        """Wait for the processing job, optionally streaming its logs."""
        if logs:
            self.sagemaker_session.logs_for_processing_job(self.job_name, wait=True)
        else:
            self.sagemaker_session.wait_for_processing_job(self.job_name)

    def describe(self) -> dict[str, Any]:
        return self.sagemaker_session.describe_processing_job(self.job_name)

    def stop(self) -> None:
        self.sagemaker_session.stop_processing_job(self.job_name)


class ProcessingInput:
    """An S3 input that is copied into the processing container."""

    def __init__(
        self,
        source: str,
        destination: str,
        input_name: str | None = None,
        s3_data_type: str = "S3Prefix",
        s3_input_mode: str = "File",
        s3_data_distribution_type: str = "FullyReplicated",
        s3_compression_type: str = "None",
    ) -> None:
        """Initialize a processing input.

        Args:
            source: Local path or S3 URI of the input.
            destination: Container path the input is made available at.
            input_name: Input name. ``input-N`` when unset.
            s3_data_type: ``S3Prefix`` or ``ManifestFile``.
            s3_input_mode: ``File`` or ``Pipe``.
            s3_data_distribution_type: ``FullyReplicated`` or ``ShardedByS3Key``.
            s3_compression_type: ``None`` or ``Gzip``.
        """
        self.source = source
        self.destination = destination
        self.input_name = input_name
        self.s3_data_type = s3_data_type
        self.s3_input_mode = s3_input_mode
        self.s3_data_distribution_type = s3_data_distribution_type
        self.s3_compression_type = s3_compression_type

    def _to_request_dict(self) -> dict[str, Any]:
        return {
            "InputName": self.input_name,
            "AppManaged": False,
            "S3Input": {
                "S3Uri": self.source,
                "LocalPath": self.destination,
                "S3DataType": self.s3_data_type,
                "S3InputMode": self.s3_input_mode,
                "S3DataDistributionType": self.s3_data_distribution_type,
                "S3CompressionType": self.s3_compression_type,
            },
        }

    @classmethod
    def _from_request_dict(cls, request: dict[str, Any]) -> ProcessingInput:
        s3_input = request["S3Input"]
        return cls(
            source=s3_input["S3Uri"],
            destination=s3_input["LocalPath"],
            input_name=request["InputName"],
            s3_data_type=s3_input["S3DataType"],
            s3_input_mode=s3_input["S3InputMode"],
            s3_data_distribution_type=s3_input["S3DataDistributionType"],
            s3_compression_type=s3_input.get("S3CompressionType", "None"),
        )


class ProcessingOutput:
    """A container directory uploaded to S3 by the processing job."""

    def __init__(
        self,
        source: str,
        destination: str | None = None,
        output_name: str | None = None,
        s3_upload_mode: str = "EndOfJob",
    ) -> None:
        """Initialize a processing output.

        Args:
            source: Container path of the output.
            destination: S3 URI the output is uploaded to.
            output_name: Output name. ``output-N`` when unset.
            s3_upload_mode: ``EndOfJob`` or ``Continuous``.
        """
        self.source = source
        self.destination = destination
        self.output_name = output_name
        self.s3_upload_mode = s3_upload_mode

    def _to_request_dict(self) -> dict[str, Any]:
        return {
            "OutputName": self.output_name,
            "AppManaged": False,
            "S3Output": {
                "S3Uri": self.destination,
                "LocalPath": self.source,
                "S3UploadMode": self.s3_upload_mode,
            },
        }

    @classmethod
    def _from_request_dict(cls, request: dict[str, Any]) -> ProcessingOutput:
        s3_output = request["S3Output"]
        return cls(
            source=s3_output["LocalPath"],
            destination=s3_output["S3Uri"],
            output_name=request["OutputName"],
            s3_upload_mode=s3_output["S3UploadMode"],
        )


class NetworkConfig:
    """Network settings of a processing or monitoring job."""

    def __init__(
        self,
        enable_network_isolation: bool = False,
        security_group_ids: list[str] | None = None,
        subnets: list[str] | None = None,
        encrypt_inter_container_traffic: bool | None = None,
    ) -> None:
        self.enable_network_isolation = enable_network_isolation
        self.security_group_ids = security_group_ids
        self.subnets = subnets
        self.encrypt_inter_container_traffic = encrypt_inter_container_traffic

    def _to_request_dict(self) -> dict[str, Any]:
        network_config_request: dict[str, Any] = {
            "EnableNetworkIsolation": self.enable_network_isolation
        }
        if self.encrypt_inter_container_traffic is not None:
            network_config_request["EnableInterContainerTrafficEncryption"] = (
                self.encrypt_inter_container_traffic
            )
        if self.security_group_ids is not None or self.subnets is not None:
            network_config_request["VpcConfig"] = {
                "SecurityGroupIds": self.security_group_ids,
                "Subnets": self.subnets,
            }
        return network_config_request
