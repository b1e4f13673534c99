"""Monitoring schedules and baselining jobs for deployed endpoints.

:class:`ModelMonitor` drives any monitoring container; :class:`DefaultModelMonitor`
uses the built-in analyzer image and only needs a dataset. Baselining runs as a
processing job that writes ``statistics.json`` and ``constraints.json``; each
scheduled monitoring execution is a processing job that writes statistics and
``constraint_violations.json``.
"""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any
from urllib.parse import urlparse
import uuid

from botocore.exceptions import ClientError

from .. import image_uris
from ..exceptions import UnexpectedStatusError, WaitTimeoutError
from ..processing import NetworkConfig, ProcessingInput, ProcessingJob, ProcessingOutput, Processor
from ..s3 import S3Uploader, s3_path_join
from ..session import Session
from ..utils import base_name_from_image, name_from_base
from .monitoring_files import NO_SUCH_KEY_CODE, Constraints, ConstraintViolations, Statistics

logger = logging.getLogger(__name__)

DEFAULT_REPOSITORY_NAME = "sagemaker-model-monitor-analyzer"

STATISTICS_JSON_DEFAULT_FILE_NAME = "statistics.json"
CONSTRAINTS_JSON_DEFAULT_FILE_NAME = "constraints.json"
CONSTRAINT_VIOLATIONS_JSON_DEFAULT_FILE_NAME = "constraint_violations.json"

_CONTAINER_BASE_PATH = "/opt/ml/processing"
_CONTAINER_INPUT_PATH = "input"
_CONTAINER_ENDPOINT_INPUT_PATH = "endpoint"
_BASELINE_DATASET_INPUT_NAME = "baseline_dataset_input"
_RECORD_PREPROCESSOR_SCRIPT_INPUT_NAME = "record_preprocessor_script_input"
_POST_ANALYTICS_PROCESSOR_SCRIPT_INPUT_NAME = "post_analytics_processor_script_input"
_CONTAINER_OUTPUT_PATH = "output"
_DEFAULT_OUTPUT_NAME = "monitoring_output"
_MODEL_MONITOR_S3_PATH = "model-monitor"
_BASELINING_S3_PATH = "baselining"
_MONITORING_S3_PATH = "monitoring"
_RESULTS_S3_PATH = "results"
_INPUT_S3_PATH = "input"

_SUGGESTION_JOB_BASE_NAME = "baseline-suggestion-job"
_MONITORING_SCHEDULE_BASE_NAME = "monitoring-schedule"

_DATASET_SOURCE_PATH_ENV_NAME = "dataset_source"
_DATASET_FORMAT_ENV_NAME = "dataset_format"
_OUTPUT_PATH_ENV_NAME = "output_path"
_RECORD_PREPROCESSOR_SCRIPT_ENV_NAME = "record_preprocessor_script"
_POST_ANALYTICS_PROCESSOR_SCRIPT_ENV_NAME = "post_analytics_processor_script"
_PUBLISH_CLOUDWATCH_METRICS_ENV_NAME = "publish_cloudwatch_metrics"

# 36 * 5s = 3 minutes
_SCHEDULE_WAIT_RETRIES = 36
_SCHEDULE_WAIT_SECONDS = 5


def _container_path(*parts: str) -> str:
    return "/".join((_CONTAINER_BASE_PATH,) + parts)


class ModelMonitor:
    """Baseline datasets and monitor an endpoint with a custom monitoring image."""

    _baselining_base_name: str | None = None
    _schedule_base_name: str | None = None

    def __init__(
        self,
        role: str,
        image_uri: str,
        instance_count: int = 1,
        instance_type: str = "ml.m5.xlarge",
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
        """Initialize a model monitor.

        Args:
            role: IAM role name or ARN for the baselining and monitoring jobs.
            image_uri: Monitoring container image.
            instance_count: Number of instances per job.
            instance_type: Instance type of the jobs.
            entrypoint: Container entrypoint.
            volume_size_in_gb: Storage volume size per instance.
            volume_kms_key: KMS key for the storage volumes.
            output_kms_key: KMS key for the job outputs.
            max_runtime_in_seconds: Job timeout.
            base_job_name: Prefix of generated job and schedule names.
            sagemaker_session: Session used for AWS calls.
            env: Environment variables for the container.
            tags: Tags for the jobs and the schedule.
            network_config: Network settings of the jobs. Inter-container
                traffic encryption is not supported.
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
        self.sagemaker_session = sagemaker_session or Session()
        self.env = env
        self.tags = tags
        self.network_config = network_config

        self.baselining_jobs: list[BaseliningJob] = []
        self.latest_baselining_job: BaseliningJob | None = None
        self.latest_baselining_job_name: str | None = None
        self.arguments: list[str] | None = None
        self.monitoring_schedule_name: str | None = None

    # -------------------- Baselining --------------------

    def run_baseline(
        self,
        baseline_inputs: list[ProcessingInput],
        output: ProcessingOutput | str,
        arguments: list[str] | None = None,
        wait: bool = True,
        logs: bool = True,
        job_name: str | None = None,
    ) -> BaseliningJob:
        """Run a processing job that baselines the given inputs.

        Args:
            baseline_inputs: Inputs of the baselining job.
            output: Output of the job, or a container path whose contents
                are uploaded to the default bucket.
            arguments: Arguments passed to the container.
            wait: Whether to block until the job completes.
            logs: Whether to stream the job logs.
            job_name: Job name. Generated when unset.

        Returns:
            The baselining job.
        """
        self.latest_baselining_job_name = self._generate_baselining_job_name(job_name)
        self.arguments = arguments
        normalized_inputs = self._normalize_baseline_inputs(baseline_inputs)
        normalized_output = self._normalize_processing_output(output)

        baselining_processor = self._baselining_processor(self.env)
        baselining_processor.run(
            inputs=normalized_inputs,
            outputs=[normalized_output],
            arguments=self.arguments,
            wait=wait,
            logs=logs,
            job_name=self.latest_baselining_job_name,
        )
        return self._record_baselining_job(baselining_processor)

    def baseline_statistics(self, file_name: str = STATISTICS_JSON_DEFAULT_FILE_NAME) -> Statistics:
        """Statistics produced by the latest baselining job."""
        return self._require_baselining_job().baseline_statistics(
            file_name=file_name, kms_key=self.output_kms_key
        )

    def suggested_constraints(
        self, file_name: str = CONSTRAINTS_JSON_DEFAULT_FILE_NAME
    ) -> Constraints:
        """Constraints suggested by the latest baselining job."""
        return self._require_baselining_job().suggested_constraints(
            file_name=file_name, kms_key=self.output_kms_key
        )

    def describe_latest_baselining_job(self) -> dict[str, Any]:
        return self._require_baselining_job().describe()

    # -------------------- Schedules --------------------

    def create_monitoring_schedule(
        self,
        endpoint_input: EndpointInput | str,
        output: MonitoringOutput,
        statistics: Statistics | str | None = None,
        constraints: Constraints | str | None = None,
        monitor_schedule_name: str | None = None,
        schedule_cron_expression: str | None = None,
    ) -> None:
        """Create a schedule that monitors an endpoint.

        Args:
            endpoint_input: Endpoint name or :class:`EndpointInput`.
            output: Output of every monitoring execution.
            statistics: Baseline statistics, as an object or S3 URI.
            constraints: Baseline constraints, as an object or S3 URI.
            monitor_schedule_name: Schedule name. Generated when unset.
            schedule_cron_expression: How often executions run. See
                :class:`CronExpressionGenerator`.

        Raises:
            ValueError: If this monitor already has a schedule, or the network
                config enables inter-container traffic encryption.
        """
        self._ensure_no_schedule()
        self.monitoring_schedule_name = self._generate_monitoring_schedule_name(
            monitor_schedule_name
        )

        normalized_endpoint_input = self._normalize_endpoint_input(endpoint_input)
        normalized_output = self._normalize_monitoring_output_fields(output)
        statistics_obj, constraints_obj = self._get_baseline_files(statistics, constraints)

        self.sagemaker_session.create_monitoring_schedule(
            monitoring_schedule_name=self.monitoring_schedule_name,
            schedule_expression=schedule_cron_expression,
            statistics_s3_uri=statistics_obj.file_s3_uri if statistics_obj else None,
            constraints_s3_uri=constraints_obj.file_s3_uri if constraints_obj else None,
            monitoring_inputs=[normalized_endpoint_input._to_request_dict()],
            monitoring_output_config=self._monitoring_output_config(normalized_output),
            instance_count=self.instance_count,
            instance_type=self.instance_type,
            volume_size_in_gb=self.volume_size_in_gb,
            volume_kms_key=self.volume_kms_key,
            image_uri=self.image_uri,
            entrypoint=self.entrypoint,
            arguments=self.arguments,
            max_runtime_in_seconds=self.max_runtime_in_seconds,
            environment=self.env,
            network_config=self._network_config_dict(),
            role_arn=self.sagemaker_session.expand_role(self.role),
            tags=self.tags,
        )

    def update_monitoring_schedule(
        self,
        endpoint_input: EndpointInput | str | None = None,
        output: MonitoringOutput | None = None,
        statistics: Statistics | str | None = None,
        constraints: Constraints | str | None = None,
        schedule_cron_expression: str | None = None,
        instance_count: int | None = None,
        instance_type: str | None = None,
        entrypoint: list[str] | None = None,
        volume_size_in_gb: int | None = None,
        volume_kms_key: str | None = None,
        output_kms_key: str | None = None,
        arguments: list[str] | None = None,
        max_runtime_in_seconds: int | None = None,
        env: dict[str, str] | None = None,
        network_config: NetworkConfig | None = None,
        role: str | None = None,
        image_uri: str | None = None,
    ) -> None:
        """Update the schedule of this monitor. Unset arguments keep their current value.

        Raises:
            ValueError: If this monitor has no schedule.
        """
        self._update_attributes(
            instance_count=instance_count,
            instance_type=instance_type,
            entrypoint=entrypoint,
            volume_size_in_gb=volume_size_in_gb,
            volume_kms_key=volume_kms_key,
            output_kms_key=output_kms_key,
            arguments=arguments,
            max_runtime_in_seconds=max_runtime_in_seconds,
            env=env,
            network_config=network_config,
            role=role,
            image_uri=image_uri,
        )

        monitoring_inputs = None
        if endpoint_input is not None:
            monitoring_inputs = [self._normalize_endpoint_input(endpoint_input)._to_request_dict()]

        monitoring_output_config = None
        if output is not None:
            monitoring_output_config = self._monitoring_output_config(
                self._normalize_monitoring_output_fields(output)
            )
        elif output_kms_key is not None:
            monitoring_output_config = self._current_output_config()

        statistics_obj, constraints_obj = self._get_baseline_files(
            statistics, constraints, use_latest_baseline=False
        )

        self._update_schedule(
            schedule_expression=schedule_cron_expression,
            statistics_s3_uri=statistics_obj.file_s3_uri if statistics_obj else None,
            constraints_s3_uri=constraints_obj.file_s3_uri if constraints_obj else None,
            monitoring_inputs=monitoring_inputs,
            monitoring_output_config=monitoring_output_config,
            instance_count=instance_count,
            instance_type=instance_type,
            volume_size_in_gb=volume_size_in_gb,
            volume_kms_key=volume_kms_key,
            image_uri=image_uri,
            entrypoint=entrypoint,
            arguments=arguments,
            max_runtime_in_seconds=max_runtime_in_seconds,
            environment=env,
            network_config=self._network_config_dict() if network_config is not None else None,
            role_arn=self.sagemaker_session.expand_role(role) if role is not None else None,
        )

    def start_monitoring_schedule(self) -> None:
        self.sagemaker_session.start_monitoring_schedule(self._require_schedule_name())
        self._wait_for_schedule_changes_to_apply()

    def stop_monitoring_schedule(self) -> None:
        self.sagemaker_session.stop_monitoring_schedule(self._require_schedule_name())
        self._wait_for_schedule_changes_to_apply()

    def delete_monitoring_schedule(self) -> None:
        """Delete the schedule. The monitor can then create a new one."""
        self.sagemaker_session.delete_monitoring_schedule(self._require_schedule_name())
        self.monitoring_schedule_name = None

    def describe_schedule(self) -> dict[str, Any]:
        """The ``DescribeMonitoringSchedule`` response of this monitor's schedule."""
        return self.sagemaker_session.describe_monitoring_schedule(self._require_schedule_name())

    def list_executions(self) -> list[MonitoringExecution]:
        """Executions of the schedule, oldest first, so the latest is ``[-1]``."""
        summaries = self.sagemaker_session.list_monitoring_executions(
            self._require_schedule_name()
        ).get("MonitoringExecutionSummaries", [])

        processing_job_arns = [s["ProcessingJobArn"] for s in summaries if s.get("ProcessingJobArn")]
        if not processing_job_arns:
            logger.info(
                f"No executions found for schedule. monitoring_schedule_name: "
                f"{self.monitoring_schedule_name}"
            )
            return []

        executions = [
            MonitoringExecution.from_processing_arn(
                sagemaker_session=self.sagemaker_session, processing_job_arn=arn
            )
            for arn in processing_job_arns
        ]
        executions.reverse()
        return executions

    def latest_monitoring_statistics(
        self, file_name: str = STATISTICS_JSON_DEFAULT_FILE_NAME
    ) -> Statistics | None:
        """Statistics of the latest execution, or None when nothing has run yet."""
        executions = self.list_executions()
        if not executions:
            return None
        return executions[-1].statistics(file_name=file_name)

    def latest_monitoring_constraint_violations(
        self, file_name: str = CONSTRAINT_VIOLATIONS_JSON_DEFAULT_FILE_NAME
    ) -> ConstraintViolations | None:
        """Constraint violations of the latest execution, or None when nothing has run yet."""
        executions = self.list_executions()
        if not executions:
            return None
        return executions[-1].constraint_violations(file_name=file_name)

    @classmethod
    def attach(
        cls, monitor_schedule_name: str, sagemaker_session: Session | None = None
    ) -> ModelMonitor:
        """Build a monitor pointing at an existing monitoring schedule.

        Args:
            monitor_schedule_name: Name of the schedule.
            sagemaker_session: Session used for AWS calls.

        Returns:
            A monitor whose schedule methods act on the given schedule.
        """
        sagemaker_session = sagemaker_session or Session()
        schedule_desc = sagemaker_session.describe_monitoring_schedule(monitor_schedule_name)
        init_params = cls._prepare_init_params_from_schedule(schedule_desc)
        init_params["tags"] = sagemaker_session.list_tags(
            resource_arn=schedule_desc["MonitoringScheduleArn"]
        )

        attached_monitor = cls(sagemaker_session=sagemaker_session, **init_params)
        attached_monitor.monitoring_schedule_name = monitor_schedule_name
        return attached_monitor

    @classmethod
    def _prepare_init_params_from_schedule(cls, schedule_desc: dict[str, Any]) -> dict[str, Any]:
        job_definition = schedule_desc["MonitoringScheduleConfig"]["MonitoringJobDefinition"]
        cluster_config = job_definition["MonitoringResources"]["ClusterConfig"]
        app_specification = job_definition["MonitoringAppSpecification"]

        init_params: dict[str, Any] = {
            "role": job_definition["RoleArn"],
            "image_uri": app_specification["ImageUri"],
            "instance_count": cluster_config["InstanceCount"],
            "instance_type": cluster_config["InstanceType"],
            "entrypoint": app_specification.get("ContainerEntrypoint"),
            "volume_size_in_gb": cluster_config["VolumeSizeInGB"],
            "volume_kms_key": cluster_config.get("VolumeKmsKeyId"),
            "output_kms_key": job_definition.get("MonitoringOutputConfig", {}).get("KmsKeyId"),
            "max_runtime_in_seconds": job_definition.get("StoppingCondition", {}).get(
                "MaxRuntimeInSeconds"
            ),
            "env": job_definition.get("Environment"),
        }

        network_config_dict = job_definition.get("NetworkConfig")
        if network_config_dict:
            vpc_config = network_config_dict.get("VpcConfig", {})
            init_params["network_config"] = NetworkConfig(
                enable_network_isolation=network_config_dict.get("EnableNetworkIsolation", False),
                security_group_ids=vpc_config.get("SecurityGroupIds"),
                subnets=vpc_config.get("Subnets"),
            )
        return init_params

    # -------------------- Helpers --------------------

    def _baselining_processor(self, env: dict[str, str] | None) -> Processor:
        return Processor(
            role=self.role,
            image_uri=self.image_uri,
            instance_count=self.instance_count,
            instance_type=self.instance_type,
            entrypoint=self.entrypoint,
            volume_size_in_gb=self.volume_size_in_gb,
            volume_kms_key=self.volume_kms_key,
            output_kms_key=self.output_kms_key,
            max_runtime_in_seconds=self.max_runtime_in_seconds,
            base_job_name=self.base_job_name,
            sagemaker_session=self.sagemaker_session,
            env=env,
            tags=self.tags,
            network_config=self.network_config,
        )

    def _record_baselining_job(self, processor: Processor) -> BaseliningJob:
        assert processor.latest_job is not None
        self.latest_baselining_job = BaseliningJob.from_processing_job(processor.latest_job)
        self.baselining_jobs.append(self.latest_baselining_job)
        return self.latest_baselining_job

    def _require_baselining_job(self) -> BaseliningJob:
        if self.latest_baselining_job is None:
            raise ValueError("No suggestion jobs were kicked off.")
        return self.latest_baselining_job

    def _require_schedule_name(self) -> str:
        if self.monitoring_schedule_name is None:
            raise ValueError("Nothing to act on, please create a monitoring schedule first.")
        return self.monitoring_schedule_name

    def _ensure_no_schedule(self) -> None:
        if self.monitoring_schedule_name is not None:
            raise ValueError(
                "It seems that this object was already used to create an Amazon Model "
                "Monitoring Schedule. To create another, first delete the existing one "
                "using my_monitor.delete_monitoring_schedule()."
            )

    def _generate_baselining_job_name(self, job_name: str | None = None) -> str:
        if job_name is not None:
            return job_name
        base_name = (
            self.base_job_name or self._baselining_base_name or base_name_from_image(self.image_uri)
        )
        return name_from_base(base_name)

    def _generate_monitoring_schedule_name(self, schedule_name: str | None = None) -> str:
        if schedule_name is not None:
            return schedule_name
        base_name = (
            self.base_job_name or self._schedule_base_name or base_name_from_image(self.image_uri)
        )
        return name_from_base(base_name)

    def _get_baseline_files(
        self,
        statistics: Statistics | str | None,
        constraints: Constraints | str | None,
        use_latest_baseline: bool = True,
    ) -> tuple[Statistics | None, Constraints | None]:
        """Resolve baseline files from S3 URIs, falling back to the latest baselining job."""
        if isinstance(statistics, str):
            statistics = Statistics.from_s3_uri(
                statistics, kms_key=self.output_kms_key, sagemaker_session=self.sagemaker_session
            )
        if isinstance(constraints, str):
            constraints = Constraints.from_s3_uri(
                constraints, kms_key=self.output_kms_key, sagemaker_session=self.sagemaker_session
            )

        if use_latest_baseline and self.latest_baselining_job is not None:
            if statistics is None:
                statistics = self.baseline_statistics()
            if constraints is None:
                constraints = self.suggested_constraints()
        return statistics, constraints

    def _normalize_endpoint_input(self, endpoint_input: EndpointInput | str) -> EndpointInput:
        if isinstance(endpoint_input, str):
            return EndpointInput(
                endpoint_name=endpoint_input,
                destination=_container_path(_CONTAINER_INPUT_PATH, _CONTAINER_ENDPOINT_INPUT_PATH),
            )
        return endpoint_input

    def _normalize_baseline_inputs(
        self, baseline_inputs: list[ProcessingInput] | None = None
    ) -> list[ProcessingInput]:
        """Name unnamed inputs and upload local sources to S3.

        Raises:
            TypeError: If an input is not a :class:`ProcessingInput`.
        """
        normalized_inputs: list[ProcessingInput] = []
        for count, file_input in enumerate(baseline_inputs or [], 1):
            if not isinstance(file_input, ProcessingInput):
                raise TypeError("Your inputs must be provided as ProcessingInput objects.")
            if file_input.input_name is None:
                file_input.input_name = f"input-{count}"

            if urlparse(file_input.source).scheme != "s3":
                desired_s3_uri = s3_path_join(
                    "s3://",
                    self.sagemaker_session.default_bucket(),
                    self.latest_baselining_job_name or "",
                    file_input.input_name,
                )
                file_input.source = S3Uploader.upload(
                    local_path=file_input.source,
                    desired_s3_uri=desired_s3_uri,
                    sagemaker_session=self.sagemaker_session,
                )
            normalized_inputs.append(file_input)
        return normalized_inputs

    def _normalize_processing_output(self, output: ProcessingOutput | str) -> ProcessingOutput:
        if isinstance(output, str):
            return ProcessingOutput(
                source=output,
                destination=s3_path_join(
                    "s3://",
                    self.sagemaker_session.default_bucket(),
                    self.latest_baselining_job_name or "",
                    "output",
                ),
                output_name=_DEFAULT_OUTPUT_NAME,
            )
        return output

    def _normalize_baseline_output(self, output_s3_uri: str | None = None) -> ProcessingOutput:
        s3_uri = output_s3_uri or s3_path_join(
            "s3://",
            self.sagemaker_session.default_bucket(),
            _MODEL_MONITOR_S3_PATH,
            _BASELINING_S3_PATH,
            self.latest_baselining_job_name or "",
            _RESULTS_S3_PATH,
        )
        return ProcessingOutput(
            source=_container_path(_CONTAINER_OUTPUT_PATH),
            destination=s3_uri,
            output_name=_DEFAULT_OUTPUT_NAME,
        )

    def _normalize_monitoring_output(
        self, monitoring_schedule_name: str, output_s3_uri: str | None = None
    ) -> MonitoringOutput:
        s3_uri = output_s3_uri or s3_path_join(
            "s3://",
            self.sagemaker_session.default_bucket(),
            _MODEL_MONITOR_S3_PATH,
            _MONITORING_S3_PATH,
            monitoring_schedule_name,
            _RESULTS_S3_PATH,
        )
        return MonitoringOutput(source=_container_path(_CONTAINER_OUTPUT_PATH), destination=s3_uri)

    def _normalize_monitoring_output_fields(self, output: MonitoringOutput) -> MonitoringOutput:
        if output.destination is None:
            output.destination = s3_path_join(
                "s3://",
                self.sagemaker_session.default_bucket(),
                self.monitoring_schedule_name or "",
                "output",
            )
        return output

    def _monitoring_output_config(self, output: MonitoringOutput) -> dict[str, Any]:
        config: dict[str, Any] = {"MonitoringOutputs": [output._to_request_dict()]}
        if self.output_kms_key is not None:
            config["KmsKeyId"] = self.output_kms_key
        return config

    def _current_output_config(self) -> dict[str, Any]:
        """The schedule's current output config carrying this monitor's output KMS key."""
        job_definition = self.describe_schedule()["MonitoringScheduleConfig"]["MonitoringJobDefinition"]
        config = dict(job_definition.get("MonitoringOutputConfig", {}))
        config["KmsKeyId"] = self.output_kms_key
        return config

    def _s3_uri_from_local_path(self, path: str) -> str:
        """Upload a local file under the schedule's input prefix and return its S3 URI."""
        if urlparse(path).scheme == "s3":
            return path

        s3_uri = s3_path_join(
            "s3://",
            self.sagemaker_session.default_bucket(),
            _MODEL_MONITOR_S3_PATH,
            _MONITORING_S3_PATH,
            self.monitoring_schedule_name or "",
            _INPUT_S3_PATH,
            str(uuid.uuid4()),
        )
        return S3Uploader.upload(
            local_path=path, desired_s3_uri=s3_uri, sagemaker_session=self.sagemaker_session
        )

    def _network_config_dict(self) -> dict[str, Any] | None:
        """Request dict of the network config.

        Raises:
            ValueError: If inter-container traffic encryption is set.
        """
        if self.network_config is None:
            return None
        network_config_dict = self.network_config._to_request_dict()
        if "EnableInterContainerTrafficEncryption" in network_config_dict:
            message = (
                "EnableInterContainerTrafficEncryption is not supported in Model Monitor. "
                "Please ensure that encrypt_inter_container_traffic=None when creating your "
                "NetworkConfig object. Current encrypt_inter_container_traffic value: "
                f"{self.network_config.encrypt_inter_container_traffic}"
            )
            logger.error(message)
            raise ValueError(message)
        return network_config_dict

    def _update_attributes(self, **attributes: Any) -> None:
        for key, value in attributes.items():
            if value is not None:
                setattr(self, key, value)

    def _update_schedule(self, **update_args: Any) -> None:
        self.sagemaker_session.update_monitoring_schedule(
            monitoring_schedule_name=self._require_schedule_name(), **update_args
        )
        self._wait_for_schedule_changes_to_apply()

    def _wait_for_schedule_changes_to_apply(self) -> None:
        """Block until the schedule leaves the ``Pending`` status.

        Raises:
            WaitTimeoutError: If the schedule is still pending after three minutes.
        """
        for _ in range(_SCHEDULE_WAIT_RETRIES):
            schedule_desc = self.describe_schedule()
            if schedule_desc["MonitoringScheduleStatus"] != "Pending":
                return
            time.sleep(_SCHEDULE_WAIT_SECONDS)
        raise WaitTimeoutError(
            f"Waiting for schedule {self.monitoring_schedule_name} to leave 'Pending' status "
            f"timed out after {_SCHEDULE_WAIT_RETRIES * _SCHEDULE_WAIT_SECONDS} seconds."
        )


class DefaultModelMonitor(ModelMonitor):
    """Monitor an endpoint with the built-in analyzer container.

    Only a baseline dataset is required; record preprocessing and post-analytics
    scripts are optional.
    """

    _baselining_base_name = _SUGGESTION_JOB_BASE_NAME
    _schedule_base_name = _MONITORING_SCHEDULE_BASE_NAME

    def __init__(
        self,
        role: str,
        instance_count: int = 1,
        instance_type: str = "ml.m5.xlarge",
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
        session = sagemaker_session or Session()
        super().__init__(
            role=role,
            image_uri=self._get_default_image_uri(session.region),
            instance_count=instance_count,
            instance_type=instance_type,
            volume_size_in_gb=volume_size_in_gb,
            volume_kms_key=volume_kms_key,
            output_kms_key=output_kms_key,
            max_runtime_in_seconds=max_runtime_in_seconds,
            base_job_name=base_job_name,
            sagemaker_session=session,
            env=env,
            tags=tags,
            network_config=network_config,
        )

    @staticmethod
    def _get_default_image_uri(region: str) -> str:
        return image_uris.retrieve("model-monitor", region=region)

    @staticmethod
    def is_default_image(image_uri: str) -> bool:
        """Whether the image is the built-in analyzer."""
        repository = image_uri.split("/", 1)[-1]
        return repository.split(":")[0] == DEFAULT_REPOSITORY_NAME

    def suggest_baseline(
        self,
        baseline_dataset: str,
        dataset_format: dict[str, Any],
        record_preprocessor_script: str | None = None,
        post_analytics_processor_script: str | None = None,
        output_s3_uri: str | None = None,
        wait: bool = True,
        logs: bool = True,
        job_name: str | None = None,
    ) -> BaseliningJob:
        """Run a baselining job that computes statistics and suggests constraints.

        Args:
            baseline_dataset: Local path or S3 URI of the dataset.
            dataset_format: Format of the dataset. See :class:`DatasetFormat`.
            record_preprocessor_script: Local path or S3 URI of a script run on each record.
            post_analytics_processor_script: Local path or S3 URI of a script run on the results.
            output_s3_uri: Where the results are written. Defaults to
                ``s3://{bucket}/model-monitor/baselining/{job_name}/results``.
            wait: Whether to block until the job completes.
            logs: Whether to stream the job logs.
            job_name: Job name. Generated when unset.

        Returns:
            The baselining job.
        """
        self.latest_baselining_job_name = self._generate_baselining_job_name(job_name)

        dataset_input = self._upload_and_convert_to_processing_input(
            source=baseline_dataset,
            destination=_container_path(_CONTAINER_INPUT_PATH, _BASELINE_DATASET_INPUT_NAME),
            name=_BASELINE_DATASET_INPUT_NAME,
        )
        record_preprocessor_input = self._upload_and_convert_to_processing_input(
            source=record_preprocessor_script,
            destination=_container_path(
                _CONTAINER_INPUT_PATH, _RECORD_PREPROCESSOR_SCRIPT_INPUT_NAME
            ),
            name=_RECORD_PREPROCESSOR_SCRIPT_INPUT_NAME,
        )
        post_processor_input = self._upload_and_convert_to_processing_input(
            source=post_analytics_processor_script,
            destination=_container_path(
                _CONTAINER_INPUT_PATH, _POST_ANALYTICS_PROCESSOR_SCRIPT_INPUT_NAME
            ),
            name=_POST_ANALYTICS_PROCESSOR_SCRIPT_INPUT_NAME,
        )
        normalized_output = self._normalize_baseline_output(output_s3_uri)

        record_preprocessor_container_path = None
        if record_preprocessor_input is not None and record_preprocessor_script is not None:
            record_preprocessor_container_path = "/".join(
                (record_preprocessor_input.destination, os.path.basename(record_preprocessor_script))
            )
        post_processor_container_path = None
        if post_processor_input is not None and post_analytics_processor_script is not None:
            post_processor_container_path = "/".join(
                (post_processor_input.destination, os.path.basename(post_analytics_processor_script))
            )

        normalized_env = self._generate_env_map(
            env=self.env,
            dataset_format=dataset_format,
            output_path=normalized_output.source,
            enable_cloudwatch_metrics=False,
            dataset_source_container_path=dataset_input.destination if dataset_input else None,
            record_preprocessor_script_container_path=record_preprocessor_container_path,
            post_processor_script_container_path=post_processor_container_path,
        )

        inputs = [
            processing_input
            for processing_input in (dataset_input, record_preprocessor_input, post_processor_input)
            if processing_input is not None
        ]

        baselining_processor = self._baselining_processor(normalized_env)
        baselining_processor.run(
            inputs=inputs,
            outputs=[normalized_output],
            arguments=self.arguments,
            wait=wait,
            logs=logs,
            job_name=self.latest_baselining_job_name,
        )
        return self._record_baselining_job(baselining_processor)

    def create_monitoring_schedule(  # type: ignore[override]
        self,
        endpoint_input: EndpointInput | str,
        record_preprocessor_script: str | None = None,
        post_analytics_processor_script: str | None = None,
        output_s3_uri: str | None = None,
        constraints: Constraints | str | None = None,
        statistics: Statistics | str | None = None,
        monitor_schedule_name: str | None = None,
        schedule_cron_expression: str | None = None,
        enable_cloudwatch_metrics: bool = True,
    ) -> None:
        """Create a schedule that monitors an endpoint with the built-in analyzer.

        Baseline statistics and constraints default to the results of the latest
        :meth:`suggest_baseline` run.

        Raises:
            ValueError: If this monitor already has a schedule.
        """
        self._ensure_no_schedule()
        self.monitoring_schedule_name = self._generate_monitoring_schedule_name(
            monitor_schedule_name
        )

        normalized_endpoint_input = self._normalize_endpoint_input(endpoint_input)
        record_preprocessor_script_s3_uri = None
        if record_preprocessor_script is not None:
            record_preprocessor_script_s3_uri = self._s3_uri_from_local_path(
                record_preprocessor_script
            )
        post_analytics_processor_script_s3_uri = None
        if post_analytics_processor_script is not None:
            post_analytics_processor_script_s3_uri = self._s3_uri_from_local_path(
                post_analytics_processor_script
            )

        normalized_output = self._normalize_monitoring_output(
            self.monitoring_schedule_name, output_s3_uri
        )
        statistics_obj, constraints_obj = self._get_baseline_files(statistics, constraints)

        normalized_env = self._generate_env_map(
            env=self.env,
            output_path=normalized_output.source,
            enable_cloudwatch_metrics=enable_cloudwatch_metrics,
        )

        self.sagemaker_session.create_monitoring_schedule(
            monitoring_schedule_name=self.monitoring_schedule_name,
            schedule_expression=schedule_cron_expression,
            statistics_s3_uri=statistics_obj.file_s3_uri if statistics_obj else None,
            constraints_s3_uri=constraints_obj.file_s3_uri if constraints_obj else None,
            monitoring_inputs=[normalized_endpoint_input._to_request_dict()],
            monitoring_output_config=self._monitoring_output_config(normalized_output),
            instance_count=self.instance_count,
            instance_type=self.instance_type,
            volume_size_in_gb=self.volume_size_in_gb,
            volume_kms_key=self.volume_kms_key,
            image_uri=self.image_uri,
            record_preprocessor_source_uri=record_preprocessor_script_s3_uri,
            post_analytics_processor_source_uri=post_analytics_processor_script_s3_uri,
            max_runtime_in_seconds=self.max_runtime_in_seconds,
            environment=normalized_env,
            network_config=self._network_config_dict(),
            role_arn=self.sagemaker_session.expand_role(self.role),
            tags=self.tags,
        )

    def update_monitoring_schedule(  # type: ignore[override]
        self,
        endpoint_input: EndpointInput | str | None = None,
        record_preprocessor_script: str | None = None,
        post_analytics_processor_script: str | None = None,
        output_s3_uri: str | None = None,
        statistics: Statistics | str | None = None,
        constraints: Constraints | str | None = None,
        schedule_cron_expression: str | None = None,
        instance_count: int | None = None,
        instance_type: str | None = None,
        volume_size_in_gb: int | None = None,
        volume_kms_key: str | None = None,
        output_kms_key: str | None = None,
        max_runtime_in_seconds: int | None = None,
        env: dict[str, str] | None = None,
        network_config: NetworkConfig | None = None,
        enable_cloudwatch_metrics: bool | None = None,
        role: str | None = None,
    ) -> None:
        """Update the schedule of this monitor. Unset arguments keep their current value.

        Raises:
            ValueError: If this monitor has no schedule.
        """
        schedule_name = self._require_schedule_name()
        self._update_attributes(
            instance_count=instance_count,
            instance_type=instance_type,
            volume_size_in_gb=volume_size_in_gb,
            volume_kms_key=volume_kms_key,
            output_kms_key=output_kms_key,
            max_runtime_in_seconds=max_runtime_in_seconds,
            env=env,
            network_config=network_config,
            role=role,
        )

        monitoring_inputs = None
        if endpoint_input is not None:
            monitoring_inputs = [self._normalize_endpoint_input(endpoint_input)._to_request_dict()]

        record_preprocessor_script_s3_uri = None
        if record_preprocessor_script is not None:
            record_preprocessor_script_s3_uri = self._s3_uri_from_local_path(
                record_preprocessor_script
            )
        post_analytics_processor_script_s3_uri = None
        if post_analytics_processor_script is not None:
            post_analytics_processor_script_s3_uri = self._s3_uri_from_local_path(
                post_analytics_processor_script
            )

        monitoring_output_config = None
        normalized_output = self._normalize_monitoring_output(schedule_name, output_s3_uri)
        if output_s3_uri is not None:
            monitoring_output_config = self._monitoring_output_config(normalized_output)
        elif output_kms_key is not None:
            monitoring_output_config = self._current_output_config()

        statistics_obj, constraints_obj = self._get_baseline_files(
            statistics, constraints, use_latest_baseline=False
        )

        normalized_env = None
        if env is not None or enable_cloudwatch_metrics is not None:
            normalized_env = self._generate_env_map(
                env=self.env,
                output_path=normalized_output.source,
                enable_cloudwatch_metrics=enable_cloudwatch_metrics,
            )

        self._update_schedule(
            schedule_expression=schedule_cron_expression,
            statistics_s3_uri=statistics_obj.file_s3_uri if statistics_obj else None,
            constraints_s3_uri=constraints_obj.file_s3_uri if constraints_obj else None,
            monitoring_inputs=monitoring_inputs,
            monitoring_output_config=monitoring_output_config,
            instance_count=instance_count,
            instance_type=instance_type,
            volume_size_in_gb=volume_size_in_gb,
            volume_kms_key=volume_kms_key,
            record_preprocessor_source_uri=record_preprocessor_script_s3_uri,
            post_analytics_processor_source_uri=post_analytics_processor_script_s3_uri,
            max_runtime_in_seconds=max_runtime_in_seconds,
            environment=normalized_env,
            network_config=self._network_config_dict() if network_config is not None else None,
            role_arn=self.sagemaker_session.expand_role(role) if role is not None else None,
        )

    @classmethod
    def _prepare_init_params_from_schedule(cls, schedule_desc: dict[str, Any]) -> dict[str, Any]:
        init_params = super()._prepare_init_params_from_schedule(schedule_desc)
        init_params.pop("image_uri")
        init_params.pop("entrypoint")
        return init_params

    @staticmethod
    def _generate_env_map(
        env: dict[str, str] | None,
        output_path: str | None = None,
        enable_cloudwatch_metrics: bool | None = None,
        dataset_format: dict[str, Any] | None = None,
        dataset_source_container_path: str | None = None,
        record_preprocessor_script_container_path: str | None = None,
        post_processor_script_container_path: str | None = None,
    ) -> dict[str, str]:
        """Environment of the analyzer container, on top of the user environment."""
        cloudwatch_env_map = {True: "Enabled", False: "Disabled"}
        normalized_env = dict(env or {})

        if output_path is not None:
            normalized_env[_OUTPUT_PATH_ENV_NAME] = output_path
        if enable_cloudwatch_metrics is not None:
            normalized_env[_PUBLISH_CLOUDWATCH_METRICS_ENV_NAME] = cloudwatch_env_map[
                enable_cloudwatch_metrics
            ]
        if dataset_format is not None:
            normalized_env[_DATASET_FORMAT_ENV_NAME] = json.dumps(dataset_format)
        if dataset_source_container_path is not None:
            normalized_env[_DATASET_SOURCE_PATH_ENV_NAME] = dataset_source_container_path
        if record_preprocessor_script_container_path is not None:
            normalized_env[_RECORD_PREPROCESSOR_SCRIPT_ENV_NAME] = (
                record_preprocessor_script_container_path
            )
        if post_processor_script_container_path is not None:
            normalized_env[_POST_ANALYTICS_PROCESSOR_SCRIPT_ENV_NAME] = (
                post_processor_script_container_path
            )
        return normalized_env

    def _upload_and_convert_to_processing_input(
        self, source: str | None, destination: str, name: str
    ) -> ProcessingInput | None:
        if source is None:
            return None

        if urlparse(source).scheme != "s3":
            s3_uri = s3_path_join(
                "s3://",
                self.sagemaker_session.default_bucket(),
                _MODEL_MONITOR_S3_PATH,
                _BASELINING_S3_PATH,
                self.latest_baselining_job_name or "",
                _INPUT_S3_PATH,
                name,
            )
            source = S3Uploader.upload(
                local_path=source, desired_s3_uri=s3_uri, sagemaker_session=self.sagemaker_session
            )
        return ProcessingInput(source=source, destination=destination, input_name=name)


class _MonitoringOutputJob(ProcessingJob):
    """Processing job whose first output holds monitoring JSON files."""

    def _output_file_uri(self, file_name: str) -> str:
        assert self.outputs
        destination = self.outputs[0].destination
        assert destination is not None
        return s3_path_join(destination, file_name)

    def _read_output_file(self, file_cls: type[Any], file_name: str, kms_key: str | None) -> Any:
        """Read a JSON output of the job.

        Raises:
            UnexpectedStatusError: If the file is missing because the job has not completed.
            ClientError: For any other S3 failure.
        """
        try:
            return file_cls.from_s3_uri(
                self._output_file_uri(file_name),
                kms_key=kms_key,
                sagemaker_session=self.sagemaker_session,
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != NO_SUCH_KEY_CODE:
                raise
            status = self.describe()["ProcessingJobStatus"]
            if status != "Completed":
                raise UnexpectedStatusError(
                    "The underlying job is not in 'Completed' state. You may only retrieve "
                    "files for a job that has completed successfully.",
                    name=self.job_name,
                    status=status,
                    allowed_statuses=("Completed",),
                ) from e
            raise


class BaseliningJob(_MonitoringOutputJob):
    """A processing job that computed baseline statistics and constraints."""

    @classmethod
    def from_processing_job(cls, processing_job: ProcessingJob) -> BaseliningJob:
        return cls(
            sagemaker_session=processing_job.sagemaker_session,
            job_name=processing_job.job_name,
            inputs=processing_job.inputs,
            outputs=processing_job.outputs,
            output_kms_key=processing_job.output_kms_key,
        )

    def baseline_statistics(
        self, file_name: str = STATISTICS_JSON_DEFAULT_FILE_NAME, kms_key: str | None = None
    ) -> Statistics:
        return self._read_output_file(Statistics, file_name, kms_key)

    def suggested_constraints(
        self, file_name: str = CONSTRAINTS_JSON_DEFAULT_FILE_NAME, kms_key: str | None = None
    ) -> Constraints:
        return self._read_output_file(Constraints, file_name, kms_key)


class MonitoringExecution(_MonitoringOutputJob):
    """A processing job launched by a monitoring schedule."""

    def statistics(
        self, file_name: str = STATISTICS_JSON_DEFAULT_FILE_NAME, kms_key: str | None = None
    ) -> Statistics:
        return self._read_output_file(Statistics, file_name, kms_key or self.output_kms_key)

    def constraint_violations(
        self,
        file_name: str = CONSTRAINT_VIOLATIONS_JSON_DEFAULT_FILE_NAME,
        kms_key: str | None = None,
    ) -> ConstraintViolations:
        return self._read_output_file(
            ConstraintViolations, file_name, kms_key or self.output_kms_key
        )


class EndpointInput:
    """An endpoint whose captured data is fed to monitoring executions."""

    def __init__(
        self,
        endpoint_name: str,
        destination: str,
        s3_input_mode: str = "File",
        s3_data_distribution_type: str = "FullyReplicated",
        start_time_offset: str | None = None,
        end_time_offset: str | None = None,
        features_attribute: str | None = None,
        inference_attribute: str | None = None,
        probability_attribute: str | None = None,
        probability_threshold_attribute: float | None = None,
    ) -> None:
        """Initialize an endpoint input.

        Args:
            endpoint_name: Name of the monitored endpoint.
            destination: Container path the captured data is made available at.
            s3_input_mode: ``File`` or ``Pipe``.
            s3_data_distribution_type: ``FullyReplicated`` or ``ShardedByS3Key``.
            start_time_offset: ISO 8601 offset of the monitoring window start, e.g. ``-PT1H``.
            end_time_offset: ISO 8601 offset of the monitoring window end.
            features_attribute: JSONpath of the features in captured requests.
            inference_attribute: Location of the inference in captured responses.
            probability_attribute: Location of the probability in captured responses.
            probability_threshold_attribute: Threshold turning probabilities into labels.
        """
        self.endpoint_name = endpoint_name
        self.destination = destination
        self.s3_input_mode = s3_input_mode
        self.s3_data_distribution_type = s3_data_distribution_type
        self.start_time_offset = start_time_offset
        self.end_time_offset = end_time_offset
        self.features_attribute = features_attribute
        self.inference_attribute = inference_attribute
        self.probability_attribute = probability_attribute
        self.probability_threshold_attribute = probability_threshold_attribute

    def _to_request_dict(self) -> dict[str, Any]:
        endpoint_input: dict[str, Any] = {
            "EndpointName": self.endpoint_name,
            "LocalPath": self.destination,
            "S3InputMode": self.s3_input_mode,
            "S3DataDistributionType": self.s3_data_distribution_type,
        }
        optional_fields = {
            "StartTimeOffset": self.start_time_offset,
            "EndTimeOffset": self.end_time_offset,
            "FeaturesAttribute": self.features_attribute,
            "InferenceAttribute": self.inference_attribute,
            "ProbabilityAttribute": self.probability_attribute,
            "ProbabilityThresholdAttribute": self.probability_threshold_attribute,
        }
        endpoint_input.update({k: v for k, v in optional_fields.items() if v is not None})
        return {"EndpointInput": endpoint_input}


class MonitoringOutput:
    """A container directory uploaded to S3 by monitoring executions."""

    def __init__(
        self, source: str, destination: str | None = None, s3_upload_mode: str = "Continuous"
    ) -> None:
        self.source = source
        self.destination = destination
        self.s3_upload_mode = s3_upload_mode

    def _to_request_dict(self) -> dict[str, Any]:
        return {
            "S3Output": {
                "S3Uri": self.destination,
                "LocalPath": self.source,
                "S3UploadMode": self.s3_upload_mode,
            }
        }
