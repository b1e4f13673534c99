"""AWS session management and the SageMaker control-plane request layer.

:class:`Session` owns the boto3 session and clients. Higher-level objects
(estimators, models, processors, monitors, tuners) assemble their settings
and call into the session, which builds the request dicts for the
``Create*`` operations, polls ``Describe*`` operations until a terminal
state is reached, tails CloudWatch logs, and moves data to and from S3.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
import os
import re
import sys
import time
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError, NoCredentialsError

from . import vpc_utils
from .config import SessionConfig
from .exceptions import BucketAccessError, CredentialsError, UnexpectedStatusError
from .logs import tail_job_logs
from .s3 import local_path_to_key, s3_path_join
from .utils import (
    base_name_from_image,
    name_from_base,
    secondary_training_status_changed,
    secondary_training_status_message,
)

if TYPE_CHECKING:
    from mypy_boto3_ecr import ECRClient
    from mypy_boto3_iam import IAMClient
    from mypy_boto3_logs import CloudWatchLogsClient
    from mypy_boto3_s3 import S3Client
    from mypy_boto3_sagemaker import SageMakerClient
    from mypy_boto3_sagemaker_runtime import SageMakerRuntimeClient
    from mypy_boto3_sts import STSClient

    from .model import Model

logger = logging.getLogger(__name__)

NOTEBOOK_METADATA_FILE = "/opt/ml/metadata/resource-metadata.json"

_STATUS_CODE_TABLE = {
    "COMPLETED": "Completed",
    "INPROGRESS": "InProgress",
    "FAILED": "Failed",
    "STOPPED": "Stopped",
    "STOPPING": "Stopping",
    "STARTING": "Starting",
}

_JOB_STATUS_GLYPHS = {
    "Completed": "!",
    "InProgress": ".",
    "Failed": "*",
    "Stopped": "s",
    "Stopping": "_",
}

_ENDPOINT_STATUS_GLYPHS = {
    "OutOfService": "x",
    "Creating": "-",
    "Updating": "-",
    "InService": "!",
    "RollingBack": "<",
    "Deleting": "o",
    "Failed": "*",
}


class Session:
    """Manage interactions with the SageMaker APIs and other AWS services.

    Attributes:
        config: The session configuration.
        boto_session: The underlying boto3 session.
        sagemaker_client: Client for the SageMaker control plane.
        sagemaker_runtime_client: Client for ``InvokeEndpoint``.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        *,
        boto_session: boto3.Session | None = None,
        sagemaker_client: SageMakerClient | None = None,
        sagemaker_runtime_client: SageMakerRuntimeClient | None = None,
        default_bucket: str | None = None,
    ) -> None:
        """Initialize a session.

        Args:
            config: Session configuration. Defaults to ``SessionConfig()``.
            boto_session: Existing boto3 session. Created from the
                configured region when omitted.
            sagemaker_client: Existing SageMaker client.
            sagemaker_runtime_client: Existing SageMaker runtime client.
            default_bucket: Default bucket, overriding the configured one.

        Raises:
            ValueError: If no AWS region can be determined.
        """
        self._config = config or SessionConfig()
        self._boto_session = boto_session or boto3.Session(region_name=self._config.aws.region)

        region = self._boto_session.region_name
        if region is None:
            raise ValueError(
                "Must setup local AWS configuration with a region supported by SageMaker."
            )
        self._region = region

        self._sagemaker_client = sagemaker_client or self._boto_session.client(
            "sagemaker", config=self._get_boto_config()
        )
        self._sagemaker_runtime_client = sagemaker_runtime_client or self._boto_session.client(
            "sagemaker-runtime", config=self._get_boto_config()
        )

        self._default_bucket_name_override = default_bucket or self._config.aws.bucket
        self._default_bucket: str | None = None

    @property
    def config(self) -> SessionConfig:
        """Get session configuration."""
        return self._config

    @property
    def boto_session(self) -> boto3.Session:
        """Get underlying boto3 session."""
        return self._boto_session

    @property
    def region(self) -> str:
        """Get AWS region."""
        return self._region

    @property
    def sagemaker_client(self) -> SageMakerClient:
        """Get SageMaker client."""
        return self._sagemaker_client

    @property
    def sagemaker_runtime_client(self) -> SageMakerRuntimeClient:
        """Get SageMaker runtime client."""
        return self._sagemaker_runtime_client

    def _get_boto_config(self) -> BotoConfig:
        """Get boto client configuration with retry settings."""
        retry = self._config.retry
        return BotoConfig(
            retries={
                "mode": retry.mode,
                "max_attempts": retry.max_attempts,
            },
            connect_timeout=retry.connect_timeout,
            read_timeout=retry.read_timeout,
        )

    def s3_client(self) -> S3Client:
        """Get S3 client."""
        return self._boto_session.client("s3", config=self._get_boto_config())

    def sts_client(self) -> STSClient:
        """Get STS client."""
        return self._boto_session.client(
            "sts",
            region_name=self._region,
            endpoint_url=_sts_regional_endpoint(self._region),
            config=self._get_boto_config(),
        )

    def iam_client(self) -> IAMClient:
        """Get IAM client."""
        return self._boto_session.client("iam", config=self._get_boto_config())

    def logs_client(self) -> CloudWatchLogsClient:
        """Get CloudWatch Logs client."""
        return self._boto_session.client("logs", config=self._get_boto_config())

    def cloudwatch_client(self) -> Any:
        """Get CloudWatch client."""
        return self._boto_session.client("cloudwatch", config=self._get_boto_config())

    def ecr_client(self, region: str | None = None) -> ECRClient:
        """Get ECR client for specified region."""
        return self._boto_session.client(
            "ecr",
            region_name=region or self._region,
            config=self._get_boto_config(),
        )

    def _merge_tags(self, tags: list[dict[str, str]] | None) -> list[dict[str, str]] | None:
        """Append the session-wide tags to a resource's own tags."""
        merged = list(tags or [])
        keys = {t["Key"] for t in merged}
        merged.extend(t for t in self._config.tag_list() if t["Key"] not in keys)
        return merged or None

    # -------------------- S3 --------------------

    def default_bucket(self) -> str:
        """Return the name of the default bucket, creating it if needed.

        The name is taken from the configuration, or generated as
        ``{prefix}-{region}-{account id}``.

        Raises:
            CredentialsError: If the account id cannot be looked up.
            BucketAccessError: If the bucket cannot be checked or created.
        """
        if self._default_bucket:
            return self._default_bucket

        default_bucket = self._default_bucket_name_override
        if not default_bucket:
            try:
                account = self.sts_client().get_caller_identity()["Account"]
            except NoCredentialsError as e:
                raise CredentialsError(
                    "AWS credentials not found. Configure credentials via:\n"
                    "  - Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)\n"
                    "  - AWS credentials file (~/.aws/credentials)\n"
                    "  - IAM role (if running on EC2/ECS)"
                ) from e
            default_bucket = f"{self._config.default_bucket_prefix}-{self._region}-{account}"

        self._create_s3_bucket_if_it_does_not_exist(default_bucket, self._region)
        self._default_bucket = default_bucket
        return default_bucket

    def _create_s3_bucket_if_it_does_not_exist(self, bucket_name: str, region: str) -> None:
        """Create an S3 bucket if it does not exist.

        Errors signalling that the bucket already exists, or is being
        created concurrently, are ignored.
        """
        s3 = self.s3_client()
        try:
            s3.head_bucket(Bucket=bucket_name)
            return
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "403":
                raise BucketAccessError(
                    f"Access denied to S3 bucket '{bucket_name}'. "
                    f"Check IAM permissions for s3:ListBucket and s3:GetObject."
                ) from e
            if error_code not in ("404", "NoSuchBucket"):
                raise BucketAccessError(
                    f"S3 bucket validation failed ({error_code}): {e}"
                ) from e

        try:
            if region == "us-east-1":
                # us-east-1 rejects an explicit LocationConstraint
                s3.create_bucket(Bucket=bucket_name)
            else:
                s3.create_bucket(
                    Bucket=bucket_name,
                    CreateBucketConfiguration={"LocationConstraint": region},
                )
            logger.info(f"Created S3 bucket: {bucket_name}")
        except ClientError as e:
            error = e.response.get("Error", {})
            error_code = error.get("Code", "Unknown")
            message = error.get("Message", "")
            if error_code == "BucketAlreadyOwnedByYou":
                return
            if error_code == "OperationAborted" and "conflicting conditional operation" in message:
                # Bucket is being created by a concurrent call
                return
            raise BucketAccessError(
                f"Failed to create S3 bucket '{bucket_name}' ({error_code}): {e}"
            ) from e

    def upload_data(
        self,
        path: str,
        bucket: str | None = None,
        key_prefix: str = "data",
        extra_args: dict[str, Any] | None = None,
    ) -> str:
        """Upload a local file or directory to S3.

        A single file lands at ``{key_prefix}/{filename}``. A directory is
        uploaded recursively, preserving its relative structure under
        ``{key_prefix}/``.

        Args:
            path: Local file or directory.
            bucket: Target bucket. Defaults to :meth:`default_bucket`.
            key_prefix: S3 key prefix.
            extra_args: ``ExtraArgs`` forwarded to ``upload_file``.

        Returns:
            ``s3://{bucket}/{key_prefix}/{filename}`` for a file,
            ``s3://{bucket}/{key_prefix}`` for a directory.

        Raises:
            FileNotFoundError: If path doesn't exist.
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"Local path not found: {path}")

        files: list[tuple[str, str]] = []
        key_suffix = None
        if os.path.isdir(path):
            for dirpath, _, filenames in os.walk(path):
                for name in filenames:
                    local_path = os.path.join(dirpath, name)
                    relative = os.path.relpath(local_path, start=path).replace(os.sep, "/")
                    files.append((local_path, s3_path_join(key_prefix, relative)))
        else:
            key_suffix = os.path.basename(path)
            files.append((path, local_path_to_key(path, key_prefix)))

        bucket = bucket or self.default_bucket()
        s3 = self.s3_client()

        for local_path, s3_key in files:
            logger.debug(f"Uploading {local_path} to s3://{bucket}/{s3_key}")
            s3.upload_file(local_path, bucket, s3_key, ExtraArgs=extra_args)

        logger.info(f"Uploaded {len(files)} files to s3://{bucket}/{key_prefix}")
        return s3_path_join("s3://", bucket, key_prefix, key_suffix or "")

    def upload_string_as_file_body(
        self,
        body: str,
        bucket: str,
        key: str,
        kms_key: str | None = None,
    ) -> str:
        """Upload a string as the body of an S3 object.

        Returns:
            ``s3://{bucket}/{key}``.
        """
        s3 = self.s3_client()
        request: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body.encode("utf-8")}
        if kms_key is not None:
            request["SSEKMSKeyId"] = kms_key
            request["ServerSideEncryption"] = "aws:kms"
        s3.put_object(**request)
        return f"s3://{bucket}/{key}"

    def list_s3_files(self, bucket: str, key_prefix: str) -> list[str]:
        """List the keys of all objects under a prefix."""
        s3 = self.s3_client()
        paginator = s3.get_paginator("list_objects_v2")
        keys: list[str] = []
        for page in paginator.paginate(Bucket=bucket, Prefix=key_prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def download_data(
        self,
        path: str,
        bucket: str,
        key_prefix: str = "",
        extra_args: dict[str, Any] | None = None,
    ) -> list[str]:
        """Download every object under an S3 prefix into a local directory.

        Keys are written relative to the prefix; keys ending in ``/``
        (directory markers) are skipped.

        Returns:
            Local paths of the downloaded files.
        """
        keys = [k for k in self.list_s3_files(bucket, key_prefix) if not k.endswith("/")]

        prefix_dir = key_prefix if not key_prefix or key_prefix.endswith("/") else f"{key_prefix}/"
        s3 = self.s3_client()
        downloaded: list[str] = []

        for key in keys:
            tail = key[len(prefix_dir) :] if key.startswith(prefix_dir) else os.path.basename(key)
            destination = os.path.join(path, *tail.split("/"))
            os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
            logger.debug(f"Downloading s3://{bucket}/{key} to {destination}")
            s3.download_file(bucket, key, destination, ExtraArgs=extra_args)
            downloaded.append(destination)

        logger.info(f"Downloaded {len(downloaded)} files from s3://{bucket}/{key_prefix} to {path}")
        return downloaded

    def read_s3_file(self, bucket: str, key_prefix: str) -> str:
        """Read a single S3 object and return its body decoded as UTF-8."""
        s3 = self.s3_client()
        s3_object = s3.get_object(Bucket=bucket, Key=key_prefix)
        return s3_object["Body"].read().decode("utf-8")

    # -------------------- Identity --------------------

    def expand_role(self, role: str) -> str:
        """Expand an IAM role name into a full ARN.

        ARNs (anything containing ``/``) are returned unchanged.
        """
        if "/" in role:
            return role
        return self.iam_client().get_role(RoleName=role)["Role"]["Arn"]

    def get_caller_identity_arn(self) -> str:
        """Return the ARN of the user or role whose credentials are used.

        Assumed-role session ARNs are converted back to the role ARN.
        """
        if os.path.exists(NOTEBOOK_METADATA_FILE):
            with open(NOTEBOOK_METADATA_FILE) as f:
                instance_name = json.load(f).get("ResourceName")
            if instance_name:
                try:
                    instance_desc = self.sagemaker_client.describe_notebook_instance(
                        NotebookInstanceName=instance_name
                    )
                    return instance_desc["RoleArn"]
                except ClientError:
                    logger.debug(
                        f"Couldn't call 'describe_notebook_instance' to get the Role ARN of "
                        f"the instance {instance_name}."
                    )

        try:
            assumed_role = self.sts_client().get_caller_identity()["Arn"]
        except NoCredentialsError as e:
            raise CredentialsError("AWS credentials not found.") from e

        role = re.sub(r"^(.+)sts::(\d+):assumed-role/(.+?)/.*$", r"\1iam::\2:role/\3", assumed_role)

        # Roles created with the console live under the service-role path
        if "AmazonSageMaker-ExecutionRole" in assumed_role:
            return re.sub(
                r"^(.+)sts::(\d+):assumed-role/(.+?)/.*$",
                r"\1iam::\2:role/service-role/\3",
                assumed_role,
            )

        if ":role/" in role:
            role_name = role.split("/")[-1]
            try:
                role = self.iam_client().get_role(RoleName=role_name)["Role"]["Arn"]
            except ClientError:
                logger.warning(
                    f"Couldn't call 'get_role' to get Role ARN from role name {role_name} "
                    f"to get Role path."
                )
        return role

    # -------------------- Training --------------------

    def train(
        self,
        input_mode: str,
        input_config: list[dict[str, Any]] | None,
        role: str,
        job_name: str,
        output_config: dict[str, Any],
        resource_config: dict[str, Any],
        vpc_config: dict[str, Any] | None = None,
        hyperparameters: dict[str, str] | None = None,
        stop_condition: dict[str, Any] | None = None,
        tags: list[dict[str, str]] | None = None,
        metric_definitions: list[dict[str, str]] | None = None,
        enable_network_isolation: bool = False,
        image_uri: str | None = None,
        algorithm_arn: str | None = None,
        encrypt_inter_container_traffic: bool = False,
        use_spot_instances: bool = False,
        checkpoint_s3_uri: str | None = None,
        checkpoint_local_path: str | None = None,
        experiment_config: dict[str, str] | None = None,
        enable_sagemaker_metrics: bool | None = None,
        environment: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create a SageMaker training job.

        Args:
            input_mode: ``File`` or ``Pipe``.
            input_config: List of ``Channel`` dicts.
            role: IAM role ARN used by the job.
            job_name: Name of the training job.
            output_config: ``OutputDataConfig`` dict.
            resource_config: ``ResourceConfig`` dict.
            vpc_config: ``VpcConfig`` dict.
            hyperparameters: Hyperparameters passed to the algorithm (str -> str).
            stop_condition: ``StoppingCondition`` dict.
            tags: Tags for the job.
            metric_definitions: ``[{"Name": ..., "Regex": ...}]``.
            enable_network_isolation: Run the container without network access.
            image_uri: Training image. Mutually exclusive with algorithm_arn.
            algorithm_arn: Marketplace algorithm ARN.
            encrypt_inter_container_traffic: Encrypt traffic between instances.
            use_spot_instances: Use managed spot training.
            checkpoint_s3_uri: S3 URI where checkpoints are synced.
            checkpoint_local_path: Container path where checkpoints are written.
            experiment_config: Experiment association
                (``ExperimentName``, ``TrialName``, ``TrialComponentDisplayName``).
            enable_sagemaker_metrics: Enable SageMaker metrics time series.
            environment: Environment variables for the training container.

        Returns:
            The ``CreateTrainingJob`` response.

        Raises:
            ValueError: If both or neither of image_uri and algorithm_arn are given.
        """
        if image_uri is not None and algorithm_arn is not None:
            raise ValueError(
                "image_uri and algorithm_arn are mutually exclusive. "
                f"Both were provided: image_uri: {image_uri} algorithm_arn: {algorithm_arn}"
            )
        if image_uri is None and algorithm_arn is None:
            raise ValueError("either image_uri or algorithm_arn is required. None was provided.")

        algorithm_spec: dict[str, Any] = {"TrainingInputMode": input_mode}
        if image_uri is not None:
            algorithm_spec["TrainingImage"] = image_uri
        if algorithm_arn is not None:
            algorithm_spec["AlgorithmName"] = algorithm_arn
        if metric_definitions is not None:
            algorithm_spec["MetricDefinitions"] = metric_definitions
        if enable_sagemaker_metrics is not None:
            algorithm_spec["EnableSageMakerMetricsTimeSeries"] = enable_sagemaker_metrics

        train_request: dict[str, Any] = {
            "AlgorithmSpecification": algorithm_spec,
            "OutputDataConfig": output_config,
            "TrainingJobName": job_name,
            "StoppingCondition": stop_condition,
            "ResourceConfig": resource_config,
            "RoleArn": role,
        }

        if input_config is not None:
            train_request["InputDataConfig"] = input_config
        if hyperparameters:
            train_request["HyperParameters"] = hyperparameters
        merged_tags = self._merge_tags(tags)
        if merged_tags is not None:
            train_request["Tags"] = merged_tags
        if vpc_config is not None:
            train_request["VpcConfig"] = vpc_config
        if experiment_config:
            train_request["ExperimentConfig"] = experiment_config
        if enable_network_isolation:
            train_request["EnableNetworkIsolation"] = True
        if encrypt_inter_container_traffic:
            train_request["EnableInterContainerTrafficEncryption"] = True
        if use_spot_instances:
            train_request["EnableManagedSpotTraining"] = True
        if checkpoint_s3_uri:
            checkpoint_config = {"S3Uri": checkpoint_s3_uri}
            if checkpoint_local_path:
                checkpoint_config["LocalPath"] = checkpoint_local_path
            train_request["CheckpointConfig"] = checkpoint_config
        if environment:
            train_request["Environment"] = environment

        logger.info(f"Creating training-job with name: {job_name}")
        logger.debug(f"train request: {json.dumps(train_request, indent=4, default=str)}")
        return self.sagemaker_client.create_training_job(**train_request)

    def describe_training_job(self, job_name: str) -> dict[str, Any]:
        """Call ``DescribeTrainingJob`` for the given job name."""
        return self.sagemaker_client.describe_training_job(TrainingJobName=job_name)

    def stop_training_job(self, job_name: str) -> None:
        """Stop a training job, ignoring jobs that are no longer running."""
        logger.info(f"Stopping training job: {job_name}")
        self._stop_ignoring_validation(
            lambda: self.sagemaker_client.stop_training_job(TrainingJobName=job_name),
            "Training",
            job_name,
        )

    def wait_for_job(self, job: str, poll: float | None = None) -> dict[str, Any]:
        """Wait for a training job to complete.

        Args:
            job: Training job name.
            poll: Seconds between status checks.

        Returns:
            The final ``DescribeTrainingJob`` response.

        Raises:
            UnexpectedStatusError: If the job fails.
        """
        poll = poll or self._config.polling.job_poll_seconds
        last_desc: dict[str, Any] | None = None
        while True:
            desc, done = _train_done(self.sagemaker_client, job, last_desc)
            if done:
                break
            last_desc = desc
            time.sleep(poll)
        self._check_job_status(job, desc, "TrainingJobStatus")
        return desc

    # -------------------- Processing --------------------

    def process(
        self,
        inputs: list[dict[str, Any]] | None,
        output_config: dict[str, Any] | None,
        job_name: str,
        resources: dict[str, Any],
        stopping_condition: dict[str, Any] | None,
        app_specification: dict[str, Any],
        environment: dict[str, str] | None,
        network_config: dict[str, Any] | None,
        role_arn: str,
        tags: list[dict[str, str]] | None = None,
        experiment_config: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create a SageMaker processing job.

        Args:
            inputs: List of ``ProcessingInput`` dicts.
            output_config: ``ProcessingOutputConfig`` dict (``Outputs`` and
                optional ``KmsKeyId``).
            job_name: Processing job name.
            resources: ``ProcessingResources`` dict.
            stopping_condition: ``StoppingCondition`` dict.
            app_specification: ``AppSpecification`` dict.
            environment: Environment variables for the container.
            network_config: ``NetworkConfig`` dict.
            role_arn: IAM role ARN.
            tags: Tags for the job.
            experiment_config: Experiment association.

        Returns:
            The ``CreateProcessingJob`` response.
        """
        process_request: dict[str, Any] = {
            "ProcessingJobName": job_name,
            "ProcessingResources": resources,
            "AppSpecification": app_specification,
            "RoleArn": role_arn,
        }

        if inputs:
            process_request["ProcessingInputs"] = inputs
        if output_config and output_config.get("Outputs"):
            process_request["ProcessingOutputConfig"] = output_config
        if environment is not None:
            process_request["Environment"] = environment
        if network_config is not None:
            process_request["NetworkConfig"] = network_config
        if stopping_condition is not None:
            process_request["StoppingCondition"] = stopping_condition
        merged_tags = self._merge_tags(tags)
        if merged_tags is not None:
            process_request["Tags"] = merged_tags
        if experiment_config:
            process_request["ExperimentConfig"] = experiment_config

        logger.info(f"Creating processing-job with name {job_name}")
        logger.debug(f"process request: {json.dumps(process_request, indent=4, default=str)}")
        return self.sagemaker_client.create_processing_job(**process_request)

    def describe_processing_job(self, job_name: str) -> dict[str, Any]:
        """Call ``DescribeProcessingJob`` for the given job name."""
        return self.sagemaker_client.describe_processing_job(ProcessingJobName=job_name)

    def stop_processing_job(self, job_name: str) -> None:
        """Stop a processing job."""
        logger.info(f"Stopping processing job: {job_name}")
        self._stop_ignoring_validation(
            lambda: self.sagemaker_client.stop_processing_job(ProcessingJobName=job_name),
            "Processing",
            job_name,
        )

    def was_processing_job_successful(self, job_name: str) -> bool:
        """Check whether a processing job completed."""
        job_desc = self.describe_processing_job(job_name)
        return job_desc["ProcessingJobStatus"] == "Completed"

    def wait_for_processing_job(self, job: str, poll: float | None = None) -> dict[str, Any]:
        """Wait for a processing job to complete.

        Raises:
            UnexpectedStatusError: If the job fails.
        """
        desc = _wait_until(
            lambda: _job_status(
                lambda: self.describe_processing_job(job), "ProcessingJobStatus"
            ),
            poll or self._config.polling.job_poll_seconds,
        )
        self._check_job_status(job, desc, "ProcessingJobStatus")
        return desc

    # -------------------- Batch Transform --------------------

    def transform(
        self,
        job_name: str,
        model_name: str,
        strategy: str | None,
        max_concurrent_transforms: int | None,
        max_payload: int | None,
        input_config: dict[str, Any],
        output_config: dict[str, Any],
        resource_config: dict[str, Any],
        env: dict[str, str] | None = None,
        tags: list[dict[str, str]] | None = None,
        data_processing: dict[str, str] | None = None,
        model_client_config: dict[str, int] | None = None,
        experiment_config: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create a SageMaker batch transform job.

        Returns:
            The ``CreateTransformJob`` response.
        """
        transform_request: dict[str, Any] = {
            "TransformJobName": job_name,
            "ModelName": model_name,
            "TransformInput": input_config,
            "TransformOutput": output_config,
            "TransformResources": resource_config,
        }

        if strategy is not None:
            transform_request["BatchStrategy"] = strategy
        if max_concurrent_transforms is not None:
            transform_request["MaxConcurrentTransforms"] = max_concurrent_transforms
        if max_payload is not None:
            transform_request["MaxPayloadInMB"] = max_payload
        if env is not None:
            transform_request["Environment"] = env
        merged_tags = self._merge_tags(tags)
        if merged_tags is not None:
            transform_request["Tags"] = merged_tags
        if data_processing is not None:
            transform_request["DataProcessing"] = data_processing
        if model_client_config:
            transform_request["ModelClientConfig"] = model_client_config
        if experiment_config:
            transform_request["ExperimentConfig"] = experiment_config

        logger.info(f"Creating transform job with name: {job_name}")
        logger.debug(f"Transform request: {json.dumps(transform_request, indent=4, default=str)}")
        return self.sagemaker_client.create_transform_job(**transform_request)

    def describe_transform_job(self, job_name: str) -> dict[str, Any]:
        """Call ``DescribeTransformJob`` for the given job name."""
        return self.sagemaker_client.describe_transform_job(TransformJobName=job_name)

    def stop_transform_job(self, name: str) -> None:
        """Stop a batch transform job, ignoring jobs that already stopped."""
        logger.info(f"Stopping transform job: {name}")
        self._stop_ignoring_validation(
            lambda: self.sagemaker_client.stop_transform_job(TransformJobName=name),
            "Transform",
            name,
        )

    def wait_for_transform_job(self, job: str, poll: float | None = None) -> dict[str, Any]:
        """Wait for a transform job to complete.

        Raises:
            UnexpectedStatusError: If the job fails.
        """
        desc = _wait_until(
            lambda: _job_status(lambda: self.describe_transform_job(job), "TransformJobStatus"),
            poll or self._config.polling.job_poll_seconds,
        )
        self._check_job_status(job, desc, "TransformJobStatus")
        return desc

    # -------------------- Hyperparameter Tuning --------------------

    def create_tuning_job(
        self,
        job_name: str,
        tuning_config: dict[str, Any],
        training_config: dict[str, Any] | None = None,
        training_config_list: list[dict[str, Any]] | None = None,
        warm_start_config: dict[str, Any] | None = None,
        tags: list[dict[str, str]] | None = None,
    ) -> dict[str, Any]:
        """Create a hyperparameter tuning job.

        Args:
            job_name: Tuning job name.
            tuning_config: ``HyperParameterTuningJobConfig`` dict
                (see :meth:`map_tuning_config`).
            training_config: ``TrainingJobDefinition`` dict
                (see :meth:`map_training_config`).
            training_config_list: ``TrainingJobDefinitions`` for multi-algorithm tuning.
            warm_start_config: ``WarmStartConfig`` dict.
            tags: Tags for the tuning job.

        Raises:
            ValueError: If not exactly one of training_config and
                training_config_list is given.
        """
        if training_config is None and training_config_list is None:
            raise ValueError("Either training_config or training_config_list should be provided.")
        if training_config is not None and training_config_list is not None:
            raise ValueError(
                "Only one of training_config and training_config_list should be provided."
            )

        tune_request: dict[str, Any] = {
            "HyperParameterTuningJobName": job_name,
            "HyperParameterTuningJobConfig": tuning_config,
        }
        if training_config is not None:
            tune_request["TrainingJobDefinition"] = training_config
        if training_config_list is not None:
            tune_request["TrainingJobDefinitions"] = training_config_list
        if warm_start_config is not None:
            tune_request["WarmStartConfig"] = warm_start_config
        merged_tags = self._merge_tags(tags)
        if merged_tags is not None:
            tune_request["Tags"] = merged_tags

        logger.info(f"Creating hyperparameter tuning job with name: {job_name}")
        logger.debug(f"tune request: {json.dumps(tune_request, indent=4, default=str)}")
        return self.sagemaker_client.create_hyper_parameter_tuning_job(**tune_request)

    @staticmethod
    def map_tuning_config(
        strategy: str,
        max_jobs: int,
        max_parallel_jobs: int,
        early_stopping_type: str = "Off",
        objective_type: str | None = None,
        objective_metric_name: str | None = None,
        parameter_ranges: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build the ``HyperParameterTuningJobConfig`` request structure."""
        tuning_config: dict[str, Any] = {
            "Strategy": strategy,
            "ResourceLimits": {
                "MaxNumberOfTrainingJobs": max_jobs,
                "MaxParallelTrainingJobs": max_parallel_jobs,
            },
            "TrainingJobEarlyStoppingType": early_stopping_type,
        }

        tuning_objective = _map_tuning_objective(objective_type, objective_metric_name)
        if tuning_objective is not None:
            tuning_config["HyperParameterTuningJobObjective"] = tuning_objective
        if parameter_ranges is not None:
            tuning_config["ParameterRanges"] = parameter_ranges
        return tuning_config

    @staticmethod
    def map_training_config(
        static_hyperparameters: dict[str, str],
        input_mode: str,
        role: str,
        output_config: dict[str, Any],
        resource_config: dict[str, Any],
        stop_condition: dict[str, Any],
        input_config: list[dict[str, Any]] | None = None,
        metric_definitions: list[dict[str, str]] | None = None,
        image_uri: str | None = None,
        algorithm_arn: str | None = None,
        vpc_config: dict[str, Any] | None = None,
        enable_network_isolation: bool = False,
        encrypt_inter_container_traffic: bool = False,
        estimator_name: str | None = None,
        objective_type: str | None = None,
        objective_metric_name: str | None = None,
        parameter_ranges: dict[str, Any] | None = None,
        use_spot_instances: bool = False,
        checkpoint_s3_uri: str | None = None,
        checkpoint_local_path: str | None = None,
    ) -> dict[str, Any]:
        """Build the ``TrainingJobDefinition`` request structure of a tuning job."""
        training_job_definition: dict[str, Any] = {
            "StaticHyperParameters": static_hyperparameters,
            "RoleArn": role,
            "OutputDataConfig": output_config,
            "ResourceConfig": resource_config,
            "StoppingCondition": stop_condition,
        }

        algorithm_spec: dict[str, Any] = {"TrainingInputMode": input_mode}
        if metric_definitions is not None:
            algorithm_spec["MetricDefinitions"] = metric_definitions
        if algorithm_arn:
            algorithm_spec["AlgorithmName"] = algorithm_arn
        else:
            algorithm_spec["TrainingImage"] = image_uri
        training_job_definition["AlgorithmSpecification"] = algorithm_spec

        if input_config is not None:
            training_job_definition["InputDataConfig"] = input_config
        if vpc_config is not None:
            training_job_definition["VpcConfig"] = vpc_config
        if enable_network_isolation:
            training_job_definition["EnableNetworkIsolation"] = True
        if encrypt_inter_container_traffic:
            training_job_definition["EnableInterContainerTrafficEncryption"] = True
        if use_spot_instances:
            training_job_definition["EnableManagedSpotTraining"] = True
        if checkpoint_s3_uri:
            checkpoint_config = {"S3Uri": checkpoint_s3_uri}
            if checkpoint_local_path:
                checkpoint_config["LocalPath"] = checkpoint_local_path
            training_job_definition["CheckpointConfig"] = checkpoint_config
        if estimator_name is not None:
            training_job_definition["DefinitionName"] = estimator_name

        tuning_objective = _map_tuning_objective(objective_type, objective_metric_name)
        if tuning_objective is not None:
            training_job_definition["TuningObjective"] = tuning_objective
        if parameter_ranges is not None:
            training_job_definition["HyperParameterRanges"] = parameter_ranges
        return training_job_definition

    def describe_tuning_job(self, job_name: str) -> dict[str, Any]:
        """Call ``DescribeHyperParameterTuningJob`` for the given job name."""
        return self.sagemaker_client.describe_hyper_parameter_tuning_job(
            HyperParameterTuningJobName=job_name
        )

    def stop_tuning_job(self, name: str) -> None:
        """Stop a hyperparameter tuning job, ignoring jobs that already stopped."""
        logger.info(f"Stopping tuning job: {name}")
        self._stop_ignoring_validation(
            lambda: self.sagemaker_client.stop_hyper_parameter_tuning_job(
                HyperParameterTuningJobName=name
            ),
            "Tuning",
            name,
        )

    def wait_for_tuning_job(self, job: str, poll: float | None = None) -> dict[str, Any]:
        """Wait for a hyperparameter tuning job to complete.

        Raises:
            UnexpectedStatusError: If the job fails.
        """
        desc = _wait_until(
            lambda: _job_status(
                lambda: self.describe_tuning_job(job), "HyperParameterTuningJobStatus"
            ),
            poll or self._config.polling.job_poll_seconds,
        )
        self._check_job_status(job, desc, "HyperParameterTuningJobStatus")
        return desc

    # -------------------- Models and Endpoints --------------------

    def create_model(
        self,
        name: str,
        role: str,
        container_defs: dict[str, Any] | list[dict[str, Any]] | None = None,
        vpc_config: dict[str, Any] | None = None,
        enable_network_isolation: bool = False,
        primary_container: dict[str, Any] | None = None,
        tags: list[dict[str, str]] | None = None,
    ) -> str:
        """Create a SageMaker model.

        A single container definition becomes the ``PrimaryContainer``; a
        list becomes ``Containers`` (an inference pipeline). A model that
        already exists is reused.

        Args:
            name: Model name.
            role: IAM role name or ARN.
            container_defs: Container definition(s) (see :func:`container_def`).
            vpc_config: ``VpcConfig`` dict.
            enable_network_isolation: Run the model containers without network access.
            primary_container: Legacy alias for a single container definition.
            tags: Tags for the model.

        Returns:
            The model name.

        Raises:
            ValueError: If both container_defs and primary_container are given.
        """
        if container_defs and primary_container:
            raise ValueError("Both container_defs and primary_container can not be passed as input")
        if primary_container:
            container_defs = primary_container

        role = self.expand_role(role)
        create_model_request: dict[str, Any] = {"ModelName": name, "ExecutionRoleArn": role}

        if isinstance(container_defs, list):
            create_model_request["Containers"] = container_defs
        else:
            create_model_request["PrimaryContainer"] = container_defs

        merged_tags = self._merge_tags(tags)
        if merged_tags is not None:
            create_model_request["Tags"] = merged_tags
        if vpc_config:
            create_model_request["VpcConfig"] = vpc_config
        if enable_network_isolation:
            create_model_request["EnableNetworkIsolation"] = True

        logger.info(f"Creating model with name: {name}")
        logger.debug(f"CreateModel request: {json.dumps(create_model_request, indent=4, default=str)}")

        try:
            self.sagemaker_client.create_model(**create_model_request)
        except ClientError as e:
            error = e.response.get("Error", {})
            if error.get("Code") == "ValidationException" and (
                "Cannot create already existing model" in error.get("Message", "")
            ):
                logger.warning(f"Using already existing model: {name}")
            else:
                raise
        return name

    def create_model_from_job(
        self,
        training_job_name: str,
        name: str | None = None,
        role: str | None = None,
        image_uri: str | None = None,
        model_data_url: str | None = None,
        env: dict[str, str] | None = None,
        vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT,
        tags: list[dict[str, str]] | None = None,
    ) -> str:
        """Create a model from the artifacts of a completed training job.

        Unset arguments default to the training job's image, artifacts and role.

        Returns:
            The model name.
        """
        training_job = self.describe_training_job(training_job_name)
        name = name or training_job_name
        role = role or training_job["RoleArn"]
        primary_container = container_def(
            image_uri or training_job["AlgorithmSpecification"]["TrainingImage"],
            model_data_url=model_data_url or training_job["ModelArtifacts"]["S3ModelArtifacts"],
            env=env or {},
        )
        vpc_config = _vpc_config_from_training_job(training_job, vpc_config_override)
        return self.create_model(name, role, primary_container, vpc_config=vpc_config, tags=tags)

    def describe_model(self, name: str) -> dict[str, Any]:
        """Call ``DescribeModel`` for the given model name."""
        return self.sagemaker_client.describe_model(ModelName=name)

    def delete_model(self, model_name: str) -> None:
        """Delete a SageMaker model."""
        logger.info(f"Deleting model with name: {model_name}")
        self.sagemaker_client.delete_model(ModelName=model_name)

    def create_endpoint_config(
        self,
        name: str,
        model_name: str,
        initial_instance_count: int,
        instance_type: str,
        accelerator_type: str | None = None,
        tags: list[dict[str, str]] | None = None,
        kms_key: str | None = None,
        data_capture_config_dict: dict[str, Any] | None = None,
    ) -> str:
        """Create an endpoint configuration with a single production variant.

        Returns:
            The endpoint configuration name.
        """
        logger.info(f"Creating endpoint-config with name {name}")

        request: dict[str, Any] = {
            "EndpointConfigName": name,
            "ProductionVariants": [
                production_variant(
                    model_name,
                    instance_type,
                    initial_instance_count,
                    accelerator_type=accelerator_type,
                )
            ],
        }
        merged_tags = self._merge_tags(tags)
        if merged_tags is not None:
            request["Tags"] = merged_tags
        if kms_key is not None:
            request["KmsKeyId"] = kms_key
        if data_capture_config_dict is not None:
            request["DataCaptureConfig"] = data_capture_config_dict

        self.sagemaker_client.create_endpoint_config(**request)
        return name

    def create_endpoint_config_from_existing(
        self,
        existing_config_name: str,
        new_config_name: str,
        new_tags: list[dict[str, str]] | None = None,
        new_kms_key: str | None = None,
        new_data_capture_config_dict: dict[str, Any] | None = None,
        new_production_variants: list[dict[str, Any]] | None = None,
    ) -> str:
        """Create an endpoint configuration from an existing one.

        Unset arguments are copied from the existing configuration.

        Returns:
            The new endpoint configuration name.
        """
        logger.info(f"Creating endpoint-config with name {new_config_name}")

        existing = self.sagemaker_client.describe_endpoint_config(
            EndpointConfigName=existing_config_name
        )

        request: dict[str, Any] = {
            "EndpointConfigName": new_config_name,
            "ProductionVariants": new_production_variants or existing["ProductionVariants"],
        }

        request_tags = new_tags or self.list_tags(existing["EndpointConfigArn"])
        if request_tags:
            request["Tags"] = request_tags

        kms_key = new_kms_key or existing.get("KmsKeyId")
        if kms_key is not None:
            request["KmsKeyId"] = kms_key

        data_capture = new_data_capture_config_dict or existing.get("DataCaptureConfig")
        if data_capture is not None:
            request["DataCaptureConfig"] = data_capture

        self.sagemaker_client.create_endpoint_config(**request)
        return new_config_name

    def describe_endpoint_config(self, name: str) -> dict[str, Any]:
        """Call ``DescribeEndpointConfig`` for the given name."""
        return self.sagemaker_client.describe_endpoint_config(EndpointConfigName=name)

    def delete_endpoint_config(self, endpoint_config_name: str) -> None:
        """Delete an endpoint configuration."""
        logger.info(f"Deleting endpoint configuration with name: {endpoint_config_name}")
        self.sagemaker_client.delete_endpoint_config(EndpointConfigName=endpoint_config_name)

    def create_endpoint(
        self,
        endpoint_name: str,
        config_name: str,
        tags: list[dict[str, str]] | None = None,
        wait: bool = True,
    ) -> str:
        """Create an endpoint from an endpoint configuration.

        Returns:
            The endpoint name.
        """
        logger.info(f"Creating endpoint with name {endpoint_name}")

        self.sagemaker_client.create_endpoint(
            EndpointName=endpoint_name,
            EndpointConfigName=config_name,
            Tags=self._merge_tags(tags) or [],
        )
        if wait:
            self.wait_for_endpoint(endpoint_name)
        return endpoint_name

    def update_endpoint(self, endpoint_name: str, endpoint_config_name: str, wait: bool = True) -> str:
        """Point an existing endpoint at a new endpoint configuration.

        Raises:
            ValueError: If the endpoint does not exist.
        """
        if not _deployment_entity_exists(
            lambda: self.sagemaker_client.describe_endpoint(EndpointName=endpoint_name)
        ):
            raise ValueError(
                f"Endpoint with name '{endpoint_name}' does not exist; "
                "please use an existing endpoint name"
            )

        self.sagemaker_client.update_endpoint(
            EndpointName=endpoint_name, EndpointConfigName=endpoint_config_name
        )
        if wait:
            self.wait_for_endpoint(endpoint_name)
        return endpoint_name

    def describe_endpoint(self, endpoint_name: str) -> dict[str, Any]:
        """Call ``DescribeEndpoint`` for the given endpoint name."""
        return self.sagemaker_client.describe_endpoint(EndpointName=endpoint_name)

    def delete_endpoint(self, endpoint_name: str) -> None:
        """Delete an endpoint."""
        logger.info(f"Deleting endpoint with name: {endpoint_name}")
        self.sagemaker_client.delete_endpoint(EndpointName=endpoint_name)

    def list_tags(self, resource_arn: str, max_results: int = 50) -> list[dict[str, str]]:
        """List the tags of a resource, excluding AWS-reserved ``aws:`` tags."""
        tags: list[dict[str, str]] = []
        request: dict[str, Any] = {"ResourceArn": resource_arn, "MaxResults": max_results}
        while True:
            response = self.sagemaker_client.list_tags(**request)
            tags.extend(t for t in response.get("Tags", []) if not t["Key"].startswith("aws:"))
            if not response.get("NextToken"):
                return tags
            request["NextToken"] = response["NextToken"]

    def wait_for_endpoint(self, endpoint: str, poll: float | None = None) -> dict[str, Any]:
        """Wait for an endpoint deployment to finish.

        Returns:
            The final ``DescribeEndpoint`` response.

        Raises:
            UnexpectedStatusError: If the endpoint is not ``InService``.
        """
        desc = _wait_until(
            lambda: _deploy_done(self.sagemaker_client, endpoint),
            poll or self._config.polling.endpoint_poll_seconds,
        )
        status = desc["EndpointStatus"]

        if status != "InService":
            reason = desc.get("FailureReason")
            raise UnexpectedStatusError(
                f"Error hosting endpoint {endpoint}: {status}. Reason: {reason}.",
                name=endpoint,
                status=status,
                reason=reason,
                allowed_statuses=["InService"],
            )
        return desc

    def endpoint_from_job(
        self,
        job_name: str,
        initial_instance_count: int,
        instance_type: str,
        image_uri: str | None = None,
        name: str | None = None,
        role: str | None = None,
        wait: bool = True,
        model_environment_vars: dict[str, str] | None = None,
        vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT,
        accelerator_type: str | None = None,
        data_capture_config: Any = None,
    ) -> str:
        """Create a model, endpoint configuration and endpoint from a training job.

        Returns:
            The endpoint name.
        """
        job_desc = self.describe_training_job(job_name)
        output_url = job_desc["ModelArtifacts"]["S3ModelArtifacts"]
        image_uri = image_uri or job_desc["AlgorithmSpecification"]["TrainingImage"]
        role = role or job_desc["RoleArn"]
        name = name or job_name
        vpc_config = _vpc_config_from_training_job(job_desc, vpc_config_override)

        return self.endpoint_from_model_data(
            model_s3_location=output_url,
            image_uri=image_uri,
            initial_instance_count=initial_instance_count,
            instance_type=instance_type,
            name=name,
            role=role,
            wait=wait,
            model_environment_vars=model_environment_vars,
            model_vpc_config=vpc_config,
            accelerator_type=accelerator_type,
            data_capture_config=data_capture_config,
        )

    def endpoint_from_model_data(
        self,
        model_s3_location: str,
        image_uri: str,
        initial_instance_count: int,
        instance_type: str,
        name: str | None = None,
        role: str | None = None,
        wait: bool = True,
        model_environment_vars: dict[str, str] | None = None,
        model_vpc_config: dict[str, Any] | None = None,
        accelerator_type: str | None = None,
        data_capture_config: Any = None,
    ) -> str:
        """Create a model, endpoint configuration and endpoint from model data.

        The model and endpoint configuration are reused when they already exist.

        Returns:
            The endpoint name.

        Raises:
            ValueError: If an endpoint with the name already exists.
        """
        model_environment_vars = model_environment_vars or {}
        name = name or name_from_base(base_name_from_image(image_uri))
        model_vpc_config = vpc_utils.sanitize(model_vpc_config)

        if _deployment_entity_exists(
            lambda: self.sagemaker_client.describe_endpoint(EndpointName=name)
        ):
            raise ValueError(
                f'Endpoint with name "{name}" already exists; please pick a different name.'
            )

        if not _deployment_entity_exists(
            lambda: self.sagemaker_client.describe_model(ModelName=name)
        ):
            primary_container = container_def(
                image_uri=image_uri,
                model_data_url=model_s3_location,
                env=model_environment_vars,
            )
            self.create_model(
                name=name,
                role=role,
                container_defs=primary_container,
                vpc_config=model_vpc_config,
            )

        data_capture_config_dict = None
        if data_capture_config is not None:
            data_capture_config_dict = data_capture_config._to_request_dict()

        if not _deployment_entity_exists(
            lambda: self.sagemaker_client.describe_endpoint_config(EndpointConfigName=name)
        ):
            self.create_endpoint_config(
                name=name,
                model_name=name,
                initial_instance_count=initial_instance_count,
                instance_type=instance_type,
                accelerator_type=accelerator_type,
                data_capture_config_dict=data_capture_config_dict,
            )

        self.create_endpoint(endpoint_name=name, config_name=name, wait=wait)
        return name

    def endpoint_from_production_variants(
        self,
        name: str,
        production_variants: list[dict[str, Any]],
        tags: list[dict[str, str]] | None = None,
        kms_key: str | None = None,
        wait: bool = True,
        data_capture_config_dict: dict[str, Any] | None = None,
    ) -> str:
        """Create an endpoint configuration and endpoint from production variants.

        Returns:
            The endpoint name.
        """
        config_options: dict[str, Any] = {
            "EndpointConfigName": name,
            "ProductionVariants": production_variants,
        }
        merged_tags = self._merge_tags(tags)
        if merged_tags is not None:
            config_options["Tags"] = merged_tags
        if kms_key:
            config_options["KmsKeyId"] = kms_key
        if data_capture_config_dict is not None:
            config_options["DataCaptureConfig"] = data_capture_config_dict

        logger.info(f"Creating endpoint-config with name {name}")
        self.sagemaker_client.create_endpoint_config(**config_options)
        return self.create_endpoint(endpoint_name=name, config_name=name, tags=tags, wait=wait)

    # -------------------- Model Monitoring --------------------

    def create_monitoring_schedule(
        self,
        monitoring_schedule_name: str,
        schedule_expression: str | None,
        statistics_s3_uri: str | None,
        constraints_s3_uri: str | None,
        monitoring_inputs: list[dict[str, Any]],
        monitoring_output_config: dict[str, Any] | None,
        instance_count: int,
        instance_type: str,
        volume_size_in_gb: int,
        volume_kms_key: str | None = None,
        image_uri: str | None = None,
        entrypoint: list[str] | None = None,
        arguments: list[str] | None = None,
        record_preprocessor_source_uri: str | None = None,
        post_analytics_processor_source_uri: str | None = None,
        max_runtime_in_seconds: int | None = None,
        environment: dict[str, str] | None = None,
        network_config: dict[str, Any] | None = None,
        role_arn: str | None = None,
        tags: list[dict[str, str]] | None = None,
    ) -> None:
        """Create a monitoring schedule."""
        cluster_config: dict[str, Any] = {
            "InstanceCount": instance_count,
            "InstanceType": instance_type,
            "VolumeSizeInGB": volume_size_in_gb,
        }
        if volume_kms_key is not None:
            cluster_config["VolumeKmsKeyId"] = volume_kms_key

        app_specification: dict[str, Any] = {"ImageUri": image_uri}
        if entrypoint is not None:
            app_specification["ContainerEntrypoint"] = entrypoint
        if arguments is not None:
            app_specification["ContainerArguments"] = arguments
        if record_preprocessor_source_uri is not None:
            app_specification["RecordPreprocessorSourceUri"] = record_preprocessor_source_uri
        if post_analytics_processor_source_uri is not None:
            app_specification["PostAnalyticsProcessorSourceUri"] = (
                post_analytics_processor_source_uri
            )

        job_definition: dict[str, Any] = {
            "MonitoringInputs": monitoring_inputs,
            "MonitoringResources": {"ClusterConfig": cluster_config},
            "MonitoringAppSpecification": app_specification,
            "RoleArn": role_arn,
        }
        baseline_config = _baseline_config(statistics_s3_uri, constraints_s3_uri)
        if baseline_config:
            job_definition["BaselineConfig"] = baseline_config
        if monitoring_output_config is not None:
            job_definition["MonitoringOutputConfig"] = monitoring_output_config
        if max_runtime_in_seconds is not None:
            job_definition["StoppingCondition"] = {"MaxRuntimeInSeconds": max_runtime_in_seconds}
        if environment is not None:
            job_definition["Environment"] = environment
        if network_config is not None:
            job_definition["NetworkConfig"] = network_config

        schedule_config: dict[str, Any] = {"MonitoringJobDefinition": job_definition}
        if schedule_expression is not None:
            schedule_config["ScheduleConfig"] = {"ScheduleExpression": schedule_expression}

        request: dict[str, Any] = {
            "MonitoringScheduleName": monitoring_schedule_name,
            "MonitoringScheduleConfig": schedule_config,
        }
        merged_tags = self._merge_tags(tags)
        if merged_tags is not None:
            request["Tags"] = merged_tags

        logger.info(f"Creating monitoring schedule name {monitoring_schedule_name}.")
        logger.debug(f"monitoring_schedule_request= {json.dumps(request, indent=4, default=str)}")
        self.sagemaker_client.create_monitoring_schedule(**request)

    def update_monitoring_schedule(
        self,
        monitoring_schedule_name: str,
        schedule_expression: str | None = None,
        statistics_s3_uri: str | None = None,
        constraints_s3_uri: str | None = None,
        monitoring_inputs: list[dict[str, Any]] | None = None,
        monitoring_output_config: dict[str, Any] | None = None,
        instance_count: int | None = None,
        instance_type: str | None = None,
        volume_size_in_gb: int | None = None,
        volume_kms_key: str | None = None,
        image_uri: str | None = None,
        entrypoint: list[str] | None = None,
        arguments: list[str] | None = None,
        record_preprocessor_source_uri: str | None = None,
        post_analytics_processor_source_uri: str | None = None,
        max_runtime_in_seconds: int | None = None,
        environment: dict[str, str] | None = None,
        network_config: dict[str, Any] | None = None,
        role_arn: str | None = None,
    ) -> None:
        """Update a monitoring schedule.

        Unset arguments keep the value of the existing schedule.
        """
        existing_desc = self.describe_monitoring_schedule(monitoring_schedule_name)
        existing_config = existing_desc["MonitoringScheduleConfig"]
        existing_def = existing_config["MonitoringJobDefinition"]

        schedule_config: dict[str, Any] = {}
        existing_expression = existing_config.get("ScheduleConfig", {}).get("ScheduleExpression")
        expression = schedule_expression or existing_expression
        if expression is not None:
            schedule_config["ScheduleConfig"] = {"ScheduleExpression": expression}

        existing_cluster = existing_def["MonitoringResources"]["ClusterConfig"]
        cluster_config: dict[str, Any] = {
            "InstanceCount": instance_count or existing_cluster["InstanceCount"],
            "InstanceType": instance_type or existing_cluster["InstanceType"],
            "VolumeSizeInGB": volume_size_in_gb or existing_cluster["VolumeSizeInGB"],
        }
        kms = volume_kms_key or existing_cluster.get("VolumeKmsKeyId")
        if kms is not None:
            cluster_config["VolumeKmsKeyId"] = kms

        app_specification = dict(existing_def["MonitoringAppSpecification"])
        for key, value in (
            ("ImageUri", image_uri),
            ("ContainerEntrypoint", entrypoint),
            ("ContainerArguments", arguments),
            ("RecordPreprocessorSourceUri", record_preprocessor_source_uri),
            ("PostAnalyticsProcessorSourceUri", post_analytics_processor_source_uri),
        ):
            if value is not None:
                app_specification[key] = value

        job_definition: dict[str, Any] = {
            "MonitoringInputs": monitoring_inputs or existing_def["MonitoringInputs"],
            "MonitoringResources": {"ClusterConfig": cluster_config},
            "MonitoringAppSpecification": app_specification,
            "RoleArn": role_arn or existing_def["RoleArn"],
        }

        baseline_config = dict(existing_def.get("BaselineConfig", {}))
        baseline_config.update(_baseline_config(statistics_s3_uri, constraints_s3_uri))
        if baseline_config:
            job_definition["BaselineConfig"] = baseline_config

        output_config = monitoring_output_config or existing_def.get("MonitoringOutputConfig")
        if output_config is not None:
            job_definition["MonitoringOutputConfig"] = output_config

        if max_runtime_in_seconds is not None:
            job_definition["StoppingCondition"] = {"MaxRuntimeInSeconds": max_runtime_in_seconds}
        elif "StoppingCondition" in existing_def:
            job_definition["StoppingCondition"] = existing_def["StoppingCondition"]

        env = environment if environment is not None else existing_def.get("Environment")
        if env is not None:
            job_definition["Environment"] = env

        network = network_config if network_config is not None else existing_def.get("NetworkConfig")
        if network is not None:
            job_definition["NetworkConfig"] = network

        schedule_config["MonitoringJobDefinition"] = job_definition

        logger.info(f"Updating monitoring schedule with name: {monitoring_schedule_name}.")
        self.sagemaker_client.update_monitoring_schedule(
            MonitoringScheduleName=monitoring_schedule_name,
            MonitoringScheduleConfig=schedule_config,
        )

    def start_monitoring_schedule(self, monitoring_schedule_name: str) -> None:
        """Start a monitoring schedule."""
        logger.info(f"Starting monitoring schedule with name: {monitoring_schedule_name}")
        self.sagemaker_client.start_monitoring_schedule(
            MonitoringScheduleName=monitoring_schedule_name
        )

    def stop_monitoring_schedule(self, monitoring_schedule_name: str) -> None:
        """Stop a monitoring schedule."""
        logger.info(f"Stopping monitoring schedule with name: {monitoring_schedule_name}")
        self.sagemaker_client.stop_monitoring_schedule(
            MonitoringScheduleName=monitoring_schedule_name
        )

    def delete_monitoring_schedule(self, monitoring_schedule_name: str) -> None:
        """Delete a monitoring schedule."""
        logger.info(f"Deleting monitoring schedule with name: {monitoring_schedule_name}")
        self.sagemaker_client.delete_monitoring_schedule(
            MonitoringScheduleName=monitoring_schedule_name
        )

    def describe_monitoring_schedule(self, monitoring_schedule_name: str) -> dict[str, Any]:
        """Call ``DescribeMonitoringSchedule`` for the given name."""
        return self.sagemaker_client.describe_monitoring_schedule(
            MonitoringScheduleName=monitoring_schedule_name
        )

    def list_monitoring_executions(
        self,
        monitoring_schedule_name: str,
        sort_by: str = "ScheduledTime",
        sort_order: str = "Descending",
        max_results: int = 100,
        status_equals: str | None = None,
    ) -> dict[str, Any]:
        """List the executions of a monitoring schedule."""
        request: dict[str, Any] = {
            "MonitoringScheduleName": monitoring_schedule_name,
            "SortBy": sort_by,
            "SortOrder": sort_order,
            "MaxResults": max_results,
        }
        if status_equals is not None:
            request["StatusEquals"] = status_equals
        return self.sagemaker_client.list_monitoring_executions(**request)

    def list_monitoring_schedules(
        self,
        endpoint_name: str | None = None,
        sort_by: str = "CreationTime",
        sort_order: str = "Descending",
        max_results: int = 100,
    ) -> dict[str, Any]:
        """List monitoring schedules, optionally for a single endpoint."""
        request: dict[str, Any] = {
            "SortBy": sort_by,
            "SortOrder": sort_order,
            "MaxResults": max_results,
        }
        if endpoint_name is not None:
            request["EndpointName"] = endpoint_name
        return self.sagemaker_client.list_monitoring_schedules(**request)

    # -------------------- Logs --------------------

    def logs_for_job(self, job_name: str, wait: bool = False, poll: float | None = None) -> None:
        """Display the logs of a training job, optionally tailing until it completes.

        Args:
            job_name: Training job name.
            wait: Whether to keep tailing until the job completes.
            poll: Seconds between log polls.

        Raises:
            UnexpectedStatusError: If waiting and the job fails.
        """
        description = tail_job_logs(
            self,
            job_name,
            lambda: self.describe_training_job(job_name),
            "TrainingJobStatus",
            "/aws/sagemaker/TrainingJobs",
            lambda desc: desc["ResourceConfig"]["InstanceCount"],
            wait=wait,
            poll=poll or self._config.polling.log_poll_seconds,
            print_secondary_status=True,
        )
        if not wait:
            return

        instance_count = description["ResourceConfig"]["InstanceCount"]
        training_time = description.get("TrainingTimeInSeconds")
        billable_time = description.get("BillableTimeInSeconds")
        if training_time is not None:
            print("Training seconds:", training_time * instance_count)
        if billable_time is not None:
            print("Billable seconds:", billable_time * instance_count)
            if description.get("EnableManagedSpotTraining") and training_time:
                saving = (1 - float(billable_time) / training_time) * 100
                print(f"Managed Spot Training savings: {saving:.1f}%")

    def logs_for_processing_job(
        self, job_name: str, wait: bool = False, poll: float | None = None
    ) -> None:
        """Display the logs of a processing job, optionally tailing until it completes."""
        tail_job_logs(
            self,
            job_name,
            lambda: self.describe_processing_job(job_name),
            "ProcessingJobStatus",
            "/aws/sagemaker/ProcessingJobs",
            lambda desc: desc["ProcessingResources"]["ClusterConfig"]["InstanceCount"],
            wait=wait,
            poll=poll or self._config.polling.log_poll_seconds,
        )

    def logs_for_transform_job(
        self, job_name: str, wait: bool = False, poll: float | None = None
    ) -> None:
        """Display the logs of a transform job, optionally tailing until it completes."""
        tail_job_logs(
            self,
            job_name,
            lambda: self.describe_transform_job(job_name),
            "TransformJobStatus",
            "/aws/sagemaker/TransformJobs",
            lambda desc: desc["TransformResources"]["InstanceCount"],
            wait=wait,
            poll=poll or self._config.polling.log_poll_seconds,
        )

    # -------------------- Internals --------------------

    @staticmethod
    def _check_job_status(job: str, desc: dict[str, Any], status_key_name: str) -> None:
        """Raise if a job ended in a status other than Completed or Stopped.

        Raises:
            UnexpectedStatusError: If the job failed.
        """
        status = desc[status_key_name]
        status = _STATUS_CODE_TABLE.get(status.upper(), status)

        if status not in ("Completed", "Stopped"):
            reason = desc.get("FailureReason", "(No reason provided)")
            job_type = status_key_name.replace("JobStatus", " job")
            raise UnexpectedStatusError(
                f"Error for {job_type} {job}: {status}. Reason: {reason}",
                name=job,
                status=status,
                reason=reason,
                allowed_statuses=["Completed", "Stopped"],
            )

    @staticmethod
    def _stop_ignoring_validation(stop: Callable[[], Any], kind: str, name: str) -> None:
        try:
            stop()
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ValidationException":
                logger.info(f"{kind} job: {name} is already stopped or not running.")
            else:
                logger.error(f"Error occurred while attempting to stop {kind.lower()} job: {name}.")
                raise


# -------------------- Request Builders --------------------


def container_def(
    image_uri: str,
    model_data_url: str | None = None,
    env: dict[str, str] | None = None,
    container_mode: str | None = None,
) -> dict[str, Any]:
    """Create a container definition for ``CreateModel``.

    Args:
        image_uri: Docker image to run.
        model_data_url: S3 URI of the model artifacts.
        env: Environment variables for the container.
        container_mode: ``SingleModel`` or ``MultiModel``.
    """
    c_def: dict[str, Any] = {"Image": image_uri, "Environment": env or {}}
    if model_data_url:
        c_def["ModelDataUrl"] = model_data_url
    if container_mode:
        c_def["Mode"] = container_mode
    return c_def


def pipeline_container_def(models: list[Model], instance_type: str | None = None) -> list[dict[str, Any]]:
    """Create the container definitions of an inference pipeline, in order."""
    return [model.prepare_container_def(instance_type) for model in models]


def production_variant(
    model_name: str,
    instance_type: str,
    initial_instance_count: int = 1,
    variant_name: str = "AllTraffic",
    initial_weight: float = 1,
    accelerator_type: str | None = None,
) -> dict[str, Any]:
    """Create a production variant description for ``CreateEndpointConfig``."""
    production_variant_configuration: dict[str, Any] = {
        "ModelName": model_name,
        "InstanceType": instance_type,
        "InitialInstanceCount": initial_instance_count,
        "VariantName": variant_name,
        "InitialVariantWeight": initial_weight,
    }
    if accelerator_type:
        production_variant_configuration["AcceleratorType"] = accelerator_type
    return production_variant_configuration


def get_execution_role(sagemaker_session: Session | None = None) -> str:
    """Return the role ARN whose credentials are used to call the API.

    Raises:
        ValueError: If the caller identity is not a role.
    """
    sagemaker_session = sagemaker_session or Session()
    arn = sagemaker_session.get_caller_identity_arn()

    if ":role/" in arn:
        return arn
    raise ValueError(
        f"The current AWS identity is not a role: {arn}, therefore it cannot be used as a "
        "SageMaker execution role"
    )


# -------------------- Waiter Helpers --------------------


def _sts_regional_endpoint(region: str) -> str:
    domain = "amazonaws.com.cn" if region.startswith("cn-") else "amazonaws.com"
    return f"https://sts.{region}.{domain}"


def _map_tuning_objective(
    objective_type: str | None, objective_metric_name: str | None
) -> dict[str, str] | None:
    if objective_type is None and objective_metric_name is None:
        return None
    tuning_objective: dict[str, str] = {}
    if objective_type is not None:
        tuning_objective["Type"] = objective_type
    if objective_metric_name is not None:
        tuning_objective["MetricName"] = objective_metric_name
    return tuning_objective


def _baseline_config(statistics_s3_uri: str | None, constraints_s3_uri: str | None) -> dict[str, Any]:
    config: dict[str, Any] = {}
    if statistics_s3_uri is not None:
        config["StatisticsResource"] = {"S3Uri": statistics_s3_uri}
    if constraints_s3_uri is not None:
        config["ConstraintsResource"] = {"S3Uri": constraints_s3_uri}
    return config


def _vpc_config_from_training_job(training_job_desc: dict[str, Any], vpc_config_override: Any) -> Any:
    if vpc_config_override == vpc_utils.VPC_CONFIG_DEFAULT:
        return training_job_desc.get(vpc_utils.VPC_CONFIG_KEY)
    return vpc_utils.sanitize(vpc_config_override)


def _deployment_entity_exists(describe_fn: Callable[[], Any]) -> bool:
    """Check whether a model/endpoint/endpoint-config exists via its describe call."""
    try:
        describe_fn()
        return True
    except ClientError as e:
        error = e.response.get("Error", {})
        if not (
            error.get("Code") == "ValidationException" and "Could not find" in error.get("Message", "")
        ):
            raise
    return False


def _wait_until(callable_fn: Callable[[], Any], poll: float = 5) -> Any:
    result = callable_fn()
    while result is None:
        time.sleep(poll)
        result = callable_fn()
    return result


def _job_status(
    describe_fn: Callable[[], dict[str, Any]],
    status_key: str,
    in_progress_statuses: tuple[str, ...] = ("InProgress", "Stopping", "Starting"),
) -> dict[str, Any] | None:
    """Describe a job once and print its status glyph.

    Returns:
        The description when the job is no longer in progress, else None.
    """
    desc = describe_fn()
    status = desc[status_key]

    print(_JOB_STATUS_GLYPHS.get(status, "?"), end="")
    sys.stdout.flush()

    if status in in_progress_statuses:
        return None

    print("")
    return desc


def _train_done(
    sagemaker_client: Any, job_name: str, last_desc: dict[str, Any] | None
) -> tuple[dict[str, Any], bool]:
    in_progress_statuses = ("InProgress", "Created")

    desc = sagemaker_client.describe_training_job(TrainingJobName=job_name)
    status = desc["TrainingJobStatus"]

    if secondary_training_status_changed(desc, last_desc):
        print()
        print(secondary_training_status_message(desc, last_desc), end="")
    else:
        print(".", end="")
    sys.stdout.flush()

    if status in in_progress_statuses:
        return desc, False

    print()
    return desc, True


def _deploy_done(sagemaker_client: Any, endpoint_name: str) -> dict[str, Any] | None:
    in_progress_statuses = ("Creating", "Updating")

    desc = sagemaker_client.describe_endpoint(EndpointName=endpoint_name)
    status = desc["EndpointStatus"]

    print(_ENDPOINT_STATUS_GLYPHS.get(status, "?"), end="")
    sys.stdout.flush()

    return None if status in in_progress_statuses else desc
