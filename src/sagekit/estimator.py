"""Estimators: high-level builders of SageMaker training jobs.

An estimator collects the settings of a training job, starts it with
:meth:`EstimatorBase.fit`, and turns the resulting model artifacts into a
deployable :class:`~sagekit.model.Model`. :class:`Estimator` runs any
training image; :class:`Framework` adds user training scripts that are
packaged, uploaded to S3 and launched by a framework container.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
from typing import TYPE_CHECKING, Any

from . import image_uris, vpc_utils
from .analytics import TrainingJobAnalytics
from .fw_utils import (
    UploadedCode,
    framework_name_from_image,
    framework_version_from_tag,
    tar_and_upload_dir,
    validate_source_dir,
)
from .inputs import TrainingInput
from .job import _Job
from .model import (
    CONTAINER_LOG_LEVEL_PARAM_NAME,
    DIR_PARAM_NAME,
    JOB_NAME_PARAM_NAME,
    SAGEMAKER_REGION_PARAM_NAME,
    SCRIPT_PARAM_NAME,
    Model,
)
from .predictor import Predictor
from .s3 import parse_s3_url, s3_path_join
from .session import Session
from .transformer import Transformer
from .utils import (
    base_from_name,
    base_name_from_image,
    json_encode_hyperparameters,
    name_from_base,
    stringify_hyperparameters,
)

if TYPE_CHECKING:
    from .model_monitor import DataCaptureConfig

logger = logging.getLogger(__name__)


class EstimatorBase(ABC):
    """Handle end-to-end training and deployment of SageMaker models.

    Subclasses define the training image (:meth:`training_image_uri`), the
    hyperparameters (:meth:`hyperparameters`) and the model built from the
    training output (:meth:`create_model`).
    """

    def __init__(
        self,
        role: str,
        instance_count: int | None = None,
        instance_type: str | None = None,
        volume_size: int = 30,
        volume_kms_key: str | None = None,
        max_run: int = 24 * 60 * 60,
        input_mode: str = "File",
        output_path: str | None = None,
        output_kms_key: str | None = None,
        base_job_name: str | None = None,
        sagemaker_session: Session | None = None,
        tags: list[dict[str, str]] | None = None,
        subnets: list[str] | None = None,
        security_group_ids: list[str] | None = None,
        model_uri: str | None = None,
        model_channel_name: str = "model",
        metric_definitions: list[dict[str, str]] | None = None,
        encrypt_inter_container_traffic: bool = False,
        use_spot_instances: bool = False,
        max_wait: int | None = None,
        checkpoint_s3_uri: str | None = None,
        checkpoint_local_path: str | None = None,
        enable_network_isolation: bool = False,
        environment: dict[str, str] | None = None,
    ) -> None:
        """Initialize an estimator.

        Args:
            role: IAM role name or ARN used by training jobs and hosted models.
            instance_count: Number of training instances.
            instance_type: Training instance type, e.g. ``ml.m5.xlarge``.
            volume_size: Size of the ML storage volume in GB.
            volume_kms_key: KMS key for the ML storage volume.
            max_run: Training timeout in seconds.
            input_mode: ``File`` or ``Pipe``.
            output_path: S3 location of the model artifacts. Defaults to the
                session's default bucket.
            output_kms_key: KMS key for the training output.
            base_job_name: Prefix of generated job names. Derived from the
                training image when unset.
            sagemaker_session: Session used for AWS calls.
            tags: Tags for training jobs and models.
            subnets: VPC subnet ids.
            security_group_ids: VPC security group ids.
            model_uri: S3 URI of a model passed to training in the model channel.
            model_channel_name: Name of the model channel.
            metric_definitions: ``[{"Name": ..., "Regex": ...}]`` extracted from logs.
            encrypt_inter_container_traffic: Encrypt traffic between training instances.
            use_spot_instances: Use managed spot training. Requires max_wait.
            max_wait: Seconds to wait for spot capacity, at least max_run.
            checkpoint_s3_uri: S3 URI where checkpoints are synced.
            checkpoint_local_path: Container path of the checkpoints.
            enable_network_isolation: Run training and inference without network access.
            environment: Environment variables for the training container.

        Raises:
            ValueError: If instance settings are missing or the spot and
                checkpoint settings are inconsistent.
        """
        if instance_count is None or instance_type is None:
            raise ValueError("Both instance_count and instance_type are required.")
        if use_spot_instances and (max_wait is None or max_wait < max_run):
            raise ValueError(
                f"max_wait ({max_wait}) must be set and at least max_run ({max_run}) "
                "when use_spot_instances is True."
            )
        if checkpoint_local_path and not checkpoint_s3_uri:
            raise ValueError("checkpoint_local_path requires checkpoint_s3_uri to be set.")

        self.role = role
        self.instance_count = instance_count
        self.instance_type = instance_type
        self.volume_size = volume_size
        self.volume_kms_key = volume_kms_key
        self.max_run = max_run
        self.input_mode = input_mode
        self.output_path = output_path
        self.output_kms_key = output_kms_key
        self.base_job_name = base_job_name
        self.sagemaker_session = sagemaker_session or Session()
        self.tags = tags
        self.subnets = subnets
        self.security_group_ids = security_group_ids
        self.model_uri = model_uri
        self.model_channel_name = model_channel_name
        self.metric_definitions = metric_definitions
        self.encrypt_inter_container_traffic = encrypt_inter_container_traffic
        self.use_spot_instances = use_spot_instances
        self.max_wait = max_wait
        self.checkpoint_s3_uri = checkpoint_s3_uri
        self.checkpoint_local_path = checkpoint_local_path
        self.environment = environment
        self._enable_network_isolation = enable_network_isolation

        self.latest_training_job: _TrainingJob | None = None
        self.jobs: list[_TrainingJob] = []
        self.deploy_instance_type: str | None = None
        self._current_job_name: str | None = None

    @abstractmethod
    def training_image_uri(self) -> str:
        """Return the Docker image URI used for training."""

    @abstractmethod
    def hyperparameters(self) -> dict[str, Any]:
        """Return the hyperparameters passed to the training job."""

    @abstractmethod
    def create_model(self, **kwargs: Any) -> Model:
        """Create a model from the output of the latest training job."""

    def enable_network_isolation(self) -> bool:
        """Whether training jobs and models run without network access."""
        return self._enable_network_isolation

    def _ensure_base_job_name(self) -> None:
        self.base_job_name = self.base_job_name or base_name_from_image(self.training_image_uri())

    def _get_or_create_name(self, name: str | None = None) -> str:
        if name:
            return name
        self._ensure_base_job_name()
        assert self.base_job_name is not None
        return name_from_base(self.base_job_name)

    def _prepare_for_training(self, job_name: str | None = None) -> None:
        """Set the job name and default output path before a job starts."""
        self._current_job_name = self._get_or_create_name(job_name)

        if self.output_path is None:
            self.output_path = f"s3://{self.sagemaker_session.default_bucket()}/"

    def fit(
        self,
        inputs: Any = None,
        wait: bool = True,
        logs: bool = True,
        job_name: str | None = None,
        experiment_config: dict[str, str] | None = None,
    ) -> None:
        """Train a model.

        Args:
            inputs: S3 URI, :class:`~sagekit.inputs.TrainingInput`,
                :class:`~sagekit.inputs.FileSystemInput`, or a dict mapping
                channel names to any of these.
            wait: Whether to block until the job completes.
            logs: Whether to stream the job logs while waiting.
            job_name: Training job name. Generated when unset.
            experiment_config: Experiment association.
        """
        self._prepare_for_training(job_name=job_name)

        self.latest_training_job = _TrainingJob.start_new(self, inputs, experiment_config)
        self.jobs.append(self.latest_training_job)
        if wait:
            self.latest_training_job.wait(logs=logs)

    def _ensure_latest_training_job(
        self, error_message: str = "Estimator is not associated with a training job"
    ) -> _TrainingJob:
        if self.latest_training_job is None:
            raise ValueError(error_message)
        return self.latest_training_job

    def wait(self, logs: bool = True) -> None:
        """Wait for the latest training job to complete."""
        self._ensure_latest_training_job().wait(logs=logs)

    def describe(self) -> dict[str, Any]:
        """Describe the latest training job."""
        return self._ensure_latest_training_job().describe()

    def logs(self) -> None:
        """Display the logs of the latest training job, blocking until it completes."""
        job = self._ensure_latest_training_job()
        self.sagemaker_session.logs_for_job(job.name, wait=True)

    def stop(self) -> None:
        """Stop the latest training job."""
        self._ensure_latest_training_job().stop()

    @property
    def model_data(self) -> str:
        """S3 location of the model artifacts of the latest training job."""
        if self.latest_training_job is not None:
            return self.sagemaker_session.describe_training_job(self.latest_training_job.name)[
                "ModelArtifacts"
            ]["S3ModelArtifacts"]

        logger.warning(
            "No finished training job found associated with this estimator. Please make sure "
            "this estimator is only used for building workflow config"
        )
        return s3_path_join(self.output_path or "", self._current_job_name or "", "output", "model.tar.gz")

    def get_vpc_config(self, vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT) -> dict[str, Any] | None:
        """Return the ``VpcConfig`` of this estimator, or a sanitized override."""
        if vpc_config_override == vpc_utils.VPC_CONFIG_DEFAULT:
            return vpc_utils.to_dict(self.subnets, self.security_group_ids)
        return vpc_utils.sanitize(vpc_config_override)

    @property
    def training_job_analytics(self) -> TrainingJobAnalytics:
        """Metrics of the current training job."""
        if self._current_job_name is None:
            raise ValueError("Estimator is not associated with a TrainingJob")
        return TrainingJobAnalytics(self._current_job_name, sagemaker_session=self.sagemaker_session)

    def deploy(
        self,
        initial_instance_count: int,
        instance_type: str,
        serializer: Any = None,
        deserializer: Any = None,
        accelerator_type: str | None = None,
        endpoint_name: str | None = None,
        wait: bool = True,
        model_name: str | None = None,
        kms_key: str | None = None,
        data_capture_config: DataCaptureConfig | None = None,
        tags: list[dict[str, str]] | None = None,
        **kwargs: Any,
    ) -> Predictor | None:
        """Deploy the trained model to an endpoint.

        Extra keyword arguments are passed to :meth:`create_model`.

        Returns:
            A predictor for the endpoint, when the model has a predictor class.
        """
        self._ensure_latest_training_job()
        self._ensure_base_job_name()
        assert self.base_job_name is not None
        default_name = name_from_base(self.base_job_name)
        endpoint_name = endpoint_name or default_name
        model_name = model_name or default_name

        self.deploy_instance_type = instance_type
        model = self.create_model(**kwargs)
        model.name = model_name

        return model.deploy(
            initial_instance_count=initial_instance_count,
            instance_type=instance_type,
            serializer=serializer,
            deserializer=deserializer,
            accelerator_type=accelerator_type,
            endpoint_name=endpoint_name,
            tags=tags or self.tags,
            wait=wait,
            kms_key=kms_key,
            data_capture_config=data_capture_config,
        )

    def transformer(
        self,
        instance_count: int,
        instance_type: str,
        strategy: str | None = None,
        assemble_with: str | None = None,
        output_path: str | None = None,
        output_kms_key: str | None = None,
        accept: str | None = None,
        env: dict[str, str] | None = None,
        max_concurrent_transforms: int | None = None,
        max_payload: int | None = None,
        tags: list[dict[str, str]] | None = None,
        volume_kms_key: str | None = None,
        vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT,
        enable_network_isolation: bool | None = None,
        model_name: str | None = None,
    ) -> Transformer:
        """Create a :class:`~sagekit.transformer.Transformer` for the trained model."""
        tags = tags or self.tags
        model_name = self._get_or_create_name(model_name)

        if self.latest_training_job is None:
            logger.warning(
                "No finished training job found associated with this estimator. Please make sure "
                "this estimator is only used for building workflow config"
            )
        else:
            if enable_network_isolation is None:
                enable_network_isolation = self.enable_network_isolation()

            model = self.create_model(
                vpc_config_override=vpc_config_override,
                model_kms_key=self.output_kms_key,
                enable_network_isolation=enable_network_isolation,
            )
            model.name = model_name
            model._create_sagemaker_model(instance_type, tags=tags)

        return Transformer(
            model_name,
            instance_count,
            instance_type,
            strategy=strategy,
            assemble_with=assemble_with,
            output_path=output_path,
            output_kms_key=output_kms_key,
            accept=accept,
            max_concurrent_transforms=max_concurrent_transforms,
            max_payload=max_payload,
            env=env,
            tags=tags,
            base_transform_job_name=self.base_job_name,
            volume_kms_key=volume_kms_key,
            sagemaker_session=self.sagemaker_session,
        )

    @classmethod
    def attach(
        cls,
        training_job_name: str,
        sagemaker_session: Session | None = None,
        model_channel_name: str = "model",
    ) -> EstimatorBase:
        """Attach to an existing training job.

        The estimator is rebuilt from the job description. If the job is
        still running, this blocks until it completes.

        Args:
            training_job_name: Name of the training job.
            sagemaker_session: Session used for AWS calls.
            model_channel_name: Channel holding a pre-trained model, if any.

        Returns:
            An estimator bound to the job.
        """
        sagemaker_session = sagemaker_session or Session()

        job_details = sagemaker_session.describe_training_job(training_job_name)
        init_params = cls._prepare_init_params_from_job_description(job_details, model_channel_name)
        init_params["tags"] = sagemaker_session.list_tags(job_details["TrainingJobArn"]) or None

        estimator = cls(sagemaker_session=sagemaker_session, **init_params)
        estimator.latest_training_job = _TrainingJob(
            sagemaker_session=sagemaker_session, job_name=training_job_name
        )
        estimator._current_job_name = training_job_name
        estimator.latest_training_job.wait(logs=False)
        return estimator

    @classmethod
    def _prepare_init_params_from_job_description(
        cls, job_details: dict[str, Any], model_channel_name: str | None = None
    ) -> dict[str, Any]:
        """Convert a ``DescribeTrainingJob`` response into constructor arguments.

        Raises:
            RuntimeError: If the job has no training image.
        """
        resource_config = job_details["ResourceConfig"]
        algorithm_spec = job_details["AlgorithmSpecification"]

        init_params: dict[str, Any] = {
            "role": job_details["RoleArn"],
            "instance_count": resource_config["InstanceCount"],
            "instance_type": resource_config["InstanceType"],
            "volume_size": resource_config["VolumeSizeInGB"],
            "max_run": job_details["StoppingCondition"]["MaxRuntimeInSeconds"],
            "input_mode": algorithm_spec["TrainingInputMode"],
            "base_job_name": base_from_name(job_details["TrainingJobName"]),
            "output_path": job_details["OutputDataConfig"]["S3OutputPath"],
            "output_kms_key": job_details["OutputDataConfig"].get("KmsKeyId"),
            "hyperparameters": job_details.get("HyperParameters", {}),
        }

        if "VolumeKmsKeyId" in resource_config:
            init_params["volume_kms_key"] = resource_config["VolumeKmsKeyId"]
        if "EnableNetworkIsolation" in job_details:
            init_params["enable_network_isolation"] = job_details["EnableNetworkIsolation"]
        if "EnableInterContainerTrafficEncryption" in job_details:
            init_params["encrypt_inter_container_traffic"] = job_details[
                "EnableInterContainerTrafficEncryption"
            ]

        if "TrainingImage" not in algorithm_spec:
            raise RuntimeError(
                "Invalid AlgorithmSpecification. TrainingImage is expected. None was found."
            )
        init_params["image_uri"] = algorithm_spec["TrainingImage"]
        if "MetricDefinitions" in algorithm_spec:
            init_params["metric_definitions"] = algorithm_spec["MetricDefinitions"]

        subnets, security_group_ids = vpc_utils.from_dict(job_details.get(vpc_utils.VPC_CONFIG_KEY))
        if subnets:
            init_params["subnets"] = subnets
        if security_group_ids:
            init_params["security_group_ids"] = security_group_ids

        if model_channel_name:
            for channel in job_details.get("InputDataConfig", []):
                if channel["ChannelName"] == model_channel_name:
                    init_params["model_channel_name"] = model_channel_name
                    init_params["model_uri"] = channel["DataSource"]["S3DataSource"]["S3Uri"]
                    break

        if job_details.get("EnableManagedSpotTraining", False):
            init_params["use_spot_instances"] = True
            max_wait = job_details["StoppingCondition"].get("MaxWaitTimeInSeconds")
            if max_wait:
                init_params["max_wait"] = max_wait

        checkpoint_config = job_details.get("CheckpointConfig")
        if checkpoint_config:
            init_params["checkpoint_s3_uri"] = checkpoint_config["S3Uri"]
            init_params["checkpoint_local_path"] = checkpoint_config.get("LocalPath")

        if job_details.get("Environment"):
            init_params["environment"] = job_details["Environment"]

        return init_params


class _TrainingJob(_Job):
    """Handle to a training job started by an estimator."""

    @classmethod
    def start_new(
        cls,
        estimator: EstimatorBase,
        inputs: Any,
        experiment_config: dict[str, str] | None = None,
    ) -> _TrainingJob:
        """Create a training job from an estimator and start it."""
        train_args = cls._get_train_args(estimator, inputs, experiment_config)
        estimator.sagemaker_session.train(**train_args)
        assert estimator._current_job_name is not None
        return cls(estimator.sagemaker_session, estimator._current_job_name)

    @classmethod
    def _get_train_args(
        cls,
        estimator: EstimatorBase,
        inputs: Any,
        experiment_config: dict[str, str] | None,
    ) -> dict[str, Any]:
        """Build the keyword arguments of :meth:`Session.train`."""
        train_args = _Job._load_config(inputs, estimator)

        hyperparameters = estimator.hyperparameters()
        train_args["hyperparameters"] = (
            stringify_hyperparameters(hyperparameters) if hyperparameters is not None else None
        )

        train_args["input_mode"] = estimator.input_mode
        if isinstance(inputs, TrainingInput) and "InputMode" in inputs.config:
            logger.debug(
                f"Selecting TrainingInput's input_mode ({inputs.config['InputMode']}) "
                "for TrainingInputMode."
            )
            train_args["input_mode"] = inputs.config["InputMode"]

        train_args["job_name"] = estimator._current_job_name
        train_args["tags"] = estimator.tags
        train_args["metric_definitions"] = estimator.metric_definitions
        train_args["experiment_config"] = experiment_config
        train_args["environment"] = estimator.environment
        train_args["image_uri"] = estimator.training_image_uri()
        train_args["enable_network_isolation"] = estimator.enable_network_isolation()
        train_args["encrypt_inter_container_traffic"] = estimator.encrypt_inter_container_traffic
        train_args["use_spot_instances"] = estimator.use_spot_instances
        train_args["checkpoint_s3_uri"] = estimator.checkpoint_s3_uri
        train_args["checkpoint_local_path"] = estimator.checkpoint_local_path
        return train_args

    def wait(self, logs: bool = True) -> None:
        """Wait for the training job, optionally streaming its logs."""
        if logs:
            self.sagemaker_session.logs_for_job(self.job_name, wait=True)
        else:
            self.sagemaker_session.wait_for_job(self.job_name)

    def describe(self) -> dict[str, Any]:
        return self.sagemaker_session.describe_training_job(self.job_name)

    def stop(self) -> None:
        self.sagemaker_session.stop_training_job(self.job_name)


class Estimator(EstimatorBase):
    """A generic estimator that trains any SageMaker-compatible image."""

    def __init__(
        self,
        image_uri: str,
        role: str,
        instance_count: int | None = None,
        instance_type: str | None = None,
        hyperparameters: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize an estimator for a custom training image.

        Args:
            image_uri: Training image URI.
            role: IAM role name or ARN.
            instance_count: Number of training instances.
            instance_type: Training instance type.
            hyperparameters: Hyperparameters passed to the training image.
            **kwargs: Passed to :class:`EstimatorBase`.
        """
        self.image_uri = image_uri
        self._hyperparameters = dict(hyperparameters or {})
        super().__init__(role, instance_count, instance_type, **kwargs)

    def training_image_uri(self) -> str:
        return self.image_uri

    def set_hyperparameters(self, **kwargs: Any) -> None:
        """Set hyperparameters; values are converted to strings when the job starts."""
        self._hyperparameters.update(kwargs)

    def hyperparameters(self) -> dict[str, Any]:
        return self._hyperparameters

    def create_model(
        self,
        role: str | None = None,
        image_uri: str | None = None,
        predictor_cls: type[Predictor] | None = None,
        vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT,
        **kwargs: Any,
    ) -> Model:
        """Create a model that serves the training artifacts.

        Args:
            role: Role for the model. Defaults to the estimator's role.
            image_uri: Inference image. Defaults to the training image.
            predictor_cls: Predictor class returned by ``deploy``.
            vpc_config_override: Replacement ``VpcConfig``, or None to remove it.
            **kwargs: Passed to :class:`~sagekit.model.Model`.
        """
        return Model(
            image_uri or self.training_image_uri(),
            self.model_data,
            role or self.role,
            predictor_cls=predictor_cls or Predictor,
            vpc_config=self.get_vpc_config(vpc_config_override),
            sagemaker_session=self.sagemaker_session,
            **kwargs,
        )


class Framework(EstimatorBase):
    """Base class for estimators that run a user script in a framework container.

    The script (and optionally its source directory and dependencies) is
    uploaded to S3 as ``sourcedir.tar.gz``; the container locates it from
    the ``sagemaker_program`` and ``sagemaker_submit_directory``
    hyperparameters.
    """

    _framework_name: str | None = None
    # Framework name in image repositories, when it differs from _framework_name
    _image_framework_name: str | None = None

    LAUNCH_PS_ENV_NAME = "sagemaker_parameter_server_enabled"
    LAUNCH_MPI_ENV_NAME = "sagemaker_mpi_enabled"
    LAUNCH_SM_DDP_ENV_NAME = "sagemaker_distributed_dataparallel_enabled"
    INSTANCE_TYPE = "sagemaker_instance_type"
    MPI_NUM_PROCESSES_PER_HOST = "sagemaker_mpi_num_of_processes_per_host"
    MPI_CUSTOM_MPI_OPTIONS = "sagemaker_mpi_custom_mpi_options"
    framework_version: str | None = None
    py_version: str | None = None

    def __init__(
        self,
        entry_point: str,
        source_dir: str | None = None,
        hyperparameters: dict[str, Any] | None = None,
        container_log_level: int = logging.INFO,
        code_location: str | None = None,
        image_uri: str | None = None,
        dependencies: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a framework estimator.

        Args:
            entry_point: Local path of the training script. Relative to
                source_dir when source_dir is set.
            source_dir: Local directory (or S3 URI of a ``tar.gz``) with the
                script and its helpers.
            hyperparameters: Hyperparameters, JSON-encoded when the job starts.
            container_log_level: Log level of the framework container.
            code_location: S3 prefix for the code archive. Defaults to the
                output bucket.
            image_uri: Training image override.
            dependencies: Additional local paths added to the code archive.
            **kwargs: Passed to :class:`EstimatorBase`.

        Raises:
            ValueError: If entry_point is an S3 URI.
        """
        super().__init__(**kwargs)
        if entry_point.startswith("s3://"):
            raise ValueError(
                f"Invalid entry point script: {entry_point}. Must be a path to a local file."
            )
        self.entry_point = entry_point
        self.source_dir = source_dir
        self.dependencies = dependencies or []
        self.container_log_level = container_log_level
        self.code_location = code_location
        self.image_uri = image_uri
        self.uploaded_code: UploadedCode | None = None
        self._hyperparameters = dict(hyperparameters or {})

    def _prepare_for_training(self, job_name: str | None = None) -> None:
        """Upload the user code and set the script-mode hyperparameters."""
        super()._prepare_for_training(job_name=job_name)

        if self.source_dir and not self.source_dir.lower().startswith("s3://"):
            validate_source_dir(self.entry_point, self.source_dir)

        self.uploaded_code = self._stage_user_code_in_s3()

        self._hyperparameters[DIR_PARAM_NAME] = self.uploaded_code.s3_prefix
        self._hyperparameters[SCRIPT_PARAM_NAME] = self.uploaded_code.script_name
        self._hyperparameters[CONTAINER_LOG_LEVEL_PARAM_NAME] = self.container_log_level
        self._hyperparameters[JOB_NAME_PARAM_NAME] = self._current_job_name
        self._hyperparameters[SAGEMAKER_REGION_PARAM_NAME] = self.sagemaker_session.region

    def _stage_user_code_in_s3(self) -> UploadedCode:
        """Upload the user code under ``{bucket}/{prefix}/{job_name}/source``."""
        assert self.output_path is not None and self._current_job_name is not None

        if self.code_location is None:
            code_bucket, _ = parse_s3_url(self.output_path)
            code_s3_prefix = f"{self._current_job_name}/source"
            kms_key = self.output_kms_key
        else:
            code_bucket, key_prefix = parse_s3_url(self.code_location)
            code_s3_prefix = s3_path_join(key_prefix, self._current_job_name, "source")
            output_bucket, _ = parse_s3_url(self.output_path)
            kms_key = self.output_kms_key if code_bucket == output_bucket else None

        return tar_and_upload_dir(
            session=self.sagemaker_session,
            bucket=code_bucket,
            s3_key_prefix=code_s3_prefix,
            script=self.entry_point,
            directory=self.source_dir,
            dependencies=self.dependencies,
            kms_key=kms_key,
        )

    def _model_source_dir(self) -> str | None:
        return self.uploaded_code.s3_prefix if self.uploaded_code else self.source_dir

    def _model_entry_point(self) -> str:
        return self.uploaded_code.script_name if self.uploaded_code else self.entry_point

    def set_hyperparameters(self, **kwargs: Any) -> None:
        """Set hyperparameters passed to the training script."""
        self._hyperparameters.update(kwargs)

    def hyperparameters(self) -> dict[str, str]:
        """Return the hyperparameters, JSON-encoded for the framework container."""
        return json_encode_hyperparameters(self._hyperparameters)

    def _distribution_configuration(self, distribution: dict[str, Any]) -> dict[str, Any]:
        """Translate a distribution dict into container hyperparameters.

        Raises:
            ValueError: If model parallelism is requested without MPI.
        """
        distribution_config: dict[str, Any] = {}

        if "parameter_server" in distribution:
            ps_enabled = distribution["parameter_server"].get("enabled", False)
            distribution_config[self.LAUNCH_PS_ENV_NAME] = ps_enabled

        smdistributed = distribution.get("smdistributed", {})
        if "mpi" in distribution:
            mpi_dict = distribution["mpi"]
            distribution_config[self.LAUNCH_MPI_ENV_NAME] = mpi_dict.get("enabled", False)
            if mpi_dict.get("processes_per_host"):
                distribution_config[self.MPI_NUM_PROCESSES_PER_HOST] = mpi_dict["processes_per_host"]
            distribution_config[self.MPI_CUSTOM_MPI_OPTIONS] = mpi_dict.get("custom_mpi_options", "")

            modelparallel = smdistributed.get("modelparallel", {})
            if modelparallel.get("enabled", False):
                distribution_config["mp_parameters"] = modelparallel.get("parameters", {})
        elif "modelparallel" in smdistributed:
            raise ValueError("Cannot use Model Parallelism without MPI enabled!")

        if smdistributed:
            distribution_config[self.LAUNCH_SM_DDP_ENV_NAME] = smdistributed.get(
                "dataparallel", {}
            ).get("enabled", False)
            distribution_config[self.INSTANCE_TYPE] = self.instance_type

        return distribution_config

    def training_image_uri(self) -> str:
        """Return the training image, resolving the framework image when not overridden."""
        if self.image_uri:
            return self.image_uri
        assert self._framework_name is not None
        return image_uris.retrieve(
            self._framework_name,
            self.sagemaker_session.region,
            version=self.framework_version,
            py_version=self.py_version,
            instance_type=self.instance_type,
            image_scope="training",
        )

    @classmethod
    def attach(
        cls,
        training_job_name: str,
        sagemaker_session: Session | None = None,
        model_channel_name: str = "model",
    ) -> Framework:
        """Attach to an existing training job, recovering the uploaded code location."""
        estimator = super().attach(training_job_name, sagemaker_session, model_channel_name)
        assert isinstance(estimator, Framework)
        estimator.uploaded_code = UploadedCode(
            s3_prefix=estimator.source_dir or "", script_name=estimator.entry_point
        )
        return estimator

    @classmethod
    def _prepare_init_params_from_job_description(
        cls, job_details: dict[str, Any], model_channel_name: str | None = None
    ) -> dict[str, Any]:
        """Recover entry point, source dir and decoded hyperparameters."""
        init_params = super()._prepare_init_params_from_job_description(
            job_details, model_channel_name
        )
        encoded = init_params["hyperparameters"]

        init_params["entry_point"] = json.loads(encoded.get(SCRIPT_PARAM_NAME, "null"))
        init_params["source_dir"] = json.loads(encoded.get(DIR_PARAM_NAME, "null"))
        init_params["container_log_level"] = json.loads(
            encoded.get(CONTAINER_LOG_LEVEL_PARAM_NAME, str(logging.INFO))
        )

        hyperparameters = {}
        for k, v in encoded.items():
            # Tuning jobs add this one without JSON-encoding it
            if k == "_tuning_objective_metric":
                hyperparameters[k] = v.strip('"')
            else:
                hyperparameters[k] = json.loads(v)
        init_params["hyperparameters"] = hyperparameters
        return cls._update_init_params_from_image(init_params)

    @classmethod
    def _update_init_params_from_image(cls, init_params: dict[str, Any]) -> dict[str, Any]:
        """Replace the training image with framework and Python versions.

        Custom images are kept as ``image_uri``.

        Raises:
            ValueError: If the image belongs to a different framework.
        """
        image_uri = init_params.pop("image_uri")
        framework, py_version, tag, _ = framework_name_from_image(image_uri)

        init_params["framework_version"] = None if tag is None else framework_version_from_tag(tag)
        init_params["py_version"] = py_version

        if not framework:
            init_params["image_uri"] = image_uri
            return init_params

        if framework != (cls._image_framework_name or cls._framework_name):
            raise ValueError(
                f"Training job: {init_params['base_job_name']} didn't use image for requested "
                f"framework"
            )
        return init_params
