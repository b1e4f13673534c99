"""Deployable models: a container image plus optional model artifacts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from . import image_uris
from .fw_utils import UploadedCode, model_code_key_prefix, tar_and_upload_dir
from .s3 import parse_s3_url
from .session import Session, container_def, production_variant
from .transformer import Transformer
from .utils import base_from_name, base_name_from_image, name_from_base

if TYPE_CHECKING:
    from .model_monitor import DataCaptureConfig
    from .predictor import Predictor

logger = logging.getLogger(__name__)

# Script-mode hyperparameters; upper-cased, they name the inference environment variables
SCRIPT_PARAM_NAME = "sagemaker_program"
DIR_PARAM_NAME = "sagemaker_submit_directory"
CONTAINER_LOG_LEVEL_PARAM_NAME = "sagemaker_container_log_level"
JOB_NAME_PARAM_NAME = "sagemaker_job_name"
MODEL_SERVER_WORKERS_PARAM_NAME = "sagemaker_model_server_workers"
SAGEMAKER_REGION_PARAM_NAME = "sagemaker_region"


class Model:
    """A SageMaker ``Model`` that can be deployed to an endpoint or used for batch transform."""

    def __init__(
        self,
        image_uri: str,
        model_data: str | None = None,
        role: str | None = None,
        predictor_cls: Any = None,
        env: dict[str, str] | None = None,
        name: str | None = None,
        vpc_config: dict[str, Any] | None = None,
        sagemaker_session: Session | None = None,
        enable_network_isolation: bool = False,
        model_kms_key: str | None = None,
    ) -> None:
        """Initialize a model.

        Args:
            image_uri: Inference image URI.
            model_data: S3 location of the ``model.tar.gz`` artifacts.
            role: IAM role name or ARN. Required to create the model.
            predictor_cls: Callable ``(endpoint_name, session)`` returning a
                predictor; ``deploy`` returns its result.
            env: Environment variables for the container.
            name: Model name. Generated from the image when unset.
            vpc_config: ``VpcConfig`` dict.
            sagemaker_session: Session used for AWS calls.
            enable_network_isolation: Run the container without network access.
            model_kms_key: KMS key used to encrypt uploaded model code.
        """
        self.image_uri = image_uri
        self.model_data = model_data
        self.role = role
        self.predictor_cls = predictor_cls
        self.env = env or {}
        self.name = name
        self.vpc_config = vpc_config
        self.sagemaker_session = sagemaker_session
        self.model_kms_key = model_kms_key
        self.endpoint_name: str | None = None
        self._base_name: str | None = None
        self._enable_network_isolation = enable_network_isolation

    def _init_sagemaker_session_if_does_not_exist(self) -> Session:
        if self.sagemaker_session is None:
            self.sagemaker_session = Session()
        return self.sagemaker_session

    def enable_network_isolation(self) -> bool:
        """Whether the model container runs without network access."""
        return self._enable_network_isolation

    def prepare_container_def(
        self, instance_type: str | None = None, accelerator_type: str | None = None
    ) -> dict[str, Any]:
        """Return the container definition of this model for ``CreateModel``."""
        return container_def(self.image_uri, self.model_data, self.env)

    def _ensure_base_name_if_needed(self, image_uri: str) -> None:
        self._base_name = self._base_name or base_name_from_image(image_uri)

    def _set_model_name_if_needed(self) -> None:
        if self.name is None:
            assert self._base_name is not None
            self.name = name_from_base(self._base_name)

    def _create_sagemaker_model(
        self,
        instance_type: str | None = None,
        accelerator_type: str | None = None,
        tags: list[dict[str, str]] | None = None,
    ) -> None:
        """Create the SageMaker model, naming it from the image when unnamed."""
        session = self._init_sagemaker_session_if_does_not_exist()
        if self.role is None:
            raise ValueError("Role can not be null for deploying a model")

        c_def = self.prepare_container_def(instance_type, accelerator_type=accelerator_type)
        self._ensure_base_name_if_needed(c_def["Image"])
        self._set_model_name_if_needed()
        assert self.name is not None

        session.create_model(
            self.name,
            self.role,
            c_def,
            vpc_config=self.vpc_config,
            enable_network_isolation=self.enable_network_isolation(),
            tags=tags,
        )

    def deploy(
        self,
        initial_instance_count: int | None = None,
        instance_type: str | None = None,
        serializer: Any = None,
        deserializer: Any = None,
        accelerator_type: str | None = None,
        endpoint_name: str | None = None,
        tags: list[dict[str, str]] | None = None,
        kms_key: str | None = None,
        wait: bool = True,
        data_capture_config: DataCaptureConfig | None = None,
    ) -> Predictor | None:
        """Deploy the model to a new endpoint.

        Creates the model, an endpoint configuration with a single
        ``AllTraffic`` variant, and the endpoint.

        Args:
            initial_instance_count: Number of instances behind the endpoint.
            instance_type: Hosting instance type.
            serializer: Serializer set on the returned predictor.
            deserializer: Deserializer set on the returned predictor.
            accelerator_type: Elastic Inference accelerator type.
            endpoint_name: Endpoint name. Generated when unset.
            tags: Tags for the model, endpoint configuration and endpoint.
            kms_key: KMS key for the endpoint storage volume.
            wait: Whether to block until the endpoint is in service.
            data_capture_config: Data capture settings of the endpoint.

        Returns:
            ``predictor_cls(endpoint_name, session)``, or None without a predictor class.

        Raises:
            ValueError: If the role, instance type or instance count is missing.
        """
        session = self._init_sagemaker_session_if_does_not_exist()
        if self.role is None:
            raise ValueError("Role can not be null for deploying a model")
        if instance_type is None or initial_instance_count is None:
            raise ValueError("Must specify instance type and instance count")

        self._create_sagemaker_model(instance_type, accelerator_type, tags)
        assert self.name is not None

        variant = production_variant(
            self.name, instance_type, initial_instance_count, accelerator_type=accelerator_type
        )
        if endpoint_name:
            self.endpoint_name = endpoint_name
        else:
            self.endpoint_name = name_from_base(self._base_name or base_from_name(self.name))

        data_capture_config_dict = None
        if data_capture_config is not None:
            data_capture_config_dict = data_capture_config._to_request_dict()

        session.endpoint_from_production_variants(
            name=self.endpoint_name,
            production_variants=[variant],
            tags=tags,
            kms_key=kms_key,
            wait=wait,
            data_capture_config_dict=data_capture_config_dict,
        )

        if self.predictor_cls is None:
            return None

        predictor = self.predictor_cls(self.endpoint_name, session)
        if serializer is not None:
            predictor.serializer = serializer
        if deserializer is not None:
            predictor.deserializer = deserializer
        return predictor

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
    ) -> Transformer:
        """Create the model and return a :class:`~sagekit.transformer.Transformer` for it."""
        session = self._init_sagemaker_session_if_does_not_exist()
        self._create_sagemaker_model(instance_type, tags=tags)
        assert self.name is not None

        if self.enable_network_isolation():
            env = None

        return Transformer(
            self.name,
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
            base_transform_job_name=self._base_name or self.name,
            volume_kms_key=volume_kms_key,
            sagemaker_session=session,
        )

    def delete_model(self) -> None:
        """Delete the SageMaker model.

        Raises:
            ValueError: If the model has not been created.
        """
        if self.name is None:
            raise ValueError("The SageMaker model must be created first before attempting to delete.")
        self._init_sagemaker_session_if_does_not_exist().delete_model(self.name)


class FrameworkModel(Model):
    """A model served by a framework container running a user inference script."""

    _framework_name: str | None = None

    def __init__(
        self,
        model_data: str | None,
        image_uri: str | None,
        role: str | None,
        entry_point: str,
        source_dir: str | None = None,
        predictor_cls: Any = None,
        env: dict[str, str] | None = None,
        name: str | None = None,
        container_log_level: int = logging.INFO,
        code_location: str | None = None,
        sagemaker_session: Session | None = None,
        dependencies: list[str] | None = None,
        framework_version: str | None = None,
        py_version: str | None = None,
        model_server_workers: int | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a framework model.

        Args:
            model_data: S3 location of the model artifacts.
            image_uri: Inference image URI. Resolved from the framework
                version and the instance type at deployment when unset.
            role: IAM role name or ARN.
            entry_point: Inference script, relative to source_dir when set.
            source_dir: Local directory or S3 URI of a ``tar.gz`` with the script.
            predictor_cls: Predictor factory returned by ``deploy``.
            env: Environment variables for the container.
            name: Model name.
            container_log_level: Log level of the model server.
            code_location: S3 prefix for the code archive. Defaults to the
                session's default bucket.
            sagemaker_session: Session used for AWS calls.
            dependencies: Additional local paths added to the code archive.
            framework_version: Framework version of the inference image.
            py_version: Python version of the inference image.
            model_server_workers: Number of model server workers. The
                container default when unset.
            **kwargs: Passed to :class:`Model`.
        """
        super().__init__(
            image_uri,
            model_data,
            role,
            predictor_cls=predictor_cls,
            env=env,
            name=name,
            sagemaker_session=sagemaker_session,
            **kwargs,
        )
        self.entry_point = entry_point
        self.source_dir = source_dir
        self.dependencies = dependencies or []
        self.container_log_level = container_log_level
        self.uploaded_code: UploadedCode | None = None
        self.framework_version = framework_version
        self.py_version = py_version
        self.model_server_workers = model_server_workers

        self.bucket: str | None = None
        self.key_prefix: str | None = None
        if code_location:
            self.bucket, self.key_prefix = parse_s3_url(code_location)

    def prepare_container_def(
        self, instance_type: str | None = None, accelerator_type: str | None = None
    ) -> dict[str, Any]:
        """Upload the inference code and return the container definition."""
        deploy_image = self.image_uri or self.serving_image_uri(
            self._init_sagemaker_session_if_does_not_exist().region,
            instance_type,
            accelerator_type=accelerator_type,
        )
        deploy_key_prefix = model_code_key_prefix(self.key_prefix, self.name, deploy_image)
        self._upload_code(deploy_key_prefix)

        deploy_env = dict(self.env)
        deploy_env.update(self._framework_env_vars())
        if self.model_server_workers:
            deploy_env[MODEL_SERVER_WORKERS_PARAM_NAME.upper()] = str(self.model_server_workers)
        return container_def(deploy_image, self.model_data, deploy_env)

    def serving_image_uri(
        self, region_name: str, instance_type: str | None, accelerator_type: str | None = None
    ) -> str:
        """Return the inference image of this model's framework version.

        Raises:
            ValueError: If the model has no framework to look the image up for.
        """
        if self._framework_name is None:
            raise ValueError("image_uri is required for models without a framework image.")
        return image_uris.retrieve(
            self._framework_name,
            region_name,
            version=self.framework_version,
            py_version=self.py_version,
            instance_type=instance_type,
            accelerator_type=accelerator_type,
            image_scope="inference",
        )

    def _upload_code(self, key_prefix: str) -> None:
        session = self._init_sagemaker_session_if_does_not_exist()
        self.uploaded_code = tar_and_upload_dir(
            session=session,
            bucket=self.bucket or session.default_bucket(),
            s3_key_prefix=key_prefix,
            script=self.entry_point,
            directory=self.source_dir,
            dependencies=self.dependencies,
            kms_key=self.model_kms_key,
        )

    def _framework_env_vars(self) -> dict[str, str]:
        session = self._init_sagemaker_session_if_does_not_exist()
        if self.uploaded_code:
            script_name = self.uploaded_code.script_name
            dir_name = self.uploaded_code.s3_prefix
        else:
            script_name = self.entry_point
            dir_name = self.source_dir or ""

        return {
            SCRIPT_PARAM_NAME.upper(): script_name,
            DIR_PARAM_NAME.upper(): dir_name,
            CONTAINER_LOG_LEVEL_PARAM_NAME.upper(): str(self.container_log_level),
            SAGEMAKER_REGION_PARAM_NAME.upper(): session.region,
        }
