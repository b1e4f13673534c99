"""Batch transform: run a SageMaker model over a dataset in S3."""

from __future__ import annotations

import logging
from typing import Any

from .inputs import TransformInput
from .job import _Job
from .session import Session
from .utils import base_name_from_image, name_from_base

logger = logging.getLogger(__name__)


class Transformer:
    """Handle Amazon SageMaker batch transform jobs for a model."""

    def __init__(
        self,
        model_name: str,
        instance_count: int,
        instance_type: str,
        strategy: str | None = None,
        assemble_with: str | None = None,
        output_path: str | None = None,
        output_kms_key: str | None = None,
        accept: str | None = None,
        max_concurrent_transforms: int | None = None,
        max_payload: int | None = None,
        tags: list[dict[str, str]] | None = None,
        env: dict[str, str] | None = None,
        base_transform_job_name: str | None = None,
        sagemaker_session: Session | None = None,
        volume_kms_key: str | None = None,
    ) -> None:
        """Initialize a transformer.

        Args:
            model_name: Name of the SageMaker model to run.
            instance_count: Number of instances for each transform job.
            instance_type: Instance type for each transform job.
            strategy: ``MultiRecord`` or ``SingleRecord`` batching.
            assemble_with: How output records are joined (``None`` or ``Line``).
            output_path: S3 location of the results. Defaults to
                ``s3://{default_bucket}/{job_name}``.
            output_kms_key: KMS key for the results.
            accept: MIME type of the results.
            max_concurrent_transforms: Parallel requests per instance.
            max_payload: Maximum request payload in MB.
            tags: Tags for each transform job.
            env: Environment variables for the model container.
            base_transform_job_name: Prefix of generated job names. Defaults
                to the model's image name.
            sagemaker_session: Session used for AWS calls.
            volume_kms_key: KMS key for the instance storage volumes.
        """
        self.model_name = model_name
        self.strategy = strategy
        self.env = env

        self.output_path = output_path
        self.output_kms_key = output_kms_key
        self.accept = accept
        self.assemble_with = assemble_with

        self.instance_count = instance_count
        self.instance_type = instance_type
        self.volume_kms_key = volume_kms_key

        self.max_concurrent_transforms = max_concurrent_transforms
        self.max_payload = max_payload
        self.tags = tags

        self.base_transform_job_name = base_transform_job_name
        self._current_job_name: str | None = None
        self.latest_transform_job: _TransformJob | None = None
        self._reset_output_path = False

        self.sagemaker_session = sagemaker_session or Session()

    def transform(
        self,
        data: str,
        data_type: str = "S3Prefix",
        content_type: str | None = None,
        compression_type: str | None = None,
        split_type: str | None = None,
        job_name: str | None = None,
        input_filter: str | None = None,
        output_filter: str | None = None,
        join_source: str | None = None,
        experiment_config: dict[str, str] | None = None,
        model_client_config: dict[str, int] | None = None,
        wait: bool = True,
        logs: bool = True,
    ) -> None:
        """Start a transform job over the given data.

        Args:
            data: S3 URI of the input: a prefix, a manifest file, or an
                augmented manifest, depending on ``data_type``.
            data_type: ``S3Prefix``, ``ManifestFile`` or ``AugmentedManifestFile``.
            content_type: MIME type of the input.
            compression_type: ``Gzip`` or None.
            split_type: ``None``, ``Line``, ``RecordIO`` or ``TFRecord``.
            job_name: Job name. Generated from the base name when unset.
            input_filter: JSONPath selecting the input passed to the model.
            output_filter: JSONPath selecting the output that is kept.
            join_source: ``Input`` to join each result with its input record.
            experiment_config: Experiment association.
            model_client_config: ``InvocationsTimeoutInSeconds`` and
                ``InvocationsMaxRetries`` for the model container.
            wait: Whether to block until the job completes.
            logs: Whether to stream the job logs while waiting.
        """
        if job_name is not None:
            self._current_job_name = job_name
        else:
            base_name = self.base_transform_job_name
            if base_name is None:
                base_name = self._retrieve_base_name()
            self._current_job_name = name_from_base(base_name)

        if self.output_path is None or self._reset_output_path:
            self.output_path = f"s3://{self.sagemaker_session.default_bucket()}/{self._current_job_name}"
            self._reset_output_path = True

        self.latest_transform_job = _TransformJob.start_new(
            self,
            TransformInput(
                data=data,
                data_type=data_type,
                content_type=content_type,
                compression_type=compression_type,
                split_type=split_type,
            ),
            input_filter,
            output_filter,
            join_source,
            experiment_config,
            model_client_config,
        )

        if wait:
            self.latest_transform_job.wait(logs=logs)

    def _retrieve_base_name(self) -> str:
        image_uri = self._retrieve_image_uri()
        if image_uri:
            return base_name_from_image(image_uri)
        return self.model_name

    def _retrieve_image_uri(self) -> str | None:
        model_desc = self.sagemaker_session.describe_model(self.model_name)
        primary_container = model_desc.get("PrimaryContainer")
        if primary_container:
            return primary_container.get("Image")

        containers = model_desc.get("Containers")
        if containers:
            return containers[0].get("Image")
        return None

    def _ensure_last_transform_job(self) -> _TransformJob:
        if self.latest_transform_job is None:
            raise ValueError("No transform job available")
        return self.latest_transform_job

    def wait(self, logs: bool = True) -> None:
        """Wait for the latest transform job to finish."""
        self._ensure_last_transform_job().wait(logs=logs)

    def stop_transform_job(self, wait: bool = True) -> None:
        """Stop the latest transform job, optionally waiting for it to stop."""
        job = self._ensure_last_transform_job()
        job.stop()
        if wait:
            job.wait(logs=False)

    @classmethod
    def attach(cls, transform_job_name: str, sagemaker_session: Session | None = None) -> Transformer:
        """Attach to an existing transform job.

        Args:
            transform_job_name: Name of the transform job.
            sagemaker_session: Session used for AWS calls.

        Returns:
            A transformer bound to the job.
        """
        sagemaker_session = sagemaker_session or Session()

        job_details = sagemaker_session.describe_transform_job(transform_job_name)
        init_params = cls._prepare_init_params_from_job_description(job_details)
        transformer = cls(sagemaker_session=sagemaker_session, **init_params)
        transformer.latest_transform_job = _TransformJob(sagemaker_session, transform_job_name)
        transformer._current_job_name = transform_job_name
        return transformer

    @classmethod
    def _prepare_init_params_from_job_description(cls, job_details: dict[str, Any]) -> dict[str, Any]:
        """Convert a ``DescribeTransformJob`` response into constructor arguments."""
        resources = job_details["TransformResources"]
        output = job_details["TransformOutput"]

        init_params: dict[str, Any] = {
            "model_name": job_details["ModelName"],
            "instance_count": resources["InstanceCount"],
            "instance_type": resources["InstanceType"],
            "volume_kms_key": resources.get("VolumeKmsKeyId"),
            "strategy": job_details.get("BatchStrategy"),
            "assemble_with": output.get("AssembleWith"),
            "output_path": output["S3OutputPath"],
            "output_kms_key": output.get("KmsKeyId"),
            "accept": output.get("Accept"),
            "max_concurrent_transforms": job_details.get("MaxConcurrentTransforms"),
            "max_payload": job_details.get("MaxPayloadInMB"),
            "base_transform_job_name": job_details["TransformJobName"],
        }
        if job_details.get("Environment"):
            init_params["env"] = job_details["Environment"]
        return init_params


class _TransformJob(_Job):
    """Handle to a batch transform job."""

    @classmethod
    def start_new(
        cls,
        transformer: Transformer,
        transform_input: TransformInput,
        input_filter: str | None,
        output_filter: str | None,
        join_source: str | None,
        experiment_config: dict[str, str] | None,
        model_client_config: dict[str, int] | None,
    ) -> _TransformJob:
        """Create a transform job from a transformer and start it."""
        assert transformer._current_job_name is not None
        transformer.sagemaker_session.transform(
            job_name=transformer._current_job_name,
            model_name=transformer.model_name,
            strategy=transformer.strategy,
            max_concurrent_transforms=transformer.max_concurrent_transforms,
            max_payload=transformer.max_payload,
            input_config=transform_input.to_request_dict(),
            output_config=cls._prepare_output_config(transformer),
            resource_config=cls._prepare_resource_config(transformer),
            env=transformer.env,
            tags=transformer.tags,
            data_processing=cls._prepare_data_processing(input_filter, output_filter, join_source),
            model_client_config=model_client_config,
            experiment_config=experiment_config,
        )
        return cls(transformer.sagemaker_session, transformer._current_job_name)

    @staticmethod
    def _prepare_output_config(transformer: Transformer) -> dict[str, Any]:
        config: dict[str, Any] = {"S3OutputPath": transformer.output_path}
        if transformer.output_kms_key is not None:
            config["KmsKeyId"] = transformer.output_kms_key
        if transformer.accept is not None:
            config["Accept"] = transformer.accept
        if transformer.assemble_with is not None:
            config["AssembleWith"] = transformer.assemble_with
        return config

    @staticmethod
    def _prepare_resource_config(transformer: Transformer) -> dict[str, Any]:
        config: dict[str, Any] = {
            "InstanceCount": transformer.instance_count,
            "InstanceType": transformer.instance_type,
        }
        if transformer.volume_kms_key is not None:
            config["VolumeKmsKeyId"] = transformer.volume_kms_key
        return config

    @staticmethod
    def _prepare_data_processing(
        input_filter: str | None, output_filter: str | None, join_source: str | None
    ) -> dict[str, str] | None:
        config: dict[str, str] = {}
        if input_filter is not None:
            config["InputFilter"] = input_filter
        if output_filter is not None:
            config["OutputFilter"] = output_filter
        if join_source is not None:
            config["JoinSource"] = join_source
        return config or None

    def wait(self, logs: bool = True) -> None:
        """Wait for the transform job, optionally streaming its logs."""
        if logs:
            self.sagemaker_session.logs_for_transform_job(self.job_name, wait=True)
        else:
            self.sagemaker_session.wait_for_transform_job(self.job_name)

    def describe(self) -> dict[str, Any]:
        return self.sagemaker_session.describe_transform_job(self.job_name)

    def stop(self) -> None:
        self.sagemaker_session.stop_transform_job(name=self.job_name)
