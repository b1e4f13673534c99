"""Processing jobs that run Scikit-learn scripts."""

from __future__ import annotations

from .. import image_uris
from ..processing import NetworkConfig, ScriptProcessor
from ..session import Session
from .model import SKLEARN_NAME


class SKLearnProcessor(ScriptProcessor):
    """Run a Python script in the SageMaker Scikit-learn container."""

    def __init__(
        self,
        framework_version: str,
        role: str,
        instance_type: str,
        instance_count: int,
        command: list[str] | None = None,
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
        """Initialize a Scikit-learn processor.

        Args:
            framework_version: Scikit-learn container version, e.g. ``0.23-1``.
            role: IAM role name or ARN.
            instance_type: Processing instance type.
            instance_count: Number of processing instances.
            command: Command that runs the script. Defaults to ``["python3"]``.

        The other arguments are those of :class:`~sagekit.processing.Processor`.
        """
        sagemaker_session = sagemaker_session or Session()
        image_uri = image_uris.retrieve(
            SKLEARN_NAME,
            sagemaker_session.region,
            version=framework_version,
            instance_type=instance_type,
        )
        super().__init__(
            role=role,
            image_uri=image_uri,
            command=command or ["python3"],
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
        self.framework_version = framework_version
