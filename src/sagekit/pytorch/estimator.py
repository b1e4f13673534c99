"""Script-mode training with the SageMaker PyTorch containers."""

from __future__ import annotations

import logging
from typing import Any

from .. import vpc_utils
from ..estimator import Framework
from ..fw_utils import validate_smdistributed, validate_version_or_image_args
from ..utils import json_encode_hyperparameters
from .model import PYTORCH_NAME, PyTorchModel

logger = logging.getLogger(__name__)


class PyTorch(Framework):
    """Run a user PyTorch training script, optionally distributed across instances.

    Distribution is configured with a dict, e.g.
    ``{"mpi": {"enabled": True, "processes_per_host": 8}}`` or
    ``{"smdistributed": {"dataparallel": {"enabled": True}}}``.
    """

    _framework_name = PYTORCH_NAME

    def __init__(
        self,
        entry_point: str,
        framework_version: str | None = None,
        py_version: str | None = None,
        source_dir: str | None = None,
        hyperparameters: dict[str, Any] | None = None,
        image_uri: str | None = None,
        distribution: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a PyTorch estimator.

        Args:
            entry_point: Training script, relative to source_dir when set.
            framework_version: PyTorch version, e.g. ``1.8.1``.
            py_version: Python version of the container, e.g. ``py36``.
            source_dir: Directory with the script and its helpers.
            hyperparameters: Hyperparameters passed to the script.
            image_uri: Training image override.
            distribution: Distributed training configuration.
            **kwargs: Passed to :class:`~sagekit.estimator.Framework`.

        Raises:
            ValueError: If the versions are incomplete without an image, or
                the distribution is not supported by the training setup.
        """
        validate_version_or_image_args(framework_version, py_version, image_uri)
        self.framework_version = framework_version
        self.py_version = py_version
        super().__init__(
            entry_point,
            source_dir=source_dir,
            hyperparameters=hyperparameters,
            image_uri=image_uri,
            **kwargs,
        )

        self.distribution = distribution or {}
        if self.distribution:
            validate_smdistributed(
                self.instance_type,
                PYTORCH_NAME,
                framework_version,
                py_version,
                self.distribution,
                image_uri,
            )
            logger.debug(f"Distributed training configuration: {self.distribution}")

    def hyperparameters(self) -> dict[str, str]:
        """Return the hyperparameters, including those enabling distributed training."""
        hyperparameters = super().hyperparameters()
        additional_hyperparameters = self._distribution_configuration(self.distribution)
        hyperparameters.update(json_encode_hyperparameters(additional_hyperparameters))
        return hyperparameters

    def create_model(
        self,
        model_server_workers: int | None = None,
        role: str | None = None,
        vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT,
        entry_point: str | None = None,
        source_dir: str | None = None,
        dependencies: list[str] | None = None,
        **kwargs: Any,
    ) -> PyTorchModel:
        """Create a model serving the artifacts of the latest training job.

        Args:
            model_server_workers: Number of model server workers.
            role: Role for the model. Defaults to the estimator's role.
            vpc_config_override: Replacement ``VpcConfig``, or None to remove it.
            entry_point: Inference script. Defaults to the training script.
            source_dir: Inference code directory. Defaults to the training code.
            dependencies: Additional code paths. Defaults to the training ones.
            **kwargs: Passed to :class:`PyTorchModel`.
        """
        kwargs.setdefault("image_uri", self.image_uri)
        kwargs["name"] = self._get_or_create_name(kwargs.get("name"))
        return PyTorchModel(
            self.model_data,
            role or self.role,
            entry_point or self._model_entry_point(),
            framework_version=self.framework_version,
            py_version=self.py_version,
            source_dir=source_dir or self._model_source_dir(),
            container_log_level=self.container_log_level,
            code_location=self.code_location,
            model_server_workers=model_server_workers,
            sagemaker_session=self.sagemaker_session,
            vpc_config=self.get_vpc_config(vpc_config_override),
            dependencies=dependencies or self.dependencies,
            **kwargs,
        )

    @classmethod
    def _prepare_init_params_from_job_description(
        cls, job_details: dict[str, Any], model_channel_name: str | None = None
    ) -> dict[str, Any]:
        """Recover the distribution from the job's hyperparameters."""
        init_params = super()._prepare_init_params_from_job_description(
            job_details, model_channel_name
        )
        hyperparameters = init_params["hyperparameters"]

        distribution: dict[str, Any] = {}
        mpi_enabled = hyperparameters.pop(cls.LAUNCH_MPI_ENV_NAME, False)
        processes_per_host = hyperparameters.pop(cls.MPI_NUM_PROCESSES_PER_HOST, None)
        custom_mpi_options = hyperparameters.pop(cls.MPI_CUSTOM_MPI_OPTIONS, "")
        if mpi_enabled:
            mpi: dict[str, Any] = {"enabled": True}
            if processes_per_host:
                mpi["processes_per_host"] = processes_per_host
            if custom_mpi_options:
                mpi["custom_mpi_options"] = custom_mpi_options
            distribution["mpi"] = mpi

        if hyperparameters.pop(cls.LAUNCH_SM_DDP_ENV_NAME, False):
            distribution["smdistributed"] = {"dataparallel": {"enabled": True}}
        hyperparameters.pop(cls.INSTANCE_TYPE, None)

        if distribution:
            init_params["distribution"] = distribution
        return init_params
