"""Script-mode training with the SageMaker XGBoost container."""

from __future__ import annotations

from typing import Any

from .. import vpc_utils
from ..estimator import Framework
from ..fw_utils import validate_version_or_image_args
from .model import XGBOOST_NAME, XGBoostModel


class XGBoost(Framework):
    """Run a user XGBoost training script in the SageMaker XGBoost container."""

    _framework_name = XGBOOST_NAME

    def __init__(
        self,
        entry_point: str,
        framework_version: str | None,
        source_dir: str | None = None,
        hyperparameters: dict[str, Any] | None = None,
        py_version: str = "py3",
        image_uri: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize an XGBoost estimator.

        Args:
            entry_point: Training script, relative to source_dir when set.
            framework_version: XGBoost container version, e.g. ``1.0-1``.
            source_dir: Directory with the script and its helpers.
            hyperparameters: Hyperparameters passed to the script.
            py_version: Python version of the container.
            image_uri: Training image override.
            **kwargs: Passed to :class:`~sagekit.estimator.Framework`.

        Raises:
            ValueError: If neither framework_version nor image_uri is given.
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

    def create_model(
        self,
        model_server_workers: int | None = None,
        role: str | None = None,
        vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT,
        entry_point: str | None = None,
        source_dir: str | None = None,
        dependencies: list[str] | None = None,
        **kwargs: Any,
    ) -> XGBoostModel:
        """Create a model serving the artifacts of the latest training job.

        Args:
            model_server_workers: Number of model server workers.
            role: Role for the model. Defaults to the estimator's role.
            vpc_config_override: Replacement ``VpcConfig``, or None to remove it.
            entry_point: Inference script. Defaults to the training script.
            source_dir: Inference code directory. Defaults to the training code.
            dependencies: Additional code paths. Defaults to the training ones.
            **kwargs: Passed to :class:`XGBoostModel`.
        """
        kwargs.setdefault("image_uri", self.image_uri)
        kwargs["name"] = self._get_or_create_name(kwargs.get("name"))
        return XGBoostModel(
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
