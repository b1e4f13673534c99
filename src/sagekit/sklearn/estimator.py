"""Script-mode training with the SageMaker Scikit-learn container."""

from __future__ import annotations

from typing import Any

from .. import vpc_utils
from ..estimator import Framework
from ..fw_utils import validate_version_or_image_args
from .model import SKLEARN_NAME, SKLearnModel

# Instance families with GPUs
_GPU_FAMILIES = ("p", "g")


def _validate_not_gpu_instance_type(instance_type: str | None) -> None:
    if not instance_type or not instance_type.startswith("ml."):
        return
    family = instance_type.split(".")[1]
    if family.startswith(_GPU_FAMILIES):
        raise ValueError(
            "GPU training in not supported for Scikit-Learn. "
            "Please pick a different instance type from here: "
            "https://aws.amazon.com/ec2/instance-types/"
        )


class SKLearn(Framework):
    """Run a user Scikit-learn training script on a single CPU instance."""

    _framework_name = SKLEARN_NAME
    _image_framework_name = "scikit-learn"

    def __init__(
        self,
        entry_point: str,
        framework_version: str | None = None,
        py_version: str | None = "py3",
        source_dir: str | None = None,
        hyperparameters: dict[str, Any] | None = None,
        image_uri: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a Scikit-learn estimator.

        Args:
            entry_point: Training script, relative to source_dir when set.
            framework_version: Scikit-learn container version, e.g. ``0.23-1``.
            py_version: Python version of the container. Only ``py3`` exists.
            source_dir: Directory with the script and its helpers.
            hyperparameters: Hyperparameters passed to the script.
            image_uri: Training image override.
            **kwargs: Passed to :class:`~sagekit.estimator.Framework`.

        Raises:
            ValueError: If the versions are incomplete without an image,
                py_version is not ``py3``, the instance type has a GPU or
                more than one instance is requested.
        """
        validate_version_or_image_args(framework_version, py_version, image_uri)
        if py_version and py_version != "py3":
            raise ValueError("Scikit-learn image only supports Python 3. Please use 'py3' for py_version.")
        _validate_not_gpu_instance_type(kwargs.get("instance_type"))

        instance_count = kwargs.pop("instance_count", None)
        if instance_count is not None and instance_count != 1:
            raise ValueError(
                "Scikit-Learn does not support distributed training. Please remove the "
                "'instance_count' argument or set 'instance_count=1' when initializing SKLearn."
            )

        self.framework_version = framework_version
        self.py_version = py_version
        super().__init__(
            entry_point,
            source_dir=source_dir,
            hyperparameters=hyperparameters,
            image_uri=image_uri,
            instance_count=1,
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
    ) -> SKLearnModel:
        """Create a model serving the artifacts of the latest training job.

        Args:
            model_server_workers: Number of model server workers.
            role: Role for the model. Defaults to the estimator's role.
            vpc_config_override: Replacement ``VpcConfig``, or None to remove it.
            entry_point: Inference script. Defaults to the training script.
            source_dir: Inference code directory. Defaults to the training code.
            dependencies: Additional code paths. Defaults to the training ones.
            **kwargs: Passed to :class:`SKLearnModel`.
        """
        kwargs.setdefault("image_uri", self.image_uri)
        kwargs.setdefault("enable_network_isolation", self.enable_network_isolation())
        kwargs["name"] = self._get_or_create_name(kwargs.get("name"))
        return SKLearnModel(
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
