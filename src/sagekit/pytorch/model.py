"""Hosting of PyTorch models."""

from __future__ import annotations

from typing import Any

from ..deserializers import BaseDeserializer, NumpyDeserializer
from ..fw_utils import validate_version_or_image_args
from ..model import FrameworkModel
from ..predictor import Predictor
from ..serializers import BaseSerializer, NumpySerializer
from ..session import Session

PYTORCH_NAME = "pytorch"


class PyTorchPredictor(Predictor):
    """Send NumPy arrays to a PyTorch endpoint and read arrays back."""

    def __init__(
        self,
        endpoint_name: str,
        sagemaker_session: Session | None = None,
        serializer: BaseSerializer | None = None,
        deserializer: BaseDeserializer | None = None,
    ) -> None:
        super().__init__(
            endpoint_name,
            sagemaker_session,
            serializer=serializer or NumpySerializer(),
            deserializer=deserializer or NumpyDeserializer(),
        )


class PyTorchModel(FrameworkModel):
    """A PyTorch model served by a user inference script.

    The inference image is resolved at deployment, from the instance type
    for CPU or GPU, unless ``image_uri`` is given.
    """

    _framework_name = PYTORCH_NAME

    def __init__(
        self,
        model_data: str | None,
        role: str | None,
        entry_point: str,
        framework_version: str | None = None,
        py_version: str | None = None,
        image_uri: str | None = None,
        predictor_cls: Any = PyTorchPredictor,
        **kwargs: Any,
    ) -> None:
        """Initialize a PyTorch model.

        Args:
            model_data: S3 location of the model artifacts.
            role: IAM role name or ARN.
            entry_point: Inference script, relative to source_dir when set.
            framework_version: PyTorch version, e.g. ``1.8.1``.
            py_version: Python version of the container, e.g. ``py36``.
            image_uri: Inference image override.
            predictor_cls: Predictor factory returned by ``deploy``.
            **kwargs: Passed to :class:`~sagekit.model.FrameworkModel`.

        Raises:
            ValueError: If the versions are incomplete without an image.
        """
        validate_version_or_image_args(framework_version, py_version, image_uri)
        super().__init__(
            model_data,
            image_uri,
            role,
            entry_point,
            predictor_cls=predictor_cls,
            framework_version=framework_version,
            py_version=py_version,
            **kwargs,
        )

    def prepare_container_def(
        self, instance_type: str | None = None, accelerator_type: str | None = None
    ) -> dict[str, Any]:
        """Return the container definition.

        Raises:
            ValueError: If neither an instance type nor an image URI is known.
        """
        if self.image_uri is None and instance_type is None:
            raise ValueError(
                "Must supply either an instance type (for choosing CPU vs GPU) or an image URI."
            )
        return super().prepare_container_def(instance_type, accelerator_type=accelerator_type)
