"""Hosting of models trained with the SageMaker Scikit-learn container."""

from __future__ import annotations

from typing import Any

from ..deserializers import BaseDeserializer, NumpyDeserializer
from ..fw_utils import validate_version_or_image_args
from ..model import FrameworkModel
from ..predictor import Predictor
from ..serializers import BaseSerializer, NumpySerializer
from ..session import Session

SKLEARN_NAME = "sklearn"


class SKLearnPredictor(Predictor):
    """Send NumPy arrays to a Scikit-learn endpoint and read arrays back."""

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


class SKLearnModel(FrameworkModel):
    """A Scikit-learn model served by a user inference script."""

    _framework_name = SKLEARN_NAME

    def __init__(
        self,
        model_data: str | None,
        role: str | None,
        entry_point: str,
        framework_version: str | None = None,
        py_version: str | None = "py3",
        image_uri: str | None = None,
        predictor_cls: Any = SKLearnPredictor,
        **kwargs: Any,
    ) -> None:
        """Initialize a Scikit-learn model.

        Args:
            model_data: S3 location of the model artifacts.
            role: IAM role name or ARN.
            entry_point: Inference script, relative to source_dir when set.
            framework_version: Scikit-learn container version, e.g. ``0.23-1``.
            py_version: Python version of the container. Only ``py3`` exists.
            image_uri: Inference image override.
            predictor_cls: Predictor factory returned by ``deploy``.
            **kwargs: Passed to :class:`~sagekit.model.FrameworkModel`.

        Raises:
            ValueError: If the versions are incomplete without an image, or
                py_version is not ``py3``.
        """
        validate_version_or_image_args(framework_version, py_version, image_uri)
        if py_version and py_version != "py3":
            raise ValueError("Scikit-learn image only supports Python 3. Please use 'py3' for py_version.")
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
            ValueError: If an accelerator is requested.
        """
        if accelerator_type:
            raise ValueError("Accelerator types are not supported for Scikit-Learn.")
        return super().prepare_container_def(instance_type)
