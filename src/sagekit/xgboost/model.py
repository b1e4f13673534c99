"""Hosting of models trained with the SageMaker XGBoost container."""

from __future__ import annotations

from typing import Any

from ..deserializers import BaseDeserializer, CSVDeserializer
from ..model import FrameworkModel
from ..predictor import Predictor
from ..serializers import BaseSerializer, CSVSerializer
from ..session import Session

XGBOOST_NAME = "xgboost"


class XGBoostPredictor(Predictor):
    """Send CSV rows to an XGBoost endpoint and read CSV predictions."""

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
            serializer=serializer or CSVSerializer(),
            deserializer=deserializer or CSVDeserializer(),
        )


class XGBoostModel(FrameworkModel):
    """An XGBoost model served by a user inference script."""

    _framework_name = XGBOOST_NAME

    def __init__(
        self,
        model_data: str | None,
        role: str | None,
        entry_point: str,
        framework_version: str | None = None,
        image_uri: str | None = None,
        py_version: str = "py3",
        predictor_cls: Any = XGBoostPredictor,
        **kwargs: Any,
    ) -> None:
        """Initialize an XGBoost model.

        Args:
            model_data: S3 location of the model artifacts.
            role: IAM role name or ARN.
            entry_point: Inference script, relative to source_dir when set.
            framework_version: XGBoost container version. Required when
                image_uri is unset.
            image_uri: Inference image override.
            py_version: Python version of the container.
            predictor_cls: Predictor factory returned by ``deploy``.
            **kwargs: Passed to :class:`~sagekit.model.FrameworkModel`.

        Raises:
            ValueError: If neither framework_version nor image_uri is given.
        """
        if framework_version is None and image_uri is None:
            raise ValueError("Either framework_version or image_uri is required.")
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
