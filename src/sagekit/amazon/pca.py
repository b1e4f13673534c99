"""Principal component analysis with Amazon's built-in algorithm."""

from __future__ import annotations

from typing import Any

from .. import image_uris, vpc_utils
from ..deserializers import BaseDeserializer, JSONDeserializer
from ..model import Model
from ..predictor import Predictor
from ..serializers import BaseSerializer, CSVSerializer
from ..session import Session
from . import validation
from .amazon_estimator import AmazonAlgorithmEstimatorBase, RecordSet
from .hyperparameter import Hyperparameter as hp


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class PCA(AmazonAlgorithmEstimatorBase):
    """Reduce the dimensionality of data to its principal components."""

    repo_name = "pca"
    repo_version = "1"

    DEFAULT_MINI_BATCH_SIZE = 500

    num_components = hp(
        "num_components", validation.gt(0), "Value must be an integer greater than zero", int
    )
    algorithm_mode = hp(
        "algorithm_mode",
        validation.isin("regular", "randomized"),
        'Value must be one of "regular" and "randomized"',
        str,
    )
    subtract_mean = hp(
        name="subtract_mean", validation_message="Value must be a boolean", data_type=_to_bool
    )
    extra_components = hp(
        name="extra_components",
        validate=lambda value: value >= 0 or value == -1,
        validation_message="Value must be an integer greater than or equal to 0, or -1.",
        data_type=int,
    )

    def __init__(
        self,
        role: str,
        instance_count: int | None = None,
        instance_type: str | None = None,
        num_components: int | None = None,
        algorithm_mode: str | None = None,
        subtract_mean: bool | None = None,
        extra_components: int | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a PCA estimator.

        Args:
            role: IAM role name or ARN.
            instance_count: Number of training instances.
            instance_type: Training instance type.
            num_components: Number of principal components to compute.
            algorithm_mode: ``regular`` or ``randomized``.
            subtract_mean: Whether to unbias the data before training.
            extra_components: Additional components computed in randomized
                mode, or -1 for the algorithm's choice.
            **kwargs: Passed to :class:`AmazonAlgorithmEstimatorBase`.
        """
        super().__init__(role, instance_count, instance_type, **kwargs)
        self.num_components = num_components
        self.algorithm_mode = algorithm_mode
        self.subtract_mean = subtract_mean
        self.extra_components = extra_components

    def create_model(
        self, vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT, **kwargs: Any
    ) -> PCAModel:
        """Create a model from the artifacts of the latest training job."""
        return PCAModel(
            self.model_data,
            self.role,
            sagemaker_session=self.sagemaker_session,
            vpc_config=self.get_vpc_config(vpc_config_override),
            **kwargs,
        )

    def _prepare_for_training(  # type: ignore[override]
        self,
        records: RecordSet | list[RecordSet],
        mini_batch_size: int | None = None,
        job_name: str | None = None,
    ) -> None:
        """Default the mini-batch size to the per-instance share of the records, at most 500."""
        num_records = None
        if isinstance(records, list):
            for record in records:
                if record.channel == "train":
                    num_records = record.num_records
                    break
            if num_records is None:
                raise ValueError("Must provide train channel.")
        else:
            num_records = records.num_records

        instance_count = self.instance_count or 1
        mini_batch_size = mini_batch_size or min(
            self.DEFAULT_MINI_BATCH_SIZE, max(1, num_records // instance_count)
        )
        super()._prepare_for_training(records, mini_batch_size=mini_batch_size, job_name=job_name)


class PCAPredictor(Predictor):
    """Project records onto the principal components.

    Requests are CSV rows; each response record holds a ``projection`` vector.
    """

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
            deserializer=deserializer or JSONDeserializer(),
        )


class PCAModel(Model):
    """A PCA model that can be deployed to an endpoint."""

    def __init__(
        self,
        model_data: str,
        role: str,
        sagemaker_session: Session | None = None,
        **kwargs: Any,
    ) -> None:
        sagemaker_session = sagemaker_session or Session()
        image_uri = image_uris.retrieve(
            PCA.repo_name, sagemaker_session.region, version=PCA.repo_version
        )
        kwargs.setdefault("predictor_cls", PCAPredictor)
        super().__init__(
            image_uri,
            model_data,
            role,
            sagemaker_session=sagemaker_session,
            **kwargs,
        )
