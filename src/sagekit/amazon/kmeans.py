"""K-means clustering with Amazon's built-in algorithm."""

from __future__ import annotations

import json
from typing import Any

from .. import image_uris, vpc_utils
from ..deserializers import BaseDeserializer, JSONDeserializer
from ..model import Model
from ..predictor import Predictor
from ..serializers import BaseSerializer, CSVSerializer
from ..session import Session
from . import validation
from .amazon_estimator import AmazonAlgorithmEstimatorBase
from .hyperparameter import Hyperparameter as hp


def _metric_list(value: Any) -> list[str]:
    # Attached jobs report list hyperparameters as JSON strings
    if isinstance(value, str):
        return list(json.loads(value)) if value.startswith("[") else value.split(",")
    return list(value)


def _valid_metrics(value: list[str]) -> bool:
    return all(metric in ("msd", "ssd") for metric in value)


class KMeans(AmazonAlgorithmEstimatorBase):
    """Find discrete groupings within data.

    Each record is assigned to the closest of ``k`` cluster centers learned
    by training. The model can be deployed to an endpoint that returns the
    closest cluster and the distance to it.
    """

    repo_name = "kmeans"
    repo_version = "1"

    k = hp("k", validation.gt(1), "An integer greater-than 1", int)
    init_method = hp("init_method", validation.isin("random", "kmeans++"), 'One of "random", "kmeans++"', str)
    max_iterations = hp("local_lloyd_max_iter", validation.gt(0), "An integer greater-than 0", int)
    tol = hp("local_lloyd_tol", (validation.ge(0), validation.le(1)), "An float in [0, 1]", float)
    num_trials = hp("local_lloyd_num_trials", validation.gt(0), "An integer greater-than 0", int)
    local_init_method = hp(
        "local_lloyd_init_method",
        validation.isin("random", "kmeans++"),
        'One of "random", "kmeans++"',
        str,
    )
    half_life_time_size = hp(
        "half_life_time_size", validation.ge(0), "An integer greater-than-or-equal-to 0", int
    )
    epochs = hp("epochs", validation.gt(0), "An integer greater-than 0", int)
    center_factor = hp("extra_center_factor", validation.gt(0), "An integer greater-than 0", int)
    eval_metrics = hp(
        "eval_metrics", _valid_metrics, 'A comma separated list of "msd" or "ssd"', _metric_list
    )

    def __init__(
        self,
        role: str,
        instance_count: int | None = None,
        instance_type: str | None = None,
        k: int | None = None,
        init_method: str | None = None,
        max_iterations: int | None = None,
        tol: float | None = None,
        num_trials: int | None = None,
        local_init_method: str | None = None,
        half_life_time_size: int | None = None,
        epochs: int | None = None,
        center_factor: int | None = None,
        eval_metrics: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a k-means estimator.

        Args:
            role: IAM role name or ARN.
            instance_count: Number of training instances.
            instance_type: Training instance type.
            k: Number of clusters.
            init_method: Initial center selection, ``random`` or ``kmeans++``.
            max_iterations: Maximum iterations of the local Lloyd's run.
            tol: Tolerance for early stopping of the local Lloyd's run.
            num_trials: Local runs, from which the best is kept.
            local_init_method: Initial center selection of the local runs.
            half_life_time_size: Points after which a center's weight halves.
            epochs: Passes over the training data.
            center_factor: The algorithm keeps ``k * center_factor`` centers while training.
            eval_metrics: Test metrics, ``msd`` and/or ``ssd``.
            **kwargs: Passed to :class:`AmazonAlgorithmEstimatorBase`.
        """
        super().__init__(role, instance_count, instance_type, **kwargs)
        self.k = k
        self.init_method = init_method
        self.max_iterations = max_iterations
        self.tol = tol
        self.num_trials = num_trials
        self.local_init_method = local_init_method
        self.half_life_time_size = half_life_time_size
        self.epochs = epochs
        self.center_factor = center_factor
        self.eval_metrics = eval_metrics

    def create_model(
        self, vpc_config_override: Any = vpc_utils.VPC_CONFIG_DEFAULT, **kwargs: Any
    ) -> KMeansModel:
        """Create a model from the artifacts of the latest training job."""
        return KMeansModel(
            self.model_data,
            self.role,
            self.sagemaker_session,
            vpc_config=self.get_vpc_config(vpc_config_override),
            **kwargs,
        )

    def hyperparameters(self) -> dict[str, str]:
        hp_dict = {"force_dense": "True"}
        hp_dict.update(super().hyperparameters())
        return hp_dict


class KMeansPredictor(Predictor):
    """Assign records to their closest cluster.

    Requests are CSV rows; each response record holds ``closest_cluster``
    and ``distance_to_cluster``.
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


class KMeansModel(Model):
    """A k-means model that can be deployed to an endpoint."""

    def __init__(
        self,
        model_data: str,
        role: str,
        sagemaker_session: Session | None = None,
        **kwargs: Any,
    ) -> None:
        sagemaker_session = sagemaker_session or Session()
        image_uri = image_uris.retrieve(
            KMeans.repo_name, sagemaker_session.region, version=KMeans.repo_version
        )
        kwargs.setdefault("predictor_cls", KMeansPredictor)
        super().__init__(
            image_uri,
            model_data,
            role,
            sagemaker_session=sagemaker_session,
            **kwargs,
        )
