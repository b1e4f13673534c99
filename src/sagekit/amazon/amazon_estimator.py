"""Base estimator for Amazon's built-in algorithms and the record sets they train on."""

from __future__ import annotations

from typing import Any

from .. import image_uris
from ..estimator import EstimatorBase, _TrainingJob
from ..inputs import TrainingInput
from . import validation
from .hyperparameter import Hyperparameter as hp


class AmazonAlgorithmEstimatorBase(EstimatorBase):
    """Base class for estimators of Amazon's built-in algorithms.

    Subclasses set ``repo_name`` and ``repo_version`` and declare their
    hyperparameters as :class:`~sagekit.amazon.hyperparameter.Hyperparameter`
    class attributes.
    """

    repo_name: str | None = None
    repo_version: str | None = None

    feature_dim = hp("feature_dim", validation.gt(0), data_type=int)
    mini_batch_size = hp("mini_batch_size", validation.gt(0), data_type=int)

    def __init__(
        self,
        role: str,
        instance_count: int | None = None,
        instance_type: str | None = None,
        data_location: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the estimator.

        Args:
            role: IAM role name or ARN.
            instance_count: Number of training instances.
            instance_type: Training instance type.
            data_location: S3 prefix for record set data of this estimator.
                Defaults to ``s3://{default_bucket}/sagemaker-record-sets/``.
            **kwargs: Passed to :class:`~sagekit.estimator.EstimatorBase`.
        """
        self._hyperparameters: dict[str, Any] = {}
        super().__init__(role, instance_count, instance_type, **kwargs)

        self._data_location = ""
        self.data_location = (
            data_location or f"s3://{self.sagemaker_session.default_bucket()}/sagemaker-record-sets/"
        )

    def training_image_uri(self) -> str:
        assert self.repo_name is not None
        return image_uris.retrieve(
            self.repo_name, self.sagemaker_session.region, version=self.repo_version
        )

    def hyperparameters(self) -> dict[str, str]:
        return hp.serialize_all(self)

    @property
    def data_location(self) -> str:
        return self._data_location

    @data_location.setter
    def data_location(self, data_location: str) -> None:
        if not data_location.startswith("s3://"):
            raise ValueError(f'Expecting an S3 URL beginning with "s3://". Got "{data_location}"')
        if not data_location.endswith("/"):
            data_location = data_location + "/"
        self._data_location = data_location

    @classmethod
    def _prepare_init_params_from_job_description(
        cls, job_details: dict[str, Any], model_channel_name: str | None = None
    ) -> dict[str, Any]:
        """Map job hyperparameters back to constructor arguments.

        Hyperparameter names can differ from the attributes holding them,
        e.g. ``local_lloyd_init_method`` is ``local_init_method``.
        """
        init_params = super()._prepare_init_params_from_job_description(
            job_details, model_channel_name
        )
        hyperparameters = init_params.pop("hyperparameters")
        for attribute, value in cls.__dict__.items():
            if isinstance(value, hp) and value.name in hyperparameters:
                init_params[attribute] = hyperparameters[value.name]

        del init_params["image_uri"]
        return init_params

    def _prepare_for_training(  # type: ignore[override]
        self,
        records: RecordSet | list[RecordSet],
        mini_batch_size: int | None = None,
        job_name: str | None = None,
    ) -> None:
        """Set the job name, ``feature_dim`` and ``mini_batch_size``.

        Raises:
            ValueError: If a list of record sets has no ``train`` channel.
        """
        super()._prepare_for_training(job_name=job_name)

        feature_dim = None
        if isinstance(records, list):
            for record in records:
                if record.channel == "train":
                    feature_dim = record.feature_dim
                    break
            if feature_dim is None:
                raise ValueError("Must provide train channel.")
        else:
            feature_dim = records.feature_dim

        self.feature_dim = feature_dim
        self.mini_batch_size = mini_batch_size

    def fit(  # type: ignore[override]
        self,
        records: RecordSet | list[RecordSet],
        mini_batch_size: int | None = None,
        wait: bool = True,
        logs: bool = True,
        job_name: str | None = None,
        experiment_config: dict[str, str] | None = None,
    ) -> None:
        """Train on one or more record sets.

        Args:
            records: Record set, or list of record sets with distinct channels.
            mini_batch_size: Mini-batch size. The algorithm default when unset.
            wait: Whether to block until the job completes.
            logs: Whether to stream the job logs while waiting.
            job_name: Training job name. Generated when unset.
            experiment_config: Experiment association.
        """
        self._prepare_for_training(records, job_name=job_name, mini_batch_size=mini_batch_size)

        self.latest_training_job = _TrainingJob.start_new(self, records, experiment_config)
        self.jobs.append(self.latest_training_job)
        if wait:
            self.latest_training_job.wait(logs=logs)


class RecordSet:
    """Data in S3 that a built-in algorithm trains on."""

    def __init__(
        self,
        s3_data: str,
        num_records: int,
        feature_dim: int,
        s3_data_type: str = "ManifestFile",
        channel: str = "train",
        content_type: str | None = None,
    ) -> None:
        """Initialize a record set.

        Args:
            s3_data: S3 location of the data or its manifest.
            num_records: Number of records.
            feature_dim: Number of features per record.
            s3_data_type: ``ManifestFile`` or ``S3Prefix``.
            channel: Training channel the data is bound to.
            content_type: MIME type of the data. The algorithm default,
                RecordIO-protobuf, when unset.
        """
        self.s3_data = s3_data
        self.feature_dim = feature_dim
        self.num_records = num_records
        self.s3_data_type = s3_data_type
        self.channel = channel
        self.content_type = content_type

    def __repr__(self) -> str:
        return f"(RecordSet, {self.__dict__})"

    def data_channel(self) -> dict[str, TrainingInput]:
        return {self.channel: self.records_s3_input()}

    def records_s3_input(self) -> TrainingInput:
        return TrainingInput(
            self.s3_data,
            distribution="ShardedByS3Key",
            s3_data_type=self.s3_data_type,
            content_type=self.content_type,
        )
