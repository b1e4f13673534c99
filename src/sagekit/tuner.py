"""Hyperparameter tuning: search hyperparameter ranges with many training jobs."""

from __future__ import annotations

from enum import Enum
import importlib
import inspect
import json
import logging
from typing import Any

from .amazon.hyperparameter import Hyperparameter
from .analytics import HyperparameterTuningJobAnalytics
from .estimator import EstimatorBase, Framework
from .job import _Job
from .parameter import CategoricalParameter, ParameterRange
from .predictor import Predictor
from .session import Session
from .utils import base_from_name, base_name_from_image, name_from_base

logger = logging.getLogger(__name__)

HYPERPARAMETER_TUNING_JOB_NAME = "HyperParameterTuningJobName"
PARENT_HYPERPARAMETER_TUNING_JOBS = "ParentHyperParameterTuningJobs"
WARM_START_TYPE = "WarmStartType"

# Tuning job names are limited to 32 characters by the service
TUNING_JOB_NAME_MAX_LENGTH = 32

SAGEMAKER_ESTIMATOR_MODULE = "sagemaker_estimator_module"
SAGEMAKER_ESTIMATOR_CLASS_NAME = "sagemaker_estimator_class_name"
TUNING_OBJECTIVE_METRIC = "_tuning_objective_metric"


class WarmStartTypes(Enum):
    """How a warm-started tuning job relates to its parents."""

    IDENTICAL_DATA_AND_ALGORITHM = "IdenticalDataAndAlgorithm"
    TRANSFER_LEARNING = "TransferLearning"


class WarmStartConfig:
    """Warm start configuration: parent tuning jobs and the warm start type."""

    def __init__(self, warm_start_type: WarmStartTypes, parents: set[str] | list[str]) -> None:
        """Initialize a warm start configuration.

        Args:
            warm_start_type: Relationship to the parent jobs.
            parents: Names of the parent tuning jobs.

        Raises:
            ValueError: If the type is invalid or there are no parents.
        """
        if warm_start_type not in list(WarmStartTypes):
            raise ValueError(
                f"Invalid type: {warm_start_type}, valid warm start types are: {list(WarmStartTypes)}"
            )
        if not parents:
            raise ValueError(f"Invalid parents: {parents}, parents should not be None/empty")

        self.type = warm_start_type
        self.parents = set(parents)

    @classmethod
    def from_job_desc(cls, warm_start_config: dict[str, Any] | None) -> WarmStartConfig | None:
        """Build a warm start config from the ``WarmStartConfig`` of a tuning job description."""
        if (
            not warm_start_config
            or WARM_START_TYPE not in warm_start_config
            or PARENT_HYPERPARAMETER_TUNING_JOBS not in warm_start_config
        ):
            return None

        parents = [
            parent[HYPERPARAMETER_TUNING_JOB_NAME]
            for parent in warm_start_config[PARENT_HYPERPARAMETER_TUNING_JOBS]
        ]
        return cls(warm_start_type=WarmStartTypes(warm_start_config[WARM_START_TYPE]), parents=parents)

    def to_input_req(self) -> dict[str, Any]:
        """The ``WarmStartConfig`` request structure."""
        return {
            WARM_START_TYPE: self.type.value,
            PARENT_HYPERPARAMETER_TUNING_JOBS: [
                {HYPERPARAMETER_TUNING_JOB_NAME: parent} for parent in sorted(self.parents)
            ],
        }


class HyperparameterTuner:
    """Launch and track a hyperparameter tuning job for an estimator."""

    TUNING_JOB_NAME_MAX_LENGTH = TUNING_JOB_NAME_MAX_LENGTH

    def __init__(
        self,
        estimator: EstimatorBase,
        objective_metric_name: str,
        hyperparameter_ranges: dict[str, ParameterRange],
        metric_definitions: list[dict[str, str]] | None = None,
        strategy: str = "Bayesian",
        objective_type: str = "Maximize",
        max_jobs: int = 1,
        max_parallel_jobs: int = 1,
        tags: list[dict[str, str]] | None = None,
        base_tuning_job_name: str | None = None,
        warm_start_config: WarmStartConfig | None = None,
        early_stopping_type: str = "Off",
    ) -> None:
        """Initialize a tuner.

        Args:
            estimator: Estimator whose training jobs are tuned.
            objective_metric_name: Metric the tuning job optimizes.
            hyperparameter_ranges: Ranges to search, keyed by hyperparameter name.
            metric_definitions: ``[{"Name": ..., "Regex": ...}]`` for custom images.
            strategy: ``Bayesian``, ``Random`` or ``Hyperband``.
            objective_type: ``Maximize`` or ``Minimize``.
            max_jobs: Maximum number of training jobs.
            max_parallel_jobs: Maximum number of concurrent training jobs.
            tags: Tags for the tuning job.
            base_tuning_job_name: Prefix of generated job names.
            warm_start_config: Parent jobs to warm start from.
            early_stopping_type: ``Off`` or ``Auto``.

        Raises:
            ValueError: If no ranges are given or a range violates the
                estimator's hyperparameter validation.
        """
        if not hyperparameter_ranges:
            raise ValueError("Need to specify hyperparameter ranges")

        self._hyperparameter_ranges = hyperparameter_ranges
        self.estimator = estimator
        self.objective_metric_name = objective_metric_name
        self.metric_definitions = metric_definitions
        self._validate_parameter_ranges(estimator, hyperparameter_ranges)

        self.strategy = strategy
        self.objective_type = objective_type
        self.max_jobs = max_jobs
        self.max_parallel_jobs = max_parallel_jobs
        self.tags = tags
        self.base_tuning_job_name = base_tuning_job_name
        self.warm_start_config = warm_start_config
        self.early_stopping_type = early_stopping_type

        self._current_job_name: str | None = None
        self.latest_tuning_job: _TuningJob | None = None
        self.static_hyperparameters: dict[str, str] | None = None

    @property
    def sagemaker_session(self) -> Session:
        return self.estimator.sagemaker_session

    def _prepare_for_tuning(self, job_name: str | None = None, include_cls_metadata: bool = False) -> None:
        """Name the tuning job and compute the static hyperparameters."""
        if job_name is not None:
            self._current_job_name = job_name
        else:
            base_name = self.base_tuning_job_name or base_name_from_image(
                self.estimator.training_image_uri()
            )
            self._current_job_name = name_from_base(
                base_name, max_length=self.TUNING_JOB_NAME_MAX_LENGTH, short=True
            )

        self.static_hyperparameters = self._prepare_static_hyperparameters(
            self.estimator, self._hyperparameter_ranges, include_cls_metadata
        )

    def _prepare_static_hyperparameters(
        self,
        estimator: EstimatorBase,
        hyperparameter_ranges: dict[str, ParameterRange],
        include_cls_metadata: bool,
    ) -> dict[str, str]:
        """Hyperparameters of the estimator that are not tuned, as strings."""
        static_hyperparameters = {
            str(k): str(v)
            for k, v in (estimator.hyperparameters() or {}).items()
            if k not in hyperparameter_ranges
        }

        if include_cls_metadata:
            static_hyperparameters[SAGEMAKER_ESTIMATOR_CLASS_NAME] = json.dumps(
                estimator.__class__.__name__
            )
            static_hyperparameters[SAGEMAKER_ESTIMATOR_MODULE] = json.dumps(
                estimator.__module__
            )

        if isinstance(estimator, Framework):
            static_hyperparameters[TUNING_OBJECTIVE_METRIC] = json.dumps(self.objective_metric_name)
        return static_hyperparameters

    def fit(
        self,
        inputs: Any = None,
        job_name: str | None = None,
        include_cls_metadata: bool = False,
        wait: bool = False,
        **kwargs: Any,
    ) -> None:
        """Start a hyperparameter tuning job.

        Args:
            inputs: Training inputs, as accepted by :meth:`EstimatorBase.fit`.
            job_name: Tuning job name. Generated from the base name when unset.
            include_cls_metadata: Record the estimator class in the static
                hyperparameters so :meth:`attach` can rebuild it.
            wait: Whether to block until the tuning job completes.
            **kwargs: Passed to the estimator's ``_prepare_for_training``
                for record-set inputs, e.g. ``mini_batch_size``.
        """
        self._prepare_estimator_for_tuning(self.estimator, inputs, job_name, **kwargs)
        self._prepare_for_tuning(job_name=job_name, include_cls_metadata=include_cls_metadata)

        self.latest_tuning_job = _TuningJob.start_new(self, inputs)
        if wait:
            self.latest_tuning_job.wait()

    @staticmethod
    def _prepare_estimator_for_tuning(
        estimator: EstimatorBase, inputs: Any, job_name: str | None, **kwargs: Any
    ) -> None:
        from .amazon.amazon_estimator import AmazonAlgorithmEstimatorBase, RecordSet

        if isinstance(estimator, AmazonAlgorithmEstimatorBase) and isinstance(inputs, (list, RecordSet)):
            estimator._prepare_for_training(inputs, job_name=job_name, **kwargs)
        else:
            estimator._prepare_for_training(job_name)

    @classmethod
    def attach(
        cls,
        tuning_job_name: str,
        sagemaker_session: Session | None = None,
        job_details: dict[str, Any] | None = None,
        estimator_cls: type[EstimatorBase] | str | None = None,
    ) -> HyperparameterTuner:
        """Attach to an existing hyperparameter tuning job.

        Args:
            tuning_job_name: Name of the tuning job.
            sagemaker_session: Session used for AWS calls.
            job_details: ``DescribeHyperParameterTuningJob`` response, fetched
                when unset.
            estimator_cls: Estimator class, or its dotted path. Read from the
                static hyperparameters when recorded there, else
                :class:`~sagekit.estimator.Estimator`.

        Returns:
            A tuner bound to the job.
        """
        sagemaker_session = sagemaker_session or Session()
        if job_details is None:
            job_details = sagemaker_session.describe_tuning_job(tuning_job_name)

        estimator = cls._prepare_estimator(
            estimator_cls, job_details["TrainingJobDefinition"], tuning_job_name, sagemaker_session
        )
        init_params = cls._prepare_init_params_from_job_description(job_details)

        tuner = cls(estimator=estimator, **init_params)
        tuner.latest_tuning_job = _TuningJob(sagemaker_session=sagemaker_session, job_name=tuning_job_name)
        tuner._current_job_name = tuning_job_name
        return tuner

    @classmethod
    def _prepare_estimator(
        cls,
        estimator_cls: type[EstimatorBase] | str | None,
        training_details: dict[str, Any],
        tuning_job_name: str,
        sagemaker_session: Session,
    ) -> EstimatorBase:
        """Rebuild the estimator from the training job definition of a tuning job."""
        static_hyperparameters = dict(training_details["StaticHyperParameters"])
        resolved_cls = cls._prepare_estimator_cls(estimator_cls, static_hyperparameters)

        # Shape the definition like a training job description
        job_description = {
            "TrainingJobName": tuning_job_name,
            "RoleArn": training_details["RoleArn"],
            "ResourceConfig": training_details["ResourceConfig"],
            "StoppingCondition": training_details["StoppingCondition"],
            "AlgorithmSpecification": training_details["AlgorithmSpecification"],
            "OutputDataConfig": training_details["OutputDataConfig"],
            "HyperParameters": {
                k: v
                for k, v in static_hyperparameters.items()
                if k not in (SAGEMAKER_ESTIMATOR_CLASS_NAME, SAGEMAKER_ESTIMATOR_MODULE)
            },
            "InputDataConfig": training_details.get("InputDataConfig", []),
        }
        for optional_key in (
            "VpcConfig",
            "EnableNetworkIsolation",
            "EnableInterContainerTrafficEncryption",
            "EnableManagedSpotTraining",
            "CheckpointConfig",
        ):
            if optional_key in training_details:
                job_description[optional_key] = training_details[optional_key]

        init_params = resolved_cls._prepare_init_params_from_job_description(job_description)
        return resolved_cls(sagemaker_session=sagemaker_session, **init_params)

    @staticmethod
    def _prepare_estimator_cls(
        estimator_cls: type[EstimatorBase] | str | None, hyperparameters: dict[str, str]
    ) -> type[EstimatorBase]:
        """Resolve the estimator class from an argument or the recorded class metadata.

        Raises:
            TypeError: If a resolved class is not an estimator.
        """
        if estimator_cls is not None and not isinstance(estimator_cls, str):
            return estimator_cls

        if isinstance(estimator_cls, str):
            module, cls_name = estimator_cls.rsplit(".", 1)
        elif (
            SAGEMAKER_ESTIMATOR_CLASS_NAME in hyperparameters
            and SAGEMAKER_ESTIMATOR_MODULE in hyperparameters
        ):
            module = json.loads(hyperparameters[SAGEMAKER_ESTIMATOR_MODULE])
            cls_name = json.loads(hyperparameters[SAGEMAKER_ESTIMATOR_CLASS_NAME])
        else:
            from .estimator import Estimator

            return Estimator

        resolved = getattr(importlib.import_module(module), cls_name)
        if not (inspect.isclass(resolved) and issubclass(resolved, EstimatorBase)):
            raise TypeError(f"{module}.{cls_name} is not an estimator class")
        return resolved

    @classmethod
    def _prepare_init_params_from_job_description(cls, job_details: dict[str, Any]) -> dict[str, Any]:
        tuning_config = job_details["HyperParameterTuningJobConfig"]
        params: dict[str, Any] = {
            "strategy": tuning_config["Strategy"],
            "max_jobs": tuning_config["ResourceLimits"]["MaxNumberOfTrainingJobs"],
            "max_parallel_jobs": tuning_config["ResourceLimits"]["MaxParallelTrainingJobs"],
            "warm_start_config": WarmStartConfig.from_job_desc(job_details.get("WarmStartConfig")),
            "early_stopping_type": tuning_config["TrainingJobEarlyStoppingType"],
            "base_tuning_job_name": base_from_name(job_details["HyperParameterTuningJobName"]),
        }

        objective = tuning_config.get("HyperParameterTuningJobObjective")
        if objective:
            params["objective_metric_name"] = objective["MetricName"]
            params["objective_type"] = objective["Type"]

        params["hyperparameter_ranges"] = cls._prepare_parameter_ranges_from_job_description(
            tuning_config["ParameterRanges"]
        )
        metric_definitions = job_details["TrainingJobDefinition"]["AlgorithmSpecification"].get(
            "MetricDefinitions"
        )
        if metric_definitions is not None:
            params["metric_definitions"] = metric_definitions
        return params

    @staticmethod
    def _prepare_parameter_ranges_from_job_description(
        parameter_ranges: dict[str, list[dict[str, Any]]],
    ) -> dict[str, ParameterRange]:
        from .parameter import ContinuousParameter, IntegerParameter

        ranges: dict[str, ParameterRange] = {}
        for parameter in parameter_ranges.get("CategoricalParameterRanges", []):
            ranges[parameter["Name"]] = CategoricalParameter(parameter["Values"])
        for parameter in parameter_ranges.get("ContinuousParameterRanges", []):
            ranges[parameter["Name"]] = ContinuousParameter(
                float(parameter["MinValue"]),
                float(parameter["MaxValue"]),
                parameter.get("ScalingType", "Auto"),
            )
        for parameter in parameter_ranges.get("IntegerParameterRanges", []):
            ranges[parameter["Name"]] = IntegerParameter(
                int(parameter["MinValue"]),
                int(parameter["MaxValue"]),
                parameter.get("ScalingType", "Auto"),
            )
        return ranges

    def _ensure_last_tuning_job(self) -> _TuningJob:
        if self.latest_tuning_job is None:
            raise ValueError("No tuning job available")
        return self.latest_tuning_job

    def wait(self) -> None:
        """Wait for the latest tuning job to finish."""
        self._ensure_last_tuning_job().wait()

    def stop_tuning_job(self) -> None:
        """Stop the latest tuning job."""
        self._ensure_last_tuning_job().stop()

    def describe(self) -> dict[str, Any]:
        """Describe the latest tuning job."""
        return self._ensure_last_tuning_job().describe()

    def best_training_job(self) -> str:
        """Name of the best training job of the latest tuning job.

        Raises:
            ValueError: If no tuning job was launched, or no training job
                has completed yet.
        """
        self._ensure_last_tuning_job()
        assert self._current_job_name is not None

        tuning_job_describe_result = self.sagemaker_session.describe_tuning_job(self._current_job_name)
        try:
            return tuning_job_describe_result["BestTrainingJob"]["TrainingJobName"]
        except KeyError as e:
            raise ValueError(
                f"Best training job not available for tuning job: {self._current_job_name}"
            ) from e

    def best_estimator(self, best_training_job: str | None = None) -> EstimatorBase:
        """An estimator attached to the best training job."""
        if best_training_job is None:
            best_training_job = self.best_training_job()
        return self.estimator.__class__.attach(
            training_job_name=best_training_job,
            sagemaker_session=self.sagemaker_session,
        )

    def deploy(
        self,
        initial_instance_count: int,
        instance_type: str,
        serializer: Any = None,
        deserializer: Any = None,
        accelerator_type: str | None = None,
        endpoint_name: str | None = None,
        wait: bool = True,
        model_name: str | None = None,
        kms_key: str | None = None,
        data_capture_config: Any = None,
        **kwargs: Any,
    ) -> Predictor | None:
        """Deploy the best trained model to an endpoint.

        The endpoint is named after the best training job unless
        endpoint_name is given.
        """
        best_training_job = self.best_training_job()
        best_estimator = self.best_estimator(best_training_job)

        return best_estimator.deploy(
            initial_instance_count=initial_instance_count,
            instance_type=instance_type,
            serializer=serializer,
            deserializer=deserializer,
            accelerator_type=accelerator_type,
            endpoint_name=endpoint_name or best_training_job,
            wait=wait,
            model_name=model_name,
            kms_key=kms_key,
            data_capture_config=data_capture_config,
            **kwargs,
        )

    def analytics(self) -> HyperparameterTuningJobAnalytics:
        """Analytics of the latest tuning job."""
        self._ensure_last_tuning_job()
        assert self._current_job_name is not None
        return HyperparameterTuningJobAnalytics(self._current_job_name, self.sagemaker_session)

    @staticmethod
    def _validate_parameter_ranges(
        estimator: EstimatorBase, hyperparameter_ranges: dict[str, ParameterRange]
    ) -> None:
        """Check range bounds against the estimator's hyperparameter validation.

        Raises:
            ValueError: If a bound or categorical value is rejected.
        """
        for kls in inspect.getmro(estimator.__class__)[::-1]:
            for attribute, value in kls.__dict__.items():
                if not isinstance(value, Hyperparameter):
                    continue
                parameter_range = hyperparameter_ranges.get(value.name)
                if parameter_range is None:
                    continue

                if isinstance(parameter_range, CategoricalParameter):
                    candidates = parameter_range.values
                else:
                    candidates = [parameter_range.min_value, parameter_range.max_value]

                for candidate in candidates:
                    try:
                        value.validate(value.data_type(candidate))
                    except (TypeError, ValueError) as e:
                        raise ValueError(
                            f"Value {candidate} for hyperparameter {attribute} is invalid: {e}"
                        ) from e

    def hyperparameter_ranges(self) -> dict[str, list[dict[str, Any]]]:
        """The ``ParameterRanges`` request structure of the tuning job."""
        return self._prepare_parameter_ranges_for_tuning(self._hyperparameter_ranges, self.estimator)

    @staticmethod
    def _prepare_parameter_ranges_for_tuning(
        parameter_ranges: dict[str, ParameterRange], estimator: EstimatorBase
    ) -> dict[str, list[dict[str, Any]]]:
        processed: dict[str, list[dict[str, Any]]] = {}
        for range_type in ParameterRange.RANGE_TYPES:
            hp_ranges = []
            for parameter_name, parameter in parameter_ranges.items():
                if parameter is None or parameter.range_type != range_type:
                    continue
                # Framework containers read every hyperparameter as JSON
                if isinstance(parameter, CategoricalParameter) and isinstance(estimator, Framework):
                    tuning_range = parameter.as_json_range(parameter_name)
                else:
                    tuning_range = parameter.as_tuning_range(parameter_name)
                hp_ranges.append(tuning_range)
            processed[f"{range_type}ParameterRanges"] = hp_ranges
        return processed

    def transfer_learning_tuner(
        self, additional_parents: set[str] | None = None, estimator: EstimatorBase | None = None
    ) -> HyperparameterTuner:
        """A new tuner that warm starts from this tuner's job with ``TransferLearning``."""
        return self._create_warm_start_tuner(
            additional_parents=additional_parents,
            warm_start_type=WarmStartTypes.TRANSFER_LEARNING,
            estimator=estimator,
        )

    def identical_dataset_and_algorithm_tuner(
        self, additional_parents: set[str] | None = None
    ) -> HyperparameterTuner:
        """A new tuner that warm starts from this tuner's job with ``IdenticalDataAndAlgorithm``."""
        return self._create_warm_start_tuner(
            additional_parents=additional_parents,
            warm_start_type=WarmStartTypes.IDENTICAL_DATA_AND_ALGORITHM,
        )

    def _create_warm_start_tuner(
        self,
        additional_parents: set[str] | None,
        warm_start_type: WarmStartTypes,
        estimator: EstimatorBase | None = None,
    ) -> HyperparameterTuner:
        assert self._current_job_name is not None
        all_parents = {self._current_job_name}
        if additional_parents:
            all_parents = all_parents.union(additional_parents)

        return HyperparameterTuner(
            estimator=estimator or self.estimator,
            objective_metric_name=self.objective_metric_name,
            hyperparameter_ranges=self._hyperparameter_ranges,
            strategy=self.strategy,
            objective_type=self.objective_type,
            max_jobs=self.max_jobs,
            max_parallel_jobs=self.max_parallel_jobs,
            warm_start_config=WarmStartConfig(warm_start_type=warm_start_type, parents=all_parents),
            early_stopping_type=self.early_stopping_type,
            metric_definitions=self.metric_definitions,
            tags=self.tags,
        )


class _TuningJob(_Job):
    """Handle to a hyperparameter tuning job."""

    @classmethod
    def start_new(cls, tuner: HyperparameterTuner, inputs: Any) -> _TuningJob:
        """Create a tuning job from a tuner and start it."""
        tuner_args = cls._get_tuner_args(tuner, inputs)
        tuner.sagemaker_session.create_tuning_job(**tuner_args)
        assert tuner._current_job_name is not None
        return cls(tuner.sagemaker_session, tuner._current_job_name)

    @classmethod
    def _get_tuner_args(cls, tuner: HyperparameterTuner, inputs: Any) -> dict[str, Any]:
        """Build the keyword arguments of :meth:`Session.create_tuning_job`."""
        warm_start_config_req = None
        if tuner.warm_start_config:
            warm_start_config_req = tuner.warm_start_config.to_input_req()

        tuning_config = Session.map_tuning_config(
            strategy=tuner.strategy,
            max_jobs=tuner.max_jobs,
            max_parallel_jobs=tuner.max_parallel_jobs,
            early_stopping_type=tuner.early_stopping_type,
            objective_type=tuner.objective_type,
            objective_metric_name=tuner.objective_metric_name,
            parameter_ranges=tuner.hyperparameter_ranges(),
        )

        return {
            "job_name": tuner._current_job_name,
            "tuning_config": tuning_config,
            "training_config": cls._prepare_training_config(inputs, tuner),
            "warm_start_config": warm_start_config_req,
            "tags": tuner.tags,
        }

    @staticmethod
    def _prepare_training_config(inputs: Any, tuner: HyperparameterTuner) -> dict[str, Any]:
        estimator = tuner.estimator
        config = _Job._load_config(inputs, estimator)
        assert tuner.static_hyperparameters is not None

        return Session.map_training_config(
            static_hyperparameters=tuner.static_hyperparameters,
            input_mode=estimator.input_mode,
            role=config["role"],
            output_config=config["output_config"],
            resource_config=config["resource_config"],
            stop_condition=config["stop_condition"],
            input_config=config["input_config"],
            metric_definitions=tuner.metric_definitions or estimator.metric_definitions,
            image_uri=estimator.training_image_uri(),
            vpc_config=config["vpc_config"],
            enable_network_isolation=estimator.enable_network_isolation(),
            encrypt_inter_container_traffic=estimator.encrypt_inter_container_traffic,
            use_spot_instances=estimator.use_spot_instances,
            checkpoint_s3_uri=estimator.checkpoint_s3_uri,
            checkpoint_local_path=estimator.checkpoint_local_path,
        )

    def wait(self) -> None:
        """Wait for the tuning job to finish."""
        self.sagemaker_session.wait_for_tuning_job(self.job_name)

    def describe(self) -> dict[str, Any]:
        return self.sagemaker_session.describe_tuning_job(self.job_name)

    def stop(self) -> None:
        self.sagemaker_session.stop_tuning_job(name=self.job_name)
