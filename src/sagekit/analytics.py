"""Pandas views of training job metrics and tuning job results."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
import datetime
import logging
from typing import Any

import pandas as pd

from .session import Session

logger = logging.getLogger(__name__)

METRICS_PERIOD_DEFAULT = 60  # seconds


class AnalyticsMetricsBase(ABC):
    """Base class for analytics that cache a pandas DataFrame."""

    def __init__(self) -> None:
        self._dataframe: pd.DataFrame | None = None

    def export_csv(self, filename: str) -> None:
        """Write the dataframe to a CSV file."""
        self.dataframe().to_csv(filename)

    def dataframe(self, force_refresh: bool = False) -> pd.DataFrame:
        """Return the data as a DataFrame, fetching it on first use or when forced."""
        if force_refresh:
            self.clear_cache()
        if self._dataframe is None:
            self._dataframe = self._fetch_dataframe()
        return self._dataframe

    @abstractmethod
    def _fetch_dataframe(self) -> pd.DataFrame:
        """Build the dataframe from the service."""

    def clear_cache(self) -> None:
        """Forget cached data so the next call fetches it again."""
        self._dataframe = None


class HyperparameterTuningJobAnalytics(AnalyticsMetricsBase):
    """Results of the training jobs launched by a hyperparameter tuning job."""

    def __init__(self, hyperparameter_tuning_job_name: str, sagemaker_session: Session | None = None) -> None:
        """Initialize the analytics.

        Args:
            hyperparameter_tuning_job_name: Name of the tuning job.
            sagemaker_session: Session used for AWS calls.
        """
        self.sagemaker_session = sagemaker_session or Session()
        self.name = hyperparameter_tuning_job_name
        self._tuning_job_describe_result: dict[str, Any] | None = None
        self._training_job_summaries: list[dict[str, Any]] | None = None
        super().__init__()
        self.clear_cache()

    def __repr__(self) -> str:
        return f"<HyperparameterTuningJobAnalytics for {self.name}>"

    def clear_cache(self) -> None:
        super().clear_cache()
        self._tuning_job_describe_result = None
        self._training_job_summaries = None

    def _fetch_dataframe(self) -> pd.DataFrame:
        """One row per training job: tuned hyperparameters, objective value and timing."""

        def reshape(training_summary: dict[str, Any]) -> dict[str, Any]:
            out: dict[str, Any] = {}
            for name, value in training_summary["TunedHyperParameters"].items():
                try:
                    out[name] = float(value)
                except (TypeError, ValueError):
                    out[name] = value
            out["TrainingJobName"] = training_summary["TrainingJobName"]
            out["TrainingJobStatus"] = training_summary["TrainingJobStatus"]
            out["FinalObjectiveValue"] = training_summary.get(
                "FinalHyperParameterTuningJobObjectiveMetric", {}
            ).get("Value")

            start_time = training_summary.get("TrainingStartTime")
            end_time = training_summary.get("TrainingEndTime")
            out["TrainingStartTime"] = start_time
            out["TrainingEndTime"] = end_time
            if start_time and end_time:
                out["TrainingElapsedTimeSeconds"] = (end_time - start_time).total_seconds()
            if "TrainingJobDefinitionName" in training_summary:
                out["TrainingJobDefinitionName"] = training_summary["TrainingJobDefinitionName"]
            return out

        return pd.DataFrame([reshape(tjs) for tjs in self.training_job_summaries()])

    @property
    def tuning_ranges(self) -> dict[str, Any]:
        """Hyperparameter ranges of the tuning job, keyed by parameter name."""
        description = self.description()
        if "TrainingJobDefinition" in description:
            return self._prepare_parameter_ranges(
                description["HyperParameterTuningJobConfig"]["ParameterRanges"]
            )

        return {
            definition["DefinitionName"]: self._prepare_parameter_ranges(
                definition["HyperParameterRanges"]
            )
            for definition in description.get("TrainingJobDefinitions", [])
        }

    @staticmethod
    def _prepare_parameter_ranges(parameter_ranges: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for _, ranges in parameter_ranges.items():
            for param in ranges:
                out[param["Name"]] = param
        return out

    def description(self, force_refresh: bool = False) -> dict[str, Any]:
        """The cached ``DescribeHyperParameterTuningJob`` response."""
        if force_refresh:
            self.clear_cache()
        if self._tuning_job_describe_result is None:
            self._tuning_job_describe_result = self.sagemaker_session.describe_tuning_job(self.name)
        return self._tuning_job_describe_result

    def training_job_summaries(self, force_refresh: bool = False) -> list[dict[str, Any]]:
        """All training job summaries of the tuning job, following pagination."""
        if force_refresh:
            self.clear_cache()
        if self._training_job_summaries is not None:
            return self._training_job_summaries

        output: list[dict[str, Any]] = []
        next_args: dict[str, Any] = {}
        for count in range(100):
            logger.debug(f"Calling list_training_jobs_for_hyper_parameter_tuning_job {count}")
            raw_result = self.sagemaker_session.sagemaker_client.list_training_jobs_for_hyper_parameter_tuning_job(
                HyperParameterTuningJobName=self.name, MaxResults=100, **next_args
            )
            output.extend(raw_result["TrainingJobSummaries"])
            if "NextToken" not in raw_result or len(raw_result["TrainingJobSummaries"]) == 0:
                break
            next_args["NextToken"] = raw_result["NextToken"]
        logger.info(f"{len(output)} training jobs found for tuning job {self.name}")
        self._training_job_summaries = output
        return output


class TrainingJobAnalytics(AnalyticsMetricsBase):
    """CloudWatch metrics of a training job."""

    CLOUDWATCH_NAMESPACE = "/aws/sagemaker/TrainingJobs"

    def __init__(
        self,
        training_job_name: str,
        metric_names: list[str] | None = None,
        sagemaker_session: Session | None = None,
        start_time: datetime.datetime | None = None,
        end_time: datetime.datetime | None = None,
        period: int | None = None,
    ) -> None:
        """Initialize the analytics.

        Args:
            training_job_name: Name of the training job.
            metric_names: Metrics to fetch. Defaults to the job's metric definitions.
            sagemaker_session: Session used for AWS calls.
            start_time: Start of the metric window. Defaults to the job start.
            end_time: End of the metric window. Defaults to the job end, or now.
            period: CloudWatch aggregation period in seconds.
        """
        self.sagemaker_session = sagemaker_session or Session()
        self._cloudwatch = self.sagemaker_session.cloudwatch_client()
        self.name = training_job_name
        self._time_interval = self._determine_timeinterval(start_time, end_time)
        self._period = period or METRICS_PERIOD_DEFAULT
        self._metric_names = metric_names or self._metric_names_for_training_job()
        super().__init__()
        self.clear_cache()

    def __repr__(self) -> str:
        return f"<TrainingJobAnalytics for {self.name}>"

    def clear_cache(self) -> None:
        super().clear_cache()
        self._data: dict[str, list[Any]] = defaultdict(list)

    def _determine_timeinterval(
        self, start_time: datetime.datetime | None, end_time: datetime.datetime | None
    ) -> dict[str, datetime.datetime]:
        description = self.sagemaker_session.describe_training_job(self.name)
        start_time = start_time or description["TrainingStartTime"]
        # Metrics may lag the job end by a minute.
        end_time = end_time or description.get(
            "TrainingEndTime", datetime.datetime.now(datetime.timezone.utc)
        ) + datetime.timedelta(minutes=1)
        return {"start_time": start_time, "end_time": end_time}

    def _fetch_dataframe(self) -> pd.DataFrame:
        for metric_name in self._metric_names:
            self._fetch_metric(metric_name)
        return pd.DataFrame(self._data)

    def _fetch_metric(self, metric_name: str) -> None:
        request = {
            "Namespace": self.CLOUDWATCH_NAMESPACE,
            "MetricName": metric_name,
            "Dimensions": [{"Name": "TrainingJobName", "Value": self.name}],
            "StartTime": self._time_interval["start_time"],
            "EndTime": self._time_interval["end_time"],
            "Period": self._period,
            "Statistics": ["Average"],
        }
        raw_cwm_data = self._cloudwatch.get_metric_statistics(**request)["Datapoints"]
        if len(raw_cwm_data) == 0:
            logger.warning(f"Warning: No metrics called {metric_name} found")
            return

        base_time = min(raw_cwm_data, key=lambda pt: pt["Timestamp"])["Timestamp"]
        for pt in raw_cwm_data:
            elapsed_seconds = (pt["Timestamp"] - base_time).total_seconds()
            self._add_single_metric(elapsed_seconds, metric_name, pt["Average"])

    def _add_single_metric(self, timestamp: float, metric_name: str, value: float) -> None:
        self._data["timestamp"].append(timestamp)
        self._data["metric_name"].append(metric_name)
        self._data["value"].append(value)

    def _metric_names_for_training_job(self) -> list[str]:
        description = self.sagemaker_session.describe_training_job(self.name)
        metric_definitions = description["AlgorithmSpecification"].get("MetricDefinitions", [])
        return [md["Name"] for md in metric_definitions]
