"""Data capture, baselining and scheduled monitoring of endpoints."""

from ..processing import NetworkConfig
from .cron_expression_generator import CronExpressionGenerator
from .data_capture_config import DataCaptureConfig
from .dataset_format import DatasetFormat
from .model_monitoring import (
    BaseliningJob,
    DefaultModelMonitor,
    EndpointInput,
    ModelMonitor,
    MonitoringExecution,
    MonitoringOutput,
)
from .monitoring_files import Constraints, ConstraintViolations, Statistics

__all__ = [
    "BaseliningJob",
    "ConstraintViolations",
    "Constraints",
    "CronExpressionGenerator",
    "DataCaptureConfig",
    "DatasetFormat",
    "DefaultModelMonitor",
    "EndpointInput",
    "ModelMonitor",
    "MonitoringExecution",
    "MonitoringOutput",
    "NetworkConfig",
    "Statistics",
]
