"""SageKit - Train, deploy and monitor machine-learning models on Amazon SageMaker.

A thin, boto3-based layer over the SageMaker control plane:

- Estimators that start training jobs and deploy their artifacts
- Models, endpoints and predictors with pluggable serialization
- Batch transform, processing and hyperparameter tuning jobs
- Data capture, baselining and scheduled monitoring of endpoints
- Amazon's built-in algorithms (k-means, PCA) and the XGBoost,
  Scikit-learn and PyTorch framework containers

Quick Start
-----------

CLI usage:

    # Check job status
    sagekit status my-training-job

    # Resolve an image URI
    sagekit image-uri xgboost --version 1.0-1 --region us-west-2

Python API:

    from sagekit import Estimator, Session
    from sagekit.config import load_config

    session = Session(load_config("sagekit.yaml"))
    estimator = Estimator(image_uri, role, 1, "ml.m5.xlarge", sagemaker_session=session)
    estimator.fit({"train": "s3://bucket/train"})
    predictor = estimator.deploy(1, "ml.m5.xlarge")

Environment Variables
--------------------

    SAGEKIT_ROLE: SageMaker execution role ARN
    SAGEKIT_BUCKET: Default S3 bucket for artifacts
    AWS_REGION: AWS region (default: us-east-1)
"""

from .config import AWSConfig, PollingConfig, RetryConfig, SessionConfig, load_config
from .estimator import Estimator, EstimatorBase, Framework
from .exceptions import (
    BucketAccessError,
    CredentialsError,
    ImageUriError,
    SageKitError,
    UnexpectedStatusError,
    WaitTimeoutError,
)
from .inputs import FileSystemInput, ShuffleConfig, TrainingInput, TransformInput
from .model import FrameworkModel, Model
from .parameter import CategoricalParameter, ContinuousParameter, IntegerParameter
from .predictor import Predictor
from .processing import (
    NetworkConfig,
    ProcessingInput,
    ProcessingJob,
    ProcessingOutput,
    Processor,
    ScriptProcessor,
)
from .session import Session
from .transformer import Transformer
from .tuner import HyperparameterTuner, WarmStartConfig, WarmStartTypes

__all__ = [
    # Config
    "AWSConfig",
    "PollingConfig",
    "RetryConfig",
    "SessionConfig",
    "load_config",
    # Session
    "Session",
    # Errors
    "BucketAccessError",
    "CredentialsError",
    "ImageUriError",
    "SageKitError",
    "UnexpectedStatusError",
    "WaitTimeoutError",
    # Training
    "Estimator",
    "EstimatorBase",
    "FileSystemInput",
    "Framework",
    "ShuffleConfig",
    "TrainingInput",
    # Hosting
    "FrameworkModel",
    "Model",
    "Predictor",
    # Batch transform
    "Transformer",
    "TransformInput",
    # Processing
    "NetworkConfig",
    "ProcessingInput",
    "ProcessingJob",
    "ProcessingOutput",
    "Processor",
    "ScriptProcessor",
    # Tuning
    "CategoricalParameter",
    "ContinuousParameter",
    "HyperparameterTuner",
    "IntegerParameter",
    "WarmStartConfig",
    "WarmStartTypes",
]

__version__ = "0.1.0"
