"""Session configuration schemas with strict validation.

Uses Pydantic for fail-fast validation of the settings a :class:`Session`
is built from. Configuration may come from a YAML file or from the
environment.
"""

from __future__ import annotations

import os
from pathlib import Path
import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

ROLE_ARN_PATTERN = r"^arn:aws[a-z-]*:iam::\d{12}:role/.+$"
ROLE_NAME_PATTERN = r"^[\w+=,.@/-]{1,64}$"
REGION_PATTERN = r"^(us|eu|ap|sa|ca|me|af|il|mx|cn|us-gov|us-iso|us-isob)-[a-z]+-\d$"

ENV_ROLE = "SAGEKIT_ROLE"
ENV_BUCKET = "SAGEKIT_BUCKET"


class AWSConfig(BaseModel):
    """AWS-specific configuration with validation."""

    model_config = ConfigDict(frozen=True)

    region: str = "us-east-1"
    role: Annotated[
        str | None, Field(description="SageMaker execution role ARN or name")
    ] = None
    bucket: Annotated[
        str | None, Field(description="Default S3 bucket for artifacts")
    ] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str | None) -> str | None:
        """Validate that role is an IAM role ARN or a bare role name."""
        if v is None:
            return v
        if v.startswith("arn:"):
            if not re.match(ROLE_ARN_PATTERN, v):
                raise ValueError(
                    f"role ARN format invalid. Expected: arn:aws:iam::ACCOUNT_ID:role/ROLE_NAME. Got: {v}"
                )
            return v
        if not re.match(ROLE_NAME_PATTERN, v):
            raise ValueError(f"role must be an IAM role ARN or role name. Got: {v}")
        return v

    @field_validator("bucket")
    @classmethod
    def validate_bucket_name(cls, v: str | None) -> str | None:
        """Validate S3 bucket naming rules."""
        if v is None:
            return v
        if len(v) < 3 or len(v) > 63:
            raise ValueError(f"bucket name must be 3-63 characters. Got: {len(v)}")
        if not re.match(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", v):
            raise ValueError(
                f"bucket name must start/end with letter or number, contain only lowercase letters, numbers, hyphens, periods. Got: {v}"
            )
        return v

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate AWS region format."""
        if not re.match(REGION_PATTERN, v):
            raise ValueError(f"region '{v}' is not a valid AWS region name")
        return v


class RetryConfig(BaseModel):
    """botocore retry and timeout settings."""

    model_config = ConfigDict(frozen=True)

    mode: str = "adaptive"
    max_attempts: Annotated[int, Field(ge=1, le=20)] = 5
    connect_timeout: Annotated[int, Field(gt=0)] = 10
    read_timeout: Annotated[int, Field(gt=0)] = 60

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        """Validate botocore retry mode."""
        if v not in ("legacy", "standard", "adaptive"):
            raise ValueError(f"retry mode must be legacy, standard or adaptive. Got: {v}")
        return v


class PollingConfig(BaseModel):
    """Poll intervals used by the waiters."""

    model_config = ConfigDict(frozen=True)

    job_poll_seconds: Annotated[float, Field(gt=0)] = 5
    endpoint_poll_seconds: Annotated[float, Field(gt=0)] = 30
    log_poll_seconds: Annotated[float, Field(gt=0)] = 10


class SessionConfig(BaseModel):
    """Top-level session configuration, typically loaded from YAML."""

    model_config = ConfigDict(frozen=True)

    aws: AWSConfig = Field(default_factory=AWSConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)

    # Prefix used when generating the default bucket name
    default_bucket_prefix: str = "sagemaker"

    # Tags added to every resource created through the session
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("default_bucket_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Validate the default bucket prefix."""
        if not re.match(r"^[a-z0-9][a-z0-9-]*$", v):
            raise ValueError(
                f"default_bucket_prefix must contain only lowercase letters, numbers, hyphens. Got: {v}"
            )
        return v

    def tag_list(self) -> list[dict[str, str]]:
        """Get configured tags in SageMaker ``Tags`` format."""
        return [{"Key": k, "Value": v} for k, v in self.tags.items()]


def load_config(path: Path | str) -> SessionConfig:
    """Load session configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Returns:
        Validated SessionConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config validation fails.
    """
    import yaml

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    # Handle 'sagekit' section wrapper if present
    if "sagekit" in data and isinstance(data["sagekit"], dict):
        data = data["sagekit"]

    return SessionConfig.model_validate(data)


def config_from_env() -> SessionConfig:
    """Build session configuration from environment variables.

    Reads ``SAGEKIT_ROLE``, ``SAGEKIT_BUCKET`` and ``AWS_REGION`` (falling
    back to ``AWS_DEFAULT_REGION``, then ``us-east-1``).
    """
    region = (
        os.environ.get("AWS_REGION")
        or os.environ.get("AWS_DEFAULT_REGION")
        or "us-east-1"
    )
    return SessionConfig(
        aws=AWSConfig(
            region=region,
            role=os.environ.get(ENV_ROLE) or None,
            bucket=os.environ.get(ENV_BUCKET) or None,
        )
    )
