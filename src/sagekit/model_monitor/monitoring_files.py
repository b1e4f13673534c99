"""Statistics, constraints and constraint violation files of model monitoring."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, TypeVar
import uuid

from botocore.exceptions import ClientError

from ..s3 import S3Downloader, S3Uploader, s3_path_join
from ..session import Session

logger = logging.getLogger(__name__)

NO_SUCH_KEY_CODE = "NoSuchKey"

_FileT = TypeVar("_FileT", bound="ModelMonitoringFile")


class ModelMonitoringFile:
    """A JSON file in S3 produced or consumed by model monitoring jobs."""

    default_file_name = ""

    def __init__(
        self,
        body_dict: dict[str, Any],
        file_s3_uri: str,
        kms_key: str | None = None,
        sagemaker_session: Session | None = None,
    ) -> None:
        """Initialize a monitoring file.

        Args:
            body_dict: Parsed JSON body of the file.
            file_s3_uri: S3 location of the file.
            kms_key: KMS key used when saving the file.
            sagemaker_session: Session used for S3 access.
        """
        self.body_dict = body_dict
        self.file_s3_uri = file_s3_uri
        self.kms_key = kms_key
        self.session = sagemaker_session or Session()

    def save(self, new_save_location_s3_uri: str | None = None) -> str:
        """Upload the body, to a new location when given.

        Returns:
            The S3 URI of the saved file.
        """
        if new_save_location_s3_uri is not None:
            self.file_s3_uri = new_save_location_s3_uri

        return S3Uploader.upload_string_as_file_body(
            body=json.dumps(self.body_dict),
            desired_s3_uri=self.file_s3_uri,
            sagemaker_session=self.session,
            kms_key=self.kms_key,
        )

    @classmethod
    def from_s3_uri(
        cls: type[_FileT],
        file_s3_uri: str,
        kms_key: str | None = None,
        sagemaker_session: Session | None = None,
    ) -> _FileT:
        """Read the file from S3.

        Raises:
            ClientError: If the object cannot be read; a missing object is
                logged with a hint first.
        """
        sagemaker_session = sagemaker_session or Session()
        try:
            body = S3Downloader.read_file(s3_uri=file_s3_uri, sagemaker_session=sagemaker_session)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == NO_SUCH_KEY_CODE:
                logger.error(
                    f"Could not retrieve {cls.__name__} file at location '{file_s3_uri}'. "
                    f"To manually retrieve a {cls.__name__} object from a given uri, use "
                    f"'{cls.__name__}.from_s3_uri(my_s3_uri)'."
                )
            raise

        return cls(
            body_dict=json.loads(body),
            file_s3_uri=file_s3_uri,
            kms_key=kms_key,
            sagemaker_session=sagemaker_session,
        )

    @classmethod
    def from_string(
        cls: type[_FileT],
        file_string: str,
        kms_key: str | None = None,
        file_name: str | None = None,
        sagemaker_session: Session | None = None,
    ) -> _FileT:
        """Upload a JSON string to the default bucket and read it back as a file object."""
        sagemaker_session = sagemaker_session or Session()
        desired_s3_uri = s3_path_join(
            "s3://",
            sagemaker_session.default_bucket(),
            "monitoring",
            str(uuid.uuid4()),
            file_name or cls.default_file_name,
        )
        s3_uri = S3Uploader.upload_string_as_file_body(
            body=file_string,
            desired_s3_uri=desired_s3_uri,
            sagemaker_session=sagemaker_session,
            kms_key=kms_key,
        )
        return cls.from_s3_uri(s3_uri, kms_key=kms_key, sagemaker_session=sagemaker_session)

    @classmethod
    def from_file_path(
        cls: type[_FileT],
        file_path: str,
        kms_key: str | None = None,
        sagemaker_session: Session | None = None,
    ) -> _FileT:
        """Upload a local JSON file to the default bucket and read it back as a file object."""
        with open(file_path) as f:
            file_body = f.read()

        return cls.from_string(
            file_body,
            kms_key=kms_key,
            file_name=os.path.basename(file_path),
            sagemaker_session=sagemaker_session,
        )


class Statistics(ModelMonitoringFile):
    """Statistics computed by a baselining job or a monitoring execution."""

    default_file_name = "statistics.json"


class Constraints(ModelMonitoringFile):
    """Constraints suggested by a baselining job."""

    default_file_name = "constraints.json"

    def set_monitoring(self, enable_monitoring: bool, feature_name: str | None = None) -> None:
        """Enable or disable constraint evaluation, globally or for one feature.

        Call :meth:`save` to persist the change.
        """
        flag = "Enabled" if enable_monitoring else "Disabled"
        if feature_name is None:
            self.body_dict.setdefault("monitoring_config", {})["evaluate_constraints"] = flag
            return

        for feature in self.body_dict.get("features", []):
            if feature["name"] == feature_name:
                string_constraints = feature.setdefault("string_constraints", {})
                overrides = string_constraints.setdefault("monitoring_config_overrides", {})
                overrides["evaluate_constraints"] = flag


class ConstraintViolations(ModelMonitoringFile):
    """Constraint violations found by a monitoring execution."""

    default_file_name = "constraint_violations.json"
