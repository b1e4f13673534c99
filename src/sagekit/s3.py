"""S3 URI parsing and upload/download helpers."""

from __future__ import annotations

import logging
import os
import re
from typing import TYPE_CHECKING
from urllib.parse import urlparse

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


def parse_s3_url(url: str) -> tuple[str, str]:
    """Parse an S3 URI into bucket and key.

    Args:
        url: Full S3 URI in format s3://bucket/key/path

    Returns:
        Tuple of (bucket, key).

    Raises:
        ValueError: If URI format is invalid.
    """
    parsed = urlparse(url)
    if parsed.scheme != "s3":
        raise ValueError(f"Expecting 's3' scheme, got: {parsed.scheme} in {url}.")
    if not parsed.netloc:
        raise ValueError(f"Invalid S3 URI (missing bucket): {url}")
    return parsed.netloc, parsed.path.lstrip("/")


def s3_path_join(*args: str) -> str:
    """Join S3 path segments with ``/``.

    Keeps an ``s3://`` scheme on the first segment, removes empty segments
    and collapses duplicate slashes.

    Example:
        ``s3_path_join("s3://bucket/", "/prefix/", "file")`` ->
        ``s3://bucket/prefix/file``
    """
    if not args:
        return ""

    first = str(args[0])
    prefix = ""
    if first.startswith("s3://"):
        prefix = "s3://"
        first = first[len("s3://") :]

    parts = [first, *(str(a) for a in args[1:])]
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    return prefix + re.sub("/+", "/", "/".join(cleaned))


def is_s3_uri(uri: str) -> bool:
    """Check if a string is an S3 URI."""
    return isinstance(uri, str) and uri.startswith("s3://")


class S3Uploader:
    """Contains static methods for uploading to S3."""

    @staticmethod
    def upload(
        local_path: str,
        desired_s3_uri: str,
        sagemaker_session: Session,
        kms_key: str | None = None,
    ) -> str:
        """Upload a file or directory to S3.

        Args:
            local_path: Path of the local file or directory.
            desired_s3_uri: S3 URI (prefix) to upload under.
            sagemaker_session: Session used for S3 access.
            kms_key: KMS key used to encrypt the objects.

        Returns:
            The S3 URI of the uploaded data.
        """
        bucket, key_prefix = parse_s3_url(desired_s3_uri)
        extra_args = {"SSEKMSKeyId": kms_key, "ServerSideEncryption": "aws:kms"} if kms_key else None

        return sagemaker_session.upload_data(
            path=local_path, bucket=bucket, key_prefix=key_prefix, extra_args=extra_args
        )

    @staticmethod
    def upload_string_as_file_body(
        body: str,
        desired_s3_uri: str,
        sagemaker_session: Session,
        kms_key: str | None = None,
    ) -> str:
        """Upload a string as an S3 object body.

        Returns:
            The S3 URI of the uploaded object.
        """
        bucket, key = parse_s3_url(desired_s3_uri)
        return sagemaker_session.upload_string_as_file_body(
            body=body, bucket=bucket, key=key, kms_key=kms_key
        )


class S3Downloader:
    """Contains static methods for downloading from S3."""

    @staticmethod
    def download(
        s3_uri: str,
        local_path: str,
        sagemaker_session: Session,
        kms_key: str | None = None,
    ) -> list[str]:
        """Download every object under an S3 prefix to a local directory.

        S3 decrypts SSE-KMS objects on read, so ``kms_key`` adds no request
        arguments.

        Returns:
            Local paths of the downloaded files.
        """
        bucket, key_prefix = parse_s3_url(s3_uri)
        return sagemaker_session.download_data(path=local_path, bucket=bucket, key_prefix=key_prefix)

    @staticmethod
    def read_file(s3_uri: str, sagemaker_session: Session) -> str:
        """Read a single S3 object and return its body as a string."""
        bucket, key = parse_s3_url(s3_uri)
        return sagemaker_session.read_s3_file(bucket, key)

    @staticmethod
    def list(s3_uri: str, sagemaker_session: Session) -> list[str]:
        """List the S3 URIs of all objects under a prefix."""
        bucket, key_prefix = parse_s3_url(s3_uri)
        keys = sagemaker_session.list_s3_files(bucket=bucket, key_prefix=key_prefix)
        return [s3_path_join("s3://", bucket, key) for key in keys]


def local_path_to_key(local_path: str, key_prefix: str) -> str:
    """Key under which a single local file is uploaded."""
    return s3_path_join(key_prefix, os.path.basename(local_path))
