"""Naming, timestamp and archive helpers shared across the package."""

from __future__ import annotations

from datetime import datetime
import json
import logging
import os
from pathlib import Path
import random
import re
import tarfile
import tempfile
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

# SageMaker resource names: [a-zA-Z0-9](-*[a-zA-Z0-9]){0,62}
MAX_NAME_LENGTH = 63

_TIMESTAMP_SUFFIX = re.compile(r"^(.+)-\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}-\d{3}$")
_SHORT_TIMESTAMP_SUFFIX = re.compile(r"^(.+)-\d{6}-\d{4}$")


def sagemaker_timestamp() -> str:
    """Return a timestamp with millisecond precision, e.g. ``2024-01-02-03-04-05-678``."""
    moment = time.time()
    moment_ms = repr(moment).split(".")[1][:3].ljust(3, "0")
    return time.strftime(f"%Y-%m-%d-%H-%M-%S-{moment_ms}", time.gmtime(moment))


def sagemaker_short_timestamp() -> str:
    """Return a timestamp that is relatively short in length, e.g. ``240102-0304``."""
    return time.strftime("%y%m%d-%H%M")


def name_from_base(base: str, max_length: int = MAX_NAME_LENGTH, short: bool = False) -> str:
    """Append a timestamp to the provided string.

    The base is trimmed so the full name stays within ``max_length``.

    Args:
        base: String used as the prefix of the name.
        max_length: Maximum length of the returned name.
        short: Whether to use the short timestamp format.

    Returns:
        ``{base}-{timestamp}``.
    """
    timestamp = sagemaker_short_timestamp() if short else sagemaker_timestamp()
    trimmed_base = base[: max_length - len(timestamp) - 1]
    return f"{trimmed_base}-{timestamp}"


def unique_name_from_base(base: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Append a unix timestamp and a random suffix to the provided string."""
    unique = f"{random.randrange(16**4):04x}"
    ts = str(int(time.time()))
    available_length = max_length - 2 - len(ts) - len(unique)
    trimmed = base[:available_length]
    return f"{trimmed}-{ts}-{unique}"


def base_name_from_image(image: str) -> str:
    """Extract the base name of an image to use as a job name prefix.

    Args:
        image: Image URI, e.g. ``123.dkr.ecr.us-west-2.amazonaws.com/sagemaker-xgboost:1.0-1-cpu-py3``.

    Returns:
        Repository name without registry and tag, e.g. ``sagemaker-xgboost``.
    """
    match = re.match(r"^(.+/)?([^:/]+)(:[^:]+)?$", image)
    return match.group(2) if match else image


def base_from_name(name: str) -> str:
    """Extract the base name of a resource name by stripping its timestamp suffix."""
    for pattern in (_TIMESTAMP_SUFFIX, _SHORT_TIMESTAMP_SUFFIX):
        match = pattern.match(name)
        if match:
            return match.group(1)
    return name


def build_dict(key: str, value: Any) -> dict[str, Any]:
    """Return a one-entry dict, or an empty dict when value is falsy."""
    if value:
        return {key: value}
    return {}


def get_config_value(key_path: str, config: dict[str, Any] | None) -> Any:
    """Look up a dotted key path (``a.b.c``) in a nested dict."""
    if config is None:
        return None

    current = config
    for key in key_path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return None
    return current


def to_string(obj: Any) -> str:
    """Convert a hyperparameter value to the string form SageMaker expects."""
    if isinstance(obj, bool):
        return str(obj).lower()
    return str(obj)


def json_encode_hyperparameters(hyperparameters: dict[str, Any]) -> dict[str, str]:
    """JSON-encode every value of a hyperparameter dict."""
    return {str(k): json.dumps(v) for k, v in hyperparameters.items()}


def stringify_hyperparameters(hyperparameters: dict[str, Any]) -> dict[str, str]:
    """Convert every key and value of a hyperparameter dict to ``str``."""
    return {str(k): to_string(v) for k, v in hyperparameters.items()}


# -------------------- Training Status Messages --------------------


def secondary_training_status_changed(
    current_job_description: dict[str, Any] | None,
    prev_job_description: dict[str, Any] | None,
) -> bool:
    """Return True if the secondary status message of a training job changed.

    Args:
        current_job_description: Current ``DescribeTrainingJob`` response.
        prev_job_description: Previous ``DescribeTrainingJob`` response.
    """
    current_transitions = (current_job_description or {}).get("SecondaryStatusTransitions")
    if not current_transitions:
        return False

    prev_transitions = (prev_job_description or {}).get("SecondaryStatusTransitions")
    last_message = prev_transitions[-1].get("StatusMessage", "") if prev_transitions else ""
    message = current_transitions[-1].get("StatusMessage", "")

    return message != last_message


def secondary_training_status_message(
    job_description: dict[str, Any] | None,
    prev_description: dict[str, Any] | None,
) -> str:
    """Format the secondary status transitions added since the previous poll.

    Returns:
        One ``YYYY-MM-DD HH:MM:SS <status> - <message>`` line per new
        transition, or an empty string.
    """
    if not job_description or not job_description.get("SecondaryStatusTransitions"):
        return ""

    current_transitions = job_description["SecondaryStatusTransitions"]
    prev_transitions = (prev_description or {}).get("SecondaryStatusTransitions") or []

    if len(current_transitions) == len(prev_transitions):
        # Secondary status unchanged, only the message changed
        transitions_to_print = current_transitions[-1:]
    else:
        transitions_to_print = current_transitions[len(prev_transitions) - len(current_transitions) :]

    last_modified = job_description.get("LastModifiedTime")
    if isinstance(last_modified, datetime):
        stamp = last_modified.strftime("%Y-%m-%d %H:%M:%S")
    else:
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime())

    lines = [
        f"{stamp} {transition['Status']} - {transition.get('StatusMessage', '')}"
        for transition in transitions_to_print
    ]
    return "\n".join(lines)


# -------------------- Archives --------------------


def create_tar_file(source_files: list[str], target: str | None = None) -> str:
    """Create a gzipped tar file from a list of files and directories.

    Each entry is added at the archive root under its basename.

    Args:
        source_files: Paths of files or directories to include.
        target: Output path. A temporary file is created when omitted.

    Returns:
        Path of the created archive.
    """
    if target:
        filename = target
    else:
        fd, filename = tempfile.mkstemp(suffix=".tar.gz")
        os.close(fd)

    with tarfile.open(filename, mode="w:gz") as tar:
        for source in source_files:
            tar.add(source, arcname=os.path.basename(os.path.normpath(source)))
    return filename


def download_folder(bucket_name: str, prefix: str, target: str, sagemaker_session: Session) -> None:
    """Download a folder (or a single object) from S3 into a local directory.

    Args:
        bucket_name: S3 bucket name.
        prefix: S3 prefix of the folder, or the key of a single object.
        target: Local destination directory.
        sagemaker_session: Session used for S3 access.
    """
    from botocore.exceptions import ClientError

    s3 = sagemaker_session.s3_client()
    prefix = prefix.lstrip("/")

    # Try a single object first
    if not prefix.endswith("/"):
        try:
            file_destination = Path(target) / Path(prefix).name
            file_destination.parent.mkdir(parents=True, exist_ok=True)
            s3.download_file(bucket_name, prefix, str(file_destination))
            return
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in ("404", "NoSuchKey"):
                raise
            prefix = f"{prefix}/"

    sagemaker_session.download_data(path=target, bucket=bucket_name, key_prefix=prefix)
