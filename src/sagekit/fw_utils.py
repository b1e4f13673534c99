"""Helpers shared by the framework estimators and models."""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from typing import TYPE_CHECKING, NamedTuple

from .utils import base_name_from_image, create_tar_file, sagemaker_timestamp

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

_FRAMEWORK_IMAGE_PATTERN = re.compile(
    r"^(?:sagemaker(?:-rl)?-)?"
    r"(tensorflow|mxnet|chainer|pytorch|scikit-learn|xgboost)"
    r"(?:-)?(scriptmode|training)?"
    r":(.*)-(.*?)-(py2|py3\d*)(?:.*)$"
)


class UploadedCode(NamedTuple):
    """S3 location of uploaded user code and the script to run."""

    s3_prefix: str
    script_name: str


def tar_and_upload_dir(
    session: Session,
    bucket: str,
    s3_key_prefix: str,
    script: str,
    directory: str | None = None,
    dependencies: list[str] | None = None,
    kms_key: str | None = None,
) -> UploadedCode:
    """Package user code and upload it to S3 as ``sourcedir.tar.gz``.

    When ``directory`` is an S3 URI it is assumed to be an already uploaded
    archive and is returned unchanged.

    Args:
        session: Session used for S3 access.
        bucket: Target bucket.
        s3_key_prefix: Key prefix under which the archive is stored.
        script: Entry point script.
        directory: Directory with the entry point and its helpers. When
            given, the whole directory is archived.
        dependencies: Additional files or directories added at the archive root.
        kms_key: KMS key used to encrypt the archive.

    Returns:
        The uploaded code location.
    """
    if directory and directory.lower().startswith("s3://"):
        return UploadedCode(s3_prefix=directory, script_name=os.path.basename(script))

    script_name = script if directory else os.path.basename(script)
    key = f"{s3_key_prefix}/sourcedir.tar.gz"

    tmp = tempfile.mkdtemp()
    try:
        source_files = _list_files_to_compress(script, directory) + list(dependencies or [])
        tar_file = create_tar_file(source_files, os.path.join(tmp, "source.tar.gz"))

        extra_args = {"ServerSideEncryption": "aws:kms", "SSEKMSKeyId": kms_key} if kms_key else None
        logger.debug(f"Uploading source archive to s3://{bucket}/{key}")
        session.s3_client().upload_file(tar_file, bucket, key, ExtraArgs=extra_args)
    finally:
        shutil.rmtree(tmp)

    return UploadedCode(s3_prefix=f"s3://{bucket}/{key}", script_name=script_name)


def _list_files_to_compress(script: str, directory: str | None) -> list[str]:
    if directory is None:
        return [script]
    return [os.path.join(directory, name) for name in sorted(os.listdir(directory))]


def validate_source_dir(script: str, directory: str | None) -> bool:
    """Validate that the entry point exists inside the source directory.

    Raises:
        ValueError: If the file does not exist.
    """
    if directory and not directory.lower().startswith("s3://"):
        if not os.path.isfile(os.path.join(directory, script)):
            raise ValueError(
                f'No file named "{script}" was found in directory "{directory}".'
            )
    return True


def framework_name_from_image(image_uri: str) -> tuple[str | None, str | None, str | None, str | None]:
    """Extract the framework and Python version from a framework image URI.

    Args:
        image_uri: e.g. ``.../sagemaker-xgboost:1.0-1-cpu-py3``.

    Returns:
        ``(framework, py_version, tag, scriptmode)``; all None when the
        image is not a recognised framework image.
    """
    sagemaker_pattern = re.compile(r"^(\d+)(\.)dkr(\.)ecr(\.)(.+)(\.)(.*)(/)(.*:.*)$")
    sagemaker_match = sagemaker_pattern.match(image_uri)
    if sagemaker_match is None:
        return None, None, None, None

    name = sagemaker_match.group(9)
    name_match = _FRAMEWORK_IMAGE_PATTERN.match(name)
    if name_match is None:
        return None, None, None, None

    framework, scriptmode, version, processor, py_version = name_match.groups()
    tag = f"{version}-{processor}-{py_version}"
    return framework, py_version, tag, scriptmode


def framework_version_from_tag(image_tag: str) -> str | None:
    """Extract the framework version from an image tag, e.g. ``1.0-1-cpu-py3`` -> ``1.0-1``."""
    tag_pattern = re.compile(r"^(.*)-(cpu|gpu)-(py2|py3\d*)$")
    tag_match = tag_pattern.match(image_tag)
    return None if tag_match is None else tag_match.group(1)


def model_code_key_prefix(code_location_key_prefix: str | None, model_name: str | None, image: str) -> str:
    """Key prefix under which a model's code is uploaded.

    Joins the code location prefix with the model name, or with a name
    derived from the image when no model name is set.
    """
    training_job_name = model_name or f"{base_name_from_image(image)}-{sagemaker_timestamp()}"
    return "/".join(filter(None, [code_location_key_prefix, training_job_name]))


def validate_version_or_image_args(
    framework_version: str | None, py_version: str | None, image_uri: str | None
) -> None:
    """Check that either an image URI or both versions are given.

    Raises:
        ValueError: If image_uri is None and a version is missing.
    """
    if (framework_version is None or py_version is None) and image_uri is None:
        raise ValueError(
            "framework_version or py_version was None, yet image_uri was also None. "
            "Either specify both framework_version and py_version, or specify image_uri."
        )


SM_DATAPARALLEL_SUPPORTED_INSTANCE_TYPES = ("ml.p3.16xlarge", "ml.p3dn.24xlarge", "ml.p4d.24xlarge")
SM_DATAPARALLEL_SUPPORTED_FRAMEWORK_VERSIONS = {"pytorch": ("1.6.0", "1.7.1", "1.8.0", "1.8.1")}
SMDISTRIBUTED_SUPPORTED_STRATEGIES = ("dataparallel", "modelparallel")


def validate_smdistributed(
    instance_type: str | None,
    framework_name: str,
    framework_version: str | None,
    py_version: str | None,
    distribution: dict,
    image_uri: str | None = None,
) -> None:
    """Check an ``smdistributed`` distribution against the training setup.

    Args:
        instance_type: Training instance type, e.g. ``ml.p3.16xlarge``.
        framework_name: Framework of the estimator, e.g. ``pytorch``.
        framework_version: Framework version of the estimator.
        py_version: Python version of the estimator.
        distribution: e.g. ``{"smdistributed": {"dataparallel": {"enabled": True}}}``.
        image_uri: Custom training image. Versions are not checked when set.

    Raises:
        ValueError: If more than one or an unknown strategy is requested, or
            data parallelism is enabled on an unsupported setup.
    """
    if "smdistributed" not in distribution:
        return

    smdistributed = distribution["smdistributed"]
    if not isinstance(smdistributed, dict):
        raise ValueError("smdistributed strategy requires a dictionary")

    if len(smdistributed) > 1:
        raise ValueError(
            "Cannot use more than 1 smdistributed strategy. Choose one of the following "
            f"supported strategies: {', '.join(SMDISTRIBUTED_SUPPORTED_STRATEGIES)}"
        )

    for strategy in smdistributed:
        if strategy not in SMDISTRIBUTED_SUPPORTED_STRATEGIES:
            raise ValueError(
                f"Invalid smdistributed strategy provided: {strategy}. "
                f"Supported strategies: {', '.join(SMDISTRIBUTED_SUPPORTED_STRATEGIES)}"
            )

    if smdistributed.get("dataparallel", {}).get("enabled", False):
        _validate_smdataparallel_args(instance_type, framework_name, framework_version, py_version, image_uri)


def _validate_smdataparallel_args(
    instance_type: str | None,
    framework_name: str,
    framework_version: str | None,
    py_version: str | None,
    image_uri: str | None,
) -> None:
    errors = []
    if instance_type not in SM_DATAPARALLEL_SUPPORTED_INSTANCE_TYPES:
        errors.append(
            f"Provided instance_type {instance_type} is not supported by smdataparallel. "
            f"Please specify one of the supported instance types: "
            f"{', '.join(SM_DATAPARALLEL_SUPPORTED_INSTANCE_TYPES)}"
        )

    if image_uri is None:
        supported = SM_DATAPARALLEL_SUPPORTED_FRAMEWORK_VERSIONS.get(framework_name, ())
        if framework_version not in supported:
            errors.append(
                f"Provided framework_version {framework_version} is not supported by "
                f"smdataparallel. Please specify one of the supported framework versions: "
                f"{', '.join(supported)}"
            )
        if py_version is None or not py_version.startswith("py3"):
            errors.append(
                f"Provided py_version {py_version} is not supported by smdataparallel. "
                "Please specify py_version>=py3"
            )

    if errors:
        raise ValueError("\n".join(errors))
