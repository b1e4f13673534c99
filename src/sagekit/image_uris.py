"""Resolve the ECR image URIs of built-in algorithms and framework containers.

Each framework or algorithm has a JSON lookup table under
``image_uri_config/``. A table either lists a ``scope`` shared by all of
its versions, or holds one sub-table per scope (``training``,
``inference``). Version entries carry the ECR ``repository``, the account
``registries`` per region, and optionally ``processors``, ``py_versions``
and a ``tag_prefix``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .exceptions import ImageUriError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent / "image_uri_config"

ECR_URI_TEMPLATE = "{registry}.dkr.{hostname}/{repository}"


def retrieve(
    framework: str,
    region: str,
    version: str | None = None,
    py_version: str | None = None,
    instance_type: str | None = None,
    accelerator_type: str | None = None,
    image_scope: str | None = None,
) -> str:
    """Retrieve the ECR URI of a Docker image.

    Args:
        framework: Framework or algorithm name, e.g. ``xgboost`` or ``kmeans``.
        region: AWS region.
        version: Framework or algorithm version. Required when the table
            holds more than one version.
        py_version: Python version, e.g. ``py3``. Required when the
            version supports more than one.
        instance_type: SageMaker instance type, used to pick the processor.
        accelerator_type: Elastic Inference accelerator type. Selects the
            ``eia`` scope.
        image_scope: ``training`` or ``inference``. Required when the two
            scopes use different images.

    Returns:
        The image URI.

    Raises:
        ImageUriError: If any argument does not match the lookup table.
    """
    config = _config_for_framework_and_scope(
        config_for_framework(framework), image_scope, accelerator_type
    )

    version = _validate_version_and_set_if_needed(version, config, framework)
    version_config = config["versions"][_version_for_config(version, config)]

    py_version = _validate_py_version_and_set_if_needed(py_version, version_config, framework)

    registry = _registry_from_region(region, version_config["registries"])
    hostname = _hostname(region)

    processors = version_config.get("processors", config.get("processors"))
    processor = _processor(instance_type, processors)

    repository = version_config["repository"]
    tag = _format_tag(version_config.get("tag_prefix", version), processor, py_version)
    if tag:
        repository = f"{repository}:{tag}"

    return ECR_URI_TEMPLATE.format(registry=registry, hostname=hostname, repository=repository)


def config_for_framework(framework: str) -> dict[str, Any]:
    """Load the JSON lookup table of a framework or algorithm.

    Raises:
        ImageUriError: If no table exists for the framework.
    """
    path = CONFIG_DIR / f"{framework}.json"
    if not path.exists():
        supported = sorted(p.stem for p in CONFIG_DIR.glob("*.json"))
        raise ImageUriError(
            f"Unsupported framework: {framework}. Supported framework(s): {', '.join(supported)}."
        )
    with open(path) as f:
        return json.load(f)


def _config_for_framework_and_scope(
    config: dict[str, Any], image_scope: str | None, accelerator_type: str | None = None
) -> dict[str, Any]:
    available_scopes = list(config.get("scope", config.keys()))

    if accelerator_type:
        if image_scope not in ("eia", "inference"):
            logger.warning(
                f"Elastic inference is for inference only. Ignoring image scope: {image_scope}."
            )
        image_scope = "eia"

    if len(available_scopes) == 1:
        if image_scope and image_scope != available_scopes[0]:
            logger.warning(
                f"Defaulting to only supported image scope: {available_scopes[0]}. "
                f"Ignoring image scope: {image_scope}."
            )
        image_scope = available_scopes[0]

    if not image_scope and "scope" in config and set(available_scopes) == {"training", "inference"}:
        logger.info(
            f"Same images used for training and inference. "
            f"Defaulting to image scope: {available_scopes[0]}."
        )
        image_scope = available_scopes[0]

    _validate_arg(image_scope, available_scopes, "image scope")
    return config if "scope" in config else config[image_scope]


def _validate_version_and_set_if_needed(
    version: str | None, config: dict[str, Any], framework: str
) -> str:
    available_versions = list(config["versions"].keys())
    aliased_versions = list(config.get("version_aliases", {}).keys())

    if len(available_versions) == 1 and version not in aliased_versions:
        if version and version != available_versions[0]:
            logger.warning(f"Ignoring {framework} version: {version}.")
        return available_versions[0]

    _validate_arg(version, available_versions + aliased_versions, f"{framework} version")
    assert version is not None
    return version


def _version_for_config(version: str, config: dict[str, Any]) -> str:
    return config.get("version_aliases", {}).get(version, version)


def _validate_py_version_and_set_if_needed(
    py_version: str | None, version_config: dict[str, Any], framework: str
) -> str | None:
    available_versions = version_config.get("py_versions")

    if not available_versions:
        if py_version:
            logger.info(f"{framework} does not use a Python version. Ignoring: {py_version}.")
        return None

    if py_version is None and len(available_versions) == 1:
        return available_versions[0]

    _validate_arg(py_version, available_versions, "Python version")
    return py_version


def _registry_from_region(region: str, registry_dict: dict[str, str]) -> str:
    _validate_arg(region, list(registry_dict.keys()), "region")
    return registry_dict[region]


def _hostname(region: str) -> str:
    domain = "amazonaws.com.cn" if region.startswith("cn-") else "amazonaws.com"
    return f"ecr.{region}.{domain}"


def _processor(instance_type: str | None, available_processors: list[str] | None) -> str | None:
    """Map an instance type to the processor part of an image tag.

    Raises:
        ImageUriError: If the instance type is malformed or its processor
            is not available.
    """
    if not available_processors:
        if instance_type:
            logger.debug(f"Ignoring unnecessary instance type: {instance_type}.")
        return None

    if len(available_processors) == 1 and not instance_type:
        return available_processors[0]

    if not instance_type:
        raise ImageUriError(
            "Empty SageMaker instance type. For options, see: "
            "https://aws.amazon.com/sagemaker/pricing/instance-types"
        )

    if instance_type.startswith("local"):
        processor = "cpu" if instance_type == "local" else "gpu"
    elif not instance_type.startswith("ml."):
        raise ImageUriError(
            f"Invalid SageMaker instance type: {instance_type}. For options, see: "
            "https://aws.amazon.com/sagemaker/pricing/instance-types"
        )
    else:
        family = instance_type.split(".")[1]
        if family.startswith("inf"):
            processor = "inf"
        elif family[0] in ("g", "p"):
            processor = "gpu"
        else:
            processor = "cpu"

    _validate_arg(processor, available_processors, "processor")
    return processor


def _format_tag(tag_prefix: str | None, processor: str | None, py_version: str | None) -> str:
    return "-".join(x for x in (tag_prefix, processor, py_version) if x)


def _validate_arg(arg: str | None, available_options: list[str], arg_name: str) -> None:
    if arg is None or arg not in available_options:
        raise ImageUriError(
            f"Unsupported {arg_name}: {arg}. You may need to upgrade sagekit for newer "
            f"{arg_name}s. Supported {arg_name}(s): {', '.join(available_options)}."
        )
