"""Helpers for the ``VpcConfig`` request structure."""

from __future__ import annotations

from typing import Any

SUBNETS_KEY = "Subnets"
SECURITY_GROUP_IDS_KEY = "SecurityGroupIds"
VPC_CONFIG_KEY = "VpcConfig"

# Sentinel meaning "reuse the VpcConfig of the training job"
VPC_CONFIG_DEFAULT = "VPC_CONFIG_DEFAULT"


def to_dict(
    subnets: list[str] | None, security_group_ids: list[str] | None
) -> dict[str, list[str]] | None:
    """Prepare a ``VpcConfig`` dict from subnets and security group ids.

    Returns:
        The dict, or None if either argument is None.
    """
    if subnets is None or security_group_ids is None:
        return None
    return {SUBNETS_KEY: subnets, SECURITY_GROUP_IDS_KEY: security_group_ids}


def from_dict(
    vpc_config: dict[str, Any] | None, do_sanitize: bool = False
) -> tuple[list[str] | None, list[str] | None]:
    """Extract subnets and security group ids from a ``VpcConfig`` dict.

    Args:
        vpc_config: The dict, or None.
        do_sanitize: Whether to validate the dict first.

    Returns:
        ``(subnets, security_group_ids)``; ``(None, None)`` when vpc_config is None.

    Raises:
        KeyError: If a required key is missing and do_sanitize is False.
    """
    if do_sanitize:
        vpc_config = sanitize(vpc_config)
    if vpc_config is None:
        return None, None
    return vpc_config[SUBNETS_KEY], vpc_config[SECURITY_GROUP_IDS_KEY]


def sanitize(vpc_config: dict[str, Any] | None) -> dict[str, list[str]] | None:
    """Validate a ``VpcConfig`` dict and drop unexpected keys.

    Raises:
        TypeError: If vpc_config or one of its values has the wrong type.
        ValueError: If a required key is missing or empty.
    """
    if vpc_config is None:
        return None
    if not isinstance(vpc_config, dict):
        raise TypeError(f"vpc_config is not a dict: {vpc_config}")
    if not vpc_config:
        raise ValueError(f"vpc_config is empty: {vpc_config}")

    subnets = vpc_config.get(SUBNETS_KEY)
    if subnets is None:
        raise ValueError(f"vpc_config is missing key: {SUBNETS_KEY}")
    if not isinstance(subnets, list):
        raise TypeError(f"vpc_config value for {SUBNETS_KEY} is not a list: {subnets}")
    if not subnets:
        raise ValueError(f"vpc_config value for {SUBNETS_KEY} is empty: {subnets}")

    security_group_ids = vpc_config.get(SECURITY_GROUP_IDS_KEY)
    if security_group_ids is None:
        raise ValueError(f"vpc_config is missing key: {SECURITY_GROUP_IDS_KEY}")
    if not isinstance(security_group_ids, list):
        raise TypeError(
            f"vpc_config value for {SECURITY_GROUP_IDS_KEY} is not a list: {security_group_ids}"
        )
    if not security_group_ids:
        raise ValueError(
            f"vpc_config value for {SECURITY_GROUP_IDS_KEY} is empty: {security_group_ids}"
        )

    return to_dict(subnets, security_group_ids)
