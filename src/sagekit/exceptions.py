"""Exceptions raised by sagekit.

Every error the library raises on its own behalf derives from
:class:`SageKitError`. botocore ``ClientError`` instances that are not
recoverable are propagated unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable


class SageKitError(Exception):
    """Base exception for sagekit errors."""

    pass


class CredentialsError(SageKitError):
    """AWS credentials are missing or invalid."""

    pass


class BucketAccessError(SageKitError):
    """S3 bucket does not exist, cannot be created, or is not accessible."""

    pass


class ImageUriError(SageKitError, ValueError):
    """No image URI matches the requested framework, version or region."""

    pass


class UnexpectedStatusError(SageKitError, ValueError):
    """A waited-on job or endpoint ended in a status the caller did not expect.

    Attributes:
        name: Job or endpoint name.
        status: Final status reported by SageMaker.
        reason: ``FailureReason`` from the describe call, if any.
        allowed_statuses: Statuses that would have been accepted.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str,
        status: str,
        reason: str | None = None,
        allowed_statuses: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.name = name
        self.status = status
        self.reason = reason
        self.allowed_statuses = tuple(allowed_statuses)


class WaitTimeoutError(SageKitError):
    """A resource did not reach the awaited state within the retry budget."""

    pass
