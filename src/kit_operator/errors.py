"""Exception types shared by the reconciliation engine."""

from __future__ import annotations

from botocore.exceptions import ClientError
from kubernetes.client.exceptions import ApiException


class NotReadyError(Exception):
    """A precondition is not met yet; the object should be polled again.

    This is not a failure: it maps to a requeue without backoff.
    """

    def __init__(self, message: str, requeue_after: float | None = None) -> None:
        super().__init__(message)
        self.requeue_after = requeue_after


class StageError(Exception):
    """A sub-controller failed during reconcile or finalize."""

    def __init__(self, stage: str, phase: str, cause: Exception) -> None:
        super().__init__(f"{phase} {stage}, {cause}")
        self.stage = stage
        self.phase = phase
        self.cause = cause


class ValidationError(ValueError):
    """The desired state object carries an invalid spec."""


class ArtifactSyncError(Exception):
    """Uploading a directory of artifacts stopped on the first failure."""

    def __init__(self, path: str, cause: Exception) -> None:
        super().__init__(f"uploading {path}, {cause}")
        self.path = path
        self.cause = cause


def is_not_found(error: Exception) -> bool:
    return isinstance(error, ApiException) and error.status == 404


def is_already_exists(error: Exception) -> bool:
    return isinstance(error, ApiException) and error.status == 409


def aws_error_code(error: Exception) -> str | None:
    """Return the AWS error code of a botocore ClientError, if any."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None
