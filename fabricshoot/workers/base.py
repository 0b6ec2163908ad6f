"""
Pipeline Base
Error taxonomy, bounded retry and job status transitions shared by the
generation pipelines.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from fabricshoot.schemas.job import JobStatus

logger = logging.getLogger(__name__)

T = TypeVar('T')


class PipelineError(Exception):
    """Base exception for pipeline errors; carries an HTTP-equivalent status."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, **self.details}


class InvalidRequestError(PipelineError):
    """Missing or malformed input, rejected before any external call."""
    status_code = 400


class ResourceNotFoundError(PipelineError):
    """Row does not exist or is not owned by the caller."""
    status_code = 404


class InvalidTransitionError(PipelineError):
    """Job status change outside the allowed table."""
    status_code = 409


class SourceRemovedError(PipelineError):
    """
    The source row was deleted while generation was in flight.

    The generated image may already be in storage; its URL travels with the
    error so the caller can decide what to do with it.
    """
    status_code = 409

    def __init__(self, message: str = "Source image was removed during generation. Please re-upload and try again.",
                 generated_image_url: Optional[str] = None):
        details = {"partialSuccess": generated_image_url is not None}
        if generated_image_url:
            details["generatedImageUrl"] = generated_image_url
        super().__init__(message, details)
        self.generated_image_url = generated_image_url


class UpstreamServiceError(PipelineError):
    """Generic failure of an external AI/audio service."""
    status_code = 500


class UpstreamRateLimitedError(UpstreamServiceError):
    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message)


class UpstreamQuotaExhaustedError(UpstreamServiceError):
    status_code = 402

    def __init__(self, message: str = "AI credits exhausted. Please add funds."):
        super().__init__(message)


def classify_upstream_failure(code: int, message: str = "") -> Optional[UpstreamServiceError]:
    """Map an upstream HTTP status to its user-facing category, if it has one."""
    lowered = (message or "").lower()
    if code == 402 or (code == 429 and "credits" in lowered):
        return UpstreamQuotaExhaustedError()
    if code == 429:
        return UpstreamRateLimitedError()
    return None


@dataclass
class RetryResult(Generic[T]):
    """Final value of a bounded retry plus how many attempts it took."""
    value: T
    attempts: int
    succeeded: bool


async def retry_until(
    operation: Callable[[], Awaitable[T]],
    accept: Callable[[T], bool],
    max_attempts: int = 2,
    label: str = "operation",
) -> RetryResult[T]:
    """
    Run `operation` until `accept` approves its value or attempts run out.

    No delay between attempts. The operation must not raise for expected
    failures; it returns a value describing them instead.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    value = None
    for attempt in range(1, max_attempts + 1):
        value = await operation()
        if accept(value):
            return RetryResult(value=value, attempts=attempt, succeeded=True)
        if attempt < max_attempts:
            logger.warning(f"[Retry {attempt}/{max_attempts - 1}] {label} returned {value!r}, retrying")

    logger.error(f"[Failed] {label} exhausted {max_attempts} attempt(s)")
    return RetryResult(value=value, attempts=max_attempts, succeeded=False)


def advance_job_status(job, target: JobStatus) -> None:
    """Move a job row to `target`, rejecting moves outside the transition table."""
    current = JobStatus(job.status)
    if not current.can_transition_to(target):
        raise InvalidTransitionError(
            f"Job cannot move from '{current.value}' to '{target.value}'",
            {"jobId": job.id, "status": current.value},
        )
    logger.info(f"[Job {job.id}] {current.value} -> {target.value}")
    job.status = target.value


__all__ = [
    "PipelineError",
    "InvalidRequestError",
    "ResourceNotFoundError",
    "InvalidTransitionError",
    "SourceRemovedError",
    "UpstreamServiceError",
    "UpstreamRateLimitedError",
    "UpstreamQuotaExhaustedError",
    "classify_upstream_failure",
    "RetryResult",
    "retry_until",
    "advance_job_status",
]
