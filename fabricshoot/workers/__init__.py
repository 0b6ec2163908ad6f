# Workers package - generation pipelines run inside the request

from fabricshoot.workers.base import (
    PipelineError,
    InvalidRequestError,
    ResourceNotFoundError,
    InvalidTransitionError,
    SourceRemovedError,
    UpstreamServiceError,
    UpstreamRateLimitedError,
    UpstreamQuotaExhaustedError,
    retry_until,
    advance_job_status,
)

__all__ = [
    "PipelineError",
    "InvalidRequestError",
    "ResourceNotFoundError",
    "InvalidTransitionError",
    "SourceRemovedError",
    "UpstreamServiceError",
    "UpstreamRateLimitedError",
    "UpstreamQuotaExhaustedError",
    "retry_until",
    "advance_job_status",
]
