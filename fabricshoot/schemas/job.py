"""
Job Schemas
Status enums shared by the pipeline, the ORM rows and the API.
"""

from enum import Enum


class JobStatus(str, Enum):
    """Multi-fabric job status."""
    PENDING = "pending"
    ANALYZING = "analyzing"
    DETECTED = "detected"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: "JobStatus") -> bool:
        """Forward-only progression; any non-terminal state may fail."""
        if target is JobStatus.FAILED:
            return self is not JobStatus.FAILED
        return (self, target) in JOB_TRANSITIONS


JOB_TRANSITIONS = frozenset({
    (JobStatus.PENDING, JobStatus.ANALYZING),
    (JobStatus.ANALYZING, JobStatus.DETECTED),
    (JobStatus.DETECTED, JobStatus.GENERATING),
    (JobStatus.GENERATING, JobStatus.COMPLETED),
})


class ResultStatus(str, Enum):
    """Generation status of a single result row."""
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class ApprovalStatus(str, Enum):
    """Seller review state, independent of generation status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReelStatus(str, Enum):
    """Reel audio status."""
    GENERATING_AUDIO = "generating_audio"
    READY = "ready"
    FAILED = "failed"


class UploadKind(str, Enum):
    """What the seller uploaded; selects the prompt template."""
    FABRIC = "fabric"
    MANNEQUIN_CONVERSION = "mannequin-conversion"
    LABELED_MULTI_FABRIC = "labeled-multi-fabric"


class OutputMode(str, Enum):
    """Fan-out shape for multi-fabric generation."""
    SEPARATE = "separate"
    COMBINED = "combined"
