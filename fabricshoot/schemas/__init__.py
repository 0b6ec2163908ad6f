# Pydantic schemas package
from fabricshoot.schemas.job import (
    JobStatus, ResultStatus, ApprovalStatus, ReelStatus, UploadKind, OutputMode
)
from fabricshoot.schemas.generate import (
    GenerateContentRequest, GenerateContentResponse, ContentResponse
)
from fabricshoot.schemas.multi_fabric import (
    LabeledPiece, DetectedLabels, MultiFabricRequest, DetectResponse,
    MultiFabricResultResponse, GenerateMultiResponse, MultiFabricJobResponse
)
from fabricshoot.schemas.reel import ReelRequest, ReelResponse

__all__ = [
    "JobStatus", "ResultStatus", "ApprovalStatus", "ReelStatus", "UploadKind", "OutputMode",
    "GenerateContentRequest", "GenerateContentResponse", "ContentResponse",
    "LabeledPiece", "DetectedLabels", "MultiFabricRequest", "DetectResponse",
    "MultiFabricResultResponse", "GenerateMultiResponse", "MultiFabricJobResponse",
    "ReelRequest", "ReelResponse",
]
