"""
Multi-Fabric Schemas
Detected label sets, request actions and result rows.
"""

from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, Field

from fabricshoot.schemas.generate import CamelModel
from fabricshoot.schemas.job import OutputMode


class LabeledPiece(BaseModel):
    """One labelled fabric piece: T (top), D (dupatta), B (bottom) or C (color variant)."""
    label: str
    description: str = ""
    position: str = ""


class DetectedLabels(BaseModel):
    """Detector output, normalized once and stored on the job."""
    pieces: List[LabeledPiece] = []
    sample_count: int = 1
    has_bottom: bool = False
    color_variants: List[str] = []
    summary: str = ""

    def pieces_with_label(self, label: str) -> List[LabeledPiece]:
        return [p for p in self.pieces if p.label.upper() == label]

    def first_piece(self, label: str) -> Optional[LabeledPiece]:
        matches = self.pieces_with_label(label)
        return matches[0] if matches else None

    def normalized(self) -> "DetectedLabels":
        """
        Reconcile the detector's counts with the labels it reported.

        Every C piece gets an entry in color_variants, and sample_count
        covers the main sample plus every color variant.
        """
        variants = [v for v in self.color_variants if v]
        color_pieces = self.pieces_with_label("C")
        for piece in color_pieces[len(variants):]:
            variants.append(piece.description or f"variant {len(variants) + 1}")

        sample_count = max(self.sample_count or 1, 1 + len(variants))
        has_bottom = self.has_bottom or self.first_piece("B") is not None
        return self.model_copy(update={
            "color_variants": variants,
            "sample_count": sample_count,
            "has_bottom": has_bottom,
        })


class MultiFabricRequest(CamelModel):
    """Single endpoint, dispatched on `action`."""
    action: Literal["detect", "generate", "retry"]
    source_image_url: Optional[str] = None
    job_id: Optional[str] = None
    result_id: Optional[str] = None
    mannequin_reference_url: Optional[str] = None
    background_image_url: Optional[str] = None
    output_mode: OutputMode = OutputMode.SEPARATE


class DetectResponse(CamelModel):
    success: bool = True
    job_id: str
    detected_labels: DetectedLabels


class MultiFabricResultResponse(CamelModel):
    """One generated sample."""
    id: str
    job_id: str
    label: str
    color_variant: Optional[str]
    generated_image_url: Optional[str]
    caption_primary: Optional[str]
    caption_secondary: Optional[str]
    status: str
    error_message: Optional[str]
    approval_status: str
    created_at: datetime


class GenerateMultiResponse(CamelModel):
    success: bool = True
    job_id: str
    results: List[MultiFabricResultResponse] = Field(default_factory=list)


class MultiFabricJobResponse(CamelModel):
    """Job status for polling clients."""
    id: str
    source_image_url: str
    status: str
    color_output_mode: str
    detected_labels: Optional[DetectedLabels]
    error_message: Optional[str]
    results: List[MultiFabricResultResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
