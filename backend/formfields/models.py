"""
Pydantic models for API request/response schemas.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    version: str


class PageDimension(BaseModel):
    """Effective (upright) page size in PDF points."""
    page_number: int = Field(..., ge=1)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    rotation: int = Field(0, description="0 | 90 | 180 | 270")


class VerifiedAnchor(BaseModel):
    """Known anchor position in PDF points, used for matrix calibration."""
    type: str = "unknown"
    description: str = ""
    page_number: int = Field(1, ge=1)
    x: float
    y: float
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)


class ConvertRequest(BaseModel):
    """Request for converting an AI envelope without uploading the PDF."""
    ai_response: Dict[str, Any] = Field(..., description="AI envelope with a 'fields' list")
    page_dimensions: List[PageDimension] = Field(default_factory=list, description="Known page sizes (A4 if empty)")
    verified_anchors: List[VerifiedAnchor] = Field(default_factory=list)
    document_id: Optional[str] = None


class GeometryResponse(BaseModel):
    """Response for field geometry endpoints."""
    success: bool
    document_id: Optional[str] = None
    fields: List[Dict[str, Any]] = []
    guidance_texts: List[Dict[str, Any]] = []
    anchor_points: List[Dict[str, Any]] = []
    form_metadata: Optional[Dict[str, Any]] = None
    page_dimensions: List[Dict[str, Any]] = []
    stats: Optional[Dict[str, Any]] = None
    is_rtl: Optional[bool] = None
    coordinate_format: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    statistics: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
