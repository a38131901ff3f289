"""
Field Geometry Pipeline
=======================

Turns a vision model's field detections on (Hebrew/RTL) PDF forms into
exact, render-ready field rectangles in PDF points.

Pipeline Stages:
1. PAGES: Effective page dimensions with rotation-aware axis swap
2. CONVERT: Inch polygons or native 0-1000 boxes -> PDF points
3. SCORE: Weighted multi-factor confidence with quality buckets
4. RTL CORRECTION: Label position -> input position on RTL forms
5. RADIO GROUPING: Tagged radios merged, checkbox clusters converted
6. LAYOUT: Boundary validation, overlap resolution and tab order

Design Principles:
- Pure, synchronous transforms (same input = same output, bar group ids)
- Malformed geometry degrades a single field, never the batch
- Every correction is auditable (original position recorded)
"""

from .geometry import (
    AnchorPoint,
    Box,
    Direction,
    FieldCandidate,
    FieldType,
    GuidanceText,
    Orientation,
    OverlapResolution,
    PageInfo,
)
from .page_geometry import PageGeometryResolver
from .box_converter import BoundingBoxConverter
from .confidence import ConfidenceFactors, ConfidenceResult, ConfidenceScorer, Quality
from .rtl_calibration import (
    CalibrationMatrix,
    RtlCalibrationService,
    calculate_average_confidence,
    is_rtl_form,
)
from .radio_groups import RadioGroupDetector
from .layout import calculate_tab_order, resolve_overlaps, validate_boundaries
from .ai_response import AIResponseFormatError, parse_ai_response
from .pipeline import FieldGeometryPipeline, PipelineOutput

__all__ = [
    'FieldGeometryPipeline',
    'PipelineOutput',
    'PageGeometryResolver',
    'BoundingBoxConverter',
    'ConfidenceScorer',
    'ConfidenceFactors',
    'ConfidenceResult',
    'Quality',
    'RtlCalibrationService',
    'CalibrationMatrix',
    'RadioGroupDetector',
    'is_rtl_form',
    'calculate_average_confidence',
    'validate_boundaries',
    'resolve_overlaps',
    'calculate_tab_order',
    'parse_ai_response',
    'AIResponseFormatError',
    # Geometry primitives
    'AnchorPoint',
    'Box',
    'Direction',
    'FieldCandidate',
    'FieldType',
    'GuidanceText',
    'Orientation',
    'OverlapResolution',
    'PageInfo',
]
