"""
Field Geometry Pipeline
=======================

The orchestrator that turns a vision model's field detections into
render-ready field rectangles.

Pipeline Stages:
----------------
1. PAGES: Resolve effective page dimensions (PDF bytes, given list, or A4)
2. PARSE: Validate the AI envelope into typed detections
3. CONVERT: Model geometry -> PDF points (fields, guidance texts, anchors)
4. SCORE: Weighted confidence per field
5. MATRIX CALIBRATION: Only when verified anchor positions are supplied
6. RTL CORRECTION: Label -> input shift, only when the form is RTL
7. RADIO GROUPING: Merge tagged radios, convert checkbox clusters
8. LAYOUT: Boundary validation, overlap resolution, then tab order

Design Principles:
------------------
- Synchronous and stateless: one call per document, no shared state
- Every stage returns new field objects; nothing is mutated in place
- Localized geometry problems degrade a field, never the batch
- Only a broken AI envelope fails the whole call (AIResponseFormatError)
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from .ai_response import (
    AIResponse,
    DropdownDetection,
    RadioDetection,
    TextDetection,
    parse_ai_response,
)
from .box_converter import BoundingBoxConverter, page_info_for
from .confidence import ConfidenceFactors, ConfidenceResult, ConfidenceScorer
from .geometry import AnchorPoint, Direction, FieldCandidate, FieldType, GuidanceText, PageInfo
from .labels import generate_field_name, is_hebrew_text
from .layout import calculate_tab_order, resolve_overlaps, validate_boundaries
from .page_geometry import PageGeometryResolver
from .radio_groups import RadioGroupDetector
from .rtl_calibration import RtlCalibrationService, calculate_average_confidence, is_rtl_form

logger = logging.getLogger(__name__)


@dataclass
class PipelineOutput:
    """
    Complete pipeline output for a document.

    Fields are in tab order with finalized PDF-point geometry.
    """
    document_id: str
    fields: List[FieldCandidate]
    page_dimensions: List[PageInfo]

    guidance_texts: List[GuidanceText] = field(default_factory=list)
    anchor_points: List[AnchorPoint] = field(default_factory=list)
    form_metadata: Optional[Dict[str, Any]] = None

    is_rtl: bool = True
    coordinate_format: str = "none"
    skipped_detections: int = 0

    # Processing metadata
    processing_start: str = ""
    processing_end: str = ""
    total_processing_time_ms: int = 0
    input_hash: str = ""

    @property
    def stats(self) -> Dict[str, Any]:
        fields_per_page: Dict[int, int] = {}
        for f in self.fields:
            fields_per_page[f.page_number] = fields_per_page.get(f.page_number, 0) + 1

        return {
            'total_fields': len(self.fields),
            'fields_per_page': fields_per_page,
            'page_count': len(self.page_dimensions)
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'document_id': self.document_id,
            'fields': [f.to_dict() for f in self.fields],
            'guidance_texts': [g.to_dict() for g in self.guidance_texts],
            'anchor_points': [a.to_dict() for a in self.anchor_points],
            'form_metadata': self.form_metadata,
            'page_dimensions': [p.to_dict() for p in self.page_dimensions],
            'stats': self.stats,
            'is_rtl': self.is_rtl,
            'coordinate_format': self.coordinate_format,
            'metadata': {
                'skipped_detections': self.skipped_detections,
                'processing_start': self.processing_start,
                'processing_end': self.processing_end,
                'total_processing_time_ms': self.total_processing_time_ms,
                'input_hash': self.input_hash
            }
        }


class FieldGeometryPipeline:
    """
    Deterministic geometry pipeline for AI-detected form fields.

    Example usage:

        pipeline = FieldGeometryPipeline()

        with open('form.pdf', 'rb') as f:
            pdf_bytes = f.read()

        result = pipeline.process(ai_reply_text, pdf_bytes=pdf_bytes)
        output = result.to_dict()
    """

    def __init__(
        self,
        enable_rtl_calibration: bool = True,
        enable_radio_detection: bool = True,
        enable_boundary_validation: bool = True,
        enable_overlap_resolution: bool = True,
        scorer: Optional[ConfidenceScorer] = None,
        rtl_service: Optional[RtlCalibrationService] = None,
        radio_detector: Optional[RadioGroupDetector] = None
    ):
        """
        Initialize the pipeline.

        Args:
            enable_rtl_calibration: Apply label -> input correction on RTL forms
            enable_radio_detection: Merge radios and convert checkbox clusters
            enable_boundary_validation: Trim fields to their page
            enable_overlap_resolution: Annotate overlapping same-page fields
            scorer: Optional pre-configured ConfidenceScorer
            rtl_service: Optional pre-configured RtlCalibrationService
            radio_detector: Optional pre-configured RadioGroupDetector
        """
        self.enable_rtl_calibration = enable_rtl_calibration
        self.enable_radio_detection = enable_radio_detection
        self.enable_boundary_validation = enable_boundary_validation
        self.enable_overlap_resolution = enable_overlap_resolution

        self.scorer = scorer or ConfidenceScorer()
        self.rtl_service = rtl_service or RtlCalibrationService()
        self.radio_detector = radio_detector or RadioGroupDetector()

        logger.info(
            f"Initialized FieldGeometryPipeline - "
            f"RTL calibration: {enable_rtl_calibration}, "
            f"radio detection: {enable_radio_detection}, "
            f"boundary validation: {enable_boundary_validation}, "
            f"overlap resolution: {enable_overlap_resolution}"
        )

    def process(
        self,
        ai_response: Union[str, bytes, Dict[str, Any]],
        pdf_bytes: Optional[bytes] = None,
        page_infos: Optional[Sequence[PageInfo]] = None,
        verified_anchors: Optional[Sequence[AnchorPoint]] = None,
        document_id: Optional[str] = None
    ) -> PipelineOutput:
        """
        Run the full pipeline for one document.

        Args:
            ai_response: Model reply text, or an already-decoded envelope dict
            pdf_bytes: The PDF the reply describes; preferred page source
            page_infos: Known page dimensions, used when no PDF is given
            verified_anchors: Known anchor positions for matrix calibration
            document_id: Optional document identifier

        Returns:
            PipelineOutput with finalized fields

        Raises:
            AIResponseFormatError: if the AI envelope is unusable
        """
        start_time = time.time()
        processing_start = datetime.now(timezone.utc).isoformat()
        input_hash = self._input_hash(ai_response, pdf_bytes)
        if not document_id:
            document_id = input_hash[:12]

        # === STAGE 1: PAGES ===
        pages = self._resolve_pages(pdf_bytes, page_infos)
        page_info_map = {p.page_number: p for p in pages}

        # === STAGE 2: PARSE ===
        parsed = parse_ai_response(ai_response)

        # === STAGE 3 + 4: CONVERT AND SCORE ===
        fields = [
            self._build_field(detection, index, page_info_map)
            for index, detection in enumerate(parsed.fields)
        ]
        guidance_texts = self._convert_guidance(parsed, page_info_map)
        anchor_points = self._convert_anchors(parsed, page_info_map)

        logger.info(
            f"Converted {len(fields)} fields, {len(guidance_texts)} guidance texts, "
            f"{len(anchor_points)} anchor points across {len(pages)} page(s)"
        )

        # === STAGE 5: MATRIX CALIBRATION ===
        if verified_anchors:
            fields = self._apply_matrix_calibration(fields, anchor_points, verified_anchors, pages)

        # === STAGE 6: RTL CORRECTION ===
        rtl = is_rtl_form(fields)
        logger.info(f"Form direction: {'RTL' if rtl else 'LTR'}")
        if rtl and self.enable_rtl_calibration:
            fields = self.rtl_service.calibrate_rtl_fields(fields, page_info_map, anchor_points)

        # === STAGE 7: RADIO GROUPING ===
        if self.enable_radio_detection:
            before = len(fields)
            fields = self.radio_detector.detect(fields)
            if len(fields) != before:
                logger.info(f"Radio grouping: {before} -> {len(fields)} fields")

        # === STAGE 8: LAYOUT ===
        if self.enable_boundary_validation:
            fields = validate_boundaries(fields, page_info_map)
        if self.enable_overlap_resolution:
            fields = resolve_overlaps(fields)
        fields = calculate_tab_order(fields, Direction.RTL if rtl else Direction.LTR)

        output = PipelineOutput(
            document_id=document_id,
            fields=fields,
            page_dimensions=pages,
            guidance_texts=guidance_texts,
            anchor_points=anchor_points,
            form_metadata=(
                parsed.form_metadata.model_dump(exclude_none=True)
                if parsed.form_metadata else None
            ),
            is_rtl=rtl,
            coordinate_format=self._coordinate_format(parsed),
            skipped_detections=parsed.skipped_fields,
            processing_start=processing_start,
            processing_end=datetime.now(timezone.utc).isoformat(),
            total_processing_time_ms=int((time.time() - start_time) * 1000),
            input_hash=input_hash
        )

        logger.info(
            f"Pipeline complete for {document_id}: {len(fields)} fields, "
            f"{output.total_processing_time_ms}ms total"
        )
        return output

    def _resolve_pages(
        self,
        pdf_bytes: Optional[bytes],
        page_infos: Optional[Sequence[PageInfo]]
    ) -> List[PageInfo]:
        if pdf_bytes:
            return PageGeometryResolver.resolve(pdf_bytes)
        if page_infos:
            return list(page_infos)
        logger.warning("No PDF or page dimensions supplied, assuming a single A4 page")
        return [PageInfo.a4()]

    def _build_field(
        self,
        detection: Any,
        index: int,
        page_info_map: Dict[int, PageInfo]
    ) -> FieldCandidate:
        """Convert one validated detection into a scored FieldCandidate."""
        page_info = page_info_for(detection.page_number, page_info_map)

        label = (detection.label or '').strip() or None
        name = (detection.name or '').strip() or generate_field_name(label or '', index)

        direction = detection.direction
        if direction is None and is_hebrew_text(label or ''):
            direction = Direction.RTL

        box = BoundingBoxConverter.convert(
            page_info,
            box_2d=detection.box_2d,
            polygon=detection.polygon,
            label=label or name
        )

        candidate = FieldCandidate(
            name=name,
            field_type=FieldType(detection.type),
            bounding_box=box,
            page_number=detection.page_number,
            label=label,
            required=bool(detection.required),
            direction=direction,
            section_name=detection.section_name,
            confidence=self._score(detection.confidence_factors, name),
            page_width=page_info.width,
            page_height=page_info.height
        )

        if isinstance(detection, RadioDetection):
            candidate.options = detection.options
            candidate.radio_group = detection.radio_group
            candidate.orientation = detection.orientation
            candidate.spacing = detection.button_spacing
        elif isinstance(detection, DropdownDetection):
            candidate.options = detection.options
        elif isinstance(detection, TextDetection):
            candidate.font = detection.font
            candidate.font_size = detection.font_size

        return candidate

    def _score(self, raw_factors: Optional[Dict[str, Any]], name: str) -> ConfidenceResult:
        if not raw_factors:
            return self.scorer.score(ConfidenceScorer.NEUTRAL_FACTORS)
        try:
            factors = ConfidenceFactors.from_dict(raw_factors)
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid confidence factors for '{name}': {e}, using neutral factors")
            factors = ConfidenceScorer.NEUTRAL_FACTORS
        return self.scorer.score(factors)

    @staticmethod
    def _convert_guidance(parsed: AIResponse, page_info_map: Dict[int, PageInfo]) -> List[GuidanceText]:
        guidance = []
        for index, item in enumerate(parsed.guidance_texts):
            page_info = page_info_for(item.page_number, page_info_map)
            guidance.append(GuidanceText(
                id=item.id or f"guidance_{index + 1}",
                content=item.content,
                page_number=item.page_number,
                bounding_box=BoundingBoxConverter.convert(
                    page_info, box_2d=item.box_2d, polygon=item.polygon, label=item.content[:30]
                )
            ))
        return guidance

    @staticmethod
    def _convert_anchors(parsed: AIResponse, page_info_map: Dict[int, PageInfo]) -> List[AnchorPoint]:
        anchors = []
        for item in parsed.anchor_points:
            page_info = page_info_for(item.page_number, page_info_map)
            anchors.append(AnchorPoint(
                type=item.type,
                description=item.description,
                page_number=item.page_number,
                bounding_box=BoundingBoxConverter.convert(
                    page_info, box_2d=item.box_2d, polygon=item.polygon, label=item.description
                ),
                confidence=item.confidence
            ))
        return anchors

    def _apply_matrix_calibration(
        self,
        fields: List[FieldCandidate],
        anchor_points: List[AnchorPoint],
        verified_anchors: Sequence[AnchorPoint],
        pages: List[PageInfo]
    ) -> List[FieldCandidate]:
        """Calibrate each page's fields against its matched anchors."""
        matrices = {}
        for page_info in pages:
            matrix = self.rtl_service.calculate_calibration(anchor_points, verified_anchors, page_info)
            matrices[page_info.page_number] = matrix
            logger.info(f"Page {page_info.page_number} calibration matrix: {matrix.to_dict()}")

        calibrated = []
        for f in fields:
            matrix = matrices.get(f.page_number)
            calibrated.append(self.rtl_service.apply_calibration(f, matrix) if matrix else f)
        return calibrated

    @staticmethod
    def _coordinate_format(parsed: AIResponse) -> str:
        """Which geometry encoding the model used for its field detections."""
        native = sum(1 for d in parsed.fields if d.box_2d is not None)
        polygon = sum(1 for d in parsed.fields if d.box_2d is None and d.polygon is not None)
        if native and polygon:
            return "mixed"
        if native:
            return "box_2d"
        if polygon:
            return "polygon"
        return "none"

    @staticmethod
    def _input_hash(ai_response: Union[str, bytes, Dict[str, Any]], pdf_bytes: Optional[bytes]) -> str:
        """Hash of the inputs for reproducibility."""
        digest = hashlib.sha256()
        if isinstance(ai_response, dict):
            digest.update(json.dumps(ai_response, sort_keys=True, default=str).encode('utf-8'))
        elif isinstance(ai_response, str):
            digest.update(ai_response.encode('utf-8'))
        else:
            digest.update(ai_response)
        if pdf_bytes:
            digest.update(pdf_bytes)
        return digest.hexdigest()[:16]

    def get_statistics(self, output: PipelineOutput) -> Dict[str, Any]:
        """
        Generate statistics summary for a pipeline output.

        Useful for monitoring and quality assurance.
        """
        quality_counts: Dict[str, int] = {}
        field_type_counts: Dict[str, int] = {}
        validation_counts: Dict[str, int] = {}

        for f in output.fields:
            if f.confidence is not None:
                quality = f.confidence.quality.value
                quality_counts[quality] = quality_counts.get(quality, 0) + 1

            field_type_counts[f.field_type.value] = field_type_counts.get(f.field_type.value, 0) + 1

            if f.validation_status:
                validation_counts[f.validation_status] = validation_counts.get(f.validation_status, 0) + 1

        return {
            'document_id': output.document_id,
            **output.stats,
            'is_rtl': output.is_rtl,
            'average_confidence': round(calculate_average_confidence(output.fields), 4),
            'quality_distribution': quality_counts,
            'field_type_distribution': field_type_counts,
            'validation_distribution': validation_counts,
            'calibrated_count': sum(1 for f in output.fields if f.calibrated),
            'overlap_count': sum(1 for f in output.fields if f.has_overlap),
            'skipped_detections': output.skipped_detections,
            'processing_time_ms': output.total_processing_time_ms
        }
