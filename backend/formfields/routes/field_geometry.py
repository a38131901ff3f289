"""
Field Geometry API Routes
=========================

REST API endpoints for the field geometry pipeline.

Endpoints:
- POST /api/v1/field-geometry/process - PDF upload + AI reply -> finalized fields
- POST /api/v1/field-geometry/convert - AI envelope + page sizes -> finalized fields
"""

import logging
from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile

from formfields.config import Config
from formfields.models import ConvertRequest, GeometryResponse
from formfields.services.field_geometry import (
    AIResponseFormatError,
    AnchorPoint,
    Box,
    FieldGeometryPipeline,
    PageInfo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/field-geometry", tags=["Field Geometry"])


# ============================================================================
# Pipeline Instance (Singleton)
# ============================================================================

_pipeline_instance = None


def get_pipeline() -> FieldGeometryPipeline:
    """Get or create the pipeline instance."""
    global _pipeline_instance

    if _pipeline_instance is None:
        _pipeline_instance = FieldGeometryPipeline(**Config.get_pipeline_options())
        logger.info("Initialized FieldGeometryPipeline singleton")

    return _pipeline_instance


# ============================================================================
# API Endpoints
# ============================================================================

@router.post("/process", response_model=GeometryResponse)
async def process_pdf(
    file: UploadFile = File(..., description="PDF file the AI reply describes"),
    ai_response: str = Form(..., description="Raw AI model reply (JSON, optionally fenced)"),
    include_statistics: bool = Query(True, description="Include statistics summary")
) -> GeometryResponse:
    """
    Finalize AI field detections against the uploaded PDF.

    Page dimensions are read from the PDF itself, so rotated and
    non-A4 pages convert correctly.
    """
    try:
        # Validate file type
        if not (file.filename or '').lower().endswith('.pdf'):
            raise HTTPException(
                status_code=400,
                detail="Only PDF files are supported"
            )

        pdf_bytes = await file.read()

        if len(pdf_bytes) == 0:
            raise HTTPException(
                status_code=400,
                detail="Empty file uploaded"
            )

        if len(pdf_bytes) > Config.max_upload_bytes():
            raise HTTPException(
                status_code=400,
                detail=f"File exceeds {Config.MAX_UPLOAD_MB}MB upload limit"
            )

        # Validate PDF magic bytes
        if not pdf_bytes.startswith(b'%PDF'):
            raise HTTPException(
                status_code=400,
                detail="Invalid PDF format"
            )

        logger.info(f"Processing PDF: {file.filename} ({len(pdf_bytes)} bytes)")

        pipeline = get_pipeline()
        result = pipeline.process(ai_response, pdf_bytes=pdf_bytes)

        return GeometryResponse(
            success=True,
            statistics=pipeline.get_statistics(result) if include_statistics else None,
            **result.to_dict()
        )

    except HTTPException:
        raise
    except AIResponseFormatError as e:
        logger.warning(f"Rejected AI response: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Pipeline error: {e}", exc_info=True)
        return GeometryResponse(
            success=False,
            error=str(e)
        )


@router.post("/convert", response_model=GeometryResponse)
async def convert_fields(
    request: ConvertRequest,
    include_statistics: bool = Query(True, description="Include statistics summary")
) -> GeometryResponse:
    """
    Finalize an already-decoded AI envelope without the PDF.

    Pages missing from `page_dimensions` are treated as A4.
    """
    try:
        page_infos = [
            PageInfo(
                page_number=p.page_number,
                width=p.width,
                height=p.height,
                rotation=p.rotation
            )
            for p in request.page_dimensions
        ]
        verified_anchors = [
            AnchorPoint(
                type=a.type,
                description=a.description,
                page_number=a.page_number,
                bounding_box=Box(x=a.x, y=a.y, width=a.width, height=a.height)
            )
            for a in request.verified_anchors
        ]

        logger.info(
            f"Converting AI envelope: {len(page_infos)} page dimension(s), "
            f"{len(verified_anchors)} verified anchor(s)"
        )

        pipeline = get_pipeline()
        result = pipeline.process(
            request.ai_response,
            page_infos=page_infos,
            verified_anchors=verified_anchors,
            document_id=request.document_id
        )

        return GeometryResponse(
            success=True,
            statistics=pipeline.get_statistics(result) if include_statistics else None,
            **result.to_dict()
        )

    except AIResponseFormatError as e:
        logger.warning(f"Rejected AI response: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Conversion error: {e}", exc_info=True)
        return GeometryResponse(
            success=False,
            error=str(e)
        )
