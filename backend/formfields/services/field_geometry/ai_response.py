"""
AI Response Envelope
====================

Parses the vision model's reply into typed detections.

Expected envelope:
{
  "fields": [ { "type": "text" | "checkbox" | "radio" | "dropdown" | "signature",
                "box_2d": [y_min, x_min, y_max, x_max]   (0-1000)
                  or "polygon": [8 numbers, inches],
                "pageNumber": int, "name": str, "label": str, ... } ],
  "guidanceTexts": [...],     optional
  "anchorPoints": [...],      optional
  "formMetadata": {...}       optional
}

Failure policy:
- The envelope itself is a contract: non-JSON, non-object, or a missing
  `fields` list raises AIResponseFormatError.
- Individual detections are data points: one that fails validation is
  skipped with a warning, never failing the batch.
- Geometry is accepted untyped so malformed coordinates reach the box
  converter's fallback instead of failing validation here.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .geometry import Direction, Orientation

logger = logging.getLogger(__name__)

_JSON_OBJECT_PATTERN = re.compile(r'\{.*"fields".*\}', re.DOTALL)
_FENCE_START = re.compile(r'^```(?:json)?\s*')
_FENCE_END = re.compile(r'\s*```$')


class AIResponseFormatError(ValueError):
    """The AI reply violates the envelope contract."""


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class _DetectionBase(_Payload):
    box_2d: Optional[List[Any]] = None
    polygon: Optional[List[Any]] = None
    page_number: int = Field(1, alias='pageNumber', ge=1)
    label: Optional[str] = None
    name: Optional[str] = None
    required: Optional[bool] = False
    direction: Optional[Direction] = None
    section_name: Optional[str] = Field(None, alias='sectionName')
    confidence_factors: Optional[Dict[str, Any]] = Field(None, alias='confidenceFactors')

    @field_validator('direction', mode='before')
    @classmethod
    def _normalize_direction(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and value.lower() in ('ltr', 'rtl'):
            return value.lower()
        return None


class TextDetection(_DetectionBase):
    type: Literal['text']
    font: Optional[str] = None
    font_size: Optional[float] = Field(None, alias='fontSize')


class CheckboxDetection(_DetectionBase):
    type: Literal['checkbox']


class RadioDetection(_DetectionBase):
    type: Literal['radio']
    options: Optional[List[str]] = None
    radio_group: Optional[str] = Field(None, alias='radioGroup')
    orientation: Optional[Orientation] = None
    button_spacing: Optional[float] = Field(None, alias='buttonSpacing')

    @field_validator('orientation', mode='before')
    @classmethod
    def _normalize_orientation(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and value.lower() in ('horizontal', 'vertical'):
            return value.lower()
        return None


class DropdownDetection(_DetectionBase):
    type: Literal['dropdown']
    options: Optional[List[str]] = None


class SignatureDetection(_DetectionBase):
    type: Literal['signature']


RawFieldDetection = Annotated[
    Union[TextDetection, CheckboxDetection, RadioDetection, DropdownDetection, SignatureDetection],
    Field(discriminator='type')
]

_detection_adapter = TypeAdapter(RawFieldDetection)


class GuidanceTextPayload(_Payload):
    id: str = ''
    content: str = ''
    page_number: int = Field(1, alias='pageNumber', ge=1)
    box_2d: Optional[List[Any]] = None
    polygon: Optional[List[Any]] = None


class AnchorPointPayload(_Payload):
    type: str = 'unknown'
    description: str = ''
    page_number: int = Field(1, alias='pageNumber', ge=1)
    box_2d: Optional[List[Any]] = None
    polygon: Optional[List[Any]] = None
    confidence: float = 0.0


class FormMetadata(_Payload):
    company_name: Optional[str] = Field(None, alias='companyName')
    form_name: Optional[str] = Field(None, alias='formName')
    confidence: Optional[str] = None


@dataclass
class AIResponse:
    """Validated AI envelope."""
    fields: List[Any]
    guidance_texts: List[GuidanceTextPayload] = field(default_factory=list)
    anchor_points: List[AnchorPointPayload] = field(default_factory=list)
    form_metadata: Optional[FormMetadata] = None
    skipped_fields: int = 0


def extract_json_text(text: str) -> str:
    """
    Strip markdown fences and surrounding prose from a model reply.

    Raises:
        AIResponseFormatError: if no JSON object with a "fields" key is found
    """
    cleaned = text.strip()
    if cleaned.startswith('```'):
        cleaned = _FENCE_END.sub('', _FENCE_START.sub('', cleaned))

    if cleaned.startswith('{'):
        return cleaned

    match = _JSON_OBJECT_PATTERN.search(cleaned)
    if match:
        logger.info("Extracted JSON from mixed response")
        return match.group(0)

    logger.error(f"AI response was not JSON: {cleaned[:200]!r}")
    raise AIResponseFormatError(
        "AI returned text instead of JSON. The page may be empty or unreadable."
    )


def parse_ai_response(payload: Union[str, bytes, Dict[str, Any]]) -> AIResponse:
    """
    Parse and validate an AI reply.

    Args:
        payload: Raw model text (optionally fenced) or an already-decoded dict

    Returns:
        AIResponse with valid detections

    Raises:
        AIResponseFormatError: if the envelope is unusable
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode('utf-8')
        except UnicodeDecodeError as e:
            raise AIResponseFormatError(f"AI response is not UTF-8 text: {e}") from e

    if isinstance(payload, str):
        try:
            data = json.loads(extract_json_text(payload))
        except json.JSONDecodeError as e:
            raise AIResponseFormatError(f"Failed to parse AI response as JSON: {e}") from e
    else:
        data = payload

    if not isinstance(data, dict):
        raise AIResponseFormatError("Invalid response format: expected a JSON object")

    raw_fields = data.get('fields')
    if not isinstance(raw_fields, list):
        raise AIResponseFormatError("Invalid response format: missing fields")

    fields = []
    skipped = 0
    for index, raw in enumerate(raw_fields):
        try:
            fields.append(_detection_adapter.validate_python(raw))
        except ValidationError as e:
            skipped += 1
            logger.warning(f"Skipping invalid field detection #{index}: {e.error_count()} error(s)")

    if skipped:
        logger.warning(f"Skipped {skipped}/{len(raw_fields)} invalid field detection(s)")

    metadata = None
    if isinstance(data.get('formMetadata'), dict):
        try:
            metadata = FormMetadata.model_validate(data['formMetadata'])
        except ValidationError as e:
            logger.warning(f"Ignoring invalid formMetadata: {e.error_count()} error(s)")

    response = AIResponse(
        fields=fields,
        guidance_texts=_parse_optional_list(data, 'guidanceTexts', GuidanceTextPayload),
        anchor_points=_parse_optional_list(data, 'anchorPoints', AnchorPointPayload),
        form_metadata=metadata,
        skipped_fields=skipped
    )

    logger.info(
        f"Parsed AI response: {len(response.fields)} fields, "
        f"{len(response.guidance_texts)} guidance texts, "
        f"{len(response.anchor_points)} anchor points"
    )
    return response


def _parse_optional_list(data: Dict[str, Any], key: str, model: type) -> List[Any]:
    """Validate an optional list entry by entry, skipping bad items."""
    raw_items = data.get(key)
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        logger.warning(f"Ignoring {key}: expected a list, got {type(raw_items).__name__}")
        return []

    items = []
    for index, raw in enumerate(raw_items):
        try:
            items.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping invalid {key} entry #{index}: {e.error_count()} error(s)")
    return items
