"""
Field Geometry Primitives
=========================

Shared value types for the field geometry pipeline.

Coordinate System:
------------------
- All boxes are in PDF points (1/72 inch)
- Origin is the BOTTOM-LEFT corner of the page
- `y` is the box's bottom edge, `top` is `y + height`

Pages are described by their *effective* (visually upright) dimensions,
already swapped for 90/270 degree rotation.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Dict, Any, Optional

# Standard PDF page sizes in points
PAGE_SIZES = {
    'A4': {'width': 595.0, 'height': 842.0},
    'LETTER': {'width': 612.0, 'height': 792.0},
    'LEGAL': {'width': 612.0, 'height': 1008.0},
}

POINTS_PER_INCH = 72


class FieldType(str, Enum):
    """Types of fillable fields the AI model can report."""
    TEXT = "text"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DROPDOWN = "dropdown"
    SIGNATURE = "signature"


class Direction(str, Enum):
    """Text direction of a field or form."""
    LTR = "ltr"
    RTL = "rtl"


class Orientation(str, Enum):
    """Layout of the buttons in a radio group."""
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


@dataclass(frozen=True)
class PageInfo:
    """
    Effective page geometry.

    Width/height are already axis-swapped when rotation is 90 or 270.
    """
    page_number: int
    width: float
    height: float
    rotation: int = 0

    @classmethod
    def a4(cls, page_number: int = 1) -> 'PageInfo':
        """A4 portrait page, used whenever real geometry is unavailable."""
        return cls(
            page_number=page_number,
            width=PAGE_SIZES['A4']['width'],
            height=PAGE_SIZES['A4']['height'],
            rotation=0
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'page_number': self.page_number,
            'width': self.width,
            'height': self.height,
            'rotation': self.rotation
        }


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned rectangle in PDF points, bottom-left origin.
    """
    x: float       # Left edge
    y: float       # Bottom edge
    width: float
    height: float

    @property
    def right(self) -> float:
        """X coordinate of right edge."""
        return self.x + self.width

    @property
    def top(self) -> float:
        """Y coordinate of top edge."""
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    @property
    def area(self) -> float:
        return self.width * self.height

    def distance_to(self, other: 'Box') -> float:
        """Calculate center-to-center distance."""
        return math.hypot(self.center_x - other.center_x, self.center_y - other.center_y)

    def to_dict(self) -> Dict[str, float]:
        return {
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height
        }


@dataclass(frozen=True)
class OverlapResolution:
    """Decision for a field that overlaps another field on its page."""
    action: str            # keep, adjust, flag or remove
    reason: str
    adjusted_box: Optional[Box] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'action': self.action, 'reason': self.reason}
        if self.adjusted_box is not None:
            result['adjusted_box'] = self.adjusted_box.to_dict()
        return result


@dataclass
class FieldCandidate:
    """
    A detected fillable field in PDF point coordinates.

    Built from an AI detection after box conversion. Later stages
    (RTL correction, radio grouping, boundary validation) return new
    instances via `dataclasses.replace` rather than mutating.

    Type-specific attributes are only populated for their field type:
    radio -> options/radio_group/orientation/spacing, dropdown -> options,
    text -> font/font_size.
    """
    name: str
    field_type: FieldType
    bounding_box: Box
    page_number: int

    label: Optional[str] = None
    required: bool = False
    direction: Optional[Direction] = None
    section_name: Optional[str] = None

    # Radio / dropdown attributes
    options: Optional[List[str]] = None
    radio_group: Optional[str] = None
    orientation: Optional[Orientation] = None
    spacing: Optional[float] = None

    # Text attributes
    font: Optional[str] = None
    font_size: Optional[float] = None

    # ConfidenceResult, attached by the pipeline
    confidence: Optional[Any] = None

    # RTL calibration audit trail
    calibrated: bool = False
    original_x: Optional[float] = None
    original_y: Optional[float] = None

    # Filled by layout passes
    validation_status: Optional[str] = None
    original_box: Optional[Box] = None
    has_overlap: bool = False
    resolution: Optional[OverlapResolution] = None
    tab_index: Optional[int] = None

    page_width: Optional[float] = None
    page_height: Optional[float] = None

    @property
    def x(self) -> float:
        return self.bounding_box.x

    @property
    def y(self) -> float:
        return self.bounding_box.y

    @property
    def width(self) -> float:
        return self.bounding_box.width

    @property
    def height(self) -> float:
        return self.bounding_box.height

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            'name': self.name,
            'type': self.field_type.value,
            'page_number': self.page_number,
            **self.bounding_box.to_dict(),
            'label': self.label,
            'required': self.required,
            'direction': self.direction.value if self.direction else None,
        }
        if self.section_name:
            result['section_name'] = self.section_name
        if self.options is not None:
            result['options'] = list(self.options)
        if self.field_type == FieldType.RADIO:
            result['radio_group'] = self.radio_group
            result['orientation'] = self.orientation.value if self.orientation else None
            result['spacing'] = self.spacing
        if self.font is not None:
            result['font'] = self.font
        if self.font_size is not None:
            result['font_size'] = self.font_size
        if self.confidence is not None:
            result['confidence'] = self.confidence.to_dict()
        if self.calibrated:
            result['_calibrated'] = True
            result['_original_x'] = self.original_x
        if self.validation_status:
            result['validation_status'] = self.validation_status
        if self.original_box is not None:
            result['original_box'] = self.original_box.to_dict()
        if self.has_overlap:
            result['has_overlap'] = True
        if self.resolution is not None:
            result['resolution'] = self.resolution.to_dict()
        if self.tab_index is not None:
            result['tab_index'] = self.tab_index
        if self.page_width is not None:
            result['page_width'] = self.page_width
            result['page_height'] = self.page_height
        return result


@dataclass
class GuidanceText:
    """Instructional text printed on the form (not fillable)."""
    id: str
    content: str
    page_number: int
    bounding_box: Box

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'content': self.content,
            'page_number': self.page_number,
            **self.bounding_box.to_dict()
        }


@dataclass
class AnchorPoint:
    """
    Fixed visual reference (logo, header, table corner, border)
    used to calibrate field coordinates.
    """
    type: str
    description: str
    page_number: int
    bounding_box: Box
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'description': self.description,
            'page_number': self.page_number,
            **self.bounding_box.to_dict(),
            'confidence': self.confidence
        }
