"""
RTL Calibration Service
=======================

Corrects the common case where the AI model marks a Hebrew/RTL field's
LABEL position instead of the blank input area next to it.

Key insight for RTL forms:
- Labels are on the RIGHT side
- Input fields/underlines are on the LEFT side of their labels
- The model, trained mostly on LTR layouts, often returns the label box
  or a box straddling label + input

Correction is horizontal only: `y` and `height` are never touched. Every
corrected field records `original_x` and `calibrated=True` so the editor
can audit or revert the change.

Tradeoffs:
----------
1. Conservative trigger: only boxes reaching into the right-hand label
   zone are moved, and fields the model is already confident about
   (overall >= MIN_CONFIDENCE_FOR_CALIBRATION) are trusted as-is.
2. Anchor points narrow the horizontal reference frame the corrected box
   is clamped into; without anchors the frame is the full page width.
3. Anchor-matrix calibration (scale + translation) only runs when
   verified anchor positions are supplied by the caller.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .box_converter import round_half_away
from .geometry import AnchorPoint, Box, Direction, FieldCandidate, FieldType, PageInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationMatrix:
    """Scale + translation mapping AI coordinates to verified coordinates."""
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    rotation: float = 0.0
    confidence: float = 0.5

    @property
    def is_identity(self) -> bool:
        return (
            self.offset_x == 0.0 and self.offset_y == 0.0 and
            self.scale_x == 1.0 and self.scale_y == 1.0
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            'offset_x': self.offset_x,
            'offset_y': self.offset_y,
            'scale_x': self.scale_x,
            'scale_y': self.scale_y,
            'rotation': self.rotation,
            'confidence': self.confidence
        }


class RtlCalibrationService:
    """
    Calibrates field coordinates for right-to-left forms.
    """

    # Trust the model's own placement at or above this overall confidence
    MIN_CONFIDENCE_FOR_CALIBRATION = 0.7

    # A box whose right edge reaches this far across the page sits on the label side
    RIGHT_SIDE_THRESHOLD_PERCENT = 85

    # Width range (percent of page) of a box that is just a label
    MIN_LABEL_WIDTH_PERCENT = 5
    MAX_LABEL_WIDTH_PERCENT = 20

    # Input area is the left part of a label+input straddling box
    INPUT_TO_TOTAL_RATIO = 0.6

    # Width given to an input moved off a label-only box
    DEFAULT_INPUT_WIDTH_PERCENT = 30

    # Gap between a label's left edge and its input (points)
    LABEL_GAP = 5.0

    # A correction clamped narrower than this is dropped (points)
    MIN_CORRECTED_WIDTH = 10.0

    # Anchor reference frame requirements
    MIN_FRAME_ANCHORS = 2
    MIN_FRAME_WIDTH_PERCENT = 50

    # Search radius for anchor matching (points)
    ANCHOR_MATCH_RADIUS = 30.0

    SKIPPED_TYPES = (FieldType.CHECKBOX, FieldType.RADIO)

    def __init__(self, min_confidence_for_calibration: Optional[float] = None):
        if min_confidence_for_calibration is not None:
            self.MIN_CONFIDENCE_FOR_CALIBRATION = min_confidence_for_calibration

    # ------------------------------------------------------------------
    # RTL label -> input correction
    # ------------------------------------------------------------------

    def apply_rtl_correction(
        self,
        field: FieldCandidate,
        page_width: Optional[float],
        anchors: Sequence[AnchorPoint] = ()
    ) -> FieldCandidate:
        """
        Shift a field from its label position to its input position.

        Args:
            field: Converted field in PDF points
            page_width: Effective width of the field's page, None if unknown
            anchors: Anchor points (any page) used as a reference frame

        Returns:
            A corrected copy of the field, or the field itself when no
            correction applies
        """
        if not page_width or page_width <= 0:
            return field

        if field.direction == Direction.LTR or field.field_type in self.SKIPPED_TYPES:
            return field

        if field.confidence is not None and field.confidence.overall >= self.MIN_CONFIDENCE_FOR_CALIBRATION:
            return field

        box = field.bounding_box
        if box.right < page_width * self.RIGHT_SIDE_THRESHOLD_PERCENT / 100:
            return field

        min_label_width = page_width * self.MIN_LABEL_WIDTH_PERCENT / 100
        max_label_width = page_width * self.MAX_LABEL_WIDTH_PERCENT / 100

        if box.width > max_label_width:
            # Box straddles label + input: keep the input part on the left
            new_x = box.x
            new_width = box.width * self.INPUT_TO_TOTAL_RATIO
            reason = "label+input box"
        elif box.width >= min_label_width:
            # Box is the label itself: input sits to its left
            new_width = page_width * self.DEFAULT_INPUT_WIDTH_PERCENT / 100
            new_x = box.x - self.LABEL_GAP - new_width
            reason = "label-only box"
        else:
            return field

        frame_left, frame_right = self.reference_frame(field.page_number, page_width, anchors)
        new_x, new_width = self._clamp_to_frame(new_x, new_width, frame_left, frame_right)

        if new_width < self.MIN_CORRECTED_WIDTH:
            logger.info(
                f"[RTL Calibration] Skipped '{field.name}': {reason} correction leaves "
                f"{new_width:.1f}pt inside frame [{frame_left:.1f}, {frame_right:.1f}]"
            )
            return field

        logger.info(
            f"[RTL Calibration] {reason} '{field.name}': "
            f"x {box.x:.1f} -> {new_x:.1f}, width {box.width:.1f} -> {new_width:.1f}"
        )

        return replace(
            field,
            bounding_box=replace(box, x=new_x, width=new_width),
            calibrated=True,
            original_x=field.original_x if field.calibrated else box.x
        )

    def calibrate_rtl_fields(
        self,
        fields: Iterable[FieldCandidate],
        page_info_map: Dict[int, PageInfo],
        anchors: Sequence[AnchorPoint] = ()
    ) -> List[FieldCandidate]:
        """
        Apply RTL correction to every field on an RTL form.

        Fields on pages without known geometry are returned unmodified.
        """
        calibrated = []
        for field in fields:
            page_info = page_info_map.get(field.page_number)
            page_width = page_info.width if page_info else None
            calibrated.append(self.apply_rtl_correction(field, page_width, anchors))

        moved = sum(1 for f in calibrated if f.calibrated)
        logger.info(f"[RTL Calibration] Corrected {moved}/{len(calibrated)} field(s)")
        return calibrated

    def reference_frame(
        self,
        page_number: int,
        page_width: float,
        anchors: Sequence[AnchorPoint]
    ) -> Tuple[float, float]:
        """
        Horizontal span a corrected field must stay within.

        Uses the extent of the page's anchor points when there are enough
        of them spanning a plausible content width, else the full page.
        """
        page_anchors = [a for a in anchors if a.page_number == page_number]
        if len(page_anchors) < self.MIN_FRAME_ANCHORS:
            return 0.0, page_width

        left = max(0.0, min(a.bounding_box.x for a in page_anchors))
        right = min(page_width, max(a.bounding_box.right for a in page_anchors))

        if right - left < page_width * self.MIN_FRAME_WIDTH_PERCENT / 100:
            return 0.0, page_width
        return left, right

    @staticmethod
    def _clamp_to_frame(x: float, width: float, left: float, right: float) -> Tuple[float, float]:
        """Clamp a horizontal span into [left, right]."""
        clamped_x = min(max(x, left), right)
        clamped_right = min(max(x + width, clamped_x), right)
        return round_half_away(clamped_x), round_half_away(clamped_right - clamped_x)

    # ------------------------------------------------------------------
    # Anchor-matrix calibration
    # ------------------------------------------------------------------

    def calculate_calibration(
        self,
        ai_anchors: Sequence[AnchorPoint],
        verified_anchors: Optional[Sequence[AnchorPoint]],
        page_info: PageInfo
    ) -> CalibrationMatrix:
        """
        Calculate a calibration matrix from matched anchor pairs.

        Args:
            ai_anchors: Anchor points detected by the AI model
            verified_anchors: Known/verified anchor positions, if available
            page_info: Page being calibrated

        Returns:
            Identity matrix when calibration is not possible, translation
            for 2 matches, scale + translation for 3 or more
        """
        if not verified_anchors:
            return CalibrationMatrix()

        page_ai = [a for a in ai_anchors if a.page_number == page_info.page_number]
        matches = self.match_anchors(page_ai, verified_anchors)

        if len(matches) < 2:
            return CalibrationMatrix(confidence=0.3)

        if len(matches) == 2:
            return self._calculate_translation(matches)
        return self._calculate_affine_transform(matches)

    def match_anchors(
        self,
        ai_anchors: Sequence[AnchorPoint],
        verified_anchors: Sequence[AnchorPoint]
    ) -> List[Tuple[AnchorPoint, AnchorPoint]]:
        """Pair each AI anchor with the nearest same-page verified anchor."""
        matches = []

        for ai_anchor in ai_anchors:
            best_match = None
            best_distance = float('inf')

            for verified in verified_anchors:
                if verified.page_number != ai_anchor.page_number:
                    continue

                distance = math.hypot(
                    ai_anchor.bounding_box.x - verified.bounding_box.x,
                    ai_anchor.bounding_box.y - verified.bounding_box.y
                )
                if distance < self.ANCHOR_MATCH_RADIUS and distance < best_distance:
                    best_distance = distance
                    best_match = verified

            if best_match is not None:
                matches.append((ai_anchor, best_match))

        return matches

    @staticmethod
    def _calculate_translation(matches: List[Tuple[AnchorPoint, AnchorPoint]]) -> CalibrationMatrix:
        """Average offset between matched pairs."""
        offset_x = sum(v.bounding_box.x - a.bounding_box.x for a, v in matches) / len(matches)
        offset_y = sum(v.bounding_box.y - a.bounding_box.y for a, v in matches) / len(matches)
        return CalibrationMatrix(offset_x=offset_x, offset_y=offset_y, confidence=0.7)

    @staticmethod
    def _calculate_affine_transform(matches: List[Tuple[AnchorPoint, AnchorPoint]]) -> CalibrationMatrix:
        """Average size ratio, then average offset after scaling."""
        def ratio(verified: float, detected: float) -> float:
            return verified / detected if verified > 0 and detected > 0 else 1.0

        scale_x = sum(ratio(v.bounding_box.width, a.bounding_box.width) for a, v in matches) / len(matches)
        scale_y = sum(ratio(v.bounding_box.height, a.bounding_box.height) for a, v in matches) / len(matches)

        offset_x = sum(v.bounding_box.x - a.bounding_box.x * scale_x for a, v in matches) / len(matches)
        offset_y = sum(v.bounding_box.y - a.bounding_box.y * scale_y for a, v in matches) / len(matches)

        return CalibrationMatrix(
            offset_x=offset_x,
            offset_y=offset_y,
            scale_x=scale_x,
            scale_y=scale_y,
            confidence=0.8
        )

    @staticmethod
    def apply_calibration(field: FieldCandidate, matrix: CalibrationMatrix) -> FieldCandidate:
        """Scale then translate a field's box, recording its original position."""
        if matrix.is_identity:
            return field

        box = field.bounding_box
        calibrated_box = Box(
            x=round_half_away(box.x * matrix.scale_x + matrix.offset_x),
            y=round_half_away(box.y * matrix.scale_y + matrix.offset_y),
            width=round_half_away(box.width * matrix.scale_x),
            height=round_half_away(box.height * matrix.scale_y)
        )

        return replace(
            field,
            bounding_box=calibrated_box,
            calibrated=True,
            original_x=box.x,
            original_y=box.y
        )


def is_rtl_form(fields: Iterable[FieldCandidate]) -> bool:
    """
    Detect if a form is primarily RTL based on field directions.

    Fields without a direction are ignored. When no field declares one
    the form is treated as RTL.
    """
    directions = [f.direction for f in fields if f.direction is not None]
    if not directions:
        return True

    rtl_count = sum(1 for d in directions if d == Direction.RTL)
    return rtl_count > len(directions) / 2


def calculate_average_confidence(fields: Iterable[FieldCandidate]) -> float:
    """Mean overall confidence across scored fields, 0.5 when none are scored."""
    scores = [f.confidence.overall for f in fields if f.confidence is not None]
    if not scores:
        return 0.5
    return sum(scores) / len(scores)
