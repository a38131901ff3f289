"""
Layout passes applied to finalized fields: page boundary validation,
overlap resolution and RTL-aware tab order.
"""
import logging
from dataclasses import replace
from functools import cmp_to_key
from typing import Dict, List, Set

from .box_converter import round_half_away
from .geometry import Box, Direction, FieldCandidate, OverlapResolution, PageInfo

logger = logging.getLogger(__name__)

VALID = "valid"
ADJUSTED = "adjusted"
INVALID = "invalid"

# Fields whose y differs by less than this share a row (points)
ROW_TOLERANCE = 10.0

KEEP = "keep"
ADJUST = "adjust"
FLAG = "flag"
REMOVE = "remove"

# Overlap (percent of the smaller box) at which two fields conflict
OVERLAP_THRESHOLD_PERCENT = 30.0
# Above this the lower-confidence field is treated as a duplicate
DUPLICATE_OVERLAP_PERCENT = 80.0
# Confidence gap below which neither field wins on confidence alone
CONFIDENCE_SIMILARITY = 0.1
# Gap left under the conflicting field when moving a field down (points)
ADJUST_GAP = 5.0
NEUTRAL_CONFIDENCE = 0.5


def validate_boundaries(
    fields: List[FieldCandidate],
    page_info_map: Dict[int, PageInfo]
) -> List[FieldCandidate]:
    """
    Trim every field to its page and tag it valid/adjusted/invalid.

    Fields are never dropped; consumers decide what to do with invalid ones.
    Pages without known geometry are checked against A4.
    """
    validated = []
    for field in fields:
        page_info = page_info_map.get(field.page_number) or PageInfo.a4(field.page_number)
        validated.append(_validate_field(field, page_info))

    counts = {status: sum(1 for f in validated if f.validation_status == status)
              for status in (VALID, ADJUSTED, INVALID)}
    if counts[ADJUSTED] or counts[INVALID]:
        logger.info(
            f"Boundary validation: {counts[ADJUSTED]} adjusted, "
            f"{counts[INVALID]} invalid of {len(validated)}"
        )
    return validated


def _validate_field(field: FieldCandidate, page_info: PageInfo) -> FieldCandidate:
    box = field.bounding_box

    if box.width <= 0 or box.height <= 0:
        return replace(field, validation_status=INVALID)

    # Entirely off the page
    if box.x >= page_info.width or box.y >= page_info.height:
        return replace(field, validation_status=INVALID, original_box=box)

    x, y, width, height = box.x, box.y, box.width, box.height

    if x < 0:
        width += x
        x = 0.0
    if y < 0:
        height += y
        y = 0.0
    if x + width > page_info.width:
        width = page_info.width - x
    if y + height > page_info.height:
        height = page_info.height - y

    trimmed = Box(
        x=round_half_away(x),
        y=round_half_away(y),
        width=round_half_away(max(width, 0.0)),
        height=round_half_away(max(height, 0.0))
    )
    if trimmed == box:
        return replace(field, validation_status=VALID)

    return replace(field, bounding_box=trimmed, validation_status=ADJUSTED, original_box=box)


def overlap_percentage(a: Box, b: Box) -> float:
    """Intersection area as a percentage of the smaller box's area."""
    x_overlap = max(0.0, min(a.right, b.right) - max(a.x, b.x))
    y_overlap = max(0.0, min(a.top, b.top) - max(a.y, b.y))
    intersection = x_overlap * y_overlap
    if intersection == 0:
        return 0.0
    return intersection / min(a.area, b.area) * 100


def resolve_overlaps(
    fields: List[FieldCandidate],
    threshold: float = OVERLAP_THRESHOLD_PERCENT
) -> List[FieldCandidate]:
    """
    Mark same-page fields that overlap and attach a resolution to each.

    Pairs are compared in input order. A clearly more confident field is
    kept; the other is removed when it is nearly a duplicate, otherwise a
    box moved below the kept field is proposed. With similar confidence a
    required field beats an optional one, and anything else is flagged for
    manual review.

    Annotation only: no field is moved or dropped here.
    """
    overlapping: Set[int] = set()
    resolutions: Dict[int, OverlapResolution] = {}

    for i in range(len(fields)):
        for j in range(i + 1, len(fields)):
            if fields[i].page_number != fields[j].page_number:
                continue

            percent = overlap_percentage(fields[i].bounding_box, fields[j].bounding_box)
            if percent < threshold:
                continue

            overlapping.update((i, j))
            _resolve_pair(fields, i, j, percent, resolutions)

    if overlapping:
        counts = {action: sum(1 for r in resolutions.values() if r.action == action)
                  for action in (KEEP, ADJUST, FLAG, REMOVE)}
        logger.info(
            f"Overlap resolution: {len(overlapping)} of {len(fields)} fields overlap, "
            f"{counts[KEEP]} keep, {counts[ADJUST]} adjust, {counts[FLAG]} flag, {counts[REMOVE]} remove"
        )

    return [
        replace(f, has_overlap=True, resolution=resolutions.get(index)) if index in overlapping else f
        for index, f in enumerate(fields)
    ]


def _confidence(field: FieldCandidate) -> float:
    if field.confidence is None:
        return NEUTRAL_CONFIDENCE
    return field.confidence.overall


def _resolve_pair(
    fields: List[FieldCandidate],
    i: int,
    j: int,
    percent: float,
    resolutions: Dict[int, OverlapResolution]
) -> None:
    first, second = fields[i], fields[j]
    first_conf, second_conf = _confidence(first), _confidence(second)

    if abs(first_conf - second_conf) < CONFIDENCE_SIMILARITY:
        if first.required != second.required:
            kept, moved = (i, j) if first.required else (j, i)
            resolutions[kept] = OverlapResolution(KEEP, "Required field with similar confidence")
            resolutions[moved] = _move_below(
                fields[moved], fields[kept], "Optional field with similar confidence"
            )
        else:
            for index in (i, j):
                resolutions.setdefault(
                    index, OverlapResolution(FLAG, "Similar confidence, manual review needed")
                )
        return

    higher, lower = (i, j) if first_conf > second_conf else (j, i)
    resolutions.setdefault(
        higher, OverlapResolution(KEEP, f"Higher confidence ({_confidence(fields[higher]):.2f})")
    )

    reason = f"Lower confidence ({_confidence(fields[lower]):.2f})"
    if percent > DUPLICATE_OVERLAP_PERCENT:
        resolutions[lower] = OverlapResolution(REMOVE, reason)
    else:
        resolutions[lower] = _move_below(fields[lower], fields[higher], reason)


def _move_below(field: FieldCandidate, conflict: FieldCandidate, reason: str) -> OverlapResolution:
    """Propose `field` directly under `conflict`, same size and x."""
    box = field.bounding_box
    # PDF y grows upward: below means a smaller bottom edge
    new_y = conflict.bounding_box.y - ADJUST_GAP - box.height
    if new_y < 0:
        return OverlapResolution(FLAG, f"{reason}, no room below conflicting field")
    return OverlapResolution(ADJUST, reason, adjusted_box=replace(box, y=round_half_away(new_y)))


def calculate_tab_order(
    fields: List[FieldCandidate],
    direction: Direction = Direction.RTL
) -> List[FieldCandidate]:
    """
    Assign tab indices in reading order.

    Order: page, then section (when both fields have one), then top to
    bottom, then right to left (RTL) or left to right (LTR) within a row.
    """
    def compare(a: FieldCandidate, b: FieldCandidate) -> float:
        if a.page_number != b.page_number:
            return a.page_number - b.page_number

        if a.section_name and b.section_name and a.section_name != b.section_name:
            return -1 if a.section_name < b.section_name else 1

        # PDF y grows upward: higher top edge comes first
        y_diff = b.bounding_box.top - a.bounding_box.top
        if abs(y_diff) > ROW_TOLERANCE:
            return y_diff

        if direction == Direction.RTL:
            return b.bounding_box.right - a.bounding_box.right
        return a.bounding_box.x - b.bounding_box.x

    ordered = sorted(fields, key=cmp_to_key(compare))
    return [replace(f, tab_index=index) for index, f in enumerate(ordered, start=1)]
