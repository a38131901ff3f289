"""
Radio Group Detection
=====================

Post-processing pass over the full, calibrated field list.

Passes (executed in order):
1. MERGE PRE-TAGGED RADIOS: radio detections sharing a `radio_group`
   name are merged into one radio field carrying every option.
2. CHECKBOX CLUSTERS -> RADIOS: checkboxes that are spatially adjacent
   and axially aligned are clustered; clusters of plausible size become a
   single synthesized radio field.

Design Principles:
------------------
- Never raises: a field that cannot be grouped is emitted standalone
- Output keeps input order; a merged/synthesized field takes the slot of
  its first source field
- Sorting follows RTL reading order: top to bottom, then right to left

Tradeoffs:
----------
1. Clusters larger than MAX_GROUP_SIZE are assumed to be scattered,
   unrelated checkboxes (e.g. a checklist), not one logical choice.
   This is an empirical cutoff, kept as a tunable constant.
2. Adjacency requires axial alignment, so diagonal neighbours never join
   a cluster even when they are close.
"""

import logging
import uuid
from dataclasses import replace
from functools import cmp_to_key
from typing import Dict, List, Optional, Set

from .geometry import FieldCandidate, FieldType, Orientation

logger = logging.getLogger(__name__)


class RadioGroupDetector:
    """
    Merges radio detections and converts checkbox clusters into radio groups.
    """

    PROXIMITY_THRESHOLD = 50.0   # points (~17mm) center-to-center
    ALIGNMENT_THRESHOLD = 8.0    # points of variance allowed on the shared axis
    MIN_GROUP_SIZE = 2
    MAX_GROUP_SIZE = 6

    GENERIC_LABEL_PREFIXES = ('field_', 'checkbox_')
    DEFAULT_OPTION = 'אפשרות'
    FALLBACK_OPTIONS = ('אפשרות 1', 'אפשרות 2')

    def __init__(
        self,
        proximity_threshold: Optional[float] = None,
        alignment_threshold: Optional[float] = None,
        min_group_size: Optional[int] = None,
        max_group_size: Optional[int] = None
    ):
        if proximity_threshold is not None:
            self.PROXIMITY_THRESHOLD = proximity_threshold
        if alignment_threshold is not None:
            self.ALIGNMENT_THRESHOLD = alignment_threshold
        if min_group_size is not None:
            self.MIN_GROUP_SIZE = min_group_size
        if max_group_size is not None:
            self.MAX_GROUP_SIZE = max_group_size

    def detect(self, fields: List[FieldCandidate]) -> List[FieldCandidate]:
        """
        Run both grouping passes.

        Args:
            fields: Converted fields for the whole document

        Returns:
            New field list with radio groups merged/synthesized
        """
        merged = self.merge_radios_by_group(fields)
        return self.convert_checkbox_clusters(merged)

    # ------------------------------------------------------------------
    # Pass A: pre-tagged radios
    # ------------------------------------------------------------------

    def merge_radios_by_group(self, fields: List[FieldCandidate]) -> List[FieldCandidate]:
        """Merge radio fields that share the same radio_group name."""
        groups: Dict[str, List[FieldCandidate]] = {}
        for f in fields:
            if f.field_type == FieldType.RADIO and f.radio_group:
                groups.setdefault(f.radio_group, []).append(f)

        result = []
        emitted: Set[str] = set()

        for f in fields:
            if f.field_type != FieldType.RADIO or not f.radio_group:
                result.append(f)
                continue

            group_name = f.radio_group
            if group_name in emitted:
                continue
            emitted.add(group_name)

            members = groups[group_name]
            if len(members) == 1:
                result.append(f)
            else:
                result.append(self._merge_radio_group(group_name, members))

        return result

    def _merge_radio_group(self, group_name: str, radios: List[FieldCandidate]) -> FieldCandidate:
        ordered = self.sort_by_position(radios)
        first = ordered[0]

        options: List[str] = []
        for radio in ordered:
            if radio.options:
                options.extend(o for o in radio.options if o)
            elif radio.label:
                options.append(radio.label)

        # Remove duplicates while preserving order
        unique_options = list(dict.fromkeys(options))

        pages = sorted({radio.page_number for radio in radios})
        if len(pages) > 1:
            logger.debug(
                f"[RadioMerge] Group '{group_name}' spans pages {pages}, "
                f"merged field placed on page {first.page_number}"
            )

        logger.info(
            f"[RadioMerge] Merged {len(radios)} radios into group '{group_name}' "
            f"with options: {unique_options}"
        )

        return replace(
            first,
            field_type=FieldType.RADIO,
            label=first.label or ' / '.join(unique_options),
            options=unique_options or list(self.FALLBACK_OPTIONS),
            radio_group=group_name,
            orientation=self.detect_orientation(ordered),
            spacing=self.average_spacing(ordered) or first.spacing
        )

    # ------------------------------------------------------------------
    # Pass B: checkbox clusters
    # ------------------------------------------------------------------

    def convert_checkbox_clusters(self, fields: List[FieldCandidate]) -> List[FieldCandidate]:
        """Replace plausible checkbox clusters with synthesized radio fields."""
        checkbox_indices = [i for i, f in enumerate(fields) if f.field_type == FieldType.CHECKBOX]
        checkboxes = [fields[i] for i in checkbox_indices]

        replacements: Dict[int, FieldCandidate] = {}
        absorbed: Set[int] = set()

        for cluster in self.cluster_fields(checkboxes):
            if not self.MIN_GROUP_SIZE <= len(cluster) <= self.MAX_GROUP_SIZE:
                if len(cluster) > self.MAX_GROUP_SIZE:
                    logger.info(
                        f"[CheckboxToRadio] Cluster of {len(cluster)} checkboxes exceeds "
                        f"{self.MAX_GROUP_SIZE}, keeping as independent checkboxes"
                    )
                continue

            source_indices = sorted(checkbox_indices[i] for i in cluster)
            replacements[source_indices[0]] = self._cluster_to_radio([checkboxes[i] for i in cluster])
            absorbed.update(source_indices[1:])

        result = []
        for index, f in enumerate(fields):
            if index in absorbed:
                continue
            result.append(replacements.get(index, f))
        return result

    def _cluster_to_radio(self, cluster: List[FieldCandidate]) -> FieldCandidate:
        ordered = self.sort_by_position(cluster)
        first = ordered[0]
        options = [self.option_label(f) for f in ordered]

        logger.info(
            f"[CheckboxToRadio] Converting {len(ordered)} checkboxes to radio "
            f"with options: {options}"
        )

        return replace(
            first,
            field_type=FieldType.RADIO,
            label=self.extract_group_label(ordered) or ' / '.join(options),
            options=options,
            radio_group=f"radio_{uuid.uuid4().hex[:12]}",
            orientation=self.detect_orientation(ordered),
            spacing=self.average_spacing(ordered)
        )

    def cluster_fields(self, fields: List[FieldCandidate]) -> List[List[int]]:
        """
        Connected components of the neighbour relation, by breadth-first expansion.

        Returns:
            Clusters as lists of indices into `fields`
        """
        clusters = []
        visited: Set[int] = set()

        for start in range(len(fields)):
            if start in visited:
                continue

            cluster = [start]
            visited.add(start)

            i = 0
            while i < len(cluster):
                current = fields[cluster[i]]
                for other in range(len(fields)):
                    if other not in visited and self.is_neighbor(current, fields[other]):
                        cluster.append(other)
                        visited.add(other)
                i += 1

            clusters.append(cluster)

        return clusters

    def is_neighbor(self, a: FieldCandidate, b: FieldCandidate) -> bool:
        """Same page, close enough AND sharing a row or a column."""
        if a.page_number != b.page_number:
            return False
        if a.bounding_box.distance_to(b.bounding_box) > self.PROXIMITY_THRESHOLD:
            return False

        stacked = abs(a.bounding_box.center_x - b.bounding_box.center_x) < self.ALIGNMENT_THRESHOLD
        in_row = abs(a.bounding_box.center_y - b.bounding_box.center_y) < self.ALIGNMENT_THRESHOLD
        return stacked or in_row

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def sort_by_position(self, fields: List[FieldCandidate]) -> List[FieldCandidate]:
        """Top to bottom (high y first), then right to left within a row."""
        def compare(a: FieldCandidate, b: FieldCandidate) -> float:
            y_diff = b.bounding_box.center_y - a.bounding_box.center_y
            if abs(y_diff) > self.ALIGNMENT_THRESHOLD:
                return y_diff
            return b.bounding_box.center_x - a.bounding_box.center_x

        return sorted(fields, key=cmp_to_key(compare))

    @staticmethod
    def detect_orientation(fields: List[FieldCandidate]) -> Orientation:
        """Horizontal when member centers spread wider than they stack."""
        if len(fields) < 2:
            return Orientation.VERTICAL

        xs = [f.bounding_box.center_x for f in fields]
        ys = [f.bounding_box.center_y for f in fields]
        x_span = max(xs) - min(xs)
        y_span = max(ys) - min(ys)
        return Orientation.HORIZONTAL if x_span > y_span else Orientation.VERTICAL

    @staticmethod
    def average_spacing(ordered: List[FieldCandidate]) -> Optional[float]:
        """Mean center-to-center distance between consecutive buttons."""
        if len(ordered) < 2:
            return None
        gaps = [
            ordered[i].bounding_box.distance_to(ordered[i + 1].bounding_box)
            for i in range(len(ordered) - 1)
        ]
        return round(sum(gaps) / len(gaps), 2)

    def option_label(self, f: FieldCandidate) -> str:
        """Use a checkbox's label as option text unless it is a generic placeholder."""
        label = f.label or ''
        if label and not label.startswith(self.GENERIC_LABEL_PREFIXES):
            return label
        return f.name or self.DEFAULT_OPTION

    @staticmethod
    def extract_group_label(fields: List[FieldCandidate]) -> Optional[str]:
        """Longest prefix (at least 2 chars) of the first label shared by all labels."""
        labels = [f.label for f in fields if f.label]
        if not labels:
            return None

        first_label = labels[0]
        for length in range(len(first_label), 1, -1):
            prefix = first_label[:length]
            if all(label.startswith(prefix) for label in labels):
                return prefix.strip() or None

        return None
