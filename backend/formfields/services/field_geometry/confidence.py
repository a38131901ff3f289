"""
Confidence Scoring
==================

Combines independent 0-1 certainty signals reported for a field into a
single overall score and a quality bucket.

Weighted formula:
- Label match:        30% (how well the label text matched)
- Position certainty: 50% (how certain the box position is)
- Type certainty:     20% (how certain the field type is)
- Visible boundary:   +0.05 boost when the field has a drawn box/underline

The overall score is capped at 1.0. Quality is a pure threshold function
of the overall score; boundary values belong to the higher bucket.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Mapping, Optional


class Quality(str, Enum):
    """Discretized confidence tier."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ConfidenceFactors:
    """Raw certainty signals for a single field."""
    label_match: float
    position_certainty: float
    type_certainty: float
    visual_boundary: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ConfidenceFactors':
        """Build from an AI payload (camelCase or snake_case keys)."""
        def pick(camel: str, snake: str) -> Any:
            return data.get(camel, data.get(snake))

        return cls(
            label_match=float(pick('labelMatch', 'label_match') or 0.0),
            position_certainty=float(pick('positionCertainty', 'position_certainty') or 0.0),
            type_certainty=float(pick('typeCertainty', 'type_certainty') or 0.0),
            visual_boundary=pick('visualBoundary', 'visual_boundary')
        )


@dataclass(frozen=True)
class ConfidenceResult:
    """
    Scored confidence for a field.

    `breakdown` echoes the raw input factors so callers can audit which
    component dominated.
    """
    overall: float
    label_match: float
    position_certainty: float
    type_certainty: float
    quality: Quality

    @property
    def breakdown(self) -> Dict[str, float]:
        return {
            'label_match': self.label_match,
            'position_certainty': self.position_certainty,
            'type_certainty': self.type_certainty
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall': self.overall,
            'breakdown': self.breakdown,
            'quality': self.quality.value
        }


class ConfidenceScorer:
    """
    Weighted multi-factor confidence scorer.

    Weights, boost and cutoffs are class constants so they can be tuned
    and tested independently of the scoring shape.
    """

    LABEL_WEIGHT = 0.30
    POSITION_WEIGHT = 0.50
    TYPE_WEIGHT = 0.20
    VISUAL_BOUNDARY_BOOST = 0.05

    HIGH_QUALITY_THRESHOLD = 0.85
    MEDIUM_QUALITY_THRESHOLD = 0.70

    # Used when the model reports no factors for a field
    NEUTRAL_FACTORS = ConfidenceFactors(
        label_match=0.5,
        position_certainty=0.5,
        type_certainty=0.5
    )

    def score(self, factors: ConfidenceFactors) -> ConfidenceResult:
        """
        Score a field's confidence factors.

        Args:
            factors: Raw certainty signals

        Returns:
            ConfidenceResult with overall score, breakdown and quality
        """
        overall = (
            factors.label_match * self.LABEL_WEIGHT +
            factors.position_certainty * self.POSITION_WEIGHT +
            factors.type_certainty * self.TYPE_WEIGHT
        )

        if factors.visual_boundary is True:
            overall += self.VISUAL_BOUNDARY_BOOST

        overall = max(0.0, min(overall, 1.0))

        return ConfidenceResult(
            overall=overall,
            label_match=factors.label_match,
            position_certainty=factors.position_certainty,
            type_certainty=factors.type_certainty,
            quality=self.classify(overall)
        )

    @classmethod
    def classify(cls, overall: float) -> Quality:
        """Map an overall score to its quality bucket."""
        if overall >= cls.HIGH_QUALITY_THRESHOLD:
            return Quality.HIGH
        if overall >= cls.MEDIUM_QUALITY_THRESHOLD:
            return Quality.MEDIUM
        return Quality.LOW
