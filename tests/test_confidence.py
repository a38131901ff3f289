"""Tests for weighted confidence scoring."""

import pytest

from formfields.services.field_geometry import ConfidenceFactors, ConfidenceScorer, Quality


@pytest.fixture
def scorer():
    return ConfidenceScorer()


class TestScore:

    def test_weighted_sum(self, scorer):
        result = scorer.score(ConfidenceFactors(label_match=1.0, position_certainty=0.8, type_certainty=0.9))
        assert result.overall == pytest.approx(0.88)
        assert result.quality == Quality.HIGH

    def test_visual_boundary_boost(self, scorer):
        base = scorer.score(ConfidenceFactors(0.6, 0.6, 0.6))
        boosted = scorer.score(ConfidenceFactors(0.6, 0.6, 0.6, visual_boundary=True))
        assert boosted.overall == pytest.approx(base.overall + 0.05)

    def test_boost_requires_true(self, scorer):
        unset = scorer.score(ConfidenceFactors(0.6, 0.6, 0.6))
        false = scorer.score(ConfidenceFactors(0.6, 0.6, 0.6, visual_boundary=False))
        assert false.overall == unset.overall

    def test_capped_at_one(self, scorer):
        result = scorer.score(ConfidenceFactors(1.0, 1.0, 1.0, visual_boundary=True))
        assert result.overall <= 1.0
        assert result.overall == pytest.approx(1.0)

    def test_breakdown_echoes_raw_factors(self, scorer):
        result = scorer.score(ConfidenceFactors(0.9, 0.4, 0.7, visual_boundary=True))
        assert result.breakdown == {
            'label_match': 0.9,
            'position_certainty': 0.4,
            'type_certainty': 0.7
        }

    def test_to_dict(self, scorer):
        result = scorer.score(ConfidenceFactors(0.5, 0.5, 0.5))
        data = result.to_dict()
        assert data['quality'] == 'low'
        assert data['overall'] == pytest.approx(0.5)
        assert set(data['breakdown']) == {'label_match', 'position_certainty', 'type_certainty'}


class TestClassify:

    @pytest.mark.parametrize("overall, quality", [
        (0.85, Quality.HIGH),
        (0.8499, Quality.MEDIUM),
        (0.70, Quality.MEDIUM),
        (0.6999, Quality.LOW),
        (1.0, Quality.HIGH),
        (0.0, Quality.LOW),
    ])
    def test_boundaries_belong_to_higher_bucket(self, overall, quality):
        assert ConfidenceScorer.classify(overall) == quality


class TestFactorsFromDict:

    def test_camel_case_keys(self):
        factors = ConfidenceFactors.from_dict({
            'labelMatch': 0.9,
            'positionCertainty': 0.8,
            'typeCertainty': 0.7,
            'visualBoundary': True
        })
        assert factors == ConfidenceFactors(0.9, 0.8, 0.7, True)

    def test_snake_case_keys(self):
        factors = ConfidenceFactors.from_dict({'label_match': 0.2, 'position_certainty': 0.3, 'type_certainty': 0.4})
        assert factors == ConfidenceFactors(0.2, 0.3, 0.4)

    def test_key_order_does_not_affect_score(self, scorer):
        a = ConfidenceFactors.from_dict({'labelMatch': 0.9, 'positionCertainty': 0.6, 'typeCertainty': 0.3})
        b = ConfidenceFactors.from_dict({'typeCertainty': 0.3, 'labelMatch': 0.9, 'positionCertainty': 0.6})
        assert scorer.score(a) == scorer.score(b)

    def test_missing_factors_default_to_zero(self):
        assert ConfidenceFactors.from_dict({}).label_match == 0.0
