"""Tests for RTL label -> input correction and anchor-matrix calibration."""

import pytest

from formfields.services.field_geometry import (
    AnchorPoint,
    Box,
    CalibrationMatrix,
    ConfidenceFactors,
    ConfidenceScorer,
    Direction,
    FieldType,
    PageInfo,
    RtlCalibrationService,
    calculate_average_confidence,
    is_rtl_form,
)

PAGE_WIDTH = 595.0


@pytest.fixture
def service():
    return RtlCalibrationService()


def anchor(x, y, width=20.0, height=20.0, page_number=1):
    return AnchorPoint(
        type="table_corner",
        description="corner",
        page_number=page_number,
        bounding_box=Box(x=x, y=y, width=width, height=height)
    )


class TestApplyRtlCorrection:

    def test_label_only_box_moves_left_of_label(self, service, make_field, low_confidence):
        field = make_field(520.0, 700.0, width=60.0, height=18.0, confidence=low_confidence)
        corrected = service.apply_rtl_correction(field, PAGE_WIDTH)

        assert corrected.x == pytest.approx(336.5)
        assert corrected.width == pytest.approx(178.5)
        assert corrected.y == 700.0
        assert corrected.height == 18.0
        assert corrected.calibrated is True
        assert corrected.original_x == 520.0

    def test_straddling_box_keeps_input_part(self, service, make_field, low_confidence):
        field = make_field(300.0, 650.0, width=250.0, height=20.0, confidence=low_confidence)
        corrected = service.apply_rtl_correction(field, PAGE_WIDTH)

        assert corrected.x == 300.0
        assert corrected.width == pytest.approx(150.0)
        assert corrected.original_x == 300.0
        assert corrected.calibrated

    def test_original_field_is_not_mutated(self, service, make_field, low_confidence):
        field = make_field(520.0, 700.0, width=60.0, confidence=low_confidence)
        service.apply_rtl_correction(field, PAGE_WIDTH)
        assert field.x == 520.0
        assert field.calibrated is False

    def test_unknown_page_width_skips(self, service, make_field, low_confidence):
        field = make_field(520.0, 700.0, width=60.0, confidence=low_confidence)
        assert service.apply_rtl_correction(field, None) is field
        assert service.apply_rtl_correction(field, 0) is field

    def test_confident_field_is_trusted(self, service, make_field):
        confident = ConfidenceScorer().score(ConfidenceFactors(1.0, 0.8, 0.9))
        field = make_field(520.0, 700.0, width=60.0, confidence=confident)
        assert service.apply_rtl_correction(field, PAGE_WIDTH) is field

    def test_ltr_field_skipped(self, service, make_field, low_confidence):
        field = make_field(520.0, 700.0, width=60.0, direction=Direction.LTR, confidence=low_confidence)
        assert service.apply_rtl_correction(field, PAGE_WIDTH) is field

    @pytest.mark.parametrize("field_type", [FieldType.CHECKBOX, FieldType.RADIO])
    def test_mark_boxes_skipped(self, service, make_field, low_confidence, field_type):
        field = make_field(520.0, 700.0, width=60.0, field_type=field_type, confidence=low_confidence)
        assert service.apply_rtl_correction(field, PAGE_WIDTH) is field

    def test_left_side_box_unchanged(self, service, make_field, low_confidence):
        field = make_field(50.0, 700.0, width=100.0, confidence=low_confidence)
        assert service.apply_rtl_correction(field, PAGE_WIDTH) is field

    def test_tiny_box_unchanged(self, service, make_field, low_confidence):
        field = make_field(560.0, 700.0, width=20.0, confidence=low_confidence)
        assert service.apply_rtl_correction(field, PAGE_WIDTH) is field

    def test_field_without_confidence_is_corrected(self, service, make_field):
        field = make_field(520.0, 700.0, width=60.0)
        assert service.apply_rtl_correction(field, PAGE_WIDTH).calibrated

    def test_clamped_into_anchor_frame(self, service, make_field, low_confidence):
        anchors = [anchor(250.0, 800.0), anchor(540.0, 800.0)]
        field = make_field(400.0, 700.0, width=110.0, confidence=low_confidence)

        corrected = service.apply_rtl_correction(field, PAGE_WIDTH, anchors)

        assert corrected.x == pytest.approx(250.0)
        assert corrected.width == pytest.approx(145.0)
        assert corrected.x >= 0
        assert corrected.x + corrected.width <= PAGE_WIDTH

    def test_frame_ending_left_of_target_skips_correction(self, service, make_field, low_confidence):
        # Frame spans [0, 350]; the input would start at 376.5
        anchors = [anchor(0.0, 800.0), anchor(330.0, 800.0)]
        field = make_field(560.0, 700.0, width=30.0, confidence=low_confidence)

        corrected = service.apply_rtl_correction(field, PAGE_WIDTH, anchors)

        assert corrected is field
        assert corrected.width == 30.0
        assert not corrected.calibrated

    def test_anchors_on_other_pages_ignored(self, service, make_field, low_confidence):
        anchors = [anchor(250.0, 800.0, page_number=2), anchor(540.0, 800.0, page_number=2)]
        field = make_field(400.0, 700.0, width=110.0, confidence=low_confidence)

        corrected = service.apply_rtl_correction(field, PAGE_WIDTH, anchors)
        assert corrected.x == pytest.approx(216.5)

    def test_matrix_calibrated_original_is_preserved(self, service, make_field, low_confidence):
        field = make_field(520.0, 700.0, width=60.0, confidence=low_confidence, calibrated=True, original_x=515.0)
        corrected = service.apply_rtl_correction(field, PAGE_WIDTH)
        assert corrected.original_x == 515.0


class TestReferenceFrame:

    def test_full_page_without_anchors(self, service):
        assert service.reference_frame(1, PAGE_WIDTH, []) == (0.0, PAGE_WIDTH)

    def test_single_anchor_is_not_enough(self, service):
        assert service.reference_frame(1, PAGE_WIDTH, [anchor(100.0, 800.0)]) == (0.0, PAGE_WIDTH)

    def test_narrow_anchor_span_ignored(self, service):
        anchors = [anchor(300.0, 800.0), anchor(350.0, 700.0)]
        assert service.reference_frame(1, PAGE_WIDTH, anchors) == (0.0, PAGE_WIDTH)

    def test_anchor_span(self, service):
        anchors = [anchor(40.0, 800.0), anchor(530.0, 40.0, width=25.0)]
        assert service.reference_frame(1, PAGE_WIDTH, anchors) == (40.0, 555.0)


class TestCalibrateRtlFields:

    def test_unknown_page_left_unmodified(self, service, make_field, low_confidence):
        on_page = make_field(520.0, 700.0, width=60.0, confidence=low_confidence)
        off_map = make_field(520.0, 700.0, width=60.0, confidence=low_confidence, page_number=4)

        result = service.calibrate_rtl_fields([on_page, off_map], {1: PageInfo.a4()})

        assert result[0].calibrated
        assert result[1] is off_map


class TestMatrixCalibration:

    def test_no_verified_anchors_gives_identity(self, service):
        matrix = service.calculate_calibration([anchor(100.0, 100.0)], None, PageInfo.a4())
        assert matrix.is_identity
        assert matrix.confidence == 0.5

    def test_single_match_gives_low_confidence_identity(self, service):
        matrix = service.calculate_calibration([anchor(100.0, 100.0)], [anchor(105.0, 100.0)], PageInfo.a4())
        assert matrix.is_identity
        assert matrix.confidence == 0.3

    def test_matches_outside_radius_are_ignored(self, service):
        matches = service.match_anchors([anchor(100.0, 100.0)], [anchor(150.0, 100.0)])
        assert matches == []

    def test_two_matches_give_translation(self, service):
        ai = [anchor(100.0, 100.0), anchor(400.0, 100.0)]
        verified = [anchor(110.0, 95.0), anchor(410.0, 95.0)]

        matrix = service.calculate_calibration(ai, verified, PageInfo.a4())

        assert matrix.offset_x == pytest.approx(10.0)
        assert matrix.offset_y == pytest.approx(-5.0)
        assert (matrix.scale_x, matrix.scale_y) == (1.0, 1.0)
        assert matrix.confidence == 0.7

    def test_three_matches_give_scale_and_translation(self, service):
        ai = [anchor(100.0, 500.0, width=100.0), anchor(200.0, 500.0, width=100.0), anchor(300.0, 500.0, width=100.0)]
        verified = [anchor(105.0, 500.0, width=110.0), anchor(215.0, 500.0, width=110.0), anchor(325.0, 500.0, width=110.0)]

        matrix = service.calculate_calibration(ai, verified, PageInfo.a4())

        assert matrix.scale_x == pytest.approx(1.1)
        assert matrix.scale_y == pytest.approx(1.0)
        assert matrix.offset_x == pytest.approx(-5.0)
        assert matrix.offset_y == pytest.approx(0.0)
        assert matrix.confidence == 0.8

    def test_apply_calibration_records_original(self, make_field):
        field = make_field(200.0, 300.0, width=50.0, height=20.0)
        matrix = CalibrationMatrix(offset_x=10.0, offset_y=-5.0, confidence=0.7)

        calibrated = RtlCalibrationService.apply_calibration(field, matrix)

        assert calibrated.bounding_box == Box(x=210.0, y=295.0, width=50.0, height=20.0)
        assert (calibrated.original_x, calibrated.original_y) == (200.0, 300.0)
        assert calibrated.calibrated

    def test_identity_matrix_is_noop(self, make_field):
        field = make_field(200.0, 300.0)
        assert RtlCalibrationService.apply_calibration(field, CalibrationMatrix()) is field


class TestFormDirection:

    def test_no_directions_means_rtl(self, make_field):
        assert is_rtl_form([]) is True
        assert is_rtl_form([make_field(0, 0)]) is True

    def test_majority_rtl(self, make_field):
        fields = [
            make_field(0, 0, direction=Direction.RTL),
            make_field(0, 0, direction=Direction.RTL),
            make_field(0, 0, direction=Direction.LTR),
            make_field(0, 0),
        ]
        assert is_rtl_form(fields) is True

    def test_tie_is_not_rtl(self, make_field):
        fields = [make_field(0, 0, direction=Direction.RTL), make_field(0, 0, direction=Direction.LTR)]
        assert is_rtl_form(fields) is False


class TestAverageConfidence:

    def test_default_when_unscored(self, make_field):
        assert calculate_average_confidence([make_field(0, 0)]) == 0.5

    def test_mean_of_scored(self, make_field):
        scorer = ConfidenceScorer()
        fields = [
            make_field(0, 0, confidence=scorer.score(ConfidenceFactors(1.0, 1.0, 1.0))),
            make_field(0, 0, confidence=scorer.score(ConfidenceFactors(0.5, 0.5, 0.5))),
            make_field(0, 0),
        ]
        assert calculate_average_confidence(fields) == pytest.approx(0.75)
