"""Tests for radio merging and checkbox-cluster conversion."""

import logging

import pytest

from formfields.services.field_geometry import FieldType, Orientation, RadioGroupDetector


@pytest.fixture
def detector():
    return RadioGroupDetector()


def checkbox_row(make_field, count, x0=100.0, y=500.0, step=30.0, labels=None):
    return [
        make_field(
            x0 + i * step, y,
            field_type=FieldType.CHECKBOX,
            name=f"checkbox_{i + 1}",
            label=labels[i] if labels else None
        )
        for i in range(count)
    ]


class TestCheckboxClusters:

    def test_three_aligned_checkboxes_become_one_radio(self, detector, make_field):
        fields = checkbox_row(make_field, 3, labels=['כן', 'לא', 'אולי'])

        result = detector.detect(fields)

        assert len(result) == 1
        radio = result[0]
        assert radio.field_type == FieldType.RADIO
        assert len(radio.options) == 3
        # Right to left within the row
        assert radio.options == ['אולי', 'לא', 'כן']
        assert radio.x == 160.0
        assert radio.orientation == Orientation.HORIZONTAL
        assert radio.spacing == pytest.approx(30.0)
        assert radio.radio_group.startswith('radio_')

    def test_eight_checkboxes_stay_independent(self, detector, make_field):
        fields = checkbox_row(make_field, 8)

        result = detector.detect(fields)

        assert len(result) == 8
        assert all(f.field_type == FieldType.CHECKBOX for f in result)

    def test_six_checkboxes_still_convert(self, detector, make_field):
        result = detector.detect(checkbox_row(make_field, 6))
        assert len(result) == 1
        assert len(result[0].options) == 6

    def test_single_checkbox_untouched(self, detector, make_field):
        fields = checkbox_row(make_field, 1)
        assert detector.detect(fields) == fields

    def test_vertical_stack(self, detector, make_field):
        fields = [
            make_field(100.0, y, field_type=FieldType.CHECKBOX, label=label)
            for y, label in [(460.0, 'ג'), (500.0, 'א'), (480.0, 'ב')]
        ]

        radio = detector.detect(fields)[0]

        assert radio.orientation == Orientation.VERTICAL
        assert radio.options == ['א', 'ב', 'ג']
        assert radio.y == 500.0

    def test_diagonal_neighbours_not_clustered(self, detector, make_field):
        fields = [
            make_field(100.0, 500.0, field_type=FieldType.CHECKBOX),
            make_field(120.0, 520.0, field_type=FieldType.CHECKBOX),
        ]
        result = detector.detect(fields)
        assert [f.field_type for f in result] == [FieldType.CHECKBOX, FieldType.CHECKBOX]

    def test_far_apart_not_clustered(self, detector, make_field):
        fields = checkbox_row(make_field, 2, step=80.0)
        assert len(detector.detect(fields)) == 2

    def test_chain_forms_single_cluster(self, detector, make_field):
        # Ends are 80pt apart but linked through the middle box
        fields = checkbox_row(make_field, 3, step=40.0)
        assert len(detector.detect(fields)) == 1

    def test_generic_labels_replaced_by_name(self, detector, make_field):
        fields = [
            make_field(100.0, 500.0, field_type=FieldType.CHECKBOX, name='single', label='checkbox_1'),
            make_field(130.0, 500.0, field_type=FieldType.CHECKBOX, name='married', label='field_2'),
        ]
        radio = detector.detect(fields)[0]
        assert radio.options == ['married', 'single']

    def test_common_label_prefix_becomes_group_label(self, detector, make_field):
        fields = checkbox_row(make_field, 2, labels=['מצב משפחתי: רווק', 'מצב משפחתי: נשוי'])
        radio = detector.detect(fields)[0]
        assert radio.label == 'מצב משפחתי:'

    def test_joined_options_when_no_common_prefix(self, detector, make_field):
        fields = checkbox_row(make_field, 2, labels=['כן', 'לא'])
        radio = detector.detect(fields)[0]
        assert radio.label == 'לא / כן'

    def test_input_order_preserved(self, detector, make_field):
        header = make_field(50.0, 700.0, name='header')
        footer = make_field(50.0, 100.0, name='footer')
        fields = [header] + checkbox_row(make_field, 2) + [footer]

        result = detector.detect(fields)

        assert [f.name for f in result][0] == 'header'
        assert result[1].field_type == FieldType.RADIO
        assert result[2].name == 'footer'

    def test_unique_group_names(self, detector, make_field):
        fields = checkbox_row(make_field, 2, y=500.0) + checkbox_row(make_field, 2, y=300.0)
        result = detector.detect(fields)
        assert len(result) == 2
        assert result[0].radio_group != result[1].radio_group

    def test_thresholds_configurable(self, make_field):
        detector = RadioGroupDetector(max_group_size=2)
        assert len(detector.detect(checkbox_row(make_field, 3))) == 3

    def test_same_position_on_different_pages_not_clustered(self, detector, make_field):
        fields = [
            make_field(100.0, 500.0, field_type=FieldType.CHECKBOX, name='p1', page_number=1),
            make_field(100.0, 500.0, field_type=FieldType.CHECKBOX, name='p2', page_number=2),
        ]

        result = detector.detect(fields)

        assert [(f.field_type, f.page_number) for f in result] == [
            (FieldType.CHECKBOX, 1), (FieldType.CHECKBOX, 2)
        ]


class TestRadioMerge:

    def test_same_group_merges_with_ordered_options(self, detector, make_field):
        fields = [
            make_field(250.0, 500.0, field_type=FieldType.RADIO, radio_group='gender', options=['נ']),
            make_field(300.0, 500.0, field_type=FieldType.RADIO, radio_group='gender', options=['ז']),
        ]

        result = detector.detect(fields)

        assert len(result) == 1
        assert result[0].options == ['ז', 'נ']
        assert result[0].radio_group == 'gender'
        assert result[0].x == 300.0

    def test_duplicate_options_removed(self, detector, make_field):
        fields = [
            make_field(300.0, 500.0, field_type=FieldType.RADIO, radio_group='g', options=['כן']),
            make_field(250.0, 500.0, field_type=FieldType.RADIO, radio_group='g', options=['כן', 'לא']),
        ]
        assert detector.detect(fields)[0].options == ['כן', 'לא']

    def test_labels_used_when_no_options(self, detector, make_field):
        fields = [
            make_field(300.0, 500.0, field_type=FieldType.RADIO, radio_group='g', label='כן'),
            make_field(250.0, 500.0, field_type=FieldType.RADIO, radio_group='g', label='לא'),
        ]
        assert detector.detect(fields)[0].options == ['כן', 'לא']

    def test_fallback_options(self, detector, make_field):
        fields = [
            make_field(300.0, 500.0, field_type=FieldType.RADIO, radio_group='g'),
            make_field(250.0, 500.0, field_type=FieldType.RADIO, radio_group='g'),
        ]
        assert detector.detect(fields)[0].options == ['אפשרות 1', 'אפשרות 2']

    def test_single_member_group_passes_through(self, detector, make_field):
        radio = make_field(300.0, 500.0, field_type=FieldType.RADIO, radio_group='alone', options=['x'])
        assert detector.detect([radio]) == [radio]

    def test_untagged_radios_not_merged(self, detector, make_field):
        fields = [
            make_field(300.0, 500.0, field_type=FieldType.RADIO),
            make_field(250.0, 500.0, field_type=FieldType.RADIO),
        ]
        assert detector.detect(fields) == fields

    def test_separate_groups_stay_separate(self, detector, make_field):
        fields = [
            make_field(300.0, 500.0, field_type=FieldType.RADIO, radio_group='a', options=['1']),
            make_field(300.0, 300.0, field_type=FieldType.RADIO, radio_group='b', options=['3']),
            make_field(250.0, 500.0, field_type=FieldType.RADIO, radio_group='a', options=['2']),
            make_field(250.0, 300.0, field_type=FieldType.RADIO, radio_group='b', options=['4']),
        ]
        result = detector.detect(fields)
        assert [(f.radio_group, f.options) for f in result] == [('a', ['1', '2']), ('b', ['3', '4'])]

    def test_group_spanning_pages_logged(self, detector, make_field, caplog):
        fields = [
            make_field(300.0, 500.0, field_type=FieldType.RADIO, radio_group='g', options=['כן'], page_number=1),
            make_field(300.0, 500.0, field_type=FieldType.RADIO, radio_group='g', options=['לא'], page_number=2),
        ]

        with caplog.at_level(logging.DEBUG, logger='formfields.services.field_geometry.radio_groups'):
            result = detector.detect(fields)

        assert len(result) == 1
        assert result[0].page_number == 1
        assert "spans pages [1, 2]" in caplog.text
