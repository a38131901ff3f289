"""Tests for Hebrew label helpers."""

import pytest

from formfields.services.field_geometry.labels import generate_field_name, is_hebrew_text


class TestIsHebrewText:

    @pytest.mark.parametrize("text, expected", [
        ('שם מלא', True),
        ('ID: ת.ז.', True),
        ('Full name', False),
        ('', False),
        (None, False),
    ])
    def test_detection(self, text, expected):
        assert is_hebrew_text(text) is expected


class TestGenerateFieldName:

    @pytest.mark.parametrize("label, expected", [
        ('שם מלא:', 'full_name'),
        ('שם פרטי', 'first_name'),
        ('שם', 'name'),
        ('תאריך לידה', 'date'),
        ('מספר טלפון', 'phone'),
        ('E-mail', 'email'),
    ])
    def test_known_phrases(self, label, expected):
        assert generate_field_name(label, 0) == expected

    def test_unknown_label_uses_index(self):
        assert generate_field_name('Something else', 4) == 'field_5'

    def test_empty_label_uses_index(self):
        assert generate_field_name('', 0) == 'field_1'
