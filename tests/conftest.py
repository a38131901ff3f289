"""Shared fixtures for the field geometry tests."""

import fitz
import pytest

from formfields.services.field_geometry import (
    Box,
    ConfidenceFactors,
    ConfidenceScorer,
    FieldCandidate,
    FieldType,
    PageInfo,
)


@pytest.fixture
def a4_page():
    return PageInfo(page_number=1, width=595.0, height=842.0)


@pytest.fixture
def page_map(a4_page):
    return {1: a4_page}


@pytest.fixture
def make_field():
    """Factory for FieldCandidate with sensible defaults."""
    def _make(x, y, width=12.0, height=12.0, field_type=FieldType.TEXT, **kwargs):
        kwargs.setdefault('name', f"{field_type.value}_{x}_{y}")
        kwargs.setdefault('page_number', 1)
        return FieldCandidate(
            field_type=field_type,
            bounding_box=Box(x=x, y=y, width=width, height=height),
            **kwargs
        )
    return _make


@pytest.fixture
def low_confidence():
    return ConfidenceScorer().score(ConfidenceFactors(0.5, 0.5, 0.5))


def build_pdf(*pages):
    """
    In-memory PDF with one page per (width, height, rotation) tuple.
    """
    doc = fitz.open()
    for width, height, rotation in pages:
        page = doc.new_page(width=width, height=height)
        if rotation:
            page.set_rotation(rotation)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def pdf_factory():
    return build_pdf
