"""
Page geometry resolution for uploaded PDFs.
Reads each page's intrinsic size and rotation without rendering.
"""
import logging
from typing import List

import fitz  # PyMuPDF

from .geometry import PageInfo

logger = logging.getLogger(__name__)


class PageGeometryResolver:
    """Resolves effective (upright) page dimensions for a PDF document."""

    SWAPPED_ROTATIONS = (90, 270)

    @staticmethod
    def resolve(pdf_bytes: bytes) -> List[PageInfo]:
        """
        Resolve effective page dimensions.

        Width/height are swapped for pages rotated 90 or 270 degrees so
        downstream consumers always see the visually upright size. Any
        failure to read the document falls back to a single A4 page.

        Args:
            pdf_bytes: PDF file as bytes

        Returns:
            One PageInfo per page, numbered from 1
        """
        try:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
                if doc.needs_pass:
                    raise ValueError("document is encrypted")
                if doc.page_count == 0:
                    raise ValueError("document has no pages")

                pages = [
                    PageGeometryResolver._page_info(page, index + 1)
                    for index, page in enumerate(doc)
                ]

            logger.info(
                f"Resolved {len(pages)} page(s): "
                + ", ".join(f"page {p.page_number}: {p.width}x{p.height}pt" for p in pages)
            )
            return pages

        except Exception as e:
            logger.warning(f"Could not read page dimensions, using A4 default: {e}")
            return [PageInfo.a4()]

    @staticmethod
    def _page_info(page: fitz.Page, page_number: int) -> PageInfo:
        """Build a PageInfo from the page's media box and rotation."""
        # mediabox is the unrotated page; page.rect is already rotated
        width = float(page.mediabox.width)
        height = float(page.mediabox.height)
        rotation = int(page.rotation) % 360

        if rotation in PageGeometryResolver.SWAPPED_ROTATIONS:
            width, height = height, width

        return PageInfo(
            page_number=page_number,
            width=width,
            height=height,
            rotation=rotation
        )
