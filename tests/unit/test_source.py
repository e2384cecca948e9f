from __future__ import annotations

import io
from pathlib import Path

import pytest
from pypdf import PdfReader, PdfWriter

from badgeimposer.errors import ValidationError
from badgeimposer.imposition.source import PageSource

pytestmark = pytest.mark.unit


def _encrypted_pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=300)
    writer.encrypt("secret")
    payload = io.BytesIO()
    writer.write(payload)
    return payload.getvalue()


def test_page_source_exposes_count_and_sizes(make_badge_pdf) -> None:
    source = PageSource.from_bytes(make_badge_pdf(4, width=150, height=250))

    assert source.page_count == 4
    assert len(source) == 4
    assert source.page_size(3) == (150.0, 250.0)
    assert source.get_page(0).mediabox.width == 150


def test_page_source_from_path_and_reader_agree(tmp_path: Path, make_badge_pdf) -> None:
    source_path = tmp_path / "badges.pdf"
    source_path.write_bytes(make_badge_pdf(6))

    from_path = PageSource.from_path(source_path)
    from_reader = PageSource.from_reader(PdfReader(source_path))
    assert from_path.page_count == from_reader.page_count == 6


@pytest.mark.parametrize("index", [-1, 2, 5])
def test_page_source_rejects_out_of_range_index(make_badge_pdf, index: int) -> None:
    source = PageSource.from_bytes(make_badge_pdf(2))

    with pytest.raises(IndexError, match="out of range for 2 page"):
        source.get_page(index)


def test_page_source_rejects_empty_payload() -> None:
    with pytest.raises(ValidationError, match="empty"):
        PageSource.from_bytes(b"")


def test_page_source_rejects_unparseable_payload() -> None:
    with pytest.raises(ValidationError, match="could not be parsed as a PDF"):
        PageSource.from_bytes(b"this is not a pdf")


def test_page_source_rejects_encrypted_document() -> None:
    with pytest.raises(ValidationError, match="encrypted PDFs are not supported"):
        PageSource.from_bytes(_encrypted_pdf_bytes())
