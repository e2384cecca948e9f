from __future__ import annotations

import io
from pathlib import Path

from pypdf import PageObject, PdfReader
from pypdf.errors import PdfReadError

from badgeimposer.errors import ValidationError


class PageSource:
    """Read-only, indexed view over the pages of a loaded badge PDF."""

    def __init__(self, reader: PdfReader) -> None:
        if reader.is_encrypted:
            raise ValidationError("encrypted PDFs are not supported; remove encryption and retry")
        self._reader = reader

    @classmethod
    def from_reader(cls, reader: PdfReader) -> PageSource:
        return cls(reader)

    @classmethod
    def from_bytes(cls, payload: bytes) -> PageSource:
        if not payload:
            raise ValidationError("source document is empty")
        try:
            reader = PdfReader(io.BytesIO(payload))
        except PdfReadError as exc:
            raise ValidationError("source document could not be parsed as a PDF") from exc
        return cls(reader)

    @classmethod
    def from_path(cls, path: Path | str) -> PageSource:
        return cls.from_bytes(Path(path).read_bytes())

    @property
    def page_count(self) -> int:
        return len(self._reader.pages)

    def get_page(self, index: int) -> PageObject:
        if not 0 <= index < self.page_count:
            raise IndexError(f"page index {index} out of range for {self.page_count} page(s)")
        return self._reader.pages[index]

    def page_size(self, index: int) -> tuple[float, float]:
        mediabox = self.get_page(index).mediabox
        return float(mediabox.width), float(mediabox.height)

    def __len__(self) -> int:
        return self.page_count
