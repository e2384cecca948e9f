from __future__ import annotations


class BadgeImpositionError(Exception):
    """Base class for every error raised by the imposition core."""


class ValidationError(BadgeImpositionError, ValueError):
    """The source document or the imposition settings cannot be imposed."""


class EmbeddingFailure(BadgeImpositionError):
    def __init__(self, page_index: int, reason: str) -> None:
        super().__init__(f"unable to embed source page {page_index}: {reason}")
        self.page_index = page_index
        self.reason = reason


class ImpositionCancelled(BadgeImpositionError):
    def __init__(self, completed_sheets: int) -> None:
        super().__init__(f"imposition cancelled after {completed_sheets} sheet(s)")
        self.completed_sheets = completed_sheets
