from __future__ import annotations

import io
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from pypdf import PageObject, PdfWriter, Transformation
from pypdf.errors import PyPdfError
from pypdf.generic import DecodedStreamObject

from badgeimposer.errors import EmbeddingFailure, ImpositionCancelled
from badgeimposer.imposition.core import (
    BadgePlacement,
    CutMark,
    ImposedSheet,
    ImpositionSettings,
    RGBColor,
    Tile,
    build_cut_marks,
    plan_grid,
    plan_sheets,
)
from badgeimposer.imposition.source import PageSource


@dataclass(frozen=True)
class ImposedDocument:
    writer: PdfWriter
    settings: ImpositionSettings
    sheets: tuple[ImposedSheet, ...]

    @property
    def page_count(self) -> int:
        return len(self.writer.pages)

    @property
    def sheet_count(self) -> int:
        return len(self.sheets)

    @property
    def badge_count(self) -> int:
        return sum(len(sheet.front) for sheet in self.sheets)


@dataclass(frozen=True)
class GeneratedArtifact:
    path: Path
    page_count: int
    sheet_count: int
    badge_count: int
    sheets: tuple[ImposedSheet, ...]


def _build_cut_mark_commands(marks: Sequence[CutMark], color: RGBColor) -> bytes:
    if not marks:
        return b""

    red, green, blue = color
    commands: list[str] = ["q", "% badgeimposer-cut-marks", f"{red:.3f} {green:.3f} {blue:.3f} rg"]
    for mark in marks:
        commands.append(f"{mark.x:.3f} {mark.y:.3f} {mark.width:.3f} {mark.height:.3f} re f")
    commands.append("Q")
    return ("\n".join(commands) + "\n").encode("ascii")


def _append_page_commands(imposed_page: PageObject, commands: bytes) -> None:
    if not commands:
        return

    stream = DecodedStreamObject()
    stream.set_data((imposed_page._get_contents_as_bytes() or b"") + commands)
    imposed_page.replace_contents(stream)


def deterministic_output_filename(source_name: str) -> str:
    stem = Path(source_name).stem.strip()
    if not stem:
        stem = "badges"

    slug = re.sub(r"[^A-Za-z0-9]+", "_", stem).strip("_").lower()
    slug = slug or "badges"
    return f"{slug}_badge_sheets.pdf"


def _tile_transform(source_page, tile: Tile) -> Transformation:
    mediabox = source_page.mediabox
    source_width = float(mediabox.width)
    source_height = float(mediabox.height)

    # Stretch to the tile; badge pages are expected to share its aspect ratio.
    scale_x = tile.width / source_width
    scale_y = tile.height / source_height
    return (
        Transformation()
        .translate(-float(mediabox.left), -float(mediabox.bottom))
        .scale(scale_x, scale_y)
        .translate(tile.x, tile.y)
    )


def _place_badge_page(
    imposed_page: PageObject,
    source: PageSource,
    placement: BadgePlacement,
    tiles: Sequence[Tile],
) -> None:
    source_page = source.get_page(placement.page_index)
    source_width, source_height = source.page_size(placement.page_index)
    if source_width <= 0 or source_height <= 0:
        raise EmbeddingFailure(placement.page_index, "page has an empty media box")

    transform = _tile_transform(source_page, tiles[placement.slot_index])
    try:
        imposed_page.merge_transformed_page(source_page, transform)
    except (PyPdfError, KeyError, TypeError, ValueError) as exc:
        raise EmbeddingFailure(placement.page_index, str(exc) or type(exc).__name__) from exc


def impose_badges(
    source: PageSource,
    settings: ImpositionSettings | None = None,
    writer: PdfWriter | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> ImposedDocument:
    resolved = settings or ImpositionSettings()
    resolved.validate()
    shape = resolved.grid_shape
    sheets = plan_sheets(
        source.page_count,
        tiles_per_sheet=shape.tiles,
        flip_axis=resolved.flip_axis,
        columns=shape.columns,
    )

    tiles = plan_grid(resolved.sheet_width, resolved.sheet_height, shape.tiles, shape.columns)
    mark_commands = b""
    if resolved.cut_marks:
        marks = build_cut_marks(
            resolved.sheet_width,
            resolved.sheet_height,
            rows=shape.rows,
            columns=shape.columns,
            tick_spacing=resolved.tick_spacing,
            tick_length=resolved.tick_length,
            tick_thickness=resolved.tick_thickness,
        )
        mark_commands = _build_cut_mark_commands(marks, resolved.tick_color)

    output = writer if writer is not None else PdfWriter()
    for sheet in sheets:
        if should_cancel is not None and should_cancel():
            raise ImpositionCancelled(sheet.sheet_index)

        front_page = output.add_blank_page(width=resolved.sheet_width, height=resolved.sheet_height)
        back_page = output.add_blank_page(width=resolved.sheet_width, height=resolved.sheet_height)
        for placement in sheet.front:
            _place_badge_page(front_page, source, placement, tiles)
        for placement in sheet.back:
            _place_badge_page(back_page, source, placement, tiles)

        _append_page_commands(front_page, mark_commands)
        _append_page_commands(back_page, mark_commands)

    return ImposedDocument(writer=output, settings=resolved, sheets=tuple(sheets))


def serialize_document(document: ImposedDocument, compress: bool = True) -> bytes:
    if compress:
        for page in document.writer.pages:
            page.compress_content_streams()

    payload = io.BytesIO()
    document.writer.write(payload)
    return payload.getvalue()


def write_badge_sheets(
    source: PageSource,
    output_path: Path,
    settings: ImpositionSettings | None = None,
    compress: bool = True,
) -> GeneratedArtifact:
    document = impose_badges(source, settings)
    payload = serialize_document(document, compress=compress)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(payload)

    return GeneratedArtifact(
        path=output_path,
        page_count=document.page_count,
        sheet_count=document.sheet_count,
        badge_count=document.badge_count,
        sheets=document.sheets,
    )
