from __future__ import annotations

import math
import re
from pathlib import Path

import pytest
from pypdf import PdfReader

from badgeimposer.constants import PAPER_SIZES
from badgeimposer.imposition import (
    ImpositionSettings,
    PageSource,
    deterministic_output_filename,
    impose_badges,
    mirror_slot,
    plan_grid,
    write_badge_sheets,
)

pytestmark = pytest.mark.integration

_MARKER = re.compile(rb"0 0 (\d+) 7 re")


def _source_pages_on(page) -> set[int]:
    return {int(match) - 1 for match in _MARKER.findall(page._get_contents_as_bytes() or b"")}


@pytest.mark.parametrize("page_count", [0, 2, 6, 8, 10, 18, 32])
@pytest.mark.parametrize("tiles_per_sheet", [1, 2, 4, 9])
def test_output_page_count_matches_sheet_arithmetic(
    tmp_path: Path, make_badge_pdf, page_count: int, tiles_per_sheet: int
) -> None:
    source = PageSource.from_bytes(make_badge_pdf(page_count))
    output_path = tmp_path / deterministic_output_filename("roster.pdf")

    artifact = write_badge_sheets(source, output_path, ImpositionSettings(tiles_per_sheet=tiles_per_sheet))

    expected_pages = 2 * math.ceil((page_count // 2) / tiles_per_sheet)
    assert artifact.page_count == expected_pages
    assert len(PdfReader(output_path).pages) == expected_pages


@pytest.mark.parametrize("paper_size", sorted(PAPER_SIZES))
def test_output_sheets_use_requested_paper_size(tmp_path: Path, make_badge_pdf, paper_size: str) -> None:
    source = PageSource.from_bytes(make_badge_pdf(4))
    output_path = tmp_path / f"{paper_size}.pdf"

    write_badge_sheets(source, output_path, ImpositionSettings.for_paper(paper_size))

    expected_width, expected_height = PAPER_SIZES[paper_size]
    for page in PdfReader(output_path).pages:
        assert float(page.mediabox.width) == pytest.approx(expected_width, abs=0.01)
        assert float(page.mediabox.height) == pytest.approx(expected_height, abs=0.01)


@pytest.mark.parametrize("flip_axis", ["horizontal", "vertical"])
def test_every_badge_front_and_back_land_on_matching_sheet(make_badge_pdf, flip_axis: str) -> None:
    tiles_per_sheet = 4
    badges = 11
    settings = ImpositionSettings(tiles_per_sheet=tiles_per_sheet, flip_axis=flip_axis)  # type: ignore[arg-type]
    document = impose_badges(PageSource.from_bytes(make_badge_pdf(badges * 2)), settings)
    pages = list(document.writer.pages)

    for badge in range(badges):
        sheet_index, slot = divmod(badge, tiles_per_sheet)
        sheet = document.sheets[sheet_index]
        assert 2 * badge in _source_pages_on(pages[2 * sheet_index])
        assert 2 * badge + 1 in _source_pages_on(pages[2 * sheet_index + 1])

        front = next(placement for placement in sheet.front if placement.badge_index == badge)
        back = next(placement for placement in sheet.back if placement.badge_index == badge)
        assert front.slot_index == slot
        assert back.slot_index == mirror_slot(slot, tiles_per_sheet, flip_axis)  # type: ignore[arg-type]


def test_back_tiles_line_up_with_fronts_after_long_edge_flip(make_badge_pdf) -> None:
    settings = ImpositionSettings()
    document = impose_badges(PageSource.from_bytes(make_badge_pdf(8)), settings)
    tiles = plan_grid(settings.sheet_width, settings.sheet_height, settings.tiles_per_sheet)

    for front, back in zip(document.sheets[0].front, document.sheets[0].back, strict=True):
        front_tile = tiles[front.slot_index]
        back_tile = tiles[back.slot_index]
        # Turning the sheet over its vertical centerline maps x to width - x.
        assert back_tile.x == pytest.approx(settings.sheet_width - front_tile.x - front_tile.width)
        assert back_tile.y == pytest.approx(front_tile.y)
