"""Pure sheet geometry for badge imposition.

All coordinates follow the PDF convention: the origin is the bottom-left
corner of the sheet and y grows upward. Slots are numbered row-major from the
top-left tile, so on a 2x2 grid slot 0 is top-left, 1 top-right, 2 bottom-left
and 3 bottom-right.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, TypeAlias, cast

from badgeimposer.constants import (
    DEFAULT_FLIP_AXIS,
    DEFAULT_SHEET_SIZE,
    DEFAULT_TICK_COLOR,
    DEFAULT_TICK_LENGTH,
    DEFAULT_TICK_SPACING,
    DEFAULT_TICK_THICKNESS,
    DEFAULT_TILES_PER_SHEET,
    PAPER_SIZES,
)
from badgeimposer.errors import ValidationError

FlipAxis = Literal["horizontal", "vertical"]
FLIP_AXES: tuple[FlipAxis, ...] = ("horizontal", "vertical")
RGBColor: TypeAlias = tuple[float, float, float]
_DEFAULT_AXIS: FlipAxis = cast(FlipAxis, DEFAULT_FLIP_AXIS)


@dataclass(frozen=True)
class GridShape:
    rows: int
    columns: int

    @property
    def tiles(self) -> int:
        return self.rows * self.columns


@dataclass(frozen=True)
class Tile:
    slot_index: int
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class CutMark:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class BadgePlacement:
    badge_index: int
    page_index: int
    slot_index: int


@dataclass(frozen=True)
class ImposedSheet:
    sheet_index: int
    front: tuple[BadgePlacement, ...]
    back: tuple[BadgePlacement, ...]

    @property
    def badge_indices(self) -> tuple[int, ...]:
        return tuple(placement.badge_index for placement in self.front)


@dataclass(frozen=True)
class ImpositionSettings:
    sheet_width: float = DEFAULT_SHEET_SIZE[0]
    sheet_height: float = DEFAULT_SHEET_SIZE[1]
    tiles_per_sheet: int = DEFAULT_TILES_PER_SHEET
    columns: int | None = None
    tick_spacing: float = DEFAULT_TICK_SPACING
    tick_length: float = DEFAULT_TICK_LENGTH
    tick_thickness: float = DEFAULT_TICK_THICKNESS
    tick_color: RGBColor = DEFAULT_TICK_COLOR
    flip_axis: FlipAxis = _DEFAULT_AXIS
    cut_marks: bool = True

    @classmethod
    def for_paper(cls, paper_size: str, **overrides: object) -> ImpositionSettings:
        width, height = resolve_paper_dimensions(paper_size)
        return cls(sheet_width=width, sheet_height=height, **overrides)  # type: ignore[arg-type]

    @property
    def grid_shape(self) -> GridShape:
        return resolve_grid_shape(self.tiles_per_sheet, self.columns)

    def validate(self) -> None:
        _require_positive_dimensions(self.sheet_width, self.sheet_height)
        resolve_grid_shape(self.tiles_per_sheet, self.columns)
        resolve_flip_axis(self.flip_axis)
        _require_positive("tick_spacing", self.tick_spacing)
        _require_positive("tick_length", self.tick_length)
        _require_positive("tick_thickness", self.tick_thickness)
        if len(self.tick_color) != 3 or any(not 0.0 <= channel <= 1.0 for channel in self.tick_color):
            raise ValidationError(f"tick_color must be three RGB channels in [0, 1], got {self.tick_color!r}")


def _require_positive(name: str, value: float) -> None:
    if not value > 0:
        raise ValidationError(f"{name} must be > 0, got {value!r}")


def _require_positive_dimensions(sheet_width: float, sheet_height: float) -> None:
    _require_positive("sheet_width", sheet_width)
    _require_positive("sheet_height", sheet_height)


def resolve_paper_dimensions(paper_size: str) -> tuple[float, float]:
    try:
        return PAPER_SIZES[paper_size]
    except KeyError as exc:
        valid = ", ".join(sorted(PAPER_SIZES))
        raise ValidationError(f"unsupported paper size '{paper_size}', expected one of: {valid}") from exc


def resolve_flip_axis(value: str) -> FlipAxis:
    normalized = value.strip().lower()
    if normalized in FLIP_AXES:
        return cast(FlipAxis, normalized)

    valid = ", ".join(FLIP_AXES)
    raise ValidationError(f"unsupported flip axis '{value}', expected one of: {valid}")


def resolve_grid_shape(tiles_per_sheet: int, columns: int | None = None) -> GridShape:
    if isinstance(tiles_per_sheet, bool) or not isinstance(tiles_per_sheet, int):
        raise ValidationError(f"tiles_per_sheet must be an integer, got {tiles_per_sheet!r}")
    if tiles_per_sheet <= 0:
        raise ValidationError(f"tiles_per_sheet must be > 0, got {tiles_per_sheet}")

    if columns is not None:
        if columns <= 0 or tiles_per_sheet % columns != 0:
            raise ValidationError(f"{tiles_per_sheet} tiles cannot be split into {columns} column(s)")
        return GridShape(rows=tiles_per_sheet // columns, columns=columns)

    # Most square split with no more columns than rows.
    resolved_columns = max(
        divisor for divisor in range(1, math.isqrt(tiles_per_sheet) + 1) if tiles_per_sheet % divisor == 0
    )
    return GridShape(rows=tiles_per_sheet // resolved_columns, columns=resolved_columns)


def plan_grid(
    sheet_width: float,
    sheet_height: float,
    tiles_per_sheet: int = DEFAULT_TILES_PER_SHEET,
    columns: int | None = None,
) -> tuple[Tile, ...]:
    _require_positive_dimensions(sheet_width, sheet_height)
    shape = resolve_grid_shape(tiles_per_sheet, columns)

    tile_width = sheet_width / shape.columns
    tile_height = sheet_height / shape.rows
    tiles: list[Tile] = []
    for slot_index in range(shape.tiles):
        row, column = divmod(slot_index, shape.columns)
        tiles.append(
            Tile(
                slot_index=slot_index,
                x=column * tile_width,
                y=sheet_height - (row + 1) * tile_height,
                width=tile_width,
                height=tile_height,
            )
        )
    return tuple(tiles)


def mirror_slot(
    slot_index: int,
    tiles_per_sheet: int = DEFAULT_TILES_PER_SHEET,
    flip_axis: FlipAxis = _DEFAULT_AXIS,
    columns: int | None = None,
) -> int:
    """Return the back-side slot that lines up with ``slot_index`` after the flip.

    ``"horizontal"`` assumes the printed sheet is turned over about its vertical
    centerline, which is how long-edge duplex behaves on portrait paper: the
    left and right columns trade places and rows are untouched (2x2 gives
    0<->1, 2<->3). ``"vertical"`` assumes a turn about the horizontal centerline
    (short-edge duplex): rows trade places instead (2x2 gives 0<->2, 1<->3).
    Printing with the other convention misaligns every card.
    """
    shape = resolve_grid_shape(tiles_per_sheet, columns)
    if not 0 <= slot_index < shape.tiles:
        raise IndexError(f"slot_index must be in [0, {shape.tiles}), got {slot_index}")

    row, column = divmod(slot_index, shape.columns)
    axis = resolve_flip_axis(flip_axis)
    if axis == "horizontal":
        column = shape.columns - 1 - column
    else:
        row = shape.rows - 1 - row
    return row * shape.columns + column


def build_cut_marks(
    sheet_width: float,
    sheet_height: float,
    rows: int,
    columns: int,
    tick_spacing: float = DEFAULT_TICK_SPACING,
    tick_length: float = DEFAULT_TICK_LENGTH,
    tick_thickness: float = DEFAULT_TICK_THICKNESS,
) -> tuple[CutMark, ...]:
    _require_positive_dimensions(sheet_width, sheet_height)
    _require_positive("tick_spacing", tick_spacing)
    _require_positive("tick_length", tick_length)
    _require_positive("tick_thickness", tick_thickness)
    if rows <= 0 or columns <= 0:
        raise ValidationError(f"grid must have at least one row and column, got {rows}x{columns}")

    half_thickness = tick_thickness / 2.0
    marks: list[CutMark] = []

    for column in range(1, columns):
        boundary_x = sheet_width * column / columns
        for start in _tick_starts(sheet_height, tick_spacing):
            marks.append(
                CutMark(
                    x=boundary_x - half_thickness,
                    y=start,
                    width=tick_thickness,
                    height=min(tick_length, sheet_height - start),
                )
            )

    for row in range(1, rows):
        boundary_y = sheet_height * row / rows
        for start in _tick_starts(sheet_width, tick_spacing):
            marks.append(
                CutMark(
                    x=start,
                    y=boundary_y - half_thickness,
                    width=min(tick_length, sheet_width - start),
                    height=tick_thickness,
                )
            )

    return tuple(marks)


def _tick_starts(extent: float, spacing: float) -> list[float]:
    return [index * spacing for index in range(math.ceil(extent / spacing)) if index * spacing < extent]


def badge_count(page_count: int) -> int:
    if page_count < 0:
        raise ValidationError(f"page_count must be >= 0, got {page_count}")
    if page_count % 2 != 0:
        raise ValidationError(
            f"source document has {page_count} pages; badges need an even page count of (front, back) pairs"
        )
    return page_count // 2


def sheet_count(badges: int, tiles_per_sheet: int = DEFAULT_TILES_PER_SHEET) -> int:
    resolve_grid_shape(tiles_per_sheet)
    return -(-badges // tiles_per_sheet)


def plan_sheets(
    page_count: int,
    tiles_per_sheet: int = DEFAULT_TILES_PER_SHEET,
    flip_axis: FlipAxis = _DEFAULT_AXIS,
    columns: int | None = None,
) -> list[ImposedSheet]:
    badges = badge_count(page_count)
    shape = resolve_grid_shape(tiles_per_sheet, columns)
    axis = resolve_flip_axis(flip_axis)

    sheets: list[ImposedSheet] = []
    for sheet_index in range(sheet_count(badges, shape.tiles)):
        first_badge = sheet_index * shape.tiles
        front: list[BadgePlacement] = []
        back: list[BadgePlacement] = []
        for slot_index, badge_index in enumerate(range(first_badge, min(first_badge + shape.tiles, badges))):
            front.append(BadgePlacement(badge_index=badge_index, page_index=badge_index * 2, slot_index=slot_index))
            back.append(
                BadgePlacement(
                    badge_index=badge_index,
                    page_index=badge_index * 2 + 1,
                    slot_index=mirror_slot(slot_index, shape.tiles, axis, shape.columns),
                )
            )
        sheets.append(ImposedSheet(sheet_index=sheet_index, front=tuple(front), back=tuple(back)))
    return sheets

