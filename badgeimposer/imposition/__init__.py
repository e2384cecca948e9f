from badgeimposer.imposition.core import (
    FLIP_AXES,
    BadgePlacement,
    CutMark,
    GridShape,
    ImposedSheet,
    ImpositionSettings,
    Tile,
    badge_count,
    build_cut_marks,
    mirror_slot,
    plan_grid,
    plan_sheets,
    resolve_flip_axis,
    resolve_grid_shape,
    resolve_paper_dimensions,
    sheet_count,
)
from badgeimposer.imposition.pdf_writer import (
    GeneratedArtifact,
    ImposedDocument,
    deterministic_output_filename,
    impose_badges,
    serialize_document,
    write_badge_sheets,
)
from badgeimposer.imposition.source import PageSource

__all__ = [
    "FLIP_AXES",
    "BadgePlacement",
    "CutMark",
    "GeneratedArtifact",
    "GridShape",
    "ImposedDocument",
    "ImposedSheet",
    "ImpositionSettings",
    "PageSource",
    "Tile",
    "badge_count",
    "build_cut_marks",
    "deterministic_output_filename",
    "impose_badges",
    "mirror_slot",
    "plan_grid",
    "plan_sheets",
    "resolve_flip_axis",
    "resolve_grid_shape",
    "resolve_paper_dimensions",
    "serialize_document",
    "sheet_count",
    "write_badge_sheets",
]
