from __future__ import annotations

from typing import Final

PAPER_SIZES: Final[dict[str, tuple[float, float]]] = {
    "A3": (841.89, 1190.55),
    "A4": (595.28, 841.89),
    "A5": (419.53, 595.28),
    "Legal": (612.0, 1008.0),
    "Letter": (612.0, 792.0),
    "Tabloid": (792.0, 1224.0),
}

DEFAULT_PAPER_SIZE: Final[str] = "A4"
DEFAULT_SHEET_SIZE: Final[tuple[float, float]] = PAPER_SIZES[DEFAULT_PAPER_SIZE]
DEFAULT_TILES_PER_SHEET: Final[int] = 4

DEFAULT_TICK_SPACING: Final[float] = 6.0
DEFAULT_TICK_LENGTH: Final[float] = 3.0
DEFAULT_TICK_THICKNESS: Final[float] = 0.5
DEFAULT_TICK_COLOR: Final[tuple[float, float, float]] = (0.5, 0.5, 0.5)

# Turning the sheet over about its vertical centerline (long-edge duplex on
# portrait paper). See badgeimposer.imposition.core.mirror_slot.
DEFAULT_FLIP_AXIS: Final[str] = "horizontal"

POINTS_PER_MM: Final[float] = 72.0 / 25.4

DEFAULT_ARTIFACT_DIR: Final[str] = "generated"
DEFAULT_ARTIFACT_RETENTION_SECONDS: Final[int] = 24 * 60 * 60
