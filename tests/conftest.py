from __future__ import annotations

import importlib
import io
import sys
from pathlib import Path
from typing import Callable

import pytest
from pypdf import PdfWriter
from pypdf.generic import DecodedStreamObject

# Resolve badgeimposer from this checkout even when another editable install
# is active in the environment.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

BADGE_PAGE_WIDTH = 200.0
BADGE_PAGE_HEIGHT = 300.0


def _is_from_root(module_name: str, root: Path) -> bool:
    module = sys.modules.get(module_name)
    module_file = getattr(module, "__file__", None)
    if module is None or module_file is None:
        return False

    try:
        module_path = Path(module_file).resolve()
    except OSError:
        return False
    return root in module_path.parents


def _ensure_module_from_root(module_name: str, root: Path) -> None:
    if _is_from_root(module_name, root):
        return

    for loaded_name in list(sys.modules):
        if loaded_name == module_name or loaded_name.startswith(f"{module_name}."):
            sys.modules.pop(loaded_name, None)

    module = importlib.import_module(module_name)
    module_path = Path(getattr(module, "__file__", "") or "").resolve()
    if root not in module_path.parents:
        raise RuntimeError(
            f"Expected '{module_name}' under '{root}', got '{module_path}'. "
            "Run `python -m pip install -e '.[dev]'` from this checkout and re-run pytest."
        )


def pytest_sessionstart(session) -> None:  # type: ignore[no-untyped-def]
    _ensure_module_from_root("badgeimposer", ROOT)


def badge_pdf_bytes(page_count: int, *, width: float = BADGE_PAGE_WIDTH, height: float = BADGE_PAGE_HEIGHT) -> bytes:
    """Build a PDF whose page ``k`` draws the marker rectangle ``0 0 k+1 7 re f``."""
    writer = PdfWriter()
    for index in range(page_count):
        page = writer.add_blank_page(width=width, height=height)
        stream = DecodedStreamObject()
        stream.set_data(f"0 0 {index + 1} 7 re f\n".encode("ascii"))
        page.replace_contents(stream)

    payload = io.BytesIO()
    writer.write(payload)
    return payload.getvalue()


@pytest.fixture
def make_badge_pdf() -> Callable[..., bytes]:
    return badge_pdf_bytes
