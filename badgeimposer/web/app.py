from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse, JSONResponse

from badgeimposer.constants import (
    DEFAULT_ARTIFACT_DIR,
    DEFAULT_ARTIFACT_RETENTION_SECONDS,
    DEFAULT_FLIP_AXIS,
    DEFAULT_PAPER_SIZE,
    DEFAULT_TILES_PER_SHEET,
    PAPER_SIZES,
    POINTS_PER_MM,
)
from badgeimposer.errors import EmbeddingFailure, ValidationError
from badgeimposer.imposition.core import FLIP_AXES, ImpositionSettings, resolve_flip_axis
from badgeimposer.imposition.pdf_writer import deterministic_output_filename, write_badge_sheets
from badgeimposer.imposition.source import PageSource

_REQUEST_ID_PATTERN = re.compile(r"^[a-f0-9]{32}$")
_EXPIRED_ARTIFACT_MESSAGE = "This download link has expired after cleanup. Regenerate the badge sheets to create a new link."
_UNEXPECTED_FAILURE_MESSAGE = "Imposition failed unexpectedly. Retry and check server logs for the associated job."
_CUSTOM_PAPER_SIZE = "Custom"
_LOGGER = logging.getLogger("badgeimposer.web")


def _log_event(level: int, event_name: str, **event_fields: Any) -> None:
    _LOGGER.log(
        level,
        event_name,
        extra={"event_name": event_name, "event_fields": event_fields},
    )


def _cleanup_stale_artifacts(
    artifact_dir: Path,
    *,
    retention_seconds: int,
    now: float | None = None,
) -> int:
    if retention_seconds < 0:
        return 0

    cutoff = (time.time() if now is None else now) - retention_seconds
    removed = 0
    for child in artifact_dir.iterdir():
        try:
            is_stale = child.stat().st_mtime < cutoff
        except FileNotFoundError:
            continue

        if not is_stale:
            continue

        if child.is_dir():
            shutil.rmtree(child, ignore_errors=True)
        else:
            child.unlink(missing_ok=True)
        removed += 1

    return removed


def _validated_filename(filename: str) -> str:
    if "\\" in filename:
        raise HTTPException(status_code=400, detail="Invalid filename")

    safe_name = Path(filename).name
    if safe_name != filename or safe_name in {"", ".", ".."}:
        raise HTTPException(status_code=400, detail="Invalid filename")
    return safe_name


def _parse_form_input(
    *,
    paper_size: str,
    tiles_per_sheet: int,
    columns: str = "",
    flip_axis: str = DEFAULT_FLIP_AXIS,
    cut_marks: bool = True,
    custom_width_mm: str = "",
    custom_height_mm: str = "",
) -> tuple[ImpositionSettings | None, dict[str, Any], str | None]:
    normalized_paper_size = paper_size.strip()
    columns_value = columns.strip()
    width_mm_value = custom_width_mm.strip()
    height_mm_value = custom_height_mm.strip()

    form_values: dict[str, Any] = {
        "paper_size": normalized_paper_size,
        "tiles_per_sheet": tiles_per_sheet,
        "columns": columns_value,
        "flip_axis": flip_axis.strip().lower(),
        "cut_marks": cut_marks,
        "custom_width_mm": width_mm_value,
        "custom_height_mm": height_mm_value,
    }

    allowed_sizes = set(PAPER_SIZES)
    allowed_sizes.add(_CUSTOM_PAPER_SIZE)
    if normalized_paper_size not in allowed_sizes:
        valid_sizes = ", ".join(sorted(allowed_sizes))
        return None, form_values, f"Invalid paper size. Choose one of: {valid_sizes}."

    try:
        resolved_flip_axis = resolve_flip_axis(flip_axis)
    except ValidationError:
        valid_axes = ", ".join(FLIP_AXES)
        return None, form_values, f"Invalid flip axis. Choose one of: {valid_axes}."

    resolved_columns: int | None = None
    if columns_value:
        try:
            resolved_columns = int(columns_value)
        except ValueError:
            return None, form_values, "Columns must be a whole number."

    if normalized_paper_size == _CUSTOM_PAPER_SIZE:
        try:
            width_mm = float(width_mm_value)
            height_mm = float(height_mm_value)
        except ValueError:
            return None, form_values, "Custom paper dimensions must be numeric values in millimeters."

        if width_mm <= 0 or height_mm <= 0:
            return None, form_values, "Custom paper dimensions must be greater than 0 mm."
        sheet_width, sheet_height = width_mm * POINTS_PER_MM, height_mm * POINTS_PER_MM
    else:
        sheet_width, sheet_height = PAPER_SIZES[normalized_paper_size]

    settings = ImpositionSettings(
        sheet_width=sheet_width,
        sheet_height=sheet_height,
        tiles_per_sheet=tiles_per_sheet,
        columns=resolved_columns,
        flip_axis=resolved_flip_axis,
        cut_marks=cut_marks,
    )
    try:
        settings.validate()
    except ValidationError as exc:
        return None, form_values, f"Invalid grid layout: {exc}."

    return settings, form_values, None


def _validate_upload_metadata(file: UploadFile | None) -> tuple[str | None, str | None]:
    if file is None or not file.filename:
        return None, "Upload a badge PDF to continue."

    source_name = Path(file.filename).name
    if Path(source_name).suffix.lower() != ".pdf":
        return None, "Only .pdf uploads are supported."

    return source_name, None


def _impose_payload(
    *,
    payload: bytes,
    source_name: str,
    settings: ImpositionSettings,
    artifact_dir: Path,
    artifact_retention_seconds: int,
    job_id: str | None = None,
) -> tuple[dict[str, Any] | None, str | None]:
    if not payload:
        _log_event(logging.WARNING, "impose.job.empty_upload", job_id=job_id, source_name=source_name)
        return None, "The uploaded file is empty."

    try:
        source = PageSource.from_bytes(payload)
    except ValidationError as exc:
        _log_event(
            logging.WARNING,
            "impose.job.invalid_pdf",
            job_id=job_id,
            source_name=source_name,
            payload_bytes=len(payload),
            error=str(exc),
        )
        return None, f"The upload could not be used: {exc}."

    removed = _cleanup_stale_artifacts(
        artifact_dir,
        retention_seconds=artifact_retention_seconds,
    )

    request_id = uuid4().hex
    output_name = deterministic_output_filename(source_name)
    output_path = artifact_dir / request_id / output_name

    try:
        artifact = write_badge_sheets(source, output_path, settings)
    except ValidationError as exc:
        _log_event(
            logging.WARNING,
            "impose.job.invalid_source",
            job_id=job_id,
            source_name=source_name,
            source_pages=source.page_count,
            error=str(exc),
        )
        return None, f"Unable to impose badges: {exc}."
    except EmbeddingFailure as exc:
        _log_event(
            logging.WARNING,
            "impose.job.embedding_failed",
            job_id=job_id,
            source_name=source_name,
            page_index=exc.page_index,
            error=exc.reason,
        )
        return None, f"Badge page {exc.page_index + 1} could not be placed. Check the source PDF for damaged pages and retry."
    except Exception:
        _LOGGER.exception(
            "impose.job.unexpected_failure",
            extra={
                "event_name": "impose.job.unexpected_failure",
                "event_fields": {"job_id": job_id, "source_name": source_name},
            },
        )
        return None, _UNEXPECTED_FAILURE_MESSAGE

    _log_event(
        logging.INFO,
        "impose.job.completed",
        job_id=job_id,
        request_id=request_id,
        source_name=source_name,
        source_pages=source.page_count,
        badges=artifact.badge_count,
        sheets=artifact.sheet_count,
        output_pages=artifact.page_count,
        stale_artifacts_removed=removed,
    )

    return {
        "status": "success",
        "message": "Badge sheets ready.",
        "download_url": f"/download/{request_id}/{output_name}",
        "output_filename": output_name,
        "output_pages": artifact.page_count,
        "sheets": artifact.sheet_count,
        "badges": artifact.badge_count,
        "tiles_per_sheet": settings.tiles_per_sheet,
        "flip_axis": settings.flip_axis,
    }, None


def _resolve_request_artifact_path(artifact_dir: Path, request_id: str, filename: str) -> Path:
    if _REQUEST_ID_PATTERN.fullmatch(request_id) is None:
        _log_event(logging.WARNING, "download.request.invalid_request_id", request_id=request_id, filename=filename)
        raise HTTPException(status_code=400, detail="Invalid request id")

    safe_name = _validated_filename(filename)
    request_artifact_dir = artifact_dir / request_id
    if not request_artifact_dir.is_dir():
        _log_event(logging.WARNING, "download.request.expired", request_id=request_id, filename=safe_name)
        raise HTTPException(status_code=410, detail=_EXPIRED_ARTIFACT_MESSAGE)

    file_path = request_artifact_dir / safe_name
    if not file_path.is_file():
        _log_event(logging.WARNING, "download.request.missing_file", request_id=request_id, filename=safe_name)
        raise HTTPException(status_code=404, detail="File not found")

    return file_path


def _error_response(message: str, status_code: int = 400, form_values: dict[str, Any] | None = None) -> JSONResponse:
    content: dict[str, Any] = {"status": "error", "message": message}
    if form_values is not None:
        content["form"] = form_values
    return JSONResponse(content=content, status_code=status_code)


def create_app(
    artifact_dir: Path | None = None,
    artifact_retention_seconds: int = DEFAULT_ARTIFACT_RETENTION_SECONDS,
) -> FastAPI:
    app = FastAPI(title="Badge Imposer", version="0.1.0")

    target_artifact_dir = artifact_dir or (Path.cwd() / DEFAULT_ARTIFACT_DIR)
    target_artifact_dir.mkdir(parents=True, exist_ok=True)
    app.state.artifact_dir = target_artifact_dir
    app.state.artifact_retention_seconds = artifact_retention_seconds

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/")
    def index() -> dict[str, Any]:
        return {
            "paper_sizes": sorted(PAPER_SIZES.keys()) + [_CUSTOM_PAPER_SIZE],
            "flip_axes": list(FLIP_AXES),
            "defaults": {
                "paper_size": DEFAULT_PAPER_SIZE,
                "tiles_per_sheet": DEFAULT_TILES_PER_SHEET,
                "columns": "",
                "flip_axis": DEFAULT_FLIP_AXIS,
                "cut_marks": True,
            },
        }

    @app.post("/impose")
    async def impose(
        file: UploadFile | None = File(default=None),
        paper_size: str = Form(DEFAULT_PAPER_SIZE),
        tiles_per_sheet: int = Form(DEFAULT_TILES_PER_SHEET, ge=1),
        columns: str = Form(""),
        flip_axis: str = Form(DEFAULT_FLIP_AXIS),
        cut_marks: bool = Form(True),
        custom_width_mm: str = Form(""),
        custom_height_mm: str = Form(""),
    ) -> JSONResponse:
        job_id = uuid4().hex
        _log_event(
            logging.INFO,
            "impose.request.received",
            job_id=job_id,
            paper_size=paper_size,
            tiles_per_sheet=tiles_per_sheet,
            columns=columns,
            flip_axis=flip_axis,
            cut_marks=cut_marks,
            has_upload=file is not None and bool(file.filename),
        )

        settings, form_values, form_error = _parse_form_input(
            paper_size=paper_size,
            tiles_per_sheet=tiles_per_sheet,
            columns=columns,
            flip_axis=flip_axis,
            cut_marks=cut_marks,
            custom_width_mm=custom_width_mm,
            custom_height_mm=custom_height_mm,
        )
        if form_error is not None or settings is None:
            _log_event(logging.WARNING, "impose.request.form_validation_failed", job_id=job_id, error=form_error)
            return _error_response(form_error or "Invalid form input.", form_values=form_values)

        source_name, upload_error = _validate_upload_metadata(file)
        if upload_error is not None or file is None or source_name is None:
            _log_event(logging.WARNING, "impose.request.upload_validation_failed", job_id=job_id, error=upload_error)
            return _error_response(upload_error or "Upload a badge PDF to continue.", form_values=form_values)

        payload = await file.read()
        result, impose_error = _impose_payload(
            payload=payload,
            source_name=source_name,
            settings=settings,
            artifact_dir=app.state.artifact_dir,
            artifact_retention_seconds=app.state.artifact_retention_seconds,
            job_id=job_id,
        )
        if impose_error is not None:
            _log_event(logging.WARNING, "impose.request.failed", job_id=job_id, source_name=source_name, error=impose_error)
            status_code = 500 if impose_error == _UNEXPECTED_FAILURE_MESSAGE else 400
            return _error_response(impose_error, status_code=status_code, form_values=form_values)

        if result is None:
            _log_event(logging.ERROR, "impose.request.missing_result", job_id=job_id, source_name=source_name)
            return _error_response("Imposition failed.", status_code=500, form_values=form_values)

        _log_event(
            logging.INFO,
            "impose.request.succeeded",
            job_id=job_id,
            source_name=source_name,
            output_filename=result["output_filename"],
            output_pages=result["output_pages"],
            download_url=result["download_url"],
        )
        return JSONResponse(content=result)

    @app.get("/download/{request_id}/{filename:path}")
    def download_request_artifact(request_id: str, filename: str) -> FileResponse:
        file_path = _resolve_request_artifact_path(app.state.artifact_dir, request_id, filename)
        return FileResponse(path=file_path, media_type="application/pdf", filename=file_path.name)

    return app


app = create_app()
