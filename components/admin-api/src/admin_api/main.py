"""Admin HTTP API for dataset validation, linting, export and overrides."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import partial
from typing import List, Optional

from anyio import to_thread
from dataset_service.config import DatasetConfig, configure_logging
from dataset_service.errors import (
    DatasetError,
    DatasetErrorCode,
    error_message,
    load_dataset_safely,
)
from dataset_service.exporter import export_dataset, export_filename
from dataset_service.issues import summarize
from dataset_service.linter import lint_dataset
from dataset_service.loader import DatasetCache
from dataset_service.overrides import OverrideManager
from dataset_service.storage import OverrideStorage, init_db
from dataset_service.upload import UploadedFile, validate_files
from dotenv import find_dotenv, load_dotenv
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from admin_api.dependencies import (
    get_config,
    get_dataset_cache,
    get_override_manager,
    get_override_storage,
    require_admin,
    resolve_language,
)

# Load .env from repo root (find_dotenv walks up to find it)
load_dotenv(find_dotenv())

configure_logging()
logging.getLogger("uvicorn").setLevel(logging.getLogger("admin_api").level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncIterator[None]:
    """Create tables and warm the dataset cache."""
    init_db()
    result = await load_dataset_safely(
        get_dataset_cache().get, timeout=get_config().load_timeout_seconds
    )
    if result.error is not None:
        logger.warning("Dataset not available at startup: %s", result.error.message)
    yield
    logger.info("Shutdown complete")


app = FastAPI(
    title="Pharmacology Dataset Admin API", version="0.1.0", lifespan=lifespan
)


@app.exception_handler(DatasetError)
async def handle_dataset_error(request: Request, exc: DatasetError) -> JSONResponse:
    """Render a DatasetError as a localized JSON error body."""
    language = resolve_language(request.headers.get("accept-language"))
    body: dict[str, object] = {
        "error": error_message(exc, language),
        "code": exc.code.value,
    }
    if exc.is_internal:
        logger.error("[%s] %s %s", exc.code.value, exc.message, exc.context)
    elif exc.code == DatasetErrorCode.VALIDATION_FAILED and "issues" in exc.context:
        body["issues"] = exc.context["issues"]
    elif "details" in exc.context:
        body["details"] = exc.context["details"]
    return JSONResponse(status_code=exc.status_code, content=body)


async def _read_upload(upload: UploadFile) -> UploadedFile:
    content = await upload.read()
    return UploadedFile(
        name=upload.filename or "upload.json",
        text=content.decode("utf-8", errors="replace"),
    )


@app.post("/v1/admin/validate")
async def validate_uploads(
    files: Optional[List[UploadFile]] = File(default=None),
    config: DatasetConfig = Depends(get_config),
    _admin: str = Depends(require_admin),
) -> dict[str, object]:
    """Validate each uploaded JSON file independently."""
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")
    uploads = [await _read_upload(upload) for upload in files]
    results = await to_thread.run_sync(
        partial(
            validate_files, uploads, warn_empty_selectors=config.warn_empty_selectors
        )
    )
    return {"results": [result.model_dump(exclude_none=True) for result in results]}


@app.get("/v1/admin/lint")
def lint_current_dataset(
    cache: DatasetCache = Depends(get_dataset_cache),
    config: DatasetConfig = Depends(get_config),
    _admin: str = Depends(require_admin),
) -> dict[str, object]:
    """Lint the cached seed dataset."""
    issues = lint_dataset(
        cache.get(), warn_empty_selectors=config.warn_empty_selectors
    )
    return {
        "issues": [issue.to_json_dict() for issue in issues],
        "summary": summarize(issues).model_dump(),
    }


@app.get("/v1/admin/export")
def export_current_dataset(
    cache: DatasetCache = Depends(get_dataset_cache),
    manager: OverrideManager = Depends(get_override_manager),
    _admin: str = Depends(require_admin),
) -> Response:
    """Download the authoritative dataset as an export envelope."""
    now = datetime.now(timezone.utc)
    envelope = export_dataset(cache, manager, now=now)
    return Response(
        content=json.dumps(envelope.to_json_dict(), indent=2, ensure_ascii=False),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(now)}"'
        },
    )


@app.post("/v1/admin/import")
async def import_dataset(
    file: Optional[UploadFile] = File(default=None),
    name: str = Form(default=""),
    description: str = Form(default=""),
    manager: OverrideManager = Depends(get_override_manager),
    admin: str = Depends(require_admin),
) -> dict[str, object]:
    """Validate an uploaded bundle and store it as an inactive override.

    A blank name falls back to the uploaded file name.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    upload = await _read_upload(file)
    result = await to_thread.run_sync(
        partial(
            manager.import_override,
            name=name.strip() or upload.name,
            description=description,
            raw_json=upload.text,
            created_by=admin,
        )
    )
    return {
        "success": True,
        "overrideId": result.id,
        "message": "Dataset imported successfully",
    }


@app.get("/v1/admin/import")
def list_imports(
    manager: OverrideManager = Depends(get_override_manager),
    _admin: str = Depends(require_admin),
) -> dict[str, object]:
    """List stored overrides, newest first."""
    return {
        "overrides": [
            summary.model_dump(mode="json", by_alias=True)
            for summary in manager.list_overrides()
        ]
    }


@app.patch("/v1/admin/overrides/{override_id}")
def activate_override(
    override_id: int,
    manager: OverrideManager = Depends(get_override_manager),
    _admin: str = Depends(require_admin),
) -> dict[str, bool]:
    """Make one override the only active one."""
    manager.activate_override(override_id)
    return {"success": True}


@app.post("/v1/admin/overrides/{override_id}/deactivate")
def deactivate_override(
    override_id: int,
    manager: OverrideManager = Depends(get_override_manager),
    _admin: str = Depends(require_admin),
) -> dict[str, bool]:
    """Deactivate an override so the seed dataset is used again."""
    manager.deactivate_override(override_id)
    return {"success": True}


@app.delete("/v1/admin/overrides/{override_id}")
def delete_override(
    override_id: int,
    manager: OverrideManager = Depends(get_override_manager),
    _admin: str = Depends(require_admin),
) -> dict[str, bool]:
    """Delete an override."""
    manager.delete_override(override_id)
    return {"success": True}


@app.get("/health")
def get_health(
    cache: DatasetCache = Depends(get_dataset_cache),
    storage: OverrideStorage = Depends(get_override_storage),
) -> JSONResponse:
    """Report dataset cache and database health; 503 when either is down."""
    dataset_ok = cache.get_safe() is not None
    try:
        storage.ping()
        database = "ok"
    except SQLAlchemyError as exc:
        logger.error("Database health check failed: %s", exc)
        database = "error"

    stats = cache.stats()
    healthy = dataset_ok and database == "ok"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "dataset": {"cached": stats.cached, "error": stats.error},
            "database": database,
        },
    )
