"""Per-file validation of uploaded dataset JSON."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePath

from dataset_service.exporter import unwrap_export_envelope
from dataset_service.issues import FileValidationResult, LintIssue
from dataset_service.linter import validate_dataset
from dataset_service.schemas import COLLECTION_NAMES

logger = logging.getLogger(__name__)

# Recognized base names of single-collection files.
COLLECTION_FILE_NAMES: dict[str, str] = {
    "courseBlocks": "courseBlocks",
    "course_blocks": "courseBlocks",
    "drugs": "drugs",
    "questions": "questions",
    "cases": "cases",
    "interactions": "interactions",
    "doseTemplates": "doseTemplates",
    "dose_templates": "doseTemplates",
}


@dataclass(frozen=True)
class UploadedFile:
    """Uploaded file held in memory.

    Args:
        name: Client-supplied file name (e.g. ``drugs.json``).
        text: Raw file content.
    """

    name: str
    text: str


def collection_for_filename(filename: str) -> str | None:
    """Map a file name to its collection, or None if it is not recognized."""
    base = PurePath(filename).name
    if base.lower().endswith(".json"):
        base = base[: -len(".json")]
    return COLLECTION_FILE_NAMES.get(base)


def _failed(filename: str, message: str) -> FileValidationResult:
    return FileValidationResult(
        file=filename,
        valid=False,
        errors=[
            LintIssue(type="schema", severity="error", message=message, file=filename)
        ],
        warnings=[],
    )


def validate_file(
    upload: UploadedFile, *, warn_empty_selectors: bool = False
) -> FileValidationResult:
    """Validate one uploaded file.

    Accepts a full bundle, an export envelope, or a single collection array
    whose collection is inferred from the file name. A single collection is
    checked on its own: its references into other collections are not
    resolved.
    """
    try:
        payload = json.loads(upload.text)
    except json.JSONDecodeError:
        return _failed(upload.name, "Invalid JSON syntax")

    payload = unwrap_export_envelope(payload)

    reference_collections: tuple[str, ...] = COLLECTION_NAMES
    if isinstance(payload, dict) and any(name in payload for name in COLLECTION_NAMES):
        bundle: object = payload
    elif isinstance(payload, list):
        collection = collection_for_filename(upload.name)
        if collection is None:
            base = PurePath(upload.name).name
            return _failed(
                upload.name,
                f"Unrecognized collection file name: {base} "
                f"(expected one of: {', '.join(COLLECTION_NAMES)})",
            )
        bundle = {
            name: (payload if name == collection else []) for name in COLLECTION_NAMES
        }
        # Other collections are absent, not empty: only resolve references
        # within the uploaded collection.
        reference_collections = (collection,)
    else:
        return _failed(upload.name, "Expected an array or dataset bundle object")

    result = validate_dataset(
        bundle,
        warn_empty_selectors=warn_empty_selectors,
        reference_collections=reference_collections,
    )
    return FileValidationResult(
        file=upload.name,
        valid=result.valid,
        errors=result.errors,
        warnings=result.warnings,
    )


def validate_files(
    files: Iterable[UploadedFile], *, warn_empty_selectors: bool = False
) -> list[FileValidationResult]:
    """Validate each file independently; one failure never blocks the others."""
    results = [
        validate_file(upload, warn_empty_selectors=warn_empty_selectors)
        for upload in files
    ]
    logger.info(
        "Validated %d file(s), %d invalid",
        len(results),
        sum(1 for result in results if not result.valid),
    )
    return results
