"""dataset-service package."""

from dataset_service.errors import (
    DatasetError,
    DatasetErrorCode,
    error_message,
    load_dataset_safely,
    validate_dataset_safely,
)
from dataset_service.exporter import ExportEnvelope, export_dataset, resolve_dataset
from dataset_service.issues import LintIssue, LintSummary, ValidationResult, summarize
from dataset_service.linter import lint_dataset, validate_dataset
from dataset_service.loader import DatasetCache, load_seed_dataset
from dataset_service.overrides import OverrideManager, OverrideSummary
from dataset_service.schemas import COLLECTION_NAMES, DatasetBundle, parse_bundle
from dataset_service.upload import UploadedFile, validate_files

__all__ = [
    "COLLECTION_NAMES",
    "DatasetBundle",
    "DatasetCache",
    "DatasetError",
    "DatasetErrorCode",
    "ExportEnvelope",
    "LintIssue",
    "LintSummary",
    "OverrideManager",
    "OverrideSummary",
    "UploadedFile",
    "ValidationResult",
    "error_message",
    "export_dataset",
    "lint_dataset",
    "load_dataset_safely",
    "load_seed_dataset",
    "parse_bundle",
    "resolve_dataset",
    "summarize",
    "validate_dataset",
    "validate_dataset_safely",
    "validate_files",
]
