"""Versioned dataset overrides with single-active-version semantics."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from dataset_service.errors import DatasetError, DatasetErrorCode
from dataset_service.exporter import unwrap_export_envelope
from dataset_service.linter import validate_dataset
from dataset_service.schemas import DatasetBundle, parse_bundle
from dataset_service.storage import DatasetOverride, OverrideStore

logger = logging.getLogger(__name__)


class OverrideMetadata(BaseModel):
    """Admin-supplied name and description of an import."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=1000)


class OverrideSummary(BaseModel):
    """Override record without its dataset payload."""

    id: int
    name: str
    description: str
    is_active: bool = Field(serialization_alias="isActive")
    created_at: datetime = Field(serialization_alias="createdAt")
    created_by_id: str | None = Field(default=None, serialization_alias="createdById")

    @classmethod
    def from_record(cls, record: DatasetOverride) -> "OverrideSummary":
        """Build a summary from a stored record."""
        return cls(
            id=int(record.id or 0),
            name=record.name,
            description=record.description,
            is_active=record.is_active,
            created_at=record.created_at,
            created_by_id=record.created_by_id,
        )


class ImportResult(BaseModel):
    """Identifier of a newly stored override."""

    id: int


@contextmanager
def _database_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Override %s failed", operation)
        raise DatasetError(
            f"Database error during override {operation}",
            DatasetErrorCode.DATABASE_ERROR,
            context={"operation": operation},
        ) from exc


def _not_found(override_id: int) -> DatasetError:
    return DatasetError(
        f"Override {override_id} not found",
        DatasetErrorCode.OVERRIDE_NOT_FOUND,
        context={"id": override_id},
    )


class OverrideManager:
    """Import, list, activate and delete dataset overrides."""

    def __init__(
        self, store: OverrideStore, *, warn_empty_selectors: bool = False
    ) -> None:
        """Initialize with a persistence collaborator."""
        self._store = store
        self._warn_empty_selectors = warn_empty_selectors

    def import_override(
        self,
        name: str,
        description: str,
        raw_json: str,
        created_by: str | None = None,
    ) -> ImportResult:
        """Validate and store a dataset bundle as an inactive override.

        Args:
            name: Display name (1-255 characters).
            description: Free text (up to 1000 characters).
            raw_json: Bundle JSON, optionally wrapped in an export envelope.
            created_by: Identifier of the importing admin.

        Returns:
            ImportResult with the new override id.

        Raises:
            DatasetError: INVALID_FORMAT for bad metadata, PARSE_FAILED for
                invalid JSON, VALIDATION_FAILED (with ``context["issues"]``)
                when the bundle has errors. Nothing is stored in those cases.
        """
        try:
            metadata = OverrideMetadata(name=name, description=description)
        except ValidationError as exc:
            raise DatasetError(
                "Invalid override metadata",
                DatasetErrorCode.INVALID_FORMAT,
                context={
                    "details": [
                        {
                            "field": ".".join(str(part) for part in error["loc"]),
                            "message": error["msg"],
                        }
                        for error in exc.errors()
                    ]
                },
            ) from exc

        try:
            payload = json.loads(raw_json)
        except json.JSONDecodeError as exc:
            raise DatasetError(
                "Invalid JSON syntax", DatasetErrorCode.PARSE_FAILED
            ) from exc

        dataset = unwrap_export_envelope(payload)
        result = validate_dataset(
            dataset, warn_empty_selectors=self._warn_empty_selectors
        )
        if not result.valid:
            logger.info(
                "Rejected override %r: %d error(s)", metadata.name, len(result.errors)
            )
            raise DatasetError(
                "Dataset validation failed",
                DatasetErrorCode.VALIDATION_FAILED,
                context={"issues": [issue.to_json_dict() for issue in result.errors]},
            )

        with _database_errors("import"):
            record = self._store.create(
                name=metadata.name,
                description=metadata.description,
                json_text=json.dumps(dataset, ensure_ascii=False),
                created_by_id=created_by,
            )
        logger.info("Stored override id=%s name=%r", record.id, record.name)
        return ImportResult(id=int(record.id or 0))

    def list_overrides(self) -> list[OverrideSummary]:
        """Return override summaries, newest first."""
        with _database_errors("list"):
            records = self._store.list_all()
        return [OverrideSummary.from_record(record) for record in records]

    def activate_override(self, override_id: int) -> OverrideSummary:
        """Make one override the only active one."""
        with _database_errors("activate"):
            record = self._store.activate_exclusive(override_id)
        if record is None:
            raise _not_found(override_id)
        logger.info("Activated override id=%s", override_id)
        return OverrideSummary.from_record(record)

    def deactivate_override(self, override_id: int) -> OverrideSummary:
        """Deactivate an override; the seed dataset becomes authoritative again."""
        with _database_errors("deactivate"):
            record = self._store.deactivate(override_id)
        if record is None:
            raise _not_found(override_id)
        logger.info("Deactivated override id=%s", override_id)
        return OverrideSummary.from_record(record)

    def delete_override(self, override_id: int) -> None:
        """Delete an override, even when it is active."""
        with _database_errors("delete"):
            deleted = self._store.delete(override_id)
        if not deleted:
            raise _not_found(override_id)
        logger.info("Deleted override id=%s", override_id)

    def active_bundle(self) -> DatasetBundle | None:
        """Parse and return the active override's bundle, if one is active."""
        with _database_errors("lookup"):
            record = self._store.get_active()
        if record is None:
            return None
        return parse_bundle(json.loads(record.json_text))
