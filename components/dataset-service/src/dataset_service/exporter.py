"""Export envelope assembly for the authoritative dataset."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from dataset_service.schemas import DatasetBundle

if TYPE_CHECKING:  # pragma: no cover
    from dataset_service.loader import DatasetCache
    from dataset_service.overrides import OverrideManager

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
DEFAULT_EXPORT_DIR = Path("exports")


class ExportEnvelope(BaseModel):
    """Versioned export wrapper around a dataset bundle."""

    exported_at: str = Field(alias="exportedAt")
    version: Literal["1.0"] = EXPORT_VERSION
    dataset: DatasetBundle

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to the stable ``{exportedAt, version, dataset}`` shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def unwrap_export_envelope(payload: object) -> object:
    """Return the ``dataset`` of an export envelope, or the payload unchanged."""
    if isinstance(payload, dict) and isinstance(payload.get("dataset"), dict):
        return payload["dataset"]
    return payload


def resolve_dataset(
    cache: DatasetCache, manager: OverrideManager | None = None
) -> DatasetBundle:
    """Return the authoritative bundle: the active override, else the seed."""
    if manager is not None:
        active = manager.active_bundle()
        if active is not None:
            return active
    return cache.get()


def export_dataset(
    cache: DatasetCache,
    manager: OverrideManager | None = None,
    now: datetime | None = None,
) -> ExportEnvelope:
    """Wrap the authoritative bundle into an export envelope.

    No validation happens here: the bundle already passed validation when it
    was loaded or imported.
    """
    bundle = resolve_dataset(cache, manager)
    return ExportEnvelope(exportedAt=_iso_timestamp(now or _utc_now()), dataset=bundle)


def export_filename(now: datetime | None = None) -> str:
    """Return ``pharmacology-dataset-<timestamp>.json`` for a download."""
    stamp = _iso_timestamp(now or _utc_now()).replace(":", "-").replace(".", "-")
    return f"pharmacology-dataset-{stamp}.json"


def write_export(
    envelope: ExportEnvelope, output_dir: Path = DEFAULT_EXPORT_DIR
) -> Path:
    """Write an envelope as pretty-printed JSON and return the file path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    exported_at = datetime.fromisoformat(envelope.exported_at.replace("Z", "+00:00"))
    output_path = output_dir / export_filename(exported_at)
    output_path.write_text(
        json.dumps(envelope.to_json_dict(), indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    logger.info("Dataset exported to %s", output_path)
    return output_path
