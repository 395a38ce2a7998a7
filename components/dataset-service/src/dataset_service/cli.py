"""Command-line tools for linting, validating, exporting and importing datasets."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from dataset_service.config import DatasetConfig, configure_logging
from dataset_service.errors import DatasetError, DatasetErrorCode
from dataset_service.exporter import DEFAULT_EXPORT_DIR, export_dataset, write_export
from dataset_service.issues import LintIssue, summarize
from dataset_service.linter import validate_dataset
from dataset_service.loader import DatasetCache, load_seed_dataset
from dataset_service.overrides import OverrideManager
from dataset_service.storage import OverrideStorage, get_engine, init_db
from dataset_service.upload import UploadedFile, validate_files

logger = logging.getLogger(__name__)


def _format_issue(issue: LintIssue) -> str:
    location = " ".join(
        part
        for part in (
            f"[{issue.file}]" if issue.file else "",
            issue.path or "",
            f"(id: {issue.id})" if issue.id else "",
        )
        if part
    )
    prefix = "ERROR" if issue.severity == "error" else "WARN "
    return f"  {prefix} {issue.type}: {issue.message}" + (
        f" {location}" if location else ""
    )


def _print_issues(issues: list[LintIssue]) -> None:
    for issue in issues:
        print(_format_issue(issue))


def _manager(config: DatasetConfig) -> OverrideManager:
    engine = get_engine()
    init_db(engine)
    return OverrideManager(
        OverrideStorage(engine), warn_empty_selectors=config.warn_empty_selectors
    )


def run_lint(args: argparse.Namespace, config: DatasetConfig) -> int:
    """Lint the seed dataset and print a summary."""
    raw = load_seed_dataset(args.seed_dir or config.seed_dir)
    warn_empty = args.warn_empty_selectors or config.warn_empty_selectors
    result = validate_dataset(raw, warn_empty_selectors=warn_empty)
    issues = [*result.errors, *result.warnings]
    summary = summarize(issues)

    if args.json:
        print(
            json.dumps(
                {
                    "issues": [issue.to_json_dict() for issue in issues],
                    "summary": summary.model_dump(),
                },
                indent=2,
                ensure_ascii=False,
            )
        )
    else:
        _print_issues(issues)
        print(
            f"{summary.total} issue(s): {summary.errors} error(s), "
            f"{summary.warnings} warning(s)"
        )
    return 1 if result.errors else 0


def run_validate(args: argparse.Namespace, config: DatasetConfig) -> int:
    """Validate JSON files independently; a bad file never stops the others."""
    uploads: list[UploadedFile] = []
    for path in args.files:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Cannot read %s: %s", path, exc)
            content = ""
        uploads.append(UploadedFile(name=path.name, text=content))

    results = validate_files(uploads, warn_empty_selectors=config.warn_empty_selectors)
    for result in results:
        status = "OK" if result.valid else "INVALID"
        print(
            f"{result.file}: {status} ({len(result.errors)} error(s), "
            f"{len(result.warnings)} warning(s))"
        )
        _print_issues([*result.errors, *result.warnings])
    return 0 if all(result.valid for result in results) else 1


def run_export(args: argparse.Namespace, config: DatasetConfig) -> int:
    """Write the authoritative dataset as an export envelope."""
    cache = DatasetCache(seed_dir=args.seed_dir or config.seed_dir)
    manager = None if args.seed_only else _manager(config)
    envelope = export_dataset(cache, manager)
    output_path = write_export(envelope, args.output_dir)
    counts = ", ".join(
        f"{name}={count}" for name, count in envelope.dataset.counts().items()
    )
    print(f"Exported {counts}")
    print(f"Written to {output_path}")
    return 0


def run_import(args: argparse.Namespace, config: DatasetConfig) -> int:
    """Validate a bundle file and store it as an inactive override."""
    try:
        raw_json = args.file.read_text(encoding="utf-8")
    except OSError as exc:
        raise DatasetError(
            f"Cannot read {args.file}",
            DatasetErrorCode.FILE_NOT_FOUND,
            context={"file": str(args.file)},
        ) from exc
    result = _manager(config).import_override(
        name=args.name,
        description=args.description,
        raw_json=raw_json,
        created_by=args.created_by,
    )
    print(f"Imported override {result.id} (inactive)")
    return 0


def run_list(args: argparse.Namespace, config: DatasetConfig) -> int:
    """Print stored overrides, newest first."""
    overrides = _manager(config).list_overrides()
    if args.json:
        payload = [
            summary.model_dump(mode="json", by_alias=True) for summary in overrides
        ]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0
    if not overrides:
        print("No overrides stored")
        return 0
    for summary in overrides:
        marker = "*" if summary.is_active else " "
        print(
            f"{marker} {summary.id:>4}  {summary.created_at:%Y-%m-%d %H:%M}  "
            f"{summary.name}"
        )
    return 0


def run_activate(args: argparse.Namespace, config: DatasetConfig) -> int:
    """Make one override the active dataset."""
    summary = _manager(config).activate_override(args.id)
    print(f"Activated override {summary.id}: {summary.name}")
    return 0


def run_deactivate(args: argparse.Namespace, config: DatasetConfig) -> int:
    """Deactivate an override."""
    summary = _manager(config).deactivate_override(args.id)
    print(f"Deactivated override {summary.id}: {summary.name}")
    return 0


def run_delete(args: argparse.Namespace, config: DatasetConfig) -> int:
    """Delete an override."""
    _manager(config).delete_override(args.id)
    print(f"Deleted override {args.id}")
    return 0


Command = Callable[[argparse.Namespace, DatasetConfig], int]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pharm-dataset", description="Pharmacology dataset tools"
    )
    parser.add_argument("--log-level", default=None, help="Logging level override")
    subparsers = parser.add_subparsers(dest="command", required=True)

    lint = subparsers.add_parser("lint", help="Lint the seed dataset")
    lint.add_argument("--seed-dir", type=Path, default=None)
    lint.add_argument(
        "--warn-empty-selectors",
        action="store_true",
        help="Warn about interaction rules without any selector",
    )
    lint.add_argument("--json", action="store_true", help="Print JSON output")
    lint.set_defaults(handler=run_lint)

    validate = subparsers.add_parser("validate", help="Validate dataset JSON files")
    validate.add_argument("files", type=Path, nargs="+")
    validate.set_defaults(handler=run_validate)

    export = subparsers.add_parser("export", help="Export the authoritative dataset")
    export.add_argument("--output-dir", type=Path, default=DEFAULT_EXPORT_DIR)
    export.add_argument("--seed-dir", type=Path, default=None)
    export.add_argument(
        "--seed-only",
        action="store_true",
        help="Ignore the active override and export the seed dataset",
    )
    export.set_defaults(handler=run_export)

    importer = subparsers.add_parser("import", help="Import a bundle as an override")
    importer.add_argument("file", type=Path)
    importer.add_argument("--name", required=True)
    importer.add_argument("--description", default="")
    importer.add_argument("--created-by", default=None)
    importer.set_defaults(handler=run_import)

    listing = subparsers.add_parser("list", help="List stored overrides")
    listing.add_argument("--json", action="store_true", help="Print JSON output")
    listing.set_defaults(handler=run_list)

    for name, handler, help_text in (
        ("activate", run_activate, "Activate an override"),
        ("deactivate", run_deactivate, "Deactivate an override"),
        ("delete", run_delete, "Delete an override"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("id", type=int)
        command.set_defaults(handler=handler)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint; returns the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    config = DatasetConfig.from_env()
    configure_logging(args.log_level or config.log_level)

    handler: Command = args.handler
    try:
        return handler(args, config)
    except DatasetError as exc:
        logger.error("[%s] %s", exc.code.value, exc.message)
        print(f"Error ({exc.code.value}): {exc.message}", file=sys.stderr)
        for issue in exc.context.get("issues", []):
            print(_format_issue(LintIssue.model_validate(issue)), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
