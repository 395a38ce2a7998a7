"""Structural validation and content-quality linting of dataset bundles."""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterator
from typing import Any

from dataset_service.issues import LintIssue, ValidationResult, split_by_severity
from dataset_service.schemas import (
    COLLECTION_NAMES,
    BilingualText,
    DatasetBundle,
    DatasetModel,
    SchemaValidationError,
    parse_bundle,
)

logger = logging.getLogger(__name__)


def validate_dataset(
    raw: object,
    *,
    warn_empty_selectors: bool = False,
    reference_collections: Collection[str] = COLLECTION_NAMES,
) -> ValidationResult:
    """Validate raw data: schema pass first, lint pass only if the shape is valid.

    Args:
        raw: Decoded JSON value expected to be a dataset bundle.
        warn_empty_selectors: Forwarded to ``lint_dataset``.
        reference_collections: Forwarded to ``lint_dataset``.

    Returns:
        ValidationResult; ``valid`` is True iff no error-severity issue exists.
    """
    try:
        bundle = parse_bundle(raw)
    except SchemaValidationError as exc:
        issues = flatten_error_tree(exc.tree())
        logger.info("Schema validation failed with %d issue(s)", len(issues))
        return ValidationResult(valid=False, errors=issues, warnings=[])

    errors, warnings = split_by_severity(
        lint_dataset(
            bundle,
            warn_empty_selectors=warn_empty_selectors,
            reference_collections=reference_collections,
        )
    )
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def flatten_error_tree(tree: dict[str, Any], prefix: str = "") -> list[LintIssue]:
    """Walk a schema error tree into one ``schema`` issue per message."""
    issues = [
        LintIssue(type="schema", severity="error", message=message, path=prefix)
        for message in tree.get("_errors", [])
    ]
    for segment, child in tree.get("children", {}).items():
        issues.extend(
            flatten_error_tree(child, f"{prefix}.{segment}" if prefix else segment)
        )
    return issues


def lint_dataset(
    bundle: DatasetBundle,
    *,
    warn_empty_selectors: bool = False,
    reference_collections: Collection[str] = COLLECTION_NAMES,
) -> list[LintIssue]:
    """Run content-quality and referential checks over a typed bundle.

    Issue order is deterministic: duplicate ids, missing translations,
    per-entity structure, tag format, then cross-collection references.

    Args:
        bundle: Structurally valid bundle.
        warn_empty_selectors: Also warn about interaction rules whose
            ``appliesWhen`` has no non-empty selector.
        reference_collections: Collections whose ids are authoritative for
            cross-collection references. References into any other collection
            are not resolved (used for single-collection uploads).

    Returns:
        Issues in check order.
    """
    issues: list[LintIssue] = []

    for name in COLLECTION_NAMES:
        issues.extend(_duplicate_ids(bundle.collection(name), name))

    for name in COLLECTION_NAMES:
        for entity in bundle.collection(name):
            for path, text in _bilingual_fields(entity, name):
                issues.extend(_translation_issues(text, path, entity.id))

    for question in bundle.questions:
        if not any(option.correct for option in question.options):
            issues.append(
                LintIssue(
                    type="schema",
                    severity="error",
                    message="No correct option marked",
                    path="questions.options",
                    id=question.id,
                )
            )

    for case in bundle.cases:
        choice_ids = {choice.id for choice in case.choices}
        if case.rubric.correct_choice_id not in choice_ids:
            issues.append(
                LintIssue(
                    type="broken-ref",
                    severity="error",
                    message=(
                        "Rubric references non-existent choice: "
                        f"{case.rubric.correct_choice_id}"
                    ),
                    path="cases.rubric.correctChoiceId",
                    id=case.id,
                )
            )

    for drug in bundle.drugs:
        for tag in drug.tags:
            if tag != tag.lower().strip():
                issues.append(
                    LintIssue(
                        type="tag-format",
                        severity="warning",
                        message=f'Tag should be lowercase and trimmed: "{tag}"',
                        path="drugs.tags",
                        id=drug.id,
                    )
                )

    block_ids = {block.id for block in bundle.course_blocks}
    check_blocks = "courseBlocks" in reference_collections
    for name in ("drugs", "questions", "cases"):
        for entity in bundle.collection(name):
            if check_blocks and entity.course_block_id not in block_ids:
                issues.append(
                    LintIssue(
                        type="broken-ref",
                        severity="error",
                        message=(
                            "References non-existent course block: "
                            f"{entity.course_block_id}"
                        ),
                        path=f"{name}.courseBlockId",
                        id=entity.id,
                    )
                )

    drug_ids = {drug.id for drug in bundle.drugs}
    check_drugs = "drugs" in reference_collections
    for rule in bundle.interactions:
        for drug_id in rule.applies_when.drug_ids or []:
            if check_drugs and drug_id not in drug_ids:
                issues.append(
                    LintIssue(
                        type="broken-ref",
                        severity="error",
                        message=f"References non-existent drug: {drug_id}",
                        path="interactions.appliesWhen.drugIds",
                        id=rule.id,
                    )
                )

    if warn_empty_selectors:
        for rule in bundle.interactions:
            if not rule.applies_when.has_selector():
                issues.append(
                    LintIssue(
                        type="empty-field",
                        severity="warning",
                        message="Interaction rule has no selector",
                        path="interactions.appliesWhen",
                        id=rule.id,
                    )
                )

    return issues


def _duplicate_ids(items: list[Any], collection: str) -> Iterator[LintIssue]:
    # First occurrence is canonical; every later repeat is reported.
    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            yield LintIssue(
                type="duplicate-id",
                severity="error",
                message=f"Duplicate ID found: {item.id}",
                file=collection,
                id=item.id,
            )
        seen.add(item.id)


def _bilingual_fields(
    model: DatasetModel, prefix: str
) -> Iterator[tuple[str, BilingualText]]:
    """Yield (path, text) for every bilingual field, in declaration order."""
    for name, field in type(model).model_fields.items():
        value = getattr(model, name)
        key = field.alias or name
        if isinstance(value, BilingualText):
            yield f"{prefix}.{key}", value
        elif isinstance(value, DatasetModel):
            yield from _bilingual_fields(value, f"{prefix}.{key}")
        elif isinstance(value, list):
            for index, item in enumerate(value):
                if isinstance(item, DatasetModel):
                    yield from _bilingual_fields(item, f"{prefix}.{key}[{index}]")


def _translation_issues(
    text: BilingualText, path: str, entity_id: str
) -> Iterator[LintIssue]:
    if not text.en.strip():
        yield LintIssue(
            type="missing-translation",
            severity="error",
            message="Missing English translation",
            path=f"{path}.en",
            id=entity_id,
        )
    if not text.cs.strip():
        yield LintIssue(
            type="missing-translation",
            severity="warning",
            message="Missing Czech translation",
            path=f"{path}.cs",
            id=entity_id,
        )
