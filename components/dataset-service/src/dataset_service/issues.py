"""Lint issue and validation result models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

IssueType = Literal[
    "schema",
    "duplicate-id",
    "missing-translation",
    "broken-ref",
    "empty-field",
    "tag-format",
]
Severity = Literal["error", "warning"]


class LintIssue(BaseModel):
    """Single structural or content-quality finding."""

    type: IssueType
    severity: Severity
    message: str
    file: str | None = Field(default=None, description="Collection or upload name")
    path: str | None = Field(default=None, description="Dotted field path")
    id: str | None = Field(default=None, description="Offending entity id")

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize, omitting absent optional keys."""
        return self.model_dump(exclude_none=True)


class ValidationResult(BaseModel):
    """Outcome of validating one bundle."""

    valid: bool
    errors: list[LintIssue] = Field(default_factory=list)
    warnings: list[LintIssue] = Field(default_factory=list)


class FileValidationResult(ValidationResult):
    """Validation outcome for a single uploaded file."""

    file: str


class LintSummary(BaseModel):
    """Issue counts by severity."""

    total: int
    errors: int
    warnings: int


def split_by_severity(
    issues: list[LintIssue],
) -> tuple[list[LintIssue], list[LintIssue]]:
    """Partition issues into (errors, warnings), preserving order."""
    errors = [issue for issue in issues if issue.severity == "error"]
    warnings = [issue for issue in issues if issue.severity == "warning"]
    return errors, warnings


def summarize(issues: list[LintIssue]) -> LintSummary:
    """Count issues by severity."""
    errors, warnings = split_by_severity(issues)
    return LintSummary(total=len(issues), errors=len(errors), warnings=len(warnings))
