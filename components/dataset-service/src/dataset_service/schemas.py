"""Pydantic schemas for the pharmacology dataset collections."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
)
from pydantic.alias_generators import to_camel

COLLECTION_NAMES: tuple[str, ...] = (
    "courseBlocks",
    "drugs",
    "questions",
    "cases",
    "interactions",
    "doseTemplates",
)


def _require_number(value: object) -> object:
    # bool is an int subclass but never a valid dataset number
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Input should be a number")
    return value


def _require_text_or_number(value: object) -> object:
    if isinstance(value, str):
        return value
    return _require_number(value)


Number = Annotated[Union[int, float], BeforeValidator(_require_number)]
TextOrNumber = Annotated[
    Union[str, int, float], BeforeValidator(_require_text_or_number)
]


class DatasetModel(BaseModel):
    """Base model: camelCase JSON keys, unknown keys ignored."""

    model_config = ConfigDict(alias_generator=to_camel, extra="ignore")


class BilingualText(DatasetModel):
    """English/Czech text pair. English is the canonical source language."""

    en: StrictStr
    cs: StrictStr


class CourseBlock(DatasetModel):
    """Root grouping entity referenced by drugs, questions and cases."""

    id: StrictStr
    title: BilingualText
    description: BilingualText


class Drug(DatasetModel):
    """Drug monograph."""

    id: StrictStr
    name: BilingualText
    drug_class: BilingualText = Field(alias="class")
    indications: BilingualText
    mechanism: BilingualText
    adverse_effects: BilingualText
    contraindications: BilingualText
    monitoring: BilingualText
    interactions_summary: BilingualText
    typical_dose_text: BilingualText
    tags: list[StrictStr]
    course_block_id: StrictStr


class QuestionOption(DatasetModel):
    """Single answer option of a multiple-choice question."""

    id: StrictStr
    text: BilingualText
    correct: StrictBool


class Question(DatasetModel):
    """Multiple-choice question."""

    id: StrictStr
    stem: BilingualText
    options: list[QuestionOption]
    explanation: BilingualText
    tags: list[StrictStr]
    course_block_id: StrictStr


class Patient(DatasetModel):
    """Patient demographics for a clinical case."""

    age: Number | None = None
    sex: StrictStr | None = None
    weight_kg: Number | None = None


class CaseChoice(DatasetModel):
    """Management choice offered in a clinical case."""

    id: StrictStr
    option: BilingualText
    explanation: BilingualText


class RubricScoring(DatasetModel):
    """Point weights of a case rubric."""

    correct: Number
    safety: Number
    monitoring: Number


class Rubric(DatasetModel):
    """Scoring rubric of a clinical case."""

    correct_choice_id: StrictStr
    contraindications_missed: list[StrictStr]
    interactions_missed: list[StrictStr]
    monitoring_missing: list[StrictStr]
    scoring: RubricScoring


class Case(DatasetModel):
    """Clinical case study."""

    id: StrictStr
    stem: BilingualText
    patient: Patient
    vitals: dict[str, TextOrNumber]
    labs: dict[str, Number] | None = None
    choices: list[CaseChoice]
    rubric: Rubric
    course_block_id: StrictStr
    tags: list[StrictStr]


class AppliesWhen(DatasetModel):
    """Selectors deciding when an interaction rule fires."""

    drug_ids: list[StrictStr] | None = None
    classes: list[StrictStr] | None = None
    tags: list[StrictStr] | None = None

    def has_selector(self) -> bool:
        """Return True when at least one selector is non-empty."""
        return bool(self.drug_ids or self.classes or self.tags)


class InteractionRule(DatasetModel):
    """Drug interaction rule."""

    id: StrictStr
    applies_when: AppliesWhen
    severity: Literal["low", "moderate", "high"]
    mechanism: BilingualText
    recommendation: BilingualText
    rationale: BilingualText


class DoseInput(DatasetModel):
    """Input field of a dose calculation template."""

    name: StrictStr
    label: BilingualText
    type: Literal["number", "text"]


class DoseTemplate(DatasetModel):
    """Dose calculation template."""

    id: StrictStr
    title: BilingualText
    inputs: list[DoseInput]
    formula: BilingualText
    example: BilingualText
    tags: list[StrictStr]


class DatasetBundle(DatasetModel):
    """All six dataset collections: the unit of validation, export and override."""

    course_blocks: list[CourseBlock]
    drugs: list[Drug]
    questions: list[Question]
    cases: list[Case]
    interactions: list[InteractionRule]
    dose_templates: list[DoseTemplate]

    def collection(self, name: str) -> list[Any]:
        """Return a collection by its JSON name (e.g. ``doseTemplates``)."""
        if name not in COLLECTION_NAMES:
            raise KeyError(f"Unknown collection: {name}")
        return getattr(self, _COLLECTION_ATTRS[name])

    def counts(self) -> dict[str, int]:
        """Return the number of entries per collection."""
        return {name: len(self.collection(name)) for name in COLLECTION_NAMES}

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting absent optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_COLLECTION_ATTRS = {
    "courseBlocks": "course_blocks",
    "drugs": "drugs",
    "questions": "questions",
    "cases": "cases",
    "interactions": "interactions",
    "doseTemplates": "dose_templates",
}


@dataclass(frozen=True)
class FieldError:
    """Structural violation at a single field path.

    Args:
        path: Path segments from the bundle root (list indices as strings).
        message: Human-readable description of the violation.
    """

    path: tuple[str, ...]
    message: str


class SchemaValidationError(Exception):
    """Raised when raw data does not match the dataset schema.

    Carries every violated field path, not just the first one.
    """

    def __init__(self, errors: list[FieldError]) -> None:
        """Initialize with the collected field errors."""
        self.errors = errors
        super().__init__(f"Dataset failed schema validation ({len(errors)} error(s))")

    def tree(self) -> dict[str, Any]:
        """Return the errors as a tree keyed by path segment."""
        return build_error_tree(self.errors)


def field_errors(exc: ValidationError) -> list[FieldError]:
    """Convert a pydantic ValidationError into library-agnostic field errors."""
    return [
        FieldError(path=tuple(str(part) for part in error["loc"]), message=error["msg"])
        for error in exc.errors()
    ]


def build_error_tree(errors: list[FieldError]) -> dict[str, Any]:
    """Nest field errors by path segment.

    Every node holds its own messages under ``_errors`` and its child nodes
    under ``children``, keyed by the next path segment. Segments come from
    user data (e.g. vitals keys) and never share a mapping with ``_errors``.

    Examples:
        >>> tree = build_error_tree([FieldError(("drugs",), "Bad list")])
        >>> tree["children"]["drugs"]["_errors"]
        ['Bad list']
    """
    tree = _error_node()
    for error in errors:
        node = tree
        for segment in error.path:
            node = node["children"].setdefault(segment, _error_node())
        node["_errors"].append(error.message)
    return tree


def _error_node() -> dict[str, Any]:
    return {"_errors": [], "children": {}}


def parse_bundle(raw: object) -> DatasetBundle:
    """Validate raw data against the bundle schema.

    Args:
        raw: Decoded JSON value.

    Returns:
        The typed bundle.

    Raises:
        SchemaValidationError: If any field violates the schema.
    """
    try:
        return DatasetBundle.model_validate(raw)
    except ValidationError as exc:
        raise SchemaValidationError(field_errors(exc)) from exc
