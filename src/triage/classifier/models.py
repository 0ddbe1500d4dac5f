"""Classification result models for issue triage.

This module defines the validated shapes of classifier output:

- IssueAnalysis: full categorisation of a newly opened issue
- CommentAnalysis: narrow screening of a comment or edited body
- EnhancedAnalysis: re-evaluation of a closed issue with enriched context

Field names follow the camelCase keys the model is asked to produce; the
Python attributes are snake_case and populated through aliases. Boolean
fields that are absent or null default to False, the spoken language
defaults to "en", and confidence defaults to low. Anything else that does
not match the schema raises a pydantic ValidationError, which the
classifier turns into a hard ClassificationError.
"""

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.triage.normalization import DEFAULT_LANGUAGE, normalize_language


class IssueType(str, Enum):
    """Classification of GitHub issue types.

    Attributes:
        BUG: A report of incorrect or unexpected behavior.
        FEATURE: A request for new functionality.
        DOCUMENTATION: A documentation change or addition.
        CHORE: Maintenance work with no user-facing change.
        HELP_WANTED: A usage question or support request.
        SPAM: Unsolicited or abusive content.
    """

    BUG = "bug"
    FEATURE = "feature"
    DOCUMENTATION = "documentation"
    CHORE = "chore"
    HELP_WANTED = "help-wanted"
    SPAM = "spam"


# Types that are mirrored to the tracker's issue-type field
TRACKED_ISSUE_TYPES = frozenset(
    {IssueType.BUG, IssueType.FEATURE, IssueType.DOCUMENTATION}
)


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _none_to_false(v: Any) -> Any:
    return False if v is None else v


class _Analysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    def to_dict(self) -> dict:
        """Serialize with the classifier's camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class CommentAnalysis(_Analysis):
    """Result of screening a comment or an edited issue body.

    Attributes:
        reproduction_provided: The text contains a reproduction.
        possible_regression: The bug reappeared after an upgrade.
    """

    reproduction_provided: bool = Field(default=False, alias="reproductionProvided")
    possible_regression: bool = Field(default=False, alias="possibleRegression")

    @field_validator("reproduction_provided", "possible_regression", mode="before")
    @classmethod
    def default_missing_booleans(cls, v: Any) -> Any:
        return _none_to_false(v)


class EnhancedAnalysis(CommentAnalysis):
    """Result of re-evaluating a closed issue after a new comment.

    Attributes:
        should_reopen: New evidence justifies reopening the issue.
        is_different_from_duplicate: For duplicates, the evidence shows a
            genuinely different problem.
        confidence: The classifier's confidence in this assessment.
    """

    should_reopen: bool = Field(default=False, alias="shouldReopen")
    is_different_from_duplicate: bool = Field(
        default=False, alias="isDifferentFromDuplicate"
    )
    confidence: Confidence = Confidence.LOW

    @field_validator("should_reopen", "is_different_from_duplicate", mode="before")
    @classmethod
    def default_enhanced_booleans(cls, v: Any) -> Any:
        return _none_to_false(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, v: Any) -> Any:
        if v is None:
            return Confidence.LOW
        if isinstance(v, str):
            return v.strip().lower()
        return v


class IssueAnalysis(_Analysis):
    """Categorisation of a newly opened issue.

    Attributes:
        issue_type: The classified issue type. Required.
        reproduction_provided: The issue links or contains a reproduction.
        spoken_language: ISO 639-1 code of the title's language.
        possible_regression: Reported after upgrading to a new version.
        relates_to_runtime_subsystem: Reported only for a single deployment
            provider, so it likely belongs to the server runtime.
    """

    issue_type: IssueType = Field(..., alias="issueType")
    reproduction_provided: bool = Field(default=False, alias="reproductionProvided")
    spoken_language: str = Field(default=DEFAULT_LANGUAGE, alias="spokenLanguage")
    possible_regression: bool = Field(default=False, alias="possibleRegression")
    relates_to_runtime_subsystem: bool = Field(
        default=False, alias="relatesToRuntimeSubsystem"
    )

    @field_validator("issue_type", mode="before")
    @classmethod
    def normalize_issue_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator(
        "reproduction_provided",
        "possible_regression",
        "relates_to_runtime_subsystem",
        mode="before",
    )
    @classmethod
    def default_missing_booleans(cls, v: Any) -> Any:
        return _none_to_false(v)

    @field_validator("spoken_language", mode="before")
    @classmethod
    def normalize_spoken_language(cls, v: Any) -> str:
        return normalize_language(v)

    @property
    def is_english(self) -> bool:
        return self.spoken_language == DEFAULT_LANGUAGE


AnalysisResult = Union[IssueAnalysis, CommentAnalysis, EnhancedAnalysis]
