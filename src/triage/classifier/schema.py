"""Output schemas shown to the classifier.

Each schema is a JSON-schema-like dictionary describing the object the
model must answer with: field names, types, enum values and a free-text
hint per field. The dictionaries are serialized with to_xml() and embedded
in the system prompt, and paired with the pydantic model that validates
the answer.
"""

from dataclasses import dataclass
from typing import Any, Dict, Type

from src.triage.classifier.models import (
    AnalysisResult,
    CommentAnalysis,
    Confidence,
    EnhancedAnalysis,
    IssueAnalysis,
    IssueType,
)


@dataclass(frozen=True)
class AnalysisSchema:
    """A schema definition paired with the model that validates answers.

    Attributes:
        name: Short identifier used in logs and diagnostics.
        definition: The schema dictionary shown to the model.
        result_model: The pydantic model the answer is validated against.
    """

    name: str
    definition: Dict[str, Any]
    result_model: Type[AnalysisResult]


def _regression_hint(project_name: str) -> str:
    return (
        "If the issue reported is a bug and the bug has reappeared on upgrade "
        f"to a new version of {project_name}, it is a possible regression."
    )


def issue_schema(project_name: str = "Nuxt") -> AnalysisSchema:
    """Schema for categorising a newly opened issue."""
    definition = {
        "title": "Issue Categorisation",
        "type": "object",
        "properties": {
            "issueType": {
                "type": "string",
                "enum": [t.value for t in IssueType],
            },
            "reproductionProvided": {"type": "boolean"},
            "spokenLanguage": {
                "type": "string",
                "comment": (
                    "The language of the title in ISO 639-1 format. Do not "
                    "include country codes, only language code."
                ),
            },
            "possibleRegression": {
                "type": "boolean",
                "comment": (
                    "If the issue is reported on upgrade to a new version of "
                    f"{project_name}, it is a possible regression."
                ),
            },
            "relatesToRuntimeSubsystem": {
                "type": "boolean",
                "comment": (
                    "If the issue is reported only in relation to a single "
                    "deployment provider, it is possibly a server runtime issue."
                ),
            },
        },
    }
    return AnalysisSchema("issue", definition, IssueAnalysis)


def comment_schema(project_name: str = "Nuxt") -> AnalysisSchema:
    """Narrow schema for screening a comment or edited body."""
    definition = {
        "title": "Issue Categorisation",
        "type": "object",
        "properties": {
            "reproductionProvided": {"type": "boolean"},
            "possibleRegression": {
                "type": "boolean",
                "comment": _regression_hint(project_name),
            },
        },
    }
    return AnalysisSchema("comment", definition, CommentAnalysis)


def enhanced_schema(project_name: str = "Nuxt") -> AnalysisSchema:
    """Schema for re-evaluating a closed issue."""
    definition = {
        "title": "Enhanced Issue Analysis",
        "type": "object",
        "properties": {
            "reproductionProvided": {"type": "boolean"},
            "possibleRegression": {
                "type": "boolean",
                "comment": _regression_hint(project_name),
            },
            "shouldReopen": {
                "type": "boolean",
                "comment": (
                    "Whether a closed issue should be reopened based on new "
                    "evidence or context."
                ),
            },
            "isDifferentFromDuplicate": {
                "type": "boolean",
                "comment": (
                    "For issues marked as duplicate, whether the evidence "
                    "suggests this is actually a different issue."
                ),
            },
            "confidence": {
                "type": "string",
                "enum": [c.value for c in Confidence],
                "comment": "Confidence level in the analysis based on available context.",
            },
        },
    }
    return AnalysisSchema("enhanced", definition, EnhancedAnalysis)


def to_xml(obj: Any, root_element: str = "schema") -> str:
    """Serialize a schema dictionary as nested XML-ish tags.

    Lists are rendered with their indices as tag names, matching how the
    prompt has always presented enums:

        >>> to_xml({"enum": ["a", "b"]})
        '<schema><enum><0>a</0><1>b</1></enum></schema>'
    """
    if isinstance(obj, list):
        obj = {str(index): value for index, value in enumerate(obj)}

    parts = [f"<{root_element}>"]
    for key, value in obj.items():
        if isinstance(value, (dict, list)):
            parts.append(to_xml(value, key))
        else:
            parts.append(f"<{key}>{value}</{key}>")
    parts.append(f"</{root_element}>")
    return "".join(parts)
