"""System prompt instructions for each classification path."""

from enum import Enum


class PromptVariant(str, Enum):
    """Which instructions the classifier receives.

    The re-evaluation variants are chosen from how a closed issue was
    closed; see decision.engine.select_reevaluation_variant.
    """

    NEW_ISSUE = "new_issue"
    COMMENT = "comment"
    REEVALUATE_NOT_PLANNED = "reevaluate_not_planned"
    REEVALUATE_NOT_PLANNED_CONSERVATIVE = "reevaluate_not_planned_conservative"
    REEVALUATE_DUPLICATE = "reevaluate_duplicate"
    REEVALUATE_COMPLETED = "reevaluate_completed"
    REEVALUATE_CLOSED = "reevaluate_closed"


_MAINTAINER = "You are a kind, helpful open-source maintainer that answers in JSON."

PROMPTS = {
    PromptVariant.NEW_ISSUE: _MAINTAINER,
    PromptVariant.COMMENT: (
        f"{_MAINTAINER} You are reviewing a new comment on an issue. Decide "
        "whether it provides a reproduction (a link to a minimal project, a "
        "repository, or complete steps) and whether it reports a regression."
    ),
    PromptVariant.REEVALUATE_NOT_PLANNED: (
        f"{_MAINTAINER} This issue was closed as not planned. Re-evaluate it "
        "with the new comment and recent discussion. Recommend reopening if "
        "the new information shows the issue is valid and actionable."
    ),
    PromptVariant.REEVALUATE_NOT_PLANNED_CONSERVATIVE: (
        f"{_MAINTAINER} This issue was closed as not planned and has already "
        "been reopened several times. Be conservative: only recommend "
        "reopening when the new information is substantial and clearly "
        "changes the assessment, and use high confidence only in that case."
    ),
    PromptVariant.REEVALUATE_DUPLICATE: (
        f"{_MAINTAINER} This issue was closed as a duplicate. Only set "
        "isDifferentFromDuplicate to true when the new information clearly "
        "shows a different problem from the one it duplicates; similar "
        "symptoms are not enough."
    ),
    PromptVariant.REEVALUATE_COMPLETED: (
        f"{_MAINTAINER} This issue was closed as completed. Only recommend "
        "reopening when the comment shows the problem has come back after "
        "the fix, for example after upgrading to a newer version."
    ),
    PromptVariant.REEVALUATE_CLOSED: (
        f"{_MAINTAINER} This issue is closed. Re-evaluate it with the new "
        "comment and recent discussion and recommend reopening only when "
        "there is new evidence that the problem still exists."
    ),
}


def build_system_prompt(variant: PromptVariant, schema_xml: str) -> str:
    """Combine variant instructions with the serialized output schema."""
    return (
        f"{PROMPTS[variant]} Here's the json schema you must adhere to:\n"
        f"<schema>\n{schema_xml}\n</schema>\n"
    )
