"""Context gathering for issue triage.

Enriches a bare webhook event with recent comments and status history,
and exposes the derived predicates used by the decision engine.
"""

from src.triage.context.gatherer import ContextGatherer
from src.triage.context.models import (
    DUPLICATE_LABEL,
    EnhancedContext,
    GatherOptions,
    build_enhanced_prompt_content,
    has_been_reopened_multiple_times,
    reopen_count,
    was_closed_as_completed,
    was_closed_as_duplicate,
    was_closed_as_not_planned,
)

__all__ = [
    "ContextGatherer",
    "DUPLICATE_LABEL",
    "EnhancedContext",
    "GatherOptions",
    "build_enhanced_prompt_content",
    "has_been_reopened_multiple_times",
    "reopen_count",
    "was_closed_as_completed",
    "was_closed_as_duplicate",
    "was_closed_as_not_planned",
]
