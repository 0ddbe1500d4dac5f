"""LLM-based classification for issue triage.

This module classifies issue content with an OpenAI-compatible model:
- New issues: type, reproduction, language, regression, runtime subsystem
- Comments and edits: reproduction and regression screening
- Closed issues: re-evaluation with reopen recommendation and confidence

It also provides the schema serialization used in prompts and a title
translator for non-English issues.
"""

from src.triage.classifier.agent import (
    ClassificationError,
    ClassifierReply,
    IssueClassifier,
)
from src.triage.classifier.models import (
    AnalysisResult,
    CommentAnalysis,
    Confidence,
    EnhancedAnalysis,
    IssueAnalysis,
    IssueType,
    TRACKED_ISSUE_TYPES,
)
from src.triage.classifier.prompts import PromptVariant
from src.triage.classifier.schema import (
    AnalysisSchema,
    comment_schema,
    enhanced_schema,
    issue_schema,
    to_xml,
)
from src.triage.classifier.translation import TitleTranslator, TranslationError

__all__ = [
    "AnalysisResult",
    "AnalysisSchema",
    "ClassificationError",
    "ClassifierReply",
    "CommentAnalysis",
    "Confidence",
    "EnhancedAnalysis",
    "IssueAnalysis",
    "IssueClassifier",
    "IssueType",
    "PromptVariant",
    "TRACKED_ISSUE_TYPES",
    "TitleTranslator",
    "TranslationError",
    "comment_schema",
    "enhanced_schema",
    "issue_schema",
    "to_xml",
]
