"""LLM-based classifier adapter for issue triage.

This module wraps a single call to an OpenAI-compatible chat model. Each
call sends two messages: a system message holding the variant instructions
and the serialized output schema, and a user message holding the
normalized subject content as a JSON payload. The answer must be a JSON
object matching the schema; booleans and the language fall back to their
documented defaults, everything else that does not match is a hard
ClassificationError.

Unlike silent defaulting, a malformed answer is never turned into a
"no action" classification: the caller has to surface it.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import ValidationError

from src.triage.classifier.models import (
    AnalysisResult,
    CommentAnalysis,
    EnhancedAnalysis,
    IssueAnalysis,
)
from src.triage.classifier.prompts import PromptVariant, build_system_prompt
from src.triage.classifier.schema import (
    AnalysisSchema,
    comment_schema,
    enhanced_schema,
    issue_schema,
    to_xml,
)


logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Raised when the classifier call or its answer is unusable.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the failure.
        raw_response: The model's raw answer, when one was received.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        raw_response: Optional[str] = None,
    ):
        self.message = message
        self.cause = cause
        self.raw_response = raw_response
        super().__init__(message)


@dataclass(frozen=True)
class ClassifierReply:
    """A validated classification together with the raw answer text."""

    analysis: AnalysisResult
    raw_response: str
    schema_name: str


# Models sometimes wrap the JSON answer in a markdown fence
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _parse_llm_response(response_text: str) -> Any:
    """Decode the answer as JSON, unwrapping a surrounding code fence.

    Raises:
        json.JSONDecodeError: If the answer is not valid JSON.
    """
    text = response_text.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    return json.loads(text)


def _extract_response_text(response: Any) -> str:
    """Pull the answer text out of a chat model response.

    Text content wins; when the model answered through a tool call instead,
    the first call's arguments are used as the JSON object.
    """
    content = getattr(response, "content", None)
    if isinstance(content, list):
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    if isinstance(content, str) and content.strip():
        return content.strip()

    tool_calls = getattr(response, "tool_calls", None) or []
    if tool_calls:
        return json.dumps(tool_calls[0].get("args", {}))

    return ""


def _format_user_content(content: Dict[str, Any]) -> str:
    return json.dumps(content, ensure_ascii=False, indent=2)


class IssueClassifier:
    """LLM-based classifier for triage decisions.

    Connects to an OpenAI-compatible endpoint using LangChain's ChatOpenAI
    client and issues exactly one model call per classify() call.

    Attributes:
        llm_url: URL of the OpenAI-compatible endpoint.
        model_name: Name of the model to use for inference.
        api_key: API key sent to the endpoint.
        timeout: Request timeout in seconds.
        temperature: Sampling temperature for the LLM.
        project_name: Project name used in schema hints.

    Example:
        >>> classifier = IssueClassifier(
        ...     llm_url="http://localhost:8000/v1",
        ...     model_name="NousResearch/Hermes-2-Pro-Mistral-7B",
        ... )
        >>> reply = await classifier.classify_issue(
        ...     title="Crash on build",
        ...     body="### Reproduction\\nhttps://stackblitz.com/...",
        ... )
        >>> reply.analysis.issue_type
        IssueType.BUG
    """

    def __init__(
        self,
        llm_url: str,
        model_name: str,
        api_key: str = "not-needed",
        timeout: float = 30.0,
        temperature: float = 0.1,
        project_name: str = "Nuxt",
    ):
        self.llm_url = llm_url
        self.model_name = model_name
        self.api_key = api_key
        self.timeout = timeout
        self.temperature = temperature
        self.project_name = project_name
        self._llm: Optional[ChatOpenAI] = None

    @property
    def llm(self) -> ChatOpenAI:
        """Get the LLM client, creating it if necessary."""
        if self._llm is None:
            self._llm = ChatOpenAI(
                base_url=self.llm_url,
                model=self.model_name,
                temperature=self.temperature,
                timeout=self.timeout,
                api_key=self.api_key,
            )
        return self._llm

    async def classify(
        self,
        variant: PromptVariant,
        schema: AnalysisSchema,
        content: Dict[str, Any],
    ) -> ClassifierReply:
        """Run one classification.

        Args:
            variant: Which system instructions to use.
            schema: Output schema shown to the model and used to validate
                the answer.
            content: Normalized subject content, sent as a JSON payload.

        Returns:
            ClassifierReply with the validated analysis and raw answer.

        Raises:
            ClassificationError: If the model call fails or its answer is not
                a JSON object matching the schema.
        """
        messages = [
            SystemMessage(content=build_system_prompt(variant, to_xml(schema.definition))),
            HumanMessage(content=_format_user_content(content)),
        ]

        logger.info(
            "Classifying content",
            extra={
                "variant": variant.value,
                "schema": schema.name,
                "content_keys": sorted(content),
            },
        )

        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            raise ClassificationError(f"LLM invocation failed: {e}", cause=e)

        answer = _extract_response_text(response)

        try:
            parsed = _parse_llm_response(answer)
        except json.JSONDecodeError as e:
            logger.error(
                "Could not parse classifier response",
                extra={"response_preview": answer[:200], "error": str(e)},
            )
            raise ClassificationError(
                f"Invalid JSON response: {e}", cause=e, raw_response=answer
            )

        if not isinstance(parsed, dict):
            raise ClassificationError(
                f"Expected a JSON object, got {type(parsed).__name__}",
                raw_response=answer,
            )

        try:
            analysis = schema.result_model.model_validate(parsed)
        except ValidationError as e:
            logger.error(
                "Classifier response does not match schema",
                extra={"schema": schema.name, "errors": e.error_count()},
            )
            raise ClassificationError(
                f"Response validation failed: {e}", cause=e, raw_response=answer
            )

        logger.info(
            "Content classified",
            extra={"schema": schema.name, "analysis": analysis.to_dict()},
        )
        return ClassifierReply(
            analysis=analysis, raw_response=answer, schema_name=schema.name
        )

    async def classify_issue(self, title: str, body: str) -> ClassifierReply:
        """Categorise a new issue from its title and normalized body."""
        return await self.classify(
            PromptVariant.NEW_ISSUE,
            issue_schema(self.project_name),
            {"title": title, "body": body},
        )

    async def screen_comment(self, body: str) -> ClassifierReply:
        """Check a comment or edited body for a reproduction or regression."""
        return await self.classify(
            PromptVariant.COMMENT,
            comment_schema(self.project_name),
            {"body": body},
        )

    async def reevaluate_closed_issue(
        self,
        variant: PromptVariant,
        title: str,
        comment: str,
        enhanced_content: str,
    ) -> ClassifierReply:
        """Re-evaluate a closed issue with the enriched context."""
        return await self.classify(
            variant,
            enhanced_schema(self.project_name),
            {"title": title, "newComment": comment, "context": enhanced_content},
        )

    async def health_check(self) -> bool:
        """Check if the LLM endpoint is accessible."""
        try:
            await self.llm.ainvoke([HumanMessage(content="Hello")])
            return True
        except Exception as e:
            logger.warning(
                "LLM health check failed",
                extra={"error": str(e)},
            )
            return False


def expect_issue_analysis(reply: ClassifierReply) -> IssueAnalysis:
    if not isinstance(reply.analysis, IssueAnalysis):
        raise ClassificationError(
            f"Expected issue analysis, got {reply.schema_name}",
            raw_response=reply.raw_response,
        )
    return reply.analysis


def expect_comment_analysis(reply: ClassifierReply) -> CommentAnalysis:
    if not isinstance(reply.analysis, CommentAnalysis):
        raise ClassificationError(
            f"Expected comment analysis, got {reply.schema_name}",
            raw_response=reply.raw_response,
        )
    return reply.analysis


def expect_enhanced_analysis(reply: ClassifierReply) -> EnhancedAnalysis:
    if not isinstance(reply.analysis, EnhancedAnalysis):
        raise ClassificationError(
            f"Expected enhanced analysis, got {reply.schema_name}",
            raw_response=reply.raw_response,
        )
    return reply.analysis
