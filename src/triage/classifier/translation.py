"""Title translation for non-English issues.

Translation is a soft step of triage: callers catch TranslationError, log
it, and carry on without touching the title.
"""

import logging
from typing import Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI


logger = logging.getLogger(__name__)


TRANSLATION_SYSTEM_PROMPT = (
    "You are a translator. Translate the user's text from the language with "
    "ISO 639-1 code '{source}' to the language with ISO 639-1 code '{target}'. "
    "Reply with the translated text only, without quotes or explanations."
)


class TranslationError(Exception):
    """Raised when a translation cannot be produced.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class TitleTranslator:
    """Translates short texts with an OpenAI-compatible chat model."""

    def __init__(
        self,
        llm_url: str,
        model_name: str,
        api_key: str = "not-needed",
        timeout: float = 30.0,
    ):
        self.llm_url = llm_url
        self.model_name = model_name
        self.api_key = api_key
        self.timeout = timeout
        self._llm: Optional[ChatOpenAI] = None

    @property
    def llm(self) -> ChatOpenAI:
        if self._llm is None:
            self._llm = ChatOpenAI(
                base_url=self.llm_url,
                model=self.model_name,
                temperature=0.0,
                timeout=self.timeout,
                api_key=self.api_key,
            )
        return self._llm

    async def translate(self, text: str, source_lang: str, target_lang: str = "en") -> str:
        """Translate text between two ISO 639-1 languages.

        Args:
            text: The text to translate.
            source_lang: Language code of the text.
            target_lang: Language code to translate into.

        Returns:
            The translated text, stripped. May be empty if the model
            returned nothing useful.

        Raises:
            TranslationError: If the model call fails or returns no text.
        """
        messages = [
            SystemMessage(
                content=TRANSLATION_SYSTEM_PROMPT.format(
                    source=source_lang, target=target_lang
                )
            ),
            HumanMessage(content=text),
        ]

        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            raise TranslationError(f"Translation request failed: {e}", cause=e)

        content = response.content
        if not isinstance(content, str):
            raise TranslationError(
                f"Unexpected translation response type: {type(content)}"
            )

        translated = content.strip().strip('"').strip()
        logger.debug(
            "Translated text",
            extra={
                "source_lang": source_lang,
                "target_lang": target_lang,
                "translated_length": len(translated),
            },
        )
        return translated
