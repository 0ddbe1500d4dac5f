"""Issue content normalization.

Strips noise from raw issue and comment text before it is shown to the
classifier: HTML comments left over from issue templates, the starter
reproduction link that every template ships with, and Latin
diacritical marks. When a known issue template is detected only the
relevant section is kept, and the result is bounded to MAX_CONTENT_LENGTH.
"""

import re
import unicodedata
from typing import Optional

FEATURE_REQUEST_TITLE = "### Describe the feature"

BUG_REPORT_REPRODUCTION_TITLE = "### Reproduction"
BUG_REPORT_LOGS_TITLE = "### Logs"

MAX_CONTENT_LENGTH = 5000

DEFAULT_LANGUAGE = "en"

_HTML_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_BOILERPLATE_LINK_RE = re.compile(r"https://stackblitz\.com/github/nuxt/starter")
_LANGUAGE_RE = re.compile(r"[a-z]{2}")
# Combining Diacritical Marks block only; marks of other scripts are content
_DIACRITIC_RE = re.compile(r"[\u0300-\u036f]")


def _strip_diacritics(text: str) -> str:
    stripped = _DIACRITIC_RE.sub("", unicodedata.normalize("NFD", text))
    return unicodedata.normalize("NFC", stripped)


def _clean(text: str) -> str:
    text = _HTML_COMMENT_RE.sub(" ", text)
    text = _BOILERPLATE_LINK_RE.sub("", text)
    return _strip_diacritics(text).strip()


def _extract_section(text: str) -> str:
    feature_start = text.find(FEATURE_REQUEST_TITLE)
    if feature_start != -1:
        return text[feature_start:]

    reproduction_start = text.find(BUG_REPORT_REPRODUCTION_TITLE)
    if reproduction_start != -1:
        logs_start = text.find(BUG_REPORT_LOGS_TITLE, reproduction_start)
        if logs_start != -1:
            return text[reproduction_start:logs_start]
        return text[reproduction_start:]

    return text


def normalize_content(text: Optional[str]) -> str:
    """Normalize issue or comment content for classification.

    Removes HTML comments and the starter boilerplate link, strips Latin
    diacritical marks (so "café" becomes "cafe", while kana voicing marks
    and Hebrew points survive), keeps only the relevant template section
    when a feature or bug template marker is present, and truncates to MAX_CONTENT_LENGTH characters.

    The transformation is idempotent: normalizing an already normalized
    string returns it unchanged.

    Args:
        text: Raw issue or comment body. None is treated as empty.

    Returns:
        The normalized text, possibly empty.
    """
    if not text:
        return ""

    # Cleaning can expose new markers (e.g. a comment wrapped around a
    # link), so iterate until the text is stable.
    cleaned = _clean(text)
    while True:
        again = _clean(cleaned)
        if again == cleaned:
            break
        cleaned = again

    section = _extract_section(cleaned).strip()
    return section[:MAX_CONTENT_LENGTH].strip()


def normalize_language(lang: Optional[str]) -> str:
    """Normalize an ISO 639-1 language code.

    Lowercases the code and removes any region suffix ("pt-BR" -> "pt").
    Anything that is not a two-letter code falls back to DEFAULT_LANGUAGE.

    Args:
        lang: Language code reported by the classifier.

    Returns:
        A two-letter lowercase language code.
    """
    if not lang or not isinstance(lang, str):
        return DEFAULT_LANGUAGE
    language = lang.strip().lower().split("-")[0].split("_")[0]
    if not _LANGUAGE_RE.fullmatch(language):
        return DEFAULT_LANGUAGE
    return language
