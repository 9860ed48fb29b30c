"""Text helpers shared by the classifier and scorer."""
import html
import re
from typing import Optional

from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")


def strip_markup(text: Optional[str]) -> str:
    """Return plain text with HTML tags and entities removed.

    Job descriptions arrive from ATS feeds as raw HTML, HTML-escaped HTML
    (Greenhouse) or plain text. All three collapse to single-spaced text.
    """
    if not text:
        return ""

    if "&lt;" in text:
        text = html.unescape(text)

    if "<" in text:
        soup = BeautifulSoup(text, "html.parser")
        text = soup.get_text(separator=" ")
    else:
        text = html.unescape(text)

    return _WHITESPACE.sub(" ", text).strip()


def keyword_pattern(keyword: str) -> re.Pattern:
    """Compile a case-insensitive whole-word pattern for a keyword.

    Word boundaries are only applied on ASCII word characters, so keywords
    written in scripts without spaces (e.g. 日本語) still match inside a
    sentence.
    """
    escaped = re.escape(keyword)
    prefix = r"\b" if keyword[:1].isascii() and keyword[:1].isalnum() else ""
    suffix = r"\b" if keyword[-1:].isascii() and keyword[-1:].isalnum() else ""
    return re.compile(rf"{prefix}{escaped}{suffix}", re.IGNORECASE)


def years_pattern(token: str) -> re.Pattern:
    """Compile a pattern for an experience range such as ``5+`` or ``2-5`` followed by "years"."""
    return re.compile(rf"(?<![\w+-]){re.escape(token)}\s*years?\b", re.IGNORECASE)
