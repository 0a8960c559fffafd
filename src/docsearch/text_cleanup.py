"""Text cleanup applied to documents before chunking.

Strips timestamps, URLs and navigation-menu debris from extracted text and
collapses runs of whitespace, newlines and punctuation.
"""

import re
from dataclasses import dataclass
from typing import Optional


TIMESTAMP_PATTERN = re.compile(
    r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b"
    r"|\b\d{4}[/-]\d{1,2}[/-]\d{1,2}\b"
    r"|\b\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AP]M)?\b",
    re.IGNORECASE,
)

URL_PATTERN = re.compile(r"https?://\S+|www\.\S+|ftp://\S+", re.IGNORECASE)

NAVIGATION_MENU_PATTERN = re.compile(
    r"\b(Home|Contact|About|Shop|Products|Services|Login|Sign\s*Up|Menu|Navigation|Skip\s*to\s*content)"
    r"\s*[|•·]\s*",
    re.IGNORECASE | re.MULTILINE,
)

REPEATED_WHITESPACE_PATTERN = re.compile(r"\s{3,}")
REPEATED_NEWLINES_PATTERN = re.compile(r"\n{3,}")
REPEATED_PUNCTUATION_PATTERN = re.compile(r"[.!?]{3,}")


@dataclass
class TextCleanupOptions:
    """Toggles for each cleanup step.

    Attributes:
        enabled: Whether the pipeline applies cleanup at all
        remove_timestamps: Remove date and time substrings
        remove_urls: Remove http(s)://, www. and ftp:// links
        remove_navigation_text: Remove menu words followed by a separator glyph
        collapse_whitespace: Collapse 3+ whitespace characters to one space
        collapse_newlines: Collapse 3+ newlines to two
        remove_repeated_punctuation: Collapse 3+ of .!? to a single period
    """

    enabled: bool = True
    remove_timestamps: bool = True
    remove_urls: bool = True
    remove_navigation_text: bool = True
    collapse_whitespace: bool = True
    collapse_newlines: bool = True
    remove_repeated_punctuation: bool = True


def clean_text(text: Optional[str], options: Optional[TextCleanupOptions] = None) -> Optional[str]:
    """Clean and normalize text.

    Blank or None input is returned unchanged. Steps run in a fixed order,
    each gated by its flag in ``options``; the result is trimmed and line
    endings are normalized to ``\\n``.

    Args:
        text: Text to clean
        options: Cleanup toggles (default: all steps enabled)

    Returns:
        Cleaned text
    """
    if options is None:
        options = TextCleanupOptions()

    if text is None or not text.strip():
        return text

    cleaned = text

    if options.remove_timestamps:
        cleaned = TIMESTAMP_PATTERN.sub("", cleaned)

    if options.remove_urls:
        cleaned = URL_PATTERN.sub("", cleaned)

    if options.remove_navigation_text:
        cleaned = NAVIGATION_MENU_PATTERN.sub("", cleaned)

    if options.collapse_whitespace:
        cleaned = REPEATED_WHITESPACE_PATTERN.sub(" ", cleaned)

    if options.collapse_newlines:
        cleaned = REPEATED_NEWLINES_PATTERN.sub("\n\n", cleaned)

    if options.remove_repeated_punctuation:
        cleaned = REPEATED_PUNCTUATION_PATTERN.sub(".", cleaned)

    cleaned = cleaned.strip()
    return cleaned.replace("\r\n", "\n").replace("\r", "\n")
