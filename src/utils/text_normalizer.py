"""Script detection, language detection and text normalization.

Three small concerns shared by ingestion, subject labeling and retrieval:

1. **Script detection** -- scripts that are not reliably segmentable into
   whitespace/punctuation-delimited sentences (Hebrew, Arabic, Thai) make
   the chunker switch to fixed-size windowing.

2. **Language detection** -- a character-set heuristic: a document is
   Hebrew when Hebrew letters exceed 2% of its non-whitespace characters,
   otherwise English.  Short inputs are "unknown".

3. **Normalization** -- line-ending and whitespace cleanup applied to
   extracted text before chunking.  Page-marker lines and paragraph
   breaks survive; only runs of blanks and excessive empty lines are
   collapsed.
"""

import re

# Hebrew block plus Hebrew presentation forms.
_HEBREW_CHAR = re.compile("[\u0590-\u05FF\uFB1D-\uFB4F]")

# Hebrew, Arabic, Arabic Supplement, Thai.
_NON_SEGMENTABLE_CHAR = re.compile("[\u0590-\u05FF\u0600-\u06FF\u0750-\u077F\u0E00-\u0E7F]")

# Only the head of a document is sampled for script detection.
_SCRIPT_SAMPLE_CHARS = 1000

_HEBREW_RATIO_THRESHOLD = 0.02
_MIN_DETECTION_LENGTH = 10

_WHITESPACE = re.compile(r"\s")
_MULTI_BLANK = re.compile(r"[ \t\f\v]+")
_TRAILING_BLANK = re.compile(r"[ \t]+\n")
_MULTI_NEWLINE = re.compile(r"\n{3,}")


def has_non_segmentable_script(text: str) -> bool:
    """Return ``True`` when the head of *text* contains a non-segmentable script.

    Args:
        text: Document text (only the first 1000 characters are inspected).

    Returns:
        ``True`` if Hebrew, Arabic or Thai characters are present.
    """
    return bool(_NON_SEGMENTABLE_CHAR.search(text[:_SCRIPT_SAMPLE_CHARS]))


def detect_language(text: str) -> str:
    """Detect the document language from its character set.

    Args:
        text: Any text sample.

    Returns:
        ``"he"`` when Hebrew letters exceed 2% of non-whitespace characters,
        ``"unknown"`` for inputs shorter than 10 characters, else ``"en"``.
    """
    if not text or len(text) < _MIN_DETECTION_LENGTH:
        return "unknown"

    total = len(_WHITESPACE.sub("", text))
    if total == 0:
        return "unknown"

    hebrew = len(_HEBREW_CHAR.findall(text))
    if hebrew > 0 and hebrew / total > _HEBREW_RATIO_THRESHOLD:
        return "he"
    return "en"


def normalize_text(text: str) -> str:
    """Normalize line endings and whitespace in extracted text.

    Line structure is preserved so page-marker lines remain intact.

    Args:
        text: Raw extracted text.

    Returns:
        Cleaned text.
    """
    if not text:
        return ""

    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _MULTI_BLANK.sub(" ", cleaned)
    cleaned = _TRAILING_BLANK.sub("\n", cleaned)
    cleaned = _MULTI_NEWLINE.sub("\n\n", cleaned)
    return cleaned.strip()


def contains_hebrew(text: str) -> bool:
    """Return ``True`` if *text* contains at least one Hebrew character."""
    return bool(_HEBREW_CHAR.search(text or ""))
