"""LLM-powered subject titles for selected clusters.

All selected clusters are labeled in **one** LLM request: each cluster
contributes a representative section (its seed chunk's text, truncated to
1200 characters) and the model answers with one title per line, in order.

Hebrew content gets a dedicated prompt that insists on Hebrew output;
models otherwise tend to answer Hebrew sections with English titles.

Labeling failures never block subject generation: a failed or timed-out
call yields numbered default titles ("Subject 1", ...) and a short reply
is padded with them.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING

import structlog

from src.utils.text_normalizer import contains_hebrew, detect_language

if TYPE_CHECKING:
    from src.interfaces.llm_provider import ILLMProvider
    from src.models.subject import Cluster

logger = structlog.get_logger(logger_name=__name__)

REPRESENTATIVE_CHARS = 1200
_SIGNIFICANT_CONTENT_CHARS = 100
_EMPTY_SECTION = "No content available"
_LABEL_TEMPERATURE = 0.3
_LABEL_MAX_TOKENS = 500
_DEFAULT_TIMEOUT_S = 60.0

_SYSTEM_PROMPT = (
    "You write short, accurate subject titles for sections of educational documents."
)

_HEBREW_PROMPT = """\
VERY IMPORTANT: Create ALL the subjects in HEBREW LANGUAGE ONLY.
This is absolutely critical - your response MUST be in HEBREW, not English.
The subject titles must be in Hebrew, with Hebrew characters, written right-to-left.
Make sure the subject names are grammatically correct in Hebrew and culturally appropriate.
DO NOT translate to English - generate native Hebrew subject names directly.
NEVER output English text in your response - ONLY Hebrew is acceptable.

For each of the following text sections, generate a concise subject title (2-5 words) that best describes the main topic or concept.
Focus on creating accurate academic subject titles that would be appropriate for educational content.
The titles should be short but descriptive, capturing the essence of each section.

Return only the Hebrew subject titles, one per line, in the same order as the input sections.
Do not include numbers, bullets, or any other formatting - just the Hebrew subject titles.

Text sections:
{sections}

Output only the Hebrew subject titles, one per line:"""

_DEFAULT_PROMPT = """\
Generate concise subject titles (2-5 words each) that best describe each of the following text sections.
Focus on the main topic or concept in each section. Keep titles short but descriptive.
Create academic subject titles that would be appropriate for educational content.

Return only the titles, one per line, in the same order as the input sections.
Do not include numbers, bullets, or any other formatting - just the titles.

Text sections:
{sections}

Subject Titles (one per line):"""

# Leading "1.", "2)", "3:-" numbering the model adds despite instructions.
_NUMBERING = re.compile(r"^[0-9]+[\.\):-]*\s*")


def default_title(index: int, language: str) -> str:
    """Return the 1-based placeholder title for *index* (0-based)."""
    if language == "he":
        return f"נושא {index + 1}"
    return f"Subject {index + 1}"


def representative_sections(clusters: list[Cluster]) -> list[str]:
    """Return each cluster's seed text, truncated for the prompt."""
    sections: list[str] = []
    for cluster in clusters:
        content = cluster.members[0].text if cluster.members else ""
        sections.append((content or _EMPTY_SECTION)[:REPRESENTATIVE_CHARS])
    return sections


def parse_titles(response: str) -> list[str]:
    """Split the model reply into titles, stripping numbering and quotes."""
    titles: list[str] = []
    for line in response.strip().split("\n"):
        line = line.strip()
        if not line:
            continue
        line = _NUMBERING.sub("", line)
        if line.startswith('"'):
            line = line[1:]
        if line.endswith('"'):
            line = line[:-1]
        titles.append(line)
    return titles


class SubjectLabeler:
    """Names clusters with a single batched LLM call.

    Parameters
    ----------
    llm:
        Completion provider.  ``None`` means every label is a default.
    timeout_s:
        Upper bound on the labeling call.
    """

    def __init__(self, llm: ILLMProvider | None, timeout_s: float = _DEFAULT_TIMEOUT_S) -> None:
        self._llm = llm
        self._timeout_s = timeout_s

    @staticmethod
    def detect_section_language(sections: list[str]) -> str:
        """Detect the language from the first section longer than 100 characters."""
        if not sections:
            return "unknown"
        significant = next(
            (s for s in sections if len(s) > _SIGNIFICANT_CONTENT_CHARS), sections[0]
        )
        return detect_language(significant)

    @staticmethod
    def build_prompt(sections: list[str], language: str) -> str:
        body = "\n".join(f"Section {i + 1}:\n{content}\n" for i, content in enumerate(sections))
        if language == "he" or (sections and contains_hebrew(sections[0])):
            return _HEBREW_PROMPT.format(sections=body)
        return _DEFAULT_PROMPT.format(sections=body)

    async def label(self, clusters: list[Cluster]) -> tuple[list[str], str, bool]:
        """Return ``(titles, language, used_defaults)`` for *clusters*.

        ``titles`` always has exactly one entry per cluster.
        ``used_defaults`` is ``True`` when any title is a placeholder.
        """
        if not clusters:
            return [], "unknown", False

        sections = representative_sections(clusters)
        language = self.detect_section_language(sections)
        count = len(sections)

        if self._llm is None:
            logger.info("subject_labeling_skipped_no_llm", clusters=count)
            return [default_title(i, language) for i in range(count)], language, True

        try:
            response = await asyncio.wait_for(
                self._llm.complete(
                    system_prompt=_SYSTEM_PROMPT,
                    user_prompt=self.build_prompt(sections, language),
                    temperature=_LABEL_TEMPERATURE,
                    max_tokens=_LABEL_MAX_TOKENS,
                ),
                timeout=self._timeout_s,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "subject_labeling_failed",
                provider=self._llm.get_provider_name(),
                clusters=count,
                error=str(exc) or type(exc).__name__,
                msg="Using default titles.",
            )
            return [default_title(i, language) for i in range(count)], language, True

        titles = parse_titles(response)
        padded = len(titles) < count
        if padded:
            logger.warning("subject_labels_short", expected=count, received=len(titles))
            titles.extend(default_title(i, language) for i in range(len(titles), count))

        logger.info(
            "subject_labeling_complete",
            provider=self._llm.get_provider_name(),
            language=language,
            titles=count,
        )
        return titles[:count], language, padded
