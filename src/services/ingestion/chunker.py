"""Page-aware text chunking with overlapping windows.

Splits extracted document text into :class:`~src.models.document.Chunk`
objects sized for embedding models (~1800 characters with 300 characters
of overlap by default).

Two splitting modes are used, chosen per document:

1. **Sentence accumulation** -- for scripts that segment on whitespace and
   punctuation.  Sentences are packed into a buffer until the next one
   would overflow ``chunk_size``; the next buffer is then seeded with the
   tail of the previous one so a concept spanning the boundary is captured
   in at least one chunk.

2. **Fixed-size windows** -- for Hebrew, Arabic and Thai text, where the
   sentence splitter is unreliable.  Windows of ``chunk_size`` advance by
   ``chunk_size - overlap``.

Extractors emit ``==== Page N ====`` marker lines.  A bare ``Page N``
line counts as a marker only when no ``====`` marker is present, so page
footers stay content.  Marker lines are removed before chunking and every
chunk's ``start_char``/``end_char`` refer to the resulting *content stream*,
so ``chunk.text == content[start_char:end_char]`` always holds.  Chunks
never straddle a page.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from src.models.document import Chunk
from src.utils.text_normalizer import has_non_segmentable_script

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHUNK_SIZE = 1800
DEFAULT_CHUNK_OVERLAP = 300
DEFAULT_MAX_CHUNKS = 100

# A whole "==== Page 3 ====" line, including its newline.
_PAGE_MARKER = re.compile(
    r"^[ \t]*={2,}[ \t]*Page[ \t]+(\d+)[ \t]*={2,}[ \t]*(?:\n|$)",
    re.IGNORECASE | re.MULTILINE,
)

# A bare "Page 3" line; only a marker when the text has no "====" markers.
_BARE_PAGE_MARKER = re.compile(
    r"^[ \t]*Page[ \t]+(\d+)[ \t]*(?:\n|$)",
    re.IGNORECASE | re.MULTILINE,
)

# Common abbreviations that should NOT trigger a sentence split.
# "Dr. Smith" should remain one sentence, not split at the period.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "Ave",
        "Vol",
        "No",
        "Fig",
        "vs",
        "etc",
        "approx",
        "dept",
        "est",
        "inc",
        "ltd",
        "e.g",
        "i.e",
    }
)
_ABBREVIATION_PERIOD = re.compile(
    r"\b(?:" + "|".join(re.escape(a) for a in sorted(_ABBREVIATIONS, key=len, reverse=True)) + r")\.",
)
# Terminator run plus the whitespace that follows it (kept with the sentence).
_SENTENCE_END = re.compile(r"[.!?]+(?:\s+|$)")


@dataclass(frozen=True)
class _Page:
    """One page of the content stream: ``[start, end)`` plus its number."""

    number: int
    start: int
    end: int


class TextChunker:
    """Splits text into overlapping, page-aware chunks.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1800).
    overlap:
        Characters of overlap between consecutive chunks on the same page
        (default 300).  Must be smaller than ``chunk_size``.
    max_chunks:
        Default global cap on chunks per document (default 100).
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_CHUNK_OVERLAP,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {overlap}")
        if overlap >= chunk_size:
            raise ValueError(
                f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        if max_chunks <= 0:
            raise ValueError(f"max_chunks must be positive, got {max_chunks}")
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._max_chunks = max_chunks

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        text: str,
        document_id: str,
        workspace_id: str = "",
        max_chunks: int | None = None,
        fixed_windows: bool | None = None,
    ) -> list[Chunk]:
        """Split *text* into ordered :class:`Chunk` objects.

        Parameters
        ----------
        text:
            Extracted document text, optionally containing page markers.
        document_id:
            Owning document; also the prefix of every chunk id.
        workspace_id:
            Copied into every chunk.
        max_chunks:
            Overrides the instance cap for this call.
        fixed_windows:
            Force (``True``) or forbid (``False``) fixed-size windowing.
            ``None`` decides from the script of the first 1000 characters.

        Returns
        -------
        list[Chunk]
            At most ``max_chunks`` chunks.  Empty or whitespace-only input
            returns an empty list.
        """
        if not text or not text.strip():
            return []

        limit = max_chunks if max_chunks is not None else self._max_chunks
        if limit <= 0:
            raise ValueError(f"max_chunks must be positive, got {limit}")

        content, pages = self.split_pages(text)
        use_windows = (
            has_non_segmentable_script(content) if fixed_windows is None else fixed_windows
        )

        spans: list[tuple[int, int, int]] = []  # (start, end, page_number)
        for page in pages:
            if len(spans) >= limit:
                break
            page_text = content[page.start : page.end]
            if not page_text.strip():
                continue

            if len(page_text) <= self._chunk_size:
                local = [(0, len(page_text))]
            elif use_windows:
                local = self._window_spans(page_text)
            else:
                local = self._sentence_spans(page_text)

            for start, end in local:
                if not page_text[start:end].strip():
                    continue
                spans.append((page.start + start, page.start + end, page.number))
                if len(spans) >= limit:
                    break

        total = len(spans)
        chunks = [
            Chunk(
                id=f"{document_id}:{idx}",
                document_id=document_id,
                workspace_id=workspace_id,
                chunk_index=idx,
                text=content[start:end],
                start_char=start,
                end_char=end,
                page_number=page_number,
                total_chunks=total,
            )
            for idx, (start, end, page_number) in enumerate(spans)
        ]

        logger.debug(
            "chunking_complete",
            document_id=document_id,
            num_chunks=total,
            num_pages=len(pages),
            fixed_windows=use_windows,
            truncated=total >= limit,
        )
        return chunks

    @staticmethod
    def split_pages(text: str) -> tuple[str, list[_Page]]:
        """Remove page-marker lines and locate each page in the content stream.

        Text before the first marker belongs to page 1.  When the marker
        numbers are not strictly increasing positive integers, pages are
        renumbered 1, 2, 3, ... in order of appearance.

        Returns
        -------
        tuple[str, list[_Page]]
            The content stream and its pages, in order.
        """
        matches = list(_PAGE_MARKER.finditer(text)) or list(_BARE_PAGE_MARKER.finditer(text))
        if not matches:
            return text, [_Page(number=1, start=0, end=len(text))]

        parts: list[str] = []
        # (marker number or None for the preamble, start, end) in content offsets.
        segments: list[tuple[int | None, int, int]] = []
        offset = 0

        preamble = text[: matches[0].start()]
        parts.append(preamble)
        offset += len(preamble)
        if preamble:
            segments.append((None, 0, offset))
        cursor = matches[0].end()

        for i, match in enumerate(matches):
            seg_end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
            body = text[cursor:seg_end]
            parts.append(body)
            segments.append((int(match.group(1)), offset, offset + len(body)))
            offset += len(body)
            if i + 1 < len(matches):
                cursor = matches[i + 1].end()

        # The preamble joins the first page when that page is page 1, or
        # when the preamble is blank.
        if segments[0][0] is None and len(segments) > 1:
            first_number = segments[1][0]
            if first_number == 1 or not preamble.strip():
                segments = [(first_number, 0, segments[1][2])] + segments[2:]

        numbers = [1 if num is None else num for num, _, _ in segments]
        increasing = all(n > 0 for n in numbers) and all(
            b > a for a, b in zip(numbers, numbers[1:])
        )
        if not increasing:
            logger.debug("page_numbers_renumbered", markers=numbers[:20])
            numbers = list(range(1, len(segments) + 1))

        pages = [
            _Page(number=number, start=start, end=end)
            for number, (_, start, end) in zip(numbers, segments)
        ]
        return "".join(parts), pages

    def window_spans(self, length: int) -> list[tuple[int, int]]:
        """Return fixed-size ``[start, end)`` windows over *length* characters."""
        step = self._chunk_size - self._overlap
        spans: list[tuple[int, int]] = []
        start = 0
        while start < length:
            end = min(start + self._chunk_size, length)
            spans.append((start, end))
            if end >= length:
                break
            start += step
        return spans

    # ------------------------------------------------------------------
    # Splitting strategies
    # ------------------------------------------------------------------

    def _window_spans(self, page_text: str) -> list[tuple[int, int]]:
        return self.window_spans(len(page_text))

    def _sentence_spans(self, page_text: str) -> list[tuple[int, int]]:
        """Accumulate sentences into spans of at most ``chunk_size``."""
        pieces: list[tuple[int, int]] = []
        for start, end in self._split_sentences(page_text):
            # Pre-split sentences that could never fit.
            while end - start > self._chunk_size:
                pieces.append((start, start + self._chunk_size))
                start += self._chunk_size
            if end > start:
                pieces.append((start, end))

        spans: list[tuple[int, int]] = []
        buf_start: int | None = None
        buf_end = 0
        for start, end in pieces:
            if buf_start is None:
                buf_start, buf_end = start, end
                continue
            if end - buf_start > self._chunk_size:
                spans.append((buf_start, buf_end))
                tail = min(self._overlap, self._chunk_size - (end - start))
                # Seed with the previous tail; the new buffer still fits.
                buf_start = start - tail
            buf_end = end

        if buf_start is not None:
            spans.append((buf_start, buf_end))
        return spans

    @staticmethod
    def _split_sentences(text: str) -> list[tuple[int, int]]:
        """Return contiguous sentence spans covering *text*.

        Handles ``.``, ``!``, ``?`` followed by whitespace or end-of-string.
        Common abbreviations (Dr., Mr., etc.) do not trigger a split.  The
        terminator and the whitespace after it stay with the sentence.

        Periods after abbreviations are masked with ``\\x00`` (same length,
        so indices stay aligned with the original text).
        """
        masked = _ABBREVIATION_PERIOD.sub(lambda m: m.group(0)[:-1] + "\x00", text)

        spans: list[tuple[int, int]] = []
        last = 0
        for match in _SENTENCE_END.finditer(masked):
            end = match.end()
            if end > last:
                spans.append((last, end))
                last = end

        if last < len(text):
            spans.append((last, len(text)))
        return spans
