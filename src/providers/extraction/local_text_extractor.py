"""In-process text extractor for PDF and plain-text uploads.

PDFs are read page-by-page with PyMuPDF (fitz); every page is preceded by
a ``==== Page N ====`` marker line so the chunker can attribute chunks to
pages.  Text, Markdown and CSV uploads are decoded as UTF-8 and treated as
a single page.
"""

from __future__ import annotations

import asyncio
from pathlib import PurePath

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.interfaces.text_extractor import PAGE_MARKER_TEMPLATE, ITextExtractor
from src.utils.errors import TextExtractionError

logger = structlog.get_logger(logger_name=__name__)

_PDF_MIME_TYPES = frozenset({"application/pdf", "application/x-pdf"})
_TEXT_MIME_TYPES = frozenset({
    "text/plain",
    "text/markdown",
    "text/x-markdown",
    "text/csv",
})
_PDF_EXTENSIONS = frozenset({".pdf"})
_TEXT_EXTENSIONS = frozenset({".txt", ".md", ".markdown", ".csv"})


class LocalTextExtractor(ITextExtractor):
    """Extracts text from PDF and plain-text documents without external services."""

    # ------------------------------------------------------------------
    # ITextExtractor implementation
    # ------------------------------------------------------------------

    async def extract(
        self,
        content: bytes,
        mime_type: str,
        filename: str,
        language: str | None = None,
        add_page_markers: bool = True,
    ) -> str:
        if not content:
            raise TextExtractionError(
                message=f"Empty upload: {filename or 'unnamed file'}",
                provider_name=self.get_provider_name(),
            )

        kind = self._kind(mime_type, filename)
        if kind == "pdf":
            # PyMuPDF parsing is CPU-bound; keep the event loop free.
            text = await asyncio.to_thread(
                self._extract_pdf, content, filename, add_page_markers
            )
        elif kind == "text":
            text = self._decode_text(content, filename)
            if add_page_markers and text.strip():
                text = f"{PAGE_MARKER_TEMPLATE.format(number=1)}\n{text}"
        else:
            raise TextExtractionError(
                message=f"Unsupported document type: {mime_type or filename}",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "text_extracted",
            filename=filename,
            mime_type=mime_type,
            chars=len(text),
            language_hint=language,
        )
        return text

    def supports(self, mime_type: str, filename: str) -> bool:
        return self._kind(mime_type, filename) is not None

    def get_provider_name(self) -> str:
        return "pymupdf"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _kind(mime_type: str, filename: str) -> str | None:
        """Classify the upload as ``"pdf"``, ``"text"`` or ``None``.

        The MIME type wins; the file extension is consulted when the
        MIME type is missing or generic (``application/octet-stream``).
        """
        mime = (mime_type or "").split(";")[0].strip().lower()
        if mime in _PDF_MIME_TYPES:
            return "pdf"
        if mime in _TEXT_MIME_TYPES:
            return "text"
        suffix = PurePath(filename or "").suffix.lower()
        if suffix in _PDF_EXTENSIONS:
            return "pdf"
        if suffix in _TEXT_EXTENSIONS:
            return "text"
        return None

    def _extract_pdf(self, content: bytes, filename: str, add_page_markers: bool) -> str:
        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except Exception as exc:
            logger.error("pdf_open_failed", filename=filename, error=str(exc))
            raise TextExtractionError(
                message=f"Could not open PDF {filename}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        parts: list[str] = []
        has_text = False
        try:
            for page_num in range(len(doc)):
                page_text = doc[page_num].get_text("text").rstrip("\n")
                has_text = has_text or bool(page_text.strip())
                if add_page_markers:
                    parts.append(PAGE_MARKER_TEMPLATE.format(number=page_num + 1))
                parts.append(page_text)
            page_count = len(doc)
        finally:
            doc.close()

        if not has_text:
            logger.warning("pdf_no_text_extracted", filename=filename, pages=page_count)
        return "\n".join(parts)

    def _decode_text(self, content: bytes, filename: str) -> str:
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError:
            logger.warning("text_decode_fallback", filename=filename)
            return content.decode("utf-8", errors="replace")
