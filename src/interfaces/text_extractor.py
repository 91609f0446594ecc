"""Abstract base class for document-to-text extraction services.

When ``add_page_markers`` is requested, implementations must delimit pages
with a line of the exact form ``==== Page N ====`` (N starting at 1) so the
chunker can attribute chunks to pages.  Any other delimiter is treated by
the chunker as "no markers".
"""

from __future__ import annotations

from abc import ABC, abstractmethod

PAGE_MARKER_TEMPLATE = "==== Page {number} ===="


class ITextExtractor(ABC):
    """Contract for services that turn document bytes into plain text."""

    @abstractmethod
    async def extract(
        self,
        content: bytes,
        mime_type: str,
        filename: str,
        language: str | None = None,
        add_page_markers: bool = True,
    ) -> str:
        """Extract plain text from *content*.

        Parameters
        ----------
        content:
            Raw document bytes.
        mime_type:
            MIME type reported for the upload, e.g. ``"application/pdf"``.
        filename:
            Original file name; used when the MIME type is generic.
        language:
            Optional language hint for extractors that can use one.
        add_page_markers:
            Emit a ``==== Page N ====`` line before every page.

        Returns
        -------
        str
            The extracted text.

        Raises
        ------
        src.utils.errors.TextExtractionError
            If the format is unsupported or the content is unreadable.
        """

    @abstractmethod
    def supports(self, mime_type: str, filename: str) -> bool:
        """Return ``True`` if this extractor can handle the given upload."""
