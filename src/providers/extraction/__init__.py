"""Text extraction providers.

LocalTextExtractor turns PDF (PyMuPDF) and plain-text uploads into text with
``==== Page N ====`` markers for the chunker.
"""

from src.providers.extraction.local_text_extractor import LocalTextExtractor

__all__ = ["LocalTextExtractor"]
