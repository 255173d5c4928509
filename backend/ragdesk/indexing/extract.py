"""Text extraction for source documents."""

from __future__ import annotations

import logging
import unicodedata
from pathlib import Path

from ..core.errors import ExtractionFailure

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md"}
BINARY_SUFFIXES = {".pdf"}


class TextExtractor:
    """Abstract base class for text extraction.

    ``extract`` returns the document text or raises ExtractionFailure.
    """

    def extract(self, path: Path) -> str:
        raise NotImplementedError


class DefaultTextExtractor(TextExtractor):
    """Reads .txt/.md as UTF-8 and .pdf through pdfplumber."""

    def extract(self, path: Path) -> str:
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix not in TEXT_SUFFIXES and suffix not in BINARY_SUFFIXES:
            raise ExtractionFailure(f"Unsupported file extension: {suffix}", filename=path.name)
        try:
            if suffix == ".pdf":
                return self._extract_pdf(path)
            text = path.read_text(encoding="utf-8", errors="replace")
            logger.debug(f"Text loaded from {path.name}: {len(text)} characters")
            return text
        except ExtractionFailure:
            raise
        except Exception as e:
            raise ExtractionFailure(str(e), filename=path.name) from e

    def _extract_pdf(self, path: Path) -> str:
        import pdfplumber

        pages = []
        with pdfplumber.open(path) as pdf:
            for page in pdf.pages:
                text = page.extract_text() or ""
                text = unicodedata.normalize("NFKC", text).strip()
                if text:
                    pages.append(text)
            page_count = len(pdf.pages)
        content = "\n\n".join(pages)
        logger.debug(f"PDF parsed: {path.name}, {page_count} pages, {len(content)} characters")
        return content
