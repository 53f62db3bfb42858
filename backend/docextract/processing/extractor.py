"""
Text Extraction
═══════════════

Converts the raw bytes of an accepted upload into text, per MIME type:

  text/plain   UTF-8 decode, content left untouched
  application/pdf
               native text layer via the configured PDF backend, then
               horizontal whitespace runs → " ", newline runs → "\n", trim.
               An empty result after cleanup is a failure.
  DOCX         UTF-8 decode, then every character outside [a-zA-Z0-9\\s.]
               is dropped. Best effort only, not a real OOXML parser.

Anything else never reaches this module: the upload path rejects it first.
If it does, UnsupportedMediaTypeError is raised.

extract() is blocking; the pipeline runs it in a thread executor.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from docextract.core.config import Settings, settings as default_settings
from docextract.core.exceptions import PdfExtractionError, UnsupportedMediaTypeError
from docextract.processing.pdf import BasePdfBackend, PdfBackendFactory
from docextract.schemas.extractions import (
    MIME_DOCX,
    MIME_PDF,
    MIME_TEXT,
)

logger = logging.getLogger(__name__)

_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_NEWLINE_RUNS  = re.compile(r"\s*\n\s*")
_DOCX_STRIP    = re.compile(r"[^a-zA-Z0-9\s.]")


class TextExtractor:
    """
    Stateless bytes → text converter.

    Usage:
        extractor = TextExtractor()                     # backend from settings
        text = extractor.extract(data, "application/pdf")
    """

    def __init__(
        self,
        pdf_backend: Optional[BasePdfBackend] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._pdf = pdf_backend or PdfBackendFactory.create(settings or default_settings)

    def extract(self, data: bytes, mime_type: str) -> str:
        if mime_type == MIME_TEXT:
            return data.decode("utf-8", errors="replace")
        if mime_type == MIME_PDF:
            return self._extract_pdf(data)
        if mime_type == MIME_DOCX:
            return _DOCX_STRIP.sub("", data.decode("utf-8", errors="replace"))
        raise UnsupportedMediaTypeError()

    def _extract_pdf(self, data: bytes) -> str:
        try:
            raw = self._pdf.extract_text(data)
        except Exception as exc:
            logger.warning("PDF backend failed | backend=%s error=%s", self._pdf.name, exc)
            raise PdfExtractionError() from exc

        text = _HORIZONTAL_WS.sub(" ", raw)
        text = _NEWLINE_RUNS.sub("\n", text).strip()
        if not text:
            raise PdfExtractionError("PDF contains no extractable text")
        return text
