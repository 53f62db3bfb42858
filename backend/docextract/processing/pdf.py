"""
PDF text backends.

Two interchangeable adapters read the native text layer of a PDF supplied as
raw bytes:

  pypdf     pure Python, always installed (default)
  pymupdf   PyMuPDF (fitz), faster on large documents; optional extra

Both return the page texts joined with newlines and raise on unreadable
input. Whitespace cleanup and the empty-result check belong to the caller
(TextExtractor), so every backend is held to the same rules.
"""

from __future__ import annotations

import io
import logging
import time
from abc import ABC, abstractmethod

from pypdf import PdfReader

from docextract.core.config import Settings

logger = logging.getLogger(__name__)


class BasePdfBackend(ABC):
    """Blocking, stateless bytes -> text adapter. Safe for concurrent use."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name for logging."""

    @abstractmethod
    def extract_text(self, pdf_bytes: bytes) -> str:
        """Return the concatenated text of every page."""


class PyPdfBackend(BasePdfBackend):

    @property
    def name(self) -> str:
        return "pypdf"

    def extract_text(self, pdf_bytes: bytes) -> str:
        t0 = time.monotonic()
        reader = PdfReader(io.BytesIO(pdf_bytes))
        pages = [page.extract_text() or "" for page in reader.pages]
        logger.debug(
            "pypdf | pages=%d elapsed_ms=%.0f",
            len(pages), (time.monotonic() - t0) * 1000,
        )
        return "\n".join(pages)


class PyMuPdfBackend(BasePdfBackend):

    @property
    def name(self) -> str:
        return "pymupdf"

    def extract_text(self, pdf_bytes: bytes) -> str:
        import fitz  # PyMuPDF; optional dependency, imported on first use

        t0 = time.monotonic()
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            pages = [page.get_text("text") or "" for page in doc]
        logger.debug(
            "PyMuPDF | pages=%d elapsed_ms=%.0f",
            len(pages), (time.monotonic() - t0) * 1000,
        )
        return "\n".join(pages)


class PdfBackendFactory:
    """Creates the PDF backend selected by settings.pdf_backend."""

    BACKENDS: dict[str, type[BasePdfBackend]] = {
        "pypdf":   PyPdfBackend,
        "pymupdf": PyMuPdfBackend,
    }

    @classmethod
    def create(cls, settings: Settings) -> BasePdfBackend:
        backend = settings.pdf_backend.lower()
        backend_cls = cls.BACKENDS.get(backend)
        if backend_cls is None:
            raise ValueError(
                f"Unknown PDF backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
            )
        return backend_cls()
