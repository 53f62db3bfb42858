"""
Document Processing Package
═══════════════════════════

Runs after upload, inside the background task:

  Raw bytes → Text Extraction → Summary

Modules
───────
  pdf.py         PDF text backends (pypdf | PyMuPDF) and their factory
  extractor.py   Per-MIME-type bytes → text conversion
  summarizer.py  First-three-sentences summary

Every component is stateless and blocking; the worker pipeline decides where
it runs (thread executor) and how long it may take.
"""

from docextract.processing.extractor import TextExtractor
from docextract.processing.pdf import BasePdfBackend, PdfBackendFactory
from docextract.processing.summarizer import summarize

__all__ = [
    "TextExtractor",
    "BasePdfBackend",
    "PdfBackendFactory",
    "summarize",
]
