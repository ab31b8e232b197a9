"""Manuscript text extraction."""

from manugrader.documents.extract import (
    DocumentError,
    ExtractedDocument,
    UnsupportedDocumentError,
    extract_text,
)

__all__ = ["DocumentError", "ExtractedDocument", "UnsupportedDocumentError", "extract_text"]
