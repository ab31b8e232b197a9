"""Manuscript text extraction for PDF, DOCX and plain text files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import pdfplumber
from docx import Document

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".pdf", ".docx", ".txt")

# Formats converted from a rich-text container rather than a native layout
DERIVED_SUFFIXES = frozenset({".docx"})


class DocumentError(Exception):
    """A manuscript file could not be read."""


class UnsupportedDocumentError(DocumentError):
    """The file type is not one we can extract text from."""


@dataclass
class ExtractedDocument:
    """Plain text of a manuscript plus where it came from."""

    text: str
    derived_format: bool
    source: Path

    @property
    def char_count(self) -> int:
        return len(self.text)


def extract_text(path: Path) -> ExtractedDocument:
    """Extract stripped plain text from ``path``.

    Raises:
        UnsupportedDocumentError: for file types other than .pdf/.docx/.txt
        DocumentError: if the file cannot be read
    """
    suffix = path.suffix.lower()

    if suffix == ".pdf":
        text = _extract_pdf(path)
    elif suffix == ".docx":
        text = _extract_docx(path)
    elif suffix == ".txt":
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentError(f"failed to read text file {path}: {e}") from e
    else:
        raise UnsupportedDocumentError(
            f"Unsupported file type: {suffix or path.name} "
            f"(expected one of {', '.join(SUPPORTED_SUFFIXES)})"
        )

    text = text.strip()
    logger.info("Extracted %d characters from %s", len(text), path.name)
    return ExtractedDocument(text=text, derived_format=suffix in DERIVED_SUFFIXES, source=path)


def _extract_pdf(path: Path) -> str:
    try:
        with pdfplumber.open(path) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        raise DocumentError(f"failed to extract PDF text from {path}: {e}") from e
    return "\n".join(pages)


def _extract_docx(path: Path) -> str:
    try:
        doc = Document(str(path))
    except Exception as e:
        raise DocumentError(f"failed to open DOCX file {path}: {e}") from e
    lines = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            cells: list[str] = []
            for cell in row.cells:
                # merged cells repeat the same text
                if not cells or cell.text != cells[-1]:
                    cells.append(cell.text)
            lines.append("\t".join(cells))
    return "\n".join(lines)
