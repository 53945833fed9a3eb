"""DOCX post-processing: regex patching and run formatting."""

from .errors import (
    ArityMismatchError,
    CorruptArchiveError,
    DocumentIOError,
    DocumentNotFoundError,
    DocxEditError,
    InvalidDocumentError,
    PackError,
    PatternError,
)
from .formatting import patch_document_bold_red, wrap_bold_red
from .patcher import BODY_PART, apply_substitutions, patch_document
from .validation import validate_docx

__all__ = [
    "ArityMismatchError",
    "BODY_PART",
    "CorruptArchiveError",
    "DocumentIOError",
    "DocumentNotFoundError",
    "DocxEditError",
    "InvalidDocumentError",
    "PackError",
    "PatternError",
    "apply_substitutions",
    "patch_document",
    "patch_document_bold_red",
    "validate_docx",
    "wrap_bold_red",
]
