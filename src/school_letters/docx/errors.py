"""Exceptions raised while patching a DOCX package."""


class DocxEditError(Exception):
    """Base class for every document patching failure."""


class DocumentNotFoundError(DocxEditError, FileNotFoundError):
    """The input document does not exist."""


class ArityMismatchError(DocxEditError, ValueError):
    """Patterns and replacements differ in length."""


class CorruptArchiveError(DocxEditError):
    """The input is not a readable ZIP archive."""


class InvalidDocumentError(DocxEditError):
    """The archive lacks word/document.xml."""


class PatternError(DocxEditError):
    """A find pattern or its replacement failed inside the regex engine."""

    def __init__(self, index: int, pattern: str, cause: Exception):
        self.index = index
        self.pattern = pattern
        super().__init__(
            f"Failed to perform text replacement for rule {index} "
            f"({pattern!r}). Check your regular expression pattern: {cause}"
        )


class PackError(DocxEditError):
    """Writing the output archive failed."""


class DocumentIOError(DocxEditError, OSError):
    """Reading or writing the document body failed."""
