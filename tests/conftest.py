"""Shared fixtures: small DOCX packages built by hand or with python-docx."""

import zipfile
from pathlib import Path

import pytest
from docx import Document

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

CONTENT_TYPES_XML = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    "</Types>\n"
)

RELS_XML = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
    'Target="word/document.xml"/>'
    "</Relationships>\n"
)

# Binary payload that must survive untouched
MEDIA_BYTES = bytes(range(256)) * 4


def paragraph(text: str) -> str:
    return f'<w:p><w:r><w:t xml:space="preserve">{text}</w:t></w:r></w:p>'


def document_xml(*paragraphs: str) -> str:
    """A body part with one paragraph per line."""
    body = "\n".join(paragraph(t) for t in paragraphs)
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<w:document xmlns:w="{W_NS}">\n<w:body>\n{body}\n</w:body>\n</w:document>\n'
    )


def write_docx(path: Path, members: dict[str, str | bytes]) -> Path:
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


def make_docx(path: Path, *paragraphs: str, body: str | None = None) -> Path:
    """Build a minimal package: content types, rels, body and a media file."""
    return write_docx(
        path,
        {
            "[Content_Types].xml": CONTENT_TYPES_XML,
            "_rels/.rels": RELS_XML,
            "word/document.xml": body if body is not None else document_xml(*paragraphs),
            "word/media/image1.bin": MEDIA_BYTES,
        },
    )


def read_member(path: Path, name: str = "word/document.xml") -> bytes:
    with zipfile.ZipFile(path) as zf:
        return zf.read(name)


def read_body(path: Path) -> str:
    return read_member(path).decode("utf-8")


@pytest.fixture
def workspace_root(tmp_path):
    """Parent directory for extraction workspaces, so tests can check cleanup."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def sample_docx(tmp_path):
    return make_docx(
        tmp_path / "letter.docx",
        "42 cases occurred",
        "Next paragraph",
    )


@pytest.fixture
def word_docx(tmp_path):
    """A document written by python-docx."""
    doc = Document()
    doc.add_paragraph("Measles risk assessment")
    doc.add_paragraph(
        "With quarantine we expect 12 infections and 3 hospitalizations."
    )
    path = tmp_path / "word.docx"
    doc.save(path)
    return path
