"""Tests for DOCX structural validation."""

from school_letters.docx import validate_docx

from conftest import CONTENT_TYPES_XML, make_docx, write_docx


def _checks(result):
    return [issue["check"] for issue in result["errors"]]


def test_valid_document(sample_docx):
    assert validate_docx(sample_docx) == {"valid": True, "errors": []}


def test_missing_file(tmp_path):
    result = validate_docx(tmp_path / "nope.docx")
    assert not result["valid"]
    assert _checks(result) == ["zip"]


def test_not_a_zip(tmp_path):
    path = tmp_path / "bad.docx"
    path.write_bytes(b"plain text")
    assert _checks(validate_docx(path)) == ["zip"]


def test_missing_body(tmp_path):
    path = write_docx(tmp_path / "x.docx", {"[Content_Types].xml": CONTENT_TYPES_XML})
    assert _checks(validate_docx(path)) == ["entries"]


def test_malformed_body(tmp_path):
    path = make_docx(tmp_path / "x.docx", body="<w:document><w:body>")
    assert _checks(validate_docx(path)) == ["xml"]


def test_wrong_root(tmp_path):
    path = make_docx(tmp_path / "x.docx", body="<document><body/></document>")
    assert _checks(validate_docx(path)) == ["structure"]
