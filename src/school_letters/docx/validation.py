"""Structural checks for a patched DOCX.

The patcher itself never validates its output; the report pipeline and the
``patch --check`` command run these checks afterwards and report problems.
"""

import zipfile
from xml.etree import ElementTree as ET

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

REQUIRED_ENTRIES = ("[Content_Types].xml", "word/document.xml")


def _err(check, msg):
    return {"check": check, "level": "error", "message": msg}


def _read_zip_entry(zf, name):
    """Read a ZIP entry as UTF-8 string, falling back to latin-1."""
    raw = zf.read(name)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def check_archive(zf):
    bad = zf.testzip()
    if bad is not None:
        return [_err("zip", f"Corrupt ZIP entry: {bad}")]
    return []


def check_entries(zf):
    names = set(zf.namelist())
    return [
        _err("entries", f"Missing required entry: {req}")
        for req in REQUIRED_ENTRIES
        if req not in names
    ]


def check_xml(zf):
    """Parse every .xml/.rels entry to ensure well-formedness."""
    issues = []
    for name in zf.namelist():
        if not name.endswith((".xml", ".rels")):
            continue
        try:
            ET.fromstring(_read_zip_entry(zf, name))
        except ET.ParseError as e:
            issues.append(_err("xml", f"{name}: {e}"))
    return issues


def check_structure(zf):
    """Verify document.xml has a w:document root with a w:body child."""
    if "word/document.xml" not in zf.namelist():
        return []
    try:
        root = ET.fromstring(_read_zip_entry(zf, "word/document.xml"))
    except ET.ParseError:
        return []  # Already reported by check_xml

    issues = []
    if root.tag != f"{{{W_NS}}}document":
        issues.append(_err("structure", f"Root element is '{root.tag}', expected w:document"))
    elif root.find(f"{{{W_NS}}}body") is None:
        issues.append(_err("structure", "w:body element not found"))
    return issues


def validate_docx(docx_path):
    """Run all checks and return ``{"valid": bool, "errors": [...]}``."""
    try:
        with zipfile.ZipFile(docx_path, "r") as zf:
            errors = check_archive(zf)
            if not errors:
                for check_fn in (check_entries, check_xml, check_structure):
                    errors.extend(check_fn(zf))
    except zipfile.BadZipFile as e:
        errors = [_err("zip", f"Invalid ZIP: {e}")]
    except FileNotFoundError:
        errors = [_err("zip", f"File not found: {docx_path}")]

    return {"valid": not errors, "errors": errors}
