"""Regex find/replace over the body XML of a DOCX package.

The package is unpacked into a private temporary directory, the text of
``word/document.xml`` is rewritten with ordered ``re.sub`` passes, and every
file under the directory is zipped back up. The body is handled as a flat
string rather than a parsed tree so replacements can carry unbalanced
run markup (see :mod:`school_letters.docx.formatting`).
"""

from __future__ import annotations

import logging
import os
import re
import stat
import tempfile
import zipfile
import zlib
from pathlib import Path
from typing import Sequence

from .errors import (
    ArityMismatchError,
    CorruptArchiveError,
    DocumentIOError,
    DocumentNotFoundError,
    InvalidDocumentError,
    PackError,
    PatternError,
)

logger = logging.getLogger(__name__)

BODY_PART = "word/document.xml"
DOCX_SUFFIX = ".docx"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")

# os.umask can only be read by setting it; do it once at import
_UMASK = os.umask(0)
os.umask(_UMASK)


# ---------------------------------------------------------------------------
# Body text
# ---------------------------------------------------------------------------

def read_body_lines(body_path: Path) -> tuple[list[str], bool]:
    """Read the body part as lines.

    Returns:
        (lines, had_trailing_newline). Line endings are normalised to ``\\n``.
    """
    try:
        # newline="" so "\r\n" reaches the splitter untranslated
        with open(body_path, "r", encoding="utf-8", newline="") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentIOError(f"Failed to read {BODY_PART}: {e}") from e

    trailing_newline = text.endswith(("\n", "\r"))
    lines = _LINE_BREAK.split(text)
    if trailing_newline:
        lines.pop()
    return lines, trailing_newline


def write_body_lines(body_path: Path, lines: list[str], trailing_newline: bool) -> None:
    text = "\n".join(lines)
    if trailing_newline:
        text += "\n"
    try:
        # newline="" keeps "\n" as-is on every platform
        with open(body_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
    except OSError as e:
        raise DocumentIOError(f"Failed to write {BODY_PART}: {e}") from e


def _check_arity(find_patterns: Sequence[str], replacements: Sequence[str]) -> None:
    if len(find_patterns) != len(replacements):
        raise ArityMismatchError(
            f"find_patterns and replacements must have the same length "
            f"({len(find_patterns)} != {len(replacements)})"
        )


def apply_substitutions(
    text: str,
    find_patterns: Sequence[str],
    replacements: Sequence[str],
) -> str:
    """Apply each (pattern, replacement) pair in order over the whole text.

    Rule ``i`` sees the output of rule ``i - 1``. Patterns that match nothing
    leave the text unchanged.

    Raises:
        ArityMismatchError: If the two sequences differ in length.
        PatternError: If a pattern does not compile or a replacement refers
            to a group the pattern does not have.
    """
    _check_arity(find_patterns, replacements)

    for i, (pattern, replacement) in enumerate(zip(find_patterns, replacements)):
        try:
            text, count = re.subn(pattern, replacement, text)
        except (re.error, IndexError) as e:
            raise PatternError(i, pattern, e) from e
        logger.debug("Rule %d %r: %d replacement(s)", i, pattern, count)

    return text


# ---------------------------------------------------------------------------
# Archive handling
# ---------------------------------------------------------------------------

def _check_member_names(names: Sequence[str]) -> None:
    """Reject names that would not extract to a path of the same name."""
    seen: set[str] = set()
    for name in names:
        parts = (name[:-1] if name.endswith("/") else name).split("/")
        if any(part in ("", ".", "..") for part in parts):
            raise CorruptArchiveError(f"Unsupported member name in archive: {name!r}")
        if name in seen:
            raise CorruptArchiveError(f"Duplicate member name in archive: {name!r}")
        seen.add(name)


def extract_archive(docx_path: Path, workspace: Path) -> list[str]:
    """Unpack the whole archive into ``workspace``.

    Every member must land at ``workspace/<its name>``; archives whose names
    zipfile would rewrite (absolute, ``..`` or duplicate entries) are rejected
    so the repacked package carries exactly the same member names.

    Returns:
        Member names in archive order.

    Raises:
        CorruptArchiveError: The archive is unreadable or has unsafe names.
    """
    try:
        with zipfile.ZipFile(docx_path, "r") as zf:
            names = zf.namelist()
            _check_member_names(names)
            for info in zf.infolist():
                target = Path(zf.extract(info, workspace))
                expected = workspace.joinpath(*info.filename.rstrip("/").split("/"))
                if target != expected:
                    raise CorruptArchiveError(
                        f"Member {info.filename!r} extracted to an unexpected path"
                    )
    except (
        zipfile.BadZipFile,
        zlib.error,
        EOFError,
        OSError,
        RuntimeError,  # encrypted or unsupported compression
    ) as e:
        raise CorruptArchiveError(
            "Failed to extract the Word document. The file may be corrupted "
            f"or not a valid .docx file: {e}"
        ) from e
    return names


def _workspace_members(workspace: Path, original_order: Sequence[str]) -> list[str]:
    """List every file and directory entry under the workspace as archive names.

    Names follow the original archive order; anything not in it goes last,
    sorted.
    """
    found: set[str] = set()
    for root, dirs, files in os.walk(workspace):
        rel_root = Path(root).relative_to(workspace)
        for name in files:
            found.add((rel_root / name).as_posix())
        for name in dirs:
            found.add((rel_root / name).as_posix() + "/")

    rank = {name: i for i, name in enumerate(original_order)}
    # Directories are only kept when the source archive listed them explicitly.
    members = [n for n in found if not n.endswith("/") or n in rank]
    return sorted(members, key=lambda n: (rank.get(n, len(rank)), n))


def _output_mode(output_path: Path) -> int:
    """Keep an existing file's permissions, else 0o666 less the umask."""
    try:
        return stat.S_IMODE(output_path.stat().st_mode)
    except FileNotFoundError:
        return 0o666 & ~_UMASK


def pack_archive(workspace: Path, output_path: Path, original_order: Sequence[str]) -> None:
    """Zip the workspace tree into ``output_path``.

    The archive is written to a staging file in the output directory and
    renamed into place, so ``output_path`` either holds a complete archive or
    is left as it was.
    """
    staging_path: Path | None = None
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, staging = tempfile.mkstemp(
            prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
        )
        os.close(fd)
        staging_path = Path(staging)

        with zipfile.ZipFile(staging_path, "w", zipfile.ZIP_DEFLATED) as zout:
            for name in _workspace_members(workspace, original_order):
                zout.write(workspace / name, arcname=name)
        # mkstemp creates 0600; give the result the mode a plain open() would
        os.chmod(staging_path, _output_mode(output_path))
        os.replace(staging_path, output_path)
    except (OSError, zipfile.LargeZipFile, ValueError) as e:
        raise PackError(f"Failed to create the output document: {e}") from e
    finally:
        if staging_path is not None and staging_path.exists():
            staging_path.unlink()


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def patch_document(
    input_path: str | os.PathLike,
    find_patterns: Sequence[str],
    replacements: Sequence[str],
    output_path: str | os.PathLike,
    workspace_root: str | os.PathLike | None = None,
) -> Path:
    """Rewrite the body text of a DOCX with ordered regex substitutions.

    Args:
        input_path: Source .docx. Never modified unless it is also output_path.
        find_patterns: Regular expressions, applied in order.
        replacements: Replacement strings, positionally paired with
            find_patterns. Backreferences (``\\1``, ``\\g<name>``) are allowed.
        output_path: Where to write the patched document.
        workspace_root: Parent directory for the temporary extraction
            directory (default: the system temp dir).

    Returns:
        The output path.

    Raises:
        ArityMismatchError: Pattern and replacement counts differ.
        DocumentNotFoundError: input_path does not exist.
        CorruptArchiveError: input_path is not a readable ZIP archive.
        InvalidDocumentError: The archive has no word/document.xml.
        PatternError: A substitution failed in the regex engine.
        PackError: The output archive could not be written.
        DocumentIOError: The body part could not be read or written.
    """
    _check_arity(find_patterns, replacements)

    input_path = Path(input_path)
    output_path = Path(output_path)

    if not input_path.is_file():
        raise DocumentNotFoundError(f"Input file does not exist: {input_path}")

    if input_path.suffix.lower() != DOCX_SUFFIX:
        logger.warning("Input file does not have .docx extension: %s", input_path)

    with tempfile.TemporaryDirectory(prefix="docx_extract_", dir=workspace_root) as tmp:
        workspace = Path(tmp)
        members = extract_archive(input_path, workspace)

        body_path = workspace / BODY_PART
        if not body_path.is_file():
            raise InvalidDocumentError(
                f"Invalid Word document: {BODY_PART} not found in {input_path}"
            )

        lines, trailing_newline = read_body_lines(body_path)
        text = apply_substitutions("\n".join(lines), find_patterns, replacements)
        write_body_lines(body_path, text.split("\n"), trailing_newline)

        pack_archive(workspace, output_path, members)

    logger.info("Successfully created edited document: %s", output_path)
    return output_path
