"""Bold/red emphasis for matched phrases.

Each replacement is wrapped in WordprocessingML run markup that switches bold
and red on for exactly the replaced span and switches them back off right
after, so the surrounding text keeps its normal look.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

from .patcher import patch_document

RPR_BOLD_RED = '<w:rPr><w:b w:val="true"/><w:color w:val="FF0000"/></w:rPr>'
RPR_RESET = '<w:rPr><w:b w:val="false"/><w:color w:val="000000"/></w:rPr>'
T_OPEN = '<w:t xml:space="preserve">'
T_CLOSE = "</w:t>"

FORMAT_PREFIX = RPR_BOLD_RED + T_OPEN
FORMAT_SUFFIX = T_CLOSE + RPR_RESET + T_OPEN + T_CLOSE


def wrap_bold_red(replacements: Sequence[str]) -> list[str]:
    """Wrap every replacement string in bold+red run markup."""
    wrapped = []
    for replacement in replacements:
        if not isinstance(replacement, str):
            raise TypeError(
                f"replacement must be a string, got {type(replacement).__name__}"
            )
        wrapped.append(FORMAT_PREFIX + replacement + FORMAT_SUFFIX)
    return wrapped


def patch_document_bold_red(
    input_path: str | os.PathLike,
    find_patterns: Sequence[str],
    replacements: Sequence[str],
    output_path: str | os.PathLike,
    workspace_root: str | os.PathLike | None = None,
) -> Path:
    """Same as :func:`patch_document`, with each replacement shown bold and red."""
    return patch_document(
        input_path,
        find_patterns,
        wrap_bold_red(replacements),
        output_path,
        workspace_root=workspace_root,
    )
