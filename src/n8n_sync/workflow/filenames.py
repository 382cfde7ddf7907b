"""Map workflow names to safe local filenames."""

from __future__ import annotations

import re

MAX_FILENAME_LENGTH = 200
FALLBACK_FILENAME = "workflow"
WORKFLOW_FILE_SUFFIX = ".json"
MANIFEST_FILENAME = "manifest.json"

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')
_TRIM_CHARS = ". "


def sanitize_filename(name: str) -> str:
    """Return a filesystem-safe version of a workflow name.

    Spaces become underscores, characters that are invalid on common filesystems
    are dropped, leading/trailing dots and spaces are trimmed and the result is
    capped at `MAX_FILENAME_LENGTH` characters. An empty result falls back to
    `FALLBACK_FILENAME`.

    The trim is repeated after truncation so the function stays idempotent when the
    cut lands right after a dot.
    """

    cleaned = _UNSAFE_CHARS.sub("", name.replace(" ", "_"))
    cleaned = cleaned.strip(_TRIM_CHARS)
    cleaned = cleaned[:MAX_FILENAME_LENGTH].rstrip(_TRIM_CHARS)
    return cleaned or FALLBACK_FILENAME


def workflow_filename(name: str) -> str:
    return sanitize_filename(name) + WORKFLOW_FILE_SUFFIX
