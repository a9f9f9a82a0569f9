"""Language-agnostic related-file discovery for a review request.

Paths come from the repository's tracked file list (the git tree at the PR
head, or a walk of the sandbox root when no tree is available). Content is
always read through the Explorer, so the same sandbox rules apply to
context gathering as to the model's own tool calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import PurePosixPath

from sentinel_core.errors import ToolError
from sentinel_core.models import RelatedFile
from sentinel_core.tools.explorer import Explorer
from sentinel_core.utils.code import is_code_file

logger = logging.getLogger(__name__)

_SIBLING_CHAR_LIMIT = 2_000
_TEST_FILE_CHAR_LIMIT = 3_000
_MAX_SIBLINGS = 3
_MAX_RELATED_FILES = 6

# {stem} = filename without extension, {suffix} = extension including the dot.
_TEST_PATTERNS = [
    "test_{stem}{suffix}",  # Python:      test_reviewer.py
    "{stem}_test{suffix}",  # Go / Rust:   reviewer_test.go
    "{stem}.test{suffix}",  # JS / TS:     reviewer.test.ts
    "{stem}.spec{suffix}",  # JS / TS:     reviewer.spec.js
    "{stem}_spec{suffix}",  # Ruby:        reviewer_spec.rb
    "{stem}.test",  # Extensionless test files in some C/shell projects
]


def find_test_file(file_path: str, tracked: Iterable[str]) -> str | None:
    """Locate the test or spec file paired with a source file by name alone.

    Returns the first matching tracked path, or None.
    """
    stem = PurePosixPath(file_path).stem
    suffix = PurePosixPath(file_path).suffix
    tracked = list(tracked)

    for pattern in _TEST_PATTERNS:
        name = pattern.format(stem=stem, suffix=suffix)
        matches = [p for p in tracked if PurePosixPath(p).name == name and p != file_path]
        if matches:
            return matches[0]

    return None


def find_siblings(file_path: str, tracked: Iterable[str], exclude: set[str], limit: int = _MAX_SIBLINGS) -> list[str]:
    directory = PurePosixPath(file_path).parent
    siblings = [
        p
        for p in tracked
        if PurePosixPath(p).parent == directory and p != file_path and p not in exclude and is_code_file(p)
    ]
    return sorted(siblings)[:limit]


def _read(explorer: Explorer, path: str, limit: int) -> str | None:
    try:
        return explorer.read_file(path)[:limit]
    except (ToolError, OSError) as e:
        # Listed in the tree but not present in the local checkout.
        logger.debug("Could not read related file %s: %s", path, e)
        return None


def gather_related_files(
    explorer: Explorer,
    changed_paths: Sequence[str],
    tracked: Iterable[str] | None = None,
) -> list[RelatedFile]:
    """Collect paired test files first, then directory siblings, for the changed files."""
    if tracked is None:
        tracked = explorer.scan_files(".").entries
    tracked = list(tracked)
    changed = set(changed_paths)

    related: list[RelatedFile] = []
    seen: set[str] = set(changed)

    for path in changed_paths:
        test_path = find_test_file(path, tracked)
        if test_path and test_path not in seen:
            content = _read(explorer, test_path, _TEST_FILE_CHAR_LIMIT)
            if content is not None:
                related.append(RelatedFile(path=test_path, content=content, role="test"))
                seen.add(test_path)

    for path in changed_paths:
        for sibling in find_siblings(path, tracked, exclude=seen):
            if len(related) >= _MAX_RELATED_FILES:
                return related
            content = _read(explorer, sibling, _SIBLING_CHAR_LIMIT)
            if content is not None:
                related.append(RelatedFile(path=sibling, content=content, role="sibling"))
                seen.add(sibling)

    return related[:_MAX_RELATED_FILES]
