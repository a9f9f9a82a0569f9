"""Read-only codebase exploration confined to a single root directory.

Every operation here produces text that is fed back to the model, so every
walk is bounded: file size, directory depth, and result counts are all
capped. Every path argument is resolved (symlinks and ``..`` collapsed)
before the containment check, and symlinks met during a walk are never
followed.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from sentinel_core.errors import InvalidQuery, NotFound, PathEscape, ToolError
from sentinel_core.utils.code import SKIP_DIRS, is_searchable_file

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 500 * 1024

MAX_LIST_DEPTH = 3
MAX_LIST_RESULTS = 100

MAX_SEARCH_FILES = 20
MAX_MATCHES_PER_FILE = 5
MAX_PREVIEW_CHARS = 100

MAX_STRUCTURE_DEPTH = 4
MAX_STRUCTURE_FILES = 10

NO_FILES_MESSAGE = "No files found matching criteria."


@dataclass
class ScanResult:
    """Outcome of a best-effort walk.

    ``entries`` are the formatted result units (paths, match groups or tree
    lines); ``skipped`` lists root-relative paths that could not be read.
    """

    entries: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def render(self, empty_message: str, separator: str = "\n") -> str:
        text = separator.join(self.entries) if self.entries else empty_message
        if self.skipped:
            text += f"\n[{len(self.skipped)} unreadable path(s) skipped]"
        return text


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda e: (e.name.lower(), e.name))


def _is_real_dir(entry: os.DirEntry) -> bool:
    return entry.is_dir(follow_symlinks=False)


def _is_real_file(entry: os.DirEntry) -> bool:
    return entry.is_file(follow_symlinks=False)


class Explorer:
    """Answers read_file / list_files / search_code / get_structure queries.

    The root is fixed at construction. Instances hold no per-call state and
    may be shared between threads and between reviews.
    """

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise NotADirectoryError(f"Sandbox root is not a directory: {root}")

    # ------------------------------------------------------------------ #
    # Sandbox                                                              #
    # ------------------------------------------------------------------ #

    def resolve(self, path: str) -> Path:
        """Resolve ``path`` against the root, rejecting anything outside it."""
        candidate = (self.root / path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise PathEscape(path)
        return candidate

    def _contains(self, path: Path) -> bool:
        resolved = path.resolve()
        return resolved == self.root or self.root in resolved.parents

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    # ------------------------------------------------------------------ #
    # read_file                                                            #
    # ------------------------------------------------------------------ #

    def read_file(self, path: str) -> str:
        target = self.resolve(path)
        if not target.exists():
            raise NotFound(path)
        if not target.is_file():
            raise ToolError(f"Not a file: {path}")

        size = target.stat().st_size
        with open(target, "rb") as f:
            data = f.read(MAX_FILE_SIZE)
        content = data.decode("utf-8", errors="replace")
        if size > MAX_FILE_SIZE:
            return f"{content}\n\n... (file truncated, {size - MAX_FILE_SIZE} bytes remaining)"
        return content

    # ------------------------------------------------------------------ #
    # list_files                                                           #
    # ------------------------------------------------------------------ #

    def scan_files(self, directory: str, pattern: str | None = None) -> ScanResult:
        base = self.resolve(directory or ".")
        if not base.exists():
            raise NotFound(directory, kind="Directory")
        if not base.is_dir():
            raise ToolError(f"Not a directory: {directory}")

        result = ScanResult()
        self._scan_dir(base, PurePosixPath(), pattern or None, result, MAX_LIST_DEPTH)
        return result

    def list_files(self, directory: str, pattern: str | None = None) -> str:
        return self.scan_files(directory, pattern).render(NO_FILES_MESSAGE)

    def _scan_dir(
        self,
        base: Path,
        relative: PurePosixPath,
        pattern: str | None,
        result: ScanResult,
        depth: int,
    ) -> None:
        if depth <= 0 or len(result.entries) >= MAX_LIST_RESULTS:
            return

        current = base / relative
        try:
            entries = _sorted_entries(current)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", current, e)
            result.skipped.append(self._relative(current))
            return

        for entry in entries:
            if len(result.entries) >= MAX_LIST_RESULTS:
                return
            if entry.name in SKIP_DIRS:
                continue
            entry_path = relative / entry.name
            if _is_real_dir(entry):
                self._scan_dir(base, entry_path, pattern, result, depth - 1)
            elif _is_real_file(entry):
                if pattern is None or _glob_match(entry_path, pattern):
                    result.entries.append(entry_path.as_posix())

    # ------------------------------------------------------------------ #
    # search_code                                                          #
    # ------------------------------------------------------------------ #

    def scan_matches(self, query: str, path: str | None = None) -> ScanResult:
        try:
            regex = re.compile(query, re.IGNORECASE)
        except re.error as e:
            raise InvalidQuery(query, str(e)) from e

        base = self.resolve(path) if path else self.root
        if not base.exists():
            raise NotFound(path or ".", kind="Directory")

        result = ScanResult()
        if base.is_file():
            self._search_file(base, regex, result)
        else:
            self._search_dir(base, regex, result)
        return result

    def search_code(self, query: str, path: str | None = None) -> str:
        return self.scan_matches(query, path).render(f"No matches found for: {query}", separator="\n\n")

    def _search_dir(self, directory: Path, regex: re.Pattern, result: ScanResult) -> None:
        if len(result.entries) >= MAX_SEARCH_FILES:
            return
        try:
            entries = _sorted_entries(directory)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", directory, e)
            result.skipped.append(self._relative(directory))
            return

        for entry in entries:
            if len(result.entries) >= MAX_SEARCH_FILES:
                return
            if entry.name in SKIP_DIRS:
                continue
            entry_path = directory / entry.name
            if _is_real_dir(entry):
                self._search_dir(entry_path, regex, result)
            elif _is_real_file(entry) and is_searchable_file(entry.name):
                self._search_file(entry_path, regex, result)

    def _search_file(self, file_path: Path, regex: re.Pattern, result: ScanResult) -> None:
        if not self._contains(file_path) or not is_searchable_file(file_path.name):
            return
        try:
            if file_path.stat().st_size > MAX_FILE_SIZE:
                return
            content = file_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Skipping unreadable file %s: %s", file_path, e)
            result.skipped.append(self._relative(file_path))
            return

        matches = []
        for number, line in enumerate(content.split("\n"), 1):
            # One stateless search per line; no matcher state carries over.
            if regex.search(line):
                matches.append(f"  L{number}: {line.strip()[:MAX_PREVIEW_CHARS]}")
                if len(matches) >= MAX_MATCHES_PER_FILE:
                    break

        if matches:
            result.entries.append(f"{self._relative(file_path)}:\n" + "\n".join(matches))

    # ------------------------------------------------------------------ #
    # get_structure                                                        #
    # ------------------------------------------------------------------ #

    def scan_structure(self) -> ScanResult:
        result = ScanResult()
        self._build_structure(self.root, "", result, MAX_STRUCTURE_DEPTH)
        return result

    def get_structure(self) -> str:
        return self.scan_structure().render("(empty)")

    def _build_structure(self, directory: Path, prefix: str, result: ScanResult, depth: int) -> None:
        if depth <= 0:
            return
        try:
            entries = _sorted_entries(directory)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", directory, e)
            result.skipped.append(self._relative(directory))
            return

        dirs = [e for e in entries if _is_real_dir(e) and e.name not in SKIP_DIRS]
        files = [e for e in entries if _is_real_file(e)]

        for d in dirs:
            result.entries.append(f"{prefix}{d.name}/")
            self._build_structure(directory / d.name, prefix + "  ", result, depth - 1)

        for f in files[:MAX_STRUCTURE_FILES]:
            result.entries.append(f"{prefix}{f.name}")
        if len(files) > MAX_STRUCTURE_FILES:
            result.entries.append(f"{prefix}... ({len(files) - MAX_STRUCTURE_FILES} more files)")


def _glob_match(path: PurePosixPath, pattern: str) -> bool:
    """Match a relative path against a glob on the full path or from the right.

    ``*.ts`` matches ``src/a.ts``; ``src/*.ts`` matches ``src/a.ts``.
    """
    return fnmatch.fnmatch(path.as_posix(), pattern) or path.match(pattern)
