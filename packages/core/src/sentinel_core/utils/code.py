"""File classification shared by the explorer and the request builder."""

from __future__ import annotations

from pathlib import PurePosixPath

# Directory names never descended into by any walk.
SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        "coverage",
        ".next",
        "__pycache__",
        "venv",
    }
)

SEARCHABLE_EXTENSIONS = frozenset(
    {
        ".ts",
        ".tsx",
        ".js",
        ".jsx",
        ".py",
        ".java",
        ".go",
        ".rs",
        ".rb",
        ".php",
        ".cs",
        ".cpp",
        ".c",
        ".h",
        ".swift",
        ".kt",
        ".scala",
        ".vue",
        ".svelte",
        ".json",
        ".yaml",
        ".yml",
        ".md",
    }
)

NON_CODE_EXTENSIONS = frozenset(
    {
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".svg",
        ".ico",
        ".webp",
        ".bmp",
        ".pdf",
        ".woff",
        ".woff2",
        ".ttf",
        ".eot",
        ".otf",
        ".mp4",
        ".mp3",
        ".wav",
        ".ogg",
        ".zip",
        ".tar",
        ".gz",
        ".rar",
        ".7z",
        ".lock",  # e.g. package-lock.json, Pipfile.lock
    }
)


def is_code_file(file_name: str) -> bool:
    return not any(file_name.lower().endswith(ext) for ext in NON_CODE_EXTENSIONS)


def is_searchable_file(file_name: str) -> bool:
    return PurePosixPath(file_name).suffix.lower() in SEARCHABLE_EXTENSIONS


_LANGUAGES = {
    ".py": "Python",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".java": "Java",
    ".kt": "Kotlin",
    ".scala": "Scala",
    ".php": "PHP",
    ".cs": "C#",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".swift": "Swift",
    ".vue": "Vue",
    ".svelte": "Svelte",
}


def detect_stack(paths) -> list[str]:
    """Languages of the given files, in first-seen order."""
    stack: list[str] = []
    for path in paths:
        language = _LANGUAGES.get(PurePosixPath(path).suffix.lower())
        if language and language not in stack:
            stack.append(language)
    return stack
