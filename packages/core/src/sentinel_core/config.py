import copy
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from sentinel_core.models import CATEGORIES, SEVERITIES, ContextFile

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "anthropic", "gemini", "ollama")
REVIEW_MODES = ("quick", "deep")

DEFAULT_CONFIG: dict = {
    "llm": {
        "provider": "openai",
        "model": None,  # None = provider default
        "base_url": None,  # ollama endpoint
    },
    "review": {
        "categories": ["security", "architecture", "bugs"],
        "min_severity": "suggestion",
        "skip_if_effort_below": 1,
        "mode": "quick",
        "max_iterations": 10,
        "timeout_seconds": None,
        "max_parallel_tools": 4,
    },
    "ignore": {
        "paths": [],  # fnmatch patterns or directory names to skip (e.g. "migrations/", "*.min.js")
        "authors": [],
    },
    "instructions": [],
    "patterns": [],
    "stack": [],  # frameworks to name in the prompt; detected from file extensions when empty
    "context_files": {
        "enabled": True,
        "paths": [],
        "search_defaults": True,
    },
}

# Provider-agnostic AI context files searched for in the working directory.
DEFAULT_CONTEXT_FILES = [
    "CLAUDE.md",
    "AGENTS.md",
    "COPILOT.md",
    "AI.md",
    "CONVENTIONS.md",
    ".cursorrules",
    "cursor.md",
    ".github/copilot-instructions.md",
]

_CONTEXT_SEARCH_DIRS = ("", ".claude", ".cursor", ".github", "docs")

# Flat CLI option name → nested config location.
_OVERRIDE_KEYS = {
    "provider": ("llm", "provider"),
    "model": ("llm", "model"),
    "base_url": ("llm", "base_url"),
    "mode": ("review", "mode"),
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base. Override wins for leaf values."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _check_choice(section: dict, key: str, choices: tuple, default) -> None:
    if section.get(key) not in choices:
        logger.warning("Invalid %s %r in config; using %r", key, section.get(key), default)
        section[key] = default


def _ensure_sections(config: dict) -> None:
    for section in ("llm", "review", "ignore", "context_files"):
        if not isinstance(config.get(section), dict):
            config[section] = copy.deepcopy(DEFAULT_CONFIG[section])


def _normalise(config: dict) -> dict:
    llm, review = config["llm"], config["review"]
    _check_choice(llm, "provider", PROVIDERS, DEFAULT_CONFIG["llm"]["provider"])
    _check_choice(review, "mode", REVIEW_MODES, DEFAULT_CONFIG["review"]["mode"])
    _check_choice(review, "min_severity", SEVERITIES, DEFAULT_CONFIG["review"]["min_severity"])

    categories = [c for c in review.get("categories") or [] if c in CATEGORIES]
    review["categories"] = categories or list(DEFAULT_CONFIG["review"]["categories"])

    for key in ("max_iterations", "max_parallel_tools", "skip_if_effort_below"):
        value = review.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            logger.warning("Invalid %s %r in config; using default", key, value)
            review[key] = DEFAULT_CONFIG["review"][key]

    review["timeout_seconds"] = _timeout(review.get("timeout_seconds"))

    stack = config.get("stack")
    config["stack"] = [str(s) for s in stack] if isinstance(stack, list) else []
    return config


def _timeout(value) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = 0.0
    if isinstance(value, bool) or not seconds > 0 or seconds == float("inf"):
        logger.warning("Invalid timeout_seconds %r in config; running without a deadline", value)
        return None
    return seconds


def load_config(config_path: str = ".sentinel.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .sentinel.yml in the current directory
      3. CLI argument overrides
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping at the top level.")
        config = _deep_merge(config, file_config)
        logger.info("Loaded config from %s", config_path)
    else:
        logger.info("No config file found at %s, using defaults", config_path)

    _ensure_sections(config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is None:
                continue
            section, field = _OVERRIDE_KEYS.get(key, (None, key))
            if section is None:
                config[field] = value
            else:
                config[section][field] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["gemini_api_key"] = os.environ.get("GEMINI_API_KEY")
    if not config["llm"].get("base_url") and os.environ.get("OLLAMA_BASE_URL"):
        config["llm"]["base_url"] = os.environ["OLLAMA_BASE_URL"]

    return _normalise(config)


def load_context_files(config: dict, working_dir: str) -> list[ContextFile]:
    """
    Find team convention files (CLAUDE.md, AGENTS.md, ...) under working_dir.

    Each name is looked up in the root and in .claude/, .cursor/, .github/
    and docs/. Duplicates are dropped; unreadable files are logged and skipped.
    """
    settings = config.get("context_files") or {}
    if not settings.get("enabled", True):
        return []

    names: list[str] = []
    if settings.get("search_defaults", True):
        names.extend(DEFAULT_CONTEXT_FILES)
    names.extend(settings.get("paths") or [])

    root = Path(working_dir)
    found: list[ContextFile] = []
    seen: set[Path] = set()
    for name in names:
        for location in _CONTEXT_SEARCH_DIRS:
            candidate = (root / location / name).resolve()
            if candidate in seen or not candidate.is_file():
                continue
            seen.add(candidate)
            try:
                content = candidate.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Failed to read context file %s: %s", candidate, e)
                continue
            found.append(ContextFile(path=str(candidate), name=candidate.name, content=content))
            logger.info("Loaded AI context file: %s", candidate)

    if not found:
        logger.info("No AI context files found (CLAUDE.md, AGENTS.md, etc.)")
    return found
