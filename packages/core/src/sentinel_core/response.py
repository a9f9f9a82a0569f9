"""Turn raw model text into a ReviewVerdict.

extract_json() is best-effort and raises MalformedResponse when no JSON
document can be recovered. validate_verdict() never raises: wrong or
missing fields are defaulted, and issues lacking required fields are
dropped rather than repaired.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from sentinel_core.errors import MalformedResponse
from sentinel_core.models import Issue, ReviewVerdict

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Unable to generate summary."
DEFAULT_EFFORT_SCORE = 3
MIN_EFFORT_SCORE = 1
MAX_EFFORT_SCORE = 5

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_REQUIRED_ISSUE_FIELDS = ("severity", "category", "file", "title", "description")


def _candidates(raw: str) -> list[str]:
    text = raw.strip()
    candidates = []
    match = _FENCED_BLOCK_RE.search(text)
    if match and match.group(1).strip():
        candidates.append(match.group(1).strip())
    # Strip only an outer fence so fences inside string values survive.
    unfenced = re.sub(r"^```(?:json)?\s*", "", text)
    unfenced = re.sub(r"\s*```$", "", unfenced)
    for candidate in (text, unfenced):
        if candidate and candidate not in candidates:
            candidates.append(candidate)
    return candidates


def extract_json(raw: str) -> Any:
    """Recover one JSON document from model output.

    The first fenced block (optionally tagged ``json``) wins; if it does not
    parse, the whole trimmed text is tried.
    """
    last_error: json.JSONDecodeError | None = None
    for candidate in _candidates(raw or ""):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e

    reason = last_error.msg if last_error else "empty response"
    logger.warning("Failed to parse model response as JSON (%s): %s", reason, (raw or "")[:200])
    raise MalformedResponse(f"Model response is not valid JSON: {reason}", raw=raw or "")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _effort_score(value: Any) -> int:
    if not _is_number(value) or math.isnan(value):
        return DEFAULT_EFFORT_SCORE
    clamped = max(float(MIN_EFFORT_SCORE), min(float(MAX_EFFORT_SCORE), float(value)))
    # Half-up rounding: 2.5 -> 3.
    return int(math.floor(clamped + 0.5))


def _line(value: Any) -> int | None:
    if _is_number(value) and math.isfinite(value) and float(value).is_integer() and value >= 1:
        return int(value)
    return None


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _issue(entry: Any) -> Issue | None:
    if not isinstance(entry, dict):
        return None
    if not all(isinstance(entry.get(name), str) for name in _REQUIRED_ISSUE_FIELDS):
        return None
    return Issue(
        severity=entry["severity"],
        category=entry["category"],
        file=entry["file"],
        title=entry["title"],
        description=entry["description"],
        line=_line(entry.get("line")),
        suggestion=_optional_str(entry.get("suggestion")),
        code_block=_optional_str(entry.get("codeBlock")),
    )


def validate_verdict(data: Any) -> ReviewVerdict:
    """Coerce an untrusted decoded object into a well-formed verdict."""
    if not isinstance(data, dict):
        data = {}

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary:
        summary = FALLBACK_SUMMARY

    raw_issues = data.get("issues")
    if not isinstance(raw_issues, list):
        raw_issues = []

    issues = []
    for entry in raw_issues:
        issue = _issue(entry)
        if issue is None:
            logger.debug("Dropping incomplete issue: %r", entry)
            continue
        issues.append(issue)

    return ReviewVerdict(
        summary=summary,
        effort_score=_effort_score(data.get("effortScore")),
        issues=issues,
    )


def parse_verdict(raw: str) -> ReviewVerdict:
    return validate_verdict(extract_json(raw))
