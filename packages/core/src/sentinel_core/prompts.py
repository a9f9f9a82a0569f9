"""Prompt text sent to the model.

The loop treats both prompts as opaque strings; everything about wording
and section layout lives here.
"""

from __future__ import annotations

from sentinel_core.models import ReviewRequest

_CONTEXT_FILE_CHAR_LIMIT = 2000
_RELATED_FILE_CHAR_LIMIT = 1000
_CHANGED_FILE_CHAR_LIMIT = 3000
_DIFF_CHAR_LIMIT = 8000
_MAX_RELATED_FILES = 3

_RESPONSE_FORMAT = """{
  "summary": "Brief overview of the changes and assessment",
  "effortScore": 1-5,
  "issues": [
    {
      "severity": "critical|warning|suggestion|nitpick",
      "category": "security|architecture|performance|best-practices|bugs",
      "file": "path/to/file.ts",
      "line": 42,
      "title": "Short issue title",
      "description": "Detailed explanation of the issue",
      "suggestion": "How to fix it (optional)",
      "codeBlock": "suggested code fix (optional)"
    }
  ]
}"""

QUICK_SYSTEM_PROMPT = f"""You are Code Sentinel, an expert AI code reviewer. \
Your role is to analyze pull request changes and provide actionable, high-quality feedback focused on:

1. **Security**: Identify vulnerabilities like SQL injection, XSS, hardcoded secrets, \
insecure authentication, and OWASP Top 10 issues.

2. **Architecture**: Spot SOLID violations, improper layer dependencies, circular imports, \
missing abstractions, and inconsistent patterns.

3. **Performance**: Find N+1 queries, memory leaks, unnecessary re-renders, blocking operations, \
and inefficient algorithms.

4. **Bugs**: Detect logic errors, null pointer risks, edge cases, race conditions, and error handling gaps.

5. **Best Practices**: Note code style inconsistencies, missing error handling, and deviations \
from team conventions.

## Guidelines

- Focus on substantive issues, not style nitpicks (unless they affect readability significantly)
- Consider the context of the codebase and team conventions provided
- Provide specific, actionable suggestions with code examples when helpful
- Reference line numbers when possible for inline comments
- Be constructive and educational in tone
- Prioritize issues by severity: critical > warning > suggestion > nitpick

## Response Format

You MUST respond with valid JSON matching this structure:

{_RESPONSE_FORMAT}"""

DEEP_SYSTEM_PROMPT = f"""You are Code Sentinel, an expert AI code reviewer with access to tools \
for exploring the codebase.

## Your Goal
Analyze pull request changes and provide actionable, high-quality feedback focused on security, \
architecture, performance, bugs, and best practices.

## Available Tools
You have access to these tools to gather context:
- **read_file**: Read file contents to understand imports, types, or related code
- **list_files**: List files in a directory to explore project structure
- **search_code**: Search for code patterns to find definitions or usages
- **get_structure**: Get the project directory tree

## How to Use Tools
Use tools strategically to:
1. Follow imports to understand dependencies
2. Find type definitions or interfaces
3. Check how similar code is structured elsewhere
4. Understand the project architecture

Don't over-use tools - only request what you need for a thorough review.

## Review Focus
1. **Security**: Vulnerabilities, secrets, injection, OWASP Top 10
2. **Architecture**: SOLID violations, coupling, patterns
3. **Performance**: N+1 queries, memory leaks, blocking operations
4. **Bugs**: Logic errors, null checks, edge cases
5. **Best Practices**: Consistency, error handling, conventions

## Response Format
After gathering context, respond with valid JSON:

{_RESPONSE_FORMAT}"""


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}\n... (truncated, {len(text) - limit} more characters)"


def build_review_prompt(request: ReviewRequest) -> str:
    """Render a ReviewRequest into the opening user turn."""
    sections: list[str] = []

    pr = request.pr
    header = f"## Pull Request\n**Title:** {pr.title}\n**Author:** {pr.author}"
    if pr.body:
        header += f"\n**Description:**\n{pr.body}"
    sections.append(header)

    if request.stack or request.context_files or request.instructions:
        sections.append("## Codebase Context")
        if request.stack:
            sections.append(f"**Technology Stack:** {', '.join(request.stack)}")
        for ctx_file in request.context_files:
            sections.append(
                f"### Team Conventions (from {ctx_file.name})\n"
                f"{truncate(ctx_file.content, _CONTEXT_FILE_CHAR_LIMIT)}"
            )
        if request.instructions:
            lines = "\n".join(f"- {i}" for i in request.instructions)
            sections.append(f"### Custom Instructions\n{lines}")

    if request.patterns:
        lines = "\n".join(f"- **{p.category}**: {p.pattern}" for p in request.patterns)
        sections.append(f"### Team Patterns\n{lines}")

    if request.related_files:
        sections.append("## Related Files (for pattern reference)")
        for related in request.related_files[:_MAX_RELATED_FILES]:
            excerpt = truncate(related.content, _RELATED_FILE_CHAR_LIMIT)
            sections.append(f"### {related.path} ({related.role})\n```\n{excerpt}\n```")

    sections.append("## Changed Files")
    for changed in request.changed_files:
        sections.append(f"### {changed.path}\n```\n{truncate(changed.content, _CHANGED_FILE_CHAR_LIMIT)}\n```")

    sections.append(f"## Diff\n```diff\n{truncate(request.diff, _DIFF_CHAR_LIMIT)}\n```")

    sections.append(
        f"## Focus Areas\nPlease focus your review on these categories: {', '.join(request.categories)}"
    )

    sections.append(
        """## Instructions
Review the code changes above. Consider:
1. The team's established conventions and patterns
2. Consistency with related files shown
3. Security, performance, and correctness concerns
4. Best practices for the technology stack

Return your analysis as JSON."""
    )

    return "\n\n".join(sections)
