"""Prompt rendering for the critique source.

The prompt carries a small textual protocol that the extractor depends on:

- line comments go under ``COMMENTS_HEADER``, one per line, as
  ``- File: "<path>", Line <n>: "<comment>"``
- the review ends with exactly one of ``APPROVE_TOKEN`` or
  ``REQUEST_CHANGES_TOKEN``

Change these constants and ``prverdict_core.extractor`` together.
"""

from __future__ import annotations

from dataclasses import dataclass

COMMENTS_HEADER = "### Specific Comments:"
APPROVE_TOKEN = "__approve__"
REQUEST_CHANGES_TOKEN = "__request_changes__"

SYSTEM_PROMPT = """You are a strict and precise senior code reviewer.
Review the pull request below. Focus on added lines for direct problems, and
consider what removed lines imply (deleted checks, dropped error handling).
Be concise and actionable. Follow the output format exactly: it is parsed by
a program."""


@dataclass(frozen=True)
class PullRequestInfo:
    title: str
    author: str
    description: str


def render_patches(patches: dict[str, str | None], max_chars: int | None = None) -> str:
    """Join the raw per-file patches, truncating any longer than ``max_chars``."""
    blocks = []
    for path, patch in patches.items():
        if not patch:
            continue
        if max_chars is not None and len(patch) > max_chars:
            patch = patch[:max_chars] + "\n... [diff truncated]"
        blocks.append(f"File: {path}\nPatch:\n{patch}")
    return "\n\n".join(blocks)


def render_prompt(
    info: PullRequestInfo,
    diff_view: str,
    patches: dict[str, str | None],
    guidelines: str = "",
    max_chars: int | None = None,
) -> str:
    guidelines_section = f"\n## Review Guidelines\n{guidelines.strip()}\n" if guidelines.strip() else ""
    return f"""PR "{info.title}" by {info.author}

## PR Description
{info.description or "(no description)"}
{guidelines_section}
## Changed Lines
Line numbers below are line numbers in the new version of each file.

{diff_view or "(no textual changes)"}

## Raw Diff
{render_patches(patches, max_chars) or "(no patches)"}

## Output Format

Write your review with these sections:

### Summary
What the PR does.

### Suggestions
Improvements or refactoring worth making.

### Potential Issues
Bugs or risks to look out for.

{COMMENTS_HEADER}
Comments on specific lines where you spot bugs, issues, or things that should
change. Only include problematic lines. Write one comment per line, in exactly
this format, with double quotes around the file name and the comment:

- File: "path/to/file", Line <line number>: "comment"

Example:
{COMMENTS_HEADER}
- File: "src/a.py", Line 12: "This can raise KeyError when the key is missing."
- File: "src/b.py", Line 3: "Unused import."

Rules for this section:
- Keep the header exactly as "{COMMENTS_HEADER}".
- Use a file path exactly as listed under "Changed Lines".
- Use a line number from the new version of the file.
- Keep each comment on a single line; do not put double quotes inside it.
- If there is nothing to flag, leave the section empty.

### Recommendation
End the review with exactly one of these tokens on its own line:
{APPROVE_TOKEN} if the PR can be merged as is, or
{REQUEST_CHANGES_TOKEN} if changes are required.
"""
