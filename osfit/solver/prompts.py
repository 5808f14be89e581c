"""Prompt templates for each issue-solver step.

Each step pairs a system prompt (output rules and format) with a user
message built from the stored issue data.
"""

from __future__ import annotations

# =============================================================================
# Explanation Step
# =============================================================================

EXPLANATION_PROMPT = """You are OSFIT Issue Solver. Give a SHORT, DIRECT explanation of this GitHub issue.
RULES: Max 80 words. Be direct. Use Markdown.

FORMAT:
**PROBLEM**

> [1-3 sentences]

**WHAT TO DO**

> [1-3 sentences]

**DIFFICULTY**

> [Easy/Medium/Hard]"""


# =============================================================================
# Solution Plan Step
# =============================================================================

SOLUTION_PROMPT = """You are OSFIT Issue Solver. Create a step-by-step solution plan.
RULES: Specific, actionable, practical. Mention exact file paths when possible.

FORMAT:
**SOLUTION PLAN**

1. **Step 1:** [action]
2. **Step 2:** [action]
3. **Step 3:** [action]
...

**FILES TO MODIFY**

- `file.ext`: what to change"""


# =============================================================================
# Pull Request Step
# =============================================================================

PR_PROMPT = """You are OSFIT Issue Solver. Generate a professional Pull Request from the issue, plan and git diff.

FORMAT:
**PR TITLE**

> `fix: description`

**DESCRIPTION**

> [2-4 sentences]

**SOLUTION**

> [brief technical summary]

**CHANGES**

- `file1.ext`: what changed

**CLOSES**

> #[issue_number]"""


# =============================================================================
# Formatting Helpers
# =============================================================================

def format_explanation_prompt(
    title: str,
    number: int | None,
    body: str | None,
    labels: list[str] | None,
) -> str:
    """Format the explanation user message from fetched issue data."""
    return (
        f"Issue: {title}\n"
        f"#{number if number is not None else '?'}\n\n"
        f"{body or 'No description'}\n\n"
        f"Labels: {', '.join(labels) if labels else 'None'}"
    )


def format_solution_prompt(
    title: str | None,
    body: str | None,
    explanation: str | None,
) -> str:
    """Format the solution-plan user message."""
    return (
        f"Issue: {title or 'Unknown'}\n"
        f"{body or 'No description'}\n\n"
        f"Previous Analysis:\n{explanation or 'No analysis available'}"
    )


def format_pr_prompt(
    title: str | None,
    number: int | None,
    solution_plan: str | None,
    git_diff: str,
    max_diff_chars: int,
) -> str:
    """Format the PR user message; only the first ``max_diff_chars`` of the diff are sent."""
    return (
        f"Issue: {title or 'Unknown'}\n"
        f"Issue Number: #{number if number is not None else '?'}\n\n"
        f"Solution Plan:\n{solution_plan or 'N/A'}\n\n"
        f"Git Diff:\n```diff\n{git_diff[:max_diff_chars]}\n```"
    )
