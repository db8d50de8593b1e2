"""Utility functions for shipit."""

import os
import re
import time
import uuid
from typing import Dict, Optional

from shipit.core.models import TaskType

BRANCH_PREFIX = "ai-task"
BRANCH_SLUG_MAX_LENGTH = 50

# Checked in order; the first class with a matching keyword wins.
TASK_TYPE_KEYWORDS = (
    (TaskType.BUG_FIX, ("bug", "fix", "error")),
    (TaskType.TEST, ("test", "spec", "coverage")),
    (TaskType.REFACTOR, ("refactor", "improve", "clean up")),
)

COMMIT_PREFIXES = {
    TaskType.BUG_FIX: "fix",
    TaskType.FEATURE: "feat",
    TaskType.REFACTOR: "refactor",
    TaskType.TEST: "test",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_task_id() -> str:
    """Generate a task ID in the format: task-<epoch ms>-<random>."""
    return f"task-{_now_ms()}-{uuid.uuid4().hex[:9]}"


def generate_proposal_id() -> str:
    """Generate a 128-bit random proposal ID."""
    return uuid.uuid4().hex


def sanitize_branch_slug(text: str, max_length: int = BRANCH_SLUG_MAX_LENGTH) -> str:
    """
    Turn free text into a branch-safe slug.

    Lowercases the text, collapses every run of non-alphanumeric characters
    into a single hyphen and truncates to max_length.

    Args:
        text: Text to sanitize
        max_length: Maximum slug length

    Returns:
        Slug containing only [a-z0-9-]
    """
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:max_length].strip("-")


def generate_branch_name(description: str, timestamp_ms: Optional[int] = None) -> str:
    """
    Generate a branch name in the format: ai-task/<slug>-<epoch ms>

    Args:
        description: Task instruction
        timestamp_ms: Optional timestamp to use (defaults to now)

    Returns:
        Branch name string
    """
    if timestamp_ms is None:
        timestamp_ms = _now_ms()

    slug = sanitize_branch_slug(description) or "task"
    return f"{BRANCH_PREFIX}/{slug}-{timestamp_ms}"


def determine_task_type(instruction: str) -> TaskType:
    """
    Infer the task type from instruction keywords.

    Args:
        instruction: Natural-language instruction

    Returns:
        Matching TaskType, FEATURE when nothing matches
    """
    lowered = instruction.lower()
    for task_type, keywords in TASK_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return task_type
    return TaskType.FEATURE


def summarize_instruction(instruction: str, max_length: int = 72) -> str:
    """Return the first line of an instruction, truncated with an ellipsis."""
    first_line = instruction.strip().split("\n")[0].strip()
    if len(first_line) > max_length:
        first_line = first_line[: max_length - 3] + "..."
    return first_line


def mask_secret(value: str, visible: int = 8) -> str:
    """Show only the first few characters of a secret."""
    return value[:visible] + "***"


def get_git_env(author_name: Optional[str] = None, author_email: Optional[str] = None) -> Dict[str, str]:
    """
    Get git environment variables for non-interactive operation.

    Args:
        author_name: Optional git author/committer name
        author_email: Optional git author/committer email

    Returns:
        Dictionary of environment variables for git operations
    """
    env = {
        **os.environ,
        "GIT_TERMINAL_PROMPT": "0",  # Disable terminal prompts
        "GIT_ASKPASS": "echo",       # Use echo as askpass (returns empty)
    }

    if author_name and author_email:
        env["GIT_AUTHOR_NAME"] = author_name
        env["GIT_AUTHOR_EMAIL"] = author_email
        env["GIT_COMMITTER_NAME"] = author_name
        env["GIT_COMMITTER_EMAIL"] = author_email

    return env
