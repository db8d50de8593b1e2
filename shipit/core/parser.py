"""Task file parser for JSON and YAML formats."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from shipit.core.models import RepositoryTarget


@dataclass
class TaskRequest:
    """A task described in a file, as accepted by `shipit run`."""

    instruction: str
    requested_by: str = "cli"
    owner: Optional[str] = None
    repo: Optional[str] = None
    base_branch: Optional[str] = None

    def __post_init__(self):
        """Validate required fields."""
        if not self.instruction or not str(self.instruction).strip():
            raise ValueError("instruction is required")

    def resolve_target(self, default: RepositoryTarget) -> RepositoryTarget:
        return default.with_overrides(self.owner, self.repo, self.base_branch)


def parse_task_request(content: str) -> TaskRequest:
    """
    Parse a task request from string content.
    Automatically detects JSON or YAML format.

    Args:
        content: String content of the task request

    Returns:
        TaskRequest object
    """
    content = content.strip()

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        # If JSON fails, try YAML
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ValueError(f"Unable to parse task request. Not valid JSON or YAML: {e}")

    if not isinstance(data, dict):
        raise ValueError("Task request must be a mapping")

    allowed = {"instruction", "requested_by", "owner", "repo", "base_branch"}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown task request field(s): {', '.join(sorted(unknown))}")

    return TaskRequest(**data)


def parse_task_request_file(file_path: Union[str, Path]) -> TaskRequest:
    """
    Parse a task request from a file.

    Args:
        file_path: Path to the task request file

    Returns:
        TaskRequest object
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Task request file not found: {file_path}")

    return parse_task_request(path.read_text())
