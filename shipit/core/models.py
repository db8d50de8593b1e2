"""Data models for shipit."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class TaskType(str, Enum):
    """Kind of change a task asks for."""

    BUG_FIX = "bug_fix"
    FEATURE = "feature"
    REFACTOR = "refactor"
    TEST = "test"


class TaskStatus(str, Enum):
    """Task lifecycle status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


# Allowed status transitions; anything else is a programming error.
_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.FAILED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


@dataclass(frozen=True)
class RepositoryTarget:
    """Repository a change should land in."""

    owner: str
    repo: str
    base_branch: str

    def __post_init__(self):
        """Validate required fields."""
        for name in ("owner", "repo", "base_branch"):
            if not getattr(self, name):
                raise ValueError(f"{name} is required")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def clone_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}.git"

    def with_overrides(
        self,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        base_branch: Optional[str] = None,
    ) -> "RepositoryTarget":
        """
        Build a target from user-supplied values, falling back to this one.

        Blank or whitespace-only values keep the corresponding field of
        this target, so the result is always fully specified.

        Args:
            owner: Repository owner override
            repo: Repository name override
            base_branch: Base branch override

        Returns:
            New RepositoryTarget

        Raises:
            ValueError: If an override is not a string
        """
        for name, value in (("owner", owner), ("repo", repo), ("base_branch", base_branch)):
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string")

        return RepositoryTarget(
            owner=(owner or "").strip() or self.owner,
            repo=(repo or "").strip() or self.repo,
            base_branch=(base_branch or "").strip() or self.base_branch,
        )

    def to_dict(self) -> dict:
        return {"owner": self.owner, "repo": self.repo, "base_branch": self.base_branch}


@dataclass
class PendingProposal:
    """An instruction waiting for its repository target to be confirmed."""

    id: str
    instruction: str
    user_id: str
    channel: str
    timestamp: float


@dataclass
class Task:
    """Task execution tracking model."""

    id: str
    description: str
    type: TaskType
    requested_by: str
    channel: str
    target: RepositoryTarget
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    branch: Optional[str] = None
    pull_request_url: Optional[str] = None
    error: Optional[str] = None

    def transition(self, status: TaskStatus) -> None:
        """
        Move the task to a new status.

        Args:
            status: Target status

        Raises:
            ValueError: If the transition would go backwards or skip the lifecycle
        """
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(
                f"Invalid status transition for task {self.id}: "
                f"{self.status.value} -> {status.value}"
            )
        self.status = status
        if status.is_terminal:
            self.completed_at = datetime.now(timezone.utc)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "type": self.type.value,
            "status": self.status.value,
            "requested_by": self.requested_by,
            "channel": self.channel,
            "target": self.target.to_dict(),
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "branch": self.branch,
            "pull_request_url": self.pull_request_url,
            "error": self.error,
        }


@dataclass
class FileChange:
    """A single file operation produced by code generation."""

    path: str
    content: str = ""
    action: str = "modify"

    ACTIONS = ("create", "modify", "delete")

    def __post_init__(self):
        if not self.path:
            raise ValueError("path is required")
        if self.action not in self.ACTIONS:
            raise ValueError(f"Unsupported file action '{self.action}' for {self.path}")


@dataclass
class CodeGenerationRequest:
    """Input to the code generator."""

    instruction: str
    task_type: TaskType
    context: Optional[str] = None
    files: Optional[List[str]] = None


@dataclass
class CodeGenerationResult:
    """Output of the code generator."""

    success: bool
    files: Optional[List[FileChange]] = None
    explanation: Optional[str] = None
    generated_code: Optional[str] = None
    error: Optional[str] = None


@dataclass
class CleanupResult:
    """Outcome of one branch reconciliation pass."""

    deleted_branches: List[str] = field(default_factory=list)
    cleaned_tasks: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "deleted_branches": list(self.deleted_branches),
            "cleaned_tasks": list(self.cleaned_tasks),
            "errors": list(self.errors),
        }
