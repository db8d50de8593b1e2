"""Code-change pipeline: instruction in, pull request out."""

from pathlib import Path
from typing import Callable, List

from shipit.core.git_ops import GitOps
from shipit.core.github_pr import GitHubClient, generate_pr_body, generate_pr_title
from shipit.core.models import (
    CodeGenerationRequest,
    CodeGenerationResult,
    FileChange,
    RepositoryTarget,
    Task,
    TaskStatus,
)
from shipit.core.notifications import NotificationBus
from shipit.core.task_store import TaskStore
from shipit.core.utils import (
    COMMIT_PREFIXES,
    determine_task_type,
    generate_branch_name,
    generate_task_id,
    summarize_instruction,
)
from shipit.core.workspace import WorkspaceLock

NO_CHANGES_ERROR = "Code generation returned no actionable file changes"
MAX_CONTEXT_FILES = 200


def resolve_workspace_path(root: Path, relative_path: str) -> Path:
    """
    Resolve a generated file path inside the workspace.

    Args:
        root: Workspace root
        relative_path: Path as returned by code generation

    Returns:
        Absolute path under root

    Raises:
        ValueError: If the path is absolute, escapes the root or targets .git
    """
    candidate = Path(relative_path)
    if candidate.is_absolute():
        raise ValueError(f"Refusing absolute path from code generation: {relative_path}")

    root = root.resolve()
    resolved = (root / candidate).resolve()
    try:
        relative = resolved.relative_to(root)
    except ValueError:
        raise ValueError(f"Refusing path outside the workspace: {relative_path}")

    if not relative.parts or relative.parts[0] == ".git":
        raise ValueError(f"Refusing to write to {relative_path}")
    return resolved


def apply_changes(root: Path, files: List[FileChange]) -> List[str]:
    """
    Apply a changeset to the workspace in list order.

    Args:
        root: Workspace root
        files: File operations from code generation

    Returns:
        "<action> <path>" lines describing what was applied

    Raises:
        ValueError, OSError: On the first file that cannot be applied
    """
    applied = []
    for change in files:
        path = resolve_workspace_path(root, change.path)

        if change.action == "delete":
            if path.exists():
                path.unlink()
                print(f"Deleted file: {change.path}")
            else:
                print(f"File already absent: {change.path}")
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(change.content, encoding="utf-8")
            print(f"{'Created' if change.action == 'create' else 'Modified'} file: {change.path}")

        applied.append(f"{change.action:<6} {change.path}")
    return applied


class TaskOrchestrator:
    """Drive confirmed tasks through branch, generate, apply, commit, push and PR."""

    STEPS = 6

    def __init__(
        self,
        task_store: TaskStore,
        workspace_lock: WorkspaceLock,
        git_ops: GitOps,
        generator,
        github_factory: Callable[[RepositoryTarget], GitHubClient],
        notifications: NotificationBus,
    ):
        """
        Initialize the orchestrator.

        Args:
            task_store: Task record store
            workspace_lock: Lock guarding the shared workspace
            git_ops: Git operations bound to the shared workspace
            generator: Object with generate(CodeGenerationRequest) -> CodeGenerationResult
            github_factory: Builds a GitHub client for a repository target
            notifications: Bus receiving status and task updates
        """
        self.task_store = task_store
        self.workspace_lock = workspace_lock
        self.git_ops = git_ops
        self.generator = generator
        self.github_factory = github_factory
        self.notifications = notifications

    @property
    def work_dir(self) -> Path:
        return self.git_ops.work_dir

    def submit(self, instruction: str, requested_by: str, channel: str, target: RepositoryTarget) -> Task:
        """
        Create a pending task.

        Args:
            instruction: Natural-language instruction
            requested_by: Chat user ID
            channel: Channel that receives notifications
            target: Confirmed repository target

        Returns:
            The stored pending task
        """
        if not instruction or not instruction.strip():
            raise ValueError("instruction is required")

        task = Task(
            id=generate_task_id(),
            description=instruction.strip(),
            type=determine_task_type(instruction),
            requested_by=requested_by,
            channel=channel,
            target=target,
        )
        self.task_store.add_task(task)
        print(f"Task {task.id} created ({task.type.value}) for {target.full_name}")
        return task

    def run(self, task_id: str) -> Task:
        """
        Run a pending task to completion or failure.

        The whole git sequence runs while holding the workspace lock. The
        final task state is published once, after the lock is released.

        Args:
            task_id: ID of a pending task

        Returns:
            The task in its terminal state
        """
        task = self.task_store.get_task(task_id)
        if task is None:
            raise KeyError(f"Task {task_id} not found")

        with self.workspace_lock.hold():
            self._run_pipeline(task)

        self.notifications.post_task_update(task.channel, task)
        return task

    def execute_task(self, instruction: str, requested_by: str, channel: str, target: RepositoryTarget) -> Task:
        """Submit and run a task synchronously."""
        task = self.submit(instruction, requested_by, channel, target)
        return self.run(task.id)

    def _run_pipeline(self, task: Task) -> None:
        self.task_store.update_task(task.id, status=TaskStatus.IN_PROGRESS)
        self.notifications.post_status(
            task.channel,
            f"Working on: \"{summarize_instruction(task.description)}\" in {task.target.full_name}",
        )

        print("=" * 60)
        print(f"ShipIt: Starting task {task.id}")
        print("=" * 60)

        try:
            print(f"\n[1/{self.STEPS}] Creating branch...")
            self._create_branch(task)

            print(f"\n[2/{self.STEPS}] Generating code...")
            result = self._generate(task)

            print(f"\n[3/{self.STEPS}] Applying {len(result.files)} file change(s)...")
            files_changed = apply_changes(self.work_dir, result.files)

            print(f"\n[4/{self.STEPS}] Committing and pushing...")
            self._commit_and_push(task)

            print(f"\n[5/{self.STEPS}] Creating pull request...")
            pr_url = self._create_pr(task, result, files_changed)

            self.task_store.update_task(task.id, status=TaskStatus.COMPLETED, pull_request_url=pr_url)
            print(f"\n[6/{self.STEPS}] Task {task.id} completed: {pr_url}")

        except Exception as e:
            print(f"\nERROR: Task {task.id} failed: {e}")
            self.task_store.update_task(task.id, status=TaskStatus.FAILED, error=str(e))

    def _create_branch(self, task: Task) -> None:
        base = task.target.base_branch
        self.git_ops.ensure_repository(task.target.clone_url)
        self.git_ops.fetch()
        self.git_ops.checkout(base)
        self.git_ops.pull(base)

        branch_name = generate_branch_name(task.description)
        self.git_ops.create_branch(branch_name, f"origin/{base}")
        self.task_store.update_task(task.id, branch=branch_name)

    def _generate(self, task: Task) -> CodeGenerationResult:
        context = (
            f"Repository: {task.target.full_name}\n"
            f"Base branch: {task.target.base_branch}\n"
            f"Working branch: {task.branch}"
        )
        request = CodeGenerationRequest(
            instruction=task.description,
            task_type=task.type,
            context=context,
            files=self.git_ops.list_files(limit=MAX_CONTEXT_FILES),
        )
        result = self.generator.generate(request)

        if not result.success:
            raise RuntimeError(f"Code generation failed: {result.error or 'unknown error'}")
        if not result.files:
            raise RuntimeError(NO_CHANGES_ERROR)
        return result

    def _commit_and_push(self, task: Task) -> None:
        self.git_ops.stage_all()
        if not self.git_ops.has_staged_changes():
            raise RuntimeError("Generated changes are identical to the base branch; nothing to commit")

        prefix = COMMIT_PREFIXES[task.type]
        message = (
            f"{prefix}: {summarize_instruction(task.description)}\n\n"
            f"{task.description}\n\n"
            f"Requested by {task.requested_by} (ShipIt task {task.id})"
        )
        self.git_ops.commit(message)
        self.git_ops.push(task.branch)

    def _create_pr(self, task: Task, result: CodeGenerationResult, files_changed: List[str]) -> str:
        github = self.github_factory(task.target)
        return github.create_pull_request(
            title=generate_pr_title(task),
            body=generate_pr_body(task, explanation=result.explanation, files_changed=files_changed),
            head=task.branch,
            base=task.target.base_branch,
        )
