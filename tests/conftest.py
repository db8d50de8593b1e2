"""Shared fakes for shipit tests."""

import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from shipit.core.config import Config
from shipit.core.models import CodeGenerationResult, FileChange, RepositoryTarget
from shipit.core.notifications import NotificationBus
from shipit.core.orchestrator import TaskOrchestrator
from shipit.core.task_store import TaskStore
from shipit.core.workspace import WorkspaceLock


class FakeGitOps:
    """Records git calls instead of running git."""

    def __init__(self, work_dir: Path, fail_on: Optional[str] = None, events: Optional[list] = None):
        self.work_dir = work_dir
        self.fail_on = fail_on
        self.events = events if events is not None else []
        self.branches: List[str] = []
        self.commits: List[str] = []
        self.pushed: List[str] = []
        self.staged = True

    def _record(self, name: str, *args) -> None:
        self.events.append((threading.current_thread().name, name) + args)
        if self.fail_on == name:
            raise RuntimeError(f"Failed to {name}: simulated failure")

    def ensure_repository(self, url):
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self._record("ensure_repository", url)

    def fetch(self):
        self._record("fetch")

    def checkout(self, branch):
        self._record("checkout", branch)

    def pull(self, branch):
        self._record("pull", branch)

    def create_branch(self, name, from_ref):
        self._record("create_branch", name, from_ref)
        self.branches.append(name)

    def list_files(self, limit=200):
        self._record("list_files")
        return ["src/login.py"]

    def stage_all(self):
        self._record("stage_all")

    def has_staged_changes(self):
        return self.staged

    def commit(self, message):
        self._record("commit", message)
        self.commits.append(message)

    def push(self, branch):
        self._record("push", branch)
        self.pushed.append(branch)


class FakeGenerator:
    """Returns a canned generation result."""

    def __init__(self, result: Optional[CodeGenerationResult] = None, delay: float = 0.0):
        self.result = result or CodeGenerationResult(
            success=True,
            files=[FileChange(path="src/login.py", content="def login():\n    return True\n", action="modify")],
            explanation="Fixed the login check.",
        )
        self.delay = delay
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.delay:
            time.sleep(self.delay)
        return self.result


class FakeGitHub:
    """In-memory stand-in for GitHubClient."""

    def __init__(
        self,
        branches: Optional[List[str]] = None,
        comparisons: Optional[Dict[str, dict]] = None,
        fail_compare: Optional[set] = None,
        fail_delete: Optional[set] = None,
        fail_list: bool = False,
    ):
        self.branches = branches or []
        self.comparisons = comparisons or {}
        self.fail_compare = fail_compare or set()
        self.fail_delete = fail_delete or set()
        self.fail_list = fail_list
        self.compared: List[tuple] = []
        self.deleted: List[str] = []
        self.pull_requests: List[dict] = []

    def create_pull_request(self, title, body, head, base):
        self.pull_requests.append({"title": title, "body": body, "head": head, "base": base})
        return f"https://github.com/acme/app/pull/{len(self.pull_requests)}"

    def list_branches(self, per_page=100):
        if self.fail_list:
            raise RuntimeError("Failed to list branches: Bad credentials (status 401)")
        return list(self.branches)

    def compare(self, base, head):
        self.compared.append((base, head))
        if head in self.fail_compare:
            raise RuntimeError(f"Failed to compare {base}...{head}: Not Found (status 404)")
        return self.comparisons[head]

    def delete_branch(self, branch_name):
        if branch_name in self.fail_delete:
            raise RuntimeError(f"Failed to delete branch {branch_name}: Reference does not exist (status 422)")
        self.deleted.append(branch_name)


@pytest.fixture
def default_target() -> RepositoryTarget:
    return RepositoryTarget(owner="acme", repo="app", base_branch="main")


@pytest.fixture
def notifications():
    bus = NotificationBus()
    received = []
    bus.subscribe(received.append)
    bus.received = received
    return bus


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def make_orchestrator(tmp_path, notifications, github):
    def _make(git_ops=None, generator=None, task_store=None, workspace_lock=None):
        return TaskOrchestrator(
            task_store=task_store or TaskStore(),
            workspace_lock=workspace_lock or WorkspaceLock(),
            git_ops=git_ops or FakeGitOps(tmp_path / "workspace"),
            generator=generator or FakeGenerator(),
            github_factory=lambda target: github,
            notifications=notifications,
        )

    return _make


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        anthropic_api_key="sk-ant-test",
        github_token="ghp_test",
        github_owner="acme",
        github_repo="app",
        slack_bot_token="xoxb-test",
        slack_signing_secret="signing-secret",
        working_directory=tmp_path / "workspace",
    )
