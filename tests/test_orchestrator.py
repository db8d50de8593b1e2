import re
import subprocess
import threading

import pytest

from shipit.core.git_ops import GitOps
from shipit.core.models import CodeGenerationResult, FileChange, TaskStatus, TaskType
from shipit.core.notifications import StatusMessage, TaskUpdate
from shipit.core.orchestrator import NO_CHANGES_ERROR, apply_changes, resolve_workspace_path
from shipit.core.task_store import TaskStore
from shipit.core.workspace import WorkspaceLock

from conftest import FakeGenerator, FakeGitOps


def test_end_to_end_success(make_orchestrator, default_target, github, notifications, tmp_path):
    git_ops = FakeGitOps(tmp_path / "workspace")
    orchestrator = make_orchestrator(git_ops=git_ops)

    task = orchestrator.execute_task("Fix the bug in login", "U123", "C1", default_target)

    assert task.type == TaskType.BUG_FIX
    assert task.status == TaskStatus.COMPLETED
    assert re.fullmatch(r"ai-task/fix-the-bug-in-login-\d+", task.branch)
    assert task.pull_request_url == "https://github.com/acme/app/pull/1"
    assert task.error is None
    assert task.completed_at is not None

    assert (tmp_path / "workspace" / "src" / "login.py").read_text() == "def login():\n    return True\n"

    steps = [event[1] for event in git_ops.events]
    assert steps == [
        "ensure_repository", "fetch", "checkout", "pull", "create_branch",
        "list_files", "stage_all", "commit", "push",
    ]
    assert git_ops.events[4][2:] == (task.branch, "origin/main")
    assert git_ops.commits[0].startswith("fix: Fix the bug in login")
    assert git_ops.pushed == [task.branch]

    pr = github.pull_requests[0]
    assert pr["head"] == task.branch
    assert pr["base"] == "main"
    assert pr["title"] == "Fix the bug in login"
    assert "Fixed the login check." in pr["body"]
    assert "src/login.py" in pr["body"]

    updates = [n for n in notifications.received if isinstance(n, TaskUpdate)]
    assert len(updates) == 1
    assert updates[0].channel == "C1"
    assert updates[0].task is task
    assert isinstance(notifications.received[0], StatusMessage)


def test_generation_without_files_fails_task(make_orchestrator, default_target, github, notifications):
    generator = FakeGenerator(CodeGenerationResult(success=True, explanation="Looks fine already."))
    orchestrator = make_orchestrator(generator=generator)

    task = orchestrator.execute_task("Add a profile page", "U1", "C1", default_target)

    assert task.status == TaskStatus.FAILED
    assert task.error == NO_CHANGES_ERROR
    assert task.pull_request_url is None
    assert task.completed_at is not None
    assert github.pull_requests == []
    assert len([n for n in notifications.received if isinstance(n, TaskUpdate)]) == 1


def test_generation_with_empty_file_list_fails_task(make_orchestrator, default_target):
    generator = FakeGenerator(CodeGenerationResult(success=True, files=[]))
    task = make_orchestrator(generator=generator).execute_task("Add a page", "U1", "C1", default_target)

    assert task.status == TaskStatus.FAILED
    assert "no actionable" in task.error


def test_generation_error_is_recorded(make_orchestrator, default_target):
    generator = FakeGenerator(CodeGenerationResult(success=False, error="rate limited"))
    task = make_orchestrator(generator=generator).execute_task("Add a page", "U1", "C1", default_target)

    assert task.status == TaskStatus.FAILED
    assert "rate limited" in task.error


@pytest.mark.parametrize("step", ["ensure_repository", "fetch", "checkout", "pull", "create_branch"])
def test_branch_creation_failure_is_fatal(make_orchestrator, default_target, tmp_path, step):
    git_ops = FakeGitOps(tmp_path / "workspace", fail_on=step)
    generator = FakeGenerator()
    task = make_orchestrator(git_ops=git_ops, generator=generator).execute_task(
        "Add a page", "U1", "C1", default_target
    )

    assert task.status == TaskStatus.FAILED
    assert "simulated failure" in task.error
    assert generator.requests == []


@pytest.mark.parametrize("step", ["commit", "push"])
def test_commit_or_push_failure_is_fatal(make_orchestrator, default_target, github, tmp_path, step):
    git_ops = FakeGitOps(tmp_path / "workspace", fail_on=step)
    task = make_orchestrator(git_ops=git_ops).execute_task("Add a page", "U1", "C1", default_target)

    assert task.status == TaskStatus.FAILED
    assert task.branch is not None
    assert github.pull_requests == []


def test_unchanged_files_fail_instead_of_empty_commit(make_orchestrator, default_target, tmp_path):
    git_ops = FakeGitOps(tmp_path / "workspace")
    git_ops.staged = False
    task = make_orchestrator(git_ops=git_ops).execute_task("Add a page", "U1", "C1", default_target)

    assert task.status == TaskStatus.FAILED
    assert "nothing to commit" in task.error
    assert git_ops.commits == []


def test_pull_request_failure_is_recorded(make_orchestrator, default_target, github):
    def fail(**kwargs):
        raise RuntimeError("Failed to create pull request: Validation Failed (status 422)")

    github.create_pull_request = fail
    task = make_orchestrator().execute_task("Add a page", "U1", "C1", default_target)

    assert task.status == TaskStatus.FAILED
    assert "Validation Failed" in task.error


def test_path_escape_aborts_task(make_orchestrator, default_target, tmp_path):
    generator = FakeGenerator(CodeGenerationResult(
        success=True,
        files=[
            FileChange(path="ok.txt", content="fine", action="create"),
            FileChange(path="../outside.txt", content="nope", action="create"),
        ],
    ))
    git_ops = FakeGitOps(tmp_path / "workspace")
    task = make_orchestrator(git_ops=git_ops, generator=generator).execute_task(
        "Add files", "U1", "C1", default_target
    )

    assert task.status == TaskStatus.FAILED
    assert "outside the workspace" in task.error
    assert not (tmp_path / "outside.txt").exists()
    assert "commit" not in [event[1] for event in git_ops.events]


def test_apply_changes_in_order(tmp_path):
    (tmp_path / "old.txt").write_text("bye")

    applied = apply_changes(tmp_path, [
        FileChange(path="pkg/new.py", content="x = 1\n", action="create"),
        FileChange(path="pkg/new.py", content="x = 2\n", action="modify"),
        FileChange(path="old.txt", action="delete"),
        FileChange(path="never-existed.txt", action="delete"),
    ])

    assert (tmp_path / "pkg" / "new.py").read_text() == "x = 2\n"
    assert not (tmp_path / "old.txt").exists()
    assert len(applied) == 4


@pytest.mark.parametrize("path", ["/etc/passwd", "../x", "a/../../x", ".git/config"])
def test_resolve_workspace_path_rejects_unsafe_paths(tmp_path, path):
    with pytest.raises(ValueError):
        resolve_workspace_path(tmp_path, path)


def test_run_rejects_task_that_already_ran(make_orchestrator, default_target):
    orchestrator = make_orchestrator()
    task = orchestrator.execute_task("Add a page", "U1", "C1", default_target)

    with pytest.raises(ValueError):
        orchestrator.run(task.id)
    assert not orchestrator.workspace_lock.locked


def test_concurrent_tasks_never_interleave(tmp_path, make_orchestrator, default_target):
    events = []
    git_ops = FakeGitOps(tmp_path / "workspace", events=events)
    generator = FakeGenerator(delay=0.05)
    orchestrator = make_orchestrator(
        git_ops=git_ops,
        generator=generator,
        task_store=TaskStore(),
        workspace_lock=WorkspaceLock(),
    )

    first = orchestrator.submit("Add feature one", "U1", "C1", default_target)
    second = orchestrator.submit("Add feature two", "U2", "C2", default_target)

    threads = [
        threading.Thread(target=orchestrator.run, args=(first.id,), name="T1"),
        threading.Thread(target=orchestrator.run, args=(second.id,), name="T2"),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    owners = [event[0] for event in events]
    switches = sum(1 for a, b in zip(owners, owners[1:]) if a != b)
    assert switches == 1
    assert owners.count("T1") == owners.count("T2") == 9
    assert first.status == TaskStatus.COMPLETED
    assert second.status == TaskStatus.COMPLETED
    assert first.branch != second.branch


def test_failing_task_does_not_block_the_next(tmp_path, make_orchestrator, default_target):
    git_ops = FakeGitOps(tmp_path / "workspace", fail_on="push")
    orchestrator = make_orchestrator(git_ops=git_ops)

    failed = orchestrator.execute_task("Add a page", "U1", "C1", default_target)
    git_ops.fail_on = None
    succeeded = orchestrator.execute_task("Add another page", "U1", "C1", default_target)

    assert failed.status == TaskStatus.FAILED
    assert succeeded.status == TaskStatus.COMPLETED


def test_submit_rejects_blank_instruction(make_orchestrator, default_target):
    with pytest.raises(ValueError):
        make_orchestrator().submit("   ", "U1", "C1", default_target)


class _TimingOutFetch(FakeGitOps):
    """Routes fetch through a real GitOps whose git subprocess exceeds its deadline."""

    def __init__(self, work_dir, git_ops):
        super().__init__(work_dir)
        self.git_ops = git_ops
        self.timeouts = 1

    def fetch(self):
        if self.timeouts:
            self.timeouts -= 1
            self.git_ops.fetch()
        super().fetch()


def test_timed_out_step_fails_task_and_releases_workspace(
    tmp_path, make_orchestrator, default_target, monkeypatch
):
    def fake_run(cmd, **kwargs):
        if cmd[1] == "fetch":
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
        return subprocess.CompletedProcess(cmd, 0, stdout="/srv/git/app.git\n", stderr="")

    monkeypatch.setattr("shipit.core.git_ops.subprocess.run", fake_run)
    git_ops = _TimingOutFetch(tmp_path / "workspace", GitOps(tmp_path / "workspace", timeout=5))
    orchestrator = make_orchestrator(git_ops=git_ops)

    timed_out = orchestrator.execute_task("Add a page", "U1", "C1", default_target)

    assert timed_out.status == TaskStatus.FAILED
    assert timed_out.error == "git fetch timed out after 5s"
    assert not orchestrator.workspace_lock.locked

    succeeded = orchestrator.execute_task("Add another page", "U1", "C1", default_target)
    assert succeeded.status == TaskStatus.COMPLETED
