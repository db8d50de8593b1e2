"""Git operations against the shared local workspace."""

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from shipit.core.utils import get_git_env


class GitOps:
    """Git operations for shipit, driven through the git CLI."""

    def __init__(
        self,
        work_dir: Path,
        token: Optional[str] = None,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize git operations.

        Args:
            work_dir: Working directory holding (or receiving) the clone
            token: Optional GitHub token used for fetch/pull/push over HTTPS
            author_name: Git author and committer name
            author_email: Git author and committer email
            timeout: Optional per-command timeout in seconds
        """
        self.work_dir = Path(work_dir)
        self.token = token
        self.author_name = author_name
        self.author_email = author_email
        self.timeout = timeout

    def _get_git_env(self) -> dict:
        return get_git_env(author_name=self.author_name, author_email=self.author_email)

    def _run(self, args: List[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=cwd or self.work_dir,
                capture_output=True,
                text=True,
                env=self._get_git_env(),
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise RuntimeError(f"git {args[0]} timed out after {self.timeout}s")

    def _git(self, args: List[str], action: str, cwd: Optional[Path] = None) -> str:
        """
        Run a git command and fail loudly.

        Args:
            args: Arguments after "git"
            action: Human-readable description used in the error message
            cwd: Directory to run in (defaults to the workspace)

        Returns:
            Stripped stdout

        Raises:
            RuntimeError: If git exits non-zero or times out
        """
        result = self._run(args, cwd=cwd)
        if result.returncode != 0:
            raise RuntimeError(f"Failed to {action}: {result.stderr.strip() or result.stdout.strip()}")
        return result.stdout.strip()

    def _create_authenticated_url(self, repository_url: str) -> str:
        """
        Create authenticated URL for GitHub repository.

        Args:
            repository_url: Original repository URL

        Returns:
            Authenticated URL with embedded token
        """
        parsed = urlparse(repository_url)
        if not self.token or parsed.scheme != "https" or not parsed.netloc:
            return repository_url

        return f"https://x-access-token:{self.token}@{parsed.netloc}{parsed.path}"

    def _redact(self, text: str) -> str:
        if self.token:
            return text.replace(self.token, "***")
        return text

    def is_repository(self) -> bool:
        """Check whether the workspace already holds a clone."""
        return (self.work_dir / ".git").exists()

    def get_remote_url(self) -> Optional[str]:
        result = self._run(["remote", "get-url", "origin"])
        if result.returncode == 0:
            return result.stdout.strip()
        return None

    def _set_remote_url(self, url: str) -> None:
        self._git(["remote", "set-url", "origin", url], "set remote URL")

    def _with_authenticated_remote(self, args: List[str], action: str) -> str:
        """Run a networked git command with the token-bearing remote, then restore the clean URL."""
        original_url = self.get_remote_url()
        auth_url = self._create_authenticated_url(original_url) if original_url else None
        if auth_url and auth_url != original_url:
            self._set_remote_url(auth_url)
        try:
            return self._git(args, action)
        except RuntimeError as e:
            raise RuntimeError(self._redact(str(e)))
        finally:
            if auth_url and auth_url != original_url:
                self._set_remote_url(original_url)

    def clone(self, repository_url: str) -> None:
        """
        Clone the repository into the workspace directory.

        Args:
            repository_url: HTTPS clone URL without credentials
        """
        self.work_dir.parent.mkdir(parents=True, exist_ok=True)
        print(f"Cloning repository: {repository_url}")
        try:
            self._git(
                ["clone", self._create_authenticated_url(repository_url), str(self.work_dir)],
                "clone repository",
                cwd=self.work_dir.parent,
            )
        except RuntimeError as e:
            raise RuntimeError(self._redact(str(e)))
        self._set_remote_url(repository_url)
        print(f"Repository cloned into {self.work_dir}")

    def ensure_repository(self, repository_url: str) -> None:
        """
        Make sure the workspace holds a clone of repository_url.

        An existing clone of the same repository is reused after discarding
        leftovers from a previous task. A clone of a different repository
        is removed and replaced.

        Args:
            repository_url: HTTPS clone URL without credentials
        """
        if self.is_repository():
            current = self.get_remote_url()
            if current == repository_url:
                self.discard_changes()
                return
            print(f"Workspace holds {current}, switching to {repository_url}")
            shutil.rmtree(self.work_dir)
        elif self.work_dir.exists() and any(self.work_dir.iterdir()):
            raise RuntimeError(f"Workspace {self.work_dir} exists and is not a git repository")
        self.clone(repository_url)

    def discard_changes(self) -> None:
        """Drop uncommitted and untracked files left in the workspace."""
        self._git(["reset", "--hard"], "reset workspace")
        self._git(["clean", "-fd"], "clean workspace")

    def fetch(self) -> None:
        print("Fetching latest changes from remote...")
        self._with_authenticated_remote(["fetch", "origin", "--prune"], "fetch from remote")

    def checkout(self, branch_name: str) -> None:
        self._git(["checkout", branch_name], f"checkout {branch_name}")

    def pull(self, branch_name: str) -> None:
        print(f"Pulling latest changes from branch: {branch_name}")
        self._with_authenticated_remote(["pull", "--ff-only", "origin", branch_name], f"pull {branch_name}")

    def create_branch(self, branch_name: str, from_ref: str) -> None:
        """
        Create and check out a new branch.

        Args:
            branch_name: New branch name
            from_ref: Ref to start from (e.g. origin/main)
        """
        self._git(["checkout", "-b", branch_name, from_ref], f"create branch {branch_name}")
        print(f"Created branch: {branch_name}")

    def stage_all(self) -> None:
        self._git(["add", "-A"], "stage changes")

    def has_staged_changes(self) -> bool:
        result = self._run(["diff", "--cached", "--quiet"])
        return result.returncode == 1

    def commit(self, message: str) -> None:
        """
        Commit staged changes with the given message.

        Args:
            message: Commit message
        """
        self._git(["commit", "-m", message], "commit")
        print(f"Committed changes: {message}")

    def push(self, branch_name: str, remote: str = "origin") -> None:
        """
        Push the branch to the remote.

        Args:
            branch_name: Name of the branch to push
            remote: Remote name
        """
        self._with_authenticated_remote(["push", "-u", remote, branch_name], "push branch")
        print(f"Pushed branch {branch_name} to {remote}")

    def list_files(self, limit: int = 200) -> List[str]:
        """
        List tracked files in the workspace.

        Args:
            limit: Maximum number of paths to return

        Returns:
            Relative paths of tracked files
        """
        output = self._git(["ls-files"], "list files")
        files = [line for line in output.splitlines() if line]
        return files[:limit]

    def get_current_branch(self) -> Optional[str]:
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        if result.returncode == 0:
            return result.stdout.strip()
        return None
