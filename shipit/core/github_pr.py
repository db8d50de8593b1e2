"""GitHub REST API client for pull requests and branch maintenance."""

from typing import Dict, List, Optional
from urllib.parse import quote

import requests

from shipit.core.models import RepositoryTarget, Task
from shipit.core.utils import summarize_instruction

DEFAULT_PAGE_SIZE = 100


class GitHubClient:
    """Pull requests, branches and refs for one repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_url: str = "https://api.github.com",
        timeout: Optional[float] = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub token with repo scope
            owner: Repository owner
            repo: Repository name
            api_url: GitHub API base URL
            timeout: Request timeout in seconds
            session: Optional requests session (shared connection pool)
        """
        self.token = token
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def for_target(cls, target: RepositoryTarget, **kwargs) -> "GitHubClient":
        return cls(owner=target.owner, repo=target.repo, **kwargs)

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _build_api_url(self, endpoint: str) -> str:
        """
        Build full API URL for a repository endpoint.

        Args:
            endpoint: Path below /repos/{owner}/{repo}

        Returns:
            Full API URL
        """
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/{endpoint.lstrip('/')}"

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method,
                self._build_api_url(endpoint),
                headers=self.headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise RuntimeError(f"GitHub request {method} {endpoint} failed: {e}")

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            error_data = response.json()
        except ValueError:
            return response.text or "Unknown error"

        message = error_data.get("message", "Unknown error")
        if "errors" in error_data:
            details = "; ".join(str(err.get("message", err)) if isinstance(err, dict) else str(err)
                                for err in error_data["errors"])
            message = f"{message} ({details})"
        return message

    def create_pull_request(self, title: str, body: str, head: str, base: str) -> str:
        """
        Create a pull request on GitHub.

        Args:
            title: PR title
            body: PR body/description
            head: Branch name to create PR from
            base: Base branch

        Returns:
            Pull request HTML URL
        """
        data = {
            "title": title,
            "body": body,
            "head": head,
            "base": base,
        }

        print(f"Creating pull request: {title}")
        print(f"  From branch: {head}")
        print(f"  To branch: {base}")
        print(f"  Repository: {self.owner}/{self.repo}")

        response = self._request("POST", "pulls", json=data)

        if response.status_code != 201:
            raise RuntimeError(
                f"Failed to create pull request: {self._error_message(response)} "
                f"(status {response.status_code})"
            )

        pr_url = response.json()["html_url"]
        print(f"Created pull request: {pr_url}")
        return pr_url

    def list_branches(self, per_page: int = DEFAULT_PAGE_SIZE) -> List[str]:
        """
        List all branch names, following pagination.

        Args:
            per_page: Page size (GitHub caps this at 100)

        Returns:
            Branch names
        """
        per_page = max(1, min(per_page, DEFAULT_PAGE_SIZE))
        branches: List[str] = []
        page = 1

        while True:
            response = self._request("GET", "branches", params={"per_page": per_page, "page": page})
            if response.status_code != 200:
                raise RuntimeError(
                    f"Failed to list branches: {self._error_message(response)} "
                    f"(status {response.status_code})"
                )

            batch = response.json()
            branches.extend(branch["name"] for branch in batch)

            if len(batch) < per_page:
                break
            page += 1

        return branches

    def compare(self, base: str, head: str) -> Dict[str, int]:
        """
        Compare two refs.

        Args:
            base: Base ref
            head: Head ref

        Returns:
            Dictionary with ahead_by and behind_by commit counts
        """
        endpoint = f"compare/{quote(base, safe='')}...{quote(head, safe='')}"
        response = self._request("GET", endpoint)

        if response.status_code != 200:
            raise RuntimeError(
                f"Failed to compare {base}...{head}: {self._error_message(response)} "
                f"(status {response.status_code})"
            )

        data = response.json()
        return {
            "ahead_by": int(data.get("ahead_by", 0)),
            "behind_by": int(data.get("behind_by", 0)),
        }

    def delete_branch(self, branch_name: str) -> None:
        """
        Delete a branch ref on the remote.

        Args:
            branch_name: Branch to delete
        """
        response = self._request("DELETE", f"git/refs/heads/{quote(branch_name, safe='/')}")

        if response.status_code != 204:
            raise RuntimeError(
                f"Failed to delete branch {branch_name}: {self._error_message(response)} "
                f"(status {response.status_code})"
            )


def generate_pr_title(task: Task) -> str:
    """
    Generate a PR title from the task.

    Args:
        task: Task being delivered

    Returns:
        PR title
    """
    return summarize_instruction(task.description, max_length=100)


def generate_pr_body(
    task: Task,
    explanation: Optional[str] = None,
    files_changed: Optional[List[str]] = None,
) -> str:
    """
    Generate a PR body from the task.

    Args:
        task: Task being delivered
        explanation: Optional explanation returned by code generation
        files_changed: Optional list of "<action> <path>" lines

    Returns:
        PR body text
    """
    body_parts = [
        "## Task Description",
        "",
        task.description.strip(),
        "",
        f"**Type:** {task.type.value}",
        f"**Requested by:** {task.requested_by}",
        f"**Task ID:** {task.id}",
        "",
    ]

    if explanation and explanation.strip():
        body_parts += ["## Changes Made", "", explanation.strip(), ""]

    if files_changed:
        body_parts += ["## Files Changed", "", "```", *files_changed, "```", ""]

    body_parts.append("---")
    body_parts.append("*This PR was automatically generated by ShipIt.*")

    return "\n".join(body_parts)
