"""Reclaim remote branches that are fully merged into the base branch."""

from shipit.core.github_pr import DEFAULT_PAGE_SIZE, GitHubClient
from shipit.core.models import CleanupResult


class BranchReconciler:
    """
    Delete remote branches whose tip is identical to the base branch.

    A branch counts as fully merged only when the comparison against base
    reports zero commits ahead and zero behind. Work is remote-only, so the
    workspace lock is never taken.
    """

    def __init__(self, github: GitHubClient, base_branch: str, page_size: int = DEFAULT_PAGE_SIZE):
        """
        Initialize the reconciler.

        Args:
            github: Client bound to the repository to clean
            base_branch: Branch other branches are compared against
            page_size: Branch listing page size
        """
        self.github = github
        self.base_branch = base_branch
        self.page_size = page_size

    @staticmethod
    def is_fully_merged(comparison: dict) -> bool:
        return comparison["ahead_by"] == 0 and comparison["behind_by"] == 0

    def reconcile(self) -> CleanupResult:
        """
        Scan all branches once and delete the fully merged ones.

        Failures for a single branch are recorded and the scan moves on.

        Returns:
            CleanupResult with deleted branch names and error messages
        """
        result = CleanupResult()

        try:
            branches = self.github.list_branches(per_page=self.page_size)
        except Exception as e:
            print(f"ERROR: Failed to list branches: {e}")
            result.errors.append(f"Failed to list branches: {e}")
            return result

        candidates = [name for name in branches if name != self.base_branch]
        print(f"Checking {len(candidates)} branch(es) against {self.base_branch}...")

        for branch in candidates:
            try:
                comparison = self.github.compare(self.base_branch, branch)
                if not self.is_fully_merged(comparison):
                    continue

                self.github.delete_branch(branch)
                result.deleted_branches.append(branch)
                print(f"Deleted merged branch: {branch}")
            except Exception as e:
                print(f"ERROR: Failed to reconcile branch {branch}: {e}")
                result.errors.append(f"{branch}: {e}")

        return result


def format_summary(result: CleanupResult) -> str:
    """
    Render a cleanup result as a chat message.

    Args:
        result: Reconciliation outcome

    Returns:
        Slack mrkdwn text
    """
    if result.deleted_branches:
        lines = [f":broom: Deleted {len(result.deleted_branches)} merged branch(es):"]
        lines += [f"- `{name}`" for name in result.deleted_branches]
    else:
        lines = [":broom: No merged branches to delete."]

    if result.errors:
        lines.append("")
        lines.append(f":warning: {len(result.errors)} error(s):")
        lines += [f"- {error}" for error in result.errors]

    return "\n".join(lines)
