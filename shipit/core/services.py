"""Wiring of core components from a resolved Config."""

from dataclasses import dataclass
from typing import Optional

import requests

from shipit.core.config import Config
from shipit.core.generator import CodeGenerator
from shipit.core.git_ops import GitOps
from shipit.core.github_pr import GitHubClient
from shipit.core.models import RepositoryTarget
from shipit.core.notifications import NotificationBus
from shipit.core.orchestrator import TaskOrchestrator
from shipit.core.proposals import ProposalRegistry
from shipit.core.reconciler import BranchReconciler
from shipit.core.task_store import TaskStore
from shipit.core.workspace import WorkspaceLock


@dataclass
class Services:
    """Explicitly owned state and collaborators shared by all entry points."""

    config: Config
    task_store: TaskStore
    proposals: ProposalRegistry
    workspace_lock: WorkspaceLock
    notifications: NotificationBus
    session: requests.Session
    orchestrator: Optional[TaskOrchestrator] = None

    @property
    def default_target(self) -> RepositoryTarget:
        return self.config.default_target

    def github_for(self, target: RepositoryTarget) -> GitHubClient:
        return GitHubClient.for_target(
            target,
            token=self.config.github_token,
            api_url=self.config.github_api_url,
            timeout=self.config.step_timeout,
            session=self.session,
        )

    def reconciler(self, target: Optional[RepositoryTarget] = None) -> BranchReconciler:
        target = target or self.default_target
        return BranchReconciler(self.github_for(target), base_branch=target.base_branch)


def build_services(config: Config, generator=None) -> Services:
    """
    Build the component graph for a configuration.

    Args:
        config: Resolved configuration
        generator: Optional replacement for the Anthropic-backed generator

    Returns:
        Services instance
    """
    session = requests.Session()
    task_store = TaskStore()
    workspace_lock = WorkspaceLock()
    notifications = NotificationBus()

    git_ops = GitOps(
        work_dir=config.working_directory,
        token=config.github_token,
        author_name=config.git_author_name,
        author_email=config.git_author_email,
        timeout=config.step_timeout,
    )

    if generator is None:
        generator = CodeGenerator(
            api_key=config.anthropic_api_key,
            model=config.anthropic_model,
            timeout=config.step_timeout,
        )

    services = Services(
        config=config,
        task_store=task_store,
        proposals=ProposalRegistry(ttl=config.proposal_ttl),
        workspace_lock=workspace_lock,
        notifications=notifications,
        session=session,
    )
    services.orchestrator = TaskOrchestrator(
        task_store=task_store,
        workspace_lock=workspace_lock,
        git_ops=git_ops,
        generator=generator,
        github_factory=services.github_for,
        notifications=notifications,
    )
    return services
