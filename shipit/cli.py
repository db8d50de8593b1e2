"""CLI interface for shipit."""

import os
import sys

import click
from dotenv import load_dotenv

from shipit import __version__
from shipit.core.config import REQUIRED_CHAT_VARS, REQUIRED_CORE_VARS, ConfigError, load_config
from shipit.core.models import TaskStatus
from shipit.core.notifications import StatusMessage, TaskUpdate, format_task_update
from shipit.core.parser import TaskRequest, parse_task_request_file
from shipit.core.reconciler import format_summary
from shipit.core.utils import mask_secret
from shipit.server.app import serve

OPTIONAL_VARS = {
    "ANTHROPIC_MODEL": "claude-sonnet-4-5 (default)",
    "GITHUB_API_URL": "https://api.github.com (default)",
    "WORKING_DIRECTORY": "./workspace (default)",
    "DEFAULT_BRANCH": "main (default)",
    "SHIPIT_PROPOSAL_TTL": "1800 (default)",
    "SHIPIT_SWEEP_INTERVAL": "300 (default)",
    "SHIPIT_STEP_TIMEOUT": "600 (default)",
    "SHIPIT_GIT_AUTHOR_NAME": "ShipIt (default)",
    "SHIPIT_GIT_AUTHOR_EMAIL": "shipit@users.noreply.github.com (default)",
    "SHIPIT_API_KEYS": "(none)",
    "SHIPIT_MAX_WORKERS": "1 (default)",
}


def _load_config_or_exit(require_chat: bool):
    try:
        return load_config(require_chat=require_chat)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _echo_notification(notification) -> None:
    if isinstance(notification, TaskUpdate):
        click.echo("\n" + format_task_update(notification.task))
    elif isinstance(notification, StatusMessage):
        click.echo(notification.text)


@click.group()
@click.version_option(__version__, prog_name="shipit")
def main() -> None:
    """
    ShipIt - turn chat instructions into GitHub pull requests.
    """


main.add_command(serve)


@main.command(name="run")
@click.option("--instruction", "-i", type=str, help="Instruction to execute")
@click.option(
    "--task-file",
    type=click.Path(exists=True),
    help="Path to a task file (JSON or YAML) with instruction and optional owner/repo/base_branch",
)
@click.option("--owner", type=str, default=None, help="Repository owner (defaults to GITHUB_OWNER)")
@click.option("--repo", type=str, default=None, help="Repository name (defaults to GITHUB_REPO)")
@click.option("--base-branch", type=str, default=None, help="Base branch (defaults to DEFAULT_BRANCH)")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
def run_task(
    instruction: str,
    task_file: str,
    owner: str,
    repo: str,
    base_branch: str,
    verbose: bool,
) -> None:
    """
    Run a single instruction end to end without Slack.

    Example:
        shipit run -i "Fix the bug in login"

    Example task file (YAML):
        instruction: Add input validation to the signup form
        owner: acme
        repo: app
        base_branch: develop
    """
    try:
        if instruction:
            request = TaskRequest(instruction=instruction, owner=owner, repo=repo, base_branch=base_branch)
        elif task_file:
            request = parse_task_request_file(task_file)
        else:
            click.echo("Error: Either --instruction or --task-file must be provided", err=True)
            sys.exit(1)
    except (ValueError, FileNotFoundError) as e:
        click.echo(f"Error parsing task: {e}", err=True)
        sys.exit(1)

    config = _load_config_or_exit(require_chat=False)

    from shipit.core.services import build_services

    services = build_services(config)
    services.notifications.subscribe(_echo_notification)
    target = request.resolve_target(services.default_target)

    try:
        task = services.orchestrator.execute_task(
            instruction=request.instruction,
            requested_by=request.requested_by,
            channel="cli",
            target=target,
        )
    except KeyboardInterrupt:
        click.echo("\n\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        if verbose:
            import traceback
            click.echo("\nError details:", err=True)
            traceback.print_exc()
        click.echo(f"\nError: {e}", err=True)
        sys.exit(1)

    if task.status != TaskStatus.COMPLETED:
        sys.exit(1)


@main.command(name="cleanup-branches")
@click.option("--owner", type=str, default=None, help="Repository owner (defaults to GITHUB_OWNER)")
@click.option("--repo", type=str, default=None, help="Repository name (defaults to GITHUB_REPO)")
@click.option("--base-branch", type=str, default=None, help="Base branch (defaults to DEFAULT_BRANCH)")
def cleanup_branches(owner: str, repo: str, base_branch: str) -> None:
    """
    Delete remote branches whose tip is identical to the base branch.
    """
    config = _load_config_or_exit(require_chat=False)

    from shipit.core.services import build_services

    services = build_services(config)
    target = services.default_target.with_overrides(owner, repo, base_branch)
    result = services.reconciler(target).reconcile()

    click.echo(format_summary(result))
    if result.errors:
        sys.exit(1)


@main.command(name="check-config")
@click.option("--no-chat", is_flag=True, help="Do not require Slack credentials")
def check_config(no_chat: bool) -> None:
    """
    Verify that the required configuration is present.
    """
    load_dotenv()

    click.echo("Checking ShipIt configuration...\n")

    required = list(REQUIRED_CORE_VARS)
    if not no_chat:
        required += REQUIRED_CHAT_VARS

    has_errors = False
    for name in required:
        value = os.getenv(name)
        if not value:
            click.echo(f"  Missing: {name}")
            has_errors = True
        else:
            click.echo(f"  OK: {name}: {mask_secret(value)}")

    click.echo("\nOptional configuration:")
    for name, default in OPTIONAL_VARS.items():
        click.echo(f"  {name}: {os.getenv(name) or default}")

    try:
        load_config(require_chat=not no_chat, dotenv=False)
    except ConfigError as e:
        if not e.missing:
            click.echo(f"\nInvalid value: {e}")
        has_errors = True

    if has_errors:
        click.echo("\nConfiguration incomplete. Please check your .env file.")
        sys.exit(1)

    click.echo("\nAll required configuration is present!")
    click.echo("  Run 'shipit serve' to start ShipIt")


if __name__ == "__main__":
    main()
