"""Runtime configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from shipit.core.models import RepositoryTarget

DEFAULT_MODEL = "claude-sonnet-4-5"
DEFAULT_API_URL = "https://api.github.com"

REQUIRED_CORE_VARS = [
    "ANTHROPIC_API_KEY",
    "GITHUB_TOKEN",
    "GITHUB_OWNER",
    "GITHUB_REPO",
]

REQUIRED_CHAT_VARS = [
    "SLACK_BOT_TOKEN",
    "SLACK_SIGNING_SECRET",
]


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


@dataclass
class Config:
    """Fully resolved configuration."""

    anthropic_api_key: str
    github_token: str
    github_owner: str
    github_repo: str
    anthropic_model: str = DEFAULT_MODEL
    slack_bot_token: Optional[str] = None
    slack_signing_secret: Optional[str] = None
    github_api_url: str = DEFAULT_API_URL
    working_directory: Path = Path("./workspace")
    default_branch: str = "main"
    proposal_ttl: int = 30 * 60
    sweep_interval: int = 5 * 60
    step_timeout: int = 600
    git_author_name: str = "ShipIt"
    git_author_email: str = "shipit@users.noreply.github.com"

    @property
    def default_target(self) -> RepositoryTarget:
        return RepositoryTarget(
            owner=self.github_owner,
            repo=self.github_repo,
            base_branch=self.default_branch,
        )


def _load_int(name: str, default: int) -> int:
    """Load a positive integer from environment."""
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def missing_variables(require_chat: bool = True) -> List[str]:
    """
    List required environment variables that are unset or empty.

    Args:
        require_chat: Whether Slack credentials are required

    Returns:
        Names of missing variables, in declaration order
    """
    names = list(REQUIRED_CORE_VARS)
    if require_chat:
        names += REQUIRED_CHAT_VARS
    return [name for name in names if not os.getenv(name)]


def load_config(require_chat: bool = True, dotenv: bool = True) -> Config:
    """
    Load configuration from environment (and a .env file).

    Args:
        require_chat: Whether Slack credentials are required. Commands that
                      never talk to Slack (run, cleanup-branches) pass False.
        dotenv: Load a .env file from the working directory first

    Returns:
        Config instance

    Raises:
        ConfigError: If a required variable is missing or a value is invalid
    """
    if dotenv:
        load_dotenv()

    missing = missing_variables(require_chat=require_chat)
    if missing:
        raise ConfigError(
            f"Missing required environment variable(s): {', '.join(missing)}",
            missing=missing,
        )

    return Config(
        anthropic_api_key=os.environ["ANTHROPIC_API_KEY"],
        anthropic_model=os.getenv("ANTHROPIC_MODEL") or DEFAULT_MODEL,
        slack_bot_token=os.getenv("SLACK_BOT_TOKEN"),
        slack_signing_secret=os.getenv("SLACK_SIGNING_SECRET"),
        github_token=os.environ["GITHUB_TOKEN"],
        github_owner=os.environ["GITHUB_OWNER"],
        github_repo=os.environ["GITHUB_REPO"],
        github_api_url=(os.getenv("GITHUB_API_URL") or DEFAULT_API_URL).rstrip("/"),
        working_directory=Path(os.getenv("WORKING_DIRECTORY") or "./workspace"),
        default_branch=os.getenv("DEFAULT_BRANCH") or "main",
        proposal_ttl=_load_int("SHIPIT_PROPOSAL_TTL", 30 * 60),
        sweep_interval=_load_int("SHIPIT_SWEEP_INTERVAL", 5 * 60),
        step_timeout=_load_int("SHIPIT_STEP_TIMEOUT", 600),
        git_author_name=os.getenv("SHIPIT_GIT_AUTHOR_NAME") or "ShipIt",
        git_author_email=os.getenv("SHIPIT_GIT_AUTHOR_EMAIL") or "shipit@users.noreply.github.com",
    )
