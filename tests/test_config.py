from pathlib import Path

import pytest

from shipit.core.config import REQUIRED_CHAT_VARS, REQUIRED_CORE_VARS, ConfigError, load_config

OPTIONAL = [
    "ANTHROPIC_MODEL", "GITHUB_API_URL", "WORKING_DIRECTORY", "DEFAULT_BRANCH",
    "SHIPIT_PROPOSAL_TTL", "SHIPIT_SWEEP_INTERVAL", "SHIPIT_STEP_TIMEOUT",
    "SHIPIT_GIT_AUTHOR_NAME", "SHIPIT_GIT_AUTHOR_EMAIL",
]


@pytest.fixture
def env(monkeypatch):
    for name in REQUIRED_CORE_VARS + REQUIRED_CHAT_VARS + OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("GITHUB_OWNER", "acme")
    monkeypatch.setenv("GITHUB_REPO", "app")
    return monkeypatch


def test_defaults(env):
    config = load_config(require_chat=False, dotenv=False)

    assert config.working_directory == Path("./workspace")
    assert config.default_branch == "main"
    assert config.proposal_ttl == 1800
    assert config.sweep_interval == 300
    assert config.step_timeout == 600
    assert config.github_api_url == "https://api.github.com"
    assert config.default_target.full_name == "acme/app"


def test_overrides(env):
    env.setenv("DEFAULT_BRANCH", "develop")
    env.setenv("WORKING_DIRECTORY", "/tmp/shipit")
    env.setenv("GITHUB_API_URL", "https://ghe.example.com/api/v3/")
    env.setenv("SHIPIT_PROPOSAL_TTL", "60")

    config = load_config(require_chat=False, dotenv=False)

    assert config.default_target.base_branch == "develop"
    assert config.working_directory == Path("/tmp/shipit")
    assert config.github_api_url == "https://ghe.example.com/api/v3"
    assert config.proposal_ttl == 60


def test_missing_chat_credentials(env):
    with pytest.raises(ConfigError) as excinfo:
        load_config(require_chat=True, dotenv=False)

    assert excinfo.value.missing == ["SLACK_BOT_TOKEN", "SLACK_SIGNING_SECRET"]

    env.setenv("SLACK_BOT_TOKEN", "xoxb")
    env.setenv("SLACK_SIGNING_SECRET", "secret")
    assert load_config(require_chat=True, dotenv=False).slack_signing_secret == "secret"


def test_missing_core_variable_is_named(env):
    env.delenv("GITHUB_TOKEN")

    with pytest.raises(ConfigError, match="GITHUB_TOKEN"):
        load_config(require_chat=False, dotenv=False)


@pytest.mark.parametrize("value", ["soon", "0", "-5"])
def test_invalid_integers(env, value):
    env.setenv("SHIPIT_STEP_TIMEOUT", value)

    with pytest.raises(ConfigError, match="SHIPIT_STEP_TIMEOUT") as excinfo:
        load_config(require_chat=False, dotenv=False)
    assert excinfo.value.missing == []
