import pytest
import requests

from shipit.core.github_pr import GitHubClient, generate_pr_body, generate_pr_title
from shipit.core.models import Task, TaskType


class FakeResponse:
    def __init__(self, status_code, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(responses):
    session = FakeSession(responses)
    return GitHubClient(token="ghp_x", owner="acme", repo="app", session=session), session


def test_create_pull_request_returns_html_url():
    client, session = _client([FakeResponse(201, {"html_url": "https://github.com/acme/app/pull/7"})])

    url = client.create_pull_request("Title", "Body", head="ai-task/x-1", base="main")

    assert url == "https://github.com/acme/app/pull/7"
    method, endpoint, kwargs = session.calls[0]
    assert method == "POST"
    assert endpoint == "https://api.github.com/repos/acme/app/pulls"
    assert kwargs["json"] == {"title": "Title", "body": "Body", "head": "ai-task/x-1", "base": "main"}
    assert kwargs["headers"]["Authorization"] == "Bearer ghp_x"


def test_create_pull_request_error_includes_validation_details():
    client, _ = _client([FakeResponse(422, {
        "message": "Validation Failed",
        "errors": [{"message": "A pull request already exists"}],
    })])

    with pytest.raises(RuntimeError, match="A pull request already exists"):
        client.create_pull_request("T", "B", head="h", base="main")


def test_list_branches_follows_pages():
    client, session = _client([
        FakeResponse(200, [{"name": "main"}, {"name": "a"}]),
        FakeResponse(200, [{"name": "b"}]),
    ])

    assert client.list_branches(per_page=2) == ["main", "a", "b"]
    assert session.calls[0][2]["params"] == {"per_page": 2, "page": 1}
    assert session.calls[1][2]["params"] == {"per_page": 2, "page": 2}


def test_compare_and_delete():
    client, session = _client([
        FakeResponse(200, {"ahead_by": 0, "behind_by": 4, "status": "behind"}),
        FakeResponse(204),
    ])

    assert client.compare("main", "ai-task/x-1") == {"ahead_by": 0, "behind_by": 4}
    client.delete_branch("ai-task/x-1")

    assert session.calls[0][1].endswith("/compare/main...ai-task%2Fx-1")
    assert session.calls[1][0] == "DELETE"
    assert session.calls[1][1].endswith("/git/refs/heads/ai-task/x-1")


def test_delete_failure_raises():
    client, _ = _client([FakeResponse(422, {"message": "Reference does not exist"})])

    with pytest.raises(RuntimeError, match="Reference does not exist"):
        client.delete_branch("gone")


def test_network_errors_become_runtime_errors():
    client, _ = _client([requests.ConnectionError("connection refused")])

    with pytest.raises(RuntimeError, match="connection refused"):
        client.list_branches()


def test_pr_title_and_body(default_target):
    task = Task(
        id="task-1",
        description="Fix the bug in login\n\nUsers with + in their email cannot sign in.",
        type=TaskType.BUG_FIX,
        requested_by="U123",
        channel="C1",
        target=default_target,
    )

    assert generate_pr_title(task) == "Fix the bug in login"

    body = generate_pr_body(task, explanation="Escaped the email.", files_changed=["modify src/login.py"])
    assert "Users with + in their email" in body
    assert "**Type:** bug_fix" in body
    assert "Escaped the email." in body
    assert "modify src/login.py" in body
