"""Slack adapter: slash commands, @-mentions, interactive confirmation and notifications."""

import hashlib
import hmac
import json
import re
import threading
import time
from typing import Optional

import requests
from flask import Blueprint, current_app, jsonify, request

from shipit.core.models import RepositoryTarget
from shipit.core.notifications import Notification, StatusMessage, TaskUpdate, format_task_update
from shipit.core.proposals import ProposalRegistry
from shipit.core.reconciler import format_summary
from shipit.core.services import Services
from shipit.server.task_processor import TaskProcessor, confirm_proposal

SLACK_API_URL = "https://slack.com/api"
SIGNATURE_MAX_AGE = 5 * 60

TASK_COMMAND = "/shipit"
CLEANUP_COMMAND = "/shipit-cleanup"

CONFIRM_DEFAULT_ACTION = "confirm_default"
CHOOSE_REPOSITORY_ACTION = "choose_repository"
REPOSITORY_MODAL_CALLBACK = "shipit_repository"

EXPIRED_MESSAGE = "This request has expired or was already submitted. Please run /shipit again."
MENTION_PATTERN = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")

USAGE_MESSAGE = (
    "Hi! I'm ShipIt, your AI coding assistant. Tell me what you need and I'll open a pull request. "
    "Example: `/shipit Add error handling to the payment service`"
)


def verify_slack_signature(
    body: bytes,
    timestamp: str,
    signature: str,
    secret: str,
    now: Optional[float] = None,
) -> bool:
    """
    Verify a Slack request signature.

    Args:
        body: Raw request body
        timestamp: X-Slack-Request-Timestamp header value
        signature: X-Slack-Signature header value
        secret: Slack signing secret
        now: Current time (defaults to time.time())

    Returns:
        True if signature is valid and fresh
    """
    if not signature or not timestamp or not secret:
        return False

    if not signature.startswith("v0="):
        return False

    try:
        request_time = int(timestamp)
    except ValueError:
        return False

    now = time.time() if now is None else now
    if abs(now - request_time) > SIGNATURE_MAX_AGE:
        return False

    base = b"v0:" + timestamp.encode() + b":" + body
    computed_signature = "v0=" + hmac.new(secret.encode(), base, hashlib.sha256).hexdigest()

    return hmac.compare_digest(computed_signature, signature)


class SlackClient:
    """Minimal Slack Web API client."""

    def __init__(self, token: str, api_url: str = SLACK_API_URL, timeout: Optional[float] = 10,
                 session: Optional[requests.Session] = None):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _call(self, method: str, payload: dict) -> dict:
        response = self.session.post(
            f"{self.api_url}/{method}",
            headers={"Authorization": f"Bearer {self.token}"},
            json=payload,
            timeout=self.timeout,
        )
        data = response.json()
        if not data.get("ok"):
            raise RuntimeError(f"Slack {method} failed: {data.get('error', response.status_code)}")
        return data

    def post_message(self, channel: str, text: str, blocks: Optional[list] = None,
                     thread_ts: Optional[str] = None) -> dict:
        payload = {"channel": channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        if thread_ts:
            payload["thread_ts"] = thread_ts
        return self._call("chat.postMessage", payload)

    def open_view(self, trigger_id: str, view: dict) -> dict:
        return self._call("views.open", {"trigger_id": trigger_id, "view": view})


class SlackNotifier:
    """Bus subscriber that posts core notifications to Slack."""

    def __init__(self, client: SlackClient):
        self.client = client

    def __call__(self, notification: Notification) -> None:
        if isinstance(notification, TaskUpdate):
            self.client.post_message(notification.channel, format_task_update(notification.task))
        elif isinstance(notification, StatusMessage):
            self.client.post_message(notification.channel, notification.text)


def strip_mentions(text: str) -> str:
    """Remove <@U123> user mentions from message text."""
    return MENTION_PATTERN.sub("", text).strip()


def build_proposal_blocks(proposal_id: str, instruction: str, default_target: RepositoryTarget) -> list:
    """Message blocks asking the requester to pick the target repository."""
    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"*Task:* {instruction}\n"
                    f"Which repository should I use? Default is "
                    f"`{default_target.full_name}` on `{default_target.base_branch}`."
                ),
            },
        },
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "action_id": CONFIRM_DEFAULT_ACTION,
                    "style": "primary",
                    "text": {"type": "plain_text", "text": "Use default repo"},
                    "value": proposal_id,
                },
                {
                    "type": "button",
                    "action_id": CHOOSE_REPOSITORY_ACTION,
                    "text": {"type": "plain_text", "text": "Choose repository"},
                    "value": proposal_id,
                },
            ],
        },
    ]


def _text_input(block_id: str, label: str, initial_value: str) -> dict:
    return {
        "type": "input",
        "block_id": block_id,
        "optional": True,
        "label": {"type": "plain_text", "text": label},
        "element": {
            "type": "plain_text_input",
            "action_id": block_id,
            "initial_value": initial_value,
        },
    }


def build_repository_modal(proposal_id: str, default_target: RepositoryTarget) -> dict:
    """Modal collecting an owner/repo/base branch override."""
    return {
        "type": "modal",
        "callback_id": REPOSITORY_MODAL_CALLBACK,
        "private_metadata": proposal_id,
        "title": {"type": "plain_text", "text": "Choose repository"},
        "submit": {"type": "plain_text", "text": "Start task"},
        "close": {"type": "plain_text", "text": "Cancel"},
        "blocks": [
            _text_input("owner", "Owner", default_target.owner),
            _text_input("repo", "Repository", default_target.repo),
            _text_input("base_branch", "Base branch", default_target.base_branch),
        ],
    }


def extract_modal_values(view: dict) -> dict:
    """Read owner/repo/base_branch from a submitted modal; missing inputs come back as None."""
    values = view.get("state", {}).get("values", {})
    result = {}
    for field_name in ("owner", "repo", "base_branch"):
        result[field_name] = values.get(field_name, {}).get(field_name, {}).get("value")
    return result


def _in_background(name: str, target, *args) -> None:
    """Run target on a daemon thread so Slack gets its acknowledgement in time."""
    threading.Thread(target=target, args=args, name=name, daemon=True).start()


def create_slack_blueprint(services: Services, processor: TaskProcessor, client: SlackClient) -> Blueprint:
    """
    Create the Slack blueprint.

    Args:
        services: Core services
        processor: Task processor for confirmed tasks
        client: Slack Web API client for outbound messages

    Returns:
        Flask Blueprint
    """
    slack = Blueprint("slack", __name__)
    proposals: ProposalRegistry = services.proposals

    @slack.before_request
    def check_signature():
        secret = services.config.slack_signing_secret
        if not verify_slack_signature(
            request.get_data(),
            request.headers.get("X-Slack-Request-Timestamp", ""),
            request.headers.get("X-Slack-Signature", ""),
            secret or "",
        ):
            current_app.logger.warning("Invalid Slack signature")
            return jsonify({"error": "Invalid signature"}), 401
        return None

    def _post_status_later(channel: str, text: str) -> None:
        _in_background("SlackStatus", services.notifications.post_status, channel, text)

    def _post_message(channel: str, text: str, blocks: Optional[list] = None,
                      thread_ts: Optional[str] = None) -> None:
        try:
            client.post_message(channel, text, blocks=blocks, thread_ts=thread_ts)
        except (RuntimeError, requests.RequestException) as e:
            print(f"ERROR: Slack message to {channel} failed: {e}")

    def _start_task(proposal_id: str, channel: Optional[str], **overrides) -> None:
        task = confirm_proposal(services, processor, proposal_id, **overrides)
        if task is None:
            if channel:
                _post_status_later(channel, EXPIRED_MESSAGE)
            return
        _post_status_later(
            task.channel,
            f"Got it! Queued task `{task.id}` for {task.target.full_name} ({task.target.base_branch}). "
            "I'll let you know when it's ready for review.",
        )

    def _run_cleanup(channel: str) -> None:
        try:
            result = services.reconciler().reconcile()
            services.notifications.post_status(channel, format_summary(result))
        except Exception as e:
            print(f"ERROR: Branch cleanup failed: {e}")

    @slack.route("/commands", methods=["POST"])
    def handle_command():
        """Handle /shipit and /shipit-cleanup."""
        command = request.form.get("command", "")
        text = request.form.get("text", "").strip()
        user_id = request.form.get("user_id", "")
        channel = request.form.get("channel_id", "")

        if command == CLEANUP_COMMAND:
            _in_background("BranchCleanup", _run_cleanup, channel)
            return jsonify({"response_type": "ephemeral", "text": "Cleaning up merged branches..."}), 200

        if command != TASK_COMMAND:
            current_app.logger.info(f"Ignoring command: {command}")
            return jsonify({"response_type": "ephemeral", "text": f"Unknown command {command}"}), 200

        if not text:
            return jsonify({"response_type": "ephemeral", "text": USAGE_MESSAGE}), 200

        proposal_id = proposals.create(text, user_id, channel)
        return jsonify({
            "response_type": "ephemeral",
            "text": f"Task: {text}",
            "blocks": build_proposal_blocks(proposal_id, text, services.default_target),
        }), 200

    @slack.route("/interactions", methods=["POST"])
    def handle_interaction():
        """Handle button clicks and modal submissions."""
        try:
            payload = json.loads(request.form.get("payload", ""))
        except ValueError:
            return jsonify({"error": "Invalid payload"}), 400

        payload_type = payload.get("type")

        if payload_type == "block_actions":
            actions = payload.get("actions") or [{}]
            action = actions[0]
            action_id = action.get("action_id")
            proposal_id = action.get("value", "")
            channel = (payload.get("channel") or {}).get("id")

            if action_id == CONFIRM_DEFAULT_ACTION:
                _start_task(proposal_id, channel)
            elif action_id == CHOOSE_REPOSITORY_ACTION:
                if proposals.get(proposal_id) is None:
                    if channel:
                        _post_status_later(channel, EXPIRED_MESSAGE)
                else:
                    try:
                        client.open_view(payload.get("trigger_id", ""),
                                         build_repository_modal(proposal_id, services.default_target))
                    except (RuntimeError, requests.RequestException) as e:
                        current_app.logger.error(f"Failed to open repository modal: {e}")
            else:
                current_app.logger.info(f"Ignoring action: {action_id}")
            return "", 200

        if payload_type == "view_submission":
            view = payload.get("view", {})
            if view.get("callback_id") != REPOSITORY_MODAL_CALLBACK:
                return "", 200

            proposal_id = view.get("private_metadata", "")
            proposal = proposals.get(proposal_id)
            if proposal is None:
                return jsonify({
                    "response_action": "errors",
                    "errors": {"owner": EXPIRED_MESSAGE},
                }), 200
            _start_task(proposal_id, proposal.channel, **extract_modal_values(view))
            return "", 200

        current_app.logger.info(f"Ignoring interaction type: {payload_type}")
        return "", 200

    def _propose_in_thread(text: str, user_id: str, channel: str, thread_ts: Optional[str]) -> None:
        proposal_id = proposals.create(text, user_id, channel)
        _post_message(
            channel,
            f"Task: {text}",
            blocks=build_proposal_blocks(proposal_id, text, services.default_target),
            thread_ts=thread_ts,
        )

    @slack.route("/events", methods=["POST"])
    def handle_event():
        """Handle Events API callbacks (URL verification and @-mentions)."""
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid payload"}), 400

        if payload.get("type") == "url_verification":
            return jsonify({"challenge": payload.get("challenge", "")}), 200

        if payload.get("type") != "event_callback":
            return "", 200

        if request.headers.get("X-Slack-Retry-Num"):
            current_app.logger.info("Ignoring retried Slack event")
            return "", 200

        event = payload.get("event") or {}
        if event.get("type") != "app_mention" or event.get("bot_id") or not event.get("user"):
            return "", 200

        channel = event.get("channel", "")
        thread_ts = event.get("thread_ts") or event.get("ts")
        text = strip_mentions(event.get("text", ""))

        if not text:
            _in_background("SlackUsage", _post_message, channel, USAGE_MESSAGE, None, thread_ts)
        else:
            _in_background("SlackMention", _propose_in_thread, text, event["user"], channel, thread_ts)
        return "", 200

    return slack
