"""Outbound notification events emitted by the core."""

import threading
from dataclasses import dataclass
from typing import Callable, List, Union

from shipit.core.models import Task, TaskStatus


@dataclass(frozen=True)
class StatusMessage:
    """Free-text status for a chat channel."""

    channel: str
    text: str


@dataclass(frozen=True)
class TaskUpdate:
    """Final state of a task for a chat channel."""

    channel: str
    task: Task


Notification = Union[StatusMessage, TaskUpdate]
Subscriber = Callable[[Notification], None]


class NotificationBus:
    """Fan notifications out to subscribers (chat adapters, collectors)."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(subscriber)

    def publish(self, notification: Notification) -> None:
        """
        Deliver a notification to every subscriber.

        Subscriber failures are logged and swallowed; delivery is a best
        effort and must never fail the caller.

        Args:
            notification: Event to deliver
        """
        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(notification)
            except Exception as e:
                print(f"ERROR: Notification delivery failed ({type(notification).__name__}): {e}")

    def post_status(self, channel: str, text: str) -> None:
        self.publish(StatusMessage(channel=channel, text=text))

    def post_task_update(self, channel: str, task: Task) -> None:
        self.publish(TaskUpdate(channel=channel, task=task))


def format_task_update(task: Task) -> str:
    """
    Render a task as a chat message.

    Args:
        task: Task to describe

    Returns:
        Slack mrkdwn text
    """
    if task.status == TaskStatus.COMPLETED:
        marker, label = ":white_check_mark:", "Completed"
    elif task.status == TaskStatus.FAILED:
        marker, label = ":x:", "Failed"
    else:
        marker, label = ":hourglass_flowing_sand:", "In Progress"

    lines = [
        f"{marker} *Task {label}*",
        "",
        f"*Description:* {task.description}",
        f"*Type:* {task.type.value}",
        f"*Repository:* {task.target.full_name} ({task.target.base_branch})",
        f"*Requested by:* <@{task.requested_by}>",
    ]

    if task.branch:
        lines.append(f"*Branch:* `{task.branch}`")
    if task.pull_request_url:
        lines.append(f"*Pull Request:* {task.pull_request_url}")
    if task.error:
        lines.append(f"*Error:* {task.error}")

    return "\n".join(lines)
