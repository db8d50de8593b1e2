"""Process-wide task record storage."""

import threading
from typing import Dict, List, Optional

from shipit.core.models import Task, TaskStatus

_UNSET = object()


class TaskStore:
    """Thread-safe in-memory task storage."""

    def __init__(self):
        self._tasks: Dict[str, Task] = {}
        self.lock = threading.Lock()

    def add_task(self, task: Task) -> None:
        """
        Add a task to the store.

        Args:
            task: Task to add

        Raises:
            ValueError: If a task with the same ID already exists
        """
        with self.lock:
            if task.id in self._tasks:
                raise ValueError(f"Task {task.id} already exists")
            self._tasks[task.id] = task

    def get_task(self, task_id: str) -> Optional[Task]:
        """
        Get task by ID.

        Args:
            task_id: Task ID

        Returns:
            Task or None if not found
        """
        with self.lock:
            return self._tasks.get(task_id)

    def update_task(
        self,
        task_id: str,
        status: Optional[TaskStatus] = None,
        branch=_UNSET,
        pull_request_url=_UNSET,
        error=_UNSET,
    ) -> Task:
        """
        Update task fields.

        Status changes go through Task.transition, so they can only move
        forward and completed_at is stamped on the terminal transition.

        Args:
            task_id: Task ID
            status: New status
            branch: Working branch name
            pull_request_url: Pull request URL
            error: Error message if failed

        Returns:
            The updated task

        Raises:
            KeyError: If the task does not exist
            ValueError: If the status transition is not allowed
        """
        with self.lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise KeyError(f"Task {task_id} not found")

            if branch is not _UNSET:
                task.branch = branch
            if pull_request_url is not _UNSET:
                task.pull_request_url = pull_request_url
            if error is not _UNSET:
                task.error = error
            if status is not None:
                task.transition(status)
            return task

    def list_tasks(
        self,
        status_filter: Optional[str] = None,
        limit: int = 100,
    ) -> List[Task]:
        """
        List tasks, newest first, with optional status filter.

        Args:
            status_filter: Filter by status value
            limit: Maximum number of tasks to return

        Returns:
            List of tasks
        """
        with self.lock:
            tasks = list(self._tasks.values())

        if status_filter:
            tasks = [t for t in tasks if t.status.value == status_filter]

        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks[:limit]

    def find_task_by_branch(self, branch: str) -> Optional[Task]:
        """
        Find a task by its working branch name.

        Args:
            branch: Branch name

        Returns:
            Task or None if not found
        """
        with self.lock:
            for task in self._tasks.values():
                if task.branch == branch:
                    return task
        return None

    def size(self) -> int:
        """Get total number of tasks."""
        with self.lock:
            return len(self._tasks)
