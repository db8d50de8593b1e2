"""Worker pool running confirmed tasks."""

import threading
from queue import Empty, Full, Queue
from typing import List, Optional

from shipit.core.models import Task, TaskStatus
from shipit.core.services import Services


class TaskProcessor:
    """Process queued task IDs on worker threads."""

    def __init__(self, services: Services, num_workers: int = 1, max_queue_size: int = 100):
        """
        Initialize task processor.

        Args:
            services: Core services (orchestrator, task store, notifications)
            num_workers: Number of worker threads
            max_queue_size: Maximum number of queued tasks
        """
        self.services = services
        self.num_workers = num_workers
        self.queue: Queue = Queue(maxsize=max_queue_size)
        self.running = False
        self.workers: List[threading.Thread] = []

    def start(self):
        """Start worker threads."""
        self.running = True
        print(f"Starting {self.num_workers} task processor worker(s)...")

        for i in range(self.num_workers):
            worker = threading.Thread(
                target=self._worker,
                name=f"TaskWorker-{i+1}",
                daemon=True
            )
            worker.start()
            self.workers.append(worker)

    def stop(self, timeout: Optional[float] = 5.0):
        """Stop worker threads after their current task."""
        self.running = False
        print("Stopping task processor...")
        for worker in self.workers:
            worker.join(timeout=timeout)
        self.workers = []

    def size(self) -> int:
        """Get current queue size."""
        return self.queue.qsize()

    def enqueue(self, task: Task) -> bool:
        """
        Queue a pending task for execution.

        A full queue fails the task immediately and notifies its channel.

        Args:
            task: Pending task

        Returns:
            True if queued, False if the queue was full
        """
        try:
            self.queue.put_nowait(task.id)
            return True
        except Full:
            print(f"ERROR: Task queue full, rejecting task {task.id}")
            self.services.task_store.update_task(
                task.id,
                status=TaskStatus.FAILED,
                error="ShipIt is busy; the task queue is full. Please try again later.",
            )
            self.services.notifications.post_task_update(task.channel, task)
            return False

    def _worker(self):
        """Worker thread that processes tasks from queue."""
        worker_name = threading.current_thread().name
        print(f"{worker_name} started")

        while self.running:
            try:
                task_id = self.queue.get(timeout=1.0)
            except Empty:
                continue

            try:
                print(f"{worker_name}: Processing task {task_id}")
                self.services.orchestrator.run(task_id)
            except Exception as e:
                print(f"{worker_name}: Error processing task {task_id}: {e}")
            finally:
                self.queue.task_done()

        print(f"{worker_name} stopped")


def confirm_proposal(
    services: Services,
    processor: TaskProcessor,
    proposal_id: str,
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    base_branch: Optional[str] = None,
) -> Optional[Task]:
    """
    Turn a pending proposal into a queued task.

    Blank target fields fall back to the configured default target. The
    target is resolved before the proposal is taken, so an invalid override
    leaves the proposal confirmable.

    Args:
        services: Core services
        processor: Task processor to queue onto
        proposal_id: Proposal ID
        owner: Optional repository owner override
        repo: Optional repository name override
        base_branch: Optional base branch override

    Returns:
        The new task, or None if the proposal expired or was already confirmed

    Raises:
        ValueError: If an override is invalid
    """
    target = services.default_target.with_overrides(owner, repo, base_branch)

    proposal = services.proposals.confirm(proposal_id)
    if proposal is None:
        return None

    task = services.orchestrator.submit(
        instruction=proposal.instruction,
        requested_by=proposal.user_id,
        channel=proposal.channel,
        target=target,
    )
    processor.enqueue(task)
    return task
