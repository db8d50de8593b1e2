"""Short-lived registry of instructions awaiting repository confirmation."""

import threading
import time
from typing import Callable, Dict, Optional

from shipit.core.models import PendingProposal
from shipit.core.utils import generate_proposal_id

DEFAULT_TTL = 30 * 60
DEFAULT_SWEEP_INTERVAL = 5 * 60


class ProposalRegistry:
    """Thread-safe map of proposal id to PendingProposal with expiry."""

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.time):
        """
        Initialize the registry.

        Args:
            ttl: Seconds a proposal stays confirmable
            clock: Time source returning seconds since the epoch
        """
        self.ttl = ttl
        self.clock = clock
        self._proposals: Dict[str, PendingProposal] = {}
        self._lock = threading.Lock()

    def create(self, instruction: str, user_id: str, channel: str) -> str:
        """
        Register a new proposal.

        Args:
            instruction: Natural-language instruction
            user_id: Chat user who sent it
            channel: Chat channel it came from

        Returns:
            Proposal ID
        """
        proposal = PendingProposal(
            id=generate_proposal_id(),
            instruction=instruction,
            user_id=user_id,
            channel=channel,
            timestamp=self.clock(),
        )
        with self._lock:
            self._proposals[proposal.id] = proposal
        return proposal.id

    def _is_expired(self, proposal: PendingProposal, now: float, ttl: float) -> bool:
        return now - proposal.timestamp > ttl

    def get(self, proposal_id: str) -> Optional[PendingProposal]:
        """Look up a proposal without consuming it. Expired entries read as absent."""
        with self._lock:
            proposal = self._proposals.get(proposal_id)
        if proposal is None or self._is_expired(proposal, self.clock(), self.ttl):
            return None
        return proposal

    def confirm(self, proposal_id: str) -> Optional[PendingProposal]:
        """
        Atomically take a proposal out of the registry.

        Args:
            proposal_id: Proposal ID

        Returns:
            The proposal, or None if it is unknown, already confirmed or expired
        """
        with self._lock:
            proposal = self._proposals.pop(proposal_id, None)
        if proposal is None:
            return None
        if self._is_expired(proposal, self.clock(), self.ttl):
            return None
        return proposal

    def sweep(self, now: Optional[float] = None, ttl: Optional[float] = None) -> int:
        """
        Remove every proposal older than the TTL.

        Args:
            now: Reference time (defaults to the registry clock)
            ttl: Override for the registry TTL

        Returns:
            Number of proposals removed
        """
        now = self.clock() if now is None else now
        ttl = self.ttl if ttl is None else ttl
        with self._lock:
            expired = [
                proposal_id
                for proposal_id, proposal in self._proposals.items()
                if self._is_expired(proposal, now, ttl)
            ]
            for proposal_id in expired:
                self._proposals.pop(proposal_id, None)
        return len(expired)

    def size(self) -> int:
        """Get number of proposals currently held."""
        with self._lock:
            return len(self._proposals)


class ProposalSweeper:
    """Background thread that periodically expires stale proposals."""

    def __init__(self, registry: ProposalRegistry, interval: float = DEFAULT_SWEEP_INTERVAL):
        self.registry = registry
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="ProposalSweeper",
            daemon=True,
        )
        self._thread.start()
        print(f"Proposal sweeper started (interval: {self.interval}s, ttl: {self.registry.ttl}s)")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        print("Proposal sweeper stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                removed = self.registry.sweep()
                if removed:
                    print(f"Expired {removed} pending proposal(s)")
            except Exception as e:
                print(f"ERROR: Proposal sweep failed: {e}")

    def __enter__(self) -> "ProposalSweeper":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
