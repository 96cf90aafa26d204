"""Polling loop that turns snapshots of one side into actions."""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..utils import DEFAULT_ECHO_TTL
from .backend import StorageBackend
from .differ import diff
from .models import Action, Add, DirectoryState, FileRecord, Remove, Rename

logger = logging.getLogger(__name__)

# Called with the actions of one cycle; may return the ones that failed
Subscriber = Callable[[list[Action]], Optional[list[Action]]]


@dataclass
class _Expectation:
    action: Action
    polls_left: int


def _matches(expected: Action, observed: Action) -> bool:
    if isinstance(expected, Add) and isinstance(observed, Add):
        return (
            expected.record.name == observed.record.name
            and expected.record.fingerprint == observed.record.fingerprint
        )
    if isinstance(expected, Remove) and isinstance(observed, Remove):
        return expected.name == observed.name
    if isinstance(expected, Rename) and isinstance(observed, Rename):
        return expected.source == observed.source and expected.target == observed.target
    return False


class Watcher:
    """Polls one backend and publishes the changes it observes.

    Subscribers run synchronously on the watcher's thread, in subscription
    order. A subscriber may return the actions it failed to apply; with
    ``retry_failed`` the names they touch keep their previous record in
    the retained snapshot, so the next poll proposes them again.

    The opposite direction registers the writes it performs on this side
    through :meth:`expect`, and matching actions are dropped instead of
    being bounced back.
    """

    def __init__(
        self,
        backend: StorageBackend,
        interval: float,
        baseline: Optional[DirectoryState] = None,
        name: Optional[str] = None,
        retry_failed: bool = True,
        echo_ttl: int = DEFAULT_ECHO_TTL,
    ):
        """Initialize watcher.

        Args:
            backend: Backend to poll
            interval: Seconds to wait between polls
            baseline: Snapshot to diff the first poll against (defaults to
                      the backend's own first snapshot)
            name: Name used for the thread and log lines
            retry_failed: Keep failed actions pending for the next cycle
            echo_ttl: Polls an echo expectation survives
        """
        self.backend = backend
        self.interval = interval
        self.name = name or f"{backend.label}-watcher"
        self.retry_failed = retry_failed
        self.echo_ttl = echo_ttl
        self.polling = False
        self._baseline = baseline
        self._subscribers: list[Subscriber] = []
        self._expected: list[_Expectation] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def baseline(self) -> Optional[DirectoryState]:
        """Snapshot the next poll is diffed against."""
        return self._baseline

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def expect(self, action: Action) -> None:
        """Register a change this side is about to show because we caused it.

        Safe to call from another thread.
        """
        with self._lock:
            self._expected.append(_Expectation(action, self.echo_ttl))

    def withdraw(self, action: Action) -> None:
        """Drop an expectation registered for a change that did not happen."""
        with self._lock:
            for expectation in self._expected:
                if expectation.action == action:
                    self._expected.remove(expectation)
                    return

    @property
    def expected(self) -> list[Action]:
        """Changes currently expected to show up on this side."""
        with self._lock:
            return [e.action for e in self._expected]

    def _drop_echoes(self, actions: list[Action]) -> list[Action]:
        with self._lock:
            remaining: list[Action] = []
            for action in actions:
                match = next((e for e in self._expected if _matches(e.action, action)), None)
                if match is not None:
                    self._expected.remove(match)
                    logger.debug(f"[{self.name}] Ignoring echo: {action}")
                    continue
                remaining.append(action)

            for expectation in self._expected:
                expectation.polls_left -= 1
            self._expected = [e for e in self._expected if e.polls_left > 0]
        return remaining

    def _publish(self, actions: list[Action]) -> list[Action]:
        failed: list[Action] = []
        for subscriber in self._subscribers:
            try:
                result = subscriber(actions)
            except Exception:
                logger.exception(f"[{self.name}] Subscriber failed")
                failed.extend(actions)
                continue
            if result:
                failed.extend(result)
        return failed

    def _retained(
        self, prev: DirectoryState, curr: DirectoryState, failed: list[Action]
    ) -> DirectoryState:
        """Build the next baseline, rolling back names whose action failed."""
        if not failed or not self.retry_failed:
            return curr

        records: dict[str, FileRecord] = dict(curr.by_name)
        for action in failed:
            for name in action.names:
                previous = prev.by_name.get(name)
                if previous is None:
                    records.pop(name, None)
                else:
                    records[name] = previous
        logger.info(f"[{self.name}] {len(failed)} action(s) will be retried next cycle")
        return DirectoryState.from_records(records.values())

    def poll_once(self) -> list[Action]:
        """Run one cycle: snapshot, diff, publish, advance the baseline.

        Returns:
            Actions published this cycle
        """
        self.polling = True
        try:
            if self._baseline is None:
                first = self.backend.snapshot()
                if not first.stale:
                    self._baseline = first
                return []

            curr = self.backend.snapshot()
            if curr.stale:
                logger.warning(f"[{self.name}] Snapshot unavailable, skipping cycle")
                return []

            prev = self._baseline
            actions = self._drop_echoes(diff(prev, curr))
            failed: list[Action] = []
            if actions:
                logger.info(f"[{self.name}] {len(actions)} change(s) detected")
                failed = self._publish(actions)
            self._baseline = self._retained(prev, curr, failed)
            return actions
        finally:
            self.polling = False

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Poll until ``stop_event`` is set.

        A cycle that has started always runs to completion. A cycle that
        raises is logged and the loop carries on with the next one.
        """
        stop_event = stop_event or self._stop_event
        logger.debug(f"[{self.name}] Polling every {self.interval}s")
        while not stop_event.wait(self.interval):
            try:
                self.poll_once()
            except Exception:
                logger.exception(f"[{self.name}] Poll cycle failed")
        logger.debug(f"[{self.name}] Stopped")

    def start(self) -> None:
        """Run the poll loop on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to stop and wait for the current cycle to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
