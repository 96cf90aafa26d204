"""Replays the actions observed on one side onto the other side."""

import logging
from typing import Optional

from .backend import StorageBackend, WriteResult
from .local import LocalBackend
from .models import Action, ActionKind, Add, FileRecord, Remove, Rename
from .remote import S3Backend
from .watcher import Watcher

logger = logging.getLogger(__name__)

_COUNTERS = {
    ActionKind.ADD: "transfers",
    ActionKind.RENAME: "renames",
    ActionKind.REMOVE: "removes",
}


class Dispatcher:
    """Applies one watcher's actions to the opposite backend.

    Runs on the source watcher's thread. Each action is announced to
    ``echo_target`` (the watcher of the sink side) before it is applied,
    so the change is not sent back where it came from.
    """

    direction = "sync"

    def __init__(
        self,
        source: StorageBackend,
        sink: StorageBackend,
        echo_target: Optional[Watcher] = None,
    ):
        """Initialize dispatcher.

        Args:
            source: Backend the actions were observed on
            sink: Backend the actions are applied to
            echo_target: Watcher polling ``sink``
        """
        self.source = source
        self.sink = sink
        self.echo_target = echo_target
        self.stats = {"transfers": 0, "renames": 0, "removes": 0, "failures": 0}

    def bind(self, watcher: Watcher) -> "Dispatcher":
        """Subscribe to ``watcher``."""
        watcher.subscribe(self.handle)
        return self

    def _transfer(self, record: FileRecord) -> WriteResult:
        raise NotImplementedError

    def _expect(self, action: Action) -> None:
        if self.echo_target is not None:
            self.echo_target.expect(action)

    def _withdraw(self, action: Action) -> None:
        if self.echo_target is not None:
            self.echo_target.withdraw(action)

    def _perform(self, action: Action) -> WriteResult:
        if isinstance(action, Add):
            return self._transfer(action.record)
        if isinstance(action, Rename):
            return self.sink.rename(action.source, action.target)
        if isinstance(action, Remove):
            return self.sink.remove(action.name)
        raise TypeError(f"Unknown action: {action!r}")

    def apply(self, action: Action) -> bool:
        """Apply a single action to the sink.

        The echo is registered before the sink is touched, so the sink's
        watcher cannot observe the change first, and withdrawn again unless
        the sink really changed.

        Returns:
            False if the sink operation failed
        """
        self._expect(action)
        result = self._perform(action)
        if result is not WriteResult.WRITTEN:
            self._withdraw(action)

        if not result:
            self.stats["failures"] += 1
            return False
        self.stats[_COUNTERS[action.kind]] += 1
        return True

    def handle(self, actions: list[Action]) -> list[Action]:
        """Apply a batch of actions in the order they were emitted.

        Returns:
            The actions that failed
        """
        failed: list[Action] = []
        for action in actions:
            logger.debug(f"[{self.direction}] {action}")
            if not self.apply(action):
                logger.warning(f"[{self.direction}] Failed: {action}")
                failed.append(action)
        return failed


class LocalToRemoteDispatcher(Dispatcher):
    """Forwards local changes to the bucket by uploading."""

    direction = "local->remote"

    def __init__(
        self,
        source: LocalBackend,
        sink: S3Backend,
        echo_target: Optional[Watcher] = None,
    ):
        super().__init__(source, sink, echo_target)

    def _transfer(self, record: FileRecord) -> WriteResult:
        return self.sink.put(record, self.source)


class RemoteToLocalDispatcher(Dispatcher):
    """Forwards bucket changes to the local tree by downloading."""

    direction = "remote->local"

    def __init__(
        self,
        source: S3Backend,
        sink: LocalBackend,
        echo_target: Optional[Watcher] = None,
    ):
        super().__init__(source, sink, echo_target)

    def _transfer(self, record: FileRecord) -> WriteResult:
        return self.sink.get(record, self.source)
