"""Bootstrap and lifecycle of the two sync directions."""

import logging
import threading
from typing import Optional

from ..config import SyncConfig
from ..exceptions import ReconcileError, SnapshotError
from ..utils import DEFAULT_ECHO_TTL, DEFAULT_LOCAL_INTERVAL, DEFAULT_REMOTE_INTERVAL
from .backend import require_snapshot
from .differ import diff
from .dispatcher import LocalToRemoteDispatcher, RemoteToLocalDispatcher
from .local import LocalBackend
from .models import Action, DirectoryState
from .remote import S3Backend
from .scanner import DirectoryScanner
from .watcher import Watcher

logger = logging.getLogger(__name__)


class SyncEngine:
    """Keeps a local directory and a bucket in sync.

    :meth:`start` first fills the gaps between both sides without deleting
    anything, then runs one watcher per side, each feeding a dispatcher
    that writes to the other side.

    Examples:
        >>> engine = SyncEngine.from_config(load_config())
        >>> engine.run_forever()
    """

    def __init__(
        self,
        local: LocalBackend,
        remote: S3Backend,
        local_interval: float = DEFAULT_LOCAL_INTERVAL,
        remote_interval: float = DEFAULT_REMOTE_INTERVAL,
        retry_failed: bool = True,
        echo_ttl: int = DEFAULT_ECHO_TTL,
    ):
        """Initialize sync engine.

        Args:
            local: Local directory backend
            remote: Bucket backend
            local_interval: Seconds between local polls
            remote_interval: Seconds between remote polls
            retry_failed: Re-propose failed actions on the next cycle
            echo_ttl: Polls an echo expectation survives
        """
        self.local = local
        self.remote = remote
        self.local_interval = local_interval
        self.remote_interval = remote_interval
        self.retry_failed = retry_failed
        self.echo_ttl = echo_ttl
        self.local_watcher: Optional[Watcher] = None
        self.remote_watcher: Optional[Watcher] = None
        self.uploader: Optional[LocalToRemoteDispatcher] = None
        self.downloader: Optional[RemoteToLocalDispatcher] = None
        self._stopped = threading.Event()

    @classmethod
    def from_config(cls, config: SyncConfig) -> "SyncEngine":
        """Build an engine and both backends from a configuration."""
        scanner = DirectoryScanner(
            ignore_patterns=config.ignore,
            exclude_dot_files=config.exclude_dot_files,
        )
        local = LocalBackend(config.local_root, scanner=scanner, use_trash=config.use_trash)
        remote = S3Backend.from_config(config)
        return cls(
            local,
            remote,
            local_interval=config.local_interval,
            remote_interval=config.remote_interval,
            retry_failed=config.retry_failed,
            echo_ttl=config.echo_ttl,
        )

    def reconcile(self) -> dict:
        """Copy whatever exists on only one side to the other side.

        Nothing is deleted or renamed. A file present on both sides with
        different content is offered in both directions and the newer copy
        wins through the backends' write checks.

        Returns:
            Dictionary with reconciliation statistics

        Raises:
            ReconcileError: If either side cannot be listed
        """
        try:
            local_state = require_snapshot(self.local).without_staging()
            remote_state = require_snapshot(self.remote).without_staging()
        except SnapshotError as e:
            raise ReconcileError(f"Initial reconciliation aborted: {e}") from e

        only_local = [
            local_state.by_id[key]
            for key in sorted(local_state.by_id)
            if key not in remote_state.by_id
        ]
        only_remote = [
            remote_state.by_id[key]
            for key in sorted(remote_state.by_id)
            if key not in local_state.by_id
        ]
        logger.info(
            f"Reconciling: {len(only_local)} to upload, {len(only_remote)} to download"
        )

        stats = {"uploads": 0, "downloads": 0, "failures": 0}
        for record in only_local:
            if self.remote.put(record, self.local):
                stats["uploads"] += 1
            else:
                stats["failures"] += 1
        for record in only_remote:
            if self.local.get(record, self.remote):
                stats["downloads"] += 1
            else:
                stats["failures"] += 1

        logger.info(
            f"Reconciliation done: {stats['uploads']} uploaded, "
            f"{stats['downloads']} downloaded, {stats['failures']} failed"
        )
        return stats

    def pending(self) -> list[Action]:
        """Actions that would make the bucket mirror the local directory.

        Raises:
            SnapshotError: If either side cannot be listed
        """
        remote_state = require_snapshot(self.remote)
        local_state = require_snapshot(self.local)
        return diff(remote_state, local_state)

    def start(
        self,
        reconcile: bool = True,
        local_baseline: Optional[DirectoryState] = None,
        remote_baseline: Optional[DirectoryState] = None,
    ) -> None:
        """Reconcile, then start both poll loops in the background.

        Args:
            reconcile: Run the initial reconciliation first
            local_baseline: Baseline for the local watcher (defaults to a
                            fresh snapshot)
            remote_baseline: Baseline for the remote watcher (defaults to a
                             fresh snapshot)

        Raises:
            ReconcileError: If reconciliation or the baseline snapshots fail
        """
        if self.is_running:
            raise RuntimeError("Sync engine is already running")

        if reconcile:
            self.reconcile()

        try:
            if local_baseline is None:
                local_baseline = require_snapshot(self.local)
            if remote_baseline is None:
                remote_baseline = require_snapshot(self.remote)
        except SnapshotError as e:
            raise ReconcileError(f"Cannot take baseline snapshots: {e}") from e

        self.local_watcher = Watcher(
            self.local,
            self.local_interval,
            baseline=local_baseline,
            name="local-watcher",
            retry_failed=self.retry_failed,
            echo_ttl=self.echo_ttl,
        )
        self.remote_watcher = Watcher(
            self.remote,
            self.remote_interval,
            baseline=remote_baseline,
            name="remote-watcher",
            retry_failed=self.retry_failed,
            echo_ttl=self.echo_ttl,
        )
        self.uploader = LocalToRemoteDispatcher(
            self.local, self.remote, echo_target=self.remote_watcher
        ).bind(self.local_watcher)
        self.downloader = RemoteToLocalDispatcher(
            self.remote, self.local, echo_target=self.local_watcher
        ).bind(self.remote_watcher)

        self._stopped.clear()
        self.local_watcher.start()
        self.remote_watcher.start()
        logger.info(
            f"Watching {self.local.root} (every {self.local_interval}s) and "
            f"s3://{self.remote.bucket}/{self.remote.prefix} (every {self.remote_interval}s)"
        )

    def stop(self) -> None:
        """Stop both loops after their current cycle."""
        for watcher in (self.local_watcher, self.remote_watcher):
            if watcher is not None:
                watcher.stop()
        self._stopped.set()
        logger.info("Sync stopped")

    @property
    def is_running(self) -> bool:
        return any(
            w is not None and w.is_running for w in (self.local_watcher, self.remote_watcher)
        )

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until :meth:`stop` is called.

        Returns:
            True if the engine was stopped, False on timeout
        """
        return self._stopped.wait(timeout)

    def run_forever(self, reconcile: bool = True) -> None:
        """Start syncing and block until interrupted."""
        self.start(reconcile=reconcile)
        try:
            while not self.wait(1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        finally:
            self.stop()

    def __enter__(self) -> "SyncEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.is_running:
            self.stop()
