"""CLI interface for dropsync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .config import DEFAULT_CONFIG_PATH, SyncConfig, load_config
from .exceptions import DropSyncError
from .output import OutputFormatter
from .sync import Add, Remove, Rename, SyncEngine
from .utils import format_timestamp

logger = logging.getLogger(__name__)


def _load(ctx: Any) -> SyncConfig:
    """Load the configuration named on the command line, exiting on error."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        return load_config(ctx.obj["config_path"])
    except DropSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        raise


def _engine(ctx: Any) -> SyncEngine:
    return SyncEngine.from_config(_load(ctx))


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    envvar="DROPSYNC_CONFIG",
    help="Path to the JSON configuration file",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="dropsync")
@click.pass_context
def main(ctx: Any, config_path: Path, quiet: bool, verbose: bool) -> None:
    """dropsync - Keep a local folder and an S3 bucket in sync."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["out"] = OutputFormatter(quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("dropsync").setLevel(logging.DEBUG)
        # boto is very chatty at DEBUG
        for name in ("boto3", "botocore", "s3transfer", "urllib3"):
            logging.getLogger(name).setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--local-interval",
    type=float,
    default=None,
    help="Seconds between local polls (overrides config)",
)
@click.option(
    "--remote-interval",
    type=float,
    default=None,
    help="Seconds between remote polls (overrides config)",
)
@click.option(
    "--no-reconcile",
    is_flag=True,
    help="Skip the initial gap-filling pass",
)
@click.pass_context
def run(
    ctx: Any,
    local_interval: Optional[float],
    remote_interval: Optional[float],
    no_reconcile: bool,
) -> None:
    """Sync continuously until interrupted.

    Files present on only one side are copied across first; nothing is
    deleted during that pass. Afterwards additions, removals and renames
    on either side are replayed on the other.

    Examples:
        dropsync run
        dropsync -c ./config.json run --remote-interval 30
    """
    out: OutputFormatter = ctx.obj["out"]
    config = _load(ctx)
    if local_interval is not None:
        config.local_interval = local_interval
    if remote_interval is not None:
        config.remote_interval = remote_interval

    if not ctx.obj["verbose"]:
        # Operation log lines are the daemon's progress report
        logging.getLogger("dropsync").setLevel(logging.INFO)

    out.info(f"Syncing: {config.local_root} <-> s3://{config.bucket}/{config.prefix}")
    out.info("Press Ctrl+C to stop")

    try:
        SyncEngine.from_config(config).run_forever(reconcile=not no_reconcile)
    except DropSyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.pass_context
def reconcile(ctx: Any) -> None:
    """Copy files that exist on only one side, then exit."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _engine(ctx)

    try:
        stats = engine.reconcile()
    except DropSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    out.info(f"  ↑ Uploaded: {stats['uploads']} file(s)")
    out.info(f"  ↓ Downloaded: {stats['downloads']} file(s)")
    if stats["failures"]:
        out.warning(f"{stats['failures']} file(s) failed, see log for details")
        ctx.exit(1)
    out.success("Reconciliation complete!")


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Show how the bucket differs from the local folder."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _engine(ctx)

    try:
        actions = engine.pending()
    except DropSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if not actions:
        out.success("Bucket is up to date")
        return

    out.info("Changes needed to bring the bucket in line with local:")
    for action in actions:
        if isinstance(action, Add):
            out.info(f"  ↑ {action.record.name}")
        elif isinstance(action, Rename):
            out.info(f"  → {action.source} -> {action.target}")
        elif isinstance(action, Remove):
            out.info(f"  ✗ {action.name}")
    out.print("")
    out.info(f"Total: {len(actions)} change(s)")


@main.command(name="ls")
@click.pass_context
def list_remote(ctx: Any) -> None:
    """List the files in the bucket with checksum and modification time."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _engine(ctx)

    state = engine.remote.snapshot()
    if state.stale:
        out.error(f"Cannot list bucket {engine.remote.bucket}")
        ctx.exit(1)
        return

    rows = [[r.name, r.fingerprint, format_timestamp(r.modified_at)] for r in state]
    out.print_table(["Name", "ETag", "Last modified"], rows, title=engine.remote.bucket)
    out.info(f"{len(rows)} file(s)")


@main.command()
@click.argument("name")
@click.pass_context
def push(ctx: Any, name: str) -> None:
    """Upload one file from the local folder.

    NAME is the path relative to the sync directory.
    """
    out: OutputFormatter = ctx.obj["out"]
    engine = _engine(ctx)

    try:
        record = engine.local.stat(name)
    except DropSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    if record is None:
        out.error(f"Local file not found: {name}")
        ctx.exit(1)
        return

    if not engine.remote.put(record, engine.local):
        out.error(f"Upload of {name} failed")
        ctx.exit(1)
    out.success(f"Uploaded {name} to bucket {engine.remote.bucket}")


@main.command()
@click.argument("name")
@click.pass_context
def pull(ctx: Any, name: str) -> None:
    """Download one file from the bucket into the local folder.

    NAME is the object name relative to the configured prefix.
    """
    out: OutputFormatter = ctx.obj["out"]
    engine = _engine(ctx)

    try:
        record = engine.remote.stat(name)
    except DropSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    if record is None:
        out.error(f"Remote file not found: {name}")
        ctx.exit(1)
        return

    if not engine.local.get(record, engine.remote):
        out.error(f"Download of {name} failed")
        ctx.exit(1)
    out.success(f"Downloaded {name} from bucket {engine.remote.bucket}")


if __name__ == "__main__":
    main()
