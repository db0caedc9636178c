"""CLI interface for drivecat."""

import sys
from datetime import datetime
from pathlib import Path

import click

from drivecat import __version__
from drivecat.config import Config, ScanOptions
from drivecat.database import Database, ScanStatus
from drivecat.database.sessions import list_sessions
from drivecat.extractor import build_pipeline
from drivecat.logging_config import setup_logging
from drivecat.scanner import (
    CancellationToken,
    DriveIdentityError,
    RemountController,
    ScanAbortedError,
    ScanError,
    Scanner,
    VerificationDeclinedError,
    handle_signals,
    resolve_device,
    verify_drive,
)
from drivecat.thumbnails import ThumbnailGenerator, ThumbnailQueueWorker, queue_status

EXIT_ERROR = 1
EXIT_DECLINED = 2


@click.group()
@click.version_option(__version__, prog_name="drivecat")
@click.option("--log-file", type=click.Path(path_type=Path), help="Application log file")
@click.pass_context
def cli(ctx: click.Context, log_file: Path | None) -> None:
    ctx.ensure_object(dict)
    config = Config()
    if log_file:
        config.log_path = log_file
    ctx.obj["config"] = config


@cli.command(context_settings={"allow_interspersed_args": False})
@click.argument("drive_id", type=click.IntRange(min=1))
@click.argument("partition_number", type=click.IntRange(min=1))
@click.argument(
    "mount_point", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option("--no-md5", is_flag=True, help="Skip MD5 hashing for a faster scan")
@click.option("--no-drive-update", is_flag=True, help="Do not update drive vendor/model/filesystem")
@click.option("--no-thumbnails", is_flag=True, help="Do not generate image thumbnails")
@click.option("--thumbnail-queue", is_flag=True, help="Queue thumbnails for generate-thumbnails")
@click.option("--resume", is_flag=True, help="Resume the last interrupted scan of this drive")
@click.option("--skip-existing", is_flag=True, help="Skip files already in the catalog")
@click.option("--verbose", is_flag=True, help="Print debug output for every step")
@click.option(
    "--delay",
    type=click.IntRange(min=0),
    default=0,
    metavar="MICROSECONDS",
    help="Pause between entries to spare fragile drives",
)
@click.option("--database", type=click.Path(path_type=Path), help="Path to database file")
@click.version_option(__version__, prog_name="drivecat")
@click.pass_context
def scan(
    ctx: click.Context,
    drive_id: int,
    partition_number: int,
    mount_point: Path,
    no_md5: bool,
    no_drive_update: bool,
    no_thumbnails: bool,
    thumbnail_queue: bool,
    resume: bool,
    skip_existing: bool,
    verbose: bool,
    delay: int,
    database: Path | None,
) -> None:
    """Scan MOUNT_POINT and catalog it as PARTITION_NUMBER of drive DRIVE_ID.

    Options must come before the positional arguments.
    """
    config: Config = ctx.obj["config"]
    options = ScanOptions(
        calculate_md5=not no_md5,
        update_drive_identity=not no_drive_update,
        generate_thumbnails=not no_thumbnails,
        thumbnail_queue=thumbnail_queue,
        resume=resume,
        skip_existing=skip_existing,
        verbose=verbose,
        delay_microseconds=delay,
    )
    try:
        options.validate()
    except ValueError as e:
        raise click.UsageError(str(e), ctx=ctx) from e

    setup_logging(verbose=verbose, log_file=config.log_path)
    db_path = database or config.database_path
    mount_point = mount_point.resolve()

    with Database(db_path) as db:
        click.echo("Verifying drive serial number...")
        try:
            device = resolve_device(mount_point)
            click.echo(f"  > {mount_point} is on {device.device} (disk {device.parent})")
            click.echo(f"  > Physical device serial: {device.serial}")
            verify_drive(
                db,
                drive_id,
                device,
                confirm=_confirm_mismatch,
                update_identity=options.update_drive_identity,
            )
        except VerificationDeclinedError:
            click.echo("Aborting scan.", err=True)
            sys.exit(EXIT_DECLINED)
        except DriveIdentityError as e:
            click.echo(f"Error during drive verification: {e}", err=True)
            sys.exit(EXIT_ERROR)

        recovery = RemountController(
            str(mount_point),
            device.serial,
            device.partition_name,
            max_attempts=config.recovery.max_attempts,
            backoff_seconds=config.recovery.backoff_seconds,
            mount_timeout=config.recovery.mount_timeout_seconds,
        )
        thumbnails = ThumbnailGenerator(
            config.thumbnail_root,
            max_width=config.scanner.thumbnail_max_width,
            quality=config.scanner.thumbnail_quality,
        )
        token = CancellationToken()

        with build_pipeline(config.scanner.tool_timeout_seconds) as pipeline, handle_signals(token):
            scanner = Scanner(
                db,
                drive_id,
                partition_number,
                mount_point,
                pipeline,
                options=options,
                config=config.scanner,
                thumbnails=thumbnails,
                recovery=recovery,
                cancel=token,
            )
            try:
                outcome = scanner.scan()
            except ScanAbortedError as e:
                click.echo(f"Error: {e}", err=True)
                click.echo("The session was left interrupted. Re-run with --resume.", err=True)
                sys.exit(EXIT_ERROR)
            except ScanError as e:
                click.echo(f"Error: {e}", err=True)
                sys.exit(EXIT_ERROR)

    if outcome.status is not ScanStatus.COMPLETED:
        sys.exit(EXIT_ERROR)


def _confirm_mismatch(message: str) -> bool:
    click.echo("\n!! WARNING: SERIAL NUMBER MISMATCH !!", err=True)
    click.echo(message, err=True)
    while True:
        answer = click.prompt(
            "Are you sure you want to continue? (yes/no)", default="", show_default=False
        )
        answer = answer.strip().lower()
        if answer == "yes":
            click.echo("User confirmed. Continuing with scan...")
            return True
        if answer == "no":
            return False


@cli.command()
@click.option("--limit", type=int, default=20, help="Number of sessions to show")
@click.option("--database", type=click.Path(path_type=Path), help="Path to database file")
@click.pass_context
def status(ctx: click.Context, limit: int, database: Path | None) -> None:
    """List recent scan sessions."""
    config: Config = ctx.obj["config"]
    db_path = database or config.database_path

    if not db_path.exists():
        click.echo("No database found. Run 'drivecat scan' first.")
        return

    with Database(db_path) as db:
        rows = list_sessions(db.conn, limit=limit)

        if not rows:
            click.echo("No scan sessions found.")
            return

        click.echo("\nScan Sessions:")
        click.echo("-" * 88)
        header = "ID".rjust(5) + "  " + "Drive".ljust(20) + "Part".rjust(5) + "  "
        header += "Status".ljust(12) + "Items".rjust(10) + "Added".rjust(9)
        header += "Deleted".rjust(9) + "  " + "Started".ljust(15)
        click.echo(header)
        click.echo("-" * 88)

        for row in rows:
            drive = _truncate(row["drive_name"] or f"#{row['drive_id']}", 19)
            started = _format_relative_time(row["started_at"])
            click.echo(
                f"{row['id']:>5}  "
                f"{drive:<20}"
                f"{row['partition_number']:>5}  "
                f"{row['status']:<12}"
                f"{row['items_scanned']:>10,}"
                f"{row['files_added']:>9,}"
                f"{row['files_deleted']:>9,}  "
                f"{started:<15}"
            )


def _format_relative_time(unix_timestamp: int | None) -> str:
    if not unix_timestamp:
        return "unknown"

    now = datetime.now()
    then = datetime.fromtimestamp(unix_timestamp)
    delta = now - then

    if delta.days > 1:
        return f"{delta.days} days ago"
    if delta.days == 1:
        return "yesterday"
    if delta.seconds > 3600:
        hours = delta.seconds // 3600
        return f"{hours}h ago"
    if delta.seconds > 60:
        minutes = delta.seconds // 60
        return f"{minutes}m ago"
    return "just now"


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return "..." + text[-(max_len - 3) :]


@cli.command("generate-thumbnails")
@click.argument("drive_id", type=click.IntRange(min=1))
@click.argument(
    "mount_point", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option("--batch-size", type=click.IntRange(min=1), default=10, help="Jobs per batch")
@click.option("--database", type=click.Path(path_type=Path), help="Path to database file")
@click.pass_context
def generate_thumbnails(
    ctx: click.Context,
    drive_id: int,
    mount_point: Path,
    batch_size: int,
    database: Path | None,
) -> None:
    """Process queued thumbnail jobs for DRIVE_ID, reading from MOUNT_POINT."""
    config: Config = ctx.obj["config"]
    db_path = database or config.database_path

    if not db_path.exists():
        click.echo("Error: No database found. Run 'drivecat scan' first.", err=True)
        sys.exit(EXIT_ERROR)

    setup_logging(log_file=config.log_path)
    generator = ThumbnailGenerator(
        config.thumbnail_root,
        max_width=config.scanner.thumbnail_max_width,
        quality=config.scanner.thumbnail_quality,
    )
    click.echo("Starting thumbnail generation process...")
    with Database(db_path) as db:
        worker = ThumbnailQueueWorker(db, generator, mount_point.resolve(), batch_size=batch_size)
        stats = worker.run(drive_id)

    click.echo("No pending thumbnail jobs left.")
    click.echo(f"  Completed: {stats.completed:,}")
    click.echo(f"  Failed: {stats.failed:,}")


@cli.command("check-thumbnails")
@click.argument("drive_id", type=click.IntRange(min=1))
@click.option("--database", type=click.Path(path_type=Path), help="Path to database file")
@click.pass_context
def check_thumbnails(ctx: click.Context, drive_id: int, database: Path | None) -> None:
    """Report thumbnail queue status for DRIVE_ID."""
    config: Config = ctx.obj["config"]
    db_path = database or config.database_path

    if not db_path.exists():
        click.echo("Error: No database found. Run 'drivecat scan' first.", err=True)
        sys.exit(EXIT_ERROR)

    with Database(db_path) as db:
        counts = queue_status(db.conn, drive_id)

    click.echo(f"--- Thumbnail Status for Drive ID {drive_id} ---")
    click.echo(f"Total Queued:     {sum(counts.values()):,}")
    for name, count in counts.items():
        label = f"{name.capitalize()}:"
        click.echo(f"{label:<18}{count:,}")


def main() -> None:
    """Entry point for the CLI. Usage errors exit with status 1."""
    try:
        exit_code = cli.main(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(EXIT_ERROR)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(EXIT_ERROR)
    sys.exit(exit_code if isinstance(exit_code, int) else 0)


if __name__ == "__main__":
    main()
