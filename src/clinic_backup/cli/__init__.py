"""CLI for backing up and restoring the dental clinic database.

Usage:
    clinic-backup backup
    clinic-backup backup -o backups/before-upgrade.zip
    clinic-backup preview backups/dental-clinic-backup-2024-06-01.zip
    clinic-backup validate backups/dental-clinic-backup-2024-06-01.zip
    clinic-backup restore backups/dental-clinic-backup-2024-06-01.zip --yes
    CLINIC_DB_PROFILE=local clinic-backup --env-prefix CLINIC_ info
    clinic-backup profiles

Commands:
    backup    - Snapshot the database, images and settings into an archive
    preview   - Show what a backup contains without restoring it
    validate  - Check a backup file and report errors and warnings
    restore   - Replace the database and files with a backup's contents
    info      - Show record counts and the last backup time
    profiles  - List configured database profiles
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from clinic_backup.backup.errors import BackupError, PartialRestoreError
from clinic_backup.backup.info import get_system_info
from clinic_backup.backup.preview import preview_backup
from clinic_backup.backup.restore import restore_backup
from clinic_backup.backup.snapshot import create_backup, default_backup_path
from clinic_backup.backup.validator import validate_backup
from clinic_backup.config.loader import load_backup_config
from clinic_backup.config.models import BackupConfig
from clinic_backup.factory import (
    ProfileNotFoundError,
    get_active_profile_name,
    get_adapter,
)

console = Console()


# ============================================================================
# Shared helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    """Route library logging through rich; ``--verbose`` shows debug output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(args: argparse.Namespace) -> BackupConfig:
    """Load the TOML config named by ``--config``, or ./clinic-backup.toml.

    A missing default config file is not an error: the defaults apply and
    the database URL must come from the environment.

    Raises:
        FileNotFoundError: If an explicit ``--config`` file does not exist.
        ValueError: If the config file is invalid.
    """
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        return load_backup_config(config_path)
    except FileNotFoundError:
        if config_path is not None:
            raise
        return BackupConfig()


def _counts_table(title: str, counts: dict[str, int]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Collection", style="dim")
    table.add_column("Records", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    return table


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Args:
        args: Parsed arguments with output, config and env_prefix.

    Returns:
        0 on success, 1 on failure.
    """
    env_prefix = getattr(args, "env_prefix", "")

    try:
        config = _load_config(args)
        adapter = get_adapter(env_prefix=env_prefix, config=config)
    except (FileNotFoundError, ValueError, KeyError, ProfileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    output = Path(args.output) if args.output else default_backup_path(config.output_dir)
    console.print("Creating backup...", style="dim")

    try:
        result = await create_backup(
            adapter,
            output,
            paths=config.paths,
            exported_by=config.exported_by,
        )
    except BackupError as e:
        console.print(f"\n[bold red]x[/bold red] Backup failed: {escape(str(e))}")
        return 1
    finally:
        await adapter.close()

    console.print()
    console.print(_counts_table("Backed Up Records", result.counts))
    console.print(
        f"[bold green]v[/bold green] Backup written to [bold cyan]{result.path}[/bold cyan]"
    )
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Args:
        args: Parsed arguments with backup_path, yes, config and env_prefix.

    Returns:
        0 on success, 1 on failure or partial restore.
    """
    env_prefix = getattr(args, "env_prefix", "")

    try:
        config = _load_config(args)
        adapter = get_adapter(env_prefix=env_prefix, config=config)
    except (FileNotFoundError, ValueError, KeyError, ProfileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    console.print("Restoring backup...", style="dim")

    try:
        result = await restore_backup(adapter, args.backup_path, paths=config.paths)
    except PartialRestoreError as e:
        console.print(f"\n[bold yellow]![/bold yellow] {escape(str(e))}")
        console.print(_counts_table("Restored Records", e.result.restored_counts))
        return 1
    except BackupError as e:
        console.print(f"\n[bold red]x[/bold red] Restore failed: {escape(str(e))}")
        return 1
    finally:
        await adapter.close()

    console.print()
    console.print(_counts_table("Restored Records", result.restored_counts))
    console.print(f"[bold green]v[/bold green] {escape(result.message)}")
    if result.backup_date:
        console.print(f"  Backup taken: [dim]{result.backup_date}[/dim]")
    return 0


async def _async_info(args: argparse.Namespace) -> int:
    """Async implementation for info command.

    Returns:
        0 on success, 1 on failure.
    """
    env_prefix = getattr(args, "env_prefix", "")

    try:
        config = _load_config(args)
        adapter = get_adapter(env_prefix=env_prefix, config=config)
    except (FileNotFoundError, ValueError, KeyError, ProfileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    try:
        info = await get_system_info(adapter)
    except BackupError as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1
    finally:
        await adapter.close()

    console.print(_counts_table("Database", info.database))
    console.print(f"  Last backup: {info.last_backup or '[yellow]never[/yellow]'}")
    console.print(f"  Server time: [dim]{info.server_time}[/dim]")
    return 0


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Create a backup archive (or bare manifest with ``-o *.json``).

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_backup(args))


def cmd_info(args: argparse.Namespace) -> int:
    """Show record counts and the last backup time.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_info(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a backup after confirmation.

    Asks before anything is replaced unless ``--yes`` is given.
    """
    if not args.yes:
        console.print(
            f"[bold yellow]![/bold yellow] This will replace all clinic records, "
            f"images and settings with the contents of: [bold]{args.backup_path}[/bold]"
        )
        response = console.input("Continue? \\[y/N] ")
        if response.strip().lower() not in ("y", "yes"):
            console.print("Cancelled.")
            return 0

    return asyncio.run(_async_restore(args))


def cmd_preview(args: argparse.Namespace) -> int:
    """Show a backup's version, export time and contents.

    Reads only the backup file; no database calls.
    """
    try:
        preview = preview_backup(args.backup_path)
    except BackupError as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1

    table = Table(title="Backup Preview", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Format version", preview.version)
    table.add_row("Exported at", preview.exported_at or "[yellow]unknown[/yellow]")
    table.add_row("Images", str(preview.image_count) if preview.has_images else "none")
    table.add_row("Clinic settings", "included" if preview.has_clinic_settings else "none")
    note = preview.metadata.get("note")
    if note:
        table.add_row("Note", str(note))
    console.print(table)

    counts = preview.metadata.get("counts")
    if isinstance(counts, dict) and counts:
        console.print(_counts_table("Records", counts))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a backup file and print errors and warnings.

    Returns:
        0 if the backup is valid (warnings allowed), 1 otherwise.
    """
    report = validate_backup(args.backup_path)

    console.print(f"Validating: [bold]{args.backup_path}[/bold]")

    if report["errors"]:
        console.print(f"\n[red]Found {len(report['errors'])} errors:[/red]")
        for error in report["errors"]:
            console.print(f"  - {escape(error)}")

    if report["warnings"]:
        console.print(f"\n[yellow]Found {len(report['warnings'])} warnings:[/yellow]")
        for warning in report["warnings"]:
            console.print(f"  - {escape(warning)}")

    if report["valid"]:
        suffix = " (with warnings)" if report["warnings"] else ""
        console.print(
            f"\n[bold green]v[/bold green] Backup is valid{suffix}, "
            f"format {report['version']}"
        )
        return 0

    console.print("\n[bold red]x[/bold red] Backup is invalid")
    return 1


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from clinic-backup.toml.

    Reads only local TOML config; no database calls.

    Returns:
        0 on success, 1 if the config file is missing or invalid.
    """
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        config = load_backup_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    try:
        current = get_active_profile_name(getattr(args, "env_prefix", ""), config)
    except ProfileNotFoundError:
        current = None

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = active profile")

    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="clinic-backup",
        description="Dental clinic backup and restore",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to the TOML config file (default: ./clinic-backup.toml)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix CLINIC_ reads CLINIC_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser(
        "backup",
        help="Snapshot the database, images and settings",
    )
    p_backup.add_argument(
        "--output",
        "-o",
        default=None,
        help="Destination file (.zip archive or .json manifest)",
    )
    p_backup.set_defaults(func=cmd_backup)

    # preview command
    p_preview = subparsers.add_parser(
        "preview",
        help="Show what a backup contains",
    )
    p_preview.add_argument("backup_path", help="Backup file (.zip or .json)")
    p_preview.set_defaults(func=cmd_preview)

    # validate command
    p_validate = subparsers.add_parser(
        "validate",
        help="Check a backup file for errors",
    )
    p_validate.add_argument("backup_path", help="Backup file (.zip or .json)")
    p_validate.set_defaults(func=cmd_validate)

    # restore command
    p_restore = subparsers.add_parser(
        "restore",
        help="Restore a backup (replaces all clinic data)",
    )
    p_restore.add_argument("backup_path", help="Backup file (.zip or .json)")
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    p_restore.set_defaults(func=cmd_restore)

    # info command
    p_info = subparsers.add_parser(
        "info",
        help="Show record counts and the last backup time",
    )
    p_info.set_defaults(func=cmd_info)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    args = parser.parse_args()
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
