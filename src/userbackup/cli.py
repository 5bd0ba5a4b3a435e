"""Command-line entry point for user backups and erasure.

Subcommands:

* ``backup`` exports every row scoped to a user into one artifact.
* ``delete`` prints the deletion plan, or erases the rows with ``--confirm``.
* ``decrypt`` turns an ``.enc`` artifact back into readable JSON.
* ``keygen`` writes a new keyset file for encrypted backups.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .backup.encryption import FernetCipher, write_keyset
from .backup.storage import read_backup
from .config import UserBackupConfig, load_config
from .core.types import UserBackupError, UserScope
from .deletion import DeletionBatchError, DeletionEngine
from .service import UserBackupService

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _add_scope_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the JSON configuration file.",
    )
    parser.add_argument("--user-id", required=True, help="Identifier of the user.")
    parser.add_argument(
        "--account-id",
        dest="account_ids",
        action="append",
        default=[],
        help="Account identifier owned by the user (repeatable).",
    )
    parser.add_argument(
        "--active-id",
        dest="active_ids",
        action="append",
        default=[],
        help="Asset identifier owned by the user (repeatable).",
    )
    parser.add_argument(
        "--namespace",
        default=None,
        help="Prefix for textual user_id columns (overrides the config value).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userbackup",
        description="Back up or erase every record belonging to a user.",
    )
    parser.add_argument(
        "--log-level",
        choices=_LOG_LEVELS,
        default="WARNING",
        help="Logging verbosity (default: WARNING).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    backup = subparsers.add_parser("backup", help="Export a user's rows to an artifact.")
    _add_scope_arguments(backup)
    backup.add_argument(
        "--no-encrypt",
        action="store_true",
        help="Write plain JSON even when the config enables encryption.",
    )
    backup.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for the artifact (defaults to backup.output_directory).",
    )

    delete = subparsers.add_parser("delete", help="Erase a user's rows.")
    _add_scope_arguments(delete)
    delete.add_argument(
        "--confirm",
        action="store_true",
        help="Actually delete rows; otherwise print the deletion plan.",
    )

    decrypt = subparsers.add_parser("decrypt", help="Decrypt an .enc backup artifact.")
    decrypt.add_argument("path", type=Path, help="Encrypted artifact to read.")
    decrypt.add_argument("--keyset", type=Path, required=True, help="Keyset file used for encryption.")
    decrypt.add_argument("--output", type=Path, help="Write JSON here instead of stdout.")

    keygen = subparsers.add_parser("keygen", help="Write a new encryption keyset.")
    keygen.add_argument("path", type=Path, help="Destination of the keyset file.")
    return parser


def _coerce_identifier(value: str) -> int | str:
    text = value.strip()
    if text.lstrip("-").isdigit():
        return int(text)
    return text


def _build_scope(args: argparse.Namespace, config: UserBackupConfig) -> UserScope:
    namespace = args.namespace if args.namespace is not None else config.scope.namespace
    return UserScope(
        user_id=_coerce_identifier(args.user_id),
        account_ids=[_coerce_identifier(value) for value in args.account_ids],
        active_ids=[_coerce_identifier(value) for value in args.active_ids],
        namespace=namespace,
    )


def _run_backup(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    scope = _build_scope(args, config)
    settings = config.backup
    cipher = None if args.no_encrypt or not settings.encrypt else settings.load_cipher()
    output_dir = args.output_dir.expanduser() if args.output_dir else settings.output_directory

    with config.build_catalog() as catalog:
        service = UserBackupService(
            catalog,
            scope,
            ignored_tables=config.scope.ignored_tables,
            overrides=config.scope.overrides,
            page_size=settings.page_size,
        )
        service.fetch_all_user_data()
        artifact = service.save_backup_to_file(
            output_dir,
            cipher=cipher,
            chunk_size=settings.chunk_size,
        )

    sys.stdout.write(f"Backup written to {artifact.path}\n")
    for table, count in artifact.row_counts.items():
        sys.stdout.write(f"  {table}: {count} row(s)\n")
    sys.stdout.write(f"sha256: {artifact.sha256}\n")
    return 0


def _run_delete(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    scope = _build_scope(args, config)

    with config.build_catalog() as catalog:
        engine = DeletionEngine(
            catalog,
            batch_size=config.deletion.batch_size,
            overrides=config.scope.overrides,
        )
        if not args.confirm:
            plan = engine.plan(scope, config.scope.ignored_tables)
            if not plan:
                sys.stdout.write("No tables matched; nothing would be deleted.\n")
                return 0
            sys.stdout.write("Dry run; pass --confirm to delete:\n")
            for entry in plan:
                sys.stdout.write(
                    f"  {entry.connection}.{entry.table} where {entry.column} "
                    f"in {len(entry.values)} value(s)\n"
                )
            return 0

        try:
            report = engine.delete_user_data(scope, config.scope.ignored_tables)
        except DeletionBatchError as exc:
            for entry in exc.report.tables:
                sys.stdout.write(f"  {entry.connection}.{entry.table}: {entry.deleted} row(s)\n")
            raise

    for entry in report.tables:
        sys.stdout.write(f"  {entry.connection}.{entry.table}: {entry.deleted} row(s)\n")
    sys.stdout.write(f"Deleted {report.total_deleted} row(s) in {report.total_batches} batch(es)\n")
    return 0


def _run_decrypt(args: argparse.Namespace) -> int:
    cipher = FernetCipher.from_keyset(args.keyset)
    payload = read_backup(args.path, cipher=cipher)
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(text + "\n", encoding="utf-8")
        sys.stdout.write(f"Decrypted backup written to {args.output}\n")
    else:
        sys.stdout.write(text + "\n")
    return 0


def _run_keygen(args: argparse.Namespace) -> int:
    path = write_keyset(args.path)
    sys.stdout.write(f"Keyset written to {path}\n")
    return 0


_COMMANDS = {
    "backup": _run_backup,
    "delete": _run_delete,
    "decrypt": _run_decrypt,
    "keygen": _run_keygen,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handler = _COMMANDS[args.command]
    try:
        return handler(args)
    except (UserBackupError, ValueError, OSError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())


def console_main() -> None:
    """Entry point for ``userbackup`` console script."""

    sys.exit(main())
