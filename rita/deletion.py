"""Selection and removal of imported datasets."""

from __future__ import annotations

import re
import sys
from typing import Any, Iterable, TextIO

from pymongo.errors import PyMongoError

from rita.metadb import DatabaseNotFound

NO_RECORDS_MESSAGE = "No records for database found"


class DeletionError(Exception):
    """Raised when datasets cannot be selected or deleted."""

    def __init__(self, message: str, exit_code: int = -1) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def check_flags_exclusive(a: bool, b: bool, c: bool) -> bool:
    """Return True when at most one of the three flags is set."""
    return sum(map(bool, (a, b, c))) <= 1


def check_command_flags(match: bool, regex: bool, bulk: bool, target: str) -> None:
    """Raise DeletionError if the target and flags do not make a valid request."""
    if not target and not bulk:
        raise DeletionError(
            "Please provide a database or string parameter or invoke with "
            "`--help` or `-h` for usage"
        )
    if not check_flags_exclusive(bulk, match, regex):
        raise DeletionError(
            "Invalid combination of flags, invoke with `--help` or `-h` for usage"
        )


def select_databases(
    databases: Iterable[str], target: str, match: bool, regex: bool, bulk: bool
) -> list[str]:
    """Return the names among ``databases`` picked by the target and flags."""
    databases = list(databases)
    if match:
        return [name for name in databases if target in name]
    if regex:
        try:
            pattern = re.compile(target)
        except re.error as exc:
            raise DeletionError(str(exc)) from exc
        return [name for name in databases if pattern.search(name)]
    if bulk:
        return databases
    return [target] if target in databases else []


def confirm_action(
    message: str, stdin: TextIO | None = None, stdout: TextIO | None = None
) -> bool:
    """Ask the user to confirm; only "y" or "yes" count as agreement."""
    out = stdout or sys.stdout
    source = stdin or sys.stdin
    out.write(f"{message}\n [y/N] : ")
    out.flush()
    response = source.readline().strip().lower()
    return response in ("y", "yes")


def delete_single_database(
    database: Any,
    metadb: Any,
    name: str,
    dry_run: bool,
    stream: TextIO | None = None,
) -> None:
    """Drop dataset ``name`` and its meta database record."""
    out = stream or sys.stdout
    try:
        db_exists = bool(database.client[name].list_collection_names())
    except PyMongoError as exc:
        raise DeletionError(str(exc)) from exc
    meta_exists = name in metadb.get_databases()

    if not dry_run:
        if db_exists:
            try:
                database.client.drop_database(name)
            except PyMongoError as exc:
                raise DeletionError("Failed to delete database") from exc
        if meta_exists:
            try:
                metadb.delete_db(name)
            except (PyMongoError, DatabaseNotFound) as exc:
                raise DeletionError("Failed to update metadb") from exc

    if not db_exists and not meta_exists:
        raise DeletionError(NO_RECORDS_MESSAGE)

    print(f"\t[-] Successfully deleted database {name}.", file=out)


def delete_databases(
    database: Any,
    metadb: Any,
    target: str,
    match: bool = False,
    regex: bool = False,
    bulk: bool = False,
    force: bool = False,
    dry_run: bool = False,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> list[str]:
    """Delete the datasets chosen by ``target`` and the flags; return their names."""
    out = stdout or sys.stdout
    check_command_flags(match, regex, bulk, target)

    names = select_databases(metadb.get_databases(), target, match, regex, bulk)
    if not names:
        raise DeletionError("Failed to find any databases")

    if not force and not dry_run:
        prompt = "Confirm we'll be deleting the following databases:\n" + "\n".join(
            names
        )
        if not confirm_action(prompt, stdin, out):
            raise DeletionError("Nothing deleted, no changes have been made", 0)
        print("Deleting databases...", file=out)

    for name in names:
        delete_single_database(database, metadb, name, dry_run, out)

    if dry_run:
        print(
            "\t[-] This was a dry run of the delete command, nothing has been changed!",
            file=out,
        )
    return names