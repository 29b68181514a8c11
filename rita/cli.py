"""Command line front end."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, fields, is_dataclass
from datetime import timedelta
from enum import Enum
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Sequence, TextIO

import yaml
from pymongo.errors import PyMongoError

from rita.config import load_config
from rita.database import Database, UnsupportedMongoVersion
from rita.deletion import DeletionError, check_command_flags, delete_databases
from rita.formatting import format_duration
from rita.metadb import MetaDB

OUTDATED_METADB_MESSAGE = (
    "\t[-] Cannot display databases due to outdated metadatabase entries."
)


@dataclass(frozen=True)
class _Flag:
    long: str
    short: str
    help: str
    default: Any = False
    metavar: str | None = None

    @property
    def name(self) -> str:
        return self.long.lstrip("-")

    @property
    def dest(self) -> str:
        return self.name.replace("-", "_")

    def add_to(self, parser: argparse.ArgumentParser) -> None:
        if isinstance(self.default, bool):
            parser.add_argument(
                self.long, self.short, dest=self.dest, action="store_true",
                help=self.help,
            )
        else:
            parser.add_argument(
                self.long, self.short, dest=self.dest, default=self.default,
                metavar=self.metavar, help=self.help,
            )


@dataclass(frozen=True)
class _Command:
    name: str
    help: str
    flags: tuple[_Flag, ...]
    aliases: tuple[str, ...] = ()
    args_usage: str | None = None
    logged: bool = True


CONFIG_FLAG = _Flag(
    "--config", "-c", "Use a given CONFIG_FILE when running this command",
    "", "CONFIG_FILE",
)
FORCE_FLAG = _Flag("--force", "-f", "Bypass verification prompt")
ALL_FLAG = _Flag("--all", "-a", "Indicates all databases should be removed")
MATCH_FLAG = _Flag(
    "--match", "-m",
    "Indicate only databases matching <database> string should be removed",
)
REGEX_FLAG = _Flag(
    "--regex", "-r",
    "Indicate use regular expression as <database> string to be removed",
)
DRY_RUN_FLAG = _Flag(
    "--dry-run", "-n",
    "Tests which databases would be deleted. Does not actually delete any data, "
    "nor prompt for confirmation",
)

COMMANDS = (
    _Command(
        "delete",
        "Delete imported database(s)",
        (FORCE_FLAG, CONFIG_FLAG, ALL_FLAG, MATCH_FLAG, REGEX_FLAG, DRY_RUN_FLAG),
        aliases=("delete-database",),
        args_usage="<database>",
    ),
    _Command(
        "list",
        "Print the databases currently stored",
        (CONFIG_FLAG,),
        aliases=("show-databases",),
    ),
    _Command(
        "test-config",
        "Check the configuration file for validity",
        (_Flag("--config", "-c", "specify a config file to be used", "", "CONFIG_FILE"),),
        logged=False,
    ),
)
_BY_NAME = {command.name: command for command in COMMANDS}


def _program_version() -> str:
    try:
        return version("rita")
    except PackageNotFoundError:
        return "undefined"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every command and its flags."""
    parser = argparse.ArgumentParser(
        prog="rita", description="Look for evidence of compromise in network traffic"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s version {_program_version()}"
    )
    subparsers = parser.add_subparsers(dest="invoked", metavar="COMMAND")
    for command in COMMANDS:
        sub = subparsers.add_parser(
            command.name, aliases=list(command.aliases),
            help=command.help, description=command.help,
        )
        for flag in command.flags:
            flag.add_to(sub)
        sub.add_argument("args", nargs="*", metavar=command.args_usage or "ARGS")
        sub.set_defaults(command=command.name)
    return parser


def describe_invocation(command: str, args: argparse.Namespace) -> dict[str, Any]:
    """Return the log fields describing a command run: its positional
    arguments and every flag whose value differs from the default."""
    try:
        spec = _BY_NAME[command]
    except KeyError:
        raise ValueError(f"unknown command: {command!r}") from None
    described: dict[str, Any] = {"Arguments": list(getattr(args, "args", []) or [])}
    for flag in spec.flags:
        value = getattr(args, flag.dest, flag.default)
        if value != flag.default:
            described[f"Flag({flag.name})"] = value
    return described


def list_databases(metadb: Any, stream: TextIO | None = None) -> None:
    """Print the name of every tracked dataset, one per line."""
    out = stream or sys.stdout
    if metadb is None:
        print(OUTDATED_METADB_MESSAGE, file=out)
        return
    for name in metadb.get_databases():
        print(name, file=out)


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: _plain(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, Enum):
        return _plain(value.value)
    if isinstance(value, timedelta):
        return format_duration(value.total_seconds())
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def test_configuration(config_path: str, stream: TextIO | None = None) -> Any:
    """Print the parsed configuration, then check that the database can be reached.

    Exits with status -1 if the configuration cannot be loaded."""
    out = stream or sys.stdout
    try:
        config = load_config(config_path or "")
    except Exception as exc:
        print(f"Failed to config: {exc}", file=out)
        raise SystemExit(-1) from exc

    static_text = yaml.safe_dump(_plain(config.static), sort_keys=False)
    table_text = yaml.safe_dump(_plain(config.tables), sort_keys=False)
    out.write(f"\n{static_text}\n")
    out.write(f"\n{table_text}\n")

    database = Database.connect(config, logging.getLogger("rita"))
    database.client.close()
    return config


def _run(command: str, args: argparse.Namespace, log: logging.Logger) -> int:
    if command == "delete":
        target = args.args[0] if args.args else ""
        try:
            check_command_flags(args.match, args.regex, args.all, target)
        except DeletionError as exc:
            print(exc, file=sys.stderr)
            return exc.exit_code

    try:
        config = load_config(args.config or "")
    except Exception as exc:
        print(f"Failed to config: {exc}", file=sys.stderr)
        return -1
    try:
        database = Database.connect(config, log)
    except (PyMongoError, UnsupportedMongoVersion) as exc:
        print(f"Failed to connect to the database: {exc}", file=sys.stderr)
        return -1

    try:
        metadb = MetaDB(config, database.client, log)
        log.info(
            "Running Command: %s %s", command, describe_invocation(command, args)
        )
        if command == "list":
            list_databases(metadb)
            return 0
        try:
            delete_databases(
                database, metadb, target,
                match=args.match, regex=args.regex, bulk=args.all,
                force=args.force, dry_run=args.dry_run,
            )
        except DeletionError as exc:
            print(exc, file=sys.stderr)
            return exc.exit_code
        return 0
    finally:
        database.client.close()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line front end and return the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    command = getattr(args, "command", None)
    if command is None:
        parser.print_help()
        return 0
    log = logging.getLogger("rita")
    if command == "test-config":
        try:
            test_configuration(args.config, sys.stdout)
        except (PyMongoError, UnsupportedMongoVersion) as exc:
            print(f"Failed to connect to the database: {exc}", file=sys.stderr)
            return -1
        return 0
    return _run(command, args, log)


if __name__ == "__main__":
    sys.exit(main())