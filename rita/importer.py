"""Validation of import arguments and of the rolling settings of an import."""

from __future__ import annotations

import os
from typing import Sequence

from rita.config import RollingStaticConfig

UNSET = -1
"""Value of a chunk option the user did not give on the command line."""

INVALID_DB_CHARS = "/\\.,*<>:|?$#"

_BOTH_REQUIRED = (
    "\n\t[!] Both <files/directory to import> and <database name> are required."
)


class ImportSettingsError(ValueError):
    """Raised when import arguments or rolling settings are not acceptable."""


def _truncated_remainder(dividend: int, divisor: int) -> int:
    """Remainder whose sign follows the dividend."""
    if divisor == 0:
        raise ImportSettingsError(
            "\t[!] The total number of chunks must not be zero"
        )
    remainder = abs(dividend) % abs(divisor)
    return remainder if dividend >= 0 else -remainder


def parse_flags(
    db_exists: bool,
    db_is_rolling: bool,
    db_curr_chunk: int,
    db_total_chunks: int,
    user_is_rolling: bool,
    user_curr_chunk: int,
    user_total_chunks: int,
    cfg_default_chunks: int,
    delete_old_data: bool,
) -> RollingStaticConfig:
    """Work out the rolling settings of an import from the state of the target
    database and the options the user gave."""
    # a user-provided value for either chunk option implies rolling
    if user_total_chunks != UNSET or user_curr_chunk != UNSET:
        user_is_rolling = True

    if not delete_old_data and db_exists and not db_is_rolling and not user_is_rolling:
        raise ImportSettingsError(
            "\t[!] New data cannot be imported into a non-rolling database. "
            "Run with --rolling to convert this database into a rolling database."
        )

    if user_total_chunks != UNSET:
        if db_exists and db_is_rolling and user_total_chunks < db_total_chunks:
            raise ImportSettingsError(
                "\t[!] Cannot modify the total number of chunks in an existing "
                f"database [ {db_total_chunks} ]"
            )
        total_chunks = user_total_chunks
    elif not db_exists and not user_is_rolling:
        total_chunks = 1
    elif delete_old_data and db_exists and not db_is_rolling and not user_is_rolling:
        total_chunks = 1
    elif db_exists and db_is_rolling:
        total_chunks = db_total_chunks
    else:
        total_chunks = cfg_default_chunks

    if user_curr_chunk != UNSET:
        current_chunk = user_curr_chunk
    elif not db_exists:
        current_chunk = 0
    elif delete_old_data and not db_is_rolling:
        current_chunk = 0
    elif delete_old_data and db_is_rolling:
        # replace the latest chunk when --delete is given without --chunk
        current_chunk = db_curr_chunk
    else:
        current_chunk = _truncated_remainder(db_curr_chunk + 1, total_chunks)

    if current_chunk < 0 or current_chunk >= total_chunks:
        raise ImportSettingsError(
            f"\t[!] Current chunk number [ {current_chunk} ] must be 0 or greater "
            f"and less than the total number of chunks [ {total_chunks} ]"
        )

    return RollingStaticConfig(
        default_chunks=cfg_default_chunks,
        rolling=db_is_rolling or user_is_rolling,
        current_chunk=current_chunk,
        total_chunks=total_chunks,
    )


def split_import_args(args: Sequence[str]) -> tuple[list[str], str]:
    """Split positional arguments into the paths to import and the target database."""
    if len(args) < 2:
        raise ImportSettingsError(_BOTH_REQUIRED)
    *files, target = args
    if not files[0] or not target:
        raise ImportSettingsError(_BOTH_REQUIRED)
    return list(files), target


def check_files_exist(files: Sequence[str | os.PathLike]) -> None:
    """Raise ImportSettingsError naming the first path that does not exist."""
    for path in files:
        if not os.path.exists(path):
            raise ImportSettingsError(f"\n\t[!] {os.fspath(path)} cannot be found")


def check_for_invalid_db_chars(db: str) -> None:
    """Raise ImportSettingsError if ``db`` holds a character not allowed in names."""
    if any(char in INVALID_DB_CHARS for char in db):
        raise ImportSettingsError(
            "\n\t[!] database cannot contain the characters < /, \\, ., \", *, <, >, "
            ":, |, ?, $ > as well as spaces or the null character"
        )