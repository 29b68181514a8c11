"""Checks for newer published releases."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.request import Request, urlopen

from semver import Version

from rita.config import Config
from rita.running import parse_tolerant

REPOSITORY_OWNER = "activecm"
REPOSITORY_NAME = "rita"
TAGS_API = (
    f"https://api.github.com/repos/{REPOSITORY_OWNER}/{REPOSITORY_NAME}"
    "/git/matching-refs/tags/v"
)
RELEASES_PAGE = f"https://github.com/{REPOSITORY_OWNER}/{REPOSITORY_NAME}/releases"

INFORM_MESSAGE = (
    "\nTheres a new {} version of RITA {} available at:\n" + RELEASES_PAGE + "\n"
)
VERSION_LEVELS = ("Major", "Minor", "Patch")
VERSION_CHECK_MESSAGE = "Checking versions..."


def version_diff_index(v1: Version, v2: Version) -> int:
    """Return 0, 1 or 2 for the first part in which ``v1`` is greater than ``v2``."""
    if v1.major > v2.major:
        return 0
    if v1.minor > v2.minor:
        return 1
    return 2


def inform_user(local: Version, remote: Version) -> str:
    """Build the notice announcing that ``remote`` is newer than ``local``."""
    return INFORM_MESSAGE.format(
        VERSION_LEVELS[version_diff_index(remote, local)], str(remote)
    )


def get_remote_version() -> Version:
    """Return the newest version tag published upstream."""
    request = Request(TAGS_API, headers={"Accept": "application/vnd.github+json"})
    with urlopen(request, timeout=10) as response:
        refs = json.load(response)
    if not refs:
        raise ValueError("no release tags found")
    return parse_tolerant(refs[-1]["ref"].removeprefix("refs/tags/"))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def update_check(config: Config, metadb: Any, log: logging.Logger) -> str:
    """Return a notice about a newer release, or an empty string."""
    frequency = config.static.user_config.update_check_frequency
    if frequency <= 0:
        return ""

    timestamp, newest = metadb.last_check()
    now = datetime.now(timezone.utc)
    days = (now - _as_utc(timestamp)).total_seconds() / 86400

    if days > frequency:
        try:
            newest = get_remote_version()
        except (OSError, ValueError, KeyError, TypeError):
            return ""
        log.info(
            "Checking for new version",
            extra={
                "Message": VERSION_CHECK_MESSAGE,
                "LastUpdateCheck": now,
                "NewestVersion": str(newest),
            },
        )

    try:
        running = parse_tolerant(config.static.version)
    except (ValueError, TypeError):
        return ""

    if newest > running:
        return inform_user(running, newest)
    return ""