"""Settings derived from the static configuration at start-up."""

from __future__ import annotations

import ssl
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from semver import Version

if TYPE_CHECKING:
    from rita.config import StaticConfig


class ConfigVersionError(ValueError):
    """Raised when the configured program version cannot be parsed."""


class AuthMechanism(Enum):
    """MongoDB authentication mechanisms understood by the connector."""

    NONE = ""
    SCRAM_SHA_1 = "SCRAM-SHA-1"
    MONGODB_CR = "MONGODB-CR"


@dataclass
class MongoDBRunningConfig:
    """Parsed information for connecting to MongoDB."""

    auth_mechanism: AuthMechanism = AuthMechanism.NONE
    tls_context: ssl.SSLContext | None = None


@dataclass
class RunningConfig:
    """Configuration options that are worked out at run time."""

    mongodb: MongoDBRunningConfig = field(default_factory=MongoDBRunningConfig)
    version: Version = field(default_factory=lambda: Version(0, 0, 0))


def parse_tolerant(text: str) -> Version:
    """Parse a version leniently: surrounding spaces, a leading "v" and
    missing minor or patch numbers are accepted."""
    text = text.strip().removeprefix("v")
    parts = text.split(".", 2)
    if len(parts) < 3:
        if any(mark in parts[-1] for mark in "+-"):
            raise ValueError(
                "short version cannot contain prerelease or build metadata"
            )
        parts.extend(["0"] * (3 - len(parts)))
        text = ".".join(parts)
    return Version.parse(text)


def parse_auth_mechanism(name: str) -> AuthMechanism:
    """Return the authentication mechanism named by ``name``."""
    wanted = name.strip().upper()
    for mechanism in AuthMechanism:
        if mechanism.value == wanted:
            return mechanism
    raise ValueError(f"unknown authentication mechanism: {name!r}")


def _build_tls_context(verify_certificate: bool, ca_file: str) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    if not verify_certificate:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if ca_file:
        try:
            context.load_verify_locations(cafile=ca_file)
        except OSError:
            print("[!] Could not read MongoDB CA file")
            context.load_default_certs()
    else:
        context.load_default_certs()
    return context


def init_running_config(static: StaticConfig) -> RunningConfig:
    """Build the running configuration from a static configuration."""
    running = RunningConfig()

    tls = static.mongodb.tls
    if tls.enabled:
        running.mongodb.tls_context = _build_tls_context(
            tls.verify_certificate, tls.ca_file
        )

    try:
        running.mongodb.auth_mechanism = parse_auth_mechanism(
            static.mongodb.auth_mechanism
        )
    except ValueError:
        running.mongodb.auth_mechanism = AuthMechanism.NONE
        print("[!] Could not parse MongoDB authentication mechanism")

    try:
        running.version = parse_tolerant(static.version)
    except (ValueError, TypeError) as exc:
        raise ConfigVersionError(
            f"\t[!] Version error: {static.version!r} is not a valid version. "
            "Please ensure that the package was installed with a proper version."
        ) from exc
    return running