"""Connection handling and helpers for the analysis databases."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from pymongo import MongoClient
from pymongo.errors import PyMongoError
from semver import Version

from rita.config import Config
from rita.running import AuthMechanism, parse_tolerant

MIN_MONGODB_VERSION = Version(3, 6, 0)
"""Lowest supported MongoDB version, inclusive."""

MAX_MONGODB_VERSION = Version(3, 7, 0)
"""Upper bound on supported MongoDB versions, exclusive."""


class UnsupportedMongoVersion(Exception):
    """Raised when the server runs a MongoDB version outside the supported range."""

    def __init__(self, version: Version) -> None:
        super().__init__(
            f"unsupported version of MongoDB. {version} not within "
            f"[{MIN_MONGODB_VERSION}, {MAX_MONGODB_VERSION})"
        )
        self.version = version


def check_mongo_version(version: str) -> Version:
    """Parse a server version and make sure it is supported."""
    parsed = parse_tolerant(version)
    if not MIN_MONGODB_VERSION <= parsed < MAX_MONGODB_VERSION:
        raise UnsupportedMongoVersion(parsed)
    return parsed


def _client_options(config: Config) -> dict[str, Any]:
    options: dict[str, Any] = {}
    timeout_ms = int(config.static.mongodb.socket_timeout.total_seconds() * 1000)
    if timeout_ms > 0:
        options["socketTimeoutMS"] = timeout_ms
        options["serverSelectionTimeoutMS"] = timeout_ms

    mechanism = config.running.mongodb.auth_mechanism
    if mechanism is not AuthMechanism.NONE:
        options["authMechanism"] = mechanism.value

    tls = config.static.mongodb.tls
    if tls.enabled:
        options["tls"] = True
        if not tls.verify_certificate:
            options["tlsAllowInvalidCertificates"] = True
        if tls.ca_file:
            options["tlsCAFile"] = tls.ca_file
    return options


def connect_to_mongodb(config: Config) -> MongoClient:
    """Connect to MongoDB, optionally with authentication and TLS,
    and check that the server version is supported."""
    client = MongoClient(
        config.static.mongodb.connection_string, **_client_options(config)
    )
    try:
        info = client.server_info()
        check_mongo_version(str(info.get("version", "")))
    except BaseException:
        client.close()
        raise
    return client


class Database:
    """Access to the currently selected analysis database."""

    def __init__(self, client: Any, log: logging.Logger) -> None:
        self.client = client
        self._log = log
        self._selected = ""

    @classmethod
    def connect(cls, config: Config, log: logging.Logger) -> Database:
        """Open a connection described by ``config``."""
        return cls(connect_to_mongodb(config), log)

    def select_db(self, db: str) -> None:
        """Select the database to work on."""
        self._selected = db

    @property
    def selected_db(self) -> str:
        """The name of the currently selected database."""
        return self._selected

    def collection_exists(self, table: str) -> bool:
        """Return whether ``table`` exists in the selected database."""
        try:
            names = self.client[self._selected].list_collection_names()
        except PyMongoError as exc:
            self._log.error("Failed collection name lookup: %s", exc)
            return False
        return table in names

    def create_collection(self, name: str, indexes: Iterable[Any] = ()) -> None:
        """Create collection ``name`` with the given pymongo ``IndexModel`` indexes."""
        self._log.debug("Building collection: %s", name)
        collection = self.client[self._selected].create_collection(name)
        models = list(indexes)
        if models:
            collection.create_indexes(models)

    def aggregate_collection(
        self, source_collection: str, pipeline: Sequence[Mapping[str, Any]]
    ) -> Any:
        """Run ``pipeline`` over ``source_collection``; return the cursor, or None
        if the collection is missing or the aggregation fails."""
        if not self.collection_exists(source_collection):
            self._log.warning(
                "Failed aggregation: (Source collection: %s doesn't exist)",
                source_collection,
            )
            return None
        collection = self.client[self._selected][source_collection]
        try:
            return collection.aggregate(list(pipeline), allowDiskUse=True)
        except PyMongoError as exc:
            self._log.error("Failed aggregate operation: %s", exc)
            return None