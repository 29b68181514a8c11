"""Access to the meta database that tracks every imported dataset."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from pymongo import DESCENDING
from pymongo.errors import PyMongoError
from semver import Version

from rita.config import Config
from rita.running import parse_tolerant

VERSION_CHECK_MESSAGE = "Checking versions..."
_ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)


class DatabaseNotFound(LookupError):
    """Raised when the meta database holds no record for a dataset."""

    def __init__(self, name: str) -> None:
        super().__init__(f"database {name!r} not found in the meta database")
        self.name = name


@dataclass(frozen=True)
class TimestampRange:
    """The earliest and latest timestamps seen in a dataset."""

    min: int = 0
    max: int = 0


@dataclass
class DBMetaInfo:
    """The meta database record of one dataset."""

    name: str = ""
    analyzed: bool = False
    analyze_version: str = ""
    rolling: bool = False
    total_chunks: int = 0
    current_chunk: int = 0
    ts_range: TimestampRange = field(default_factory=TimestampRange)
    id: Any = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> DBMetaInfo:
        ts = doc.get("ts_range") or {}
        return cls(
            name=doc.get("name", ""),
            analyzed=bool(doc.get("analyzed", False)),
            analyze_version=doc.get("analyze_version", "") or "",
            rolling=bool(doc.get("rolling", False)),
            total_chunks=int(doc.get("total_chunks", 0) or 0),
            current_chunk=int(doc.get("current_chunk", 0) or 0),
            ts_range=TimestampRange(
                int(ts.get("min", 0) or 0), int(ts.get("max", 0) or 0)
            ),
            id=doc.get("_id"),
        )

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "name": self.name,
            "analyzed": self.analyzed,
            "analyze_version": self.analyze_version,
            "rolling": self.rolling,
            "total_chunks": self.total_chunks,
            "current_chunk": self.current_chunk,
            "ts_range": {"min": self.ts_range.min, "max": self.ts_range.max},
        }
        if self.id is not None:
            doc["_id"] = self.id
        return doc


@dataclass
class LogInfo:
    """A record of a past check for a newer release."""

    time: datetime = _ZERO_TIME
    message: str = ""
    version: str = ""
    id: Any = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> LogInfo:
        return cls(
            time=doc.get("LastUpdateCheck", _ZERO_TIME) or _ZERO_TIME,
            message=doc.get("Message", "") or "",
            version=doc.get("NewestVersion", "") or "",
            id=doc.get("_id"),
        )


@dataclass(frozen=True)
class RollingSettings:
    """The rolling state of a dataset as recorded in the meta database."""

    exists: bool = False
    is_rolling: bool = False
    current_chunk: int = 0
    total_chunks: int = 0


class MetaDB:
    """Handle on the meta database, safe to share between threads."""

    def __init__(self, config: Config, client: Any, log: logging.Logger) -> None:
        self._config = config
        self._client = client
        self._log = log
        self._lock = threading.Lock()

    @property
    def _meta(self) -> Any:
        return self._client[self._config.static.mongodb.meta_db]

    @property
    def _databases(self) -> Any:
        return self._meta[self._config.tables.meta.databases_table]

    @property
    def _files(self) -> Any:
        return self._meta[self._config.tables.meta.files_table]

    def _query(self, query: Mapping[str, Any]) -> list[DBMetaInfo]:
        with self._lock:
            return [
                DBMetaInfo.from_document(doc)
                for doc in self._databases.find(dict(query))
            ]

    def _names(self, query: Mapping[str, Any]) -> list[str]:
        return [info.name for info in self._query(query)]

    def get_rolling_settings(self, db: str) -> RollingSettings:
        """Return the rolling settings of ``db``; a missing record is not an error."""
        try:
            info = self.get_db_meta_info(db)
        except DatabaseNotFound:
            return RollingSettings()
        return RollingSettings(
            exists=True,
            is_rolling=info.rolling,
            current_chunk=info.current_chunk,
            total_chunks=info.total_chunks,
        )

    def set_rolling_settings(self, db: str, chunk: int, num_chunks: int) -> None:
        """Mark ``db`` as rolling with the given current and total chunks."""
        info = self.get_db_meta_info(db)
        update: dict[str, Any] = {
            "rolling": True,
            "current_chunk": chunk,
            "total_chunks": num_chunks,
        }
        if not info.rolling:
            self._log.info(
                "The dataset [ %s ] is being converted to a rolling dataset.", db
            )
        elif info.total_chunks < num_chunks:
            self._log.warning(
                "The total chunk size for existing rolling dataset [ %s ] was set "
                "to [ %d ] and is being increased to [ %d ].",
                db, info.total_chunks, num_chunks,
            )
            # grow the chunk list while keeping the existing entries
            for cid in range(info.total_chunks, num_chunks):
                update[f"cid_list.{cid}.set"] = False
        elif info.total_chunks > num_chunks:
            self._log.warning(
                "The total chunk size for existing rolling dataset [ %s ] was set "
                "to [ %d ] and is being decreased to [ %d ].",
                db, info.total_chunks, num_chunks,
            )
        with self._lock:
            self._databases.update_one({"name": db}, {"$set": update}, upsert=True)

    def last_check(self) -> tuple[datetime, Version]:
        """Return the time and newest version found by the latest release check."""
        cursor = (
            self._meta["logs"]
            .find({"Message": VERSION_CHECK_MESSAGE})
            .sort("LastUpdateCheck", DESCENDING)
            .limit(1)
        )
        doc = next(iter(cursor), None)
        entry = LogInfo.from_document(doc) if doc is not None else LogInfo()
        try:
            return entry.time, parse_tolerant(entry.version)
        except (ValueError, TypeError):
            return _ZERO_TIME, Version(0, 0, 0)

    def add_new_db(self, name: str, current_chunk: int, total_chunks: int) -> None:
        """Create the record of a new, unanalyzed dataset."""
        record = DBMetaInfo(
            name=name,
            analyze_version=self._config.static.version,
            current_chunk=current_chunk,
            total_chunks=total_chunks,
        )
        with self._lock:
            try:
                self._databases.insert_one(record.to_document())
            except PyMongoError as exc:
                self._log.error(
                    "failed to create new db document: name=%s error=%s", name, exc
                )
                raise
            cid_list = [{"set": False} for _ in range(total_chunks)]
            self._databases.update_one(
                {"name": name}, {"$set": {"cid_list": cid_list}}, upsert=True
            )

    def db_exists(self, name: str) -> bool:
        """Return whether a record exists for ``name``."""
        try:
            self.get_db_meta_info(name)
        except DatabaseNotFound:
            return False
        return True

    def delete_db(self, name: str) -> None:
        """Remove the record of ``name`` and its parsed file records."""
        try:
            self.get_db_meta_info(name)
        except DatabaseNotFound:
            self._log.error("database not found in metadata directory: %s", name)
            raise
        with self._lock:
            self._databases.delete_many({"name": name})
            self._files.delete_many({"database": name})

    def get_ts_range(self, name: str) -> TimestampRange:
        """Return the timestamp range recorded for ``name``."""
        try:
            self.get_db_meta_info(name)
        except DatabaseNotFound:
            self._log.error(
                "Could not read timestamp range: database %s not found", name
            )
            raise
        with self._lock:
            doc = self._databases.find_one({"name": name})
        if doc is None:
            raise DatabaseNotFound(name)
        ts = doc.get("ts_range") or {}
        return TimestampRange(int(ts.get("min", 0) or 0), int(ts.get("max", 0) or 0))

    def add_ts_range(self, name: str, min_ts: int, max_ts: int) -> None:
        """Record the timestamp range found in ``name``."""
        try:
            info = self.get_db_meta_info(name)
        except DatabaseNotFound:
            self._log.error(
                "Could not add timestamp range: database %s not found", name
            )
            raise
        with self._lock:
            try:
                self._databases.update_one(
                    {"_id": info.id},
                    {"$set": {"ts_range.min": min_ts, "ts_range.max": max_ts}},
                    upsert=True,
                )
            except PyMongoError as exc:
                self._log.error(
                    "Could not update timestamp range for %s: %s", name, exc
                )
                raise

    def mark_db_analyzed(self, name: str, complete: bool) -> None:
        """Set whether ``name`` has been analyzed, stamping the running version."""
        try:
            info = self.get_db_meta_info(name)
        except DatabaseNotFound:
            self._log.error("database not found in metadata directory: %s", name)
            raise
        version_tag = self._config.static.version if complete else ""
        with self._lock:
            try:
                self._databases.update_one(
                    {"_id": info.id},
                    {"$set": {"analyzed": complete, "analyze_version": version_tag}},
                    upsert=True,
                )
            except PyMongoError as exc:
                self._log.error("could not update database entry %s: %s", name, exc)
                raise

    def set_chunk(self, cid: int, db: str, analyzed: bool) -> None:
        """Set the analyzed flag of chunk ``cid`` in ``db``."""
        with self._lock:
            try:
                self._databases.update_one(
                    {"name": db},
                    {"$set": {f"cid_list.{cid}.set": analyzed}},
                    upsert=True,
                )
            except PyMongoError as exc:
                self._log.error(
                    "Could not update CID analyzed value for %s: %s", db, exc
                )
                raise

    def is_chunk_set(self, cid: int, db: str) -> bool:
        """Return whether chunk ``cid`` of ``db`` is marked as set."""
        query = {"$and": [{"name": db}, {f"cid_list.{cid}.set": True}]}
        with self._lock:
            return self._databases.find_one(query) is not None

    def get_db_meta_info(self, name: str) -> DBMetaInfo:
        """Return the record of ``name`` or raise DatabaseNotFound."""
        results = self._query({"name": name})
        if not results:
            raise DatabaseNotFound(name)
        return results[0]

    def get_databases(self) -> list[str]:
        """Return the names of all tracked datasets, or an empty list on failure."""
        try:
            return self._names({})
        except PyMongoError as exc:
            self._log.error("Could not list databases: %s", exc)
            return []

    def check_compatible_analyze(self, target_database: str) -> bool:
        """Return whether ``target_database`` was analyzed by a compatible version."""
        info = self.get_db_meta_info(target_database)
        existing = parse_tolerant(info.analyze_version)
        return self._config.running.version.major == existing.major

    def get_unanalyzed_databases(self) -> list[str]:
        """Return the names of datasets not yet analyzed."""
        try:
            return self._names({"analyzed": False})
        except PyMongoError:
            return []

    def get_analyzed_databases(self) -> list[str]:
        """Return the names of analyzed datasets."""
        try:
            return self._names({"analyzed": True})
        except PyMongoError:
            return []

    def get_files(self, database: str) -> list[dict[str, Any]]:
        """Return the parsed file records belonging to ``database``."""
        with self._lock:
            try:
                return list(self._files.find({"database": database}))
            except PyMongoError as exc:
                self._log.error("could not fetch files from meta database: %s", exc)
                raise

    def add_parsed_files(self, files: Iterable[Any]) -> None:
        """Record parsed files; each is a mapping or a dataclass instance."""
        documents = [
            asdict(item) if is_dataclass(item) else dict(item) for item in files
        ]
        if not documents:
            return
        with self._lock:
            try:
                self._files.insert_many(documents, ordered=False)
            except PyMongoError as exc:
                self._log.error("could not insert files into meta database: %s", exc)
                raise

    def remove_files_by_chunk(self, database: str, cid: int) -> None:
        """Forget the files of one chunk so that it can be imported again."""
        with self._lock:
            try:
                self._files.delete_many({"database": database, "cid": cid})
            except PyMongoError as exc:
                self._log.error(
                    "could not remove files of %s chunk %d: %s", database, cid, exc
                )