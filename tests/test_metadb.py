import copy
import itertools
import logging
from collections import defaultdict
from datetime import datetime

import pytest
from pymongo.errors import PyMongoError
from semver import Version

from rita.config import Config
from rita.metadb import DatabaseNotFound, MetaDB, RollingSettings, TimestampRange
from rita.running import RunningConfig

_ids = itertools.count(1)


def _get_path(doc, path):
    current = doc
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return None
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


def _set_path(doc, path, value):
    parts = path.split(".")
    current = doc
    for position, part in enumerate(parts):
        last = position == len(parts) - 1
        if isinstance(current, list):
            index = int(part)
            while len(current) <= index:
                current.append(None)
            if last:
                current[index] = value
            else:
                if not isinstance(current[index], (dict, list)):
                    current[index] = {}
                current = current[index]
        else:
            if last:
                current[part] = value
            else:
                if not isinstance(current.get(part), (dict, list)):
                    current[part] = {}
                current = current[part]


def _matches(doc, query):
    for key, expected in query.items():
        if key == "$and":
            if not all(_matches(doc, sub) for sub in expected):
                return False
        elif _get_path(doc, key) != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, key, direction):
        self.docs.sort(key=lambda d: _get_path(d, key), reverse=direction < 0)
        return self

    def limit(self, count):
        self.docs = self.docs[:count]
        return self

    def __iter__(self):
        return iter(self.docs)


class FakeCollection:
    def __init__(self):
        self.docs = []

    def find(self, query=None):
        return FakeCursor(
            [copy.deepcopy(d) for d in self.docs if _matches(d, query or {})]
        )

    def find_one(self, query=None):
        return next(iter(self.find(query)), None)

    def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", next(_ids))
        self.docs.append(doc)

    def insert_many(self, docs, ordered=True):
        for doc in docs:
            self.insert_one(doc)

    def update_one(self, query, update, upsert=False):
        target = next((d for d in self.docs if _matches(d, query)), None)
        if target is None:
            if not upsert:
                return
            target = {k: v for k, v in query.items() if not k.startswith("$")}
            target.setdefault("_id", next(_ids))
            self.docs.append(target)
        for path, value in update.get("$set", {}).items():
            _set_path(target, path, copy.deepcopy(value))

    def delete_many(self, query):
        self.docs = [d for d in self.docs if not _matches(d, query)]


class FakeClient:
    def __init__(self):
        self.dbs = defaultdict(lambda: defaultdict(FakeCollection))

    def __getitem__(self, name):
        return self.dbs[name]


class BrokenCollection:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise PyMongoError("connection lost")

        return fail


class BrokenClient:
    def __getitem__(self, name):
        return defaultdict(BrokenCollection)


@pytest.fixture
def config():
    cfg = Config()
    cfg.static.version = "v3.2.1"
    cfg.running = RunningConfig(version=Version(3, 2, 1))
    return cfg


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def meta(config, client):
    return MetaDB(config, client, logging.getLogger("test-metadb"))


def _databases(client, config):
    return client[config.static.mongodb.meta_db][config.tables.meta.databases_table]


def test_add_new_db_round_trip(meta, config):
    meta.add_new_db("dataset", 3, 5)
    info = meta.get_db_meta_info("dataset")
    assert info.name == "dataset"
    assert info.current_chunk == 3
    assert info.total_chunks == 5
    assert info.analyzed is False
    assert info.rolling is False
    assert info.analyze_version == config.static.version


def test_add_new_db_builds_unset_chunk_list(meta, client, config):
    meta.add_new_db("dataset", 0, 4)
    doc = _databases(client, config).find_one({"name": "dataset"})
    assert doc["cid_list"] == [{"set": False}] * 4
    assert not any(meta.is_chunk_set(cid, "dataset") for cid in range(4))


def test_set_chunk_marks_chunk(meta):
    meta.add_new_db("dataset", 0, 3)
    meta.set_chunk(1, "dataset", True)
    assert meta.is_chunk_set(1, "dataset") is True
    assert meta.is_chunk_set(0, "dataset") is False
    meta.set_chunk(1, "dataset", False)
    assert meta.is_chunk_set(1, "dataset") is False


def test_missing_database_lookup_raises(meta):
    with pytest.raises(DatabaseNotFound):
        meta.get_db_meta_info("nothing")
    assert meta.db_exists("nothing") is False


def test_db_exists_after_add(meta):
    meta.add_new_db("dataset", 0, 1)
    assert meta.db_exists("dataset") is True


def test_rolling_settings_of_missing_database(meta):
    assert meta.get_rolling_settings("nothing") == RollingSettings(False, False, 0, 0)


def test_set_rolling_settings_round_trip(meta):
    meta.add_new_db("dataset", 0, 1)
    meta.set_rolling_settings("dataset", 2, 6)
    assert meta.get_rolling_settings("dataset") == RollingSettings(True, True, 2, 6)


def test_set_rolling_settings_grows_chunk_list(meta, client, config):
    meta.add_new_db("dataset", 0, 2)
    meta.set_rolling_settings("dataset", 0, 2)
    meta.set_chunk(1, "dataset", True)
    meta.set_rolling_settings("dataset", 2, 4)
    doc = _databases(client, config).find_one({"name": "dataset"})
    assert len(doc["cid_list"]) == 4
    assert meta.is_chunk_set(1, "dataset") is True
    assert meta.is_chunk_set(3, "dataset") is False


def test_set_rolling_settings_missing_database(meta):
    with pytest.raises(DatabaseNotFound):
        meta.set_rolling_settings("nothing", 0, 2)


def test_delete_db_removes_record_and_files(meta):
    meta.add_new_db("dataset", 0, 1)
    meta.add_new_db("other", 0, 1)
    meta.add_parsed_files(
        [{"database": "dataset", "cid": 0}, {"database": "other", "cid": 0}]
    )
    meta.delete_db("dataset")
    assert meta.get_databases() == ["other"]
    assert meta.get_files("dataset") == []
    assert len(meta.get_files("other")) == 1


def test_delete_missing_db_raises(meta):
    with pytest.raises(DatabaseNotFound):
        meta.delete_db("nothing")


def test_timestamp_range_round_trip(meta):
    meta.add_new_db("dataset", 0, 1)
    meta.add_ts_range("dataset", 1500000000, 1500086400)
    assert meta.get_ts_range("dataset") == TimestampRange(1500000000, 1500086400)


def test_timestamp_range_missing_database(meta):
    with pytest.raises(DatabaseNotFound):
        meta.add_ts_range("nothing", 1, 2)
    with pytest.raises(DatabaseNotFound):
        meta.get_ts_range("nothing")


def test_mark_db_analyzed(meta, config):
    meta.add_new_db("first", 0, 1)
    meta.add_new_db("second", 0, 1)
    meta.mark_db_analyzed("first", True)
    assert meta.get_analyzed_databases() == ["first"]
    assert meta.get_unanalyzed_databases() == ["second"]
    assert meta.get_db_meta_info("first").analyze_version == config.static.version
    meta.mark_db_analyzed("first", False)
    assert meta.get_db_meta_info("first").analyze_version == ""
    assert meta.get_analyzed_databases() == []


def test_get_databases_in_insertion_order(meta):
    for name in ["alpha", "beta", "gamma"]:
        meta.add_new_db(name, 0, 1)
    assert meta.get_databases() == ["alpha", "beta", "gamma"]


def test_failures_give_empty_lists(config):
    broken = MetaDB(config, BrokenClient(), logging.getLogger("test-metadb"))
    assert broken.get_databases() == []
    assert broken.get_analyzed_databases() == []
    assert broken.get_unanalyzed_databases() == []


def test_check_compatible_analyze(meta, config):
    meta.add_new_db("dataset", 0, 1)
    meta.mark_db_analyzed("dataset", True)
    assert meta.check_compatible_analyze("dataset") is True
    config.running = RunningConfig(version=Version(4, 0, 0))
    assert meta.check_compatible_analyze("dataset") is False


def test_check_compatible_analyze_unanalyzed_version(meta):
    meta.add_new_db("dataset", 0, 1)
    meta.mark_db_analyzed("dataset", False)
    with pytest.raises(ValueError):
        meta.check_compatible_analyze("dataset")


def test_last_check_without_logs(meta):
    timestamp, version = meta.last_check()
    assert version == Version(0, 0, 0)
    assert timestamp.year == 1


def test_last_check_picks_latest(meta, client, config):
    logs = client[config.static.mongodb.meta_db]["logs"]
    older = datetime(2020, 1, 1)
    newer = datetime(2020, 6, 1)
    logs.insert_one(
        {"LastUpdateCheck": older, "Message": "Checking versions...",
         "NewestVersion": "v3.0.0"}
    )
    logs.insert_one(
        {"LastUpdateCheck": newer, "Message": "Checking versions...",
         "NewestVersion": "v3.3.0"}
    )
    timestamp, version = meta.last_check()
    assert timestamp == newer
    assert version == Version(3, 3, 0)


def test_files_round_trip_and_chunk_removal(meta):
    meta.add_parsed_files(
        [
            {"database": "dataset", "cid": 0, "path": "conn.log"},
            {"database": "dataset", "cid": 1, "path": "dns.log"},
        ]
    )
    assert sorted(f["path"] for f in meta.get_files("dataset")) == [
        "conn.log",
        "dns.log",
    ]
    meta.remove_files_by_chunk("dataset", 0)
    assert [f["path"] for f in meta.get_files("dataset")] == ["dns.log"]


def test_add_parsed_files_empty_is_noop(meta):
    meta.add_parsed_files([])
    assert meta.get_files("dataset") == []


def test_remove_files_by_chunk_swallows_errors(config):
    broken = MetaDB(config, BrokenClient(), logging.getLogger("test-metadb"))
    assert broken.remove_files_by_chunk("dataset", 0) is None
    with pytest.raises(PyMongoError):
        broken.get_files("dataset")