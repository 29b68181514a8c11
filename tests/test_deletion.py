import io
import logging
from itertools import product

import pytest

from rita.database import Database
from rita.deletion import (
    DeletionError,
    check_command_flags,
    check_flags_exclusive,
    confirm_action,
    delete_databases,
    delete_single_database,
    select_databases,
)


class FakeMongoDatabase:
    def __init__(self, client, name):
        self._client = client
        self._name = name

    def list_collection_names(self):
        return list(self._client.collections.get(self._name, []))


class FakeClient:
    def __init__(self, collections):
        self.collections = {k: list(v) for k, v in collections.items()}
        self.dropped = []

    def __getitem__(self, name):
        return FakeMongoDatabase(self, name)

    def drop_database(self, name):
        self.dropped.append(name)
        self.collections.pop(name, None)


class FakeMetaDB:
    def __init__(self, names):
        self.names = list(names)
        self.deleted = []

    def get_databases(self):
        return list(self.names)

    def delete_db(self, name):
        self.deleted.append(name)
        self.names.remove(name)


def make(names_with_data, meta_names):
    client = FakeClient({name: ["conn"] for name in names_with_data})
    return Database(client, logging.getLogger("test")), client, FakeMetaDB(meta_names)


@pytest.mark.parametrize("a, b, c", list(product([False, True], repeat=3)))
def test_flags_exclusive_at_most_one(a, b, c):
    assert check_flags_exclusive(a, b, c) == (sum([a, b, c]) <= 1)


def test_command_flags_need_target():
    with pytest.raises(DeletionError, match="Please provide a database"):
        check_command_flags(False, False, False, "")


def test_command_flags_bulk_without_target_reaches_combination_check():
    with pytest.raises(DeletionError, match="Invalid combination of flags"):
        check_command_flags(True, False, True, "")


def test_command_flags_error_exit_code():
    with pytest.raises(DeletionError) as info:
        check_command_flags(True, True, False, "x")
    assert info.value.exit_code == -1


def test_select_match_is_substring():
    dbs = ["alpha-1", "beta-1", "alpha-2"]
    assert select_databases(dbs, "alpha", True, False, False) == ["alpha-1", "alpha-2"]


def test_select_regex_searches():
    dbs = ["alpha-1", "beta-1", "alpha-2"]
    assert select_databases(dbs, r"-1$", False, True, False) == ["alpha-1", "beta-1"]


def test_select_invalid_regex():
    with pytest.raises(DeletionError):
        select_databases(["a"], "(", False, True, False)


def test_select_bulk_and_exact():
    dbs = ["alpha-1", "beta-1"]
    assert select_databases(dbs, "", False, False, True) == dbs
    assert select_databases(dbs, "beta-1", False, False, False) == ["beta-1"]
    assert select_databases(dbs, "beta", False, False, False) == []


@pytest.mark.parametrize(
    "answer, expected",
    [("y\n", True), ("YES\n", True), ("  yes  \n", True), ("n\n", False), ("", False), ("maybe\n", False)],
)
def test_confirm_action(answer, expected):
    out = io.StringIO()
    assert confirm_action("Proceed?", io.StringIO(answer), out) is expected
    assert out.getvalue() == "Proceed?\n [y/N] : "


def test_delete_single_database_removes_everything():
    database, client, meta = make(["ds"], ["ds"])
    out = io.StringIO()
    delete_single_database(database, meta, "ds", False, out)
    assert client.dropped == ["ds"]
    assert meta.deleted == ["ds"]
    assert "Successfully deleted database ds." in out.getvalue()


def test_delete_single_database_meta_only():
    database, client, meta = make([], ["ds"])
    delete_single_database(database, meta, "ds", False, io.StringIO())
    assert client.dropped == []
    assert meta.names == []


def test_delete_single_database_dry_run_changes_nothing():
    database, client, meta = make(["ds"], ["ds"])
    out = io.StringIO()
    delete_single_database(database, meta, "ds", True, out)
    assert client.dropped == []
    assert meta.names == ["ds"]
    assert "Successfully deleted database ds." in out.getvalue()


def test_delete_single_database_missing():
    database, _, meta = make([], [])
    with pytest.raises(DeletionError, match="No records for database found"):
        delete_single_database(database, meta, "ds", False, io.StringIO())


def test_delete_databases_forced_match():
    database, client, meta = make(["ds-1", "ds-2", "other"], ["ds-1", "ds-2", "other"])
    deleted = delete_databases(
        database, meta, "ds", match=True, force=True, stdout=io.StringIO()
    )
    assert deleted == ["ds-1", "ds-2"]
    assert meta.names == ["other"]
    assert sorted(client.dropped) == ["ds-1", "ds-2"]


def test_delete_databases_declined():
    database, client, meta = make(["ds"], ["ds"])
    with pytest.raises(DeletionError, match="Nothing deleted") as info:
        delete_databases(database, meta, "ds", stdin=io.StringIO("n\n"), stdout=io.StringIO())
    assert info.value.exit_code == 0
    assert meta.names == ["ds"]
    assert client.dropped == []


def test_delete_databases_confirmed():
    database, _, meta = make(["ds"], ["ds"])
    out = io.StringIO()
    delete_databases(database, meta, "ds", stdin=io.StringIO("y\n"), stdout=out)
    assert "Deleting databases..." in out.getvalue()
    assert meta.names == []


def test_delete_databases_dry_run_message():
    database, _, meta = make(["ds"], ["ds"])
    out = io.StringIO()
    delete_databases(database, meta, "", bulk=True, dry_run=True, stdout=out)
    assert "This was a dry run of the delete command" in out.getvalue()
    assert meta.names == ["ds"]


def test_delete_databases_nothing_found():
    database, _, meta = make([], ["ds"])
    with pytest.raises(DeletionError, match="Failed to find any databases"):
        delete_databases(database, meta, "zzz", force=True, stdout=io.StringIO())