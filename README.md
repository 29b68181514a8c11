# rita

A toolkit for network traffic analysis of Zeek logs kept in MongoDB. It
loads the YAML configuration, keeps track of datasets in a metadatabase,
works out the settings of rolling imports, and prints analysis results as
delimited text, JSON or bordered tables.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

The configuration is read from `/etc/rita/config.yaml` unless another file is
given with `--config` / `-c`. Every section is optional; anything left out
keeps its default. A small example:

```yaml
MongoDB:
    ConnectionString: mongodb://localhost:27017
    AuthenticationMechanism: null
    SocketTimeout: 2            # hours
    TLS:
        Enable: false
        VerifyCertificate: false
        CAFile: null
    MetaDB: MetaDatabase
LogConfig:
    LogLevel: 2
    RitaLogPath: /var/lib/rita/logs
    LogToFile: true
    LogToDB: true
UserConfig:
    UpdateCheckFrequency: 14    # days; 0 or less turns the check off
Rolling:
    DefaultChunks: 24
Filtering:
    AlwaysInclude: []
    NeverInclude: ["0.0.0.0/32", "127.0.0.0/8"]
    InternalSubnets: ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]
```

Environment variables such as `$HOME` or `${HOME}` are expanded in every
string value, including strings inside lists, and `RitaLogPath` is
normalised. A `MetaDB` name under the legacy `Bro` section is used when
`MongoDB.MetaDB` is left at its default. The running configuration refuses
to start (`rita.running.ConfigVersionError`) if the installed package
version cannot be parsed, and only MongoDB servers from 3.6 up to, but not
including, 3.7 are accepted (`rita.database.UnsupportedMongoVersion`).

## Command line

Check that a configuration file parses, see the values that were read, and
make sure the database can be reached:

```
rita test-config --config /path/to/config.yaml
```

List the datasets recorded in the metadatabase (alias `show-databases`):

```
rita list
```

Delete datasets (alias `delete-database`). Without flags the argument is an
exact dataset name; `--match` / `-m` deletes every dataset whose name
contains it, `--regex` / `-r` every dataset a regular expression finds, and
`--all` / `-a` every dataset. Only one of these three may be given. You are
asked to confirm unless `--force` / `-f` is given; `--dry-run` / `-n` shows
what would be deleted without changing anything:

```
rita delete --match test_
rita delete --all --dry-run
```

Run `rita --help` to see every command and its options.

## Library use

Load the configuration:

```python
from rita.config import load_config

config = load_config("/path/to/config.yaml")
```

Work out how an import should be placed in a rolling dataset. The arguments
describe the current state of the target database, what the user asked for
(`-1` meaning "not given"), the configured default number of chunks, and
whether old data is to be deleted first. The result is a
`RollingStaticConfig`; invalid combinations raise
`rita.importer.ImportSettingsError`:

```python
from rita.importer import ImportSettingsError, parse_flags

try:
    settings = parse_flags(True, True, 11, 24, False, -1, -1, 12, False)
    print(settings.current_chunk, settings.total_chunks)   # 12 24
except ImportSettingsError as err:
    print(err)
```

`split_import_args`, `check_files_exist` and `check_for_invalid_db_chars`
in the same module validate the positional arguments of an import.

Work with the metadatabase through `rita.metadb.MetaDB`, given a `Config`,
a `pymongo.MongoClient` and a logger: list datasets, read and set rolling
settings, mark datasets analyzed, record timestamp ranges and chunk flags,
and record parsed files. A missing dataset raises
`rita.metadb.DatabaseNotFound`.

Compare versions when checking for an update:

```python
import semver
from rita.updates import inform_user, version_diff_index

local = semver.Version.parse("1.1.1")
remote = semver.Version.parse("2.3.4")
version_diff_index(remote, local)   # 0: a new major version
print(inform_user(local, remote))
```

`rita.updates.update_check` asks the public release tag listing for the
newest version when the last recorded check is older than
`UpdateCheckFrequency` days, and returns a notice or an empty string.

Format values the same way the reports do:

```python
from rita.formatting import format_duration, format_float, split_sub_n

format_float(3.14159265)        # "3.14159"
format_duration(90061)          # "1d1h1m1s"
split_sub_n("abcdefgh", 3)      # ["abc", "def", "gh"]
```

The output functions in `rita.formatting` (long connections, exploded DNS),
`rita.views` (beacons, FQDN beacons, strobes, user agents) and
`rita.blacklist_views` (blacklisted hostnames and IP addresses) take result
objects with the matching attributes and write them to a stream, either
joined by a delimiter or as a table.

## What is not included

This package does not parse or import Zeek logs, and it does not run the
analyses that produce beacon, strobe, DNS, user agent, long connection or
blacklist results; the output functions only print results handed to them.
The command line therefore offers `test-config`, `list` and `delete` only:
there is no `import`, no `show-*` report command and no HTML report.