"""Static and table configuration, loaded from a YAML file."""

from __future__ import annotations

import os
import posixpath
import re
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import timedelta
from importlib import metadata
from typing import Any

import yaml

from rita.running import RunningConfig, init_running_config


def _installed_version() -> str:
    try:
        return metadata.version("rita")
    except metadata.PackageNotFoundError:
        return "undefined"


VERSION = _installed_version()
EXACT_VERSION = VERSION

DEFAULT_CONFIG_PATH = "/etc/rita/config.yaml"


def _opt(key: str, default: Any = None, *, factory: Any = None) -> Any:
    if factory is not None:
        return field(default_factory=factory, metadata={"yaml": key})
    return field(default=default, metadata={"yaml": key})


@dataclass
class UserStaticConfig:
    """User preferences."""

    update_check_frequency: int = _opt("UpdateCheckFrequency", 14)


@dataclass
class TLSStaticConfig:
    """Settings for connecting to MongoDB over TLS."""

    enabled: bool = _opt("Enable", False)
    verify_certificate: bool = _opt("VerifyCertificate", False)
    ca_file: str = _opt("CAFile", "")


@dataclass
class MongoDBStaticConfig:
    """Settings for connecting to MongoDB."""

    connection_string: str = _opt("ConnectionString", "mongodb://localhost:27017")
    auth_mechanism: str = _opt("AuthenticationMechanism", "")
    socket_timeout: timedelta = _opt("SocketTimeout", timedelta(hours=2))
    tls: TLSStaticConfig = _opt("TLS", factory=TLSStaticConfig)
    meta_db: str = _opt("MetaDB", "MetaDatabase")


@dataclass
class RollingStaticConfig:
    """Rolling database settings."""

    default_chunks: int = _opt("DefaultChunks", 24)
    rolling: bool = _opt("rolling", False)
    current_chunk: int = _opt("currentchunk", 0)
    total_chunks: int = _opt("totalchunks", 0)


@dataclass
class LogStaticConfig:
    """Logging settings."""

    log_level: int = _opt("LogLevel", 2)
    rita_log_path: str = _opt("RitaLogPath", "/var/lib/rita/logs")
    log_to_file: bool = _opt("LogToFile", True)
    log_to_db: bool = _opt("LogToDB", True)


@dataclass
class BroStaticConfig:
    """Legacy section kept so that an old MetaDB setting is still honoured."""

    meta_db: str = _opt("MetaDB", "")


@dataclass
class BlacklistedStaticConfig:
    """Settings for the blacklist analysis."""

    enabled: bool = _opt("Enabled", True)
    use_dnsbh: bool = _opt("MalwareDomains.com", True)
    use_feodo: bool = _opt("feodotracker.abuse.ch", True)
    blacklist_database: str = _opt("BlacklistDatabase", "rita-bl")
    ip_blacklists: list[str] = _opt("CustomIPBlacklists", factory=list)
    hostname_blacklists: list[str] = _opt("CustomHostnameBlacklists", factory=list)


@dataclass
class BeaconStaticConfig:
    """Settings for the beaconing analysis."""

    enabled: bool = _opt("Enabled", True)
    default_connection_thresh: int = _opt("DefaultConnectionThresh", 20)


@dataclass
class BeaconFQDNStaticConfig:
    """Settings for the FQDN beaconing analysis."""

    enabled: bool = _opt("Enabled", True)
    default_connection_thresh: int = _opt("DefaultConnectionThresh", 20)


@dataclass
class DNSStaticConfig:
    """Settings for the DNS analysis."""

    enabled: bool = _opt("Enabled", True)


@dataclass
class UserAgentStaticConfig:
    """Settings for the user agent analysis."""

    enabled: bool = _opt("Enabled", True)


def _never_include_default() -> list[str]:
    return [
        "0.0.0.0/32",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "224.0.0.0/4",
        "255.255.255.255/32",
        "::1/128",
        "fe80::/10",
        "ff00::/8",
    ]


def _internal_subnets_default() -> list[str]:
    return ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]


@dataclass
class FilteringStaticConfig:
    """Address and domain filtering."""

    always_include: list[str] = _opt("AlwaysInclude", factory=list)
    never_include: list[str] = _opt("NeverInclude", factory=_never_include_default)
    internal_subnets: list[str] = _opt(
        "InternalSubnets", factory=_internal_subnets_default
    )
    always_include_domain: list[str] = _opt("AlwaysIncludeDomain", factory=list)
    never_include_domain: list[str] = _opt("NeverIncludeDomain", factory=list)


@dataclass
class StrobeStaticConfig:
    """Maximum number of connections between any two hosts."""

    connection_limit: int = _opt("ConnectionLimit", 250000)


@dataclass
class StaticConfig:
    """All sections of the static configuration file."""

    user_config: UserStaticConfig = _opt("UserConfig", factory=UserStaticConfig)
    mongodb: MongoDBStaticConfig = _opt("MongoDB", factory=MongoDBStaticConfig)
    rolling: RollingStaticConfig = _opt("Rolling", factory=RollingStaticConfig)
    log: LogStaticConfig = _opt("LogConfig", factory=LogStaticConfig)
    blacklisted: BlacklistedStaticConfig = _opt(
        "BlackListed", factory=BlacklistedStaticConfig
    )
    beacon: BeaconStaticConfig = _opt("Beacon", factory=BeaconStaticConfig)
    beacon_fqdn: BeaconFQDNStaticConfig = _opt(
        "BeaconFQDN", factory=BeaconFQDNStaticConfig
    )
    dns: DNSStaticConfig = _opt("DNS", factory=DNSStaticConfig)
    user_agent: UserAgentStaticConfig = _opt("UserAgent", factory=UserAgentStaticConfig)
    bro: BroStaticConfig = _opt("Bro", factory=BroStaticConfig)
    filtering: FilteringStaticConfig = _opt("Filtering", factory=FilteringStaticConfig)
    strobe: StrobeStaticConfig = _opt("Strobe", factory=StrobeStaticConfig)
    version: str = _opt("version", "")
    exact_version: str = _opt("exactversion", "")


@dataclass
class LogTableConfig:
    rita_log_table: str = "logs"


@dataclass
class StructureTableConfig:
    conn_table: str = "conn"
    http_table: str = "http"
    dns_table: str = "dns"
    ssl_table: str = "ssl"
    unique_conn_table: str = "uconn"
    host_table: str = "host"


@dataclass
class DNSTableConfig:
    exploded_dns_table: str = "explodedDns"
    hostnames_table: str = "hostnames"


@dataclass
class BeaconTableConfig:
    beacon_table: str = "beacon"


@dataclass
class BeaconFQDNTableConfig:
    beacon_fqdn_table: str = "beaconFQDN"


@dataclass
class UserAgentTableConfig:
    user_agent_table: str = "useragent"


@dataclass
class CertificateTableConfig:
    certificate_table: str = "cert"


@dataclass
class MetaTableConfig:
    files_table: str = "files"
    databases_table: str = "databases"


@dataclass
class TableConfig:
    """Names of the collections used in each database."""

    log: LogTableConfig = field(default_factory=LogTableConfig)
    dns: DNSTableConfig = field(default_factory=DNSTableConfig)
    structure: StructureTableConfig = field(default_factory=StructureTableConfig)
    beacon: BeaconTableConfig = field(default_factory=BeaconTableConfig)
    beacon_fqdn: BeaconFQDNTableConfig = field(default_factory=BeaconFQDNTableConfig)
    user_agent: UserAgentTableConfig = field(default_factory=UserAgentTableConfig)
    cert: CertificateTableConfig = field(default_factory=CertificateTableConfig)
    meta: MetaTableConfig = field(default_factory=MetaTableConfig)


@dataclass
class Config:
    """The complete configuration of the running system."""

    running: RunningConfig = field(default_factory=RunningConfig)
    static: StaticConfig = field(default_factory=StaticConfig)
    tables: TableConfig = field(default_factory=TableConfig)


_SHELL_SPECIAL = frozenset("*#$@!?-0123456789")
_ALNUM = re.compile(r"[A-Za-z0-9_]*", re.ASCII)


def _shell_name(text: str) -> tuple[str, int]:
    """Return the variable name at the start of ``text`` and its width."""
    if text[0] == "{":
        if len(text) > 2 and text[1] in _SHELL_SPECIAL and text[2] == "}":
            return text[1], 3
        close = text.find("}", 1)
        if close == -1:
            return "", 1
        if close == 1:
            return "", 2
        return text[1:close], close + 1
    if text[0] in _SHELL_SPECIAL:
        return text[0], 1
    match = _ALNUM.match(text)
    return match.group(), match.end()


def _expand_env(text: str) -> str:
    """Replace $var and ${var} with environment values; unset ones become empty."""
    pieces = []
    start = pos = 0
    while True:
        dollar = text.find("$", pos)
        if dollar == -1 or dollar + 1 >= len(text):
            break
        pieces.append(text[start:dollar])
        name, width = _shell_name(text[dollar + 1:])
        if name:
            pieces.append(os.environ.get(name, ""))
        elif width == 0:
            pieces.append("$")
        start = pos = dollar + 1 + width
    pieces.append(text[start:])
    return "".join(pieces)


def expand_config(obj: Any) -> None:
    """Expand environment variables in every string of a dataclass tree, in place."""
    for item in fields(obj):
        value = getattr(obj, item.name)
        if is_dataclass(value):
            expand_config(value)
        elif isinstance(value, str):
            setattr(obj, item.name, _expand_env(value))
        elif isinstance(value, list) and all(isinstance(v, str) for v in value):
            setattr(obj, item.name, [_expand_env(v) for v in value])


def _zero(value: Any) -> Any:
    if is_dataclass(value):
        return type(value)(
            **{item.name: _zero(getattr(value, item.name)) for item in fields(value)}
        )
    if isinstance(value, timedelta):
        return timedelta(0)
    if isinstance(value, list):
        return []
    return type(value)()


def _scalar_text(value: Any, where: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"cannot unmarshal {type(value).__name__} into string at {where}")


def _decode(current: Any, value: Any, where: str) -> Any:
    if value is None:
        return _zero(current)
    if is_dataclass(current):
        if not isinstance(value, dict):
            raise ValueError(f"cannot unmarshal {type(value).__name__} into section {where}")
        _decode_into(current, value, where)
        return current
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise ValueError(f"cannot unmarshal {value!r} into bool at {where}")
        return value
    if isinstance(current, int):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"cannot unmarshal {value!r} into int at {where}")
        return int(value)
    if isinstance(current, timedelta):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"cannot unmarshal {value!r} into duration at {where}")
        return timedelta(hours=int(value))
    if isinstance(current, str):
        return _scalar_text(value, where)
    if isinstance(current, list):
        if not isinstance(value, list):
            raise ValueError(f"cannot unmarshal {value!r} into list at {where}")
        return [_scalar_text(v, where) for v in value]
    raise ValueError(f"unsupported setting at {where}")


def _decode_into(obj: Any, mapping: dict, where: str) -> None:
    for item in fields(obj):
        key = item.metadata.get("yaml", item.name)
        if key in mapping:
            path = f"{where}.{key}" if where else key
            setattr(obj, item.name, _decode(getattr(obj, item.name), mapping[key], path))


def _clean_path(path: str) -> str:
    if not path:
        return "."
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def read_static_config_file(path: str | os.PathLike) -> bytes:
    """Read the raw contents of a configuration file."""
    with open(path, "rb") as handle:
        return handle.read()


def parse_static_config(contents: bytes | str, config: StaticConfig) -> None:
    """Load YAML ``contents`` into ``config`` and normalise the values."""
    document = yaml.safe_load(contents)
    if document is not None:
        if not isinstance(document, dict):
            raise ValueError("configuration must be a mapping of sections")
        _decode_into(config, document, "")

    # honour the old location of the MetaDB name while the new one is untouched
    if config.bro.meta_db and config.mongodb.meta_db == "MetaDatabase":
        config.mongodb.meta_db = config.bro.meta_db

    expand_config(config)
    config.log.rita_log_path = _clean_path(config.log.rita_log_path)
    config.version = VERSION
    config.exact_version = EXACT_VERSION


def load_config(custom_config_path: str | os.PathLike | None = None) -> Config:
    """Load the configuration from ``custom_config_path`` or the default path."""
    path = custom_config_path or DEFAULT_CONFIG_PATH
    config = Config()
    parse_static_config(read_static_config_file(path), config.static)
    config.running = init_running_config(config.static)
    return config


TEST_CONFIG = """
MongoDB:
    ConnectionString: null
    AuthenticationMechanism: null
    SocketTimeout: 2
    TLS:
        Enable: false
        VerifyCertificate: false
        CAFile: null
    MetaDB: RITA-TEST-MetaDatabase
LogConfig:
    LogLevel: 3
    RitaLogPath: null
    LogToFile: false
    LogToDB: true
BlackListed:
    myIP.ms: false
    MalwareDomains.com: false
    MalwareDomainList.com: false
    CustomIPBlacklists: []
    CustomHostnameBlacklists: []
DNS:
    Enabled: true
Beacon:
    DefaultConnectionThresh: 24
Strobe:
    ConnectionLimit: 250000
Filtering:
    AlwaysInclude: ["8.8.8.8/32"]
    NeverInclude: ["8.8.4.4/32"]
    InternalSubnets: ["10.0.0.0/8","172.16.0.0/12","192.168.0.0/16"]
"""


def load_testing_config(mongo_uri: str) -> Config:
    """Build the fixed configuration used for testing."""
    config = Config()
    config.static.mongodb.connection_string = mongo_uri
    parse_static_config(TEST_CONFIG, config.static)
    config.static.version = "v0.0.0+testing"
    config.static.exact_version = "v0.0.0+testing"
    config.running = init_running_config(config.static)
    return config