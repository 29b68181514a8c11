"""Output of blacklisted hostname and IP address results."""

from __future__ import annotations

import sys
from typing import Any, Iterable, Sequence, TextIO

from rita.formatting import format_int, render_table

BL_SORT_OPTIONS = ("conn_count", "total_bytes")
HOSTNAME_HEADERS = ("Host", "Connections", "Unique Connections", "Total Bytes", "Sources")
HOSTNAME_HUMAN_HEADERS = (
    "Hostname",
    "Connections",
    "Unique Connections",
    "Total Bytes",
    "Sources",
)


def _print_delimited(
    headers: Sequence[str],
    rows: Iterable[Sequence[str]],
    delim: str,
    stream: TextIO | None,
) -> None:
    out = stream or sys.stdout
    print(delim.join(headers), file=out)
    for row in rows:
        print(delim.join(row), file=out)


def escape_peer(peer: Any, show_net_names: bool) -> str:
    """Render a connected host as its IP, or as "network:IP" with the
    network name's spaces and colons replaced by underscores."""
    if not show_net_names:
        return peer.ip
    name = peer.network_name.replace(" ", "_").replace(":", "_")
    return f"{name}:{peer.ip}"


def _joined_peers(peers: Iterable[Any], show_net_names: bool) -> str:
    return " ".join(sorted(escape_peer(peer, show_net_names) for peer in peers))


def hostname_row(entry: Any, show_net_names: bool) -> list[str]:
    """Cells of one blacklisted hostname result."""
    return [
        entry.host,
        format_int(entry.connections),
        format_int(entry.unique_connections),
        format_int(entry.total_bytes),
        _joined_peers(entry.connected_hosts, show_net_names),
    ]


def show_bl_hostnames(
    hostnames: Iterable[Any],
    delim: str,
    show_net_names: bool,
    stream: TextIO | None = None,
) -> None:
    """Write blacklisted hostname results separated by ``delim``."""
    rows = (hostname_row(entry, show_net_names) for entry in hostnames)
    _print_delimited(HOSTNAME_HEADERS, rows, delim, stream)


def show_bl_hostnames_human(
    hostnames: Iterable[Any], show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write blacklisted hostname results as a table."""
    rows = [hostname_row(entry, show_net_names) for entry in hostnames]
    render_table(HOSTNAME_HUMAN_HEADERS, rows, stream)


def validate_bl_sort(sort: str) -> str:
    """Return ``sort`` if it is a valid sort field, else raise ValueError."""
    if sort not in BL_SORT_OPTIONS:
        raise ValueError("Invalid option passed to sort flag")
    return sort


def bl_ip_headers(
    show_net_names: bool, connected_hosts: bool, source: bool
) -> list[str]:
    """Column titles of the blacklisted IP report."""
    headers = ["IP"]
    if show_net_names:
        headers.append("Network")
    headers += ["Connections", "Unique Connections", "Total Bytes"]
    if connected_hosts:
        headers.append("Destinations" if source else "Sources")
    return headers


def bl_ip_row(entry: Any, connected_hosts: bool, show_net_names: bool) -> list[str]:
    """Cells of one blacklisted IP result, matching ``bl_ip_headers``."""
    row = [entry.host.ip]
    if show_net_names:
        row.append(entry.host.network_name)
    row += [
        format_int(entry.connections),
        format_int(entry.unique_connections),
        format_int(entry.total_bytes),
    ]
    if connected_hosts:
        row.append(_joined_peers(entry.peers, show_net_names))
    return row


def show_bl_ips(
    ips: Iterable[Any],
    connected_hosts: bool,
    show_net_names: bool,
    source: bool,
    delim: str,
    stream: TextIO | None = None,
) -> None:
    """Write blacklisted IP results separated by ``delim``."""
    rows = (bl_ip_row(entry, connected_hosts, show_net_names) for entry in ips)
    headers = bl_ip_headers(show_net_names, connected_hosts, source)
    _print_delimited(headers, rows, delim, stream)


def show_bl_ips_human(
    ips: Iterable[Any],
    connected_hosts: bool,
    show_net_names: bool,
    source: bool,
    stream: TextIO | None = None,
) -> None:
    """Write blacklisted IP results as a table."""
    rows = [bl_ip_row(entry, connected_hosts, show_net_names) for entry in ips]
    render_table(bl_ip_headers(show_net_names, connected_hosts, source), rows, stream)