"""Output of beacon, strobe and user agent results."""

from __future__ import annotations

import json
import math
import sys
from typing import Any, Iterable, Sequence, TextIO

from rita.formatting import format_float, format_int, render_table

_BEACON_STAT_HEADERS = (
    "Connections",
    "Avg. Bytes",
    "Intvl Range",
    "Size Range",
    "Top Intvl",
    "Top Size",
    "Top Intvl Count",
    "Top Size Count",
    "Intvl Skew",
    "Size Skew",
    "Intvl Dispersion",
    "Size Dispersion",
)

BEACON_HEADERS = ("Score", "Source IP", "Destination IP") + _BEACON_STAT_HEADERS
BEACON_NET_HEADERS = (
    "Score",
    "Source Network",
    "Destination Network",
    "Source IP",
    "Destination IP",
) + _BEACON_STAT_HEADERS

BEACON_FQDN_HEADERS = ("Score", "Source IP", "FQDN") + _BEACON_STAT_HEADERS
BEACON_FQDN_NET_HEADERS = (
    "Score",
    "Source Network",
    "Source IP",
    "FQDN",
) + _BEACON_STAT_HEADERS

STROBE_HEADERS = ("Source", "Destination", "Connection Count")
STROBE_NET_HEADERS = ("Source Network", "Destination Network") + STROBE_HEADERS

AGENT_HEADERS = ("User Agent", "Times Used")


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


def _stat_fields(result: Any) -> list[str]:
    ts, ds = result.ts, result.ds
    return [
        format_int(result.connections),
        format_float(result.avg_bytes),
        format_int(ts.range),
        format_int(ds.range),
        format_int(ts.mode),
        format_int(ds.mode),
        format_int(ts.mode_count),
        format_int(ds.mode_count),
        format_float(ts.skew),
        format_float(ds.skew),
        format_int(ts.dispersion),
        format_int(ds.dispersion),
    ]


def beacon_headers(show_net_names: bool) -> list[str]:
    """Column titles of the beacon report."""
    return list(BEACON_NET_HEADERS if show_net_names else BEACON_HEADERS)


def beacon_row(result: Any, show_net_names: bool) -> list[str]:
    """Cells of one beacon result, matching ``beacon_headers``."""
    head = [format_float(result.score)]
    if show_net_names:
        head += [result.src_network_name, result.dst_network_name]
    head += [result.src_ip, result.dst_ip]
    return head + _stat_fields(result)


def show_beacons_human(
    data: Iterable[Any], show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write beacon results as a table."""
    rows = [beacon_row(d, show_net_names) for d in data]
    render_table(beacon_headers(show_net_names), rows, stream)


def show_beacons_delim(
    data: Iterable[Any], delim: str, show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write beacon results separated by ``delim``."""
    rows = (beacon_row(d, show_net_names) for d in data)
    _print_delimited(beacon_headers(show_net_names), rows, delim, stream)


def _json_number(value: float) -> int | float:
    value = float(value)
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    return value


def show_beacons_json(
    data: Iterable[Any], show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write beacon results as a JSON array of objects."""
    out = stream or sys.stdout
    rows = []
    for d in data:
        row: dict[str, Any] = {"Score": _json_number(d.score)}
        if show_net_names:
            if d.src_network_name:
                row["SourceNetworkName"] = d.src_network_name
            if d.dst_network_name:
                row["DestinationNetworkName"] = d.dst_network_name
        row.update(
            {
                "SourceIP": d.src_ip,
                "DestinationIP": d.dst_ip,
                "Connections": int(d.connections),
                "AvgBytes": _json_number(d.avg_bytes),
                "IntvlRange": int(d.ts.range),
                "SizeRange": int(d.ds.range),
                "TopIntvl": int(d.ts.mode),
                "TopSize": int(d.ds.mode),
                "TopIntvlCount": int(d.ts.mode_count),
                "TopSizeCount": int(d.ds.mode_count),
                "IntvlSkew": _json_number(d.ts.skew),
                "SizeSkew": _json_number(d.ds.skew),
                "IntvlDispersion": int(d.ts.dispersion),
                "SizeDispersion": int(d.ds.dispersion),
            }
        )
        rows.append(row)
    try:
        text = json.dumps(rows, separators=(",", ":"), allow_nan=False)
    except ValueError as exc:
        raise ValueError(f"cannot encode beacon results as JSON: {exc}") from exc
    print(text, file=out)


def beacon_fqdn_headers(show_net_names: bool) -> list[str]:
    """Column titles of the FQDN beacon report."""
    return list(BEACON_FQDN_NET_HEADERS if show_net_names else BEACON_FQDN_HEADERS)


def beacon_fqdn_row(result: Any, show_net_names: bool) -> list[str]:
    """Cells of one FQDN beacon result, matching ``beacon_fqdn_headers``."""
    head = [format_float(result.score)]
    if show_net_names:
        head.append(result.src_network_name)
    head += [result.src_ip, result.fqdn]
    return head + _stat_fields(result)


def show_beacons_fqdn_human(
    data: Iterable[Any], show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write FQDN beacon results as a table."""
    rows = [beacon_fqdn_row(d, show_net_names) for d in data]
    render_table(beacon_fqdn_headers(show_net_names), rows, stream)


def show_beacons_fqdn_delim(
    data: Iterable[Any], delim: str, show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write FQDN beacon results separated by ``delim``."""
    rows = (beacon_fqdn_row(d, show_net_names) for d in data)
    _print_delimited(beacon_fqdn_headers(show_net_names), rows, delim, stream)


def strobe_headers(show_net_names: bool) -> list[str]:
    """Column titles of the strobe report."""
    return list(STROBE_NET_HEADERS if show_net_names else STROBE_HEADERS)


def strobe_row(strobe: Any, show_net_names: bool) -> list[str]:
    """Cells of one strobe result, matching ``strobe_headers``."""
    row = [strobe.src_ip, strobe.dst_ip, format_int(strobe.connection_count)]
    if show_net_names:
        return [strobe.src_network_name, strobe.dst_network_name, *row]
    return row


def show_strobes(
    strobes: Iterable[Any], delim: str, show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write strobe results separated by ``delim``."""
    rows = (strobe_row(s, show_net_names) for s in strobes)
    _print_delimited(strobe_headers(show_net_names), rows, delim, stream)


def show_strobes_human(
    strobes: Iterable[Any], show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write strobe results as a table."""
    rows = [strobe_row(s, show_net_names) for s in strobes]
    render_table(strobe_headers(show_net_names), rows, stream)


def show_agents(agents: Iterable[Any], delim: str, stream: TextIO | None = None) -> None:
    """Write user agent results separated by ``delim``."""
    rows = ([a.user_agent, format_int(a.times_used)] for a in agents)
    _print_delimited(AGENT_HEADERS, rows, delim, stream)


def show_agents_human(agents: Iterable[Any], stream: TextIO | None = None) -> None:
    """Write user agent results as a table."""
    rows = [[a.user_agent, format_int(a.times_used)] for a in agents]
    render_table(AGENT_HEADERS, rows, stream)