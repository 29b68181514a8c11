"""Text formatting shared by the reporting commands."""

from __future__ import annotations

import math
import sys
from typing import Any, Iterable, Sequence, TextIO

from tabulate import tabulate

DOMAIN_RECORD_LENGTH = 80
LONG_CONNECTION_HEADERS = (
    "Source IP",
    "Destination IP",
    "Port:Protocol:Service",
    "Duration",
)
LONG_CONNECTION_NET_HEADERS = (
    "Source Network",
    "Destination Network",
) + LONG_CONNECTION_HEADERS
DNS_HEADERS = ("Domain", "Unique Subdomains", "Times Looked Up")

_SECOND_NS = 1_000_000_000
_DAY_NS = 24 * 60 * 60 * _SECOND_NS
_YEAR_NS = 365 * _DAY_NS


def format_float(value: float) -> str:
    """Format a float in shortest general form with six significant digits."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:.6g}"


def format_int(value: int) -> str:
    """Format an integer in base 10."""
    return str(int(value))


def split_sub_n(text: str, n: int) -> list[str]:
    """Split ``text`` into pieces of ``n`` characters; the last may be shorter."""
    return [text[start:start + n] for start in range(0, len(text), n)]


def _fraction(value: int, precision: int) -> tuple[int, str]:
    whole, frac = divmod(value, 10**precision)
    digits = f"{frac:0{precision}d}".rstrip("0")
    return whole, f".{digits}" if digits else ""


def _duration_text(ns: int) -> str:
    """Render a nanosecond count like "1h2m3.5s", "250ms" or "0s"."""
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u < _SECOND_NS:
        if u < 1_000:
            return f"{sign}{u}ns"
        if u < 1_000_000:
            whole, frac = _fraction(u, 3)
            return f"{sign}{whole}{frac}\u00b5s"
        whole, frac = _fraction(u, 6)
        return f"{sign}{whole}{frac}ms"
    total_seconds, frac = _fraction(u, 9)
    total_minutes, seconds = divmod(total_seconds, 60)
    text = f"{seconds}{frac}s"
    if total_minutes:
        hours, minutes = divmod(total_minutes, 60)
        text = f"{minutes}m{text}"
        if hours:
            text = f"{hours}h{text}"
    return sign + text


def format_duration(seconds: float) -> str:
    """Render a duration in seconds, adding years and days past one day."""
    ns = int(seconds * _SECOND_NS)
    if ns < _DAY_NS:
        return _duration_text(ns)
    prefix = ""
    if ns >= _YEAR_NS:
        years, ns = divmod(ns, _YEAR_NS)
        prefix = f"{years}y"
    days, ns = divmod(ns, _DAY_NS)
    return f"{prefix}{days}d{_duration_text(ns)}"


def _write_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[str]],
    stream: TextIO | None,
    row_lines: bool,
) -> None:
    out = stream or sys.stdout
    titles = [header.replace("_", " ").upper() for header in headers]
    table = tabulate(
        [list(row) for row in rows],
        headers=titles,
        tablefmt="grid" if row_lines else "psql",
        disable_numparse=True,
    )
    print(table, file=out)


def render_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[str]],
    stream: TextIO | None = None,
) -> None:
    """Write a bordered text table with upper-case headers."""
    _write_table(headers, rows, stream, False)


def _print_delimited(
    headers: Sequence[str], rows: Iterable[Sequence[str]], delim: str, out: TextIO
) -> None:
    print(delim.join(headers), file=out)
    for row in rows:
        print(delim.join(row), file=out)


def show_dns_results(
    results: Iterable[Any], delim: str, stream: TextIO | None = None
) -> None:
    """Write exploded DNS results (``domain``, ``subdomain_count``, ``visited``)
    separated by ``delim``."""
    rows = (
        [r.domain, format_int(r.subdomain_count), format_int(r.visited)]
        for r in results
    )
    _print_delimited(DNS_HEADERS, rows, delim, stream or sys.stdout)


def show_dns_results_human(
    results: Iterable[Any], stream: TextIO | None = None
) -> None:
    """Write exploded DNS results as a table, wrapping very long domains."""
    rows = []
    for result in results:
        domain = result.domain
        if len(domain) > DOMAIN_RECORD_LENGTH:
            domain = "\n".join(split_sub_n(domain, DOMAIN_RECORD_LENGTH))
        rows.append(
            [domain, format_int(result.subdomain_count), format_int(result.visited)]
        )
    _write_table(DNS_HEADERS, rows, stream, True)


def _conn_row(result: Any, show_net_names: bool, duration: str) -> list[str]:
    row = [result.src_ip, result.dst_ip, " ".join(result.tuples), duration]
    if show_net_names:
        return [result.src_network_name, result.dst_network_name, *row]
    return row


def _conn_headers(show_net_names: bool) -> Sequence[str]:
    return LONG_CONNECTION_NET_HEADERS if show_net_names else LONG_CONNECTION_HEADERS


def show_conns(
    results: Iterable[Any],
    delim: str,
    show_net_names: bool,
    stream: TextIO | None = None,
) -> None:
    """Write long connection results separated by ``delim``."""
    rows = (
        _conn_row(r, show_net_names, format_float(r.max_duration)) for r in results
    )
    _print_delimited(_conn_headers(show_net_names), rows, delim, stream or sys.stdout)


def show_conns_human(
    results: Iterable[Any], show_net_names: bool, stream: TextIO | None = None
) -> None:
    """Write long connection results as a table with readable durations."""
    rows = [
        _conn_row(r, show_net_names, format_duration(r.max_duration)) for r in results
    ]
    render_table(_conn_headers(show_net_names), rows, stream)