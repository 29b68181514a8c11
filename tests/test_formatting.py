import io
from dataclasses import dataclass, field

import pytest

from rita.formatting import (
    format_duration,
    format_float,
    format_int,
    render_table,
    show_conns,
    show_conns_human,
    show_dns_results,
    show_dns_results_human,
    split_sub_n,
)


@dataclass
class DNSResult:
    domain: str
    subdomain_count: int
    visited: int


@dataclass
class LongConn:
    src_ip: str
    dst_ip: str
    max_duration: float
    tuples: list = field(default_factory=list)
    src_network_name: str = ""
    dst_network_name: str = ""


def lines_of(buffer):
    return buffer.getvalue().splitlines()


def test_format_float_round_trips():
    for value in (0.5, 1.25, 123.0, 0.001):
        assert float(format_float(value)) == value


def test_format_float_six_significant_digits():
    text = format_float(3.14159265)
    assert float(text) == pytest.approx(3.14159265, rel=1e-5)
    assert len(text.replace(".", "")) <= 6


def test_format_float_infinity():
    assert format_float(float("inf")) == "+Inf"
    assert format_float(float("-inf")).startswith("-")


def test_format_int():
    assert format_int(42) == "42"
    assert int(format_int(-7)) == -7


def test_split_sub_n_rejoins():
    text = "abcdefghij" * 17
    pieces = split_sub_n(text, 80)
    assert "".join(pieces) == text
    assert all(len(piece) == 80 for piece in pieces[:-1])
    assert 0 < len(pieces[-1]) <= 80


def test_split_sub_n_edges():
    assert split_sub_n("", 4) == []
    assert split_sub_n("abcd", 4) == ["abcd"]


def test_format_duration_short():
    assert format_duration(90) == "1m30s"
    assert "d" not in format_duration(86399)


def test_format_duration_with_days_and_years():
    assert format_duration(365 * 86400 + 5) == "1y0d5s"
    text = format_duration(3 * 86400 + 90)
    assert text.startswith("3d")
    assert text.endswith(format_duration(90))


def test_render_table_lines_are_aligned():
    buffer = io.StringIO()
    render_table(["Source", "Count"], [["10.0.0.1", "5"], ["10.0.0.22", "17"]], buffer)
    lines = lines_of(buffer)
    assert len({len(line) for line in lines}) == 1
    assert "SOURCE" in lines[1]
    assert any("10.0.0.22" in line for line in lines)


def test_show_dns_results_delimited():
    buffer = io.StringIO()
    show_dns_results([DNSResult("example.com", 3, 7)], ",", buffer)
    assert lines_of(buffer) == [
        "Domain,Unique Subdomains,Times Looked Up",
        "example.com,3,7",
    ]


def test_show_dns_results_human_wraps_long_domains():
    domain = ("a" * 79 + ".") * 2 + "example.com"
    buffer = io.StringIO()
    show_dns_results_human([DNSResult(domain, 2, 9)], buffer)
    output = buffer.getvalue()
    for piece in split_sub_n(domain, 80):
        assert piece in output
    assert domain not in output
    assert len({len(line) for line in lines_of(buffer)}) == 1


def test_show_conns_delimited():
    buffer = io.StringIO()
    conn = LongConn("10.0.0.1", "10.0.0.2", 4000.5, ["443:tcp:ssl", "80:tcp:http"])
    show_conns([conn], "|", False, buffer)
    lines = lines_of(buffer)
    assert lines[0] == "Source IP|Destination IP|Port:Protocol:Service|Duration"
    assert lines[1].split("|") == [
        "10.0.0.1",
        "10.0.0.2",
        "443:tcp:ssl 80:tcp:http",
        format_float(4000.5),
    ]


def test_show_conns_with_network_names():
    buffer = io.StringIO()
    conn = LongConn("10.0.0.1", "10.0.0.2", 61, ["22:tcp:ssh"], "lan", "dmz")
    show_conns([conn], ",", True, buffer)
    lines = lines_of(buffer)
    assert lines[0].split(",")[:2] == ["Source Network", "Destination Network"]
    assert lines[1].split(",")[:2] == ["lan", "dmz"]


def test_show_conns_human_uses_readable_duration():
    buffer = io.StringIO()
    conn = LongConn("10.0.0.1", "10.0.0.2", 2 * 86400 + 90, ["22:tcp:ssh"])
    show_conns_human([conn], False, buffer)
    output = buffer.getvalue()
    assert format_duration(2 * 86400 + 90) in output
    assert "PORT:PROTOCOL:SERVICE" in output