import io
import ipaddress

import pytest

from limakit.procnettcp import (
    TCP_ESTABLISHED,
    TCP_LISTEN,
    Kind,
    parse,
    parse_address,
    parse_files,
)

PROC_NET_TCP = (
    "  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode\n"
    "   0: 0100007F:8AEF 00000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 28152 1 0000000000000000 100 0 0 10 0\n"
    "   1: 0103000A:0035 00000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 31474 1 0000000000000000 100 0 0 10 5\n"
    "   2: 3500007F:0035 00000000:0000 0A 00000000:00000000 00:00000000 00000000   102        0 30955 1 0000000000000000 100 0 0 10 0\n"
    "   3: 00000000:0016 00000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 32910 1 0000000000000000 100 0 0 10 0\n"
    "   4: 0100007F:053A 00000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 31430 1 0000000000000000 100 0 0 10 0\n"
    "   5: 0B3CA8C0:0016 690AA8C0:F705 01 00000000:00000000 02:00028D8B 00000000     0        0 32989 4 0000000000000000 20 4 31 10 19\n"
)

PROC_NET_TCP6 = (
    "  sl  local_address                         remote_address                        st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode\n"
    "\t   0: 000080FE00000000FF57A6705DC771FE:0050 00000000000000000000000000000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 850222 1 0000000000000000 100 0 0 10 0"
)

PROC_NET_TCP6_ZERO = (
    "  sl  local_address                         remote_address                        st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode\n"
    "   0: 00000000000000000000000000000000:0016 00000000000000000000000000000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 33825 1 0000000000000000 100 0 0 10 0\n"
    "   1: 00000000000000000000000000000000:006F 00000000000000000000000000000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 26772 1 0000000000000000 100 0 0 10 0\n"
    "   2: 00000000000000000000000000000000:0050 00000000000000000000000000000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 1210901 1 0000000000000000 100 0 0 10 0\n"
)


def test_parse_tcp():
    entries = parse(io.StringIO(PROC_NET_TCP), Kind.TCP)
    assert len(entries) == 6
    assert entries[0].ip == ipaddress.ip_address("127.0.0.1")
    assert entries[0].port == 35567
    assert entries[0].state == TCP_LISTEN
    assert entries[5].ip == ipaddress.ip_address("192.168.60.11")
    assert entries[5].port == 22
    assert entries[5].state == TCP_ESTABLISHED
    assert all(e.kind is Kind.TCP for e in entries)


def test_parse_tcp6():
    entries = parse(io.StringIO(PROC_NET_TCP6), Kind.TCP6)
    assert entries[0].ip == ipaddress.ip_address("fe80::70a6:57ff:fe71:c75d")
    assert entries[0].port == 80
    assert entries[0].state == TCP_LISTEN


def test_parse_tcp6_zero():
    entries = parse(io.StringIO(PROC_NET_TCP6_ZERO), "tcp6")
    assert entries[0].ip == ipaddress.IPv6Address("::")
    assert entries[0].port == 22
    assert entries[0].state == TCP_LISTEN
    assert [e.port for e in entries] == [22, 111, 80]


def test_parse_rejects_unknown_kind():
    with pytest.raises(ValueError, match="unexpected kind"):
        parse(io.StringIO(PROC_NET_TCP), "udp")


def test_parse_requires_header_fields():
    with pytest.raises(ValueError, match="local_address"):
        parse(io.StringIO("sl rem_address st\n0: 0100007F:0016 0A\n"), Kind.TCP)


def test_parse_address_ipv4():
    assert parse_address("0100007F:0050") == (ipaddress.ip_address("127.0.0.1"), 80)


@pytest.mark.parametrize("address", ["0100007F", "0100007F0:0050", "0100007G:0050", "0100007F:ZZ", "0100007F:10000", "0100007F:0x50"])
def test_parse_address_errors(address):
    with pytest.raises(ValueError, match="unparsable"):
        parse_address(address)


def test_parse_files_skips_missing(tmp_path):
    tcp = tmp_path / "tcp"
    tcp.write_text(PROC_NET_TCP)
    entries = parse_files({str(tcp): Kind.TCP, str(tmp_path / "missing"): Kind.TCP6})
    assert len(entries) == 6
    assert entries[3].port == 22