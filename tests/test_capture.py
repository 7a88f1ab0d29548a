import ipaddress
import struct

import pytest

from tcpgraph.capture import (
    PacketCapture,
    PacketInfo,
    TrafficDirection,
    determine_direction,
    get_local_macs,
    get_payload_size,
    list_interfaces,
)

LOCAL = bytes.fromhex("020000000001")
REMOTE = bytes.fromhex("020000000002")
OTHER = bytes.fromhex("020000000003")
BROADCAST = b"\xff" * 6
MULTICAST = bytes.fromhex("01005e000001")

MISSING_INTERFACE = "tcpgraph-test-none0"


def eth(dst, src, ethertype, body):
    return dst + src + struct.pack("!H", ethertype) + body


def tcp(payload, sport=50000, dport=80):
    return struct.pack("!HHIIBBHHH", sport, dport, 0, 0, 0x50, 0x18, 65535, 0, 0) + payload


def udp(payload, sport=50000, dport=53):
    return struct.pack("!HHHH", sport, dport, 8 + len(payload), 0) + payload


def ipv4(segment, proto, src="192.0.2.1", dst="198.51.100.7"):
    header = struct.pack(
        "!BBHHHBBH4s4s",
        0x45, 0, 20 + len(segment), 0, 0, 64, proto, 0,
        ipaddress.IPv4Address(src).packed, ipaddress.IPv4Address(dst).packed,
    )
    return header + segment


def ipv6(segment, next_header, src="2001:db8::1", dst="2001:db8::2"):
    header = struct.pack(
        "!IHBB16s16s",
        0x60000000, len(segment), next_header, 64,
        ipaddress.IPv6Address(src).packed, ipaddress.IPv6Address(dst).packed,
    )
    return header + segment


def v4_frame(segment, proto, src_mac=LOCAL, dst_mac=REMOTE, **addrs):
    return eth(dst_mac, src_mac, 0x0800, ipv4(segment, proto, **addrs))


WEB = v4_frame(tcp(b"hello world", sport=50000, dport=443), 6)
DNS = v4_frame(udp(b"query", sport=50001, dport=53), 17, src="192.0.2.9", dst="203.0.113.5")
WEB6 = eth(REMOTE, LOCAL, 0x86DD, ipv6(tcp(b"six", dport=443), 6))
ARP = eth(BROADCAST, REMOTE, 0x0806, b"\x00" * 28)


def test_payload_size_ipv4_tcp_excludes_headers():
    payload = b"x" * 37
    assert get_payload_size(v4_frame(tcp(payload), 6)) == len(payload)


def test_payload_size_ipv4_udp_counts_transport_header():
    segment = udp(b"abcdef")
    assert get_payload_size(v4_frame(segment, 17)) == len(segment)


def test_payload_size_ipv6_tcp_excludes_headers():
    payload = b"y" * 21
    frame = eth(REMOTE, LOCAL, 0x86DD, ipv6(tcp(payload), 6))
    assert get_payload_size(frame) == len(payload)


def test_payload_size_ipv6_udp_is_payload_length():
    segment = udp(b"data")
    frame = eth(REMOTE, LOCAL, 0x86DD, ipv6(segment, 17))
    assert get_payload_size(frame) == len(segment)


def test_payload_size_ignores_ethernet_padding():
    payload = b"z" * 3
    frame = v4_frame(tcp(payload), 6) + b"\x00" * 10
    assert get_payload_size(frame) == len(payload)


@pytest.mark.parametrize("frame", [ARP, b"\x01\x02\x03", eth(REMOTE, LOCAL, 0x0800, b"\x45\x00")])
def test_payload_size_falls_back_to_frame_length(frame):
    assert get_payload_size(frame) == len(frame)


def test_payload_size_never_negative():
    header = bytearray(ipv4(tcp(b""), 6))
    header[2:4] = struct.pack("!H", 20)
    frame = eth(REMOTE, LOCAL, 0x0800, bytes(header))
    assert get_payload_size(frame) == 0


@pytest.mark.parametrize(
    "src, dst, expected",
    [
        (LOCAL, REMOTE, TrafficDirection.OUTBOUND),
        (REMOTE, LOCAL, TrafficDirection.INBOUND),
        (LOCAL, BROADCAST, TrafficDirection.OUTBOUND),
        (LOCAL, MULTICAST, TrafficDirection.OUTBOUND),
        (REMOTE, BROADCAST, TrafficDirection.INBOUND),
        (REMOTE, MULTICAST, TrafficDirection.INBOUND),
        (LOCAL, LOCAL, TrafficDirection.UNKNOWN),
        (REMOTE, OTHER, TrafficDirection.UNKNOWN),
    ],
)
def test_determine_direction(src, dst, expected):
    frame = eth(dst, src, 0x0800, ipv4(tcp(b""), 6))
    assert determine_direction(frame, {LOCAL}) is expected


def test_determine_direction_short_frame_is_unknown():
    assert determine_direction(LOCAL + REMOTE, {LOCAL}) is TrafficDirection.UNKNOWN


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("tcp", [WEB, WEB6]),
        ("udp", [DNS]),
        ("ip", [WEB, DNS]),
        ("ip6", [WEB6]),
        ("arp", [ARP]),
        ("port 53", [DNS]),
        ("port 443", [WEB, WEB6]),
        ("tcp port 443", [WEB, WEB6]),
        ("udp port 443", []),
        ("dst port 443", [WEB, WEB6]),
        ("src port 443", []),
        ("host 203.0.113.5", [DNS]),
        ("src host 203.0.113.5", []),
        ("dst host 2001:db8::2", [WEB6]),
        ("net 198.51.100.0/24", [WEB]),
        ("not tcp", [DNS, ARP]),
        ("! arp && ip", [WEB, DNS]),
        ("tcp and port 443 or arp", [WEB, WEB6, ARP]),
        ("ip and (udp or port 443)", [WEB, DNS]),
        ("", [WEB, DNS, WEB6, ARP]),
    ],
)
def test_filter_selects_frames(expression, expected):
    capture = PacketCapture("any", expression, frames=[WEB, DNS, WEB6, ARP], local_macs={LOCAL})
    assert [info.size for info in capture.packets()] == [len(frame) for frame in expected]


@pytest.mark.parametrize(
    "expression",
    ["bogus", "port", "port notanumber", "port 70000", "tcp and", "(tcp", "host 999.1.1.1", "tcp & udp", "src tcp"],
)
def test_invalid_filter_raises(expression):
    with pytest.raises(ValueError, match="Failed to set packet filter"):
        PacketCapture("any", expression, frames=[])


def test_packets_report_payload_size_and_direction():
    payload = b"p" * 12
    inbound = v4_frame(tcp(payload), 6, src_mac=REMOTE, dst_mac=LOCAL)
    capture = PacketCapture("any", "tcp", True, frames=[inbound], local_macs={LOCAL})
    (info,) = list(capture.packets())
    assert info.size == len(payload)
    assert info.direction is TrafficDirection.INBOUND


def test_packets_unknown_interface_raises():
    capture = PacketCapture(MISSING_INTERFACE, "tcp")
    with pytest.raises(LookupError, match=MISSING_INTERFACE):
        next(capture.packets())


def test_start_capture_delivers_packets_through_queue():
    capture = PacketCapture("any", "ip", frames=[WEB, ARP, DNS], local_macs={LOCAL})
    received = capture.start_capture()
    first = received.get(timeout=5)
    second = received.get(timeout=5)
    assert isinstance(first, PacketInfo)
    assert [first.size, second.size] == [len(WEB), len(DNS)]
    assert first.direction is TrafficDirection.OUTBOUND


def test_local_macs_of_missing_interface_is_empty():
    assert get_local_macs(MISSING_INTERFACE) == set()


def test_local_macs_of_any_cover_every_interface():
    every = get_local_macs("any")
    for name in list_interfaces():
        assert get_local_macs(name) <= every
    assert all(len(mac) == 6 for mac in every)


def test_list_interfaces_is_sorted_and_unique():
    names = list_interfaces()
    assert names == sorted(set(names))