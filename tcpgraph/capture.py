"""Live packet capture with traffic-direction and payload-size classification."""

from __future__ import annotations

import enum
import ipaddress
import queue
import re
import socket
import struct
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

import psutil

_ETH_HEADER_LEN = 14
_ETHERTYPE_IPV4 = 0x0800
_ETHERTYPE_IPV6 = 0x86DD
_ETHERTYPE_ARP = 0x0806
_IPV4_MIN_HEADER = 20
_IPV6_HEADER = 40
_TCP_MIN_HEADER = 20
_PROTO_TCP = 6
_PROTO_UDP = 17

_BROADCAST = b"\xff" * 6

_SNAPLEN = 65535
_READ_TIMEOUT = 1.0
_ETH_P_ALL = 0x0003
_SOL_PACKET = 263
_PACKET_ADD_MEMBERSHIP = 1
_PACKET_MR_PROMISC = 1


class TrafficDirection(enum.Enum):
    """Direction of a frame relative to the local interfaces."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PacketInfo:
    """A captured packet: when it was seen, how many bytes it counts for, and its direction."""

    timestamp: float
    size: int
    direction: TrafficDirection


def list_interfaces() -> list[str]:
    """Names of the network interfaces present on this host."""
    return sorted(psutil.net_if_addrs())


def _parse_mac(text: str) -> bytes | None:
    try:
        mac = bytes.fromhex(text.replace(":", "").replace("-", ""))
    except ValueError:
        return None
    return mac if len(mac) == 6 else None


def get_local_macs(interface_name: str) -> set[bytes]:
    """Hardware addresses of the named interface, or of every interface for "any"."""
    macs: set[bytes] = set()
    for name, addresses in psutil.net_if_addrs().items():
        if interface_name != "any" and name != interface_name:
            continue
        for address in addresses:
            if address.family == psutil.AF_LINK:
                mac = _parse_mac(address.address)
                if mac is not None:
                    macs.add(mac)
    return macs


def _ipv4_payload(ip: bytes) -> bytes:
    header_length = (ip[0] & 0x0F) * 4
    total_length = int.from_bytes(ip[2:4], "big")
    return ip[header_length:total_length] if total_length > header_length else b""


def _tcp_header_length(segment: bytes) -> int | None:
    if len(segment) < _TCP_MIN_HEADER:
        return None
    return (segment[12] >> 4) * 4


def get_payload_size(packet_data: bytes) -> int:
    """Bytes of application payload in an Ethernet frame, or the frame length if it cannot be parsed."""
    if len(packet_data) >= _ETH_HEADER_LEN:
        ethertype = int.from_bytes(packet_data[12:14], "big")
        ip = packet_data[_ETH_HEADER_LEN:]
        if ethertype == _ETHERTYPE_IPV4 and len(ip) >= _IPV4_MIN_HEADER:
            total_length = int.from_bytes(ip[2:4], "big")
            header_length = (ip[0] & 0x0F) * 4
            if ip[9] == _PROTO_TCP:
                tcp_length = _tcp_header_length(_ipv4_payload(ip))
                if tcp_length is not None:
                    return max(0, total_length - (header_length + tcp_length))
            return max(0, total_length - header_length)
        if ethertype == _ETHERTYPE_IPV6 and len(ip) >= _IPV6_HEADER:
            payload_length = int.from_bytes(ip[4:6], "big")
            if ip[6] == _PROTO_TCP:
                segment = ip[_IPV6_HEADER:_IPV6_HEADER + payload_length]
                tcp_length = _tcp_header_length(segment)
                if tcp_length is not None:
                    return max(0, payload_length - tcp_length)
            return payload_length
    return len(packet_data)


def determine_direction(packet_data: bytes, local_macs: set[bytes]) -> TrafficDirection:
    """Classify a frame by whether its Ethernet source or destination is one of ours."""
    if len(packet_data) < _ETH_HEADER_LEN:
        return TrafficDirection.UNKNOWN
    dst_mac = bytes(packet_data[0:6])
    src_mac = bytes(packet_data[6:12])
    src_is_local = src_mac in local_macs
    dst_is_local = dst_mac in local_macs
    group_addressed = dst_mac == _BROADCAST or bool(dst_mac[0] & 0x01)

    if src_is_local and not dst_is_local:
        return TrafficDirection.OUTBOUND
    if dst_is_local and not src_is_local:
        return TrafficDirection.INBOUND
    if group_addressed:
        return TrafficDirection.OUTBOUND if src_is_local else TrafficDirection.INBOUND
    return TrafficDirection.UNKNOWN


# --- capture filter -------------------------------------------------------

@dataclass(frozen=True)
class _Frame:
    ethertype: int | None = None
    protocol: int | None = None
    src_ip: ipaddress.IPv4Address | ipaddress.IPv6Address | None = None
    dst_ip: ipaddress.IPv4Address | ipaddress.IPv6Address | None = None
    src_port: int | None = None
    dst_port: int | None = None


def _decode(frame: bytes) -> _Frame:
    if len(frame) < _ETH_HEADER_LEN:
        return _Frame()
    ethertype = int.from_bytes(frame[12:14], "big")
    body = frame[_ETH_HEADER_LEN:]
    if ethertype == _ETHERTYPE_IPV4 and len(body) >= _IPV4_MIN_HEADER:
        protocol = body[9]
        src = ipaddress.IPv4Address(body[12:16])
        dst = ipaddress.IPv4Address(body[16:20])
        transport = body[(body[0] & 0x0F) * 4:]
    elif ethertype == _ETHERTYPE_IPV6 and len(body) >= _IPV6_HEADER:
        protocol = body[6]
        src = ipaddress.IPv6Address(body[8:24])
        dst = ipaddress.IPv6Address(body[24:40])
        transport = body[_IPV6_HEADER:]
    else:
        return _Frame(ethertype=ethertype)
    src_port = dst_port = None
    if protocol in (_PROTO_TCP, _PROTO_UDP) and len(transport) >= 4:
        src_port, dst_port = struct.unpack("!HH", transport[:4])
    return _Frame(ethertype, protocol, src, dst, src_port, dst_port)


_Predicate = Callable[[_Frame], bool]

_PROTOCOLS = {"tcp": _PROTO_TCP, "udp": _PROTO_UDP, "icmp": 1, "icmp6": 58}
_ETHERTYPES = {"ip": _ETHERTYPE_IPV4, "ip6": _ETHERTYPE_IPV6, "arp": _ETHERTYPE_ARP}
_LEXEME_PATTERN = re.compile(r"\(|\)|&&|\|\||!|[^\s()!&|]+")


class _FilterParser:
    """Recursive-descent parser for a tcpdump-style subset of capture filters."""

    def __init__(self, expression: str) -> None:
        self.tokens = _LEXEME_PATTERN.findall(expression)
        if "".join(self.tokens) != re.sub(r"\s+", "", expression):
            raise ValueError("unexpected characters")
        self.pos = 0

    def parse(self) -> _Predicate:
        if not self.tokens:
            return lambda frame: True
        predicate = self._expr()
        if self.pos != len(self.tokens):
            raise ValueError(f"unexpected token '{self.tokens[self.pos]}'")
        return predicate

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        word = self._peek()
        if word is None:
            raise ValueError("unexpected end of expression")
        self.pos += 1
        return word

    def _expr(self) -> _Predicate:
        predicate = self._term()
        while self._peek() in ("or", "||"):
            self._next()
            left, right = predicate, self._term()
            predicate = lambda f, a=left, b=right: a(f) or b(f)
        return predicate

    def _term(self) -> _Predicate:
        predicate = self._factor()
        while self._peek() in ("and", "&&"):
            self._next()
            left, right = predicate, self._factor()
            predicate = lambda f, a=left, b=right: a(f) and b(f)
        return predicate

    def _factor(self) -> _Predicate:
        word = self._peek()
        if word in ("not", "!"):
            self._next()
            inner = self._factor()
            return lambda f: not inner(f)
        if word == "(":
            self._next()
            inner = self._expr()
            if self._next() != ")":
                raise ValueError("missing ')'")
            return inner
        return self._primitive()

    def _primitive(self) -> _Predicate:
        word = self._next()
        protocol: int | None = None
        direction: str | None = None
        if word in ("tcp", "udp") and self._peek() in ("port", "src", "dst"):
            protocol = _PROTOCOLS[word]
            word = self._next()
        if word in ("src", "dst"):
            direction = word
            word = self._next()

        if word == "host":
            address = ipaddress.ip_address(self._next())
            if protocol is not None:
                raise ValueError("'host' cannot follow a protocol qualifier")
            return lambda f: address in _by_direction(f.src_ip, f.dst_ip, direction)
        if word == "net":
            network = ipaddress.ip_network(self._next(), strict=False)
            if protocol is not None:
                raise ValueError("'net' cannot follow a protocol qualifier")
            return lambda f: any(
                ip is not None and ip.version == network.version and ip in network
                for ip in _by_direction(f.src_ip, f.dst_ip, direction)
            )
        if word == "port":
            port = int(self._next())
            if not 0 <= port <= 0xFFFF:
                raise ValueError(f"port {port} out of range")
            return lambda f: (protocol is None or f.protocol == protocol) and port in _by_direction(
                f.src_port, f.dst_port, direction
            )
        if direction is not None or protocol is not None:
            raise ValueError(f"expected 'host', 'net' or 'port', got '{word}'")
        if word in _PROTOCOLS:
            number = _PROTOCOLS[word]
            return lambda f: f.protocol == number
        if word in _ETHERTYPES:
            ethertype = _ETHERTYPES[word]
            return lambda f: f.ethertype == ethertype
        raise ValueError(f"unknown primitive '{word}'")


def _by_direction(src, dst, direction: str | None) -> tuple:
    if direction == "src":
        return (src,)
    if direction == "dst":
        return (dst,)
    return (src, dst)


def _compile_filter(expression: str) -> _Predicate:
    try:
        return _FilterParser(expression).parse()
    except ValueError as exc:
        raise ValueError(f"Failed to set packet filter: {exc}") from exc


# --- capture --------------------------------------------------------------

class PacketCapture:
    """Captures frames on an interface and turns those matching a filter into PacketInfo records.

    ``frames`` replaces the live socket with any iterable of raw Ethernet frames,
    and ``local_macs`` replaces the interface's own hardware addresses.
    """

    def __init__(
        self,
        interface: str,
        filter: str,
        payload_only: bool = False,
        *,
        frames: Iterable[bytes] | None = None,
        local_macs: set[bytes] | None = None,
    ) -> None:
        self.interface = interface
        self.filter = filter
        self.payload_only = payload_only
        self.error: BaseException | None = None
        self._matches = _compile_filter(filter)
        self._frames = frames
        self._local_macs = local_macs

    def start_capture(self) -> queue.Queue[PacketInfo]:
        """Capture on a background thread and return the queue packets arrive on.

        An exception that ends the capture is kept in ``error``.
        """
        packets: queue.Queue[PacketInfo] = queue.Queue()

        def run() -> None:
            try:
                for info in self.packets():
                    packets.put(info)
            except Exception as exc:  # the capture thread has no caller to raise to
                self.error = exc

        threading.Thread(target=run, name="packet-capture", daemon=True).start()
        return packets

    def packets(self) -> Iterator[PacketInfo]:
        """Yield a PacketInfo for every captured frame that matches the filter."""
        if self._frames is None:
            if self.interface != "any" and self.interface not in list_interfaces():
                raise LookupError(f"Interface '{self.interface}' not found")
            source: Iterable[bytes] = self._live_frames()
        else:
            source = self._frames
        local_macs = self._local_macs if self._local_macs is not None else get_local_macs(self.interface)

        for frame in source:
            if not self._matches(_decode(frame)):
                continue
            size = get_payload_size(frame) if self.payload_only else len(frame)
            yield PacketInfo(
                timestamp=time.time(),
                size=size,
                direction=determine_direction(frame, local_macs),
            )

    def _open_socket(self) -> socket.socket:
        if not hasattr(socket, "AF_PACKET"):
            raise OSError("live capture needs AF_PACKET sockets, which this platform lacks")
        sock = socket.socket(socket.AF_PACKET, socket.SOCK_RAW, socket.ntohs(_ETH_P_ALL))
        try:
            if self.interface != "any":
                sock.bind((self.interface, 0))
                membership = struct.pack(
                    "iHH8s", socket.if_nametoindex(self.interface), _PACKET_MR_PROMISC, 0, b""
                )
                sock.setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, membership)
            sock.settimeout(_READ_TIMEOUT)
        except BaseException:
            sock.close()
            raise
        return sock

    def _live_frames(self) -> Iterator[bytes]:
        with self._open_socket() as sock:
            while True:
                try:
                    yield sock.recv(_SNAPLEN)
                except TimeoutError:
                    continue