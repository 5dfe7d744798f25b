from __future__ import annotations

from typing import Optional

from scapy.layers.inet import IP, TCP, UDP
from scapy.packet import Packet

from dnids.core.models import ICMP, IP as IP_TAG, TCP as TCP_TAG, UDP as UDP_TAG, UNKNOWN, PacketDescriptor

# IP protocol numbers we tag. Everything else is "unknown".
IP_PROTOCOLS = {
    0: IP_TAG,
    1: ICMP,
    6: TCP_TAG,
    17: UDP_TAG,
}


def describe(frame: Packet, ts: Optional[float] = None) -> PacketDescriptor:
    """
    Reduce a scapy frame to the fields the engine needs.

    Frames without an IPv4 layer become an "unknown" descriptor with empty
    addresses, so a replay still sees their timestamp.
    """
    if IP not in frame:
        return PacketDescriptor(size=len(frame), src="", dst="", protocol=UNKNOWN, ts=ts)

    ip = frame[IP]
    size = ip.len if ip.len is not None else len(ip)
    protocol = IP_PROTOCOLS.get(ip.proto, UNKNOWN)

    src_port = dst_port = 0
    if protocol == TCP_TAG and TCP in ip:
        src_port, dst_port = ip[TCP].sport, ip[TCP].dport
    elif protocol == UDP_TAG and UDP in ip:
        src_port, dst_port = ip[UDP].sport, ip[UDP].dport

    return PacketDescriptor(
        size=int(size),
        src=str(ip.src),
        dst=str(ip.dst),
        src_port=int(src_port),
        dst_port=int(dst_port),
        protocol=protocol,
        ts=ts,
    )
