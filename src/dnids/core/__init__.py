"""
Core modules that must remain capture neutral.

Keep scapy and frame decoding out of this package.
"""

from .models import FlowKey, PacketDescriptor, Report, TrafficTotals
from .engine import TrafficAnalyzer
from .link import DesmanLink
from .server import Desman

__all__ = ["FlowKey", "PacketDescriptor", "Report", "TrafficTotals", "TrafficAnalyzer", "DesmanLink", "Desman"]
