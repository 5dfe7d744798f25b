"""
Capture sources feed PacketDescriptor objects to a watchdog.

Each source decodes frames with scapy and hides it from the core.
"""

__all__ = [
    "live",
    "trace",
]
