"""
dnids

Distributed network intrusion detection: one desman, N watchdogs.

Core ideas
1. Watchdogs capture packets and aggregate them per timeslice
2. Each timeslice is compared to the previous one, 3x growth raises an alert
3. The desman admits every watchdog, starts them, and collects their reports
"""

__all__ = ["core", "capture", "cli"]
