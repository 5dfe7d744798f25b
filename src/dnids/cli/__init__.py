"""Command line entry points: dnids-desman and dnids-watchdog."""
