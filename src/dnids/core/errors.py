from __future__ import annotations


class DnidsError(Exception):
    """
    Base class for every failure raised by dnids.

    Library code raises these, only the command line entry points catch them.
    """


class AddressResolutionError(DnidsError):
    """No usable non loopback IPv4 address was found for the desman."""


class BindError(DnidsError):
    """The desman could not bind or listen on its port."""


class AcceptError(DnidsError):
    """Accepting a watchdog or sending its UID failed. Startup aborts."""


class SendError(DnidsError):
    """A message could not be written to a peer."""


class RecvError(DnidsError):
    """A message could not be read from a peer, or was not the expected one."""


class DisconnectSignal(RecvError):
    """The peer closed the connection."""


class MalformedReport(DnidsError):
    """A payload did not match the report grammar."""


class ConnectError(DnidsError):
    """A watchdog could not open its connection to the desman."""


class CaptureError(DnidsError):
    """The capture source could not be opened or stopped unexpectedly."""
