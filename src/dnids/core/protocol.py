from __future__ import annotations

import ipaddress
from typing import List

from .errors import MalformedReport, RecvError
from .models import ALERT_CATEGORIES, Report

# Messages are single ASCII lines terminated by "\n", at most
# MAX_MESSAGE_SIZE bytes including the terminator.

DESMAN_PORT = 11353
MAX_MESSAGE_SIZE = 512

START = "start"
UID_PREFIX = "UID"
ALERT_WORD = "alert"
REPORT_WORD = "report"


def encode_line(text: str) -> bytes:
    """
    Frame one message for the wire.

    Raises ValueError when the framed message does not fit MAX_MESSAGE_SIZE
    or contains characters that would break framing.
    """
    if "\n" in text:
        raise ValueError("message must not contain a newline")
    data = (text + "\n").encode("ascii")
    if len(data) > MAX_MESSAGE_SIZE:
        raise ValueError(f"message is {len(data)} bytes, limit is {MAX_MESSAGE_SIZE}")
    return data


def decode_line(data: bytes) -> str:
    """
    Inverse of encode_line. Raises ValueError (UnicodeDecodeError included)
    for non ASCII payloads.
    """
    return data.decode("ascii").rstrip("\r\n")


def format_uid(agent_id: int) -> str:
    return f"{UID_PREFIX} {agent_id}"


def parse_uid(text: str) -> int:
    parts = text.split()
    if len(parts) != 2 or parts[0] != UID_PREFIX or not (parts[1].isascii() and parts[1].isdigit()):
        raise RecvError(f"expected 'UID <n>', got {text!r}")
    agent_id = int(parts[1])
    if agent_id < 1:
        raise RecvError(f"invalid watchdog id {agent_id}")
    return agent_id


def compose_report(report: Report) -> str:
    """
    Build the report text.

    Forms:
      report <seq> <packets> <bytes> <flows>
      alert <category>... report <seq> <packets> <bytes> <flows> <dst>

    Categories are written in the fixed order packets, bytes, flows.
    """
    words: List[str] = []
    if report.alerts:
        words.append(ALERT_WORD)
        words.extend(c for c in ALERT_CATEGORIES if c in report.alerts)

    words.append(REPORT_WORD)
    words.extend(str(v) for v in (report.seq, report.packets, report.bytes, report.flows))

    if report.destination:
        words.append(report.destination)

    return " ".join(words)


def _count(token: str, what: str) -> int:
    if not (token.isascii() and token.isdigit()):
        raise MalformedReport(f"{what} is not a non negative integer: {token!r}")
    return int(token)


def parse_report(text: str) -> Report:
    """
    Parse a report line back into a Report.

    Accepts the alert prefix with any non empty, duplicate free set of
    categories in any order, and an optional destination with or without
    the prefix. Everything else raises MalformedReport.
    """
    tokens = text.split()
    if not tokens:
        raise MalformedReport("empty report")

    alerts = set()
    pos = 0
    if tokens[0] == ALERT_WORD:
        pos = 1
        while pos < len(tokens) and tokens[pos] != REPORT_WORD:
            category = tokens[pos]
            if category not in ALERT_CATEGORIES:
                raise MalformedReport(f"unknown alert category {category!r}")
            if category in alerts:
                raise MalformedReport(f"duplicate alert category {category!r}")
            alerts.add(category)
            pos += 1
        if not alerts:
            raise MalformedReport("alert without category")

    if pos >= len(tokens) or tokens[pos] != REPORT_WORD:
        raise MalformedReport(f"missing '{REPORT_WORD}' keyword in {text!r}")

    body = tokens[pos + 1:]
    if len(body) not in (4, 5):
        raise MalformedReport(f"expected 4 or 5 fields after '{REPORT_WORD}', got {len(body)}")

    seq = _count(body[0], "sequence number")
    if seq < 1:
        raise MalformedReport("sequence number must start at 1")

    destination = None
    if len(body) == 5:
        try:
            destination = str(ipaddress.ip_address(body[4]))
        except ValueError as e:
            raise MalformedReport(f"invalid destination address {body[4]!r}") from e

    return Report(
        seq=seq,
        packets=_count(body[1], "packets"),
        bytes=_count(body[2], "bytes"),
        flows=_count(body[3], "flows"),
        alerts=frozenset(alerts),
        destination=destination,
    )


def tag_with_agent(text: str, agent_id: int) -> str:
    """
    Insert the watchdog id after the report keyword, for the desman log.

      alert bytes report 4 10 900 2 10.0.0.9  ->  alert bytes report 3 4 10 900 2 10.0.0.9
    """
    tokens = text.split()
    if REPORT_WORD not in tokens:
        return text
    idx = tokens.index(REPORT_WORD) + 1
    tokens.insert(idx, str(agent_id))
    return " ".join(tokens)
