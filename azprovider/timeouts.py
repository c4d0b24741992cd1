"""
Per-operation timeouts and the deadlines handlers wait against.
"""
import re
import time
from dataclasses import dataclass
from typing import Dict, Optional

from azprovider.errors import InvalidTimeoutError, OperationTimeoutError

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")
_UNIT_SECONDS = {"h": 3600, "m": 60, "s": 1}

OPERATIONS = ("create", "read", "update", "delete")


def parse_duration(value: str) -> float:
    """Parse Go-style durations such as ``30m``, ``1h30m`` or ``90s`` into seconds."""
    text = str(value).strip()
    if not text:
        raise InvalidTimeoutError("empty duration")
    pos = 0
    total = 0.0
    for m in _DURATION_RE.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _UNIT_SECONDS[m.group(2)]
        pos = m.end()
    if pos != len(text):
        raise InvalidTimeoutError(f"invalid duration {value!r}")
    return total


def minutes(n: float) -> float:
    return n * 60


@dataclass
class Timeouts:
    create: Optional[float] = minutes(30)
    read: Optional[float] = minutes(5)
    update: Optional[float] = minutes(30)
    delete: Optional[float] = minutes(30)

    def with_overrides(self, block: Optional[Dict[str, str]]) -> "Timeouts":
        if not block:
            return self
        values = {op: getattr(self, op) for op in OPERATIONS}
        for op, raw in block.items():
            if op not in OPERATIONS:
                raise InvalidTimeoutError(f"unsupported timeout {op!r}")
            values[op] = parse_duration(raw)
        return Timeouts(**values)

    def get(self, operation: str) -> Optional[float]:
        return getattr(self, operation)


class Deadline:
    """Absolute point in time an operation must finish by."""

    def __init__(self, seconds: Optional[float], clock=time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self._expires = None if seconds is None else clock() + seconds

    def remaining(self) -> Optional[float]:
        if self._expires is None:
            return None
        return max(0.0, self._expires - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


def _for(operation: str, d) -> Deadline:
    return Deadline(d.timeout(operation))


def for_create(d) -> Deadline:
    return _for("create", d)


def for_read(d) -> Deadline:
    return _for("read", d)


def for_update(d) -> Deadline:
    return _for("update", d)


def for_delete(d) -> Deadline:
    return _for("delete", d)


def wait_for(poller, deadline: Deadline, description: str):
    """Block on a long-running operation poller until it finishes or the deadline passes."""
    result = poller.result(timeout=deadline.remaining())
    if not poller.done():
        raise OperationTimeoutError(f"timed out waiting for {description}")
    return result
