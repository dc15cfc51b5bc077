"""
Collector result variants.

Every collector returns one of these, or ``EMPTY`` when it has nothing to
report yet. The reporter merges them into a single report by matching on the
concrete type.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union


class Empty(enum.Enum):
    """Marker for "no data this cycle", distinct from a zero-valued result."""
    EMPTY = "empty"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EMPTY"


EMPTY = Empty.EMPTY


@dataclass(frozen=True)
class TrafficSample:
    """Traffic observed on one interface between two counter reads."""
    timestamp: float
    in_bytes: int
    out_bytes: int
    total_bytes: int
    time_delta_seconds: float
    interface: str = ""

    @property
    def iso_timestamp(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class TrafficSummary:
    """Buffered samples plus the time-weighted average rate per direction."""
    interface: str
    samples: tuple[TrafficSample, ...]
    avg_in_rate: float  # bytes/second
    avg_out_rate: float  # bytes/second

    @property
    def sample_count(self) -> int:
        return len(self.samples)


@dataclass
class SSHLogin:
    """A single SSH authentication event or active session."""
    user: str
    ip: str
    time: str = ""
    method: str = "password"
    success: bool = False
    port: int = 0
    protocol: str = "ssh2"
    session_duration: int = 0  # seconds
    is_active: bool = False


@dataclass
class SSHLogins:
    """Result of the SSH collector."""
    logins: list[SSHLogin] = field(default_factory=list)


@dataclass
class SystemLoad:
    """1, 5 and 15 minute load averages."""
    load1: float
    load5: float
    load15: float


@dataclass
class NetworkTraffic:
    """Result of the network collector."""
    summary: TrafficSummary


@dataclass
class HostInfo:
    """Host identity."""
    hostname: str
    public_ip: str = ""
    os: str = ""
    arch: str = ""
    uptime: int = 0


CollectorResult = Union[SSHLogins, SystemLoad, NetworkTraffic, HostInfo]
MaybeResult = Union[CollectorResult, Empty]
MaybeSummary = Union[TrafficSummary, Empty]
