"""
Network Traffic Collector.

Reads per-interface byte counters, picks the interface carrying the public
traffic and feeds it to the traffic sampler.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional
import psutil

from ..context import AgentContext
from ..errors import CollectionError
from ..results import EMPTY, MaybeResult, NetworkTraffic
from ..sampler import TrafficSampler
from .base import BaseCollector

# Loopback and virtual interfaces never carry the host's public traffic
EXCLUDED_INTERFACES = ("lo", "lo0")
VIRTUAL_PREFIXES = (
    "lo", "veth", "docker", "br-", "virbr", "bridge",
    "tun", "tap", "gif", "stf", "utun", "awdl", "llw",
)


@dataclass
class InterfaceCounters:
    """Cumulative counters of one interface."""
    name: str
    in_bytes: int
    out_bytes: int
    in_packets: int = 0
    out_packets: int = 0
    in_errors: int = 0
    out_errors: int = 0

    @property
    def total_bytes(self) -> int:
        return self.in_bytes + self.out_bytes


def is_virtual_interface(name: str) -> bool:
    """Check whether an interface is loopback or virtual."""
    return name in EXCLUDED_INTERFACES or name.startswith(VIRTUAL_PREFIXES)


def select_public_interface(counters: dict[str, InterfaceCounters]) -> InterfaceCounters:
    """
    Pick the interface with the most combined traffic.

    Loopback and virtual interfaces are skipped. If every candidate is idle
    the first one is used.
    """
    candidates = [c for name, c in counters.items() if not is_virtual_interface(name)]
    if not candidates:
        raise CollectionError("network", "no valid network interface found")

    busiest = max(candidates, key=lambda c: c.total_bytes)
    if busiest.total_bytes > 0:
        return busiest
    return candidates[0]


def read_counters() -> dict[str, InterfaceCounters]:
    """Read cumulative counters for every interface."""
    stats = psutil.net_io_counters(pernic=True)
    return {
        name: InterfaceCounters(
            name=name,
            in_bytes=s.bytes_recv,
            out_bytes=s.bytes_sent,
            in_packets=s.packets_recv,
            out_packets=s.packets_sent,
            in_errors=s.errin,
            out_errors=s.errout,
        )
        for name, s in stats.items()
    }


class NetworkCollector(BaseCollector):
    """Collects network traffic samples for the public interface."""

    name = "network"

    def __init__(self, context: Optional[AgentContext] = None, sampler: Optional[TrafficSampler] = None):
        """Initialize the network collector."""
        super().__init__(context)
        if sampler is None:
            interval = context.config.sample_interval if context else 300
            sampler = TrafficSampler(sample_interval=interval, log=self.log)
        self.sampler = sampler

    async def _read_public(self) -> InterfaceCounters:
        loop = asyncio.get_event_loop()
        try:
            counters = await loop.run_in_executor(None, read_counters)
        except OSError as e:
            raise CollectionError(self.name, f"failed to read interface counters: {e}") from e
        return select_public_interface(counters)

    async def sample_now(self) -> None:
        """Take a traffic sample. Driven by the sampling tick."""
        iface = await self._read_public()
        self.sampler.sample(iface.name, iface.in_bytes, iface.out_bytes)

    async def collect(self) -> MaybeResult:
        """
        Report the buffered traffic samples.

        A sample is taken first if the sampler is due, so the very first
        report still seeds the counters.
        """
        self.log.info("Collecting network traffic information")

        if self.sampler.should_sample():
            await self.sample_now()

        summary = self.sampler.drain()
        if summary is EMPTY:
            self.log.info("No network traffic samples available yet, skipping")
            return EMPTY
        return NetworkTraffic(summary=summary)
