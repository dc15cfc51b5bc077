"""
Traffic Sampler.

Turns successive reads of cumulative interface byte counters into discrete
traffic samples and buffers them until a report has been confirmed by the
server.
"""

import logging
import threading
import time
from itertools import takewhile
from typing import Callable, Optional

from .results import EMPTY, MaybeSummary, TrafficSample, TrafficSummary

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_INTERVAL = 300  # 5 minutes


class TrafficSampler:
    """
    Delta sampler for one network interface.

    Features:
    - First read after start (or after an interface change) only seeds state
    - Counter resets never produce negative traffic, each direction floors at 0
    - Samples with no traffic in either direction are discarded
    - Buffer is only emptied through an explicit clear()
    - A summary never mixes samples from two interfaces
    - Thread-safe operations
    """

    def __init__(
        self,
        sample_interval: float = DEFAULT_SAMPLE_INTERVAL,
        clock: Callable[[], float] = time.time,
        log: Optional[logging.Logger] = None,
    ):
        """Initialize the sampler."""
        self.sample_interval = sample_interval
        self._clock = clock
        self._log = log or logger

        self._lock = threading.Lock()
        self._samples: list[TrafficSample] = []

        # Last counter snapshot
        self._interface: Optional[str] = None
        self._last_in = 0
        self._last_out = 0
        self._last_timestamp: Optional[float] = None

    @property
    def interface(self) -> Optional[str]:
        """Interface the current counter state belongs to."""
        with self._lock:
            return self._interface

    def sample(self, interface: str, in_bytes: int, out_bytes: int, now: Optional[float] = None) -> Optional[TrafficSample]:
        """
        Record the traffic since the previous snapshot of ``interface``.

        Returns the buffered sample, or None if the read only seeded state or
        carried no traffic.
        """
        now = self._clock() if now is None else now

        with self._lock:
            if self._last_timestamp is None or interface != self._interface:
                if self._interface is not None and interface != self._interface:
                    self._log.info(
                        f"Public interface changed {self._interface} -> {interface}, reseeding counters"
                    )
                else:
                    self._log.info(
                        f"Network sample {interface}: initializing (total in={in_bytes}, out={out_bytes})"
                    )
                self._seed(interface, in_bytes, out_bytes, now)
                return None

            delta_in = max(in_bytes - self._last_in, 0)
            delta_out = max(out_bytes - self._last_out, 0)
            time_delta = max(now - self._last_timestamp, 0.0)

            self._seed(interface, in_bytes, out_bytes, now)

            if delta_in == 0 and delta_out == 0:
                self._log.debug(f"Network sample {interface}: no traffic in {time_delta:.1f}s, skipped")
                return None

            sample = TrafficSample(
                timestamp=now,
                in_bytes=delta_in,
                out_bytes=delta_out,
                total_bytes=delta_in + delta_out,
                time_delta_seconds=time_delta,
                interface=interface,
            )
            self._samples.append(sample)

        self._log.info(
            f"Network sample {interface}: delta_in={delta_in}, delta_out={delta_out}, time={time_delta:.1f}s"
        )
        return sample

    def _seed(self, interface: str, in_bytes: int, out_bytes: int, now: float) -> None:
        self._interface = interface
        self._last_in = in_bytes
        self._last_out = out_bytes
        self._last_timestamp = now

    def should_sample(self, now: Optional[float] = None) -> bool:
        """True if nothing was sampled yet or the sampling interval has elapsed."""
        now = self._clock() if now is None else now
        with self._lock:
            if self._last_timestamp is None:
                return True
            return now - self._last_timestamp >= self.sample_interval

    def drain(self) -> MaybeSummary:
        """
        Summarize the buffered samples without removing them.

        Returns EMPTY when there is nothing to report yet. The average rate
        is weighted by time: total bytes over total elapsed seconds.

        A summary covers a single interface: if the public interface changed
        while samples were buffered, only the oldest interface's samples are
        summarized and the rest wait for the next report.
        """
        with self._lock:
            if not self._samples:
                return EMPTY
            interface = self._samples[0].interface
            samples = tuple(takewhile(lambda s: s.interface == interface, self._samples))
            deferred = len(self._samples) - len(samples)

        if deferred:
            self._log.info(f"Network traffic: {deferred} samples from a newer interface held for the next report")

        total_seconds = sum(s.time_delta_seconds for s in samples)
        if total_seconds > 0:
            avg_in = sum(s.in_bytes for s in samples) / total_seconds
            avg_out = sum(s.out_bytes for s in samples) / total_seconds
        else:
            avg_in = avg_out = 0.0

        self._log.info(
            f"Network traffic: avg in rate={avg_in:.0f} bytes/sec, "
            f"avg out rate={avg_out:.0f} bytes/sec (period={total_seconds:.1f}s)"
        )

        return TrafficSummary(
            interface=interface,
            samples=samples,
            avg_in_rate=avg_in,
            avg_out_rate=avg_out,
        )

    def clear(self, reported: Optional[TrafficSummary] = None) -> None:
        """
        Drop buffered samples. Only call after a confirmed report.

        With ``reported``, only the prefix that summary was built from is
        dropped, so samples taken while the report was in flight survive.
        """
        with self._lock:
            if reported is None:
                self._samples.clear()
            else:
                del self._samples[:reported.sample_count]

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
