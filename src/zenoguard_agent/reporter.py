"""
ZenoGuard Agent - Reporter.

Drives the report cycle: collect from every collector, submit the merged
report, follow the server's interval directive and retry failed submissions
with bounded exponential backoff. A second task samples network traffic on a
fixed cadence, independent of the report interval.
"""

import asyncio
import enum
from typing import Optional

from .collectors import (
    BaseCollector,
    HostInfoCollector,
    NetworkCollector,
    SSHCollector,
    SystemCollector,
)
from .context import AgentContext
from .errors import AgentAuthError, CollectionError, TransientSubmissionError, UnauthorizedError
from .models import NetworkTrafficReport, ReportPayload, ServerDirective, SSHLoginReport, SystemLoadReport
from .results import Empty, HostInfo, NetworkTraffic, SSHLogins, SystemLoad, TrafficSummary
from .sender import ReportSender

BACKOFF_MULTIPLIER = 2


class CycleState(enum.Enum):
    """Report cycle states."""
    IDLE = "idle"
    COLLECTING = "collecting"
    SUBMITTING = "submitting"
    RETRYING = "retrying"
    SUCCESS = "success"
    ABANDONED = "abandoned"


def backoff_delays(
    max_retries: int = 5,
    initial_delay: float = 5,
    max_delay: float = 60,
    multiplier: float = BACKOFF_MULTIPLIER,
) -> list[float]:
    """Delays before each retry: start at ``initial_delay``, multiply, cap."""
    delays = []
    delay = initial_delay
    for _ in range(max_retries):
        delays.append(min(delay, max_delay))
        delay *= multiplier
    return delays


class Reporter:
    """
    Report scheduler and retry engine.

    The traffic sampler's buffer is only cleared after the server confirmed
    a report, so abandoned cycles carry their samples into the next one.
    """

    def __init__(
        self,
        context: AgentContext,
        sender: Optional[ReportSender] = None,
        collectors: Optional[list[BaseCollector]] = None,
        network: Optional[NetworkCollector] = None,
    ):
        """Initialize the reporter."""
        self.context = context
        self.config = context.config
        self.log = context.get_logger("reporter")

        self.sender = sender or ReportSender(context)

        if collectors is None:
            network = network or NetworkCollector(context)
            collectors = [
                SSHCollector(context),
                SystemCollector(context),
                network,
                HostInfoCollector(context),
            ]
        elif network is None:
            network = next((c for c in collectors if isinstance(c, NetworkCollector)), None)
        self.collectors = collectors
        self.network = network

        self.interval = self.config.report_interval
        self.delays = backoff_delays(
            max_retries=self.config.max_retries,
            initial_delay=self.config.initial_retry_delay,
            max_delay=self.config.max_retry_delay,
        )
        self.state = CycleState.IDLE

        # Holds at most one pending interval change
        self.interval_updates: asyncio.Queue[int] = asyncio.Queue(maxsize=1)
        self._stop = asyncio.Event()

    def _set_state(self, state: CycleState) -> None:
        self.log.debug(f"Report cycle: {self.state.value} -> {state.value}")
        self.state = state

    async def _wait_stop(self, timeout: float) -> bool:
        """Sleep for ``timeout`` seconds. Returns True if stop was requested."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask both loops to finish at their next wake point."""
        if not self._stop.is_set():
            self.log.info("Stopping reporter...")
            self._stop.set()

    async def run(self) -> None:
        """
        Run until stopped.

        Raises AgentAuthError when the server rejects the token.
        """
        self.log.info(f"Starting reporter with interval: {self.interval} seconds")

        sampling_task = asyncio.create_task(self._sampling_loop())
        try:
            await self._report_loop()
        finally:
            self._stop.set()
            await sampling_task
        self.log.info("Reporter stopped")

    async def _sampling_loop(self) -> None:
        """Take a traffic sample every sampling interval."""
        if self.network is None:
            return

        while not await self._wait_stop(self.config.sample_interval):
            try:
                await self.network.sample_now()
                self.log.info("Collected network traffic sample")
            except CollectionError as e:
                self.log.warning(f"Network sample failed: {e}")
            except Exception as e:
                self.log.error(f"Network sampler error: {e}")

    async def _report_loop(self) -> None:
        """Report now, then on every tick until stopped."""
        loop = asyncio.get_running_loop()
        tick = self.interval

        await self._safe_cycle(initial=True)
        deadline = loop.time() + tick

        update_task = asyncio.create_task(self.interval_updates.get())
        stop_task = asyncio.create_task(self._stop.wait())
        try:
            while not self._stop.is_set():
                timeout = max(deadline - loop.time(), 0)
                done, _ = await asyncio.wait(
                    {update_task, stop_task},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if stop_task in done:
                    break

                if update_task in done:
                    new_tick = update_task.result()
                    self.log.info(f"Updating ticker interval: {tick}s -> {new_tick}s")
                    tick = new_tick
                    deadline = loop.time() + tick
                    update_task = asyncio.create_task(self.interval_updates.get())
                    continue

                await self._safe_cycle()
                deadline = loop.time() + tick
        finally:
            for task in (update_task, stop_task):
                task.cancel()
            await asyncio.gather(update_task, stop_task, return_exceptions=True)

    async def _safe_cycle(self, initial: bool = False) -> None:
        """Run one cycle; anything but an auth failure is logged and survived."""
        try:
            await self.run_cycle()
        except AgentAuthError:
            raise
        except Exception as e:
            prefix = "Initial report failed" if initial else "Report failed"
            self.log.error(f"{prefix}: {e}")
            self._set_state(CycleState.IDLE)

    async def run_cycle(self) -> CycleState:
        """
        Perform one collect -> submit cycle.

        Returns SUCCESS or ABANDONED; raises AgentAuthError on a rejected
        token.
        """
        self._set_state(CycleState.COLLECTING)
        payload, summary = await self.collect()

        self._set_state(CycleState.SUBMITTING)
        directive = await self.submit_with_retry(payload)

        if directive is None:
            self._set_state(CycleState.ABANDONED)
            outcome = CycleState.ABANDONED
        else:
            self._set_state(CycleState.SUCCESS)
            outcome = CycleState.SUCCESS
            if summary is not None and self.network is not None:
                self.network.sampler.clear(summary)
                self.log.info("Cleared network traffic samples after successful report")
            self.apply_directive(directive)

        self._set_state(CycleState.IDLE)
        return outcome

    async def collect(self) -> tuple[ReportPayload, Optional[TrafficSummary]]:
        """
        Ask every collector for data and merge the results.

        Returns the payload and the traffic summary it contains, if any.
        """
        self.log.info("Collecting data from all collectors")
        payload = ReportPayload()
        summary = None

        for collector in self.collectors:
            try:
                result = await collector.collect()
            except CollectionError as e:
                self.log.warning(f"Collector {collector.name} failed: {e}")
                continue
            except Exception as e:
                self.log.error(f"Collector {collector.name} error: {e}")
                continue

            match result:
                case Empty():
                    self.log.info(f"Collector {collector.name} has no data to report, skipping")
                case SSHLogins(logins=logins):
                    payload.ssh_logins = [SSHLoginReport.from_login(login) for login in logins]
                    self.log.info(f"SSH collector returned {len(logins)} logins")
                case SystemLoad():
                    payload.system_load = SystemLoadReport.from_load(result)
                case NetworkTraffic(summary=traffic):
                    payload.network_traffic = NetworkTrafficReport.from_summary(traffic)
                    summary = traffic
                case HostInfo():
                    payload.set_host(result)
                case _:
                    self.log.warning(f"Unknown collector result type from {collector.name}: {type(result).__name__}")

        self.log.info("Data collection completed")
        return payload, summary

    async def submit_with_retry(self, payload: ReportPayload) -> Optional[ServerDirective]:
        """
        Submit the payload, retrying transient failures with backoff.

        Returns the directive, or None once retries are exhausted.
        """
        attempt = 0
        while True:
            try:
                return await self.sender.submit(payload)
            except UnauthorizedError as e:
                await self._handle_unauthorized(e)
            except TransientSubmissionError as e:
                self.log.error(f"Failed to send report: {e}")
                if attempt >= len(self.delays):
                    self.log.error(f"Max retries exceeded ({len(self.delays)}), abandoning this cycle: {e}")
                    return None

                delay = self.delays[attempt]
                attempt += 1
                self._set_state(CycleState.RETRYING)
                self.log.info(f"Retry attempt {attempt}/{len(self.delays)} after {delay}s")
                if await self._wait_stop(delay):
                    self.log.info("Stop requested during backoff, abandoning this cycle")
                    return None
                self._set_state(CycleState.SUBMITTING)

    async def _handle_unauthorized(self, error: UnauthorizedError) -> None:
        """Wait out the grace period, then give up for good."""
        grace = self.config.auth_grace_period
        self.log.error(f"Invalid token - waiting {grace}s before exiting")
        await self._wait_stop(grace)
        raise AgentAuthError("Invalid token, exiting") from error

    def apply_directive(self, directive: ServerDirective) -> None:
        """Adopt a new report interval and signal the ticking loop."""
        new_interval = directive.report_interval
        if new_interval <= 0 or new_interval == self.interval:
            return

        self.log.info(f"Server requested new interval: {self.interval} -> {new_interval} seconds")
        self.interval = new_interval
        self.config.report_interval = new_interval

        # Lossy: an unconsumed update wins over this one
        try:
            self.interval_updates.put_nowait(new_interval)
            self.log.info("Interval update signal sent")
        except asyncio.QueueFull:
            self.log.warning("Interval update channel full, skipping")

    async def test_connection(self) -> int:
        return await self.sender.test_connection()

    async def close(self) -> None:
        await self.sender.close()
