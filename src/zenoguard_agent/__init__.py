"""
ZenoGuard Agent - Host telemetry reporter.

Collects SSH activity, system load, network traffic and host identity, and
reports them to the ZenoGuard server on a server-negotiated interval.
"""

__version__ = "1.0.0"

from .config import AgentConfig  # noqa: E402
from .context import AgentContext  # noqa: E402
from .reporter import Reporter  # noqa: E402
from .sampler import TrafficSampler  # noqa: E402
from .sender import ReportSender  # noqa: E402

__all__ = [
    "AgentConfig",
    "AgentContext",
    "Reporter",
    "TrafficSampler",
    "ReportSender",
]
