"""
ZenoGuard Agent Collectors.

Each collector gathers one kind of host data for the report.
"""

from .base import BaseCollector, Collector
from .hostinfo import HostInfoCollector
from .network import NetworkCollector
from .ssh import SSHCollector
from .system import SystemCollector

__all__ = [
    "BaseCollector",
    "Collector",
    "HostInfoCollector",
    "NetworkCollector",
    "SSHCollector",
    "SystemCollector",
]
