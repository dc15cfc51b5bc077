"""
Host Info Collector.

Collects hostname, public IP, OS, architecture and uptime.
"""

import asyncio
import ipaddress
import platform
import socket
import time
from pathlib import Path
from typing import Optional
import aiohttp
import psutil

from ..context import AgentContext
from ..errors import CollectionError
from ..results import HostInfo
from .base import BaseCollector

PUBLIC_IP_SERVICES = [
    "https://api.ipify.org",
    "https://icanhazip.com",
    "https://ifconfig.me",
    "https://checkip.amazonaws.com",
]


def get_os_name(os_release: str = "/etc/os-release") -> str:
    """Pretty OS name from os-release, falling back to the platform name."""
    fallback = platform.system() or "Linux"
    try:
        content = Path(os_release).read_text()
    except OSError:
        return fallback

    for line in content.splitlines():
        if line.startswith("PRETTY_NAME="):
            return line.split("=", 1)[1].strip().strip('"')
    return fallback


class HostInfoCollector(BaseCollector):
    """Collects host identity."""

    name = "hostinfo"

    def __init__(
        self,
        context: Optional[AgentContext] = None,
        services: Optional[list[str]] = None,
        timeout: int = 10,
    ):
        """Initialize the host info collector."""
        super().__init__(context)
        self.services = services if services is not None else list(PUBLIC_IP_SERVICES)
        self.timeout = timeout
        self.hostname_override = context.config.hostname if context else None
        self.user_agent = context.user_agent if context else "ZenoGuard-Agent"

    async def collect(self) -> HostInfo:
        """Collect host information."""
        self.log.info("Collecting host information")

        hostname = self.hostname_override or socket.gethostname()
        if not hostname:
            raise CollectionError(self.name, "failed to get hostname")

        public_ip = await self.get_public_ip()

        try:
            uptime = int(time.time() - psutil.boot_time())
        except OSError as e:
            self.log.warning(f"Failed to get uptime: {e}")
            uptime = 0

        info = HostInfo(
            hostname=hostname,
            public_ip=public_ip,
            os=get_os_name(),
            arch=platform.machine(),
            uptime=uptime,
        )
        self.log.info(f"Host info: hostname={hostname}, ip={public_ip}")
        return info

    async def get_public_ip(self) -> str:
        """
        Ask each IP echo service in turn.

        Returns the first valid address, or an empty string if all fail.
        """
        last_error = None
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession(timeout=timeout, headers={'User-Agent': self.user_agent}) as session:
            for url in self.services:
                try:
                    return await self._fetch_ip(session, url)
                except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                    last_error = e

        self.log.warning(f"Failed to get public IP: all IP services failed: {last_error}")
        return ""

    async def _fetch_ip(self, session: aiohttp.ClientSession, url: str) -> str:
        """Fetch and validate the address reported by one service."""
        async with session.get(url) as response:
            if response.status != 200:
                raise ValueError(f"HTTP status: {response.status}")
            text = (await response.text()).strip()

        # Raises ValueError on garbage
        ipaddress.ip_address(text)
        return text
