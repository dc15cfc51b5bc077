"""
System Load Collector.

Collects the 1, 5 and 15 minute load averages.
"""

import asyncio
import psutil

from ..errors import CollectionError
from ..results import SystemLoad
from .base import BaseCollector


class SystemCollector(BaseCollector):
    """Collects system load using psutil."""

    name = "system"

    async def collect(self) -> SystemLoad:
        """Collect load averages."""
        self.log.info("Collecting system load information")

        loop = asyncio.get_event_loop()
        try:
            load1, load5, load15 = await loop.run_in_executor(None, psutil.getloadavg)
        except (OSError, ValueError) as e:
            raise CollectionError(self.name, f"failed to read load average: {e}") from e

        self.log.info(f"System load: {load1:.2f} {load5:.2f} {load15:.2f}")
        return SystemLoad(load1=load1, load5=load5, load15=load15)
