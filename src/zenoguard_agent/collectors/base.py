"""
Collector capability.

A collector adapts one data source to the uniform contract the reporter
relies on: a name and an async ``collect()`` that returns a result variant,
``EMPTY``, or raises ``CollectionError``.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from ..context import AgentContext
from ..results import MaybeResult


@runtime_checkable
class Collector(Protocol):
    """Anything the reporter can ask for data."""

    name: str

    async def collect(self) -> MaybeResult:
        ...


class BaseCollector:
    """Common plumbing for the built-in collectors."""

    name = "base"

    def __init__(self, context: Optional[AgentContext] = None):
        self.context = context
        if context is not None:
            self.log = context.get_logger(f"collector.{self.name}")
        else:
            self.log = logging.getLogger(f"zenoguard_agent.collector.{self.name}")

    async def collect(self) -> MaybeResult:
        raise NotImplementedError
