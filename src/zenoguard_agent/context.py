"""
Agent runtime context.

Built once at startup and handed to every component that needs to log or
read configuration, so no module keeps global state of its own.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from . import __version__
from .config import AgentConfig


@dataclass
class AgentContext:
    """Configuration and logger shared by the agent's components."""
    config: AgentConfig
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("zenoguard_agent"))
    version: str = __version__

    def get_logger(self, name: str) -> logging.Logger:
        """Child logger for a component, e.g. ``reporter`` or ``collector.ssh``."""
        return self.logger.getChild(name)

    @property
    def user_agent(self) -> str:
        return f"ZenoGuard-Agent/{self.version}"


def make_context(config: Optional[AgentConfig] = None, logger: Optional[logging.Logger] = None) -> AgentContext:
    """Create a context, defaulting to a fresh config and the package logger."""
    context = AgentContext(config=config or AgentConfig())
    if logger is not None:
        context.logger = logger
    return context
