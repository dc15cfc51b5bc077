"""
Daemon process lifecycle.

PID file handling, single-instance checks and detaching from the terminal.
"""

import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from .config import default_config_dir, is_root

logger = logging.getLogger(__name__)


def default_pid_path() -> Path:
    if is_root():
        return Path("/var/run/zenoguard.pid")
    return default_config_dir() / "agent.pid"


def _pid_path(path: Optional[Path]) -> Path:
    return Path(path) if path else default_pid_path()


def write_pid_file(pid: Optional[int] = None, path: Optional[Path] = None) -> Path:
    """Write the PID file for ``pid`` (default: this process)."""
    pid_path = _pid_path(path)
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(str(pid or os.getpid()))
    return pid_path


def remove_pid_file(path: Optional[Path] = None) -> None:
    """Remove the PID file if present."""
    _pid_path(path).unlink(missing_ok=True)


def read_pid(path: Optional[Path] = None) -> Optional[int]:
    """PID stored in the PID file, or None if missing or unreadable."""
    try:
        return int(_pid_path(path).read_text().strip())
    except (OSError, ValueError):
        return None


def _process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


def status(path: Optional[Path] = None) -> tuple[bool, Optional[int]]:
    """
    Check whether the agent is running.

    A PID file pointing at a dead process is stale and gets removed.
    """
    pid = read_pid(path)
    if pid is None:
        return False, None

    if not _process_alive(pid):
        logger.info(f"Removing stale PID file for PID {pid}")
        remove_pid_file(path)
        return False, None

    return True, pid


def is_other_instance_running(path: Optional[Path] = None) -> Optional[int]:
    """PID of another live agent instance, if any."""
    running, pid = status(path)
    if running and pid != os.getpid():
        return pid
    return None


def stop(path: Optional[Path] = None) -> int:
    """Send SIGTERM to the running agent. Returns its PID."""
    pid = read_pid(path)
    if pid is None:
        raise RuntimeError("failed to read PID file")

    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError as e:
        remove_pid_file(path)
        raise RuntimeError(f"process {pid} is not running") from e

    logger.info(f"Sent SIGTERM to daemon (PID: {pid})")
    return pid


def daemonize() -> None:
    """
    Detach from the controlling terminal with a double fork.

    Only the grandchild returns; the parents exit.
    """
    if os.fork() > 0:
        os._exit(0)

    os.setsid()

    if os.fork() > 0:
        os._exit(0)

    os.chdir("/")
    os.umask(0o022)

    sys.stdout.flush()
    sys.stderr.flush()
    with open(os.devnull, 'rb', 0) as devnull_in:
        os.dup2(devnull_in.fileno(), sys.stdin.fileno())
    with open(os.devnull, 'ab', 0) as devnull_out:
        os.dup2(devnull_out.fileno(), sys.stdout.fileno())
        os.dup2(devnull_out.fileno(), sys.stderr.fileno())
