"""
SSH Login Collector.

Parses recent SSH authentication events from the system auth logs and marks
logins that still have an active session.
"""

import asyncio
import re
import subprocess
import sys
from collections import deque
from datetime import datetime, timedelta
from typing import Optional

from ..context import AgentContext
from ..results import SSHLogin, SSHLogins
from .base import BaseCollector

LOG_PATHS = [
    "/var/log/auth.log",  # Debian/Ubuntu
    "/var/log/secure",  # CentOS/RHEL/Amazon Linux
    "/var/log/messages",  # Some systems
]
DARWIN_LOG_PATHS = [
    "/var/log/system.log",
]

TAIL_LINES = 1000
RECENT_WINDOW = timedelta(minutes=15)

_TIME = r"(?P<time>\w{3}\s+\d+\s+\d+:\d+:\d+|\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\S*)"

# Jan 30 10:00:00 host sshd[1234]: Accepted password for root from 1.2.3.4 port 22 ssh2
AUTH_PATTERN = re.compile(
    _TIME + r".*sshd\[\d+\]:\s+(?P<result>Accepted|Failed)\s+(?P<method>\S+)\s+for\s+"
    r"(?:invalid user\s+)?(?P<user>\S+)\s+from\s+(?P<ip>[\da-fA-F.:]+)\s+port\s+(?P<port>\d+)"
)

# Jan 30 10:00:00 host sshd[1234]: Invalid user admin from 1.2.3.4 port 22
INVALID_USER_PATTERN = re.compile(
    _TIME + r".*sshd\[\d+\]:\s+Invalid user\s+(?P<user>\S+)\s+from\s+"
    r"(?P<ip>[\da-fA-F.:]+)\s+port\s+(?P<port>\d+)"
)

X_DISPLAY_PATTERN = re.compile(r"^:\d+(\.\d+)?$")

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_log_time(value: str, now: datetime) -> Optional[datetime]:
    """
    Parse a syslog timestamp into local naive time.

    Classic syslog lines carry no year: the current one is assumed, and a
    time more than a day in the future is taken to be from last year.
    """
    value = value.strip()
    if "T" in value and value[:4].isdigit():
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed

    try:
        parsed = datetime.strptime(f"{now.year} {' '.join(value.split())}", "%Y %b %d %H:%M:%S")
    except ValueError:
        return None

    if parsed - now > timedelta(days=1):
        parsed = parsed.replace(year=now.year - 1)
    return parsed


def parse_login_line(line: str, now: datetime) -> Optional[tuple[SSHLogin, datetime]]:
    """Parse one log line into a login and its timestamp."""
    match = AUTH_PATTERN.search(line)
    if match:
        method = match.group("method")
        success = match.group("result") == "Accepted"
    else:
        match = INVALID_USER_PATTERN.search(line)
        if not match:
            return None
        method = "password"
        success = False

    when = parse_log_time(match.group("time"), now)
    if when is None:
        return None

    login = SSHLogin(
        user=match.group("user"),
        ip=match.group("ip"),
        time=when.strftime(TIME_FORMAT),
        method=method,
        success=success,
        port=int(match.group("port")),
        protocol="ssh2",
    )
    return login, when


def parse_who_line(line: str, now: datetime) -> Optional[SSHLogin]:
    """
    Parse a line of ``who -u`` output into an active remote session.

    Local sessions (no address in parentheses) are ignored.
    """
    fields = line.split()
    if len(fields) < 2:
        return None

    last = fields[-1]
    if not (last.startswith("(") and last.endswith(")")):
        return None
    ip = last.strip("()")
    if "." not in ip and ":" not in ip:
        return None
    # X display such as (:0) or (:0.0)
    if X_DISPLAY_PATTERN.match(ip):
        return None

    session = SSHLogin(user=fields[0], ip=ip, success=True, is_active=True, method="", protocol="ssh2")

    # user pts/0 2026-01-31 10:00 00:05 1234 (1.2.3.4)
    if len(fields) >= 4 and ":" in fields[3]:
        for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S"):
            try:
                login_time = datetime.strptime(f"{fields[2]} {fields[3]}", fmt)
            except ValueError:
                continue
            session.time = login_time.strftime(TIME_FORMAT)
            session.session_duration = max(int((now - login_time).total_seconds()), 0)
            break

    return session


class SSHCollector(BaseCollector):
    """Collects recent SSH logins from auth logs and `who`."""

    name = "ssh"

    def __init__(self, context: Optional[AgentContext] = None, log_paths: Optional[list[str]] = None):
        """Initialize the SSH collector."""
        super().__init__(context)
        if log_paths is None:
            log_paths = list(LOG_PATHS)
            if sys.platform == "darwin":
                log_paths = DARWIN_LOG_PATHS + log_paths
        self.log_paths = log_paths

    async def collect(self) -> SSHLogins:
        """Collect SSH login information."""
        self.log.info("Collecting SSH login information")

        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._collect_sync)

    def _collect_sync(self, now: Optional[datetime] = None) -> SSHLogins:
        now = now or datetime.now()
        logins: list[SSHLogin] = []
        login_times: list[datetime] = []

        for path in self.log_paths:
            try:
                entries = self._parse_log_file(path, now)
            except FileNotFoundError:
                continue
            except OSError as e:
                self.log.warning(f"Failed to parse {path}: {e}")
                continue
            self.log.info(f"Found {len(entries)} SSH log entries in {path}")
            for login, when in entries:
                logins.append(login)
                login_times.append(when)

        active = self.collect_active_sessions(now)

        if not logins:
            if active:
                self.log.info(f"No SSH log entries found, returning {len(active)} active sessions")
            return SSHLogins(logins=active)

        self._enrich(logins, login_times, active, now)
        self.log.info(f"Total SSH log entries collected: {len(logins)}")
        return SSHLogins(logins=logins)

    def _parse_log_file(self, path: str, now: datetime) -> list[tuple[SSHLogin, datetime]]:
        """Parse the tail of one log file, keeping recent events only."""
        with open(path, 'r', errors='ignore') as f:
            lines = deque(f, maxlen=TAIL_LINES)

        cutoff = now - RECENT_WINDOW
        entries = []
        for line in lines:
            parsed = parse_login_line(line, now)
            if parsed and parsed[1] > cutoff:
                entries.append(parsed)
        return entries

    def _enrich(
        self,
        logins: list[SSHLogin],
        login_times: list[datetime],
        active: list[SSHLogin],
        now: datetime,
    ) -> None:
        """Mark successful logins whose user@ip still has a session."""
        active_keys = {f"{s.user}@{s.ip}" for s in active}

        for login, when in zip(logins, login_times):
            if not login.success:
                continue
            if f"{login.user}@{login.ip}" in active_keys:
                login.is_active = True
                login.session_duration = max(int((now - when).total_seconds()), 0)
            else:
                # Completed sessions would need logout events
                login.is_active = False
                login.session_duration = 0

    def collect_active_sessions(self, now: Optional[datetime] = None) -> list[SSHLogin]:
        """Currently active remote sessions from `who -u`, falling back to `w`."""
        now = now or datetime.now()
        output = self._run(["who", "-u"])
        if output is None:
            output = self._run(["w", "-h"])
            if output is None:
                return []

        sessions = []
        for line in output.splitlines():
            line = line.strip()
            if not line or line.startswith("USER"):
                continue
            session = parse_who_line(line, now)
            if session:
                self.log.debug(f"Parsed SSH session: user={session.user} ip={session.ip} time={session.time}")
                sessions.append(session)

        self.log.info(f"Found {len(sessions)} active sessions")
        return sessions

    def _run(self, command: list[str]) -> Optional[str]:
        try:
            result = subprocess.run(command, capture_output=True, text=True, timeout=10)
        except (OSError, subprocess.TimeoutExpired) as e:
            self.log.warning(f"Failed to run '{' '.join(command)}': {e}")
            return None
        if result.returncode != 0:
            self.log.warning(f"'{' '.join(command)}' exited with {result.returncode}")
            return None
        return result.stdout
