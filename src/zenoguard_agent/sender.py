"""
Report Sender.

Sends reports to the ZenoGuard server and classifies the answer. Retrying is
left to the reporter, which owns the retry policy.
"""

import asyncio
import json
from typing import Optional
import aiohttp
from pydantic import ValidationError

from .context import AgentContext
from .errors import EncodingError, TransientSubmissionError, UnauthorizedError
from .models import ReportPayload, ServerDirective

REPORT_ENDPOINT = "/api/agent/report"


def normalize_server_url(server_url: str) -> str:
    """Strip a trailing slash and a trailing ``/api``."""
    url = server_url.rstrip('/')
    if url.endswith('/api'):
        url = url[:-len('/api')]
    return url


class ReportSender:
    """
    Sends reports to the server.

    Features:
    - Async HTTP client with connection pooling
    - Bearer token authentication
    - Per-request timeout
    - Response classification: accepted, unauthorized, transient
    """

    def __init__(self, context: AgentContext):
        """Initialize the sender."""
        config = context.config
        self.server_url = normalize_server_url(config.server_url)
        self.token = config.token
        self.timeout = config.request_timeout
        self.user_agent = context.user_agent
        self.log = context.get_logger("sender")

        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def report_url(self) -> str:
        return f"{self.server_url}{REPORT_ENDPOINT}"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def _get_headers(self) -> dict:
        """Get request headers."""
        return {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.token}',
            'User-Agent': self.user_agent,
        }

    async def _post(self, body: str) -> tuple[int, str]:
        """POST a body to the report endpoint, returning status and text."""
        try:
            session = await self._get_session()
            async with session.post(self.report_url, data=body, headers=self._get_headers()) as response:
                return response.status, await response.text()
        except asyncio.TimeoutError as e:
            raise TransientSubmissionError("Request timeout") from e
        except aiohttp.ClientError as e:
            raise TransientSubmissionError(f"failed to send request: {e}") from e

    async def submit(self, payload: ReportPayload) -> ServerDirective:
        """
        Send one report.

        Raises UnauthorizedError on 401, TransientSubmissionError on any other
        failure (EncodingError when a 200 answer cannot be parsed).
        """
        self.log.info(f"Reporting to server: {self.server_url}")
        self.log.info(f"Sending {len(payload.ssh_logins)} SSH log entries")

        status, text = await self._post(payload.to_json())
        self.log.debug(f"Response status: {status}")

        if status == 401:
            raise UnauthorizedError("unauthorized: invalid token")

        if status != 200:
            raise TransientSubmissionError(
                f"server returned error: {status} - {text[:500]}",
                status_code=status,
            )

        try:
            directive = ServerDirective.model_validate(json.loads(text))
        except (ValueError, ValidationError) as e:
            raise EncodingError(f"failed to parse response: {e}", status_code=status) from e

        self.log.info(f"Report successful. Server interval: {directive.report_interval} seconds")
        return directive

    async def test_connection(self) -> int:
        """
        Check that the server is reachable.

        An empty report is rejected by the server, so 400/401/422 prove the
        endpoint answers just as well as 200. Returns the status code.
        """
        self.log.info(f"Testing connection to server: {self.server_url}")
        status, _ = await self._post("{}")

        if status in (200, 400, 401, 422):
            self.log.info("Connection test successful (server is reachable)")
            return status

        raise TransientSubmissionError(f"unexpected status code: {status}", status_code=status)

    async def close(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
