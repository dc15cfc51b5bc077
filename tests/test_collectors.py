"""Tests for the system load and host info collectors."""

from unittest.mock import patch

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from zenoguard_agent.collectors import Collector, HostInfoCollector, SSHCollector, SystemCollector
from zenoguard_agent.collectors.hostinfo import get_os_name
from zenoguard_agent.errors import CollectionError
from zenoguard_agent.results import HostInfo, SystemLoad


@pytest.fixture
async def ip_server():
    async def good(request):
        return web.Response(text="203.0.113.7\n")

    async def garbage(request):
        return web.Response(text="<html>rate limited</html>")

    async def broken(request):
        return web.Response(status=500)

    app = web.Application()
    app.router.add_get("/good", good)
    app.router.add_get("/garbage", garbage)
    app.router.add_get("/broken", broken)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


class TestProtocol:
    """Built-in collectors satisfy the collector contract."""

    def test_runtime_checkable(self, context):
        for collector in (SystemCollector(context), HostInfoCollector(context), SSHCollector(context)):
            assert isinstance(collector, Collector)

    def test_component_loggers(self, context):
        assert SystemCollector(context).log.name == "zenoguard_agent.collector.system"
        assert SystemCollector().log.name == "zenoguard_agent.collector.system"


class TestSystemCollector:
    """Load averages."""

    async def test_load_averages(self, context):
        with patch("psutil.getloadavg", return_value=(0.5, 0.25, 0.1)):
            result = await SystemCollector(context).collect()
        assert result == SystemLoad(load1=0.5, load5=0.25, load15=0.1)

    async def test_failure_is_collection_error(self, context):
        with patch("psutil.getloadavg", side_effect=OSError("unsupported")):
            with pytest.raises(CollectionError) as exc_info:
                await SystemCollector(context).collect()
        assert exc_info.value.collector == "system"


class TestHostInfoCollector:
    """Hostname and public address."""

    async def test_first_valid_service_wins(self, context, ip_server):
        services = [
            str(ip_server.make_url("/broken")),
            str(ip_server.make_url("/garbage")),
            str(ip_server.make_url("/good")),
        ]
        collector = HostInfoCollector(context, services=services, timeout=2)
        assert await collector.get_public_ip() == "203.0.113.7"

    async def test_all_services_fail(self, context, ip_server):
        services = [str(ip_server.make_url("/broken")), "http://127.0.0.1:1/"]
        collector = HostInfoCollector(context, services=services, timeout=2)
        assert await collector.get_public_ip() == ""

    async def test_hostname_override(self, context, ip_server):
        context.config.hostname = "edge-07"
        collector = HostInfoCollector(context, services=[str(ip_server.make_url("/good"))], timeout=2)

        result = await collector.collect()

        assert isinstance(result, HostInfo)
        assert result.hostname == "edge-07"
        assert result.public_ip == "203.0.113.7"
        assert result.uptime >= 0

    async def test_system_hostname(self, context):
        collector = HostInfoCollector(context, services=[])
        with patch("socket.gethostname", return_value="web-1"):
            result = await collector.collect()
        assert result.hostname == "web-1"
        assert result.public_ip == ""

    def test_os_name_from_os_release(self, tmp_path):
        os_release = tmp_path / "os-release"
        os_release.write_text('NAME="Ubuntu"\nPRETTY_NAME="Ubuntu 24.04 LTS"\n')
        assert get_os_name(str(os_release)) == "Ubuntu 24.04 LTS"

    def test_os_name_fallback(self, tmp_path):
        assert get_os_name(str(tmp_path / "missing"))
