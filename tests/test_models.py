"""Tests for the report wire format."""

import json

from zenoguard_agent.models import NetworkTrafficReport, ReportPayload, ServerDirective, SSHLoginReport
from zenoguard_agent.results import HostInfo, SSHLogin, TrafficSample, TrafficSummary


def summary():
    samples = (
        TrafficSample(timestamp=1_700_000_000.0, in_bytes=3000, out_bytes=600, total_bytes=3600, time_delta_seconds=300.0),
        TrafficSample(timestamp=1_700_000_300.0, in_bytes=1000, out_bytes=0, total_bytes=1000, time_delta_seconds=300.0),
    )
    return TrafficSummary(interface="eth0", samples=samples, avg_in_rate=6.666, avg_out_rate=1.0)


class TestNetworkTrafficReport:
    """Traffic section."""

    def test_rates_are_integers(self):
        report = NetworkTrafficReport.from_summary(summary())
        assert report.total_in_bytes == 6
        assert report.total_out_bytes == 1
        assert report.sample_count == 2

    def test_timestamps_are_utc_iso(self):
        report = NetworkTrafficReport.from_summary(summary())
        assert report.samples[0].timestamp == "2023-11-14T22:13:20+00:00"
        assert report.samples[1].in_bytes == 1000


class TestReportPayload:
    """Top-level payload encoding."""

    def test_empty_sections_omitted(self):
        payload = ReportPayload()
        payload.set_host(HostInfo(hostname="web-1", public_ip="203.0.113.7"))

        body = json.loads(payload.to_json())

        assert body == {"hostname": "web-1", "public_ip": "203.0.113.7", "ssh_logins": []}

    def test_full_payload(self):
        login = SSHLogin(user="root", ip="198.51.100.4", time="2026-01-30 10:00:00", success=True, port=22)
        payload = ReportPayload(
            hostname="web-1",
            ssh_logins=[SSHLoginReport.from_login(login)],
            network_traffic=NetworkTrafficReport.from_summary(summary()),
        )

        body = json.loads(payload.to_json())

        assert body["ssh_logins"][0] == {
            "user": "root",
            "ip": "198.51.100.4",
            "time": "2026-01-30 10:00:00",
            "method": "password",
            "success": True,
            "port": 22,
            "protocol": "ssh2",
            "session_duration": 0,
            "is_active": False,
        }
        assert body["network_traffic"]["interface"] == "eth0"
        assert len(body["network_traffic"]["samples"]) == 2
        assert "system_load" not in body


class TestServerDirective:
    """Server answer."""

    def test_defaults(self):
        directive = ServerDirective.model_validate({})
        assert directive.success is False
        assert directive.report_interval == 0

    def test_extra_fields_ignored(self):
        directive = ServerDirective.model_validate({"success": True, "report_interval": 120, "message": "ok"})
        assert directive.report_interval == 120
