"""Wire models for the report endpoint."""

from typing import Optional
from pydantic import BaseModel, Field

from .results import HostInfo, SSHLogin, SystemLoad, TrafficSummary


class SSHLoginReport(BaseModel):
    user: str
    ip: str
    time: str = ""
    method: str = ""
    success: bool = False
    port: int = 0
    protocol: str = "ssh2"
    session_duration: int = 0
    is_active: bool = False

    @classmethod
    def from_login(cls, login: SSHLogin) -> "SSHLoginReport":
        return cls(
            user=login.user,
            ip=login.ip,
            time=login.time,
            method=login.method,
            success=login.success,
            port=login.port,
            protocol=login.protocol,
            session_duration=login.session_duration,
            is_active=login.is_active,
        )


class SystemLoadReport(BaseModel):
    load1: float = 0.0
    load5: float = 0.0
    load15: float = 0.0

    @classmethod
    def from_load(cls, load: SystemLoad) -> "SystemLoadReport":
        return cls(load1=load.load1, load5=load.load5, load15=load.load15)


class TrafficSampleReport(BaseModel):
    timestamp: str
    in_bytes: int
    out_bytes: int
    total_bytes: int
    time_delta_seconds: float


class NetworkTrafficReport(BaseModel):
    """
    Traffic for the public interface.

    ``total_in_bytes``/``total_out_bytes`` hold the average rate in bytes per
    second over all samples; the server keeps the historical field names.
    """
    interface: str
    samples: list[TrafficSampleReport] = Field(default_factory=list)
    total_in_bytes: int = 0
    total_out_bytes: int = 0
    sample_count: int = 0

    @classmethod
    def from_summary(cls, summary: TrafficSummary) -> "NetworkTrafficReport":
        return cls(
            interface=summary.interface,
            samples=[
                TrafficSampleReport(
                    timestamp=s.iso_timestamp,
                    in_bytes=s.in_bytes,
                    out_bytes=s.out_bytes,
                    total_bytes=s.total_bytes,
                    time_delta_seconds=s.time_delta_seconds,
                )
                for s in summary.samples
            ],
            total_in_bytes=int(summary.avg_in_rate),
            total_out_bytes=int(summary.avg_out_rate),
            sample_count=summary.sample_count,
        )


class ReportPayload(BaseModel):
    hostname: str = ""
    public_ip: str = ""
    ssh_logins: list[SSHLoginReport] = Field(default_factory=list)
    system_load: Optional[SystemLoadReport] = None
    network_traffic: Optional[NetworkTrafficReport] = None

    def set_host(self, info: HostInfo) -> None:
        self.hostname = info.hostname
        self.public_ip = info.public_ip

    def to_json(self) -> str:
        """Canonical encoding; sections with no data are left out."""
        return self.model_dump_json(exclude_none=True)


class ServerDirective(BaseModel):
    """Server answer to a report."""
    success: bool = False
    report_interval: int = 0
