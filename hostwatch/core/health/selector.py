"""Probe strategy selection."""

from .models import MonitoredApplication
from .probes import HttpProbe, Probe, RuntimeStateProbe, TcpProbe


class ProbeSelector:
    """Pick one probe per check: HTTP URL, then TCP target, then runtime state."""

    def __init__(
        self,
        http_probe: HttpProbe,
        tcp_probe: TcpProbe,
        runtime_probe: RuntimeStateProbe,
    ):
        self.http_probe = http_probe
        self.tcp_probe = tcp_probe
        self.runtime_probe = runtime_probe

    def select(self, application: MonitoredApplication) -> Probe:
        if application.health_check_url:
            return self.http_probe
        if application.tcp_target is not None:
            return self.tcp_probe
        return self.runtime_probe
