"""
Diagnostics — read-only feasibility checks per mechanism.

    from nixpersist.core.services.diagnostics import HostProbe, rsyslog
    report = rsyslog.check(HostProbe(runner))
    print(report.render())
"""

from nixpersist.core.services.diagnostics import apache, docker, rsyslog
from nixpersist.core.services.diagnostics.probe import HostProbe

__all__ = ["HostProbe", "apache", "docker", "rsyslog"]
