"""
taskgroup_core/health_check.py
───────────────────────────────
Health check compiler.

Check kinds are inspected in the order command → http → tcp and only the
first one declared is compiled. A check that declares none (only possible
when validation was bypassed) compiles as a TCP check without a port.

HTTP and TCP checks name an endpoint of their own container. The check
port is that endpoint's declared host port. An endpoint that cannot be
resolved still yields a check, just without a port; the executor then
fails the check on its first run.
"""

from __future__ import annotations

from typing import Optional, Sequence

from pod_orchestrator.shared.models import (
    CommandInfo,
    Endpoint,
    HealthCheck,
    HealthCheckInfo,
    HealthCheckType,
    HttpCheckInfo,
    TcpCheckInfo,
)
from taskgroup_core.command import launch_fields


def _check_port(endpoint_name: str, endpoints: Sequence[Endpoint]) -> Optional[int]:
    endpoint = next((e for e in endpoints if e.name == endpoint_name), None)
    if endpoint is None:
        return None
    # TODO: use the container port when the pod runs on a container network,
    # and the matched host port when host_port is 0 (dynamic).
    return endpoint.host_port


def compute_health_check(
    health_check: HealthCheck,
    endpoints: Sequence[Endpoint],
) -> HealthCheckInfo:
    """
    Args:
        health_check: The container's declared health check.
        endpoints:    The same container's endpoints.
    """
    if health_check.command is not None:
        return HealthCheckInfo(
            type=HealthCheckType.COMMAND,
            command=CommandInfo(**launch_fields(health_check.command.command)),
        )

    if health_check.http is not None:
        http = health_check.http
        return HealthCheckInfo(
            type=HealthCheckType.HTTP,
            http=HttpCheckInfo(
                port=_check_port(http.endpoint, endpoints),
                scheme=http.scheme.value if http.scheme is not None else None,
                path=http.path,
            ),
        )

    tcp = health_check.tcp
    return HealthCheckInfo(
        type=HealthCheckType.TCP,
        tcp=TcpCheckInfo(port=_check_port(tcp.endpoint, endpoints) if tcp is not None else None),
    )
