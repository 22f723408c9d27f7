"""
pod_orchestrator/control_plane/pod_validator.py
────────────────────────────────────────────────
Pod validation: semantic checks before a pod reaches the compiler.

Pydantic already enforces the schema (types, port bounds, required fields).
This layer enforces the cross-references pydantic cannot see. The compiler
itself tolerates every one of these mistakes (it drops or ignores the
offending piece), so a pod that skips validation still compiles, just not
into what its author meant.

What it checks
───────────────
  1. Container names are unique within the pod. Tasks are named after
     their container, so duplicates make tasks indistinguishable.

  2. Endpoint names are unique within the pod. Port variables
     (PORT_<NAME>) are pod-wide.

  3. Every volume mount names a volume the pod declares.

  4. A health check declares exactly one kind of check.

  5. An HTTP/TCP health check names an endpoint of its own container, and
     that endpoint requests a fixed host port. The check port is compiled
     from the declared value, so a dynamic (0) host port cannot be checked.

What it does NOT check
───────────────────────
  • Whether any offer can ever satisfy the pod. That is the matcher's job.
  • Secret references, resolved by a plugin layer outside this package.
"""

from __future__ import annotations

from typing import List, Set

from pod_orchestrator.shared.models import MesosContainer, PodDefinition


class PodValidationError(Exception):
    """
    Raised when a pod fails validation.

    Attributes:
        reason: Human-readable explanation of why the pod was rejected.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


def validate_pod(pod: PodDefinition) -> None:
    """
    Run all semantic checks on a pod.

    Returns None on success.

    Raises:
        PodValidationError: with a descriptive reason string.
    """
    _check_unique_container_names(pod)
    _check_unique_endpoint_names(pod)
    for container in pod.containers:
        _check_volume_mounts(pod, container)
        _check_health_check(pod, container)


# ── Individual checks ─────────────────────────────────────────────────────────

def _check_unique_container_names(pod: PodDefinition) -> None:
    seen: Set[str] = set()
    for container in pod.containers:
        if container.name in seen:
            raise PodValidationError(
                f"Pod {pod.id!r} declares container {container.name!r} more than once."
            )
        seen.add(container.name)


def _check_unique_endpoint_names(pod: PodDefinition) -> None:
    seen: Set[str] = set()
    for indexed in pod.indexed_endpoints():
        name = indexed.endpoint.name
        if name in seen:
            raise PodValidationError(
                f"Pod {pod.id!r} declares endpoint {name!r} more than once "
                f"(again in container {indexed.container_name!r})."
            )
        seen.add(name)


def _check_volume_mounts(pod: PodDefinition, container: MesosContainer) -> None:
    declared = {volume.name for volume in pod.volumes}
    for mount in container.volume_mounts:
        if mount.name not in declared:
            raise PodValidationError(
                f"Container {container.name!r} of pod {pod.id!r} mounts volume "
                f"{mount.name!r}, which the pod does not declare."
            )


def _check_health_check(pod: PodDefinition, container: MesosContainer) -> None:
    health_check = container.health_check
    if health_check is None:
        return

    kinds: List[str] = [
        kind for kind, check in (
            ("command", health_check.command),
            ("http", health_check.http),
            ("tcp", health_check.tcp),
        )
        if check is not None
    ]
    if len(kinds) > 1:
        raise PodValidationError(
            f"Container {container.name!r} of pod {pod.id!r} declares "
            f"{' and '.join(kinds)} health checks. Declare exactly one."
        )

    check = health_check.http or health_check.tcp
    if check is None:
        return

    endpoint = next((e for e in container.endpoints if e.name == check.endpoint), None)
    if endpoint is None:
        raise PodValidationError(
            f"Health check of container {container.name!r} in pod {pod.id!r} "
            f"refers to unknown endpoint {check.endpoint!r}."
        )
    if endpoint.host_port is None:
        raise PodValidationError(
            f"Health check of container {container.name!r} in pod {pod.id!r} "
            f"uses endpoint {check.endpoint!r}, which requests no host port."
        )
    if endpoint.host_port == 0:
        raise PodValidationError(
            f"Health check of container {container.name!r} in pod {pod.id!r} "
            f"uses endpoint {check.endpoint!r}, which requests a dynamic host port. "
            f"Health checks need a fixed host port."
        )
