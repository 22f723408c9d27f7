"""
taskgroup_core/environment.py
──────────────────────────────
Environment composer: the synthetic variables every task sees.

Three families, all pure functions of their inputs:

  labels_to_env_vars(labels)
      MARATHON_APP_LABELS = "A B"        (upper-cased keys, input order)
      MARATHON_APP_LABEL_A = <value of a>
      ...

  ports_env(declared_ports, host_ports, port_names)
      PORT<n>          → host port at index n      (always, when resolved)
      PORT_<declared>  → host port                 (if a container port was declared)
      PORT_<NAME>      → host port                 (if the endpoint is named)
      PORT / PORTS     → first resolved port / all resolved ports comma-joined

  task_context_env(pod, container, instance_id)
      MESOS_TASK_ID, MARATHON_APP_ID, MARATHON_APP_VERSION,
      MARATHON_CONTAINER_ID, MARATHON_CONTAINER_RESOURCE_{CPUS,MEM,DISK,GPUS}

Label and port variables are computed once per pod (ports) or once per
container (labels) and layered into each task's environment by
taskgroup_core.command.compose_environment().
"""

from __future__ import annotations

import re
from typing import Dict, Mapping, Optional, Sequence

from pod_orchestrator.shared.models import (
    IndexedEndpoint,
    InstanceId,
    MesosContainer,
    PodDefinition,
    format_timestamp,
)

LABELS_VAR: str = "MARATHON_APP_LABELS"
LABEL_VAR_PREFIX: str = "MARATHON_APP_LABEL_"

MAX_ENV_VAR_LENGTH: int = 512
"""Labels whose key or value is at least this long are not exported."""

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]+")


def env_var_name(key: str) -> str:
    """Upper-case `key`, replacing each run of invalid characters with `_`."""
    return _INVALID_NAME_CHARS.sub("_", key).upper()


def merged_labels(pod: PodDefinition, container: MesosContainer) -> Dict[str, str]:
    """Pod labels overridden per key by container labels."""
    labels = dict(pod.labels)
    labels.update(container.labels)
    return labels


def labels_to_env_vars(labels: Mapping[str, str]) -> Dict[str, str]:
    # Keys that sanitise to the same name collapse; the last label wins.
    exported: Dict[str, str] = {}
    for key, value in labels.items():
        if len(key) < MAX_ENV_VAR_LENGTH and len(value) < MAX_ENV_VAR_LENGTH:
            exported[env_var_name(key)] = value

    env = {LABELS_VAR: " ".join(exported)}
    for name, value in exported.items():
        env[LABEL_VAR_PREFIX + name] = value
    return env


def ports_env(
    declared_ports: Sequence[Optional[int]],
    host_ports: Sequence[Optional[int]],
    port_names: Sequence[Optional[str]],
) -> Dict[str, str]:
    """
    Port variables for one pod instance.

    The three sequences are aligned by endpoint index. A declared port of
    None or 0 (dynamic) produces no PORT_<declared> key; an index whose host
    port did not resolve produces no keys at all.

    Raises:
        ValueError: if the sequences differ in length.
    """
    if not len(declared_ports) == len(host_ports) == len(port_names):
        raise ValueError(
            f"ports_env inputs must align: {len(declared_ports)} declared, "
            f"{len(host_ports)} host, {len(port_names)} names"
        )

    env: Dict[str, str] = {}
    resolved = []
    for index, (declared, host_port, name) in enumerate(zip(declared_ports, host_ports, port_names)):
        if host_port is None:
            continue
        value = str(host_port)
        resolved.append(value)
        env[f"PORT{index}"] = value
        if declared:
            env[f"PORT_{declared}"] = value
        if name:
            env[f"PORT_{name.upper()}"] = value

    if resolved:
        env["PORT"] = resolved[0]
        env["PORTS"] = ",".join(resolved)
    return env


def port_env_vars(
    endpoints: Sequence[IndexedEndpoint],
    host_ports: Mapping[int, Optional[int]],
    prefix: Optional[str] = None,
) -> Dict[str, str]:
    """ports_env() over indexed endpoints, every key prefixed with `prefix`."""
    env = ports_env(
        [e.endpoint.container_port for e in endpoints],
        [host_ports.get(e.index) for e in endpoints],
        [e.endpoint.name for e in endpoints],
    )
    if prefix:
        return {prefix + key: value for key, value in env.items()}
    return env


def task_context_env(
    pod: PodDefinition,
    container: MesosContainer,
    instance_id: InstanceId,
) -> Dict[str, str]:
    resources = container.resources
    return {
        "MESOS_TASK_ID": instance_id.id_string,
        "MARATHON_APP_ID": pod.id,
        "MARATHON_APP_VERSION": format_timestamp(pod.version),
        "MARATHON_CONTAINER_ID": container.name,
        "MARATHON_CONTAINER_RESOURCE_CPUS": str(resources.cpus),
        "MARATHON_CONTAINER_RESOURCE_MEM": str(resources.mem),
        "MARATHON_CONTAINER_RESOURCE_DISK": str(resources.disk),
        "MARATHON_CONTAINER_RESOURCE_GPUS": str(resources.gpus),
    }
