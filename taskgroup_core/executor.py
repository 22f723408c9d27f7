"""
taskgroup_core/executor.py
───────────────────────────
Executor compiler: the one executor that runs every task of a pod instance.

Resources
──────────
    cpus  = config.executor_cpus      (baseline, 0.1 by default)
    mem   = config.executor_mem       (baseline, 32 MiB by default)
    ports = every port range the match consumed

Networks
─────────
Only set when the pod declares networks. Each network in CONTAINER mode
that has a name becomes one NetworkInfo, and every such NetworkInfo carries
the full list of port mappings of the pod (mappings are not split per
network).
"""

from __future__ import annotations

from typing import List, Sequence

from pod_orchestrator.shared.config import PlacementConfig
from pod_orchestrator.shared.models import (
    ContainerInfo,
    ContainerType,
    ExecutorInfo,
    ExecutorType,
    InstanceId,
    NetworkInfo,
    NetworkMode,
    PodDefinition,
    PortMapping,
    Resource,
    to_labels,
)

EXECUTOR_ID_PREFIX: str = "marathon-"


def executor_id_for(instance_id: InstanceId) -> str:
    return EXECUTOR_ID_PREFIX + instance_id.id_string


def compute_network_infos(
    pod: PodDefinition,
    port_mappings: Sequence[PortMapping],
) -> List[NetworkInfo]:
    return [
        NetworkInfo(
            name=network.name,
            labels=to_labels(network.labels) if network.labels else None,
            port_mappings=list(port_mappings),
        )
        for network in pod.networks
        if network.name is not None and network.mode == NetworkMode.CONTAINER
    ]


def compute_executor_info(
    pod: PodDefinition,
    port_resources: Sequence[Resource],
    port_mappings: Sequence[PortMapping],
    instance_id: InstanceId,
    config: PlacementConfig,
) -> ExecutorInfo:
    container = None
    if pod.networks:
        container = ContainerInfo(
            type=ContainerType.MESOS,
            network_infos=compute_network_infos(pod, port_mappings),
        )

    return ExecutorInfo(
        executor_id=executor_id_for(instance_id),
        type=ExecutorType.DEFAULT,
        resources=[
            Resource.scalar_resource("cpus", config.executor_cpus),
            Resource.scalar_resource("mem", config.executor_mem),
            *port_resources,
        ],
        container=container,
        labels=to_labels(pod.labels),
    )
