"""
taskgroup_core/task.py
───────────────────────
Task compiler: one TaskInfo per container of the pod.
"""

from __future__ import annotations

from typing import Mapping

from pod_orchestrator.shared.models import (
    InstanceId,
    MesosContainer,
    Offer,
    PodDefinition,
    Resource,
    TaskInfo,
    to_labels,
)
from taskgroup_core.command import compute_command_info
from taskgroup_core.container import compute_container_info
from taskgroup_core.environment import merged_labels
from taskgroup_core.health_check import compute_health_check


def compute_task_info(
    container: MesosContainer,
    pod: PodDefinition,
    offer: Offer,
    instance_id: InstanceId,
    ports_env: Mapping[str, str],
) -> TaskInfo:
    """
    Compile one container.

    All tasks of an instance share the instance id as task id; the container
    name tells them apart.
    """
    resources = container.resources
    labels = merged_labels(pod, container)

    return TaskInfo(
        name=container.name,
        task_id=instance_id.id_string,
        agent_id=offer.agent_id,
        resources=[
            Resource.scalar_resource("cpus", resources.cpus),
            Resource.scalar_resource("mem", resources.mem),
            Resource.scalar_resource("disk", resources.disk),
            Resource.scalar_resource("gpus", float(resources.gpus)),
        ],
        labels=to_labels(labels) if labels else None,
        command=compute_command_info(pod, instance_id, container, offer.hostname, ports_env),
        container=compute_container_info(pod.volumes, container),
        health_check=(
            compute_health_check(container.health_check, container.endpoints)
            if container.health_check is not None else None
        ),
    )
