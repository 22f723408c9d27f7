"""
taskgroup_core/builder.py
──────────────────────────
The placement compiler: (pod, offer) → executor + task group + host ports.

It is called once per scheduling attempt, per offer, per pending pod. It
either returns a complete PlacementResult or None. None is not an error: the
offer simply cannot host the pod and the caller waits for the next offer.

How build_task_group works
───────────────────────────
1. Roles. The pod's accepted_resource_roles, or the configured default
   role set when the pod names none.

2. Match. The resource matcher is called exactly once with the offer, the
   pod, the lazy running-tasks callable and a ResourceSelector for the
   roles. None → return None.

3. Identity. new_instance_id(pod.id) is called once. The executor id and
   every task id derive from it.

4. Endpoints. pod.indexed_endpoints() gives every endpoint with the index
   the matcher keyed its host ports by. From here on the host port of an
   endpoint is always looked up by that index.

5. Compile.
     compute_port_mappings()   → PortMapping per resolved endpoint
     compute_executor_info()   → ExecutorInfo (baseline + port resources,
                                 container networks carrying the mappings)
     port_env_vars()           → PORT* variables, shared by all tasks
     compute_task_info()       → one TaskInfo per container, in order

6. Assemble PlacementResult(executor, task_group, host_ports).

Every step is a pure function of its inputs. Nothing is cached between
calls, so concurrent calls for different (pod, offer) pairs need no locking.

Error handling contract
────────────────────────
  No match:           returns None, logged at DEBUG only.
  Malformed pods:     tolerated deterministically (unknown volume mounts
                      dropped, first health check kind wins, unresolved
                      check endpoint → check without port). Use
                      pod_orchestrator.control_plane.validate_pod() upstream
                      to reject them instead.
"""

from __future__ import annotations

import logging
from typing import Optional, Set

from pod_orchestrator.matching import OfferResourceMatcher, ResourceMatcher, ResourceSelector
from pod_orchestrator.shared.config import PlacementConfig
from pod_orchestrator.shared.models import (
    InstanceIdFactory,
    Offer,
    PlacementResult,
    PodDefinition,
    ResourceMatch,
    RunningTasksThunk,
    TaskGroupInfo,
)
from taskgroup_core.environment import port_env_vars
from taskgroup_core.executor import compute_executor_info
from taskgroup_core.port_mappings import compute_port_mappings
from taskgroup_core.task import compute_task_info

logger = logging.getLogger(__name__)


def accepted_resource_roles(pod: PodDefinition, config: PlacementConfig) -> Set[str]:
    if pod.accepted_resource_roles:
        return set(pod.accepted_resource_roles)
    return config.default_accepted_resource_roles_set


def build_task_group(
    pod: PodDefinition,
    offer: Offer,
    running_tasks: RunningTasksThunk,
    new_instance_id: InstanceIdFactory,
    config: PlacementConfig,
    matcher: Optional[ResourceMatcher] = None,
) -> Optional[PlacementResult]:
    """
    Compile a pod against one offer.

    Args:
        pod:             The pod to place. Only read.
        offer:           The offer to place it on. Only read.
        running_tasks:   Zero-argument callable returning the cluster's running
                         tasks. Passed through to the matcher, which calls it
                         only if it needs to.
        new_instance_id: Factory for the instance id, e.g. InstanceId.for_run_spec.
                         Called once, and only when the offer matches.
        config:          Process-wide placement settings.
        matcher:         Resource matcher. Defaults to OfferResourceMatcher
                         built from `config`.

    Returns:
        PlacementResult, or None if the offer cannot host the pod.
    """
    roles = accepted_resource_roles(pod, config)
    logger.debug("pod %s: accepted resource roles %s", pod.id, sorted(roles))

    if matcher is None:
        matcher = OfferResourceMatcher.from_config(config)

    resource_match = matcher.match_resources(
        offer, pod, running_tasks, ResourceSelector.any(roles),
    )
    if resource_match is None:
        logger.debug("pod %s: offer %s declined by resource matcher", pod.id, offer.offer_id)
        return None

    return _build(pod, offer, new_instance_id, config, resource_match)


def _build(
    pod: PodDefinition,
    offer: Offer,
    new_instance_id: InstanceIdFactory,
    config: PlacementConfig,
    resource_match: ResourceMatch,
) -> PlacementResult:
    instance_id = new_instance_id(pod.id)

    endpoints = pod.indexed_endpoints()
    host_ports = resource_match.host_ports_by_index

    port_mappings = compute_port_mappings(endpoints, host_ports)

    executor = compute_executor_info(
        pod, resource_match.port_resources, port_mappings, instance_id, config,
    )

    ports_env = port_env_vars(endpoints, host_ports, config.env_vars_prefix)

    task_group = TaskGroupInfo(tasks=[
        compute_task_info(container, pod, offer, instance_id, ports_env)
        for container in pod.containers
    ])

    logger.debug(
        "pod %s: built instance %s with %d task(s) on %s",
        pod.id, instance_id.id_string, len(task_group.tasks), offer.hostname,
    )

    return PlacementResult(
        executor=executor,
        task_group=task_group,
        host_ports=[resource_match.host_port_for(e.index) for e in endpoints],
    )
