"""
pod_orchestrator/matching/resource_matcher.py
──────────────────────────────────────────────
Resource matching: can this one offer host this pod, and with what?

The pod compiler does not know how matching works. It calls a
ResourceMatcher once per offer and either gets None (offer declined) or a
ResourceMatch describing exactly what was carved out of the offer.

The contract
─────────────
    match_resources(offer, pod, running_tasks, selector) -> Optional[ResourceMatch]

  offer          — the offer to match against.
  pod            — the pod to place.
  running_tasks  — zero-argument callable returning the running tasks of the
                   cluster. Matchers call it only when they actually need the
                   tasks (constraint evaluation), and at most once per call.
  selector       — which offered resources may be used (role filter).

Port ordering
──────────────
Host ports in the result are keyed by IndexedEndpoint.index, i.e. by the
order PodDefinition.indexed_endpoints() produces: container declaration
order, then endpoint declaration order within each container. The compiler
reads them back by the same key. Any matcher implementation MUST obtain the
endpoint order from indexed_endpoints().

OfferResourceMatcher
─────────────────────
The reference implementation. First fit, in this order:

  1. Constraints  — hostname/attribute UNIQUE, CLUSTER, LIKE, UNLIKE.
                    Running tasks are materialised only for UNIQUE/CLUSTER.
  2. Scalars      — pod totals + executor baseline against the sum of
                    role-accepted offer scalars (cpus, mem, disk, gpus).
  3. Ports        — fixed host ports first (must lie in an accepted range),
                    then dynamic ones (host_port=0): lowest free port, or a
                    uniformly random free port when an rng is supplied.

Any failure → None. Nothing is partially matched.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol, Set, Tuple

import numpy as np

from pod_orchestrator.shared.config import (
    DEFAULT_EXECUTOR_CPUS,
    DEFAULT_EXECUTOR_MEM,
    PlacementConfig,
)
from pod_orchestrator.shared.models import (
    Constraint,
    ConstraintOperator,
    Offer,
    PodDefinition,
    Resource,
    ResourceMatch,
    RunningTask,
    RunningTasksThunk,
)

logger = logging.getLogger(__name__)

SCALAR_EPSILON: float = 1e-6
"""Tolerance when comparing requested against offered scalar amounts."""

PORTS_RESOURCE: str = "ports"

HOSTNAME_FIELD: str = "hostname"


@dataclass(frozen=True)
class ResourceSelector:
    """Accepts offered resources whose role is one of `accepted_roles`."""

    accepted_roles: FrozenSet[str]

    @classmethod
    def any(cls, roles: Iterable[str]) -> "ResourceSelector":
        return cls(accepted_roles=frozenset(roles))

    def accepts(self, resource: Resource) -> bool:
        return resource.role in self.accepted_roles


class ResourceMatcher(Protocol):
    def match_resources(
        self,
        offer: Offer,
        pod: PodDefinition,
        running_tasks: RunningTasksThunk,
        selector: ResourceSelector,
    ) -> Optional[ResourceMatch]:
        ...


class OfferResourceMatcher:
    """
    First-fit matcher over a single offer.

    Args:
        executor_cpus: CPU the executor itself needs on top of the containers.
        executor_mem:  Memory the executor itself needs on top of the containers.
        rng:           Optional numpy Generator. When given, dynamic host ports
                       are drawn uniformly from the free ports; otherwise the
                       lowest free port is taken (fully deterministic).
    """

    def __init__(
        self,
        executor_cpus: float = DEFAULT_EXECUTOR_CPUS,
        executor_mem: float = DEFAULT_EXECUTOR_MEM,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self._executor_cpus = executor_cpus
        self._executor_mem = executor_mem
        self._rng = rng

    @classmethod
    def from_config(
        cls,
        config: PlacementConfig,
        rng: Optional[np.random.Generator] = None,
    ) -> "OfferResourceMatcher":
        return cls(config.executor_cpus, config.executor_mem, rng=rng)

    def match_resources(
        self,
        offer: Offer,
        pod: PodDefinition,
        running_tasks: RunningTasksThunk,
        selector: ResourceSelector,
    ) -> Optional[ResourceMatch]:
        if not self._constraints_met(offer, pod, running_tasks):
            return None

        scalar_resources = self._match_scalars(offer, pod, selector)
        if scalar_resources is None:
            return None

        ports = self._match_ports(offer, pod, selector)
        if ports is None:
            return None
        host_ports_by_index, port_resources = ports

        return ResourceMatch(
            host_ports_by_index=host_ports_by_index,
            scalar_resources=scalar_resources,
            port_resources=port_resources,
        )

    # ── Constraints ───────────────────────────────────────────────────────────

    def _constraints_met(
        self,
        offer: Offer,
        pod: PodDefinition,
        running_tasks: RunningTasksThunk,
    ) -> bool:
        siblings: Optional[List[RunningTask]] = None

        for constraint in pod.constraints:
            offered = _offer_field(offer, constraint.field)

            if constraint.operator in (ConstraintOperator.UNIQUE, ConstraintOperator.CLUSTER):
                if siblings is None:
                    siblings = [task for task in running_tasks() if task.pod_id == pod.id]
                used = {_task_field(task, constraint.field) for task in siblings}
                met = _grouping_met(constraint, offered, used)
            else:
                met = _pattern_met(constraint, offered)

            if not met:
                logger.debug(
                    "offer %s declined for pod %s: constraint %s %s %s not met by %r",
                    offer.offer_id, pod.id, constraint.field,
                    constraint.operator.value, constraint.value, offered,
                )
                return False
        return True

    # ── Scalars ───────────────────────────────────────────────────────────────

    def _match_scalars(
        self,
        offer: Offer,
        pod: PodDefinition,
        selector: ResourceSelector,
    ) -> Optional[List[Resource]]:
        totals = pod.resources
        wanted: List[Tuple[str, float]] = [
            ("cpus", totals.cpus + self._executor_cpus),
            ("mem", totals.mem + self._executor_mem),
            ("disk", totals.disk),
            ("gpus", float(totals.gpus)),
        ]

        consumed: List[Resource] = []
        for name, amount in wanted:
            if amount <= 0.0:
                continue
            remaining = amount
            for resource in offer.resources:
                if resource.name != name or resource.scalar is None:
                    continue
                if not selector.accepts(resource) or resource.scalar <= 0.0:
                    continue
                taken = min(resource.scalar, remaining)
                consumed.append(Resource.scalar_resource(name, taken, role=resource.role))
                remaining -= taken
                if remaining <= SCALAR_EPSILON:
                    break
            if remaining > SCALAR_EPSILON:
                logger.debug(
                    "offer %s declined for pod %s: %s short by %.3f (roles %s)",
                    offer.offer_id, pod.id, name, remaining,
                    sorted(selector.accepted_roles),
                )
                return None
        return consumed

    # ── Ports ─────────────────────────────────────────────────────────────────

    def _match_ports(
        self,
        offer: Offer,
        pod: PodDefinition,
        selector: ResourceSelector,
    ) -> Optional[Tuple[Dict[int, Optional[int]], List[Resource]]]:
        ranges: List[Tuple[int, int, str]] = [
            (begin, end, resource.role)
            for resource in offer.resources
            if resource.name == PORTS_RESOURCE and resource.ranges and selector.accepts(resource)
            for begin, end in resource.ranges
        ]

        endpoints = pod.indexed_endpoints()
        assigned: Dict[int, Optional[int]] = {e.index: None for e in endpoints}
        used: Set[int] = set()

        # Fixed ports first so a dynamic pick cannot take a port someone pinned.
        for indexed in endpoints:
            port = indexed.endpoint.host_port
            if not port:
                continue
            if port in used or _role_of(port, ranges) is None:
                logger.debug(
                    "offer %s declined for pod %s: host port %d of endpoint %r unavailable",
                    offer.offer_id, pod.id, port, indexed.endpoint.name,
                )
                return None
            assigned[indexed.index] = port
            used.add(port)

        for indexed in endpoints:
            if indexed.endpoint.host_port != 0:
                continue
            port = self._pick_dynamic_port(ranges, used)
            if port is None:
                logger.debug(
                    "offer %s declined for pod %s: no free port for endpoint %r",
                    offer.offer_id, pod.id, indexed.endpoint.name,
                )
                return None
            assigned[indexed.index] = port
            used.add(port)

        return assigned, _port_resources(used, ranges)

    def _pick_dynamic_port(
        self,
        ranges: List[Tuple[int, int, str]],
        used: Set[int],
    ) -> Optional[int]:
        if not ranges:
            return None
        candidates = np.unique(np.concatenate([
            np.arange(begin, end + 1, dtype=np.int64) for begin, end, _ in ranges
        ]))
        if used:
            candidates = np.setdiff1d(
                candidates, np.fromiter(used, dtype=np.int64), assume_unique=True,
            )
        if candidates.size == 0:
            return None
        if self._rng is None:
            return int(candidates[0])
        return int(self._rng.choice(candidates))


# ── Helpers ───────────────────────────────────────────────────────────────────

def _offer_field(offer: Offer, field: str) -> Optional[str]:
    if field == HOSTNAME_FIELD:
        return offer.hostname
    return offer.attributes.get(field)


def _task_field(task: RunningTask, field: str) -> Optional[str]:
    if field == HOSTNAME_FIELD:
        return task.hostname
    return task.attributes.get(field)


def _grouping_met(constraint: Constraint, offered: Optional[str], used: Set[Optional[str]]) -> bool:
    if offered is None:
        return False
    if constraint.operator == ConstraintOperator.UNIQUE:
        return offered not in used
    # CLUSTER: pinned to an explicit value, or to wherever siblings already run.
    if constraint.value:
        return offered == constraint.value
    return not used or used == {offered}


def _pattern_met(constraint: Constraint, offered: Optional[str]) -> bool:
    pattern = constraint.value or ""
    if constraint.operator == ConstraintOperator.LIKE:
        return offered is not None and re.fullmatch(pattern, offered) is not None
    return offered is None or re.fullmatch(pattern, offered) is None


def _role_of(port: int, ranges: List[Tuple[int, int, str]]) -> Optional[str]:
    for begin, end, role in ranges:
        if begin <= port <= end:
            return role
    return None


def _port_resources(ports: Set[int], ranges: List[Tuple[int, int, str]]) -> List[Resource]:
    """Collapse consumed ports into contiguous `ports` ranges, one resource per role."""
    by_role: Dict[str, List[int]] = {}
    for _, _, role in ranges:
        by_role.setdefault(role, [])
    for port in ports:
        role = _role_of(port, ranges)
        if role is not None:
            by_role[role].append(port)

    resources: List[Resource] = []
    for role, role_ports in by_role.items():
        if not role_ports:
            continue
        collapsed: List[Tuple[int, int]] = []
        for port in sorted(role_ports):
            if collapsed and collapsed[-1][1] == port - 1:
                collapsed[-1] = (collapsed[-1][0], port)
            else:
                collapsed.append((port, port))
        resources.append(Resource.ranges_resource(PORTS_RESOURCE, collapsed, role=role))
    return resources
