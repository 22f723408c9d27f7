"""
taskgroup_core/port_mappings.py
────────────────────────────────
Port mapping resolver: declared endpoints × resolved host ports → PortMapping.

The resource match assigns host ports by endpoint index. This module swaps
dynamic container ports (None or 0) for the host port they were given:

    endpoint container_port  assigned host port  →  PortMapping
    ───────────────────────  ──────────────────     ──────────────────────
    None / 0                 31001                  31001 → 31001
    80                       8080                   8080  → 80
    anything                 None                   (dropped)

The protocol field is left unset. Endpoints may declare several protocols
and the executor protocol takes one per mapping; until that is reconciled
the executor applies its default.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

from pod_orchestrator.shared.models import IndexedEndpoint, PortMapping


def compute_port_mappings(
    endpoints: Sequence[IndexedEndpoint],
    host_ports: Mapping[int, Optional[int]],
) -> List[PortMapping]:
    """
    One PortMapping per endpoint that received a host port, in endpoint order.

    Args:
        endpoints:  PodDefinition.indexed_endpoints().
        host_ports: ResourceMatch.host_ports_by_index.
    """
    mappings: List[PortMapping] = []
    for indexed in endpoints:
        host_port = host_ports.get(indexed.index)
        if host_port is None:
            continue
        container_port = indexed.endpoint.container_port or host_port
        mappings.append(PortMapping(host_port=host_port, container_port=container_port))
    return mappings
