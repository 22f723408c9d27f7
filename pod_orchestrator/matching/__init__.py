"""
pod_orchestrator/matching — offer ↔ pod resource matching.

Public API:
    ResourceMatcher       — protocol the pod compiler consumes
    ResourceSelector      — role filter over offered resources
    OfferResourceMatcher  — reference first-fit implementation

Usage:
    from pod_orchestrator.matching import OfferResourceMatcher, ResourceSelector

    matcher = OfferResourceMatcher.from_config(config)
    match = matcher.match_resources(offer, pod, lambda: [], ResourceSelector.any({"*"}))
    if match is None:
        ...                          # offer declined, wait for the next one
"""

from pod_orchestrator.matching.resource_matcher import (
    OfferResourceMatcher,
    ResourceMatcher,
    ResourceSelector,
)

__all__ = ["OfferResourceMatcher", "ResourceMatcher", "ResourceSelector"]
