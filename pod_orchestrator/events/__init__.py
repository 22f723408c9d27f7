"""
pod_orchestrator/events — pod lifecycle notifications.

Public API:
    PodEvent      — one pod created / updated / deleted notification
    PodEventKind  — the three kinds, valued with their event_type label
    EventStream   — in-process fire-and-forget broadcast
"""

from pod_orchestrator.events.stream import EventStream, PodEvent, PodEventKind

__all__ = ["EventStream", "PodEvent", "PodEventKind"]
