"""
taskgroup_core — compiles a pod and one resource offer into the executor
and task group descriptors the agent will run.

Public API:
    build_task_group()  — the placement compiler, returns PlacementResult or None

Usage:
    from taskgroup_core import build_task_group
    from pod_orchestrator.shared.config import PlacementConfig
    from pod_orchestrator.shared.models import InstanceId

    result = build_task_group(
        pod, offer,
        running_tasks=lambda: tracker.running_tasks(),
        new_instance_id=InstanceId.for_run_spec,
        config=PlacementConfig(),
    )
    if result is None:
        ...                          # offer declined, try the next one
    else:
        launch(result.executor, result.task_group)
"""

from taskgroup_core.builder import build_task_group

__all__ = ["build_task_group"]
