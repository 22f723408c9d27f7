"""
taskgroup_core/command.py
──────────────────────────
Command compiler: the process descriptor of one container.

Launch command
───────────────
    ShellCommand("foo")            → shell=True,  value="foo"
    ArgvCommand(["foo", "a", "b"]) → shell=False, value="foo", arguments=[foo, a, b]
    no exec                        → nothing set (image default entrypoint)

User
─────
Container user, else pod user, else unset.

Environment
────────────
Layers applied by key, later layers win:

    1. pod env            (string values only, secret refs skipped)
    2. container env      (string values only, secret refs skipped)
    3. HOST               (the offer's hostname)
    4. task context       (MESOS_TASK_ID, MARATHON_APP_ID, ...)
    5. label variables    (of the merged pod ⊕ container labels)
    6. port variables     (computed once per pod, optionally prefixed)

Each key is emitted exactly once with the last writer's value.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pod_orchestrator.shared.models import (
    ArgvCommand,
    Artifact,
    Command,
    CommandInfo,
    CommandUri,
    EnvironmentVariable,
    EnvVar,
    EnvVarValue,
    InstanceId,
    MesosContainer,
    PodDefinition,
    ShellCommand,
)
from taskgroup_core.environment import (
    labels_to_env_vars,
    merged_labels,
    task_context_env,
)

HOST_VAR: str = "HOST"


def launch_fields(command: Optional[Command]) -> Dict[str, Any]:
    """shell / value / arguments for a CommandInfo. Shared with command health checks."""
    if isinstance(command, ShellCommand):
        return {"shell": True, "value": command.shell}
    if isinstance(command, ArgvCommand):
        return {
            "shell": False,
            "value": command.argv[0] if command.argv else None,
            "arguments": list(command.argv),
        }
    return {}


def compute_uri(artifact: Artifact) -> CommandUri:
    return CommandUri(
        value=artifact.uri,
        cache=artifact.cache,
        extract=artifact.extract,
        executable=artifact.executable,
        output_file=artifact.dest_path,
    )


def _string_values(env: Mapping[str, EnvVar]) -> Dict[str, str]:
    return {key: var.value for key, var in env.items() if isinstance(var, EnvVarValue)}


def compose_environment(
    pod: PodDefinition,
    container: MesosContainer,
    instance_id: InstanceId,
    host: str,
    ports_env: Mapping[str, str],
) -> Dict[str, str]:
    env: Dict[str, str] = {}
    env.update(_string_values(pod.env))
    env.update(_string_values(container.environment))
    env[HOST_VAR] = host
    env.update(task_context_env(pod, container, instance_id))
    env.update(labels_to_env_vars(merged_labels(pod, container)))
    env.update(ports_env)
    return env


def compute_command_info(
    pod: PodDefinition,
    instance_id: InstanceId,
    container: MesosContainer,
    host: str,
    ports_env: Mapping[str, str],
) -> CommandInfo:
    command = container.exec.command if container.exec is not None else None
    environment = compose_environment(pod, container, instance_id, host, ports_env)

    return CommandInfo(
        **launch_fields(command),
        user=container.user if container.user is not None else pod.user,
        uris=[compute_uri(artifact) for artifact in container.artifacts],
        environment=[
            EnvironmentVariable(name=name, value=value)
            for name, value in environment.items()
        ],
    )
