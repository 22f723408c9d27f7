"""
tests/test_compilers.py
────────────────────────
Unit tests for the per-container compilers: port mappings, command,
container runtime, health check and executor.

Test groups
────────────
Group 1: Port mappings
Group 2: Command
Group 3: Container runtime
Group 4: Health check
Group 5: Executor
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pod_orchestrator.shared.config import PlacementConfig
from pod_orchestrator.shared.models import (
    ArgvCommand,
    Artifact,
    CommandHealthCheck,
    Endpoint,
    HealthCheck,
    HealthCheckType,
    HttpHealthCheck,
    Image,
    ImageKind,
    ImageType,
    InstanceId,
    Label,
    MesosContainer,
    Network,
    NetworkMode,
    PodDefinition,
    PortMapping,
    Resource,
    ShellCommand,
    TcpHealthCheck,
    Volume,
    VolumeMount,
)
from taskgroup_core.command import compute_uri, launch_fields
from taskgroup_core.container import compute_container_info, compute_image, compute_volumes
from taskgroup_core.executor import compute_executor_info, compute_network_infos, executor_id_for
from taskgroup_core.health_check import compute_health_check
from taskgroup_core.port_mappings import compute_port_mappings


def _labels(labels: Optional[List[Label]]) -> Dict[str, str]:
    return {label.key: label.value for label in labels or []}


def _pod_with_endpoints(*endpoints: Endpoint, **kwargs) -> PodDefinition:
    return PodDefinition(
        id="/svc",
        containers=[MesosContainer(name="main", endpoints=list(endpoints))],
        **kwargs,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Group 1: Port mappings
# ─────────────────────────────────────────────────────────────────────────────

class TestPortMappings:

    def test_rules(self) -> None:
        pod = _pod_with_endpoints(
            Endpoint(name="fixed", container_port=80, host_port=8080),
            Endpoint(name="dyn-none", host_port=0),
            Endpoint(name="dyn-zero", container_port=0, host_port=0),
            Endpoint(name="no-host", container_port=9000),
        )

        mappings = compute_port_mappings(
            pod.indexed_endpoints(), {0: 8080, 1: 31001, 2: 31002, 3: None},
        )

        assert mappings == [
            PortMapping(host_port=8080, container_port=80),
            PortMapping(host_port=31001, container_port=31001),
            PortMapping(host_port=31002, container_port=31002),
        ]
        assert all(m.protocol is None for m in mappings)

    def test_empty(self) -> None:
        assert compute_port_mappings([], {}) == []


# ─────────────────────────────────────────────────────────────────────────────
# Group 2: Command
# ─────────────────────────────────────────────────────────────────────────────

class TestCommand:

    def test_launch_fields(self) -> None:
        assert launch_fields(ShellCommand(shell="sleep 1")) == {"shell": True, "value": "sleep 1"}
        assert launch_fields(ArgvCommand(argv=["sleep", "1"])) == {
            "shell": False, "value": "sleep", "arguments": ["sleep", "1"],
        }
        assert launch_fields(None) == {}

    def test_empty_argv(self) -> None:
        assert launch_fields(ArgvCommand(argv=[])) == {"shell": False, "value": None, "arguments": []}

    def test_compute_uri(self) -> None:
        uri = compute_uri(Artifact(uri="s3://bucket/x", executable=True, dest_path="bin/x"))

        assert uri.value == "s3://bucket/x"
        assert uri.executable is True
        assert uri.output_file == "bin/x"
        assert uri.cache is None


# ─────────────────────────────────────────────────────────────────────────────
# Group 3: Container runtime
# ─────────────────────────────────────────────────────────────────────────────

class TestContainerRuntime:

    def test_first_volume_with_name_wins(self) -> None:
        container = MesosContainer(
            name="c", volume_mounts=[VolumeMount(name="data", mount_path="/data")],
        )
        volumes = [Volume(name="data", host="/first"), Volume(name="data", host="/second")]

        assert [v.host_path for v in compute_volumes(volumes, container)] == ["/first"]

    def test_mount_order_preserved(self) -> None:
        container = MesosContainer(name="c", volume_mounts=[
            VolumeMount(name="b", mount_path="/b"),
            VolumeMount(name="a", mount_path="/a"),
        ])

        volumes = compute_volumes([Volume(name="a"), Volume(name="b")], container)

        assert [v.container_path for v in volumes] == ["/b", "/a"]

    def test_docker_image_cache_flag(self) -> None:
        assert compute_image(Image(id="nginx")).cached is None
        assert compute_image(Image(id="nginx", force_pull=True)).cached is False
        assert compute_image(Image(id="nginx", force_pull=False)).cached is True
        assert compute_image(Image(id="nginx")).type == ImageType.DOCKER

    def test_appc_image_platform_labels(self) -> None:
        info = compute_image(Image(kind=ImageKind.APPC, id="coreos.com/etcd"))

        assert info.type == ImageType.APPC
        assert info.docker is None
        assert info.appc is not None
        assert info.appc.name == "coreos.com/etcd"
        assert _labels(info.appc.labels) == {"os": "linux", "arch": "amd64"}

    def test_container_info_without_image_or_volumes(self) -> None:
        info = compute_container_info([], MesosContainer(name="c"))

        assert info.image is None
        assert info.volumes == []
        assert info.network_infos == []


# ─────────────────────────────────────────────────────────────────────────────
# Group 4: Health check
# ─────────────────────────────────────────────────────────────────────────────

class TestHealthCheck:

    def test_command_wins_over_http(self) -> None:
        """Several kinds declared: command → http → tcp, first one wins."""
        check = HealthCheck(
            command=CommandHealthCheck(command=ArgvCommand(argv=["curl", "-f", "localhost"])),
            http=HttpHealthCheck(endpoint="web"),
        )

        info = compute_health_check(check, [Endpoint(name="web", host_port=31000)])

        assert info.type == HealthCheckType.COMMAND
        assert info.http is None
        assert info.command is not None
        assert info.command.shell is False
        assert info.command.arguments == ["curl", "-f", "localhost"]

    def test_http_wins_over_tcp(self) -> None:
        check = HealthCheck(http=HttpHealthCheck(endpoint="web"), tcp=TcpHealthCheck(endpoint="web"))

        info = compute_health_check(check, [Endpoint(name="web", host_port=31000)])

        assert info.type == HealthCheckType.HTTP
        assert info.tcp is None

    def test_port_is_declared_host_port(self) -> None:
        check = HealthCheck(tcp=TcpHealthCheck(endpoint="db"))

        info = compute_health_check(check, [Endpoint(name="db", container_port=5432, host_port=15432)])

        assert info.tcp is not None and info.tcp.port == 15432

    def test_endpoint_of_other_container_not_visible(self) -> None:
        check = HealthCheck(http=HttpHealthCheck(endpoint="web"))

        info = compute_health_check(check, [])

        assert info.type == HealthCheckType.HTTP
        assert info.http is not None and info.http.port is None

    def test_unvalidated_empty_check_compiles_without_port(self) -> None:
        """A check built without validation still compiles instead of raising."""
        info = compute_health_check(HealthCheck.model_construct(), [Endpoint(name="web", host_port=1)])

        assert info.type == HealthCheckType.TCP
        assert info.tcp is not None and info.tcp.port is None


# ─────────────────────────────────────────────────────────────────────────────
# Group 5: Executor
# ─────────────────────────────────────────────────────────────────────────────

class TestExecutor:

    def test_executor_id(self) -> None:
        instance = InstanceId(run_spec_id="/a/b/c", uuid="u1")

        assert executor_id_for(instance) == "marathon-a_b_c.instance-u1"

    def test_bridge_and_unnamed_networks_skipped(self) -> None:
        pod = _pod_with_endpoints(networks=[
            Network(name="bridge", mode=NetworkMode.CONTAINER_BRIDGE),
            Network(),
            Network(name="overlay"),
        ])

        infos = compute_network_infos(pod, [PortMapping(host_port=1, container_port=2)])

        assert [n.name for n in infos] == ["overlay"]
        assert infos[0].port_mappings == [PortMapping(host_port=1, container_port=2)]

    def test_networks_declared_but_none_qualify(self) -> None:
        """A container is still attached, with an empty network list."""
        pod = _pod_with_endpoints(networks=[Network(mode=NetworkMode.HOST)])

        executor = compute_executor_info(
            pod, [], [], InstanceId(run_spec_id="/svc", uuid="u"), PlacementConfig(),
        )

        assert executor.container is not None
        assert executor.container.network_infos == []

    def test_resources_and_labels(self) -> None:
        pod = _pod_with_endpoints(labels={"owner": "ops"})
        ports = [Resource.ranges_resource("ports", [(31000, 31002)], role="prod")]

        executor = compute_executor_info(
            pod, ports, [], InstanceId(run_spec_id="/svc", uuid="u"),
            PlacementConfig(executor_cpus=0.25, executor_mem=48.0),
        )

        assert [(r.name, r.scalar) for r in executor.resources[:2]] == [("cpus", 0.25), ("mem", 48.0)]
        assert executor.resources[2] == ports[0]
        assert _labels(executor.labels) == {"owner": "ops"}
        assert executor.container is None
