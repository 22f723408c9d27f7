"""
pod_orchestrator/shared/models.py
──────────────────────────────────
The single source of truth for every data structure the pod compiler reads
or produces.

There are three families of models:

  1. Pod models         → what the user declared (PodDefinition and friends).
  2. Offer/match models → what a node advertises and what the resource
                          matcher carved out of it for one pod.
  3. Wire descriptors   → what the executor will actually run
                          (ExecutorInfo, TaskGroupInfo, TaskInfo, ...).

Pod-side models validate input. Wire descriptors are frozen: every compiler
function builds a finished value and returns it, nothing is handed around
half-built.

Reading guide
-------------
Read top-to-bottom. Each model builds on the ones above it.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: ENUMERATIONS
# ─────────────────────────────────────────────────────────────────────────────

class NetworkMode(str, Enum):
    """
    How a pod's containers are attached to the network.

    CONTAINER        → Joined to a named virtual network. Port mappings apply.
    CONTAINER_BRIDGE → Bridged container network.
    HOST             → Shares the agent's network namespace.
    """
    CONTAINER = "container"
    CONTAINER_BRIDGE = "container/bridge"
    HOST = "host"


class ImageKind(str, Enum):
    """Image formats a container may be launched from."""
    DOCKER = "DOCKER"
    APPC = "APPC"


class HttpScheme(str, Enum):
    HTTP = "HTTP"
    HTTPS = "HTTPS"


class ConstraintOperator(str, Enum):
    """
    Placement constraint operators understood by the reference matcher.

    UNIQUE  → At most one instance of the pod per distinct field value.
    CLUSTER → Every instance lands on the same field value.
    LIKE    → Field value must fully match the regex in `value`.
    UNLIKE  → Field value must not match the regex in `value`.
    """
    UNIQUE = "UNIQUE"
    CLUSTER = "CLUSTER"
    LIKE = "LIKE"
    UNLIKE = "UNLIKE"


class VolumeMode(str, Enum):
    RW = "RW"
    RO = "RO"


class ImageType(str, Enum):
    DOCKER = "DOCKER"
    APPC = "APPC"


class ContainerType(str, Enum):
    """Only the native container runtime is supported."""
    MESOS = "MESOS"


class ExecutorType(str, Enum):
    DEFAULT = "DEFAULT"


class HealthCheckType(str, Enum):
    COMMAND = "COMMAND"
    HTTP = "HTTP"
    TCP = "TCP"


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: POD MODELS
# What the user declared. Owned by the caller, only ever read by the compiler.
# ─────────────────────────────────────────────────────────────────────────────

class Resources(BaseModel):
    """
    Scalar resources one container asks for.

    gpus is a whole-device count on the pod side; it is emitted as a
    floating scalar on the wire like every other scalar resource.
    """
    cpus: float = Field(1.0, ge=0.0, description="CPU shares")
    mem: float = Field(128.0, ge=0.0, description="Memory in MiB")
    disk: float = Field(0.0, ge=0.0, description="Disk in MiB")
    gpus: int = Field(0, ge=0, description="Number of GPU devices")


class Endpoint(BaseModel):
    """
    A named network endpoint of a container.

    Fields:
        container_port → Port inside the container. None or 0 = dynamic: the
                         container port becomes whatever host port is assigned.
        host_port      → None = no host port requested at all.
                         0    = any host port (resolved at match time).
                         >0   = that exact host port.
    """
    name: str = Field(..., min_length=1)
    container_port: Optional[int] = Field(None, ge=0, le=65535)
    host_port: Optional[int] = Field(None, ge=0, le=65535)
    protocol: List[str] = Field(default_factory=lambda: ["tcp"])
    labels: Dict[str, str] = Field(default_factory=dict)


class ShellCommand(BaseModel):
    """Run `shell` through /bin/sh -c."""
    model_config = ConfigDict(extra="forbid")

    shell: str


class ArgvCommand(BaseModel):
    """Exec `argv` directly, argv[0] is the program."""
    model_config = ConfigDict(extra="forbid")

    argv: List[str]


Command = Union[ShellCommand, ArgvCommand]


class MesosExec(BaseModel):
    command: Command


class Artifact(BaseModel):
    """
    A URI fetched into the sandbox before launch.

    Unset flags stay unset on the wire so the fetcher applies its own defaults.
    """
    uri: str = Field(..., min_length=1)
    cache: Optional[bool] = None
    extract: Optional[bool] = None
    executable: Optional[bool] = None
    dest_path: Optional[str] = None


class VolumeMount(BaseModel):
    name: str = Field(..., description="Name of a volume declared on the pod")
    mount_path: str = Field(..., min_length=1)
    read_only: Optional[bool] = Field(None, description="None behaves as False")


class Volume(BaseModel):
    name: str = Field(..., min_length=1)
    host: Optional[str] = Field(
        None,
        description="Host path backing the volume. None = ephemeral sandbox volume."
    )


class Image(BaseModel):
    kind: ImageKind = ImageKind.DOCKER
    id: str = Field(..., min_length=1)
    force_pull: Optional[bool] = None


class CommandHealthCheck(BaseModel):
    command: Command


class HttpHealthCheck(BaseModel):
    endpoint: str = Field(..., description="Name of an endpoint of the same container")
    scheme: Optional[HttpScheme] = None
    path: Optional[str] = None


class TcpHealthCheck(BaseModel):
    endpoint: str


class HealthCheck(BaseModel):
    """
    Exactly one of command / http / tcp is meant to be set.

    The compiler honours the first one present in that order; rejecting a
    check with several kinds is the validation layer's job.
    """
    command: Optional[CommandHealthCheck] = None
    http: Optional[HttpHealthCheck] = None
    tcp: Optional[TcpHealthCheck] = None

    @model_validator(mode="after")
    def declares_a_check(self) -> "HealthCheck":
        if self.command is None and self.http is None and self.tcp is None:
            raise ValueError("health check must declare one of command, http or tcp")
        return self


class EnvVarValue(BaseModel):
    value: str


class EnvVarSecretRef(BaseModel):
    """Reference to a secret. Not resolved by the compiler."""
    secret: str


EnvVar = Union[EnvVarValue, EnvVarSecretRef]


def _coerce_env(env: object) -> object:
    # Plain strings are shorthand for EnvVarValue.
    if isinstance(env, Mapping):
        return {
            key: {"value": value} if isinstance(value, str) else value
            for key, value in env.items()
        }
    return env


class MesosContainer(BaseModel):
    """
    One container of a pod. Compiles to exactly one TaskInfo.

    user, labels and environment override the pod-level values per key.
    """
    name: str = Field(..., min_length=1)
    resources: Resources = Field(default_factory=Resources)
    endpoints: List[Endpoint] = Field(default_factory=list)
    exec: Optional[MesosExec] = None
    user: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    environment: Dict[str, EnvVar] = Field(default_factory=dict)
    artifacts: List[Artifact] = Field(default_factory=list)
    volume_mounts: List[VolumeMount] = Field(default_factory=list)
    image: Optional[Image] = None
    health_check: Optional[HealthCheck] = None

    @field_validator("environment", mode="before")
    @classmethod
    def coerce_environment(cls, value: object) -> object:
        return _coerce_env(value)


class Network(BaseModel):
    name: Optional[str] = None
    mode: NetworkMode = NetworkMode.CONTAINER
    labels: Dict[str, str] = Field(default_factory=dict)


class Constraint(BaseModel):
    """
    A placement rule on the offer's hostname or one of its attributes.

    Only the reference resource matcher reads constraints.
    """
    field: str = Field(..., min_length=1, description="'hostname' or an attribute name")
    operator: ConstraintOperator
    value: Optional[str] = None


class IndexedEndpoint(BaseModel):
    """
    An endpoint tagged with its position in the pod-wide endpoint order.

    `index` is the key under which the resource matcher reports the host
    port it assigned to this endpoint.
    """
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    container_name: str
    endpoint: Endpoint


class PodDefinition(BaseModel):
    """
    A group of co-located containers that share one executor.

    Fields:
        id                      → Absolute hierarchical path, e.g. "/shop/frontend".
        accepted_resource_roles → Roles whose offered resources may be used.
                                  Empty = fall back to the configured default.
        version                 → When this definition was last changed (UTC).
        constraints             → Placement rules for the resource matcher.
    """
    id: str = Field(..., min_length=1)
    containers: List[MesosContainer] = Field(..., min_length=1)
    user: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    env: Dict[str, EnvVar] = Field(default_factory=dict)
    networks: List[Network] = Field(default_factory=list)
    volumes: List[Volume] = Field(default_factory=list)
    accepted_resource_roles: Set[str] = Field(default_factory=set)
    version: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    constraints: List[Constraint] = Field(default_factory=list)

    @field_validator("env", mode="before")
    @classmethod
    def coerce_env(cls, value: object) -> object:
        return _coerce_env(value)

    @field_validator("id")
    @classmethod
    def absolute_path(cls, value: str) -> str:
        segments = [segment for segment in value.strip().split("/") if segment]
        if not segments:
            raise ValueError(f"pod id {value!r} has no path segments")
        return "/" + "/".join(segments)

    def indexed_endpoints(self) -> List[IndexedEndpoint]:
        """
        Every endpoint of every container, in container declaration order
        then endpoint declaration order.

        The resource matcher keys its host ports by these indices and the
        compiler reads them back by the same indices. Both sides must obtain
        the ordering from this method.
        """
        indexed: List[IndexedEndpoint] = []
        for container in self.containers:
            for endpoint in container.endpoints:
                indexed.append(IndexedEndpoint(
                    index=len(indexed),
                    container_name=container.name,
                    endpoint=endpoint,
                ))
        return indexed

    @property
    def resources(self) -> Resources:
        """Sum of all container resources (executor overhead not included)."""
        return Resources(
            cpus=sum(c.resources.cpus for c in self.containers),
            mem=sum(c.resources.mem for c in self.containers),
            disk=sum(c.resources.disk for c in self.containers),
            gpus=sum(c.resources.gpus for c in self.containers),
        )


def format_timestamp(moment: datetime) -> str:
    """
    ISO-8601 UTC with millisecond precision, e.g. 2016-09-01T12:00:00.000Z.

    Naive datetimes are taken to be UTC already.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: OFFER & MATCH MODELS
# ─────────────────────────────────────────────────────────────────────────────

UNRESERVED_ROLE = "*"


class Resource(BaseModel):
    """
    A named resource, either a scalar amount or a set of integer ranges.

    Used both for what an offer advertises and for what descriptors consume.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    role: str = UNRESERVED_ROLE
    scalar: Optional[float] = Field(None, ge=0.0)
    ranges: Optional[List[Tuple[int, int]]] = None

    @model_validator(mode="after")
    def exactly_one_value(self) -> "Resource":
        if (self.scalar is None) == (self.ranges is None):
            raise ValueError(
                f"resource {self.name!r} must carry exactly one of scalar or ranges"
            )
        for begin, end in self.ranges or []:
            if begin > end:
                raise ValueError(f"resource {self.name!r} has inverted range {begin}-{end}")
        return self

    @classmethod
    def scalar_resource(cls, name: str, value: float, role: str = UNRESERVED_ROLE) -> "Resource":
        return cls(name=name, role=role, scalar=value)

    @classmethod
    def ranges_resource(
        cls, name: str, ranges: List[Tuple[int, int]], role: str = UNRESERVED_ROLE,
    ) -> "Resource":
        return cls(name=name, role=role, ranges=ranges)


class Offer(BaseModel):
    """One agent's advertisement of currently available resources."""
    offer_id: str
    agent_id: str
    hostname: str
    resources: List[Resource] = Field(default_factory=list)
    attributes: Dict[str, str] = Field(default_factory=dict)


class RunningTask(BaseModel):
    """The slice of a running task the resource matcher cares about."""
    instance_id: str
    pod_id: str
    agent_id: str
    hostname: str
    attributes: Dict[str, str] = Field(default_factory=dict)


class InstanceId(BaseModel):
    """
    Identity of one launched pod instance.

    The same id names the executor and every task of the instance.
    """
    model_config = ConfigDict(frozen=True)

    run_spec_id: str
    uuid: str = Field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def id_string(self) -> str:
        safe_path = "_".join(s for s in self.run_spec_id.split("/") if s)
        return f"{safe_path}.instance-{self.uuid}"

    @classmethod
    def for_run_spec(cls, run_spec_id: str) -> "InstanceId":
        return cls(run_spec_id=run_spec_id)

    def __str__(self) -> str:
        return self.id_string


class ResourceMatch(BaseModel):
    """
    What the resource matcher carved out of one offer for one pod.

    Fields:
        host_ports_by_index → endpoint index (see PodDefinition.indexed_endpoints)
                              → assigned host port, None when the endpoint did
                              not request a host port.
        scalar_resources    → consumed cpus/mem/disk/gpus, per role.
        port_resources      → consumed host ports as `ports` range resources.
                              Attached verbatim to the executor.
    """
    model_config = ConfigDict(frozen=True)

    host_ports_by_index: Dict[int, Optional[int]] = Field(default_factory=dict)
    scalar_resources: List[Resource] = Field(default_factory=list)
    port_resources: List[Resource] = Field(default_factory=list)

    @property
    def host_ports(self) -> List[Optional[int]]:
        """Host ports ordered by endpoint index."""
        return [self.host_ports_by_index[i] for i in sorted(self.host_ports_by_index)]

    def host_port_for(self, index: int) -> Optional[int]:
        return self.host_ports_by_index.get(index)


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: WIRE DESCRIPTORS
# Frozen values handed to the executor protocol layer.
# ─────────────────────────────────────────────────────────────────────────────

class _Descriptor(BaseModel):
    model_config = ConfigDict(frozen=True)


class Label(_Descriptor):
    key: str
    value: str


def to_labels(mapping: Mapping[str, str]) -> List[Label]:
    """Label list in the mapping's iteration order."""
    return [Label(key=key, value=value) for key, value in mapping.items()]


class EnvironmentVariable(_Descriptor):
    name: str
    value: str


class CommandUri(_Descriptor):
    value: str
    cache: Optional[bool] = None
    extract: Optional[bool] = None
    executable: Optional[bool] = None
    output_file: Optional[str] = None


class CommandInfo(_Descriptor):
    """
    The process to launch. shell/value/arguments all unset means "use the
    image's default entrypoint".
    """
    shell: Optional[bool] = None
    value: Optional[str] = None
    arguments: List[str] = Field(default_factory=list)
    user: Optional[str] = None
    uris: List[CommandUri] = Field(default_factory=list)
    environment: List[EnvironmentVariable] = Field(default_factory=list)


class VolumeInfo(_Descriptor):
    container_path: str
    host_path: Optional[str] = None
    mode: VolumeMode = VolumeMode.RW


class DockerImage(_Descriptor):
    name: str


class AppcImage(_Descriptor):
    name: str
    labels: List[Label] = Field(default_factory=list)


class ImageInfo(_Descriptor):
    type: ImageType
    docker: Optional[DockerImage] = None
    appc: Optional[AppcImage] = None
    cached: Optional[bool] = None


class PortMapping(_Descriptor):
    host_port: int
    container_port: int
    protocol: Optional[str] = None


class NetworkInfo(_Descriptor):
    name: str
    labels: Optional[List[Label]] = None
    port_mappings: List[PortMapping] = Field(default_factory=list)


class ContainerInfo(_Descriptor):
    type: ContainerType = ContainerType.MESOS
    volumes: List[VolumeInfo] = Field(default_factory=list)
    image: Optional[ImageInfo] = None
    network_infos: List[NetworkInfo] = Field(default_factory=list)


class HttpCheckInfo(_Descriptor):
    port: Optional[int] = None
    scheme: Optional[str] = None
    path: Optional[str] = None


class TcpCheckInfo(_Descriptor):
    port: Optional[int] = None


class HealthCheckInfo(_Descriptor):
    type: HealthCheckType
    command: Optional[CommandInfo] = None
    http: Optional[HttpCheckInfo] = None
    tcp: Optional[TcpCheckInfo] = None


class TaskInfo(_Descriptor):
    name: str
    task_id: str
    agent_id: str
    resources: List[Resource] = Field(default_factory=list)
    labels: Optional[List[Label]] = None
    command: CommandInfo
    container: ContainerInfo
    health_check: Optional[HealthCheckInfo] = None


class TaskGroupInfo(_Descriptor):
    tasks: List[TaskInfo] = Field(default_factory=list)


class ExecutorInfo(_Descriptor):
    executor_id: str
    type: ExecutorType = ExecutorType.DEFAULT
    resources: List[Resource] = Field(default_factory=list)
    container: Optional[ContainerInfo] = None
    labels: List[Label] = Field(default_factory=list)


class PlacementResult(_Descriptor):
    """
    Everything one successful compile produces.

    host_ports mirrors ResourceMatch.host_ports so the caller can record
    which concrete ports were bound.
    """
    executor: ExecutorInfo
    task_group: TaskGroupInfo
    host_ports: List[Optional[int]] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 5: CONVENIENCE TYPE ALIASES
# ─────────────────────────────────────────────────────────────────────────────

# Produces a fresh InstanceId for a pod path. Called once per successful compile.
InstanceIdFactory = Callable[[str], InstanceId]

# Lazily materialises the cluster's running tasks. Only invoked if the
# resource matcher needs them.
RunningTasksThunk = Callable[[], Iterable[RunningTask]]
