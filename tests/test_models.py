"""
tests/test_models.py
─────────────────────
Validation and helper behaviour of pod_orchestrator.shared.models and
pod_orchestrator.shared.config.
"""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from pod_orchestrator.shared.config import PlacementConfig
from pod_orchestrator.shared.models import (
    Endpoint,
    EnvVarSecretRef,
    EnvVarValue,
    HealthCheck,
    InstanceId,
    MesosContainer,
    PodDefinition,
    Resource,
    ResourceMatch,
    Resources,
    format_timestamp,
)


class TestPodDefinition:

    def test_id_normalised_to_absolute_path(self) -> None:
        pod = PodDefinition(id="shop//frontend/", containers=[MesosContainer(name="c")])

        assert pod.id == "/shop/frontend"

    def test_id_without_segments_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PodDefinition(id="///", containers=[MesosContainer(name="c")])

    def test_at_least_one_container(self) -> None:
        with pytest.raises(ValidationError):
            PodDefinition(id="/p", containers=[])

    def test_plain_string_env_coerced(self) -> None:
        pod = PodDefinition(
            id="/p",
            containers=[MesosContainer(name="c", environment={"A": "1"})],
            env={"B": "2", "S": {"secret": "vault-key"}},
        )

        assert pod.env["B"] == EnvVarValue(value="2")
        assert pod.env["S"] == EnvVarSecretRef(secret="vault-key")
        assert pod.containers[0].environment["A"] == EnvVarValue(value="1")

    def test_indexed_endpoints_order(self) -> None:
        pod = PodDefinition(id="/p", containers=[
            MesosContainer(name="a", endpoints=[Endpoint(name="a1"), Endpoint(name="a2")]),
            MesosContainer(name="b"),
            MesosContainer(name="c", endpoints=[Endpoint(name="c1")]),
        ])

        indexed = pod.indexed_endpoints()

        assert [(e.index, e.container_name, e.endpoint.name) for e in indexed] == [
            (0, "a", "a1"), (1, "a", "a2"), (2, "c", "c1"),
        ]

    def test_resources_summed(self) -> None:
        pod = PodDefinition(id="/p", containers=[
            MesosContainer(name="a", resources=Resources(cpus=0.5, mem=64.0, gpus=1)),
            MesosContainer(name="b", resources=Resources(cpus=1.5, mem=64.0, disk=5.0)),
        ])

        assert pod.resources == Resources(cpus=2.0, mem=128.0, disk=5.0, gpus=1)

    def test_endpoint_port_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Endpoint(name="x", host_port=70000)

    def test_empty_health_check_rejected(self) -> None:
        with pytest.raises(ValidationError):
            HealthCheck()


class TestResource:

    def test_exactly_one_value(self) -> None:
        with pytest.raises(ValidationError):
            Resource(name="cpus")
        with pytest.raises(ValidationError):
            Resource(name="x", scalar=1.0, ranges=[(1, 2)])

    def test_inverted_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Resource.ranges_resource("ports", [(10, 5)])


class TestIdentity:

    def test_id_string(self) -> None:
        instance = InstanceId(run_spec_id="/shop/frontend", uuid="1234")

        assert instance.id_string == "shop_frontend.instance-1234"
        assert str(instance) == "shop_frontend.instance-1234"

    def test_fresh_ids_differ(self) -> None:
        assert InstanceId.for_run_spec("/p") != InstanceId.for_run_spec("/p")

    def test_match_host_ports_sorted_by_index(self) -> None:
        match = ResourceMatch(host_ports_by_index={2: 3, 0: 1, 1: None})

        assert match.host_ports == [1, None, 3]


class TestFormatTimestamp:

    def test_naive_taken_as_utc(self) -> None:
        assert format_timestamp(datetime(2016, 9, 1, 12, 0, 0, 1500)) == "2016-09-01T12:00:00.001Z"


class TestPlacementConfig:

    def test_default_roles(self) -> None:
        assert PlacementConfig().default_accepted_resource_roles_set == {"*"}
        assert PlacementConfig(mesos_role="marathon").default_accepted_resource_roles_set == {
            "*", "marathon",
        }

    def test_explicit_default_roles_win(self) -> None:
        config = PlacementConfig(
            mesos_role="marathon", default_accepted_resource_roles=frozenset({"prod"}),
        )

        assert config.default_accepted_resource_roles_set == {"prod"}

    def test_empty_default_roles_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PlacementConfig(default_accepted_resource_roles=frozenset())

    def test_negative_overhead_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PlacementConfig(executor_cpus=-0.1)
