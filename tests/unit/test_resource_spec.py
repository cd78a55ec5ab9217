"""Unit tests for the resource spec builder."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from testbed_orchestrator.domain.errors import (
    InvalidNodeCount,
    InvalidOptions,
    InvalidWalltime,
    MissingRequiredOption,
    UnknownVlanType,
)
from testbed_orchestrator.domain.services import (
    CLASSIC_SSH_TYPE,
    KEY_IMPORT_FIELD,
    ResourceSpecBuilder,
    to_epoch_seconds,
)
from testbed_orchestrator.domain.value_objects import ReservationOptions, VlanKind


@pytest.fixture
def builder() -> ResourceSpecBuilder:
    return ResourceSpecBuilder()


@pytest.mark.unit
class TestResourceSpec:
    """Tests for resource spec synthesis."""

    def test_single_node(self, builder: ResourceSpecBuilder) -> None:
        request = builder.build(ReservationOptions(site="nancy", nodes=1, walltime="00:30:00"))
        assert request.resources == "/nodes=1,walltime=00:30:00"

    def test_cluster_switch_cores(self, builder: ResourceSpecBuilder) -> None:
        options = ReservationOptions(
            site="nancy", nodes=2, cluster="graphene", switches=1, cores=1, walltime="01:00:00"
        )
        assert (
            builder.build(options).resources
            == "{cluster='graphene'}/switch=1/nodes=2/core=1,walltime=01:00:00"
        )

    def test_cpus(self, builder: ResourceSpecBuilder) -> None:
        options = ReservationOptions(site="nancy", nodes=3, cpus=2)
        assert builder.build(options).resources == "/nodes=3/cpu=2,walltime=01:00:00"

    def test_vlan_and_subnet_prefixes(self, builder: ResourceSpecBuilder) -> None:
        """Subnet wraps VLAN, which wraps the cluster constraint."""
        options = ReservationOptions(
            site="nancy",
            nodes=3,
            switches=2,
            cluster="graphene",
            vlan="local",
            subnets=(22, 2),
        )
        assert builder.build(options).resources == (
            "slash_22=2+{type='kavlan-local'}/vlan=1+"
            "{cluster='graphene'}/switch=2/nodes=3,walltime=01:00:00"
        )

    @pytest.mark.parametrize(
        "kind, resource_type",
        [("routed", "kavlan"), ("global", "kavlan-global"), ("local", "kavlan-local"), (VlanKind.ROUTED, "kavlan")],
    )
    def test_vlan_mapping(self, builder: ResourceSpecBuilder, kind: object, resource_type: str) -> None:
        options = ReservationOptions(site="nancy", vlan=kind)  # type: ignore[arg-type]
        assert builder.build(options).resources.startswith(f"{{type='{resource_type}'}}/vlan=1+")

    def test_unknown_vlan(self, builder: ResourceSpecBuilder) -> None:
        with pytest.raises(UnknownVlanType):
            builder.build(ReservationOptions(site="nancy", vlan="private"))

    def test_raw_resources_get_walltime(self, builder: ResourceSpecBuilder) -> None:
        options = ReservationOptions(site="nancy", resources="/nodes=BEST", walltime="02:00:00")
        assert builder.build(options).resources == "/nodes=BEST,walltime=02:00:00"

    def test_raw_resources_with_walltime(self, builder: ResourceSpecBuilder) -> None:
        options = ReservationOptions(site="nancy", resources="/nodes=2,walltime=00:10:00")
        assert builder.build(options).resources == "/nodes=2,walltime=00:10:00"

    def test_deterministic(self, builder: ResourceSpecBuilder) -> None:
        options = ReservationOptions(site="nancy", nodes=["b", "a"], cluster="graphene", vlan="routed")
        assert builder.build(options) == builder.build(options)


@pytest.mark.unit
class TestHostList:
    """Tests for explicit host lists."""

    def test_host_list_sets_properties(self, builder: ResourceSpecBuilder) -> None:
        """Hosts are sorted in the property and counted as nodes."""
        options = ReservationOptions(site="nancy", nodes=["graphene-3", "graphene-1"])
        request = builder.build(options)
        assert request.resources == "/nodes=2,walltime=01:00:00"
        assert request.payload_extras["properties"] == "host in ('graphene-1','graphene-3')"

    def test_dead_hosts_dropped(self, builder: ResourceSpecBuilder) -> None:
        options = ReservationOptions(
            site="nancy", nodes=["graphene-1", "graphene-2", "graphene-3"], ignore_dead=True
        )
        request = builder.build(options, dead_hosts={"graphene-2"})
        assert request.resources == "/nodes=2,walltime=01:00:00"
        assert request.payload_extras["properties"] == "host in ('graphene-1','graphene-3')"
        assert request.ignored_hosts == ("graphene-2",)

    def test_dead_hosts_kept_without_ignore_dead(self, builder: ResourceSpecBuilder) -> None:
        options = ReservationOptions(site="nancy", nodes=["graphene-1", "graphene-2"])
        request = builder.build(options, dead_hosts={"graphene-2"})
        assert request.resources.startswith("/nodes=2")
        assert request.ignored_hosts == ()

    def test_all_hosts_dead(self, builder: ResourceSpecBuilder) -> None:
        options = ReservationOptions(site="nancy", nodes=["graphene-1"], ignore_dead=True)
        with pytest.raises(InvalidNodeCount):
            builder.build(options, dead_hosts={"graphene-1"})


@pytest.mark.unit
class TestPayload:
    """Tests for the submission payload."""

    def test_default_command_from_walltime(self, builder: ResourceSpecBuilder) -> None:
        request = builder.build(ReservationOptions(site="nancy", walltime="00:30:00"))
        payload = request.submission_payload()
        assert payload["command"] == "sleep 1800"
        assert payload["name"] == "testbed-orchestrator job"

    def test_classic_ssh_without_keys(self, builder: ResourceSpecBuilder) -> None:
        request = builder.build(ReservationOptions(site="nancy", job_type="besteffort"))
        assert request.submission_payload()["types"] == ["besteffort", CLASSIC_SSH_TYPE]
        assert not request.imports_key

    def test_key_import(self, builder: ResourceSpecBuilder) -> None:
        """A key path switches to the import endpoint with quoted resources."""
        request = builder.build(ReservationOptions(site="nancy", keys="~/.ssh/testbed"))
        payload = request.submission_payload()
        assert request.imports_key
        assert payload[KEY_IMPORT_FIELD] == [str(Path("~/.ssh/testbed").expanduser().absolute())]
        assert payload["resources"] == '"/nodes=1,walltime=01:00:00"'
        assert "types" not in payload
        assert request.resources == "/nodes=1,walltime=01:00:00"

    def test_environment_forces_deploy(self, builder: ResourceSpecBuilder) -> None:
        request = builder.build(
            ReservationOptions(site="nancy", environment="debian11-min", keys="~/.ssh/testbed")
        )
        payload = request.submission_payload()
        assert request.is_deploy
        assert payload["types"] == ["deploy"]
        assert KEY_IMPORT_FIELD not in payload

    def test_reservation_start(self, builder: ResourceSpecBuilder) -> None:
        start = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        request = builder.build(ReservationOptions(site="nancy", at=start))
        assert request.submission_payload()["reservation"] == int(start.timestamp())

    def test_custom_command_and_properties(self, builder: ResourceSpecBuilder) -> None:
        request = builder.build(
            ReservationOptions(site="nancy", command="./run.sh", properties="gpu='YES'")
        )
        payload = request.submission_payload()
        assert payload["command"] == "./run.sh"
        assert payload["properties"] == "gpu='YES'"


@pytest.mark.unit
class TestValidation:
    """Tests for option validation."""

    @pytest.mark.parametrize("missing", ["nodes", "walltime", "site"])
    def test_missing_required(self, builder: ResourceSpecBuilder, missing: str) -> None:
        options = ReservationOptions(site="nancy").with_changes(**{missing: None})
        with pytest.raises(MissingRequiredOption) as exc_info:
            builder.build(options)
        assert exc_info.value.option == missing

    @pytest.mark.parametrize("nodes", [0, -2, "3", True])
    def test_invalid_node_count(self, builder: ResourceSpecBuilder, nodes: object) -> None:
        with pytest.raises(InvalidNodeCount):
            builder.build(ReservationOptions(site="nancy", nodes=nodes))  # type: ignore[arg-type]

    def test_invalid_walltime(self, builder: ResourceSpecBuilder) -> None:
        with pytest.raises(InvalidWalltime):
            builder.build(ReservationOptions(site="nancy", walltime="forever"))

    def test_errors_are_value_errors(self, builder: ResourceSpecBuilder) -> None:
        with pytest.raises(ValueError):
            builder.build(ReservationOptions(site=None))


@pytest.mark.unit
class TestEpochSeconds:
    """Tests for reservation start time conversion."""

    def test_accepted_forms(self) -> None:
        assert to_epoch_seconds(1_700_000_000) == 1_700_000_000
        assert to_epoch_seconds(1_700_000_000.7) == 1_700_000_000
        assert to_epoch_seconds("1700000000") == 1_700_000_000
        assert to_epoch_seconds("2023-11-14T22:13:20+00:00") == 1_700_000_000

    def test_rejected(self) -> None:
        with pytest.raises(InvalidOptions):
            to_epoch_seconds("next tuesday")
        with pytest.raises(InvalidOptions):
            to_epoch_seconds(True)  # type: ignore[arg-type]
