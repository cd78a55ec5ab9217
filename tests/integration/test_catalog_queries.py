"""Integration tests for catalog queries against the fake testbed."""

from __future__ import annotations

import pytest

from testbed_orchestrator.application import CatalogService
from testbed_orchestrator.domain.errors import SwitchNotFound
from testbed_orchestrator.domain.value_objects import DeployOptions, ReservationOptions


@pytest.mark.integration
class TestCatalog:
    """Sites, clusters, images and node status."""

    def test_site_uids(self, catalog):
        assert catalog.site_uids() == ["nancy", "lille"]

    def test_cluster_uids(self, catalog):
        assert catalog.cluster_uids("nancy") == ["graphene", "griffon"]
        assert catalog.cluster_uids("lille") == ["chetemi"]

    def test_environment_uids_strip_versions(self, catalog):
        assert catalog.environment_uids("nancy") == ["debian11-min", "ubuntu2204-x64-min"]

    def test_nodes_status(self, catalog):
        states = catalog.nodes_status("nancy")

        assert states["graphene-1.nancy.grid5000.fr"] == "free"
        assert states["graphene-4.nancy.grid5000.fr"] == "unknown"

    def test_dead_hosts_accepts_short_and_qualified_names(self, catalog):
        hosts = ["graphene-1", "graphene-4", "graphene-4.nancy.grid5000.fr"]

        assert catalog.dead_hosts("nancy", hosts) == ["graphene-4", "graphene-4.nancy.grid5000.fr"]

    def test_user_defaults_to_gateway_user(self, gateway):
        assert CatalogService(gateway).user == "alice"
        assert CatalogService(gateway, user="bob").user == "bob"

    def test_current_site_from_hostname(self, catalog):
        assert catalog.current_site("frontend.nancy.grid5000.fr") == "nancy"
        assert catalog.current_site("graphene-1-kavlan-4.nancy.grid5000.fr.") == "nancy"
        assert catalog.current_site("laptop.example.org") is None
        assert catalog.current_site("grid5000.fr") is None

    def test_current_site_defaults_to_local_fqdn(self, catalog, monkeypatch):
        monkeypatch.setattr("socket.getfqdn", lambda: "fgrenoble.grenoble.grid5000.fr")

        assert catalog.current_site() == "grenoble"


@pytest.mark.integration
class TestJobQueries:
    """Jobs and deployments of a site."""

    def test_unfiltered_listing_is_capped(self, catalog, fake_testbed):
        fake_testbed.add_job("nancy")

        jobs = catalog.get_jobs("nancy")

        assert [job.uid for job in jobs] == [1000]
        assert fake_testbed.requests_for("GET", "jobs?limit=25")

    def test_get_jobs_filters(self, catalog, fake_testbed):
        fake_testbed.add_job("nancy")
        bob = fake_testbed.add_job("nancy", user="bob")
        fake_testbed.add_job("nancy", state="waiting", user="bob")

        assert [job.uid for job in catalog.get_jobs("nancy", user="bob", state="running")] == [bob]

    def test_get_job(self, catalog, fake_testbed):
        uid = fake_testbed.add_job("nancy", nodes=2)

        job = catalog.get_job("nancy", uid)

        assert job.uid == uid
        assert job.state == "running"
        assert len(job.assigned_nodes) == 2

    def test_get_my_jobs_attaches_later_deployments(self, orchestrator, catalog):
        job = orchestrator.reserve(ReservationOptions(site="nancy"))
        orchestrator.deploy(job, DeployOptions(environment="debian11-min"))

        mine = catalog.get_my_jobs("nancy")

        assert [j.uid for j in mine] == [job.uid]
        assert [d.uid for d in mine[0].deployments] == [job.deployments[0].uid]
        assert catalog.get_deployments("nancy", user="bob") == []

    def test_get_my_jobs_skips_deployments_of_earlier_jobs(self, orchestrator, catalog):
        first = orchestrator.reserve(ReservationOptions(site="nancy"))
        orchestrator.deploy(first, DeployOptions(environment="debian11-min"))
        orchestrator.release(first)
        second = orchestrator.reserve(ReservationOptions(site="nancy"))

        mine = catalog.get_my_jobs("nancy")

        assert [j.uid for j in mine] == [second.uid]
        assert mine[0].deployments == []

    def test_vlan_nodes_need_a_deployment(self, orchestrator, catalog):
        job = orchestrator.reserve(ReservationOptions(site="nancy", vlan="local"))

        assert catalog.get_vlan_nodes(job) is None


@pytest.mark.integration
class TestNetwork:
    """Switches and the nodes plugged into them."""

    def test_get_switches_keeps_switches_with_nodes(self, catalog):
        switches = catalog.get_switches("nancy")

        assert [s.uid for s in switches] == ["sgraphene1", "sgraphene2"]
        assert switches[0].extra["nodes"] == [
            "graphene-1.nancy.grid5000.fr",
            "graphene-2.nancy.grid5000.fr",
        ]

    def test_get_switch(self, catalog):
        switch = catalog.get_switch("nancy", "sgraphene2")

        assert switch.extra["nodes"] == [
            "graphene-3.nancy.grid5000.fr",
            "graphene-4.nancy.grid5000.fr",
        ]

    def test_get_switch_unknown(self, catalog):
        with pytest.raises(SwitchNotFound):
            catalog.get_switch("nancy", "gw-nancy")
