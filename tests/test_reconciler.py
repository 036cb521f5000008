"""Tests for the Create/Read/Update/Delete lifecycle."""

from typing import Any

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from conftest import FakeClock
from lb_mock import NOT_FOUND, MockControlPlane, MockLoadBalancerClient, transport_error
from pydantic import ValidationError

from lb_reconciler.errors import (
    ImmutableFieldError,
    InconsistentResponseError,
    InvalidStateError,
    UnexpectedStateError,
    WaitTimeoutError,
)
from lb_reconciler.reconciler import (
    LoadBalancerReconciler,
    create_load_balancer,
    delete_load_balancer,
    read_load_balancer,
    update_load_balancer,
)
from lb_reconciler.resource_data import ResourceData, Timeouts
from lb_reconciler.schema import SchemaValidationError

DESIRED: dict[str, Any] = {
    "compartment_id": "c1",
    "shape": "100Mbps",
    "subnet_ids": ["s1", "s2"],
    "display_name": "lb1",
}


@pytest.fixture
def plane() -> MockControlPlane:
    return MockControlPlane()


@pytest.fixture
def reconciler(plane: MockControlPlane, fake_clock: FakeClock) -> LoadBalancerReconciler:
    return LoadBalancerReconciler(MockLoadBalancerClient(plane), poll_interval_seconds=10)


def existing(plane: MockControlPlane, states: list[str] | None = None) -> ResourceData:
    """Field map for a load balancer that was created earlier."""
    load_balancer = plane.add_load_balancer(states)
    return ResourceData(fields=dict(DESIRED, state="ACTIVE"), resource_id=load_balancer.id)


class TestCreate:
    """Tests for LoadBalancerReconciler.create."""

    def test_end_to_end(self, plane: MockControlPlane, reconciler: LoadBalancerReconciler) -> None:
        """Test the work request is handed off to the load balancer it created."""
        data = ResourceData(fields=DESIRED)

        reconciler.create(data)

        assert plane.calls[0] == (
            "create_load_balancer",
            {
                "compartmentId": "c1",
                "shapeName": "100Mbps",
                "subnetIds": ["s1", "s2"],
                "displayName": "lb1",
            },
        )
        assert plane.calls[1] == ("get_work_request", "ocid1.loadbalancerworkrequest.1")
        assert data.id == "ocid1.loadbalancer.1"
        assert data.get("state") == "ACTIVE"
        assert data.get("id") == "ocid1.loadbalancer.1"
        assert data.get("ip_addresses") == ["10.0.0.5", "129.146.1.2"]
        assert data.get("time_created") == "2017-06-01 12:30:45 +0000 UTC"
        assert plane.call_count("get_work_request") == 2
        assert plane.call_count("get_load_balancer") == 1

    def test_waits_through_creating(
        self,
        plane: MockControlPlane,
        reconciler: LoadBalancerReconciler,
        fake_clock: FakeClock,
    ) -> None:
        plane.work_request_states = ["ACCEPTED", "IN_PROGRESS", "SUCCEEDED"]
        plane.create_states = ["CREATING", "CREATING", "ACTIVE"]
        data = ResourceData(fields=DESIRED)

        reconciler.create(data)

        assert data.id == "ocid1.loadbalancer.1"
        assert data.get("state") == "ACTIVE"
        # IN_PROGRESS, SUCCEEDED+CREATING, CREATING, ACTIVE
        assert fake_clock.sleeps == [10, 10, 10]
        assert plane.call_count("get_work_request") == 3

    def test_missing_required_fields(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = ResourceData(fields={"display_name": "lb1"})

        with pytest.raises(SchemaValidationError) as exc_info:
            reconciler.create(data)

        assert exc_info.value.missing == ["compartment_id", "shape", "subnet_ids"]
        assert plane.calls == []

    def test_invalid_field_value(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = ResourceData(fields=dict(DESIRED, subnet_ids=["s1", ""]))

        with pytest.raises(ValidationError):
            reconciler.create(data)

        assert plane.calls == []

    def test_mutation_error_leaves_identifier_empty(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        plane.fail("create_load_balancer", transport_error())
        data = ResourceData(fields=DESIRED)

        with pytest.raises(HttpResponseError):
            reconciler.create(data)

        assert data.id == ""

    def test_status_fetch_error_keeps_work_request_id(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        """Test an accepted create is not forgotten when its first status fetch fails."""
        plane.fail("get_work_request", transport_error())
        data = ResourceData(fields=DESIRED)

        with pytest.raises(HttpResponseError):
            reconciler.create(data)

        assert data.id == "ocid1.loadbalancerworkrequest.1"
        assert plane.call_count("create_load_balancer") == 1

    def test_succeeded_without_load_balancer_id(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        plane.work_request_states = ["SUCCEEDED"]
        plane.omit_load_balancer_id = True
        data = ResourceData(fields=DESIRED)

        with pytest.raises(InconsistentResponseError):
            reconciler.create(data)

        assert data.id == "ocid1.loadbalancerworkrequest.1"
        assert plane.call_count("get_load_balancer") == 0

    def test_failed_work_request_keeps_identifier(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        """Test a failed create leaves the work request id for later reads."""
        plane.work_request_states = ["ACCEPTED", "FAILED"]
        data = ResourceData(fields=DESIRED)

        with pytest.raises(UnexpectedStateError) as exc_info:
            reconciler.create(data)

        assert exc_info.value.state == "FAILED"
        assert data.id == "ocid1.loadbalancerworkrequest.1"
        assert data.get("state") == "FAILED"

    def test_timeout_keeps_identifier(self, plane: MockControlPlane, fake_clock: FakeClock) -> None:
        plane.work_request_states = ["ACCEPTED"]
        reconciler = LoadBalancerReconciler(MockLoadBalancerClient(plane), poll_interval_seconds=10)
        data = ResourceData(fields=DESIRED, timeouts=Timeouts(create=30))

        with pytest.raises(WaitTimeoutError):
            reconciler.create(data)

        assert data.id == "ocid1.loadbalancerworkrequest.1"
        assert data.get("state") == "ACCEPTED"
        assert fake_clock.now == 30

    def test_failed_load_balancer_keeps_resource_id(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        plane.create_states = ["CREATING", "FAILED"]
        data = ResourceData(fields=DESIRED)

        with pytest.raises(UnexpectedStateError):
            reconciler.create(data)

        assert data.id == "ocid1.loadbalancer.1"
        assert data.get("state") == "FAILED"

    def test_not_found_while_creating_is_an_error(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        plane.create_states = [NOT_FOUND]
        data = ResourceData(fields=DESIRED)

        with pytest.raises(ResourceNotFoundError):
            reconciler.create(data)

        assert data.id == "ocid1.loadbalancer.1"

    def test_entry_point(self, plane: MockControlPlane, fake_clock: FakeClock) -> None:
        data = ResourceData(fields=DESIRED)

        create_load_balancer(data, MockLoadBalancerClient(plane), poll_interval_seconds=1)

        assert data.id == "ocid1.loadbalancer.1"


class TestRead:
    """Tests for LoadBalancerReconciler.read."""

    def test_refreshes_fields(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = existing(plane, ["UPDATING"])
        plane.load_balancers[data.id].display_name = "renamed"

        reconciler.read(data)

        assert data.get("state") == "UPDATING"
        assert data.get("display_name") == "renamed"

    def test_resumes_interrupted_create(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        load_balancer = plane.add_load_balancer(["ACTIVE"])
        work_request = plane.add_work_request(load_balancer.id, ["SUCCEEDED"])
        data = ResourceData(fields=DESIRED, resource_id=work_request.id)

        reconciler.read(data)

        assert data.id == load_balancer.id
        assert data.get("state") == "ACTIVE"
        assert data.get("id") == load_balancer.id

    def test_running_work_request_only_sets_state(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        work_request = plane.add_work_request("ocid1.loadbalancer.7", ["IN_PROGRESS"])
        data = ResourceData(fields=DESIRED, resource_id=work_request.id)

        reconciler.read(data)

        assert data.id == work_request.id
        assert data.get("state") == "IN_PROGRESS"
        assert data.get("id") == ""
        assert plane.call_count("get_load_balancer") == 0

    def test_not_found_clears_identifier(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = existing(plane, [NOT_FOUND])

        reconciler.read(data)

        assert data.id == ""

    def test_empty_identifier_is_invalid(self, reconciler: LoadBalancerReconciler) -> None:
        with pytest.raises(InvalidStateError):
            reconciler.read(ResourceData(fields=DESIRED))

    def test_transport_error_propagates(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = existing(plane)
        plane.fail("get_load_balancer", transport_error())

        with pytest.raises(HttpResponseError):
            reconciler.read(data)

        assert data.id == "ocid1.loadbalancer.1"

    def test_entry_point(self, plane: MockControlPlane) -> None:
        data = existing(plane, ["ACTIVE"])

        read_load_balancer(data, MockLoadBalancerClient(plane))

        assert data.get("state") == "ACTIVE"


class TestUpdate:
    """Tests for LoadBalancerReconciler.update."""

    def test_requests_display_name_change(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        """Test update records the work request state and returns without waiting."""
        load_balancer = plane.add_load_balancer()
        data = ResourceData(
            fields=dict(DESIRED, display_name="lb2"),
            resource_id=load_balancer.id,
            prior=DESIRED,
        )

        reconciler.update(data)

        assert plane.calls[0] == (
            "update_load_balancer",
            (load_balancer.id, {"displayName": "lb2"}),
        )
        assert data.get("state") == "ACCEPTED"
        assert data.get("display_name") == "lb2"
        assert data.id == load_balancer.id
        assert plane.call_count("get_work_request") == 1
        assert plane.call_count("get_load_balancer") == 0

    def test_force_new_field_change_is_rejected(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        load_balancer = plane.add_load_balancer()
        data = ResourceData(
            fields=dict(DESIRED, shape="400Mbps"),
            resource_id=load_balancer.id,
            prior=DESIRED,
        )

        with pytest.raises(ImmutableFieldError) as exc_info:
            reconciler.update(data)

        assert exc_info.value.field == "shape"
        assert plane.calls == []

    def test_unresolved_work_request_is_rejected(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = ResourceData(fields=DESIRED, resource_id="ocid1.loadbalancerworkrequest.3")

        with pytest.raises(InvalidStateError, match="read it first"):
            reconciler.update(data)

        assert plane.calls == []

    def test_empty_identifier_is_rejected(self, reconciler: LoadBalancerReconciler) -> None:
        with pytest.raises(InvalidStateError, match="empty identifier"):
            reconciler.update(ResourceData(fields=DESIRED))

    def test_missing_required_field_is_rejected(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = existing(plane)
        data.set("display_name", "")

        with pytest.raises(SchemaValidationError):
            reconciler.update(data)

        assert plane.calls == []

    def test_entry_point(self, plane: MockControlPlane) -> None:
        data = existing(plane)
        data.set("display_name", "lb3")

        update_load_balancer(data, MockLoadBalancerClient(plane))

        assert plane.load_balancers[data.id].display_name == "lb3"


class TestDelete:
    """Tests for LoadBalancerReconciler.delete."""

    def test_end_to_end(
        self,
        plane: MockControlPlane,
        reconciler: LoadBalancerReconciler,
        fake_clock: FakeClock,
    ) -> None:
        plane.delete_states = ["DELETING", "DELETING", "DELETED"]
        data = existing(plane)

        reconciler.delete(data)

        assert plane.calls[0] == ("delete_load_balancer", "ocid1.loadbalancer.1")
        assert data.id == ""
        assert data.get("state") == "DELETED"
        assert plane.call_count("get_load_balancer") == 3
        assert fake_clock.sleeps == [10, 10]

    def test_not_found_while_waiting_counts_as_deleted(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        plane.delete_states = ["DELETING", NOT_FOUND]
        data = existing(plane)

        reconciler.delete(data)

        assert data.id == ""

    def test_not_found_on_delete_call_counts_as_deleted(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = existing(plane)
        plane.fail("delete_load_balancer", ResourceNotFoundError("gone"))

        reconciler.delete(data)

        assert data.id == ""
        assert plane.call_count("get_work_request") == 0

    def test_failed_delete_keeps_identifier(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        plane.delete_states = ["DELETING", "FAILED"]
        data = existing(plane)

        with pytest.raises(UnexpectedStateError):
            reconciler.delete(data)

        assert data.id == "ocid1.loadbalancer.1"
        assert data.get("state") == "FAILED"

    def test_transport_error_while_waiting_propagates(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = existing(plane)
        plane.fail("get_load_balancer", transport_error())

        with pytest.raises(HttpResponseError):
            reconciler.delete(data)

        assert data.id == "ocid1.loadbalancer.1"

    def test_timeout(self, plane: MockControlPlane, fake_clock: FakeClock) -> None:
        plane.delete_states = ["DELETING"]
        reconciler = LoadBalancerReconciler(MockLoadBalancerClient(plane), poll_interval_seconds=5)
        data = existing(plane)
        data.timeouts = Timeouts(delete=20)

        with pytest.raises(WaitTimeoutError) as exc_info:
            reconciler.delete(data)

        assert exc_info.value.last_state == "DELETING"
        assert data.id == "ocid1.loadbalancer.1"

    def test_unresolved_work_request_is_rejected(
        self, plane: MockControlPlane, reconciler: LoadBalancerReconciler
    ) -> None:
        data = ResourceData(resource_id="ocid1.loadbalancerworkrequest.3")

        with pytest.raises(InvalidStateError):
            reconciler.delete(data)

        assert plane.calls == []

    def test_entry_point(self, plane: MockControlPlane, fake_clock: FakeClock) -> None:
        data = existing(plane)

        delete_load_balancer(data, MockLoadBalancerClient(plane), poll_interval_seconds=1)

        assert data.id == ""
