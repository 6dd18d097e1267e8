"""Tests for the topology context registry and its lifecycle."""

import logging

import pytest

from collector import FixtureSensor
from engine import (
    ContextNotCreatedError,
    DuplicateLabelError,
    InvalidArgumentError,
    MalformedSnapshotError,
    MachineSnapshot,
    QueryNotInitializedError,
    TopologyContext,
)


class TestAddMachine:
    """Test registering machine snapshots."""

    def test_add_and_list(self, context, cross_machine_snapshots):
        node0, node1 = cross_machine_snapshots
        context.add_machine(node0, "node0")
        context.add_machine(node1, "node1")

        assert sorted(context.labels) == ["node0", "node1"]
        assert len(context.machines["node1"]) == 2

    def test_label_overrides_snapshot_label(self, context, ring4_snapshot):
        stored = context.add_machine(ring4_snapshot, "rack-a")

        assert stored.label == "rack-a"
        assert {d.machine_label for d in stored.devices} == {"rack-a"}

    def test_duplicate_label(self, context, ring4_snapshot, make_snapshot):
        context.add_machine(ring4_snapshot, "node0")

        with pytest.raises(DuplicateLabelError):
            context.add_machine(make_snapshot("other", [77]), "node0")

    def test_duplicate_label_is_argument_error(self):
        assert issubclass(DuplicateLabelError, InvalidArgumentError)

    def test_empty_label(self, context, ring4_snapshot):
        with pytest.raises(InvalidArgumentError):
            context.add_machine(ring4_snapshot, "")

    def test_empty_snapshot_rejected(self, context):
        with pytest.raises(MalformedSnapshotError):
            context.add_machine(MachineSnapshot(label="n"), "n")

    def test_uuid_registered_twice(self, context, ring4_snapshot):
        context.add_machine(ring4_snapshot, "node0")

        with pytest.raises(MalformedSnapshotError, match="already registered"):
            context.add_machine(ring4_snapshot, "node1")
        assert context.labels == ["node0"]

    def test_unidirectional_link_is_warning(self, context, caplog):
        # only uuid 1 reports the cable
        snapshot = MachineSnapshot.from_dict({
            "version": "1.0",
            "label": "n",
            "devices": [
                {"ordinal": 0, "uuid": 1,
                 "links": [{"port": 0, "peer_uuid": 2, "peer_port": 0}]},
                {"ordinal": 1, "uuid": 2},
            ],
        })

        with caplog.at_level(logging.WARNING):
            context.add_machine(snapshot, "n")
        assert "Unidirectional" in caplog.text


class TestLifecycle:
    """Test clear and destroy."""

    def test_clear_removes_machines(self, context, ring4_snapshot):
        context.add_machine(ring4_snapshot, "node0")
        context.clear_machines()

        assert context.labels == []
        assert context.alive

    def test_clear_allows_reuse_of_label(self, context, ring4_snapshot):
        context.add_machine(ring4_snapshot, "node0")
        context.clear_machines()

        context.add_machine(ring4_snapshot, "node0")
        assert context.labels == ["node0"]

    def test_clear_makes_queries_stale(self, context, ring4_snapshot):
        context.add_machine(ring4_snapshot, "node0")
        query = context.create_query()
        context.clear_machines()

        assert not query.alive
        with pytest.raises(QueryNotInitializedError):
            query.set_device_count("node0", 2)

    def test_query_created_after_clear_is_valid(self, context, ring4_snapshot):
        context.add_machine(ring4_snapshot, "node0")
        context.clear_machines()
        context.add_machine(ring4_snapshot, "node0")

        query = context.create_query()
        query.set_device_count("node0", 4)
        assert len(query.find_dev_sets("ring", 1)) == 1

    def test_destroy(self, ring4_snapshot):
        context = TopologyContext()
        context.add_machine(ring4_snapshot, "node0")
        context.destroy()

        assert not context.alive
        with pytest.raises(ContextNotCreatedError):
            context.add_machine(ring4_snapshot, "node1")
        with pytest.raises(ContextNotCreatedError):
            context.create_query()
        with pytest.raises(ContextNotCreatedError):
            context.destroy()

    def test_destroy_invalidates_query(self, ring4_snapshot):
        context = TopologyContext()
        context.add_machine(ring4_snapshot, "node0")
        query = context.create_query()
        context.destroy()

        with pytest.raises(QueryNotInitializedError):
            query.eligible_devices("node0")

    def test_context_manager(self, ring4_snapshot):
        with TopologyContext() as context:
            context.add_machine(ring4_snapshot, "node0")

        assert not context.alive


class TestLocalInfo:
    """Test probing and file helpers exposed by the context."""

    def test_get_local_snapshot_is_not_registered(self, context, sensor_fixture_data):
        snapshot = context.get_local_snapshot(FixtureSensor(sensor_fixture_data))

        assert snapshot.label == "probe-host"
        assert len(snapshot) == 2
        assert context.labels == []

    def test_save_and_load_through_context(self, context, tmp_path, ring4_snapshot):
        path = str(tmp_path / "node0.json")
        context.save_machine_info(ring4_snapshot, path)

        loaded = context.load_machine_info(path)
        context.add_machine(loaded, "node0")
        assert context.machines["node0"].find_uuid(12).ordinal == 2

    def test_repr(self, context, ring4_snapshot):
        context.add_machine(ring4_snapshot, "node0")

        assert repr(context) == "TopologyContext(1 machines)"
