"""Tests for the DevSet finder."""

import pytest

from engine import (
    DevSetNotInitializedError,
    ErrorKind,
    InsufficientDevicesError,
    InvalidArgumentError,
    QueryNotInitializedError,
    TopologyKind,
    find_dev_sets,
)


def ordinals(devset):
    return [d.ordinal for d in devset.devices]


@pytest.fixture
def two_ring_query(context, two_ring_snapshot):
    context.add_machine(two_ring_snapshot, "node0")
    return context.create_query()


class TestSingleMachine:
    """Test DevSet search on one machine."""

    def test_two_disjoint_rings(self, two_ring_query):
        two_ring_query.set_device_count("node0", 4)
        dev_sets = two_ring_query.find_dev_sets(TopologyKind.RING, 4)

        assert [ordinals(s) for s in dev_sets] == [[0, 1, 2, 3], [4, 5, 6, 7]]

    def test_blacklist_leaves_one_ring(self, two_ring_query):
        two_ring_query.set_device_count("node0", 4)
        two_ring_query.blacklist_ordinal("node0", 2)
        two_ring_query.blacklist_ordinal("node0", 3)

        dev_sets = two_ring_query.find_dev_sets("ring", 10)

        assert len(dev_sets) == 1
        assert ordinals(dev_sets[0]) == [4, 5, 6, 7]
        assert len(dev_sets[0].find_topologies("ring")) == 1

    def test_max_results_caps_output(self, two_ring_query):
        two_ring_query.set_device_count("node0", 4)

        assert len(two_ring_query.find_dev_sets("ring", 1)) == 1

    def test_dev_sets_are_disjoint(self, two_ring_query):
        two_ring_query.set_device_count("node0", 2)
        dev_sets = two_ring_query.find_dev_sets("tree", 10)

        keys = [d.key for s in dev_sets for d in s.devices]
        assert len(keys) == len(set(keys))
        assert all(s.size == 2 for s in dev_sets)

    def test_blacklisted_devices_never_selected(self, two_ring_query):
        two_ring_query.set_device_count("node0", 2)
        two_ring_query.blacklist_uuid("node0", 101)
        dev_sets = two_ring_query.find_dev_sets("tree", 10)

        assert dev_sets
        assert all(1 not in ordinals(s) for s in dev_sets)

    def test_whitelist_bounds_selection(self, two_ring_query):
        two_ring_query.set_device_count("node0", 2)
        for ordinal in (4, 5, 6):
            two_ring_query.whitelist_ordinal("node0", ordinal)
        dev_sets = two_ring_query.find_dev_sets("tree", 10)

        assert [ordinals(s) for s in dev_sets] == [[4, 5]]

    def test_search_is_deterministic(self, two_ring_query):
        two_ring_query.set_device_count("node0", 2)

        first = [ordinals(s) for s in two_ring_query.find_dev_sets("tree", 10)]
        second = [ordinals(s) for s in find_dev_sets(two_ring_query, "tree", 10)]
        assert first == second

    def test_no_feasible_set_is_empty_not_error(self, context, make_snapshot):
        # three devices without any link
        context.add_machine(make_snapshot("n", [1, 2, 3]), "n")
        query = context.create_query()
        query.set_device_count("n", 2)

        assert query.find_dev_sets("tree", 3) == []

    def test_single_device_tree(self, two_ring_query):
        two_ring_query.set_device_count("node0", 1)
        dev_sets = two_ring_query.find_dev_sets("tree", 3)

        assert [ordinals(s) for s in dev_sets] == [[0], [1], [2]]

    def test_single_device_ring_impossible(self, two_ring_query):
        two_ring_query.set_device_count("node0", 1)

        assert two_ring_query.find_dev_sets("ring", 3) == []


class TestMultiMachine:
    """Test DevSets spanning machines."""

    def test_cross_machine_ring(self, context, cross_machine_snapshots):
        node0, node1 = cross_machine_snapshots
        context.add_machine(node1, "node1")
        context.add_machine(node0, "node0")
        query = context.create_query()
        query.set_device_count("node0", 2)
        query.set_device_count("node1", 2)

        dev_sets = query.find_dev_sets("ring", 2)

        assert len(dev_sets) == 1
        assert [str(d) for d in dev_sets[0]] == ["node0:0", "node0:1", "node1:0", "node1:1"]
        assert dev_sets[0].ordinals("node1") == [0, 1]

    def test_machine_without_target_contributes_nothing(self, context, cross_machine_snapshots):
        node0, node1 = cross_machine_snapshots
        context.add_machine(node0, "node0")
        context.add_machine(node1, "node1")
        query = context.create_query()
        query.set_device_count("node0", 2)

        dev_sets = query.find_dev_sets("tree", 5)

        assert [[str(d) for d in s] for s in dev_sets] == [["node0:0", "node0:1"]]


class TestFinderErrors:
    """Test argument and lifecycle errors."""

    def test_no_targets(self, two_ring_query):
        with pytest.raises(InvalidArgumentError):
            two_ring_query.find_dev_sets("ring", 1)

    def test_insufficient_devices(self, two_ring_query):
        two_ring_query.set_device_count("node0", 7)
        two_ring_query.blacklist_ordinal("node0", 0)
        two_ring_query.blacklist_ordinal("node0", 1)

        with pytest.raises(InsufficientDevicesError) as excinfo:
            two_ring_query.find_dev_sets("ring", 1)
        assert excinfo.value.kind == ErrorKind.CAPACITY

    @pytest.mark.parametrize("max_results", [0, -2, True, None])
    def test_invalid_max_results(self, two_ring_query, max_results):
        two_ring_query.set_device_count("node0", 4)

        with pytest.raises(InvalidArgumentError):
            two_ring_query.find_dev_sets("ring", max_results)

    def test_unknown_kind(self, two_ring_query):
        two_ring_query.set_device_count("node0", 4)

        with pytest.raises(InvalidArgumentError):
            two_ring_query.find_dev_sets("mesh", 1)

    def test_stale_query(self, context, two_ring_query):
        two_ring_query.set_device_count("node0", 4)
        context.clear_machines()

        with pytest.raises(QueryNotInitializedError):
            two_ring_query.find_dev_sets("ring", 1)


class TestDevSetAccess:
    """Test DevSet accessors and invalidation."""

    def test_get_device(self, two_ring_query):
        two_ring_query.set_device_count("node0", 4)
        devset = two_ring_query.find_dev_sets("ring", 1)[0]

        assert devset.get_device(3).uuid == 103
        with pytest.raises(InvalidArgumentError):
            devset.get_device(4)

    def test_to_dict_and_repr(self, two_ring_query):
        two_ring_query.set_device_count("node0", 4)
        devset = two_ring_query.find_dev_sets("ring", 1)[0]

        data = devset.to_dict()
        assert data["size"] == 4
        assert data["devices"][0] == {"machine": "node0", "ordinal": 0, "uuid": 100}
        assert repr(devset) == "DevSet({node0:0, node0:1, node0:2, node0:3})"

    def test_invalid_after_query_destroy(self, two_ring_query):
        two_ring_query.set_device_count("node0", 4)
        devset = two_ring_query.find_dev_sets("ring", 1)[0]
        two_ring_query.destroy()

        assert not devset.alive
        with pytest.raises(DevSetNotInitializedError):
            devset.get_device(0)
        with pytest.raises(DevSetNotInitializedError):
            devset.find_topologies("ring")

    def test_invalid_after_clear(self, context, two_ring_query):
        two_ring_query.set_device_count("node0", 4)
        devset = two_ring_query.find_dev_sets("ring", 1)[0]
        context.clear_machines()

        with pytest.raises(DevSetNotInitializedError):
            _ = devset.devices
