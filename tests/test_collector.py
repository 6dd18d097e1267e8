"""Tests for local device probing through a sensor."""

import socket

import pytest
import yaml

from collector import DeviceCollector, FixtureSensor, LinkCollector, SensorError, probe_local_snapshot
from engine import (
    DependencyUnavailableError,
    LinkKind,
    MachineSnapshot,
    UnsupportedVersionError,
)


class FailingSensor(FixtureSensor):
    """Sensor whose link query fails for one device."""

    def get_link_adjacency(self, ordinal):
        if ordinal == 1:
            raise SensorError("link status unavailable")
        return super().get_link_adjacency(ordinal)


class TestFixtureSensor:
    """Test the description-file sensor."""

    def test_from_file(self, tmp_path, sensor_fixture_data):
        path = tmp_path / "sensor.yaml"
        path.write_text(yaml.safe_dump(sensor_fixture_data))

        sensor = FixtureSensor.from_file(str(path))

        assert sensor.get_device_count() == 2
        assert sensor.get_device_uuid(1) == 502
        assert sensor.get_serials(0) == (9001, 7001)
        assert sensor.get_slot_id(1) == 0
        assert sensor.get_api_version() == (1, 2)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SensorError):
            FixtureSensor.from_file(str(tmp_path / "absent.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "sensor.yaml"
        path.write_text("")

        with pytest.raises(SensorError):
            FixtureSensor.from_file(str(path))

    def test_no_device_list(self):
        with pytest.raises(SensorError):
            FixtureSensor({"api_version": "1.0"})

    def test_unknown_ordinal(self, sensor_fixture_data):
        with pytest.raises(SensorError):
            FixtureSensor(sensor_fixture_data).get_device_uuid(5)

    def test_negative_uuid(self, sensor_fixture_data):
        sensor_fixture_data["devices"][0]["uuid"] = -5

        with pytest.raises(SensorError):
            FixtureSensor(sensor_fixture_data).get_device_uuid(0)

    def test_major_only_api_version(self, sensor_fixture_data):
        sensor_fixture_data["api_version"] = 1

        assert FixtureSensor(sensor_fixture_data).get_api_version() == (1, 0)


class TestLinkCollector:
    """Test conversion of raw link records."""

    def test_collect(self, sensor_fixture_data):
        links = LinkCollector(FixtureSensor(sensor_fixture_data)).collect(0)

        assert links[0].peer_uuid == 502
        assert links[0].kind == LinkKind.POINT_TO_POINT
        assert links[1].kind == LinkKind.POINT_TO_SWITCH
        assert links[1].switch_id == "sw-a"

    def test_kind_defaults_to_point_to_point(self, sensor_fixture_data):
        links = LinkCollector(FixtureSensor(sensor_fixture_data)).collect(1)

        assert links[0].kind == LinkKind.POINT_TO_POINT
        assert links[0].peer_port == 0

    def test_malformed_record(self, sensor_fixture_data):
        sensor_fixture_data["devices"][1]["links"] = [{"port": 0, "kind": "point-to-point"}]

        with pytest.raises(DependencyUnavailableError):
            LinkCollector(FixtureSensor(sensor_fixture_data)).collect(1)

    def test_sensor_failure(self, sensor_fixture_data):
        with pytest.raises(DependencyUnavailableError):
            LinkCollector(FailingSensor(sensor_fixture_data)).collect(1)

    @pytest.mark.parametrize("field, value", [
        ("port", -1),
        ("port", True),
        ("port", 1.9),
        ("peer_uuid", -7),
        ("peer_port", 2 ** 64),
    ])
    def test_out_of_range_link_fields(self, sensor_fixture_data, field, value):
        sensor_fixture_data["devices"][1]["links"][0][field] = value

        with pytest.raises(DependencyUnavailableError):
            LinkCollector(FixtureSensor(sensor_fixture_data)).collect(1)


class TestProbe:
    """Test assembling the local snapshot."""

    def test_probe_local_snapshot(self, sensor_fixture_data):
        snapshot = probe_local_snapshot(FixtureSensor(sensor_fixture_data))

        assert snapshot.label == "probe-host"
        first = snapshot.get_device(0)
        assert first.uuid == 501
        assert first.board_serial == 9001
        assert first.motherboard_serial == 7001
        assert first.slot_id == 1
        assert len(first.links) == 2

    def test_explicit_label(self, sensor_fixture_data):
        snapshot = probe_local_snapshot(FixtureSensor(sensor_fixture_data), label="rack3")

        assert {d.machine_label for d in snapshot.devices} == {"rack3"}

    def test_label_defaults_to_host_name(self, sensor_fixture_data):
        del sensor_fixture_data["hostname"]
        snapshot = probe_local_snapshot(FixtureSensor(sensor_fixture_data))

        assert snapshot.label == socket.gethostname()

    def test_probed_snapshot_can_be_exchanged(self, sensor_fixture_data):
        snapshot = probe_local_snapshot(FixtureSensor(sensor_fixture_data))

        assert MachineSnapshot.from_json(snapshot.to_json()) == snapshot

    def test_unsupported_api_version(self, sensor_fixture_data):
        sensor_fixture_data["api_version"] = "2.0"

        with pytest.raises(UnsupportedVersionError):
            probe_local_snapshot(FixtureSensor(sensor_fixture_data))

    def test_negative_values_rejected_at_probe(self, sensor_fixture_data):
        sensor_fixture_data["devices"][0]["uuid"] = -5
        sensor_fixture_data["devices"][0]["links"] = [{"port": -1, "peer_uuid": 502, "peer_port": 0}]

        with pytest.raises(DependencyUnavailableError):
            probe_local_snapshot(FixtureSensor(sensor_fixture_data))

    def test_negative_port_rejected_at_probe(self, sensor_fixture_data):
        sensor_fixture_data["devices"][0]["links"] = [{"port": -1, "peer_uuid": 502, "peer_port": 0}]

        with pytest.raises(DependencyUnavailableError):
            probe_local_snapshot(FixtureSensor(sensor_fixture_data))

    def test_major_only_api_version_is_supported(self, sensor_fixture_data):
        sensor_fixture_data["api_version"] = 1

        snapshot = probe_local_snapshot(FixtureSensor(sensor_fixture_data))

        assert len(snapshot) == 2

    def test_unreadable_api_version(self, sensor_fixture_data):
        sensor_fixture_data["api_version"] = "x.y"

        with pytest.raises(DependencyUnavailableError):
            DeviceCollector(FixtureSensor(sensor_fixture_data)).check_version()

    def test_sensor_failure(self, sensor_fixture_data):
        with pytest.raises(DependencyUnavailableError):
            probe_local_snapshot(FailingSensor(sensor_fixture_data))
