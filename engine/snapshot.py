"""
Machine Snapshot

A machine's device descriptors bundled under a machine label, plus the JSON
exchange format used to ship snapshots between machines and the file
persistence helpers.

Exchange format:
    {
      "version": "1.0",
      "label": "node0",
      "devices": [
        {"ordinal": 0, "uuid": 1001, "board_serial": 0,
         "motherboard_serial": 0, "slot_id": 0,
         "links": [{"port": 0, "kind": "point-to-point",
                    "peer_uuid": 1002, "peer_port": 1},
                   {"port": 1, "kind": "point-to-switch",
                    "switch_id": "sw0"}]}
      ]
    }
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Tuple

from .errors import (
    MalformedSnapshotError,
    SnapshotFileEmptyError,
    SnapshotFileError,
    SnapshotPathError,
    UnsupportedVersionError,
)
from .models import DeviceInfo, DeviceLink, LinkKind
from .version import SNAPSHOT_FORMAT_VERSION

logger = logging.getLogger(__name__)

MAX_U64 = 2 ** 64 - 1


@dataclass(frozen=True)
class MachineSnapshot:
    """Device descriptors of one machine."""
    label: str
    devices: Tuple[DeviceInfo, ...] = field(default_factory=tuple)
    version: str = SNAPSHOT_FORMAT_VERSION

    def __len__(self) -> int:
        return len(self.devices)

    def get_device(self, ordinal: int) -> DeviceInfo:
        for device in self.devices:
            if device.ordinal == ordinal:
                return device
        raise KeyError(ordinal)

    def find_uuid(self, uuid: int) -> DeviceInfo:
        for device in self.devices:
            if device.uuid == uuid:
                return device
        raise KeyError(uuid)

    def relabel(self, label: str) -> "MachineSnapshot":
        """Return a copy whose devices belong to `label`."""
        devices = tuple(replace(d, machine_label=label) for d in self.devices)
        return replace(self, label=label, devices=devices)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "label": self.label,
            "devices": [d.to_dict() for d in self.devices],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MachineSnapshot":
        """
        Build a snapshot from its exchange format dictionary.

        Raises:
            UnsupportedVersionError: If the major format version differs
            MalformedSnapshotError: If fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise MalformedSnapshotError("Machine information must be a JSON object")

        version = str(data.get("version", ""))
        _check_version(version)

        label = data.get("label", "")
        if not isinstance(label, str):
            raise MalformedSnapshotError("Machine label must be a string")

        raw_devices = data.get("devices")
        if not isinstance(raw_devices, list):
            raise MalformedSnapshotError("Machine information has no device list")

        devices = tuple(_parse_device(label, raw, i) for i, raw in enumerate(raw_devices))
        return cls(label=label, devices=devices, version=version)

    @classmethod
    def from_json(cls, text: str) -> "MachineSnapshot":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise MalformedSnapshotError(f"Machine information is not valid JSON: {e}")
        return cls.from_dict(data)


def _check_version(version: str) -> None:
    try:
        major = int(version.split(".")[0])
    except ValueError:
        raise UnsupportedVersionError(f"Invalid machine information version: {version!r}")

    supported = int(SNAPSHOT_FORMAT_VERSION.split(".")[0])
    if major != supported:
        raise UnsupportedVersionError(
            f"Machine information version {version} is not compatible with {SNAPSHOT_FORMAT_VERSION}"
        )


def _get_int(raw: Dict[str, Any], key: str, where: str, default: Any = None) -> int:
    value = raw.get(key, default)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedSnapshotError(f"{where}: field '{key}' must be an integer, got {value!r}")
    if value < 0 or value > MAX_U64:
        raise MalformedSnapshotError(f"{where}: field '{key}' out of range: {value}")
    return value


def _parse_link(raw: Any, where: str) -> DeviceLink:
    if not isinstance(raw, dict):
        raise MalformedSnapshotError(f"{where}: link entry must be an object")

    port_id = _get_int(raw, "port", where)
    try:
        kind = LinkKind(raw.get("kind", LinkKind.POINT_TO_POINT.value))
    except ValueError:
        raise MalformedSnapshotError(f"{where}: unknown link kind {raw.get('kind')!r}")

    if kind == LinkKind.POINT_TO_SWITCH:
        switch_id = raw.get("switch_id")
        if not isinstance(switch_id, str) or not switch_id:
            raise MalformedSnapshotError(f"{where}: switch link on port {port_id} has no switch_id")
        return DeviceLink(port_id=port_id, kind=kind, switch_id=switch_id)

    peer_uuid = _get_int(raw, "peer_uuid", f"{where} port {port_id}")
    peer_port = _get_int(raw, "peer_port", f"{where} port {port_id}")
    return DeviceLink(port_id=port_id, kind=kind, peer_uuid=peer_uuid, peer_port=peer_port)


def _parse_device(label: str, raw: Any, index: int) -> DeviceInfo:
    where = f"device #{index}"
    if not isinstance(raw, dict):
        raise MalformedSnapshotError(f"{where}: device entry must be an object")

    raw_links = raw.get("links", [])
    if not isinstance(raw_links, list):
        raise MalformedSnapshotError(f"{where}: links must be a list")

    return DeviceInfo(
        machine_label=label,
        ordinal=_get_int(raw, "ordinal", where),
        uuid=_get_int(raw, "uuid", where),
        board_serial=_get_int(raw, "board_serial", where, 0),
        motherboard_serial=_get_int(raw, "motherboard_serial", where, 0),
        slot_id=_get_int(raw, "slot_id", where, 0),
        links=tuple(_parse_link(link, where) for link in raw_links),
    )


def save_machine_info(snapshot: MachineSnapshot, path: str, indent: int = 2) -> None:
    """
    Save machine information to a JSON file.

    Args:
        snapshot: Snapshot to write
        path: Output file path; parent directories are created
        indent: JSON indentation level

    Raises:
        SnapshotPathError: If the path is empty or cannot be written
    """
    if not path:
        raise SnapshotPathError("Machine information file path is empty")

    path = os.path.expanduser(path)
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(snapshot.to_dict(), f, indent=indent)
    except OSError as e:
        raise SnapshotPathError(f"Cannot write machine information to {path}: {e}")

    logger.info(f"Machine information for {snapshot.label or '<unlabelled>'} written to {path}")


def load_machine_info(path: str) -> MachineSnapshot:
    """
    Load machine information from a JSON file.

    Args:
        path: Path written by save_machine_info (or by a peer)

    Returns:
        Parsed MachineSnapshot

    Raises:
        SnapshotPathError: If the file does not exist
        SnapshotFileEmptyError: If the file has no content
        SnapshotFileError: If the file cannot be read or is not JSON
        UnsupportedVersionError: If the format version is incompatible
        MalformedSnapshotError: If the content is structurally invalid
    """
    if not path:
        raise SnapshotPathError("Machine information file path is empty")

    path = os.path.expanduser(path)
    if not os.path.isfile(path):
        raise SnapshotPathError(f"Machine information file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotFileError(f"Failed to read machine information file: {e}")

    if not content.strip():
        raise SnapshotFileEmptyError(f"Machine information file is empty: {path}")

    try:
        data = json.loads(content)
    except ValueError as e:
        raise SnapshotFileError(f"Failed to parse machine information file {path}: {e}")

    snapshot = MachineSnapshot.from_dict(data)
    logger.debug(f"Loaded {len(snapshot)} devices from {path}")
    return snapshot

