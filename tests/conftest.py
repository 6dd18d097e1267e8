"""pytest configuration and shared fixtures."""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

# Configure logging
logging.basicConfig(level=logging.INFO)

# Set up path for project imports
root = Path(__file__).parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from engine import DeviceInfo, DeviceLink, LinkKind, MachineSnapshot, TopologyContext  # noqa: E402

Endpoint = Tuple[int, int]  # (uuid, port)


def build_snapshot(
    label: str,
    uuids: Sequence[int],
    cables: Sequence[Tuple[Endpoint, Endpoint]] = (),
    switches: Optional[Dict[int, List[Tuple[int, str]]]] = None
) -> MachineSnapshot:
    """
    Build a snapshot whose device ordinals follow the order of `uuids`.

    Each cable is reported by both of its ends when both ends are listed in
    `uuids`; cables to other machines are reported by the local end only.
    `switches` maps a uuid to its (port, switch_id) attachments.
    """
    links: Dict[int, List[DeviceLink]] = {uuid: [] for uuid in uuids}
    for (uuid_a, port_a), (uuid_b, port_b) in cables:
        if uuid_a in links:
            links[uuid_a].append(DeviceLink(port_a, peer_uuid=uuid_b, peer_port=port_b))
        if uuid_b in links:
            links[uuid_b].append(DeviceLink(port_b, peer_uuid=uuid_a, peer_port=port_a))
    for uuid, attachments in (switches or {}).items():
        for port, switch_id in attachments:
            links[uuid].append(DeviceLink(port, kind=LinkKind.POINT_TO_SWITCH, switch_id=switch_id))

    devices = tuple(
        DeviceInfo(
            machine_label=label,
            ordinal=ordinal,
            uuid=uuid,
            board_serial=uuid + 5000,
            links=tuple(sorted(links[uuid], key=lambda l: l.port_id)),
        )
        for ordinal, uuid in enumerate(uuids)
    )
    return MachineSnapshot(label=label, devices=devices)


def ring_cables(uuids: Sequence[int]) -> List[Tuple[Endpoint, Endpoint]]:
    """Port 0 of each device cabled to port 1 of the next, closing the cycle."""
    n = len(uuids)
    return [((uuids[i], 0), (uuids[(i + 1) % n], 1)) for i in range(n)]


@pytest.fixture
def make_snapshot():
    """Factory fixture building snapshots from cable lists."""
    return build_snapshot


@pytest.fixture
def two_ring_snapshot():
    """Eight devices: ordinals 0-3 cabled as one ring, ordinals 4-7 as another."""
    uuids = list(range(100, 108))
    cables = ring_cables(uuids[:4]) + ring_cables(uuids[4:])
    return build_snapshot("node0", uuids, cables)


@pytest.fixture
def ring4_snapshot():
    uuids = [10, 11, 12, 13]
    return build_snapshot("node0", uuids, ring_cables(uuids))


@pytest.fixture
def cross_machine_snapshots():
    """
    Two machines with two devices each forming one four-device ring:
    node0 uuid 1 - 2, node1 uuid 3 - 4, cabled 2 - 3 and 4 - 1 across.
    """
    cables = ring_cables([1, 2, 3, 4])
    return build_snapshot("node0", [1, 2], cables), build_snapshot("node1", [3, 4], cables)


@pytest.fixture
def switch_snapshot():
    """Three devices whose port 0 attaches to one switch."""
    return build_snapshot(
        "node0", [21, 22, 23],
        switches={21: [(0, "sw0")], 22: [(0, "sw0")], 23: [(0, "sw0")]},
    )


@pytest.fixture
def context():
    ctx = TopologyContext()
    yield ctx
    if ctx.alive:
        ctx.destroy()


@pytest.fixture
def sensor_fixture_data():
    """Raw sensor description of a two-device machine."""
    return {
        "api_version": "1.2",
        "hostname": "probe-host",
        "devices": [
            {
                "uuid": 501,
                "board_serial": 9001,
                "motherboard_serial": 7001,
                "slot_id": 1,
                "links": [
                    {"port": 0, "kind": "point-to-point", "peer_uuid": 502, "peer_port": 0},
                    {"port": 1, "kind": "point-to-switch", "switch_id": "sw-a"},
                ],
            },
            {
                "uuid": 502,
                "links": [
                    {"port": 0, "peer_uuid": 501, "peer_port": 0},
                ],
            },
        ],
    }
