"""
Device Data Model

Immutable value types shared by the topology engine:
- DeviceLink: one port of a device and what it is wired to
- DeviceInfo: identity and link endpoints of one accelerator device
- PortInfo: a port used by a topology, tagged with its role
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class LinkKind(str, Enum):
    """How a device port is attached to the fabric."""
    POINT_TO_POINT = "point-to-point"
    POINT_TO_SWITCH = "point-to-switch"


class TopologyKind(str, Enum):
    """Supported topology shapes."""
    RING = "ring"
    TREE = "tree"


class PortRole(str, Enum):
    """Role of a port inside a topology."""
    TX = "TX"
    RX = "RX"
    LEAF = "LEAF"
    PARENT = "PARENT"


@dataclass(frozen=True)
class DeviceLink:
    """
    A single device-link port.

    Point-to-point ports name the peer device (by UUID) and the peer port.
    Point-to-switch ports name the switch they are attached to; every other
    port attached to the same switch is reachable through it.
    """
    port_id: int
    kind: LinkKind = LinkKind.POINT_TO_POINT
    peer_uuid: Optional[int] = None
    peer_port: Optional[int] = None
    switch_id: Optional[str] = None

    @property
    def is_switch(self) -> bool:
        return self.kind == LinkKind.POINT_TO_SWITCH

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"port": self.port_id, "kind": self.kind.value}
        if self.is_switch:
            result["switch_id"] = self.switch_id
        else:
            result["peer_uuid"] = self.peer_uuid
            result["peer_port"] = self.peer_port
        return result


@dataclass(frozen=True)
class DeviceInfo:
    """Identity and link endpoints of one accelerator device."""
    machine_label: str
    ordinal: int
    uuid: int
    board_serial: int = 0
    motherboard_serial: int = 0
    slot_id: int = 0
    links: Tuple[DeviceLink, ...] = field(default_factory=tuple)

    @property
    def key(self) -> Tuple[str, int]:
        """(machine_label, ordinal), unique within a context."""
        return (self.machine_label, self.ordinal)

    def get_link(self, port_id: int) -> Optional[DeviceLink]:
        for link in self.links:
            if link.port_id == port_id:
                return link
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ordinal": self.ordinal,
            "uuid": self.uuid,
            "board_serial": self.board_serial,
            "motherboard_serial": self.motherboard_serial,
            "slot_id": self.slot_id,
            "links": [link.to_dict() for link in self.links],
        }

    def __str__(self) -> str:
        return f"{self.machine_label}:{self.ordinal}"


@dataclass(frozen=True)
class PortInfo:
    """A device port used by a topology."""
    port_id: int
    kind: LinkKind
    role: PortRole

    def to_dict(self) -> Dict[str, Any]:
        return {
            "port": self.port_id,
            "kind": self.kind.value,
            "role": self.role.value,
        }
