"""
Snapshot and Topology Validation

Checks machine snapshots before they enter a context:
- Empty snapshots and duplicate ordinals, UUIDs or ports (error)
- Point-to-point links that point back at the same device (error)
- Links whose peer does not report the cable back (warning)
- Links to devices on other machines (info)

Checks built topologies against the fabric:
- Every edge joins real ports
- Ring port roles (one TX and one RX per device, cycle closes)
- Tree structure (single root, no cycles, PARENT/LEAF per edge)
- Point-to-point ports used once
"""

import logging
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .fabric import FabricGraph
from .models import LinkKind, PortRole, TopologyKind
from .snapshot import MachineSnapshot

logger = logging.getLogger(__name__)


@dataclass
class ValidationIssue:
    """Represents a validation issue found in a snapshot or topology."""
    severity: str  # "error", "warning", "info"
    machine: str
    device: Optional[int]
    message: str
    port: Optional[int] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        for key in ("device", "port", "details"):
            if result[key] is None:
                del result[key]
        return result

    def location(self) -> str:
        where = self.machine or "<unlabelled>"
        if self.device is not None:
            where += f":{self.device}"
        if self.port is not None:
            where += f" port {self.port}"
        return where

    def describe(self) -> str:
        return f"{self.location()}: {self.message}"


_SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}


def _sort_issues(issues: List[ValidationIssue]) -> List[ValidationIssue]:
    issues.sort(key=lambda x: (
        _SEVERITY_ORDER.get(x.severity, 3),
        x.machine,
        -1 if x.device is None else x.device,
        -1 if x.port is None else x.port,
    ))
    return issues


class SnapshotValidator:
    """Structural checks on a machine snapshot."""

    def validate(
        self,
        snapshot: MachineSnapshot,
        known_uuids: Optional[Dict[int, str]] = None
    ) -> List[ValidationIssue]:
        """
        Validate a snapshot.

        Args:
            snapshot: Snapshot to check
            known_uuids: UUIDs already registered, mapped to their machine label

        Returns:
            Issues sorted by severity; any "error" makes the snapshot unusable
        """
        issues: List[ValidationIssue] = []
        label = snapshot.label

        if not snapshot.devices:
            issues.append(ValidationIssue("error", label, None, "Machine information has no devices"))
            return issues

        issues.extend(self._check_identities(snapshot, known_uuids or {}))
        issues.extend(self._check_ports(snapshot))
        issues.extend(self._check_links(snapshot))

        return _sort_issues(issues)

    def _check_identities(
        self,
        snapshot: MachineSnapshot,
        known_uuids: Dict[int, str]
    ) -> List[ValidationIssue]:
        issues = []
        label = snapshot.label

        ordinals = Counter(d.ordinal for d in snapshot.devices)
        for ordinal, count in ordinals.items():
            if count > 1:
                issues.append(ValidationIssue(
                    "error", label, ordinal, f"Ordinal reported by {count} devices",
                ))

        uuids = Counter(d.uuid for d in snapshot.devices)
        for device in snapshot.devices:
            if uuids[device.uuid] > 1:
                issues.append(ValidationIssue(
                    "error", label, device.ordinal,
                    f"UUID {device.uuid} reported by {uuids[device.uuid]} devices",
                ))
            owner = known_uuids.get(device.uuid)
            if owner is not None:
                issues.append(ValidationIssue(
                    "error", label, device.ordinal,
                    f"UUID {device.uuid} already registered by machine {owner}",
                    details={"uuid": device.uuid, "machine": owner},
                ))

        return issues

    def _check_ports(self, snapshot: MachineSnapshot) -> List[ValidationIssue]:
        issues = []
        for device in snapshot.devices:
            ports = Counter(link.port_id for link in device.links)
            for port_id, count in ports.items():
                if count > 1:
                    issues.append(ValidationIssue(
                        "error", snapshot.label, device.ordinal,
                        f"Port listed {count} times", port=port_id,
                    ))
        return issues

    def _check_links(self, snapshot: MachineSnapshot) -> List[ValidationIssue]:
        """Check point-to-point links for self references and one-sided reports."""
        issues = []
        label = snapshot.label
        by_uuid = {d.uuid: d for d in snapshot.devices}

        for device in snapshot.devices:
            for link in device.links:
                if link.kind != LinkKind.POINT_TO_POINT:
                    continue

                if link.peer_uuid == device.uuid:
                    issues.append(ValidationIssue(
                        "error", label, device.ordinal,
                        "Point-to-point link loops back to the same device", port=link.port_id,
                    ))
                    continue

                peer = by_uuid.get(link.peer_uuid)
                if peer is None:
                    issues.append(ValidationIssue(
                        "info", label, device.ordinal,
                        f"Peer UUID {link.peer_uuid} is not on this machine",
                        port=link.port_id,
                        details={"peer_uuid": link.peer_uuid, "peer_port": link.peer_port},
                    ))
                    continue

                back = peer.get_link(link.peer_port)
                if back is None or back.peer_uuid != device.uuid or back.peer_port != link.port_id:
                    issues.append(ValidationIssue(
                        "warning", label, device.ordinal,
                        f"Unidirectional link to {label}:{peer.ordinal} port {link.peer_port} - "
                        f"only one side reports the cable",
                        port=link.port_id,
                        details={"peer_ordinal": peer.ordinal, "peer_port": link.peer_port},
                    ))

        return issues


class TopologyValidator:
    """Checks a topology against the fabric of its devices."""

    def validate(self, topology) -> List[ValidationIssue]:
        """
        Validate a ring or tree topology.

        Args:
            topology: Topology returned by find_topologies

        Returns:
            Issues sorted by severity; an empty list means the topology is valid
        """
        devices = topology.devices
        graph = FabricGraph(devices)
        issues: List[ValidationIssue] = []

        issues.extend(self._check_edges(topology, graph))
        issues.extend(self._check_port_reuse(topology))
        if topology.kind == TopologyKind.RING:
            issues.extend(self._check_ring(topology))
        else:
            issues.extend(self._check_tree(topology))

        errors = sum(1 for i in issues if i.severity == "error")
        logger.debug(f"Validated {topology!r}: {len(issues)} issues ({errors} errors)")
        return _sort_issues(issues)

    def _issue(self, topology, index: int, message: str, port: Optional[int] = None) -> ValidationIssue:
        device = topology.devices[index]
        return ValidationIssue("error", device.machine_label, device.ordinal, message, port=port)

    def _check_edges(self, topology, graph: FabricGraph) -> List[ValidationIssue]:
        issues = []
        for edge in topology.edges:
            if not graph.has_edge(edge.src, edge.src_port, edge.dst, edge.dst_port):
                peer = topology.devices[edge.dst]
                issues.append(self._issue(
                    topology, edge.src,
                    f"No link to {peer} port {edge.dst_port}", port=edge.src_port,
                ))
        return issues

    def _check_port_reuse(self, topology) -> List[ValidationIssue]:
        issues = []
        for index in range(topology.size):
            _, ports = topology.get_node(index)
            counts = Counter(p.port_id for p in ports if p.kind == LinkKind.POINT_TO_POINT)
            for port_id, count in counts.items():
                if count > 1:
                    issues.append(self._issue(
                        topology, index, f"Point-to-point port used {count} times", port=port_id,
                    ))
        return issues

    def _check_ring(self, topology) -> List[ValidationIssue]:
        issues = []
        n = topology.size

        if sorted(topology.order) != list(range(n)):
            return [ValidationIssue("error", "", None, "Ring order does not visit every device once")]

        for index in range(n):
            _, ports = topology.get_node(index)
            roles = Counter(p.role for p in ports)
            if roles[PortRole.TX] != 1 or roles[PortRole.RX] != 1 or len(ports) != 2:
                issues.append(self._issue(
                    topology, index,
                    f"Ring device has {roles[PortRole.TX]} TX and {roles[PortRole.RX]} RX ports",
                ))

        hops = {(e.src, e.dst) for e in topology.edges}
        for position, src in enumerate(topology.order):
            dst = topology.order[(position + 1) % n]
            if (src, dst) not in hops:
                issues.append(self._issue(
                    topology, src, f"Ring does not continue to {topology.devices[dst]}",
                ))

        return issues

    def _check_tree(self, topology) -> List[ValidationIssue]:
        issues = []
        parents = topology.parent
        roots = [i for i, p in enumerate(parents) if p is None]
        if len(roots) != 1:
            return [ValidationIssue("error", "", None, f"Tree has {len(roots)} roots")]

        for index in range(topology.size):
            seen = set()
            current: Optional[int] = index
            while current is not None:
                if current in seen:
                    issues.append(self._issue(topology, index, "Parent chain contains a cycle"))
                    break
                seen.add(current)
                current = parents[current]

            _, ports = topology.get_node(index)
            roles = Counter(p.role for p in ports)
            expected_parent = 0 if parents[index] is None else 1
            if roles[PortRole.PARENT] != expected_parent:
                issues.append(self._issue(
                    topology, index, f"Tree device has {roles[PortRole.PARENT]} PARENT ports",
                ))
            if roles[PortRole.LEAF] != len(topology.children(index)):
                issues.append(self._issue(
                    topology, index,
                    f"Tree device has {roles[PortRole.LEAF]} LEAF ports for "
                    f"{len(topology.children(index))} children",
                ))

        return issues
