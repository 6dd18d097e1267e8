"""
Fabric Graph

Builds the device-link multigraph over an ordered group of devices from the
`links` each device exposes:
1. Point-to-point links become one edge per cable; a cable reported from
   both ends is merged into a single edge
2. Point-to-switch ports sharing a switch_id become one edge for every pair
   of ports on different devices
3. Links to devices outside the group are ignored

Devices are addressed by their index in the group, so every search built on
top of the graph works on plain integers.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from .models import DeviceInfo, LinkKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FabricEdge:
    """An edge between device indices `a` < `b` on ports `a_port`/`b_port`."""
    a: int
    a_port: int
    b: int
    b_port: int
    kind: LinkKind
    switch_id: Optional[str] = None

    def other(self, index: int) -> int:
        return self.b if index == self.a else self.a

    def port_of(self, index: int) -> int:
        return self.a_port if index == self.a else self.b_port

    def exclusive_ports(self) -> FrozenSet[Tuple[int, int]]:
        """(device index, port) pairs this edge occupies exclusively."""
        if self.kind == LinkKind.POINT_TO_SWITCH:
            return frozenset()
        return frozenset({(self.a, self.a_port), (self.b, self.b_port)})


class FabricGraph:
    """Undirected multigraph of device-link edges."""

    def __init__(self, devices: Sequence[DeviceInfo]):
        self.devices: Tuple[DeviceInfo, ...] = tuple(devices)
        self._edges: Dict[Tuple[int, int], List[FabricEdge]] = defaultdict(list)
        self._neighbors: List[List[int]] = [[] for _ in self.devices]
        self._build()

    @property
    def size(self) -> int:
        return len(self.devices)

    def _build(self) -> None:
        uuid_to_index = {d.uuid: i for i, d in enumerate(self.devices)}
        seen: Set[FrozenSet[Tuple[int, int]]] = set()
        switch_ports: Dict[str, List[Tuple[int, int]]] = defaultdict(list)

        for index, device in enumerate(self.devices):
            for link in device.links:
                if link.kind == LinkKind.POINT_TO_SWITCH:
                    switch_ports[link.switch_id].append((index, link.port_id))
                    continue

                peer = uuid_to_index.get(link.peer_uuid)
                if peer is None or peer == index:
                    continue

                key = frozenset({(index, link.port_id), (peer, link.peer_port)})
                if key in seen:
                    continue
                seen.add(key)
                self._add_edge(index, link.port_id, peer, link.peer_port, link.kind)

        for switch_id, ports in sorted(switch_ports.items()):
            for i, (dev_a, port_a) in enumerate(ports):
                for dev_b, port_b in ports[i + 1:]:
                    if dev_a == dev_b:
                        continue
                    self._add_edge(dev_a, port_a, dev_b, port_b,
                                   LinkKind.POINT_TO_SWITCH, switch_id)

        for key in self._edges:
            self._edges[key].sort(key=lambda e: (e.a_port, e.b_port, e.switch_id or ""))
        for neighbors in self._neighbors:
            neighbors.sort()

        logger.debug(
            f"Fabric graph: {self.size} devices, "
            f"{sum(len(v) for v in self._edges.values())} edges"
        )

    def _add_edge(
        self,
        dev_a: int,
        port_a: int,
        dev_b: int,
        port_b: int,
        kind: LinkKind,
        switch_id: Optional[str] = None
    ) -> None:
        if dev_a > dev_b:
            dev_a, port_a, dev_b, port_b = dev_b, port_b, dev_a, port_a

        pair = (dev_a, dev_b)
        if pair not in self._edges:
            self._neighbors[dev_a].append(dev_b)
            self._neighbors[dev_b].append(dev_a)
        self._edges[pair].append(FabricEdge(dev_a, port_a, dev_b, port_b, kind, switch_id))

    def neighbors(self, index: int) -> List[int]:
        """Adjacent device indices in ascending order."""
        return self._neighbors[index]

    def edges_between(self, a: int, b: int) -> List[FabricEdge]:
        """All edges joining two devices, lowest ports first."""
        if a > b:
            a, b = b, a
        return self._edges.get((a, b), [])

    def edges(self) -> List[FabricEdge]:
        return [e for key in sorted(self._edges) for e in self._edges[key]]

    def has_edge(self, a: int, a_port: int, b: int, b_port: int) -> bool:
        """Check whether a cable or switch path joins two specific ports."""
        for edge in self.edges_between(a, b):
            if edge.port_of(a) == a_port and edge.port_of(b) == b_port:
                return True
        return False

    def degree(self, index: int) -> int:
        return len(self._neighbors[index])

    def is_connected(self) -> bool:
        if self.size <= 1:
            return True

        visited = {0}
        queue = deque([0])
        while queue:
            current = queue.popleft()
            for peer in self._neighbors[current]:
                if peer not in visited:
                    visited.add(peer)
                    queue.append(peer)
        return len(visited) == self.size
