"""
Topology Builder

Finds rings and trees over the devices of a DevSet and assigns port roles:
- Ring: Hamiltonian cycles of the fabric graph. A cycle and its rotations
  and reflections count once. Each device gets a TX port (edge to the next
  device) and an RX port (edge from the previous device).
- Tree: for every root, a breadth-first and a depth-first spanning tree.
  Each non-root device gets a PARENT port; every child edge adds a LEAF port.

Point-to-point ports carry at most one edge per topology. Switch ports may
carry several.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import (
    Any, Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple
)

from .errors import (
    DevSetNotInitializedError,
    InvalidArgumentError,
    TopologyNotInitializedError,
)
from .fabric import FabricEdge, FabricGraph
from .models import DeviceInfo, LinkKind, PortInfo, PortRole, TopologyKind

logger = logging.getLogger(__name__)

# (order, edges) for rings; (root, parents, parent edges) for trees
RingLayout = Tuple[Tuple[int, ...], Tuple[FabricEdge, ...]]
TreeLayout = Tuple[int, Tuple[Optional[int], ...], Tuple[Optional[FabricEdge], ...]]


@dataclass(frozen=True)
class TopologyEdge:
    """A directed topology edge between device indices of the DevSet."""
    src: int
    src_port: int
    dst: int
    dst_port: int
    kind: LinkKind

    def to_dict(self) -> Dict[str, Any]:
        return {
            "src": self.src,
            "src_port": self.src_port,
            "dst": self.dst,
            "dst_port": self.dst_port,
            "kind": self.kind.value,
        }


class Topology:
    """
    An ordered, port-assigned ring or tree over a DevSet.

    Device indices refer to the DevSet's device ordering. Tree structure is
    kept as a parent index per device.
    """

    def __init__(
        self,
        devset,
        kind: TopologyKind,
        ports: Sequence[Tuple[PortInfo, ...]],
        edges: Sequence[TopologyEdge],
        order: Sequence[int] = (),
        parent: Sequence[Optional[int]] = ()
    ):
        self._devset = devset
        self.kind = kind
        self._devices: Tuple[DeviceInfo, ...] = tuple(devset.devices)
        self._ports: Tuple[Tuple[PortInfo, ...], ...] = tuple(ports)
        self.edges: Tuple[TopologyEdge, ...] = tuple(edges)
        self.order: Tuple[int, ...] = tuple(order)
        self.parent: Tuple[Optional[int], ...] = tuple(parent)

    @property
    def alive(self) -> bool:
        return self._devset.alive

    def ensure_alive(self) -> None:
        if not self._devset.alive:
            raise TopologyNotInitializedError("Topology's DevSet is no longer valid")

    @property
    def size(self) -> int:
        return len(self._devices)

    def __len__(self) -> int:
        return self.size

    @property
    def devices(self) -> Tuple[DeviceInfo, ...]:
        self.ensure_alive()
        return self._devices

    @property
    def root(self) -> Optional[int]:
        if self.kind != TopologyKind.TREE:
            return None
        for index, parent in enumerate(self.parent):
            if parent is None:
                return index
        return None

    def children(self, index: int) -> List[int]:
        """Child device indices of a tree node, in edge order."""
        return [e.dst for e in self.edges if e.src == index] if self.kind == TopologyKind.TREE else []

    def get_node(self, index: int) -> Tuple[DeviceInfo, Tuple[PortInfo, ...]]:
        """
        Get a device and the ports it uses in this topology.

        Args:
            index: Device index in the DevSet ordering

        Raises:
            TopologyNotInitializedError: If the topology is no longer valid
            InvalidArgumentError: If index is out of range
        """
        self.ensure_alive()
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < self.size:
            raise InvalidArgumentError(f"Device index {index!r} out of range [0, {self.size})")
        return self._devices[index], self._ports[index]

    def nodes(self) -> Iterator[Tuple[int, DeviceInfo, Tuple[PortInfo, ...]]]:
        """
        Iterate (index, device, ports) in traversal order.

        Rings follow the cycle; trees are walked breadth first from the root.
        Stop consuming to stop the walk.
        """
        self.ensure_alive()
        if self.kind == TopologyKind.RING:
            sequence: Sequence[int] = self.order
        else:
            sequence = self._breadth_first()
        for index in sequence:
            yield index, self._devices[index], self._ports[index]

    def _breadth_first(self) -> List[int]:
        root = self.root
        if root is None:
            return []
        walk = []
        queue = deque([root])
        while queue:
            current = queue.popleft()
            walk.append(current)
            queue.extend(self.children(current))
        return walk

    def exclusive_ports(self) -> FrozenSet[Tuple[int, int]]:
        """(device uuid, port) pairs of point-to-point ports in use."""
        used = set()
        for device, ports in zip(self._devices, self._ports):
            for port in ports:
                if port.kind == LinkKind.POINT_TO_POINT:
                    used.add((device.uuid, port.port_id))
        return frozenset(used)

    def to_dict(self) -> Dict[str, Any]:
        nodes = []
        for index, (device, ports) in enumerate(zip(self._devices, self._ports)):
            node: Dict[str, Any] = {
                "index": index,
                "machine": device.machine_label,
                "ordinal": device.ordinal,
                "uuid": device.uuid,
                "ports": [p.to_dict() for p in ports],
            }
            if self.kind == TopologyKind.TREE:
                node["parent"] = self.parent[index]
            nodes.append(node)

        result: Dict[str, Any] = {"kind": self.kind.value, "nodes": nodes}
        if self.kind == TopologyKind.RING:
            result["order"] = list(self.order)
        else:
            result["root"] = self.root
        result["edges"] = [e.to_dict() for e in self.edges]
        return result

    def __repr__(self) -> str:
        if self.kind == TopologyKind.RING:
            shape = "->".join(str(self._devices[i]) for i in self.order)
        else:
            shape = f"root={self._devices[self.root]}" if self.root is not None else "empty"
        return f"Topology({self.kind.value}: {shape})"


class TopologyBuilder:
    """Searches ring and tree layouts over an ordered group of devices."""

    def __init__(self, devices: Sequence[DeviceInfo]):
        self.graph = FabricGraph(devices)

    def quick_reject(self, kind: TopologyKind) -> bool:
        """Cheap necessary conditions; True means no topology can exist."""
        n = self.graph.size
        if n == 0:
            return True
        if not self.graph.is_connected():
            return True
        if kind == TopologyKind.RING:
            if n == 1:
                return True
            if n == 2:
                return len(self.graph.edges_between(0, 1)) < 2
            return any(self.graph.degree(i) < 2 for i in range(n))
        return False

    def has_topology(self, kind: TopologyKind) -> bool:
        """Check whether at least one topology of `kind` exists."""
        if self.quick_reject(kind):
            return False
        if kind == TopologyKind.RING:
            return next(self.iter_rings(), None) is not None
        return next(self.iter_trees(), None) is not None

    # Rings

    def iter_rings(self) -> Iterator[RingLayout]:
        """Yield each distinct ring as (device order, edge per hop)."""
        n = self.graph.size
        if n < 2:
            return
        if n == 2:
            edges = self._assign_ring_edges((0, 1))
            if edges is not None:
                yield (0, 1), edges
            return

        visited = [False] * n
        visited[0] = True
        yield from self._extend_ring([0], visited)

    def _extend_ring(self, path: List[int], visited: List[bool]) -> Iterator[RingLayout]:
        n = self.graph.size
        last = path[-1]

        if len(path) == n:
            # path[1] < path[-1] keeps one of the two directions
            if path[1] < last and 0 in self.graph.neighbors(last):
                edges = self._assign_ring_edges(tuple(path))
                if edges is not None:
                    yield tuple(path), edges
            return

        for peer in self.graph.neighbors(last):
            if visited[peer]:
                continue
            visited[peer] = True
            path.append(peer)
            yield from self._extend_ring(path, visited)
            path.pop()
            visited[peer] = False

    def _assign_ring_edges(self, order: Tuple[int, ...]) -> Optional[Tuple[FabricEdge, ...]]:
        """Pick one edge per hop without reusing an edge or a point-to-point port."""
        n = len(order)
        hops = [(order[i], order[(i + 1) % n]) for i in range(n)]
        chosen: List[FabricEdge] = []
        used: Set[Tuple[int, int]] = set()

        def place(hop: int) -> bool:
            if hop == len(hops):
                return True
            src, dst = hops[hop]
            for edge in self.graph.edges_between(src, dst):
                if edge in chosen:
                    continue
                ports = edge.exclusive_ports()
                if ports & used:
                    continue
                chosen.append(edge)
                used.update(ports)
                if place(hop + 1):
                    return True
                chosen.pop()
                used.difference_update(ports)
            return False

        if place(0):
            return tuple(chosen)
        return None

    # Trees

    def iter_trees(self) -> Iterator[TreeLayout]:
        """Yield distinct spanning trees as (root, parents, parent edges)."""
        n = self.graph.size
        if n == 0:
            return

        seen = set()
        for root in range(n):
            for strategy in (self._breadth_first_tree, self._depth_first_tree):
                layout = strategy(root)
                if layout is None:
                    continue
                key = (layout[0], layout[1], layout[2])
                if key in seen:
                    continue
                seen.add(key)
                yield layout

    def _pick_edge(self, a: int, b: int, used: Set[Tuple[int, int]]) -> Optional[FabricEdge]:
        for edge in self.graph.edges_between(a, b):
            if not edge.exclusive_ports() & used:
                return edge
        return None

    def _breadth_first_tree(self, root: int) -> Optional[TreeLayout]:
        n = self.graph.size
        parents: List[Optional[int]] = [None] * n
        parent_edges: List[Optional[FabricEdge]] = [None] * n
        visited = [False] * n
        used: Set[Tuple[int, int]] = set()

        visited[root] = True
        queue = deque([root])
        while queue:
            current = queue.popleft()
            for peer in self.graph.neighbors(current):
                if visited[peer]:
                    continue
                edge = self._pick_edge(current, peer, used)
                if edge is None:
                    continue
                visited[peer] = True
                parents[peer] = current
                parent_edges[peer] = edge
                used.update(edge.exclusive_ports())
                queue.append(peer)

        if not all(visited):
            return None
        return root, tuple(parents), tuple(parent_edges)

    def _depth_first_tree(self, root: int) -> Optional[TreeLayout]:
        n = self.graph.size
        parents: List[Optional[int]] = [None] * n
        parent_edges: List[Optional[FabricEdge]] = [None] * n
        visited = [False] * n
        used: Set[Tuple[int, int]] = set()

        def visit(current: int) -> None:
            visited[current] = True
            for peer in self.graph.neighbors(current):
                if visited[peer]:
                    continue
                edge = self._pick_edge(current, peer, used)
                if edge is None:
                    continue
                parents[peer] = current
                parent_edges[peer] = edge
                used.update(edge.exclusive_ports())
                visit(peer)

        visit(root)
        if not all(visited):
            return None
        return root, tuple(parents), tuple(parent_edges)


def _ring_topology(devset, layout: RingLayout) -> Topology:
    order, hops = layout
    n = len(order)
    ports: List[List[PortInfo]] = [[] for _ in range(n)]
    edges = []

    for position, src in enumerate(order):
        dst = order[(position + 1) % n]
        edge = hops[position]
        src_port, dst_port = edge.port_of(src), edge.port_of(dst)

        ports[src].append(PortInfo(src_port, edge.kind, PortRole.TX))
        ports[dst].append(PortInfo(dst_port, edge.kind, PortRole.RX))
        edges.append(TopologyEdge(src, src_port, dst, dst_port, edge.kind))

    # TX first, then RX
    ordered = [tuple(sorted(p, key=lambda info: info.role != PortRole.TX)) for p in ports]
    return Topology(devset, TopologyKind.RING, ordered, edges, order=order)


def _tree_topology(devset, layout: TreeLayout) -> Topology:
    root, parents, parent_edges = layout
    n = len(parents)
    parent_ports: List[Optional[PortInfo]] = [None] * n
    leaf_ports: List[List[PortInfo]] = [[] for _ in range(n)]
    edges = []

    for child in _tree_walk(root, parents):
        parent = parents[child]
        if parent is None:
            continue
        edge = parent_edges[child]
        parent_port, child_port = edge.port_of(parent), edge.port_of(child)
        leaf_ports[parent].append(PortInfo(parent_port, edge.kind, PortRole.LEAF))
        parent_ports[child] = PortInfo(child_port, edge.kind, PortRole.PARENT)
        edges.append(TopologyEdge(parent, parent_port, child, child_port, edge.kind))

    ports = []
    for index in range(n):
        own = [parent_ports[index]] if parent_ports[index] is not None else []
        ports.append(tuple(own + leaf_ports[index]))
    return Topology(devset, TopologyKind.TREE, ports, edges, parent=parents)


def _tree_walk(root: int, parents: Sequence[Optional[int]]) -> List[int]:
    children: Dict[int, List[int]] = {}
    for index, parent in enumerate(parents):
        if parent is not None:
            children.setdefault(parent, []).append(index)

    walk = []
    queue = deque([root])
    while queue:
        current = queue.popleft()
        walk.append(current)
        queue.extend(children.get(current, []))
    return walk


def find_topologies(devset, kind: TopologyKind, max_results: Optional[int] = None) -> List[Topology]:
    """
    Find ring or tree topologies over a DevSet.

    Args:
        devset: DevSet returned by a DevSet search
        kind: RING or TREE
        max_results: Stop after this many topologies (None for all)

    Returns:
        Topologies in discovery order; empty when none exist

    Raises:
        DevSetNotInitializedError: If the DevSet is no longer valid
        InvalidArgumentError: If kind or max_results is invalid
    """
    if not devset.alive:
        raise DevSetNotInitializedError("DevSet is no longer valid")

    kind = parse_kind(kind)
    if max_results is not None and (isinstance(max_results, bool) or max_results < 1):
        raise InvalidArgumentError(f"max_results must be positive, got {max_results!r}")

    builder = TopologyBuilder(devset.devices)
    topologies: List[Topology] = []
    if builder.quick_reject(kind):
        logger.debug(f"No {kind.value} possible over {devset}")
        return topologies

    if kind == TopologyKind.RING:
        for layout in builder.iter_rings():
            topologies.append(_ring_topology(devset, layout))
            if max_results is not None and len(topologies) >= max_results:
                break
    else:
        for layout in builder.iter_trees():
            topologies.append(_tree_topology(devset, layout))
            if max_results is not None and len(topologies) >= max_results:
                break

    logger.debug(f"Found {len(topologies)} {kind.value} topologies over {devset}")
    return topologies


def find_non_conflicting(topologies: Sequence[Topology]) -> List[Topology]:
    """
    Greedily select topologies that share no point-to-point port.

    Topologies are considered in the given order; one is kept when none of
    its point-to-point ports is used by a topology kept before it.
    """
    used: Set[Tuple[int, int]] = set()
    selected = []
    for topology in topologies:
        ports = topology.exclusive_ports()
        if ports & used:
            continue
        used.update(ports)
        selected.append(topology)
    return selected


def parse_kind(kind: Any) -> TopologyKind:
    """Accept a TopologyKind or its name ("ring", "tree")."""
    if isinstance(kind, TopologyKind):
        return kind
    try:
        return TopologyKind(str(kind).lower())
    except ValueError:
        raise InvalidArgumentError(f"Unknown topology kind: {kind!r}")
