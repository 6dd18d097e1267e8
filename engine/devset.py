"""
DevSet Finder

Partitions the eligible devices of a Query into disjoint DevSets:
1. Build the eligible pool of every machine with a device count target
2. Enumerate candidate combinations lexicographically (machines in label
   order, ordinals ascending)
3. Emit the first candidate over which a topology of the requested kind
   exists, remove its devices from the pools and repeat
"""

import itertools
import logging
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from .errors import (
    DevSetNotInitializedError,
    InsufficientDevicesError,
    InvalidArgumentError,
)
from .models import DeviceInfo, TopologyKind
from .topology import Topology, TopologyBuilder, find_topologies, parse_kind

logger = logging.getLogger(__name__)


class DevSet:
    """
    An unordered set of devices selected for one collective topology.

    Devices are exposed in a fixed order (machines in label order, ordinals
    ascending); topology device indices refer to this order.
    """

    def __init__(self, query, devices: Sequence[DeviceInfo]):
        self._query = query
        self._devices: Tuple[DeviceInfo, ...] = tuple(devices)

    @property
    def alive(self) -> bool:
        return self._query.alive

    def ensure_alive(self) -> None:
        if not self._query.alive:
            raise DevSetNotInitializedError("DevSet's query is no longer valid")

    @property
    def devices(self) -> Tuple[DeviceInfo, ...]:
        self.ensure_alive()
        return self._devices

    @property
    def size(self) -> int:
        return len(self._devices)

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[DeviceInfo]:
        return iter(self.devices)

    def __contains__(self, device: DeviceInfo) -> bool:
        return device in self._devices

    def get_device(self, index: int) -> DeviceInfo:
        """
        Get the device at `index` of the DevSet ordering.

        Raises:
            DevSetNotInitializedError: If the DevSet is no longer valid
            InvalidArgumentError: If index is out of range
        """
        self.ensure_alive()
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < self.size:
            raise InvalidArgumentError(f"Device index {index!r} out of range [0, {self.size})")
        return self._devices[index]

    def ordinals(self, label: str) -> List[int]:
        """Ordinals of the devices taken from one machine."""
        return [d.ordinal for d in self.devices if d.machine_label == label]

    def find_topologies(self, kind: TopologyKind, max_results: Optional[int] = None) -> List[Topology]:
        return find_topologies(self, kind, max_results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "devices": [
                {"machine": d.machine_label, "ordinal": d.ordinal, "uuid": d.uuid}
                for d in self._devices
            ],
        }

    def __repr__(self) -> str:
        return "DevSet({" + ", ".join(str(d) for d in self._devices) + "})"


class DevSetFinder:
    """
    Finds disjoint, topology-feasible DevSets for a Query.

    Feasibility results are cached per device combination, so restarting the
    enumeration after each emitted DevSet does not repeat searches.
    """

    def __init__(self, query):
        self.query = query
        self._feasible: Dict[Tuple[FrozenSet[Tuple[str, int]], TopologyKind], bool] = {}

    def find(self, kind: TopologyKind, max_results: int) -> List[DevSet]:
        """
        Find up to `max_results` disjoint DevSets.

        Args:
            kind: Topology kind every DevSet must support
            max_results: Maximum number of DevSets

        Returns:
            DevSets in discovery order; empty when none exist

        Raises:
            QueryNotInitializedError: If the query is destroyed or stale
            InvalidArgumentError: If no device count is set, or kind or
                max_results is invalid
            InsufficientDevicesError: If a device count exceeds the eligible pool
        """
        self.query.ensure_alive()
        kind = parse_kind(kind)
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
            raise InvalidArgumentError(f"max_results must be a positive integer, got {max_results!r}")

        targets = [
            (label, flt.target_count)
            for label, flt in sorted(self.query.filters.items())
            if flt.target_count > 0
        ]
        if not targets:
            raise InvalidArgumentError("No device count filter set on the query")

        pools: List[List[DeviceInfo]] = []
        counts: List[int] = []
        for label, count in targets:
            pool = self.query.eligible_devices(label)
            if count > len(pool):
                raise InsufficientDevicesError(
                    f"Machine {label}: device count {count} exceeds {len(pool)} eligible devices"
                )
            pools.append(pool)
            counts.append(count)

        logger.debug(
            f"Searching {kind.value} DevSets: "
            + ", ".join(f"{label}={count}/{len(pool)}" for (label, count), pool in zip(targets, pools))
        )

        dev_sets: List[DevSet] = []
        while len(dev_sets) < max_results:
            candidate = self._first_feasible(pools, counts, kind)
            if candidate is None:
                break

            dev_sets.append(DevSet(self.query, candidate))
            taken = {d.key for d in candidate}
            pools = [[d for d in pool if d.key not in taken] for pool in pools]
            if any(len(pool) < count for pool, count in zip(pools, counts)):
                break

        logger.info(f"Found {len(dev_sets)} {kind.value} DevSets (max {max_results})")
        return dev_sets

    def _first_feasible(
        self,
        pools: List[List[DeviceInfo]],
        counts: List[int],
        kind: TopologyKind
    ) -> Optional[Tuple[DeviceInfo, ...]]:
        for candidate in _iter_candidates(pools, counts):
            if self._is_feasible(candidate, kind):
                return candidate
        return None

    def _is_feasible(self, candidate: Tuple[DeviceInfo, ...], kind: TopologyKind) -> bool:
        key = (frozenset(d.key for d in candidate), kind)
        if key not in self._feasible:
            feasible = TopologyBuilder(candidate).has_topology(kind)
            if not feasible:
                logger.debug(f"Rejected candidate {[str(d) for d in candidate]}: no {kind.value}")
            self._feasible[key] = feasible
        return self._feasible[key]


def _iter_candidates(
    pools: List[List[DeviceInfo]],
    counts: List[int]
) -> Iterator[Tuple[DeviceInfo, ...]]:
    """Lazily yield one combination per machine, concatenated, in lexicographic order."""
    def extend(machine: int, prefix: Tuple[DeviceInfo, ...]) -> Iterator[Tuple[DeviceInfo, ...]]:
        if machine == len(pools):
            yield prefix
            return
        for combo in itertools.combinations(pools[machine], counts[machine]):
            yield from extend(machine + 1, prefix + combo)

    return extend(0, ())


def find_dev_sets(query, kind: TopologyKind, max_results: int) -> List[DevSet]:
    """Find up to `max_results` disjoint DevSets for a query."""
    return DevSetFinder(query).find(kind, max_results)
