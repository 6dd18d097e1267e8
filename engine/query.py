"""
Query

Filter configuration used to find DevSets. A Query copies the context
registry when it is created, so machines added later are not visible to
it. Clearing or destroying the context makes it stale.

Per machine a Query holds:
- target device count
- blacklist of device ordinals (UUIDs are resolved to ordinals)
- whitelist of device ordinals
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from .errors import (
    InvalidArgumentError,
    QueryNotInitializedError,
    UnknownMachineError,
)
from .models import DeviceInfo, TopologyKind
from .snapshot import MachineSnapshot

logger = logging.getLogger(__name__)


@dataclass
class MachineFilter:
    """Device selection constraints for one machine."""
    target_count: int = 0
    blacklist: Set[int] = field(default_factory=set)
    whitelist: Set[int] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_count": self.target_count,
            "blacklist": sorted(self.blacklist),
            "whitelist": sorted(self.whitelist),
        }


class Query:
    """
    Device selection query bound to one TopologyContext.

    Different configurations need different Query objects; there are no
    removal operations.
    """

    def __init__(self, context):
        context.ensure_alive()
        self._context = context
        self._generation = context.generation
        self._machines: Dict[str, MachineSnapshot] = context.machines
        self._filters: Dict[str, MachineFilter] = {}
        self._destroyed = False

    @property
    def alive(self) -> bool:
        return (
            not self._destroyed
            and self._context.alive
            and self._context.generation == self._generation
        )

    def ensure_alive(self) -> None:
        if self._destroyed:
            raise QueryNotInitializedError("Query has been destroyed")
        if not self._context.alive:
            raise QueryNotInitializedError("Query context has been destroyed")
        if self._context.generation != self._generation:
            raise QueryNotInitializedError("Query is stale: context machines were cleared")

    def destroy(self) -> None:
        """Release the query; DevSets and topologies found with it become invalid."""
        self.ensure_alive()
        self._destroyed = True
        self._filters.clear()

    @property
    def machines(self) -> Dict[str, MachineSnapshot]:
        """Registry captured when the query was created."""
        return dict(self._machines)

    @property
    def filters(self) -> Dict[str, MachineFilter]:
        return dict(self._filters)

    def _snapshot(self, label: str) -> MachineSnapshot:
        self.ensure_alive()
        snapshot = self._machines.get(label)
        if snapshot is None:
            raise UnknownMachineError(f"Unknown machine label: {label}")
        return snapshot

    def _filter(self, label: str) -> MachineFilter:
        return self._filters.setdefault(label, MachineFilter())

    def set_device_count(self, label: str, count: int) -> None:
        """
        Set the number of devices each DevSet takes from a machine.

        The count is checked against the eligible pool when DevSets are
        searched, not here.

        Raises:
            QueryNotInitializedError: If the query is destroyed or stale
            UnknownMachineError: If the label is not registered
            InvalidArgumentError: If count is not a non-negative integer
        """
        self._snapshot(label)
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidArgumentError(f"Device count must be a non-negative integer, got {count!r}")
        self._filter(label).target_count = count

    def _resolve_ordinal(self, label: str, ordinal: int) -> int:
        snapshot = self._snapshot(label)
        try:
            return snapshot.get_device(ordinal).ordinal
        except KeyError:
            raise InvalidArgumentError(f"Machine {label} has no device with ordinal {ordinal}")

    def _resolve_uuid(self, label: str, uuid: int) -> int:
        snapshot = self._snapshot(label)
        try:
            return snapshot.find_uuid(uuid).ordinal
        except KeyError:
            raise InvalidArgumentError(f"Machine {label} has no device with UUID {uuid}")

    def _add_to_blacklist(self, label: str, ordinal: int) -> None:
        flt = self._filter(label)
        if ordinal in flt.whitelist:
            raise InvalidArgumentError(f"Device {label}:{ordinal} is already whitelisted")
        flt.blacklist.add(ordinal)

    def _add_to_whitelist(self, label: str, ordinal: int) -> None:
        flt = self._filter(label)
        if ordinal in flt.blacklist:
            raise InvalidArgumentError(f"Device {label}:{ordinal} is already blacklisted")
        flt.whitelist.add(ordinal)

    def blacklist_ordinal(self, label: str, ordinal: int) -> None:
        """Exclude a device, by ordinal, from every DevSet."""
        self._add_to_blacklist(label, self._resolve_ordinal(label, ordinal))

    def blacklist_uuid(self, label: str, uuid: int) -> None:
        """Exclude a device, by UUID, from every DevSet."""
        self._add_to_blacklist(label, self._resolve_uuid(label, uuid))

    def whitelist_ordinal(self, label: str, ordinal: int) -> None:
        """Restrict a machine's selection to whitelisted devices, by ordinal."""
        self._add_to_whitelist(label, self._resolve_ordinal(label, ordinal))

    def whitelist_uuid(self, label: str, uuid: int) -> None:
        """Restrict a machine's selection to whitelisted devices, by UUID."""
        self._add_to_whitelist(label, self._resolve_uuid(label, uuid))

    def eligible_devices(self, label: str) -> List[DeviceInfo]:
        """
        Devices of a machine that DevSets may draw from, ascending by ordinal.

        Whitelist (when non-empty) else every device, minus the blacklist.
        """
        snapshot = self._snapshot(label)
        flt = self._filters.get(label, MachineFilter())

        devices = sorted(snapshot.devices, key=lambda d: d.ordinal)
        if flt.whitelist:
            devices = [d for d in devices if d.ordinal in flt.whitelist]
        return [d for d in devices if d.ordinal not in flt.blacklist]

    def find_dev_sets(self, kind: TopologyKind, max_results: int):
        """Shortcut for DevSetFinder(self).find(kind, max_results)."""
        from .devset import DevSetFinder

        return DevSetFinder(self).find(kind, max_results)

    def to_dict(self) -> Dict[str, Any]:
        return {label: flt.to_dict() for label, flt in sorted(self._filters.items())}

    def __repr__(self) -> str:
        state = "valid" if self.alive else "invalid"
        return f"Query({state}, filters={self.to_dict()})"
