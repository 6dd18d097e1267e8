"""
Topology Context

Owns the registry of machine snapshots (local and imported). Queries are
created from a context and copy its registry at creation time.

Lifecycle:
- created empty
- populated with add_machine (labels are unique)
- optionally cleared; queries created before the clear become stale
- destroyed; everything derived from it becomes invalid
"""

import logging
from typing import Dict, List, Optional

from .errors import (
    ContextNotCreatedError,
    DuplicateLabelError,
    InvalidArgumentError,
    MalformedSnapshotError,
)
from .snapshot import MachineSnapshot, load_machine_info, save_machine_info
from .validate import SnapshotValidator

logger = logging.getLogger(__name__)


class TopologyContext:
    """
    Registry of machine snapshots keyed by machine label.

    Not thread-safe: add_machine, clear_machines and destroy must be
    serialized by the caller. Can be used as a context manager, in which case
    it is destroyed on exit.
    """

    def __init__(self):
        self._machines: Dict[str, MachineSnapshot] = {}
        self._generation = 0
        self._destroyed = False

    def __enter__(self) -> "TopologyContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._destroyed:
            self.destroy()

    @property
    def alive(self) -> bool:
        return not self._destroyed

    @property
    def generation(self) -> int:
        """Incremented whenever previously created queries become stale."""
        return self._generation

    def ensure_alive(self) -> None:
        if self._destroyed:
            raise ContextNotCreatedError("Topology context has been destroyed")

    @property
    def machines(self) -> Dict[str, MachineSnapshot]:
        """Copy of the registry, label to snapshot."""
        self.ensure_alive()
        return dict(self._machines)

    @property
    def labels(self) -> List[str]:
        self.ensure_alive()
        return list(self._machines.keys())

    def add_machine(self, snapshot: MachineSnapshot, label: str) -> MachineSnapshot:
        """
        Register a machine snapshot under a label.

        The devices of the stored snapshot are re-labelled with `label`.

        Args:
            snapshot: Snapshot probed locally or received from a peer
            label: Machine label, unique within this context

        Returns:
            The stored snapshot

        Raises:
            ContextNotCreatedError: If the context was destroyed
            InvalidArgumentError: If the label is empty
            DuplicateLabelError: If the label is already registered
            MalformedSnapshotError: If the snapshot fails structural checks
        """
        self.ensure_alive()

        if not label:
            raise InvalidArgumentError("Machine label must not be empty")
        if label in self._machines:
            raise DuplicateLabelError(f"Machine label already registered: {label}")

        snapshot = snapshot.relabel(label)
        issues = SnapshotValidator().validate(snapshot, known_uuids=self._registered_uuids())

        errors = [i for i in issues if i.severity == "error"]
        if errors:
            details = "; ".join(i.describe() for i in errors)
            raise MalformedSnapshotError(f"Machine {label} rejected: {details}")

        for issue in issues:
            if issue.severity == "warning":
                logger.warning(f"Machine {label}: {issue.describe()}")
            else:
                logger.debug(f"Machine {label}: {issue.describe()}")

        self._machines[label] = snapshot
        logger.info(f"Added machine {label} with {len(snapshot)} devices")
        return snapshot

    def _registered_uuids(self) -> Dict[int, str]:
        return {
            device.uuid: label
            for label, snapshot in self._machines.items()
            for device in snapshot.devices
        }

    def clear_machines(self) -> None:
        """
        Drop every registered snapshot.

        Clearing ends every query created before it, along with the DevSets
        and topologies derived from them: later use raises
        QueryNotInitializedError, DevSetNotInitializedError or
        TopologyNotInitializedError. Create a new query after re-adding
        machines.
        """
        self.ensure_alive()
        count = len(self._machines)
        self._machines.clear()
        self._generation += 1
        logger.info(f"Cleared {count} machines from context")

    def destroy(self) -> None:
        """
        Release all snapshots and invalidate derived objects.

        Raises:
            ContextNotCreatedError: If the context was already destroyed
        """
        self.ensure_alive()
        self._machines.clear()
        self._generation += 1
        self._destroyed = True
        logger.debug("Topology context destroyed")

    def get_local_snapshot(self, sensor, label: Optional[str] = None) -> MachineSnapshot:
        """
        Probe the local devices through a sensor.

        The snapshot is not registered; transmit it to peers or pass it to
        add_machine.

        Args:
            sensor: Object implementing the DeviceSensor interface
            label: Machine label, defaults to the host name

        Raises:
            ContextNotCreatedError: If the context was destroyed
            DependencyUnavailableError: If the sensor fails
            UnsupportedVersionError: If the sensor API version is unsupported
        """
        from collector.devices import probe_local_snapshot

        self.ensure_alive()
        return probe_local_snapshot(sensor, label=label)

    def load_machine_info(self, path: str) -> MachineSnapshot:
        """Load a snapshot saved by save_machine_info; it is not registered."""
        self.ensure_alive()
        return load_machine_info(path)

    @staticmethod
    def save_machine_info(snapshot: MachineSnapshot, path: str) -> None:
        save_machine_info(snapshot, path)

    def create_query(self):
        """Create a Query over a copy of the current registry."""
        from .query import Query

        return Query(self)

    def __repr__(self) -> str:
        state = "destroyed" if self._destroyed else f"{len(self._machines)} machines"
        return f"TopologyContext({state})"
