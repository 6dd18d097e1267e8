"""
Engine module - Device-link topology discovery

Contains:
- context: Machine snapshot registry
- query: Device count and black/white list filters
- devset: Disjoint, topology-feasible device set search
- topology: Ring and tree construction with port roles
- validate: Snapshot and topology validation
"""

from .context import TopologyContext
from .devset import DevSet, DevSetFinder, find_dev_sets
from .errors import (
    ErrorKind,
    TopoError,
    ContextNotCreatedError,
    QueryNotInitializedError,
    DevSetNotInitializedError,
    TopologyNotInitializedError,
    InvalidArgumentError,
    UnknownMachineError,
    DuplicateLabelError,
    InsufficientDevicesError,
    DependencyUnavailableError,
    MalformedSnapshotError,
    SnapshotFileError,
    SnapshotPathError,
    SnapshotFileEmptyError,
    UnsupportedVersionError,
    InternalError,
    error_string,
)
from .models import DeviceInfo, DeviceLink, LinkKind, PortInfo, PortRole, TopologyKind
from .query import MachineFilter, Query
from .snapshot import MachineSnapshot, load_machine_info, save_machine_info
from .topology import Topology, TopologyEdge, find_non_conflicting, find_topologies
from .validate import SnapshotValidator, TopologyValidator, ValidationIssue
from .version import __version__, get_library_version

__all__ = [
    'TopologyContext',
    'Query',
    'MachineFilter',
    'DevSet',
    'DevSetFinder',
    'find_dev_sets',
    'Topology',
    'TopologyEdge',
    'find_topologies',
    'find_non_conflicting',
    'MachineSnapshot',
    'load_machine_info',
    'save_machine_info',
    'DeviceInfo',
    'DeviceLink',
    'LinkKind',
    'PortInfo',
    'PortRole',
    'TopologyKind',
    'SnapshotValidator',
    'TopologyValidator',
    'ValidationIssue',
    'ErrorKind',
    'TopoError',
    'ContextNotCreatedError',
    'QueryNotInitializedError',
    'DevSetNotInitializedError',
    'TopologyNotInitializedError',
    'InvalidArgumentError',
    'UnknownMachineError',
    'DuplicateLabelError',
    'InsufficientDevicesError',
    'DependencyUnavailableError',
    'MalformedSnapshotError',
    'SnapshotFileError',
    'SnapshotPathError',
    'SnapshotFileEmptyError',
    'UnsupportedVersionError',
    'InternalError',
    'error_string',
    '__version__',
    'get_library_version',
]
