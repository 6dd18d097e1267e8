"""
Error Taxonomy

Every failure raised by the topology engine derives from TopoError and
carries an ErrorKind:
- lifecycle: object used after destroy or after its context was cleared
- argument: invalid, unknown or conflicting input
- capacity: requested device count exceeds the eligible pool
- dependency: sensor or filesystem collaborator failed or returned bad data
- version: incompatible exchange format or sensor API
- internal: corrupted build metadata

A search that finds nothing is not an error; it returns an empty list.
"""

from enum import Enum
from typing import Union


class ErrorKind(str, Enum):
    """Category of a topology engine error."""
    LIFECYCLE = "lifecycle"
    ARGUMENT = "argument"
    CAPACITY = "capacity"
    DEPENDENCY = "dependency"
    VERSION = "version"
    INTERNAL = "internal"


class TopoError(Exception):
    """Base exception for topology engine errors."""
    kind = ErrorKind.INTERNAL


class InternalError(TopoError):
    """Exception raised when library metadata is corrupted."""
    kind = ErrorKind.INTERNAL


# Lifecycle

class ContextNotCreatedError(TopoError):
    """Exception raised when a destroyed context is used."""
    kind = ErrorKind.LIFECYCLE


class QueryNotInitializedError(TopoError):
    """Exception raised when a destroyed or stale query is used."""
    kind = ErrorKind.LIFECYCLE


class DevSetNotInitializedError(TopoError):
    """Exception raised when a DevSet outlives its query or context."""
    kind = ErrorKind.LIFECYCLE


class TopologyNotInitializedError(TopoError):
    """Exception raised when a topology outlives its DevSet."""
    kind = ErrorKind.LIFECYCLE


# Argument

class InvalidArgumentError(TopoError):
    """Exception raised for invalid, out-of-range or conflicting arguments."""
    kind = ErrorKind.ARGUMENT


class UnknownMachineError(InvalidArgumentError):
    """Exception raised when a machine label is not registered."""
    pass


class DuplicateLabelError(InvalidArgumentError):
    """Exception raised when a machine label is added twice."""
    pass


class InsufficientDevicesError(InvalidArgumentError):
    """Exception raised when a device count exceeds the eligible pool."""
    kind = ErrorKind.CAPACITY


# Dependency

class DependencyUnavailableError(TopoError):
    """Exception raised when the sensor collaborator cannot be queried."""
    kind = ErrorKind.DEPENDENCY


class MalformedSnapshotError(TopoError):
    """Exception raised when machine information fails structural checks."""
    kind = ErrorKind.DEPENDENCY


class SnapshotFileError(TopoError):
    """Exception raised when a machine information file cannot be read."""
    kind = ErrorKind.DEPENDENCY


class SnapshotPathError(SnapshotFileError):
    """Exception raised for an invalid machine information file path."""
    pass


class SnapshotFileEmptyError(SnapshotFileError):
    """Exception raised when a machine information file is empty."""
    pass


# Version

class UnsupportedVersionError(TopoError):
    """Exception raised for an incompatible format or sensor API version."""
    kind = ErrorKind.VERSION


_KIND_DESCRIPTIONS = {
    ErrorKind.LIFECYCLE: "Object used before creation, after destroy or after clear",
    ErrorKind.ARGUMENT: "Invalid argument",
    ErrorKind.CAPACITY: "Requested device count exceeds the eligible devices",
    ErrorKind.DEPENDENCY: "Device information could not be obtained or parsed",
    ErrorKind.VERSION: "Unsupported version",
    ErrorKind.INTERNAL: "Internal error",
}


def error_string(error: Union[TopoError, ErrorKind]) -> str:
    """
    Return a readable description of an error or error kind.

    Args:
        error: A raised TopoError or an ErrorKind

    Returns:
        Description string; for exceptions the message is appended
    """
    if isinstance(error, ErrorKind):
        return _KIND_DESCRIPTIONS[error]

    description = _KIND_DESCRIPTIONS.get(error.kind, "Unknown error")
    message = str(error)
    if message:
        return f"{description}: {message}"
    return description
