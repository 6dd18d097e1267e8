"""Library and exchange format versions."""

from typing import Tuple

from .errors import InternalError

__version__ = "1.7.2"

# Machine information exchange format; peers must agree on the major part.
SNAPSHOT_FORMAT_VERSION = "1.0"

# Sensor API versions this library can consume.
SUPPORTED_SENSOR_API_MAJOR = 1


def parse_version(version: str, parts: int = 3) -> Tuple[int, ...]:
    """
    Parse a dotted version string.

    Args:
        version: Version string such as "1.7.2"
        parts: Number of numeric components expected

    Returns:
        Tuple of integers

    Raises:
        ValueError: If the string does not have the expected shape
    """
    fields = str(version).strip().split(".")
    if len(fields) != parts:
        raise ValueError(f"Expected {parts} version components in {version!r}")
    return tuple(int(f) for f in fields)


def get_library_version() -> Tuple[int, int, int]:
    """
    Get the library version as (major, minor, patch).

    Raises:
        InternalError: If the built-in version string is corrupted
    """
    try:
        major, minor, patch = parse_version(__version__)
    except ValueError as e:
        raise InternalError(f"Corrupted library version {__version__!r}: {e}")
    return major, minor, patch
