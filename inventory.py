"""
Inventory Loader

Loads the machines.yaml file describing where each machine's information
comes from and which DevSets to search for, merging SSH defaults with
per-machine settings.

Example:
    ssh_defaults:
      username: root
      key_file: ~/.ssh/id_rsa
    snapshot_command: python3 /opt/devlink/scripts/find_topology.py local-info --sensor-fixture /etc/devlink/sensor.yaml
    machines:
      node0:
        snapshot_file: snapshots/node0.json
      node1:
        hostname: 10.0.0.2
        remote_file: /var/lib/devlink/local.json
    query:
      kind: ring
      max_results: 4
      machines:
        node0: {device_count: 4, blacklist: [2, 3]}
"""

import os
import logging
from typing import Any, Dict, List

import yaml

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """Exception raised for inventory loading errors."""
    pass


def load_inventory(path: str) -> Dict[str, Any]:
    """
    Load and parse the inventory configuration file.

    Args:
        path: Path to the machines.yaml file

    Returns:
        Dictionary containing:
        - machines: Dict of machine sources with defaults merged
        - query: Query settings (kind, max_results, per-machine filters)

    Raises:
        InventoryError: If file cannot be loaded or parsed
    """
    path = os.path.expanduser(path)

    if not os.path.isfile(path):
        raise InventoryError(f"Inventory file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InventoryError(f"Failed to parse inventory file: {e}")
    except IOError as e:
        raise InventoryError(f"Failed to read inventory file: {e}")

    if not data:
        raise InventoryError("Inventory file is empty")
    if not isinstance(data, dict):
        raise InventoryError("Inventory file must contain a mapping")

    base_dir = os.path.dirname(os.path.abspath(path))
    return _process_inventory(data, base_dir)


def _process_inventory(data: Dict[str, Any], base_dir: str = ".") -> Dict[str, Any]:
    """
    Process raw inventory data, merging defaults with machine configs.

    Args:
        data: Raw parsed YAML data
        base_dir: Directory relative snapshot_file paths are resolved against

    Returns:
        Processed inventory
    """
    defaults = data.get("ssh_defaults") or {}
    default_command = data.get("snapshot_command")

    raw_machines = data.get("machines") or {}
    if not raw_machines:
        raise InventoryError("No machines defined in inventory")

    machines = {}
    for label, config in raw_machines.items():
        label = str(label)
        if not config:
            logger.warning(f"Machine {label} has no configuration, skipping")
            continue

        snapshot_file = config.get("snapshot_file")
        hostname = config.get("hostname")
        if not snapshot_file and not hostname:
            logger.warning(f"Machine {label} has neither snapshot_file nor hostname, skipping")
            continue

        if snapshot_file:
            snapshot_file = os.path.expanduser(snapshot_file)
            if not os.path.isabs(snapshot_file):
                snapshot_file = os.path.join(base_dir, snapshot_file)
            machines[label] = {"source": "file", "snapshot_file": snapshot_file}
            continue

        command = config.get("snapshot_command", default_command)
        if not command and not config.get("remote_file"):
            raise InventoryError(f"Machine {label} needs a snapshot_command or remote_file")

        machines[label] = {
            "source": "ssh",
            "hostname": hostname,
            "port": config.get("port", defaults.get("port", 22)),
            "username": config.get("username", defaults.get("username", "root")),
            "auth_type": config.get("auth_type", defaults.get("auth_type", "key")),
            "key_file": config.get("key_file", defaults.get("key_file")),
            "password": config.get("password", defaults.get("password")),
            "timeout": config.get("timeout", defaults.get("timeout", 10)),
            "snapshot_command": command,
            "remote_file": config.get("remote_file"),
        }

    if not machines:
        raise InventoryError("No usable machines defined in inventory")

    return {
        "machines": machines,
        "query": _process_query(data.get("query") or {}, machines),
    }


def _process_query(raw: Dict[str, Any], machines: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize the query section; unknown machine labels are an error."""
    kind = str(raw.get("kind", "ring")).lower()
    if kind not in ("ring", "tree"):
        raise InventoryError(f"Unknown topology kind in inventory: {kind}")

    max_results = raw.get("max_results", 1)
    if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
        raise InventoryError(f"max_results must be a positive integer, got {max_results!r}")

    filters = {}
    for label, config in (raw.get("machines") or {}).items():
        label = str(label)
        if label not in machines:
            raise InventoryError(f"Query references unknown machine: {label}")
        config = config or {}
        filters[label] = {
            "device_count": int(config.get("device_count", 0)),
            "blacklist": _int_list(config.get("blacklist"), label, "blacklist"),
            "whitelist": _int_list(config.get("whitelist"), label, "whitelist"),
            "blacklist_uuids": _int_list(config.get("blacklist_uuids"), label, "blacklist_uuids"),
            "whitelist_uuids": _int_list(config.get("whitelist_uuids"), label, "whitelist_uuids"),
        }

    return {"kind": kind, "max_results": max_results, "machines": filters}


def _int_list(value: Any, label: str, key: str) -> List[int]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InventoryError(f"Machine {label}: {key} must be a list")
    try:
        return [int(v) for v in value]
    except (TypeError, ValueError):
        raise InventoryError(f"Machine {label}: {key} must contain integers")


def get_machine_ssh_config(inventory: Dict[str, Any], label: str) -> Dict[str, Any]:
    """
    Extract SSH connection parameters for a machine.

    Args:
        inventory: Processed inventory data
        label: Machine label

    Returns:
        Dictionary with SSH connection parameters

    Raises:
        InventoryError: If machine not found or not reached over SSH
    """
    machines = inventory.get("machines", {})
    if label not in machines:
        raise InventoryError(f"Machine not found in inventory: {label}")

    machine = machines[label]
    if machine["source"] != "ssh":
        raise InventoryError(f"Machine {label} is loaded from a file, not over SSH")

    return {
        "hostname": machine["hostname"],
        "port": machine["port"],
        "username": machine["username"],
        "auth_type": machine["auth_type"],
        "key_file": machine["key_file"],
        "password": machine["password"],
        "timeout": machine["timeout"],
    }


def list_machines(inventory: Dict[str, Any]) -> List[str]:
    """
    Get list of all machine labels in the inventory.

    Args:
        inventory: Processed inventory data

    Returns:
        List of machine labels
    """
    return list(inventory.get("machines", {}).keys())
