#!/usr/bin/env python3
"""
Device Topology Finder Script

Main entry point for probing local device information and finding
communication topologies across multiple machines.

Usage:
    python scripts/find_topology.py local-info --sensor-fixture sensor.yaml -o node0.json
    python scripts/find_topology.py find -i machines.yaml --kind ring -f ascii
    python scripts/find_topology.py find -i machines.yaml -f json -o result.json --validate
"""

import argparse
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

# Add parent directory to path for imports when running as script
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
if project_root not in sys.path:
    sys.path.insert(0, project_root)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def fetch_machine(label: str, machine: Dict[str, Any]):
    """
    Obtain one machine's snapshot from a local file or over SSH.

    Args:
        label: Machine label
        machine: Processed inventory entry

    Returns:
        MachineSnapshot as published by the machine
    """
    from engine import load_machine_info

    logger = logging.getLogger(__name__)

    if machine["source"] == "file":
        logger.info(f"  Loading {label} from {machine['snapshot_file']}")
        return load_machine_info(machine["snapshot_file"])

    from ssh_client import SSHClient
    from collector import RemoteSnapshotCollector

    with SSHClient(
        hostname=machine["hostname"],
        port=machine["port"],
        username=machine["username"],
        auth_type=machine["auth_type"],
        key_file=machine["key_file"],
        password=machine["password"],
        timeout=machine["timeout"],
    ) as ssh:
        collector = RemoteSnapshotCollector(ssh)
        if machine.get("remote_file"):
            return collector.collect_file(machine["remote_file"])
        return collector.collect(machine["snapshot_command"])


def build_context(inventory: Dict[str, Any]):
    """
    Register every inventory machine in a new TopologyContext.

    Machines that cannot be fetched are skipped with an error log.
    """
    from ssh_client import SSHClientError
    from engine import TopologyContext, TopoError

    logger = logging.getLogger(__name__)

    context = TopologyContext()
    failed: List[str] = []

    for label, machine in sorted(inventory["machines"].items()):
        try:
            snapshot = fetch_machine(label, machine)
            context.add_machine(snapshot, label)
        except SSHClientError as e:
            logger.error(f"Failed to fetch {label}: {e}")
            failed.append(label)
        except TopoError as e:
            logger.error(f"Failed to register {label}: {e}")
            failed.append(label)

    if failed:
        logger.warning(f"Failed to register {len(failed)} machines: {', '.join(failed)}")

    if not context.labels:
        context.destroy()
        raise RuntimeError("No machine information available")

    return context


def apply_query(query, settings: Dict[str, Any]) -> None:
    """Apply the per-machine filters of the inventory query section."""
    for label, flt in sorted(settings["machines"].items()):
        for ordinal in flt["blacklist"]:
            query.blacklist_ordinal(label, ordinal)
        for uuid in flt["blacklist_uuids"]:
            query.blacklist_uuid(label, uuid)
        for ordinal in flt["whitelist"]:
            query.whitelist_ordinal(label, ordinal)
        for uuid in flt["whitelist_uuids"]:
            query.whitelist_uuid(label, uuid)
        query.set_device_count(label, flt["device_count"])


def find_topologies(
    inventory_path: str,
    kind: Optional[str] = None,
    max_results: Optional[int] = None,
    max_topologies: Optional[int] = None,
    validate: bool = False
) -> Tuple[list, list]:
    """
    Find DevSets and their topologies for the machines in an inventory.

    Args:
        inventory_path: Path to machines.yaml
        kind: Overrides the inventory topology kind
        max_results: Overrides the inventory DevSet limit
        max_topologies: Topologies to build per DevSet (None for all)
        validate: Whether to validate every topology

    Returns:
        Tuple of ((DevSet, topologies) results, List[ValidationIssue])
    """
    from inventory import load_inventory
    from engine import TopologyValidator

    logger = logging.getLogger(__name__)

    logger.info(f"Loading inventory from {inventory_path}")
    inventory = load_inventory(inventory_path)
    settings = inventory["query"]
    kind = kind or settings["kind"]
    max_results = max_results or settings["max_results"]

    logger.info(f"Fetching information of {len(inventory['machines'])} machines...")
    context = build_context(inventory)

    query = context.create_query()
    apply_query(query, settings)

    logger.info(f"Searching up to {max_results} {kind} DevSets...")
    dev_sets = query.find_dev_sets(kind, max_results)

    results = []
    issues = []
    validator = TopologyValidator()
    for devset in dev_sets:
        topologies = devset.find_topologies(kind, max_topologies)
        logger.info(f"  {devset!r}: {len(topologies)} topologies")
        if validate:
            for topology in topologies:
                issues.extend(validator.validate(topology))
        results.append((devset, topologies))

    return results, issues


def probe_local(sensor_fixture: str, label: Optional[str] = None):
    """Probe the local machine through a sensor description file."""
    from collector import FixtureSensor
    from engine import TopologyContext

    with TopologyContext() as context:
        return context.get_local_snapshot(FixtureSensor.from_file(sensor_fixture), label=label)


def write_text(text: str, path: Optional[str], what: str) -> None:
    if path:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"{what} written to {path}")
    else:
        print(text)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Find device communication topologies across machines"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    local = subparsers.add_parser("local-info", help="Probe and publish local device information")
    local.add_argument(
        "--sensor-fixture",
        required=True,
        help="Path to the sensor description file"
    )
    local.add_argument(
        "--label",
        help="Machine label (default: sensor hostname or local host name)"
    )
    local.add_argument(
        "-o", "--output",
        help="Save machine information to this file (default: print to stdout)"
    )

    find = subparsers.add_parser("find", help="Find DevSets and topologies")
    find.add_argument(
        "-i", "--inventory",
        default="machines.yaml",
        help="Path to inventory file (default: machines.yaml)"
    )
    find.add_argument(
        "--kind",
        choices=["ring", "tree"],
        help="Topology kind (default: from inventory)"
    )
    find.add_argument(
        "--max-results",
        type=int,
        help="Maximum number of DevSets (default: from inventory)"
    )
    find.add_argument(
        "--max-topologies",
        type=int,
        default=1,
        help="Topologies to build per DevSet, 0 for all (default: 1)"
    )
    find.add_argument(
        "-o", "--output",
        help="Output file path (default: stdout for text, required for JSON)"
    )
    find.add_argument(
        "-f", "--format",
        choices=["json", "text", "ascii"],
        default="text",
        help="Output format: text, ascii (visual diagram), or json (default: text)"
    )
    find.add_argument(
        "--validate",
        action="store_true",
        help="Validate every topology against the device links"
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    # Import here to allow --help to work without dependencies
    from ssh_client import SSHClientError
    from inventory import InventoryError
    from engine import TopoError, error_string, save_machine_info
    from output import to_json, to_text, to_ascii, format_issues

    try:
        if args.command == "local-info":
            snapshot = probe_local(args.sensor_fixture, args.label)
            if args.output:
                save_machine_info(snapshot, args.output)
                print(f"Machine information written to {args.output}")
            else:
                print(snapshot.to_json())
            return

        results, issues = find_topologies(
            args.inventory,
            kind=args.kind,
            max_results=args.max_results,
            max_topologies=args.max_topologies or None,
            validate=args.validate
        )
        issues = issues if args.validate else None

        if args.format == "json":
            if not args.output:
                print("Error: --output is required for JSON format", file=sys.stderr)
                sys.exit(1)
            to_json(results, args.output, issues)
            print(f"Results written to {args.output}")

            print(f"\nFound {len(results)} DevSets")
            if issues:
                print(format_issues(issues))

        elif args.format == "ascii":
            write_text(to_ascii(results, issues), args.output, "ASCII diagram")

        else:  # text format
            write_text(to_text(results, issues), args.output, "Report")

    except InventoryError as e:
        logger.error(f"Inventory error: {e}")
        sys.exit(1)
    except SSHClientError as e:
        logger.error(f"SSH error: {e}")
        sys.exit(1)
    except TopoError as e:
        logger.error(error_string(e))
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
