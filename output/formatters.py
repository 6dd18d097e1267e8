"""
Output Formatters

Provides functions to format DevSet search results and validation issues
for different output formats. A result is a DevSet together with the
topologies found over it.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, TextIO, Tuple
from pathlib import Path

from engine.devset import DevSet
from engine.models import LinkKind, TopologyKind
from engine.topology import Topology
from engine.validate import ValidationIssue

logger = logging.getLogger(__name__)

Result = Tuple[DevSet, List[Topology]]


def _summary(results: Sequence[Result]) -> Dict[str, Any]:
    machines = set()
    for devset, _ in results:
        machines.update(d.machine_label for d in devset.devices)
    return {
        "devset_count": len(results),
        "topology_count": sum(len(topologies) for _, topologies in results),
        "device_count": sum(devset.size for devset, _ in results),
        "machine_count": len(machines),
    }


def to_dict(
    results: Sequence[Result],
    issues: Optional[List[ValidationIssue]] = None
) -> Dict[str, Any]:
    """Build the JSON document for a set of results."""
    output: Dict[str, Any] = {
        "summary": _summary(results),
        "dev_sets": [],
    }
    for devset, topologies in results:
        entry = devset.to_dict()
        entry["topologies"] = [t.to_dict() for t in topologies]
        output["dev_sets"].append(entry)

    if issues is not None:
        output["validation_issues"] = [issue.to_dict() for issue in issues]
        output["summary"]["issue_count"] = len(issues)
        output["summary"]["error_count"] = sum(1 for i in issues if i.severity == "error")
        output["summary"]["warning_count"] = sum(1 for i in issues if i.severity == "warning")

    return output


def to_json(
    results: Sequence[Result],
    path: str,
    issues: Optional[List[ValidationIssue]] = None,
    indent: int = 2
) -> None:
    """
    Write results to a JSON file.

    Args:
        results: (DevSet, topologies) pairs to serialize
        path: Output file path
        issues: Optional list of validation issues to include
        indent: JSON indentation level
    """
    output = to_dict(results, issues)

    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=indent, ensure_ascii=False)

    logger.info(f"Results written to {path}")


def _format_ports(topology: Topology, index: int) -> str:
    _, ports = topology.get_node(index)
    parts = []
    for port in ports:
        marker = "sw" if port.kind == LinkKind.POINT_TO_SWITCH else "p2p"
        parts.append(f"{port.role.value}:{port.port_id}({marker})")
    return ", ".join(parts) if parts else "-"


def to_text(
    results: Sequence[Result],
    issues: Optional[List[ValidationIssue]] = None,
    file: Optional[TextIO] = None
) -> str:
    """
    Format results as human-readable text.

    Args:
        results: (DevSet, topologies) pairs to format
        issues: Optional list of validation issues
        file: Optional file to write to

    Returns:
        Formatted text string
    """
    lines = []

    # Header
    lines.append("=" * 60)
    lines.append("DEVICE TOPOLOGY REPORT")
    lines.append("=" * 60)
    lines.append("")

    summary = _summary(results)
    lines.append("SUMMARY")
    lines.append("-" * 40)
    lines.append(f"  DevSets:            {summary['devset_count']}")
    lines.append(f"  Topologies:         {summary['topology_count']}")
    lines.append(f"  Devices:            {summary['device_count']}")
    lines.append(f"  Machines:           {summary['machine_count']}")
    lines.append("")

    if not results:
        lines.append("  No DevSets found")
        lines.append("")

    for number, (devset, topologies) in enumerate(results):
        lines.append(f"DEVSET {number}")
        lines.append("-" * 40)
        for index, device in enumerate(devset.devices):
            lines.append(f"  [{index}] {device} (uuid {device.uuid})")

        if not topologies:
            lines.append("  No topologies")
        for t_number, topology in enumerate(topologies):
            lines.append(f"  Topology {t_number}: {topology.kind.value}")
            for index, device, _ in topology.nodes():
                parent = ""
                if topology.kind == TopologyKind.TREE and topology.parent[index] is not None:
                    parent = f" <- [{topology.parent[index]}]"
                lines.append(f"    [{index}] {device}{parent}: {_format_ports(topology, index)}")
        lines.append("")

    if issues:
        lines.append("VALIDATION ISSUES")
        lines.append("-" * 40)
        for issue in issues:
            severity_marker = {
                "error": "[ERROR]",
                "warning": "[WARN]",
                "info": "[INFO]"
            }.get(issue.severity, "[?]")

            lines.append(f"  {severity_marker} {issue.location()}")
            lines.append(f"    {issue.message}")
        lines.append("")

    lines.append("=" * 60)

    text = "\n".join(lines)

    if file is not None:
        file.write(text)

    return text


def format_issues(issues: List[ValidationIssue]) -> str:
    """
    Format validation issues as a summary text.

    Args:
        issues: List of validation issues

    Returns:
        Formatted summary string
    """
    if not issues:
        return "No validation issues found."

    lines = []

    error_count = sum(1 for i in issues if i.severity == "error")
    warning_count = sum(1 for i in issues if i.severity == "warning")
    info_count = sum(1 for i in issues if i.severity == "info")

    lines.append(f"Found {len(issues)} issues: {error_count} errors, {warning_count} warnings, {info_count} info")
    lines.append("")

    for issue in issues:
        prefix = {
            "error": "ERROR",
            "warning": "WARN",
            "info": "INFO"
        }.get(issue.severity, "???")

        lines.append(f"[{prefix}] {issue.describe()}")

    return "\n".join(lines)


def to_ascii(
    results: Sequence[Result],
    issues: Optional[List[ValidationIssue]] = None,
) -> str:
    """
    Generate ASCII art diagrams of the found topologies.

    Rings are drawn as a cycle of hops, trees as an indented hierarchy.

    Args:
        results: (DevSet, topologies) pairs to draw
        issues: Optional list of validation issues

    Returns:
        ASCII art string representation
    """
    lines = []

    lines.append("╔" + "═" * 62 + "╗")
    lines.append("║" + "DEVICE TOPOLOGY".center(62) + "║")
    lines.append("╚" + "═" * 62 + "╝")
    lines.append("")

    summary = _summary(results)
    lines.append(f"  DevSets: {summary['devset_count']}  │  "
                 f"Topologies: {summary['topology_count']}  │  "
                 f"Devices: {summary['device_count']}  │  "
                 f"Machines: {summary['machine_count']}")
    lines.append("")

    for number, (devset, topologies) in enumerate(results):
        title = f" DevSet {number}: {devset.size} devices "
        lines.append("┌" + "─" * 62 + "┐")
        lines.append("│" + title.center(62) + "│")
        lines.append("└" + "─" * 62 + "┘")

        if not topologies:
            lines.append("  (no topologies)")
        for topology in topologies:
            if topology.kind == TopologyKind.RING:
                lines.extend(_draw_ring(topology))
            else:
                lines.extend(_draw_tree(topology))
            lines.append("")

    if issues:
        lines.append("┌" + "─" * 62 + "┐")
        lines.append("│" + "VALIDATION ISSUES".center(62) + "│")
        lines.append("└" + "─" * 62 + "┘")
        for issue in issues:
            icon = {"error": "✗", "warning": "⚠", "info": "ℹ"}.get(issue.severity, "?")
            lines.append(f"  {icon} [{issue.severity.upper()}] {issue.location()}")
            lines.append(f"      {issue.message}")

    return "\n".join(lines)


def _draw_ring(topology: Topology) -> List[str]:
    """Draw a ring as one line per hop, closing back to the first device."""
    lines = ["  Ring:"]
    devices = topology.devices
    hops = {e.src: e for e in topology.edges}

    for index in topology.order:
        edge = hops[index]
        arrow = "═▶" if edge.kind == LinkKind.POINT_TO_POINT else "┄▶"
        left = f"{devices[edge.src]}:{edge.src_port}"
        right = f"{devices[edge.dst]}:{edge.dst_port}"
        lines.append(f"    {left:>20} {arrow} {right:<20}")

    first = devices[topology.order[0]]
    lines.append(f"    {'':>20}  └─ back to {first}")
    return lines


def _draw_tree(topology: Topology) -> List[str]:
    """Draw a tree as an indented hierarchy rooted at the root device."""
    root = topology.root
    if root is None:
        return ["  Tree: (empty)"]

    devices = topology.devices
    leaf_ports = {e.dst: e for e in topology.edges}
    lines = ["  Tree:", f"    {devices[root]}"]

    def walk(index: int, prefix: str) -> None:
        children = topology.children(index)
        for position, child in enumerate(children):
            last = position == len(children) - 1
            edge = leaf_ports[child]
            branch = "└── " if last else "├── "
            lines.append(
                f"    {prefix}{branch}{devices[child]} "
                f"(port {edge.src_port} → {edge.dst_port})"
            )
            walk(child, prefix + ("    " if last else "│   "))

    walk(root, "")
    return lines
