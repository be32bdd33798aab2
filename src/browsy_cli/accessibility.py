"""
Accessibility snapshot normalization and diffing.

A captured accessibility tree is flattened into NormalizedAXNode records
addressed by their depth-first position (``0``, ``0.1``, ``0.1.2``...).
Two captures of the same page shape produce the same paths, so changes
are found by comparing nodes at equal paths:

- path only in the new snapshot -> added
- path only in the old snapshot -> removed
- path in both with differing role, name or attributes -> changed
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Optional

# Keys that identify a node within one capture only.
VOLATILE_KEYS = frozenset({"uid", "backendNodeId"})
STRUCTURAL_KEYS = frozenset({"role", "name", "children"})


@dataclass(frozen=True)
class NormalizedAXNode:
    role: Optional[str]
    name: Optional[str]
    path: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "name": self.name,
            "path": self.path,
            "attributes": copy.deepcopy(self.attributes),
        }


@dataclass(frozen=True)
class PropertyChange:
    property: str
    before: Any
    after: Any


@dataclass(frozen=True)
class NodeChange:
    path: str
    role: Optional[str]
    name: Optional[str]
    changes: list[PropertyChange]


@dataclass(frozen=True)
class SnapshotDiff:
    added: list[NormalizedAXNode] = field(default_factory=list)
    removed: list[NormalizedAXNode] = field(default_factory=list)
    changed: list[NodeChange] = field(default_factory=list)


def _node_attributes(node: dict[str, Any]) -> dict[str, Any]:
    attributes = {
        key: copy.deepcopy(value)
        for key, value in node.items()
        if key not in STRUCTURAL_KEYS and key not in VOLATILE_KEYS
    }
    return dict(sorted(attributes.items()))


def normalize_snapshot(root: Optional[dict[str, Any]]) -> list[NormalizedAXNode]:
    """
    Flatten a captured accessibility tree.

    Args:
        root: Nested node dicts with ``role``, ``name``, ``children`` and
            any extra attributes

    Returns:
        Nodes in depth-first pre-order, each carrying its positional path
    """
    if root is None:
        return []

    nodes: list[NormalizedAXNode] = []
    stack: list[tuple[dict[str, Any], str]] = [(root, "0")]
    while stack:
        node, path = stack.pop()
        nodes.append(
            NormalizedAXNode(
                role=node.get("role"),
                name=node.get("name"),
                path=path,
                attributes=_node_attributes(node),
            )
        )
        children = node.get("children") or []
        for index in reversed(range(len(children))):
            stack.append((children[index], f"{path}.{index}"))
    return nodes


def _values_equal(a: Any, b: Any) -> bool:
    """Structural equality that keeps booleans and numbers apart."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_values_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_values_equal(x, y) for x, y in zip(a, b))
    return a == b


def _compare_nodes(before: NormalizedAXNode, after: NormalizedAXNode) -> list[PropertyChange]:
    changes = []
    if before.role != after.role:
        changes.append(PropertyChange("role", before.role, after.role))
    if before.name != after.name:
        changes.append(PropertyChange("name", before.name, after.name))

    keys = sorted(set(before.attributes) | set(after.attributes))
    for key in keys:
        old_value = before.attributes.get(key)
        new_value = after.attributes.get(key)
        present_before = key in before.attributes
        present_after = key in after.attributes
        if present_before != present_after or not _values_equal(old_value, new_value):
            changes.append(PropertyChange(key, old_value, new_value))
    return changes


def diff_snapshots(
    old: list[NormalizedAXNode],
    new: list[NormalizedAXNode],
) -> SnapshotDiff:
    """Compare two normalized snapshots by path."""
    old_by_path = {node.path: node for node in old}
    new_by_path = {node.path: node for node in new}

    diff = SnapshotDiff()
    for node in new:
        previous = old_by_path.get(node.path)
        if previous is None:
            diff.added.append(node)
            continue
        changes = _compare_nodes(previous, node)
        if changes:
            diff.changed.append(NodeChange(node.path, node.role, node.name, changes))

    for node in old:
        if node.path not in new_by_path:
            diff.removed.append(node)
    return diff


def has_snapshot_changes(diff: SnapshotDiff) -> bool:
    return bool(diff.added or diff.removed or diff.changed)
