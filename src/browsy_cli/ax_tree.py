"""
Accessibility tree capture helpers.

CDP's ``Accessibility.getFullAXTree`` returns a flat node list linked by
``childIds``. This module turns it into a nested tree of plain dicts,
stamps each node with a snapshot uid, and renders the text snapshot
handed to tool callers.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

# Dropped in compact captures; their children are promoted.
UNINTERESTING_ROLES = frozenset({"generic", "none", "InlineTextBox"})


def _ax_value(field_value: Optional[dict]) -> Any:
    if not field_value:
        return None
    return field_value.get("value")


def _build_node(ax_node: dict) -> dict[str, Any]:
    node: dict[str, Any] = {"role": _ax_value(ax_node.get("role"))}

    name = _ax_value(ax_node.get("name"))
    if name not in (None, ""):
        node["name"] = name

    backend_id = ax_node.get("backendDOMNodeId")
    if backend_id is not None:
        node["backendNodeId"] = backend_id

    value = _ax_value(ax_node.get("value"))
    if value not in (None, ""):
        node["value"] = value

    description = _ax_value(ax_node.get("description"))
    if description:
        node["description"] = description

    for prop in ax_node.get("properties", []):
        prop_value = _ax_value(prop.get("value"))
        if prop_value is None or prop_value is False:
            continue
        node[prop.get("name", "")] = prop_value

    return node


def build_ax_tree(ax_nodes: list[dict], verbose: bool = False) -> Optional[dict[str, Any]]:
    """
    Convert the flat CDP node list into a nested tree.

    Ignored nodes are always dropped and their children promoted. Unless
    ``verbose``, unnamed generic containers are dropped the same way.

    Returns:
        The root node dict, or None when the capture is empty
    """
    if not ax_nodes:
        return None

    by_id = {str(n.get("nodeId")): n for n in ax_nodes if n.get("nodeId") is not None}
    root_ax = next((n for n in ax_nodes if not n.get("parentId")), ax_nodes[0])

    def is_interesting(ax_node: dict) -> bool:
        if ax_node.get("ignored", False):
            return False
        if verbose:
            return True
        role = _ax_value(ax_node.get("role"))
        return not (role in UNINTERESTING_ROLES and not _ax_value(ax_node.get("name")))

    def convert_children(ax_node: dict, seen: set[str]) -> list[dict[str, Any]]:
        children: list[dict[str, Any]] = []
        for child_id in ax_node.get("childIds", []):
            child_id = str(child_id)
            child = by_id.get(child_id)
            if child is None or child_id in seen:
                continue
            seen.add(child_id)
            if is_interesting(child):
                converted = _build_node(child)
                grandchildren = convert_children(child, seen)
                if grandchildren:
                    converted["children"] = grandchildren
                children.append(converted)
            else:
                children.extend(convert_children(child, seen))
        return children

    root = _build_node(root_ax)
    seen = {str(root_ax.get("nodeId"))}
    children = convert_children(root_ax, seen)
    if children:
        root["children"] = children
    return root


@dataclass
class TextSnapshot:
    """A captured tree whose nodes carry uids valid for this capture only."""

    id: int
    root: dict[str, Any]
    uid_map: dict[str, Optional[int]] = field(default_factory=dict)

    def backend_node_id(self, uid: str) -> Optional[int]:
        return self.uid_map.get(uid)

    def has_uid(self, uid: str) -> bool:
        return uid in self.uid_map


def assign_uids(root: dict[str, Any], snapshot_id: int) -> TextSnapshot:
    """Stamp every node with ``<snapshot_id>_<n>`` in depth-first order."""
    snapshot = TextSnapshot(id=snapshot_id, root=root)
    counter = 0
    stack = [root]
    while stack:
        node = stack.pop()
        uid = f"{snapshot_id}_{counter}"
        counter += 1
        node["uid"] = uid
        snapshot.uid_map[uid] = node.get("backendNodeId")
        stack.extend(reversed(node.get("children", [])))
    return snapshot


def _format_attribute(key: str, value: Any) -> str:
    if value is True:
        return key
    return f'{key}="{value}"'


def format_snapshot(root: Optional[dict[str, Any]]) -> str:
    """Render one line per node, indented two spaces per level."""
    if root is None:
        return ""

    lines: list[str] = []
    stack: list[tuple[dict[str, Any], int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        parts = [f"uid={node.get('uid', '?')}", str(node.get("role") or "unknown")]
        if node.get("name"):
            parts.append(f'"{node["name"]}"')
        for key, value in node.items():
            if key in ("uid", "role", "name", "children", "backendNodeId"):
                continue
            parts.append(_format_attribute(key, value))
        lines.append("  " * depth + " ".join(parts))
        for child in reversed(node.get("children", [])):
            stack.append((child, depth + 1))
    return "\n".join(lines)
