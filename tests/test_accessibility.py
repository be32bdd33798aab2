"""Tests for accessibility tree capture, normalization and diffing.

These run on plain node dicts and need no browser.
"""

import pytest

from browsy_cli.accessibility import (
    NormalizedAXNode,
    diff_snapshots,
    has_snapshot_changes,
    normalize_snapshot,
)
from browsy_cli.ax_tree import assign_uids, build_ax_tree, format_snapshot
from browsy_cli.baseline import BaselineStore
from fakes import ax_node, sample_page


def page_tree(**overrides):
    tree = {
        "role": "RootWebArea",
        "name": "Example",
        "uid": "1_0",
        "backendNodeId": 1,
        "children": [
            {"role": "heading", "name": "Welcome", "level": 1, "uid": "1_1", "backendNodeId": 2},
            {"role": "button", "name": "Submit", "uid": "1_2", "backendNodeId": 3},
            {
                "role": "list",
                "name": "Messages",
                "uid": "1_3",
                "children": [{"role": "listitem", "name": "Hello", "uid": "1_4"}],
            },
        ],
    }
    tree.update(overrides)
    return tree


class TestNormalizeSnapshot:
    """Test flattening of a captured tree."""

    def test_empty(self):
        assert normalize_snapshot(None) == []

    def test_preorder_paths(self):
        nodes = normalize_snapshot(page_tree())
        assert [n.path for n in nodes] == ["0", "0.0", "0.1", "0.2", "0.2.0"]
        assert [n.role for n in nodes] == ["RootWebArea", "heading", "button", "list", "listitem"]

    def test_volatile_and_structural_keys_excluded(self):
        heading = normalize_snapshot(page_tree())[1]
        assert heading.attributes == {"level": 1}

    def test_attributes_sorted_and_copied(self):
        tree = {"role": "textbox", "name": "Email", "required": True, "focused": True, "states": ["a"]}
        node = normalize_snapshot(tree)[0]
        assert list(node.attributes) == ["focused", "required", "states"]
        tree["states"].append("b")
        assert node.attributes["states"] == ["a"]

    def test_recapture_of_same_page_is_equal(self):
        """uids differ between captures but normalize away."""
        first = normalize_snapshot(page_tree())
        second = normalize_snapshot(page_tree(uid="2_0"))
        assert first == second

    def test_deep_tree_does_not_recurse(self):
        root = {"role": "generic", "name": "0"}
        node = root
        for depth in range(1, 3000):
            child = {"role": "generic", "name": str(depth)}
            node["children"] = [child]
            node = child
        nodes = normalize_snapshot(root)
        assert len(nodes) == 3000
        assert nodes[-1].name == "2999"


class TestDiffSnapshots:
    """Test path-keyed comparison."""

    def test_identical_snapshots_have_no_changes(self):
        snapshot = normalize_snapshot(page_tree())
        diff = diff_snapshots(snapshot, snapshot)
        assert not has_snapshot_changes(diff)
        assert diff.added == [] and diff.removed == [] and diff.changed == []

    def test_added_and_removed_are_symmetric(self):
        small = normalize_snapshot(page_tree())
        tree = page_tree()
        tree["children"][2]["children"].append({"role": "listitem", "name": "New message"})
        large = normalize_snapshot(tree)

        forward = diff_snapshots(small, large)
        backward = diff_snapshots(large, small)
        assert [n.path for n in forward.added] == ["0.2.1"]
        assert forward.removed == []
        assert backward.removed == forward.added
        assert backward.added == []

    def test_changed_name(self):
        old = normalize_snapshot(page_tree())
        tree = page_tree()
        tree["children"][1]["name"] = "Sending..."
        diff = diff_snapshots(old, normalize_snapshot(tree))
        assert len(diff.changed) == 1
        change = diff.changed[0]
        assert change.path == "0.1"
        assert change.name == "Sending..."
        assert [(c.property, c.before, c.after) for c in change.changes] == [("name", "Submit", "Sending...")]

    def test_attribute_appears(self):
        old = normalize_snapshot(page_tree())
        tree = page_tree()
        tree["children"][1]["expanded"] = True
        change = diff_snapshots(old, normalize_snapshot(tree)).changed[0]
        assert [(c.property, c.before, c.after) for c in change.changes] == [("expanded", None, True)]

    def test_attribute_present_as_null_differs_from_absent(self):
        before = [NormalizedAXNode("button", "Go", "0", {})]
        after = [NormalizedAXNode("button", "Go", "0", {"value": None})]
        diff = diff_snapshots(before, after)
        assert diff.changed[0].changes[0].property == "value"

    def test_boolean_and_number_are_different(self):
        before = [NormalizedAXNode("checkbox", "Opt", "0", {"checked": True})]
        after = [NormalizedAXNode("checkbox", "Opt", "0", {"checked": 1})]
        assert has_snapshot_changes(diff_snapshots(before, after))

    def test_role_change_listed_first(self):
        before = [NormalizedAXNode("button", "Go", "0", {"a": 1})]
        after = [NormalizedAXNode("link", "Stop", "0", {"a": 2})]
        props = [c.property for c in diff_snapshots(before, after).changed[0].changes]
        assert props == ["role", "name", "a"]

    def test_output_order_follows_snapshots(self):
        old = [NormalizedAXNode("a", None, "0"), NormalizedAXNode("b", None, "0.0"), NormalizedAXNode("c", None, "0.1")]
        new = [NormalizedAXNode("a", "x", "0"), NormalizedAXNode("d", None, "0.2"), NormalizedAXNode("e", None, "0.3")]
        diff = diff_snapshots(old, new)
        assert [n.path for n in diff.added] == ["0.2", "0.3"]
        assert [n.path for n in diff.removed] == ["0.0", "0.1"]


class TestBuildAXTree:
    """Test conversion of the CDP flat node list."""

    def test_empty(self):
        assert build_ax_tree([]) is None

    def test_unnamed_generic_nodes_pruned(self):
        root = build_ax_tree(sample_page())
        roles = [child["role"] for child in root["children"]]
        assert roles == ["heading", "button", "textbox", "list"]

    def test_verbose_keeps_generic_nodes(self):
        root = build_ax_tree(sample_page(), verbose=True)
        assert [child["role"] for child in root["children"]] == ["heading", "button", "generic", "list"]

    def test_ignored_nodes_pruned_even_when_verbose(self):
        nodes = [
            ax_node("1", "RootWebArea", "Page", children=("2",)),
            ax_node("2", "none", children=("3",), parent="1", ignored=True),
            ax_node("3", "link", "Home", parent="2", backend_id=9),
        ]
        root = build_ax_tree(nodes, verbose=True)
        assert root["children"] == [{"role": "link", "name": "Home", "backendNodeId": 9}]

    def test_false_properties_dropped(self):
        nodes = [ax_node("1", "checkbox", "Agree", properties={"checked": False, "focusable": True})]
        assert build_ax_tree(nodes) == {"role": "checkbox", "name": "Agree", "focusable": True}


class TestTextSnapshot:
    def test_uids_in_preorder(self):
        snapshot = assign_uids(build_ax_tree(sample_page()), 7)
        assert snapshot.root["uid"] == "7_0"
        assert snapshot.has_uid("7_5")
        assert not snapshot.has_uid("7_6")
        # textbox promoted out of the pruned wrapper
        assert snapshot.backend_node_id("7_3") == 8

    def test_format(self):
        snapshot = assign_uids(build_ax_tree(sample_page()), 1)
        lines = format_snapshot(snapshot.root).splitlines()
        assert lines[0] == 'uid=1_0 RootWebArea "Example"'
        assert lines[1] == '  uid=1_1 heading "Welcome" level="1"'
        assert lines[-1] == '    uid=1_5 listitem "Hello"'

    def test_boolean_attributes_render_bare(self):
        root = {"role": "textbox", "name": "Email", "uid": "1_0", "focused": True}
        assert format_snapshot(root) == 'uid=1_0 textbox "Email" focused'


class TestBaselineStore:
    def test_latest_write_wins(self):
        store = BaselineStore()
        first = [NormalizedAXNode("a", None, "0")]
        second = [NormalizedAXNode("b", None, "0")]
        store.set("k", first)
        store.set("k", second)
        assert store.get("k") == second
        assert store.keys() == ["k"]

    def test_missing_key(self):
        assert BaselineStore().get("nope") is None

    def test_stores_a_copy_of_the_list(self):
        store = BaselineStore()
        nodes = [NormalizedAXNode("a", None, "0")]
        store.set("k", nodes)
        nodes.append(NormalizedAXNode("b", None, "0.0"))
        assert len(store.get("k")) == 1

    def test_clear(self):
        store = BaselineStore()
        store.set("k", [])
        assert "k" in store and len(store) == 1
        store.clear()
        assert len(store) == 0


@pytest.mark.parametrize("verbose", [False, True])
def test_normalized_capture_is_stable(verbose):
    """Two captures of an unchanged page normalize to the same snapshot."""
    first = normalize_snapshot(assign_uids(build_ax_tree(sample_page(), verbose=verbose), 1).root)
    second = normalize_snapshot(assign_uids(build_ax_tree(sample_page(), verbose=verbose), 2).root)
    assert not has_snapshot_changes(diff_snapshots(first, second))
