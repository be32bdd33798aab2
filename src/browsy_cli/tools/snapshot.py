"""
Snapshot tools for browsy-cli.

Provides tools for:
- Text snapshots of the accessibility tree
- Waiting for text to appear
- Change snapshots: diffing the accessibility tree against a stored
  baseline so polling a live page only reports what changed
"""

import json
from typing import Any, Union

from ..accessibility import (
    NodeChange,
    NormalizedAXNode,
    diff_snapshots,
    has_snapshot_changes,
    normalize_snapshot,
)
from ..context import SessionContext
from ..params import BooleanParam, StringParam
from ..response import ToolResponse
from .base import TIMEOUT_PARAM, ToolCategory, define_tool

DEFAULT_BASELINE_KEY = "default"


@define_tool(
    name="take_snapshot",
    description=(
        "Take a text snapshot of the currently selected page based on the a11y tree. "
        "The snapshot lists page elements along with a unique identifier (uid). "
        "Always use the latest snapshot. Prefer taking a snapshot over taking a screenshot."
    ),
    category=ToolCategory.DEBUGGING,
    schema={
        "verbose": BooleanParam(
            "Whether to include all possible information available in the full a11y tree. Default is false.",
            required=False,
        ),
        "filePath": StringParam(
            "The absolute path, or a path relative to the current working directory, "
            "to save the snapshot to instead of attaching it to the response.",
            required=False,
        ),
    },
)
async def take_snapshot(params: dict, response: ToolResponse, context: SessionContext) -> None:
    response.include_snapshot(
        verbose=params.get("verbose", False),
        file_path=params.get("filePath"),
    )


@define_tool(
    name="wait_for",
    description="Wait for the specified text to appear on the selected page.",
    category=ToolCategory.NAVIGATION,
    schema={
        "text": StringParam("Text to appear on the page"),
        "timeout": TIMEOUT_PARAM,
    },
    read_only=True,
)
async def wait_for(params: dict, response: ToolResponse, context: SessionContext) -> None:
    await context.wait_for_text(params["text"], params.get("timeout"))
    response.append_response_line(f'Element with text "{params["text"]}" found.')
    response.include_snapshot()


@define_tool(
    name="take_change_snapshot",
    description=(
        "Capture accessibility (AX) changes compared to a stored baseline and report only the "
        "differences. Use this when polling dynamic views, such as chats, live dashboards or SPA "
        "regions that refresh while you wait, to confirm that expected elements appeared or "
        "attributes flipped without re-reading the entire tree."
    ),
    category=ToolCategory.DEBUGGING,
    schema={
        "baselineKey": StringParam(
            'Identifier used to store the baseline snapshot. Defaults to "default".',
            required=False,
            strip=True,
            min_length=1,
        ),
        "replaceBaseline": BooleanParam(
            "Whether to replace the stored baseline with the latest snapshot. Defaults to true.",
            required=False,
        ),
        "compareTo": StringParam(
            "Compare against a different baseline key. When omitted, compares against the same key as baselineKey.",
            required=False,
            strip=True,
            min_length=1,
        ),
    },
    read_only=True,
)
async def take_change_snapshot(params: dict, response: ToolResponse, context: SessionContext) -> None:
    baseline_key = params.get("baselineKey") or DEFAULT_BASELINE_KEY
    compare_key = params.get("compareTo") or baseline_key
    replace_baseline = params.get("replaceBaseline", True)

    snapshot = await context.create_text_snapshot(verbose=False)
    if snapshot is None:
        response.append_response_line("Unable to capture accessibility snapshot for the current page.")
        return

    current = normalize_snapshot(snapshot.root)
    baseline = context.get_accessibility_baseline(compare_key)

    if baseline is None:
        context.set_accessibility_baseline(baseline_key, current)
        if compare_key == baseline_key:
            response.append_response_line(
                f'No baseline found for key "{compare_key}". Created a baseline with the current snapshot.'
            )
        else:
            response.append_response_line(
                f'No baseline found for key "{compare_key}". '
                f'Created a baseline under "{baseline_key}" with the current snapshot.'
            )
        return

    diff = diff_snapshots(baseline, current)
    if not has_snapshot_changes(diff):
        response.append_response_line(f'No accessibility changes compared to baseline "{compare_key}".')
    else:
        response.append_response_line(f'Accessibility changes compared to baseline "{compare_key}":')
        response.append_response_line(
            f"Added nodes: {len(diff.added)}, Removed nodes: {len(diff.removed)}, "
            f"Changed nodes: {len(diff.changed)}"
        )
        if diff.added:
            response.append_response_line("## Added")
            for node in diff.added:
                response.append_response_line(f"- {format_node_summary(node)}")
        if diff.removed:
            response.append_response_line("## Removed")
            for node in diff.removed:
                response.append_response_line(f"- {format_node_summary(node)}")
        if diff.changed:
            response.append_response_line("## Changed")
            for change in diff.changed:
                response.append_response_line(f"- {format_node_summary(change)}")
                for detail in change.changes:
                    response.append_response_line(
                        f"  - {detail.property}: {format_diff_value(detail.before)} -> "
                        f"{format_diff_value(detail.after)}"
                    )

    if replace_baseline:
        context.set_accessibility_baseline(baseline_key, current)


def format_node_summary(node: Union[NormalizedAXNode, NodeChange]) -> str:
    role = f"[{node.role}]" if node.role else "[unknown role]"
    name = f' "{node.name}"' if node.name else ""
    return f"{role}{name} at path {node.path}"


def format_diff_value(value: Any) -> str:
    """Strings quoted, numbers and booleans literal, the rest as JSON."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


TOOLS = [take_snapshot, wait_for, take_change_snapshot]
