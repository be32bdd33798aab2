"""
Response sink for tool handlers.

Handlers append lines and attach images; ``handle`` renders the final
content items once the handler has returned.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from .ax_tree import format_snapshot

if TYPE_CHECKING:
    from .context import SessionContext

logger = logging.getLogger(__name__)


class ToolResponse:
    """Collects handler output."""

    def __init__(self):
        self.response_lines: list[str] = []
        self.images: list[dict[str, str]] = []
        self.include_pages = False
        self.snapshot_requested = False
        self.snapshot_verbose = False
        self.snapshot_file: Optional[str] = None

    def append_response_line(self, line: str) -> None:
        self.response_lines.append(line)

    def attach_image(self, data: str, mime_type: str) -> None:
        self.images.append({"data": data, "mimeType": mime_type})

    def set_include_pages(self, value: bool = True) -> None:
        self.include_pages = value

    def include_snapshot(self, verbose: bool = False, file_path: Optional[str] = None) -> None:
        self.snapshot_requested = True
        self.snapshot_verbose = verbose
        self.snapshot_file = file_path

    async def handle(self, tool_name: str, context: "SessionContext") -> list[dict[str, Any]]:
        """
        Render collected output as content items.

        Returns:
            A text item followed by one item per attached image
        """
        lines = [f"# {tool_name} response", *self.response_lines]

        if self.include_pages:
            lines.append("## Pages")
            for index, page in enumerate(await context.list_pages()):
                marker = " [selected]" if page["selected"] else ""
                lines.append(f"{index}: {page['url']}{marker}")

        if self.snapshot_requested:
            snapshot = await context.create_text_snapshot(verbose=self.snapshot_verbose)
            text = format_snapshot(snapshot.root) if snapshot else ""
            if self.snapshot_file:
                path = Path(self.snapshot_file)
                path.write_text(text, encoding="utf-8")
                lines.append(f"Saved snapshot to {path.resolve()}.")
            else:
                lines.append("## Page content")
                lines.append(text or "<empty page>")

        content: list[dict[str, Any]] = [{"type": "text", "text": "\n".join(lines)}]
        for image in self.images:
            content.append({"type": "image", "mimeType": image["mimeType"], "data": image["data"]})
        return content
