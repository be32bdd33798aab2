"""
DOM utilities for element interaction.

Elements are addressed by backend node IDs taken from the latest text
snapshot. Provides helpers for:
- Scrolling an element into view
- Getting element coordinates and bounds
- Focusing an element
"""

import logging

from .browser import Browser
from .cdp import CDPError
from .errors import ElementNotVisibleError

logger = logging.getLogger(__name__)


async def scroll_into_view(browser: Browser, backend_node_id: int) -> None:
    """Scroll element into view."""
    await browser.enable_domain("DOM")
    await browser.cdp.send("DOM.scrollIntoViewIfNeeded", {"backendNodeId": backend_node_id})


async def get_element_bounds(browser: Browser, backend_node_id: int) -> dict:
    """
    Get the bounding box of an element.

    Returns:
        Dict with x, y, width, height

    Raises:
        ElementNotVisibleError: If element has no box model
    """
    try:
        model = await browser.cdp.send("DOM.getBoxModel", {"backendNodeId": backend_node_id})
    except CDPError as e:
        raise ElementNotVisibleError(f"Element has no box model: {e.message}") from e

    # Content quad is [x1, y1, x2, y2, x3, y3, x4, y4], clockwise from top-left
    content = model["model"]["content"]
    return {
        "x": content[0],
        "y": content[1],
        "width": content[2] - content[0],
        "height": content[5] - content[1],
    }


async def get_element_center(browser: Browser, backend_node_id: int) -> tuple[float, float]:
    """Scroll the element into view and return its center point."""
    await scroll_into_view(browser, backend_node_id)
    bounds = await get_element_bounds(browser, backend_node_id)
    return bounds["x"] + bounds["width"] / 2, bounds["y"] + bounds["height"] / 2


async def focus_element(browser: Browser, backend_node_id: int) -> None:
    """Focus an element."""
    await browser.enable_domain("DOM")
    await browser.cdp.send("DOM.focus", {"backendNodeId": backend_node_id})
