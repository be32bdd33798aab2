"""
Inspection tools for browsy-cli.

Provides tools for:
- Screenshots
- JavaScript evaluation
- Viewport emulation
- Network request listing
"""

import base64
import json
from pathlib import Path

from ..context import SessionContext
from ..dom import get_element_bounds, scroll_into_view
from ..params import ArrayParam, BooleanParam, EnumParam, NumberParam, StringParam
from ..response import ToolResponse
from .base import ToolCategory, define_tool

RESOURCE_TYPES = (
    "document", "stylesheet", "image", "media", "font", "script", "texttrack",
    "xhr", "fetch", "prefetch", "eventsource", "websocket", "manifest",
    "signedexchange", "ping", "cspviolationreport", "preflight", "other",
)
DEFAULT_PAGE_SIZE = 20


@define_tool(
    name="take_screenshot",
    description="Take a screenshot of the page or element.",
    category=ToolCategory.DEBUGGING,
    schema={
        "format": EnumParam(
            'Type of format to save the screenshot as. Default is "png"',
            required=False,
            default="png",
            values=("png", "jpeg", "webp"),
        ),
        "quality": NumberParam(
            "Compression quality for JPEG and WebP formats (0-100).",
            required=False,
            integer=True,
            minimum=0,
        ),
        "fullPage": BooleanParam(
            "If set to true takes a screenshot of the full page instead of the currently visible viewport.",
            required=False,
        ),
        "uid": StringParam(
            "The uid of an element on the page from the page content snapshot. "
            "If omitted takes a page screenshot.",
            required=False,
        ),
        "filePath": StringParam(
            "The absolute path, or a path relative to the current working directory, "
            "to save the screenshot to instead of attaching it to the response.",
            required=False,
        ),
    },
)
async def take_screenshot(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    fmt = params["format"]

    clip = None
    if params.get("uid"):
        backend_id = context.get_backend_node_id(params["uid"])
        await scroll_into_view(browser, backend_id)
        clip = await get_element_bounds(browser, backend_id)

    data = await browser.screenshot(
        format=fmt,
        quality=params.get("quality"),
        full_page=params.get("fullPage", False) and clip is None,
        clip=clip,
    )

    target = "the selected element" if clip else (
        "the full current page" if params.get("fullPage") else "the current page's viewport"
    )
    response.append_response_line(f"Took a screenshot of {target}.")

    if params.get("filePath"):
        path = Path(params["filePath"])
        path.write_bytes(base64.b64decode(data))
        response.append_response_line(f"Saved screenshot to {path.resolve()}.")
    else:
        response.attach_image(data, f"image/{fmt}")


@define_tool(
    name="evaluate_script",
    description=(
        "Evaluate a JavaScript function inside the currently selected page. "
        "Returns the response as JSON so returned values have to be JSON-serializable."
    ),
    category=ToolCategory.DEBUGGING,
    schema={
        "function": StringParam(
            "A JavaScript function declaration to run, e.g. `() => document.title` "
            "or `(el) => el.innerText`."
        ),
        "args": ArrayParam(
            "Element uids from the latest snapshot, passed to the function in order.",
            required=False,
            items=StringParam(),
        ),
    },
)
async def evaluate_script(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    backend_ids = [context.get_backend_node_id(uid) for uid in params.get("args") or []]
    result = await browser.call_function(params["function"], backend_ids)
    response.append_response_line("Script ran on page and returned:")
    response.append_response_line("```json")
    response.append_response_line(json.dumps(result, indent=2))
    response.append_response_line("```")


@define_tool(
    name="resize_page",
    description="Resizes the selected page's viewport so that the page has the specified dimensions.",
    category=ToolCategory.EMULATION,
    schema={
        "width": NumberParam("Page width", integer=True, minimum=1),
        "height": NumberParam("Page height", integer=True, minimum=1),
    },
)
async def resize_page(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    width, height = int(params["width"]), int(params["height"])
    await browser.set_viewport(width, height)
    response.append_response_line(f"The page has been resized to {width}x{height}.")


@define_tool(
    name="list_network_requests",
    description="List all requests for the currently selected page since it was selected.",
    category=ToolCategory.NETWORK,
    schema={
        "resourceTypes": ArrayParam(
            "Filter requests to only return requests of the specified resource types.",
            required=False,
            items=EnumParam(values=RESOURCE_TYPES),
        ),
        "pageSize": NumberParam(
            "Maximum number of requests to return. When omitted, returns 20.",
            required=False,
            integer=True,
            minimum=1,
        ),
        "pageIdx": NumberParam(
            "Page number to return (0-based). When omitted, returns the first page.",
            required=False,
            integer=True,
            minimum=0,
        ),
    },
    read_only=True,
)
async def list_network_requests(params: dict, response: ToolResponse, context: SessionContext) -> None:
    requests = context.network.requests
    types = params.get("resourceTypes")
    if types:
        requests = [r for r in requests if r["resourceType"] in types]

    page_size = int(params.get("pageSize") or DEFAULT_PAGE_SIZE)
    page_idx = int(params.get("pageIdx") or 0)
    start = page_idx * page_size
    page = requests[start:start + page_size]

    response.append_response_line("## Network requests")
    if not requests:
        response.append_response_line("No requests found.")
        return
    response.append_response_line(
        f"Showing {start + 1 if page else 0}-{start + len(page)} of {len(requests)} (page {page_idx})."
    )
    for request in page:
        status = request["status"] if request["status"] is not None else "pending"
        response.append_response_line(f"{request['method']} {request['url']} [{status}]")


TOOLS = [take_screenshot, evaluate_script, resize_page, list_network_requests]
