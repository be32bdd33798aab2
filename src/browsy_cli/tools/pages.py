"""
Page tools for browsy-cli.

Provides tools for:
- Listing, selecting, opening and closing pages
- URL and history navigation of the selected page
"""

from ..context import SessionContext
from ..errors import HandlerError, ValidationError
from ..params import EnumParam, NumberParam, StringParam
from ..response import ToolResponse
from .base import TIMEOUT_PARAM, ToolCategory, define_tool

PAGE_IDX = NumberParam(
    "The index of the page. Call list_pages to get available pages.",
    integer=True,
    minimum=0,
)


@define_tool(
    name="list_pages",
    description="Get a list of pages open in the browser.",
    category=ToolCategory.NAVIGATION,
    schema={},
    read_only=True,
)
async def list_pages(params: dict, response: ToolResponse, context: SessionContext) -> None:
    response.set_include_pages(True)


@define_tool(
    name="select_page",
    description="Select a page as a context for future tool calls.",
    category=ToolCategory.NAVIGATION,
    schema={"pageIdx": PAGE_IDX},
    read_only=True,
)
async def select_page(params: dict, response: ToolResponse, context: SessionContext) -> None:
    await context.select_page(int(params["pageIdx"]))
    response.set_include_pages(True)


@define_tool(
    name="new_page",
    description="Creates a new page and selects it.",
    category=ToolCategory.NAVIGATION,
    schema={
        "url": StringParam("URL to load in a new page."),
        "timeout": TIMEOUT_PARAM,
    },
)
async def new_page(params: dict, response: ToolResponse, context: SessionContext) -> None:
    await context.new_page(params["url"], params.get("timeout"))
    response.set_include_pages(True)


@define_tool(
    name="close_page",
    description="Closes the page by its index. The last open page cannot be closed.",
    category=ToolCategory.NAVIGATION,
    schema={"pageIdx": PAGE_IDX},
)
async def close_page(params: dict, response: ToolResponse, context: SessionContext) -> None:
    await context.close_page(int(params["pageIdx"]))
    response.set_include_pages(True)


@define_tool(
    name="navigate_page",
    description="Navigates the currently selected page to a URL, or through its history.",
    category=ToolCategory.NAVIGATION,
    schema={
        "type": EnumParam(
            "Navigate by URL, back or forward in history, or reload.",
            required=False,
            default="url",
            values=("url", "back", "forward", "reload"),
        ),
        "url": StringParam("Target URL (only with type=url).", required=False),
        "timeout": TIMEOUT_PARAM,
    },
)
async def navigate_page(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    timeout = context.timeout_seconds(params.get("timeout"))
    nav_type = params["type"]

    if nav_type == "url":
        url = params.get("url")
        if not url:
            raise ValidationError('A "url" is required when type is "url"', field="url")
        await browser.navigate(url, timeout=timeout)
        response.append_response_line(f"Successfully navigated to {url}.")
    elif nav_type == "reload":
        await browser.reload(timeout=timeout)
        response.append_response_line("Successfully reloaded the page.")
    else:
        if not await browser.go_history(-1 if nav_type == "back" else 1):
            raise HandlerError(f"Cannot navigate {nav_type}: no history entry")
        response.append_response_line(f"Successfully navigated {nav_type} to {await browser.get_url()}.")

    response.set_include_pages(True)


TOOLS = [list_pages, select_page, new_page, close_page, navigate_page]
