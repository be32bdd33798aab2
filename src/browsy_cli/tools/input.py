"""
Input tools for browsy-cli.

Provides tools for:
- Mouse clicks (by snapshot uid, or by coordinates under computer vision)
- Hovering
- Filling inputs
- Keyboard input
"""

import asyncio

from ..context import SessionContext
from ..dom import focus_element, get_element_center
from ..params import ArrayParam, BooleanParam, EnumParam, NumberParam, StringParam
from ..response import ToolResponse
from .base import ToolCategory, define_tool

UID = StringParam("The uid of an element on the page from the page content snapshot")
DBL_CLICK = BooleanParam("Set to true for double clicks. Default is false.", required=False)


@define_tool(
    name="click",
    description="Clicks on the provided element",
    category=ToolCategory.INPUT,
    schema={"uid": UID, "dblClick": DBL_CLICK},
)
async def click(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    backend_id = context.get_backend_node_id(params["uid"])
    x, y = await get_element_center(browser, backend_id)
    double = params.get("dblClick", False)
    await browser.mouse_click(x, y, click_count=2 if double else 1)
    response.append_response_line(
        "Successfully double clicked on the element" if double else "Successfully clicked on the element"
    )
    response.include_snapshot()


@define_tool(
    name="click_at",
    description="Clicks at the provided coordinates",
    category=ToolCategory.INPUT,
    schema={
        "x": NumberParam("The x coordinate"),
        "y": NumberParam("The y coordinate"),
        "dblClick": DBL_CLICK,
    },
    conditions=("computerVision",),
)
async def click_at(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    double = params.get("dblClick", False)
    await browser.mouse_click(params["x"], params["y"], click_count=2 if double else 1)
    response.append_response_line(
        f"Successfully {'double clicked' if double else 'clicked'} at the coordinates"
    )
    response.include_snapshot()


@define_tool(
    name="hover",
    description="Hover over the provided element",
    category=ToolCategory.INPUT,
    schema={"uid": UID},
)
async def hover(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    backend_id = context.get_backend_node_id(params["uid"])
    x, y = await get_element_center(browser, backend_id)
    await browser.mouse_move(x, y)
    response.append_response_line("Successfully hovered over the element")
    response.include_snapshot()


@define_tool(
    name="fill",
    description="Type text into an input or text area, replacing its current value",
    category=ToolCategory.INPUT,
    schema={
        "uid": UID,
        "value": StringParam("The value to fill in"),
    },
)
async def fill(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    backend_id = context.get_backend_node_id(params["uid"])
    await focus_element(browser, backend_id)
    # select everything so the typed text replaces the current value
    await browser.call_function(
        "function (el) { if (typeof el.select === 'function') { el.select(); } }",
        [backend_id],
    )
    await browser.press_key("Backspace")
    await asyncio.sleep(0.05)
    await browser.insert_text(params["value"])
    response.append_response_line("Successfully filled out the element")
    response.include_snapshot()


@define_tool(
    name="press_key",
    description='Press a key or key combination, e.g. "Enter" or "a" with modifiers ["Control"]',
    category=ToolCategory.INPUT,
    schema={
        "key": StringParam('Key name, e.g. "Enter", "Tab", "Escape", "a"'),
        "modifiers": ArrayParam(
            "Modifier keys held during the press",
            required=False,
            items=EnumParam(values=("Alt", "Control", "Meta", "Shift")),
        ),
    },
)
async def press_key(params: dict, response: ToolResponse, context: SessionContext) -> None:
    browser = context.get_selected_page()
    modifiers = params.get("modifiers") or []
    await browser.press_key(params["key"], modifiers)
    combo = "+".join([*modifiers, params["key"]])
    response.append_response_line(f"Successfully pressed key: {combo}")
    response.include_snapshot()


TOOLS = [click, click_at, hover, fill, press_key]
