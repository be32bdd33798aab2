"""
browsy-cli MCP server.

Exposes the same tool catalogue as the CLI over MCP stdio. Every MCP
call goes through one shared Session, so concurrent requests from the
client queue on the session's execution guard just like session lines.
"""

import asyncio
import inspect
import logging
from typing import Annotated, Any, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from mcp.types import ImageContent, TextContent, ToolAnnotations
from pydantic import Field

from .config import BrowsyConfig
from .errors import FatalError
from .params import ArrayParam, BooleanParam, EnumParam, NumberParam, ObjectParam, ParamSpec, StringParam
from .session import Session, error_text
from .tools import TOOLS, ToolDefinition, tool_is_enabled

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "Browser automation over the Chrome DevTools Protocol. Take a snapshot first; "
    "element uids are only valid against the latest snapshot."
)


def _python_type(spec: ParamSpec) -> Any:
    """Map a param spec onto the type pydantic builds the input schema from."""
    match spec:
        case StringParam():
            return str
        case NumberParam(integer=True):
            return int
        case NumberParam():
            return float
        case BooleanParam():
            return bool
        case EnumParam(values=values):
            return Literal[values]
        case ArrayParam(items=None):
            return list[Any]
        case ArrayParam(items=items):
            return list[_python_type(items)]
        case ObjectParam():
            return dict[str, Any]
    raise TypeError(f"Unsupported param spec: {spec!r}")


def build_signature(tool: ToolDefinition) -> inspect.Signature:
    """Keyword-only signature mirroring the tool's schema."""
    parameters = []
    for key, spec in tool.schema.items():
        annotation = _python_type(spec)
        field_args: dict[str, Any] = {"description": spec.description}
        if isinstance(spec, NumberParam) and spec.minimum is not None:
            field_args["ge"] = spec.minimum
        if spec.required:
            default = inspect.Parameter.empty
        else:
            annotation = Optional[annotation]
            default = spec.default
        parameters.append(
            inspect.Parameter(
                key,
                inspect.Parameter.KEYWORD_ONLY,
                default=default,
                annotation=Annotated[annotation, Field(**field_args)],
            )
        )
    return inspect.Signature(parameters)


def to_mcp_content(item: dict[str, Any]) -> TextContent | ImageContent:
    if item["type"] == "image":
        return ImageContent(type="image", data=item["data"], mimeType=item["mimeType"])
    return TextContent(type="text", text=item["text"])


def _make_tool_function(session: Session, tool: ToolDefinition):
    async def call_tool(**kwargs: Any) -> list[TextContent | ImageContent]:
        raw_params = {key: value for key, value in kwargs.items() if value is not None}
        try:
            content = await session.execute(tool, raw_params)
        except FatalError:
            raise
        except Exception as e:
            raise ToolError(error_text(e)) from e
        return [to_mcp_content(item) for item in content]

    signature = build_signature(tool)
    call_tool.__name__ = tool.name
    call_tool.__doc__ = tool.description
    call_tool.__signature__ = signature
    call_tool.__annotations__ = {
        param.name: param.annotation for param in signature.parameters.values()
    }
    return call_tool


def create_server(session: Session) -> FastMCP:
    """
    Build a FastMCP server over ``session``.

    Only tools enabled by the session's config are registered.
    """
    mcp = FastMCP("browsy-cli", instructions=SERVER_INSTRUCTIONS)
    for tool in session.tools:
        if not tool_is_enabled(tool, session.config):
            logger.debug(f"Skipping disabled tool {tool.name}")
            continue
        mcp.tool(
            _make_tool_function(session, tool),
            name=tool.name,
            description=tool.description,
            tags={tool.category.value},
            annotations=ToolAnnotations(readOnlyHint=tool.read_only),
        )
    return mcp


async def serve(config: BrowsyConfig, session: Optional[Session] = None) -> None:
    """Run the MCP stdio server until the client disconnects, then tear down."""
    session = session or Session(config, tools=TOOLS)
    mcp = create_server(session)
    logger.info("Starting browsy-cli MCP server...")
    try:
        await mcp.run_async(transport="stdio")
    finally:
        logger.info("Shutting down browsy-cli MCP server...")
        await session.close()


def main(config: Optional[BrowsyConfig] = None) -> None:
    """Entry point for the MCP server."""
    asyncio.run(serve(config or BrowsyConfig.from_env()))
