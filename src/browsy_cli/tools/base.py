"""
Tool definitions.

A tool is a name, an ordered parameter schema and an async handler taking
``(params, response, context)``. Definitions are created once at import
time and never mutated.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ..params import NumberParam, ParamSpec

if TYPE_CHECKING:
    from ..config import BrowsyConfig
    from ..context import SessionContext
    from ..response import ToolResponse


class ToolCategory(str, Enum):
    NAVIGATION = "navigation"
    INPUT = "input"
    DEBUGGING = "debugging"
    EMULATION = "emulation"
    NETWORK = "network"


TIMEOUT_PARAM = NumberParam(
    "Maximum wait time in milliseconds. If set to 0, the default timeout will be used.",
    required=False,
    integer=True,
    minimum=0,
)

Handler = Callable[[dict[str, Any], "ToolResponse", "SessionContext"], Awaitable[None]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    category: ToolCategory
    schema: dict[str, ParamSpec]
    handler: Handler
    read_only: bool = False
    conditions: tuple[str, ...] = field(default_factory=tuple)

    @property
    def annotations(self) -> dict[str, Any]:
        annotations: dict[str, Any] = {
            "category": self.category.value,
            "readOnlyHint": self.read_only,
        }
        if self.conditions:
            annotations["conditions"] = list(self.conditions)
        return annotations


def define_tool(
    name: str,
    description: str,
    category: ToolCategory,
    schema: dict[str, ParamSpec],
    read_only: bool = False,
    conditions: tuple[str, ...] = (),
) -> Callable[[Handler], ToolDefinition]:
    """Decorator turning an async handler into a ToolDefinition."""

    def decorator(handler: Handler) -> ToolDefinition:
        return ToolDefinition(
            name=name,
            description=description,
            category=category,
            schema=schema,
            handler=handler,
            read_only=read_only,
            conditions=tuple(conditions),
        )

    return decorator


def tool_is_enabled(tool: ToolDefinition, config: "BrowsyConfig") -> bool:
    """Apply category and feature gates from the process configuration."""
    if tool.category is ToolCategory.EMULATION and not config.category_emulation:
        return False
    if tool.category is ToolCategory.NETWORK and not config.category_network:
        return False
    if "computerVision" in tool.conditions and not config.experimental_vision:
        return False
    return True
