"""
Command decoder.

Turns one line of session input into a tool invocation. Two forms:

- JSON: ``{"tool": "click", "params": {"uid": "1_3"}}``
- CLI:  ``click 1_3 --dbl-click``

Decoding never raises past ``decode_line``; failures come back as a
labelled DecodeError so the session can report them and keep going.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .errors import DecodeError
from .params import ArrayParam, BooleanParam, ParamSpec, coerce_token, is_positional
from .tools import TOOLS, ToolDefinition

PROGRAM_NAMES = ("browsy", "browsy-cli")
EXIT_WORDS = ("exit", "quit")

SESSION_LABEL = "session"


@dataclass(frozen=True)
class Command:
    tool: ToolDefinition
    raw_params: dict[str, Any] = field(default_factory=dict)

    @property
    def tool_name(self) -> str:
        return self.tool.name


@dataclass(frozen=True)
class DecodedLine:
    """
    Result of decoding one input line.

    Exactly one of ``command``, ``error`` or ``exit`` is set, or none of
    them for blank and comment lines.
    """

    command: Optional[Command] = None
    error: Optional[DecodeError] = None
    label: str = SESSION_LABEL
    exit: bool = False

    @property
    def skip(self) -> bool:
        return self.command is None and self.error is None and not self.exit


def tokenize(line: str) -> list[str]:
    """
    Split a CLI line with shell-like rules.

    Whitespace separates tokens, single or double quotes group (and are
    stripped), a backslash escapes the next character.

    Raises:
        DecodeError: On an unterminated quote
    """
    tokens: list[str] = []
    current: list[str] = []
    quote: Optional[str] = None
    escaping = False
    # a quoted empty string is still a token
    pending = False

    for char in line:
        if escaping:
            current.append(char)
            escaping = False
            pending = True
            continue
        if char == "\\":
            escaping = True
            continue
        if quote:
            if char == quote:
                quote = None
            else:
                current.append(char)
            continue
        if char in ("'", '"'):
            quote = char
            pending = True
            continue
        if char.isspace():
            if current or pending:
                tokens.append("".join(current))
            current = []
            pending = False
            continue
        current.append(char)

    if quote:
        raise DecodeError("Unterminated quote in CLI line")
    if escaping:
        current.append("\\")
    if current or pending:
        tokens.append("".join(current))
    return tokens


def kebab_to_camel(key: str) -> str:
    return re.sub(r"-([a-zA-Z0-9])", lambda m: m.group(1).upper(), key)


def find_tool(name: str, tools: Optional[Sequence[ToolDefinition]] = None) -> Optional[ToolDefinition]:
    for tool in TOOLS if tools is None else tools:
        if tool.name == name:
            return tool
    return None


def _assign(params: dict[str, Any], key: str, spec: ParamSpec, value: Any) -> None:
    if not isinstance(spec, ArrayParam) or isinstance(value, list):
        params[key] = value
        return
    existing = params.get(key)
    if existing is None:
        params[key] = [value]
    else:
        existing.append(value)


def parse_tool_tokens(tool: ToolDefinition, tokens: Sequence[str]) -> dict[str, Any]:
    """
    Map the tokens following a tool name onto the tool's params.

    Required scalar/enum params take positional tokens in schema order.
    ``--name value`` and ``--name=value`` set a param, ``--flag`` and
    ``--no-flag`` set booleans, repeated array flags accumulate, and a
    bare ``--`` makes every following token positional.

    Raises:
        DecodeError: Unknown flag, missing flag value, extra positional,
            or a value that can't be coerced
    """
    schema = tool.schema
    positional_keys = [key for key, spec in schema.items() if is_positional(spec)]
    params: dict[str, Any] = {}
    next_positional = 0
    after_double_dash = False

    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1

        if token == "--" and not after_double_dash:
            after_double_dash = True
            continue

        if not after_double_dash and token.startswith("--"):
            without_prefix = token[2:]

            if without_prefix.startswith("no-"):
                raw_key = without_prefix[3:]
                key = kebab_to_camel(raw_key)
                spec = schema.get(key)
                if spec is None:
                    raise DecodeError(f"Unknown param: --{raw_key}")
                _assign(params, key, spec, False)
                continue

            raw_key, sep, raw_value = without_prefix.partition("=")
            key = kebab_to_camel(raw_key)
            spec = schema.get(key)
            if spec is None:
                raise DecodeError(f"Unknown param: --{raw_key}")

            if not sep:
                if isinstance(spec, BooleanParam):
                    _assign(params, key, spec, True)
                    continue
                if i >= len(tokens):
                    raise DecodeError(f"Missing value for --{raw_key}")
                raw_value = tokens[i]
                i += 1

            _assign(params, key, spec, coerce_token(spec, key, raw_value))
            continue

        if next_positional >= len(positional_keys):
            raise DecodeError(f"Unexpected extra arg: {token}")
        key = positional_keys[next_positional]
        next_positional += 1
        params[key] = coerce_token(schema[key], key, token)

    return params


def command_from_tokens(
    tokens: Sequence[str],
    tools: Optional[Sequence[ToolDefinition]] = None,
) -> Command:
    """
    Build a Command from ``[tool-name, args...]``.

    Raises:
        DecodeError: Unknown tool or bad arguments
    """
    tool_name = tokens[0].replace("-", "_")
    tool = find_tool(tool_name, tools)
    if tool is None:
        raise DecodeError(f"Unknown tool: {tool_name}")
    return Command(tool, parse_tool_tokens(tool, tokens[1:]))


def _decode_json(line: str, tools: Optional[Sequence[ToolDefinition]]) -> DecodedLine:
    try:
        message = json.loads(line)
    except json.JSONDecodeError as e:
        return DecodedLine(error=DecodeError(f"Invalid JSON message: {e}"))

    if not isinstance(message, dict):
        return DecodedLine(error=DecodeError("Expected an object message"))

    tool_name = message.get("tool")
    if tool_name in EXIT_WORDS:
        return DecodedLine(exit=True)
    if not isinstance(tool_name, str) or not tool_name.strip():
        return DecodedLine(error=DecodeError('Missing required field: "tool" (string)'))
    tool_name = tool_name.strip()

    tool = find_tool(tool_name, tools)
    if tool is None:
        return DecodedLine(error=DecodeError(f"Unknown tool: {tool_name}"), label=tool_name)

    params = message.get("params")
    return DecodedLine(command=Command(tool, dict(params) if isinstance(params, dict) else {}))


def _decode_cli(line: str, tools: Optional[Sequence[ToolDefinition]]) -> DecodedLine:
    try:
        tokens = tokenize(line)
    except DecodeError as e:
        return DecodedLine(error=e)

    if tokens and tokens[0] in PROGRAM_NAMES:
        tokens = tokens[1:]
    if not tokens:
        return DecodedLine()
    if tokens[0] in EXIT_WORDS:
        return DecodedLine(exit=True)

    tool_name = tokens[0].replace("-", "_")
    if find_tool(tool_name, tools) is None:
        return DecodedLine(error=DecodeError(f"Unknown tool: {tool_name}"))
    try:
        return DecodedLine(command=command_from_tokens(tokens, tools))
    except DecodeError as e:
        return DecodedLine(error=e, label=tool_name)


def decode_line(line: str, tools: Optional[Sequence[ToolDefinition]] = None) -> DecodedLine:
    """
    Decode one line of session input.

    Blank lines and ``#`` comments are skipped. Lines starting with ``{``
    are JSON messages; anything else is a CLI line.
    """
    trimmed = line.strip()
    if not trimmed or trimmed.startswith("#"):
        return DecodedLine()
    if trimmed.startswith("{"):
        return _decode_json(trimmed, tools)
    return _decode_cli(trimmed, tools)
