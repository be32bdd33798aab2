"""
browsy command line.

Provides commands for:
- Listing the tool catalogue
- A persistent line-oriented session over standard input
- One-shot tool calls from JSON params or CLI-style arguments
- Serving the tools over MCP stdio
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Coroutine, Optional

import typer

from . import __version__
from .config import BrowsyConfig, parse_viewport
from .decoder import command_from_tokens
from .errors import BrowsyError
from .params import parse_json_object, schema_to_json_schema
from .session import OUTPUT_FORMATS, Session, error_text, run_tool_once, stream_lines
from .tools import TOOLS, get_tool, tool_is_enabled

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="browsy: drive Chrome through a fixed catalogue of automation tools.",
)


def setup_logging(level: str, log_file: Optional[str] = None) -> None:
    """Log to stderr (stdout carries protocol output) and optionally a file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def _check_format(value: str) -> str:
    if value not in OUTPUT_FORMATS:
        raise typer.BadParameter(f"must be one of {', '.join(OUTPUT_FORMATS)}")
    return value


def _run(coro: Coroutine[Any, Any, Any], label: str = "browsy") -> None:
    """Run ``coro`` to completion; any failure is printed and exits 1."""
    try:
        asyncio.run(coro)
    except BrowsyError as e:
        logger.debug(f"{label} failed", exc_info=True)
        typer.echo(f"{label}: {error_text(e)}", err=True)
        raise typer.Exit(1)
    except Exception as e:
        logger.debug(f"{label} failed", exc_info=True)
        typer.echo(f"{label}: {error_text(e)}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        raise typer.Exit(130)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"browsy-cli {__version__}")
        raise typer.Exit()


@app.callback()
def root(
    ctx: typer.Context,
    headless: Optional[bool] = typer.Option(None, "--headless/--no-headless", help="Run Chrome without a window."),
    executable_path: Optional[str] = typer.Option(None, "--executable-path", help="Chrome executable to launch."),
    user_data_dir: Optional[str] = typer.Option(None, "--user-data-dir", help="Chrome profile directory."),
    isolated: Optional[bool] = typer.Option(None, "--isolated/--no-isolated", help="Use a throwaway profile."),
    chrome_arg: Optional[list[str]] = typer.Option(None, "--chrome-arg", help="Extra Chrome argument (repeatable)."),
    proxy_server: Optional[str] = typer.Option(None, "--proxy-server", help="Proxy server for Chrome."),
    viewport: Optional[str] = typer.Option(None, "--viewport", help="Initial window size, e.g. 1280x720."),
    accept_insecure_certs: Optional[bool] = typer.Option(
        None, "--accept-insecure-certs/--no-accept-insecure-certs", help="Ignore TLS certificate errors."
    ),
    browser_url: Optional[str] = typer.Option(None, "--browser-url", help="Attach to a running Chrome, e.g. http://127.0.0.1:9222."),
    ws_endpoint: Optional[str] = typer.Option(None, "--ws-endpoint", help="Attach to a running Chrome by WebSocket URL."),
    port: Optional[int] = typer.Option(None, "--port", help="Remote debugging port for a launched Chrome."),
    category_emulation: Optional[bool] = typer.Option(
        None, "--category-emulation/--no-category-emulation", help="Enable emulation tools."
    ),
    category_network: Optional[bool] = typer.Option(
        None, "--category-network/--no-category-network", help="Enable network tools."
    ),
    experimental_vision: Optional[bool] = typer.Option(
        None, "--experimental-vision/--no-experimental-vision", help="Enable coordinate-based tools."
    ),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Default wait timeout in milliseconds."),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)."),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit."
    ),
):
    """Global options override BROWSY_* environment variables."""
    config = BrowsyConfig.from_env()
    overrides = {
        "headless": headless,
        "executable_path": executable_path,
        "user_data_dir": user_data_dir,
        "isolated": isolated,
        "proxy_server": proxy_server,
        "accept_insecure_certs": accept_insecure_certs,
        "browser_url": browser_url,
        "ws_endpoint": ws_endpoint,
        "port": port,
        "category_emulation": category_emulation,
        "category_network": category_network,
        "experimental_vision": experimental_vision,
        "default_timeout_ms": timeout,
        "log_file": log_file,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    if chrome_arg:
        config.chrome_args = [*config.chrome_args, *chrome_arg]
    if viewport:
        try:
            config.viewport = parse_viewport(viewport)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--viewport")
    if log_level:
        config.log_level = log_level.upper()

    setup_logging(config.log_level, config.log_file)
    ctx.obj = config


@app.command("list-tools")
def list_tools(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", callback=_check_format, help="Output format: text or json."),
    show_all: bool = typer.Option(False, "--all", help="Include tools disabled by the current flags."),
):
    """List the tool catalogue in its fixed order."""
    config: BrowsyConfig = ctx.obj
    tools = [tool for tool in TOOLS if show_all or tool_is_enabled(tool, config)]

    if format == "json":
        payload = [
            {
                "name": tool.name,
                "description": tool.description,
                "annotations": tool.annotations,
                "inputSchema": schema_to_json_schema(tool.schema),
            }
            for tool in tools
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    for tool in tools:
        typer.echo(f"{tool.name}\t{tool.description}")


@app.command()
def session(
    ctx: typer.Context,
    format: str = typer.Option("json", "--format", callback=_check_format, help="Output format: json or text."),
):
    """Run tools line by line from standard input over one browser connection."""
    config: BrowsyConfig = ctx.obj
    runner = Session(config, output_format=format)
    _run(runner.run(stream_lines(sys.stdin)), label="session")


@app.command()
def call(
    ctx: typer.Context,
    tool_name: str = typer.Argument(..., metavar="TOOL", help="Tool name, e.g. take_snapshot."),
    params: Optional[str] = typer.Option(None, "--params", help="Tool params as a JSON object."),
    params_file: Optional[Path] = typer.Option(None, "--params-file", help="File holding the params JSON object."),
    format: str = typer.Option("json", "--format", callback=_check_format, help="Output format: json or text."),
):
    """Run one tool with JSON params."""
    if params is not None and params_file is not None:
        raise typer.BadParameter("use either --params or --params-file, not both")

    config: BrowsyConfig = ctx.obj
    name = tool_name.replace("-", "_")
    try:
        tool = get_tool(name)
        if tool is None:
            raise BrowsyError(f"Unknown tool: {name}")
        if params_file is not None:
            raw_params = parse_json_object(params_file.read_text(encoding="utf-8"), "--params-file")
        elif params is not None:
            raw_params = parse_json_object(params, "--params")
        else:
            raw_params = {}
    except (BrowsyError, OSError) as e:
        typer.echo(f"{name}: {error_text(e)}", err=True)
        raise typer.Exit(1)

    _run(run_tool_once(config, tool, raw_params, output_format=format), label=name)


@app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    }
)
def run(
    ctx: typer.Context,
    tool_name: str = typer.Argument(..., metavar="TOOL", help="Tool name, followed by its arguments."),
    output_format: str = typer.Option(
        "text", "--output-format", callback=_check_format, help="Output format: text or json. Goes before TOOL."
    ),
):
    """
    Run one tool with CLI-style arguments.

    Example: browsy run fill 1_4 "Example text"
    """
    config: BrowsyConfig = ctx.obj
    try:
        command = command_from_tokens([tool_name, *ctx.args])
    except BrowsyError as e:
        typer.echo(f"{tool_name.replace('-', '_')}: {error_text(e)}", err=True)
        raise typer.Exit(1)

    _run(run_tool_once(config, command.tool, command.raw_params, output_format=output_format), label=command.tool_name)


@app.command()
def serve(ctx: typer.Context):
    """Serve the tools over MCP stdio."""
    from .server import serve as serve_mcp

    _run(serve_mcp(ctx.obj), label="serve")


def main() -> None:
    """Entry point for the browsy console script."""
    app(prog_name="browsy")


if __name__ == "__main__":
    main()
