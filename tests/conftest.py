"""Pytest configuration and fixtures for browsy-cli tests."""

import io
from typing import Any

import pytest

from browsy_cli.config import BrowsyConfig
from browsy_cli.context import SessionContext
from browsy_cli.params import validate_params
from browsy_cli.response import ToolResponse
from browsy_cli.session import Session
from browsy_cli.tools import get_tool
from fakes import FakeBrowserManager


@pytest.fixture
def config():
    return BrowsyConfig()


@pytest.fixture
def manager(config):
    return FakeBrowserManager(config)


@pytest.fixture
async def context(manager, config):
    context = await SessionContext.create(manager, config)
    yield context
    context.dispose()


@pytest.fixture
def page(manager):
    """The page a fresh context selects."""
    return next(iter(manager.pages.values()))


@pytest.fixture
def call_tool(context):
    """Validate params and run one tool handler; returns the rendered content."""

    async def call(name: str, **raw_params: Any) -> list[dict]:
        tool = get_tool(name)
        params = validate_params(tool.schema, raw_params)
        response = ToolResponse()
        await tool.handler(params, response, context)
        return await response.handle(tool.name, context)

    return call


@pytest.fixture
def make_session(config, manager):
    """Build a Session over the fake manager writing to in-memory streams."""

    def make(output_format: str = "json", **kwargs: Any) -> Session:
        return Session(
            kwargs.pop("config", config),
            manager=kwargs.pop("manager", manager),
            output_format=output_format,
            stdout=io.StringIO(),
            stderr=io.StringIO(),
            **kwargs,
        )

    return make
