"""E2E tests for the IXP MCP tools using the in-memory FastMCP client."""

__test__ = True

import pytest
import pytest_asyncio

from fastmcp import Client
from ixpserver.server import create_server
from tests.helpers import make_intent, make_records, offset_handler


@pytest_asyncio.fixture
async def mcp_client(container):
    mcp = create_server(container)
    async with Client(mcp) as client:
        yield client


@pytest.mark.asyncio
async def test_tools_are_listed(mcp_client):
    tools = {tool.name for tool in await mcp_client.list_tools()}
    assert {
        "ixp_render",
        "ixp_render_page",
        "ixp_list_intents",
        "ixp_list_components",
        "ixp_crawler_content",
    } <= tools


@pytest.mark.asyncio
async def test_render_tool(mcp_client):
    res = await mcp_client.call_tool(
        "ixp_render", {"intent_name": "greet", "parameters": {"name": "Ada"}}
    )
    assert res.data["success"] is True
    component = res.data["component"]
    assert component["remoteUrl"] == "https://cdn/x.js"
    assert component["props"] == {"greeting": "Hello", "name": "Ada"}
    assert res.data["ttl"] == 300


@pytest.mark.asyncio
async def test_render_tool_accepts_stringified_parameters(mcp_client):
    res = await mcp_client.call_tool(
        "ixp_render", {"intent_name": "greet", "parameters": '{"name": "Ada"}', "ttl": 0}
    )
    assert res.data["success"] is True
    assert res.data["ttl"] == 0


@pytest.mark.asyncio
async def test_render_tool_reports_domain_errors(mcp_client):
    res = await mcp_client.call_tool("ixp_render", {"intent_name": "missing"})
    assert res.data["success"] is False
    assert res.data["error"]["code"] == "INTENT_NOT_FOUND"

    res = await mcp_client.call_tool("ixp_render", {"intent_name": "greet", "parameters": {}})
    assert res.data["error"]["code"] == "PARAMETER_VALIDATION_FAILED"
    assert res.data["error"]["details"][0]["path"] == "name"


@pytest.mark.asyncio
async def test_render_page_tool(mcp_client):
    res = await mcp_client.call_tool(
        "ixp_render_page",
        {"intent_name": "greet", "parameters": {"name": "<b>Ada</b>"}, "title": "Greeting"},
    )
    assert res.data["success"] is True
    page = res.data["html"]
    assert "<title>Greeting</title>" in page
    assert "<b>Ada</b>" not in page
    assert "frame-ancestors *" in res.data["artifact"]["csp"]


@pytest.mark.asyncio
async def test_render_page_tool_by_component(mcp_client):
    res = await mcp_client.call_tool(
        "ixp_render_page", {"component_name": "Greeter", "props": {"name": "Ada"}}
    )
    assert res.data["success"] is True
    assert res.data["artifact"]["exportName"] == "Greeter"


@pytest.mark.asyncio
async def test_list_tools(mcp_client, container):
    container.intent_registry.add(make_intent(name="crawl-me", crawlable=True))

    res = await mcp_client.call_tool("ixp_list_intents", {"crawlable": "true"})
    assert [i["name"] for i in res.data["intents"]] == ["crawl-me"]

    res = await mcp_client.call_tool("ixp_list_components", {"framework": " React "})
    assert [c["name"] for c in res.data["components"]] == ["Greeter"]


@pytest.mark.asyncio
async def test_crawler_content_tool_pages_through(mcp_client, container):
    container.crawler_registry.register({
        "name": "articles",
        "version": "1.0.0",
        "schema": {"type": "object", "properties": {"title": {"type": "string"}}},
        "handler": offset_handler(make_records("a", 5)),
    })

    ids = []
    cursor = None
    while True:
        args = {"limit": 2, "sources": "articles"}
        if cursor:
            args["cursor"] = cursor
        res = await mcp_client.call_tool("ixp_crawler_content", args)
        assert res.data["success"] is True
        ids.extend(item["id"] for item in res.data["contents"])
        if not res.data["pagination"]["hasMore"]:
            break
        cursor = res.data["pagination"]["nextCursor"]

    assert ids == [f"a-{i}" for i in range(5)]
