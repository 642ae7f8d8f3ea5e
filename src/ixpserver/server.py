"""IXP server: FastMCP tools and HTTP routes over one IXPContainer."""

import argparse
import json
import logging
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response

from ixpserver import __version__
from ixpserver.container import IXPContainer
from ixpserver.domains.shared.errors import InvalidRequestError
from ixpserver.domains.shared.kernel import (
    CoercedBool,
    CoercedParameters,
    NormalizedFramework,
    OptionalCoercedStringList,
)
from ixpserver.endpoints import IXPEndpoints, error_result
from ixpserver.models.config_models import IXPConfig

logger = logging.getLogger(__name__)

SERVER_NAME = "IXP Server"


def create_server(container: Optional[IXPContainer] = None) -> FastMCP:
    """Create a FastMCP server bound to ``container``.

    The container is started here if it has not been already, so definition
    file errors surface before the server accepts requests.
    """
    container = container or IXPContainer()
    if not container.started:
        container.startup()
    endpoints = IXPEndpoints(container)

    mcp = FastMCP(
        SERVER_NAME,
        instructions=(
            "Resolve declarative intents to remote UI component references, "
            "render them as safe HTML, and page through crawler content."
        ),
    )

    # ------------------------------------------------------------------
    # MCP tools
    # ------------------------------------------------------------------

    @mcp.tool(
        name="ixp_render",
        description=(
            "Resolve an intent to a component reference with merged props. "
            "Returns the component's remoteUrl, exportName, props and a TTL cache hint."
        ),
    )
    async def ixp_render(
        intent_name: str,
        parameters: CoercedParameters = None,
        context: CoercedParameters = None,
        origin: Optional[str] = None,
        ttl: Optional[int] = None,
    ) -> Dict[str, Any]:
        intent: Dict[str, Any] = {"name": intent_name, "parameters": parameters or {}}
        body: Dict[str, Any] = {"intent": intent, "context": context}
        if ttl is not None:
            body["ttl"] = ttl
        _, payload = await endpoints.render(body, origin=origin)
        return payload

    @mcp.tool(
        name="ixp_render_page",
        description=(
            "Render an intent (or a component by name) as a complete HTML page "
            "with an escaped props blob and a matching Content-Security-Policy."
        ),
    )
    async def ixp_render_page(
        intent_name: Optional[str] = None,
        parameters: CoercedParameters = None,
        component_name: Optional[str] = None,
        props: CoercedParameters = None,
        theme: CoercedParameters = None,
        title: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"theme": theme, "title": title}
        if intent_name:
            body["intent"] = {"name": intent_name, "parameters": parameters or {}}
        elif component_name:
            body["component"] = {"name": component_name, "props": props or {}}
        _, payload, _ = await endpoints.render_page(body, origin=origin)
        return payload

    @mcp.tool(
        name="ixp_list_intents",
        description="List registered intents, optionally filtered by crawlable flag, category or tags.",
    )
    async def ixp_list_intents(
        crawlable: Optional[CoercedBool] = None,
        category: Optional[str] = None,
        tags: OptionalCoercedStringList = None,
    ) -> Dict[str, Any]:
        _, payload = endpoints.list_intents(crawlable=crawlable, category=category, tags=tags)
        return payload

    @mcp.tool(
        name="ixp_list_components",
        description="List registered components, optionally filtered by framework tag.",
    )
    async def ixp_list_components(framework: NormalizedFramework = None) -> Dict[str, Any]:
        _, payload = endpoints.list_components(framework=framework)
        return payload

    @mcp.tool(
        name="ixp_crawler_content",
        description=(
            "Fetch one page of crawler content. Pass pagination.nextCursor back as "
            "'cursor' to continue; stop when pagination.hasMore is false."
        ),
    )
    async def ixp_crawler_content(
        sources: OptionalCoercedStringList = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
        include_metadata: CoercedBool = False,
        last_updated: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "sources": sources,
            "cursor": cursor,
            "limit": limit,
            "includeMetadata": include_metadata,
            "lastUpdated": last_updated,
        }
        _, payload = await endpoints.crawler_content(params)
        return payload

    # ------------------------------------------------------------------
    # HTTP routes
    # ------------------------------------------------------------------

    @mcp.custom_route("/ixp/render", methods=["POST"])
    async def render_route(request: Request) -> Response:
        try:
            body = await _json_body(request)
        except InvalidRequestError as exc:
            return _json(*error_result(exc))
        return _json(*await endpoints.render(body, origin=request.headers.get("origin")))

    @mcp.custom_route("/ixp/page", methods=["POST"])
    async def page_route(request: Request) -> Response:
        try:
            body = await _json_body(request)
        except InvalidRequestError as exc:
            return _json(*error_result(exc))
        status, payload, artifact = await endpoints.render_page(
            body, origin=request.headers.get("origin")
        )
        if artifact is None:
            return _json(status, payload)
        return HTMLResponse(
            payload["html"],
            status_code=status,
            headers={"Content-Security-Policy": artifact.csp},
        )

    @mcp.custom_route("/ixp/intents", methods=["GET"])
    async def intents_route(request: Request) -> Response:
        query = request.query_params
        return _json(*endpoints.list_intents(
            crawlable=query.get("crawlable"),
            category=query.get("category"),
            tags=query.get("tags"),
        ))

    @mcp.custom_route("/ixp/components", methods=["GET"])
    async def components_route(request: Request) -> Response:
        return _json(*endpoints.list_components(framework=request.query_params.get("framework")))

    @mcp.custom_route("/ixp/crawler_content", methods=["GET"])
    async def crawler_content_route(request: Request) -> Response:
        return _json(*await endpoints.crawler_content(dict(request.query_params)))

    @mcp.custom_route("/ixp/health", methods=["GET"])
    async def health_route(request: Request) -> Response:
        return _json(*endpoints.health())

    logger.info("%s %s ready", SERVER_NAME, __version__)
    return mcp


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        raise InvalidRequestError("Request body is required")
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"Request body is not valid JSON: {exc}") from exc


def _json(status: int, payload: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(payload, status_code=status)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="IXP server entry point."
    )
    parser.add_argument(
        "--intents",
        dest="intents_file",
        help="Intent definitions JSON file (overrides IXP_INTENTS_FILE).",
    )
    parser.add_argument(
        "--components",
        dest="components_file",
        help="Component definitions JSON file (overrides IXP_COMPONENTS_FILE).",
    )
    parser.add_argument(
        "--transport",
        dest="transport",
        choices=["stdio", "http", "sse"],
        help="Transport to use for the MCP server (default: stdio).",
    )
    parser.add_argument(
        "--host",
        dest="host",
        help="Host/interface for HTTP transport (default 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        dest="port",
        type=int,
        help="Port for HTTP transport (default 8000).",
    )
    parser.add_argument(
        "--path",
        dest="path",
        help="Path for HTTP/streamable endpoints (default '/').",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        help="Log level (e.g., INFO, DEBUG; overrides IXP_LOG_LEVEL).",
    )
    return parser


def main(argv: List[str] | None = None) -> None:
    """Start the IXP server."""

    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    config = IXPConfig.from_env()
    if args.intents_file:
        config.update(INTENTS_FILE=args.intents_file)
    if args.components_file:
        config.update(COMPONENTS_FILE=args.components_file)
    if args.log_level:
        config.update(LOG_LEVEL=args.log_level)

    logging.basicConfig(level=config.log_level)

    container = IXPContainer(config=config)
    mcp = create_server(container)

    try:
        run_kwargs: Dict[str, Any] = {}

        transport = args.transport or "stdio"
        run_kwargs["transport"] = transport

        # Only pass host/port/path when using HTTP/SSE transports
        if transport != "stdio":
            if args.host:
                run_kwargs["host"] = args.host
            if args.port:
                run_kwargs["port"] = args.port
            if args.path:
                run_kwargs["path"] = args.path

        mcp.run(**run_kwargs)
    except KeyboardInterrupt:
        logger.info("IXP server interrupted by user")
    finally:
        container.shutdown()


if __name__ == "__main__":
    main()
