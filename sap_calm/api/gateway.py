"""
sap_calm.api.gateway - FastAPI tool gateway
===========================================

Optional HTTP front end serving the same tool table as the MCP server.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Path as PathParam
from fastapi.middleware.cors import CORSMiddleware

from sap_calm import __version__
from sap_calm.api.models import EXAMPLE_TOOL, ToolCallRequest, ToolCallResponse, ToolInfo, ToolListResponse
from sap_calm.core.config import CalmSettings
from sap_calm.core.errors import (
    ApiError,
    CalmError,
    ConfigError,
    GatewayTimeout,
    InvalidArgumentsError,
    QueryError,
    UnknownToolError,
)
from sap_calm.core.models import RequestContext
from sap_calm.tools.dispatcher import ToolDispatcher
from sap_calm.tools.registry import ToolSpec


class CalmGateway:
    """
    Configuration and dispatcher factory for the API gateway.

    Reads ``CALM_*`` settings from the environment on first use, so the app
    can be created before credentials are available.
    """

    def __init__(
        self,
        dispatcher: Optional[ToolDispatcher] = None,
        settings: Optional[CalmSettings] = None,
        api_key: Optional[str] = None,
    ):
        self._dispatcher = dispatcher
        self._settings = settings
        self.api_key = api_key if api_key is not None else os.environ.get("CALM_GATEWAY_API_KEY", "")

    @property
    def dispatcher(self) -> ToolDispatcher:
        if self._dispatcher is None:
            cfg = self._settings or CalmSettings.from_env()
            self._dispatcher = ToolDispatcher.from_settings(cfg)
        return self._dispatcher

    def close(self) -> None:
        if self._dispatcher is not None:
            self._dispatcher.close()
            self._dispatcher = None


def _tool_info(spec: ToolSpec) -> ToolInfo:
    return ToolInfo(
        name=spec.name,
        description=spec.description,
        experimental=spec.mutating,
        input_schema=spec.input_schema(),
    )


def http_error(e: CalmError) -> HTTPException:
    """Map a pipeline error to the HTTP status the gateway answers with."""
    detail: Dict[str, Any] = e.to_detail()
    if isinstance(e, UnknownToolError):
        return HTTPException(status_code=404, detail=detail)
    if isinstance(e, (InvalidArgumentsError, QueryError)):
        return HTTPException(status_code=422, detail=detail)
    if isinstance(e, ConfigError):
        return HTTPException(status_code=503, detail=detail)
    if isinstance(e, GatewayTimeout):
        return HTTPException(status_code=504, detail=detail)
    if isinstance(e, ApiError):
        detail["upstream_status"] = e.status
    return HTTPException(status_code=502, detail=detail)


def create_app(gateway: Optional[CalmGateway] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Parameters
    ----------
    gateway : CalmGateway, optional
        Custom gateway. If None, settings are read from the environment.

    Returns
    -------
    FastAPI
        Configured FastAPI application
    """
    gw = gateway or CalmGateway()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            gw.close()

    app = FastAPI(
        title="SAP Cloud ALM Tool Gateway",
        description="""
## SAP Cloud ALM Tool Gateway

HTTP access to the SAP Cloud ALM tools also served over MCP.

### Quick Start
`GET /tools` lists every tool with its argument schema; `POST /tools/{name}`
runs one.

### Authentication
Include your API key in the `x-api-key` header.
        """,
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Tools", "description": "List and call SAP Cloud ALM tools"},
        ],
    )
    app.state.gateway = gw

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Dependencies
    # -------------------------------------------------------------------------

    def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
        if gw.api_key and x_api_key != gw.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    def get_dispatcher() -> ToolDispatcher:
        try:
            return gw.dispatcher
        except ConfigError as e:
            raise http_error(e)

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        """Health check endpoint."""
        return {"ok": True, "version": __version__}

    @app.get("/tools", response_model=ToolListResponse, tags=["Tools"])
    def list_tools(
        _: None = Depends(require_api_key),
        dispatcher: ToolDispatcher = Depends(get_dispatcher),
    ) -> ToolListResponse:
        """List every tool with its input schema."""
        tools = [_tool_info(spec) for spec in dispatcher.tools()]
        return ToolListResponse(count=len(tools), tools=tools)

    @app.get("/tools/{name}", response_model=ToolInfo, tags=["Tools"])
    def get_tool(
        name: str = PathParam(..., examples=[EXAMPLE_TOOL]),
        _: None = Depends(require_api_key),
        dispatcher: ToolDispatcher = Depends(get_dispatcher),
    ) -> ToolInfo:
        """Describe a single tool."""
        try:
            return _tool_info(dispatcher.spec(name))
        except UnknownToolError as e:
            raise http_error(e)

    @app.post(
        "/tools/{name}",
        response_model=ToolCallResponse,
        tags=["Tools"],
        summary="Call Tool",
    )
    def call_tool(
        req: ToolCallRequest,
        name: str = PathParam(..., examples=[EXAMPLE_TOOL]),
        _: None = Depends(require_api_key),
        dispatcher: ToolDispatcher = Depends(get_dispatcher),
    ) -> ToolCallResponse:
        """Run one tool and return its normalized result."""
        context = RequestContext(timeout=req.timeout)
        try:
            result = dispatcher.call(name, req.arguments, context)
        except CalmError as e:
            raise http_error(e)

        return ToolCallResponse(
            tool=name,
            payload=result.payload,
            count=result.count,
            next_link=result.next_link,
        )

    return app
