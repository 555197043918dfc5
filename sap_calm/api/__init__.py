"""
sap_calm.api - Optional REST API Gateway
========================================

FastAPI front end for the tool table, for clients that speak HTTP rather
than MCP. Settings are read from ``CALM_*`` environment variables on the
first request.

Usage
-----
>>> from sap_calm.api import create_app
>>> app = create_app()
>>> # Run with: uvicorn sap_calm.api:app

Or run directly:
>>> python -m sap_calm.api

"""

from sap_calm.api.gateway import CalmGateway, create_app, http_error

# Default app instance for uvicorn
app = create_app()

__all__ = [
    "CalmGateway",
    "create_app",
    "http_error",
    "app",
]
