"""
sap_calm.api - Run as module

Usage: python -m sap_calm.api
"""

import logging
import os
import sys

import uvicorn


def main():
    """Run the API gateway server."""
    host = os.environ.get("CALM_HOST", "127.0.0.1")
    port = int(os.environ.get("CALM_PORT", "5050"))
    reload = os.environ.get("CALM_RELOAD", "false").lower() == "true"
    log_level = os.environ.get("CALM_LOG_LEVEL", "info")

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("sap_calm.api").info("Starting SAP Cloud ALM tool gateway on %s:%s", host, port)

    uvicorn.run(
        "sap_calm.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
