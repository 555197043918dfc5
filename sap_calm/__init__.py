"""
SAP Cloud ALM MCP bridge (sap_calm)
===================================

Exposes the SAP Cloud ALM REST and OData v4 APIs (features, documents,
tasks, projects, test management, process hierarchy, analytics, process
monitoring, logs) as tools for AI assistants over the Model Context
Protocol.

Usage
-----
>>> from sap_calm import CalmSettings, ToolDispatcher
>>>
>>> cfg = CalmSettings.from_env()
>>> dispatcher = ToolDispatcher.from_settings(cfg)
>>> result = dispatcher.invoke("list_features", {"top": 5})
>>> result.to_dict()

Subpackages
-----------
- sap_calm.core: Settings, credentials, HTTP gateway, errors
- sap_calm.odata: Query construction and response normalization
- sap_calm.tools: Tool table and dispatcher
- sap_calm.server: MCP stdio server
- sap_calm.api: Optional FastAPI gateway

"""

__version__ = "0.1.0"

from sap_calm.core.config import ApiPath, CalmSettings
from sap_calm.core.errors import CalmError
from sap_calm.core.models import ToolResult
from sap_calm.core.session import CalmSession
from sap_calm.tools.dispatcher import ToolDispatcher

__all__ = [
    "__version__",
    "ApiPath",
    "CalmSettings",
    "CalmError",
    "ToolResult",
    "CalmSession",
    "ToolDispatcher",
]
