"""
sap_calm.odata - OData v4 query and response handling
=====================================================

- ODataQuery / build_odata_query: Canonical query strings
- build_rest_params: Path and query encoding for the REST APIs
- normalize: Raw response to ToolResult

"""

from sap_calm.odata.normalize import normalize
from sap_calm.odata.query import (
    Condition,
    ODataQuery,
    SortOrder,
    build_odata_query,
    build_rest_params,
    escape_odata_literal,
    odata_literal,
)

__all__ = [
    "normalize",
    "Condition",
    "ODataQuery",
    "SortOrder",
    "build_odata_query",
    "build_rest_params",
    "escape_odata_literal",
    "odata_literal",
]
