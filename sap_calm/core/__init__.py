"""
sap_calm.core - Settings, credentials and HTTP gateway
======================================================

- CalmSettings: Validated connection settings (OAuth2 or sandbox)
- AuthProvider: Credential providers with single-flight token refresh
- CalmSession: Authenticated HTTP session with retry and error mapping
- TraceSink: Debug event sink
- errors: Typed error taxonomy

"""

from sap_calm.core.auth import (
    ApiKey,
    ApiKeyProvider,
    AuthProvider,
    OAuth2ClientCredentials,
    OAuth2Token,
    provider_from_settings,
)
from sap_calm.core.config import ApiPath, CalmSettings
from sap_calm.core.errors import (
    ApiError,
    AuthError,
    CalmError,
    ConfigError,
    GatewayConnectionError,
    GatewayError,
    GatewayTimeout,
    InvalidArgumentsError,
    NormalizeError,
    QueryError,
    TokenExchangeFailed,
    UnknownToolError,
)
from sap_calm.core.models import EndpointDescriptor, RawResponse, RequestContext, ToolResult, ToolStatus
from sap_calm.core.session import CalmSession
from sap_calm.core.trace import TraceSink

__all__ = [
    "ApiKey",
    "ApiKeyProvider",
    "AuthProvider",
    "OAuth2ClientCredentials",
    "OAuth2Token",
    "provider_from_settings",
    "ApiPath",
    "CalmSettings",
    "ApiError",
    "AuthError",
    "CalmError",
    "ConfigError",
    "GatewayConnectionError",
    "GatewayError",
    "GatewayTimeout",
    "InvalidArgumentsError",
    "NormalizeError",
    "QueryError",
    "TokenExchangeFailed",
    "UnknownToolError",
    "EndpointDescriptor",
    "RawResponse",
    "RequestContext",
    "ToolResult",
    "ToolStatus",
    "CalmSession",
    "TraceSink",
]
