"""
sap_calm.api.models - Pydantic models for API requests/responses
================================================================
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


EXAMPLE_TOOL = "list_features"
EXAMPLE_ARGUMENTS = {"top": 10, "select": "uuid,title,statusCode", "orderby": "modifiedAt desc"}


class ToolInfo(BaseModel):
    """One tool as listed by the gateway."""

    name: str = Field(description="Tool name", json_schema_extra={"example": EXAMPLE_TOOL})
    description: str = Field(description="What the tool does")
    experimental: bool = Field(default=False, description="Tool writes to SAP Cloud ALM")
    input_schema: Dict[str, Any] = Field(default_factory=dict, description="JSON schema of the arguments")


class ToolListResponse(BaseModel):
    count: int
    tools: List[ToolInfo]


class ToolCallRequest(BaseModel):
    """Request model for a tool call."""

    arguments: Dict[str, Any] = Field(
        default_factory=dict,
        description="Tool arguments, as listed in the tool's input schema",
        json_schema_extra={"example": EXAMPLE_ARGUMENTS},
    )
    timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Overrides the configured request timeout (seconds)",
    )


class ToolCallResponse(BaseModel):
    """Successful tool result."""

    tool: str = Field(description="Tool name")
    status: str = Field(default="success")
    payload: Any = Field(default=None, description="Entity, collection or REST body; null when empty")
    count: Optional[int] = Field(default=None, description="@odata.count, when requested")
    next_link: Optional[str] = Field(default=None, description="@odata.nextLink, when present")
