"""
sap_calm.tools.models - Pydantic models for tool arguments
==========================================================

Each model is the argument schema of one or more tools. Field names are
what the assistant sends (snake_case); request bodies are serialized with
the camelCase names SAP Cloud ALM expects.
"""

from typing import Any, List, Optional

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ToolArgs(BaseModel):
    """Base for all argument models."""

    model_config = ConfigDict(
        alias_generator=AliasGenerator(serialization_alias=to_camel),
        populate_by_name=True,
    )


class EmptyArgs(ToolArgs):
    """Tools that take no arguments."""


# ---------------------------------------------------------------------------
# Shared shapes
# ---------------------------------------------------------------------------

class ODataListArgs(ToolArgs):
    """OData collection query options."""

    filter: Optional[str] = Field(
        default=None,
        description="OData $filter expression",
        json_schema_extra={"example": "statusCode eq 'CIPREPARE'"},
    )
    select: Optional[str] = Field(
        default=None,
        description="Comma-separated list of fields to select",
        json_schema_extra={"example": "uuid,title,statusCode"},
    )
    expand: Optional[str] = Field(
        default=None,
        description="Comma-separated list of navigation properties to expand",
    )
    orderby: Optional[str] = Field(
        default=None,
        description="OData $orderby expression, e.g. \"modifiedAt desc\"",
    )
    top: Optional[int] = Field(default=None, ge=0, description="Maximum number of records to return")
    skip: Optional[int] = Field(default=None, ge=0, description="Number of records to skip for pagination")
    count: bool = Field(default=False, description="Include the total count (@odata.count)")


class ProjectScopedListArgs(ODataListArgs):
    project_id: Optional[str] = Field(default=None, description="Only return items of this project")


class ExternalReferenceListArgs(ODataListArgs):
    parent_uuid: Optional[str] = Field(default=None, description="UUID of the owning feature")


class ParentScopedListArgs(ODataListArgs):
    parent_id: Optional[str] = Field(default=None, description="UUID of the parent test case or activity")


class UuidArgs(ToolArgs):
    uuid: str = Field(description="UUID")


class IdArgs(ToolArgs):
    id: str = Field(description="ID")


class UuidExpandArgs(ToolArgs):
    uuid: str = Field(description="UUID")
    expand: Optional[str] = Field(
        default=None,
        description="Comma-separated navigation properties to expand",
    )


class ProjectIdArgs(ToolArgs):
    project_id: str = Field(description="Project ID")


class TaskIdArgs(ToolArgs):
    task_id: str = Field(description="Task UUID")


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------

class CreateFeatureArgs(ToolArgs):
    title: str = Field(description="Feature title")
    project_id: str = Field(description="Project ID")
    description: Optional[str] = None
    status_code: Optional[str] = None
    priority_code: Optional[str] = None
    release_id: Optional[str] = None
    scope_id: Optional[str] = None


class UpdateFeatureArgs(ToolArgs):
    uuid: str = Field(description="Feature UUID")
    title: Optional[str] = None
    description: Optional[str] = None
    status_code: Optional[str] = None
    priority_code: Optional[str] = None
    release_id: Optional[str] = None
    scope_id: Optional[str] = None


class CreateExternalReferenceArgs(ToolArgs):
    id: str = Field(description="External reference ID")
    parent_uuid: str = Field(description="UUID of the feature", serialization_alias="parent_uuid")
    name: str = Field(description="Reference name")
    url: Optional[str] = Field(default=None, description="Reference URL")


class DeleteExternalReferenceArgs(ToolArgs):
    id: str = Field(description="External reference ID")
    parent_uuid: str = Field(description="UUID of the feature")


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class CreateDocumentArgs(ToolArgs):
    title: str = Field(description="Document title")
    content: Optional[str] = Field(default=None, description="Document content (HTML)")
    project_id: Optional[str] = None
    type_code: Optional[str] = None
    status_code: Optional[str] = None
    priority_code: Optional[str] = None


class UpdateDocumentArgs(ToolArgs):
    uuid: str = Field(description="Document UUID")
    title: Optional[str] = None
    content: Optional[str] = None
    status_code: Optional[str] = None
    priority_code: Optional[str] = None
    type_code: Optional[str] = None


# ---------------------------------------------------------------------------
# Tasks (REST)
# ---------------------------------------------------------------------------

class ListTasksArgs(ToolArgs):
    project_id: str = Field(description="Project ID")
    task_type: Optional[str] = Field(default=None, description="Task type, e.g. CALMTASK, CALMUS")
    status: Optional[str] = None
    sub_status: Optional[str] = None
    assignee_id: Optional[str] = None
    last_changed_date: Optional[str] = Field(default=None, description="Only tasks changed since (ISO date)")
    tags: Optional[List[str]] = Field(default=None, description="Tags; a comma-separated string is accepted")
    offset: Optional[int] = Field(default=None, ge=0)
    limit: Optional[int] = Field(default=None, ge=0)

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v


class CreateTaskArgs(ToolArgs):
    project_id: str = Field(description="Project ID")
    title: str = Field(description="Task title")
    task_type: str = Field(description="Task type, e.g. CALMTASK", serialization_alias="type")
    description: Optional[str] = None
    priority_id: Optional[int] = None
    assignee_id: Optional[str] = None
    due_date: Optional[str] = Field(default=None, description="Due date (ISO)")


class UpdateTaskArgs(ToolArgs):
    uuid: str = Field(description="Task UUID")
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority_id: Optional[int] = None
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None


class CreateTaskCommentArgs(ToolArgs):
    task_id: str = Field(description="Task UUID")
    content: str = Field(description="Comment text")


# ---------------------------------------------------------------------------
# Projects (REST)
# ---------------------------------------------------------------------------

class CreateProjectArgs(ToolArgs):
    name: str = Field(description="Project name")
    description: Optional[str] = None
    program_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Test management
# ---------------------------------------------------------------------------

class CreateTestCaseArgs(ToolArgs):
    title: str = Field(description="Test case title")
    description: Optional[str] = None
    project_id: Optional[str] = None


class UpdateTestCaseArgs(ToolArgs):
    uuid: str = Field(description="Test case UUID")
    title: Optional[str] = None
    description: Optional[str] = None
    status_code: Optional[str] = None


class CreateTestActivityArgs(ToolArgs):
    title: str = Field(description="Activity title")
    parent_id: str = Field(description="Test case UUID", serialization_alias="parent_ID")
    description: Optional[str] = None
    sequence: Optional[int] = None


class CreateTestActionArgs(ToolArgs):
    title: str = Field(description="Action title")
    parent_id: str = Field(description="Activity UUID", serialization_alias="parent_ID")
    description: Optional[str] = None
    expected_result: Optional[str] = None
    sequence: Optional[int] = None
    is_evidence_required: Optional[bool] = None


# ---------------------------------------------------------------------------
# Process hierarchy
# ---------------------------------------------------------------------------

class CreateHierarchyNodeArgs(ToolArgs):
    title: str = Field(description="Node title")
    description: Optional[str] = None
    parent_node_uuid: Optional[str] = None
    sequence: Optional[int] = None


class UpdateHierarchyNodeArgs(ToolArgs):
    uuid: str = Field(description="Node UUID")
    title: Optional[str] = None
    description: Optional[str] = None
    sequence: Optional[int] = None


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

class QueryDatasetArgs(ODataListArgs):
    provider: str = Field(description="Data provider name", json_schema_extra={"example": "Requirements"})


# ---------------------------------------------------------------------------
# Logs (REST)
# ---------------------------------------------------------------------------

class GetLogsArgs(ToolArgs):
    provider: str = Field(description="Log provider")
    format: Optional[str] = Field(default=None, description="Output format")
    version: Optional[str] = None
    period: Optional[str] = Field(default=None, description="Relative period, e.g. \"L1H\"")
    from_: Optional[str] = Field(default=None, alias="from", description="Start timestamp")
    to: Optional[str] = Field(default=None, description="End timestamp")
    limit: Optional[int] = Field(default=None, ge=0)
    offset: Optional[int] = Field(default=None, ge=0)
    service_id: Optional[str] = None
    observed_timestamp: Optional[bool] = None
    on_limit: Optional[str] = None


class PostLogsArgs(ToolArgs):
    use_case: str = Field(description="Use case")
    service_id: str = Field(description="Service ID")
    version: Optional[str] = None
    dev: Optional[bool] = None
    tag: Optional[str] = None
    logs: Any = Field(description="Log records (OpenTelemetry JSON)")
