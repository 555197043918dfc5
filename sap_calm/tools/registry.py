"""
sap_calm.tools.registry - Tool table
====================================

Data-driven description of every tool: where it goes (EndpointDescriptor),
what it does (Operation) and which arguments it takes (pydantic model).
One shared pipeline in ``sap_calm.tools.dispatcher`` executes all of them.
"""

from __future__ import annotations

import enum
import string
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from sap_calm.core.config import ApiPath
from sap_calm.core.models import EndpointDescriptor
from sap_calm.tools import models as m


class Operation(str, enum.Enum):
    LIST = "list"
    GET = "get"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


_METHODS = {
    Operation.LIST: "GET",
    Operation.GET: "GET",
    Operation.CREATE: "POST",
    Operation.UPDATE: "PATCH",
    Operation.DELETE: "DELETE",
}

EXPERIMENTAL_NOTE = "[EXPERIMENTAL] {} Requires user confirmation before execution."


@dataclass(frozen=True)
class ToolSpec:
    """
    One tool in the table.

    Parameters
    ----------
    name : str
        Tool identifier exposed to the assistant
    description : str
        Tool description
    endpoint : EndpointDescriptor
        Target; ``entity_segment`` may hold ``{arg}`` placeholders
    operation : Operation
        Pipeline kind
    args_model : type
        Pydantic model validating the arguments
    key_arg : str, optional
        Argument appended to the path as the entity key
    query_args : tuple of (arg, wire name)
        REST query parameters
    filter_args : tuple of (arg, OData property)
        Shortcut arguments turned into ``property eq 'value'`` filters
    literal_args : frozenset
        Placeholders rendered as OData literals (``'...'``)
    body_arg : str, optional
        Send this argument's value as the whole request body
    """

    name: str
    description: str
    endpoint: EndpointDescriptor
    operation: Operation
    args_model: Type[m.ToolArgs] = m.EmptyArgs
    key_arg: Optional[str] = None
    query_args: Tuple[Tuple[str, str], ...] = ()
    filter_args: Tuple[Tuple[str, str], ...] = ()
    literal_args: frozenset = field(default_factory=frozenset)
    body_arg: Optional[str] = None

    @property
    def path_args(self) -> List[str]:
        return [name for _, name, _, _ in string.Formatter().parse(self.endpoint.entity_segment) if name]

    @property
    def non_body_args(self) -> set:
        names = set(self.path_args)
        names.update(arg for arg, _ in self.query_args)
        names.update(arg for arg, _ in self.filter_args)
        if self.key_arg:
            names.add(self.key_arg)
        return names

    @property
    def mutating(self) -> bool:
        return self.operation in (Operation.CREATE, Operation.UPDATE, Operation.DELETE)

    def input_schema(self) -> Dict[str, Any]:
        schema = self.args_model.model_json_schema()
        schema.setdefault("properties", {})
        schema["type"] = "object"
        return schema


def _tool(
    name: str,
    operation: Operation,
    api: ApiPath,
    segment: str,
    description: str,
    args_model: Type[m.ToolArgs] = m.EmptyArgs,
    **kw: Any,
) -> ToolSpec:
    odata = api not in (ApiPath.TASKS, ApiPath.PROJECTS, ApiPath.LOGS)
    if operation in (Operation.CREATE, Operation.UPDATE, Operation.DELETE):
        description = EXPERIMENTAL_NOTE.format(description)
    return ToolSpec(
        name=name,
        description=description,
        endpoint=EndpointDescriptor(api, segment, _METHODS[operation], odata),
        operation=operation,
        args_model=args_model,
        **kw,
    )


L, G, C, U, D = Operation.LIST, Operation.GET, Operation.CREATE, Operation.UPDATE, Operation.DELETE
F, DOC, T, P = ApiPath.FEATURES, ApiPath.DOCUMENTS, ApiPath.TASKS, ApiPath.PROJECTS
TM, PH, AN, PM, LOG = (
    ApiPath.TEST_MANAGEMENT,
    ApiPath.PROCESS_HIERARCHY,
    ApiPath.ANALYTICS,
    ApiPath.PROCESS_MONITORING,
    ApiPath.LOGS,
)

_PROJECT_FILTER = (("project_id", "projectId"),)

TOOLS: Tuple[ToolSpec, ...] = (
    # Features (OData)
    _tool("list_features", L, F, "Features",
          "List features from SAP Cloud ALM with OData filtering. Supports $filter, $select, "
          "$expand, $orderby, $top, $skip.",
          m.ProjectScopedListArgs, filter_args=_PROJECT_FILTER),
    _tool("get_feature", G, F, "Features",
          "Get a single feature by UUID. Optionally expand related entities "
          "(toProject, toRelease, toScope, toStatus, toPriority, toTransports, toExternalReferences).",
          m.UuidExpandArgs, key_arg="uuid"),
    _tool("create_feature", C, F, "Features",
          "Create a new feature. Required: title and project_id.", m.CreateFeatureArgs),
    _tool("update_feature", U, F, "Features",
          "Update an existing feature. Only provided fields will be updated.",
          m.UpdateFeatureArgs, key_arg="uuid"),
    _tool("delete_feature", D, F, "Features", "Delete a feature by UUID.", m.UuidArgs, key_arg="uuid"),
    _tool("list_external_references", L, F, "ExternalReferences",
          "List external references with OData filtering.",
          m.ExternalReferenceListArgs, filter_args=(("parent_uuid", "parent_uuid"),)),
    _tool("create_external_reference", C, F, "ExternalReferences",
          "Create an external reference for a feature.", m.CreateExternalReferenceArgs),
    _tool("delete_external_reference", D, F, "ExternalReferences/{id}/{parent_uuid}",
          "Delete an external reference.", m.DeleteExternalReferenceArgs),
    _tool("list_feature_priorities", L, F, "FeaturePriorities", "List available feature priorities."),
    _tool("list_feature_statuses", L, F, "FeatureStatus", "List available feature statuses."),

    # Documents (OData)
    _tool("list_documents", L, DOC, "Documents",
          "List documents from SAP Cloud ALM with OData filtering.",
          m.ProjectScopedListArgs, filter_args=_PROJECT_FILTER),
    _tool("get_document", G, DOC, "Documents", "Get a single document by UUID.", m.UuidArgs, key_arg="uuid"),
    _tool("create_document", C, DOC, "Documents", "Create a new document. Required: title.", m.CreateDocumentArgs),
    _tool("update_document", U, DOC, "Documents", "Update an existing document.",
          m.UpdateDocumentArgs, key_arg="uuid"),
    _tool("delete_document", D, DOC, "Documents", "Delete a document by UUID.", m.UuidArgs, key_arg="uuid"),
    _tool("list_document_types", L, DOC, "DocumentTypes", "List available document types."),
    _tool("list_document_statuses", L, DOC, "DocumentStatuses", "List available document statuses."),

    # Tasks (REST)
    _tool("list_tasks", L, T, "tasks",
          "List tasks for a project. Required: project_id. Supports filtering by type, status, assignee, tags.",
          m.ListTasksArgs,
          query_args=(
              ("project_id", "projectId"),
              ("offset", "offset"),
              ("limit", "limit"),
              ("task_type", "type"),
              ("status", "status"),
              ("sub_status", "subStatus"),
              ("assignee_id", "assigneeId"),
              ("last_changed_date", "lastChangedDate"),
              ("tags", "tags"),
          )),
    _tool("get_task", G, T, "tasks", "Get a single task by UUID with full details.", m.UuidArgs, key_arg="uuid"),
    _tool("create_task", C, T, "tasks",
          "Create a new task. Required: project_id, title, task_type.", m.CreateTaskArgs),
    _tool("update_task", U, T, "tasks", "Update an existing task.", m.UpdateTaskArgs, key_arg="uuid"),
    _tool("delete_task", D, T, "tasks", "Delete a task by UUID.", m.UuidArgs, key_arg="uuid"),
    _tool("list_task_comments", L, T, "tasks/{task_id}/comments", "List comments on a task.", m.TaskIdArgs),
    _tool("create_task_comment", C, T, "tasks/{task_id}/comments", "Add a comment to a task.",
          m.CreateTaskCommentArgs),
    _tool("list_task_references", L, T, "tasks/{task_id}/references", "List external references for a task.",
          m.TaskIdArgs),
    _tool("list_workstreams", L, T, "workstreams", "List workstreams for a project.",
          m.ProjectIdArgs, query_args=(("project_id", "projectId"),)),
    _tool("list_deliverables", L, T, "deliverables", "List deliverables for a project.",
          m.ProjectIdArgs, query_args=(("project_id", "projectId"),)),

    # Projects (REST)
    _tool("list_projects", L, P, "projects", "List all accessible projects."),
    _tool("get_project", G, P, "projects", "Get project details by ID.", m.IdArgs, key_arg="id"),
    _tool("create_project", C, P, "projects", "Create a new project.", m.CreateProjectArgs),
    _tool("list_project_timeboxes", L, P, "projects/{project_id}/timeboxes",
          "List timeboxes (sprints) for a project.", m.ProjectIdArgs),
    _tool("list_project_teams", L, P, "projects/{project_id}/teams", "List team members for a project.",
          m.ProjectIdArgs),
    _tool("list_programs", L, P, "programs", "List all programs."),
    _tool("get_program", G, P, "programs", "Get program details by ID.", m.IdArgs, key_arg="id"),

    # Test management (OData)
    _tool("list_testcases", L, TM, "ManualTestCases", "List manual test cases with OData filtering.",
          m.ProjectScopedListArgs, filter_args=_PROJECT_FILTER),
    _tool("get_testcase", G, TM, "ManualTestCases", "Get a test case by UUID.", m.UuidArgs, key_arg="uuid"),
    _tool("create_testcase", C, TM, "ManualTestCases", "Create a new manual test case.", m.CreateTestCaseArgs),
    _tool("update_testcase", U, TM, "ManualTestCases", "Update an existing test case.",
          m.UpdateTestCaseArgs, key_arg="uuid"),
    _tool("delete_testcase", D, TM, "ManualTestCases", "Delete a test case by UUID.", m.UuidArgs, key_arg="uuid"),
    _tool("list_test_activities", L, TM, "Activities", "List test activities with OData filtering.",
          m.ParentScopedListArgs, filter_args=(("parent_id", "parent_ID"),)),
    _tool("create_test_activity", C, TM, "Activities", "Create a test activity for a test case.",
          m.CreateTestActivityArgs),
    _tool("list_test_actions", L, TM, "Actions", "List test actions with OData filtering.",
          m.ParentScopedListArgs, filter_args=(("parent_id", "parent_ID"),)),
    _tool("create_test_action", C, TM, "Actions", "Create a test action for an activity.",
          m.CreateTestActionArgs),

    # Process hierarchy (OData)
    _tool("list_hierarchy_nodes", L, PH, "HierarchyNodes", "List process hierarchy nodes with OData filtering.",
          m.ODataListArgs),
    _tool("get_hierarchy_node", G, PH, "HierarchyNodes",
          "Get a hierarchy node by UUID. Optionally expand toParentNode, toChildNodes, toExternalReferences.",
          m.UuidExpandArgs, key_arg="uuid"),
    _tool("create_hierarchy_node", C, PH, "HierarchyNodes", "Create a new hierarchy node. Required: title.",
          m.CreateHierarchyNodeArgs),
    _tool("update_hierarchy_node", U, PH, "HierarchyNodes", "Update an existing hierarchy node.",
          m.UpdateHierarchyNodeArgs, key_arg="uuid"),
    _tool("delete_hierarchy_node", D, PH, "HierarchyNodes", "Delete a hierarchy node by UUID.",
          m.UuidArgs, key_arg="uuid"),

    # Analytics (OData)
    _tool("query_analytics_dataset", L, AN, "DataSet({provider})",
          "Query a generic analytics dataset by provider name.",
          m.QueryDatasetArgs, literal_args=frozenset({"provider"})),
    _tool("list_analytics_providers", L, AN, "Providers", "List available analytics data providers."),
    _tool("get_analytics_requirements", L, AN, "Requirements", "Get requirements analytics data.", m.ODataListArgs),
    _tool("get_analytics_tasks", L, AN, "Tasks", "Get tasks analytics data.", m.ODataListArgs),
    _tool("get_analytics_alerts", L, AN, "Alerts", "Get alerts analytics data.", m.ODataListArgs),

    # Process monitoring (OData)
    _tool("list_monitoring_events", L, PM, "Events", "List process monitoring events with OData filtering.",
          m.ODataListArgs),
    _tool("get_monitoring_event", G, PM, "Events", "Get a monitoring event by ID.", m.IdArgs, key_arg="id"),
    _tool("list_monitoring_services", L, PM, "Services", "List monitored services with OData filtering.",
          m.ODataListArgs),

    # Logs (REST)
    _tool("get_logs", L, LOG, "logs", "Get logs (outbound) in OpenTelemetry format. Required: provider.",
          m.GetLogsArgs,
          query_args=(
              ("provider", "provider"),
              ("format", "format"),
              ("version", "version"),
              ("period", "period"),
              ("from_", "from"),
              ("to", "to"),
              ("limit", "limit"),
              ("offset", "offset"),
              ("service_id", "logsFilters[serviceId]"),
              ("observed_timestamp", "observedTimestamp"),
              ("on_limit", "onLimit"),
          )),
    _tool("post_logs", C, LOG, "logs",
          "Post logs (inbound) in OpenTelemetry format. Required: use_case, service_id, logs.",
          m.PostLogsArgs,
          query_args=(
              ("use_case", "useCase"),
              ("service_id", "serviceId"),
              ("version", "version"),
              ("dev", "dev"),
              ("tag", "tag"),
          ),
          body_arg="logs"),
)


class ToolRegistry:
    """Lookup table keyed by tool name."""

    def __init__(self, tools: Tuple[ToolSpec, ...] = TOOLS) -> None:
        self._tools: Dict[str, ToolSpec] = {}
        for spec in tools:
            if spec.name in self._tools:
                raise ValueError(f"Duplicate tool name: {spec.name}")
            self._tools[spec.name] = spec

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
