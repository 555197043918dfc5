"""
sap_calm.tools.dispatcher - Tool execution pipeline
===================================================

Single pipeline shared by every tool:

    validate arguments -> build URL/query/body -> execute -> normalize

Tools differ only by their ToolSpec entry in the registry.
"""

from __future__ import annotations

import dataclasses
import logging
import string
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from pydantic import ValidationError

from sap_calm.core.config import CalmSettings
from sap_calm.core.errors import CalmError, InvalidArgumentsError, UnknownToolError
from sap_calm.core.models import RequestContext, ToolResult
from sap_calm.core.session import CalmSession
from sap_calm.core.trace import NULL_TRACE, TraceSink
from sap_calm.odata.normalize import normalize
from sap_calm.odata.query import ODataQuery, build_odata_query, build_rest_params, odata_literal, parse_csv, parse_orderby
from sap_calm.tools.models import ToolArgs
from sap_calm.tools.registry import Operation, ToolRegistry, ToolSpec


class ToolDispatcher:
    """
    Execute registered tools against SAP Cloud ALM.

    Parameters
    ----------
    session : CalmSession
        Shared HTTP gateway
    registry : ToolRegistry, optional
        Tool table (default: all built-in tools)
    trace : TraceSink, optional
        Debug sink (default: the session's)

    Examples
    --------
    >>> dispatcher = ToolDispatcher(CalmSession(cfg))
    >>> result = dispatcher.invoke("list_features", {"top": 5, "project_id": "P1"})
    >>> result.to_dict()["status"]
    'success'
    """

    def __init__(
        self,
        session: CalmSession,
        registry: Optional[ToolRegistry] = None,
        trace: Optional[TraceSink] = None,
    ) -> None:
        self.session = session
        self.registry = registry or ToolRegistry()
        self.trace = trace or getattr(session, "trace", None) or NULL_TRACE
        self.logger = logging.getLogger("sap_calm.tools")

    @classmethod
    def from_settings(cls, cfg: CalmSettings) -> "ToolDispatcher":
        """Wire trace sink, credential provider and session from settings."""
        trace = TraceSink(enabled=cfg.debug)
        return cls(CalmSession(cfg, trace=trace), trace=trace)

    def close(self) -> None:
        try:
            self.session.close()
        finally:
            self.trace.close()

    @property
    def max_top(self) -> Optional[int]:
        return self.session.cfg.max_page_size

    # ---------------- discovery ----------------

    def tools(self) -> List[ToolSpec]:
        return list(self.registry)

    def spec(self, name: str) -> ToolSpec:
        spec = self.registry.get(name)
        if spec is None:
            raise UnknownToolError(name)
        return spec

    def input_schema(self, name: str) -> Dict[str, Any]:
        return self.spec(name).input_schema()

    # ---------------- request building ----------------

    def validate(self, spec: ToolSpec, arguments: Optional[Dict[str, Any]]) -> ToolArgs:
        try:
            return spec.args_model.model_validate(arguments or {})
        except ValidationError as e:
            raise InvalidArgumentsError(spec.name, e.errors(include_url=False)) from e

    def _segment(self, spec: ToolSpec, args: ToolArgs) -> str:
        """Fill ``{placeholders}`` in the entity segment with encoded argument values."""
        out = []
        for literal, field_name, _, _ in string.Formatter().parse(spec.endpoint.entity_segment):
            out.append(literal)
            if not field_name:
                continue
            value = getattr(args, field_name, None)
            if value is None or value == "":
                raise InvalidArgumentsError(spec.name, [{"loc": (field_name,), "msg": "Field required"}])
            if field_name in spec.literal_args:
                out.append(quote(odata_literal(value), safe="'"))
            else:
                out.append(quote(str(value), safe=""))
        return "".join(out)

    def _odata_query(self, spec: ToolSpec, args: ToolArgs) -> str:
        q = ODataQuery(
            filter=getattr(args, "filter", None),
            select=parse_csv(getattr(args, "select", None)),
            expand=parse_csv(getattr(args, "expand", None)),
            orderby=parse_orderby(getattr(args, "orderby", None)),
            top=getattr(args, "top", None),
            skip=getattr(args, "skip", None),
            count=bool(getattr(args, "count", False)),
        )
        for arg, prop in spec.filter_args:
            value = getattr(args, arg, None)
            if value is not None:
                q.where(prop, value)
        return build_odata_query(q, max_top=self.max_top)

    def _rest_query(self, spec: ToolSpec, args: ToolArgs) -> str:
        _, qs = build_rest_params((), [(wire, getattr(args, arg, None)) for arg, wire in spec.query_args])
        return qs

    def _body(self, spec: ToolSpec, args: ToolArgs) -> Any:
        if spec.body_arg:
            return getattr(args, spec.body_arg)
        body = args.model_dump(by_alias=True, exclude_none=True, exclude=spec.non_body_args)
        if spec.operation is Operation.UPDATE and not body:
            raise InvalidArgumentsError(spec.name, [{"loc": (), "msg": "At least one field to update is required"}])
        return body

    def build_request(self, spec: ToolSpec, args: ToolArgs) -> Tuple[str, str, Any]:
        """
        Translate validated arguments into ``(method, url, body)``.

        Raises
        ------
        InvalidArgumentsError
            Missing path values or an update without fields
        QueryError
            Paging bounds that cannot be sent
        """
        endpoint = dataclasses.replace(spec.endpoint, entity_segment=self._segment(spec, args))

        key_path = ""
        if spec.key_arg:
            key = getattr(args, spec.key_arg, None)
            if key is None or str(key).strip() == "":
                raise InvalidArgumentsError(spec.name, [{"loc": (spec.key_arg,), "msg": "Field required"}])
            key_path, _ = build_rest_params([key])

        if spec.operation is Operation.LIST:
            query = self._odata_query(spec, args) if endpoint.is_odata else self._rest_query(spec, args)
        elif spec.operation is Operation.GET and endpoint.is_odata:
            query = build_odata_query(ODataQuery(expand=parse_csv(getattr(args, "expand", None))))
        else:
            query = self._rest_query(spec, args)

        body = None
        if spec.operation in (Operation.CREATE, Operation.UPDATE):
            body = self._body(spec, args)

        url = self.session.url_for(endpoint, path=key_path, query=query)
        return endpoint.method, url, body

    # ---------------- execution ----------------

    def call(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> ToolResult:
        """
        Run one tool and return its Success result.

        Raises
        ------
        CalmError
            Any failure along the pipeline, typed by stage
        """
        context = context or RequestContext()
        cid = context.correlation_id
        if context.traced:
            self.trace.tool_call(name, arguments, cid)

        spec = self.spec(name)
        args = self.validate(spec, arguments)
        method, url, body = self.build_request(spec, args)

        t0 = time.perf_counter()
        raw = self.session.execute(method, url, body=body, context=context)
        result = normalize(raw, spec.endpoint.is_odata)
        self.logger.debug("tool %s done in %sms", name, round((time.perf_counter() - t0) * 1000.0, 1))

        if context.traced:
            self.trace.tool_result(name, result.to_dict(), cid)
        return result

    def invoke(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> ToolResult:
        """Like ``call`` but typed failures come back as an Error result."""
        try:
            return self.call(name, arguments, context)
        except CalmError as e:
            self.logger.warning("tool %s failed: %s", name, e.message)
            self.trace.error(f"tool {name}", e)
            return ToolResult.failure(e)
