"""
sap_calm.odata.query - OData v4 and REST query construction
===========================================================

Builds query strings for SAP Cloud ALM OData services and REST-style
path/query parameters for the non-OData APIs (tasks, projects, logs).

Clauses are always emitted in the same order, so equal queries serialize
to byte-identical strings.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

from sap_calm.core.errors import QueryError


# Characters left unencoded inside a clause value. Quotes, commas and
# parentheses are OData syntax; everything else (spaces, &, =, #) is encoded.
_CLAUSE_SAFE = "',()*:@/"

_OPERATORS = frozenset({"eq", "ne", "gt", "ge", "lt", "le"})


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


def escape_odata_literal(value: str) -> str:
    """
    Escape a string value for use in OData $filter expressions.

    Examples
    --------
    >>> escape_odata_literal("O'Brien")
    "O''Brien"
    """
    return value.replace("'", "''")


def odata_literal(value: Any) -> str:
    """
    Render a Python value as an OData v4 literal.

    Examples
    --------
    >>> odata_literal("O'Brien")
    "'O''Brien'"
    >>> odata_literal(True)
    'true'
    >>> odata_literal(None)
    'null'
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return f"'{escape_odata_literal(str(value))}'"


def _join_csv(items: Sequence[str]) -> str:
    """Join items as comma-separated values, stripping whitespace."""
    return ",".join([s.strip() for s in items if s and s.strip()])


def parse_csv(value: Optional[str]) -> List[str]:
    """Split ``"a, b,,c"`` into ``["a", "b", "c"]``."""
    if not value:
        return []
    return [s.strip() for s in value.split(",") if s.strip()]


def parse_orderby(value: Optional[str]) -> List[Tuple[str, SortOrder]]:
    """
    Parse an assistant-style ``$orderby`` string.

    ``"status, modifiedAt desc"`` becomes
    ``[("status", ASC), ("modifiedAt", DESC)]``. A missing or unknown
    direction means ascending.
    """
    out: List[Tuple[str, SortOrder]] = []
    for part in parse_csv(value):
        tokens = part.split()
        direction = SortOrder.DESC if len(tokens) > 1 and tokens[1].lower() == "desc" else SortOrder.ASC
        out.append((tokens[0], direction))
    return out


@dataclass(frozen=True)
class Condition:
    """A single ``field op literal`` filter term."""

    field: str
    value: Any
    op: str = "eq"

    def render(self) -> str:
        if self.op not in _OPERATORS:
            raise QueryError(f"Unsupported filter operator: {self.op}")
        return f"{self.field} {self.op} {odata_literal(self.value)}"


@dataclass
class ODataQuery:
    """
    Structured OData v4 query.

    Parameters
    ----------
    filter : str, optional
        Raw $filter expression, passed through unvalidated
    conditions : list of Condition
        Structured filter terms; values are escaped as literals and and-ed
        with ``filter``
    select, expand : list of str
        Field and navigation property names
    orderby : list of (str, SortOrder)
        Sort keys in priority order
    top, skip : int, optional
        Paging; ``top`` is clamped to the configured maximum
    count : bool
        Request ``@odata.count`` in the response
    search : str, optional
        Free-text ``$search``

    Examples
    --------
    >>> q = ODataQuery(select=["uuid", "title"], top=10)
    >>> build_odata_query(q)
    '$select=uuid,title&$top=10'
    """

    filter: Optional[str] = None
    conditions: List[Condition] = field(default_factory=list)
    select: List[str] = field(default_factory=list)
    expand: List[str] = field(default_factory=list)
    orderby: List[Tuple[str, SortOrder]] = field(default_factory=list)
    top: Optional[int] = None
    skip: Optional[int] = None
    count: bool = False
    search: Optional[str] = None

    def where(self, field_name: str, value: Any, op: str = "eq") -> "ODataQuery":
        self.conditions.append(Condition(field_name, value, op))
        return self

    def filter_expression(self) -> Optional[str]:
        terms = [c.render() for c in self.conditions]
        raw = (self.filter or "").strip()
        if raw:
            terms.append(f"({raw})" if terms else raw)
        if not terms:
            return None
        return " and ".join(terms)

    def is_empty(self) -> bool:
        return build_odata_query(self) == ""


def _encode(value: str) -> str:
    return quote(value, safe=_CLAUSE_SAFE)


def _check_bound(name: str, value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    try:
        n = int(value)
    except (TypeError, ValueError) as e:
        raise QueryError(f"${name} must be an integer, got {value!r}") from e
    if n < 0:
        raise QueryError(f"${name} must be non-negative, got {n}")
    return n


def build_odata_query(query: Optional[ODataQuery], max_top: Optional[int] = None) -> str:
    """
    Serialize an ODataQuery to a query string (without the leading ``?``).

    Clause order is fixed: $filter, $select, $expand, $orderby, $top,
    $skip, then $count and $search. An empty query yields ``""``.

    Parameters
    ----------
    query : ODataQuery, optional
        The query to serialize
    max_top : int, optional
        Maximum page size; larger ``top`` values are reduced to it
    """
    if query is None:
        return ""

    params: List[str] = []

    expr = query.filter_expression()
    if expr:
        params.append(f"$filter={_encode(expr)}")

    select = _join_csv(query.select)
    if select:
        params.append(f"$select={_encode(select)}")

    expand = _join_csv(query.expand)
    if expand:
        params.append(f"$expand={_encode(expand)}")

    if query.orderby:
        order = ",".join(f"{name.strip()} {SortOrder(direction).value}" for name, direction in query.orderby)
        params.append(f"$orderby={_encode(order)}")

    top = _check_bound("top", query.top)
    if top is not None:
        if max_top is not None and top > max_top:
            top = max_top
        params.append(f"$top={top}")

    skip = _check_bound("skip", query.skip)
    if skip is not None:
        params.append(f"$skip={skip}")

    if query.count:
        params.append("$count=true")

    if query.search:
        params.append(f"$search={_encode(query.search)}")

    return "&".join(params)


def build_rest_params(
    path_segments: Iterable[Any],
    query_params: Optional[Iterable[Tuple[str, Any]]] = None,
) -> Tuple[str, str]:
    """
    Build a REST path and query string.

    Each path segment is encoded as a single segment (``/`` inside a value
    is escaped). Query parameters keep their given order; ``None`` values
    are dropped, booleans become ``true``/``false`` and lists repeat the
    key.

    Examples
    --------
    >>> build_rest_params(["tasks", "a b"], [("projectId", "p1"), ("tags", ["x", "y"])])
    ('tasks/a%20b', 'projectId=p1&tags=x&tags=y')
    """
    path = "/".join(quote(str(s), safe="") for s in path_segments if s is not None and str(s) != "")

    pairs: List[str] = []
    for key, value in query_params or ():
        if value is None:
            continue
        values = value if isinstance(value, (list, tuple)) else [value]
        for v in values:
            if v is None:
                continue
            if isinstance(v, bool):
                v = "true" if v else "false"
            pairs.append(f"{quote(str(key), safe='[]')}={quote(str(v), safe='')}")
    return path, "&".join(pairs)
