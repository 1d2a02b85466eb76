"""
Descriptors for logical API calls.

A request is both a serialization unit for the wire batch and the
``Deferred`` handle the caller holds. Its value flows through a chain of
pipeline stages built by the owning ``Batch``.
"""

from __future__ import annotations

import calendar
import datetime
import decimal
import typing as t
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import quote_plus

import structlog

from graphbatch.deferred import Deferred, DeferredWrapper
from graphbatch.mapper import Mapper, Node

log = structlog.get_logger(__name__)

T = t.TypeVar("T")

MULTIQUERY_OBJECT = "method/fql.multiquery"

RenameHook = t.Callable[["Request[t.Any]", "str | None", str], None]


class HttpMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Param:
    """
    One named request parameter.

    Parameters
    ----------
    name : str
        Parameter name.
    value : typing.Any
        Stringified at serialization time with ``stringify_value``.
    """

    name: str
    value: t.Any


def stringify_value(value: t.Any, mapper: Mapper) -> str:
    """
    Render a parameter value the way the remote API expects it.

    Parameters
    ----------
    value : typing.Any
        Raw parameter value.
    mapper : Mapper
        Used to JSON-encode structured values.

    Returns
    -------
    str
        Strings pass through, dates become epoch seconds, numbers become
        decimal text and anything else is JSON-encoded.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, datetime.datetime):
        return str(calendar.timegm(value.utctimetuple()))
    if isinstance(value, datetime.date):
        return str(calendar.timegm(value.timetuple()))
    if isinstance(value, (int, float, decimal.Decimal)) and not isinstance(value, bool):
        return str(value)
    return mapper.to_json(value)


def _encode(text: str) -> str:
    return quote_plus(text, safe=",")


def build_relative_url(*, object: str, params: t.Sequence[Param], mapper: Mapper) -> str:
    """
    Build a batch ``relative_url``: the object path plus an encoded query string.

    Parameters
    ----------
    object : str
        Object path without a leading slash. May be empty.
    params : typing.Sequence[Param]
        Encoded in order.
    mapper : Mapper
        Used to stringify structured values.

    Returns
    -------
    str
        Relative URL.
    """
    if not params:
        return object
    query = "&".join(
        f"{_encode(param.name)}={_encode(stringify_value(param.value, mapper))}"
        for param in params
    )
    return f"{object}?{query}"


class Request(DeferredWrapper[T, T]):
    """
    A logical call with an optional name.

    Names may be referenced by other requests of the same batch. Graph names
    and query names live in separate namespaces.
    """

    def __init__(self, source: Deferred[T]) -> None:
        super().__init__(source)
        self._name: str | None = None
        self._rename_hook: RenameHook | None = None

    @property
    def name(self) -> str | None:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        if self._rename_hook is not None:
            self._rename_hook(self, self._name, value)
        self._name = value

    def with_name(self, value: str) -> t.Self:
        """Set ``name`` and return ``self`` for chaining."""
        self.name = value
        return self


@dataclass
class ElementBinding:
    """
    Position of a request's data in the batch response.

    Filled in by the batch when it serializes; pipeline stages refuse to run
    while ``index`` is still unset.
    """

    index: int | None = None
    id_key: str | None = None


class GraphRequest(Request[T]):
    """
    A call against an object path with an HTTP method and parameters.

    Parameters
    ----------
    object : str
        Object path; a leading ``/`` is stripped.
    method : HttpMethod
        HTTP method of the batch element.
    params : typing.Sequence[Param]
        Call parameters, encoded into the relative URL in order.
    mapper : Mapper
        Used to stringify parameter values.
    source : Deferred[T]
        Pipeline producing this request's value.
    binding : ElementBinding
        Shared with the pipeline's extraction stages.
    """

    def __init__(
        self,
        object: str,
        method: HttpMethod,
        params: t.Sequence[Param],
        *,
        mapper: Mapper,
        source: Deferred[T],
        binding: ElementBinding,
    ) -> None:
        super().__init__(source)
        self.object = object[1:] if object.startswith("/") else object
        self.method = method
        self._params = tuple(params)
        self.mapper = mapper
        self.binding = binding
        self.omit_response_on_success: bool | None = None

    @property
    def params(self) -> tuple[Param, ...]:
        return self._params

    @property
    def is_connection(self) -> bool:
        """``True`` for connection paths such as ``me/friends``."""
        return "/" in self.object

    @property
    def relative_url(self) -> str:
        return build_relative_url(object=self.object, params=self.params, mapper=self.mapper)

    def to_wire(self) -> dict[str, t.Any]:
        """
        Serialize as one element of the wire batch array.

        Returns
        -------
        dict[str, typing.Any]
            ``method`` and ``relative_url``, plus ``name`` and
            ``omit_response_on_success`` when set.
        """
        element: dict[str, t.Any] = {
            "method": str(self.method),
            "relative_url": self.relative_url,
        }
        if self.name is not None:
            element["name"] = self.name
        if self.omit_response_on_success is not None:
            element["omit_response_on_success"] = self.omit_response_on_success
        return element


class QueryRequest(Request[T]):
    """
    One named query carried by the batch's ``MultiqueryRequest``.

    Parameters
    ----------
    fql : str
        Query text.
    name : str
        Name used to find this query's partition in the combined result.
    source : Deferred[T]
        Pipeline producing this request's value.
    """

    def __init__(self, fql: str, name: str, source: Deferred[T]) -> None:
        super().__init__(source)
        self.fql = fql
        self._name = name


class MultiqueryRequest(GraphRequest[Node]):
    """
    Aggregates every query of a batch into a single multiquery element.

    The ``queries`` parameter is computed from the registered queries at
    serialization time, so queries may be added until the batch triggers.
    """

    def __init__(self, *, mapper: Mapper, source: Deferred[Node], binding: ElementBinding) -> None:
        super().__init__(
            MULTIQUERY_OBJECT,
            HttpMethod.GET,
            (),
            mapper=mapper,
            source=source,
            binding=binding,
        )
        self.queries: list[QueryRequest[t.Any]] = []

    def add_query(self, request: QueryRequest[t.Any]) -> None:
        self.queries.append(request)
        log.debug(event="Query added to multiquery", name=request.name, query_count=len(self.queries))

    @property
    def params(self) -> tuple[Param, ...]:
        queries = {request.name: request.fql for request in self.queries}
        return (Param(name="queries", value=self.mapper.to_json(queries)),)
