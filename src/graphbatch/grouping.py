"""
Grouping of graph requests that can share one wire element.

Same-shaped GET requests against plain objects combine into a single
``?ids=a,b,c`` element. Everything else gets a key that never matches.
"""

from __future__ import annotations

import itertools
import typing as t

import structlog

from graphbatch.mapper import Mapper
from graphbatch.request import GraphRequest, HttpMethod, Param, build_relative_url, stringify_value

log = structlog.get_logger(__name__)

GroupKey = t.Hashable

_unique_keys = itertools.count()


class _UniqueKey:
    """Key equal only to itself."""

    __slots__ = ("serial",)

    def __init__(self) -> None:
        self.serial = next(_unique_keys)

    def __repr__(self) -> str:
        return f"<unique group {self.serial}>"


class BatchGrouper:
    """
    Buckets graph requests by group key, preserving first-insertion order.

    Parameters
    ----------
    mapper : Mapper
        Used to stringify parameter values for the key.
    """

    def __init__(self, mapper: Mapper) -> None:
        self.mapper = mapper
        self._groups: dict[GroupKey, list[GraphRequest[t.Any]]] = {}

    def __len__(self) -> int:
        return len(self._groups)

    def add(self, request: GraphRequest[t.Any]) -> None:
        key = self.group_key(request=request)
        self._groups.setdefault(key, []).append(request)

    def groups(self) -> t.Iterator[list[GraphRequest[t.Any]]]:
        """
        Iterate groups in first-insertion order; members keep arrival order.

        Each call starts a fresh iteration.
        """
        return iter(list(self._groups.values()))

    def group_key(self, *, request: GraphRequest[t.Any]) -> GroupKey:
        """
        Compute the structural key for ``request``.

        Only GET requests against plain objects (no ``/`` in the path) with no
        explicit name or omit flag can merge; their key is the method plus the sorted
        stringified parameters. Other requests get a fresh unique key.
        """
        if (
            request.method != HttpMethod.GET
            or request.is_connection
            or request.name is not None
            or request.omit_response_on_success is not None
        ):
            return _UniqueKey()
        params = tuple(
            sorted((param.name, stringify_value(param.value, self.mapper)) for param in request.params)
        )
        return (str(request.method), params)


def build_group_element(
    *, group: t.Sequence[GraphRequest[t.Any]], mapper: Mapper
) -> dict[str, t.Any]:
    """
    Serialize a group as one wire element.

    A single request is sent as-is. Several requests become one
    ``?ids=...`` call carrying the shared parameters; generated ``ids`` come
    first so an explicit ``ids`` parameter overrides it.

    Parameters
    ----------
    group : typing.Sequence[GraphRequest]
        Requests sharing one group key.
    mapper : Mapper
        Used to stringify parameter values.

    Returns
    -------
    dict[str, typing.Any]
        Wire element.
    """
    if len(group) == 1:
        return group[0].to_wire()

    first = group[0]
    ids = Param(name="ids", value=",".join(request.object for request in group))
    log.debug(event="Combined requests into ids call", request_count=len(group), ids=ids.value)
    return {
        "method": str(first.method),
        "relative_url": build_relative_url(object="", params=(ids, *first.params), mapper=mapper),
    }
