"""Parsing of query strings and paging links."""

from __future__ import annotations

import typing as t
from urllib.parse import parse_qsl, urlsplit

from graphbatch.request import Param

_STRIPPED_LINK_PARAMS = frozenset({"access_token"})


class PagingLink(t.NamedTuple):
    object: str
    params: tuple[Param, ...]


def parse_query_string(query: str) -> list[tuple[str, str]]:
    """Decode ``a=1&b=2`` into ordered pairs, keeping blank values."""
    return parse_qsl(query, keep_blank_values=True)


def parse_form_body(body: str) -> dict[str, str]:
    return dict(parse_query_string(body))


def parse_paging_link(url: str, *, api_version: str | None = None) -> PagingLink:
    """
    Turn a ``paging.next``/``paging.previous`` link into a request.

    Parameters
    ----------
    url : str
        Absolute link returned by the remote side.
    api_version : str | None, optional
        Version prefix removed from the path when present, since the batch
        endpoint already carries it.

    Returns
    -------
    PagingLink
        Object path without its leading ``/`` and the link's parameters in
        order, ``access_token`` excluded.
    """
    parts = urlsplit(url)
    object = parts.path.lstrip("/")
    if api_version is not None and object.startswith(f"{api_version}/"):
        object = object[len(api_version) + 1 :]
    params = tuple(
        Param(name=name, value=value)
        for name, value in parse_query_string(parts.query)
        if name not in _STRIPPED_LINK_PARAMS
    )
    return PagingLink(object=object, params=params)
