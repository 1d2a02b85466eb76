from __future__ import annotations

import typing as t

import structlog

from graphbatch.deferred import DeferredWrapper
from graphbatch.models import Paged
from graphbatch.request import GraphRequest
from graphbatch.utils.urls import parse_paging_link

if t.TYPE_CHECKING:
    from graphbatch.core import Batcher

log = structlog.get_logger(__name__)

T = t.TypeVar("T")


class PagedDeferred(DeferredWrapper[Paged[T], list[T] | None]):
    """
    Data list of a connection request, with navigation to adjacent pages.

    ``get()`` returns the page's items. ``next()`` and ``previous()`` enqueue
    the adjacent page on the owning batcher, following the envelope's links.

    Parameters
    ----------
    batcher : Batcher
        Receives the follow-up page requests.
    request : GraphRequest[Paged[T]]
        Request resolving to the paging envelope.
    type : typing.Any
        Item type of every page.
    """

    def __init__(self, *, batcher: Batcher, request: GraphRequest[Paged[T]], type: t.Any) -> None:
        super().__init__(request)
        self.batcher = batcher
        self.request = request
        self.type = type

    def convert(self, value: Paged[T] | None) -> list[T] | None:
        if value is None:
            return None
        return value.data

    def next(self) -> PagedDeferred[T] | None:
        """Enqueue the next page, or return ``None`` on the last page."""
        return self._follow(direction="next")

    def previous(self) -> PagedDeferred[T] | None:
        """Enqueue the previous page, or return ``None`` on the first page."""
        return self._follow(direction="previous")

    def _follow(self, *, direction: t.Literal["next", "previous"]) -> PagedDeferred[T] | None:
        envelope = self.request.get()
        if envelope is None or envelope.paging is None:
            return None
        url = getattr(envelope.paging, direction)
        if not url:
            return None
        link = parse_paging_link(url, api_version=self.batcher.api_version)
        log.debug(event="Following paging link", direction=direction, object=link.object)
        return self.batcher.paged(link.object, self.type, *link.params)
