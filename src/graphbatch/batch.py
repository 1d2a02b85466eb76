"""
One bounded batch of logical requests, sent as a single physical call.

A batch is open until it triggers. Triggering serializes every request into
the wire batch array, hands the call to the executor and asks the owning
``Batcher`` to sweep its other open batches. Triggering happens on
``execute()`` or on the first ``get()`` of any request in the batch.
"""

from __future__ import annotations

import typing as t
from concurrent.futures import Future
from enum import StrEnum

import structlog

from graphbatch.deferred import Deferred, FirstElement, Lazy, MappedDeferred
from graphbatch.exceptions import ProtocolViolationError, TransportError
from graphbatch.grouping import BatchGrouper, build_group_element
from graphbatch.mapper import Mapper, Node
from graphbatch.models import Paged
from graphbatch.paging import PagedDeferred
from graphbatch.pipeline import (
    ErrorDetector,
    GraphNodeExtractor,
    GroupedNodeExtractor,
    MapperStage,
    QueryNodeExtractor,
)
from graphbatch.request import (
    ElementBinding,
    GraphRequest,
    HttpMethod,
    MultiqueryRequest,
    Param,
    QueryRequest,
    Request,
)
from graphbatch.transport import HttpExecutor, HttpResponse, RequestSpec

if t.TYPE_CHECKING:
    from graphbatch.core import Batcher

log = structlog.get_logger(__name__)

GRAPH_ENDPOINT = "https://graph.facebook.com/"

# Statuses whose body still carries a JSON answer; errors in it are classified later.
_READABLE_STATUS_CODES = frozenset({200, 400, 401})


class BatchState(StrEnum):
    OPEN = "open"
    TRIGGERED = "triggered"
    RESOLVED = "resolved"
    FAILED = "failed"


def split_type_and_params(
    type: t.Any, params: tuple[Param, ...]
) -> tuple[t.Any, tuple[Param, ...]]:
    """Allow ``graph("me", Param(...))`` without an explicit result type."""
    if isinstance(type, Param):
        return None, (type, *params)
    return type, params


def graph_endpoint(*, api_version: str | None) -> str:
    if api_version is None:
        return GRAPH_ENDPOINT
    return f"{GRAPH_ENDPOINT}{api_version}/"


class Batch(Deferred[Node]):
    """
    Everything that can be done in a single batch call.

    The batch itself is the deferred raw response; every request's pipeline
    starts from it.

    Parameters
    ----------
    master : Batcher
        Owning coordinator, swept on trigger and used to issue paging requests.
    mapper : Mapper
        Shared structured-data mapper.
    executor : HttpExecutor
        Performs the physical call.
    access_token : str | None
        Sent with the batch call.
    app_secret_proof : str | None
        Sent as ``appsecret_proof`` when present.
    api_version : str | None
        Version prefix for the endpoint, e.g. ``v2.0``.
    timeout : float
        Per-call timeout in seconds; ``0`` disables it.
    retries : int
        Retries on timeout, applied by the executor.
    """

    def __init__(
        self,
        *,
        master: Batcher,
        mapper: Mapper,
        executor: HttpExecutor,
        access_token: str | None,
        app_secret_proof: str | None = None,
        api_version: str | None = None,
        timeout: float = 0.0,
        retries: int = 0,
    ) -> None:
        super().__init__()
        self.master = master
        self.mapper = mapper
        self.executor = executor
        self._access_token = access_token
        self._app_secret_proof = app_secret_proof
        self.api_version = api_version
        self.timeout = timeout
        self.retries = retries

        self._graph_requests: list[GraphRequest[t.Any]] = []
        self._graph_names: dict[str, Request[t.Any]] = {}
        self._query_names: dict[str, Request[t.Any]] = {}
        self._multiquery: MultiqueryRequest | None = None
        self._generated_query_name_index = 0

        self._response_future: Future[HttpResponse] | None = None
        self._raw_result: Deferred[Node] | None = None
        # Shared so a whole-batch error is the same instance for every request.
        self._checked_result = ErrorDetector(self)

    def graph_size(self) -> int:
        """Number of wire-level graph calls enqueued, the multiquery counting once."""
        return len(self._graph_requests)

    @property
    def triggered(self) -> bool:
        return self._response_future is not None

    @property
    def state(self) -> BatchState:
        if self._response_future is None:
            return BatchState.OPEN
        if self._error is not None:
            return BatchState.FAILED
        if self.resolved:
            return BatchState.RESOLVED
        if self._response_future.done():
            if self._response_future.exception() is not None:
                return BatchState.FAILED
            return BatchState.RESOLVED
        return BatchState.TRIGGERED

    # -- enqueue ------------------------------------------------------------

    def graph(
        self, object: str, type: t.Any = None, *params: Param, name: str | None = None
    ) -> GraphRequest[t.Any]:
        type, params = split_type_and_params(type, params)
        if name is not None and name in self._graph_names:
            raise ValueError(f"Name {name!r} is already used in this batch")
        request = self._add_graph(object=object, method=HttpMethod.GET, target=type, params=params)
        if name is not None:
            request.name = name
        return request

    def paged(self, object: str, type: t.Any = None, *params: Param) -> PagedDeferred[t.Any]:
        type, params = split_type_and_params(type, params)
        stripped = object[1:] if object.startswith("/") else object
        if "/" not in stripped:
            raise ValueError(f"paged() only works with connection requests, eg me/friends: {object!r}")
        item_type = t.Any if type is None else type
        request = self._add_graph(
            object=object,
            method=HttpMethod.GET,
            target=Paged[item_type],
            params=params,
        )
        return PagedDeferred(batcher=self.master, request=request, type=type)

    def query(self, fql: str, type: t.Any = None, *, name: str | None = None) -> QueryRequest[t.Any]:
        self._check_open()
        if name is None:
            name = self._generate_query_name()
        elif name in self._query_names:
            raise ValueError(f"Query name {name!r} is already used in this batch")

        if self._multiquery is None:
            binding = ElementBinding()
            self._multiquery = MultiqueryRequest(
                mapper=self.mapper,
                source=self._create_unmapped_chain(binding=binding),
                binding=binding,
            )
            self._graph_requests.append(self._multiquery)

        # The extractor needs the request's name, but the request wraps the extractor.
        extractor = QueryNodeExtractor(self._multiquery)
        target = None if type is None else list[type]
        request: QueryRequest[t.Any] = QueryRequest(
            fql,
            name,
            MapperStage(extractor, target=target, mapper=self.mapper),
        )
        extractor.bind(request)
        self._register_name(request=request, name=name, namespace=self._query_names)
        request._rename_hook = self._rename_query
        self._multiquery.add_query(request)
        return request

    def query_first(self, fql: str, type: t.Any = None) -> Deferred[t.Any]:
        return FirstElement(self.query(fql, type))

    def delete(self, object: str) -> GraphRequest[bool]:
        # Real DELETE is rejected inside batches; the remote side honors method=DELETE.
        return self._add_graph(
            object=object,
            method=HttpMethod.POST,
            target=bool,
            params=(Param(name="method", value="DELETE"),),
        )

    def post(self, object: str, type: t.Any = None, *params: Param) -> GraphRequest[t.Any]:
        type, params = split_type_and_params(type, params)
        return self._add_graph(object=object, method=HttpMethod.POST, target=type, params=params)

    def post_id(self, object: str, *params: Param) -> Deferred[str | None]:
        request = self.post(object, None, *params)
        return MappedDeferred(request, _extract_id)

    # -- execution ----------------------------------------------------------

    def execute(self) -> None:
        """Trigger the batch if it holds anything; idempotent."""
        if self._graph_requests:
            self._trigger()

    def _resolve(self) -> Node:
        return self._trigger().get()

    def _trigger(self) -> Deferred[Node]:
        if self._raw_result is None:
            request = self._build_request()
            self._response_future = self.executor.execute(retries=self.retries, request=request)
            future = self._response_future
            self._raw_result = Lazy(lambda: self._read_response(response=future.result()))
            log.debug(
                event="Batch triggered",
                url=request.url,
                request_count=len(self._graph_requests),
            )
            # Only after the raw result is set, otherwise the sweep recurses into us.
            # Other batches' send errors surface on their own requests.
            self.master.send_open_batches()
        return self._raw_result

    def _build_request(self) -> RequestSpec:
        grouper = BatchGrouper(self.mapper)
        for request in self._graph_requests:
            grouper.add(request)

        elements: list[dict[str, t.Any]] = []
        for index, group in enumerate(grouper.groups()):
            elements.append(build_group_element(group=group, mapper=self.mapper))
            for request in group:
                request.binding.index = index
                request.binding.id_key = request.object if len(group) > 1 else None

        batch_value = self.mapper.to_json(elements)
        log.debug(
            event="Batch payload built",
            request_count=len(self._graph_requests),
            element_count=len(elements),
            batch=batch_value,
        )

        params: dict[str, str] = {}
        if self._access_token is not None:
            params["access_token"] = self._access_token
        if self._app_secret_proof is not None:
            params["appsecret_proof"] = self._app_secret_proof
        params["batch"] = batch_value
        return RequestSpec(
            method="POST",
            url=graph_endpoint(api_version=self.api_version),
            params=params,
            timeout=self.timeout,
        )

    def _read_response(self, *, response: HttpResponse) -> Node:
        if response.status_code not in _READABLE_STATUS_CODES:
            raise TransportError(
                f"Unrecognized error {response.status_code} from batch call :: {response.text}",
                status_code=response.status_code,
            )
        try:
            result = self.mapper.to_tree(response.content)
        except ValueError as error:
            raise ProtocolViolationError(
                f"Batch response is not JSON (status {response.status_code}): {response.text!r}"
            ) from error
        log.debug(event="Batch response parsed", status_code=response.status_code)
        return result

    # -- helpers ------------------------------------------------------------

    def _add_graph(
        self,
        *,
        object: str,
        method: HttpMethod,
        target: t.Any,
        params: t.Sequence[Param],
    ) -> GraphRequest[t.Any]:
        self._check_open()
        binding = ElementBinding()
        request: GraphRequest[t.Any] = GraphRequest(
            object,
            method,
            params,
            mapper=self.mapper,
            source=MapperStage(
                self._create_unmapped_chain(binding=binding),
                target=target,
                mapper=self.mapper,
            ),
            binding=binding,
        )
        request._rename_hook = self._rename_graph
        self._graph_requests.append(request)
        return request

    def _create_unmapped_chain(self, *, binding: ElementBinding) -> Deferred[Node]:
        """
        Select one request's node out of the batch, error-checked at both the
        batch and the element level. The result is an unmapped node.
        """
        element = ErrorDetector(
            GraphNodeExtractor(self._checked_result, binding=binding, mapper=self.mapper)
        )
        return GroupedNodeExtractor(element, binding=binding)

    def _check_open(self) -> None:
        if self.triggered:
            raise RuntimeError("You cannot add requests to a batch that has been executed")

    def _generate_query_name(self) -> str:
        while True:
            name = f"__q{self._generated_query_name_index}"
            self._generated_query_name_index += 1
            if name not in self._query_names:
                return name

    def _register_name(
        self, *, request: Request[t.Any], name: str, namespace: dict[str, Request[t.Any]]
    ) -> None:
        owner = namespace.get(name)
        if owner is not None and owner is not request:
            raise ValueError(f"Name {name!r} is already used in this batch")
        namespace[name] = request

    def _rename(
        self,
        *,
        request: Request[t.Any],
        old: str | None,
        new: str,
        namespace: dict[str, Request[t.Any]],
    ) -> None:
        if self.triggered:
            raise RuntimeError("You cannot rename a request after its batch has been executed")
        self._register_name(request=request, name=new, namespace=namespace)
        if old is not None and old != new:
            del namespace[old]

    def _rename_graph(self, request: Request[t.Any], old: str | None, new: str) -> None:
        self._rename(request=request, old=old, new=new, namespace=self._graph_names)

    def _rename_query(self, request: Request[t.Any], old: str | None, new: str) -> None:
        self._rename(request=request, old=old, new=new, namespace=self._query_names)


def _extract_id(node: Node) -> str | None:
    if not isinstance(node, dict) or node.get("id") is None:
        return None
    return str(node["id"])
