"""
Coordinator owning the open batches of one credential.

Requests are appended to the newest open batch until it holds
``max_batch_size`` graph calls, then a new batch is opened. Every query of
the current round rides the multiquery of a single batch. Executing, either
explicitly or by reading any result, sends every open batch.
"""

from __future__ import annotations

import typing as t

import structlog

from graphbatch.api_utils import (
    get_default_access_token,
    get_default_api_version,
    get_default_app_secret,
)
from graphbatch.batch import Batch
from graphbatch.deferred import Deferred
from graphbatch.mapper import Mapper
from graphbatch.request import GraphRequest, Param, QueryRequest
from graphbatch.transport import HttpExecutor, get_executor
from graphbatch.utils.crypto import app_secret_proof

if t.TYPE_CHECKING:
    from graphbatch.paging import PagedDeferred

log = structlog.get_logger(__name__)

MAX_BATCH_SIZE = 50


class Batcher:
    """
    Collect graph calls and queries into as few physical calls as possible.

    Parameters
    ----------
    access_token : str | None, optional
        Credential sent with every batch; defaults to ``GRAPHBATCH_ACCESS_TOKEN``.
    app_secret : str | None, optional
        When set, every batch is signed with ``appsecret_proof``; defaults to
        ``GRAPHBATCH_APP_SECRET``.
    api_version : str | None, optional
        Endpoint version prefix such as ``v2.0``; defaults to
        ``GRAPHBATCH_API_VERSION``.
    timeout : float, optional
        Per-call timeout in seconds; ``0`` disables it.
    retries : int, optional
        Retries of a physical call on timeout.
    max_batch_size : int, optional
        Graph calls per batch; the remote side rejects more than 50.
    executor : str | HttpExecutor, optional
        ``"default"``, ``"threaded"`` or an executor instance.
    mapper : Mapper | None, optional
        Converts response nodes into declared result types.
    """

    def __init__(
        self,
        access_token: str | None = None,
        app_secret: str | None = None,
        api_version: str | None = None,
        *,
        timeout: float = 0.0,
        retries: int = 0,
        max_batch_size: int = MAX_BATCH_SIZE,
        executor: str | HttpExecutor = "default",
        mapper: Mapper | None = None,
    ) -> None:
        self.access_token = access_token or get_default_access_token()
        app_secret = app_secret or get_default_app_secret()
        self._app_secret_proof = (
            app_secret_proof(access_token=self.access_token, app_secret=app_secret)
            if app_secret and self.access_token
            else None
        )
        self.api_version = api_version or get_default_api_version()
        self.executor = get_executor(executor)
        self.mapper = mapper or Mapper()

        self._timeout = timeout
        self._retries = retries
        self._max_batch_size = max_batch_size

        self._batches: list[Batch] = []
        self._query_batch: Batch | None = None

        log.debug(
            event="Initialized Batcher",
            api_version=self.api_version,
            signed=self._app_secret_proof is not None,
            timeout=timeout,
            retries=retries,
            max_batch_size=max_batch_size,
            executor=type(self.executor).__name__,
        )

    # -- configuration ------------------------------------------------------

    @property
    def timeout(self) -> float:
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        self._check_no_open_batches(setting="timeout")
        self._timeout = value

    @property
    def retries(self) -> int:
        return self._retries

    @retries.setter
    def retries(self, value: int) -> None:
        self._check_no_open_batches(setting="retries")
        self._retries = value

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    @max_batch_size.setter
    def max_batch_size(self, value: int) -> None:
        self._check_no_open_batches(setting="max_batch_size")
        if value < 1:
            raise ValueError(f"max_batch_size must be positive, got {value}")
        self._max_batch_size = value

    def _check_no_open_batches(self, *, setting: str) -> None:
        if any(batch.graph_size() for batch in self._batches):
            raise RuntimeError(f"You cannot change {setting} once requests have been enqueued")
        # Batches left empty by a rejected request were built with the old settings.
        self._batches = []
        self._query_batch = None

    # -- requests -----------------------------------------------------------

    def graph(
        self, object: str, type: t.Any = None, *params: Param, name: str | None = None
    ) -> GraphRequest[t.Any]:
        """
        Enqueue a GET of ``object``.

        Parameters
        ----------
        object : str
            Object or connection path, e.g. ``me`` or ``me/friends``.
        type : typing.Any, optional
            Declared result type; ``None`` returns the raw JSON node.
        *params : Param
            Call parameters.
        name : str | None, optional
            Batch-unique name; named requests are never combined.

        Returns
        -------
        GraphRequest
            Deferred result.
        """
        return self._batch_for_graph().graph(object, type, *params, name=name)

    def paged(self, object: str, type: t.Any = None, *params: Param) -> PagedDeferred[t.Any]:
        """
        Enqueue a GET of a connection, resolving to its items.

        Raises
        ------
        ValueError
            If ``object`` is not a connection path.
        """
        return self._batch_for_graph().paged(object, type, *params)

    def query(self, fql: str, type: t.Any = None, *, name: str | None = None) -> QueryRequest[t.Any]:
        """
        Enqueue a query; all queries of a round share one multiquery call.

        Parameters
        ----------
        fql : str
            Query text.
        type : typing.Any, optional
            Row type; the result is a list of it.
        name : str | None, optional
            Explicit query name; generated as ``__q<N>`` otherwise.

        Returns
        -------
        QueryRequest
            Deferred list of rows.
        """
        return self._batch_for_query().query(fql, type, name=name)

    def query_first(self, fql: str, type: t.Any = None) -> Deferred[t.Any]:
        """Enqueue a query resolving to its first row, or ``None`` when empty."""
        return self._batch_for_query().query_first(fql, type)

    def delete(self, object: str) -> GraphRequest[bool]:
        return self._batch_for_graph().delete(object)

    def post(self, object: str, type: t.Any = None, *params: Param) -> GraphRequest[t.Any]:
        return self._batch_for_graph().post(object, type, *params)

    def post_id(self, object: str, *params: Param) -> Deferred[str | None]:
        """Enqueue a POST resolving to the ``id`` of the created object."""
        return self._batch_for_graph().post_id(object, *params)

    def execute(self) -> None:
        """
        Send every open batch. A no-op when nothing is pending.

        Raises
        ------
        Exception
            The first error raised while sending a batch, once every other
            batch has been sent.
        """
        errors = self.send_open_batches()
        if errors:
            raise errors[0]

    def send_open_batches(self) -> list[Exception]:
        """
        Trigger every open batch, even when some of them fail to send.

        A batch that fails stays untriggered; reading any of its requests
        retries the send and raises the error there.

        Returns
        -------
        list[Exception]
            Errors raised by failing batches, in batch order.
        """
        if not self._batches:
            return []
        batches = self._batches
        self._batches = []
        self._query_batch = None
        log.debug(event="Executing open batches", batch_count=len(batches))
        errors: list[Exception] = []
        for batch in batches:
            try:
                batch.execute()
            except Exception as error:
                log.error(
                    event="Failed to send batch",
                    request_count=batch.graph_size(),
                    error=repr(error),
                )
                errors.append(error)
        return errors

    def close(self) -> None:
        """Release executor resources, such as the threaded executor's pool."""
        close = getattr(self.executor, "close", None)
        if close is not None:
            close()

    # -- batches ------------------------------------------------------------

    def _batch_for_graph(self) -> Batch:
        if not self._batches or self._batches[-1].graph_size() >= self._max_batch_size:
            batch = Batch(
                master=self,
                mapper=self.mapper,
                executor=self.executor,
                access_token=self.access_token,
                app_secret_proof=self._app_secret_proof,
                api_version=self.api_version,
                timeout=self._timeout,
                retries=self._retries,
            )
            self._batches.append(batch)
            log.debug(event="Opened batch", open_batch_count=len(self._batches))
        return self._batches[-1]

    def _batch_for_query(self) -> Batch:
        if self._query_batch is None:
            self._query_batch = self._batch_for_graph()
        return self._query_batch
