"""
HTTP executors: the only place physical calls are made.

Executors take a ``RequestSpec`` and return a ``concurrent.futures.Future``
holding the ``HttpResponse`` or the ``TransportError``. The default executor
completes the future before returning; the threaded one runs the call on a
worker thread so several batches can be in flight at once.
"""

from __future__ import annotations

import typing as t
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

import httpx
import structlog

from graphbatch.exceptions import TransportError

log = structlog.get_logger(__name__)

_SECRET_PARAMS = frozenset({"access_token", "appsecret_proof", "client_secret"})


@dataclass(frozen=True)
class RequestSpec:
    """
    One physical HTTP call.

    Parameters
    ----------
    method : str
        HTTP method.
    url : str
        Absolute URL.
    params : dict[str, str]
        Form fields for POST, query parameters otherwise.
    timeout : float
        Connect/read timeout in seconds; ``0`` disables it.
    """

    method: str
    url: str
    params: dict[str, str] = field(default_factory=dict)
    timeout: float = 0.0


@dataclass(frozen=True)
class HttpResponse:
    """Status code and raw body of a completed call."""

    status_code: int
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode(encoding="utf-8", errors="replace")


class HttpExecutor(t.Protocol):
    def execute(self, *, retries: int, request: RequestSpec) -> Future[HttpResponse]: ...


class DefaultExecutor:
    """
    Synchronous executor backed by ``httpx.Client``.

    Parameters
    ----------
    client_factory : typing.Callable[[], httpx.Client] | None, optional
        Builds a client per call; override it to inject a transport.
    """

    def __init__(self, client_factory: t.Callable[[], httpx.Client] | None = None) -> None:
        self._client_factory: t.Callable[[], httpx.Client] = client_factory or httpx.Client

    def execute(self, *, retries: int, request: RequestSpec) -> Future[HttpResponse]:
        """
        Perform the call now and return an already-completed future.

        Parameters
        ----------
        retries : int
            Additional attempts allowed after a timeout.
        request : RequestSpec
            Call to perform.

        Returns
        -------
        concurrent.futures.Future[HttpResponse]
            Completed with the response or with a ``TransportError``.
        """
        future: Future[HttpResponse] = Future()
        try:
            future.set_result(self.execute_with_retries(retries=retries, request=request))
        except TransportError as error:
            future.set_exception(error)
        return future

    def execute_with_retries(self, *, retries: int, request: RequestSpec) -> HttpResponse:
        """
        Perform the call, retrying timeouts up to ``retries`` more times.

        Raises
        ------
        TransportError
            On any transport failure, or once retries are exhausted.
        """
        attempts = retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._execute_once(request=request)
            except httpx.TimeoutException as error:
                if attempt >= attempts:
                    raise TransportError(
                        f"Timeout calling {request.method} {request.url} after {attempt} attempt(s)"
                    ) from error
                log.warning(
                    event="Timeout error, retrying",
                    method=request.method,
                    url=request.url,
                    attempt=attempt,
                    retries=retries,
                )
            except httpx.HTTPError as error:
                raise TransportError(
                    f"Error calling {request.method} {request.url}: {error}"
                ) from error
        raise AssertionError("unreachable")

    def _execute_once(self, *, request: RequestSpec) -> HttpResponse:
        timeout = request.timeout if request.timeout > 0 else None
        log.debug(
            event="Executing HTTP request",
            method=request.method,
            url=request.url,
            param_names=[name for name in request.params if name not in _SECRET_PARAMS],
            timeout=timeout,
        )
        with self._client_factory() as client:
            if request.method == "POST":
                response = client.post(url=request.url, data=request.params, timeout=timeout)
            else:
                response = client.request(
                    method=request.method,
                    url=request.url,
                    params=request.params,
                    timeout=timeout,
                )
        log.debug(
            event="HTTP response received",
            method=request.method,
            url=request.url,
            status_code=response.status_code,
            bytes=len(response.content),
        )
        return HttpResponse(status_code=response.status_code, content=response.content)


class ThreadedExecutor(DefaultExecutor):
    """
    Executor issuing each call on a worker thread.

    Sweeping several open batches therefore overlaps their round trips;
    callers block only when they read a result.

    Parameters
    ----------
    client_factory : typing.Callable[[], httpx.Client] | None, optional
        Builds a client per call.
    max_workers : int, optional
        Size of the worker pool.
    """

    def __init__(
        self,
        client_factory: t.Callable[[], httpx.Client] | None = None,
        max_workers: int = 8,
    ) -> None:
        super().__init__(client_factory=client_factory)
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="graphbatch")

    def execute(self, *, retries: int, request: RequestSpec) -> Future[HttpResponse]:
        return self._pool.submit(self.execute_with_retries, retries=retries, request=request)

    def close(self) -> None:
        self._pool.shutdown(wait=True)


EXECUTORS: dict[str, type[DefaultExecutor]] = {
    "default": DefaultExecutor,
    "threaded": ThreadedExecutor,
}


def get_executor(executor: str | HttpExecutor = "default") -> HttpExecutor:
    """
    Resolve an executor name or pass an executor instance through.

    Parameters
    ----------
    executor : str | HttpExecutor, optional
        ``"default"``, ``"threaded"`` or an executor instance.

    Returns
    -------
    HttpExecutor
        Executor instance.

    Raises
    ------
    ValueError
        If the name is unknown.
    """
    if not isinstance(executor, str):
        return executor
    try:
        executor_cls = EXECUTORS[executor]
    except KeyError:
        raise ValueError(
            f"Unknown executor {executor!r}, supported executors are: {', '.join(EXECUTORS)}"
        ) from None
    return executor_cls()
