"""
Access-token exchange helpers.

These are single, unbatched calls to ``oauth/access_token``; the token they
return is what a ``Batcher`` is built with.
"""

from __future__ import annotations

import structlog

from graphbatch.batch import graph_endpoint
from graphbatch.exceptions import ProtocolViolationError, RemoteError, TransportError
from graphbatch.mapper import Mapper
from graphbatch.pipeline import check_for_errors
from graphbatch.transport import HttpExecutor, HttpResponse, RequestSpec, get_executor
from graphbatch.utils.urls import parse_form_body

log = structlog.get_logger(__name__)

TOKEN_PATH = "oauth/access_token"


def get_access_token(
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
    *,
    api_version: str | None = None,
    executor: str | HttpExecutor = "default",
) -> str:
    """
    Exchange an OAuth authorization code for a user access token.

    Parameters
    ----------
    client_id : str
        App id.
    client_secret : str
        App secret.
    code : str
        Code returned to ``redirect_uri`` by the login dialog.
    redirect_uri : str
        The same redirect URI used to obtain ``code``.
    api_version : str | None, optional
        Endpoint version prefix.
    executor : str | HttpExecutor, optional
        Performs the call.

    Returns
    -------
    str
        Access token.

    Raises
    ------
    RemoteError
        If the remote side rejects the exchange.
    TransportError
        On network failure or an unreadable error response.
    """
    return _request_token(
        params={
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        },
        api_version=api_version,
        executor=executor,
    )


def get_app_access_token(
    client_id: str,
    client_secret: str,
    *,
    api_version: str | None = None,
    executor: str | HttpExecutor = "default",
) -> str:
    """Obtain an app access token with the client-credentials grant."""
    return _request_token(
        params={
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "client_credentials",
        },
        api_version=api_version,
        executor=executor,
    )


def _request_token(
    *,
    params: dict[str, str],
    api_version: str | None,
    executor: str | HttpExecutor,
) -> str:
    request = RequestSpec(
        method="GET",
        url=f"{graph_endpoint(api_version=api_version)}{TOKEN_PATH}",
        params=params,
    )
    response = get_executor(executor).execute(retries=0, request=request).result()
    if response.status_code == 200:
        return _parse_token(response=response)
    raise _token_error(response=response)


def _parse_token(*, response: HttpResponse) -> str:
    text = response.text.strip()
    if text.startswith("{"):
        fields = Mapper().to_tree(text)
    else:
        fields = parse_form_body(text)
    token = fields.get("access_token") if isinstance(fields, dict) else None
    if not token:
        raise ProtocolViolationError(f"No access_token in token response: {text!r}")
    log.debug(event="Access token obtained", expires=fields.get("expires", fields.get("expires_in")))
    return str(token)


def _token_error(*, response: HttpResponse) -> Exception:
    try:
        node = Mapper().to_tree(response.content)
    except ValueError:
        return TransportError(
            f"Unrecognized error {response.status_code} from token call :: {response.text}",
            status_code=response.status_code,
        )
    try:
        check_for_errors(node)
    except RemoteError as error:
        return error
    return RemoteError(
        f"Unexpected token response {response.status_code} :: {response.text}",
        code=response.status_code,
    )
