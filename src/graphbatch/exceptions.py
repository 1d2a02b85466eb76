"""
Graphbatch runtime exceptions.

Every error raised while resolving a logical request derives from
``GraphBatchError``. Errors reported by the remote side derive from
``RemoteError`` and carry the wire-level type, code and subcode.
"""

from __future__ import annotations

import typing as t


class GraphBatchError(Exception):
    """Root of every error raised by graphbatch."""


class TransportError(GraphBatchError):
    """
    Network or I/O failure, or an unexpected HTTP status from the remote side.

    Parameters
    ----------
    message : str
        Human-readable description.
    status_code : int | None, optional
        HTTP status code, when a response was received.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolViolationError(GraphBatchError):
    """
    The remote side returned a response shape the client cannot interpret.

    Notes
    -----
    Always fatal: a missing batch element, an unmatched multiquery name or an
    unparseable migration message all signal a contract break.
    """


class RemoteError(GraphBatchError):
    """
    Well-formed error reported by the remote API.

    Parameters
    ----------
    message : str
        Error message.
    type : str | None, optional
        Wire error type, e.g. ``OAuthException``.
    code : int | None, optional
        Wire error code.
    subcode : int | None, optional
        Wire ``error_subcode``.
    user_title : str | None, optional
        Localized title meant for display to end users.
    user_message : str | None, optional
        Localized message meant for display to end users.
    """

    def __init__(
        self,
        message: str,
        *,
        type: str | None = None,
        code: int | None = None,
        subcode: int | None = None,
        user_title: str | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.type = type
        self.code = code
        self.subcode = subcode
        self.user_title = user_title
        self.user_message = user_message


class AuthError(RemoteError):
    """Expired, invalid or missing credential."""


class AccessTokenError(AuthError):
    """The access token itself was rejected."""


class PermissionDeniedError(RemoteError):
    """The credential lacks permission for the requested resource."""


class QuerySyntaxError(RemoteError):
    """Malformed query text sent through the multiquery sub-protocol."""


class ResourceMigratedError(RemoteError):
    """
    The requested object moved to a new identifier.

    Parameters
    ----------
    message : str
        Original error message.
    old_id : int
        Identifier that was requested.
    new_id : int
        Identifier the object migrated to.
    **kwargs : typing.Any
        Forwarded to ``RemoteError``.
    """

    def __init__(self, message: str, *, old_id: int, new_id: int, **kwargs: t.Any) -> None:
        super().__init__(message, **kwargs)
        self.old_id = old_id
        self.new_id = new_id


# Wire error ``type`` -> exception class. Unknown types fall back to RemoteError.
ERROR_TYPES: dict[str, type[RemoteError]] = {
    "OAuthException": AuthError,
    "OAuthAccessTokenException": AccessTokenError,
    "QueryParseException": QuerySyntaxError,
}

AUTH_ERROR_CODES = frozenset({0, 101, 102, 190})


def error_class_for_type(*, error_type: str) -> type[RemoteError] | None:
    """
    Look up the exception class registered for a wire error type.

    Parameters
    ----------
    error_type : str
        Value of the ``error.type`` field.

    Returns
    -------
    type[RemoteError] | None
        Registered class, or ``None`` when the type is unknown.
    """
    return ERROR_TYPES.get(error_type)


def error_for_code(*, code: int, message: str) -> RemoteError:
    """
    Build the typed error for a legacy numeric error code.

    Parameters
    ----------
    code : int
        Legacy ``error_code`` (or batch-level ``error``) value.
    message : str
        Accompanying message.

    Returns
    -------
    RemoteError
        Typed error instance; never ``None``.
    """
    if code in AUTH_ERROR_CODES:
        return AuthError(message, type="OAuthException", code=code)
    if 200 <= code < 300:
        return PermissionDeniedError(message, code=code)
    if 600 <= code < 700:
        return QuerySyntaxError(message, code=code)
    return RemoteError(f"{message} (code {code})", code=code)
