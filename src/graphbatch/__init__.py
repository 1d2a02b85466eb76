from .auth import get_access_token as get_access_token
from .auth import get_app_access_token as get_app_access_token
from .core import Batcher as Batcher
from .deferred import Deferred as Deferred
from .exceptions import AccessTokenError as AccessTokenError
from .exceptions import AuthError as AuthError
from .exceptions import GraphBatchError as GraphBatchError
from .exceptions import PermissionDeniedError as PermissionDeniedError
from .exceptions import ProtocolViolationError as ProtocolViolationError
from .exceptions import QuerySyntaxError as QuerySyntaxError
from .exceptions import RemoteError as RemoteError
from .exceptions import ResourceMigratedError as ResourceMigratedError
from .exceptions import TransportError as TransportError
from .models import Paged as Paged
from .paging import PagedDeferred as PagedDeferred
from .request import Param as Param
from .transport import DefaultExecutor as DefaultExecutor
from .transport import ThreadedExecutor as ThreadedExecutor

__all__ = [
    "Batcher",
    "Param",
    "Deferred",
    "PagedDeferred",
    "Paged",
    "DefaultExecutor",
    "ThreadedExecutor",
    "get_access_token",
    "get_app_access_token",
    "GraphBatchError",
    "TransportError",
    "ProtocolViolationError",
    "RemoteError",
    "AuthError",
    "AccessTokenError",
    "PermissionDeniedError",
    "QuerySyntaxError",
    "ResourceMigratedError",
]
