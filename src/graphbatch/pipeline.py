"""
Stages of the per-request result pipeline.

Each stage wraps the previous ``Deferred`` and transforms its value once it
resolves. A graph request's chain reads, innermost first::

    ErrorDetector(batch)              whole-response errors
    GraphNodeExtractor                element at the request's index
    ErrorDetector                     element-level errors
    GroupedNodeExtractor              sub-node for ``ids=`` groups
    [QueryNodeExtractor]              named multiquery partition
    MapperStage                       declared result type
"""

from __future__ import annotations

import re
import typing as t

import structlog

from graphbatch.deferred import Deferred, DeferredWrapper
from graphbatch.exceptions import (
    PermissionDeniedError,
    ProtocolViolationError,
    RemoteError,
    ResourceMigratedError,
    error_class_for_type,
    error_for_code,
)
from graphbatch.mapper import Mapper, Node

if t.TYPE_CHECKING:
    from graphbatch.request import ElementBinding, Request

log = structlog.get_logger(__name__)

T = t.TypeVar("T")

# Migration messages look like:
# (#21) Page ID 114267748588304 was migrated to page ID 111013272313096.  Please update ...
MIGRATED_ID_PATTERN = re.compile(r"ID ([0-9]+)")
MIGRATED_CODE = 21
PERMISSION_CODE = 10


def _optional_int(value: t.Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: t.Any) -> str | None:
    return value if isinstance(value, str) else None


def check_for_errors(node: Node) -> Node:
    """
    Normalize ``false`` to ``None`` and raise the typed error for error shapes.

    Parameters
    ----------
    node : Node
        Generic JSON tree.

    Returns
    -------
    Node
        The node unchanged, or ``None`` for a bare ``false``.

    Raises
    ------
    RemoteError
        For any of the three recognized wire error encodings.
    ProtocolViolationError
        If a migration message cannot be parsed.
    """
    if node is None or node is False:
        return None
    if not isinstance(node, dict):
        return node

    _check_for_graph_error(node=node)
    _check_for_batch_error(node=node)
    _check_for_legacy_error(node=node)
    return node


def _check_for_graph_error(*, node: dict[str, t.Any]) -> None:
    """
    Standard graph error::

        {"error": {"type": "OAuthException", "message": "...", "code": 190}}
    """
    error = node.get("error")
    if not isinstance(error, dict):
        return
    error_type = _optional_str(error.get("type"))
    message = _optional_str(error.get("message"))
    # Without type and message this is some other kind of error shape.
    if error_type is None or message is None:
        return

    details: dict[str, t.Any] = {
        "type": error_type,
        "code": _optional_int(error.get("code")),
        "subcode": _optional_int(error.get("error_subcode")),
        "user_title": _optional_str(error.get("error_user_title")),
        "user_message": _optional_str(error.get("error_user_msg")),
    }
    code = details["code"]

    if code == MIGRATED_CODE or message.startswith("(#21)"):
        raise _migrated_error(message=message, details=details)

    if (
        code == PERMISSION_CODE
        or (code is not None and 200 <= code < 300)
        or message.startswith("(#200)")
    ):
        raise PermissionDeniedError(message, **details)

    error_class = error_class_for_type(error_type=error_type)
    if error_class is not None:
        raise error_class(message, **details)
    raise RemoteError(f"{error_type}: {message}", **details)


def _migrated_error(*, message: str, details: dict[str, t.Any]) -> Exception:
    ids = MIGRATED_ID_PATTERN.findall(message)
    if len(ids) < 2:
        return ProtocolViolationError(
            f"Unrecognized resource migration message format: {message!r}"
        )
    return ResourceMigratedError(message, old_id=int(ids[0]), new_id=int(ids[1]), **details)


def _check_for_batch_error(*, node: dict[str, t.Any]) -> None:
    """
    Batch-call error::

        {"error": 190, "error_description": "Invalid OAuth access token signature."}
    """
    code = _optional_int(node.get("error"))
    description = node.get("error_description")
    if code is None or description is None:
        return
    raise error_for_code(code=code, message=str(description))


def _check_for_legacy_error(*, node: dict[str, t.Any]) -> None:
    """
    Old REST and multiquery error::

        {"error_code": 602, "error_msg": "bogus is not a member of the user table."}
    """
    if "error_code" not in node:
        return
    code = _optional_int(node.get("error_code"))
    if code is None:
        raise ProtocolViolationError(f"Non-numeric legacy error code: {node!r}")
    raise error_for_code(code=code, message=str(node.get("error_msg", "")))


class ErrorDetector(DeferredWrapper[Node, Node]):
    """Pipeline stage applying ``check_for_errors``."""

    def convert(self, value: Node) -> Node:
        return check_for_errors(value)


class GraphNodeExtractor(DeferredWrapper[Node, Node]):
    """
    Select one element of the batch response array and parse its body.

    Elements look like ``{"code": 200, "headers": [...], "body": "{\\"id\\": ...}"}``;
    the body is JSON text and is parsed a second time here.

    Parameters
    ----------
    source : Deferred[Node]
        Error-checked batch response.
    binding : ElementBinding
        Supplies the element index once the batch has serialized.
    mapper : Mapper
        Parses the element body.
    """

    def __init__(self, source: Deferred[Node], *, binding: ElementBinding, mapper: Mapper) -> None:
        super().__init__(source)
        self.binding = binding
        self.mapper = mapper

    def convert(self, value: Node) -> Node:
        index = self.binding.index
        if index is None:
            raise RuntimeError("Graph node extractor was triggered before its batch index was bound")
        if not isinstance(value, list):
            raise ProtocolViolationError(f"Expected a batch response array, got: {value!r}")
        part = value[index] if index < len(value) else None
        if part is None:
            raise ProtocolViolationError(
                f"Invalid batch response: no element at index {index} of {len(value)}"
            )
        body = part.get("body") if isinstance(part, dict) else None
        if body is None:
            return None
        if not isinstance(body, (str, bytes)):
            raise ProtocolViolationError(f"Batch element body at index {index} is not JSON text")
        try:
            return self.mapper.to_tree(body)
        except ValueError as error:
            raise ProtocolViolationError(
                f"Batch element body at index {index} is not valid JSON: {body!r}"
            ) from error


class GroupedNodeExtractor(DeferredWrapper[Node, Node]):
    """
    Pick one object's sub-node out of a combined ``ids=`` response.

    Passes the node through untouched when the request was sent on its own.
    """

    def __init__(self, source: Deferred[Node], *, binding: ElementBinding) -> None:
        super().__init__(source)
        self.binding = binding

    def convert(self, value: Node) -> Node:
        key = self.binding.id_key
        if key is None or value is None:
            return value
        if not isinstance(value, dict) or key not in value:
            raise ProtocolViolationError(f"Combined response is missing object {key!r}")
        # A false sub-node means the object is not visible with this credential.
        return check_for_errors(value[key])


class QueryNodeExtractor(DeferredWrapper[Node, Node]):
    """
    Find a query's partition in a multiquery result, by name.

    The result looks like ``[{"name": "q1", "fql_result_set": [...]}, ...]``
    and the remote side may reorder it, so lookup is never positional.
    The owning request is bound after construction because the request
    itself wraps this stage.
    """

    def __init__(self, source: Deferred[Node]) -> None:
        super().__init__(source)
        self.request: Request[t.Any] | None = None

    def bind(self, request: Request[t.Any]) -> None:
        self.request = request

    def convert(self, value: Node) -> Node:
        if self.request is None or self.request.name is None:
            raise RuntimeError("Query node extractor was triggered before its request was bound")
        if not isinstance(value, list):
            raise ProtocolViolationError(f"Expected a multiquery result array, got: {value!r}")
        partitions = {
            entry.get("name"): entry.get("fql_result_set")
            for entry in value
            if isinstance(entry, dict)
        }
        name = self.request.name
        if name not in partitions:
            raise ProtocolViolationError(f"Query named {name!r} not found in multiquery results")
        return partitions[name]


class MapperStage(DeferredWrapper[Node, T]):
    """
    Convert a generic node into the caller's declared type.

    Parameters
    ----------
    source : Deferred[Node]
        Error-checked, extracted node.
    target : typing.Any
        Declared result type; ``None`` keeps the raw node.
    mapper : Mapper
        Performs the conversion.
    """

    def __init__(self, source: Deferred[Node], *, target: t.Any, mapper: Mapper) -> None:
        super().__init__(source)
        self.target = target
        self.mapper = mapper

    def convert(self, value: Node) -> T:
        return self.mapper.convert_value(value, self.target)
