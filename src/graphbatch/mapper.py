"""
Structured-data mapper: JSON text to generic nodes, and nodes to typed objects.
"""

from __future__ import annotations

import functools
import json
import typing as t

from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python

# Generic JSON tree, as produced by ``json.loads``.
Node = t.Any


@functools.lru_cache(maxsize=256)
def _type_adapter(target: t.Any) -> TypeAdapter[t.Any]:
    return TypeAdapter(target)


class Mapper:
    """
    Convert between JSON text, generic nodes and caller-declared types.

    Target types are anything pydantic can validate: ``BaseModel``
    subclasses, dataclasses, ``TypedDict``, builtin containers. Models
    ignore unknown fields by default, so result types may be narrower than
    the remote schema.
    """

    def to_tree(self, data: bytes | str) -> Node:
        """
        Parse JSON text into a generic node.

        Parameters
        ----------
        data : bytes | str
            JSON document.

        Returns
        -------
        Node
            Parsed tree.
        """
        return json.loads(data)

    def convert_value(self, node: Node, target: t.Any = None) -> t.Any:
        """
        Map a generic node onto ``target``.

        Parameters
        ----------
        node : Node
            Generic JSON tree.
        target : typing.Any, optional
            Declared result type. ``None`` or ``typing.Any`` returns the node
            untouched.

        Returns
        -------
        typing.Any
            Converted value.

        Raises
        ------
        pydantic.ValidationError
            If the node does not fit the declared type.
        """
        if target is None or target is t.Any or node is None:
            return node
        try:
            adapter = _type_adapter(target)
        except TypeError:
            # Unhashable type forms cannot be cached.
            adapter = TypeAdapter(target)
        return adapter.validate_python(node)

    def to_json(self, value: t.Any) -> str:
        """Serialize any value (including pydantic models) to compact JSON."""
        return json.dumps(value, default=to_jsonable_python, separators=(",", ":"))
