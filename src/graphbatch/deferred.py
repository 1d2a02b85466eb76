"""
Single-assignment, lazily-triggered result holders.

A ``Deferred`` resolves at most once. The first ``get()`` pulls the value
(or error) through its producer or upstream chain; every later ``get()``
returns the cached value or re-raises the cached error.
"""

from __future__ import annotations

import typing as t
from abc import ABC, abstractmethod

K = t.TypeVar("K")
T = t.TypeVar("T")

_UNRESOLVED: t.Any = object()


class Deferred(ABC, t.Generic[T]):
    """
    Placeholder for a value-or-error, cached after first resolution.

    Subclasses implement ``_resolve``; callers only ever use ``get``.
    """

    def __init__(self) -> None:
        self._value: t.Any = _UNRESOLVED
        self._error: Exception | None = None

    @property
    def resolved(self) -> bool:
        """``True`` once a value or an error has been captured."""
        return self._error is not None or self._value is not _UNRESOLVED

    def get(self) -> T:
        """
        Return the resolved value, resolving it on first access.

        Returns
        -------
        T
            Resolved value.

        Raises
        ------
        Exception
            The error captured during resolution, re-raised on every call.
        """
        if self._error is not None:
            raise self._error
        if self._value is _UNRESOLVED:
            try:
                self._value = self._resolve()
            except Exception as error:
                self._error = error
                raise
        return t.cast(T, self._value)

    @abstractmethod
    def _resolve(self) -> T: ...


class Now(Deferred[T]):
    """Deferred that is already resolved to ``value``."""

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    def _resolve(self) -> T:
        return t.cast(T, self._value)


class Lazy(Deferred[T]):
    """
    Deferred backed by a zero-argument producer invoked exactly once.

    Parameters
    ----------
    producer : typing.Callable[[], T]
        Called on first ``get()``.
    """

    def __init__(self, producer: t.Callable[[], T]) -> None:
        super().__init__()
        self._producer = producer

    def _resolve(self) -> T:
        return self._producer()


class DeferredWrapper(Deferred[T], t.Generic[K, T]):
    """
    Deferred that converts the value of an upstream deferred.

    Parameters
    ----------
    source : Deferred[K]
        Upstream deferred; its errors propagate unchanged.
    """

    def __init__(self, source: Deferred[K]) -> None:
        super().__init__()
        self.source = source

    def _resolve(self) -> T:
        return self.convert(self.source.get())

    def convert(self, value: K) -> T:
        """Pass-through by default; stages override this."""
        return t.cast(T, value)


class FirstElement(DeferredWrapper[t.Sequence[T], t.Optional[T]]):
    """First element of a resolved sequence, or ``None`` when it is empty."""

    def convert(self, value: t.Sequence[T]) -> T | None:
        if not value:
            return None
        return value[0]


class MappedDeferred(DeferredWrapper[K, T]):
    """
    Apply an arbitrary function to the upstream value.

    Parameters
    ----------
    source : Deferred[K]
        Upstream deferred.
    func : typing.Callable[[K], T]
        Conversion applied once the upstream resolves.
    """

    def __init__(self, source: Deferred[K], func: t.Callable[[K], T]) -> None:
        super().__init__(source)
        self._func = func

    def convert(self, value: K) -> T:
        return self._func(value)
