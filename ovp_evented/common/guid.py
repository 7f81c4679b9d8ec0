from __future__ import annotations

import inspect
import itertools
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class Guided:
    """Marker for callables that stand in for another listener.

    A wrapper (bound listener, once-wrapper, teardown listener) keeps the guid of
    the listener it was built from, so removing the original also removes it.
    """

    guid: int


@dataclass
class _Entry:
    guid: int
    pin: Any = None
    func: Any = None


def _anchor_and_key(callback: Callable[..., Any]) -> Tuple[Any, Hashable]:
    # bound methods are rebuilt on every attribute access: key on (instance, function)
    if inspect.ismethod(callback):
        return callback.__self__, (id(callback.__self__), id(callback.__func__))
    return callback, (id(callback), None)


class IdentityRegistry:
    """Side table: callback -> integer guid.

    Contract:
    - same callback value => same guid (a bound method of the same instance counts as the same value)
    - distinct callback values => distinct guids, even with identical source
    - guids come from a counter and are never reused in this process
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._entries: Dict[Hashable, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def new_guid(self) -> int:
        return next(self._counter)

    def peek(self, callback: Callable[..., Any]) -> Optional[int]:
        """Return the guid already assigned to `callback`, without minting one."""
        if isinstance(callback, Guided):
            return callback.guid
        _, key = _anchor_and_key(callback)
        entry = self._entries.get(key)
        return entry.guid if entry is not None else None

    def identify(self, callback: Callable[..., Any]) -> int:
        if isinstance(callback, Guided):
            return callback.guid
        if not callable(callback):
            raise TypeError(f"cannot identify non-callable {callback!r}")

        anchor, key = _anchor_and_key(callback)
        entry = self._entries.get(key)
        if entry is not None:
            return entry.guid

        entry = _Entry(guid=self.new_guid(), func=getattr(callback, "__func__", None))
        try:
            weakref.finalize(anchor, self._entries.pop, key, None)
        except TypeError:
            # not weakly referenceable: keep it alive so its id() is never recycled
            entry.pin = anchor
        self._entries[key] = entry
        return entry.guid


registry = IdentityRegistry()


def identify(callback: Callable[..., Any]) -> int:
    """Stable guid for `callback` from the process-wide registry."""
    return registry.identify(callback)


def peek(callback: Callable[..., Any]) -> Optional[int]:
    return registry.peek(callback)
