from __future__ import annotations

import logging
import weakref
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, DefaultDict, Dict, Iterable, List, Optional, Sequence, Union

from ..common.guid import Guided, peek
from ..core.scheduler import dispatch_scheduler
from .models import Event, Listener, ListenerFn
from .nodes import is_node

logger = logging.getLogger(__name__)

EventType = Union[str, Sequence[str]]


def is_valid_event_type(value: Any) -> bool:
    """Non-empty string with at least one non-whitespace char, or a non-empty list/tuple."""
    if isinstance(value, str):
        return bool(value.strip())
    return isinstance(value, (list, tuple)) and len(value) > 0


def event_types(value: EventType) -> List[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


def as_listener(fn: ListenerFn) -> Listener:
    return fn if isinstance(fn, Listener) else Listener(fn)


@dataclass
class NodeListeners:
    """Listener table of one node or EventTarget: event type -> listeners in subscription order."""

    _subs: DefaultDict[str, List[Listener]] = None  # type: ignore
    pin: Any = None
    finalizer: Optional[weakref.finalize] = None

    def __post_init__(self) -> None:
        if self._subs is None:
            self._subs = defaultdict(list)

    def add(self, event_type: str, listener: Listener) -> None:
        self._subs[event_type].append(listener)

    def discard(self, event_type: str, listener: Listener) -> None:
        """Remove exactly this listener object."""
        subs = self._subs.get(event_type)
        if not subs:
            return
        self._subs[event_type] = [s for s in subs if s is not listener]
        if not self._subs[event_type]:
            del self._subs[event_type]

    def remove(self, event_type: Optional[str] = None, guid: Optional[int] = None) -> None:
        """Remove every listener for `event_type` (all types when None) matching `guid` (all when None)."""
        types = [event_type] if event_type is not None else list(self._subs)
        for t in types:
            if t not in self._subs:
                continue
            if guid is None:
                del self._subs[t]
                continue
            kept = [s for s in self._subs[t] if s.guid != guid]
            if kept:
                self._subs[t] = kept
            else:
                del self._subs[t]

    def snapshot(self, event_type: str) -> List[Listener]:
        return list(self._subs.get(event_type, ()))

    def types(self) -> List[str]:
        return list(self._subs)

    def count(self, event_type: Optional[str] = None) -> int:
        if event_type is not None:
            return len(self._subs.get(event_type, ()))
        return sum(len(v) for v in self._subs.values())

    def dispatch(self, owner: Any, event: Event, payload: Any = None) -> Event:
        """Call the listeners registered for `event.type` at the time of the call.

        A listener raising an exception is logged and the next one still runs.
        """
        event.current_target = owner
        for listener in self.snapshot(event.type):
            if event.immediate_propagation_stopped:
                break
            event.context = owner
            try:
                listener(event, payload)
            except Exception:  # noqa: BLE001
                logger.exception("listener %r failed while handling %r", listener, event.type)
        return event


class NodeData:
    """Side table: node -> NodeListeners, dropped when the node is collected."""

    def __init__(self) -> None:
        self._tables: Dict[int, NodeListeners] = {}

    def get(self, node: Any, create: bool = False) -> Optional[NodeListeners]:
        table = self._tables.get(id(node))
        if table is None and create:
            table = NodeListeners()
            try:
                table.finalizer = weakref.finalize(node, self._tables.pop, id(node), None)
            except TypeError:
                table.pin = node
            self._tables[id(node)] = table
        return table

    def has(self, node: Any) -> bool:
        return id(node) in self._tables

    def discard(self, node: Any) -> None:
        if node is None:
            return
        table = self._tables.pop(id(node), None)
        if table is not None and table.finalizer is not None:
            table.finalizer.detach()

    def __len__(self) -> int:
        return len(self._tables)


node_data = NodeData()


def on(node: Any, event_type: EventType, fn: ListenerFn) -> Listener:
    listener = as_listener(fn)
    table = node_data.get(node, create=True)
    for t in event_types(event_type):
        table.add(t, listener)
    return listener


def one(node: Any, event_type: EventType, fn: ListenerFn) -> None:
    """Listen once per type: each type's wrapper is removed after it fires."""
    for t in event_types(event_type):
        _install_once(node, t, fn)


def _install_once(node: Any, event_type: str, fn: ListenerFn) -> None:
    guid = as_listener(fn).guid

    def once(event: Event, payload: Any = None) -> Any:
        table = node_data.get(node)
        if table is not None:
            table.discard(event_type, wrapper)
        return fn(event, payload)

    wrapper = Listener(once, guid=guid)
    node_data.get(node, create=True).add(event_type, wrapper)


def any(node: Any, event_type: EventType, fn: ListenerFn) -> None:  # noqa: A001
    """Listen for the first of several types, then stop listening to all of them."""
    types = event_types(event_type)
    guid = as_listener(fn).guid

    def first(event: Event, payload: Any = None) -> Any:
        table = node_data.get(node)
        if table is not None:
            for t in types:
                table.discard(t, wrapper)
        return fn(event, payload)

    wrapper = Listener(first, guid=guid)
    table = node_data.get(node, create=True)
    for t in types:
        table.add(t, wrapper)


def off(node: Any, event_type: Optional[EventType] = None, fn: Optional[ListenerFn] = None) -> None:
    """Remove listeners: all, all for a type, or one listener (by guid) for a type."""
    table = node_data.get(node) if node is not None else None
    if table is None:
        return

    if event_type is None:
        node_data.discard(node)
        return

    guid: Optional[int] = None
    if fn is not None:
        guid = fn.guid if isinstance(fn, Guided) else peek(fn)
        if guid is None:
            # never subscribed anywhere
            return
    for t in event_types(event_type):
        table.remove(t, guid)


def trigger(node: Any, event: Union[str, Event, Any], payload: Any = None) -> Event:
    """Dispatch synchronously on `node`, then bubble to its parent unless stopped.

    Callbacks deferred on the dispatch scheduler during the call (bus releases
    of disposed hosts) run when the outermost trigger returns.
    """
    evt = Event.coerce(event)
    if evt.target is None:
        evt.target = node
    with dispatch_scheduler.dispatching():
        _propagate(node, evt, payload)
    return evt


def _propagate(node: Any, evt: Event, payload: Any) -> None:
    table = node_data.get(node)
    if table is not None:
        table.dispatch(node, evt, payload)

    parent = getattr(node, "parent", None)
    if evt.bubbles and not evt.propagation_stopped and is_node(parent):
        _propagate(parent, evt, payload)


def has_listeners(node: Any, event_type: Optional[str] = None) -> bool:
    table = node_data.get(node)
    return table is not None and table.count(event_type) > 0


def listener_count(node: Any, event_type: Optional[str] = None) -> int:
    table = node_data.get(node)
    return table.count(event_type) if table is not None else 0


def discard(values: Iterable[Any]) -> None:
    for value in values:
        node_data.discard(value)
