from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from ..common.errors import ValidationError
from . import bus
from .bus import EventType
from .models import Event, ListenerFn
from .nodes import is_node


CAPABLE_METHODS = ("on", "one", "off", "trigger")


class EventTarget:
    """An object that is evented on its own, without grant().

    Listeners live in the node table under the target itself.
    """

    def on(self, event_type: EventType, fn: ListenerFn) -> None:
        bus.on(self, event_type, fn)

    add_event_listener = on

    def one(self, event_type: EventType, fn: ListenerFn) -> None:
        bus.one(self, event_type, fn)

    def any(self, event_type: EventType, fn: ListenerFn) -> None:
        bus.any(self, event_type, fn)

    def off(self, event_type: Optional[EventType] = None, fn: Optional[ListenerFn] = None) -> None:
        bus.off(self, event_type, fn)

    remove_event_listener = off

    def trigger(self, event: Union[str, Event, Any], payload: Any = None) -> bool:
        evt = Event.coerce(event)
        if not isinstance(evt.type, str) or not evt.type.strip():
            raise ValidationError(
                message=f"Invalid event type for {type(self).__name__}#trigger",
                data={"argument": event, "op_name": "trigger"},
            )
        bus.trigger(self, evt, payload)
        return evt.default_prevented

    dispatch_event = trigger


def is_capable(value: Any) -> bool:
    """True for EventTarget instances and for granted hosts whose bus is still live."""
    if value is None:
        return False
    if isinstance(value, EventTarget):
        return True
    state = getattr(value, "evented_state", None)
    if state is None or getattr(state, "bus", None) is None:
        return False
    return all(callable(getattr(value, k, None)) for k in CAPABLE_METHODS)


class TargetKind(str, Enum):
    NATIVE = "native"
    CAPABLE = "capable"


@dataclass(frozen=True)
class ResolvedTarget:
    """A listening target, classified once."""

    kind: TargetKind
    obj: Any

    @property
    def native(self) -> bool:
        return self.kind is TargetKind.NATIVE


def classify(value: Any) -> Optional[ResolvedTarget]:
    if value is None:
        return None
    if is_node(value):
        return ResolvedTarget(TargetKind.NATIVE, value)
    if is_capable(value):
        return ResolvedTarget(TargetKind.CAPABLE, value)
    return None


def listen(target: ResolvedTarget, method: str, event_type: EventType, listener: ListenerFn) -> None:
    """Install `listener` with on/one/any on a node or through the target's own method."""
    if target.native:
        getattr(bus, method)(target.obj, event_type, listener)
    else:
        getattr(target.obj, method)(event_type, listener)


def unlisten(target: ResolvedTarget, event_type: EventType, listener: ListenerFn) -> None:
    if target.native:
        bus.off(target.obj, event_type, listener)
    else:
        target.obj.off(event_type, listener)
