from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from ..common.guid import Guided, identify

ListenerFn = Callable[["Event", Any], Any]


@dataclass
class Event:
    """Event value handed to every listener as `listener(event, payload)`.

    Note:
    - `target` is the node (or event target) the event was dispatched on.
    - `context` is the object the listener was bound to when subscribing; plain
      node listeners see the node itself.
    - `detail` keeps the extra keys of a mapping passed to trigger().
    """

    type: str
    target: Any = None
    current_target: Any = None
    context: Any = None
    bubbles: bool = True
    detail: dict[str, Any] = field(default_factory=dict)
    default_prevented: bool = False
    propagation_stopped: bool = False
    immediate_propagation_stopped: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True

    def stop_immediate_propagation(self) -> None:
        self.immediate_propagation_stopped = True
        self.propagation_stopped = True

    @classmethod
    def coerce(cls, value: Any) -> "Event":
        """Build an Event from a type string, an Event, a mapping or an object with `type`."""
        if isinstance(value, Event):
            return value
        if isinstance(value, str):
            return cls(type=value)
        if isinstance(value, Mapping):
            detail = {k: v for k, v in value.items() if k not in ("type", "bubbles")}
            return cls(type=value.get("type"), bubbles=bool(value.get("bubbles", True)), detail=detail)
        return cls(type=getattr(value, "type", None))


class Listener(Guided):
    """Callable wrapper that shares the guid of the listener it wraps."""

    def __init__(self, callback: ListenerFn, guid: Optional[int] = None) -> None:
        self.callback = callback
        self.guid = identify(callback) if guid is None else guid

    def __call__(self, event: Event, payload: Any = None) -> Any:
        return self.callback(event, payload)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} guid={self.guid} callback={self.callback!r}>"


class BoundListener(Listener):
    """Listener whose `event.context` is always the subscriber."""

    def __init__(self, context: Any, callback: ListenerFn) -> None:
        super().__init__(callback)
        self.context = context

    def __call__(self, event: Event, payload: Any = None) -> Any:
        event.context = self.context
        return self.callback(event, payload)


def bind(context: Any, listener: ListenerFn) -> Listener:
    """Bind `listener` to `context`. Re-binding keeps the first context."""
    if isinstance(listener, BoundListener):
        return listener
    return BoundListener(context, listener)
