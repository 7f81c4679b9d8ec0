from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..common.errors import ConfigurationError, InvalidTargetError, ValidationError
from ..core.config import GrantOptions, get_config
from ..core.scheduler import Scheduler, resolve_scheduler
from ..events import bus
from ..events.bus import EventType, event_types, is_valid_event_type
from ..events.models import Event, Listener, ListenerFn, bind
from ..events.nodes import EventNode, create_node, is_node
from ..events.target import ResolvedTarget, TargetKind, classify, is_capable, listen, unlisten

logger = logging.getLogger(__name__)


def describe(obj: Any) -> str:
    """Human name of a host for error messages."""
    name = getattr(obj, "name", None)
    if callable(name):
        try:
            name = name()
        except TypeError:
            name = None
    if isinstance(name, str) and name:
        return name
    return type(obj).__name__


@dataclass(frozen=True)
class Normalized:
    """Arguments of on/one/any after parsing and validation."""

    self_targeted: bool
    target: ResolvedTarget
    event_type: EventType
    listener: Listener


@dataclass(eq=False)
class EventedState:
    """Backing state of the evented capability, owned by one host.

    - bus: node used as the locus of the host's own subscriptions (None once released)
    - callbacks: when_evented() callbacks waiting for grant()
    """

    host: Any
    bus: Optional[EventNode] = None
    callbacks: List[Callable[[], Any]] = field(default_factory=list)
    scheduler: Optional[Scheduler] = None
    scheduler_mode: str = "auto"
    granted: bool = False

    # -------------------------
    # argument handling
    # -------------------------

    def _fail(self, what: str, argument: Any, op_name: str, expected: str) -> ValidationError:
        return ValidationError(
            message=f"Invalid {what} for {describe(self.host)}#{op_name}; {expected}",
            data={"argument": argument, "op_name": op_name},
        )

    def validate_target(self, value: Any, op_name: str) -> ResolvedTarget:
        resolved = classify(value)
        if resolved is None:
            raise self._fail("target", value, op_name, "must be an event node or evented object.")
        return resolved

    def validate_event_type(self, value: Any, op_name: str) -> EventType:
        if not is_valid_event_type(value) or (
            not isinstance(value, str) and not all(isinstance(t, str) and t.strip() for t in value)
        ):
            raise self._fail("event type", value, op_name, "must be a non-empty string or list of strings.")
        return value

    def validate_listener(self, value: Any, op_name: str) -> ListenerFn:
        if not callable(value):
            raise self._fail("listener", value, op_name, "must be callable.")
        return value

    def normalize(self, args: tuple, op_name: str) -> Normalized:
        """Parse `(type, listener)` or `(target, type, listener)`.

        Fewer than 3 arguments, or a first argument that is the host or its bus,
        means the host listens to itself.
        """
        if len(args) > 3:
            raise TypeError(f"{op_name}() takes at most 3 arguments ({len(args)} given)")
        args_l = list(args)
        self_targeted = len(args_l) < 3 or args_l[0] is self.host or args_l[0] is self.bus
        if self_targeted:
            if len(args_l) >= 3:
                args_l.pop(0)
            args_l += [None] * (2 - len(args_l))
            target_value: Any = self.bus
            event_type, listener = args_l
        else:
            target_value, event_type, listener = args_l

        target = self.validate_target(target_value, op_name)
        event_type = self.validate_event_type(event_type, op_name)
        listener = self.validate_listener(listener, op_name)
        return Normalized(self_targeted, target, event_type, bind(self.host, listener))

    def _own_bus(self) -> ResolvedTarget:
        return ResolvedTarget(TargetKind.NATIVE, self.bus)

    # -------------------------
    # cross-object cleanup
    # -------------------------

    def bind_cleanup(self, target: ResolvedTarget, event_type: EventType, listener: Listener) -> None:
        """Couple a cross-object subscription to the disposal of both parties.

        - host disposed first: remove `listener` from `target`
        - target disposed first: remove the host-side remover so the host keeps no stale reference
        Both teardown listeners carry the listener's guid, so off(target, type, listener)
        removes them together with the listener.
        """
        host = self.host

        def remove_listener_on_dispose(event: Event, payload: Any = None) -> None:
            host.off(target.obj, event_type, listener)

        remover = Listener(remove_listener_on_dispose, guid=listener.guid)

        def remove_remover_on_target_dispose(event: Event, payload: Any = None) -> None:
            host.off("dispose", remover)

        listen(self._own_bus(), "on", "dispose", remover)
        listen(target, "on", "dispose", Listener(remove_remover_on_target_dispose, guid=listener.guid))

    # -------------------------
    # operations
    # -------------------------

    def on(self, *args: Any) -> None:
        n = self.normalize(args, "on")
        listen(n.target, "on", n.event_type, n.listener)
        if not n.self_targeted:
            self.bind_cleanup(n.target, n.event_type, n.listener)

    def one(self, *args: Any) -> None:
        """Listen once per event type.

        Cross-object: only the type that fired is unsubscribed; the disposal
        teardown is released after every listed type has fired.
        """
        n = self.normalize(args, "one")
        if n.self_targeted:
            listen(n.target, "one", n.event_type, n.listener)
            return

        host, target, listener = self.host, n.target, n.listener
        pending = set(event_types(n.event_type))

        def fire_once(event: Event, payload: Any = None) -> Any:
            pending.discard(event.type)
            if pending:
                unlisten(target, event.type, wrapper)
            else:
                host.off(target.obj, n.event_type, wrapper)
            return listener(event, payload)

        wrapper = Listener(fire_once, guid=listener.guid)
        listen(target, "on", n.event_type, wrapper)
        self.bind_cleanup(target, n.event_type, wrapper)

    def any(self, *args: Any) -> None:
        """Listen for the first of the listed event types, then stop listening."""
        n = self.normalize(args, "any")
        if n.self_targeted:
            listen(n.target, "any", n.event_type, n.listener)
            return

        host, target, listener = self.host, n.target, n.listener

        def fire_first(event: Event, payload: Any = None) -> Any:
            host.off(target.obj, n.event_type, wrapper)
            return listener(event, payload)

        wrapper = Listener(fire_first, guid=listener.guid)
        listen(target, "on", n.event_type, wrapper)
        self.bind_cleanup(target, n.event_type, wrapper)

    def off(
        self,
        target_or_type: Any = None,
        type_or_listener: Any = None,
        listener: Optional[ListenerFn] = None,
    ) -> None:
        if target_or_type is None or is_valid_event_type(target_or_type):
            bus.off(self.bus, target_or_type, type_or_listener)
            return

        target = self.validate_target(target_or_type, "off")
        event_type = self.validate_event_type(type_or_listener, "off")
        bound = bind(self.host, self.validate_listener(listener, "off"))

        # the host-side remover installed by bind_cleanup shares the listener's guid
        bus.off(self.bus, "dispose", bound)
        unlisten(target, event_type, bound)
        unlisten(target, "dispose", bound)

    def trigger(self, event: Union[str, Event, Mapping[str, Any], Any] = None, payload: Any = None) -> bool:
        """Dispatch synchronously on the host's bus.

        Returns True when a listener called event.prevent_default().
        """
        if self.bus is None:
            raise InvalidTargetError(
                message=f"{describe(self.host)}#trigger called without a live event bus",
                data={"op_name": "trigger"},
            )

        structured = event is not None and not isinstance(event, str)
        evt = Event.coerce(event) if event is not None else None
        event_type = evt.type if evt is not None else None
        if not isinstance(event_type, str) or not event_type.strip():
            message = (
                f"Invalid event type for {describe(self.host)}#trigger; "
                "must be a non-empty string or object with a type key that has a non-empty value."
            )
            if structured:
                (getattr(self.host, "log", None) or logger).error(message)
                return False
            raise ValidationError(message=message, data={"argument": event, "op_name": "trigger"})

        if evt.target is None:
            evt.target = self.host
        bus.trigger(self.bus, evt, payload)
        return evt.default_prevented

    # -------------------------
    # disposal
    # -------------------------

    def teardown(self, event: Event, payload: Any = None) -> None:
        """Own `dispose` listener: drop every listener and release the bus on the next tick."""
        host = self.host
        host.off()
        bus.discard([host, getattr(host, "el", None), self.bus])
        scheduler = self.scheduler or resolve_scheduler(self.scheduler_mode)
        scheduler.call_soon(self.release_bus)
        logger.debug("%s disposed, bus release scheduled", describe(host))

    def release_bus(self) -> None:
        self.bus = None


class Evented:
    """Mixin declaring the evented capability.

    Hosts call grant(self) (usually in __init__); the methods below forward to
    the EventedState created there.
    """

    evented_state: Optional[EventedState] = None

    def _evented(self, op_name: str) -> EventedState:
        state = self.evented_state
        if state is None or not state.granted:
            raise InvalidTargetError(
                message=f"{describe(self)}#{op_name} called before grant()",
                data={"op_name": op_name},
            )
        return state

    def on(self, *args: Any) -> None:
        """Listen on this object: on(type, listener), or on another: on(target, type, listener)."""
        self._evented("on").on(*args)

    def one(self, *args: Any) -> None:
        self._evented("one").one(*args)

    def any(self, *args: Any) -> None:
        self._evented("any").any(*args)

    def off(self, target_or_type: Any = None, type_or_listener: Any = None, listener: Optional[ListenerFn] = None) -> None:
        self._evented("off").off(target_or_type, type_or_listener, listener)

    def trigger(self, event: Any = None, payload: Any = None) -> bool:
        return self._evented("trigger").trigger(event, payload)

    @property
    def event_bus(self) -> Optional[EventNode]:
        state = self.evented_state
        return state.bus if state is not None else None


def _state_for(target: Any) -> EventedState:
    if not isinstance(target, Evented):
        raise ConfigurationError(
            message=f"{describe(target)} does not declare the evented capability (mix in Evented)",
            data={"target": describe(target)},
        )
    if target.evented_state is None:
        target.evented_state = EventedState(host=target)
    return target.evented_state


def _grant_options(options: Union[GrantOptions, Mapping[str, Any], None], overrides: Mapping[str, Any]) -> GrantOptions:
    if isinstance(options, GrantOptions):
        data = options.model_dump(exclude_unset=True)
    else:
        data = dict(options or {})
    data.update(overrides)
    try:
        return GrantOptions.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(message=f"Invalid grant options: {e}", data={"errors": e.errors()}) from e


def grant(target: Any, options: Union[GrantOptions, Mapping[str, Any], None] = None, **overrides: Any) -> Any:
    """Apply the evented capability to `target` and return it.

    - options.event_bus_key: reuse the node held in that attribute as the bus
    - options.scheduler: scheduler (or mode) used to release the bus after dispose
    Raises ConfigurationError for bad options, undeclared hosts and re-grants.
    """
    opts = _grant_options(options, overrides)
    state = _state_for(target)
    if state.granted:
        raise ConfigurationError(
            message=f"{describe(target)} is already evented",
            data={"target": describe(target)},
        )

    cfg = get_config()
    if opts.event_bus_key:
        el = getattr(target, opts.event_bus_key, None)
        if not is_node(el):
            raise ConfigurationError(
                message=f'The event_bus_key "{opts.event_bus_key}" does not refer to an element.',
                data={"event_bus_key": opts.event_bus_key},
            )
        bus_node = el
    else:
        bus_node = create_node(cfg.bus_tag, cfg.bus_class_name)

    sched = opts.scheduler
    if sched is None:
        sched = cfg.scheduler
    if isinstance(sched, str):
        if sched not in ("auto", "asyncio", "tick"):
            raise ConfigurationError(message=f"Unknown scheduler mode {sched!r}", data={"scheduler": sched})
        state.scheduler_mode = sched
        if sched != "auto":
            try:
                state.scheduler = resolve_scheduler(sched)
            except RuntimeError as e:
                raise ConfigurationError(message=str(e), data={"scheduler": sched}) from e
    elif callable(getattr(sched, "call_soon", None)):
        state.scheduler = sched
    else:
        raise ConfigurationError(message=f"Scheduler {sched!r} has no call_soon()", data={"scheduler": repr(sched)})

    state.bus = bus_node
    state.granted = True

    callbacks, state.callbacks = state.callbacks, []
    for callback in callbacks:
        callback()

    target.on("dispose", state.teardown)
    logger.debug("granted evented capability to %s", describe(target))
    return target


def when_evented(target: Any, callback: Callable[[], Any]) -> None:
    """Run `callback` now if `target` is evented, else once grant() runs on it."""
    if is_capable(target):
        callback()
        return
    _state_for(target).callbacks.append(callback)


__all__ = [
    "Evented",
    "EventedState",
    "Normalized",
    "describe",
    "grant",
    "is_capable",
    "when_evented",
]
