from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..capabilities.evented import Evented, grant
from ..events.nodes import EventNode, create_node

logger = logging.getLogger(__name__)


class Component(Evented):
    """Base UI component.

    The component's element doubles as its event bus, so events triggered on a
    child bubble through the parent elements.
    """

    def __init__(
        self,
        player: Any = None,
        options: Optional[Dict[str, Any]] = None,
        *,
        el: Optional[EventNode] = None,
    ) -> None:
        self.player = player
        self.options: Dict[str, Any] = dict(options or {})
        self.el = el if el is not None else self.create_el()
        self.children: List["Component"] = []
        self.disposed = False
        self.log = logger.getChild(self.name())
        grant(self, event_bus_key="el", scheduler=self.options.get("scheduler"))

    def name(self) -> str:
        return str(self.options.get("name") or type(self).__name__)

    def create_el(self, tag: str = "div", class_name: str = "") -> EventNode:
        return create_node(tag, class_name)

    # class list helpers used by widgets to toggle presentation state
    def add_class(self, name: str) -> None:
        self.el.add_class(name)

    def remove_class(self, name: str) -> None:
        self.el.remove_class(name)

    def has_class(self, name: str) -> bool:
        return self.el.has_class(name)

    def add_child(self, child: "Component") -> "Component":
        self.children.append(child)
        self.el.append_child(child.el)
        return child

    def dispose(self, *_: Any) -> None:
        """Signal `dispose` (not bubbling), then dispose children and detach the element."""
        if self.disposed:
            return
        self.trigger({"type": "dispose", "bubbles": False})
        self.disposed = True

        for child in self.children:
            child.dispose()
        self.children = []

        parent = self.el.parent
        if parent is not None:
            parent.children = [c for c in parent.children if c is not self.el]
            self.el.parent = None
