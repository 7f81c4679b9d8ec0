from __future__ import annotations

from typing import Any, Iterable, List, Optional


class EventNode:
    """Minimal element: a tag name, a class list and children.

    Stands in for a platform event node; listeners are kept outside the node in
    the node table of `ovp_evented.events.bus`.
    """

    def __init__(self, node_name: str = "div", *, class_name: str = "", text: str = "") -> None:
        if not isinstance(node_name, str) or not node_name.strip():
            raise ValueError("node_name must be a non-empty string")
        self.node_name = node_name.upper()
        self.classes: List[str] = [c for c in class_name.split() if c]
        self.text = text
        self.children: List["EventNode"] = []
        self.parent: Optional["EventNode"] = None

    @property
    def class_name(self) -> str:
        return " ".join(self.classes)

    def add_class(self, *names: str) -> None:
        for name in names:
            if name not in self.classes:
                self.classes.append(name)

    def remove_class(self, *names: str) -> None:
        self.classes = [c for c in self.classes if c not in names]

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def append_child(self, child: "EventNode") -> "EventNode":
        child.parent = self
        self.children.append(child)
        return child

    def query(self, class_name: str) -> Optional["EventNode"]:
        """Depth-first search for the first descendant carrying `class_name`."""
        for child in self.children:
            if child.has_class(class_name):
                return child
            found = child.query(class_name)
            if found is not None:
                return found
        return None

    def __repr__(self) -> str:
        return f"<EventNode {self.node_name.lower()} class={self.class_name!r}>"


def create_node(tag: str = "div", class_name: str = "", children: Iterable[EventNode] = ()) -> EventNode:
    node = EventNode(tag, class_name=class_name)
    for child in children:
        node.append_child(child)
    return node


def is_node(value: Any) -> bool:
    """Structural check: anything exposing a non-empty string `node_name`."""
    if isinstance(value, EventNode):
        return True
    name = getattr(value, "node_name", None)
    return isinstance(name, str) and bool(name)
