from __future__ import annotations

from typing import Any, Optional, Protocol

from ..events.models import Event
from ..events.nodes import EventNode, create_node
from .component import Component

HIDDEN_CLASS = "ovp-hidden"


class Tech(Protocol):
    features_volume_control: bool


def _supports_volume(player: Any) -> Optional[bool]:
    tech: Optional[Tech] = getattr(player, "tech", None)
    if tech is None:
        return None
    return bool(tech.features_volume_control)


def check_volume_support(component: Component, player: Any) -> None:
    """Hide `component` while the player's current tech has no volume control."""
    if _supports_volume(player) is False:
        component.add_class(HIDDEN_CLASS)

    def on_loadstart(event: Event, payload: Any = None) -> None:
        if _supports_volume(player):
            component.remove_class(HIDDEN_CLASS)
        else:
            component.add_class(HIDDEN_CLASS)

    component.on(player, "loadstart", on_loadstart)


class VolumeLevel(Component):
    """Shows volume level."""

    def create_el(self, tag: str = "div", class_name: str = "ovp-volume-level") -> EventNode:
        el = super().create_el(tag, class_name)
        el.append_child(create_node("span", "ovp-control-text"))
        return el
