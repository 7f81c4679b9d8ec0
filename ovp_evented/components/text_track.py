from __future__ import annotations

from typing import Any, Mapping

from ..events.nodes import EventNode, create_node
from .component import Component


def _track_field(track: Any, key: str) -> Any:
    if isinstance(track, Mapping):
        return track.get(key)
    return getattr(track, key, None)


class TextTrackMenuItem(Component):
    """Menu entry for one text track (`options["track"]`), labelled with the track label."""

    @property
    def track(self) -> Any:
        return self.options.get("track")

    def create_el(self, tag: str = "li", class_name: str = "ovp-menu-item") -> EventNode:
        el = super().create_el(tag, class_name)
        label = _track_field(self.track, "label") or ""
        el.append_child(EventNode("span", class_name="ovp-menu-item-text", text=str(label)))
        return el


class SubsCapsMenuItem(TextTrackMenuItem):
    """Caption tracks get a [cc] icon so they stand apart from subtitles in the same menu."""

    def create_el(self, tag: str = "li", class_name: str = "ovp-menu-item") -> EventNode:
        el = super().create_el(tag, class_name)
        if _track_field(self.track, "kind") == "captions":
            text = el.query("ovp-menu-item-text")
            text.append_child(create_node("span", "ovp-icon-placeholder"))
            # leading space: read together with the label
            text.append_child(EventNode("span", class_name="ovp-control-text", text=" Captions"))
        return el
