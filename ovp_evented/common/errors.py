from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(eq=False)
class EventedError(Exception):
    """Base error of the evented capability: `code` is stable for callers, `message` is for humans."""
    message: str
    code: str = "EVENTED_ERROR"
    data: Optional[dict[str, Any]] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass(eq=False)
class ConfigurationError(EventedError):
    """Bad grant options (e.g. an event_bus_key that does not name a node)."""
    code: str = "CONFIGURATION"


@dataclass(eq=False)
class ValidationError(EventedError):
    """Bad target / type / listener passed to on, one, any, off or trigger."""
    code: str = "INVALID_ARGUMENT"

    @property
    def argument(self) -> Any:
        return (self.data or {}).get("argument")

    @property
    def op_name(self) -> Optional[str]:
        return (self.data or {}).get("op_name")


@dataclass(eq=False)
class InvalidTargetError(EventedError):
    """trigger() on an object whose bus handle is gone."""
    code: str = "INVALID_TARGET"
