from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

SchedulerMode = Literal["auto", "asyncio", "tick"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EventedConfig(BaseModel):
    """Runtime configuration for evented hosts, loaded from file + env overrides."""

    # tag and class of the node created as bus when no event_bus_key is given
    bus_tag: str = Field(default="span", min_length=1)
    bus_class_name: str = "ovp-event-bus"

    scheduler: SchedulerMode = "auto"
    log_level: LogLevel = "WARNING"


class GrantOptions(BaseModel):
    """Options accepted by grant().

    Notes:
    - event_bus_key names an attribute of the host holding an EventNode to reuse as bus.
    - scheduler overrides how the bus handle is cleared after dispose; any object with
      call_soon(fn) works, or a SchedulerMode string.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid", populate_by_name=True)

    event_bus_key: Optional[str] = Field(default=None, alias="eventBusKey")
    scheduler: Any = None


class ConfigManager:
    """Load configuration from an optional JSON file with environment overrides.

    Precedence: default < config file (OVP_EVENTED_CONFIG_PATH) < environment variables.
    - missing file: defaults
    - corrupted file: logged, defaults
    - invalid env values: skipped
    Never raises because of configuration problems.
    """

    env_prefix = "OVP_EVENTED_"

    def _read_file(self) -> dict:
        raw_path = os.getenv(f"{self.env_prefix}CONFIG_PATH", "").strip()
        if not raw_path:
            return {}
        cfg_path = Path(raw_path).expanduser()
        if not cfg_path.exists():
            logger.debug("config file %s not found, using defaults", cfg_path)
            return {}
        try:
            data = json.loads(cfg_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("ignoring unreadable config file %s: %s", cfg_path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("ignoring config file %s: top level must be an object", cfg_path)
            return {}
        return data

    def load(self) -> EventedConfig:
        data = self._read_file()

        env_overrides = {
            "bus_tag": os.getenv(f"{self.env_prefix}BUS_TAG"),
            "bus_class_name": os.getenv(f"{self.env_prefix}BUS_CLASS"),
            "scheduler": os.getenv(f"{self.env_prefix}SCHEDULER"),
            "log_level": os.getenv(f"{self.env_prefix}LOG_LEVEL"),
        }
        for k, v in env_overrides.items():
            if v is None or str(v).strip() == "":
                continue
            v = v.strip()
            if k == "scheduler":
                v = v.lower()
                if v not in ("auto", "asyncio", "tick"):
                    logger.warning("ignoring %sSCHEDULER=%r", self.env_prefix, v)
                    continue
            elif k == "log_level":
                v = v.upper()
                if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
                    logger.warning("ignoring %sLOG_LEVEL=%r", self.env_prefix, v)
                    continue
            data[k] = v

        try:
            return EventedConfig.model_validate(data)
        except ValueError as e:
            # pydantic.ValidationError is a ValueError
            logger.warning("invalid evented config, using defaults: %s", e)
            return EventedConfig()


_config: Optional[EventedConfig] = None


def get_config() -> EventedConfig:
    global _config
    if _config is None:
        _config = ConfigManager().load()
    return _config


def set_config(cfg: EventedConfig) -> None:
    global _config
    _config = cfg


def reset_config() -> None:
    global _config
    _config = None


def configure_logging(cfg: Optional[EventedConfig] = None) -> logging.Logger:
    """Apply the configured level to the package logger and return it."""
    cfg = cfg or get_config()
    pkg_logger = logging.getLogger("ovp_evented")
    pkg_logger.setLevel(cfg.log_level)
    return pkg_logger
