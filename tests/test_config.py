"""
配置加载（默认值 < 配置文件 < 环境变量）与调度器选择的测试。
"""

import json
import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from ovp_evented.core.config import (
    ConfigManager,
    EventedConfig,
    configure_logging,
    get_config,
    reset_config,
    set_config,
)
from ovp_evented.core.scheduler import (
    DispatchScheduler,
    TickScheduler,
    default_tick_scheduler,
    dispatch_scheduler,
    resolve_scheduler,
)

_CLEAN_ENV = {k: v for k, v in os.environ.items() if not k.startswith("OVP_EVENTED_")}


class TestConfigManager(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory(prefix="ovp-evented-config-")
        self.tmp = Path(self._tmp.name)
        self.addCleanup(self._tmp.cleanup)
        self.addCleanup(reset_config)

    def _load(self, **env):
        with mock.patch.dict(os.environ, {**_CLEAN_ENV, **env}, clear=True):
            return ConfigManager().load()

    def test_defaults(self):
        cfg = self._load()
        self.assertEqual(cfg, EventedConfig())
        self.assertEqual(cfg.bus_tag, "span")
        self.assertEqual(cfg.scheduler, "auto")

    def test_file_then_env(self):
        path = self.tmp / "evented.json"
        path.write_text(json.dumps({"bus_tag": "div", "scheduler": "tick"}), encoding="utf-8")

        cfg = self._load(OVP_EVENTED_CONFIG_PATH=str(path))
        self.assertEqual(cfg.bus_tag, "div")
        self.assertEqual(cfg.scheduler, "tick")

        cfg = self._load(OVP_EVENTED_CONFIG_PATH=str(path), OVP_EVENTED_BUS_TAG="i", OVP_EVENTED_LOG_LEVEL="debug")
        self.assertEqual(cfg.bus_tag, "i")
        self.assertEqual(cfg.log_level, "DEBUG")

    def test_missing_file_uses_defaults(self):
        cfg = self._load(OVP_EVENTED_CONFIG_PATH=str(self.tmp / "nope.json"))
        self.assertEqual(cfg, EventedConfig())

    def test_corrupted_file_is_logged(self):
        path = self.tmp / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("ovp_evented.core.config", level="WARNING"):
            cfg = self._load(OVP_EVENTED_CONFIG_PATH=str(path))
        self.assertEqual(cfg, EventedConfig())

    def test_invalid_env_values_skipped(self):
        with self.assertLogs("ovp_evented.core.config", level="WARNING"):
            cfg = self._load(OVP_EVENTED_SCHEDULER="sometimes", OVP_EVENTED_LOG_LEVEL="loud", OVP_EVENTED_BUS_CLASS="bus")
        self.assertEqual(cfg.scheduler, "auto")
        self.assertEqual(cfg.log_level, "WARNING")
        self.assertEqual(cfg.bus_class_name, "bus")

    def test_invalid_file_values_fall_back(self):
        path = self.tmp / "evented.json"
        path.write_text(json.dumps({"bus_tag": ""}), encoding="utf-8")
        with self.assertLogs("ovp_evented.core.config", level="WARNING"):
            cfg = self._load(OVP_EVENTED_CONFIG_PATH=str(path))
        self.assertEqual(cfg.bus_tag, "span")

    def test_cached_config(self):
        set_config(EventedConfig(bus_tag="div"))
        self.assertEqual(get_config().bus_tag, "div")
        reset_config()
        with mock.patch.dict(os.environ, _CLEAN_ENV, clear=True):
            self.assertEqual(get_config().bus_tag, "span")

    def test_configure_logging(self):
        pkg_logger = configure_logging(EventedConfig(log_level="ERROR"))
        self.addCleanup(pkg_logger.setLevel, logging.NOTSET)
        self.assertEqual(pkg_logger.name, "ovp_evented")
        self.assertEqual(pkg_logger.level, logging.ERROR)


class TestSchedulers(unittest.TestCase):
    def test_tick_runs_only_previous_batch(self):
        ticks = TickScheduler()
        order = []
        ticks.call_soon(lambda: (order.append(1), ticks.call_soon(lambda: order.append(2))))
        self.assertEqual(ticks.tick(), 1)
        self.assertEqual(order, [1])
        self.assertEqual(ticks.pending, 1)
        ticks.tick()
        self.assertEqual(order, [1, 2])

    def test_failing_callback_logged(self):
        ticks = TickScheduler()
        ticks.call_soon(lambda: 1 / 0)
        with self.assertLogs("ovp_evented.core.scheduler", level="ERROR"):
            ticks.tick()

    def test_resolve_without_loop(self):
        self.assertIs(resolve_scheduler("auto"), dispatch_scheduler)
        self.assertIs(resolve_scheduler("tick"), default_tick_scheduler)
        with self.assertRaises(RuntimeError):
            resolve_scheduler("asyncio")

    def test_dispatch_scheduler_runs_after_outermost_dispatch(self):
        sched = DispatchScheduler()
        order = []
        with sched.dispatching():
            with sched.dispatching():
                sched.call_soon(lambda: order.append("deferred"))
            order.append("inner done")
            self.assertEqual(sched.pending, 1)
        self.assertEqual(order, ["inner done", "deferred"])
        self.assertEqual(sched.pending, 0)

    def test_dispatch_scheduler_drains_even_when_dispatch_raises(self):
        sched = DispatchScheduler()
        order = []
        with self.assertRaises(KeyError):
            with sched.dispatching():
                sched.call_soon(lambda: order.append("deferred"))
                raise KeyError("x")
        self.assertEqual(order, ["deferred"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
