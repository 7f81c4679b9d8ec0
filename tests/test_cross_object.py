"""
跨对象订阅与双向 dispose 清理的测试：任意一方先销毁都不能留下悬挂监听。
"""

import logging
import unittest

from ovp_evented.capabilities.evented import Evented, grant
from ovp_evented.core.scheduler import TickScheduler
from ovp_evented.events import bus
from ovp_evented.events.nodes import EventNode
from ovp_evented.events.target import EventTarget


class Host(Evented):
    def __init__(self, name, ticks):
        self._name = name
        grant(self, scheduler=ticks)

    def name(self):
        return self._name

    def dispose(self):
        self.trigger({"type": "dispose", "bubbles": False})


class _ErrorRecords(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.ERROR)
        self.records = []

    def emit(self, record):
        self.records.append(record)


def dispose_listeners(host):
    return bus.listener_count(host.event_bus, "dispose")


class CrossObjectTestCase(unittest.TestCase):
    def setUp(self):
        self.ticks = TickScheduler()
        self.a = Host("a", self.ticks)
        self.b = Host("b", self.ticks)
        self.calls = []

        self.errors = _ErrorRecords()
        logging.getLogger("ovp_evented").addHandler(self.errors)
        self.addCleanup(logging.getLogger("ovp_evented").removeHandler, self.errors)

    def f(self, event, payload=None):
        self.calls.append((event.type, payload, event.context))


class TestOn(CrossObjectTestCase):
    def test_listener_bound_to_subscriber(self):
        self.a.on(self.b, "ready", self.f)
        self.b.trigger("ready", 1)
        self.assertEqual(self.calls, [("ready", 1, self.a)])

    def test_teardown_pair_installed(self):
        self.a.on(self.b, "ready", self.f)
        self.assertEqual(dispose_listeners(self.a), 2)
        self.assertEqual(dispose_listeners(self.b), 2)

    def test_subscriber_disposed_first(self):
        self.a.on(self.b, "ready", self.f)
        self.b.trigger("ready")
        self.a.dispose()

        self.b.trigger("ready")
        self.assertEqual(len(self.calls), 1)
        self.assertFalse(bus.has_listeners(self.b.event_bus, "ready"))
        self.assertEqual(dispose_listeners(self.b), 1)
        self.assertEqual(self.errors.records, [])

    def test_target_disposed_first(self):
        self.a.on(self.b, "ready", self.f)
        self.b.dispose()
        self.assertEqual(dispose_listeners(self.a), 1)

        self.ticks.tick()
        self.a.dispose()
        self.ticks.tick()
        self.assertEqual(self.errors.records, [])
        self.assertEqual(self.calls, [])

    def test_off_with_original_listener_removes_everything(self):
        self.a.on(self.b, ["ready", "play"], self.f)
        self.a.off(self.b, ["ready", "play"], self.f)

        self.b.trigger("ready")
        self.b.trigger("play")
        self.assertEqual(self.calls, [])
        self.assertEqual(dispose_listeners(self.a), 1)
        self.assertEqual(dispose_listeners(self.b), 1)

    def test_unrelated_subscriptions_survive_off(self):
        def g(event, payload=None):
            self.calls.append("g")

        self.a.on(self.b, "ready", self.f)
        self.a.on(self.b, "ready", g)
        self.a.off(self.b, "ready", self.f)
        self.b.trigger("ready")
        self.assertEqual(self.calls, ["g"])


class TestOne(CrossObjectTestCase):
    def test_one_and_on_with_same_listener_share_cleanup(self):
        self.a.on(self.b, "play", self.f)
        self.a.one(self.b, "ready", self.f)
        self.assertEqual(dispose_listeners(self.a), 3)

        self.b.trigger("ready")
        # removal is by guid: the on() subscription lost its dispose teardown too
        self.assertEqual(dispose_listeners(self.a), 1)
        self.assertEqual(dispose_listeners(self.b), 1)
        self.b.trigger("play")
        self.assertEqual([c[0] for c in self.calls], ["ready", "play"])

    def test_one_fires_once(self):
        self.a.one(self.b, "ready", self.f)
        self.b.trigger("ready")
        self.b.trigger("ready")
        self.assertEqual(len(self.calls), 1)
        self.assertIs(self.calls[0][2], self.a)
        self.assertEqual(dispose_listeners(self.a), 1)
        self.assertEqual(dispose_listeners(self.b), 1)

    def test_off_with_original_listener_removes_once_wrapper(self):
        self.a.one(self.b, "ready", self.f)
        self.a.off(self.b, "ready", self.f)
        self.b.trigger("ready")
        self.assertEqual(self.calls, [])
        self.assertEqual(dispose_listeners(self.a), 1)
        self.assertEqual(dispose_listeners(self.b), 1)

    def test_only_the_fired_type_is_removed(self):
        self.a.one(self.b, ["x", "y"], self.f)

        self.b.trigger("x")
        self.b.trigger("x")
        self.assertEqual([c[0] for c in self.calls], ["x"])
        # y 还在等待，清理监听仍保留
        self.assertEqual(dispose_listeners(self.a), 2)

        self.b.trigger("y")
        self.b.trigger("y")
        self.assertEqual([c[0] for c in self.calls], ["x", "y"])
        self.assertEqual(dispose_listeners(self.a), 1)
        self.assertEqual(dispose_listeners(self.b), 1)

    def test_subscriber_disposed_before_firing(self):
        self.a.one(self.b, "ready", self.f)
        self.a.dispose()
        self.b.trigger("ready")
        self.assertEqual(self.calls, [])
        self.assertEqual(dispose_listeners(self.b), 1)


class TestAny(CrossObjectTestCase):
    def test_first_type_wins(self):
        self.a.any(self.b, ["x", "y"], self.f)
        self.b.trigger("y", 2)
        self.b.trigger("x", 3)
        self.assertEqual(self.calls, [("y", 2, self.a)])
        self.assertFalse(bus.has_listeners(self.b.event_bus, "x"))
        self.assertEqual(dispose_listeners(self.a), 1)
        self.assertEqual(dispose_listeners(self.b), 1)


class TestOtherTargets(CrossObjectTestCase):
    def test_native_node_target(self):
        node = EventNode("video")
        self.a.on(node, "click", self.f)
        bus.trigger(node, "click", "p")
        self.assertEqual(self.calls, [("click", "p", self.a)])

        self.a.dispose()
        self.assertFalse(bus.has_listeners(node))

    def test_native_node_one(self):
        node = EventNode("video")
        self.a.one(node, "click", self.f)
        bus.trigger(node, "click")
        bus.trigger(node, "click")
        self.assertEqual(len(self.calls), 1)
        self.assertFalse(bus.has_listeners(node))

    def test_event_target(self):
        target = EventTarget()
        self.a.on(target, "ping", self.f)
        target.trigger("ping")
        self.a.off(target, "ping", self.f)
        target.trigger("ping")
        self.assertEqual(len(self.calls), 1)
        self.assertFalse(bus.has_listeners(target))
        self.assertEqual(dispose_listeners(self.a), 1)


class TestEndToEnd(CrossObjectTestCase):
    def test_ready_scenario(self):
        self.a.on(self.b, "ready", self.f)
        self.b.trigger("ready")
        self.assertEqual(self.calls, [("ready", None, self.a)])

        self.a.dispose()
        self.b.trigger("ready")
        self.assertEqual(len(self.calls), 1)

    def test_ready_scenario_target_first(self):
        self.a.on(self.b, "ready", self.f)
        self.b.dispose()
        self.a.dispose()
        self.ticks.tick()
        self.assertEqual(self.errors.records, [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
