import unittest

from timecontext.contracts.errors import UnknownIdentifier
from timecontext.contracts.messages import Bounds, ManualClock, Mode, TimeSystem
from timecontext.time.api import TimeAPI
from timecontext.time.context import STATE_EVENTS
from timecontext.time.independent import Following, Overriding


class _Recorder:
    def __init__(self, context, names=STATE_EVENTS) -> None:  # noqa: ANN001
        self.events = []
        for name in names:
            context.on(name, self._handler(name))

    def _handler(self, name):  # noqa: ANN001, ANN202
        def _record(*args) -> None:  # noqa: ANN002
            self.events.append((name,) + args)

        return _record


class _DummyLogger:
    def __init__(self) -> None:
        self.events = []

    def emit(self, level, module, event, payload=None):  # noqa: ANN001
        self.events.append((level, module, event, payload))

    def names(self):  # noqa: ANN201
        return [event for _level, _module, event, _payload in self.events]


def _api(logger=None):  # noqa: ANN001, ANN202
    api = TimeAPI(logger=logger)
    api.add_time_system(TimeSystem(key="utc", name="UTC", time_format="utc-format"))
    clock = api.add_clock(ManualClock("local-clock"))
    api.set_time_system("utc", {"start": 0, "end": 1000})
    return api, clock


def _path(*keys):  # noqa: ANN002, ANN202
    return [{"identifier": key} for key in keys]


class FollowingTests(unittest.TestCase):
    def test_following_context_re_emits_global_events(self) -> None:
        api, clock = _api()
        context = api.get_context_for_view(_path("view-1"))
        self.assertIsInstance(context.relationship, Following)
        global_events = _Recorder(api)
        view_events = _Recorder(context)

        api.set_bounds({"start": 5, "end": 10})
        api.set_time_system("utc", {"start": 20, "end": 30})
        api.set_clock("local-clock", {"start": -100, "end": 0})
        clock.tick(400)
        api.set_mode(Mode.FIXED)

        self.assertEqual(len(global_events.events), 10)
        self.assertEqual(view_events.events, global_events.events)

    def test_following_context_reads_through(self) -> None:
        api, _ = _api()
        context = api.get_context_for_view(_path("view-1"))
        api.set_bounds({"start": 5, "end": 10})
        self.assertEqual(context.get_bounds(), Bounds(5, 10))
        self.assertEqual(context.get_time_system(), api.get_time_system())
        self.assertIs(context.get_mode(), Mode.FIXED)
        self.assertFalse(context.has_own_context())

    def test_writing_to_following_context_detaches_it(self) -> None:
        api, _ = _api()
        context = api.get_context_for_view(_path("view-1"))
        context.set_bounds({"start": 1, "end": 2})
        self.assertTrue(context.has_own_context())
        self.assertEqual(api.get_bounds(), Bounds(0, 1000))
        self.assertEqual(context.get_time_system(), api.get_time_system())

    def test_failing_view_does_not_starve_sibling_views(self) -> None:
        logger = _DummyLogger()
        api, clock = _api(logger)
        api.set_clock("local-clock", {"start": -10, "end": 0})
        first = api.get_context_for_view(_path("view-1"))
        second = api.get_context_for_view(_path("view-2"))

        def broken(_bounds, _is_tick) -> None:  # noqa: ANN001
            raise RuntimeError("render failed")

        received = []
        first.on("boundsChanged", broken)
        second.on("boundsChanged", lambda bounds, is_tick: received.append((bounds, is_tick)))

        clock.tick(100)

        self.assertEqual(received, [(Bounds(90, 100), True)])
        self.assertIn("listener_failed", logger.names())
        self.assertEqual(first.get_bounds(), Bounds(90, 100))

    def test_stop_following_ticks_on_private_copy(self) -> None:
        api, clock = _api()
        api.set_clock("local-clock", {"start": -10, "end": 0})
        context = api.get_context_for_view(_path("view-1"))

        context.stop_following_time_context()

        self.assertIsInstance(context.relationship, Overriding)
        self.assertEqual(clock.listener_count(), 2)
        self.assertIs(context.get_clock(), clock)
        api.set_clock_offsets({"start": -50, "end": 0})
        self.assertEqual(context.get_clock_offsets().start, -10)
        clock.tick(100)
        self.assertEqual(context.get_bounds(), Bounds(90, 100))
        self.assertEqual(api.get_bounds(), Bounds(50, 100))

        context.stop_following_time_context()
        self.assertEqual(clock.listener_count(), 2)


class OverrideTests(unittest.TestCase):
    def test_fixed_override_scenario(self) -> None:
        api, _ = _api()
        refreshed = []
        api.on("refreshContext", refreshed.append)

        api.add_independent_context("obj-42", {"start": 10, "end": 20}, None)
        context = api.get_context_for_view([{"identifier": "obj-42"}])

        self.assertEqual(context.get_bounds(), Bounds(10, 20))
        self.assertIs(context.get_mode(), Mode.FIXED)
        self.assertEqual(api.get_bounds(), Bounds(0, 1000))
        self.assertEqual(refreshed, ["obj-42"])
        self.assertIs(api.get_independent_context("obj-42"), context)

    def test_override_isolation_both_ways(self) -> None:
        api, _ = _api()
        api.add_independent_context("obj-42", {"start": 10, "end": 20})
        context = api.get_context_for_view(_path("obj-42"))
        view_events = _Recorder(context)

        api.set_bounds({"start": 100, "end": 200})
        self.assertEqual(context.get_bounds(), Bounds(10, 20))
        self.assertEqual(view_events.events, [])

        context.set_bounds({"start": 30, "end": 40})
        self.assertEqual(api.get_bounds(), Bounds(100, 200))

    def test_realtime_override_ticks_independently(self) -> None:
        api, clock = _api()
        api.add_independent_context("obj-7", {"start": -100, "end": 0}, "local-clock")
        context = api.get_independent_context("obj-7")

        clock.tick(1000)
        self.assertEqual(context.get_bounds(), Bounds(900, 1000))
        self.assertIs(context.get_mode(), Mode.REALTIME)
        self.assertIs(api.get_mode(), Mode.FIXED)
        self.assertEqual(api.get_bounds(), Bounds(0, 1000))

    def test_reset_tears_down_local_clock(self) -> None:
        api, clock = _api()
        api.add_independent_context("obj-7", {"start": -100, "end": 0}, "local-clock")
        self.assertEqual(clock.listener_count(), 1)

        api.add_independent_context("obj-7", {"start": 1, "end": 2})
        context = api.get_independent_context("obj-7")
        self.assertEqual(clock.listener_count(), 0)
        self.assertIsNone(context.get_clock())
        self.assertIs(context.get_mode(), Mode.FIXED)
        clock.tick(5000)
        self.assertEqual(context.get_bounds(), Bounds(1, 2))

    def test_override_replaces_following_listeners(self) -> None:
        api, _ = _api()
        context = api.get_context_for_view(_path("obj-1"))
        api.add_independent_context("obj-1", {"start": 1, "end": 2})
        self.assertIsInstance(context.relationship, Overriding)
        view_events = _Recorder(context)
        api.set_bounds({"start": 3, "end": 4})
        self.assertEqual(view_events.events, [])

    def test_unknown_clock_leaves_no_trace(self) -> None:
        api, _ = _api()
        with self.assertRaises(UnknownIdentifier):
            api.add_independent_context("obj-9", {"start": -10, "end": 0}, "gps")
        self.assertIsNone(api.get_independent_context("obj-9"))

    def test_release_reverts_to_following_synchronously(self) -> None:
        api, clock = _api()
        removed = []
        api.on("removeOwnContext", removed.append)
        release = api.add_independent_context("obj-7", {"start": -100, "end": 0}, "local-clock")
        context = api.get_context_for_view(_path("obj-7"))
        view_events = _Recorder(context)

        release()

        self.assertEqual(removed, ["obj-7"])
        self.assertFalse(context.has_own_context())
        self.assertIs(api.get_independent_context("obj-7"), context)
        self.assertEqual(clock.listener_count(), 0)
        self.assertEqual(context.get_bounds(), Bounds(0, 1000))
        self.assertIn(("modeChanged", Mode.FIXED), view_events.events)
        self.assertIn(("boundsChanged", Bounds(0, 1000), False), view_events.events)

        release()
        self.assertEqual(removed, ["obj-7", "obj-7"])
        self.assertFalse(context.has_own_context())

    def test_release_only_affects_its_own_key(self) -> None:
        api, _ = _api()
        release_a = api.add_independent_context("a", {"start": 1, "end": 2})
        api.add_independent_context("b", {"start": 3, "end": 4})
        release_a()
        self.assertFalse(api.get_independent_context("a").has_own_context())
        self.assertEqual(api.get_independent_context("b").get_bounds(), Bounds(3, 4))


class NestedUpstreamTests(unittest.TestCase):
    def test_nested_view_follows_overriding_parent(self) -> None:
        api, _ = _api()
        api.add_independent_context("parent", {"start": 10, "end": 20})
        child = api.get_context_for_view(_path("child", "parent"))
        self.assertIs(child.get_upstream_context(), api.get_independent_context("parent"))
        self.assertEqual(child.get_bounds(), Bounds(10, 20))

    def test_refresh_moves_child_to_new_override(self) -> None:
        api, _ = _api()
        child = api.get_context_for_view(_path("child", "parent"))
        self.assertIs(child.get_upstream_context(), api)
        child_events = _Recorder(child)

        api.add_independent_context("parent", {"start": 10, "end": 20})

        self.assertEqual(child.get_bounds(), Bounds(10, 20))
        self.assertEqual(child_events.events, [("boundsChanged", Bounds(10, 20), False)])
        api.set_bounds({"start": 500, "end": 600})
        self.assertEqual(child.get_bounds(), Bounds(10, 20))

    def test_child_returns_to_global_when_parent_released(self) -> None:
        api, _ = _api()
        child = api.get_context_for_view(_path("child", "parent"))
        release = api.add_independent_context("parent", {"start": 10, "end": 20})
        release()
        self.assertEqual(child.get_bounds(), Bounds(0, 1000))
        api.set_bounds({"start": 7, "end": 8})
        self.assertEqual(child.get_bounds(), Bounds(7, 8))

    def test_overriding_child_reverts_when_parent_released(self) -> None:
        api, _ = _api()
        release = api.add_independent_context("parent", {"start": 10, "end": 20})
        child = api.get_context_for_view(_path("child", "parent"))
        child.set_bounds({"start": 12, "end": 15})
        self.assertTrue(child.has_own_context())

        release()

        self.assertFalse(child.has_own_context())
        self.assertEqual(child.get_bounds(), Bounds(0, 1000))
        api.set_bounds({"start": 7, "end": 8})
        self.assertEqual(child.get_bounds(), Bounds(7, 8))

    def test_unrelated_release_keeps_override(self) -> None:
        api, _ = _api()
        release = api.add_independent_context("other", {"start": 10, "end": 20})
        child = api.get_context_for_view(_path("child", "parent"))
        child.set_bounds({"start": 12, "end": 15})

        release()

        self.assertTrue(child.has_own_context())
        self.assertEqual(child.get_bounds(), Bounds(12, 15))


if __name__ == "__main__":
    unittest.main()
