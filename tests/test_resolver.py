import unittest
from types import SimpleNamespace

from timecontext.contracts.errors import InvalidArgument
from timecontext.contracts.messages import Bounds, ManualClock, TimeSystem
from timecontext.time.api import TimeAPI
from timecontext.time.independent import IndependentTimeContext
from timecontext.time.objects import ObjectKeys


class _DummyLogger:
    def __init__(self) -> None:
        self.events = []

    def emit(self, level, module, event, payload=None):  # noqa: ANN001
        self.events.append((level, module, event, payload))


def _api(logger=None):  # noqa: ANN001, ANN202
    api = TimeAPI(logger=logger)
    api.add_time_system(TimeSystem(key="utc", name="UTC", time_format="utc-format"))
    api.add_clock(ManualClock("local-clock"))
    api.set_time_system("utc", {"start": 0, "end": 1000})
    return api


def _path(*keys):  # noqa: ANN002, ANN202
    return [{"identifier": key} for key in keys]


class ResolverTests(unittest.TestCase):
    def test_rejects_missing_or_empty_path(self) -> None:
        api = _api()
        for bad in (None, [], (), "obj-1", {"identifier": "obj-1"}):
            with self.assertRaises(InvalidArgument):
                api.get_context_for_view(bad)

    def test_path_without_key_returns_global(self) -> None:
        api = _api()
        self.assertIs(api.get_context_for_view([{"identifier": None}]), api)
        self.assertIs(api.get_context_for_view([{"name": "no identifier"}]), api)
        self.assertEqual(api.get_independent_keys(), [])

    def test_resolve_is_idempotent_for_stable_path(self) -> None:
        api = _api()
        first = api.get_context_for_view(_path("obj-1", "folder"))
        # Freshly built path elements, same logical location.
        second = api.get_context_for_view(_path("obj-1", "folder"))
        self.assertIsInstance(first, IndependentTimeContext)
        self.assertIs(first, second)

    def test_changed_path_replaces_context(self) -> None:
        logger = _DummyLogger()
        api = _api(logger)
        first = api.get_context_for_view(_path("obj-1", "folder-a"))
        stale_events = []
        first.on("boundsChanged", lambda bounds, is_tick: stale_events.append(bounds))

        second = api.get_context_for_view(_path("obj-1", "folder-b"))

        self.assertIsNot(first, second)
        self.assertTrue(first.disposed)
        self.assertIs(api.get_independent_context("obj-1"), second)
        api.set_bounds({"start": 1, "end": 2})
        second.set_bounds({"start": 3, "end": 4})
        self.assertEqual(stale_events, [])
        self.assertEqual(second.get_bounds(), Bounds(3, 4))
        self.assertIn("independent_context_replaced", [event for _, _, event, _ in logger.events])

    def test_changed_path_drops_stale_override(self) -> None:
        api = _api()
        api.add_independent_context("obj-1", {"start": 10, "end": 20})
        first = api.get_context_for_view(_path("obj-1", "folder-a"))
        self.assertEqual(first.get_bounds(), Bounds(10, 20))

        second = api.get_context_for_view(_path("obj-1", "folder-b"))
        self.assertFalse(second.has_own_context())
        self.assertEqual(second.get_bounds(), Bounds(0, 1000))

    def test_stale_global_listeners_are_removed(self) -> None:
        api = _api()
        before = api.listener_count("boundsChanged")
        api.get_context_for_view(_path("obj-1", "folder-a"))
        api.get_context_for_view(_path("obj-1", "folder-b"))
        self.assertEqual(api.listener_count("boundsChanged"), before + 1)
        self.assertEqual(api.listener_count("removeOwnContext"), 1)

    def test_override_created_before_resolve_is_bound_not_replaced(self) -> None:
        api = _api()
        api.add_independent_context("obj-1", {"start": 10, "end": 20})
        created = api.get_independent_context("obj-1")
        resolved = api.get_context_for_view(_path("obj-1", "folder"))
        self.assertIs(created, resolved)
        self.assertEqual(resolved.object_path, _path("obj-1", "folder"))
        self.assertIs(api.get_context_for_view(_path("obj-1", "folder")), resolved)

    def test_attribute_style_objects_and_namespaced_identifiers(self) -> None:
        api = _api()
        view = SimpleNamespace(identifier={"namespace": "mission", "key": "plot-1"})
        context = api.get_context_for_view([view])
        self.assertIs(api.get_independent_context("mission:plot-1"), context)

    def test_discard_forgets_entry(self) -> None:
        api = _api()
        context = api.get_context_for_view(_path("obj-1"))
        self.assertTrue(api.discard_independent_context("obj-1"))
        self.assertTrue(context.disposed)
        self.assertIsNone(api.get_independent_context("obj-1"))
        self.assertFalse(api.discard_independent_context("obj-1"))
        self.assertIsNot(api.get_context_for_view(_path("obj-1")), context)


class ObjectKeysTests(unittest.TestCase):
    def test_make_key_string(self) -> None:
        keys = ObjectKeys()
        self.assertEqual(keys.make_key_string("abc"), "abc")
        self.assertEqual(keys.make_key_string({"namespace": "", "key": "abc"}), "abc")
        self.assertEqual(keys.make_key_string({"namespace": "ns", "key": "abc"}), "ns:abc")
        self.assertEqual(keys.make_key_string({"namespace": "a:b", "key": "c"}), "a\\:b:c")
        self.assertIsNone(keys.make_key_string({"namespace": "ns"}))
        self.assertIsNone(keys.make_key_string(""))
        self.assertIsNone(keys.make_key_string(None))

    def test_relative_path_is_outermost_first(self) -> None:
        keys = ObjectKeys()
        self.assertEqual(keys.get_relative_path(_path("view", "folder", "root")), "root/folder/view")


if __name__ == "__main__":
    unittest.main()
