"""
Unit tests for subscriber identifiers.

Identifiers decide which registrations replace each other and which callback
remove_event() / remove_filter() can find again.
"""

import functools
from typing import Any

import hooks


def module_handler(*args: Any) -> None:
    pass


class Widget(object):
    def on_change(self, *args: Any) -> None:
        pass

    @classmethod
    def on_class_change(cls, *args: Any) -> None:
        pass

    @staticmethod
    def on_static_change(*args: Any) -> None:
        pass


def test_bound_method_identifier_is_stable() -> None:
    """Test that accessing the same bound method twice gives the same id."""
    widget = Widget()

    first = hooks.Hooks._make_id("test.event", widget.on_change)
    second = hooks.Hooks._make_id("test.event", widget.on_change)

    assert widget.on_change is not widget.on_change
    assert first == second


def test_bound_methods_of_different_instances_differ() -> None:
    """Test that two instances get separate subscriptions."""
    registry = hooks.Hooks()
    first = Widget()
    second = Widget()

    registry.add_event("test.event", first.on_change)
    registry.add_event("test.event", second.on_change)

    assert len(registry.get_events("test.event")) == 2
    assert registry.remove_event("test.event", first.on_change) is True
    assert len(registry.get_events("test.event")) == 1


def test_classmethod_and_staticmethod_are_addressable() -> None:
    """Test that class and static methods can be removed by reference."""
    registry = hooks.Hooks()

    registry.add_event("test.event", Widget.on_class_change)
    registry.add_event("test.event", Widget.on_static_change)

    assert registry.remove_event("test.event", Widget.on_class_change) is True
    assert registry.remove_event("test.event", Widget.on_static_change) is True
    assert not registry.has_event("test.event")


def test_module_function_matches_its_path() -> None:
    """Test that a function and its dotted path address the same entry."""
    registry = hooks.Hooks()
    path = f"{module_handler.__module__}.module_handler"

    assert hooks.Hooks._make_id("test.event", module_handler) == (
        hooks.Hooks._make_id("test.event", path)
    )

    registry.add_event("test.event", path, 1)
    registry.add_event("test.event", module_handler, 3)

    entries = registry.get_events("test.event")
    assert len(entries) == 1
    assert entries[0].priority == 3

    assert registry.remove_event("test.event", path) is True
    assert not registry.has_event("test.event")


def test_identifier_depends_on_name() -> None:
    """Test that path based ids are scoped to the hook name."""
    assert hooks.Hooks._make_id("first", module_handler) != (
        hooks.Hooks._make_id("second", module_handler)
    )


def test_lambda_removable_only_by_same_object() -> None:
    """Test that anonymous callables are addressed by object identity."""
    registry = hooks.Hooks()
    handler = lambda *args: None  # noqa: E731
    lookalike = lambda *args: None  # noqa: E731

    registry.add_event("test.event", handler)

    assert registry.remove_event("test.event", lookalike) is False
    assert registry.remove_event("test.event", handler) is True


def test_closures_from_separate_calls_are_distinct() -> None:
    """Test that closures cannot be re-addressed across calls."""
    registry = hooks.Hooks()

    def make_handler() -> Any:
        def handler() -> None:
            pass

        return handler

    registry.add_event("test.event", make_handler())
    registry.add_event("test.event", make_handler())

    assert len(registry.get_events("test.event")) == 2
    assert registry.remove_event("test.event", make_handler()) is False


def test_partial_uses_object_identity() -> None:
    """Test that partials are their own subscription."""
    registry = hooks.Hooks()
    bound = functools.partial(module_handler, 1)

    registry.add_event("test.event", bound)
    registry.add_event("test.event", module_handler)

    assert len(registry.get_events("test.event")) == 2
    assert registry.remove_event("test.event", bound) is True


def test_callable_instance_uses_object_identity() -> None:
    """Test that instances with __call__ are addressed by identity."""
    registry = hooks.Hooks()

    class Recorder(object):
        def __init__(self) -> None:
            self.calls = 0

        def __call__(self) -> None:
            self.calls += 1

    first = Recorder()
    second = Recorder()
    registry.add_event("test.event", first)
    registry.add_event("test.event", second)
    registry.do_event("test.event")

    assert first.calls == 1
    assert second.calls == 1
    assert registry.remove_event("test.event", first) is True
    assert registry.remove_event("test.event", first) is False


def test_key_makes_lambda_removable() -> None:
    """Test that an explicit key addresses anonymous callables."""
    registry = hooks.Hooks()
    calls: list[str] = []

    registry.add_event("test.event", lambda: calls.append("a"), key="recorder")
    registry.add_filter("test.filter", lambda v: v + 1, key="increment")

    assert registry.remove_event("test.event", key="recorder") is True
    assert registry.remove_filter("test.filter", key="increment") is True

    registry.do_event("test.event")
    assert calls == []
    assert registry.do_filter("test.filter", 1) == 1


def test_key_reregistration_replaces_callback() -> None:
    """Test that a key identifies the entry, so a new callback replaces it."""
    registry = hooks.Hooks()
    calls: list[str] = []

    registry.add_event("test.event", lambda: calls.append("old"), key="slot")
    registry.add_event("test.event", lambda: calls.append("new"), key="slot")

    registry.do_event("test.event")

    assert calls == ["new"]


def test_keyed_entry_not_found_by_callback() -> None:
    """Test that a keyed entry must be removed with its key."""
    registry = hooks.Hooks()

    registry.add_event("test.event", module_handler, key="handler")

    assert registry.remove_event("test.event", module_handler) is False
    assert registry.remove_event("test.event", key="handler") is True


def test_path_ids_are_md5_of_name_and_path() -> None:
    """Test the derivation used for path based ids."""
    import hashlib

    expected = hashlib.md5(b"test.eventpackage.module.func").hexdigest()

    assert hooks.Hooks._make_id("test.event", "package.module.func") == expected


def test_key_never_matches_a_path() -> None:
    """Test that a key naming a path is still a different entry than the path."""
    assert hooks.Hooks._make_id("test.event", None, key="package.module.func") != (
        hooks.Hooks._make_id("test.event", "package.module.func")
    )


def test_key_named_after_function_keeps_both_entries() -> None:
    """Test that a keyed lambda and the function its key names do not collide."""
    registry = hooks.Hooks()
    calls: list[str] = []
    path = f"{module_handler.__module__}.module_handler"

    registry.add_event("test.event", lambda: calls.append("keyed"), key=path)
    registry.add_event("test.event", module_handler)

    assert len(registry.get_events("test.event")) == 2

    assert registry.remove_event("test.event", module_handler) is True
    registry.do_event("test.event")
    assert calls == ["keyed"]

    assert registry.remove_event("test.event", key=path) is True
    assert not registry.has_event("test.event")


def with_logging(func: Any) -> Any:
    @functools.wraps(func)
    def wrapper(*args: Any) -> Any:
        return func(*args)

    return wrapper


logged_handler = with_logging(module_handler)


@functools.lru_cache(maxsize=None)
def cached_lookup(value: int) -> int:
    return value * 2


def test_wrapper_is_separate_from_wrapped_function() -> None:
    """Test that a functools.wraps wrapper does not replace what it wraps."""
    registry = hooks.Hooks()

    assert logged_handler.__qualname__ == module_handler.__qualname__

    registry.add_event("test.event", module_handler)
    registry.add_event("test.event", logged_handler)

    assert len(registry.get_events("test.event")) == 2

    assert registry.remove_event("test.event", logged_handler) is True
    entries = registry.get_events("test.event")
    assert [e.function for e in entries] == [module_handler]


def test_cached_module_function_is_addressable_by_path() -> None:
    """Test that a decorated module attribute is still found by its path."""
    registry = hooks.Hooks()
    path = f"{cached_lookup.__module__}.cached_lookup"

    registry.add_filter("test.filter", cached_lookup)

    assert registry.do_filter("test.filter", 4) == 8
    assert registry.remove_filter("test.filter", path) is True
    assert not registry.has_filter("test.filter")
