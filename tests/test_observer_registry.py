"""Tests for the weakly-held observer registry."""

import gc

from core.services.observer_registry import ObserverRegistry


class Listener:
    def __init__(self, name="listener"):
        self.name = name
        self.received = []


class SlottedListener:
    __slots__ = ("received",)

    def __init__(self):
        self.received = []


class TestObserverRegistry:
    def test_subscribe_returns_stable_handle(self):
        registry = ObserverRegistry()
        listener = Listener()

        first = registry.subscribe(listener)
        second = registry.subscribe(listener)

        assert first == second
        assert len(registry) == 1

    def test_unsubscribe(self):
        registry = ObserverRegistry()
        listener = Listener()
        handle = registry.subscribe(listener)

        assert registry.unsubscribe(handle) is True
        assert registry.unsubscribe(handle) is False
        assert registry.observers() == []

    def test_dead_observers_are_skipped_and_pruned(self):
        registry = ObserverRegistry()
        kept = Listener("kept")
        dropped = Listener("dropped")
        registry.subscribe(kept)
        registry.subscribe(dropped)

        del dropped
        gc.collect()

        delivered = registry.notify(lambda observer: observer.received.append("event"))

        assert delivered == 1
        assert kept.received == ["event"]
        assert len(registry) == 1

    def test_objects_without_weakref_support_are_held_strongly(self):
        registry = ObserverRegistry()
        handle = registry.subscribe(SlottedListener())
        gc.collect()

        assert len(registry) == 1
        registry.unsubscribe(handle)
        assert len(registry) == 0

    def test_notify_iterates_a_snapshot(self):
        registry = ObserverRegistry()
        first = Listener("first")
        second = Listener("second")
        late = Listener("late")
        registry.subscribe(first)
        second_handle = registry.subscribe(second)

        def deliver(observer):
            observer.received.append("event")
            if observer is first:
                registry.unsubscribe(second_handle)
                registry.subscribe(late)

        registry.notify(deliver)

        # Changes made mid-pass only apply to the next pass.
        assert second.received == ["event"]
        assert late.received == []
        assert set(registry.observers()) == {first, late}

    def test_failing_observer_does_not_stop_others(self):
        registry = ObserverRegistry()
        broken = Listener("broken")
        healthy = Listener("healthy")
        registry.subscribe(broken)
        registry.subscribe(healthy)

        def deliver(observer):
            if observer is broken:
                raise RuntimeError("observer bug")
            observer.received.append("event")

        assert registry.notify(deliver) == 1
        assert healthy.received == ["event"]
