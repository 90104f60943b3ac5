"""Construct-once lazy singleton.

Module-level shared objects (the plugin registry) are built on first use and
never rebuilt, except through reset() in tests.
"""

import threading
import weakref
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class Lazy(Generic[T]):
    """Thread-safe lazy-initialized singleton.

    Usage:
        _registry = Lazy(build_default_registry)

        def get_registry() -> PluginRegistry:
            return _registry.get()
    """

    _all_instances: list["weakref.ref[Lazy]"] = []
    _registry_lock = threading.Lock()

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._instance: T | None = None
        self._built = False
        self._lock = threading.Lock()
        with Lazy._registry_lock:
            Lazy._all_instances.append(weakref.ref(self))

    @property
    def initialized(self) -> bool:
        return self._built

    def get(self) -> T:
        """Return the cached instance, building it on first call.

        The factory runs at most once between resets, even when it returns None
        or several threads race on first access.
        """
        if not self._built:
            with self._lock:
                if not self._built:
                    self._instance = self._factory()
                    self._built = True
        return self._instance  # type: ignore[return-value]

    def reset(self) -> None:
        """Drop the cached instance. Next get() will call factory again."""
        with self._lock:
            self._instance = None
            self._built = False

    @classmethod
    def reset_all(cls) -> None:
        """Reset every Lazy instance created so far."""
        with cls._registry_lock:
            alive: list[weakref.ref[Lazy]] = []
            for ref in cls._all_instances:
                obj = ref()
                if obj is not None:
                    obj.reset()
                    alive.append(ref)
            cls._all_instances = alive
