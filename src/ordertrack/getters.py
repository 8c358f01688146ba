"""Getters view — live, un-memoized access to registered getters.

Every read re-runs the getter against the store's current state. Getters
receive the view as their second argument so they can compose:

    store.register_getter("orders", lambda state, getters: state["orders"])
    store.register_getter(
        "open_orders",
        lambda state, getters: [o for o in getters.orders if o["status"] != "completed"],
    )

Nothing is cached; callers that need a stable value snapshot it themselves.

Attribute access prefers registered getters over the view's own methods, so
a getter named "keys" or "get" is reachable as getters.keys. The mapping
methods stay available through the class, e.g. GettersView.keys(view).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator

from ordertrack.errors import UnknownGetter

if TYPE_CHECKING:
    from ordertrack.store import Store


class GettersView:
    """Read-only mapping of getter name -> freshly computed value."""

    __slots__ = ("_store",)

    def __init__(self, store: Store) -> None:
        self._store = store

    def __getitem__(self, name: str) -> Any:
        getter = self._store._getters.get(name)
        if getter is None:
            raise UnknownGetter(name)
        return getter(self._store._state, self)

    def __getattribute__(self, name: str) -> Any:
        if not name.startswith("_"):
            store = object.__getattribute__(self, "_store")
            if name in store._getters:
                return GettersView.__getitem__(self, name)
        return object.__getattribute__(self, name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except UnknownGetter as exc:
            raise AttributeError(name) from exc

    def get(self, name: str, default: Any = None) -> Any:
        if name not in self._store._getters:
            return default
        return self[name]

    def __contains__(self, name: object) -> bool:
        return name in self._store._getters

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._store._getters))

    def __len__(self) -> int:
        return len(self._store._getters)

    def keys(self) -> list[str]:
        return list(self._store._getters)

    def __repr__(self) -> str:
        return f"GettersView({list(self._store._getters)!r})"
