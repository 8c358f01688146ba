"""Store — the single authoritative state record.

Business modules register three kinds of named functions:

- mutations: fn(state, payload), synchronous, change the state in place
- actions:   fn(context, payload), usually coroutines, orchestrate commits
- getters:   fn(state, getters), derive values, recomputed on every read

commit() is the only path that changes state. It never suspends, so one
commit is atomic with respect to other coroutines. Every successful commit
is recorded in a bounded history, delivered to direct subscribers, and
published on the bus under MUTATION_TOPIC.

Concurrent dispatches are not serialized: two actions awaiting at the same
time may interleave their later commits in any order.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, NamedTuple

from ordertrack.bus import Disposer, EventBus
from ordertrack.errors import (
    ActionExecutionError,
    DuplicateRegistration,
    MutationExecutionError,
    SubscriberError,
    UnknownAction,
    UnknownMutation,
)
from ordertrack.getters import GettersView
from ordertrack.history import DEFAULT_MAX_HISTORY_SIZE, History, HistoryEntry, snapshot

logger = logging.getLogger("ordertrack.store")

MUTATION_TOPIC = "store:mutation"
ACTION_TOPIC = "store:action"


class Mutation(NamedTuple):
    """Descriptor handed to subscribers alongside the two state snapshots."""

    name: str
    payload: Any


class ActionContext:
    """What an action sees: live state, commit, dispatch, and the getters view."""

    __slots__ = ("state", "commit", "dispatch", "getters")

    def __init__(self, store: Store) -> None:
        self.state = store._state
        self.commit = store.commit
        self.dispatch = store.dispatch
        self.getters = store.getters


class Store:
    """Registries of mutations, actions and getters over one state dict."""

    def __init__(
        self,
        initial: dict | None = None,
        *,
        bus: EventBus | None = None,
        max_history_size: int = DEFAULT_MAX_HISTORY_SIZE,
        strict: bool = False,
    ) -> None:
        self._state: dict[str, Any] = dict(initial) if initial else {}
        self._mutations: dict[str, Callable] = {}
        self._actions: dict[str, Callable] = {}
        self._getters: dict[str, Callable] = {}
        self._subscribers: list[Callable] = []
        self._history = History(max_history_size)
        self._committing = False
        self._pending_dispatches = 0
        self._strict = strict
        self.bus = bus if bus is not None else EventBus()
        self.getters = GettersView(self)

    # --- Registration ---

    def register_mutation(self, name: str, fn: Callable | None = None, *, replace: bool = False):
        """Register fn(state, payload) under name. Without fn, returns a decorator."""
        return self._register(self._mutations, "mutation", name, fn, replace)

    def register_action(self, name: str, fn: Callable | None = None, *, replace: bool = False):
        """Register fn(context, payload) under name. Without fn, returns a decorator."""
        return self._register(self._actions, "action", name, fn, replace)

    def register_getter(self, name: str, fn: Callable | None = None, *, replace: bool = False):
        """Register fn(state, getters) under name. Without fn, returns a decorator."""
        return self._register(self._getters, "getter", name, fn, replace)

    def _register(self, registry: dict, kind: str, name: str, fn, replace: bool):
        if fn is None:

            def decorator(func: Callable) -> Callable:
                self._register(registry, kind, name, func, replace)
                return func

            return decorator

        if not callable(fn):
            raise TypeError(f"{kind} {name!r} must be callable, got {fn!r}")
        if name in registry and not replace:
            if self._strict:
                raise DuplicateRegistration(kind, name)
            logger.warning("%s %r is already registered; overwriting", kind, name)
        registry[name] = fn
        return fn

    # --- Commit / dispatch ---

    @property
    def is_committing(self) -> bool:
        return self._committing

    def commit(self, name: str, payload: Any = None) -> None:
        """Apply the named mutation, record it, and notify everyone listening."""
        mutation = self._mutations.get(name)
        if mutation is None:
            raise UnknownMutation(name)

        prev_state = snapshot(self._state)
        outer = self._committing
        self._committing = True
        try:
            mutation(self._state, payload)
        except Exception as exc:
            logger.error("mutation %r failed", name, exc_info=True)
            raise MutationExecutionError(name, exc) from exc
        finally:
            self._committing = outer

        new_state = snapshot(self._state)
        self._history.record(name, payload, prev_state, new_state)
        self._notify_subscribers(prev_state, new_state, Mutation(name, payload))
        self.bus.publish(
            MUTATION_TOPIC,
            {"name": name, "payload": payload, "prev_state": prev_state, "new_state": new_state},
        )

    async def dispatch(self, name: str, payload: Any = None) -> Any:
        """Run the named action and return its result once it settles."""
        action = self._actions.get(name)
        if action is None:
            raise UnknownAction(name)

        self._pending_dispatches += 1
        try:
            result = action(ActionContext(self), payload)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.error("action %r failed", name, exc_info=True)
            raise ActionExecutionError(name, exc) from exc
        finally:
            self._pending_dispatches -= 1

        self.bus.publish(ACTION_TOPIC, {"name": name, "payload": payload, "result": result})
        return result

    # --- Reads ---

    def get_getter(self, name: str) -> Any:
        """Evaluate the named getter against the current state. Never cached."""
        return self.getters[name]

    def get_state(self) -> dict[str, Any]:
        """Shallow copy of the state record."""
        return dict(self._state)

    # --- Subscribers ---

    def subscribe(self, callback: Callable) -> Disposer:
        """Call callback(prev_state, new_state, mutation) after every commit.

        Returns a function that removes it. Subscribing twice is a no-op.
        """
        if not callable(callback):
            raise TypeError(f"subscriber must be callable, got {callback!r}")
        # identity, not hashing: callable instances may be unhashable
        if not any(cb is callback for cb in self._subscribers):
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            for index, cb in enumerate(self._subscribers):
                if cb is callback:
                    del self._subscribers[index]
                    return

        return _unsubscribe

    def _notify_subscribers(self, prev_state, new_state, mutation: Mutation) -> None:
        for callback in list(self._subscribers):
            try:
                callback(prev_state, new_state, mutation)
            except Exception as exc:
                logger.exception("%s", SubscriberError(mutation.name, callback, exc))

    # --- History ---

    @property
    def max_history_size(self) -> int:
        return self._history.max_size

    def get_history(self) -> list[HistoryEntry]:
        return self._history.entries()

    def clear_history(self) -> None:
        self._history.clear()

    def set_max_history_size(self, size: int) -> None:
        self._history.resize(size)

    # --- Introspection ---

    def describe(self) -> dict[str, Any]:
        info = {
            "state_keys": list(self._state),
            "mutations": list(self._mutations),
            "actions": list(self._actions),
            "getters": list(self._getters),
            "subscribers": len(self._subscribers),
            "history": len(self._history),
            "max_history_size": self._history.max_size,
            "pending_dispatches": self._pending_dispatches,
        }
        logger.debug("store state: %r", info)
        return info

    def __repr__(self) -> str:
        return (
            f"Store({len(self._mutations)} mutations, {len(self._actions)} actions, "
            f"{len(self._getters)} getters)"
        )
