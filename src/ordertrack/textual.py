"""Textual integration for ordertrack. Opt-in — requires textual.

Store subscribers and bus listeners that touch widgets go through here:
they are skipped while the app is paused or not running, NoMatches from
widget queries is swallowed, and calls arriving from a background thread
are marshaled with app.call_from_thread. Core ordertrack stays UI-agnostic.
"""

import copy
import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

# id(app) -> number of open pause() blocks; absent means not paused
_pause_depth: dict[int, int] = {}


@contextmanager
def pause(app):
    """Suspend guarded callbacks during widget replacement. Blocks may nest."""
    key = id(app)
    _pause_depth[key] = _pause_depth.get(key, 0) + 1
    try:
        yield
    finally:
        remaining = _pause_depth.pop(key) - 1
        if remaining:
            _pause_depth[key] = remaining


def is_paused(app) -> bool:
    return id(app) in _pause_depth


def is_safe(app) -> bool:
    """Running and not inside any pause() block."""
    return app.is_running and not is_paused(app)


def _guard(app, fn):
    _main = threading.get_ident()

    def _safe(*args):
        try:
            fn(*args)
        except NoMatches:
            pass

    def _guarded(*args):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, *args)
        else:
            _safe(*args)

    return _guarded


def subscribe(app, store, fn):
    """store.subscribe() whose callback only runs while app is safe.

    Returns the store's unsubscribe function.
    """
    return store.subscribe(_guard(app, fn))


def listen(app, bus, topic, fn, *, once=False):
    """bus.subscribe() whose callback only runs while app is safe."""
    return bus.subscribe(topic, _guard(app, fn), once=once)


def bind(app, store, getter_name, fn, *, args=(), fire_immediately=False):
    """Call fn(value) whenever the named getter's value changes after a commit.

    The getter is re-evaluated after each commit; fn fires only when the
    result differs from the last one seen. Lookup getters such as
    order_by_id return a function; pass its arguments as args and the
    bound value is the lookup result:

        bind(app, store, "order_by_id", show_order, args=(order_id,))
    """
    lookup = callable(store.get_getter(getter_name))
    if lookup and not args:
        raise TypeError(f"getter {getter_name!r} returns a function; pass its arguments as args")
    if args and not lookup:
        raise TypeError(f"getter {getter_name!r} takes no arguments")

    def _read():
        value = store.get_getter(getter_name)
        return value(*args) if lookup else value

    current = _read()
    # deep copy: collection getters return the live list mutated in place
    last = [copy.deepcopy(current)]
    effect = _guard(app, fn)

    def _on_commit(prev_state, new_state, mutation):
        value = _read()
        if value != last[0]:
            last[0] = copy.deepcopy(value)
            effect(value)

    if fire_immediately:
        effect(current)
    return store.subscribe(_on_commit)
