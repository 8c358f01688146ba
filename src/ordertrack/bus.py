"""EventBus — topic-keyed publish/subscribe.

Producers publish a payload under a string topic; every listener registered
for that topic receives it. publish() iterates a snapshot taken before the
first callback runs, so listeners added or removed mid-round only affect
the next round. A failing listener is logged and skipped, never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ordertrack.errors import ListenerError

logger = logging.getLogger("ordertrack.bus")

Disposer = Callable[[], None]


class _Listener:
    __slots__ = ("callback", "once", "context")

    def __init__(self, callback: Callable, once: bool, context: object | None) -> None:
        self.callback = callback
        self.once = once
        self.context = context

    def __call__(self, payload: Any) -> None:
        if self.context is not None:
            self.callback(self.context, payload)
        else:
            self.callback(payload)

    def __repr__(self) -> str:
        flag = ", once" if self.once else ""
        return f"_Listener({self.callback!r}{flag})"


class EventBus:
    """Topic-keyed publish/subscribe with per-listener failure isolation."""

    def __init__(self) -> None:
        self._topics: dict[str, list[_Listener]] = {}

    def subscribe(
        self,
        topic: str,
        callback: Callable,
        *,
        once: bool = False,
        context: object | None = None,
    ) -> Disposer:
        """Register callback for topic. Returns a function that removes it.

        With context, the callback is invoked as callback(context, payload),
        which lets an unbound method be subscribed together with its instance.
        """
        if not isinstance(topic, str) or not topic:
            raise ValueError(f"topic must be a non-empty string, got {topic!r}")
        if not callable(callback):
            raise TypeError(f"callback must be callable, got {callback!r}")

        listener = _Listener(callback, once, context)
        self._topics.setdefault(topic, []).append(listener)
        logger.debug("subscribed to %r (once=%s)", topic, once)

        def _unsubscribe() -> None:
            self._discard(topic, listener)

        return _unsubscribe

    def once(self, topic: str, callback: Callable, context: object | None = None) -> Disposer:
        return self.subscribe(topic, callback, once=True, context=context)

    def unsubscribe(self, topic: str, callback: Callable) -> None:
        """Remove the first listener on topic whose callback equals callback."""
        for listener in self._topics.get(topic, ()):
            if listener.callback == callback:
                self._discard(topic, listener)
                return

    def publish(self, topic: str, payload: Any = None) -> None:
        listeners = self._topics.get(topic)
        if not listeners:
            return

        logger.debug("publishing %r to %d listener(s)", topic, len(listeners))
        for listener in list(listeners):
            if listener.once:
                # A nested publish may already have consumed it.
                if not self._discard(topic, listener):
                    continue
            try:
                listener(payload)
            except Exception as exc:
                logger.exception("%s", ListenerError(topic, listener.callback, exc))

    def listener_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    def topics(self) -> list[str]:
        """Topics that currently have at least one listener."""
        return [topic for topic, listeners in self._topics.items() if listeners]

    def clear_all(self) -> None:
        self._topics.clear()
        logger.debug("all listeners cleared")

    def _discard(self, topic: str, listener: _Listener) -> bool:
        """Remove this exact listener entry. Returns False if it was already gone."""
        listeners = self._topics.get(topic)
        if not listeners:
            return False
        for index, existing in enumerate(listeners):
            if existing is listener:
                del listeners[index]
                if not listeners:
                    del self._topics[topic]
                logger.debug("unsubscribed from %r", topic)
                return True
        return False

    def __repr__(self) -> str:
        counts = {topic: len(listeners) for topic, listeners in self._topics.items()}
        return f"EventBus({counts!r})"
