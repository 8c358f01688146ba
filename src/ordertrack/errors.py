"""Exception hierarchy for the store and event bus.

Lookup and body errors surface to whoever called commit/dispatch/get_getter.
ListenerError and SubscriberError never leave the bus or store: they are
built only so the isolated failure is logged with a descriptive message.
"""

from __future__ import annotations


class StoreError(RuntimeError):
    """Base class for all store and bus errors."""


class UnknownName(StoreError, LookupError):
    """A mutation, action or getter name that was never registered."""

    kind = "name"

    def __init__(self, name: str) -> None:
        super().__init__(f"{self.kind} {name!r} is not registered")
        self.name = name


class UnknownMutation(UnknownName):
    kind = "mutation"


class UnknownAction(UnknownName):
    kind = "action"


class UnknownGetter(UnknownName):
    kind = "getter"


class DuplicateRegistration(StoreError):
    """Raised by a strict store when a name is registered twice without replace=True."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} {name!r} is already registered")
        self.kind = kind
        self.name = name


class MutationExecutionError(StoreError):
    """A mutation body raised. The original exception is the __cause__."""

    def __init__(self, name: str, error: BaseException) -> None:
        super().__init__(f"mutation {name!r} failed: {error!r}")
        self.name = name


class ActionExecutionError(StoreError):
    """An action body raised. Commits it already issued are kept."""

    def __init__(self, name: str, error: BaseException) -> None:
        super().__init__(f"action {name!r} failed: {error!r}")
        self.name = name


class ListenerError(StoreError):
    def __init__(self, topic: str, callback, error: BaseException) -> None:
        super().__init__(f"listener {_callable_name(callback)} on {topic!r} raised {error!r}")
        self.topic = topic


class SubscriberError(StoreError):
    def __init__(self, mutation: str, callback, error: BaseException) -> None:
        super().__init__(
            f"subscriber {_callable_name(callback)} raised {error!r} after {mutation!r}"
        )
        self.mutation = mutation


def _callable_name(fn) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)
