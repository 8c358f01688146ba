"""ordertrack: shared state store and event bus for the order-tracking app."""

from importlib.metadata import version as _version

__version__ = _version("ordertrack")

from ordertrack.errors import (
    StoreError,
    UnknownMutation,
    UnknownAction,
    UnknownGetter,
    DuplicateRegistration,
    MutationExecutionError,
    ActionExecutionError,
    ListenerError,
    SubscriberError,
)
from ordertrack.bus import EventBus
from ordertrack.history import HistoryEntry
from ordertrack.store import Store, ActionContext, Mutation, MUTATION_TOPIC, ACTION_TOPIC
from ordertrack.data import DataModule, MemoryStorage, seed_state
from ordertrack.auth import AuthModule
from ordertrack.users import UserModule
from ordertrack.processes import ProcessModule
from ordertrack.orders import OrderModule
from ordertrack.app import AppContext, create_app
# textual NOT auto-imported — opt-in only

__all__ = [
    "EventBus",
    "Store",
    "ActionContext",
    "Mutation",
    "HistoryEntry",
    "MUTATION_TOPIC",
    "ACTION_TOPIC",
    "DataModule",
    "MemoryStorage",
    "seed_state",
    "AuthModule",
    "UserModule",
    "ProcessModule",
    "OrderModule",
    "AppContext",
    "create_app",
    "StoreError",
    "UnknownMutation",
    "UnknownAction",
    "UnknownGetter",
    "DuplicateRegistration",
    "MutationExecutionError",
    "ActionExecutionError",
    "ListenerError",
    "SubscriberError",
]
