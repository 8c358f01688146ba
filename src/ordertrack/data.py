"""Data module — CRUD mutations, getters and auto-save for the business collections.

Installs into a Store:

- mutations SET_<PLURAL> / ADD_<C> / UPDATE_<C> / REMOVE_<C> for users,
  processes, products and orders, plus SET_LOADING and the current-user pair
- getters for each collection, id lookups, orders_by_process, stats, loading
- actions save_data / load_data

Durable storage is a collaborator: any object with load() -> dict and
save(data) -> bool. After every SET_/ADD_/UPDATE_/REMOVE_ commit the module
saves through it, reacting to the bus rather than subscribing to the store.
"""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from ordertrack.store import MUTATION_TOPIC, Store

logger = logging.getLogger("ordertrack.data")

LOADING_START = "loading:start"
LOADING_END = "loading:end"
ERROR = "app:error"

# (mutation suffix, state key, getter prefix)
COLLECTIONS = (
    ("USER", "users", "user"),
    ("PROCESS", "processes", "process"),
    ("PRODUCT", "products", "product"),
    ("ORDER", "orders", "order"),
)

_PERSISTED_PREFIXES = ("SET_", "ADD_", "UPDATE_", "REMOVE_")

ADMIN_ROLE = "admin"
OPERATOR_ROLE = "operator"

DEFAULT_ADMIN = {
    "id": 1,
    "name": "Administrator",
    "email": "admin@oms.local",
    "role": ADMIN_ROLE,
    "processes": [],
    "is_active": True,
}


class Storage(Protocol):
    def load(self) -> dict: ...

    def save(self, data: dict) -> bool: ...


class MemoryStorage:
    """Storage kept in process memory. Data is deep-copied in both directions."""

    def __init__(self, data: dict | None = None) -> None:
        self._data = copy.deepcopy(data) if data else {}
        self.saves = 0

    def load(self) -> dict:
        return copy.deepcopy(self._data)

    def save(self, data: dict) -> bool:
        self._data = copy.deepcopy(data)
        self.saves += 1
        return True


def seed_state(admin_password: str | None = None) -> dict[str, Any]:
    """Initial state record for a fresh application.

    The built-in administrator can only log in once it has a password.
    """
    admin = copy.deepcopy(DEFAULT_ADMIN)
    if admin_password is not None:
        admin["password"] = admin_password
    state: dict[str, Any] = {key: [] for _, key, _ in COLLECTIONS}
    state["users"] = [admin]
    state["current_user"] = None
    state["loading"] = {key: False for _, key, _ in COLLECTIONS}
    return state


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def failure(error: str) -> dict[str, Any]:
    """Result of an action refused for a business reason (not found, forbidden, ...)."""
    return {"success": False, "error": error}


# --- Mutation factories ---


def _set_all(key):
    def mutation(state, items):
        state[key] = list(items)

    return mutation


def _add(key):
    def mutation(state, item):
        state[key].append(item)

    return mutation


def _update(key):
    def mutation(state, changes):
        items = state[key]
        for index, item in enumerate(items):
            if item.get("id") == changes.get("id"):
                items[index] = {**item, **changes}
                return

    return mutation


def _remove(key):
    def mutation(state, item_id):
        state[key] = [item for item in state[key] if item.get("id") != item_id]

    return mutation


def _set_loading(state, payload):
    state["loading"][payload["type"]] = payload["loading"]


def _set_current_user(state, user):
    state["current_user"] = user


def _clear_current_user(state, payload):
    state["current_user"] = None


# --- Getter factories ---


def _collection(key):
    def getter(state, getters):
        return state[key]

    return getter


def _by_id(key):
    def getter(state, getters):
        def find(item_id):
            return next((item for item in state[key] if item.get("id") == item_id), None)

        return find

    return getter


def _processes(state, getters):
    # sorted() copy: getters must not reorder the state they read
    return sorted(state["processes"], key=lambda p: p.get("position", 0))


_SORTED_GETTERS = {"processes": _processes}


def _orders_by_process(state, getters):
    def find(process_id):
        return [o for o in state["orders"] if o.get("current_process_id") == process_id]

    return find


def _stats(state, getters):
    users = getters.users
    orders = getters.orders
    return {
        "total_users": len(users),
        "active_users": sum(1 for u in users if u.get("is_active", True)),
        "total_processes": len(getters.processes),
        "total_products": len(getters.products),
        "total_orders": len(orders),
        "orders_in_progress": sum(1 for o in orders if o.get("current_process_id")),
        "orders_completed": sum(1 for o in orders if not o.get("current_process_id")),
    }


class DataModule:
    """Registers the collection CRUD surface and keeps storage in sync."""

    def __init__(self, store: Store, storage: Storage | None = None) -> None:
        self._store = store
        self._storage = storage if storage is not None else MemoryStorage()
        self._loading = False
        self._unsubscribe = None
        self.installed = False

    @property
    def is_loading(self) -> bool:
        return self._loading

    def install(self) -> None:
        store = self._store
        for suffix, key, prefix in COLLECTIONS:
            store.register_mutation(f"SET_{key.upper()}", _set_all(key))
            store.register_mutation(f"ADD_{suffix}", _add(key))
            store.register_mutation(f"UPDATE_{suffix}", _update(key))
            store.register_mutation(f"REMOVE_{suffix}", _remove(key))
            store.register_getter(key, _SORTED_GETTERS.get(key) or _collection(key))
            store.register_getter(f"{prefix}_by_id", _by_id(key))
        store.register_mutation("SET_LOADING", _set_loading)
        store.register_mutation("SET_CURRENT_USER", _set_current_user)
        store.register_mutation("CLEAR_CURRENT_USER", _clear_current_user)

        store.register_getter("orders_by_process", _orders_by_process)
        store.register_getter("current_user", lambda state, getters: state["current_user"])
        store.register_getter(
            "is_authenticated", lambda state, getters: state["current_user"] is not None
        )
        store.register_getter("stats", _stats)
        store.register_getter("loading", lambda state, getters: state["loading"])

        store.register_action("save_data", lambda context, payload: self.save())
        store.register_action("load_data", lambda context, payload: self.load())

        self._unsubscribe = store.bus.subscribe(MUTATION_TOPIC, self._on_mutation)
        self.installed = True
        logger.info("data module installed")

    def uninstall(self) -> None:
        """Stop auto-saving. Registrations stay: store registries only grow."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_mutation(self, event: dict) -> None:
        if self._loading:
            return
        if event["name"].startswith(_PERSISTED_PREFIXES):
            self.save()

    async def load(self) -> dict | None:
        """Pull every collection from storage into the store."""
        if self._loading:
            return None

        bus = self._store.bus
        self._loading = True
        bus.publish(LOADING_START, {"source": "data"})
        try:
            data = self._storage.load()
            if data.get("users"):
                self._store.commit("SET_USERS", data["users"])
            if data.get("processes") is not None:
                self._store.commit("SET_PROCESSES", data["processes"])
            if data.get("products") is not None:
                self._store.commit("SET_PRODUCTS", data["products"])
            if data.get("orders") is not None:
                self._store.commit("SET_ORDERS", data["orders"])
            logger.info("data loaded: %s", {key: len(value) for key, value in data.items()})
            return data
        except Exception as exc:
            logger.error("loading data failed", exc_info=True)
            bus.publish(ERROR, {"message": "Failed to load data", "error": exc})
            raise
        finally:
            self._loading = False
            bus.publish(LOADING_END, {"source": "data"})

    def save(self) -> bool:
        """Push every collection from the store to storage."""
        data = {key: self._store.get_getter(key) for _, key, _ in COLLECTIONS}
        try:
            saved = bool(self._storage.save(data))
        except Exception as exc:
            logger.exception("saving data failed")
            self._store.bus.publish(ERROR, {"message": "Failed to save data", "error": exc})
            return False
        if saved:
            logger.debug("data saved")
        else:
            logger.warning("storage refused to save data")
        return saved

    def info(self) -> dict[str, Any]:
        return {
            "name": "data",
            "installed": self.installed,
            "loading": self._loading,
            "stats": self._store.get_getter("stats"),
        }
