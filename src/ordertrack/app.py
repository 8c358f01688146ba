"""Application context — the one bus and one store every module receives.

Create it once at startup and pass it (or its parts) to whatever needs
shared state, instead of importing a module-level singleton:

    ctx = create_app(MemoryStorage(), admin_password="secret")
    await ctx.store.dispatch("load_data")
    await ctx.store.dispatch("login", {"username": "Administrator", "password": "secret"})
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from ordertrack.auth import AuthModule, default_authenticate
from ordertrack.bus import EventBus
from ordertrack.data import DataModule, Storage, seed_state
from ordertrack.history import DEFAULT_MAX_HISTORY_SIZE
from ordertrack.orders import OrderModule
from ordertrack.processes import ProcessModule
from ordertrack.store import Store
from ordertrack.users import UserModule

logger = logging.getLogger("ordertrack.app")

APP_READY = "app:ready"


class AppContext(NamedTuple):
    bus: EventBus
    store: Store
    data: DataModule
    auth: AuthModule
    users: UserModule
    processes: ProcessModule
    orders: OrderModule


def create_app(
    storage: Storage | None = None,
    *,
    max_history_size: int = DEFAULT_MAX_HISTORY_SIZE,
    strict: bool = False,
    admin_password: str | None = None,
    authenticate=default_authenticate,
) -> AppContext:
    bus = EventBus()
    store = Store(
        seed_state(admin_password), bus=bus, max_history_size=max_history_size, strict=strict
    )
    # data first: the others read its getters and commit its mutations
    data = DataModule(store, storage)
    auth = AuthModule(store, authenticate)
    users = UserModule(store)
    processes = ProcessModule(store)
    orders = OrderModule(store)
    modules = {"data": data, "auth": auth, "users": users, "processes": processes, "orders": orders}
    for module in modules.values():
        module.install()

    bus.publish(APP_READY, {"modules": list(modules)})
    logger.info("application ready")
    return AppContext(bus, store, data, auth, users, processes, orders)
