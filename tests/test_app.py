"""Tests for create_app — wiring of bus, store and business modules."""

import asyncio

from ordertrack import AppContext, MemoryStorage, create_app


class TestCreateApp:
    def test_wires_shared_bus(self):
        ctx = create_app()
        assert isinstance(ctx, AppContext)
        assert ctx.store.bus is ctx.bus
        assert ctx.data.installed

    def test_store_is_seeded(self):
        ctx = create_app()
        assert ctx.store.get_getter("stats")["total_users"] == 1

    def test_options_reach_the_store(self):
        ctx = create_app(max_history_size=2)
        assert ctx.store.max_history_size == 2

    def test_round_trip_through_storage(self):
        storage = MemoryStorage()
        ctx = create_app(storage)
        asyncio.run(ctx.store.dispatch("save_data"))

        other = create_app(storage)
        asyncio.run(other.store.dispatch("load_data"))
        assert other.store.get_getter("users") == ctx.store.get_getter("users")

    def test_instances_are_independent(self):
        a = create_app()
        b = create_app()
        a.store.commit("ADD_ORDER", {"id": 1})
        assert b.store.get_getter("orders") == []

    def test_business_modules_installed(self):
        ctx = create_app()
        assert all(m.installed for m in (ctx.auth, ctx.users, ctx.processes, ctx.orders))
        actions = ctx.store.describe()["actions"]
        for name in ("login", "create_user", "reorder_processes", "move_order"):
            assert name in actions

    def test_order_flow_is_persisted(self):
        storage = MemoryStorage()
        ctx = create_app(storage, admin_password="secret")
        store = ctx.store
        asyncio.run(store.dispatch("login", {"username": "Administrator", "password": "secret"}))
        store.commit("ADD_PRODUCT", {"id": 10, "name": "Chair"})
        process = asyncio.run(store.dispatch("create_process", {"name": "Cutting"}))["process"]
        order = asyncio.run(
            store.dispatch("create_order", {"client_name": "ACME", "product_id": 10})
        )["order"]
        asyncio.run(
            store.dispatch("move_order", {"order_id": order["id"], "to_process_id": process["id"]})
        )

        saved = storage.load()["orders"]
        assert saved[0]["current_process_id"] == process["id"]
        assert ctx.store.get_getter("stats")["orders_in_progress"] == 1
