"""Tests for ProcessModule — admin-only process management."""

import asyncio

from ordertrack import create_app
from ordertrack.processes import PALETTE, PROCESS_DELETED, PROCESS_REORDERED


def _run(ctx, action, payload=None):
    return asyncio.run(ctx.store.dispatch(action, payload))


def _admin_app():
    ctx = create_app(admin_password="secret")
    _run(ctx, "login", {"username": "Administrator", "password": "secret"})
    return ctx


def _create(ctx, name, **fields):
    return _run(ctx, "create_process", {"name": name, **fields})["process"]


class TestCreateProcess:
    def test_positions_and_colors(self):
        ctx = _admin_app()
        cut = _create(ctx, "  Cutting ")
        paint = _create(ctx, "Painting", color="#000000")
        assert cut["name"] == "Cutting"
        assert (cut["position"], paint["position"]) == (0, 1)
        assert cut["color"] == PALETTE[0]
        assert paint["color"] == "#000000"
        assert [p["id"] for p in ctx.store.get_getter("processes")] == [cut["id"], paint["id"]]

    def test_name_required(self):
        ctx = _admin_app()
        assert _run(ctx, "create_process", {"name": "   "})["error"] == "Process name is required"

    def test_operator_refused(self):
        ctx = create_app()
        ctx.store.commit("ADD_USER", {"id": 2, "name": "op", "password": "pw", "role": "operator"})
        _run(ctx, "login", {"username": "op", "password": "pw"})
        result = _run(ctx, "create_process", {"name": "Cutting"})
        assert result["error"] == "Only administrators can change processes"
        assert ctx.store.get_getter("processes") == []


class TestUpdateProcess:
    def test_update(self):
        ctx = _admin_app()
        cut = _create(ctx, "Cutting")
        result = _run(ctx, "update_process", {"id": cut["id"], "data": {"name": "Laser"}})
        assert result["process"]["name"] == "Laser"
        assert ctx.store.get_getter("process_by_id")(cut["id"])["name"] == "Laser"

    def test_unknown(self):
        ctx = _admin_app()
        assert _run(ctx, "update_process", {"id": "x", "data": {}})["error"] == "Process not found"


class TestDeleteProcess:
    def test_refused_while_holding_orders(self):
        ctx = _admin_app()
        cut = _create(ctx, "Cutting")
        ctx.store.commit("ADD_ORDER", {"id": "o1", "current_process_id": cut["id"]})
        result = _run(ctx, "delete_process", cut["id"])
        assert result["error"] == "Cannot delete a process holding 1 orders"
        assert ctx.store.get_getter("process_by_id")(cut["id"]) is not None

    def test_removes_references(self):
        ctx = _admin_app()
        cut = _create(ctx, "Cutting")
        paint = _create(ctx, "Painting")
        ctx.store.commit("ADD_PRODUCT", {"id": 10, "processes": [cut["id"], paint["id"]]})
        ctx.store.commit("UPDATE_USER", {"id": 1, "processes": [cut["id"]]})
        deleted = []
        ctx.bus.subscribe(PROCESS_DELETED, deleted.append)

        assert _run(ctx, "delete_process", cut["id"]) == {"success": True}

        assert ctx.store.get_getter("process_by_id")(cut["id"]) is None
        assert ctx.store.get_getter("product_by_id")(10)["processes"] == [paint["id"]]
        assert ctx.store.get_getter("user_by_id")(1)["processes"] == []
        assert deleted[0]["id"] == cut["id"]


class TestReorder:
    def test_reorder(self):
        ctx = _admin_app()
        a = _create(ctx, "A")
        b = _create(ctx, "B")
        c = _create(ctx, "C")
        events = []
        ctx.bus.subscribe(PROCESS_REORDERED, events.append)

        result = _run(ctx, "reorder_processes", [c["id"], a["id"], b["id"]])

        assert [p["id"] for p in result["processes"]] == [c["id"], a["id"], b["id"]]
        assert [p["position"] for p in ctx.store.get_getter("processes")] == [0, 1, 2]
        assert len(events) == 1

    def test_unknown_ids_change_nothing(self):
        ctx = _admin_app()
        a = _create(ctx, "A")
        result = _run(ctx, "reorder_processes", ["ghost", a["id"]])
        assert result["error"] == "Unknown processes: ghost"
        assert ctx.store.get_getter("process_by_id")(a["id"])["position"] == 0


class TestProcessStats:
    def test_counts_defects(self):
        ctx = _admin_app()
        ctx.store.commit("ADD_ORDER", {"id": 1, "current_process_id": "cut"})
        ctx.store.commit(
            "ADD_ORDER",
            {"id": 2, "current_process_id": "cut", "defect_info": {"is_defective": True}},
        )
        assert ctx.store.get_getter("process_stats")("cut") == {
            "total_orders": 2,
            "defect_orders": 1,
        }
