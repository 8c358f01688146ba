"""Order module — actions that create, edit and route orders through processes.

Every action needs a logged-in user and returns a result dict:
{"success": True, "order": ...} or {"success": False, "error": ...}.
Each change appends an entry to the order's own "history" list and is
announced on the bus (order:created, order:updated, order:deleted,
order:moved, order:status_changed).
"""

from __future__ import annotations

import logging
from datetime import date

from ordertrack.data import failure, new_id, now_iso
from ordertrack.store import Store

logger = logging.getLogger("ordertrack.orders")

ORDER_CREATED = "order:created"
ORDER_UPDATED = "order:updated"
ORDER_DELETED = "order:deleted"
ORDER_MOVED = "order:moved"
ORDER_STATUS_CHANGED = "order:status_changed"

REQUIRED_FIELDS = ("client_name", "product_id")

# moving to this process id completes the order
COMPLETED = 0


def generate_order_number(orders, today: date | None = None) -> str:
    """Next "YYMMDD-NNN" number for today, counting from the highest one in use."""
    prefix = (today or date.today()).strftime("%y%m%d")
    used = []
    for order in orders:
        number = order.get("number") or ""
        head, _, tail = number.partition("-")
        if head == prefix and tail.isdigit():
            used.append(int(tail))
    return f"{prefix}-{max(used, default=0) + 1:03d}"


def can_move_order(order: dict, user: dict, to_process_id, is_admin: bool = False) -> bool:
    if is_admin:
        return True
    allowed = user.get("processes") or []
    current = order.get("current_process_id")
    if current and current not in allowed:
        return False
    if to_process_id and to_process_id not in allowed:
        return False
    return True


def _history_event(kind: str, user: dict, data: dict) -> dict:
    return {
        "id": new_id("history"),
        "type": kind,
        "timestamp": now_iso(),
        "user_id": user["id"],
        "data": data,
    }


class OrderModule:
    def __init__(self, store: Store) -> None:
        self._store = store
        self.installed = False

    def install(self) -> None:
        store = self._store
        store.register_action("create_order", self.create_order)
        store.register_action("update_order", self.update_order)
        store.register_action("delete_order", self.delete_order)
        store.register_action("move_order", self.move_order)
        store.register_action("send_order_to_defect", self.send_order_to_defect)
        store.register_action("fix_defect_order", self.fix_defect_order)
        self.installed = True
        logger.info("order module installed")

    def _save(self, context, order: dict, event: dict) -> dict:
        order["history"] = [*order.get("history", []), event]
        context.commit("UPDATE_ORDER", order)
        return order

    async def create_order(self, context, data):
        user = context.getters.current_user
        if user is None:
            return failure("Not authenticated")
        missing = [field for field in REQUIRED_FIELDS if data.get(field) in (None, "")]
        if missing:
            return failure(f"Missing required fields: {', '.join(missing)}")
        if context.getters.product_by_id(data["product_id"]) is None:
            return failure("Product not found")

        now = now_iso()
        order = {
            "id": new_id("order"),
            "number": generate_order_number(context.getters.orders),
            "client_name": data["client_name"],
            "client_phone": data.get("client_phone", ""),
            "client_email": data.get("client_email", ""),
            "product_id": data["product_id"],
            "quantity": int(data.get("quantity") or 1),
            "current_process_id": None,
            "status": "created",
            "priority": data.get("priority", "normal"),
            "deadline": data.get("deadline"),
            "comment": data.get("comment", ""),
            "custom_fields": dict(data.get("custom_fields") or {}),
            "defect_info": {"is_defective": False, "reason": None, "fixed_at": None},
            "history": [_history_event("created", user, {"initial_data": dict(data)})],
            "created_at": now,
            "created_by": user["id"],
            "updated_at": now,
        }
        context.commit("ADD_ORDER", order)
        self._store.bus.publish(ORDER_CREATED, order)
        logger.info("order %s created", order["number"])
        return {"success": True, "order": order}

    async def update_order(self, context, payload):
        user = context.getters.current_user
        if user is None:
            return failure("Not authenticated")
        order = context.getters.order_by_id(payload["id"])
        if order is None:
            return failure("Order not found")

        changes = {key: value for key, value in payload["data"].items() if key != "id"}
        event = _history_event(
            "updated",
            user,
            {"changes": changes, "old_values": {key: order.get(key) for key in changes}},
        )
        updated = {**order, **changes, "updated_at": now_iso(), "updated_by": user["id"]}
        self._save(context, updated, event)
        self._store.bus.publish(ORDER_UPDATED, updated)
        return {"success": True, "order": updated}

    async def delete_order(self, context, order_id):
        user = context.getters.current_user
        if user is None:
            return failure("Not authenticated")
        order = context.getters.order_by_id(order_id)
        if order is None:
            return failure("Order not found")
        if not context.getters.is_admin and order.get("created_by") != user["id"]:
            return failure("Not allowed to delete this order")

        context.commit("REMOVE_ORDER", order_id)
        self._store.bus.publish(ORDER_DELETED, {"id": order_id, "order": order})
        logger.info("order %s deleted", order.get("number", order_id))
        return {"success": True}

    async def move_order(self, context, payload):
        user = context.getters.current_user
        if user is None:
            return failure("Not authenticated")
        getters = context.getters
        order = getters.order_by_id(payload["order_id"])
        if order is None:
            return failure("Order not found")

        to_process_id = payload.get("to_process_id") or COMPLETED
        to_process = getters.process_by_id(to_process_id) if to_process_id else None
        if to_process_id and to_process is None:
            return failure("Process not found")
        # the stored record: assignments may have changed since login
        account = getters.user_by_id(user["id"]) or user
        if not can_move_order(order, account, to_process_id, getters.is_admin):
            return failure("Not allowed to move this order")

        from_process_id = order.get("current_process_id")
        from_process = getters.process_by_id(from_process_id) if from_process_id else None
        event = _history_event(
            "moved",
            user,
            {
                "from_process": _process_ref(from_process),
                "to_process": _process_ref(to_process) or {"id": COMPLETED, "name": "Completed"},
                "reason": payload.get("reason"),
            },
        )
        updated = {
            **order,
            "current_process_id": to_process_id or None,
            "status": "in_progress" if to_process_id else "completed",
            "updated_at": now_iso(),
            "updated_by": user["id"],
        }
        self._save(context, updated, event)
        self._store.bus.publish(
            ORDER_MOVED,
            {"order": updated, "from_process_id": from_process_id, "to_process_id": to_process_id},
        )
        return {"success": True, "order": updated}

    async def send_order_to_defect(self, context, payload):
        user = context.getters.current_user
        if user is None:
            return failure("Not authenticated")
        order = context.getters.order_by_id(payload["order_id"])
        if order is None:
            return failure("Order not found")

        now = now_iso()
        reason = payload.get("reason")
        updated = {
            **order,
            "defect_info": {
                "is_defective": True,
                "reason": reason,
                "reported_at": now,
                "reported_by": user["id"],
                "fixed_at": None,
            },
            "status": "defect",
            "updated_at": now,
            "updated_by": user["id"],
        }
        event = _history_event(
            "defect_sent", user, {"reason": reason, "process_id": order.get("current_process_id")}
        )
        self._save(context, updated, event)
        self._publish_status(order, updated)
        return {"success": True, "order": updated}

    async def fix_defect_order(self, context, payload):
        user = context.getters.current_user
        if user is None:
            return failure("Not authenticated")
        order = context.getters.order_by_id(payload["order_id"])
        defect = (order or {}).get("defect_info") or {}
        if not defect.get("is_defective"):
            return failure("Order not found or not defective")

        now = now_iso()
        comment = payload.get("comment", "")
        updated = {
            **order,
            "defect_info": {
                **defect,
                "is_defective": False,
                "fixed_at": now,
                "fixed_by": user["id"],
                "fix_comment": comment,
            },
            "status": "in_progress" if order.get("current_process_id") else "completed",
            "updated_at": now,
            "updated_by": user["id"],
        }
        event = _history_event(
            "defect_fixed", user, {"comment": comment, "original_reason": defect.get("reason")}
        )
        self._save(context, updated, event)
        self._publish_status(order, updated)
        return {"success": True, "order": updated}

    def _publish_status(self, old: dict, new: dict) -> None:
        self._store.bus.publish(
            ORDER_STATUS_CHANGED,
            {"order": new, "old_status": old.get("status"), "new_status": new["status"]},
        )


def _process_ref(process):
    if process is None:
        return None
    return {"id": process["id"], "name": process.get("name")}
