"""Process module — the ordered production stages orders move through.

Only administrators may change processes. A process that still holds
orders cannot be deleted; deleting one also drops its id from every
product and user that referenced it.
"""

from __future__ import annotations

import logging

from ordertrack.data import failure, new_id, now_iso
from ordertrack.store import Store

logger = logging.getLogger("ordertrack.processes")

PROCESS_CREATED = "process:created"
PROCESS_UPDATED = "process:updated"
PROCESS_DELETED = "process:deleted"
PROCESS_REORDERED = "process:reordered"

PALETTE = (
    "#3B82F6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#06B6D4",
    "#84CC16",
    "#F97316",
    "#EC4899",
    "#6B7280",
)


def _process_stats(state, getters):
    def stats(process_id):
        orders = getters.orders_by_process(process_id)
        return {
            "total_orders": len(orders),
            "defect_orders": sum(
                1 for o in orders if (o.get("defect_info") or {}).get("is_defective")
            ),
        }

    return stats


class ProcessModule:
    def __init__(self, store: Store) -> None:
        self._store = store
        self.installed = False

    def install(self) -> None:
        store = self._store
        store.register_getter("process_stats", _process_stats)
        store.register_action("create_process", self.create_process)
        store.register_action("update_process", self.update_process)
        store.register_action("delete_process", self.delete_process)
        store.register_action("reorder_processes", self.reorder_processes)
        self.installed = True
        logger.info("process module installed")

    def _check_admin(self, getters):
        if getters.current_user is None:
            return failure("Not authenticated")
        if not getters.is_admin:
            return failure("Only administrators can change processes")
        return None

    async def create_process(self, context, data):
        refused = self._check_admin(context.getters)
        if refused:
            return refused
        name = (data.get("name") or "").strip()
        if not name:
            return failure("Process name is required")

        processes = context.getters.processes
        position = max((p.get("position", 0) for p in processes), default=-1) + 1
        now = now_iso()
        process = {
            "id": new_id("process"),
            "name": name,
            "description": (data.get("description") or "").strip(),
            "position": position,
            "color": data.get("color") or PALETTE[position % len(PALETTE)],
            "is_active": True,
            "created_at": now,
            "created_by": context.getters.current_user["id"],
            "updated_at": now,
        }
        context.commit("ADD_PROCESS", process)
        self._store.bus.publish(PROCESS_CREATED, process)
        logger.info("process %r created at position %d", name, position)
        return {"success": True, "process": process}

    async def update_process(self, context, payload):
        refused = self._check_admin(context.getters)
        if refused:
            return refused
        process = context.getters.process_by_id(payload["id"])
        if process is None:
            return failure("Process not found")

        changes = {key: value for key, value in payload["data"].items() if key != "id"}
        updated = {
            **process,
            **changes,
            "updated_at": now_iso(),
            "updated_by": context.getters.current_user["id"],
        }
        context.commit("UPDATE_PROCESS", updated)
        self._store.bus.publish(PROCESS_UPDATED, updated)
        return {"success": True, "process": updated}

    async def delete_process(self, context, process_id):
        getters = context.getters
        refused = self._check_admin(getters)
        if refused:
            return refused
        process = getters.process_by_id(process_id)
        if process is None:
            return failure("Process not found")
        holding = getters.orders_by_process(process_id)
        if holding:
            return failure(f"Cannot delete a process holding {len(holding)} orders")

        # drop references first so nothing points at a missing process
        for key, mutation in (("products", "UPDATE_PRODUCT"), ("users", "UPDATE_USER")):
            for item in list(getters[key]):
                refs = item.get("processes") or []
                if process_id in refs:
                    kept = [pid for pid in refs if pid != process_id]
                    context.commit(mutation, {"id": item["id"], "processes": kept})
        context.commit("REMOVE_PROCESS", process_id)
        self._store.bus.publish(PROCESS_DELETED, {"id": process_id, "process": process})
        logger.info("process %r deleted", process.get("name"))
        return {"success": True}

    async def reorder_processes(self, context, process_ids):
        getters = context.getters
        refused = self._check_admin(getters)
        if refused:
            return refused
        unknown = [pid for pid in process_ids if getters.process_by_id(pid) is None]
        if unknown:
            return failure(f"Unknown processes: {', '.join(map(str, unknown))}")

        for position, process_id in enumerate(process_ids):
            context.commit("UPDATE_PROCESS", {"id": process_id, "position": position})
        reordered = getters.processes
        self._store.bus.publish(PROCESS_REORDERED, reordered)
        return {"success": True, "processes": reordered}
