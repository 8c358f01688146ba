"""User module — account management for administrators.

Only administrators create, delete, (de)activate users or assign them
processes. Any user may edit their own record, but not their role, active
flag or permissions. Passwords are stored on the user record and never
copied into the session user.
"""

from __future__ import annotations

import logging

from ordertrack.auth import public_user
from ordertrack.data import ADMIN_ROLE, OPERATOR_ROLE, failure, new_id, now_iso
from ordertrack.store import Store

logger = logging.getLogger("ordertrack.users")

USER_CREATED = "user:created"
USER_UPDATED = "user:updated"
USER_DELETED = "user:deleted"

_ADMIN_ONLY_FIELDS = ("role", "is_active", "permissions")
_UNIQUE_FIELDS = ("name", "email", "phone")


def _users_with_process_access(state, getters):
    def find(process_id):
        return [
            u
            for u in getters.users
            if u.get("is_active", True)
            and (u.get("role") == ADMIN_ROLE or process_id in (u.get("processes") or []))
        ]

    return find


class UserModule:
    def __init__(self, store: Store) -> None:
        self._store = store
        self.installed = False

    def install(self) -> None:
        store = self._store
        store.register_getter("users_with_process_access", _users_with_process_access)
        store.register_action("create_user", self.create_user)
        store.register_action("update_user", self.update_user)
        store.register_action("delete_user", self.delete_user)
        store.register_action("toggle_user_status", self.toggle_user_status)
        store.register_action("assign_processes_to_user", self.assign_processes_to_user)
        self.installed = True
        logger.info("user module installed")

    def _check_admin(self, getters):
        if getters.current_user is None:
            return failure("Not authenticated")
        if not getters.is_admin:
            return failure("Only administrators can manage users")
        return None

    def _publish_updated(self, user: dict) -> None:
        self._store.bus.publish(USER_UPDATED, public_user(user))

    async def create_user(self, context, data):
        getters = context.getters
        refused = self._check_admin(getters)
        if refused:
            return refused
        name = (data.get("name") or "").strip()
        if not name:
            return failure("User name is required")

        fields = {
            "name": name,
            "email": (data.get("email") or "").strip(),
            "phone": (data.get("phone") or "").strip(),
        }
        for user in getters.users:
            if any(fields[key] and user.get(key) == fields[key] for key in _UNIQUE_FIELDS):
                return failure("A user with the same name, email or phone already exists")

        now = now_iso()
        user = {
            "id": new_id("user"),
            **fields,
            "password": data.get("password"),
            "role": data.get("role") or OPERATOR_ROLE,
            "processes": list(data.get("processes") or []),
            "is_active": True,
            "can_create_orders": data.get("can_create_orders", True) is not False,
            "created_at": now,
            "created_by": getters.current_user["id"],
            "updated_at": now,
            "last_login_at": None,
        }
        context.commit("ADD_USER", user)
        self._store.bus.publish(USER_CREATED, public_user(user))
        logger.info("user %r created with role %s", name, user["role"])
        return {"success": True, "user": public_user(user)}

    async def update_user(self, context, payload):
        getters = context.getters
        current = getters.current_user
        if current is None:
            return failure("Not authenticated")
        user = getters.user_by_id(payload["id"])
        if user is None:
            return failure("User not found")
        is_self = user["id"] == current["id"]
        if not getters.is_admin and not is_self:
            return failure("Not allowed to edit this user")

        changes = {key: value for key, value in payload["data"].items() if key != "id"}
        if not getters.is_admin:
            for key in _ADMIN_ONLY_FIELDS:
                changes.pop(key, None)
        updated = {**user, **changes, "updated_at": now_iso(), "updated_by": current["id"]}
        context.commit("UPDATE_USER", updated)
        if is_self:
            context.commit("SET_CURRENT_USER", {**current, **public_user(updated)})
        self._publish_updated(updated)
        return {"success": True, "user": public_user(updated)}

    async def delete_user(self, context, user_id):
        getters = context.getters
        refused = self._check_admin(getters)
        if refused:
            return refused
        user = getters.user_by_id(user_id)
        if user is None:
            return failure("User not found")
        if user_id == getters.current_user["id"]:
            return failure("Cannot delete yourself")
        admins = [u for u in getters.users if u.get("role") == ADMIN_ROLE]
        if user.get("role") == ADMIN_ROLE and len(admins) == 1:
            return failure("Cannot delete the last administrator")

        context.commit("REMOVE_USER", user_id)
        self._store.bus.publish(USER_DELETED, {"id": user_id, "user": public_user(user)})
        logger.info("user %r deleted", user.get("name"))
        return {"success": True}

    async def toggle_user_status(self, context, user_id):
        getters = context.getters
        refused = self._check_admin(getters)
        if refused:
            return refused
        user = getters.user_by_id(user_id)
        if user is None:
            return failure("User not found")
        current_id = getters.current_user["id"]
        if user_id == current_id:
            return failure("Cannot deactivate yourself")

        now = now_iso()
        active = not user.get("is_active", True)
        updated = {**user, "is_active": active, "updated_at": now, "updated_by": current_id}
        if not active:
            updated["deactivated_at"] = now
            updated["deactivated_by"] = current_id
        context.commit("UPDATE_USER", updated)
        self._publish_updated(updated)
        return {"success": True, "user": public_user(updated)}

    async def assign_processes_to_user(self, context, payload):
        getters = context.getters
        refused = self._check_admin(getters)
        if refused:
            return refused
        user = getters.user_by_id(payload["user_id"])
        if user is None:
            return failure("User not found")

        # unknown ids are dropped silently
        known = [pid for pid in payload["process_ids"] if getters.process_by_id(pid) is not None]
        updated = {
            **user,
            "processes": known,
            "updated_at": now_iso(),
            "updated_by": getters.current_user["id"],
        }
        context.commit("UPDATE_USER", updated)
        self._publish_updated(updated)
        return {"success": True, "user": public_user(updated)}
