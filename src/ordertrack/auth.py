"""Auth module — login/logout actions and role getters.

Credentials are checked by an authenticator: any callable
authenticate(users, username, password) returning the matching user or
None (it may also be a coroutine function). The default one matches the
username against name, email or phone of an active user with a password.

The logged-in user lives in state["current_user"], without its password.
"""

from __future__ import annotations

import hmac
import inspect
import logging

from ordertrack.data import ADMIN_ROLE, LOADING_END, LOADING_START, failure, now_iso
from ordertrack.store import Store

logger = logging.getLogger("ordertrack.auth")

USER_LOGIN = "user:login"
USER_LOGOUT = "user:logout"


def default_authenticate(users, username, password):
    if not username or password is None:
        return None
    for user in users:
        if username not in (user.get("name"), user.get("email"), user.get("phone")):
            continue
        if not user.get("is_active", True) or user.get("password") is None:
            continue
        if hmac.compare_digest(str(user["password"]), str(password)):
            return user
    return None


def public_user(user: dict) -> dict:
    """Copy of user safe to keep as the session user."""
    return {key: value for key, value in user.items() if key != "password"}


class AuthModule:
    def __init__(self, store: Store, authenticate=default_authenticate) -> None:
        self._store = store
        self._authenticate = authenticate
        self.installed = False

    def install(self) -> None:
        store = self._store
        store.register_getter(
            "user_role", lambda state, getters: (state["current_user"] or {}).get("role")
        )
        store.register_getter("is_admin", lambda state, getters: getters.user_role == ADMIN_ROLE)
        store.register_action("login", self.login)
        store.register_action("logout", self.logout)
        self.installed = True
        logger.info("auth module installed")

    async def login(self, context, credentials):
        bus = self._store.bus
        bus.publish(LOADING_START, {"source": "auth"})
        try:
            user = self._authenticate(
                context.getters.users, credentials.get("username"), credentials.get("password")
            )
            if inspect.isawaitable(user):
                user = await user
            if user is None:
                logger.info("login refused for %r", credentials.get("username"))
                return failure("Invalid username or password")

            session = public_user(user)
            session["last_login_at"] = now_iso()
            context.commit("SET_CURRENT_USER", session)
            bus.publish(USER_LOGIN, session)
            return {"success": True, "user": session}
        finally:
            bus.publish(LOADING_END, {"source": "auth"})

    async def logout(self, context, payload):
        user = context.getters.current_user
        context.commit("CLEAR_CURRENT_USER")
        self._store.bus.publish(USER_LOGOUT, user)
        return {"success": True}
