# src/task_planner/core/auth_flow.py

"""
Two-step authentication dialog: username, then password.

Registration and login share the same state shape (AwaitingAuthStep); only the
terminal step differs. Any terminal outcome clears the pending state, so after
a failure the user restarts with /registration or /login.
"""

from __future__ import annotations

import dataclasses
import logging

from ..storage.passwords import DEFAULT_ROUNDS, hash_password
from . import messages as msg
from .errors import AlreadyExists, StoreFailure
from .models import AuthMode, AuthStep, AwaitingAuthStep, BotResponse, UserKey
from .state import AppState

logger = logging.getLogger(__name__)


def begin_registration(state: AppState, key: UserKey) -> BotResponse:
    state.sessions.set(key, AwaitingAuthStep(mode=AuthMode.REGISTRATION))
    logger.debug("Registration started for %s", key)
    return BotResponse(msg.REGISTRATION_PROMPT)


def begin_login(state: AppState, key: UserKey) -> BotResponse:
    state.sessions.set(key, AwaitingAuthStep(mode=AuthMode.LOGIN))
    logger.debug("Login started for %s", key)
    return BotResponse(msg.LOGIN_PROMPT)


def has_pending(state: AppState, key: UserKey) -> bool:
    return state.sessions.has_pending(key, AwaitingAuthStep)


def advance(state: AppState, key: UserKey, text: str) -> BotResponse:
    pending = state.sessions.get_as(key, AwaitingAuthStep)
    if pending is None:
        # Raced with a logout or another delivery that finished the dialog.
        return BotResponse(msg.AUTH_ERROR)

    if pending.step is AuthStep.USERNAME:
        return _username_step(state, key, pending, text)
    return _password_step(state, key, pending, text)


def _username_step(state: AppState, key: UserKey, pending: AwaitingAuthStep, text: str) -> BotResponse:
    username = (text or "").strip()
    if not username:
        return BotResponse(msg.USERNAME_EMPTY)

    try:
        exists = state.store.user_exists(username)
    except StoreFailure:
        state.sessions.replace(key, pending, None)
        return BotResponse(msg.STORE_ERROR)

    if pending.mode is AuthMode.REGISTRATION and exists:
        state.sessions.replace(key, pending, None)
        return BotResponse(msg.USERNAME_TAKEN)
    if pending.mode is AuthMode.LOGIN and not exists:
        state.sessions.replace(key, pending, None)
        return BotResponse(msg.USERNAME_NOT_FOUND.format(username=username))

    nxt = dataclasses.replace(pending, step=AuthStep.PASSWORD, username=username)
    if not state.sessions.replace(key, pending, nxt):
        return BotResponse(msg.AUTH_ERROR)
    logger.debug("Auth %s for %s: username accepted", pending.mode, key)
    return BotResponse(msg.PASSWORD_PROMPT)


def _password_step(state: AppState, key: UserKey, pending: AwaitingAuthStep, text: str) -> BotResponse:
    # Passwords are kept exactly as typed; only usernames are trimmed.
    password = text or ""
    if not password.strip():
        return BotResponse(msg.PASSWORD_EMPTY)

    # Only one delivery may complete the dialog.
    if not state.sessions.replace(key, pending, None):
        return BotResponse(msg.AUTH_ERROR)

    username = pending.username or ""
    if pending.mode is AuthMode.REGISTRATION:
        return _register(state, key, username, password)
    return _login(state, key, username, password)


def _register(state: AppState, key: UserKey, username: str, password: str) -> BotResponse:
    rounds = int(getattr(state.settings, "bcrypt_rounds", DEFAULT_ROUNDS))
    try:
        account_id = state.store.create_account_and_bind(
            username,
            hash_password(password, rounds=rounds),
            platform=key.platform,
            platform_id=key.platform_id,
        )
    except AlreadyExists:
        logger.info("Registration race lost for username=%r", username)
        return BotResponse(msg.REGISTRATION_FAILED)
    except StoreFailure:
        return BotResponse(msg.REGISTRATION_FAILED)

    logger.info("Account registered id=%s username=%r via %s", account_id, username, key)
    return BotResponse(msg.REGISTRATION_OK.format(username=username))


def _login(state: AppState, key: UserKey, username: str, password: str) -> BotResponse:
    try:
        account_id = state.store.verify_password(username, password)
        if account_id is None:
            logger.info("Failed login for username=%r via %s", username, key)
            return BotResponse(msg.INVALID_CREDENTIALS)
        state.store.bind_session(key.platform, key.platform_id, account_id)
    except StoreFailure:
        return BotResponse(msg.STORE_ERROR)

    logger.info("Logged in account=%s via %s", account_id, key)
    return BotResponse(msg.LOGIN_OK.format(username=username))


def is_authenticated(state: AppState, key: UserKey) -> bool:
    return state.store.resolve_account(key.platform, key.platform_id) is not None


def logout(state: AppState, key: UserKey) -> bool:
    """Remove this platform's binding only; other platforms stay logged in."""
    if not is_authenticated(state, key):
        return False
    removed = state.store.unbind_session(key.platform, key.platform_id)
    if removed:
        logger.info("Logged out %s", key)
    return removed


def handle_exit(state: AppState, key: UserKey) -> BotResponse:
    state.sessions.clear(key)
    try:
        ok = logout(state, key)
    except StoreFailure:
        return BotResponse(msg.STORE_ERROR)
    if not ok:
        return BotResponse(msg.NOT_AUTHENTICATED)
    return BotResponse(msg.LOGOUT_OK)
