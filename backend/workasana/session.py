"""Session context — credential, cached profile and display preferences.

Keys in the backing key/value store:
  token            opaque bearer string, present iff authenticated
  user             JSON profile, mirrors the token's lifecycle
  userPreferences  JSON preferences, survives eviction and sign-out

The gateway only ever calls ``evict()``; ``sign_in``/``sign_out`` belong to
the explicit authentication flow.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"
PREFERENCES_KEY = "userPreferences"

DEFAULT_PREFERENCES: dict[str, Any] = {
    "emailNotifications": True,
    "desktopNotifications": False,
    "theme": "light",
    "language": "en",
    "timezone": "UTC",
}


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store. Default for library use and tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Flat JSON file store used by the CLI between invocations."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Session file %s unreadable, starting empty: %s", self.path, e)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)} if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class SessionContext:
    """Explicit session object handed to the gateway and the screens.

    Usage:
        session = SessionContext(MemoryStore())
        session.sign_in(token, user)
        gateway = AuthenticatedGateway(session)
    """

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self.store: KeyValueStore = store if store is not None else MemoryStore()

    @property
    def token(self) -> str | None:
        return self.store.get(TOKEN_KEY) or None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def user(self) -> dict | None:
        """Cached profile, or None when absent or corrupt."""
        raw = self.store.get(USER_KEY)
        if not raw:
            return None
        try:
            profile = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Cached user profile is not valid JSON; ignoring")
            return None
        return profile if isinstance(profile, dict) else None

    @property
    def current_user_id(self) -> str | None:
        profile = self.user
        if not profile:
            return None
        user_id = profile.get("_id") or profile.get("id")
        return str(user_id) if user_id else None

    def sign_in(self, token: str, user: dict | None) -> None:
        self.store.set(TOKEN_KEY, token)
        self.store.set(USER_KEY, json.dumps(user or {}))
        logger.info("Signed in as %s", (user or {}).get("email") or self.current_user_id or "unknown")

    def sign_out(self) -> None:
        self._clear_credentials()
        logger.info("Signed out")

    def evict(self) -> None:
        """Clear credential and cached profile after an authorization failure."""
        self._clear_credentials()
        logger.warning("Session evicted: credential rejected by remote service")

    def update_user(self, user: dict) -> None:
        self.store.set(USER_KEY, json.dumps(user))

    def _clear_credentials(self) -> None:
        self.store.remove(TOKEN_KEY)
        self.store.remove(USER_KEY)

    @property
    def preferences(self) -> dict[str, Any]:
        """Stored preferences merged over the defaults."""
        merged = dict(DEFAULT_PREFERENCES)
        raw = self.store.get(PREFERENCES_KEY)
        if raw:
            try:
                stored = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Stored preferences are not valid JSON; using defaults")
                stored = {}
            if isinstance(stored, dict):
                merged.update(stored)
        return merged

    def save_preferences(self, preferences: dict[str, Any]) -> None:
        merged = self.preferences
        merged.update(preferences)
        self.store.set(PREFERENCES_KEY, json.dumps(merged))
