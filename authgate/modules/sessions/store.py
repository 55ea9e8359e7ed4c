"""
Key/value stores backing the session runtime.

A shared ``InMemorySessionStore`` instance plays the role of browser local
storage (visible to every tab, with change notifications); a private instance
per tab plays the role of session storage. ``CookieSessionStore`` exposes the
tracking cookies of one request through the same interface.
"""

import logging
from typing import Callable, Dict, List, Mapping, Optional, Protocol

from fastapi import Response

from authgate.core.cookies import set_tracking_cookie

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, Optional[str], Optional[str]], None]


class SessionStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def on_change(self, listener: ChangeListener) -> Callable[[], None]: ...


class InMemorySessionStore:
    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._listeners: List[ChangeListener] = []

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        old = self._data.get(key)
        self._data[key] = value
        self._notify(key, old, value)

    def remove(self, key: str) -> None:
        if key in self._data:
            old = self._data.pop(key)
            self._notify(key, old, None)

    def clear(self) -> None:
        for key in list(self._data):
            self.remove(key)

    def keys(self) -> List[str]:
        return list(self._data)

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Subscribe to writes; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str, old: Optional[str], new: Optional[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, old, new)
            except Exception as e:
                logger.warning("Session store listener failed for %s: %s", key, e)


class CookieSessionStore(InMemorySessionStore):
    """Request cookies as a store. Writes are queued until ``apply``."""

    def __init__(self, cookies: Mapping[str, str]):
        super().__init__(cookies)
        self._pending: Dict[str, Optional[str]] = {}
        self.on_change(self._queue)

    def _queue(self, key: str, old: Optional[str], new: Optional[str]) -> None:
        self._pending[key] = new

    @property
    def pending(self) -> Dict[str, Optional[str]]:
        return dict(self._pending)

    def apply(self, response: Response) -> None:
        for key, value in self._pending.items():
            if value is None:
                response.delete_cookie(key, path="/")
            else:
                set_tracking_cookie(response, key, value)
        self._pending.clear()
