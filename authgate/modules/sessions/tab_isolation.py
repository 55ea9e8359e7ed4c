"""
Tab isolation.

Keeps a sign-in performed in one tab from being silently adopted by the other
open tabs of the same browser profile. Each tab has an id in its private store;
the shared store holds the id of the tab where login happened (the auth tab)
and a map of per-tab records.

A ``SIGNED_IN`` event is accepted only by the auth tab, by any tab while no
auth tab is designated (that tab then becomes the auth tab), or by a tab that
was reloaded. Reloaded is settled once in ``initialize``: the tab had no record
of its own while an auth tab marker existed. ``initialize`` then registers the
tab as unauthenticated. Other tabs are signed out locally. ``SIGNED_OUT``
always passes.

The shared store is last-write-wins: two tabs signing in at the same moment can
both see no auth tab and both mark themselves, the later write winning.
"""

import json
import logging
import secrets
import string
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from authgate.modules.sessions.store import SessionStore

logger = logging.getLogger(__name__)

TAB_ID_KEY = "tab_id"
AUTH_TAB_KEY = "auth_tab_id"
TAB_SESSIONS_KEY = "tab_sessions"

TAB_SESSION_MAX_AGE_MS = 60 * 60 * 1000

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_tab_id(now_ms: Optional[int] = None) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"tab_{now_ms if now_ms is not None else _now_ms()}_{suffix}"


@dataclass
class TabSession:
    authenticated: bool
    timestamp: int
    is_auth_tab: bool


class TabIsolation:
    def __init__(
        self,
        tab_store: SessionStore,
        shared_store: SessionStore,
        auth_client: Any = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.tab_store = tab_store
        self.shared_store = shared_store
        self.auth_client = auth_client
        self.clock = clock
        self._tab_id: Optional[str] = None
        self._reloaded: Optional[bool] = None
        self._subscription = None

    def _write(self, store: SessionStore, key: str, value: Optional[str]) -> None:
        try:
            if value is None:
                store.remove(key)
            else:
                store.set(key, value)
        except Exception as e:
            logger.warning("Failed to write tab isolation key %s: %s", key, e)

    @property
    def tab_id(self) -> str:
        """This tab's id, generated once and kept in the tab store."""
        stored = self.tab_store.get(TAB_ID_KEY)
        if stored:
            self._tab_id = stored
            return stored
        if self._tab_id is None:
            self._tab_id = generate_tab_id(self.clock())
        self._write(self.tab_store, TAB_ID_KEY, self._tab_id)
        return self._tab_id

    def mark_as_auth_tab(self) -> None:
        self._write(self.shared_store, AUTH_TAB_KEY, self.tab_id)
        logger.info("Tab %s marked as auth tab", self.tab_id)

    def is_auth_tab(self) -> bool:
        return self.shared_store.get(AUTH_TAB_KEY) == self.tab_id

    def should_allow_auth(self) -> bool:
        return not self.shared_store.get(AUTH_TAB_KEY) or self.is_auth_tab()

    def get_tab_sessions(self) -> Dict[str, TabSession]:
        raw = self.shared_store.get(TAB_SESSIONS_KEY)
        if not raw:
            return {}
        try:
            return {tab_id: TabSession(**record) for tab_id, record in json.loads(raw).items()}
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Discarding unreadable tab sessions: %s", e)
            return {}

    def _save_tab_sessions(self, sessions: Dict[str, TabSession]) -> None:
        payload = json.dumps({tab_id: asdict(record) for tab_id, record in sessions.items()})
        self._write(self.shared_store, TAB_SESSIONS_KEY, payload)

    def get_tab_session(self) -> Optional[TabSession]:
        return self.get_tab_sessions().get(self.tab_id)

    def set_tab_session(self, authenticated: bool) -> None:
        sessions = self.get_tab_sessions()
        sessions[self.tab_id] = TabSession(
            authenticated=authenticated,
            timestamp=self.clock(),
            is_auth_tab=self.is_auth_tab(),
        )
        self._save_tab_sessions(sessions)

    def clear_tab_session(self) -> None:
        sessions = self.get_tab_sessions()
        if sessions.pop(self.tab_id, None) is not None:
            self._save_tab_sessions(sessions)

    def clear_auth_tab(self) -> None:
        self._write(self.shared_store, AUTH_TAB_KEY, None)
        logger.info("Auth tab marker cleared")

    def was_tab_refreshed(self) -> bool:
        return self.get_tab_session() is None and bool(self.shared_store.get(AUTH_TAB_KEY))

    @property
    def reloaded(self) -> bool:
        """Whether this tab may adopt a sign-in made elsewhere, as decided at initialize."""
        if self._reloaded is None:
            return self.was_tab_refreshed()
        return self._reloaded

    def initialize(self, reloaded: Optional[bool] = None) -> None:
        """
        Assign the tab id, drop tab records older than one hour and register
        this tab as unauthenticated.

        ``reloaded`` is derived from ``was_tab_refreshed`` when not given; it
        is settled before this tab's own record is written.
        """
        logger.info("Tab isolation initialized for tab %s", self.tab_id)
        sessions = self.get_tab_sessions()
        cutoff = self.clock() - TAB_SESSION_MAX_AGE_MS
        fresh = {tab_id: record for tab_id, record in sessions.items() if record.timestamp > cutoff}
        if len(fresh) != len(sessions):
            self._save_tab_sessions(fresh)

        self._reloaded = self.was_tab_refreshed() if reloaded is None else reloaded
        if self.get_tab_session() is None:
            self.set_tab_session(False)

    def reset(self) -> None:
        """Forget all tab isolation state (logout)."""
        self._write(self.shared_store, AUTH_TAB_KEY, None)
        self._write(self.shared_store, TAB_SESSIONS_KEY, None)
        self._write(self.tab_store, TAB_ID_KEY, None)
        self._tab_id = None
        self._reloaded = None
        logger.info("Tab isolation reset")

    def handle_auth_event(self, event: str, session: Any = None) -> bool:
        """Apply the isolation rule to an auth state change. Returns False when rejected."""
        if event == SIGNED_OUT:
            self.clear_tab_session()
            return True
        if event != SIGNED_IN:
            return True

        if self.is_auth_tab():
            allowed = True
        elif not self.shared_store.get(AUTH_TAB_KEY):
            self.mark_as_auth_tab()
            allowed = True
        else:
            allowed = self.reloaded

        if allowed:
            self.set_tab_session(True)
            return True

        logger.info("Rejecting sign-in in non-auth tab %s", self.tab_id)
        self._local_sign_out()
        return False

    def _local_sign_out(self) -> None:
        if self.auth_client is None:
            return
        try:
            self.auth_client.auth.sign_out({"scope": "local"})
        except Exception as e:
            logger.warning("Local sign-out of tab %s failed: %s", self.tab_id, e)

    def attach(self, auth_client: Any = None, reloaded: Optional[bool] = None):
        """Initialize this tab and subscribe to the client's auth state changes."""
        if auth_client is not None:
            self.auth_client = auth_client
        self.initialize(reloaded)
        self._subscription = self.auth_client.auth.on_auth_state_change(self.handle_auth_event)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
